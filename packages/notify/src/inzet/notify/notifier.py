"""Notifier -- 治理事件到通知的映射

TaskService 在变更提交后调用这里的方法。
通知失败只记录日志，绝不影响已经提交的变更。
"""

from collections.abc import Awaitable, Iterable

import structlog

from inzet.core.governance import TreeIndex, unique_sorted_aliases
from inzet.core.models import NotificationCategory, Task
from inzet.core.store.protocols import MemberDirectory

from .messages import (
    build_new_proposal_messages,
    build_proposal_accepted_messages,
    build_subscription_messages,
    build_task_available_messages,
    build_task_changed_messages,
)
from .recipients import coordinator_aliases, proposal_decision_aliases, subscription_lines
from .scheduler import DigestScheduler, DispatchReport

log = structlog.get_logger()


class Notifier:
    """把治理决策转成通知并交给 DigestScheduler 分发"""

    def __init__(self, scheduler: DigestScheduler, member_store: MemberDirectory) -> None:
        self._scheduler = scheduler
        self._members = member_store

    @property
    def scheduler(self) -> DigestScheduler:
        return self._scheduler

    async def _guarded(self, event: str, dispatch: Awaitable[DispatchReport]) -> DispatchReport | None:
        try:
            return await dispatch
        except Exception as e:
            log.error(
                "notification_dispatch_failed",
                notification=event,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def proposal_decision_required(
        self,
        task: Task,
        proposer_alias: str,
        proposed_alias: str | None,
        tree: TreeIndex,
        actor_alias: str,
    ) -> DispatchReport | None:
        """新提案：通知所有可以决定它的人"""
        recipients = proposal_decision_aliases(
            proposer_alias,
            proposed_alias,
            coordinator_aliases(task.task_id, tree),
        )
        if not recipients:
            return None
        return await self._guarded(
            "new_proposal",
            self._scheduler.dispatch(
                NotificationCategory.NEW_PROPOSAL,
                build_new_proposal_messages(recipients, task.title, proposer_alias, proposed_alias),
                exclude_aliases=[actor_alias],
            ),
        )

    async def proposal_accepted(
        self,
        recipient_aliases: Iterable[str],
        actor_alias: str,
        task_title: str,
    ) -> DispatchReport | None:
        """提案被接受：通知提案人与被提议人"""
        recipients = unique_sorted_aliases(recipient_aliases)
        if not recipients:
            return None
        return await self._guarded(
            "proposal_accepted",
            self._scheduler.dispatch(
                NotificationCategory.PROPOSAL_ACCEPTED,
                build_proposal_accepted_messages(recipients, actor_alias, task_title),
                exclude_aliases=[actor_alias],
            ),
        )

    async def task_changed(
        self,
        task: Task,
        tree: TreeIndex,
        actor_alias: str,
        summary: str | None = None,
    ) -> DispatchReport | None:
        recipients = coordinator_aliases(task.task_id, tree)
        if not recipients:
            return None
        return await self._guarded(
            "task_changed",
            self._scheduler.dispatch(
                NotificationCategory.TASK_CHANGED_AS_COORDINATOR,
                build_task_changed_messages(recipients, actor_alias, task.title, summary),
                exclude_aliases=[actor_alias],
            ),
        )

    async def task_became_available(
        self,
        task: Task,
        tree: TreeIndex,
        actor_alias: str,
    ) -> DispatchReport | None:
        recipients = coordinator_aliases(task.task_id, tree)
        if not recipients:
            return None
        return await self._guarded(
            "task_became_available",
            self._scheduler.dispatch(
                NotificationCategory.TASK_BECAME_AVAILABLE_AS_COORDINATOR,
                build_task_available_messages(recipients, actor_alias, task.title),
                exclude_aliases=[actor_alias],
            ),
        )

    async def subtasks_created(
        self,
        created_tasks: Iterable[Task],
        tree: TreeIndex,
        actor_alias: str,
    ) -> DispatchReport | None:
        """新建子任务：通知每个订阅者一次（按其最近的订阅祖先）"""
        created = [task for task in created_tasks if task.parent_id is not None]
        if not created:
            return None

        ancestor_ids = {
            ancestor.task_id
            for task in created
            for ancestor in tree.ancestor_chain(task.parent_id)
        }
        try:
            subscriptions = await self._members.list_subscriptions(ancestor_ids)
        except Exception as e:
            log.error(
                "notification_dispatch_failed",
                notification="subtask_created",
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

        lines_by_user = subscription_lines(created, tree, subscriptions, actor_alias)
        if not lines_by_user:
            return None
        return await self._guarded(
            "subtask_created",
            self._scheduler.dispatch(
                NotificationCategory.SUBTASK_CREATED_IN_SUBSCRIPTION,
                build_subscription_messages(lines_by_user),
                exclude_aliases=[actor_alias],
            ),
        )
