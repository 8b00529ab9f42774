"""收件人解析

所有 coordinator 相关的路由都经由 resolve_effective_coordinators，
不在此处重新推导继承关系。
"""

from collections.abc import Iterable
from dataclasses import dataclass

from inzet.core.governance import (
    TreeIndex,
    can_actor_decide_proposal,
    resolve_effective_coordinators,
    unique_sorted_aliases,
)
from inzet.core.models import Task, TaskSubscription


def proposal_decision_aliases(
    proposer_alias: str,
    proposed_alias: str | None,
    effective_coordinators: Iterable[str],
) -> list[str]:
    """可以决定该提案的全部 alias"""
    coordinators = unique_sorted_aliases(effective_coordinators)
    candidates = unique_sorted_aliases([proposer_alias, proposed_alias, *coordinators])
    return [
        alias
        for alias in candidates
        if can_actor_decide_proposal(alias, proposer_alias, proposed_alias, coordinators)
    ]


def coordinator_aliases(task_id: str, tree: TreeIndex) -> list[str]:
    return resolve_effective_coordinators(task_id, tree)


@dataclass(frozen=True)
class NearestSubscription:
    subscription_title: str
    parent_title: str


def nearest_subscriptions(
    created_task: Task,
    tree: TreeIndex,
    subscriptions: Iterable[TaskSubscription],
    exclude_aliases: Iterable[str] = (),
) -> dict[str, NearestSubscription]:
    """新建子任务的订阅者 -> 其最近的订阅祖先

    一个用户订阅了多个祖先时只按最近的那个通知一次。
    """
    if created_task.parent_id is None:
        return {}
    chain = tree.ancestor_chain(created_task.parent_id)
    if not chain:
        return {}

    excluded = set(exclude_aliases)
    by_task: dict[str, list[str]] = {}
    for subscription in subscriptions:
        if subscription.user_alias in excluded:
            continue
        by_task.setdefault(subscription.task_id, []).append(subscription.user_alias)

    parent_title = chain[0].title
    nearest: dict[str, NearestSubscription] = {}
    for ancestor in chain:
        for alias in sorted(by_task.get(ancestor.task_id, [])):
            if alias not in nearest:
                nearest[alias] = NearestSubscription(
                    subscription_title=ancestor.title,
                    parent_title=parent_title,
                )
    return nearest


def subscription_lines(
    created_tasks: Iterable[Task],
    tree: TreeIndex,
    subscriptions: Iterable[TaskSubscription],
    actor_alias: str,
) -> dict[str, list[str]]:
    """按订阅者汇总本次新建子任务的通知行"""
    subscription_list = list(subscriptions)
    lines_by_user: dict[str, list[str]] = {}
    for task in created_tasks:
        for alias, nearest in nearest_subscriptions(
            task, tree, subscription_list, exclude_aliases=[actor_alias]
        ).items():
            lines_by_user.setdefault(alias, []).append(
                f'Nieuwe subtaak "{task.title}" onder "{nearest.parent_title}" '
                f'(abonnement: "{nearest.subscription_title}").'
            )
    return lines_by_user
