"""TaskService -- 任务树变更编排

每个变更的固定流程：
1. 写事务内读取整棵树快照
2. PermissionEvaluator 鉴权
3. 需要时由点数分配器计划预算
4. 写入并提交
5. 提交后发通知（失败只记日志，不影响变更结果）
"""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import UTC, datetime

import structlog
from inzet.core.config import (
    TEMPLATE_CHILD_DEFAULT_POINTS,
    TEMPLATE_ROOT_POINTS,
    get_root_task_title,
)
from inzet.core.governance import (
    EditCoordinatorsHook,
    InvalidTransitionError,
    PermissionDeniedError,
    PermissionEvaluator,
    PointsBudgetExceededError,
    ProposalNotFoundError,
    ProposalStateError,
    RegistrationNotAllowedError,
    ReleaseWouldOrphanError,
    SubtaskRequiredError,
    SubtreeContainsDoneError,
    TaskFrozenError,
    TaskNotFoundError,
    TeamMismatchError,
    TemplateNotFoundError,
    TreeIndex,
    allocate_points_from_parent,
    are_alias_sets_equal,
    available_points,
    can_actor_decide_proposal,
    is_root_owner,
    no_extra_edit_rights,
    normalize_points,
    plan_move,
    plan_subtree_copy,
    plan_template_application,
    resolve_coordinator_aliases_after_accept,
    resolve_effective_coordination_type,
    resolve_effective_coordinators,
    resolve_own_coordinators_after_release,
    unique_sorted_aliases,
)
from inzet.core.logging_config import actor_context
from inzet.core.models import (
    Capability,
    CoordinationType,
    NotificationCategory,
    NotificationDelivery,
    Proposal,
    ProposalStatus,
    Task,
    TaskPermissions,
    TaskStatus,
    TaskSubscription,
    validate_transition,
)
from inzet.core.store import StoreGroup, transaction
from inzet.notify import Notifier
from pydantic import BaseModel, Field
from ulid import ULID

log = structlog.get_logger()

# update_task 中"未传入"与"显式设为 None"的区分
_UNSET = object()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ProposalView(BaseModel):
    """list_open_proposals 的单条结果"""

    proposal: Proposal
    task_title: str
    team_name: str | None = None
    can_decide: bool = Field(description="当前 actor 是否可以接受 / 拒绝")


class TaskService:
    """任务业务服务

    所有入口都接收已认证的 actor alias；认证本身不在此处理。
    """

    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier | None = None,
        edit_coordinators_hook: EditCoordinatorsHook = no_extra_edit_rights,
        root_task_title: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._edit_hook = edit_coordinators_hook
        self._root_task_title = root_task_title or get_root_task_title()
        self._clock = clock

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------

    async def load_tree(self) -> TreeIndex:
        return await self._stores.task_store.load_tree()

    def _evaluator(self, tree: TreeIndex) -> PermissionEvaluator:
        return PermissionEvaluator(tree, self._edit_hook)

    async def evaluate_permissions(self, actor_alias: str, task_id: str) -> TaskPermissions:
        """actor 对 task 的全部能力"""
        tree = await self.load_tree()
        tree.require(task_id)
        return self._evaluator(tree).evaluate(actor_alias, task_id)

    async def get_task(self, actor_alias: str, task_id: str) -> Task:
        tree = await self.load_tree()
        task = tree.require(task_id)
        self._evaluator(tree).require(actor_alias, task_id, Capability.READ)
        return task

    async def list_visible_tasks(self, actor_alias: str) -> list[Task]:
        """actor 可见的任务：自己管理的分支 + 所有公开可报名任务"""
        tree = await self.load_tree()
        evaluator = self._evaluator(tree)
        return [task for task in tree if evaluator.can_read(actor_alias, task.task_id)]

    # ------------------------------------------------------------------
    # 结构变更
    # ------------------------------------------------------------------

    async def create_task(
        self,
        actor_alias: str,
        parent_id: str | None,
        title: str,
        description: str = "",
        points: object = 0,
        team_name: str | None = None,
        coordination_type: CoordinationType | None = None,
        own_coordinator_aliases: Iterable[str] | None = None,
    ) -> Task:
        """创建任务

        root 任务只能由 root-owner 创建，创建者成为其 own coordinator；
        子任务需要父任务的 CREATE_SUBTASK，点数从父任务可用点数中分配，不足时置零。
        """
        with actor_context(actor_alias, "create_task"):
            now = self._clock()
            async with transaction(self._stores.conn):
                tree = await self.load_tree()

                if parent_id is None:
                    if not is_root_owner(actor_alias, tree, self._root_task_title):
                        log.info("permission_denied", capability="CREATE_ROOT_TASK")
                        raise PermissionDeniedError(actor_alias, "CREATE_ROOT_TASK")
                    assigned_points = normalize_points(points)
                    zeroed = False
                    own = unique_sorted_aliases(own_coordinator_aliases or [actor_alias])
                else:
                    tree.require(parent_id)
                    self._evaluator(tree).require(actor_alias, parent_id, Capability.CREATE_SUBTASK)
                    if tree.is_frozen(parent_id):
                        raise TaskFrozenError(parent_id)
                    allocation = allocate_points_from_parent(
                        available_points(parent_id, tree),
                        points,
                    )
                    assigned_points = allocation.assigned_points
                    zeroed = allocation.zeroed
                    own = self._normalize_own(
                        own_coordinator_aliases or [],
                        resolve_effective_coordinators(parent_id, tree),
                    )

                task = Task(
                    task_id=str(ULID()),
                    parent_id=parent_id,
                    title=title,
                    description=description,
                    team_name=team_name,
                    own_coordinator_aliases=own,
                    coordination_type=coordination_type,
                    points=assigned_points,
                    status=TaskStatus.AVAILABLE,
                    created_at=now,
                    updated_at=now,
                )
                await self._stores.task_store.create_task(task)

            log.info(
                "task_created",
                task_id=task.task_id,
                parent_id=parent_id,
                points=task.points,
                zeroed=zeroed,
            )
            if zeroed:
                log.info(
                    "points_zeroed",
                    reason="create_shortfall",
                    task_id=task.task_id,
                    requested_points=normalize_points(points),
                )

            if parent_id is not None:
                await self._notify_with_tree(
                    "subtask_created",
                    lambda notifier, tree: notifier.subtasks_created([task], tree, actor_alias),
                )
            return task

    async def update_task(
        self,
        actor_alias: str,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        team_name: object = _UNSET,
        coordination_type: object = _UNSET,
        points: object = None,
        own_coordinator_aliases: Iterable[str] | None = None,
    ) -> Task:
        """编辑任务字段

        需要 MANAGE；修改 own coordinators 需要 EDIT_COORDINATORS。
        已完成（或祖先已完成）的任务冻结。
        点数增加必须在父任务可用点数之内，超出时整体拒绝而不是置零。
        """
        with actor_context(actor_alias, "update_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                evaluator = self._evaluator(tree)

                edits_fields = (
                    title is not None
                    or description is not None
                    or team_name is not _UNSET
                    or coordination_type is not _UNSET
                    or points is not None
                )
                if own_coordinator_aliases is not None:
                    evaluator.require(actor_alias, task_id, Capability.EDIT_COORDINATORS)
                # 仅改 coordinators 时 EDIT_COORDINATORS 即足够
                if edits_fields or own_coordinator_aliases is None:
                    evaluator.require(actor_alias, task_id, Capability.MANAGE)
                if tree.is_frozen(task_id):
                    raise TaskFrozenError(task_id)

                changes: dict[str, object] = {}
                if title is not None:
                    changes["title"] = title
                if description is not None:
                    changes["description"] = description
                if team_name is not _UNSET:
                    changes["team_name"] = team_name or None
                if coordination_type is not _UNSET:
                    changes["coordination_type"] = coordination_type
                if points is not None:
                    new_points = normalize_points(points)
                    if task.parent_id is not None and new_points > task.points:
                        capacity = available_points(task.parent_id, tree) + task.points
                        if new_points > capacity:
                            raise PointsBudgetExceededError(task_id, capacity, new_points)
                    changes["points"] = new_points

                updated = task.model_copy(update={**changes, "updated_at": self._clock()})
                await self._stores.task_store.update_task(updated)

                if own_coordinator_aliases is not None:
                    parent_effective = (
                        resolve_effective_coordinators(task.parent_id, tree)
                        if task.parent_id is not None
                        else []
                    )
                    own = self._normalize_own(own_coordinator_aliases, parent_effective)
                    await self._stores.task_store.set_own_coordinators(task_id, own)
                    updated = updated.model_copy(update={"own_coordinator_aliases": own})
                    changes["own_coordinator_aliases"] = own

            log.info("task_updated", task_id=task_id, changed_fields=sorted(changes))
            if changes:
                await self._notify_with_tree(
                    "task_changed",
                    lambda notifier, tree: notifier.task_changed(
                        updated,
                        tree,
                        actor_alias,
                        summary="Gewijzigd: " + ", ".join(sorted(changes)),
                    ),
                )
            return updated

    async def move_task(self, actor_alias: str, task_id: str, target_parent_id: str) -> Task:
        """把子任务移到另一个父任务下

        需要原父任务与目标父任务的 MANAGE；点数在两个父任务之间对称转移，
        目标父任务不足时整体拒绝。
        """
        with actor_context(actor_alias, "move_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                target = tree.require(target_parent_id)
                if task.parent_id is None:
                    raise SubtaskRequiredError(task_id)

                evaluator = self._evaluator(tree)
                evaluator.require(actor_alias, task.parent_id, Capability.MANAGE)
                evaluator.require(actor_alias, target_parent_id, Capability.MANAGE)

                if target.team_name is not None and target.team_name != task.team_name:
                    raise TeamMismatchError(task_id, target_parent_id, target.team_name)
                if tree.is_frozen(task_id):
                    raise TaskFrozenError(task_id)
                if tree.is_frozen(target_parent_id):
                    raise TaskFrozenError(target_parent_id)

                transfer = plan_move(task_id, target_parent_id, tree)
                moved = task.model_copy(
                    update={"parent_id": target_parent_id, "updated_at": self._clock()}
                )
                await self._stores.task_store.update_task(moved)

            log.info(
                "task_moved",
                task_id=task_id,
                from_parent_id=task.parent_id,
                to_parent_id=target_parent_id,
                source_available_after=transfer.source_available_after,
                target_available_after=transfer.target_available_after,
            )
            await self._notify_with_tree(
                "task_changed",
                lambda notifier, tree: notifier.task_changed(
                    moved,
                    tree,
                    actor_alias,
                    summary=f'Verplaatst naar "{target.title}".',
                ),
            )
            return moved

    async def copy_task(
        self,
        actor_alias: str,
        source_id: str,
        target_parent_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        team_name: object = _UNSET,
        points: object = None,
    ) -> list[Task]:
        """复制整棵子树到目标父任务下

        复制品状态重置为 AVAILABLE，coordinator 集合原样复制；
        根节点分配失败时根与所有后代一起置零。

        Returns:
            新建任务列表，复制出的根在第一位
        """
        with actor_context(actor_alias, "copy_task"):
            now = self._clock()
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                source = tree.require(source_id)
                tree.require(target_parent_id)
                if source.parent_id is None:
                    raise SubtaskRequiredError(source_id)

                evaluator = self._evaluator(tree)
                for required_id in (source_id, source.parent_id, target_parent_id):
                    evaluator.require(actor_alias, required_id, Capability.MANAGE)
                if tree.is_frozen(target_parent_id):
                    raise TaskFrozenError(target_parent_id)

                plan = plan_subtree_copy(
                    source_id,
                    target_parent_id,
                    tree,
                    root_points=None if points is None else normalize_points(points),
                )

                new_ids: dict[str, str] = {}
                created: list[Task] = []
                for node in tree.subtree(source_id):
                    new_id = str(ULID())
                    new_ids[node.task_id] = new_id
                    update: dict[str, object] = {
                        "task_id": new_id,
                        "parent_id": (
                            target_parent_id
                            if node.task_id == source_id
                            else new_ids[node.parent_id]
                        ),
                        "points": plan.points_by_source_id[node.task_id],
                        "status": TaskStatus.AVAILABLE,
                        "created_at": now,
                        "updated_at": now,
                    }
                    if node.task_id == source_id:
                        if title is not None:
                            update["title"] = title
                        if description is not None:
                            update["description"] = description
                        if team_name is not _UNSET:
                            update["team_name"] = team_name or None
                    copy = node.model_copy(update=update)
                    await self._stores.task_store.create_task(copy)
                    created.append(copy)

            log.info(
                "task_subtree_copied",
                source_id=source_id,
                target_parent_id=target_parent_id,
                new_root_id=created[0].task_id,
                created_count=len(created),
                zeroed=plan.zeroed,
            )
            await self._notify_with_tree(
                "subtask_created",
                lambda notifier, tree: notifier.subtasks_created(created, tree, actor_alias),
            )
            return created

    async def delete_task(self, actor_alias: str, task_id: str) -> list[str]:
        """删除整棵子树

        需要父任务的 MANAGE；root 任务不可删除，子树中有 DONE 任务时拒绝。
        开放提案与订阅随任务一起删除。
        """
        with actor_context(actor_alias, "delete_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                if task.parent_id is None:
                    raise SubtaskRequiredError(task_id)
                self._evaluator(tree).require(actor_alias, task.parent_id, Capability.MANAGE)
                if tree.subtree_has_done(task_id):
                    raise SubtreeContainsDoneError(task_id)

                deleted_ids = [node.task_id for node in tree.subtree(task_id)]
                await self._stores.task_store.delete_tasks(reversed(deleted_ids))

            log.info("task_subtree_deleted", task_id=task_id, deleted_count=len(deleted_ids))
            return deleted_ids

    async def apply_template(
        self,
        actor_alias: str,
        template_id: str,
        team_name: str,
        parent_id: str | None = None,
    ) -> list[Task]:
        """按模板为团队创建协调任务及其子任务

        parent_id 为空时挂到 root 任务下。根任务申请固定点数，
        根分配失败或子模板默认点数之和超出根点数时整棵子树置零。

        Returns:
            新建任务列表，模板根任务在第一位
        """
        with actor_context(actor_alias, "apply_template"):
            now = self._clock()
            async with transaction(self._stores.conn):
                template = await self._stores.template_store.get_template(template_id)
                if template is None:
                    raise TemplateNotFoundError(template_id)
                children = await self._stores.template_store.get_child_templates(template_id)

                tree = await self.load_tree()
                if parent_id is None:
                    root = next(
                        (task for task in tree.roots() if task.title == self._root_task_title),
                        None,
                    )
                    if root is None:
                        raise TaskNotFoundError(self._root_task_title)
                    parent_id = root.task_id
                tree.require(parent_id)
                self._evaluator(tree).require(actor_alias, parent_id, Capability.CREATE_SUBTASK)
                if tree.is_frozen(parent_id):
                    raise TaskFrozenError(parent_id)

                plan = plan_template_application(
                    available_points(parent_id, tree),
                    TEMPLATE_ROOT_POINTS,
                    [
                        child.default_points
                        if child.default_points is not None
                        else TEMPLATE_CHILD_DEFAULT_POINTS
                        for child in children
                    ],
                )

                coordinator_task = Task(
                    task_id=str(ULID()),
                    parent_id=parent_id,
                    title=f"Coachen {team_name}",
                    description=f"Coordinatietaak voor team {team_name}",
                    team_name=team_name,
                    points=plan.root_points,
                    status=TaskStatus.ASSIGNED,
                    template_id=template.template_id,
                    created_at=now,
                    updated_at=now,
                )
                created = [coordinator_task]
                for child, child_points in zip(children, plan.child_points, strict=True):
                    created.append(
                        Task(
                            task_id=str(ULID()),
                            parent_id=coordinator_task.task_id,
                            title=child.title,
                            description=child.description,
                            team_name=team_name,
                            points=child_points,
                            status=TaskStatus.AVAILABLE,
                            template_id=child.template_id,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                for task in created:
                    await self._stores.task_store.create_task(task)

            log.info(
                "template_applied",
                template_id=template_id,
                parent_id=parent_id,
                team_name=team_name,
                created_task_id=coordinator_task.task_id,
                created_subtask_count=len(created) - 1,
                zeroed=plan.zeroed,
            )
            await self._notify_with_tree(
                "subtask_created",
                lambda notifier, tree: notifier.subtasks_created(created, tree, actor_alias),
            )
            return created

    # ------------------------------------------------------------------
    # 状态流转
    # ------------------------------------------------------------------

    async def complete_task(self, actor_alias: str, task_id: str) -> list[str]:
        """完成任务：ASSIGNED -> DONE，子树中 ASSIGNED 的任务一并完成

        Returns:
            被完成的任务 ID 列表
        """
        with actor_context(actor_alias, "complete_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.MANAGE)
                if not validate_transition(task.status, TaskStatus.DONE):
                    raise InvalidTransitionError(task_id, task.status, TaskStatus.DONE)

                now = self._clock()
                completed = [
                    node.task_id
                    for node in tree.subtree(task_id)
                    if node.status == TaskStatus.ASSIGNED
                ]
                for completed_id in completed:
                    await self._stores.task_store.update_task_status(
                        completed_id, TaskStatus.DONE, now
                    )

            log.info("task_completed", task_id=task_id, affected_count=len(completed))
            await self._notify_with_tree(
                "task_changed",
                lambda notifier, tree: notifier.task_changed(
                    task,
                    tree,
                    actor_alias,
                    summary=f"Gereed gemeld: {len(completed)} taak/taken.",
                ),
            )
            return completed

    async def uncomplete_task(self, actor_alias: str, task_id: str) -> Task:
        """撤销完成：DONE -> ASSIGNED；父任务仍为 DONE 时拒绝"""
        with actor_context(actor_alias, "uncomplete_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.MANAGE)
                if task.status != TaskStatus.DONE:
                    raise InvalidTransitionError(task_id, task.status, TaskStatus.ASSIGNED)
                if task.parent_id is not None and tree.is_frozen(task.parent_id):
                    raise TaskFrozenError(task.parent_id)

                updated = task.model_copy(
                    update={"status": TaskStatus.ASSIGNED, "updated_at": self._clock()}
                )
                await self._stores.task_store.update_task_status(
                    task_id, TaskStatus.ASSIGNED, updated.updated_at
                )

            log.info("task_uncompleted", task_id=task_id)
            await self._notify_with_tree(
                "task_changed",
                lambda notifier, tree: notifier.task_changed(
                    updated,
                    tree,
                    actor_alias,
                    summary="Op onvoltooid gezet.",
                ),
            )
            return updated

    async def release_task(self, actor_alias: str, task_id: str) -> Task:
        """coordinator 释放任务，任务重新变为 AVAILABLE

        父任务 effective 集合只有 actor 时拒绝（任务将无人负责）。
        """
        with actor_context(actor_alias, "release_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.MANAGE)
                if tree.is_frozen(task_id):
                    raise TaskFrozenError(task_id)

                resolution = resolve_own_coordinators_after_release(
                    actor_alias,
                    resolve_effective_coordinators(task_id, tree),
                    (
                        resolve_effective_coordinators(task.parent_id, tree)
                        if task.parent_id is not None
                        else []
                    ),
                )
                if resolution.error is not None or resolution.own_coordinator_aliases is None:
                    log.info("release_rejected", task_id=task_id, reason=resolution.error)
                    raise ReleaseWouldOrphanError(task_id)

                own = resolution.own_coordinator_aliases
                updated = task.model_copy(
                    update={
                        "status": TaskStatus.AVAILABLE,
                        "own_coordinator_aliases": own,
                        "updated_at": self._clock(),
                    }
                )
                await self._stores.task_store.update_task_status(
                    task_id, TaskStatus.AVAILABLE, updated.updated_at
                )
                await self._stores.task_store.set_own_coordinators(task_id, own)

            log.info("task_released", task_id=task_id, own_coordinator_aliases_after=own)
            await self._notify_with_tree(
                "task_became_available",
                lambda notifier, tree: notifier.task_became_available(updated, tree, actor_alias),
            )
            return updated

    # ------------------------------------------------------------------
    # 提案
    # ------------------------------------------------------------------

    async def propose_task(
        self,
        actor_alias: str,
        task_id: str,
        proposed_alias: str | None,
    ) -> Proposal:
        """coordinator 把任务提议给另一位会员；proposed_alias 为空表示开放提案"""
        with actor_context(actor_alias, "propose_task"):
            async with transaction(self._stores.conn):
                if proposed_alias == actor_alias:
                    raise ProposalStateError("Use register_for_task for self-registration")
                tree = await self.load_tree()
                task = tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.MANAGE)
                if task.status not in (TaskStatus.AVAILABLE, TaskStatus.ASSIGNED):
                    raise ProposalStateError(
                        f"Only available or assigned tasks can be proposed, task is {task.status}"
                    )
                if proposed_alias is not None:
                    member = await self._stores.member_store.get_member(proposed_alias)
                    if member is None or not member.is_active:
                        raise ProposalStateError(
                            f"Proposed member {proposed_alias} is unknown or inactive"
                        )
                proposal = await self._create_proposal(task_id, actor_alias, proposed_alias)

            log.info(
                "task_proposed",
                task_id=task_id,
                proposal_id=proposal.proposal_id,
                proposed_alias=proposed_alias,
            )
            await self._notify_new_proposal(task, proposal, actor_alias)
            return proposal

    async def register_for_task(self, actor_alias: str, task_id: str) -> Proposal:
        """会员自助报名：需要 OPEN 能力且任务为 AVAILABLE；ORGANIZE 下只能报名叶子任务"""
        with actor_context(actor_alias, "register_for_task"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                task = tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.OPEN)
                if task.status != TaskStatus.AVAILABLE:
                    raise RegistrationNotAllowedError(
                        f"Task {task_id} is not available for registration"
                    )
                if (
                    resolve_effective_coordination_type(task_id, tree) == CoordinationType.ORGANIZE
                    and tree.children(task_id)
                ):
                    raise RegistrationNotAllowedError(
                        "Under an organizing task you can only register for a leaf task"
                    )
                existing = await self._stores.proposal_store.find_open(
                    task_id, actor_alias, actor_alias
                )
                if existing is not None:
                    raise RegistrationNotAllowedError(
                        f"{actor_alias} already has an active registration for task {task_id}"
                    )
                proposal = await self._create_proposal(task_id, actor_alias, actor_alias)

            log.info("task_registered", task_id=task_id, proposal_id=proposal.proposal_id)
            await self._notify_new_proposal(task, proposal, actor_alias)
            return proposal

    async def accept_proposal(self, actor_alias: str, proposal_id: str) -> Task:
        """接受提案：被提议人成为 own coordinator，任务变为 ASSIGNED，提案删除"""
        with actor_context(actor_alias, "accept_proposal"):
            async with transaction(self._stores.conn):
                proposal, task, tree = await self._load_decidable(actor_alias, proposal_id)
                if proposal.proposed_alias is None:
                    raise ProposalStateError(
                        "An open proposal without target must be handled by registration"
                    )
                if tree.is_frozen(task.task_id):
                    raise TaskFrozenError(task.task_id)

                merged = resolve_coordinator_aliases_after_accept(
                    proposal.proposed_alias,
                    task.own_coordinator_aliases,
                )
                parent_effective = (
                    resolve_effective_coordinators(task.parent_id, tree)
                    if task.parent_id is not None
                    else []
                )
                own = self._normalize_own(merged, parent_effective)
                updated = task.model_copy(
                    update={
                        "status": TaskStatus.ASSIGNED,
                        "own_coordinator_aliases": own,
                        "updated_at": self._clock(),
                    }
                )
                if task.status != TaskStatus.ASSIGNED:
                    await self._stores.task_store.update_task_status(
                        task.task_id, TaskStatus.ASSIGNED, updated.updated_at
                    )
                await self._stores.task_store.set_own_coordinators(task.task_id, own)
                await self._stores.proposal_store.delete_proposal(proposal_id)

            log.info(
                "proposal_accepted",
                proposal_id=proposal_id,
                task_id=task.task_id,
                new_coordinator=proposal.proposed_alias,
            )
            if self._notifier is not None:
                await self._notifier.proposal_accepted(
                    [proposal.proposer_alias, proposal.proposed_alias],
                    actor_alias,
                    task.title,
                )
            return updated

    async def reject_proposal(self, actor_alias: str, proposal_id: str) -> Proposal:
        """拒绝提案：进入终态 REJECTED，等待提案人确认"""
        with actor_context(actor_alias, "reject_proposal"):
            async with transaction(self._stores.conn):
                proposal, _, _ = await self._load_decidable(actor_alias, proposal_id)
                await self._stores.proposal_store.update_status(
                    proposal_id, ProposalStatus.REJECTED
                )

            log.info("proposal_rejected", proposal_id=proposal_id, task_id=proposal.task_id)
            return proposal.model_copy(update={"status": ProposalStatus.REJECTED})

    async def acknowledge_rejection(self, actor_alias: str, proposal_id: str) -> None:
        """提案人确认已看到拒绝，提案随之删除"""
        with actor_context(actor_alias, "acknowledge_rejection"):
            async with transaction(self._stores.conn):
                proposal = await self._stores.proposal_store.get_proposal(proposal_id)
                if proposal is None:
                    raise ProposalNotFoundError(proposal_id)
                if proposal.status != ProposalStatus.REJECTED:
                    raise ProposalStateError(f"Proposal {proposal_id} is not rejected")
                if proposal.proposer_alias != actor_alias:
                    raise PermissionDeniedError(
                        actor_alias, "ACKNOWLEDGE_REJECTION", proposal.task_id
                    )
                await self._stores.proposal_store.delete_proposal(proposal_id)

            log.info("proposal_rejection_acknowledged", proposal_id=proposal_id)

    async def list_open_proposals(self, actor_alias: str) -> list[ProposalView]:
        """与 actor 相关的提案

        开放提案：actor 可决定、是提案人 / 被提议人、或是任务的 coordinator；
        被拒绝的提案：仅提案人可见，直到确认。
        """
        tree = await self.load_tree()
        proposals = [
            *await self._stores.proposal_store.list_by_status(ProposalStatus.OPEN),
            *await self._stores.proposal_store.list_by_status(ProposalStatus.REJECTED),
        ]

        views: list[ProposalView] = []
        for proposal in proposals:
            task = tree.get(proposal.task_id)
            if task is None:
                continue
            coordinators = resolve_effective_coordinators(proposal.task_id, tree)
            if proposal.status == ProposalStatus.REJECTED:
                if proposal.proposer_alias != actor_alias:
                    continue
                can_decide = False
            else:
                can_decide = can_actor_decide_proposal(
                    actor_alias,
                    proposal.proposer_alias,
                    proposal.proposed_alias,
                    coordinators,
                )
                relevant = (
                    can_decide
                    or actor_alias in (proposal.proposer_alias, proposal.proposed_alias)
                    or actor_alias in coordinators
                )
                if not relevant:
                    continue
            views.append(
                ProposalView(
                    proposal=proposal,
                    task_title=task.title,
                    team_name=task.team_name,
                    can_decide=can_decide,
                )
            )
        views.sort(key=lambda view: view.proposal.created_at, reverse=True)
        return views

    # ------------------------------------------------------------------
    # 订阅
    # ------------------------------------------------------------------

    async def subscribe(self, actor_alias: str, task_id: str) -> TaskSubscription:
        """订阅任务：其任意后代新建子任务时通知 actor"""
        with actor_context(actor_alias, "subscribe"):
            async with transaction(self._stores.conn):
                tree = await self.load_tree()
                tree.require(task_id)
                self._evaluator(tree).require(actor_alias, task_id, Capability.READ)
                subscription = TaskSubscription(
                    task_id=task_id,
                    user_alias=actor_alias,
                    created_at=self._clock(),
                )
                await self._stores.member_store.add_subscription(subscription)

            log.info("task_subscription_enabled", task_id=task_id)
            return subscription

    async def unsubscribe(self, actor_alias: str, task_id: str) -> None:
        with actor_context(actor_alias, "unsubscribe"):
            async with transaction(self._stores.conn):
                await self._stores.member_store.remove_subscription(task_id, actor_alias)
            log.info("task_subscription_disabled", task_id=task_id)

    # ------------------------------------------------------------------
    # 通知偏好
    # ------------------------------------------------------------------

    async def get_notification_settings(
        self,
        actor_alias: str,
    ) -> dict[NotificationCategory, NotificationDelivery]:
        """actor 自己每个类别的投递方式"""
        with actor_context(actor_alias, "get_notification_settings"):
            async with transaction(self._stores.conn):
                await self._stores.notification_store.ensure_preferences([actor_alias])
            return await self._stores.notification_store.get_settings(actor_alias)

    async def update_notification_settings(
        self,
        actor_alias: str,
        updates: Mapping[NotificationCategory, NotificationDelivery],
    ) -> dict[NotificationCategory, NotificationDelivery]:
        """按类别修改 actor 自己的投递方式，未提及的类别保持不变"""
        with actor_context(actor_alias, "update_notification_settings"):
            changes = {
                NotificationCategory(category): NotificationDelivery(delivery)
                for category, delivery in updates.items()
            }
            if changes:
                async with transaction(self._stores.conn):
                    await self._stores.notification_store.ensure_preferences([actor_alias])
                    for category, delivery in changes.items():
                        await self._stores.notification_store.update_setting(
                            actor_alias, category, delivery
                        )
                log.info(
                    "notification_settings_updated",
                    changed={
                        category.value: delivery.value for category, delivery in changes.items()
                    },
                )
            return await self._stores.notification_store.get_settings(actor_alias)

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_own(aliases: Iterable[str], parent_effective: list[str]) -> list[str]:
        """与父任务 effective 集合相同的显式指派清空为继承"""
        own = unique_sorted_aliases(aliases)
        if own and parent_effective and are_alias_sets_equal(own, parent_effective):
            return []
        return own

    async def _create_proposal(
        self,
        task_id: str,
        proposer_alias: str,
        proposed_alias: str | None,
    ) -> Proposal:
        proposal = Proposal(
            proposal_id=str(ULID()),
            task_id=task_id,
            proposer_alias=proposer_alias,
            proposed_alias=proposed_alias,
            status=ProposalStatus.OPEN,
            created_at=self._clock(),
        )
        await self._stores.proposal_store.create_proposal(proposal)
        return proposal

    async def _load_decidable(
        self,
        actor_alias: str,
        proposal_id: str,
    ) -> tuple[Proposal, Task, TreeIndex]:
        """读取开放提案并校验 actor 有权决定"""
        proposal = await self._stores.proposal_store.get_proposal(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        if proposal.status != ProposalStatus.OPEN:
            raise ProposalStateError(f"Proposal {proposal_id} is not open")

        tree = await self.load_tree()
        task = tree.require(proposal.task_id)
        coordinators = resolve_effective_coordinators(task.task_id, tree)
        if not can_actor_decide_proposal(
            actor_alias,
            proposal.proposer_alias,
            proposal.proposed_alias,
            coordinators,
        ):
            log.info(
                "permission_denied",
                capability="DECIDE_PROPOSAL",
                proposal_id=proposal_id,
                task_id=task.task_id,
            )
            raise PermissionDeniedError(actor_alias, "DECIDE_PROPOSAL", task.task_id)
        return proposal, task, tree

    async def _notify_new_proposal(self, task: Task, proposal: Proposal, actor_alias: str) -> None:
        await self._notify_with_tree(
            "new_proposal",
            lambda notifier, tree: notifier.proposal_decision_required(
                task,
                proposal.proposer_alias,
                proposal.proposed_alias,
                tree,
                actor_alias,
            ),
        )

    async def _notify_with_tree(
        self,
        notification: str,
        send: Callable[[Notifier, TreeIndex], Awaitable[object]],
    ) -> None:
        """变更已提交：重读树快照与分发的任何失败都只记日志，不抛给调用方"""
        if self._notifier is None:
            return
        try:
            tree = await self.load_tree()
            await send(self._notifier, tree)
        except Exception as e:
            log.error(
                "notification_failed",
                notification=notification,
                error_type=type(e).__name__,
                error=str(e),
            )
