"""Permission Evaluator

(actor, task) -> {READ, OPEN, MANAGE, CREATE_SUBTASK, EDIT_COORDINATORS}
纯函数，无副作用，只依赖当前树快照。
"""

from collections.abc import Callable

import structlog

from ..models.decisions import TaskPermissions
from ..models.enums import Capability, CoordinationType, TaskStatus
from .coordinators import resolve_effective_coordinators, resolve_organizer_aliases
from .exceptions import PermissionDeniedError
from .tree import TreeIndex

log = structlog.get_logger()

# (actor_alias, task_id, tree) -> 是否额外授予 EDIT_COORDINATORS
EditCoordinatorsHook = Callable[[str, str, TreeIndex], bool]


def no_extra_edit_rights(actor_alias: str, task_id: str, tree: TreeIndex) -> bool:
    """默认 hook：EDIT_COORDINATORS 与 MANAGE 等价"""
    return False


def organizer_edit_hook(actor_alias: str, task_id: str, tree: TreeIndex) -> bool:
    """组织者 hook：ORGANIZE 任务的 coordinator 可调整其下任务的 coordinator 列表"""
    return actor_alias in resolve_organizer_aliases(task_id, tree)


class PermissionEvaluator:
    """权限评估器"""

    def __init__(
        self,
        tree: TreeIndex,
        edit_coordinators_hook: EditCoordinatorsHook = no_extra_edit_rights,
    ) -> None:
        self._tree = tree
        self._edit_coordinators_hook = edit_coordinators_hook

    @property
    def tree(self) -> TreeIndex:
        return self._tree

    def can_manage(self, actor_alias: str, task_id: str) -> bool:
        return actor_alias in resolve_effective_coordinators(task_id, self._tree)

    def can_read(self, actor_alias: str, task_id: str) -> bool:
        """分支可见性：自己管理的子树 + 通往它的祖先 + 所有公开可报名任务"""
        task = self._tree.get(task_id)
        if task is None:
            return False
        if self.can_manage(actor_alias, task_id):
            return True
        if task.status == TaskStatus.AVAILABLE:
            return True
        if any(
            self.can_manage(actor_alias, ancestor.task_id)
            for ancestor in self._tree.ancestors(task_id)
        ):
            return True
        return any(
            self.can_manage(actor_alias, descendant.task_id)
            for descendant in self._tree.descendants(task_id)
        )

    def can_create_subtask(self, actor_alias: str, parent_id: str) -> bool:
        """ORGANIZE 任务只有显式 own coordinator 才能新建子任务"""
        parent = self._tree.get(parent_id)
        if parent is None or not self.can_manage(actor_alias, parent_id):
            return False
        if parent.coordination_type != CoordinationType.ORGANIZE:
            return True
        return actor_alias in parent.own_coordinator_aliases

    def can_edit_coordinators(self, actor_alias: str, task_id: str) -> bool:
        if task_id not in self._tree:
            return False
        if self.can_manage(actor_alias, task_id):
            return True
        return self._edit_coordinators_hook(actor_alias, task_id, self._tree)

    def evaluate(self, actor_alias: str, task_id: str) -> TaskPermissions:
        """评估 actor 对 task 的全部能力；task 不存在时全部为 False"""
        if task_id not in self._tree:
            return TaskPermissions()
        readable = self.can_read(actor_alias, task_id)
        return TaskPermissions(
            read=readable,
            open=readable,
            manage=self.can_manage(actor_alias, task_id),
            create_subtask=self.can_create_subtask(actor_alias, task_id),
            edit_coordinators=self.can_edit_coordinators(actor_alias, task_id),
        )

    def has_permission(self, actor_alias: str, task_id: str, capability: Capability) -> bool:
        return self.evaluate(actor_alias, task_id).allows(capability)

    def require(self, actor_alias: str, task_id: str, capability: Capability) -> None:
        """断言 actor 拥有能力，否则记录并抛出 PermissionDeniedError"""
        if self.has_permission(actor_alias, task_id, capability):
            return
        log.info(
            "permission_denied",
            actor_alias=actor_alias,
            task_id=task_id,
            capability=capability.value,
        )
        raise PermissionDeniedError(actor_alias, capability.value, task_id)
