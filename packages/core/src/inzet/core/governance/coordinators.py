"""Coordinator 解析

effective coordinators = 沿祖先链向上，第一个非空 own coordinator 集合。
权限判断、提案决策、通知路由都必须调用 resolve_effective_coordinators，
不在别处重新推导继承关系。
"""

from collections.abc import Iterable

from ..models.enums import CoordinationType
from .tree import TreeIndex


def unique_sorted_aliases(aliases: Iterable[str | None]) -> list[str]:
    """去重、去空并排序"""
    return sorted({alias for alias in aliases if alias})


def are_alias_sets_equal(left: list[str], right: list[str]) -> bool:
    """alias 集合比较，与顺序无关；原始长度不同即视为不同"""
    if len(left) != len(right):
        return False
    return unique_sorted_aliases(left) == unique_sorted_aliases(right)


def primary_coordinator_alias(aliases: Iterable[str]) -> str | None:
    """排序后的第一个 coordinator，没有则为 None"""
    normalized = unique_sorted_aliases(aliases)
    return normalized[0] if normalized else None


def resolve_effective_coordinators(task_id: str, tree: TreeIndex) -> list[str]:
    """解析任务的 effective coordinator 集合

    coordination_type 标记不影响继承：始终取最近的非空 own 集合。
    遇到环或悬空 parent 时返回已得到的最佳结果（通常为空）。

    Args:
        task_id: 任务 ID
        tree: 任务树快照

    Returns:
        排序后的 alias 列表；无人负责时为空列表
    """
    for node in tree.ancestor_chain(task_id):
        if node.own_coordinator_aliases:
            return list(node.own_coordinator_aliases)
    return []


def resolve_organizer_aliases(task_id: str, tree: TreeIndex) -> list[str]:
    """解析任务的组织者：最近的 ORGANIZE 标记任务上的 own coordinators

    遇到显式 DELEGATE 标记即停止（委派切断组织关系）。
    """
    for node in tree.ancestor_chain(task_id):
        if node.coordination_type == CoordinationType.DELEGATE:
            return []
        if node.coordination_type == CoordinationType.ORGANIZE and node.own_coordinator_aliases:
            return list(node.own_coordinator_aliases)
    return []


def is_root_owner(actor_alias: str, tree: TreeIndex, root_title: str) -> bool:
    """actor 是否为指定 root 任务的 own coordinator"""
    for root in tree.roots():
        if root.title == root_title:
            return actor_alias in root.own_coordinator_aliases
    return False


def find_redundant_own_coordinators(tree: TreeIndex) -> list[str]:
    """找出 own 集合与父任务 effective 集合相同的子任务

    这类显式指派与继承结果等价，清空后行为不变。
    """
    redundant: list[str] = []
    for task in tree:
        if task.parent_id is None or not task.own_coordinator_aliases:
            continue
        parent_effective = resolve_effective_coordinators(task.parent_id, tree)
        if parent_effective and are_alias_sets_equal(
            task.own_coordinator_aliases, parent_effective
        ):
            redundant.append(task.task_id)
    return redundant


def resolve_effective_coordination_type(task_id: str, tree: TreeIndex) -> CoordinationType | None:
    """沿祖先链取最近的非空 coordination_type 标记"""
    for node in tree.ancestor_chain(task_id):
        if node.coordination_type is not None:
            return node.coordination_type
    return None
