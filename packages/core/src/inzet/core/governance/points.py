"""Points Budget Allocator

父任务的可用点数 = 自身点数 - 直接子任务点数之和，始终从树上重算。
预算不足时不报错：新建 / 复制 / 模板实例化的任务照常创建，点数置零。
点数一律为非负整数：小数、负数、非有限值、非数字输入都归零。
"""

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

import structlog

from ..models.decisions import (
    PointsAllocation,
    PointsTransfer,
    SubtreeCopyPlan,
    TemplatePlan,
)
from .exceptions import (
    MoveBudgetExceededError,
    MoveIntoDescendantError,
    MoveWouldCreateCycleError,
    SubtaskRequiredError,
)
from .tree import TreeIndex

log = structlog.get_logger()


# 超过此位数的值视为脏数据，避免 Decimal 转 int 时分配巨量内存
_MAX_POINTS_DIGITS = 18


def normalize_points(value: object) -> int:
    """把任意输入规整为非负整数点数"""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value if 0 < value < 10**_MAX_POINTS_DIGITS else 0
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not number.is_finite() or number <= 0:
        return 0
    if number.adjusted() >= _MAX_POINTS_DIGITS:
        return 0
    if number != number.to_integral_value():
        return 0
    return int(number)


def parse_stored_points(value: object) -> int:
    """解析存储层读出的点数（int / 字符串 / Decimal 均可）"""
    return normalize_points(value)


def points_to_storage(value: object) -> int:
    """写入存储层前的点数规整"""
    return normalize_points(value)


def sum_stored_points(values: Iterable[object]) -> int:
    return sum(parse_stored_points(value) for value in values)


def remaining_own_points(own_points: object, issued_to_direct_subtasks: object) -> int:
    """自身点数减去已分给直接子任务的点数，下限为 0"""
    remaining = normalize_points(own_points) - normalize_points(issued_to_direct_subtasks)
    return remaining if remaining > 0 else 0


def available_points(task_id: str, tree: TreeIndex) -> int:
    """任务当前可继续分配给子任务的点数"""
    task = tree.require(task_id)
    issued = sum_stored_points(child.points for child in tree.children(task_id))
    return remaining_own_points(task.points, issued)


def allocate_points_from_parent(
    available_points: object,
    requested_points: object,
) -> PointsAllocation:
    """从父任务可用点数中分配

    - requested <= available：全额分配，父任务可用点数相应减少
    - 否则：分配 0 并标记 zeroed，父任务可用点数不变
    """
    available = normalize_points(available_points)
    requested = normalize_points(requested_points)

    if requested <= available:
        return PointsAllocation(
            assigned_points=requested,
            available_points_after=available - requested,
            zeroed=False,
        )

    return PointsAllocation(
        assigned_points=0,
        available_points_after=available,
        zeroed=True,
    )


def transfer_points_between_parents(
    source_available: object,
    target_available: object,
    moved_points: object,
) -> PointsTransfer:
    """移动任务：旧父任务可用点数增加，新父任务可用点数扣减

    新父任务不足以承接时整体不可转移，两边都不变。
    """
    source = normalize_points(source_available)
    target = normalize_points(target_available)
    moved = normalize_points(moved_points)

    if moved <= target:
        return PointsTransfer(
            source_available_after=source + moved,
            target_available_after=target - moved,
            transferable=True,
        )

    return PointsTransfer(
        source_available_after=source,
        target_available_after=target,
        transferable=False,
    )


def plan_move(task_id: str, target_parent_id: str, tree: TreeIndex) -> PointsTransfer:
    """校验并计划一次移动

    Raises:
        SubtaskRequiredError: root 任务不可移动
        MoveWouldCreateCycleError: 移动到自身下
        MoveIntoDescendantError: 目标是自身后代
        MoveBudgetExceededError: 目标父任务可用点数不足
    """
    task = tree.require(task_id)
    tree.require(target_parent_id)
    if task.parent_id is None:
        raise SubtaskRequiredError(task_id)
    if task_id == target_parent_id:
        raise MoveWouldCreateCycleError(task_id, target_parent_id)
    if tree.would_create_cycle(task_id, target_parent_id):
        raise MoveIntoDescendantError(task_id, target_parent_id)

    source_available = (
        available_points(task.parent_id, tree) if task.parent_id in tree else 0
    )
    if task.parent_id == target_parent_id:
        return PointsTransfer(
            source_available_after=source_available,
            target_available_after=source_available,
            transferable=True,
        )

    target_available = available_points(target_parent_id, tree)
    transfer = transfer_points_between_parents(source_available, target_available, task.points)
    if not transfer.transferable:
        raise MoveBudgetExceededError(target_parent_id, target_available, task.points)
    return transfer


def plan_subtree_copy(
    source_id: str,
    target_parent_id: str,
    tree: TreeIndex,
    root_points: int | None = None,
) -> SubtreeCopyPlan:
    """计划复制整棵子树的点数

    根节点申请 root_points（默认沿用源任务点数）；
    分配失败时根节点与所有复制出的后代一起置零，成功时后代保持原点数。
    """
    source = tree.require(source_id)
    requested = source.points if root_points is None else normalize_points(root_points)
    allocation = allocate_points_from_parent(available_points(target_parent_id, tree), requested)

    points_by_source_id: dict[str, int] = {source_id: allocation.assigned_points}
    for descendant in tree.descendants(source_id):
        points_by_source_id[descendant.task_id] = (
            0 if allocation.zeroed else parse_stored_points(descendant.points)
        )

    if allocation.zeroed:
        log.info(
            "points_zeroed",
            reason="copy_shortfall",
            source_id=source_id,
            target_parent_id=target_parent_id,
            requested_points=requested,
            copied_task_count=len(points_by_source_id),
        )

    return SubtreeCopyPlan(
        points_by_source_id=points_by_source_id,
        allocation=allocation,
        zeroed=allocation.zeroed,
    )


def plan_template_application(
    parent_available: object,
    requested_root_points: object,
    child_default_points: Iterable[object],
) -> TemplatePlan:
    """计划模板实例化的点数

    根分配失败，或子模板默认点数之和超过根申请点数时，整棵实例化子树置零。
    """
    requested = normalize_points(requested_root_points)
    children = [normalize_points(points) for points in child_default_points]
    allocation = allocate_points_from_parent(parent_available, requested)
    zeroed = allocation.zeroed or sum(children) > requested

    if zeroed:
        log.info(
            "points_zeroed",
            reason="template_shortfall",
            requested_points=requested,
            child_points_total=sum(children),
        )
        return TemplatePlan(
            root_points=0,
            child_points=[0] * len(children),
            allocation=PointsAllocation(
                assigned_points=0,
                available_points_after=normalize_points(parent_available),
                zeroed=True,
            ),
            zeroed=True,
        )

    return TemplatePlan(
        root_points=requested,
        child_points=children,
        allocation=allocation,
        zeroed=False,
    )
