"""Proposal Decision Rules

- 自助报名（proposer == proposed）：只有当前 effective coordinator 可以决定，防止自我批准
- 委派（proposer != proposed）：被提议人或任一 effective coordinator 可以决定
- 未指定目标的开放提案：只有 effective coordinator 可以决定
"""

from collections.abc import Iterable

from ..models.decisions import ReleaseResolution
from .coordinators import are_alias_sets_equal, unique_sorted_aliases
from .exceptions import ReleaseWouldOrphanError


def can_actor_decide_proposal(
    actor_alias: str,
    proposer_alias: str,
    proposed_alias: str | None,
    effective_coordinators: Iterable[str],
) -> bool:
    """actor 是否可以接受 / 拒绝该提案"""
    coordinators = set(effective_coordinators)
    if proposed_alias is None or proposer_alias == proposed_alias:
        return actor_alias in coordinators
    return actor_alias == proposed_alias or actor_alias in coordinators


def resolve_coordinator_aliases_after_accept(
    proposed_alias: str,
    current_own_coordinators: Iterable[str],
) -> list[str]:
    """接受提案：被提议人加入 own 集合，保留已有 own coordinators

    own 集合为空（原先靠继承）时，结果只包含被提议人，即把继承转为显式指派。
    """
    return unique_sorted_aliases([*current_own_coordinators, proposed_alias])


def resolve_own_coordinators_after_release(
    actor_alias: str,
    current_effective: Iterable[str],
    parent_effective: Iterable[str],
) -> ReleaseResolution:
    """coordinator 释放任务后的 own 集合

    - 移除 actor 后还剩其他人：剩余集合成为 own 集合；与父任务 effective 集合相同时清空
    - 移除后为空且父任务 effective 集合只有 actor：拒绝（任务将无人负责）
    - 移除后为空且父任务另有负责人：清空 own 集合，回落到继承
    """
    parent = unique_sorted_aliases(parent_effective)
    remaining = unique_sorted_aliases(
        alias for alias in current_effective if alias != actor_alias
    )

    if not remaining:
        parent_without_actor = [alias for alias in parent if alias != actor_alias]
        if not parent_without_actor and actor_alias in parent:
            return ReleaseResolution(
                own_coordinator_aliases=None,
                error=str(ReleaseWouldOrphanError()),
            )
        return ReleaseResolution(own_coordinator_aliases=[], error=None)

    if are_alias_sets_equal(remaining, parent):
        return ReleaseResolution(own_coordinator_aliases=[], error=None)

    return ReleaseResolution(own_coordinator_aliases=remaining, error=None)
