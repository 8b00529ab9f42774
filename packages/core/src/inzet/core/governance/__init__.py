"""Inzet 治理引擎

纯决策逻辑：coordinator 解析、权限评估、点数预算、提案决策。
引擎不写库，只返回决策，由调用方在事务内落盘。
"""

from .coordinators import (
    are_alias_sets_equal,
    find_redundant_own_coordinators,
    is_root_owner,
    primary_coordinator_alias,
    resolve_effective_coordination_type,
    resolve_effective_coordinators,
    resolve_organizer_aliases,
    unique_sorted_aliases,
)
from .exceptions import (
    GovernanceError,
    InvalidTransitionError,
    MoveBudgetExceededError,
    MoveIntoDescendantError,
    MoveWouldCreateCycleError,
    PermissionDeniedError,
    PointsBudgetExceededError,
    ProposalNotFoundError,
    ProposalStateError,
    RegistrationNotAllowedError,
    ReleaseWouldOrphanError,
    StructuralRejectionError,
    SubtaskRequiredError,
    SubtreeContainsDoneError,
    TaskFrozenError,
    TaskNotFoundError,
    TeamMismatchError,
    TemplateNotFoundError,
)
from .permissions import (
    EditCoordinatorsHook,
    PermissionEvaluator,
    no_extra_edit_rights,
    organizer_edit_hook,
)
from .points import (
    allocate_points_from_parent,
    available_points,
    normalize_points,
    parse_stored_points,
    plan_move,
    plan_subtree_copy,
    plan_template_application,
    points_to_storage,
    remaining_own_points,
    sum_stored_points,
    transfer_points_between_parents,
)
from .proposals import (
    can_actor_decide_proposal,
    resolve_coordinator_aliases_after_accept,
    resolve_own_coordinators_after_release,
)
from .tree import TreeIndex

__all__ = [
    # 树
    "TreeIndex",
    # Coordinator 解析
    "resolve_effective_coordinators",
    "resolve_organizer_aliases",
    "resolve_effective_coordination_type",
    "unique_sorted_aliases",
    "are_alias_sets_equal",
    "primary_coordinator_alias",
    "is_root_owner",
    "find_redundant_own_coordinators",
    # 权限
    "PermissionEvaluator",
    "EditCoordinatorsHook",
    "no_extra_edit_rights",
    "organizer_edit_hook",
    # 点数
    "normalize_points",
    "parse_stored_points",
    "points_to_storage",
    "sum_stored_points",
    "remaining_own_points",
    "available_points",
    "allocate_points_from_parent",
    "transfer_points_between_parents",
    "plan_move",
    "plan_subtree_copy",
    "plan_template_application",
    # 提案
    "can_actor_decide_proposal",
    "resolve_coordinator_aliases_after_accept",
    "resolve_own_coordinators_after_release",
    # 异常
    "GovernanceError",
    "TaskNotFoundError",
    "TemplateNotFoundError",
    "ProposalNotFoundError",
    "PermissionDeniedError",
    "StructuralRejectionError",
    "ReleaseWouldOrphanError",
    "MoveWouldCreateCycleError",
    "MoveIntoDescendantError",
    "MoveBudgetExceededError",
    "PointsBudgetExceededError",
    "SubtreeContainsDoneError",
    "SubtaskRequiredError",
    "TaskFrozenError",
    "InvalidTransitionError",
    "ProposalStateError",
    "RegistrationNotAllowedError",
    "TeamMismatchError",
]
