"""Inzet Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .decisions import (
    PointsAllocation,
    PointsTransfer,
    ReleaseResolution,
    SubtreeCopyPlan,
    TaskPermissions,
    TemplatePlan,
)
from .enums import (
    DIGEST_DELIVERIES,
    DIGEST_INTERVALS,
    NOTIFICATION_DEFAULT_DELIVERY,
    VALID_TRANSITIONS,
    Capability,
    CoordinationType,
    NotificationCategory,
    NotificationDelivery,
    ProposalStatus,
    TaskStatus,
    digest_interval,
    validate_transition,
)
from .member import Member
from .notification import (
    NotificationEvent,
    NotificationPreference,
    UserNotificationMessage,
)
from .proposal import Proposal
from .task import Task, TaskSubscription, TaskTemplate

__all__ = [
    # 枚举
    "TaskStatus",
    "CoordinationType",
    "Capability",
    "ProposalStatus",
    "NotificationCategory",
    "NotificationDelivery",
    # 状态机 / digest 周期
    "VALID_TRANSITIONS",
    "validate_transition",
    "NOTIFICATION_DEFAULT_DELIVERY",
    "DIGEST_INTERVALS",
    "DIGEST_DELIVERIES",
    "digest_interval",
    # Task
    "Task",
    "TaskTemplate",
    "TaskSubscription",
    # Proposal
    "Proposal",
    # Member
    "Member",
    # Notification
    "NotificationPreference",
    "NotificationEvent",
    "UserNotificationMessage",
    # 决策结果
    "TaskPermissions",
    "PointsAllocation",
    "PointsTransfer",
    "SubtreeCopyPlan",
    "TemplatePlan",
    "ReleaseResolution",
]
