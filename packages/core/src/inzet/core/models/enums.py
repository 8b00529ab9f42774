"""枚举定义

包含 TaskStatus 状态机、CoordinationType、Capability、ProposalStatus、
NotificationCategory / NotificationDelivery 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 digest 周期计算。
"""

from datetime import timedelta
from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    DONE = "DONE"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    # 接受提案后分配
    TaskStatus.AVAILABLE: {TaskStatus.ASSIGNED},
    # 完成，或 coordinator 释放任务
    TaskStatus.ASSIGNED: {TaskStatus.DONE, TaskStatus.AVAILABLE},
    # 撤销完成
    TaskStatus.DONE: {TaskStatus.ASSIGNED},
}


class CoordinationType(StrEnum):
    """协调方式标记，未设置时为 None"""

    DELEGATE = "DELEGATE"
    ORGANIZE = "ORGANIZE"


class Capability(StrEnum):
    """actor 对 task 的能力"""

    READ = "READ"
    OPEN = "OPEN"
    MANAGE = "MANAGE"
    CREATE_SUBTASK = "CREATE_SUBTASK"
    EDIT_COORDINATORS = "EDIT_COORDINATORS"


class ProposalStatus(StrEnum):
    """提案状态；REJECTED 为终态，需提案人确认后才隐藏"""

    OPEN = "OPEN"
    REJECTED = "REJECTED"


class NotificationCategory(StrEnum):
    """通知类别"""

    NEW_PROPOSAL = "NEW_PROPOSAL"
    PROPOSAL_ACCEPTED = "PROPOSAL_ACCEPTED"
    TASK_CHANGED_AS_COORDINATOR = "TASK_CHANGED_AS_COORDINATOR"
    TASK_BECAME_AVAILABLE_AS_COORDINATOR = "TASK_BECAME_AVAILABLE_AS_COORDINATOR"
    SUBTASK_CREATED_IN_SUBSCRIPTION = "SUBTASK_CREATED_IN_SUBSCRIPTION"


class NotificationDelivery(StrEnum):
    """投递方式：关闭 / 立即 / 周期 digest"""

    OFF = "OFF"
    IMMEDIATE = "IMMEDIATE"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


# 每个类别的默认投递方式（懒初始化偏好时写入）
NOTIFICATION_DEFAULT_DELIVERY: dict[NotificationCategory, NotificationDelivery] = {
    NotificationCategory.NEW_PROPOSAL: NotificationDelivery.IMMEDIATE,
    NotificationCategory.PROPOSAL_ACCEPTED: NotificationDelivery.IMMEDIATE,
    NotificationCategory.TASK_CHANGED_AS_COORDINATOR: NotificationDelivery.DAILY,
    NotificationCategory.TASK_BECAME_AVAILABLE_AS_COORDINATOR: NotificationDelivery.IMMEDIATE,
    NotificationCategory.SUBTASK_CREATED_IN_SUBSCRIPTION: NotificationDelivery.HOURLY,
}

# digest 周期
DIGEST_INTERVALS: dict[NotificationDelivery, timedelta] = {
    NotificationDelivery.HOURLY: timedelta(hours=1),
    NotificationDelivery.DAILY: timedelta(days=1),
    NotificationDelivery.WEEKLY: timedelta(days=7),
    NotificationDelivery.MONTHLY: timedelta(days=30),
}

DIGEST_DELIVERIES: frozenset[NotificationDelivery] = frozenset(DIGEST_INTERVALS)


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def digest_interval(delivery: NotificationDelivery) -> timedelta | None:
    """返回 digest 周期；OFF / IMMEDIATE 不是 digest，返回 None"""
    match delivery:
        case NotificationDelivery.OFF | NotificationDelivery.IMMEDIATE:
            return None
        case (
            NotificationDelivery.HOURLY
            | NotificationDelivery.DAILY
            | NotificationDelivery.WEEKLY
            | NotificationDelivery.MONTHLY
        ):
            return DIGEST_INTERVALS[delivery]
