"""Notification Domain Models -- 偏好 + digest 事件"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import NotificationCategory, NotificationDelivery


class NotificationPreference(BaseModel):
    """(user, category) 维度的投递偏好"""

    user_alias: str
    category: NotificationCategory
    delivery: NotificationDelivery = Field(default=NotificationDelivery.OFF)
    last_digest_sent_at: datetime | None = Field(
        default=None,
        description="上次 digest 发送时间，从未发送为 None",
    )


class NotificationEvent(BaseModel):
    """待合并进 digest 的通知事件；delivered_at 为 None 表示未投递"""

    event_id: str = Field(description="唯一标识，ULID 格式")
    user_alias: str
    category: NotificationCategory
    subject: str
    body: str
    created_at: datetime
    delivered_at: datetime | None = None


class UserNotificationMessage(BaseModel):
    """发给单个用户的一条待分发消息"""

    user_alias: str
    subject: str
    body: str
