"""Inzet Notify -- 通知分发与 digest 调度

packages/notify 的公开接口导出。
"""

# 配置
from .config import MailConfig, load_mail_config

# 异常
from .exceptions import MailDeliveryError, NotifyError

# 发送
from .mailer import EchoMailer, Mailer, SendmailMailer, SentMail, create_mailer

# 消息与路由
from .messages import (
    format_digest,
    label_for_category,
    label_for_delivery,
    merge_messages_per_user,
)
from .notifier import Notifier
from .recipients import nearest_subscriptions, proposal_decision_aliases

# 调度
from .scheduler import DigestScheduler, DispatchReport, FlushReport

__all__ = [
    "MailConfig",
    "load_mail_config",
    "NotifyError",
    "MailDeliveryError",
    "Mailer",
    "SendmailMailer",
    "EchoMailer",
    "SentMail",
    "create_mailer",
    "format_digest",
    "label_for_category",
    "label_for_delivery",
    "merge_messages_per_user",
    "proposal_decision_aliases",
    "nearest_subscriptions",
    "Notifier",
    "DigestScheduler",
    "DispatchReport",
    "FlushReport",
]
