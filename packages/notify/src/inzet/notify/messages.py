"""通知消息构建

每个治理事件生成一组 UserNotificationMessage（每个收件人一条），
再由 DigestScheduler 按投递方式分发。文案面向会员，使用荷兰语。
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime

from inzet.core.models import (
    NotificationCategory,
    NotificationDelivery,
    NotificationEvent,
    UserNotificationMessage,
)

IMMEDIATE_FOOTER = "\n\n--\nInzet notificatie"
DIGEST_FOOTER = "--\nInzet notificatie digest"
MERGED_BODY_SEPARATOR = "\n\n---\n\n"


def label_for_category(category: NotificationCategory) -> str:
    match category:
        case NotificationCategory.NEW_PROPOSAL:
            return "Nieuwe voorstellen"
        case NotificationCategory.PROPOSAL_ACCEPTED:
            return "Akkoord op je voorstel"
        case NotificationCategory.TASK_CHANGED_AS_COORDINATOR:
            return "Wijzigingen op je coordinatietaken"
        case NotificationCategory.TASK_BECAME_AVAILABLE_AS_COORDINATOR:
            return "Beschikbaar gestelde taken"
        case NotificationCategory.SUBTASK_CREATED_IN_SUBSCRIPTION:
            return "Nieuwe subtaken op abonnement"


def label_for_delivery(delivery: NotificationDelivery) -> str:
    match delivery:
        case NotificationDelivery.HOURLY:
            return "elk uur"
        case NotificationDelivery.DAILY:
            return "dagelijks"
        case NotificationDelivery.WEEKLY:
            return "wekelijks"
        case NotificationDelivery.MONTHLY:
            return "maandelijks"
        case NotificationDelivery.IMMEDIATE:
            return "direct"
        case NotificationDelivery.OFF:
            return "uit"


def merge_messages_per_user(
    messages: Iterable[UserNotificationMessage],
) -> list[UserNotificationMessage]:
    """同一用户的多条消息合并为一条

    主题取第一条并追加 " (+N)"，正文用分隔线拼接；保持用户首次出现的顺序。
    """
    grouped: dict[str, list[UserNotificationMessage]] = {}
    for message in messages:
        grouped.setdefault(message.user_alias, []).append(message)

    merged: list[UserNotificationMessage] = []
    for user_alias, user_messages in grouped.items():
        if len(user_messages) == 1:
            merged.append(user_messages[0])
            continue
        first, *rest = user_messages
        merged.append(
            UserNotificationMessage(
                user_alias=user_alias,
                subject=f"{first.subject} (+{len(rest)})",
                body=MERGED_BODY_SEPARATOR.join(item.body for item in user_messages),
            )
        )
    return merged


def immediate_body(body: str) -> str:
    return f"{body}{IMMEDIATE_FOOTER}"


def _format_event_time(value: datetime) -> str:
    return value.strftime("%d-%m-%Y %H:%M")


def format_digest(
    category: NotificationCategory,
    delivery: NotificationDelivery,
    events: Sequence[NotificationEvent],
) -> tuple[str, str]:
    """把一批待投递事件拼成一封 digest，返回 (subject, body)"""
    category_label = label_for_category(category)
    subject = f"Inzet digest ({label_for_delivery(delivery)}): {category_label}"
    lines = [
        f'Je hebt {len(events)} nieuwe notificatie(s) in categorie "{category_label}".',
        "",
    ]
    for index, event in enumerate(events, start=1):
        lines.append(f"{index}. {_format_event_time(event.created_at)}\n{event.subject}\n{event.body}")
    lines.extend(["", DIGEST_FOOTER])
    return subject, "\n".join(lines)


def build_new_proposal_messages(
    recipients: Iterable[str],
    task_title: str,
    proposer_alias: str,
    proposed_alias: str | None,
) -> list[UserNotificationMessage]:
    body = "\n".join(
        [
            f'Er staat een voorstel klaar voor taak "{task_title}".',
            f"Voorgesteld door: {proposer_alias}",
            f"Voorgesteld aan: {proposed_alias or '(open)'}",
        ]
    )
    return [
        UserNotificationMessage(
            user_alias=alias,
            subject=f"Nieuw voorstel: {task_title}",
            body=body,
        )
        for alias in recipients
    ]


def build_proposal_accepted_messages(
    recipients: Iterable[str],
    actor_alias: str,
    task_title: str,
) -> list[UserNotificationMessage]:
    return [
        UserNotificationMessage(
            user_alias=alias,
            subject=f"Voorstel geaccepteerd: {task_title}",
            body=f'{actor_alias} heeft een voorstel voor taak "{task_title}" geaccepteerd.',
        )
        for alias in recipients
    ]


def build_task_changed_messages(
    recipients: Iterable[str],
    actor_alias: str,
    task_title: str,
    summary: str | None = None,
) -> list[UserNotificationMessage]:
    body = f'{actor_alias} heeft taak "{task_title}" gewijzigd.'
    if summary:
        body = f"{body}\n{summary}"
    return [
        UserNotificationMessage(
            user_alias=alias,
            subject=f"Taak gewijzigd: {task_title}",
            body=body,
        )
        for alias in recipients
    ]


def build_task_available_messages(
    recipients: Iterable[str],
    actor_alias: str,
    task_title: str,
) -> list[UserNotificationMessage]:
    return [
        UserNotificationMessage(
            user_alias=alias,
            subject=f"Taak beschikbaar: {task_title}",
            body=f'{actor_alias} heeft taak "{task_title}" beschikbaar gesteld.',
        )
        for alias in recipients
    ]


def build_subscription_messages(
    lines_by_user: Mapping[str, Sequence[str]],
) -> list[UserNotificationMessage]:
    """每个订阅者一条消息，列出本次新建的全部子任务"""
    return [
        UserNotificationMessage(
            user_alias=alias,
            subject=f"Nieuwe subtaken in je abonnementen ({len(lines)})",
            body="\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1)),
        )
        for alias, lines in lines_by_user.items()
        if lines
    ]
