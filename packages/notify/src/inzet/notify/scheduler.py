"""DigestScheduler -- 通知分发与 digest flush

每个 (user, category) 的投递方式：
- OFF：直接丢弃
- IMMEDIATE：立即发送，失败只记录日志，不重试（best-effort）
- HOURLY / DAILY / WEEKLY / MONTHLY：写入待投递事件，周期到达后合并成一封 digest

flush 时每个 (user, category) 独立发送、独立提交：
发送成功后在同一事务内标记事件已投递并推进 last_digest_sent_at；
发送失败则什么都不更新，下一轮 flush 重试同一批（at-least-once）。
同一偏好行上重叠的 flush 由进程内行锁串行化，后到者重读后已无未投递事件。
"""

import asyncio
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import aiosqlite
import structlog
from pydantic import BaseModel
from ulid import ULID

from inzet.core.config import DIGEST_BATCH_LIMIT
from inzet.core.models import (
    NotificationCategory,
    NotificationDelivery,
    NotificationEvent,
    UserNotificationMessage,
    digest_interval,
)
from inzet.core.store import mark_digest_delivered, transaction
from inzet.core.store.protocols import MemberDirectory, NotificationRepository

from .mailer import Mailer
from .messages import format_digest, immediate_body, merge_messages_per_user

log = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class FlushReport(BaseModel):
    """一轮 flush 的结果

    sent: 成功发送的 digest 数
    committed: 成功提交的 (标记已投递 + 推进时间戳) 事务数
    skipped: 收件人无效（停用或无邮箱）而跳过的偏好数
    failed: 发送失败、留待下轮重试的偏好数
    """

    sent: int = 0
    committed: int = 0
    skipped: int = 0
    failed: int = 0

    def merge(self, other: "FlushReport") -> "FlushReport":
        return FlushReport(
            sent=self.sent + other.sent,
            committed=self.committed + other.committed,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
        )


class DispatchReport(BaseModel):
    """一次 dispatch 的结果"""

    immediate_sent: int = 0
    immediate_failed: int = 0
    queued: int = 0
    dropped: int = 0
    flush: FlushReport = FlushReport()


class DigestScheduler:
    """通知分发器 + digest 调度器

    不在进程内缓存任何 digest 状态：到期判断只看偏好行上的 last_digest_sent_at。
    """

    def __init__(
        self,
        conn: aiosqlite.Connection,
        notification_store: NotificationRepository,
        member_store: MemberDirectory,
        mailer: Mailer,
        batch_limit: int = DIGEST_BATCH_LIMIT,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._conn = conn
        self._notifications = notification_store
        self._members = member_store
        self._mailer = mailer
        self._batch_limit = batch_limit
        self._clock = clock
        # 每个 (user, category) 偏好行一把锁：同一行的 flush 串行，重叠调用不会重复发送
        self._row_locks: dict[tuple[str, NotificationCategory], asyncio.Lock] = {}

    async def dispatch(
        self,
        category: NotificationCategory,
        messages: Iterable[UserNotificationMessage],
        exclude_aliases: Iterable[str] = (),
    ) -> DispatchReport:
        """按每个收件人的投递方式分发一组消息

        必须在触发它的任务变更提交之后调用；这里的任何失败都不向上传播到变更本身。
        """
        excluded = {alias for alias in exclude_aliases if alias}
        merged = merge_messages_per_user(
            message for message in messages if message.user_alias not in excluded
        )
        report = DispatchReport()
        if not merged:
            return report

        recipients = [message.user_alias for message in merged]
        async with transaction(self._conn):
            await self._notifications.ensure_preferences(recipients)
            members = await self._members.get_members(recipients)
            deliveries = await self._notifications.get_deliveries(recipients, category)

        digest_events: list[NotificationEvent] = []
        now = self._clock()
        for message in merged:
            member = members.get(message.user_alias)
            if member is None or not member.is_mail_recipient:
                report.dropped += 1
                continue

            delivery = deliveries[message.user_alias]
            if delivery == NotificationDelivery.OFF:
                report.dropped += 1
                continue

            if delivery == NotificationDelivery.IMMEDIATE:
                try:
                    await self._mailer.send(
                        member.email,
                        message.subject,
                        immediate_body(message.body),
                    )
                    report.immediate_sent += 1
                except Exception as e:
                    report.immediate_failed += 1
                    log.warning(
                        "immediate_notification_failed",
                        category=category.value,
                        user_alias=message.user_alias,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                continue

            digest_events.append(
                NotificationEvent(
                    event_id=str(ULID()),
                    user_alias=message.user_alias,
                    category=category,
                    subject=message.subject,
                    body=message.body,
                    created_at=now,
                )
            )

        if digest_events:
            async with transaction(self._conn):
                await self._notifications.insert_events(digest_events)
            report.queued = len(digest_events)
            report.flush = await self.flush_due(
                user_aliases=[event.user_alias for event in digest_events],
                categories=[category],
            )

        return report

    async def flush_due(
        self,
        user_aliases: Iterable[str] | None = None,
        categories: Iterable[NotificationCategory] | None = None,
        now: datetime | None = None,
    ) -> FlushReport:
        """发送所有到期的 digest

        Args:
            user_aliases: 只处理这些用户，None 表示全部
            categories: 只处理这些类别，None 表示全部
            now: 当前时间，默认取 clock()

        Returns:
            FlushReport
        """
        now = now or self._clock()
        report = FlushReport()

        candidates = await self._notifications.list_digest_candidates(
            user_aliases=list(user_aliases) if user_aliases is not None else None,
            categories=list(categories) if categories is not None else None,
        )
        if not candidates:
            return report

        members = await self._members.get_members(
            preference.user_alias for preference in candidates
        )

        for preference in candidates:
            member = members.get(preference.user_alias)
            if member is None or not member.is_mail_recipient:
                report.skipped += 1
                continue
            if digest_interval(preference.delivery) is None:
                continue

            key = (preference.user_alias, preference.category)
            async with self._row_locks.setdefault(key, asyncio.Lock()):
                await self._flush_preference(key, member.email, now, report)

        return report

    async def _flush_preference(
        self,
        key: tuple[str, NotificationCategory],
        email: str,
        now: datetime,
        report: FlushReport,
    ) -> None:
        """在该偏好行的锁内重读状态、发送并提交

        候选列表是锁外读取的；并发 flush 可能已投递同一批，因此这里必须重读。
        """
        user_alias, category = key
        preference = await self._notifications.get_preference(user_alias, category)
        if preference is None:
            return
        interval = digest_interval(preference.delivery)
        if interval is None:
            return

        pending = await self._notifications.get_pending_events(
            user_alias,
            category,
            self._batch_limit,
        )
        if not pending:
            return

        reference = preference.last_digest_sent_at or pending[0].created_at
        if now - reference < interval:
            return

        subject, body = format_digest(category, preference.delivery, pending)
        try:
            await self._mailer.send(email, subject, body)
        except Exception as e:
            report.failed += 1
            log.warning(
                "digest_send_failed",
                user_alias=user_alias,
                category=category.value,
                pending_count=len(pending),
                error_type=type(e).__name__,
                error=str(e),
            )
            return
        report.sent += 1

        try:
            await mark_digest_delivered(
                self._conn,
                user_alias,
                category,
                [event.event_id for event in pending],
                sent_at=now,
            )
        except Exception as e:
            # 邮件已发出但未提交：下一轮会重发同一批
            report.failed += 1
            log.error(
                "digest_commit_failed",
                user_alias=user_alias,
                category=category.value,
                pending_count=len(pending),
                error_type=type(e).__name__,
                error=str(e),
            )
            return
        report.committed += 1
        log.info(
            "digest_sent",
            user_alias=user_alias,
            category=category.value,
            delivery=preference.delivery.value,
            event_count=len(pending),
        )
