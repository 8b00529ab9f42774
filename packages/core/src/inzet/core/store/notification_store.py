"""NotificationStore SQLite 实现

偏好按 (user, category) 一行存储，首次访问时用默认值懒初始化。
digest 事件 append-only 写入，投递后只更新 delivered_at。
"""

from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from ..models.enums import (
    DIGEST_DELIVERIES,
    NOTIFICATION_DEFAULT_DELIVERY,
    NotificationCategory,
    NotificationDelivery,
)
from ..models.notification import NotificationEvent, NotificationPreference

_EVENT_COLUMNS = "event_id, user_alias, category, subject, body, created_at, delivered_at"


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def ensure_preferences(self, user_aliases: Iterable[str]) -> None:
        """为缺失的 (user, category) 写入默认投递方式，已有行保持不变"""
        rows = [
            (alias, category.value, delivery.value)
            for alias in sorted(set(user_aliases))
            for category, delivery in NOTIFICATION_DEFAULT_DELIVERY.items()
        ]
        await self._conn.executemany(
            """
            INSERT OR IGNORE INTO notification_preferences (user_alias, category, delivery)
            VALUES (?, ?, ?)
            """,
            rows,
        )

    async def get_settings(self, user_alias: str) -> dict[NotificationCategory, NotificationDelivery]:
        """用户全部类别的投递方式；未存储的类别按默认值补齐"""
        settings = dict(NOTIFICATION_DEFAULT_DELIVERY)
        cursor = await self._conn.execute(
            "SELECT category, delivery FROM notification_preferences WHERE user_alias = ?",
            (user_alias,),
        )
        for row in await cursor.fetchall():
            settings[NotificationCategory(row[0])] = NotificationDelivery(row[1])
        return settings

    async def get_deliveries(
        self,
        user_aliases: Iterable[str],
        category: NotificationCategory,
    ) -> dict[str, NotificationDelivery]:
        """批量读取某类别的投递方式；未存储的用户按默认值"""
        wanted = sorted(set(user_aliases))
        default = NOTIFICATION_DEFAULT_DELIVERY[category]
        result = {alias: default for alias in wanted}
        if not wanted:
            return result
        placeholders = ", ".join("?" for _ in wanted)
        cursor = await self._conn.execute(
            "SELECT user_alias, delivery FROM notification_preferences "
            f"WHERE category = ? AND user_alias IN ({placeholders})",
            [category.value, *wanted],
        )
        for row in await cursor.fetchall():
            result[row[0]] = NotificationDelivery(row[1])
        return result

    async def update_setting(
        self,
        user_alias: str,
        category: NotificationCategory,
        delivery: NotificationDelivery,
    ) -> None:
        await self._conn.execute(
            """
            INSERT INTO notification_preferences (user_alias, category, delivery)
            VALUES (?, ?, ?)
            ON CONFLICT(user_alias, category) DO UPDATE SET delivery = excluded.delivery
            """,
            (user_alias, category.value, delivery.value),
        )

    async def get_preference(
        self,
        user_alias: str,
        category: NotificationCategory,
    ) -> NotificationPreference | None:
        cursor = await self._conn.execute(
            "SELECT user_alias, category, delivery, last_digest_sent_at "
            "FROM notification_preferences WHERE user_alias = ? AND category = ?",
            (user_alias, category.value),
        )
        row = await cursor.fetchone()
        return self._row_to_preference(row) if row is not None else None

    async def list_digest_candidates(
        self,
        user_aliases: Iterable[str] | None = None,
        categories: Iterable[NotificationCategory] | None = None,
    ) -> list[NotificationPreference]:
        """digest 方式且存在未投递事件的偏好行；是否到期由调用方判断"""
        deliveries = sorted(delivery.value for delivery in DIGEST_DELIVERIES)
        sql = (
            "SELECT p.user_alias, p.category, p.delivery, p.last_digest_sent_at "
            "FROM notification_preferences p "
            f"WHERE p.delivery IN ({', '.join('?' for _ in deliveries)}) "
            "AND EXISTS (SELECT 1 FROM notification_events e "
            "WHERE e.user_alias = p.user_alias AND e.category = p.category "
            "AND e.delivered_at IS NULL)"
        )
        params: list[str] = list(deliveries)
        if user_aliases is not None:
            users = sorted(set(user_aliases))
            if not users:
                return []
            sql += f" AND p.user_alias IN ({', '.join('?' for _ in users)})"
            params.extend(users)
        if categories is not None:
            wanted = sorted({category.value for category in categories})
            if not wanted:
                return []
            sql += f" AND p.category IN ({', '.join('?' for _ in wanted)})"
            params.extend(wanted)
        sql += " ORDER BY p.user_alias, p.category"

        cursor = await self._conn.execute(sql, params)
        return [self._row_to_preference(row) for row in await cursor.fetchall()]

    async def get_pending_events(
        self,
        user_alias: str,
        category: NotificationCategory,
        limit: int,
    ) -> list[NotificationEvent]:
        """未投递事件，最早的在前"""
        cursor = await self._conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM notification_events "
            "WHERE user_alias = ? AND category = ? AND delivered_at IS NULL "
            "ORDER BY created_at, event_id LIMIT ?",
            (user_alias, category.value, limit),
        )
        return [self._row_to_event(row) for row in await cursor.fetchall()]

    async def insert_events(self, events: Iterable[NotificationEvent]) -> None:
        await self._conn.executemany(
            f"INSERT INTO notification_events ({_EVENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    event.event_id,
                    event.user_alias,
                    event.category.value,
                    event.subject,
                    event.body,
                    event.created_at.isoformat(),
                    event.delivered_at.isoformat() if event.delivered_at else None,
                )
                for event in events
            ],
        )

    @staticmethod
    def _row_to_preference(row: aiosqlite.Row) -> NotificationPreference:
        return NotificationPreference(
            user_alias=row[0],
            category=row[1],
            delivery=row[2],
            last_digest_sent_at=_parse_ts(row[3]),
        )

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> NotificationEvent:
        return NotificationEvent(
            event_id=row[0],
            user_alias=row[1],
            category=row[2],
            subject=row[3],
            body=row[4],
            created_at=datetime.fromisoformat(row[5]),
            delivered_at=_parse_ts(row[6]),
        )
