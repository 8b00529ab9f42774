"""事务封装

transaction()：BEGIN IMMEDIATE 获取写锁，读快照 + 决策 + 写入在同一事务内，
关闭两个并发请求基于过期可用点数同时超支的 check-then-act 竞争。
同一连接上的写事务由进程内锁串行化（SQLite 连接不支持嵌套事务）。
mark_digest_delivered()：digest 发送成功后原子地标记事件已投递并推进时间戳。
"""

import asyncio
import weakref
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

import aiosqlite
import structlog

from ..models.enums import NotificationCategory

log = structlog.get_logger()

_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def _write_lock(conn: aiosqlite.Connection) -> asyncio.Lock:
    lock = _write_locks.get(conn)
    if lock is None:
        lock = asyncio.Lock()
        _write_locks[conn] = lock
    return lock


@asynccontextmanager
async def transaction(conn: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """在写事务内执行，正常退出提交，异常回滚后重新抛出

    Args:
        conn: 数据库连接（同一事务内的所有 Store 必须共享该连接）
    """
    async with _write_lock(conn):
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()


async def mark_digest_delivered(
    conn: aiosqlite.Connection,
    user_alias: str,
    category: NotificationCategory,
    event_ids: Iterable[str],
    sent_at: datetime,
) -> int:
    """在同一事务内标记事件已投递并推进 last_digest_sent_at

    只更新这一个 (user, category) 偏好行，不同用户的并发 flush 互不冲突。

    Returns:
        实际被标记的事件数；小于传入数量说明有并发 flush 已先行投递
    """
    ids = list(event_ids)
    async with transaction(conn):
        marked = 0
        for event_id in ids:
            cursor = await conn.execute(
                """
                UPDATE notification_events
                SET delivered_at = ?
                WHERE event_id = ? AND delivered_at IS NULL
                """,
                (sent_at.isoformat(), event_id),
            )
            marked += cursor.rowcount
        await conn.execute(
            """
            UPDATE notification_preferences
            SET last_digest_sent_at = ?
            WHERE user_alias = ? AND category = ?
            """,
            (sent_at.isoformat(), user_alias, category.value),
        )

    if marked < len(ids):
        log.info(
            "digest_overlap_detected",
            user_alias=user_alias,
            category=category.value,
            gathered=len(ids),
            marked=marked,
        )
    return marked
