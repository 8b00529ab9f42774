"""事务一致性单元测试

测试内容：
1. transaction() 成功提交 / 异常回滚
2. 同一连接上的并发写事务串行化，不会基于过期可用点数超支
3. mark_digest_delivered 原子标记 + 重叠 flush 幂等
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from inzet.core.governance import allocate_points_from_parent, available_points
from inzet.core.models import NotificationCategory, NotificationEvent, Task
from inzet.core.store import (
    SqliteNotificationStore,
    SqliteTaskStore,
    mark_digest_delivered,
    transaction,
)

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _task(task_id: str, parent_id: str | None = None, points: int = 0) -> Task:
    return Task(
        task_id=task_id,
        parent_id=parent_id,
        title=task_id,
        own_coordinator_aliases=["Edgar"] if parent_id is None else [],
        points=points,
        created_at=_NOW,
        updated_at=_NOW,
    )


@pytest_asyncio.fixture
async def task_store(db_conn):
    store = SqliteTaskStore(db_conn)
    async with transaction(db_conn):
        await store.create_task(_task("root", points=10))
    return store


class TestTransactionAtomicity:
    """事务提交与回滚"""

    async def test_commit_on_success(self, db_conn, task_store):
        async with transaction(db_conn):
            await task_store.create_task(_task("a", "root", 4))

        assert await task_store.get_task("a") is not None

    async def test_rollback_on_error(self, db_conn, task_store):
        """块内抛出异常：已执行的写入全部回滚，异常继续向上"""
        with pytest.raises(RuntimeError):
            async with transaction(db_conn):
                await task_store.create_task(_task("a", "root", 4))
                raise RuntimeError("boom")

        assert await task_store.get_task("a") is None
        # 回滚后连接仍可继续使用
        async with transaction(db_conn):
            await task_store.create_task(_task("b", "root", 2))
        assert await task_store.get_task("b") is not None

    async def test_rollback_on_constraint_violation(self, db_conn, task_store):
        with pytest.raises(Exception):
            async with transaction(db_conn):
                await task_store.create_task(_task("a", "root", 4))
                await task_store.create_task(_task("a", "root", 4))

        assert await task_store.get_task("a") is None


class TestSerializedAllocation:
    """两个并发的新建子任务不会同时读到过期的可用点数"""

    async def test_concurrent_allocations_do_not_overspend(self, db_conn, task_store):
        async def create_child(task_id: str) -> int:
            async with transaction(db_conn):
                tree = await task_store.load_tree()
                allocation = allocate_points_from_parent(available_points("root", tree), 6)
                # 让出事件循环，另一个协程若未被串行化会在此读到同一快照
                await asyncio.sleep(0)
                await task_store.create_task(
                    _task(task_id, "root", allocation.assigned_points)
                )
                return allocation.assigned_points

        assigned = await asyncio.gather(create_child("a"), create_child("b"))

        assert sorted(assigned) == [0, 6]
        tree = await task_store.load_tree()
        assert available_points("root", tree) == 4


class TestMarkDigestDelivered:
    """digest 投递标记"""

    @pytest_asyncio.fixture
    async def notification_store(self, db_conn):
        store = SqliteNotificationStore(db_conn)
        async with transaction(db_conn):
            await store.ensure_preferences(["Thomas"])
            await store.insert_events(
                [
                    NotificationEvent(
                        event_id=f"evt-{i}",
                        user_alias="Thomas",
                        category=NotificationCategory.TASK_CHANGED_AS_COORDINATOR,
                        subject=f"subject {i}",
                        body="body",
                        created_at=_NOW + timedelta(minutes=i),
                    )
                    for i in range(3)
                ]
            )
        return store

    async def test_marks_events_and_advances_timestamp(self, db_conn, notification_store):
        sent_at = _NOW + timedelta(days=1)
        marked = await mark_digest_delivered(
            db_conn,
            "Thomas",
            NotificationCategory.TASK_CHANGED_AS_COORDINATOR,
            ["evt-0", "evt-1", "evt-2"],
            sent_at=sent_at,
        )

        assert marked == 3
        pending = await notification_store.get_pending_events(
            "Thomas", NotificationCategory.TASK_CHANGED_AS_COORDINATOR, 10
        )
        assert pending == []
        preference = await notification_store.get_preference(
            "Thomas", NotificationCategory.TASK_CHANGED_AS_COORDINATOR
        )
        assert preference.last_digest_sent_at == sent_at

    async def test_overlapping_flush_is_idempotent(self, db_conn, notification_store):
        """第二次标记同一批事件：不重复标记，返回 0"""
        ids = ["evt-0", "evt-1", "evt-2"]
        category = NotificationCategory.TASK_CHANGED_AS_COORDINATOR
        await mark_digest_delivered(db_conn, "Thomas", category, ids, sent_at=_NOW)

        marked = await mark_digest_delivered(db_conn, "Thomas", category, ids, sent_at=_NOW)

        assert marked == 0
