"""packages/notify 测试配置 -- 会员 / 调度器 fixture"""

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from inzet.core.models import Member
from inzet.core.store import StoreGroup, transaction
from inzet.notify import DigestScheduler, EchoMailer

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def stores(db_conn) -> StoreGroup:
    """Thomas / Edgar / Jan 可收邮件；Anna 已停用；Piet 没有邮箱"""
    group = StoreGroup(db_conn)
    async with transaction(db_conn):
        for member in (
            Member(alias="Thomas", email="thomas@example.org"),
            Member(alias="Edgar", email="edgar@example.org"),
            Member(alias="Jan", email="jan@example.org"),
            Member(alias="Anna", email="anna@example.org", is_active=False),
            Member(alias="Piet", email=None),
        ):
            await group.member_store.upsert_member(member)
    return group


@pytest.fixture
def mailer() -> EchoMailer:
    return EchoMailer()


@pytest.fixture
def scheduler(stores, mailer, clock) -> DigestScheduler:
    return DigestScheduler(
        stores.conn,
        stores.notification_store,
        stores.member_store,
        mailer,
        clock=clock,
    )
