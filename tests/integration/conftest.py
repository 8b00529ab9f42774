"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from inzet.core.models import Member, Task
from inzet.core.store import transaction
from inzet.notify import EchoMailer
from inzet.service.bootstrap import ServiceContainer, lifespan

ROOT_TITLE = "Besturen vereniging"


@pytest.fixture
def integration_db_path(tmp_path: Path, monkeypatch) -> str:
    """集成测试数据库；同时设置环境变量供 CLI 入口使用"""
    db_path = str(tmp_path / "sqlite" / "inzet.db")
    monkeypatch.setenv("INZET_DB_PATH", db_path)
    monkeypatch.setenv("INZET_ROOT_TASK_TITLE", ROOT_TITLE)
    return db_path


@pytest.fixture
def integration_mailer() -> EchoMailer:
    return EchoMailer()


@pytest_asyncio.fixture
async def container(
    integration_db_path: str,
    integration_mailer: EchoMailer,
) -> AsyncGenerator[ServiceContainer, None]:
    """完整装配的服务 + 预置 root 任务与会员"""
    async with lifespan(db_path=integration_db_path, mailer=integration_mailer) as services:
        now = datetime.now(UTC)
        stores = services.store_group
        async with transaction(stores.conn):
            for alias in ("Edgar", "Thomas", "Jan", "Klaas"):
                await stores.member_store.upsert_member(
                    Member(alias=alias, email=f"{alias.lower()}@example.org")
                )
            await stores.task_store.create_task(
                Task(
                    task_id="root",
                    title=ROOT_TITLE,
                    own_coordinator_aliases=["Edgar"],
                    points=1000,
                    created_at=now,
                    updated_at=now,
                )
            )
        yield services
