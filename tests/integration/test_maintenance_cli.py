"""维护命令集成测试 -- python -m inzet.core / inzet.service"""

from datetime import UTC, datetime

from inzet.core.__main__ import check_tree, normalize_coordinators
from inzet.core.models import Task
from inzet.core.store import transaction
from inzet.service.__main__ import flush_digests


def _task(task_id: str, parent_id: str | None, coordinators: list[str]) -> Task:
    now = datetime.now(UTC)
    return Task(
        task_id=task_id,
        parent_id=parent_id,
        title=task_id,
        own_coordinator_aliases=coordinators,
        created_at=now,
        updated_at=now,
    )


class TestMaintenanceCommands:
    async def test_normalize_coordinators(self, container):
        stores = container.store_group
        async with transaction(stores.conn):
            await stores.task_store.create_task(_task("teams", "root", ["Edgar"]))
            await stores.task_store.create_task(_task("jeugd", "teams", ["Thomas"]))

        cleared = await normalize_coordinators()

        assert cleared == 1
        teams = await stores.task_store.get_task("teams")
        jeugd = await stores.task_store.get_task("jeugd")
        assert teams.own_coordinator_aliases == []
        assert jeugd.own_coordinator_aliases == ["Thomas"]

    async def test_check_tree_reports_dangling_parent(self, container, capsys):
        stores = container.store_group
        async with transaction(stores.conn):
            await stores.task_store.create_task(_task("orphan", "missing", []))

        anomalies = await check_tree()

        assert anomalies == ["orphan"]
        assert "1 个存在环或悬空 parent" in capsys.readouterr().out

    async def test_flush_digests_without_pending(self, container, monkeypatch):
        monkeypatch.setenv("INZET_MAIL_MODE", "echo")
        assert await flush_digests() == 0
