"""TaskService 状态流转 + 读取测试"""

from unittest.mock import AsyncMock

import pytest
from inzet.core.governance import (
    InvalidTransitionError,
    PermissionDeniedError,
    ReleaseWouldOrphanError,
    TaskFrozenError,
)
from inzet.core.models import TaskStatus
from inzet.notify import Notifier
from inzet.service.services.task_service import TaskService


class TestReadAccess:
    async def test_visible_tasks_for_member(self, service):
        """普通会员只看到公开可报名的任务"""
        visible = {task.task_id for task in await service.list_visible_tasks("Klaas")}
        assert visible == {"root", "teams", "senioren", "kamp", "events", "bar"}

    async def test_coordinator_sees_managed_branch(self, service):
        visible = {task.task_id for task in await service.list_visible_tasks("Thomas")}
        assert {"jeugd", "training"} <= visible

    async def test_get_hidden_task_denied(self, service):
        with pytest.raises(PermissionDeniedError):
            await service.get_task("Klaas", "jeugd")

    async def test_evaluate_permissions(self, service):
        permissions = await service.evaluate_permissions("Thomas", "kamp")

        assert permissions.manage is True
        assert permissions.read is True
        assert permissions.create_subtask is False
        assert permissions.edit_coordinators is True


class TestCompleteTask:
    async def test_complete_cascades_to_assigned_descendants(self, service, stores):
        completed = await service.complete_task("Thomas", "jeugd")

        assert completed == ["jeugd", "training"]
        for task_id in completed:
            task = await stores.task_store.get_task(task_id)
            assert task.status == TaskStatus.DONE

    async def test_available_task_cannot_complete(self, service):
        with pytest.raises(InvalidTransitionError):
            await service.complete_task("Thomas", "kamp")

    async def test_non_manager_cannot_complete(self, service):
        with pytest.raises(PermissionDeniedError):
            await service.complete_task("Jan", "jeugd")


class TestUncompleteTask:
    async def test_uncomplete_blocked_by_done_parent(self, service):
        await service.complete_task("Thomas", "jeugd")
        with pytest.raises(TaskFrozenError):
            await service.uncomplete_task("Thomas", "training")

    async def test_uncomplete_top_of_done_branch(self, service, stores):
        await service.complete_task("Thomas", "jeugd")

        updated = await service.uncomplete_task("Thomas", "jeugd")

        assert updated.status == TaskStatus.ASSIGNED
        training = await stores.task_store.get_task("training")
        assert training.status == TaskStatus.DONE

    async def test_uncomplete_requires_done(self, service):
        with pytest.raises(InvalidTransitionError):
            await service.uncomplete_task("Thomas", "jeugd")


class TestReleaseTask:
    async def test_release_falls_back_to_inheritance(self, service, stores):
        """释放后剩余集合与父任务相同：own 集合清空"""
        released = await service.release_task("Jan", "senioren")

        assert released.status == TaskStatus.AVAILABLE
        assert released.own_coordinator_aliases == []
        stored = await stores.task_store.get_task("senioren")
        assert stored.own_coordinator_aliases == []

    async def test_release_would_orphan(self, service, stores):
        with pytest.raises(ReleaseWouldOrphanError):
            await service.release_task("Thomas", "jeugd")

        task = await stores.task_store.get_task("jeugd")
        assert task.status == TaskStatus.ASSIGNED

    async def test_release_notifies_inherited_coordinators(self, service, mailer):
        await service.update_task("Thomas", "jeugd", own_coordinator_aliases=["Klaas"])

        await service.release_task("Klaas", "jeugd")

        assert [(mail.to, mail.subject) for mail in mailer.sent] == [
            ("thomas@example.org", "Taak beschikbaar: Jeugd")
        ]


class TestNotificationIsolation:
    async def test_dispatch_failure_does_not_undo_mutation(self, stores, clock):
        """通知失败只记日志，变更已提交"""
        scheduler = AsyncMock()
        scheduler.dispatch = AsyncMock(side_effect=RuntimeError("database is locked"))
        service = TaskService(
            stores,
            Notifier(scheduler, stores.member_store),
            root_task_title="Besturen vereniging",
            clock=clock,
        )

        updated = await service.update_task("Jan", "senioren", title="Senioren 1")

        assert updated.title == "Senioren 1"
        stored = await stores.task_store.get_task("senioren")
        assert stored.title == "Senioren 1"
        scheduler.dispatch.assert_awaited()

    async def test_tree_reload_failure_after_commit(self, service, stores, monkeypatch):
        """提交后重读树失败：变更照常返回，异常不抛给调用方"""
        original_load = stores.task_store.load_tree
        calls = []

        async def load_once():
            calls.append(1)
            if len(calls) > 1:
                raise RuntimeError("disk I/O error")
            return await original_load()

        monkeypatch.setattr(stores.task_store, "load_tree", load_once)

        updated = await service.update_task("Jan", "senioren", title="Senioren 1")

        assert updated.title == "Senioren 1"
        assert len(calls) == 2
        monkeypatch.undo()
        stored = await stores.task_store.get_task("senioren")
        assert stored.title == "Senioren 1"

    async def test_service_without_notifier(self, stores, clock):
        service = TaskService(stores, root_task_title="Besturen vereniging", clock=clock)

        completed = await service.complete_task("Thomas", "training")

        assert completed == ["training"]
