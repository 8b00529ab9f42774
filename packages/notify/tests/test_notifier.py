"""Notifier 单元测试

通知失败只记录日志，绝不影响已提交的变更。
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from inzet.core.governance import TreeIndex
from inzet.core.models import NotificationCategory, Task
from inzet.notify import DispatchReport, Notifier

_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _task(task_id: str, parent_id: str | None = None, coordinators=None) -> Task:
    return Task(
        task_id=task_id,
        parent_id=parent_id,
        title=f"Taak {task_id}",
        own_coordinator_aliases=coordinators or [],
        created_at=_NOW,
        updated_at=_NOW,
    )


@pytest.fixture
def tree() -> TreeIndex:
    return TreeIndex(
        [
            _task("root", coordinators=["Edgar"]),
            _task("team", "root", ["Jan", "Thomas"]),
            _task("training", "team"),
        ]
    )


@pytest.fixture
def scheduler() -> AsyncMock:
    mock = AsyncMock()
    mock.dispatch = AsyncMock(return_value=DispatchReport())
    return mock


@pytest.fixture
def member_store() -> AsyncMock:
    mock = AsyncMock()
    mock.list_subscriptions = AsyncMock(return_value=[])
    return mock


class TestNotifierRouting:
    async def test_new_proposal_routes_to_decision_makers(self, tree, scheduler, member_store):
        notifier = Notifier(scheduler, member_store)

        await notifier.proposal_decision_required(
            tree.require("training"), "Anna", "Anna", tree, actor_alias="Anna"
        )

        category, messages = scheduler.dispatch.call_args.args
        assert category == NotificationCategory.NEW_PROPOSAL
        assert sorted(m.user_alias for m in messages) == ["Jan", "Thomas"]
        assert scheduler.dispatch.call_args.kwargs["exclude_aliases"] == ["Anna"]

    async def test_task_changed_routes_to_effective_coordinators(self, tree, scheduler, member_store):
        notifier = Notifier(scheduler, member_store)

        await notifier.task_changed(tree.require("training"), tree, "Thomas", summary="Punten")

        category, messages = scheduler.dispatch.call_args.args
        assert category == NotificationCategory.TASK_CHANGED_AS_COORDINATOR
        assert [m.user_alias for m in messages] == ["Jan", "Thomas"]
        assert "Punten" in messages[0].body

    async def test_proposal_accepted_deduplicates(self, scheduler, member_store):
        notifier = Notifier(scheduler, member_store)

        await notifier.proposal_accepted(["Thomas", "Thomas"], "Edgar", "Zaalwacht")

        _, messages = scheduler.dispatch.call_args.args
        assert [m.user_alias for m in messages] == ["Thomas"]

    async def test_no_recipients_skips_dispatch(self, scheduler, member_store):
        tree = TreeIndex([_task("lonely")])
        notifier = Notifier(scheduler, member_store)

        assert await notifier.task_became_available(tree.require("lonely"), tree, "Edgar") is None
        scheduler.dispatch.assert_not_called()

    async def test_subtasks_created_uses_subscriptions(self, tree, scheduler, member_store):
        notifier = Notifier(scheduler, member_store)

        await notifier.subtasks_created([tree.require("training")], tree, "Thomas")

        queried = set(member_store.list_subscriptions.call_args.args[0])
        assert queried == {"team", "root"}
        # 没有订阅者时不分发
        scheduler.dispatch.assert_not_called()


class TestNotifierFailures:
    async def test_dispatch_failure_is_swallowed(self, tree, scheduler, member_store):
        scheduler.dispatch.side_effect = RuntimeError("database is locked")
        notifier = Notifier(scheduler, member_store)

        result = await notifier.task_changed(tree.require("training"), tree, "Edgar")

        assert result is None

    async def test_subscription_lookup_failure_is_swallowed(self, tree, scheduler, member_store):
        member_store.list_subscriptions.side_effect = RuntimeError("boom")
        notifier = Notifier(scheduler, member_store)

        assert await notifier.subtasks_created([tree.require("training")], tree, "Edgar") is None
