"""packages/core 测试配置 -- 任务树构造 fixture"""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from inzet.core.models import CoordinationType, Task, TaskStatus

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """构造 Task，未指定的字段取测试默认值"""

    def _make(
        task_id: str,
        parent_id: str | None = None,
        coordinators: list[str] | None = None,
        points: int = 0,
        status: TaskStatus = TaskStatus.AVAILABLE,
        coordination_type: CoordinationType | None = None,
        title: str | None = None,
    ) -> Task:
        return Task(
            task_id=task_id,
            parent_id=parent_id,
            title=title or f"Taak {task_id}",
            own_coordinator_aliases=coordinators or [],
            coordination_type=coordination_type,
            points=points,
            status=status,
            created_at=_NOW,
            updated_at=_NOW,
        )

    return _make
