"""apps/service 测试配置 -- TaskService + 预置任务树

预置树（括号内为 own coordinators / 点数）：

    root      Besturen vereniging  [Edgar]        1000
    ├── teams     Teams            [Thomas]        300
    │   ├── jeugd     Jeugd        []              100  ASSIGNED, team=Jeugd
    │   │   └── training  Training []               30  ASSIGNED, team=Jeugd
    │   ├── senioren  Senioren     [Jan, Thomas]    50
    │   └── kamp      Zomerkamp    [] ORGANIZE       0
    └── events    Evenementen      [Jan] ORGANIZE  100
        └── bar       Bardienst    []               20
"""

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from inzet.core.models import CoordinationType, Member, Task, TaskStatus
from inzet.core.store import StoreGroup, transaction
from inzet.notify import DigestScheduler, EchoMailer, Notifier
from inzet.service.services.task_service import TaskService

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
ROOT_TITLE = "Besturen vereniging"


class FixedClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _seed_task(
    task_id: str,
    parent_id: str | None,
    title: str,
    coordinators: list[str],
    points: int,
    status: TaskStatus = TaskStatus.AVAILABLE,
    coordination_type: CoordinationType | None = None,
    team_name: str | None = None,
) -> Task:
    return Task(
        task_id=task_id,
        parent_id=parent_id,
        title=title,
        own_coordinator_aliases=coordinators,
        points=points,
        status=status,
        coordination_type=coordination_type,
        team_name=team_name,
        created_at=T0,
        updated_at=T0,
    )


SEED_TASKS = [
    _seed_task("root", None, ROOT_TITLE, ["Edgar"], 1000),
    _seed_task("teams", "root", "Teams", ["Thomas"], 300),
    _seed_task("jeugd", "teams", "Jeugd", [], 100, TaskStatus.ASSIGNED, team_name="Jeugd"),
    _seed_task("training", "jeugd", "Training", [], 30, TaskStatus.ASSIGNED, team_name="Jeugd"),
    _seed_task("senioren", "teams", "Senioren", ["Jan", "Thomas"], 50),
    _seed_task("kamp", "teams", "Zomerkamp", [], 0, coordination_type=CoordinationType.ORGANIZE),
    _seed_task("events", "root", "Evenementen", ["Jan"], 100, coordination_type=CoordinationType.ORGANIZE),
    _seed_task("bar", "events", "Bardienst", [], 20),
]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest_asyncio.fixture
async def stores(db_conn) -> StoreGroup:
    group = StoreGroup(db_conn)
    async with transaction(db_conn):
        for member in (
            Member(alias="Edgar", email="edgar@example.org"),
            Member(alias="Thomas", email="thomas@example.org"),
            Member(alias="Jan", email="jan@example.org"),
            Member(alias="Klaas", email="klaas@example.org"),
            Member(alias="Anna", email="anna@example.org", is_active=False),
        ):
            await group.member_store.upsert_member(member)
        for task in SEED_TASKS:
            await group.task_store.create_task(task)
    return group


@pytest.fixture
def mailer() -> EchoMailer:
    return EchoMailer()


@pytest.fixture
def notifier(stores, mailer, clock) -> Notifier:
    scheduler = DigestScheduler(
        stores.conn,
        stores.notification_store,
        stores.member_store,
        mailer,
        clock=clock,
    )
    return Notifier(scheduler, stores.member_store)


@pytest.fixture
def service(stores, notifier, clock) -> TaskService:
    return TaskService(stores, notifier, root_task_title=ROOT_TITLE, clock=clock)
