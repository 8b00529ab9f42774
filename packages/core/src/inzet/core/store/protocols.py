"""Store Protocol 接口定义

治理引擎与通知层只依赖以下结构化接口，而不是具体的 SQLite 实现；
使用 Python Protocol 实现结构化子类型（duck typing），测试可直接传入替身。
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from ..models.enums import NotificationCategory, NotificationDelivery
from ..models.member import Member
from ..models.notification import NotificationEvent, NotificationPreference
from ..models.task import Task, TaskSubscription


@runtime_checkable
class TreeRepository(Protocol):
    """任务树只读接口：治理引擎只读不写，写入由调用方在事务内完成"""

    async def get_task(self, task_id: str) -> Task | None:
        ...

    async def get_children(self, parent_id: str) -> list[Task]:
        ...

    async def get_ancestor_chain(self, task_id: str) -> list[Task]:
        """从 task 自身开始向上的祖先链"""
        ...


@runtime_checkable
class MemberDirectory(Protocol):
    """会员与订阅查询接口 -- 通知收件人过滤"""

    async def get_members(self, aliases: Iterable[str]) -> dict[str, Member]:
        ...

    async def list_subscriptions(
        self,
        task_ids: Iterable[str] | None = None,
    ) -> list[TaskSubscription]:
        ...


@runtime_checkable
class NotificationRepository(Protocol):
    """通知偏好与 digest 事件存储接口"""

    async def ensure_preferences(self, user_aliases: Iterable[str]) -> None:
        """为缺少偏好行的用户写入默认投递方式"""
        ...

    async def get_deliveries(
        self,
        user_aliases: Iterable[str],
        category: NotificationCategory,
    ) -> dict[str, NotificationDelivery]:
        ...

    async def get_preference(
        self,
        user_alias: str,
        category: NotificationCategory,
    ) -> NotificationPreference | None:
        ...

    async def list_digest_candidates(
        self,
        user_aliases: Iterable[str] | None = None,
        categories: Iterable[NotificationCategory] | None = None,
    ) -> list[NotificationPreference]:
        ...

    async def get_pending_events(
        self,
        user_alias: str,
        category: NotificationCategory,
        limit: int,
    ) -> list[NotificationEvent]:
        ...

    async def insert_events(self, events: Iterable[NotificationEvent]) -> None:
        """追加 digest 事件"""
        ...
