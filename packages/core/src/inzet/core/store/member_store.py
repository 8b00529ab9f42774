"""MemberStore / TemplateStore SQLite 实现

会员、任务订阅与任务模板。
"""

from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from ..models.member import Member
from ..models.task import TaskSubscription, TaskTemplate


class SqliteMemberStore:
    """会员 + 订阅"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert_member(self, member: Member) -> None:
        await self._conn.execute(
            """
            INSERT INTO members (alias, email, is_active) VALUES (?, ?, ?)
            ON CONFLICT(alias) DO UPDATE SET email = excluded.email,
                                            is_active = excluded.is_active
            """,
            (member.alias, member.email, int(member.is_active)),
        )

    async def get_member(self, alias: str) -> Member | None:
        cursor = await self._conn.execute(
            "SELECT alias, email, is_active FROM members WHERE alias = ?",
            (alias,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Member(alias=row[0], email=row[1], is_active=bool(row[2]))

    async def get_members(self, aliases: Iterable[str]) -> dict[str, Member]:
        """批量查询会员；不存在的 alias 不出现在结果中"""
        wanted = sorted(set(aliases))
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        cursor = await self._conn.execute(
            f"SELECT alias, email, is_active FROM members WHERE alias IN ({placeholders})",
            wanted,
        )
        return {
            row[0]: Member(alias=row[0], email=row[1], is_active=bool(row[2]))
            for row in await cursor.fetchall()
        }

    async def add_subscription(self, subscription: TaskSubscription) -> None:
        await self._conn.execute(
            """
            INSERT OR IGNORE INTO task_subscriptions (task_id, user_alias, created_at)
            VALUES (?, ?, ?)
            """,
            (
                subscription.task_id,
                subscription.user_alias,
                subscription.created_at.isoformat(),
            ),
        )

    async def remove_subscription(self, task_id: str, user_alias: str) -> None:
        await self._conn.execute(
            "DELETE FROM task_subscriptions WHERE task_id = ? AND user_alias = ?",
            (task_id, user_alias),
        )

    async def list_subscriptions(
        self,
        task_ids: Iterable[str] | None = None,
    ) -> list[TaskSubscription]:
        """查询订阅；task_ids 为 None 时返回全部"""
        if task_ids is None:
            cursor = await self._conn.execute(
                "SELECT task_id, user_alias, created_at FROM task_subscriptions"
            )
        else:
            wanted = list(task_ids)
            if not wanted:
                return []
            placeholders = ", ".join("?" for _ in wanted)
            cursor = await self._conn.execute(
                "SELECT task_id, user_alias, created_at FROM task_subscriptions "
                f"WHERE task_id IN ({placeholders})",
                wanted,
            )
        return [
            TaskSubscription(
                task_id=row[0],
                user_alias=row[1],
                created_at=datetime.fromisoformat(row[2]),
            )
            for row in await cursor.fetchall()
        ]


class SqliteTemplateStore:
    """任务模板：根模板 + 子模板"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_template(self, template: TaskTemplate) -> None:
        await self._conn.execute(
            """
            INSERT INTO task_templates
                (template_id, title, description, default_points, parent_template_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                template.template_id,
                template.title,
                template.description,
                template.default_points,
                template.parent_template_id,
            ),
        )

    async def get_template(self, template_id: str) -> TaskTemplate | None:
        cursor = await self._conn.execute(
            "SELECT template_id, title, description, default_points, parent_template_id "
            "FROM task_templates WHERE template_id = ?",
            (template_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_template(row) if row is not None else None

    async def get_child_templates(self, template_id: str) -> list[TaskTemplate]:
        cursor = await self._conn.execute(
            "SELECT template_id, title, description, default_points, parent_template_id "
            "FROM task_templates WHERE parent_template_id = ? ORDER BY title",
            (template_id,),
        )
        return [self._row_to_template(row) for row in await cursor.fetchall()]

    @staticmethod
    def _row_to_template(row: aiosqlite.Row) -> TaskTemplate:
        return TaskTemplate(
            template_id=row[0],
            title=row[1],
            description=row[2],
            default_points=row[3],
            parent_template_id=row[4],
        )
