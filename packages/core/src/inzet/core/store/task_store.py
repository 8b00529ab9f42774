"""TaskStore SQLite 实现

tasks 表只存 parent 指针与显式 own coordinators（task_coordinators 表），
effective coordinators 与可用点数都由 governance 层从树快照推导。
写方法不提交，由调用方在 transaction() 内提交。
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from ..governance.points import parse_stored_points, points_to_storage
from ..governance.tree import TreeIndex
from ..models.enums import TaskStatus
from ..models.task import Task

_TASK_COLUMNS = (
    "task_id, parent_id, title, description, team_name, coordination_type, "
    "points, status, template_id, created_at, updated_at"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录（含 own coordinators）"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_TASK_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.parent_id,
                task.title,
                task.description,
                task.team_name,
                task.coordination_type.value if task.coordination_type else None,
                points_to_storage(task.points),
                task.status.value,
                task.template_id,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )
        await self.set_own_coordinators(task.task_id, task.own_coordinator_aliases)

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        coordinators = await self._load_coordinators([task_id])
        return self._row_to_task(row, coordinators.get(task_id, []))

    async def get_children(self, parent_id: str) -> list[Task]:
        """直接子任务，按创建时间排序"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE parent_id = ? ORDER BY created_at",
            (parent_id,),
        )
        rows = await cursor.fetchall()
        coordinators = await self._load_coordinators([row[0] for row in rows])
        return [self._row_to_task(row, coordinators.get(row[0], [])) for row in rows]

    async def get_ancestor_chain(self, task_id: str) -> list[Task]:
        """从 task 自身开始向上的祖先链（含自身），环与悬空 parent 安全"""
        tree = await self.load_tree()
        return tree.ancestor_chain(task_id)

    async def list_tasks(self, status: str | None = None) -> list[Task]:
        """查询任务列表，支持按状态筛选，按 created_at 排序"""
        if status:
            cursor = await self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE status = ? ORDER BY created_at",
                (status,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY created_at"
            )
        rows = await cursor.fetchall()
        coordinators = await self._load_coordinators(None)
        return [self._row_to_task(row, coordinators.get(row[0], [])) for row in rows]

    async def load_tree(self) -> TreeIndex:
        """读取整棵任务树快照

        应在同一事务内调用，保证权限与预算判断基于一致数据。
        """
        return TreeIndex.from_tasks(await self.list_tasks())

    async def update_task(self, task: Task) -> None:
        """整行覆盖任务字段（不含 own coordinators）"""
        await self._conn.execute(
            """
            UPDATE tasks
            SET parent_id = ?, title = ?, description = ?, team_name = ?,
                coordination_type = ?, points = ?, status = ?, template_id = ?,
                updated_at = ?
            WHERE task_id = ?
            """,
            (
                task.parent_id,
                task.title,
                task.description,
                task.team_name,
                task.coordination_type.value if task.coordination_type else None,
                points_to_storage(task.points),
                task.status.value,
                task.template_id,
                task.updated_at.isoformat(),
                task.task_id,
            ),
        )

    async def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        updated_at: datetime,
    ) -> None:
        await self._conn.execute(
            "UPDATE tasks SET status = ?, updated_at = ? WHERE task_id = ?",
            (status.value, updated_at.isoformat(), task_id),
        )

    async def set_own_coordinators(self, task_id: str, aliases: Iterable[str]) -> None:
        """替换任务的 own coordinator 集合；空集合表示回落到继承"""
        await self._conn.execute(
            "DELETE FROM task_coordinators WHERE task_id = ?",
            (task_id,),
        )
        await self._conn.executemany(
            "INSERT INTO task_coordinators (task_id, user_alias) VALUES (?, ?)",
            [(task_id, alias) for alias in sorted({a for a in aliases if a})],
        )

    async def delete_tasks(self, task_ids: Iterable[str]) -> int:
        """删除给定任务；coordinators / 提案 / 订阅随外键级联删除"""
        ids = list(task_ids)
        await self._conn.executemany(
            "DELETE FROM tasks WHERE task_id = ?",
            [(task_id,) for task_id in ids],
        )
        return len(ids)

    async def _load_coordinators(self, task_ids: list[str] | None) -> dict[str, list[str]]:
        """task_id -> own coordinator alias 列表；task_ids 为 None 时读取全部"""
        if task_ids is not None and not task_ids:
            return {}
        if task_ids is None:
            cursor = await self._conn.execute(
                "SELECT task_id, user_alias FROM task_coordinators"
            )
        else:
            placeholders = ", ".join("?" for _ in task_ids)
            cursor = await self._conn.execute(
                f"SELECT task_id, user_alias FROM task_coordinators "
                f"WHERE task_id IN ({placeholders})",
                task_ids,
            )
        result: dict[str, list[str]] = defaultdict(list)
        for row in await cursor.fetchall():
            result[row[0]].append(row[1])
        return result

    @staticmethod
    def _row_to_task(row: aiosqlite.Row, own_coordinators: list[str]) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            parent_id=row[1],
            title=row[2],
            description=row[3],
            team_name=row[4],
            coordination_type=row[5],
            points=parse_stored_points(row[6]),
            status=row[7],
            template_id=row[8],
            created_at=datetime.fromisoformat(row[9]),
            updated_at=datetime.fromisoformat(row[10]),
            own_coordinator_aliases=own_coordinators,
        )
