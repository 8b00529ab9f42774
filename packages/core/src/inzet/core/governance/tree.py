"""任务树内存索引

按 task_id 建索引，支持祖先链 / 后代集合查询。
历史数据可能存在环或悬空 parent，所有遍历都带 visited 守卫：
遇到异常时记录 tree_anomaly_* 日志并返回已得到的部分结果，绝不死循环或抛出。
"""

from collections import defaultdict, deque
from collections.abc import Iterable, Iterator

import structlog

from ..models.enums import TaskStatus
from ..models.task import Task
from .exceptions import TaskNotFoundError

log = structlog.get_logger()


class TreeIndex:
    """任务树快照（只读）

    快照应在同一事务内读取，以保证各项判断基于一致的数据。
    """

    def __init__(self, tasks: Iterable[Task]) -> None:
        self._tasks: dict[str, Task] = {task.task_id: task for task in tasks}
        self._children: dict[str, list[str]] = defaultdict(list)
        for task in self._tasks.values():
            if task.parent_id is not None:
                self._children[task.parent_id].append(task.task_id)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TreeIndex":
        return cls(tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def get(self, task_id: str | None) -> Task | None:
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        """查询任务，不存在时抛出 TaskNotFoundError"""
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def roots(self) -> list[Task]:
        return [task for task in self._tasks.values() if task.parent_id is None]

    def children(self, task_id: str) -> list[Task]:
        """直接子任务"""
        return [self._tasks[child_id] for child_id in self._children.get(task_id, [])]

    def ancestor_chain(self, task_id: str) -> list[Task]:
        """从 task 自身开始、沿 parent 指针向上的链（含自身）

        迭代实现，最多走 len(tree) 步。
        """
        chain: list[Task] = []
        visited: set[str] = set()
        current = self._tasks.get(task_id)
        if current is None:
            log.warning("tree_anomaly_missing_task", task_id=task_id)
            return chain

        while current is not None:
            if current.task_id in visited:
                log.warning(
                    "tree_anomaly_cycle",
                    task_id=task_id,
                    repeated_task_id=current.task_id,
                )
                break
            visited.add(current.task_id)
            chain.append(current)

            if current.parent_id is None:
                break
            parent = self._tasks.get(current.parent_id)
            if parent is None:
                log.warning(
                    "tree_anomaly_missing_parent",
                    task_id=current.task_id,
                    parent_id=current.parent_id,
                )
            current = parent

        return chain

    def ancestors(self, task_id: str) -> list[Task]:
        """严格祖先（不含自身），近的在前"""
        return self.ancestor_chain(task_id)[1:]

    def descendants(self, task_id: str) -> list[Task]:
        """所有后代（不含自身），广度优先"""
        result: list[Task] = []
        visited: set[str] = {task_id}
        frontier: deque[str] = deque([task_id])

        while frontier:
            current_id = frontier.popleft()
            for child_id in self._children.get(current_id, []):
                if child_id in visited:
                    log.warning(
                        "tree_anomaly_cycle",
                        task_id=task_id,
                        repeated_task_id=child_id,
                    )
                    continue
                visited.add(child_id)
                result.append(self._tasks[child_id])
                frontier.append(child_id)

        return result

    def subtree(self, task_id: str) -> list[Task]:
        """task 自身 + 所有后代；task 不存在时为空"""
        task = self._tasks.get(task_id)
        if task is None:
            return []
        return [task, *self.descendants(task_id)]

    def would_create_cycle(self, task_id: str, target_parent_id: str) -> bool:
        """把 task 挂到 target_parent 下是否会形成环"""
        if task_id == target_parent_id:
            return True
        return any(node.task_id == task_id for node in self.ancestor_chain(target_parent_id))

    def is_frozen(self, task_id: str) -> bool:
        """任务自身或任一祖先已完成"""
        return any(node.status == TaskStatus.DONE for node in self.ancestor_chain(task_id))

    def subtree_has_done(self, task_id: str) -> bool:
        return any(node.status == TaskStatus.DONE for node in self.subtree(task_id))
