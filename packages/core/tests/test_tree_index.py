"""TreeIndex 单元测试

测试内容：
1. 祖先链 / 后代查询
2. 环与悬空 parent 的防御性终止
3. 冻结判断与环检测
"""

import pytest
from inzet.core.governance import TaskNotFoundError, TreeIndex
from inzet.core.models import TaskStatus


class TestTreeQueries:
    """基本查询"""

    def test_ancestor_chain_starts_at_task(self, make_task):
        """祖先链包含自身，近的在前"""
        tree = TreeIndex.from_tasks(
            [make_task("root"), make_task("a", "root"), make_task("b", "a")]
        )
        assert [t.task_id for t in tree.ancestor_chain("b")] == ["b", "a", "root"]
        assert [t.task_id for t in tree.ancestors("b")] == ["a", "root"]

    def test_descendants_breadth_first(self, make_task):
        tree = TreeIndex(
            [
                make_task("root"),
                make_task("a", "root"),
                make_task("b", "root"),
                make_task("a1", "a"),
            ]
        )
        assert [t.task_id for t in tree.descendants("root")] == ["a", "b", "a1"]
        assert [t.task_id for t in tree.subtree("a")] == ["a", "a1"]
        assert tree.subtree("missing") == []

    def test_require_missing_raises(self, make_task):
        tree = TreeIndex([make_task("root")])
        with pytest.raises(TaskNotFoundError):
            tree.require("missing")

    def test_roots_and_children(self, make_task):
        tree = TreeIndex([make_task("r1"), make_task("r2"), make_task("c", "r1")])
        assert {t.task_id for t in tree.roots()} == {"r1", "r2"}
        assert [t.task_id for t in tree.children("r1")] == ["c"]
        assert tree.children("r2") == []


class TestTreeAnomalies:
    """历史数据异常时不死循环、不抛出"""

    def test_cycle_terminates(self, make_task):
        """a -> b -> a 的环：祖先链在重复节点处停止"""
        tree = TreeIndex([make_task("a", "b"), make_task("b", "a")])
        chain = tree.ancestor_chain("a")
        assert [t.task_id for t in chain] == ["a", "b"]

    def test_cycle_descendants_terminate(self, make_task):
        tree = TreeIndex([make_task("a", "b"), make_task("b", "a")])
        assert [t.task_id for t in tree.descendants("a")] == ["b"]

    def test_missing_parent_returns_partial_chain(self, make_task):
        tree = TreeIndex([make_task("orphan", "gone")])
        assert [t.task_id for t in tree.ancestor_chain("orphan")] == ["orphan"]

    def test_missing_task_returns_empty_chain(self, make_task):
        tree = TreeIndex([make_task("root")])
        assert tree.ancestor_chain("missing") == []

    def test_self_parent(self, make_task):
        tree = TreeIndex([make_task("loop", "loop")])
        assert [t.task_id for t in tree.ancestor_chain("loop")] == ["loop"]


class TestTreeStructureChecks:
    """冻结与环检测"""

    def test_is_frozen_by_done_ancestor(self, make_task):
        tree = TreeIndex(
            [
                make_task("root"),
                make_task("done", "root", status=TaskStatus.DONE),
                make_task("child", "done"),
            ]
        )
        assert tree.is_frozen("child") is True
        assert tree.is_frozen("done") is True
        assert tree.is_frozen("root") is False

    def test_subtree_has_done(self, make_task):
        tree = TreeIndex(
            [
                make_task("root"),
                make_task("a", "root"),
                make_task("a1", "a", status=TaskStatus.DONE),
            ]
        )
        assert tree.subtree_has_done("a") is True
        assert tree.subtree_has_done("root") is True

    def test_would_create_cycle(self, make_task):
        tree = TreeIndex(
            [make_task("root"), make_task("a", "root"), make_task("a1", "a")]
        )
        assert tree.would_create_cycle("a", "a1") is True
        assert tree.would_create_cycle("a", "a") is True
        assert tree.would_create_cycle("a1", "root") is False
