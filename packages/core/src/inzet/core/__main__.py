"""CLI 入口模块 -- python -m inzet.core <command>

支持的命令：
  normalize-coordinators  清除与父任务 effective 集合相同的 own coordinators
  check-tree              检查任务树中的环与悬空 parent
"""

import asyncio
import sys

from .config import get_db_path
from .logging_config import setup_logging


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m inzet.core <command>")
        print("命令:")
        print("  normalize-coordinators  清除冗余的显式 coordinator 指派")
        print("  check-tree              检查任务树异常")
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]

    if command == "normalize-coordinators":
        asyncio.run(normalize_coordinators())
    elif command == "check-tree":
        anomalies = asyncio.run(check_tree())
        sys.exit(1 if anomalies else 0)
    else:
        print(f"未知命令: {command}")
        print("可用命令: normalize-coordinators, check-tree")
        sys.exit(1)


async def normalize_coordinators() -> int:
    """清空冗余 own coordinator 集合，返回处理的任务数"""
    from .governance import find_redundant_own_coordinators
    from .store import create_store_group, transaction

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        async with transaction(store_group.conn):
            tree = await store_group.task_store.load_tree()
            redundant = find_redundant_own_coordinators(tree)
            for task_id in redundant:
                await store_group.task_store.set_own_coordinators(task_id, [])
        print(f"规整完成，清空 {len(redundant)} 个任务的冗余指派")
        return len(redundant)
    finally:
        await store_group.conn.close()


async def check_tree() -> list[str]:
    """列出存在环或悬空 parent 的任务 ID"""
    from .store import create_store_group

    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    try:
        tree = await store_group.task_store.load_tree()
    finally:
        await store_group.conn.close()

    anomalies: list[str] = []
    for task in tree:
        chain = tree.ancestor_chain(task.task_id)
        top = chain[-1]
        if top.parent_id is not None:
            anomalies.append(task.task_id)

    print(f"共 {len(tree)} 个任务，{len(anomalies)} 个存在环或悬空 parent")
    for task_id in anomalies:
        print(f"  {task_id}")
    return anomalies
