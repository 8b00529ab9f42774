"""CLI 入口模块 -- python -m inzet.service <command>

支持的命令：
  flush-digests       发送所有到期的 digest 后退出（供 cron 调用）
  run-digest-worker   前台运行 digest worker，直到 Ctrl-C
"""

import asyncio
import sys

from inzet.core.logging_config import setup_logging

from .bootstrap import lifespan


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m inzet.service <command>")
        print("命令:")
        print("  flush-digests       发送所有到期的 digest")
        print("  run-digest-worker   持续运行 digest worker")
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]

    if command == "flush-digests":
        failed = asyncio.run(flush_digests())
        sys.exit(1 if failed else 0)
    elif command == "run-digest-worker":
        try:
            asyncio.run(run_digest_worker())
        except KeyboardInterrupt:
            print("已停止")
    else:
        print(f"未知命令: {command}")
        print("可用命令: flush-digests, run-digest-worker")
        sys.exit(1)


async def flush_digests() -> int:
    """执行一轮 flush，返回发送失败数"""
    async with lifespan() as container:
        report = await container.scheduler.flush_due()
    print(
        f"发送 {report.sent} 封 digest，提交 {report.committed}，"
        f"跳过 {report.skipped}，失败 {report.failed}"
    )
    return report.failed


async def run_digest_worker() -> None:
    async with lifespan() as container:
        await container.digest_worker.run_forever()


if __name__ == "__main__":
    main()
