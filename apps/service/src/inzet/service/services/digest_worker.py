"""DigestWorker -- 周期性 flush 到期 digest 的后台任务"""

import asyncio

import structlog
from inzet.core.config import DIGEST_TICK_S
from inzet.notify import DigestScheduler, FlushReport

log = structlog.get_logger()


class DigestWorker:
    """每 tick_s 秒调用一次 DigestScheduler.flush_due

    单轮失败只记录日志，下一轮照常执行；到期状态全部在数据库中，
    worker 重启不会丢失或重复计算周期。
    """

    def __init__(self, scheduler: DigestScheduler, tick_s: float = DIGEST_TICK_S) -> None:
        self._scheduler = scheduler
        self._tick_s = tick_s
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> FlushReport | None:
        """执行一轮 flush；异常不向外传播"""
        try:
            report = await self._scheduler.flush_due()
        except Exception as e:
            log.error(
                "digest_flush_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        if report.sent or report.failed:
            log.info(
                "digest_flush_completed",
                sent=report.sent,
                committed=report.committed,
                skipped=report.skipped,
                failed=report.failed,
            )
        return report

    async def run_forever(self) -> None:
        log.info("digest_worker_started", tick_s=self._tick_s)
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._tick_s)
            except TimeoutError:
                continue
        log.info("digest_worker_stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        """请求停止并等待当前一轮 flush 结束"""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
