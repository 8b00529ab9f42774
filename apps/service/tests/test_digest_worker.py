"""DigestWorker 测试"""

import asyncio
from unittest.mock import AsyncMock

from inzet.notify import FlushReport
from inzet.service.services.digest_worker import DigestWorker


class TestDigestWorker:
    async def test_run_once_returns_report(self):
        scheduler = AsyncMock()
        scheduler.flush_due = AsyncMock(return_value=FlushReport(sent=2, committed=2))
        worker = DigestWorker(scheduler, tick_s=60)

        report = await worker.run_once()

        assert report.sent == 2
        scheduler.flush_due.assert_awaited_once()

    async def test_run_once_swallows_errors(self):
        """单轮失败不影响 worker 继续运行"""
        scheduler = AsyncMock()
        scheduler.flush_due = AsyncMock(side_effect=RuntimeError("database is locked"))
        worker = DigestWorker(scheduler, tick_s=60)

        assert await worker.run_once() is None

    async def test_start_and_stop(self):
        scheduler = AsyncMock()
        scheduler.flush_due = AsyncMock(return_value=FlushReport())
        worker = DigestWorker(scheduler, tick_s=0.01)

        worker.start()
        assert worker.running
        await asyncio.sleep(0.05)
        await worker.stop()

        assert not worker.running
        assert scheduler.flush_due.await_count >= 2

    async def test_keeps_ticking_after_failure(self):
        scheduler = AsyncMock()
        scheduler.flush_due = AsyncMock(
            side_effect=[RuntimeError("boom"), FlushReport(sent=1, committed=1), FlushReport()]
            + [FlushReport()] * 50
        )
        worker = DigestWorker(scheduler, tick_s=0.01)

        worker.start()
        await asyncio.sleep(0.05)
        await worker.stop()

        assert scheduler.flush_due.await_count >= 2
