"""订阅源刷新请求分发.

导入完成后需要刷新订阅源，但刷新不能与导入事务或请求的生命周期绑定：
请求方只把消息放入队列，由独立的后台 worker 消费并自行处理错误。
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

RefreshHandler = Callable[[str], Awaitable[None]]


class FeedRefreshDispatcher:
    """订阅源刷新队列."""

    def __init__(self, handler: RefreshHandler | None = None) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def set_handler(self, handler: RefreshHandler | None) -> None:
        """设置实际执行刷新的回调（通常由抓取模块注册）."""
        self._handler = handler

    def start(self) -> None:
        """启动后台 worker."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="feed-refresh")
        logger.info("订阅源刷新 worker 已启动")

    async def stop(self) -> None:
        """停止后台 worker，未处理的请求被丢弃."""
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info("订阅源刷新 worker 已停止")

    def request_refresh(self, reason: str) -> None:
        """提交刷新请求，立即返回."""
        self._queue.put_nowait(reason)
        if not self.running:
            logger.warning(f"刷新 worker 未运行，请求已排队: {reason}")

    async def join(self) -> None:
        """等待队列中的请求全部处理完."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            reason = await self._queue.get()
            try:
                if self._handler is None:
                    logger.info(f"未注册刷新处理器，忽略刷新请求: {reason}")
                else:
                    await self._handler(reason)
                    logger.info(f"订阅源刷新完成: {reason}")
            except Exception:
                logger.exception(f"订阅源刷新失败: {reason}")
            finally:
                self._queue.task_done()
