"""有界并发扇出：固定数量的 worker 从队列中取任务执行。"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded_fan_out(
    items: Iterable[T],
    handler: Callable[[T], Awaitable[None]],
    limit: int,
) -> None:
    """以最多 ``limit`` 个并发执行 handler，全部完成后返回。

    任一 handler 抛出异常时，取消其余正在执行与排队中的任务，并抛出最先发生的异常。
    """

    if limit <= 0:
        raise ValueError(f"并发上限必须大于 0: {limit}")

    queue: asyncio.Queue[T] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)
    if queue.empty():
        return

    errors: list[BaseException] = []

    async def worker() -> None:
        while not errors:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await handler(item)
            except Exception as exc:
                errors.append(exc)
                raise

    tasks = [asyncio.create_task(worker()) for _ in range(min(limit, queue.qsize()))]
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    if errors:
        LOGGER.debug("扇出中止，取消 %d 个 worker", len(pending))
        raise errors[0]
