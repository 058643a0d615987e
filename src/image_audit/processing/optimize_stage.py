"""优化阶段：逐张调用优化器并计算节省量，单张失败不影响整体。"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import Optional, Sequence

from image_audit.core.config import OptimizeConfig
from image_audit.core.exceptions import ImageOptimizeError
from image_audit.core.models import ImageRecord
from image_audit.core.progress import ProgressCallback, ProgressUpdate
from image_audit.processing.fanout import bounded_fan_out
from image_audit.processing.fetch_stage import group_by_hash
from image_audit.processing.optimizer import Optimizer

LOGGER = logging.getLogger(__name__)

STAGE_NAME = "optimize"


class OptimizeStage:
    """以有界并发优化已下载的图片，返回软失败的记录。"""

    def __init__(
        self,
        config: OptimizeConfig,
        optimizer: Optimizer,
        executor: Optional[Executor] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.config = config
        self.optimizer = optimizer
        self.executor = executor
        self.progress_callback = progress_callback

    async def run(self, records: Sequence[ImageRecord]) -> list[ImageRecord]:
        soft_failures: list[ImageRecord] = []

        pending: list[ImageRecord] = []
        for record in records:
            if record.fetched and record.cache_path is not None:
                pending.append(record)
            else:
                record.optimize_note = "未下载"
                soft_failures.append(record)

        groups = group_by_hash(pending)
        total = len(groups)
        completed = 0
        LOGGER.info("开始优化 %d 个图片", total)
        self._emit(completed, total)

        async def handle(group: list[ImageRecord]) -> None:
            nonlocal completed
            note = await self.optimize_group(group)
            if note is not None:
                LOGGER.warning("优化失败 %s: %s", group[0].source_url, note)
                for record in group:
                    record.optimize_note = note
                soft_failures.extend(group)
            completed += 1
            self._emit(completed, total, group[0].file_name)

        await bounded_fan_out(groups.values(), handle, self.config.concurrency)
        LOGGER.info("优化阶段完成：%d 个软失败", len(soft_failures))
        return soft_failures

    async def optimize_group(self, group: list[ImageRecord]) -> Optional[str]:
        """优化同一哈希下的图片，成功返回 None，失败返回原因。"""

        leader = group[0]
        output_dir = self.config.output_root / leader.content_hash
        loop = asyncio.get_running_loop()

        future = loop.run_in_executor(self.executor, self.optimizer.optimize, leader.cache_path, output_dir)
        done, _ = await asyncio.wait({future}, timeout=self.config.timeout)
        if not done:
            # 线程无法中断：等它结束后再释放并发名额，结果丢弃
            await asyncio.wait({future})
            if not future.cancelled():
                future.exception()
            return "优化超时"

        try:
            files = future.result()
        except ImageOptimizeError as exc:
            return str(exc)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("优化器异常：%s", leader.source_url)
            return f"优化器异常: {exc}"

        if not files:
            return "优化器未产出文件"

        first = files[0]
        try:
            stat = await loop.run_in_executor(self.executor, first.path.stat)
        except OSError as exc:
            return f"无法读取优化结果 {first.path}: {exc}"

        for record in group:
            record.mark_optimized(first.path, stat.st_size)
        return None

    def _emit(self, completed: int, total: int, message: Optional[str] = None) -> None:
        if not self.progress_callback:
            return
        self.progress_callback(ProgressUpdate(stage=STAGE_NAME, total=total, completed=completed, message=message))
