"""分析流水线：提取、下载、优化、生成报告，阶段之间严格串行。"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

from image_audit.core.config import AnalysisConfig
from image_audit.core.extractor import load_records
from image_audit.core.models import AnalysisResult
from image_audit.core.progress import ProgressCallback
from image_audit.core.report import write_report
from image_audit.processing.fetch_stage import FetchStage
from image_audit.processing.fetcher import AiohttpFetcher, Fetcher
from image_audit.processing.optimize_stage import OptimizeStage
from image_audit.processing.optimizer import Optimizer, PillowOptimizer

LOGGER = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    FETCHING = "fetching"
    OPTIMIZING = "optimizing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class AnalysisPipeline:
    """按顺序驱动各阶段；任一致命错误进入 FAILED 并原样抛出，不写报告。"""

    def __init__(
        self,
        config: AnalysisConfig,
        fetcher: Optional[Fetcher] = None,
        optimizer: Optional[Optimizer] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.optimizer = optimizer or PillowOptimizer(config.optimize)
        self.progress_callback = progress_callback
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = []

    async def run(self) -> AnalysisResult:
        try:
            self.config.validate()
            with ThreadPoolExecutor(
                max_workers=self.config.io_workers, thread_name_prefix="image-audit"
            ) as executor:
                return await self._run_stages(executor)
        except Exception:
            self._enter(PipelineState.FAILED)
            raise

    async def _run_stages(self, executor: ThreadPoolExecutor) -> AnalysisResult:
        loop = asyncio.get_running_loop()

        self._enter(PipelineState.EXTRACTING)
        records = await loop.run_in_executor(executor, load_records, self.config)

        self._enter(PipelineState.FETCHING)
        async with contextlib.AsyncExitStack() as stack:
            fetcher = self.fetcher
            if fetcher is None:
                fetcher = await stack.enter_async_context(AiohttpFetcher(self.config.fetch))
            await FetchStage(self.config.fetch, fetcher, executor, self.progress_callback).run(records)

        self._enter(PipelineState.OPTIMIZING)
        soft_failures = await OptimizeStage(
            self.config.optimize, self.optimizer, executor, self.progress_callback
        ).run(records)

        self._enter(PipelineState.REPORTING)
        output_path = await loop.run_in_executor(
            executor, write_report, records, self.config.output_path, self.config.report_columns
        )

        self._enter(PipelineState.DONE)
        return AnalysisResult(records=records, output_path=output_path, soft_failures=soft_failures)

    def _enter(self, state: PipelineState) -> None:
        LOGGER.debug("流水线状态 %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


def analyze_images(
    config: AnalysisConfig,
    progress_callback: ProgressCallback = None,
    fetcher: Optional[Fetcher] = None,
    optimizer: Optional[Optimizer] = None,
) -> AnalysisResult:
    """同步入口：运行完整的分析流水线。"""

    pipeline = AnalysisPipeline(config, fetcher=fetcher, optimizer=optimizer, progress_callback=progress_callback)
    return asyncio.run(pipeline.run())
