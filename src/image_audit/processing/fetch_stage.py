"""下载阶段：把每条记录的图片保存到按内容哈希分区的缓存目录。"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from pathlib import Path
from typing import Optional, Sequence

from image_audit.core.config import FetchConfig
from image_audit.core.exceptions import FetchError
from image_audit.core.models import ImageRecord
from image_audit.core.progress import ProgressCallback, ProgressUpdate
from image_audit.processing.fanout import bounded_fan_out
from image_audit.processing.fetcher import Fetcher

LOGGER = logging.getLogger(__name__)

STAGE_NAME = "fetch"


def group_by_hash(records: Sequence[ImageRecord]) -> dict[str, list[ImageRecord]]:
    """按 content_hash 分组，同一远程文件只处理一次。"""

    groups: dict[str, list[ImageRecord]] = {}
    for record in records:
        groups.setdefault(record.content_hash, []).append(record)
    return groups


class FetchStage:
    """以有界并发下载全部图片，任一失败立即终止整个阶段。"""

    def __init__(
        self,
        config: FetchConfig,
        fetcher: Fetcher,
        executor: Optional[Executor] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.executor = executor
        self.progress_callback = progress_callback

    async def run(self, records: Sequence[ImageRecord]) -> None:
        groups = group_by_hash(records)
        total = len(groups)
        completed = 0
        LOGGER.info("开始下载 %d 个图片（%d 条记录）", total, len(records))
        self._emit(completed, total)

        async def handle(group: list[ImageRecord]) -> None:
            nonlocal completed
            cache_path, size = await self.fetch_one(group[0])
            for record in group:
                record.mark_fetched(cache_path, size)
            completed += 1
            self._emit(completed, total, group[0].file_name)

        await bounded_fan_out(groups.values(), handle, self.config.concurrency)
        LOGGER.info("下载阶段完成")

    async def fetch_one(self, record: ImageRecord) -> tuple[Path, int]:
        """下载单张图片，返回缓存路径与字节数。"""

        folder = self.config.cache_root / record.content_hash
        destination = folder / record.file_name

        try:
            await self._run_blocking(_ensure_directory, folder)
        except OSError as exc:
            raise FetchError(record.source_url, f"无法创建缓存目录 {folder}: {exc}") from exc

        if self.config.reuse_cache:
            cached_size = await self._run_blocking(_existing_size, destination)
            if cached_size:
                LOGGER.info("使用已缓存文件 %s", destination)
                return destination, cached_size

        try:
            payload = await asyncio.wait_for(self.fetcher.fetch(record.source_url), self.config.timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(record.source_url, "请求超时") from exc

        try:
            size = await self._run_blocking(_write_file, destination, payload)
        except OSError as exc:
            raise FetchError(record.source_url, f"写入缓存失败 {destination}: {exc}") from exc

        LOGGER.debug("已下载 %s (%d 字节)", record.source_url, size)
        return destination, size

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    def _emit(self, completed: int, total: int, message: Optional[str] = None) -> None:
        if not self.progress_callback:
            return
        self.progress_callback(ProgressUpdate(stage=STAGE_NAME, total=total, completed=completed, message=message))


def _ensure_directory(folder: Path) -> None:
    # 目录已存在不算错误
    folder.mkdir(parents=True, exist_ok=True)


def _existing_size(path: Path) -> int:
    if not path.is_file():
        return 0
    return path.stat().st_size


def _write_file(path: Path, payload: bytes) -> int:
    path.write_bytes(payload)
    return path.stat().st_size
