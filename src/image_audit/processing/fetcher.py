"""HTTP 下载协作者。"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Optional, Protocol

import aiohttp

from image_audit.core.config import FetchConfig
from image_audit.core.exceptions import FetchError

LOGGER = logging.getLogger(__name__)


class Fetcher(Protocol):
    """按 URL 获取原始字节；失败时抛出 FetchError。"""

    async def fetch(self, url: str) -> bytes:
        ...


class AiohttpFetcher:
    """基于 aiohttp 的下载实现，需在 ``async with`` 中使用以复用连接。"""

    def __init__(self, config: FetchConfig) -> None:
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AiohttpFetcher":
        connector = aiohttp.TCPConnector(limit=self.config.concurrency)
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent},
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str) -> bytes:
        if self._session is None:
            raise RuntimeError("AiohttpFetcher 必须在 async with 语句中使用")

        LOGGER.debug("GET %s", url)
        try:
            async with self._session.get(url) as response:
                if not 200 <= response.status < 300:
                    try:
                        phrase = HTTPStatus(response.status).phrase
                    except ValueError:
                        phrase = "Unknown"
                    raise FetchError(url, f"HTTP {response.status}: {phrase}")
                return await response.read()
        except asyncio.TimeoutError as exc:
            raise FetchError(url, "请求超时") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(url, f"连接错误: {exc}") from exc
