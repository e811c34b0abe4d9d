# site_mirror/crawler/fetcher.py
"""
Fetcher module: HTTP GET for pages and binary assets with timeouts and retry/backoff.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from aiohttp import ClientError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from site_mirror.config import MirrorSettings
from site_mirror.logger import logger

__all__ = ("Fetcher", "FetchError", "UnsupportedContentError")

_PAGE_TYPES = ("html", "xml", "text/plain")


class FetchError(Exception):
    """HTTP-ответ со статусом >= 400 при загрузке ресурса."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.url = url
        self.status = status


class UnsupportedContentError(ValueError):
    """Страница отдана с Content-Type, который нельзя разобрать как HTML."""

    def __init__(self, url: str, content_type: str) -> None:
        super().__init__(f"unsupported content type {content_type}")
        self.url = url
        self.content_type = content_type


class Fetcher:
    """Handles page and asset downloads over one shared aiohttp session."""

    def __init__(self, settings: MirrorSettings, session: Optional[ClientSession] = None) -> None:
        self.settings = settings
        self.session = session
        self._owns_session = session is None
        self._page_timeout = ClientTimeout(total=settings.page_timeout)
        self._asset_timeout = ClientTimeout(total=settings.asset_timeout)

    async def __aenter__(self) -> Fetcher:
        if self.session is None:
            self.session = ClientSession(
                headers={"User-Agent": self.settings.user_agent},
                raise_for_status=False,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    def _session(self) -> ClientSession:
        if not self.session:
            raise RuntimeError("Session not initialized")
        return self.session

    async def fetch_page(self, url: str) -> Tuple[int, Optional[BeautifulSoup]]:
        """
        Загружает HTML-страницу.

        HTTP-ошибки не бросаются: возвращается ``(status, None)``, решение
        принимает вызывающий. Транспортные ошибки пробрасываются.
        """
        async with self._session().get(url, timeout=self._page_timeout) as resp:
            if resp.status >= 400:
                return resp.status, None
            ctype = resp.headers.get("Content-Type", "").lower()
            if ctype and not any(kind in ctype for kind in _PAGE_TYPES):
                raise UnsupportedContentError(url, ctype)
            text = await resp.text(errors="replace")
        return resp.status, BeautifulSoup(text, "html.parser")

    async def fetch_text(self, url: str, referer: Optional[str] = None) -> str:
        data = await self.fetch_binary(url, referer)
        return data.decode("utf-8", errors="replace")

    async def fetch_binary(self, url: str, referer: Optional[str] = None) -> bytes:
        """
        GET с заголовком Referer и повторными попытками.

        HTTP-статус >= 400 сразу превращается в :class:`FetchError`;
        транспортные сбои повторяются ``retry_times`` раз с линейной
        задержкой ``attempt * retry_backoff``, затем последняя ошибка
        пробрасывается.
        """
        headers = {"Referer": referer} if referer else None
        attempts = self.settings.retry_times
        for attempt in range(1, attempts + 1):
            try:
                async with self._session().get(url, headers=headers, timeout=self._asset_timeout) as resp:
                    if resp.status >= 400:
                        raise FetchError(url, resp.status)
                    return await resp.read()
            except (ClientError, asyncio.TimeoutError) as exc:
                if attempt >= attempts:
                    raise
                logger.debug("fetch.retry attempt=%d url=%s error=%r", attempt, url, exc)
                await asyncio.sleep(attempt * self.settings.retry_backoff)
        # unreachable
        raise RuntimeError("retry loop exhausted")
