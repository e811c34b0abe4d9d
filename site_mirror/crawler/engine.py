# site_mirror/crawler/engine.py
"""
CrawlEngine: level-synchronized breadth-first crawl of one mirroring job.

Pages are fetched and rewritten strictly one at a time in level order;
depth bounds and sitemap determinism depend on it.  The engine never lets
an ordinary failure escape: setup problems produce a fatal summary, page
and resource problems are collected in the summary's error list.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from pathlib import Path
from typing import Deque, Iterable, List, Optional, Set, Tuple

from aiohttp import ClientError

from site_mirror.config import CrawlConfig, MirrorSettings
from site_mirror.crawler.fetcher import Fetcher
from site_mirror.crawler.models import JobContext, JobSummary
from site_mirror.crawler.paths import is_page_like, map_to_local_path, sanitize_segment
from site_mirror.logger import logger
from site_mirror.rewriter.html import LinkRewriter
from site_mirror.site_assets import SiteAssets
from site_mirror.sitemap import generate_sitemap
from site_mirror.utils import host_of, is_sitemap_url, normalize_url, same_host

__all__ = ("CrawlEngine", "MirrorSetupError", "run_mirror")

_PAGE_ERRORS = (ClientError, asyncio.TimeoutError, OSError, ValueError)


class MirrorSetupError(Exception):
    """Задание невозможно начать: неверный стартовый URL или нет каталога вывода."""


class CrawlEngine:
    """Drives one job from its start URL to a :class:`JobSummary`."""

    def __init__(
        self,
        config: CrawlConfig,
        settings: MirrorSettings,
        fetcher: Fetcher,
        cancel_event: Optional[asyncio.Event] = None,
        site_assets: Optional[SiteAssets] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.fetcher = fetcher
        self.cancel_event = cancel_event
        self.site_assets = site_assets or SiteAssets(settings.site_assets_dir)
        self.visited: Set[str] = set()

    # ------------------------------------------------------------------ #
    # setup                                                              #
    # ------------------------------------------------------------------ #
    def _output_name(self, host: str) -> str:
        name = sanitize_segment(self.config.output_name) if self.config.output_name else ""
        if not name.strip("."):
            name = sanitize_segment(host)
        return name

    def prepare(self) -> Tuple[str, Path]:
        """Нормализует стартовый URL и создаёт каталог вывода задания."""
        try:
            start_url = normalize_url(self.config.start_url)
        except ValueError as exc:
            raise MirrorSetupError(f"{self.config.start_url} -> invalid start URL: {exc}") from exc
        output_dir = Path(self.settings.output_root) / self._output_name(host_of(start_url))
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MirrorSetupError(f"{output_dir} -> cannot create output directory: {exc}") from exc
        return start_url, output_dir

    # ------------------------------------------------------------------ #
    # run                                                                #
    # ------------------------------------------------------------------ #
    async def run(self) -> JobSummary:
        started = time.monotonic()
        try:
            start_url, output_dir = self.prepare()
        except MirrorSetupError as exc:
            logger.error("job.fatal %s", exc)
            return JobSummary(
                output_directory=None,
                pages_downloaded=0,
                assets_downloaded=0,
                elapsed=time.monotonic() - started,
                errors=(str(exc),),
                pages=(),
                fatal=True,
            )

        ctx = JobContext(
            config=self.config,
            output_dir=output_dir,
            cancel_event=self.cancel_event,
            started=started,
        )
        rewriter = LinkRewriter(ctx, self.fetcher, self.site_assets)
        cancelled = await self._crawl(ctx, rewriter, start_url)

        host = host_of(start_url)
        try:
            generate_sitemap(output_dir, host, ctx.stats.saved_pages, self.config.sitemap_domain)
        except OSError as exc:
            ctx.stats.add_error(f"{output_dir / host / 'sitemap.xml'} -> {exc}")

        summary = ctx.summary(cancelled=cancelled)
        logger.info(
            "job.done url=%s pages=%d assets=%d errors=%d cancelled=%s",
            start_url, summary.pages_downloaded, summary.assets_downloaded, len(summary.errors), cancelled,
        )
        return summary

    async def _crawl(self, ctx: JobContext, rewriter: LinkRewriter, start_url: str) -> bool:
        """BFS over pages; returns True when stopped by a cancellation request."""
        max_depth, max_pages = self.config.max_depth, self.config.max_pages
        queue: Deque[str] = deque([start_url])
        depth = 0
        current_level = 1
        next_level = 0
        logger.info("bfs.start url=%s max_depth=%d max_pages=%d", start_url, max_depth, max_pages)

        while queue and ctx.stats.pages_downloaded < max_pages and depth <= max_depth:
            if ctx.cancel_requested:
                logger.info("bfs.cancelled url=%s pages=%d", start_url, ctx.stats.pages_downloaded)
                return True
            url = queue.popleft()
            current_level -= 1

            if url not in self.visited:
                self.visited.add(url)
                links = await self._visit(ctx, rewriter, url, depth)
                discovered = ctx.drain_pending_pages()
                if links is not None:
                    if self.config.debug_only_home:
                        break
                    for target in self._frontier(links + discovered, start_url):
                        queue.append(target)
                        next_level += 1

            if current_level == 0:
                depth += 1
                current_level, next_level = next_level, 0
                logger.debug("bfs.level-end depth=%d queue=%d", depth, len(queue))

        logger.info("bfs.end pages=%d depth=%d remaining=%d", ctx.stats.pages_downloaded, depth, len(queue))
        return False

    async def _visit(self, ctx: JobContext, rewriter: LinkRewriter, url: str, depth: int) -> Optional[List[str]]:
        """Fetch, rewrite and save one page. None means nothing was saved."""
        logger.info("bfs.visit depth=%d url=%s", depth, url)
        try:
            status, soup = await self.fetcher.fetch_page(url)
            if status == 404:
                logger.info("bfs.skip-404 url=%s", url)
                return None
            if soup is None:
                ctx.stats.add_error(f"{url} -> HTTP {status}")
                return None
            local_path = map_to_local_path(ctx.output_dir, url, True)
            links = await rewriter.rewrite_page(soup, url, local_path)
        except _PAGE_ERRORS as exc:
            ctx.stats.add_error(f"{url} -> {str(exc) or exc.__class__.__name__}")
            return None
        ctx.stats.add_page(url)
        return links

    def _frontier(self, candidates: Iterable[str], start_url: str) -> List[str]:
        accepted: List[str] = []
        for target in dict.fromkeys(candidates):
            if is_sitemap_url(target):
                continue
            if self.config.same_domain and not same_host(target, start_url):
                logger.debug("bfs.skip-xdomain url=%s", target)
                continue
            if not is_page_like(target) or target in self.visited:
                continue
            accepted.append(target)
        return accepted


async def run_mirror(
    config: CrawlConfig,
    settings: MirrorSettings,
    cancel_event: Optional[asyncio.Event] = None,
    fetcher: Optional[Fetcher] = None,
    site_assets: Optional[SiteAssets] = None,
) -> JobSummary:
    """Запускает одно задание; без переданного ``fetcher`` открывает собственную сессию."""
    if fetcher is not None:
        return await CrawlEngine(config, settings, fetcher, cancel_event, site_assets).run()
    async with Fetcher(settings) as own:
        return await CrawlEngine(config, settings, own, cancel_event, site_assets).run()
