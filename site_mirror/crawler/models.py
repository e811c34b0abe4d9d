# site_mirror/crawler/models.py
"""
Data models for one mirroring job.

``JobContext`` is the control state threaded through the pipeline (claims,
pending pages, cancellation); ``JobStats`` accumulates the report while the
job runs; ``JobSummary`` is the frozen report handed back to callers.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from site_mirror.config import CrawlConfig
from site_mirror.crawler.dedup import DedupStore
from site_mirror.logger import logger


@dataclass(frozen=True, slots=True)
class JobSummary:
    """Immutable outcome of a job."""

    output_directory: Optional[str]
    pages_downloaded: int
    assets_downloaded: int
    elapsed: float
    errors: Tuple[str, ...]
    pages: Tuple[str, ...]
    fatal: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.fatal and not self.cancelled


@dataclass(slots=True)
class JobStats:
    """Mutable counters and error list owned by the running job."""

    pages_downloaded: int = 0
    assets_downloaded: int = 0
    errors: List[str] = field(default_factory=list)
    saved_pages: Set[str] = field(default_factory=set)

    def add_error(self, message: str) -> None:
        logger.warning("job.error %s", message)
        self.errors.append(message)

    def add_page(self, url: str) -> None:
        self.saved_pages.add(url)
        self.pages_downloaded += 1


@dataclass(slots=True)
class JobContext:
    """Scratch state of one job: output layout, claims, pending pages."""

    config: CrawlConfig
    output_dir: Path
    dedup: DedupStore = field(default_factory=DedupStore)
    stats: JobStats = field(default_factory=JobStats)
    pending_pages: Set[str] = field(default_factory=set)
    cancel_event: Optional[asyncio.Event] = None
    started: float = field(default_factory=time.monotonic)

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def add_pending_page(self, url: Optional[str]) -> None:
        if url:
            self.pending_pages.add(url)

    def drain_pending_pages(self) -> List[str]:
        pages = sorted(self.pending_pages)
        self.pending_pages.clear()
        return pages

    def summary(self, *, fatal: bool = False, cancelled: bool = False) -> JobSummary:
        return JobSummary(
            output_directory=str(self.output_dir.resolve()) if not fatal else None,
            pages_downloaded=self.stats.pages_downloaded,
            assets_downloaded=self.stats.assets_downloaded,
            elapsed=time.monotonic() - self.started,
            errors=tuple(self.stats.errors),
            pages=tuple(sorted(self.stats.saved_pages)),
            fatal=fatal,
            cancelled=cancelled,
        )
