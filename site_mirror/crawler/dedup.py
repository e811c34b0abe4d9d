# site_mirror/crawler/dedup.py
"""
Per-job claim registry for assets and scanned scripts.
"""
from __future__ import annotations

from typing import Set


class DedupStore:
    """Remembers which asset URLs were scheduled and which scripts were scanned.

    Resource handling inside a job is sequential, so plain sets give the
    check-and-set semantics; the store is never shared between jobs.
    """

    def __init__(self) -> None:
        self._assets: Set[str] = set()
        self._scripts: Set[str] = set()
        self._failed: Set[str] = set()

    def try_claim_asset(self, url: str) -> bool:
        """True only the first time ``url`` is claimed within the job."""
        if url in self._assets:
            return False
        self._assets.add(url)
        return True

    def try_claim_script(self, url: str) -> bool:
        """True only the first time ``url`` is scanned for embedded assets."""
        if url in self._scripts:
            return False
        self._scripts.add(url)
        return True

    def has_asset(self, url: str) -> bool:
        return url in self._assets

    def mark_failed(self, url: str) -> None:
        self._failed.add(url)

    def has_failed(self, url: str) -> bool:
        return url in self._failed

    @property
    def asset_count(self) -> int:
        return len(self._assets)

    @property
    def script_count(self) -> int:
        return len(self._scripts)
