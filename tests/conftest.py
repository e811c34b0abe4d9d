# File: tests/conftest.py
from typing import Dict, List, Optional, Tuple

import pytest

from site_mirror.config import CrawlConfig, MirrorSettings
from site_mirror.crawler.fetcher import FetchError
from site_mirror.crawler.models import JobContext, JobSummary


@pytest.fixture()
def settings(tmp_path) -> MirrorSettings:
    """
    Settings for tests: output under tmp_path, small pool, no retry delays.
    """
    return MirrorSettings(
        output_root=tmp_path / "out",
        workers=2,
        retry_times=2,
        retry_backoff=0,
        page_timeout=5,
        asset_timeout=5,
    )


@pytest.fixture()
def crawl_config() -> CrawlConfig:
    return CrawlConfig(start_url="https://example.com/", title_suffix="Mirror")


@pytest.fixture()
def job_context(tmp_path, crawl_config) -> JobContext:
    return JobContext(config=crawl_config, output_dir=tmp_path / "out" / "example.com")


def make_summary(**overrides) -> JobSummary:
    data = dict(
        output_directory="/tmp/out/example.com",
        pages_downloaded=1,
        assets_downloaded=0,
        elapsed=0.1,
        errors=(),
        pages=("https://example.com/",),
    )
    data.update(overrides)
    return JobSummary(**data)


class FakeFetcher:
    """
    In-memory stand-in for Fetcher: serves ``resources`` by URL path,
    anything else is an HTTP 404.
    """

    def __init__(self, resources: Dict[str, bytes]):
        self.resources = resources
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def fetch_binary(self, url: str, referer: Optional[str] = None) -> bytes:
        self.calls.append((url, referer))
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        body = self.resources.get("/" + path)
        if body is None:
            raise FetchError(url, 404)
        return body

    async def fetch_text(self, url: str, referer: Optional[str] = None) -> str:
        return (await self.fetch_binary(url, referer)).decode("utf-8")

    def count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)


@pytest.fixture()
def fake_fetcher_factory():
    return FakeFetcher


@pytest.fixture()
def summary_factory():
    return make_summary
