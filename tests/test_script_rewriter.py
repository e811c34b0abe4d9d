# File: tests/test_script_rewriter.py
"""Тесты переписывания ссылок и извлечения ресурсов из текста скриптов."""
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from site_mirror.rewriter.script import (
    NAVIGATION_MATCHERS,
    ScriptRewriter,
    sanitize_js_url,
    select_matches,
)

PAGE = "https://example.com/a/b.html"


class RecordingDownload:
    def __init__(self, root: Path):
        self.root = root
        self.calls: List[Tuple[str, Optional[str], str]] = []

    async def __call__(self, url, referer, kind="binary"):
        self.calls.append((url, referer, kind))
        return self.root / "asset"


@pytest.fixture()
def download(tmp_path) -> RecordingDownload:
    return RecordingDownload(tmp_path)


@pytest.fixture()
def rewriter(job_context, download) -> ScriptRewriter:
    return ScriptRewriter(job_context, download)


def test_earliest_match_wins_over_inner_attribute():
    chosen = select_matches('location.href="/a"', NAVIGATION_MATCHERS)
    assert [matcher.name for matcher, _ in chosen] == ["location-href"]


def test_sanitize_js_url():
    assert sanitize_js_url("\\/path\\/x.png\\") == "/path/x.png"
    assert sanitize_js_url(" /a\\?b\\=1 ") == "/a?b=1"


def test_location_href_rewritten_to_site_root(rewriter, job_context):
    out = rewriter.rewrite_links('location.href="/news/item";', PAGE)
    assert out == 'location.href="/news/item.html";'
    assert "https://example.com/news/item" in job_context.pending_pages


def test_cross_host_navigation_becomes_root(rewriter, job_context):
    out = rewriter.rewrite_links("window.open('https://other.org/page')", PAGE)
    assert out == "window.open('/')"
    assert "https://other.org/page" in job_context.pending_pages


def test_cross_host_absolute_literal_untouched(rewriter):
    src = 'var cdn = "https://cdn.other.org/lib/x.png";'
    assert rewriter.rewrite_links(src, PAGE) == src


def test_same_host_absolute_literal_becomes_root_relative(rewriter):
    out = rewriter.rewrite_links('var u = "https://example.com/img/logo.png";', PAGE)
    assert out == 'var u = "/img/logo.png";'


def test_escaped_attribute_in_html_fragment(rewriter, job_context):
    src = r'html = "<a href=\"/contact\">Contact</a>";'
    out = rewriter.rewrite_links(src, PAGE)
    assert out == r'html = "<a href=\"/contact.html\">Contact</a>";'
    assert "https://example.com/contact" in job_context.pending_pages


def test_index_page_collapsed(rewriter):
    out = rewriter.rewrite_links("el.innerHTML = '<a href=\"/docs/index.html\">x</a>'", PAGE)
    assert '<a href="/docs/">' in out


def test_blank_text_unchanged(rewriter):
    assert rewriter.rewrite_links("   ", PAGE) == "   "


def test_collect_pending_pages(rewriter, job_context):
    src = 'var a = "/shop/"; var b = "/login.do?x=1"; var c = "/img/a.png"; var d = "//cdn.x/y/";'
    added = rewriter.collect_pending_pages(src, PAGE)
    assert added == 2
    assert job_context.pending_pages == {
        "https://example.com/shop/",
        "https://example.com/login.do?x=1",
    }


def test_collect_pending_keeps_server_page_query(rewriter, job_context):
    rewriter.collect_pending_pages("go('/app/view.jsp?id=7&tab=2')", PAGE)
    assert job_context.pending_pages == {"https://example.com/app/view.jsp?id=7&tab=2"}


@pytest.mark.asyncio()
async def test_extract_assets_once_per_script(rewriter, download):
    src = (
        'var img = "/images/a.png";\n'
        "document.write('<link href=\"/css/x.css\" rel=\"stylesheet\">');\n"
    )
    script_url = "https://example.com/js/app.js"

    assert await rewriter.extract_assets(src, script_url, PAGE) is True
    assert download.calls == [
        ("https://example.com/images/a.png", PAGE, "binary"),
        ("https://example.com/css/x.css", PAGE, "binary"),
    ]

    assert await rewriter.extract_assets(src, script_url, PAGE) is False
    assert len(download.calls) == 2


@pytest.mark.asyncio()
async def test_extract_assets_bare_image_token_is_rooted(rewriter, download):
    await rewriter.extract_assets('bg = "static/hero.jpg";', "https://example.com/js/a.js", None)
    assert download.calls == [("https://example.com/static/hero.jpg", None, "binary")]


@pytest.mark.asyncio()
async def test_extract_assets_uses_claim_key(rewriter, download, job_context):
    await rewriter.extract_assets(b'x = "/a.gif"', PAGE, PAGE, claim_key=PAGE)
    assert not job_context.dedup.try_claim_script(PAGE)
    assert download.calls == [("https://example.com/a.gif", PAGE, "binary")]
