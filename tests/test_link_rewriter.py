# File: tests/test_link_rewriter.py
"""Тесты переписывания страницы целиком на фиктивном загрузчике."""
import pytest
from bs4 import BeautifulSoup

from site_mirror.crawler.paths import map_to_local_path
from site_mirror.rewriter.css import rewrite_css_urls
from site_mirror.rewriter.html import LinkRewriter, split_srcset

PAGE_URL = "https://example.com/"

PAGE = """<html><head><title>Home</title>
<meta name="keywords" content="k"><meta name="viewport" content="width=device-width">
<meta charset="utf-8">
<link rel="shortcut icon" href="/old.ico">
<link rel="stylesheet" href="/css/site.css">
<link rel="canonical" href="https://example.com/">
</head><body>
<div class="wrap"><p>Hello</p></div>
<img src="/a.png"><img src="/a.png"><img src="/missing.png">
<img data-src="/lazy.jpg">
<img srcset="/a.png 1x, /missing.png 2x">
<a href="/about#team">About</a>
<a href="https://other.org/">Out</a>
<a href="/files/doc.pdf">Doc</a>
<a href="mailto:me@example.com">Mail</a>
<button onclick="location.href='/contact'">Go</button>
<script>var hero = "/img/hero.png";</script>
</body></html>"""

RESOURCES = {
    "/css/site.css": b"p{background:url(/img/bg.png)} h1{background:url(data:image/png;base64,AAA)}",
    "/a.png": b"png",
    "/img/bg.png": b"bg",
    "/img/hero.png": b"hero",
    "/lazy.jpg": b"lazy",
    "/files/doc.pdf": b"pdf",
}


@pytest.fixture()
def fetcher(fake_fetcher_factory):
    return fake_fetcher_factory(RESOURCES)


@pytest.fixture()
def rewriter(job_context, fetcher) -> LinkRewriter:
    return LinkRewriter(job_context, fetcher)


async def _rewrite(rewriter, job_context):
    local_path = map_to_local_path(job_context.output_dir, PAGE_URL, True)
    links = await rewriter.rewrite_page(BeautifulSoup(PAGE, "html.parser"), PAGE_URL, local_path)
    saved = BeautifulSoup(local_path.read_text(encoding="utf-8"), "html.parser")
    return links, saved, local_path


@pytest.mark.asyncio()
async def test_rewrite_page_links_and_resources(rewriter, job_context, fetcher):
    links, saved, local_path = await _rewrite(rewriter, job_context)
    site_root = local_path.parent

    assert links == ["https://example.com/about", "https://other.org/"]

    imgs = saved.find_all("img")
    assert [img.get("src") for img in imgs[:3]] == ["a.png", "a.png", "/missing.png"]
    assert imgs[3]["data-src"] == "lazy.jpg"
    assert imgs[3]["src"] == "lazy.jpg"
    assert imgs[4]["srcset"] == "a.png 1x, /missing.png 2x"
    assert fetcher.count("https://example.com/a.png") == 1
    assert fetcher.count("https://example.com/missing.png") == 1

    hrefs = [a["href"] for a in saved.find_all("a")]
    assert hrefs[:4] == ["about.html#team", "/", "files/doc.pdf", "mailto:me@example.com"]
    assert (site_root / "files" / "doc.pdf").read_bytes() == b"pdf"

    css_link = saved.find("link", rel="stylesheet")
    assert css_link["href"] == "css/site.css"
    css = (site_root / "css" / "site.css").read_text(encoding="utf-8")
    assert "url(../img/bg.png)" in css
    assert "url(data:image/png;base64,AAA)" in css
    assert saved.find("link", rel="canonical")["href"] == "https://example.com/"

    assert "location.href='/contact.html'" in saved.find("button")["onclick"]
    assert "https://example.com/contact" in job_context.pending_pages
    assert (site_root / "img" / "hero.png").read_bytes() == b"hero"

    assert job_context.stats.errors == ["https://example.com/missing.png -> HTTP 404"]
    assert job_context.stats.assets_downloaded == 6


@pytest.mark.asyncio()
async def test_rewrite_page_site_assets_and_augmentation(rewriter, job_context):
    _, saved, local_path = await _rewrite(rewriter, job_context)
    site_root = local_path.parent

    icons = [link for link in saved.find_all("link") if "icon" in (link.get("rel") or [])]
    assert len(icons) == 1
    assert icons[0]["href"] == "favicon.ico"
    assert (site_root / "favicon.ico").is_file()

    scripts = [s.get("src") for s in saved.head.find_all("script")]
    assert scripts == ["_mirror/mirror.js", "_mirror/home.js"]
    assert (site_root / "_mirror" / "home.js").is_file()

    assert saved.title.string == "Home-Mirror"
    heading = saved.find("h1", class_="site-mirror-title")
    assert heading is not None and heading.string == "Home-Mirror"
    assert heading.parent.get("class") == ["wrap"]

    names = {m.get("name") for m in saved.find_all("meta")}
    assert "keywords" not in names
    assert "viewport" in names
    assert saved.find("meta", charset=True) is not None

    assert saved.body.find_all("a")[-1]["href"] == "/sitemap.xml"


@pytest.mark.asyncio()
async def test_existing_site_assets_not_overwritten(rewriter, job_context):
    site_root = job_context.output_dir / "example.com"
    (site_root / "_mirror").mkdir(parents=True)
    (site_root / "_mirror" / "mirror.js").write_text("// custom", encoding="utf-8")

    await _rewrite(rewriter, job_context)

    assert (site_root / "_mirror" / "mirror.js").read_text(encoding="utf-8") == "// custom"


@pytest.mark.asyncio()
async def test_download_dedup_and_failure_memory(rewriter, job_context, fetcher):
    first = await rewriter.download("https://example.com/a.png", PAGE_URL)
    second = await rewriter.download("https://example.com/a.png", PAGE_URL)
    assert first == second == job_context.output_dir / "example.com" / "a.png"
    assert fetcher.count("https://example.com/a.png") == 1

    assert await rewriter.download("https://example.com/gone.png", PAGE_URL) is None
    assert await rewriter.download("https://example.com/gone.png", PAGE_URL) is None
    assert fetcher.count("https://example.com/gone.png") == 1
    assert len(job_context.stats.errors) == 1

    assert await rewriter.download("https://example.com/sitemap.xml", PAGE_URL) is None
    rewriter.site_assets.ensure(job_context.output_dir / "example.com")
    assert await rewriter.download("https://example.com/sitemap.xml", PAGE_URL) is not None
    assert fetcher.count("https://example.com/sitemap.xml") == 0


@pytest.mark.asyncio()
async def test_rewrite_css_urls_keeps_quotes(tmp_path):
    calls = []

    async def download(url, referer, kind="binary"):
        calls.append((url, kind))
        if url.endswith("broken.png"):
            return None
        return tmp_path / "assets" / url.rsplit("/", 1)[-1]

    css = "a{background:url('/i/x.png')} b{background:url(\"/broken.png\")} @import url(/more.css);"
    out = await rewrite_css_urls(css, "https://example.com/", tmp_path / "css", download)

    assert "url('../assets/x.png')" in out
    assert 'url("/broken.png")' in out
    assert "url(../assets/more.css)" in out
    assert ("https://example.com/more.css", "stylesheet") in calls


@pytest.mark.parametrize(
    "value,expected",
    [
        ("/a.png 1x, /b.png 2x", [("/a.png", "1x"), ("/b.png", "2x")]),
        ("/a.png 1x,/b.png 2x", [("/a.png", "1x"), ("/b.png", "2x")]),
        ("/a.png, /b.png 480w", [("/a.png", ""), ("/b.png", "480w")]),
        (
            "data:image/png;base64,AAAA 1x, /a.png 2x",
            [("data:image/png;base64,AAAA", "1x"), ("/a.png", "2x")],
        ),
        (" , ", []),
    ],
)
def test_split_srcset(value, expected):
    assert split_srcset(value) == expected


@pytest.mark.asyncio()
async def test_srcset_keeps_data_candidates(job_context, fake_fetcher_factory):
    fetcher = fake_fetcher_factory({"/a.png": b"png"})
    rewriter = LinkRewriter(job_context, fetcher)
    local_path = map_to_local_path(job_context.output_dir, PAGE_URL, True)
    html = '<html><body><img srcset="data:image/png;base64,AAAA 1x, /a.png 2x"></body></html>'

    await rewriter.rewrite_page(BeautifulSoup(html, "html.parser"), PAGE_URL, local_path)

    saved = BeautifulSoup(local_path.read_text(encoding="utf-8"), "html.parser")
    assert saved.img["srcset"] == "data:image/png;base64,AAAA 1x, a.png 2x"
    assert job_context.stats.errors == []
    assert fetcher.count("https://example.com/AAAA") == 0


@pytest.mark.asyncio()
async def test_other_hosts_site_files_are_downloaded(job_context, fake_fetcher_factory):
    fetcher = fake_fetcher_factory({"/favicon.ico": b"cdn-icon"})
    rewriter = LinkRewriter(job_context, fetcher)
    rewriter.site_assets.ensure(job_context.output_dir / "example.com")

    local = await rewriter.download("https://cdn.example.net/favicon.ico", PAGE_URL)

    assert local == job_context.output_dir / "cdn.example.net" / "favicon.ico"
    assert local.read_bytes() == b"cdn-icon"
    assert fetcher.count("https://cdn.example.net/favicon.ico") == 1

    own = await rewriter.download("https://example.com/favicon.ico", PAGE_URL)
    assert own == job_context.output_dir / "example.com" / "favicon.ico"
    assert fetcher.count("https://example.com/favicon.ico") == 0
