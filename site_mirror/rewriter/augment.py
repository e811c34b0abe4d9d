# site_mirror/rewriter/augment.py
"""
Page augmentation applied after link rewriting: title suffix, injected
heading, ``<meta>`` allow-list and the sitemap link.
"""
from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup, Tag

__all__ = (
    "KEEP_META_NAMES",
    "HEADING_CLASS",
    "filter_meta",
    "compose_title",
    "apply_title",
    "insert_heading",
    "ensure_sitemap_link",
    "augment_page",
)

KEEP_META_NAMES = frozenset({
    "district",
    "viewport",
    "format-detection",
    "theme-color",
    "renderer",
    "referrer",
    "apple-mobile-web-app-capable",
    "apple-mobile-web-app-status-bar-style",
    "description",
})

HEADING_CLASS = "site-mirror-title"
HEADING_STYLE = "margin:0;font-size:inherit;font-weight:inherit;"
SITEMAP_HREF = "/sitemap.xml"
SITEMAP_TEXT = "Sitemap"

_GRID_COLUMN = (
    '.row > [class*="col-"], [class*="col-sm-"], [class*="col-md-"], '
    '[class*="col-lg-"], [class*="col-xl-"]'
)

# raw-text, template and void elements cannot hold a visible heading
_NO_HEADING_TAGS = frozenset({
    "script", "noscript", "style", "template", "link", "meta",
    "br", "hr", "img", "input", "iframe",
})


def _keep_meta(meta: Tag) -> bool:
    if meta.has_attr("http-equiv") or meta.has_attr("charset"):
        return True
    name = (meta.get("name") or "").strip().lower()
    return bool(name) and (name in KEEP_META_NAMES or name.startswith("msapplication-"))


def filter_meta(soup: BeautifulSoup) -> int:
    """Удаляет все ``<meta>`` вне белого списка; возвращает число удалённых."""
    scope = soup.head if soup.head is not None else soup
    removed = 0
    for meta in scope.find_all("meta"):
        if not _keep_meta(meta):
            meta.decompose()
            removed += 1
    return removed


def compose_title(original: str, suffix: Optional[str]) -> str:
    """``original-suffix``; без суффикса исходный заголовок, без заголовка суффикс."""
    original = (original or "").strip()
    if not suffix:
        return original
    return f"{original}-{suffix}" if original else suffix


def apply_title(soup: BeautifulSoup, suffix: Optional[str]) -> str:
    tag = soup.head.find("title") if soup.head is not None else None
    title = compose_title(tag.get_text() if tag is not None else "", suffix)
    if not title or soup.head is None:
        return title
    if tag is None:
        tag = soup.new_tag("title")
        soup.head.append(tag)
    tag.string = title
    return title


def _heading_container(body: Tag) -> Tag:
    header = body.find("header")
    if header is not None:
        return header
    container = body.select_one(":scope > div, :scope > main, :scope > section")
    if container is not None:
        return container
    for child in body.find_all(True, recursive=False):
        if child.name not in _NO_HEADING_TAGS:
            return child
    return body


def insert_heading(soup: BeautifulSoup, text: str) -> Optional[Tag]:
    """Вставляет ``<h1>`` в начало первого подходящего контейнера ``<body>``."""
    if soup.body is None or not text:
        return None
    target = _heading_container(soup.body)
    column = target.select_one(_GRID_COLUMN)
    if column is not None:
        target = column
    h1 = soup.new_tag("h1", attrs={"class": HEADING_CLASS, "style": HEADING_STYLE})
    h1.string = text
    target.insert(0, h1)
    return h1


def ensure_sitemap_link(soup: BeautifulSoup) -> bool:
    if soup.body is None:
        return False
    if soup.body.find("a", href=SITEMAP_HREF) is not None:
        return False
    link = soup.new_tag("a", href=SITEMAP_HREF)
    link.string = SITEMAP_TEXT
    soup.body.append(link)
    return True


def augment_page(soup: BeautifulSoup, title_suffix: Optional[str]) -> None:
    title = apply_title(soup, title_suffix)
    insert_heading(soup, title)
    filter_meta(soup)
    ensure_sitemap_link(soup)
