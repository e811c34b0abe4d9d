# site_mirror/rewriter/css.py
"""
CSS ``url(...)`` rewriting, shared by stylesheets, ``style`` attributes and ``<style>`` blocks.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List
from urllib.parse import urlsplit

from site_mirror.crawler.paths import relative_path
from site_mirror.rewriter import AssetKind, DownloadFn
from site_mirror.utils import resolve_url

__all__ = ("CSS_URL_RE", "rewrite_css_urls")

CSS_URL_RE = re.compile(r"url\(\s*(['\"]?)([^)'\"]+)\1\s*\)", re.IGNORECASE)


def _kind_for(url: str) -> AssetKind:
    return "stylesheet" if urlsplit(url).path.lower().endswith(".css") else "binary"


async def _rewrite_one(match: re.Match[str], base_url: str, local_dir: Path, download: DownloadFn) -> str:
    quote, raw = match.group(1), match.group(2).strip()
    if not raw or raw.lower().startswith("data:"):
        return match.group(0)
    target = resolve_url(base_url, raw)
    if target is None:
        return match.group(0)
    local = await download(target, base_url, _kind_for(target))
    if local is None:
        return match.group(0)
    return f"url({quote}{relative_path(local_dir, local)}{quote})"


async def rewrite_css_urls(css_text: str, base_url: str, local_dir: Path, download: DownloadFn) -> str:
    """
    Скачивает всё, на что ссылаются ``url(...)`` в ``css_text``, и заменяет
    ссылки на пути относительно ``local_dir``.

    ``data:``-URI, не-HTTP ссылки и неудачные загрузки остаются как были.
    """
    out: List[str] = []
    pos = 0
    for match in CSS_URL_RE.finditer(css_text):
        out.append(css_text[pos:match.start()])
        out.append(await _rewrite_one(match, base_url, local_dir, download))
        pos = match.end()
    out.append(css_text[pos:])
    return "".join(out)
