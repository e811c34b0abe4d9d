# site_mirror/rewriter/html.py
"""
LinkRewriter: rewrites one parsed page so the mirrored copy works offline.

Per page, in order:

1. site assets are materialized for the host and referenced from ``<head>``;
2. resource tags (``img[src]``, ``script[src]``, fetchable ``link[href]``)
   are downloaded once per job and pointed at their local copies;
3. ``style`` attributes and ``<style>`` blocks get their ``url(...)`` rewritten;
4. ``srcset``, lazy-load attributes and ``<source>`` are handled like images;
5. anchors: cross-host → ``/``, same-host pages → relative page path,
   same-host files → downloaded asset;
6. inline scripts and event-handler attributes go through :class:`ScriptRewriter`;
7. augmentation (title, heading, meta filter, sitemap link), then the page
   is serialized, replacement rules applied and the file written.

A failed resource is recorded in the job errors and its reference is left
untouched; the page itself is still saved.
"""
from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from aiohttp import ClientError
from bs4 import BeautifulSoup, Tag

from site_mirror.crawler.fetcher import FetchError, Fetcher
from site_mirror.crawler.models import JobContext
from site_mirror.crawler.paths import (
    is_page_like,
    map_to_local_path,
    normalize_index,
    relative_path,
)
from site_mirror.logger import logger
from site_mirror.rewriter import AssetKind
from site_mirror.rewriter.augment import augment_page
from site_mirror.rewriter.css import rewrite_css_urls
from site_mirror.rewriter.script import ScriptRewriter
from site_mirror.site_assets import SiteAssets
from site_mirror.utils import is_sitemap_url, resolve_url, same_host

__all__ = ("LinkRewriter", "RESOURCE_RELS", "LAZY_ATTRS", "SCRIPT_ATTRS", "split_srcset")

RESOURCE_RELS = frozenset({
    "stylesheet",
    "icon",
    "shortcut",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
    "mask-icon",
    "manifest",
    "preload",
})
LAZY_ATTRS = ("data-src", "data-original", "data-lazy", "data-echo")
SCRIPT_ATTRS = (
    "onclick", "onmouseover", "onfocus", "onsubmit", "onload", "onchange",
    "data-href", "data-url", "data-link",
)

_RESOURCE_ERRORS = (FetchError, ClientError, asyncio.TimeoutError, OSError, ValueError)

_SRCSET_GAP = re.compile(r"[\s,]*")
_SRCSET_URL = re.compile(r"\S+")
_SRCSET_DESCRIPTOR = re.compile(r"[^,]*")


def split_srcset(value: str) -> List[Tuple[str, str]]:
    """Split a ``srcset`` value into ``(url, descriptor)`` pairs.

    A candidate URL runs up to the next whitespace, so commas inside
    ``data:`` URLs stay part of the URL; trailing commas end the candidate.
    """
    candidates: List[Tuple[str, str]] = []
    pos = 0
    while True:
        pos = _SRCSET_GAP.match(value, pos).end()
        if pos >= len(value):
            return candidates
        url_match = _SRCSET_URL.match(value, pos)
        url, pos = url_match.group(), url_match.end()
        descriptor = ""
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            desc_match = _SRCSET_DESCRIPTOR.match(value, pos)
            descriptor, pos = desc_match.group().strip(), desc_match.end()
        if url:
            candidates.append((url, descriptor))


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _rels(tag: Tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.lower() for r in rel]


class LinkRewriter:
    """Rewrites pages of one job; owns the per-job asset download path."""

    def __init__(self, ctx: JobContext, fetcher: Fetcher, site_assets: Optional[SiteAssets] = None) -> None:
        self.ctx = ctx
        self.fetcher = fetcher
        self.site_assets = site_assets or SiteAssets()
        self.scripts = ScriptRewriter(ctx, self.download)

    # ------------------------------------------------------------------ #
    # downloads                                                          #
    # ------------------------------------------------------------------ #
    async def download(self, url: str, referer: Optional[str], kind: AssetKind = "binary") -> Optional[Path]:
        """
        Скачивает ресурс (не более одного раза за задание) и возвращает его локальный путь.

        Защищённые пути возвращаются без загрузки; None означает, что ссылку
        надо оставить как есть (ошибка загрузки сейчас или ранее, sitemap).
        """
        output_dir = self.ctx.output_dir
        local = map_to_local_path(output_dir, url, False)
        if self.site_assets.is_protected(output_dir, url):
            logger.debug("asset.skip-protected url=%s", url)
            return local
        if is_sitemap_url(url) or self.ctx.dedup.has_failed(url):
            return None
        if not self.ctx.dedup.try_claim_asset(url):
            logger.debug("asset.skip-dup url=%s", url)
            return local

        try:
            local.parent.mkdir(parents=True, exist_ok=True)
            if kind == "stylesheet":
                await self._save_stylesheet(url, referer, local)
            elif kind == "script":
                await self._save_script(url, referer, local)
            else:
                local.write_bytes(await self.fetcher.fetch_binary(url, referer))
        except _RESOURCE_ERRORS as exc:
            self.ctx.dedup.mark_failed(url)
            self.ctx.stats.add_error(f"{url} -> {_describe(exc)}")
            return None

        self.ctx.stats.assets_downloaded += 1
        logger.debug("asset.saved kind=%s url=%s", kind, url)
        return local

    async def _save_stylesheet(self, url: str, referer: Optional[str], local: Path) -> None:
        css = await self.fetcher.fetch_text(url, referer)
        css = await rewrite_css_urls(css, url, local.parent, self.download)
        local.write_text(self.ctx.config.apply_replacements(css), encoding="utf-8")

    async def _save_script(self, url: str, referer: Optional[str], local: Path) -> None:
        source = (await self.fetcher.fetch_binary(url, referer)).decode("utf-8", errors="replace")
        rewritten = self.scripts.rewrite_links(source, referer or url)
        local.write_text(self.ctx.config.apply_replacements(rewritten), encoding="utf-8")
        await self.scripts.extract_assets(source, url, referer)

    async def _localize(self, value: Optional[str], page_url: str, local_dir: Path,
                        kind: AssetKind = "binary") -> Optional[str]:
        """Resolve ``value`` against the page, download it, return the relative reference."""
        if not value or not value.strip():
            return None
        target = resolve_url(page_url, value)
        if target is None:
            return None
        local = await self.download(target, page_url, kind)
        return relative_path(local_dir, local) if local is not None else None

    # ------------------------------------------------------------------ #
    # page pipeline                                                      #
    # ------------------------------------------------------------------ #
    async def rewrite_page(self, soup: BeautifulSoup, page_url: str, local_path: Path) -> List[str]:
        """
        Переписывает страницу, сохраняет её в ``local_path`` и возвращает
        абсолютные URL страниц, на которые ссылаются её якоря (до переписывания).
        """
        local_dir = local_path.parent
        try:
            self.site_assets.ensure(self.site_assets.site_root(self.ctx.output_dir, page_url))
        except OSError as exc:
            self.ctx.stats.add_error(f"{page_url} -> site assets: {_describe(exc)}")
        self.site_assets.inject(soup, page_url)

        await self._rewrite_resources(soup, page_url, local_dir)
        await self._rewrite_inline_styles(soup, page_url, local_dir)
        await self._rewrite_images(soup, page_url, local_dir)
        links = await self._rewrite_anchors(soup, page_url, local_dir)
        await self._rewrite_scripts(soup, page_url)
        augment_page(soup, self.ctx.config.title_suffix)

        html = self.ctx.config.apply_replacements(str(soup))
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_text(html, encoding="utf-8")
        return links

    async def _rewrite_resources(self, soup: BeautifulSoup, page_url: str, local_dir: Path) -> None:
        for tag in soup.find_all(["img", "script", "link"]):
            if tag.name == "link":
                attr = "href"
                rels = _rels(tag)
                target = tag.get(attr) or ""
                is_css = "stylesheet" in rels or urlsplit(target).path.lower().endswith(".css")
                if not is_css and not RESOURCE_RELS.intersection(rels):
                    continue
                kind: AssetKind = "stylesheet" if is_css else "binary"
            else:
                attr = "src"
                kind = "script" if tag.name == "script" else "binary"
            rel = await self._localize(tag.get(attr), page_url, local_dir, kind)
            if rel is not None:
                tag[attr] = rel

    async def _rewrite_inline_styles(self, soup: BeautifulSoup, page_url: str, local_dir: Path) -> None:
        for tag in soup.find_all(style=True):
            style = tag.get("style")
            if isinstance(style, str) and style.strip():
                tag["style"] = await rewrite_css_urls(style, page_url, local_dir, self.download)
        for block in soup.find_all("style"):
            css = block.string
            if css and css.strip():
                rewritten = await rewrite_css_urls(str(css), page_url, local_dir, self.download)
                if rewritten != css:
                    block.string = rewritten

    async def _rewrite_srcset(self, value: str, page_url: str, local_dir: Path) -> str:
        items: List[str] = []
        for url, descriptor in split_srcset(value):
            rel = await self._localize(url, page_url, local_dir)
            items.append(f"{rel or url} {descriptor}".strip())
        return ", ".join(items)

    async def _rewrite_images(self, soup: BeautifulSoup, page_url: str, local_dir: Path) -> None:
        for img in soup.find_all("img"):
            srcset = img.get("srcset")
            if srcset and srcset.strip():
                img["srcset"] = await self._rewrite_srcset(srcset, page_url, local_dir)
            for attr in LAZY_ATTRS:
                rel = await self._localize(img.get(attr), page_url, local_dir)
                if rel is None:
                    continue
                img[attr] = rel
                if not (img.get("src") or "").strip():
                    img["src"] = rel

        for source in soup.find_all("source"):
            rel = await self._localize(source.get("src"), page_url, local_dir)
            if rel is not None:
                source["src"] = rel
            srcset = source.get("srcset")
            if srcset and srcset.strip():
                source["srcset"] = await self._rewrite_srcset(srcset, page_url, local_dir)

    async def _rewrite_anchors(self, soup: BeautifulSoup, page_url: str, local_dir: Path) -> List[str]:
        links: List[str] = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith("#"):
                continue
            target = resolve_url(page_url, href)
            if target is None:
                # mailto:, tel:, javascript: …
                continue
            page_like = is_page_like(target)
            if page_like and not is_sitemap_url(target):
                links.append(target)

            if not same_host(target, page_url):
                anchor["href"] = "/"
                continue
            if page_like:
                local = map_to_local_path(self.ctx.output_dir, target, True)
                rel = normalize_index(relative_path(local_dir, local))
                fragment = urlsplit(href).fragment
                anchor["href"] = f"{rel}#{fragment}" if fragment else rel
            else:
                rel = await self._localize(target, page_url, local_dir)
                if rel is not None:
                    anchor["href"] = rel
        return links

    async def _rewrite_scripts(self, soup: BeautifulSoup, page_url: str) -> None:
        inline: List[str] = []
        for script in soup.find_all("script"):
            if script.get("src"):
                continue
            text = script.string
            if not text or not text.strip():
                continue
            inline.append(str(text))
            rewritten = self.scripts.rewrite_links(str(text), page_url)
            if rewritten != text:
                script.string = rewritten

        for tag in soup.find_all(True):
            for attr in SCRIPT_ATTRS:
                value = tag.get(attr)
                if not isinstance(value, str) or not value.strip():
                    continue
                rewritten = self.scripts.rewrite_links(value, page_url)
                if rewritten != value:
                    tag[attr] = rewritten

        if inline:
            await self.scripts.extract_assets("\n".join(inline), page_url, page_url, claim_key=page_url)
