# site_mirror/rewriter/script.py
"""
Link rewriting and asset harvesting inside raw script text.

Script source is not parsed: URLs are found by ordered lists of named
regular-expression matchers.  Every matcher runs over the *original* text;
for rewriting, overlapping matches are resolved by earliest start, then
longest match, then matcher order, and all substitutions are applied in
a single pass.

Three entry points, used by :class:`~site_mirror.rewriter.html.LinkRewriter`:

* :meth:`ScriptRewriter.rewrite_links`: navigation targets
  (``location.href = "…"``, ``window.open("…")``, ``href/src/action="…"``
  inside HTML fragments, quoted absolute same-host URLs) become paths
  relative to the site root; cross-host navigation becomes ``/``;
* :meth:`ScriptRewriter.collect_pending_pages`: a looser scan for quoted
  rooted paths that look like pages, fed to the crawl frontier;
* :meth:`ScriptRewriter.extract_assets`: layered image patterns and
  ``<link>``/``<script>`` fragments, downloaded once per job.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set, Tuple, Union

from site_mirror.crawler.models import JobContext
from site_mirror.crawler.paths import is_image_path, is_page_like, root_relative
from site_mirror.logger import logger
from site_mirror.rewriter import DownloadFn
from site_mirror.utils import is_sitemap_url, resolve_url, same_host

__all__ = (
    "Matcher",
    "NAVIGATION_MATCHERS",
    "PAGE_MATCHERS",
    "IMAGE_MATCHERS",
    "EMBED_MATCHERS",
    "ScriptRewriter",
    "sanitize_js_url",
    "select_matches",
)

_I = re.IGNORECASE
_IMG = r"\.(?:png|jpe?g|gif|webp|svg|ico)"
# URL-like prefixes accepted by the loose image patterns
_PREFIX = r"(?:https?://|/|\\/|\./|\.\./)"
_ROOTED_PREFIXES = ("http://", "https://", "//", "/", "./", "../")


@dataclass(frozen=True)
class Matcher:
    """Named pattern; the URL is always captured by the ``url`` group."""

    name: str
    pattern: re.Pattern[str]
    accept: Optional[Callable[[re.Match[str]], bool]] = None

    def finditer(self, text: str) -> Iterable[re.Match[str]]:
        for match in self.pattern.finditer(text):
            if self.accept is None or self.accept(match):
                yield match


def _src_only(match: re.Match[str]) -> bool:
    return match.group("attr").lower() == "src"


_ATTR = re.compile(
    r"\b(?P<attr>href|src|action)\s*=\s*(?P<q>['\"])(?P<url>(?:https?://|/)[^'\"\s<>]+)(?P=q)", _I
)
_ATTR_ESC = re.compile(
    r"\b(?P<attr>href|src|action)\s*=\s*\\(?P<q>['\"])(?P<url>(?:https?://|/)[^\\'\"\s<>]+)\\(?P=q)", _I
)

NAVIGATION_MATCHERS: Tuple[Matcher, ...] = (
    Matcher("location-href", re.compile(
        r"(?:window\.)?location\.href\s*=\s*(?P<q>['\"])(?P<url>(?:https?://|/)[^'\"\s<>]+)(?P=q)", _I)),
    Matcher("location-href-escaped", re.compile(
        r"(?:window\.)?location\.href\s*=\s*\\(?P<q>['\"])(?P<url>(?:https?://|/)[^\\'\"\s<>]+)\\(?P=q)", _I)),
    Matcher("window-open", re.compile(
        r"window\.open\(\s*(?P<q>['\"])(?P<url>(?:https?://|/)[^'\"\s<>]+)(?P=q)", _I)),
    Matcher("window-open-escaped", re.compile(
        r"window\.open\(\s*\\(?P<q>['\"])(?P<url>(?:https?://|/)[^\\'\"\s<>]+)\\(?P=q)", _I)),
    Matcher("attribute", _ATTR),
    Matcher("attribute-escaped", _ATTR_ESC),
    Matcher("absolute-url", re.compile(
        r"(?P<q>['\"])(?P<url>https?://[^/'\"\s<>\\]+/[^'\"\s<>]*)(?P=q)", _I)),
    Matcher("absolute-url-escaped", re.compile(
        r"\\(?P<q>['\"])(?P<url>https?://[^/'\"\s<>\\]+/[^\\'\"\s<>]*)\\(?P=q)", _I)),
)

# quoted absolute URLs are only rewritten when they stay on the page's host
_SAME_HOST_ONLY = frozenset({"absolute-url", "absolute-url-escaped"})

PAGE_MATCHERS: Tuple[Matcher, ...] = (
    Matcher("index-page", re.compile(
        r"(?P<q>['\"])(?P<url>/[^'\"\\\s<>]+/index\.html)(?P=q)", _I)),
    Matcher("directory-page", re.compile(
        r"(?P<q>['\"])(?P<url>/[^'\"\\\s<>]+/)(?P=q)", _I)),
    Matcher("server-page", re.compile(
        r"(?P<q>['\"])(?P<url>/[^'\"\\\s<>]+\.(?:do|jsp|html)(?:\?[^'\"\s<>]*)?)(?P=q)", _I)),
    Matcher("rooted-path", re.compile(
        r"(?P<q>['\"])(?P<url>/[^'\"\\\s<>]+(?:\?[^'\"\s<>]*)?)(?P=q)", _I)),
)

IMAGE_MATCHERS: Tuple[Matcher, ...] = (
    Matcher("css-url", re.compile(r"url\(\s*(?P<q>['\"]?)(?P<url>[^)'\"]+)(?P=q)\s*\)", _I)),
    Matcher("quoted-image", re.compile(
        r"['\"](?P<url>(?:https?://|/|\\/|\./|\.\./|[A-Za-z0-9_./-])[^'\"]+" + _IMG + r")(?:\?[^'\"]*)?['\"]", _I)),
    Matcher("image-token", re.compile(
        r"(?<![A-Za-z0-9_./-])(?P<url>" + _PREFIX + r"[^\s'\"<>]+" + _IMG + r")(?:\?[^\s'\"<>]*)?", _I)),
    Matcher("escaped-dq-image", re.compile(
        r"\\\"(?P<url>" + _PREFIX + r"[^\\\"\s<>]+" + _IMG + r")(?:\?[^\\\"\s<>]*)?\\\"", _I)),
    Matcher("escaped-sq-image", re.compile(
        r"\\'(?P<url>" + _PREFIX + r"[^\\'\s<>]+" + _IMG + r")(?:\?[^\\'\s<>]*)?\\'", _I)),
    Matcher("attribute-src", _ATTR, accept=_src_only),
    Matcher("attribute-src-escaped", _ATTR_ESC, accept=_src_only),
    Matcher("img-tag", re.compile(
        r"<img[^>]+src\s*=\s*(?P<q>['\"])(?P<url>[^'\"\s<>]+" + _IMG + r")(?:\?[^'\"<>]*)?(?P=q)", _I)),
    Matcher("img-tag-escaped", re.compile(
        r"<img[^>]+src\s*=\s*\\(?P<q>['\"])(?P<url>[^\\'\"\s<>]+" + _IMG + r")(?:\?[^\\'\"<>]*)?\\(?P=q)", _I)),
)

# stylesheet / script fragments, e.g. from document.write(...)
EMBED_MATCHERS: Tuple[Matcher, ...] = (
    Matcher("link-tag", re.compile(
        r"<link[^>]+href\s*=\s*(?P<q>['\"])(?P<url>[^'\"\s<>]+\.css)(?:\?[^'\"<>]*)?(?P=q)", _I)),
    Matcher("link-tag-escaped", re.compile(
        r"<link[^>]+href\s*=\s*\\(?P<q>['\"])(?P<url>[^\\'\"\s<>]+\.css)(?:\?[^\\'\"<>]*)?\\(?P=q)", _I)),
    Matcher("script-tag", re.compile(
        r"<script[^>]+src\s*=\s*(?P<q>['\"])(?P<url>[^'\"\s<>]+\.js)(?:\?[^'\"<>]*)?(?P=q)", _I)),
    Matcher("script-tag-escaped", re.compile(
        r"<script[^>]+src\s*=\s*\\(?P<q>['\"])(?P<url>[^\\'\"\s<>]+\.js)(?:\?[^\\'\"<>]*)?\\(?P=q)", _I)),
    # href="a.css' + ": attribute split across two concatenated literals
    Matcher("split-link-dq", re.compile(r"href\s*=\s*\"(?P<url>[^\"]*\.css)\s*'\s*\+", _I)),
    Matcher("split-link-sq", re.compile(r"href\s*=\s*'(?P<url>[^']*\.css)\s*\"\s*\+", _I)),
    Matcher("split-script-dq", re.compile(r"src\s*=\s*\"(?P<url>[^\"]*\.js)\s*'\s*\+", _I)),
    Matcher("split-script-sq", re.compile(r"src\s*=\s*'(?P<url>[^']*\.js)\s*\"\s*\+", _I)),
)

_INDEX_RE = re.compile(
    r"(?P<head>\b(?:href|src)\s*=\s*\\?(?P<q>['\"]))(?P<path>/[^'\"\\]*?)/index\.html(?P<tail>\\?(?P=q))", _I
)

_ESCAPES = (("\\/", "/"), ("\\?", "?"), ("\\&", "&"), ("\\=", "="), ("\\#", "#"))


def sanitize_js_url(raw: str) -> str:
    """Снимает JS-экранирование (``\\/`` → ``/`` …) и хвостовые обратные слэши."""
    cleaned = raw.strip().rstrip("\\")
    for escaped, plain in _ESCAPES:
        cleaned = cleaned.replace(escaped, plain)
    return cleaned


def select_matches(text: str, matchers: Iterable[Matcher]) -> List[Tuple[Matcher, re.Match[str]]]:
    """Non-overlapping matches of all ``matchers`` over ``text``.

    Ties are broken by earliest start, then longest match, then matcher order.
    """
    found = []
    for order, matcher in enumerate(matchers):
        for match in matcher.finditer(text):
            found.append((match.start(), match.start() - match.end(), order, matcher, match))
    found.sort(key=lambda item: item[:3])

    chosen: List[Tuple[Matcher, re.Match[str]]] = []
    last_end = -1
    for start, _, _, matcher, match in found:
        if start < last_end:
            continue
        chosen.append((matcher, match))
        last_end = match.end()
    return chosen


class ScriptRewriter:
    """Rewrites and harvests URLs in script text on behalf of one job."""

    def __init__(self, ctx: JobContext, download: DownloadFn) -> None:
        self.ctx = ctx
        self._download = download

    # ------------------------------------------------------------------ #
    # link rewriting                                                     #
    # ------------------------------------------------------------------ #
    def rewrite_links(self, text: str, page_url: str) -> str:
        """Возвращает текст скрипта с переписанными ссылками навигации."""
        if not text or not text.strip():
            return text
        self.collect_pending_pages(text, page_url)

        out: List[str] = []
        pos = 0
        for matcher, match in select_matches(text, NAVIGATION_MATCHERS):
            new_url = self._navigation_target(matcher, match.group("url"), page_url)
            if new_url is None:
                continue
            out.append(text[pos:match.start("url")])
            out.append(new_url)
            pos = match.end("url")
        out.append(text[pos:])
        return _INDEX_RE.sub(r"\g<head>\g<path>/\g<tail>", "".join(out))

    def _navigation_target(self, matcher: Matcher, raw: str, page_url: str) -> Optional[str]:
        target = resolve_url(page_url, sanitize_js_url(raw))
        if target is None:
            return None
        page_like = is_page_like(target)
        if not same_host(target, page_url):
            if matcher.name in _SAME_HOST_ONLY:
                return None
            if page_like:
                self.ctx.add_pending_page(target)
            return "/"
        if page_like and not is_sitemap_url(target):
            self.ctx.add_pending_page(target)
        return root_relative(self.ctx.output_dir, target, page_like)

    # ------------------------------------------------------------------ #
    # frontier harvesting                                                #
    # ------------------------------------------------------------------ #
    def collect_pending_pages(self, text: str, page_url: str) -> int:
        """Добавляет найденные в тексте пути-страницы в pending pages. Возвращает число новых."""
        before = len(self.ctx.pending_pages)
        for matcher in PAGE_MATCHERS:
            for match in matcher.finditer(text):
                raw = match.group("url")
                if raw.startswith("//"):
                    continue
                target = resolve_url(page_url, raw)
                if target and is_page_like(target) and not is_sitemap_url(target):
                    self.ctx.add_pending_page(target)
        return len(self.ctx.pending_pages) - before

    # ------------------------------------------------------------------ #
    # asset extraction                                                   #
    # ------------------------------------------------------------------ #
    async def extract_assets(
        self,
        script: Union[str, bytes],
        script_url: str,
        referer: Optional[str],
        *,
        claim_key: Optional[str] = None,
    ) -> bool:
        """
        Скачивает изображения и ``.css``/``.js``-фрагменты, упомянутые в скрипте.

        Скрипт сканируется не более одного раза за задание (ключ: ``claim_key``
        или ``script_url``). Возвращает False, если скрипт уже сканировался.
        """
        key = claim_key or script_url
        if not self.ctx.dedup.try_claim_script(key):
            logger.debug("script.skip-scanned url=%s", key)
            return False
        text = script.decode("utf-8", errors="replace") if isinstance(script, bytes) else script

        seen: Set[str] = set()
        images = embeds = 0
        for matcher in IMAGE_MATCHERS:
            for match in matcher.finditer(text):
                raw = match.group("url")
                if not raw or not is_image_path(raw) or raw in seen:
                    continue
                seen.add(raw)
                images += 1
                await self._download_image(raw, script_url, referer)

        for matcher in EMBED_MATCHERS:
            for match in matcher.finditer(text):
                raw = match.group("url")
                if not raw or raw in seen:
                    continue
                seen.add(raw)
                embeds += 1
                target = resolve_url(script_url, sanitize_js_url(raw))
                if target is not None:
                    await self._download(target, referer, "binary")

        logger.debug("script.scan url=%s images=%d embeds=%d", key, images, embeds)
        return True

    async def _download_image(self, raw: str, base: str, referer: Optional[str]) -> None:
        cleaned = sanitize_js_url(raw)
        if not cleaned or not is_image_path(cleaned):
            return
        if not cleaned.startswith(_ROOTED_PREFIXES):
            # bare token: treated as site-root-relative
            cleaned = "/" + cleaned
        target = resolve_url(base, cleaned)
        if target is not None:
            await self._download(target, referer, "binary")
