# site_mirror/crawler/paths.py
"""
URL → local filesystem mapping for the mirrored tree.

Everything here is a pure function of its arguments: pages rewritten at
different points of the crawl must agree on where every other page and
asset lives, so no state is kept between calls.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Union
from urllib.parse import unquote, urlsplit

__all__ = (
    "sanitize_segment",
    "map_to_local_path",
    "relative_path",
    "normalize_index",
    "root_relative",
    "is_page_like",
    "is_image_path",
)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")

PAGE_EXTENSIONS = (".html", ".htm", ".shtml", ".xhtml")
NON_PAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp", ".avif",
    ".css", ".js", ".mjs", ".json", ".map",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp4", ".webm", ".mp3", ".ogg", ".wav",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".xml",
    ".zip", ".rar", ".7z", ".gz", ".tar",
)
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico")

PathLike = Union[str, Path]


def sanitize_segment(segment: str) -> str:
    """Percent-decode one path segment and replace anything outside ``[A-Za-z0-9._-]``."""
    return _UNSAFE_RE.sub("-", unquote(segment))


def _segments(path: str) -> List[str]:
    out: List[str] = []
    for raw in path.split("/"):
        if not raw or raw == ".":
            continue
        if raw == "..":
            if out:
                out.pop()
            continue
        seg = sanitize_segment(raw)
        # a decoded "%2E%2E" must not climb out of the host directory either
        if seg in (".", ".."):
            seg = seg.replace(".", "-")
        out.append(seg)
    return out


def map_to_local_path(root: PathLike, url: str, is_page: bool) -> Path:
    """Map an absolute URL to its file under ``root/<host>/``.

    * pages ending in ``/`` (or with an empty path) become ``index.html``;
    * extensionless pages get ``.html`` appended;
    * a query string is folded into the file name as ``_q_<query>``,
      before the extension when there is one.
    """
    parts = urlsplit(url)
    host = parts.hostname or "unknown-host"
    raw_path = parts.path or "/"
    segments = _segments(raw_path)

    if is_page:
        if raw_path.endswith("/") or not segments:
            segments.append("index.html")
        elif "." not in segments[-1]:
            segments[-1] += ".html"

    if parts.query.strip():
        suffix = "_q_" + sanitize_segment(parts.query)
        if segments:
            last = segments[-1]
            dot = last.rfind(".")
            if dot > 0:
                segments[-1] = last[:dot] + suffix + last[dot:]
            else:
                segments[-1] = last + suffix + (".html" if is_page else "")
        else:
            segments.append("index" + suffix + (".html" if is_page else ""))

    return Path(root).joinpath(host, *segments)


def relative_path(from_dir: PathLike, target: PathLike) -> str:
    """Relative path from a directory to a file, always with ``/`` separators."""
    return Path(os.path.relpath(Path(target), Path(from_dir))).as_posix()


def normalize_index(rel: str) -> str:
    """Collapse ``…/index.html`` to ``…/`` and a bare ``index.html`` to ``/``."""
    if rel == "index.html":
        return "/"
    if rel.endswith("/index.html"):
        return rel[: -len("index.html")]
    return rel


def root_relative(root: PathLike, url: str, is_page: bool) -> str:
    """Path of ``url``'s local file relative to the site root, as ``/…``.

    Used inside rewritten scripts, which may run from any page depth.
    """
    site_root = Path(root) / (urlsplit(url).hostname or "unknown-host")
    rel = relative_path(site_root, map_to_local_path(root, url, is_page))
    if is_page:
        rel = normalize_index(rel)
        if rel == "/":
            return "/"
    return "/" + rel


def is_page_like(url: str) -> bool:
    """True unless the URL path ends in a known static-asset extension."""
    path = urlsplit(url).path.lower()
    if not path or path.endswith(PAGE_EXTENSIONS):
        return True
    return not path.endswith(NON_PAGE_EXTENSIONS)


def is_image_path(value: str) -> bool:
    lower = value.lower().split("?", 1)[0]
    return lower.endswith(IMAGE_EXTENSIONS)
