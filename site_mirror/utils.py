"""site_mirror.utils: Утилитарные функции для нормализации URL и сравнения хостов."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING, Iterable, Optional, Sequence
from urllib.parse import urljoin, urlsplit, urlunsplit

if TYPE_CHECKING:
    from site_mirror.config import ReplacementRule

__all__: Sequence[str] = (
    "apply_replacements",
    "normalize_url",
    "safe_url",
    "resolve_url",
    "is_http_url",
    "host_of",
    "same_host",
    "is_sitemap_url",
)


def normalize_url(url: str) -> str:
    """Нормализует URL: добавляет https://, приводит схему и хост к нижнему регистру,
    сворачивает ``.``/``..`` в пути и отбрасывает фрагмент.

    Бросает ValueError, если после нормализации у URL нет хоста.
    """
    raw = url.strip()
    if "://" not in raw and not raw.startswith("//"):
        raw = "https://" + raw
    elif raw.startswith("//"):
        raw = "https:" + raw
    parts = urlsplit(raw)
    if not parts.hostname:
        raise ValueError(f"URL has no host: {url!r}")
    path = parts.path or "/"
    norm = posixpath.normpath(path)
    if norm.startswith("//"):
        norm = "/" + norm.lstrip("/")
    if path.endswith("/") and not norm.endswith("/"):
        norm += "/"
    path = norm
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def safe_url(url: Optional[str]) -> Optional[str]:
    """Как :func:`normalize_url`, но возвращает None вместо исключения."""
    if not url or not url.strip():
        return None
    try:
        return normalize_url(url)
    except ValueError:
        return None


def resolve_url(base: str, ref: str) -> Optional[str]:
    """Разрешает ``ref`` относительно ``base`` и нормализует результат (только http/https)."""
    ref = (ref or "").strip()
    if not ref:
        return None
    try:
        joined = urljoin(base, ref)
    except ValueError:
        return None
    if not is_http_url(joined):
        return None
    return safe_url(joined)


def is_http_url(url: str) -> bool:
    """Проверяет, что URL использует схему http(s)."""
    try:
        return urlsplit(url).scheme.lower() in ("http", "https")
    except ValueError:
        return False


def host_of(url: str) -> str:
    """Возвращает хост без порта в нижнем регистре (или ``unknown-host``)."""
    try:
        return urlsplit(url).hostname or "unknown-host"
    except ValueError:
        return "unknown-host"


def same_host(a: str, b: str) -> bool:
    return host_of(a) == host_of(b)


def is_sitemap_url(url: str) -> bool:
    path = urlsplit(url).path.lower()
    return path == "sitemap.xml" or path.endswith("/sitemap.xml")


def apply_replacements(text: str, rules: Iterable[ReplacementRule]) -> str:
    """Применяет правила замены по порядку; пустой ``find`` пропускается."""
    for rule in rules:
        text = rule.apply(text)
    return text
