"""
site_mirror.rewriter: переписывание ссылок в HTML, CSS и тексте скриптов.

Модули пакета не скачивают ничего сами: загрузка ресурса передаётся
через :data:`DownloadFn`, которую предоставляет :class:`~site_mirror.rewriter.html.LinkRewriter`.
"""
from __future__ import annotations

from pathlib import Path
from typing import Awaitable, Callable, Literal, Optional

AssetKind = Literal["binary", "stylesheet", "script"]

#: ``download(url, referer, kind) -> local path | None``; None оставляет ссылку как есть.
DownloadFn = Callable[[str, Optional[str], AssetKind], Awaitable[Optional[Path]]]

__all__ = ["AssetKind", "DownloadFn"]
