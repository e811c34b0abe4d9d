"""site_mirror.site_assets: Служебные файлы зеркала (favicon, вспомогательные скрипты, sitemap).

Файлы материализуются в корне каждого хоста один раз (skip-if-exists) и
защищены от перезаписи скачанным контентом с тем же локальным путём.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple, Union
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from site_mirror.crawler.paths import map_to_local_path
from site_mirror.logger import logger
from site_mirror.utils import host_of

__all__: Sequence[str] = (
    "PACKAGED_ASSETS_DIR",
    "FAVICON_HREF",
    "SITE_SCRIPT_SRC",
    "HOME_SCRIPT_SRC",
    "SiteAssets",
    "is_home_page",
)

PACKAGED_ASSETS_DIR = Path(__file__).resolve().parent / "assets"

FAVICON_HREF = "/favicon.ico"
SITE_SCRIPT_SRC = "/_mirror/mirror.js"
HOME_SCRIPT_SRC = "/_mirror/home.js"
SITEMAP_NAME = "sitemap.xml"

# paths relative to the host directory, shared by source and target trees
_MATERIALIZED: Tuple[str, ...] = ("favicon.ico", "_mirror/mirror.js", "_mirror/home.js")


def is_home_page(url: str) -> bool:
    """Главная страница: пустой путь, ``/`` или ``/index.html``."""
    path = urlsplit(url).path
    return path in ("", "/") or path.lower() == "/index.html"


class SiteAssets:
    """Материализует, защищает и подключает служебные файлы сайта."""

    def __init__(self, source_dir: Union[str, Path, None] = None) -> None:
        self.source_dir = Path(source_dir) if source_dir is not None else None
        self._materialized: Set[Path] = set()

    def _source(self, rel: str) -> Path:
        if self.source_dir is not None and (self.source_dir / rel).is_file():
            return self.source_dir / rel
        return PACKAGED_ASSETS_DIR / rel

    @staticmethod
    def site_root(output_dir: Path, url: str) -> Path:
        return output_dir / host_of(url)

    def protected_paths(self, site_root: Path) -> Tuple[Path, ...]:
        return tuple(site_root / rel for rel in _MATERIALIZED) + (site_root / SITEMAP_NAME,)

    def is_protected(self, output_dir: Path, url: str) -> bool:
        """
        True, если ``url`` отображается на защищённый файл своего хоста.

        Защищены только хосты, для которых уже вызывался :meth:`ensure`;
        одноимённые файлы чужих хостов (CDN и т.п.) скачиваются как обычно.
        """
        site_root = self.site_root(output_dir, url)
        if site_root not in self._materialized:
            return False
        return map_to_local_path(output_dir, url, False) in self.protected_paths(site_root)

    def ensure(self, site_root: Path) -> List[Path]:
        """
        Копирует служебные файлы в ``site_root``; существующие не трогает.

        Возвращает список реально созданных файлов. Параллельные задания
        для одного хоста безопасны: файл открывается в режиме ``xb``.
        """
        created: List[Path] = []
        for rel in _MATERIALIZED:
            target = site_root / rel
            if target.exists():
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with self._source(rel).open("rb") as src, target.open("xb") as dst:
                    shutil.copyfileobj(src, dst)
            except FileExistsError:
                continue
            created.append(target)
        self._materialized.add(site_root)
        if created:
            logger.debug("assets.materialize root=%s files=%d", site_root, len(created))
        return created

    def inject(self, soup: BeautifulSoup, page_url: str) -> None:
        """Заменяет иконки сайта на ``/favicon.ico`` и подключает служебные скрипты."""
        head = _ensure_head(soup)
        for old in soup.find_all("link"):
            rel = old.get("rel") or []
            rels = [r.lower() for r in (rel.split() if isinstance(rel, str) else rel)]
            if "icon" in rels:
                old.decompose()

        icon = soup.new_tag("link", rel="icon", type="image/x-icon", href=FAVICON_HREF)
        head.insert(0, icon)

        _ensure_head_script(soup, head, SITE_SCRIPT_SRC)
        if is_home_page(page_url):
            _ensure_head_script(soup, head, HOME_SCRIPT_SRC)


def _ensure_head(soup: BeautifulSoup):
    if soup.head is not None:
        return soup.head
    head = soup.new_tag("head")
    if soup.html is not None:
        soup.html.insert(0, head)
    else:
        soup.insert(0, head)
    return head


def _ensure_head_script(soup: BeautifulSoup, head, src: str) -> None:
    if head.find("script", src=src) is not None:
        return
    head.append(soup.new_tag("script", src=src))
