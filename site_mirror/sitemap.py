"""site_mirror.sitemap: Генерация sitemap.xml по сохранённым страницам задания."""

from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from lxml import etree

from site_mirror.utils import host_of

__all__ = ["SITEMAP_NS", "sitemap_locs", "build_sitemap", "generate_sitemap"]

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
CHANGEFREQ = "weekly"
PRIORITY = "0.5"


def sitemap_locs(pages: Iterable[str], host: str, sitemap_domain: Optional[str] = None) -> List[str]:
    """Отсортированные значения ``<loc>`` для страниц хоста ``host``.

    Путь страницы сохраняется как есть (пустой путь → ``/``); запрос и
    фрагмент отбрасываются. Страницы других хостов пропускаются.
    """
    domain = (sitemap_domain or "").strip() or f"https://{host}"
    domain = domain.rstrip("/")
    locs = set()
    for url in pages:
        if host_of(url) != host:
            continue
        path = urlsplit(url).path or "/"
        locs.add(domain + path)
    return sorted(locs)


def build_sitemap(locs: Iterable[str], lastmod: Optional[_dt.date] = None) -> bytes:
    """Сериализует список адресов в документ sitemaps.org."""
    today = (lastmod or _dt.date.today()).isoformat()
    urlset = etree.Element(f"{{{SITEMAP_NS}}}urlset", nsmap={None: SITEMAP_NS})
    for loc in locs:
        url_el = etree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
        etree.SubElement(url_el, f"{{{SITEMAP_NS}}}loc").text = loc
        etree.SubElement(url_el, f"{{{SITEMAP_NS}}}lastmod").text = today
        etree.SubElement(url_el, f"{{{SITEMAP_NS}}}changefreq").text = CHANGEFREQ
        etree.SubElement(url_el, f"{{{SITEMAP_NS}}}priority").text = PRIORITY
    return etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def generate_sitemap(
    output_dir: Path,
    host: str,
    pages: Iterable[str],
    sitemap_domain: Optional[str] = None,
    lastmod: Optional[_dt.date] = None,
) -> Path:
    """Пишет ``<output_dir>/<host>/sitemap.xml`` и возвращает путь к файлу.

    Ошибки ввода-вывода пробрасываются; решение о фатальности принимает вызывающий.
    """
    site_root = Path(output_dir) / host
    site_root.mkdir(parents=True, exist_ok=True)
    target = site_root / "sitemap.xml"
    target.write_bytes(build_sitemap(sitemap_locs(pages, host, sitemap_domain), lastmod))
    return target
