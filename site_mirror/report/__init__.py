"""site_mirror.report: Отчёты о заданиях (JSON и HTML), используемые CLI и тестами."""

from __future__ import annotations

from site_mirror.report.html_report import DEFAULT_TEMPLATE_DIR, render_html
from site_mirror.report.json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
