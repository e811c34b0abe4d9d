# File: site_mirror/report/html_report.py
"""site_mirror.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_mirror.status import TaskStatusView

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def render_html(
    statuses: Sequence[TaskStatusView],
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Рендерит HTML-отчёт о заданиях из шаблона и сохраняет его по указанному пути.

    Args:
        statuses: представления статуса заданий.
        output_path: путь к итоговому HTML-файлу.
        template_dir: директория с шаблоном ``report.html.j2``
            (по умолчанию встроенный шаблон пакета).

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir) if template_dir is not None else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    context: dict[str, Any] = {
        "tasks": list(statuses),
        "total_pages": sum(s["pages_downloaded"] for s in statuses),
        "total_assets": sum(s["assets_downloaded"] for s in statuses),
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
