# site_mirror/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteMirror.

Сериализация списка статусов заданий в файл.
"""
import json
from pathlib import Path
from typing import Sequence

from site_mirror.status import TaskStatusView


def render_json(statuses: Sequence[TaskStatusView], output_path: Path | str, pretty: bool = True) -> Path:
    """
    Сохраняет статусы заданий в формате JSON по указанному пути.

    :param statuses: список представлений статуса (см. ``site_mirror.status.task_status``)
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 пробела
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_mirror.report.json_report import render_json
    report_path = render_json([task_status(t) for t in tasks], 'reports/report.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = {"tasks": list(statuses)}

    with output.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
