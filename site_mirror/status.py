"""site_mirror.status: Представление состояния задания для внешнего API/UI."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, TypedDict, Union

from site_mirror.tasks import MirrorTask

__all__ = ["TaskStatusView", "format_duration", "task_status"]


class TaskStatusView(TypedDict):
    id: str
    status: str
    start_url: str
    output_name: Optional[str]
    pages_downloaded: int
    assets_downloaded: int
    elapsed: Optional[float]
    duration: Optional[str]
    errors: List[str]
    output_directory: Optional[str]
    created_at: str
    started_at: Optional[str]
    finished_at: Optional[str]
    worker: Optional[str]
    error_message: Optional[str]


def format_duration(value: Union[timedelta, float, None]) -> Optional[str]:
    """``"Xm Ys"``; минуты опускаются, если их 0."""
    if value is None:
        return None
    seconds = int(value.total_seconds() if isinstance(value, timedelta) else value)
    minutes, seconds = divmod(max(seconds, 0), 60)
    return f"{minutes}m {seconds}s" if minutes else f"{seconds}s"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def task_status(task: MirrorTask) -> TaskStatusView:
    summary = task.result
    duration = task.duration
    return TaskStatusView(
        id=task.id,
        status=task.status.value,
        start_url=task.config.start_url,
        output_name=task.config.output_name,
        pages_downloaded=summary.pages_downloaded if summary else 0,
        assets_downloaded=summary.assets_downloaded if summary else 0,
        elapsed=round(summary.elapsed, 3) if summary else None,
        duration=format_duration(duration),
        errors=list(summary.errors) if summary else ([task.error_message] if task.error_message else []),
        output_directory=summary.output_directory if summary else None,
        created_at=task.created_at.isoformat(),
        started_at=_iso(task.started_at),
        finished_at=_iso(task.finished_at),
        worker=task.worker,
        error_message=task.error_message,
    )
