"""site_mirror.tasks: Пул воркеров для параллельного выполнения заданий зеркалирования.

Каждое задание выполняется одним воркером из ограниченного пула; очередь
заданий ограничена, при переполнении ``submit`` бросает
:class:`TaskQueueFullError`. Отмена кооперативная: воркер проверяет флаг
между страницами. Задание в терминальном состоянии больше не меняется.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from site_mirror.config import CrawlConfig, MirrorSettings
from site_mirror.crawler.engine import run_mirror
from site_mirror.crawler.models import JobSummary
from site_mirror.logger import logger, task_context

__all__ = [
    "TaskStatus",
    "MirrorTask",
    "TaskManager",
    "TaskQueueFullError",
    "Runner",
    "Listener",
]

WORKER_PREFIX = "site-mirror-worker"


class TaskStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class TaskQueueFullError(RuntimeError):
    """Очередь заданий заполнена: задание не принято."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class MirrorTask:
    """Задание и его состояние; меняется только воркером или запросом отмены."""

    id: str
    config: CrawlConfig
    status: TaskStatus = TaskStatus.QUEUED
    result: Optional[JobSummary] = None
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    worker: Optional[str] = None
    error_message: Optional[str] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def done(self) -> bool:
        return self.status.terminal

    @property
    def duration(self) -> Optional[timedelta]:
        if self.started_at is None:
            return None
        return (self.finished_at or _now()) - self.started_at


Runner = Callable[[CrawlConfig, asyncio.Event], Awaitable[JobSummary]]
Listener = Callable[[MirrorTask], None]


class TaskManager:
    """Ограниченный пул воркеров поверх :mod:`asyncio`.

    Пример:
    ```python
    async with TaskManager(settings) as manager:
        task_id = manager.submit(settings.build_config("https://example.com"))
        task = await manager.wait(task_id)
    ```
    """

    def __init__(
        self,
        settings: MirrorSettings,
        runner: Optional[Runner] = None,
        listeners: Iterable[Listener] = (),
    ) -> None:
        self.settings = settings
        self.pool_size = settings.pool_size
        self.capacity = settings.queue_capacity
        self._runner: Runner = runner or self._default_runner
        self._listeners: List[Listener] = list(listeners)
        self._tasks: Dict[str, MirrorTask] = {}
        self._queue: Optional[asyncio.Queue[MirrorTask]] = None
        self._workers: List[asyncio.Task[None]] = []

    async def _default_runner(self, config: CrawlConfig, cancel_event: asyncio.Event) -> JobSummary:
        return await run_mirror(config, self.settings, cancel_event)

    # ------------------------------------------------------------------ #
    # lifecycle                                                          #
    # ------------------------------------------------------------------ #
    async def __aenter__(self) -> TaskManager:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue(maxsize=self.capacity)
        self._workers = [
            asyncio.create_task(self._worker(f"{WORKER_PREFIX}-{n}"), name=f"{WORKER_PREFIX}-{n}")
            for n in range(1, self.pool_size + 1)
        ]
        logger.info("pool.start workers=%d capacity=%d", self.pool_size, self.capacity)

    async def shutdown(self) -> None:
        """Отменяет незавершённые задания и останавливает воркеры."""
        for task in self._tasks.values():
            if not task.done:
                self.cancel(task.id)
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("pool.stop tasks=%d", len(self._tasks))

    # ------------------------------------------------------------------ #
    # public API                                                         #
    # ------------------------------------------------------------------ #
    def submit(self, config: CrawlConfig) -> str:
        """Ставит задание в очередь и возвращает его id."""
        if self._queue is None or not self._workers:
            raise RuntimeError("TaskManager is not started")
        task = MirrorTask(id=uuid.uuid4().hex, config=config)
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            logger.warning("task.rejected url=%s capacity=%d", config.start_url, self.capacity)
            raise TaskQueueFullError(f"task queue is full (capacity {self.capacity})") from None
        self._tasks[task.id] = task
        logger.info("task.state id=%s status=%s url=%s", task.id, task.status.value, config.start_url)
        self._notify(task)
        return task.id

    def cancel(self, task_id: str) -> bool:
        """
        Запрашивает отмену. Задание из очереди сразу становится CANCELLED;
        выполняющееся завершается воркером после текущей страницы.
        """
        task = self._tasks.get(task_id)
        if task is None or task.done:
            return False
        task.cancel_event.set()
        if task.status is TaskStatus.QUEUED:
            self._finish(task, TaskStatus.CANCELLED, error="cancelled before start")
        else:
            logger.info("task.cancel-requested id=%s", task.id)
        return True

    def get(self, task_id: str) -> Optional[MirrorTask]:
        return self._tasks.get(task_id)

    def list(self) -> List[MirrorTask]:
        return sorted(self._tasks.values(), key=lambda t: t.created_at)

    async def wait(self, task_id: str, timeout: Optional[float] = None) -> MirrorTask:
        task = self._tasks[task_id]
        await asyncio.wait_for(task._done.wait(), timeout)
        return task

    async def join(self) -> List[MirrorTask]:
        """Ждёт завершения всех принятых заданий."""
        await asyncio.gather(*(task._done.wait() for task in self._tasks.values()))
        return self.list()

    # ------------------------------------------------------------------ #
    # internals                                                          #
    # ------------------------------------------------------------------ #
    async def _worker(self, name: str) -> None:
        assert self._queue is not None
        while True:
            task = await self._queue.get()
            try:
                if not task.done:
                    with task_context(task.id):
                        await self._execute(task, name)
            finally:
                self._queue.task_done()

    async def _execute(self, task: MirrorTask, name: str) -> None:
        task.status = TaskStatus.RUNNING
        task.started_at = _now()
        task.worker = name
        logger.info("task.state id=%s status=%s worker=%s", task.id, task.status.value, name)
        self._notify(task)

        try:
            summary = await self._runner(task.config, task.cancel_event)
        except asyncio.CancelledError:
            self._finish(task, TaskStatus.CANCELLED, error="worker stopped")
            raise
        except Exception as exc:
            logger.exception("task.crashed id=%s", task.id)
            self._finish(task, TaskStatus.FAILED, error=str(exc) or exc.__class__.__name__)
            return

        if summary.fatal:
            self._finish(task, TaskStatus.FAILED, summary, error=summary.errors[0] if summary.errors else None)
        elif summary.cancelled or task.cancel_event.is_set():
            self._finish(task, TaskStatus.CANCELLED, summary, error="cancelled")
        else:
            self._finish(task, TaskStatus.SUCCEEDED, summary)

    def _finish(
        self,
        task: MirrorTask,
        status: TaskStatus,
        result: Optional[JobSummary] = None,
        error: Optional[str] = None,
    ) -> None:
        if task.done:
            return
        task.status = status
        task.result = result
        task.error_message = error
        task.finished_at = _now()
        task._done.set()
        logger.info("task.state id=%s status=%s", task.id, status.value)
        self._notify(task)

    def _notify(self, task: MirrorTask) -> None:
        for listener in self._listeners:
            try:
                listener(task)
            except Exception:
                logger.exception("task.listener-failed id=%s listener=%r", task.id, listener)
