# File: site_mirror/engine.py
"""site_mirror.engine: Синхронный фасад для CLI и скриптов: запуск заданий и ожидание результата."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Sequence, Union

from site_mirror.config import CrawlConfig, MirrorSettings, load_settings
from site_mirror.history import JsonLinesHistory
from site_mirror.logger import logger
from site_mirror.tasks import Listener, MirrorTask, TaskManager, TaskQueueFullError

__all__ = ["Engine"]


class Engine:
    """Фасад для CLI и тестов: загрузка настроек, запуск заданий на пуле и сбор статусов."""

    @staticmethod
    def load_settings(path: Optional[str]) -> MirrorSettings:
        """Загружает настройки из YAML/JSON или использует значения по умолчанию."""
        return load_settings(path)

    def __init__(self, settings: MirrorSettings, listeners: Iterable[Listener] = ()) -> None:
        self.settings = settings
        self.listeners: List[Listener] = list(listeners)
        if settings.history_file is not None:
            self.listeners.append(JsonLinesHistory(settings.history_file))

    def mirror(self, configs: Sequence[Union[CrawlConfig, str]]) -> List[MirrorTask]:
        """Запускает задания (по одному на конфиг или URL) и возвращает их в порядке подачи."""
        jobs = [c if isinstance(c, CrawlConfig) else self.settings.build_config(c) for c in configs]
        logger.info("engine.start jobs=%d workers=%d", len(jobs), self.settings.pool_size)

        async def _runner() -> List[MirrorTask]:
            async with TaskManager(self.settings, listeners=self.listeners) as manager:
                for job in jobs:
                    manager.submit(job)
                return await manager.join()

        try:
            return asyncio.run(_runner())
        except TaskQueueFullError as exc:
            logger.error("engine.rejected %s", exc)
            raise
