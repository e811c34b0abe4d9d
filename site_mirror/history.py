"""site_mirror.history: Журнал переходов состояний заданий в формате JSON Lines."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from site_mirror.status import task_status
from site_mirror.tasks import MirrorTask

__all__ = ["JsonLinesHistory"]


class JsonLinesHistory:
    """Слушатель TaskManager: дописывает одну запись на каждый переход состояния.

    Ошибки записи пробрасываются; TaskManager логирует их и продолжает работу.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, task: MirrorTask) -> None:
        record: Dict[str, Any] = {
            "recorded_at": datetime.now(timezone.utc).isoformat(),
            **task_status(task),
        }
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False) + "\n")

    def read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
