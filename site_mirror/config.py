# === FILE: site_mirror/config.py ===
"""
Модуль для загрузки и валидации конфигурации SiteMirror.
Используется Pydantic для описания схемы и проверки данных.

Две модели:
  * ``CrawlConfig``: неизменяемые параметры одного задания зеркалирования
    (принимает и camelCase-поля внешнего API: ``startUrl``, ``maxDepth`` …);
  * ``MirrorSettings``: настройки процесса: корень вывода, значения по
    умолчанию, размер пула, таймауты сети.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from site_mirror.utils import apply_replacements

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class ReplacementRule(BaseModel):
    """Правило текстовой замены: ``find`` → ``replace_with`` (буквальная подстрока)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    find: str = ""
    replace_with: str = Field("", alias="replaceWith")

    def apply(self, text: str) -> str:
        if not self.find:
            return text
        return text.replace(self.find, self.replace_with)


class CrawlConfig(BaseModel):
    """Конфигурация одного задания зеркалирования."""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    start_url: str = Field(..., alias="startUrl", description="Стартовый URL.")
    same_domain: bool = Field(True, alias="sameDomain", description="Обходить только исходный хост.")
    max_depth: int = Field(5, ge=0, alias="maxDepth", description="Максимальная глубина BFS.")
    max_pages: int = Field(500, ge=1, alias="maxPages", description="Жесткий лимит по числу страниц.")
    output_name: Optional[str] = Field(None, alias="outputName", description="Имя папки вывода.")
    title_suffix: Optional[str] = Field(None, alias="titleSuffix", description="Суффикс заголовка.")
    debug_only_home: bool = Field(False, alias="debugOnlyHome", description="Только главная страница.")
    sitemap_domain: Optional[str] = Field(None, alias="sitemapDomain", description="Префикс <loc>.")
    replace_rules: Tuple[ReplacementRule, ...] = Field(
        default_factory=tuple, alias="replaceRules", description="Правила замены по порядку."
    )

    @field_validator("start_url", mode="before")
    def _strip_start_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("startUrl must not be blank")
        return v

    @field_validator("output_name", "title_suffix", "sitemap_domain", mode="before")
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("replace_rules", mode="before")
    def _rules_none_to_empty(cls, v: Any) -> Any:
        return () if v is None else v

    def apply_replacements(self, text: str) -> str:
        return apply_replacements(text, self.replace_rules)


class MirrorSettings(BaseModel):
    """Настройки процесса зеркалирования (общие для всех заданий)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    output_root: Path = Field(Path("output"), description="Корневая папка вывода.")
    default_max_depth: int = Field(5, ge=0)
    default_max_pages: int = Field(500, ge=1)
    default_same_domain: bool = True
    workers: Optional[int] = Field(None, ge=1, description="Размер пула; None → max(2, CPU/2).")
    queue_capacity: int = Field(100, ge=1, description="Емкость очереди заданий.")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1)
    page_timeout: float = Field(20.0, gt=0, description="Таймаут загрузки страницы (секунд).")
    asset_timeout: float = Field(30.0, gt=0, description="Таймаут загрузки ресурса (секунд).")
    retry_times: int = Field(3, ge=1, description="Число попыток загрузки ресурса.")
    retry_backoff: float = Field(0.5, ge=0, description="Шаг линейной задержки между попытками.")
    site_assets_dir: Optional[Path] = Field(None, description="Свои favicon и служебные скрипты.")
    history_file: Optional[Path] = Field(None, description="JSON-lines журнал заданий.")

    @field_validator("output_root", mode="before")
    def _strip_quotes(cls, v: Any) -> Any:
        # значения из внешних конфигов иногда приходят в кавычках
        if v is None:
            return Path("output")
        if isinstance(v, str):
            v = v.strip()
            if len(v) >= 2 and v[0] == v[-1] and v[0] in "'\"":
                v = v[1:-1].strip()
        return v

    @model_validator(mode="after")
    def _check_assets_dir_exists(self) -> MirrorSettings:
        if self.site_assets_dir is not None and not Path(self.site_assets_dir).is_dir():
            raise FileNotFoundError(
                errno.ENOENT, os.strerror(errno.ENOENT), str(self.site_assets_dir)
            )
        return self

    @property
    def pool_size(self) -> int:
        if self.workers is not None:
            return self.workers
        return max(2, (os.cpu_count() or 2) // 2)

    def build_config(self, start_url: str, **overrides: Any) -> CrawlConfig:
        """Собирает CrawlConfig, подставляя значения по умолчанию из настроек."""
        data: Dict[str, Any] = {
            "start_url": start_url,
            "max_depth": self.default_max_depth,
            "max_pages": self.default_max_pages,
            "same_domain": self.default_same_domain,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return CrawlConfig(**data)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc


def _read_any(path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path)
    if suffix == ".json":
        return _read_json(path)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def _resolve(path: Union[str, Path]) -> Path:
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))
    return path_obj


def load_settings(path: Union[str, Path, None]) -> MirrorSettings:
    """
    Читает YAML или JSON и возвращает проверенный объект MirrorSettings.
    Без пути использует configs/default.yaml, а при его отсутствии значения по умолчанию.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return MirrorSettings()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = _resolve(path)

    data = _read_any(path_obj) or {}
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень конфига должен быть mapping, получено {type(data).__name__}")

    try:
        return MirrorSettings(**data)
    except ValidationError:
        raise


def load_rules(path: Union[str, Path]) -> List[ReplacementRule]:
    """Читает список правил замены ``[{find, replaceWith}, ...]`` из YAML/JSON."""
    data = _read_any(_resolve(path)) or []
    if not isinstance(data, list):
        raise TypeError(f"Правила замены должны быть списком, получено {type(data).__name__}")
    return [ReplacementRule(**item) for item in data]
