from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

CONFIG_DEFAULT = "backlog_sync.config.yaml"
DEFAULT_SOURCE_FILE = ".ACTIVE_PRIORITY_ISSUES.md"
DEFAULT_MARKERS = ("🟢", "🟡", "🟣")
DEFAULT_PRIORITY_ORDER = ("P0", "P1", "P2")
DEFAULT_ACTIVE_LABELS = ("ai-in-progress", "ai-review", "done")


@dataclass
class SyncConfig:
    source_file: Path
    separator_char: str = "─"
    separator_min_run: int = 10
    markers: tuple[str, ...] = DEFAULT_MARKERS
    github_repo: str | None = None
    page_size: int = 100
    title_prefix: str = "[AI TASK]"
    ready_label: str = "ai-ready"
    in_progress_label: str = "ai-in-progress"
    active_labels: tuple[str, ...] = DEFAULT_ACTIVE_LABELS
    priority_order: tuple[str, ...] = DEFAULT_PRIORITY_ORDER
    serial_tag: str = "touches:i18n-json"
    dry_run_default: bool = False
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Read-side fan-out only; mutations are always sequential
    concurrency_enabled: bool = True
    concurrency_max_workers: int = 2
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    @classmethod
    def default(cls, base_dir: str | Path = ".") -> SyncConfig:
        return cls(source_file=Path(base_dir) / DEFAULT_SOURCE_FILE)


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $.

    An unset or empty variable resolves to None so callers fall back to
    their own defaults.
    """
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name) or None
    return value


def _positive_int(section: dict[str, Any], key: str, default: int, name: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f'{name} must be an integer, got {value!r}')
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'{name} must be an integer, got {value!r}') from exc
    if number < 1:
        raise ConfigError(f'{name} must be positive')
    return number


def _str_tuple(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        return tuple(p.strip() for p in value.split(',') if p.strip())
    if isinstance(value, list):
        return tuple(str(p).strip() for p in value if str(p).strip())
    raise ConfigError(f'Expected a list of strings, got {type(value).__name__}')


def load_config(path: str | Path) -> SyncConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root in {p} must be a mapping')
    raw = cast(dict[str, Any], loaded)
    src = cast(dict[str, Any], raw.get('source', {}) or {})
    gh = cast(dict[str, Any], raw.get('github', {}) or {})
    labels = cast(dict[str, Any], raw.get('labels', {}) or {})
    scheduling = cast(dict[str, Any], raw.get('scheduling', {}) or {})
    behavior = cast(dict[str, Any], raw.get('behavior', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    concurrency_config = cast(dict[str, Any], raw.get('concurrency', {}) or {})
    env_auth = cast(dict[str, Any], raw.get('environment', {}) or {})

    separator = str(src.get('separator_char', '─'))
    if len(separator) != 1:
        raise ConfigError('source.separator_char must be a single character')
    page_size = _positive_int(gh, 'page_size', 100, 'github.page_size')
    min_run = _positive_int(src, 'separator_min_run', 10, 'source.separator_min_run')
    max_workers = _positive_int(concurrency_config, 'max_workers', 2, 'concurrency.max_workers')

    return SyncConfig(
        source_file=p.parent / src.get('file', DEFAULT_SOURCE_FILE),
        separator_char=separator,
        separator_min_run=min_run,
        markers=_str_tuple(src.get('markers'), DEFAULT_MARKERS),
        github_repo=_resolve_env_var(gh.get('repo')),
        page_size=page_size,
        title_prefix=str(gh.get('title_prefix', '[AI TASK]')),
        ready_label=str(labels.get('ready', 'ai-ready')),
        in_progress_label=str(labels.get('in_progress', 'ai-in-progress')),
        active_labels=_str_tuple(labels.get('active'), DEFAULT_ACTIVE_LABELS),
        priority_order=_str_tuple(scheduling.get('priority_order'), DEFAULT_PRIORITY_ORDER),
        serial_tag=str(scheduling.get('serial_tag', 'touches:i18n-json')),
        dry_run_default=bool(behavior.get('dry_run_default', False)),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        concurrency_enabled=bool(concurrency_config.get('enabled', True)),
        concurrency_max_workers=max_workers,
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


__all__ = ["CONFIG_DEFAULT", "SyncConfig", "load_config", "ConfigError"]
