from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .observation_types import DEFAULT_CONTEXT_TYPES, normalize_observation_type

DEFAULT_PORT = 37778
DEFAULT_HOST = "127.0.0.1"
DEFAULT_DATA_DIR = "~/.openclaw-mem"
DEFAULT_CONFIG_PATH = Path(DEFAULT_DATA_DIR).expanduser() / "settings.json"
DEFAULT_CONTEXT_MAX_TOKENS = 4000
DB_FILENAME = "memory.db"
PID_FILENAME = "worker.pid"


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("OPENCLAW_MEM_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


@dataclass
class ContextInjectionSettings:
    enabled: bool = True
    max_tokens: int = DEFAULT_CONTEXT_MAX_TOKENS
    include_types: list[str] = field(default_factory=lambda: list(DEFAULT_CONTEXT_TYPES))


@dataclass
class OpenclawMemConfig:
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    data_dir: str = DEFAULT_DATA_DIR
    # Falls back to <data_dir>/memory.db when unset.
    db_path: str | None = None
    log_level: str = "INFO"
    context_injection: ContextInjectionSettings = field(default_factory=ContextInjectionSettings)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def database_path(self) -> Path:
        if self.db_path:
            return Path(self.db_path).expanduser()
        return self.data_path / DB_FILENAME

    @property
    def pid_path(self) -> Path:
        return self.data_path / PID_FILENAME

    @property
    def worker_url(self) -> str:
        return worker_url(self.host, self.port)

    def to_document(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "host": self.host,
            "dataDir": self.data_dir,
            "logLevel": self.log_level,
            "database": {"path": self.db_path or f"{self.data_dir.rstrip('/')}/{DB_FILENAME}"},
            "contextInjection": {
                "enabled": self.context_injection.enabled,
                "maxTokens": self.context_injection.max_tokens,
                "includeTypes": list(self.context_injection.include_types),
            },
        }


def worker_url(host: str, port: int) -> str:
    if host in {"0.0.0.0", "::", ""}:
        host = DEFAULT_HOST
    return f"http://{host}:{port}"


def default_settings_document() -> dict[str, Any]:
    return OpenclawMemConfig().to_document()


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_str_list(value: object, *, key: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, list):
        items: list[str] = []
        for item in value:
            if isinstance(item, str) and item.strip():
                items.append(normalize_observation_type(item))
        return items
    if isinstance(value, str):
        return [normalize_observation_type(p) for p in value.split(",") if p.strip()]
    warnings.warn(f"Invalid list for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return None


def load_config(path: Path | None = None) -> OpenclawMemConfig:
    cfg = OpenclawMemConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text() or "{}")
        except json.JSONDecodeError:
            warnings.warn(
                f"Ignoring invalid config json at {config_path}", RuntimeWarning, stacklevel=2
            )
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: OpenclawMemConfig, data: dict[str, Any]) -> OpenclawMemConfig:
    if "port" in data:
        cfg.port = _parse_int(data["port"], cfg.port, key="port")
    if isinstance(data.get("host"), str) and data["host"].strip():
        cfg.host = data["host"].strip()
    if isinstance(data.get("dataDir"), str) and data["dataDir"].strip():
        cfg.data_dir = data["dataDir"].strip()
    if isinstance(data.get("logLevel"), str) and data["logLevel"].strip():
        cfg.log_level = data["logLevel"].strip().upper()
    database = data.get("database")
    if isinstance(database, dict):
        db_path = database.get("path")
        if isinstance(db_path, str) and db_path.strip():
            cfg.db_path = db_path.strip()
    injection = data.get("contextInjection")
    if isinstance(injection, dict):
        settings = cfg.context_injection
        settings.enabled = _coerce_bool(
            injection.get("enabled"), settings.enabled, key="contextInjection.enabled"
        )
        settings.max_tokens = _parse_int(
            injection.get("maxTokens"), settings.max_tokens, key="contextInjection.maxTokens"
        )
        include = _coerce_str_list(
            injection.get("includeTypes"), key="contextInjection.includeTypes"
        )
        if include is not None:
            settings.include_types = include
    return cfg


def _apply_env(cfg: OpenclawMemConfig) -> OpenclawMemConfig:
    cfg.port = _parse_int(os.getenv("OPENCLAW_MEM_PORT"), cfg.port, key="port")
    cfg.host = os.getenv("OPENCLAW_MEM_HOST", cfg.host)
    cfg.data_dir = os.getenv("OPENCLAW_MEM_DATA_DIR", cfg.data_dir)
    cfg.db_path = os.getenv("OPENCLAW_MEM_DB", cfg.db_path)
    cfg.log_level = os.getenv("OPENCLAW_MEM_LOG_LEVEL", cfg.log_level).upper()
    cfg.context_injection.enabled = _parse_bool(
        os.getenv("OPENCLAW_MEM_CONTEXT_INJECTION"), cfg.context_injection.enabled
    )
    return cfg
