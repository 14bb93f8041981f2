from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from newstype.core.gateway import (
    CATEGORIES,
    COUNTRIES,
    DEFAULT_API_BASE_URL,
    PAGE_SIZE,
    MockNewsGateway,
    NewsGateway,
    RelayGateway,
    WorldNewsGateway,
)
from newstype.core.storage import default_data_dir

logger = logging.getLogger(__name__)

GATEWAYS = ("worldnews", "relay", "mock")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_OVERRIDES = {
    "NEWSTYPE_GATEWAY": "gateway",
    "NEWSTYPE_RELAY_URL": "relay_url",
    "NEWSTYPE_LOG_LEVEL": "log_level",
    "NEWSTYPE_DATA_DIR": "data_dir",
}


@dataclass(frozen=True)
class Settings:
    gateway: str = "worldnews"
    api_base_url: str = DEFAULT_API_BASE_URL
    relay_url: str = ""
    page_size: int = PAGE_SIZE
    request_timeout: float = 10
    metrics_interval_ms: int = 500
    default_category: str = "top"
    default_country: str = "us"
    log_level: str = "INFO"
    data_dir: Path = field(default_factory=default_data_dir)

    @property
    def storage_path(self) -> Path:
        return self.data_dir / "storage.json"


def default_config_path() -> Path:
    return default_data_dir() / "config.yaml"


def _coerce(name: str, value: Any) -> Any:
    if name in ("page_size", "metrics_interval_ms"):
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"config: '{name}' must be an integer, got {value!r}") from e
    if name == "request_timeout":
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"config: '{name}' must be a number, got {value!r}") from e
    if name == "data_dir":
        return Path(str(value)).expanduser()
    if name == "log_level":
        return str(value).strip().upper()
    return str(value).strip()


def _validate(settings: Settings) -> Settings:
    if settings.gateway not in GATEWAYS:
        raise ValueError(f"config: 'gateway' must be one of {', '.join(GATEWAYS)}, got {settings.gateway!r}")
    if settings.gateway == "relay" and not settings.relay_url:
        raise ValueError("config: 'relay_url' is required when gateway is 'relay'")
    if settings.page_size <= 0:
        raise ValueError("config: 'page_size' must be positive")
    if settings.request_timeout <= 0:
        raise ValueError("config: 'request_timeout' must be positive")
    if settings.metrics_interval_ms <= 0:
        raise ValueError("config: 'metrics_interval_ms' must be positive")
    if settings.default_category not in CATEGORIES:
        raise ValueError(f"config: unknown 'default_category' {settings.default_category!r}")
    if settings.default_country not in COUNTRIES:
        raise ValueError(f"config: unknown 'default_country' {settings.default_country!r}")
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"config: unknown 'log_level' {settings.log_level!r}")
    return settings


def _read_file(path: Path) -> Dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name}: expected a YAML mapping of settings")
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"{path.name}: unknown settings: {', '.join(map(str, unknown))}")
    return raw


def load_settings(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from defaults, the YAML file and environment overrides, in that order."""
    path = path or default_config_path()
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    if path.exists():
        values.update(_read_file(path))
        logger.info("Loaded settings from %s", path)
    for variable, name in ENV_OVERRIDES.items():
        if environ.get(variable):
            values[name] = environ[variable]

    settings = replace(Settings(), **{name: _coerce(name, value) for name, value in values.items()})
    return _validate(settings)


def create_gateway(settings: Settings) -> NewsGateway:
    if settings.gateway == "mock":
        logger.info("Using offline sample articles")
        return MockNewsGateway(page_size=settings.page_size)
    if settings.gateway == "relay":
        logger.info("Using news relay at %s", settings.relay_url)
        return RelayGateway(settings.relay_url, timeout=settings.request_timeout)
    return WorldNewsGateway(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
        page_size=settings.page_size,
    )
