"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from diffwatch.errors import ConfigError
from diffwatch.models.config import (
    DEFAULT_DIFF_IGNORE_PATHS,
    APIConfig,
    ControllerConfig,
    DiffConfig,
    DiffWatchConfig,
    LogConfig,
    NamespacesConfig,
    NotificationConfig,
    ResourceConfig,
)

_PREFIX = "DIFFWATCH_"
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"{_PREFIX}{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{_PREFIX}{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_list(key: str, default: str = "") -> list[str]:
    return [item.strip() for item in _env(key, default).split(",") if item.strip()]


def _validate_namespaces(names: list[str], key: str) -> list[str]:
    for name in names:
        if not _NAMESPACE_RE.match(name):
            raise ConfigError(f"{_PREFIX}{key}: invalid namespace name {name!r}")
    return names


def _validate_ignore_paths(paths: list[str]) -> list[str]:
    for path in paths:
        if not path.startswith("/") and "/" in path:
            raise ConfigError(
                f"{_PREFIX}DIFF_IGNORE_PATHS: {path!r} has a key containing '/'; "
                "write it as a JSON Pointer with '/' escaped as ~1"
            )
    return paths


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _load_resources() -> ResourceConfig:
    flags = {name: _env_bool(f"RESOURCE_{name.upper()}") for name in ResourceConfig.flag_names()}
    return ResourceConfig(**flags)


def load_config() -> DiffWatchConfig:
    """Load configuration from DIFFWATCH_* environment variables."""
    return DiffWatchConfig(
        resources=_load_resources(),
        namespaces=NamespacesConfig(
            include=_validate_namespaces(_env_list("NAMESPACES_INCLUDE"), "NAMESPACES_INCLUDE"),
            exclude=_validate_namespaces(_env_list("NAMESPACES_EXCLUDE"), "NAMESPACES_EXCLUDE"),
        ),
        diff=DiffConfig(
            ignore_paths=_validate_ignore_paths(
                _env_list("DIFF_IGNORE_PATHS", ",".join(DEFAULT_DIFF_IGNORE_PATHS))
            ),
        ),
        controller=ControllerConfig(
            max_retries=_env_int("MAX_RETRIES", 5, min_val=0, max_val=20),
            sync_timeout_seconds=_env_int("SYNC_TIMEOUT", 300, min_val=10),
            sink_timeout_seconds=_env_int("SINK_TIMEOUT", 30, min_val=0, max_val=600),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT", 300, min_val=30, max_val=3600),
        ),
        notifications=NotificationConfig(
            log_enabled=_env_bool("NOTIFICATIONS_LOG_ENABLED", True),
            slack_secret_ref=_env("NOTIFICATIONS_SLACK_SECRET_REF", ""),
            email_secret_ref=_env("NOTIFICATIONS_EMAIL_SECRET_REF", ""),
            email_to=_env("NOTIFICATIONS_EMAIL_TO", ""),
            webhook_secret_ref=_env("NOTIFICATIONS_WEBHOOK_SECRET_REF", ""),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
