"""Poller configuration for appreviews."""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from appreviews._constants import (
    DEFAULT_COUNTRY,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STORAGE_PATH,
)
from appreviews.exceptions import ConfigError


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc


def _split_app_ids(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def load_app_ids(path: str | Path) -> tuple[str, ...]:
    """Read the list of app ids from an apps JSON file.

    The file holds an object of the form ``{"apps": ["<id>", ...]}``.
    Duplicate ids are dropped, first occurrence wins.

    Raises
    ------
    ConfigError
        If the file is missing, is not valid JSON, or has the wrong shape.
    """
    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read apps config {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Apps config {file_path} is not valid JSON: {exc}") from exc

    apps = raw.get("apps") if isinstance(raw, dict) else None
    if not isinstance(apps, list) or not all(isinstance(app, str | int) for app in apps):
        raise ConfigError(f"Apps config {file_path} must contain an 'apps' list of ids")

    return tuple(dict.fromkeys(str(app).strip() for app in apps if str(app).strip()))


@dataclasses.dataclass(frozen=True)
class PollerConfig:
    """Runtime configuration.

    Parameters
    ----------
    app_ids : tuple of str
        App Store application ids to poll every cycle.
    poll_interval : float
        Seconds to wait between the end of one poll cycle and the
        start of the next. Defaults to 5 minutes.
    storage_path : str
        Path of the JSON mirror file.
    country : str
        App Store storefront used in the feed URL.
    fetch_timeout : float
        Per-request timeout in seconds for feed downloads.
    host : str
        Bind address of the read API.
    port : int
        Port of the read API.
    log_level : str
        Root logging level name.
    """

    app_ids: tuple[str, ...] = ()
    poll_interval: float = DEFAULT_POLL_INTERVAL
    storage_path: str = DEFAULT_STORAGE_PATH
    country: str = DEFAULT_COUNTRY
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be positive, got {self.fetch_timeout}")

    @classmethod
    def from_env(cls, **overrides: Any) -> PollerConfig:
        """Create configuration from ``REVIEWS_*`` environment variables.

        Explicit keyword arguments override environment values; ``None``
        overrides are ignored so CLI defaults can be passed straight through.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        app_ids_env = env.get("REVIEWS_APP_IDS")
        if app_ids_env is not None:
            config_kwargs["app_ids"] = _split_app_ids(app_ids_env)

        _ENV_STR_MAP = {
            "REVIEWS_STORAGE_PATH": "storage_path",
            "REVIEWS_COUNTRY": "country",
            "REVIEWS_HOST": "host",
            "REVIEWS_LOG_LEVEL": "log_level",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        interval = _env_float(env, "REVIEWS_POLL_INTERVAL")
        if interval is not None:
            config_kwargs["poll_interval"] = interval

        timeout = _env_float(env, "REVIEWS_FETCH_TIMEOUT")
        if timeout is not None:
            config_kwargs["fetch_timeout"] = timeout

        port_env = env.get("REVIEWS_PORT")
        if port_env is not None:
            try:
                config_kwargs["port"] = int(port_env)
            except ValueError as exc:
                raise ConfigError(f"REVIEWS_PORT must be an integer, got {port_env!r}") from exc

        config_kwargs.update({key: value for key, value in overrides.items() if value is not None})
        if "app_ids" in config_kwargs:
            config_kwargs["app_ids"] = tuple(config_kwargs["app_ids"])

        return cls(**config_kwargs)
