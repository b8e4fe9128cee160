"""Application settings loaded from XDG config and environment."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from cognis.logging import LOG_LEVELS, normalize_level
from cognis.terminal.config import (
    DEFAULT_TERM,
    LocalSessionConfiguration,
    MockConfiguration,
    build_configuration,
)

DEFAULT_SETTINGS_PATH = Path("~/.config/cognis/config.toml").expanduser()
SHELL_ENV = "COGNIS_SHELL"
LOG_LEVEL_ENV = "COGNIS_LOG_LEVEL"

_VALID_BACKENDS = {"local", "mock"}


class AppSettings(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"
    log_file: str = ""
    default_backend: Literal["local", "mock"] = "local"
    shell_path: str = ""
    term: str = DEFAULT_TERM
    connect_timeout: float = Field(default=10.0, gt=0)
    silent_timeout: float = Field(default=30.0, gt=0)
    silent_max_concurrency: int = Field(default=4, ge=1, le=64)
    mock_connect_delay: float = Field(default=0.5, ge=0)
    mock_silent_delay: float = Field(default=0.8, ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_level(value)
        return value

    def local_configuration(self, **overrides: object) -> LocalSessionConfiguration:
        values: dict[str, object] = {
            "term": self.term,
            "connect_timeout": self.connect_timeout,
            "silent_timeout": self.silent_timeout,
            "silent_max_concurrency": self.silent_max_concurrency,
        }
        if self.shell_path:
            values["shell_path"] = self.shell_path
        values.update({key: value for key, value in overrides.items() if value is not None})
        return build_configuration(LocalSessionConfiguration, **values)

    def mock_configuration(self, **overrides: object) -> MockConfiguration:
        values: dict[str, object] = {
            "connect_delay": self.mock_connect_delay,
            "silent_delay": self.mock_silent_delay,
            "connect_timeout": self.connect_timeout,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return build_configuration(MockConfiguration, **values)


def get_settings_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_SETTINGS_PATH
    return Path(path).expanduser()


def _positive_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return float(value)


def _non_negative_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return float(value)


def _sanitize(raw: dict[str, object]) -> AppSettings:
    settings = AppSettings()

    log_level = raw.get("log_level", settings.log_level)
    if isinstance(log_level, str) and normalize_level(log_level) in LOG_LEVELS:
        settings.log_level = cast(Literal["DEBUG", "INFO", "WARN", "ERROR"], normalize_level(log_level))

    log_file = raw.get("log_file", settings.log_file)
    if isinstance(log_file, str):
        settings.log_file = log_file.strip()

    default_backend = raw.get("default_backend", settings.default_backend)
    if isinstance(default_backend, str) and default_backend in _VALID_BACKENDS:
        settings.default_backend = cast(Literal["local", "mock"], default_backend)

    shell_path = raw.get("shell_path", settings.shell_path)
    if isinstance(shell_path, str):
        settings.shell_path = shell_path.strip()

    term = raw.get("term", settings.term)
    if isinstance(term, str) and term.strip():
        settings.term = term.strip()

    for key in ("connect_timeout", "silent_timeout"):
        value = _positive_float(raw.get(key))
        if value is not None:
            setattr(settings, key, value)

    for key in ("mock_connect_delay", "mock_silent_delay"):
        value = _non_negative_float(raw.get(key))
        if value is not None:
            setattr(settings, key, value)

    concurrency = raw.get("silent_max_concurrency", settings.silent_max_concurrency)
    if isinstance(concurrency, int) and not isinstance(concurrency, bool) and 1 <= concurrency <= 64:
        settings.silent_max_concurrency = concurrency

    return settings


def _apply_environment(settings: AppSettings) -> AppSettings:
    shell = os.getenv(SHELL_ENV, "").strip()
    if shell:
        settings.shell_path = shell
    level = normalize_level(os.getenv(LOG_LEVEL_ENV, ""))
    if level in LOG_LEVELS:
        settings.log_level = cast(Literal["DEBUG", "INFO", "WARN", "ERROR"], level)
    return settings


def load_settings(path: str | Path | None = None) -> AppSettings:
    resolved = get_settings_path(path)
    if not resolved.exists():
        return _apply_environment(AppSettings())
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _apply_environment(AppSettings())
    if not isinstance(raw, dict):
        return _apply_environment(AppSettings())
    return _apply_environment(_sanitize(raw))
