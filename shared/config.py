"""
Configuration for the change notifier.

Everything the original function hard-coded (provider app id, REST API key,
watched data path, notification text) lives here so behavior can change
without a code change.

Sources, in increasing priority:
- Field defaults
- An optional JSON file (camelCase or snake_case keys)
- NOTIFIER_* environment variables

The API key is a SecretStr and is never written to logs.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from triggers.paths import PathPattern


DEFAULT_API_URL = "https://onesignal.com/api/v1/notifications"

ENV_PREFIX = "NOTIFIER_"
ENV_CONFIG_FILE = "NOTIFIER_CONFIG"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


class PushInitMode(str, Enum):
    """
    Where the push SDK gets initialized at startup.

    NATIVE: the entry point initializes it explicitly.
    PLUGIN: initialization is deferred to the plugin layer.
    """
    NATIVE = "native"
    PLUGIN = "plugin"


class NotifierConfig(BaseModel):
    """Options for the ChangeNotifier function and its startup sequence."""

    app_id: str = Field(..., min_length=1, description="Provider application id")
    api_key: SecretStr = Field(..., description="Provider REST API key, sent verbatim as Authorization")
    watched_path: str = Field(
        default="/yourDataPath/{childId}",
        description="Data path pattern with exactly one wildcard segment",
    )
    title: str = Field(default="Database Updated")
    body: str = Field(default="There's new content in your app!")
    api_url: AnyHttpUrl = Field(default=DEFAULT_API_URL, validate_default=True)
    included_segments: list[str] = Field(default_factory=lambda: ["All"])
    language: str = Field(default="en")
    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="HTTP timeout; None leaves it to the hosting runtime",
    )
    push_init_mode: PushInitMode = Field(default=PushInitMode.PLUGIN)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("watched_path")
    @classmethod
    def _check_watched_path(cls, value: str) -> str:
        pattern = PathPattern(value)
        if len(pattern.wildcards) != 1:
            raise ValueError(
                f"watched path must contain exactly one wildcard segment, got {value!r}"
            )
        return pattern.raw

    @field_validator("included_segments")
    @classmethod
    def _check_segments(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("included_segments must not be empty")
        return value

    @property
    def pattern(self) -> PathPattern:
        """Parsed watched path."""
        return PathPattern(self.watched_path)


# Environment variable suffix -> field name
_ENV_FIELDS = {
    "APP_ID": "app_id",
    "API_KEY": "api_key",
    "WATCHED_PATH": "watched_path",
    "TITLE": "title",
    "BODY": "body",
    "API_URL": "api_url",
    "LANGUAGE": "language",
    "TIMEOUT_SECONDS": "timeout_seconds",
    "PUSH_INIT_MODE": "push_init_mode",
    "INCLUDED_SEGMENTS": "included_segments",
}


def _normalize_keys(data: Mapping) -> dict:
    """Map camelCase keys to field names so file and env values merge cleanly."""
    by_alias = {to_camel(name): name for name in NotifierConfig.model_fields}
    normalized = {}
    for key, value in data.items():
        normalized[by_alias.get(key, key)] = value
    return normalized


def _read_file(path: Path) -> dict:
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")
    return _normalize_keys(data)


def _read_env(environ: Mapping[str, str]) -> dict:
    values = {}
    for suffix, field_name in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        if field_name == "included_segments":
            values[field_name] = [s.strip() for s in raw.split(",") if s.strip()]
        else:
            values[field_name] = raw
    return values


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> NotifierConfig:
    """
    Build a NotifierConfig from a JSON file and environment variables.

    Args:
        path: JSON config file. Falls back to $NOTIFIER_CONFIG when not given.
        environ: Environment mapping (defaults to os.environ).

    Raises:
        ConfigError: If the file is unreadable or the merged values are invalid.
    """
    if environ is None:
        environ = os.environ

    if path is None and environ.get(ENV_CONFIG_FILE):
        path = Path(environ[ENV_CONFIG_FILE])

    values: dict = {}
    if path is not None:
        values.update(_read_file(Path(path)))
    values.update(_read_env(environ))

    try:
        return NotifierConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid notifier configuration: {e}") from e
