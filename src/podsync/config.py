from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import __version__

# Credentials may reference variables defined in a .env file
load_dotenv(override=False)

APP_NAME = "podsync"
CONFIG_FILENAME = "config.yaml"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_USER_AGENT = f"podsync/{__version__}"
DEFAULT_WORKERS = 4
MIN_TIMEOUT_SECONDS = 1
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FILE_ENV_VAR = "PODSYNC_LOG_FILE"


def default_config_path() -> Path:
    """Return the per-user configuration file location."""
    return Path(user_config_dir(APP_NAME)) / CONFIG_FILENAME


class Podcast(BaseModel):
    """A podcast subscription.

    Attributes:
        name: Display name, also used to select the podcast on the command line.
        feed: RSS feed URL (http or https).
        username: Optional HTTP Basic Auth user name.
        password: Optional HTTP Basic Auth password.
        path: Local storage directory for the snapshot and downloaded media.
    """

    name: str
    feed: str
    username: Optional[str] = None
    password: Optional[str] = None
    path: Path

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        value = str(value or "").strip()
        if not value:
            raise ValueError("podcast name cannot be empty")
        return value

    @field_validator("feed", mode="before")
    @classmethod
    def _validate_feed(cls, value: Any) -> str:
        value = str(value or "").strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"feed URL must be http or https: {value!r}")
        if not parsed.netloc:
            raise ValueError(f"feed URL must have a valid hostname: {value!r}")
        return value

    @field_validator("username", "password", mode="before")
    @classmethod
    def _expand_credentials(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        expanded = os.path.expandvars(str(value))
        return expanded or None

    @field_validator("path", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if value is None or not str(value).strip():
            raise ValueError("podcast path cannot be empty")
        return Path(os.path.expandvars(str(value).strip())).expanduser()


class Config(BaseModel):
    """Configuration for syncing and downloading podcasts.

    Attributes:
        podcasts: Podcasts to manage; storage paths must be unique.
        timeout: Request timeout in seconds for feed fetches and downloads (minimum: 1).
        workers: Maximum number of sync cycles running at once.
        user_agent: HTTP User-Agent header.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path; falls back to ``PODSYNC_LOG_FILE``.
        verify_length: Fail downloads whose size differs from the declared length.
    """

    podcasts: List[Podcast] = Field(default_factory=list)
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    workers: int = DEFAULT_WORKERS
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = Field(default=None, validate_default=True)
    verify_length: bool = False

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @field_validator("timeout", mode="before")
    @classmethod
    def _ensure_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be an integer") from exc
        return max(MIN_TIMEOUT_SECONDS, timeout)

    @field_validator("workers", mode="before")
    @classmethod
    def _ensure_workers(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_WORKERS
        try:
            workers = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("workers must be an integer") from exc
        if workers < 1:
            raise ValueError("workers must be at least 1")
        return workers

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_USER_AGENT
        return str(value).strip() or DEFAULT_USER_AGENT

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper() or DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @field_validator("log_file", mode="before")
    @classmethod
    def _load_log_file_from_env(cls, value: Any) -> Optional[str]:
        if value is not None and str(value).strip():
            return str(value).strip()
        env_log_file = os.getenv(LOG_FILE_ENV_VAR, "").strip()
        return env_log_file or None

    @model_validator(mode="after")
    def _validate_unique_podcasts(self) -> "Config":
        seen_paths: Dict[Path, str] = {}
        seen_names = set()
        for podcast in self.podcasts:
            if podcast.name in seen_names:
                raise ValueError(f"duplicate podcast name: {podcast.name!r}")
            seen_names.add(podcast.name)
            key = Path(os.path.abspath(podcast.path))
            if key in seen_paths:
                raise ValueError(
                    f"podcasts {seen_paths[key]!r} and {podcast.name!r} share the storage path {key}"
                )
            seen_paths[key] = podcast.name
        return self

    def podcast(self, name: str) -> Podcast:
        """Look up a configured podcast by name.

        Raises:
            KeyError: If no podcast has that name
        """
        for podcast in self.podcasts:
            if podcast.name == name:
                return podcast
        raise KeyError(name)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The file format is auto-detected from the extension (``.json``,
    ``.yaml`` or ``.yml``). The returned mapping can be passed to
    ``Config.model_validate``.

    Args:
        path: Path to the configuration file; ``~`` is expanded

    Returns:
        Dictionary of configuration values

    Raises:
        ValueError: If the path is empty, the file is missing or unreadable,
            the format is unsupported, parsing fails, or the top level is not a mapping

    Example:
        >>> cfg = Config.model_validate(load_config_file("~/.config/podsync/config.yaml"))
        >>> [p.name for p in cfg.podcasts]
        ['Example']
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
