"""
Hashdeck configuration — TOML file plus environment overrides.

Layout::

    [backend]
    api_url = "http://localhost:3000"
    relay_url = "ws://localhost:3000/ws"

    [timeouts]
    probe = 5.0
    request = 10.0
    job = 0            # 0 = wait for the job however long it takes
    relay_open = 10.0

    [ui]
    keep_alive_without_surfaces = false
    stats_buffer = 64

    [logging]
    level = "INFO"
    file = "~/.hashdeck/hashdeck.log"

Resolution order: explicit path argument, ``HASHDECK_CONFIG``, then
``<config_dir>/config.toml``.  Only an explicitly requested file must exist.
"""

from __future__ import annotations

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from hashdeck.core.exceptions import ConfigError, ConfigNotFoundError

CONFIG_FILENAME = "config.toml"
LOG_FILENAME = "hashdeck.log"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def config_dir() -> Path:
    """Return the Hashdeck home directory (``HASHDECK_HOME`` or ``~/.hashdeck``)."""
    env = os.environ.get("HASHDECK_HOME", "")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".hashdeck"


def default_config_path() -> Path:
    env = os.environ.get("HASHDECK_CONFIG", "")
    if env:
        return Path(env).expanduser()
    return config_dir() / CONFIG_FILENAME


def _default_keep_alive() -> bool:
    # Activation-driven platforms keep the process alive with zero surfaces
    return sys.platform == "darwin"


@dataclass
class HashdeckConfig:
    api_url: str = "http://localhost:3000"
    relay_url: str = "ws://localhost:3000/ws"
    probe_timeout: float = 5.0
    request_timeout: float = 10.0
    job_timeout: float | None = None
    relay_open_timeout: float = 10.0
    stats_buffer: int = 64
    keep_alive_without_surfaces: bool = field(default_factory=_default_keep_alive)
    log_level: str = "INFO"
    log_file: Path | None = None

    @property
    def status_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/api/stats"

    @property
    def resolved_log_file(self) -> Path:
        return self.log_file or config_dir() / LOG_FILENAME

    def validate(self) -> None:
        """Raise ConfigError if any field is out of range."""
        api = urlparse(self.api_url)
        if api.scheme not in ("http", "https") or not api.netloc:
            raise ConfigError(f"backend.api_url must be an http(s) URL, got {self.api_url!r}")
        relay = urlparse(self.relay_url)
        if relay.scheme not in ("ws", "wss") or not relay.netloc:
            raise ConfigError(f"backend.relay_url must be a ws(s) URL, got {self.relay_url!r}")
        for name in ("probe_timeout", "request_timeout", "relay_open_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.job_timeout is not None and self.job_timeout <= 0:
            raise ConfigError("job_timeout must be positive (or 0 in TOML for no limit)")
        if self.stats_buffer < 1:
            raise ConfigError("ui.stats_buffer must be at least 1")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"logging.level must be one of {sorted(_LOG_LEVELS)}")

    def to_toml_dict(self) -> dict[str, Any]:
        logging_section: dict[str, Any] = {"level": self.log_level}
        if self.log_file is not None:
            logging_section["file"] = str(self.log_file)
        return {
            "backend": {"api_url": self.api_url, "relay_url": self.relay_url},
            "timeouts": {
                "probe": self.probe_timeout,
                "request": self.request_timeout,
                "job": self.job_timeout or 0,
                "relay_open": self.relay_open_timeout,
            },
            "ui": {
                "keep_alive_without_surfaces": self.keep_alive_without_surfaces,
                "stats_buffer": self.stats_buffer,
            },
            "logging": logging_section,
        }


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def _number(section: dict[str, Any], key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    return float(value)


def _from_dict(data: dict[str, Any]) -> HashdeckConfig:
    backend = _section(data, "backend")
    timeouts = _section(data, "timeouts")
    ui = _section(data, "ui")
    logging_section = _section(data, "logging")
    defaults = HashdeckConfig()

    job = _number(timeouts, "job", 0)
    keep_alive = ui.get("keep_alive_without_surfaces", defaults.keep_alive_without_surfaces)
    if not isinstance(keep_alive, bool):
        raise ConfigError("ui.keep_alive_without_surfaces must be a boolean")
    stats_buffer = ui.get("stats_buffer", defaults.stats_buffer)
    if isinstance(stats_buffer, bool) or not isinstance(stats_buffer, int):
        raise ConfigError("ui.stats_buffer must be an integer")
    log_file = logging_section.get("file")

    return HashdeckConfig(
        api_url=str(backend.get("api_url", defaults.api_url)),
        relay_url=str(backend.get("relay_url", defaults.relay_url)),
        probe_timeout=_number(timeouts, "probe", defaults.probe_timeout),
        request_timeout=_number(timeouts, "request", defaults.request_timeout),
        job_timeout=job or None,
        relay_open_timeout=_number(timeouts, "relay_open", defaults.relay_open_timeout),
        stats_buffer=stats_buffer,
        keep_alive_without_surfaces=keep_alive,
        log_level=str(logging_section.get("level", defaults.log_level)).upper(),
        log_file=Path(log_file).expanduser() if log_file else None,
    )


def _apply_env(config: HashdeckConfig) -> None:
    if api_url := os.environ.get("HASHDECK_API_URL"):
        config.api_url = api_url
    if relay_url := os.environ.get("HASHDECK_RELAY_URL"):
        config.relay_url = relay_url
    if level := os.environ.get("HASHDECK_LOG_LEVEL"):
        config.log_level = level.upper()


def load_config(path: Path | None = None) -> HashdeckConfig:
    """Load, override from the environment, and validate the configuration.

    Raises ConfigNotFoundError when ``path`` is given and missing, and
    ConfigError for unreadable or invalid content.
    """
    explicit = path is not None or bool(os.environ.get("HASHDECK_CONFIG"))
    cfg_path = path if path is not None else default_config_path()

    if cfg_path.exists():
        try:
            with cfg_path.open("rb") as fh:
                data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {cfg_path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read {cfg_path}: {exc}") from exc
        config = _from_dict(data)
    elif explicit:
        raise ConfigNotFoundError(f"Config file not found: {cfg_path}")
    else:
        config = HashdeckConfig()

    _apply_env(config)
    config.validate()
    return config


def save_config(config: HashdeckConfig, path: Path | None = None) -> Path:
    """Write ``config`` as TOML and return the path written."""
    import tomli_w

    config.validate()
    cfg_path = path if path is not None else default_config_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    with cfg_path.open("wb") as fh:
        tomli_w.dump(config.to_toml_dict(), fh)
    return cfg_path
