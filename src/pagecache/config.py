"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for pagecache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.pagecache/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User config** -- a single :class:`~pagecache.models.CacheConfig` JSON
  file holding allow-lists, intervals, store and fetch settings.
* **Precedence resolution** -- :func:`resolve_config` picks the config file
  from the CLI flag, the environment, the project directory or the user
  config directory, then applies ``PAGECACHE_REDIS_*`` overrides.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from pagecache.exceptions import ConfigError
from pagecache.models import CacheConfig

_APP_NAME = "pagecache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "pagecache.json"

_LIST_SEPARATOR = re.compile(r"\s*,\s*")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/pagecache/`` (default
    ``~/.config/pagecache/``). On macOS/Windows: ``~/.pagecache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (logs, crash reports), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/pagecache/`` (default
    ``~/.local/share/pagecache/``). On macOS/Windows: ``~/.pagecache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives next to *path* so ``os.replace`` is an atomic
    rename on POSIX. The temp file is removed on any failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as fd:
            tmp_path = fd.name
            fd.write(data)
            fd.flush()
            os.fsync(fd.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


# --- Config files ---


def user_config_path() -> Path:
    """Path to the user config file."""
    return get_config_dir() / _CONFIG_FILENAME


def parse_list(value: str) -> list[str]:
    """Split a comma-separated setting such as ``"a.com, b.com"``."""
    return [item for item in _LIST_SEPARATOR.split(value.strip()) if item]


def load_config(path: Optional[Path] = None) -> CacheConfig:
    """Load a configuration file.

    Args:
        path: File to read; defaults to the user config file.

    Returns:
        The deserialised :class:`~pagecache.models.CacheConfig`. A missing
        user config yields the defaults.

    Raises:
        ConfigError: If an explicitly given file is missing, or any file
            contains invalid JSON or fails validation.
    """
    explicit = path is not None
    path = path or user_config_path()
    if not path.is_file():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return CacheConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CacheConfig.model_validate(data)
    except (json.JSONDecodeError, ValidationError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: CacheConfig, path: Optional[Path] = None) -> Path:
    """Persist *config* atomically and return the path written."""
    path = path or user_config_path()
    data = config.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


def _project_config_path() -> Optional[Path]:
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    return path if path.is_file() else None


# --- Precedence resolution ---


def resolve_config_path(cli_config: Optional[str] = None) -> Path:
    """Pick the config file to use.

    Precedence (high to low):
        1. ``--config`` CLI flag
        2. ``PAGECACHE_CONFIG`` environment variable
        3. Project config (``./pagecache.json``)
        4. User config (``~/.config/pagecache/config.json``)
    """
    if cli_config:
        return Path(cli_config).expanduser()
    env_config = os.environ.get("PAGECACHE_CONFIG")
    if env_config:
        return Path(env_config).expanduser()
    project = _project_config_path()
    if project is not None:
        return project
    return user_config_path()


def _apply_env_overrides(config: CacheConfig) -> CacheConfig:
    overrides: dict[str, Any] = {}
    host = os.environ.get("PAGECACHE_REDIS_HOST")
    if host:
        overrides["host"] = host
    port = os.environ.get("PAGECACHE_REDIS_PORT")
    if port:
        try:
            overrides["port"] = int(port)
        except ValueError as exc:
            raise ConfigError(f"PAGECACHE_REDIS_PORT must be an integer, got: {port}") from exc
    auth = os.environ.get("PAGECACHE_REDIS_AUTH")
    if auth:
        overrides["auth"] = auth
    if not overrides:
        return config
    store = config.store.model_copy(update=overrides)
    return config.model_copy(update={"store": store})


def resolve_config(cli_config: Optional[str] = None) -> CacheConfig:
    """Load the effective configuration.

    The file is chosen by :func:`resolve_config_path`; missing files fall
    back to defaults unless given explicitly. Environment overrides for
    the store connection are applied last.

    Raises:
        ConfigError: If the chosen file cannot be read or validated.
    """
    path = resolve_config_path(cli_config)
    explicit = path != user_config_path()
    config = load_config(path if explicit else None)
    return _apply_env_overrides(config)
