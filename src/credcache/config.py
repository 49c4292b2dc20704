"""Settings management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for credcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.credcache/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings file** -- A single :class:`~credcache.models.CacheSettings`
  JSON file. Managed via :func:`load_settings` and :func:`save_settings`.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  overrides, environment variables, the settings file, and defaults into
  the effective configuration.

Environment variables are read once, when settings are resolved. The
unprefixed ``ENABLE_CACHE`` and ``INIT_TABLE`` names are still honoured so
existing deployments keep working; the ``CREDCACHE_`` names win when both
are set.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from credcache.exceptions import ConfigError
from credcache.models import CacheSettings, InvalidationPolicy

_APP_NAME = "credcache"
_CONFIG_FILENAME = "config.json"
_DATABASE_FILENAME = "credcache.db"

_FALSE_VALUES = frozenset({"false", "0", "no", "off"})

ENV_ENABLE_CACHE = ("CREDCACHE_ENABLE_CACHE", "ENABLE_CACHE")
ENV_INIT_TABLE = ("CREDCACHE_INIT_TABLE", "INIT_TABLE")
ENV_DATABASE_URL = "CREDCACHE_DATABASE_URL"
ENV_INVALIDATION = "CREDCACHE_INVALIDATION"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/credcache/`` (default ``~/.config/credcache/``).
    On macOS/Windows: ``~/.credcache/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (default database, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/credcache/`` (default ``~/.local/share/credcache/``).
    On macOS/Windows: ``~/.credcache/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_database_url() -> str:
    """Return the SQLite URL used when no ``database_url`` is configured."""
    return f"sqlite+aiosqlite:///{get_data_dir() / _DATABASE_FILENAME}"


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def _settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> CacheSettings:
    """Load settings from the XDG config directory.

    Returns:
        The deserialised :class:`~credcache.models.CacheSettings`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _settings_path()
    if not path.is_file():
        return CacheSettings()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return CacheSettings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: CacheSettings) -> None:
    """Persist settings atomically to disk.

    Args:
        settings: The settings to save.
    """
    data = settings.model_dump(mode="json")
    _atomic_write(_settings_path(), json.dumps(data, indent=2) + "\n")


# --- Environment ---


def parse_flag(value: str) -> bool:
    """Interpret a boolean-like environment value.

    Only an explicit ``false``/``0``/``no``/``off`` (any case, surrounding
    whitespace ignored) turns a feature off.
    """
    return value.strip().lower() not in _FALSE_VALUES


def _env_first(names: tuple[str, ...]) -> Optional[str]:
    """Return the value of the first variable in *names* that is set."""
    for name in names:
        value = os.environ.get(name)
        if value is not None:
            return value
    return None


def _env_overrides() -> dict[str, Any]:
    """Collect settings overrides from the environment."""
    overrides: dict[str, Any] = {}

    enabled = _env_first(ENV_ENABLE_CACHE)
    if enabled is not None:
        overrides["enabled"] = parse_flag(enabled)

    init_table = _env_first(ENV_INIT_TABLE)
    if init_table is not None:
        overrides["init_table"] = parse_flag(init_table)

    database_url = os.environ.get(ENV_DATABASE_URL)
    if database_url:
        overrides["database_url"] = database_url

    invalidation = os.environ.get(ENV_INVALIDATION)
    if invalidation:
        try:
            overrides["invalidation"] = InvalidationPolicy(invalidation.strip().lower())
        except ValueError as exc:
            valid = ", ".join(p.value for p in InvalidationPolicy)
            raise ConfigError(
                f"Invalid {ENV_INVALIDATION}={invalidation!r} (expected one of: {valid})"
            ) from exc

    return overrides


# --- Precedence resolution ---


def resolve_settings(
    database_url: Optional[str] = None,
    enabled: Optional[bool] = None,
    init_table: Optional[bool] = None,
) -> CacheSettings:
    """Resolve settings with full precedence chain.

    Precedence (high to low):
        1. Explicit arguments (CLI flags)
        2. Environment variables (``CREDCACHE_ENABLE_CACHE``,
           ``CREDCACHE_INIT_TABLE``, ``CREDCACHE_DATABASE_URL``,
           ``CREDCACHE_INVALIDATION``)
        3. Settings file (``~/.config/credcache/config.json``)
        4. Defaults

    The returned settings always carry a concrete ``database_url``.

    Raises:
        ConfigError: If the settings file or an environment value is invalid.
    """
    settings = load_settings()
    data = settings.model_dump()
    data.update(_env_overrides())

    if database_url is not None:
        data["database_url"] = database_url
    if enabled is not None:
        data["enabled"] = enabled
    if init_table is not None:
        data["init_table"] = init_table

    if not data.get("database_url"):
        data["database_url"] = default_database_url()

    return CacheSettings.model_validate(data)
