"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for rubykit:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.rubykit/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~rubykit.models.GlobalConfig`
  JSON file storing defaults (cache TTLs, RubyGems endpoint, rails
  executable, named projects).
* **Project config** -- an optional ``./rubykit.json`` whose keys are
  merged over the global config.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

Nothing in here touches the response caches themselves: they live in
memory only and are built from the resolved
:class:`~rubykit.models.CacheConfig` by each client.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from rubykit.exceptions import ConfigError
from rubykit.models import GlobalConfig

_APP_NAME = "rubykit"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "rubykit.json"

ENV_NO_CACHE = "RUBYKIT_NO_CACHE"
ENV_CACHE_TTL = "RUBYKIT_CACHE_TTL"
ENV_BASE_URL = "RUBYKIT_BASE_URL"
ENV_RAILS = "RUBYKIT_RAILS"
ENV_BUNDLE = "RUBYKIT_BUNDLE"

_TRUTHY = ("1", "true", "yes", "on")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/rubykit/`` (default ``~/.config/rubykit/``).
    On macOS/Windows: ``~/.rubykit/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/rubykit/`` (default ``~/.local/share/rubykit/``).
    On macOS/Windows: ``~/.rubykit/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up and the exception re-raised.
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
        fd = None  # prevent double-close in finally
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


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~rubykit.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./rubykit.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It may hold any subset of the
    :class:`~rubykit.models.GlobalConfig` keys, e.g. a shorter cache TTL or
    the list of Rails projects in a monorepo.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return *base* with *override* merged in, recursing into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_no_cache: Optional[bool] = None,
    cli_cache_ttl: Optional[float] = None,
    cli_format: Optional[str] = None,
    cli_quotes: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``--no-cache``, ``--cache-ttl``, ``--json``/``--plain``,
           ``--quotes``)
        2. Environment variables (``RUBYKIT_NO_CACHE``, ``RUBYKIT_CACHE_TTL``,
           ``RUBYKIT_BASE_URL``, ``RUBYKIT_RAILS``, ``RUBYKIT_BUNDLE``)
        3. Project config (``./rubykit.json``)
        4. User config (``~/.config/rubykit/config.json``)
        5. Defaults

    ``--no-cache`` and ``--cache-ttl`` apply to the API cache and the
    changelog cache alike. ``--quotes`` sets the quote style for Gemfiles
    and gemspecs alike.

    Returns:
        The effective :class:`~rubykit.models.GlobalConfig`.

    Raises:
        ConfigError: On invalid config files or unparsable env values.
    """
    # 5 + 4
    global_cfg = load_global_config()

    # 3
    project = load_project_config()
    if project is not None:
        merged = _deep_merge(global_cfg.model_dump(mode="json"), project)
        try:
            global_cfg = GlobalConfig.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"Invalid project config: {exc}") from exc

    # 2
    no_cache = os.environ.get(ENV_NO_CACHE, "").strip().lower() in _TRUTHY
    ttl: Optional[float] = None
    env_ttl = os.environ.get(ENV_CACHE_TTL)
    if env_ttl:
        try:
            ttl = float(env_ttl)
        except ValueError as exc:
            raise ConfigError(
                f"{ENV_CACHE_TTL} must be a number of seconds, got: {env_ttl}"
            ) from exc
    env_base_url = os.environ.get(ENV_BASE_URL)
    if env_base_url:
        global_cfg.request.base_url = env_base_url
    env_rails = os.environ.get(ENV_RAILS)
    if env_rails:
        global_cfg.rails.executable = env_rails
    env_bundle = os.environ.get(ENV_BUNDLE)
    if env_bundle:
        global_cfg.bundler.executable = env_bundle

    # 1
    if cli_no_cache is not None:
        no_cache = cli_no_cache
    if cli_cache_ttl is not None:
        ttl = cli_cache_ttl

    for cache_cfg in (global_cfg.cache, global_cfg.changelog_cache):
        if no_cache:
            cache_cfg.enabled = False
        if ttl is not None:
            cache_cfg.ttl_seconds = ttl

    if cli_format is not None:
        global_cfg.output.format = cli_format
    if cli_quotes is not None:
        global_cfg.quotes.gemfile = cli_quotes
        global_cfg.quotes.gemspec = cli_quotes

    return global_cfg
