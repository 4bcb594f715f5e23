"""Configuration management with XDG paths, atomic writes, and precedence resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.hookfetch/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`, :func:`get_profiles_dir`.
* **Global config** -- one :class:`~hookfetch.models.GlobalConfig` JSON file
  (default profile, output format, cache settings, plugin lists).
* **Profiles** -- one JSON file per API, each a
  :class:`~hookfetch.models.Profile` of client defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the global config into the active profile.

All file writes go through :func:`_atomic_write` (temp file, then rename).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from hookfetch.exceptions import ConfigError
from hookfetch.models import GlobalConfig, Profile

_APP_NAME = "hookfetch"
_CONFIG_FILENAME = "config.json"

ENV_PROFILE = "HOOKFETCH_PROFILE"
ENV_BASE_URL = "HOOKFETCH_BASE_URL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _xdg_dir(env_var: str, default_segments: tuple[str, ...], fallback: str) -> Path:
    """Resolve ``$<env_var>/hookfetch`` on XDG platforms, ``~/.hookfetch/<fallback>`` elsewhere."""
    if not _is_xdg_platform():
        path = Path.home() / f".{_APP_NAME}"
        return path / fallback if fallback else path

    env_value = os.environ.get(env_var, "")
    base = Path(env_value) if env_value else Path.home().joinpath(*default_segments)
    return base / _APP_NAME


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/hookfetch/`` (default ``~/.config/hookfetch/``).
    On macOS/Windows: ``~/.hookfetch/``.
    """
    path = _xdg_dir("XDG_CONFIG_HOME", (".config",), "")
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory (response cache), creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/hookfetch/`` (default ``~/.cache/hookfetch/``).
    On macOS/Windows: ``~/.hookfetch/cache/``.
    """
    path = _xdg_dir("XDG_CACHE_HOME", (".cache",), "cache")
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/hookfetch/`` (default ``~/.local/share/hookfetch/``).
    On macOS/Windows: ``~/.hookfetch/data/``.
    """
    path = _xdg_dir("XDG_DATA_HOME", (".local", "share"), "data")
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return ``<config_dir>/profiles/``, creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically.

    The temp file lives in the target directory so that ``os.replace`` is an
    atomic rename; it is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    ) as fh:
        tmp_path = Path(fh.name)
        try:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        except BaseException:
            fh.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _read_json(path: Path, what: str) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults if no file exists.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile does not exist, contains invalid JSON,
            or fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    data = profile.model_dump(mode="json")
    _atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a profile.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Precedence resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Resolve the global config and the active profile.

    Profile name precedence (high to low):
        1. ``cli_profile``
        2. ``HOOKFETCH_PROFILE``
        3. ``default_profile`` of the global config
        4. the only existing profile, if ``auto_select_single_profile``

    The base URL of the resolved profile is overridden by ``cli_base_url``,
    then by ``HOOKFETCH_BASE_URL``.

    Returns:
        A tuple of ``(global_config, active_profile_or_None)``.
    """
    global_cfg = load_global_config()

    profile_name = global_cfg.default_profile
    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        profile_name = env_profile
    if cli_profile is not None:
        profile_name = cli_profile

    if profile_name is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            profile_name = profiles[0]

    profile: Optional[Profile] = None
    if profile_name is not None:
        profile = load_profile(profile_name)
        env_base_url = os.environ.get(ENV_BASE_URL)
        if cli_base_url is not None:
            profile.base_url = cli_base_url
        elif env_base_url:
            profile.base_url = env_base_url

    return global_cfg, profile
