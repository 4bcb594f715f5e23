"""Tests for hookfetch.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from hookfetch.config import (
    _atomic_write,
    delete_profile,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    profile_exists,
    resolve_config,
    save_global_config,
    save_profile,
)
from hookfetch.exceptions import ConfigError
from hookfetch.models import CacheConfig, GlobalConfig, Profile


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_profile(name: str = "test", base_url: str = "https://api.example.com") -> Profile:
    return Profile(name=name, base_url=base_url)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("hookfetch.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "hookfetch"
        assert result.is_dir()

    def test_custom_xdg_dirs(self, isolated_config: Path) -> None:
        assert get_config_dir() == isolated_config / "config" / "hookfetch"
        assert get_cache_dir() == isolated_config / "cache" / "hookfetch"
        assert get_data_dir() == isolated_config / "data" / "hookfetch"
        assert get_profiles_dir() == isolated_config / "config" / "hookfetch" / "profiles"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("hookfetch.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_data_dir() == tmp_path / ".local" / "share" / "hookfetch"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("hookfetch.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".hookfetch"
        assert get_cache_dir() == tmp_path / ".hookfetch" / "cache"
        assert get_data_dir() == tmp_path / ".hookfetch" / "data"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_content(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "file.json"
        _atomic_write(target, '{"a": 1}')
        assert target.read_text() == '{"a": 1}'

    def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("old")
        _atomic_write(target, "new")
        assert target.read_text() == "new"

    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        _atomic_write(tmp_path / "file.txt", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.cache.ttl_seconds == 300

    def test_round_trip(self, isolated_config: Path) -> None:
        config = GlobalConfig(default_profile="api", cache=CacheConfig(ttl_seconds=10))
        save_global_config(config)
        assert load_global_config() == config

    def test_invalid_json(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{nope")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_invalid_schema(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"cache": {"ttl_seconds": "soon"}})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_save_load_list_delete(self, isolated_config: Path) -> None:
        save_profile(_make_profile("b"))
        save_profile(Profile(name="a", base_url="https://a.test", headers={"X": "1"}, timeout=5))

        assert list_profiles() == ["a", "b"]
        assert profile_exists("a")
        loaded = load_profile("a")
        assert loaded.headers == {"X": "1"}
        assert loaded.timeout == 5

        delete_profile("a")
        assert list_profiles() == ["b"]
        assert not profile_exists("a")

    def test_extra_fields_preserved(self, isolated_config: Path) -> None:
        _write_json(get_profiles_dir() / "ext.json", {"name": "ext", "team": "core"})
        assert load_profile("ext").model_extra == {"team": "core"}

    def test_missing_profile(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("ghost")
        with pytest.raises(ConfigError):
            delete_profile("ghost")

    def test_invalid_profile(self, isolated_config: Path) -> None:
        (get_profiles_dir() / "bad.json").write_text("[")
        with pytest.raises(ConfigError):
            load_profile("bad")


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_no_profiles(self, isolated_config: Path) -> None:
        _, profile = resolve_config()
        assert profile is None

    def test_single_profile_auto_selected(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        _, profile = resolve_config()
        assert profile is not None and profile.name == "only"

    def test_auto_select_disabled(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        save_global_config(GlobalConfig(auto_select_single_profile=False))
        assert resolve_config()[1] is None

    def test_precedence(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("cfg", "env", "cli"):
            save_profile(_make_profile(name))
        save_global_config(GlobalConfig(default_profile="cfg"))
        assert resolve_config()[1].name == "cfg"

        monkeypatch.setenv("HOOKFETCH_PROFILE", "env")
        assert resolve_config()[1].name == "env"
        assert resolve_config("cli")[1].name == "cli"

    def test_base_url_overrides(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_profile(_make_profile("p", base_url="https://saved.test"))
        monkeypatch.setenv("HOOKFETCH_BASE_URL", "https://env.test")
        assert resolve_config("p")[1].base_url == "https://env.test"
        assert resolve_config("p", "https://cli.test")[1].base_url == "https://cli.test"

    def test_unknown_profile(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError):
            resolve_config("missing")
