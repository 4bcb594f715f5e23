"""Shared test fixtures for hookfetch.

Provides isolated config directories, output-state management, a Typer CLI
runner, and a factory for clients whose transport is an
:class:`httpx.MockTransport`, so no test touches the network or the real
user config.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from hookfetch.client import HookFetch, HttpxTransport
from hookfetch.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. CliRunner swaps those streams per invocation, so a
    manager left over from one test would write to a closed file in the
    next.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG directories at *tmp_path* and clear HOOKFETCH_* variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("hookfetch.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ("HOOKFETCH_PROFILE", "HOOKFETCH_BASE_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a plain, quiet output manager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_client() -> Callable[..., HookFetch]:
    """Factory for a :class:`HookFetch` backed by an httpx mock transport.

    The handler may be sync or async and receives each
    :class:`httpx.Request`::

        client = make_client(lambda request: httpx.Response(200, json={}))
    """

    def _make(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> HookFetch:
        transport = HttpxTransport(transport=httpx.MockTransport(handler))
        return HookFetch(transport=transport, **kwargs)

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
