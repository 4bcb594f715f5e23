"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline, quiet and verbose modes
- JSON and plain rendering of response bodies and stream chunks
- print_table in all three modes
- Output file redirection
- Logging through RichHandler
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from hookfetch import output as output_module
from hookfetch.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("hookfetch.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("hookfetch.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


@pytest.fixture()
def root_logging():
    """Restore the root logger's handlers after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


# ------------------------------------------------------------------ #
# Format resolution and colour
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_is_plain_on_tty_without_color(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_kept(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color()

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color()

    def test_default_enabled(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert not _should_disable_color()


# ------------------------------------------------------------------ #
# Diagnostics
# ------------------------------------------------------------------ #


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capfd, non_tty):
        mgr = OutputManager(no_color=True)
        mgr.info("hello")
        mgr.warning("careful")
        mgr.error("broken")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == ["hello", "Warning: careful", "Error: broken"]

    def test_quiet_suppresses_info_and_success(self, capfd, non_tty):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.warning("shown")
        assert capfd.readouterr().err == "Warning: shown\n"

    def test_quiet_keeps_data(self, capfd, non_tty):
        OutputManager(no_color=True, quiet=True).print_data("payload")
        assert capfd.readouterr().out == "payload\n"

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(no_color=True).debug("x")
        assert capfd.readouterr().err == ""
        mgr = OutputManager(no_color=True, verbose=True)
        mgr.debug("x")
        assert capfd.readouterr().err == "[debug] x\n"
        assert mgr.is_verbose and not mgr.is_quiet


# ------------------------------------------------------------------ #
# Response bodies
# ------------------------------------------------------------------ #


class TestFormatResponse:
    def test_json_string_reindented(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response('{"a":1}')
        out = capfd.readouterr().out
        assert json.loads(out) == {"a": 1}
        assert '  "a": 1' in out

    def test_json_non_json_string_passthrough(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response("not json")
        assert capfd.readouterr().out == "not json\n"

    def test_plain_dict_rows(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).format_response({"a": 1, "b": "x"})
        assert capfd.readouterr().out == "a\t1\nb\tx\n"

    def test_plain_list(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).format_response([{"id": 1, "n": "a"}, 2])
        assert capfd.readouterr().out == "1\ta\n2\n"

    def test_rich_renders_something(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).format_response('{"key": "v"}')
        assert "key" in capfd.readouterr().out

    def test_unicode(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response({"name": "ü"})
        assert "ü" in capfd.readouterr().out


class TestPrintChunk:
    def test_text_chunk_raw(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_chunk("data: hi")
        assert capfd.readouterr().out == "data: hi\n"

    def test_bytes_chunk_decoded(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_chunk(b"raw")
        assert capfd.readouterr().out == "raw\n"

    def test_structured_chunk_single_line(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_chunk({"a": [1, 2]})
        assert capfd.readouterr().out == '{"a": [1, 2]}\n'

    def test_json_mode_quotes_strings(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_chunk("hi")
        assert capfd.readouterr().out == '"hi"\n'


# ------------------------------------------------------------------ #
# Tables
# ------------------------------------------------------------------ #


class TestPrintTable:
    HEADERS = ["name", "url"]
    ROWS = [["a", "https://a.test"], ["b", "https://b.test"]]

    def test_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(self.HEADERS, self.ROWS)
        assert json.loads(capfd.readouterr().out) == [
            {"name": "a", "url": "https://a.test"},
            {"name": "b", "url": "https://b.test"},
        ]

    def test_plain(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).print_table(self.HEADERS, self.ROWS, title="ignored")
        assert capfd.readouterr().out == "name\turl\na\thttps://a.test\nb\thttps://b.test\n"

    def test_rich(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).print_table(self.HEADERS, self.ROWS)
        captured = capfd.readouterr()
        assert "https://b.test" in captured.out
        assert captured.err == ""


# ------------------------------------------------------------------ #
# Output file
# ------------------------------------------------------------------ #


class TestOutputFile:
    def test_format_response_writes_file(self, tmp_path, capfd, non_tty):
        target = tmp_path / "out.json"
        OutputManager(output_file=str(target)).format_response({"a": 1})
        assert json.loads(target.read_text()) == {"a": 1}
        assert capfd.readouterr().out == ""

    def test_chunks_append(self, tmp_path, non_tty):
        target = tmp_path / "out.txt"
        mgr = OutputManager(format=OutputFormat.PLAIN, output_file=str(target))
        mgr.print_chunk("one")
        mgr.print_chunk("two")
        assert target.read_text() == "one\ntwo\n"


# ------------------------------------------------------------------ #
# Logging
# ------------------------------------------------------------------ #


class TestConfigureLogging:
    def test_installs_rich_handler(self, root_logging, non_tty):
        configure_logging()
        assert root_logging.level == logging.WARNING
        assert len(root_logging.handlers) == 1
        assert isinstance(root_logging.handlers[0], RichHandler)

    def test_verbose_level(self, root_logging, non_tty):
        mgr = OutputManager(verbose=True)
        configure_logging(verbose=True, console=mgr.stderr_console)
        assert root_logging.level == logging.DEBUG
        assert root_logging.handlers[0].console is mgr.stderr_console
        assert logging.getLogger("httpx").level == logging.WARNING


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default(self, non_tty):
        reset_output()
        assert get_output() is get_output()

    def test_set_and_module_helpers(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.info("note")
        output_module.print_data("data")
        captured = capfd.readouterr()
        assert captured.out == "data\n"
        assert captured.err == "note\n"
