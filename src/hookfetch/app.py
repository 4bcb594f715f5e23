"""Typer application and CLI entry point for hookfetch.

Wires the top-level Typer app, the global output options, and the built-in
sub-commands (``request``, ``config``, ``profile``, ``plugins``).

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, runs the app, maps
:class:`~hookfetch.exceptions.HookFetchError` to its exit code, and writes a
crash log under the data directory for anything unexpected.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from hookfetch import __version__
from hookfetch.commands.config import config_app
from hookfetch.commands.plugins import plugins_command
from hookfetch.commands.profile import profile_app
from hookfetch.commands.request import request_command
from hookfetch.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="hookfetch",
    help="Plugin-driven HTTP requests with streaming, retries and caching.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("request")(request_command)
app.command("plugins")(plugins_command)
app.add_typer(config_app, name="config", help="Configuration management.")
app.add_typer(profile_app, name="profile", help="Profile management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hookfetch {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and request tracing."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write response data to this file."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~hookfetch.output.OutputManager`, routes
    library logging through it when ``--verbose`` is set, and stores shared
    options in ``ctx.obj``.
    """
    from hookfetch.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
        output_file=output_file,
    )
    set_output(output)
    if verbose:
        configure_logging(verbose=True, console=output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return its path."""
    from hookfetch.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``hookfetch`` console script.

    :class:`~hookfetch.exceptions.HookFetchError` exits with its
    ``exit_code``; any other exception writes a crash log and exits with
    :data:`~hookfetch.exit_codes.EXIT_GENERIC_FAILURE`.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from hookfetch.exceptions import HookFetchError
        from hookfetch.output import error

        if isinstance(exc, HookFetchError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
