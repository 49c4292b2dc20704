"""Typer application factory and CLI entry point for credcache.

This module wires together the top-level Typer application and registers
the operator commands (``init``, ``set``, ``get``, ``show``, ``list``,
``invalidate``, ``delete``, ``fetch``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. Unhandled exceptions are written to a crash log
under the data directory.

See Also:
    :mod:`credcache.config`: Settings resolution.
    :mod:`credcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from credcache import __version__
from credcache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="credcache",
    help="Manage cached per-source request headers.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"credcache {__version__}")
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
    database_url: Optional[str] = typer.Option(
        None, "--database-url", "-d", help="SQLAlchemy async database URL."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~credcache.output.OutputManager` from
    CLI flags and stores shared options in the Typer context so that
    sub-commands can read them via ``ctx.obj``.
    """
    from credcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )

    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url
    ctx.obj["verbose"] = verbose


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`. Safe to call repeatedly."""
    if getattr(app, "_credcache_registered", False):
        return

    from credcache.commands.cache import (
        delete_command,
        fetch_command,
        get_command,
        init_command,
        invalidate_command,
        list_command,
        set_command,
        show_command,
    )
    from credcache.commands.config import config_app

    app.command("init")(init_command)
    app.command("set")(set_command)
    app.command("get")(get_command)
    app.command("show")(show_command)
    app.command("list")(list_command)
    app.command("invalidate")(invalidate_command)
    app.command("delete")(delete_command)
    app.command("fetch")(fetch_command)
    app.add_typer(config_app, name="config", help="Show or change settings.")
    app._credcache_registered = True  # type: ignore[attr-defined]


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from credcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``credcache`` console script.

    Unhandled :class:`~credcache.exceptions.CredcacheError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from credcache.exceptions import CredcacheError

        if isinstance(exc, CredcacheError):
            sys.stderr.write(f"Error: {exc}\n")
            sys.exit(exc.exit_code)

        log_path = _write_crash_log(exc)
        sys.stderr.write(f"Unexpected error: {exc}\nCrash log: {log_path}\n")
        sys.exit(EXIT_GENERIC_FAILURE)
