"""Typer application and CLI entry point for rubykit.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``gems``, ``rails``, ``gemfile``, ``bundle``,
``config``, ``call`` and ``tools``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. :class:`~rubykit.exceptions.RubykitError` is
mapped to its exit code; any other exception is written to a crash log
under the data directory.

See Also:
    :mod:`rubykit.config`: Configuration resolution used by the commands.
    :mod:`rubykit.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from rubykit import __version__
from rubykit.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="rubykit",
    help="Cached RubyGems.org lookups, Gemfile editing, Bundler and Rails generators for humans and agents.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"rubykit {__version__}")
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
    project: Optional[str] = typer.Option(
        None, "--project", "-p", help="Named project to operate on."
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
        False, "--verbose", "-v", help="Enable debug output (cache hits, requests)."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the response caches."
    ),
    cache_ttl: Optional[float] = typer.Option(
        None, "--cache-ttl", help="Cache TTL in seconds."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
    quotes: Optional[str] = typer.Option(
        None, "--quotes", help="Quote style for Gemfile edits: single or double."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~rubykit.output.OutputManager` from
    CLI flags, and stores the remaining options in the Typer context so
    that sub-commands can resolve the effective configuration via
    :func:`rubykit.commands.load_settings`.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        project: Named project for the ``rails``, ``gemfile`` and ``bundle``
            commands.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        no_cache: Disable both response caches for this invocation.
        cache_ttl: Override the TTL of both response caches.
        force: Skip interactive confirmations.
        quotes: Override the configured Gemfile and gemspec quote style.
    """
    from rubykit.output import OutputFormat, OutputManager, set_output

    if quotes is not None and quotes not in ("single", "double"):
        raise typer.BadParameter("must be 'single' or 'double'", param_hint="--quotes")

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
    )
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["project"] = project
    ctx.obj["format"] = fmt.value if fmt != OutputFormat.AUTO else None
    ctx.obj["no_color"] = no_color
    ctx.obj["quiet"] = quiet
    ctx.obj["verbose"] = verbose
    ctx.obj["no_cache"] = True if no_cache else None
    ctx.obj["cache_ttl"] = cache_ttl
    ctx.obj["force"] = force
    ctx.obj["quotes"] = quotes


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from rubykit.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (idempotent)."""
    if getattr(app, "_rubykit_registered", False):
        return

    from rubykit.commands.bundle import bundle_app
    from rubykit.commands.call import call_command, tools_command
    from rubykit.commands.config import config_app
    from rubykit.commands.gemfile import gemfile_app
    from rubykit.commands.gems import gems_app
    from rubykit.commands.rails import rails_app

    app.add_typer(gems_app, name="gems", help="Query RubyGems.org.")
    app.add_typer(rails_app, name="rails", help="Rails generators.")
    app.add_typer(gemfile_app, name="gemfile", help="Gemfile and gemspec editing.")
    app.add_typer(bundle_app, name="bundle", help="Bundler commands.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.command("call")(call_command)
    app.command("tools")(tools_command)
    app._rubykit_registered = True  # type: ignore[attr-defined]


def main() -> None:
    """CLI entry point invoked by the ``rubykit`` console script.

    Unhandled :class:`~rubykit.exceptions.RubykitError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

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
        from rubykit.exceptions import RubykitError
        from rubykit.output import error

        if isinstance(exc, RubykitError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
