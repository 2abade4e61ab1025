"""Bundle commands -- run Bundler in a project directory.

Provides the ``rubykit bundle`` sub-command group.  Commands run in the
project chosen with the global ``--project NAME`` flag, or in the working
directory.  ``check`` and ``show`` answers are cached until the next
install, clean, or Gemfile edit.
"""

from __future__ import annotations

from typing import Optional

import typer

from rubykit.commands import emit, run_tool, tool_args
from rubykit.tools import bundler as tools


bundle_app = typer.Typer(no_args_is_help=True)


@bundle_app.command("install")
def bundle_install(
    ctx: typer.Context,
    deployment: bool = typer.Option(False, "--deployment", help="Install in deployment mode."),
    without: Optional[list[str]] = typer.Option(
        None, "--without", help="Group to skip; repeatable."
    ),
    gemfile: Optional[str] = typer.Option(None, "--gemfile", help="Gemfile to use."),
    clean: bool = typer.Option(False, "--clean", help="Remove unused gems afterwards."),
    frozen: bool = typer.Option(False, "--frozen", help="Do not update Gemfile.lock."),
    quiet: bool = typer.Option(False, "--quiet", help="Only print errors."),
) -> None:
    """Install the gems in the Gemfile."""
    args = tool_args(
        ctx,
        deployment=deployment,
        without=without or [],
        gemfile=gemfile,
        clean=clean,
        frozen=frozen,
        quiet=quiet,
    )
    emit(run_tool(ctx, tools.bundle_install, args))


@bundle_app.command("check")
def bundle_check(
    ctx: typer.Context,
    gemfile: Optional[str] = typer.Option(None, "--gemfile", help="Gemfile to use."),
) -> None:
    """Check that every dependency in the Gemfile is installed."""
    emit(run_tool(ctx, tools.bundle_check, tool_args(ctx, gemfile=gemfile)))


@bundle_app.command("show")
def bundle_show(
    ctx: typer.Context,
    gem_name: Optional[str] = typer.Argument(None, help="Gem to locate."),
    paths: bool = typer.Option(False, "--paths", help="List installation paths."),
    outdated: bool = typer.Option(False, "--outdated", help="Show outdated gems."),
) -> None:
    """Show the gems in the bundle, or where one gem is installed."""
    args = tool_args(ctx, gem_name=gem_name, paths=paths, outdated=outdated)
    emit(run_tool(ctx, tools.bundle_show, args))


@bundle_app.command("audit")
def bundle_audit(
    ctx: typer.Context,
    update: bool = typer.Option(False, "--update", help="Update the advisory database first."),
    verbose: bool = typer.Option(False, "--verbose", help="Show advisory details."),
    format: str = typer.Option("text", "--format", help="Report format: text or json."),
    gemfile_lock: Optional[str] = typer.Option(
        None, "--gemfile-lock", help="Gemfile.lock to audit."
    ),
) -> None:
    """Scan Gemfile.lock for gems with known vulnerabilities."""
    args = tool_args(
        ctx, update=update, verbose=verbose, format=format, gemfile_lock=gemfile_lock
    )
    emit(run_tool(ctx, tools.bundle_audit, args))


@bundle_app.command("clean")
def bundle_clean(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list what would be removed."),
    force: bool = typer.Option(False, "--force", help="Clean even outside a deployment."),
) -> None:
    """Remove gems that are no longer in the bundle."""
    emit(run_tool(ctx, tools.bundle_clean, tool_args(ctx, dry_run=dry_run, force=force)))
