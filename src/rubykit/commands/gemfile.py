"""Gemfile commands -- parse and edit Gemfiles and gemspecs.

Provides the ``rubykit gemfile`` sub-command group.  File paths are
relative to the project chosen with the global ``--project NAME`` flag,
or to the working directory.  The quote style of added declarations
comes from ``--quote-style``, then the global ``--quotes`` flag, then the
``quotes`` config section::

    rubykit gemfile add rspec-rails --version 6.1 --group development --group test
    rubykit gemfile pin rails 7.1.3 --pin-type ">="
"""

from __future__ import annotations

from typing import Optional

import typer

from rubykit.commands import emit, run_tool, tool_args
from rubykit.tools import gemfile as tools


gemfile_app = typer.Typer(no_args_is_help=True)


@gemfile_app.command("parse")
def gemfile_parse(
    ctx: typer.Context,
    file_path: str = typer.Argument("Gemfile", help="Gemfile or .gemspec path."),
) -> None:
    """List the gems a Gemfile or gemspec declares."""
    emit(run_tool(ctx, tools.parse_gemfile, tool_args(ctx, file_path=file_path)))


@gemfile_app.command("add")
def gemfile_add(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    version: Optional[str] = typer.Option(None, "--version", help="Version to require."),
    pin_type: str = typer.Option("~>", "--pin-type", help="Constraint: ~>, >=, >, <, <= or =."),
    group: Optional[list[str]] = typer.Option(
        None, "--group", "-g", help="Gemfile group; repeatable."
    ),
    source: Optional[str] = typer.Option(
        None, "--source", help="Git URL, local path or alternative gem source."
    ),
    require: Optional[str] = typer.Option(None, "--require", help="Require path for the gem."),
    no_require: bool = typer.Option(False, "--no-require", help="Add require: false."),
    quote_style: Optional[str] = typer.Option(None, "--quote-style", help="single or double."),
    file_path: str = typer.Option("Gemfile", "--file", help="Gemfile path."),
) -> None:
    """Add a gem declaration to a Gemfile."""
    args = tool_args(
        ctx,
        gem_name=gem_name,
        version=version,
        pin_type=pin_type,
        group=group or [],
        source=source,
        require=False if no_require else require,
        quote_style=quote_style,
        file_path=file_path,
    )
    emit(run_tool(ctx, tools.add_gem_to_gemfile, args))


@gemfile_app.command("add-dependency")
def gemfile_add_dependency(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    file_path: str = typer.Argument(help="Path to the .gemspec file."),
    version: Optional[str] = typer.Option(None, "--version", help="Version to require."),
    pin_type: str = typer.Option("~>", "--pin-type", help="Constraint: ~>, >=, >, <, <= or =."),
    development: bool = typer.Option(
        False, "--development", "-d", help="Add a development dependency."
    ),
    quote_style: Optional[str] = typer.Option(None, "--quote-style", help="single or double."),
) -> None:
    """Add a runtime or development dependency to a gemspec."""
    args = tool_args(
        ctx,
        gem_name=gem_name,
        file_path=file_path,
        version=version,
        pin_type=pin_type,
        dependency_type="development" if development else "runtime",
        quote_style=quote_style,
    )
    emit(run_tool(ctx, tools.add_gem_to_gemspec, args))


@gemfile_app.command("pin")
def gemfile_pin(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    version: str = typer.Argument(help="Version to pin to."),
    pin_type: str = typer.Option("~>", "--pin-type", help="Constraint: ~>, >=, >, <, <= or =."),
    quote_style: Optional[str] = typer.Option(None, "--quote-style", help="single or double."),
    file_path: str = typer.Option("Gemfile", "--file", help="Gemfile path."),
) -> None:
    """Replace a gem's version constraints with a single pin."""
    args = tool_args(
        ctx,
        gem_name=gem_name,
        version=version,
        pin_type=pin_type,
        quote_style=quote_style,
        file_path=file_path,
    )
    emit(run_tool(ctx, tools.pin_gem, args))


@gemfile_app.command("unpin")
def gemfile_unpin(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    quote_style: Optional[str] = typer.Option(None, "--quote-style", help="single or double."),
    file_path: str = typer.Option("Gemfile", "--file", help="Gemfile path."),
) -> None:
    """Remove a gem's version constraints."""
    args = tool_args(ctx, gem_name=gem_name, quote_style=quote_style, file_path=file_path)
    emit(run_tool(ctx, tools.unpin_gem, args))
