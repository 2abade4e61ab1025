"""Gem commands -- query RubyGems.org through the cached client.

Provides the ``rubykit gems`` sub-command group.  Each command maps its
arguments onto the matching tool in :mod:`rubykit.tools.gems` and prints
the rendered Markdown, or the structured data under ``--json``.
"""

from __future__ import annotations

from typing import Optional

import typer

from rubykit.commands import emit, run_tool
from rubykit.tools import gems as tools


gems_app = typer.Typer(no_args_is_help=True)


@gems_app.command("search")
def gems_search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Gem name or keywords."),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum number of results (1-100)."),
) -> None:
    """Search for gems by name or keywords.

    Example::

        rubykit gems search "http client" --limit 5
    """
    emit(run_tool(ctx, tools.search_gems, {"query": query, "limit": limit}))


@gems_app.command("details")
def gems_details(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
) -> None:
    """Show a gem's description, links, dependencies, and metadata."""
    emit(run_tool(ctx, tools.get_gem_details, {"gem_name": gem_name}))


@gems_app.command("versions")
def gems_versions(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    prerelease: bool = typer.Option(False, "--prerelease", help="Include prerelease versions."),
) -> None:
    """List every published version of a gem, newest first."""
    emit(
        run_tool(
            ctx,
            tools.get_gem_versions,
            {"gem_name": gem_name, "include_prerelease": prerelease},
        )
    )


@gems_app.command("latest")
def gems_latest(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    prerelease: bool = typer.Option(False, "--prerelease", help="Consider prerelease versions."),
) -> None:
    """Show the latest (by default, latest stable) version of a gem."""
    emit(
        run_tool(
            ctx,
            tools.get_latest_version,
            {"gem_name": gem_name, "include_prerelease": prerelease},
        )
    )


@gems_app.command("reverse-deps")
def gems_reverse_deps(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
) -> None:
    """List the gems that depend on a gem."""
    emit(run_tool(ctx, tools.get_gem_dependencies, {"gem_name": gem_name}))


@gems_app.command("changelog")
def gems_changelog(
    ctx: typer.Context,
    gem_name: str = typer.Argument(help="Gem name."),
    version: Optional[str] = typer.Option(
        None, "--version", "-V", help="Only show the section for this version."
    ),
    summary: bool = typer.Option(
        False, "--summary", help="Only show the most recent versions."
    ),
) -> None:
    """Show a gem's changelog as Markdown.

    Example::

        rubykit gems changelog rails --version 7.1.3
    """
    args = {"gem_name": gem_name, "format": "summary" if summary else "full"}
    if version is not None:
        args["version"] = version
    emit(run_tool(ctx, tools.get_gem_changelog, args))
