"""Built-in CLI sub-commands for rubykit.

* :mod:`~rubykit.commands.gems` -- query RubyGems.org.
* :mod:`~rubykit.commands.rails` -- list, describe, run and undo Rails
  generators.
* :mod:`~rubykit.commands.gemfile` -- parse and edit Gemfiles and gemspecs.
* :mod:`~rubykit.commands.bundle` -- run Bundler in a project.
* :mod:`~rubykit.commands.config` -- view and modify global settings.
* :mod:`~rubykit.commands.call` -- run any tool by name with JSON arguments.

The helpers below are shared by the command modules: they resolve the
effective configuration once per invocation, run a tool inside a fresh
:class:`~rubykit.tools.ToolContext`, and print its result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import typer

from rubykit.exceptions import ConfigError
from rubykit.models import GlobalConfig
from rubykit.output import OutputFormat, OutputManager, get_output, set_output
from rubykit.tools.base import ToolResult, open_tool_context
from rubykit.tools.registry import Handler


def load_settings(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config for this invocation and cache it on ``ctx.obj``.

    A non-``auto`` ``output.format`` from the config files applies when no
    ``--json``/``--plain`` flag was given.
    """
    from rubykit.config import resolve_config

    obj = ctx.ensure_object(dict)
    if "config" in obj:
        return obj["config"]

    config = resolve_config(
        cli_no_cache=obj.get("no_cache"),
        cli_cache_ttl=obj.get("cache_ttl"),
        cli_format=obj.get("format"),
        cli_quotes=obj.get("quotes"),
    )
    try:
        fmt = OutputFormat(config.output.format)
    except ValueError:
        raise ConfigError(f"Invalid output format: {config.output.format}") from None
    if fmt != OutputFormat.AUTO and fmt != get_output().format:
        set_output(
            OutputManager(
                format=fmt,
                no_color=obj.get("no_color", False),
                quiet=obj.get("quiet", False),
                verbose=obj.get("verbose", False),
            )
        )
    obj["config"] = config
    return config


def tool_args(ctx: typer.Context, **extra: Any) -> dict[str, Any]:
    """Drop unset *extra* arguments and add the global ``--project`` name."""
    args = {k: v for k, v in extra.items() if v is not None}
    project = ctx.obj.get("project") if ctx.obj else None
    if project:
        args["project"] = project
    return args


def run_tool(ctx: typer.Context, handler: Handler, args: Mapping[str, Any]) -> ToolResult:
    """Run *handler* with freshly entered clients and return its result."""
    config = load_settings(ctx)

    async def _run() -> ToolResult:
        async with open_tool_context(config) as tool_ctx:
            return await handler(tool_ctx, args)

    return asyncio.run(_run())


def emit(result: ToolResult) -> None:
    """Print a tool result: its ``data`` as JSON in JSON mode, else its text."""
    output = get_output()
    if output.format == OutputFormat.JSON:
        output.format_response(result.model_dump(mode="json") if result.is_error else result.data)
    else:
        output.print_markdown(result.text)
