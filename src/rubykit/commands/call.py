"""Call command -- run any registered tool by name.

``rubykit call`` is the agent-facing surface: it takes a tool name and a
JSON object of arguments, exactly like a tool-calling protocol would, and
always prints a result.  Errors are rendered rather than raised, and the
process exits with the error's exit code.

Example::

    rubykit call search_gems '{"query": "rack", "limit": 3}'
    rubykit --json call get_generator_help '{"generator_name": "model"}'
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer

from rubykit.commands import emit, load_settings
from rubykit.exceptions import InvalidUsageError
from rubykit.output import OutputFormat, format_response, get_output
from rubykit.tools import TOOLS, ToolResult, call_tool, open_tool_context


def call_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Tool name; see 'rubykit tools'."),
    arguments: Optional[str] = typer.Argument(None, help="Tool arguments as a JSON object."),
) -> None:
    """Run a tool with JSON arguments and print its result."""
    args = _parse_arguments(arguments)
    config = load_settings(ctx)
    if "project" not in args and ctx.obj.get("project"):
        args["project"] = ctx.obj["project"]

    async def _run() -> ToolResult:
        async with open_tool_context(config) as tool_ctx:
            return await call_tool(tool_ctx, name, args)

    result = asyncio.run(_run())
    if result.is_error:
        if get_output().format == OutputFormat.JSON:
            emit(result)
        else:
            get_output().error(result.text.removeprefix("Error: "))
        raise typer.Exit(code=result.exit_code)
    emit(result)


def tools_command() -> None:
    """List the tools 'rubykit call' can run."""
    format_response(
        [{"name": tool.name, "description": tool.description} for tool in TOOLS.values()]
    )


def _parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"Tool arguments are not valid JSON: {exc}") from exc
    if not isinstance(args, dict):
        raise InvalidUsageError("Tool arguments must be a JSON object")
    return args
