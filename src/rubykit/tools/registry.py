"""Tool registry: look up a tool by name and run it with error capture.

:func:`call_tool` is the agent-facing entry point.  Unlike calling a tool
function directly, it never raises a :class:`~rubykit.exceptions.RubykitError`;
the error comes back as a :class:`~rubykit.tools.base.ToolResult` with
``is_error=True`` and the matching exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from rubykit.exceptions import InvalidUsageError, RubykitError
from rubykit.output import get_output
from rubykit.tools import bundler, gemfile, gems, rails
from rubykit.tools.base import ToolContext, ToolResult, error_result

Handler = Callable[[ToolContext, Mapping[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    handler: Handler


def _tool(name: str, handler: Handler) -> Tool:
    doc = (handler.__doc__ or "").strip().splitlines()
    return Tool(name=name, description=doc[0] if doc else "", handler=handler)


TOOLS: dict[str, Tool] = {
    tool.name: tool
    for tool in (
        _tool("search_gems", gems.search_gems),
        _tool("get_gem_details", gems.get_gem_details),
        _tool("get_gem_versions", gems.get_gem_versions),
        _tool("get_latest_version", gems.get_latest_version),
        _tool("get_gem_dependencies", gems.get_gem_dependencies),
        _tool("get_gem_changelog", gems.get_gem_changelog),
        _tool("list_generators", rails.list_generators),
        _tool("get_generator_help", rails.get_generator_help),
        _tool("generate", rails.generate),
        _tool("destroy", rails.destroy),
        _tool("parse_gemfile", gemfile.parse_gemfile),
        _tool("pin_gem", gemfile.pin_gem),
        _tool("unpin_gem", gemfile.unpin_gem),
        _tool("add_gem_to_gemfile", gemfile.add_gem_to_gemfile),
        _tool("add_gem_to_gemspec", gemfile.add_gem_to_gemspec),
        _tool("bundle_install", bundler.bundle_install),
        _tool("bundle_check", bundler.bundle_check),
        _tool("bundle_show", bundler.bundle_show),
        _tool("bundle_audit", bundler.bundle_audit),
        _tool("bundle_clean", bundler.bundle_clean),
    )
}


async def call_tool(
    ctx: ToolContext, name: str, arguments: Optional[Mapping[str, Any]] = None
) -> ToolResult:
    """Run tool *name* and capture any rubykit error in the result."""
    try:
        tool = TOOLS.get(name)
        if tool is None:
            raise InvalidUsageError(
                f"Unknown tool: {name}. Available tools: {', '.join(TOOLS)}"
            )
        get_output().debug(f"Calling tool {name}")
        return await tool.handler(ctx, arguments or {})
    except RubykitError as exc:
        return error_result(exc)
