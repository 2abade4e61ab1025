"""Tools: validated, rendered wrappers around the rubykit clients.

A tool takes a :class:`~rubykit.tools.base.ToolContext` and a mapping of raw
arguments and returns a :class:`~rubykit.tools.base.ToolResult` holding
Markdown text and JSON-ready data.

* :mod:`~rubykit.tools.gems` -- search, details, versions, reverse
  dependencies and changelogs from RubyGems.org.
* :mod:`~rubykit.tools.rails` -- list, describe, run and undo Rails
  generators.
* :mod:`~rubykit.tools.gemfile` -- parse Gemfiles and gemspecs; add, pin
  and unpin gems.
* :mod:`~rubykit.tools.bundler` -- bundle install, check, show, audit and
  clean.
* :mod:`~rubykit.tools.registry` -- name-based dispatch used by
  ``rubykit call``.
"""

from rubykit.tools.base import ToolContext, ToolResult, open_tool_context
from rubykit.tools.registry import TOOLS, call_tool

__all__ = ["TOOLS", "ToolContext", "ToolResult", "call_tool", "open_tool_context"]
