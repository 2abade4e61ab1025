"""Shared plumbing for tools: results, input validation, and the tool context."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from rubykit.client.bundler import BundlerClient
from rubykit.client.changelog import ChangelogFetcher
from rubykit.client.rails import RailsClient
from rubykit.client.rubygems import RubyGemsClient
from rubykit.exceptions import InvalidUsageError, RubykitError
from rubykit.exit_codes import EXIT_SUCCESS
from rubykit.models import GlobalConfig, QuoteConfig
from rubykit.projects import ProjectManager

M = TypeVar("M", bound=BaseModel)


class ToolResult(BaseModel):
    """What a tool hands back: Markdown text for people, ``data`` for machines."""

    text: str
    data: Any = None
    is_error: bool = False
    exit_code: int = EXIT_SUCCESS


def validate_input(model: Type[M], args: Optional[Mapping[str, Any]]) -> M:
    """Validate raw tool arguments against *model*.

    Raises:
        InvalidUsageError: Naming the first offending field, e.g.
            ``Validation failed: gem_name: String should match pattern ...``.
    """
    try:
        return model.model_validate(dict(args or {}))
    except ValidationError as exc:
        issue = exc.errors()[0]
        path = ".".join(str(p) for p in issue["loc"]) or "root"
        raise InvalidUsageError(f"Validation failed: {path}: {issue['msg']}") from None


def error_result(exc: RubykitError) -> ToolResult:
    """Turn a raised error into an ``is_error`` result carrying its exit code."""
    output = getattr(exc, "output", "")
    text = f"Error: {exc}"
    if output:
        text += f"\n\nOutput:\n{output}"
    return ToolResult(
        text=text,
        data={"error": {"type": type(exc).__name__, "message": str(exc)}},
        is_error=True,
        exit_code=exc.exit_code,
    )


@dataclass
class ToolContext:
    """The clients a tool may call.  Built by :func:`open_tool_context`."""

    gems: RubyGemsClient
    changelogs: ChangelogFetcher
    rails: RailsClient
    projects: ProjectManager
    bundler: BundlerClient = field(default_factory=BundlerClient)
    quotes: QuoteConfig = field(default_factory=QuoteConfig)


@asynccontextmanager
async def open_tool_context(
    config: Optional[GlobalConfig] = None,
    default_path: Optional[str] = None,
) -> AsyncIterator[ToolContext]:
    """Create and enter every client described by *config*.

    Each client gets its own cache, so the caches live exactly as long as
    the context.
    """
    config = config or GlobalConfig()
    async with RubyGemsClient(config.request, config.cache) as gems:
        async with ChangelogFetcher(gems, config.request, config.changelog_cache) as changelogs:
            yield ToolContext(
                gems=gems,
                changelogs=changelogs,
                rails=RailsClient(config.rails, config.cache),
                projects=ProjectManager(config.projects, default_path),
                bundler=BundlerClient(config.bundler, config.cache),
                quotes=config.quotes,
            )
