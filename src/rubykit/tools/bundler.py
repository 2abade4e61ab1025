"""Bundler tools: install, check, show, audit, and clean.

Each tool runs in the directory of its ``project`` argument (the default
project when omitted) through :class:`~rubykit.client.bundler.BundlerClient`.
``bundle install`` and a real ``bundle clean`` change which gems, and so
which generators, are available; they also clear the Rails cache.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from rubykit.models import CommandResult
from rubykit.tools.base import ToolContext, ToolResult, validate_input
from rubykit.tools.gems import GEM_NAME_PATTERN

GroupName = Annotated[str, Field(min_length=1, max_length=50, pattern=r"^\w+$")]


# --- Inputs ---


class BundleInput(BaseModel):
    project: Optional[str] = Field(default=None, max_length=100)


class BundleInstallInput(BundleInput):
    deployment: bool = False
    without: list[GroupName] = Field(default_factory=list)
    gemfile: Optional[str] = Field(default=None, min_length=1, max_length=500)
    clean: bool = False
    frozen: bool = False
    quiet: bool = False


class BundleCheckInput(BundleInput):
    gemfile: Optional[str] = Field(default=None, min_length=1, max_length=500)


class BundleShowInput(BundleInput):
    gem_name: Optional[str] = Field(default=None, min_length=1, max_length=50, pattern=GEM_NAME_PATTERN)
    paths: bool = False
    outdated: bool = False


class BundleAuditInput(BundleInput):
    update: bool = False
    verbose: bool = False
    format: Literal["text", "json"] = "text"
    gemfile_lock: Optional[str] = Field(default=None, min_length=1, max_length=500)


class BundleCleanInput(BundleInput):
    dry_run: bool = False
    force: bool = False


# --- Tools ---


async def bundle_install(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Install the gems declared in a project's Gemfile with bundle install."""
    params = validate_input(BundleInstallInput, args)
    path = ctx.projects.get_project_path(params.project)
    result = await ctx.bundler.install(
        path,
        deployment=params.deployment,
        without=params.without,
        gemfile=params.gemfile,
        clean=params.clean,
        frozen=params.frozen,
        quiet=params.quiet,
    )
    ctx.rails.clear_cache()

    options = []
    if params.deployment:
        options.append("deployment mode")
    if params.without:
        options.append(f"without groups: {', '.join(params.without)}")
    if params.gemfile:
        options.append(f"gemfile: {params.gemfile}")
    for flag in ("clean", "frozen", "quiet"):
        if getattr(params, flag):
            options.append(flag)
    options_info = f" ({', '.join(options)})" if options else ""
    return _command_result(
        f"Successfully ran bundle install{_project_info(params.project)}{options_info}", result
    )


async def bundle_check(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Check whether a project's Gemfile dependencies are satisfied."""
    params = validate_input(BundleCheckInput, args)
    path = ctx.projects.get_project_path(params.project)
    result = await ctx.bundler.check(path, params.gemfile)
    return _command_result(f"Bundle check passed{_project_info(params.project)}", result)


async def bundle_show(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Show the gems in a project's bundle, or where one gem is installed."""
    params = validate_input(BundleShowInput, args)
    path = ctx.projects.get_project_path(params.project)
    result = await ctx.bundler.show(path, params.gem_name, params.paths, params.outdated)
    gem_info = f" for '{params.gem_name}'" if params.gem_name else ""
    return _command_result(f"Bundle show{gem_info}{_project_info(params.project)}", result)


async def bundle_audit(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Scan a project's Gemfile.lock for gems with known vulnerabilities."""
    params = validate_input(BundleAuditInput, args)
    path = ctx.projects.get_project_path(params.project)
    result = await ctx.bundler.audit(
        path, params.update, params.verbose, params.format, params.gemfile_lock
    )
    status = "completed" if result.success else "found issues"
    return _command_result(f"Bundle audit {status}{_project_info(params.project)}", result)


async def bundle_clean(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Remove gems that are no longer in a project's bundle."""
    params = validate_input(BundleCleanInput, args)
    path = ctx.projects.get_project_path(params.project)
    result = await ctx.bundler.clean(path, params.dry_run, params.force)
    if not params.dry_run:
        ctx.rails.clear_cache()
    mode = " (dry run)" if params.dry_run else ""
    return _command_result(f"Bundle clean completed{mode}{_project_info(params.project)}", result)


# --- Helpers ---


def _project_info(project: Optional[str]) -> str:
    return f" in project '{project}'" if project else ""


def _command_result(title: str, result: CommandResult) -> ToolResult:
    text = "\n".join([f"# {title}", "", "## Output", "```", result.output, "```"])
    return ToolResult(text=text, data=result.model_dump(mode="json"))
