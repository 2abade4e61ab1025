"""Gemfile and gemspec tools: parse, add, pin, and unpin.

``file_path`` is resolved inside the directory of the ``project`` argument
(see :meth:`~rubykit.projects.ProjectManager.resolve_file_path`).  An edit
is written atomically and then clears the bundler and Rails caches: cached
``bundle check``/``bundle show`` answers and generator listings describe
the bundle as it was before the edit.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field

from rubykit import gemfile
from rubykit.models import DependencyFileType, ParsedGemfile, QuoteStyle
from rubykit.tools.base import ToolContext, ToolResult, validate_input
from rubykit.tools.gems import GEM_NAME_PATTERN, VERSION_PATTERN

PinType = Literal["~>", ">=", ">", "<", "<=", "="]
GroupName = Annotated[str, Field(min_length=1, max_length=50, pattern=r"^\w+$")]


# --- Inputs ---


class FileInput(BaseModel):
    file_path: str = Field(min_length=1, max_length=500)
    project: Optional[str] = Field(default=None, min_length=1, max_length=100)


class GemInput(BaseModel):
    gem_name: str = Field(min_length=1, max_length=50, pattern=GEM_NAME_PATTERN)
    quote_style: Optional[QuoteStyle] = None
    file_path: str = Field(default="Gemfile", min_length=1, max_length=500)
    project: Optional[str] = Field(default=None, min_length=1, max_length=100)


class PinGemInput(GemInput):
    version: str = Field(min_length=1, max_length=50, pattern=VERSION_PATTERN)
    pin_type: PinType = "~>"


class AddGemInput(GemInput):
    version: Optional[str] = Field(default=None, min_length=1, max_length=50, pattern=VERSION_PATTERN)
    pin_type: PinType = "~>"
    group: list[GroupName] = Field(default_factory=list)
    source: Optional[str] = Field(default=None, min_length=1, max_length=500)
    require: Union[Literal[False], Annotated[str, Field(min_length=1, max_length=100)], None] = None


class AddDependencyInput(GemInput):
    file_path: str = Field(min_length=1, max_length=500)
    version: Optional[str] = Field(default=None, min_length=1, max_length=50, pattern=VERSION_PATTERN)
    pin_type: PinType = "~>"
    dependency_type: Literal["runtime", "development"] = "runtime"


# --- Tools ---


async def parse_gemfile(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Parse a Gemfile or .gemspec into its gems, version constraints, and groups."""
    params = validate_input(FileInput, args)
    path = ctx.projects.resolve_file_path(params.file_path, params.project)
    parsed = gemfile.parse_dependency_file(path)
    return ToolResult(text=_render_parsed(parsed), data=parsed.model_dump(mode="json"))


async def pin_gem(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Pin a gem in a Gemfile to a version with a constraint such as ~> or >=."""
    params = validate_input(PinGemInput, args)
    path = ctx.projects.resolve_file_path(params.file_path, params.project)
    content = gemfile.read_dependency_file(path)
    updated = gemfile.pin_gem(
        content, params.gem_name, params.version, params.pin_type, params.quote_style
    )
    requirement = f"{params.pin_type} {params.version}"
    data = {"action": "pin", "gem_name": params.gem_name, "requirement": requirement, "path": str(path)}
    if updated == content:
        return ToolResult(
            text=f"No changes needed for '{params.gem_name}' in {path}",
            data={**data, "changed": False},
        )
    _save(ctx, path, updated)
    return ToolResult(
        text=f"Successfully pinned '{params.gem_name}' to '{requirement}' in {path}",
        data={**data, "changed": True},
    )


async def unpin_gem(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Remove the version constraints of a gem in a Gemfile."""
    params = validate_input(GemInput, args)
    path = ctx.projects.resolve_file_path(params.file_path, params.project)
    updated, changed = gemfile.unpin_gem(
        gemfile.read_dependency_file(path), params.gem_name, params.quote_style
    )
    data = {"action": "unpin", "gem_name": params.gem_name, "path": str(path), "changed": changed}
    if not changed:
        return ToolResult(
            text=f"No version constraints found to remove for '{params.gem_name}' in {path}",
            data=data,
        )
    _save(ctx, path, updated)
    return ToolResult(
        text=f"Successfully unpinned '{params.gem_name}' (removed version constraints) in {path}",
        data=data,
    )


async def add_gem_to_gemfile(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Add a gem to a Gemfile with optional version, groups, source, and require."""
    params = validate_input(AddGemInput, args)
    path = ctx.projects.resolve_file_path(params.file_path, params.project)
    declaration = gemfile.format_gem_declaration(
        params.gem_name,
        version=params.version,
        pin_type=params.pin_type,
        source=params.source,
        require=params.require,
        quote_style=params.quote_style or ctx.quotes.gemfile,
    )
    updated = gemfile.add_gem_to_gemfile(
        gemfile.read_dependency_file(path), params.gem_name, declaration, params.group
    )
    _save(ctx, path, updated)

    version_info = f" with version '{params.pin_type} {params.version}'" if params.version else ""
    group_info = f" in group [:{', :'.join(params.group)}]" if params.group else ""
    return ToolResult(
        text=f"Successfully added '{params.gem_name}'{version_info}{group_info} to {path}",
        data={
            "action": "add",
            "gem_name": params.gem_name,
            "declaration": declaration,
            "group": params.group,
            "path": str(path),
        },
    )


async def add_gem_to_gemspec(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Add a runtime or development dependency to a .gemspec file."""
    params = validate_input(AddDependencyInput, args)
    path = ctx.projects.resolve_file_path(params.file_path, params.project)
    updated = gemfile.add_dependency_to_gemspec(
        gemfile.read_dependency_file(path),
        params.gem_name,
        version=params.version,
        pin_type=params.pin_type,
        dependency_type=params.dependency_type,
        quote_style=params.quote_style or ctx.quotes.gemspec,
    )
    _save(ctx, path, updated)

    kind = "development " if params.dependency_type == "development" else ""
    version_info = f" with version '{params.pin_type} {params.version}'" if params.version else ""
    return ToolResult(
        text=f"Successfully added '{params.gem_name}' as {kind}dependency{version_info} to {path}",
        data={
            "action": "add_dependency",
            "gem_name": params.gem_name,
            "dependency_type": params.dependency_type,
            "path": str(path),
        },
    )


# --- Helpers ---


def _save(ctx: ToolContext, path: Path, content: str) -> None:
    gemfile.write_dependency_file(path, content)
    ctx.bundler.clear_cache()
    ctx.rails.clear_cache()


def _render_parsed(parsed: ParsedGemfile) -> str:
    title = "Gemspec" if parsed.type == DependencyFileType.GEMSPEC else "Gemfile"
    lines = [f"# {title}: {parsed.path}", ""]
    if parsed.ruby_version:
        lines.append(f"- Ruby: {parsed.ruby_version}")
    if parsed.source:
        lines.append(f"- Source: {parsed.source}")
    lines += ["", f"## Gems ({len(parsed.gems)})", ""]
    if not parsed.gems:
        lines.append("No gems declared.")
    for gem in parsed.gems:
        entry = f"- **{gem.name}**"
        if gem.requirement:
            entry += f" `{gem.requirement}`"
        details = []
        if gem.group:
            details.append(f"groups: {', '.join(gem.group)}")
        if gem.platform:
            details.append(f"platforms: {', '.join(gem.platform)}")
        if gem.source:
            details.append(f"source: {gem.source}")
        if details:
            entry += f" ({'; '.join(details)})"
        lines.append(entry)
    return "\n".join(lines)
