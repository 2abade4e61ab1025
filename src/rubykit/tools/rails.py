"""Rails generator tools.

Every tool resolves its ``project`` argument through the
:class:`~rubykit.projects.ProjectManager`, checks that the directory is a
Rails project, and then calls the
:class:`~rubykit.client.rails.RailsClient`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field

from rubykit.exceptions import ProjectError
from rubykit.models import RailsProjectInfo
from rubykit.tools.base import ToolContext, ToolResult, validate_input

GENERATOR_NAME_PATTERN = r"^[\w:-]+$"


# --- Inputs ---


class ProjectInput(BaseModel):
    project: Optional[str] = Field(default=None, max_length=100)


class GeneratorHelpInput(ProjectInput):
    generator_name: str = Field(min_length=1, max_length=100, pattern=GENERATOR_NAME_PATTERN)


class GenerateInput(GeneratorHelpInput):
    arguments: list[str] = Field(default_factory=list)
    options: dict[str, Union[bool, str, list[str]]] = Field(default_factory=dict)


# --- Tools ---


async def list_generators(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """List the generators available in a Rails project, grouped by namespace."""
    params = validate_input(ProjectInput, args)
    path, info = _rails_project(ctx, params.project)
    generators = await ctx.rails.list_generators(path)
    data = {
        "generators": [g.model_dump(mode="json") for g in generators],
        "project": info.model_dump(mode="json"),
    }
    if not generators:
        return ToolResult(text="No generators found in this Rails project.", data=data)

    by_namespace: dict[str, list] = {}
    for generator in generators:
        by_namespace.setdefault(generator.namespace or "Rails", []).append(generator)

    lines = [f"Found {len(generators)} generators in Rails project:", ""]
    for namespace, members in by_namespace.items():
        lines.append(f"## {namespace}")
        lines += [f"- **{g.name}**: {g.description}" for g in members]
        lines.append("")
    lines += ["", "Project info:", *_project_lines(info), ""]
    lines.append(
        "To get detailed help for a specific generator, use the "
        "`get_generator_help` tool with the generator name."
    )
    return ToolResult(text="\n".join(lines), data=data)


async def get_generator_help(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Describe one generator: usage, arguments, and options."""
    params = validate_input(GeneratorHelpInput, args)
    path, info = _rails_project(ctx, params.project)
    help_ = await ctx.rails.get_generator_help(params.generator_name, path)

    lines = [f"# {help_.name} Generator", ""]
    if help_.description:
        lines += [help_.description, ""]
    if help_.usage:
        lines += ["## Usage", "```", help_.usage, "```", ""]
    if help_.arguments:
        lines.append("## Arguments")
        for arg in help_.arguments:
            required = "required" if arg.required else "optional"
            lines.append(f"- **{arg.name}** ({arg.type}, {required}): {arg.description}")
        lines.append("")
    if help_.options:
        lines.append("## Options")
        for opt in help_.options:
            aliases = f" ({', '.join(opt.aliases)})" if opt.aliases else ""
            required = ", required" if opt.required else ""
            default = f" [default: {opt.default}]" if opt.default is not None else ""
            lines.append(
                f"- **--{opt.name}**{aliases} ({opt.type}{required}): {opt.description}{default}"
            )
        lines.append("")
    lines += ["## Project Info", *_project_lines(info), ""]
    lines.append(
        "To execute this generator, use the `generate` tool with the generator "
        "name and appropriate arguments and options."
    )
    return ToolResult(
        text="\n".join(lines),
        data={"help": help_.model_dump(mode="json"), "project": info.model_dump(mode="json")},
    )


async def generate(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Run a Rails generator and list the files it created or modified."""
    params = validate_input(GenerateInput, args)
    path, info = _rails_project(ctx, params.project)
    result = await ctx.rails.generate(
        params.generator_name, params.arguments, params.options, path
    )

    lines = [f"# Generator '{params.generator_name}' executed successfully!", ""]
    lines += _file_section("Files Created", result.files_created)
    lines += _file_section("Files Modified", result.files_modified)
    lines += _execution_details(params, path, info, result.output)
    return ToolResult(
        text="\n".join(lines),
        data={"action": "generate", **result.model_dump(mode="json"), **_context(params, info)},
    )


async def destroy(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Undo a Rails generator and list the files it removed."""
    params = validate_input(GenerateInput, args)
    path, info = _rails_project(ctx, params.project)
    result = await ctx.rails.destroy(
        params.generator_name, params.arguments, params.options, path
    )

    lines = [f"# Rails destroy '{params.generator_name}' executed successfully!", ""]
    lines += _file_section("Files Removed", result.files_removed)
    lines += _file_section("Files Modified", result.files_modified)
    lines += _execution_details(params, path, info, result.output)
    return ToolResult(
        text="\n".join(lines),
        data={"action": "destroy", **result.model_dump(mode="json"), **_context(params, info)},
    )


# --- Helpers ---


def _rails_project(ctx: ToolContext, project: Optional[str]) -> tuple[Path, RailsProjectInfo]:
    path = ctx.projects.get_project_path(project)
    info = ctx.rails.check_rails_project(path)
    if not info.is_rails_project:
        raise ProjectError(
            f"Not a Rails project. Directory {path} does not contain a Rails application."
        )
    return path, info


def _project_lines(info: RailsProjectInfo) -> list[str]:
    project_type = info.project_type.value if info.project_type else "unknown"
    return [
        f"- Rails version: {info.rails_version or 'Unknown'}",
        f"- Project type: {project_type}",
        f"- Root path: {info.root_path}",
    ]


def _file_section(title: str, files: list[str]) -> list[str]:
    if not files:
        return []
    return [f"## {title}", *[f"- {f}" for f in files], ""]


def _execution_details(
    params: GenerateInput, path: Path, info: RailsProjectInfo, output: str
) -> list[str]:
    lines = []
    if output:
        lines += ["## Command Output", "```", output.rstrip("\n"), "```", ""]
    lines += [
        "## Execution Details",
        f"- Generator: {params.generator_name}",
        f"- Arguments: {', '.join(params.arguments) or 'None'}",
        f"- Options: {', '.join(params.options) or 'None'}",
        f"- Project: {path}",
        f"- Rails version: {info.rails_version or 'Unknown'}",
    ]
    return lines


def _context(params: GenerateInput, info: RailsProjectInfo) -> dict[str, Any]:
    return {
        "generator": params.generator_name,
        "arguments": params.arguments,
        "options": params.options,
        "project": info.model_dump(mode="json"),
    }
