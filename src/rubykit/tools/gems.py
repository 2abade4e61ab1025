"""RubyGems.org tools.

Each tool validates its arguments with a pydantic input model, calls the
cached :class:`~rubykit.client.rubygems.RubyGemsClient` (or the changelog
fetcher) from the :class:`~rubykit.tools.base.ToolContext`, and renders
Markdown plus JSON-ready ``data``.  Failures are raised as
:class:`~rubykit.exceptions.RubykitError` subclasses.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from rubykit.client.changelog import changelog_url
from rubykit.models import GemDetails, GemVersion
from rubykit.tools.base import ToolContext, ToolResult, validate_input

GEM_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
VERSION_PATTERN = r"^[0-9]+(?:\.[0-9]+)*(?:\.(?:pre|rc|alpha|beta)\d*)?$"

SUMMARY_MAX_VERSIONS = 3
_VERSION_HEADER_RE = re.compile(r"^#{1,3}\s*(?:v|Version)?\s*\d+\.\d+", re.IGNORECASE)


# --- Inputs ---


class SearchGemsInput(BaseModel):
    query: str = Field(min_length=1, max_length=100)
    limit: int = Field(default=10, ge=1, le=100)


class GemNameInput(BaseModel):
    gem_name: str = Field(min_length=1, max_length=50, pattern=GEM_NAME_PATTERN)


class GemVersionsInput(GemNameInput):
    include_prerelease: bool = False


class GemChangelogInput(GemNameInput):
    version: Optional[str] = Field(
        default=None, min_length=1, max_length=50, pattern=VERSION_PATTERN
    )
    format: Literal["full", "summary"] = "full"


# --- Tools ---


async def search_gems(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Search for gems on RubyGems.org by name or keywords."""
    params = validate_input(SearchGemsInput, args)
    gems = await ctx.gems.search_gems(params.query, params.limit)
    data = [g.model_dump(mode="json") for g in gems]
    if not gems:
        return ToolResult(text=f'No gems found matching query: "{params.query}"', data=data)

    entries = []
    for gem in gems:
        entry = f"• {gem.name}"
        if gem.authors:
            entry += f" by {gem.authors}"
        if gem.info:
            entry += f"\n  {gem.info}"
        entry += f"\n  Latest: {gem.version}\n  Downloads: {gem.downloads:,}"
        if gem.licenses:
            entry += f"\n  License: {', '.join(gem.licenses)}"
        if gem.homepage_uri:
            entry += f"\n  Homepage: {gem.homepage_uri}"
        entries.append(entry)

    summary = f'Found {_plural(len(gems), "gem")} matching "{params.query}":'
    return ToolResult(text=summary + "\n\n" + "\n\n".join(entries), data=data)


async def get_gem_details(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Get detailed information about a gem including dependencies, metadata, and links."""
    params = validate_input(GemNameInput, args)
    gem = await ctx.gems.get_gem_details(params.gem_name)
    return ToolResult(text=render_gem_details(gem), data=gem.model_dump(mode="json"))


async def get_gem_versions(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Get all versions of a gem, newest first, optionally including prereleases."""
    params = validate_input(GemVersionsInput, args)
    versions = await ctx.gems.get_gem_versions(params.gem_name)
    if not params.include_prerelease:
        versions = [v for v in versions if not v.prerelease]
    versions = sorted(versions, key=lambda v: v.created_at, reverse=True)
    data = [v.model_dump(mode="json") for v in versions]

    if not versions:
        kind = "" if params.include_prerelease else "stable "
        return ToolResult(text=f"No {kind}versions found for gem: {params.gem_name}", data=data)

    lines = [
        f"# Versions for {params.gem_name}",
        "",
        f"Found {_plural(len(versions), 'version')}"
        f"{' (including prerelease)' if params.include_prerelease else ''}:",
        "",
    ]
    for version in versions:
        lines.append(f"• **{version.number}**{_version_tags(version)}")
        lines.append(f"  Released: {_date(version.created_at)}")
        lines.append(f"  Downloads: {version.downloads_count:,}")
        if version.summary:
            lines.append(f"  Summary: {version.summary}")
        if version.ruby_version:
            lines.append(f"  Ruby Version: {version.ruby_version}")
        lines.append("")
    return ToolResult(text="\n".join(lines), data=data)


async def get_latest_version(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Get the latest (by default, latest stable) version of a gem."""
    params = validate_input(GemVersionsInput, args)
    if not params.include_prerelease:
        versions = await ctx.gems.get_gem_versions(params.gem_name)
        if versions and all(v.prerelease for v in versions):
            newest = max(versions, key=lambda v: v.created_at)
            return ToolResult(
                text=(
                    f"No stable versions found for gem: {params.gem_name}. "
                    f"Latest version {newest.number} is a prerelease."
                ),
                data=None,
            )

    version = await ctx.gems.get_latest_version(params.gem_name, params.include_prerelease)
    heading = "Latest Version" if params.include_prerelease else "Latest Stable Version"
    lines = [
        f"# {heading} for {params.gem_name}",
        "",
        f"**{version.number}**{_version_tags(version)}",
        "",
        f"- **Released:** {_date(version.created_at)}",
        f"- **Downloads:** {version.downloads_count:,}",
    ]
    for label, value in (
        ("Summary", version.summary),
        ("Description", version.description),
        ("Authors", version.authors),
        ("Ruby Version", version.ruby_version),
        ("RubyGems Version", version.rubygems_version),
        ("License", ", ".join(version.licenses or [])),
    ):
        if value:
            lines.append(f"- **{label}:** {value}")
    if version.sha:
        lines.append(f"- **SHA256:** `{version.sha}`")
    return ToolResult(text="\n".join(lines) + "\n", data=version.model_dump(mode="json"))


async def get_gem_dependencies(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Get reverse dependencies: the gems that depend on the given gem."""
    params = validate_input(GemNameInput, args)
    name = params.gem_name
    dependents = await ctx.gems.get_reverse_dependencies(name)
    data = [d.name for d in dependents]
    if not dependents:
        return ToolResult(text=f"No gems depend on {name}.", data=data)

    count = len(dependents)
    verb = "depends" if count == 1 else "depend"
    lines = [f"# Reverse Dependencies for {name}", "", f"{_plural(count, 'gem')} {verb} on {name}:", ""]
    lines += [f"• {d.name}" for d in dependents]
    return ToolResult(text="\n".join(lines) + "\n", data=data)


async def get_gem_changelog(ctx: ToolContext, args: Mapping[str, Any]) -> ToolResult:
    """Get the changelog of a gem as Markdown, optionally for one version.

    Gems without a changelog URL are not an error: the result points at
    the homepage and source repository instead.
    """
    params = validate_input(GemChangelogInput, args)
    gem = await ctx.gems.get_gem_details(params.gem_name)
    url = changelog_url(gem)
    if url is None:
        lines = [f"# Changelog for {gem.name}", "", "No changelog URL provided for this gem.", ""]
        if gem.homepage_uri:
            lines += ["You may find release information at the project homepage:", gem.homepage_uri, ""]
        if gem.source_code_uri:
            lines += ["Or check the source code repository:", gem.source_code_uri]
        return ToolResult(
            text="\n".join(lines),
            data={
                "gem_name": gem.name,
                "changelog_url": None,
                "homepage_uri": gem.homepage_uri,
                "source_code_uri": gem.source_code_uri,
            },
        )

    changelog = await ctx.changelogs.get_changelog(params.gem_name, params.version)
    content = changelog.content
    if params.format == "summary":
        content = summarize_changelog(content)

    title = f"# Changelog for {gem.name}"
    if params.version:
        title += f" (version {params.version})"
    text = (
        f"{title}\n\n**Source:** {url}\n**Current Version:** {gem.version}\n\n---\n\n{content}"
    )
    data = changelog.model_dump(mode="json")
    data["content"] = content
    return ToolResult(text=text, data=data)


# --- Rendering helpers ---


def render_gem_details(gem: GemDetails) -> str:
    lines = [f"# {gem.name}", ""]
    if gem.info:
        lines += [f"**Description:** {gem.info}", ""]
    lines.append(f"**Current Version:** {gem.version}")
    if gem.version_created_at:
        lines.append(f"**Released:** {_date(gem.version_created_at)}")
    lines.append(f"**Platform:** {gem.platform}")
    if gem.authors:
        lines.append(f"**Authors:** {gem.authors}")
    lines.append(f"**Total Downloads:** {gem.downloads:,}")
    lines.append(f"**Version Downloads:** {gem.version_downloads:,}")
    if gem.licenses:
        lines.append(f"**License:** {', '.join(gem.licenses)}")
    lines += [f"**Yanked:** {'Yes' if gem.yanked else 'No'}", "", "## Links"]

    for label, uri in (
        ("RubyGems", gem.project_uri),
        ("Download", gem.gem_uri),
        ("Homepage", gem.homepage_uri),
        ("Documentation", gem.documentation_uri),
        ("Source Code", gem.source_code_uri),
        ("Bug Tracker", gem.bug_tracker_uri),
        ("Changelog", gem.changelog_uri),
        ("Funding", gem.funding_uri),
        ("Wiki", gem.wiki_uri),
        ("Mailing List", gem.mailing_list_uri),
    ):
        if uri:
            lines.append(f"- **{label}:** {uri}")

    for title, deps in (
        ("Runtime Dependencies", gem.dependencies.runtime),
        ("Development Dependencies", gem.dependencies.development),
    ):
        if deps:
            lines += ["", f"## {title}"]
            lines += [f"- {d.name} {d.requirements}" for d in deps]

    if gem.metadata:
        lines += ["", "## Metadata"]
        lines += [f"- **{key}:** {value}" for key, value in gem.metadata.items()]
    if gem.sha:
        lines += ["", f"**SHA256:** `{gem.sha}`"]
    return "\n".join(lines)


def summarize_changelog(content: str, max_versions: int = SUMMARY_MAX_VERSIONS) -> str:
    """Keep the changelog up to and including its *max_versions*-th version header."""
    kept: list[str] = []
    seen = 0
    for line in content.split("\n"):
        kept.append(line)
        if _VERSION_HEADER_RE.match(line):
            seen += 1
            if seen >= max_versions:
                kept.append("\n*... (truncated for summary)*")
                break
    return "\n".join(kept)


def _version_tags(version: GemVersion) -> str:
    tags = ""
    if version.platform != "ruby":
        tags += f" ({version.platform})"
    if version.prerelease:
        tags += " [PRERELEASE]"
    return tags


def _date(timestamp: str) -> str:
    return timestamp[:10] if timestamp else "Unknown"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
