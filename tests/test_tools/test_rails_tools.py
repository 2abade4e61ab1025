"""Tests for the Rails generator tools."""

from __future__ import annotations

from pathlib import Path

import pytest

from rubykit.exceptions import CommandError, InvalidUsageError, ProjectError
from rubykit.models import ProjectConfig
from rubykit.tools.rails import destroy, generate, get_generator_help, list_generators

GENERATORS_HELP = """\
Please choose a generator below.

Rails:
  controller
  model

ActiveRecord:
  active_record:migration
"""

MODEL_HELP = """\
Usage:
  bin/rails generate model NAME [field[:type][:index] field[:type][:index]] [options]

Options:
  -o, --orm=NAME  # ORM to be invoked
                  # Default: active_record

Description:
    Generates a new model.
"""


@pytest.fixture
def commands(monkeypatch: pytest.MonkeyPatch):
    """Replace RailsClient._run with canned output and record the commands."""
    seen: list[tuple[list[str], Path]] = []

    async def fake_run(self, args: list[str], cwd: Path) -> str:
        seen.append((args, cwd))
        if args == ["generate", "--help"]:
            return GENERATORS_HELP
        if args[-1] == "--help":
            return MODEL_HELP
        if args[0] == "generate":
            return "      create  app/models/user.rb\n      inject  config/routes.rb\n"
        return "      remove  app/models/user.rb\n"

    monkeypatch.setattr("rubykit.client.rails.RailsClient._run", fake_run)
    return seen


def _blog(rails_project: Path) -> tuple[ProjectConfig, ...]:
    return (ProjectConfig(name="blog", path=str(rails_project)),)


# ---------------------------------------------------------------------------
# Project resolution
# ---------------------------------------------------------------------------


class TestProjects:
    @pytest.mark.asyncio
    async def test_named_project(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(projects=_blog(rails_project)) as ctx:
            await list_generators(ctx, {"project": "blog"})
        assert commands[0][1] == rails_project.resolve()

    @pytest.mark.asyncio
    async def test_default_project(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(default_path=rails_project) as ctx:
            await list_generators(ctx, {})
        assert commands[0][1] == rails_project.resolve()

    @pytest.mark.asyncio
    async def test_unknown_project(self, open_context, commands) -> None:
        async with open_context() as ctx:
            with pytest.raises(ProjectError, match="Project not found: shop"):
                await list_generators(ctx, {"project": "shop"})
        assert commands == []

    @pytest.mark.asyncio
    async def test_not_a_rails_directory(self, open_context, commands, tmp_path: Path) -> None:
        async with open_context(default_path=tmp_path) as ctx:
            with pytest.raises(ProjectError, match="does not contain a Rails application"):
                await generate(ctx, {"generator_name": "model", "arguments": ["User"]})
        assert commands == []


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class TestRailsTools:
    @pytest.mark.asyncio
    async def test_list_generators(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(default_path=rails_project) as ctx:
            result = await list_generators(ctx, {})

        assert result.text.startswith("Found 3 generators in Rails project:")
        assert "## Rails\n- **controller**: Rails controller generator" in result.text
        assert "## active_record\n- **active_record:migration**" in result.text
        assert "- Rails version: 7.1.3" in result.text
        assert "- Project type: application" in result.text
        assert result.data["project"]["rails_version"] == "7.1.3"

    @pytest.mark.asyncio
    async def test_generator_help(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(default_path=rails_project) as ctx:
            result = await get_generator_help(ctx, {"generator_name": "model"})

        assert result.text.startswith("# model Generator\n\nGenerates a new model.")
        assert "- **NAME** (string, required)" in result.text
        assert "- **--orm** (-o) (string): ORM to be invoked [default: active_record]" in result.text
        assert commands[0][0] == ["generate", "model", "--help"]

    @pytest.mark.asyncio
    async def test_generator_name_validated(self, open_context, commands) -> None:
        async with open_context() as ctx:
            with pytest.raises(InvalidUsageError, match="generator_name"):
                await get_generator_help(ctx, {"generator_name": "model; rm -rf /"})

    @pytest.mark.asyncio
    async def test_generate(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(default_path=rails_project) as ctx:
            result = await generate(
                ctx,
                {
                    "generator_name": "model",
                    "arguments": ["User", "name:string"],
                    "options": {"skip-fixtures": True, "parent": "Base"},
                },
            )

        assert result.text.startswith("# Generator 'model' executed successfully!")
        assert "## Files Created\n- app/models/user.rb" in result.text
        assert "## Files Modified\n- config/routes.rb" in result.text
        assert "- Arguments: User, name:string" in result.text
        assert "- Options: skip-fixtures, parent" in result.text
        assert commands[0][0] == [
            "generate", "model", "User", "name:string", "--skip-fixtures", "--parent", "Base"
        ]
        assert result.data["action"] == "generate"
        assert result.data["files_created"] == ["app/models/user.rb"]

    @pytest.mark.asyncio
    async def test_destroy(self, open_context, commands, rails_project: Path) -> None:
        async with open_context(default_path=rails_project) as ctx:
            result = await destroy(ctx, {"generator_name": "model", "arguments": ["User"]})

        assert result.text.startswith("# Rails destroy 'model' executed successfully!")
        assert "## Files Removed\n- app/models/user.rb" in result.text
        assert "- Options: None" in result.text
        assert result.data["files_removed"] == ["app/models/user.rb"]

    @pytest.mark.asyncio
    async def test_generate_failure_propagates(
        self, open_context, monkeypatch: pytest.MonkeyPatch, rails_project: Path
    ) -> None:
        async def failing_run(self, args, cwd):
            raise CommandError("Could not find generator 'modle'.", output="partial output")

        monkeypatch.setattr("rubykit.client.rails.RailsClient._run", failing_run)
        async with open_context(default_path=rails_project) as ctx:
            with pytest.raises(CommandError, match="Could not find generator"):
                await generate(ctx, {"generator_name": "modle"})
