"""Tests for the RubyGems.org tools: validation, rendering, and data payloads."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from rubykit.exceptions import InvalidUsageError, NotFoundError
from rubykit.tools.gems import (
    get_gem_changelog,
    get_gem_dependencies,
    get_gem_details,
    get_gem_versions,
    get_latest_version,
    search_gems,
    summarize_changelog,
)

RELEASE_API = "api.github.com/repos/rails/rails/releases/tags/v7.1.3"


def _bare_gem(name: str, **extra: Any) -> dict[str, Any]:
    return {"name": name, "version": "1.0.0", "downloads": 10, **extra}


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tool, args, field",
        [
            (search_gems, {"query": ""}, "query"),
            (search_gems, {"query": "rack", "limit": 0}, "limit"),
            (search_gems, {"query": "rack", "limit": 101}, "limit"),
            (get_gem_details, {}, "gem_name"),
            (get_gem_details, {"gem_name": "rails; rm -rf /"}, "gem_name"),
            (get_gem_details, {"gem_name": "x" * 51}, "gem_name"),
            (get_gem_changelog, {"gem_name": "rails", "version": "latest"}, "version"),
            (get_gem_changelog, {"gem_name": "rails", "format": "short"}, "format"),
        ],
    )
    async def test_rejects_bad_arguments(self, open_context, web, tool, args, field) -> None:
        async with open_context() as ctx:
            with pytest.raises(InvalidUsageError, match=f"Validation failed: {field}"):
                await tool(ctx, args)
        assert web.requests == []

    @pytest.mark.asyncio
    async def test_accepts_prerelease_version(self, open_context, web, rails_gem) -> None:
        web.gem_api("gems/rails.json", rails_gem)
        web.routes[RELEASE_API] = {"name": "v7.2.0.beta1", "body": "Beta"}
        async with open_context() as ctx:
            result = await get_gem_changelog(ctx, {"gem_name": "rails", "version": "7.2.0.beta1"})
        assert "(version 7.2.0.beta1)" in result.text


# ---------------------------------------------------------------------------
# Search and details
# ---------------------------------------------------------------------------


class TestSearchAndDetails:
    @pytest.mark.asyncio
    async def test_search(self, open_context, web, rails_gem) -> None:
        web.gem_api("search.json", [rails_gem, _bare_gem("rails-html-sanitizer")])
        async with open_context() as ctx:
            result = await search_gems(ctx, {"query": "rails"})

        assert result.text.startswith('Found 2 gems matching "rails":')
        assert "• rails by David Heinemeier Hansson" in result.text
        assert "Downloads: 500,000,000" in result.text
        assert "License: MIT" in result.text
        assert [g["name"] for g in result.data] == ["rails", "rails-html-sanitizer"]
        assert not result.is_error

    @pytest.mark.asyncio
    async def test_search_no_results(self, open_context, web) -> None:
        web.gem_api("search.json", [])
        async with open_context() as ctx:
            result = await search_gems(ctx, {"query": "zzz"})
        assert result.text == 'No gems found matching query: "zzz"'
        assert result.data == []

    @pytest.mark.asyncio
    async def test_details(self, open_context, web, rails_gem) -> None:
        web.gem_api("gems/rails.json", rails_gem)
        async with open_context() as ctx:
            result = await get_gem_details(ctx, {"gem_name": "rails"})

        assert result.text.startswith("# rails\n")
        assert "**Current Version:** 7.1.3" in result.text
        assert "**Released:** 2024-01-16" in result.text
        assert "**Yanked:** No" in result.text
        assert "- **Homepage:** https://rubyonrails.org" in result.text
        assert "## Runtime Dependencies\n- actionpack = 7.1.3" in result.text
        assert "Development Dependencies" not in result.text
        assert result.data["dependencies"]["runtime"][1]["name"] == "activerecord"

    @pytest.mark.asyncio
    async def test_details_unknown_gem(self, open_context) -> None:
        async with open_context() as ctx:
            with pytest.raises(NotFoundError):
                await get_gem_details(ctx, {"gem_name": "no-such-gem"})


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


class TestVersions:
    @pytest.mark.asyncio
    async def test_stable_versions_by_default(self, open_context, web, rails_versions) -> None:
        web.gem_api("versions/rails.json", rails_versions)
        async with open_context() as ctx:
            result = await get_gem_versions(ctx, {"gem_name": "rails"})

        assert result.text.startswith("# Versions for rails\n\nFound 2 versions:")
        assert "7.2.0.beta1" not in result.text
        assert [v["number"] for v in result.data] == ["7.1.3", "7.0.8"]

    @pytest.mark.asyncio
    async def test_including_prerelease(self, open_context, web, rails_versions) -> None:
        web.gem_api("versions/rails.json", list(reversed(rails_versions)))
        async with open_context() as ctx:
            result = await get_gem_versions(ctx, {"gem_name": "rails", "include_prerelease": True})

        assert "Found 3 versions (including prerelease):" in result.text
        assert "• **7.2.0.beta1** [PRERELEASE]" in result.text
        assert [v["number"] for v in result.data] == ["7.2.0.beta1", "7.1.3", "7.0.8"]

    @pytest.mark.asyncio
    async def test_no_stable_versions(self, open_context, web) -> None:
        web.gem_api("versions/edge.json", [{"number": "0.1.0.pre", "prerelease": True}])
        async with open_context() as ctx:
            result = await get_gem_versions(ctx, {"gem_name": "edge"})
        assert result.text == "No stable versions found for gem: edge"

    @pytest.mark.asyncio
    async def test_latest_stable(self, open_context, web, rails_versions) -> None:
        web.gem_api("versions/rails.json", rails_versions)
        async with open_context() as ctx:
            result = await get_latest_version(ctx, {"gem_name": "rails"})

        assert result.text.startswith("# Latest Stable Version for rails\n\n**7.1.3**\n")
        assert "- **Released:** 2024-01-16" in result.text
        assert "- **Downloads:** 1,200,000" in result.text
        assert "- **Ruby Version:** >= 2.7.0" in result.text
        assert result.data["number"] == "7.1.3"

    @pytest.mark.asyncio
    async def test_latest_including_prerelease(self, open_context, web, rails_versions) -> None:
        web.gem_api("versions/rails.json", rails_versions)
        async with open_context() as ctx:
            result = await get_latest_version(ctx, {"gem_name": "rails", "include_prerelease": True})
        assert result.text.startswith("# Latest Version for rails\n\n**7.2.0.beta1** [PRERELEASE]")

    @pytest.mark.asyncio
    async def test_latest_when_only_prereleases(self, open_context, web) -> None:
        web.gem_api(
            "versions/edge.json",
            [
                {"number": "1.0.0.beta", "created_at": "2024-02-01T00:00:00Z", "prerelease": True},
                {"number": "1.0.0.alpha", "created_at": "2024-01-01T00:00:00Z", "prerelease": True},
            ],
        )
        async with open_context() as ctx:
            result = await get_latest_version(ctx, {"gem_name": "edge"})
        assert result.text == (
            "No stable versions found for gem: edge. Latest version 1.0.0.beta is a prerelease."
        )
        assert not result.is_error

    @pytest.mark.asyncio
    async def test_versions_share_one_request(self, open_context, web, rails_versions) -> None:
        web.gem_api("versions/rails.json", rails_versions)
        async with open_context() as ctx:
            await get_gem_versions(ctx, {"gem_name": "rails"})
            await get_latest_version(ctx, {"gem_name": "rails"})
            await get_latest_version(ctx, {"gem_name": "rails"})
        assert len(web.requests) == 1


# ---------------------------------------------------------------------------
# Reverse dependencies
# ---------------------------------------------------------------------------


class TestReverseDependencies:
    @pytest.mark.asyncio
    async def test_lists_dependents(self, open_context, web) -> None:
        web.gem_api("gems/rack/reverse_dependencies.json", ["puma", "sinatra"])
        async with open_context() as ctx:
            result = await get_gem_dependencies(ctx, {"gem_name": "rack"})

        assert result.text.startswith("# Reverse Dependencies for rack\n\n2 gems depend on rack:")
        assert "• sinatra" in result.text
        assert result.data == ["puma", "sinatra"]

    @pytest.mark.asyncio
    async def test_single_dependent(self, open_context, web) -> None:
        web.gem_api("gems/tiny/reverse_dependencies.json", ["tinier"])
        async with open_context() as ctx:
            result = await get_gem_dependencies(ctx, {"gem_name": "tiny"})
        assert "1 gem depends on tiny:" in result.text

    @pytest.mark.asyncio
    async def test_no_dependents(self, open_context, web) -> None:
        web.gem_api("gems/lonely/reverse_dependencies.json", [])
        async with open_context() as ctx:
            result = await get_gem_dependencies(ctx, {"gem_name": "lonely"})
        assert result.text == "No gems depend on lonely."


# ---------------------------------------------------------------------------
# Changelog
# ---------------------------------------------------------------------------


class TestChangelog:
    @pytest.mark.asyncio
    async def test_github_release(self, open_context, web, rails_gem) -> None:
        web.gem_api("gems/rails.json", rails_gem)
        web.routes[RELEASE_API] = {
            "name": "v7.1.3",
            "published_at": "2024-01-16T22:00:00Z",
            "body": "## Active Record\n\n* Fix things",
        }
        async with open_context() as ctx:
            result = await get_gem_changelog(ctx, {"gem_name": "rails"})

        assert result.text.startswith(
            "# Changelog for rails\n\n"
            "**Source:** https://github.com/rails/rails/releases/tag/v7.1.3\n"
            "**Current Version:** 7.1.3\n\n---\n\n# v7.1.3"
        )
        assert "* Fix things" in result.text
        assert result.data["source"] == "github-release"

    @pytest.mark.asyncio
    async def test_missing_changelog_url_is_not_an_error(self, open_context, web) -> None:
        web.gem_api(
            "gems/tiny.json",
            _bare_gem(
                "tiny",
                homepage_uri="https://tiny.test",
                source_code_uri="https://github.com/acme/tiny",
            ),
        )
        async with open_context() as ctx:
            result = await get_gem_changelog(ctx, {"gem_name": "tiny"})

        assert not result.is_error
        assert "No changelog URL provided for this gem." in result.text
        assert "https://tiny.test" in result.text
        assert "https://github.com/acme/tiny" in result.text
        assert result.data["changelog_url"] is None

    @pytest.mark.asyncio
    async def test_summary_truncates(self, open_context, web) -> None:
        web.gem_api(
            "gems/acme.json",
            _bare_gem("acme", changelog_uri="https://acme.test/CHANGELOG.md"),
        )
        web.routes["acme.test/CHANGELOG.md"] = httpx.Response(
            200,
            text="# Changelog\n\n## 4.0.0\n- d\n\n## 3.0.0\n- c\n\n## 2.0.0\n- b\n\n## 1.0.0\n- a\n",
            headers={"content-type": "text/markdown"},
        )
        async with open_context() as ctx:
            result = await get_gem_changelog(ctx, {"gem_name": "acme", "format": "summary"})

        assert "## 2.0.0" in result.text
        assert "## 1.0.0" not in result.text
        assert "*... (truncated for summary)*" in result.text
        assert result.data["content"].endswith("*... (truncated for summary)*")


class TestSummarizeChangelog:
    def test_short_changelog_untouched(self) -> None:
        content = "# Changes\n\n## v1.1\n- x\n\n## v1.0\n- y"
        assert summarize_changelog(content) == content

    def test_stops_at_nth_version_header(self) -> None:
        content = "## 3.0\n- c\n## 2.0\n- b\n## 1.0\n- a"
        assert summarize_changelog(content, max_versions=2) == (
            "## 3.0\n- c\n## 2.0\n\n*... (truncated for summary)*"
        )
