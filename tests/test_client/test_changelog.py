"""Tests for changelog fetching, parsing, and caching."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from rubykit.client.changelog import (
    ChangelogFetcher,
    changelog_url,
    detect_source,
    extract_version_section,
    html_to_markdown,
    to_raw_url,
)
from rubykit.client.rubygems import RubyGemsClient
from rubykit.exceptions import NotFoundError, ServerError
from rubykit.models import CacheConfig, ChangelogSource, GemDetails, RequestConfig


HISTORY_MD = """# Puma History

## 6.4.2 / 2024-01-08

* Bugfixes
  * Fix chunked body handling

## 6.4.1 / 2024-01-03

* Features
  * Something new

## 6.4.0 / 2023-09-21

* Initial
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Web:
    """MockTransport handler keyed on ``host + path``."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.url.host}{request.url.path}")
        if route is None:
            return httpx.Response(404)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)


def _gem(name: str, url: str | None, **extra: Any) -> dict[str, Any]:
    return {"name": name, "version": "1.0.0", "changelog_uri": url, **extra}


async def _changelog(web: Web, clock, name: str, version: str | None = None):
    transport = httpx.MockTransport(web)
    config = RequestConfig(base_url="https://rubygems.test", rate_limit_delay=0)
    async with RubyGemsClient(config, transport=transport, clock=clock) as gems:
        async with ChangelogFetcher(gems, config, transport=transport, clock=clock) as fetcher:
            return await fetcher.get_changelog(name, version)


@pytest.fixture(autouse=True)
def _quiet(quiet_output):
    yield


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


class TestUrls:
    @pytest.mark.parametrize(
        ("url", "source"),
        [
            ("https://github.com/rails/rails/releases/tag/v7.1.3", ChangelogSource.GITHUB_RELEASE),
            ("https://github.com/puma/puma/blob/master/History.md", ChangelogSource.GITHUB_FILE),
            ("https://nokogiri.org/CHANGELOG.html", ChangelogSource.EXTERNAL),
            ("https://github.com/puma/puma", ChangelogSource.EXTERNAL),
        ],
    )
    def test_detect_source(self, url: str, source: ChangelogSource) -> None:
        assert detect_source(url) == source

    def test_to_raw_url(self) -> None:
        assert (
            to_raw_url("https://github.com/puma/puma/blob/master/History.md")
            == "https://raw.githubusercontent.com/puma/puma/master/History.md"
        )

    def test_to_raw_url_leaves_other_urls(self) -> None:
        assert to_raw_url("https://example.com/a.md") == "https://example.com/a.md"

    def test_changelog_url_from_metadata(self) -> None:
        gem = GemDetails(name="x", metadata={"changelog_uri": "https://example.com/CHANGES"})
        assert changelog_url(gem) == "https://example.com/CHANGES"

    def test_changelog_url_missing(self) -> None:
        assert changelog_url(GemDetails(name="x")) is None


# ---------------------------------------------------------------------------
# Text processing
# ---------------------------------------------------------------------------


class TestExtractVersionSection:
    def test_dated_header(self) -> None:
        section = extract_version_section(HISTORY_MD, "6.4.1")
        assert section.startswith("## 6.4.1 / 2024-01-03")
        assert "Something new" in section
        assert "6.4.0" not in section
        assert "6.4.2" not in section

    def test_last_section_runs_to_end(self) -> None:
        assert extract_version_section(HISTORY_MD, "6.4.0").endswith("* Initial")

    def test_v_prefixed_header(self) -> None:
        content = "# Changes\n\n## v2.0.0\n\nBig\n\n## v1.0.0\n\nSmall\n"
        assert extract_version_section(content, "2.0.0") == "## v2.0.0\n\nBig"

    def test_bracketed_header(self) -> None:
        content = "[1.2.0] - 2024-01-01\nAdded things\n"
        assert extract_version_section(content, "1.2.0").startswith("[1.2.0]")

    def test_version_dots_are_literal(self) -> None:
        content = "## 1x2x3\n\nwrong\n"
        assert extract_version_section(content, "1.2.3").startswith("*Note: Version 1.2.3")

    def test_missing_version_keeps_content(self) -> None:
        result = extract_version_section(HISTORY_MD, "9.9.9")
        assert result.startswith("*Note: Version 9.9.9 not found in changelog*")
        assert result.endswith(HISTORY_MD)


class TestHtmlToMarkdown:
    def test_structure(self) -> None:
        markup = (
            "<html><head><style>p{}</style></head><body>"
            "<h2>1.0.0</h2><ul><li>Fix <code>foo</code></li></ul>"
            '<p>See <a href="https://x.test">docs</a> &amp; <strong>more</strong></p>'
            "</body></html>"
        )
        text = html_to_markdown(markup)
        assert "## 1.0.0" in text
        assert "- Fix `foo`" in text
        assert "See [docs](https://x.test) & **more**" in text
        assert "<" not in text
        assert "p{}" not in text

    def test_collapses_blank_lines(self) -> None:
        assert "\n\n\n" not in html_to_markdown("<p>a</p><br><br><br><p>b</p>")


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


class TestFetching:
    @pytest.mark.asyncio
    async def test_github_release(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/rails.json": _gem(
                    "rails", "https://github.com/rails/rails/releases/tag/v7.1.3"
                ),
                "api.github.com/repos/rails/rails/releases/tags/v7.1.3": {
                    "name": "7.1.3",
                    "tag_name": "v7.1.3",
                    "published_at": "2024-01-16T22:00:00Z",
                    "body": "## Active Record\n\n* Fixes",
                },
            }
        )
        changelog = await _changelog(web, clock, "rails")
        assert changelog.source == ChangelogSource.GITHUB_RELEASE
        assert changelog.format == "markdown"
        assert changelog.content.startswith("# 7.1.3\n\n**Released:** 2024-01-16")
        assert "* Fixes" in changelog.content

    @pytest.mark.asyncio
    async def test_github_release_api_refused_falls_back_to_page(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/rails.json": _gem(
                    "rails", "https://github.com/rails/rails/releases/tag/v7.1.3"
                ),
                "api.github.com/repos/rails/rails/releases/tags/v7.1.3": httpx.Response(403),
                "github.com/rails/rails/releases/tag/v7.1.3": httpx.Response(
                    200,
                    headers={"content-type": "text/html; charset=utf-8"},
                    text="<h1>Rails 7.1.3</h1><p>Notes</p>",
                ),
            }
        )
        changelog = await _changelog(web, clock, "rails")
        assert changelog.source == ChangelogSource.EXTERNAL
        assert changelog.format == "markdown"
        assert changelog.content.startswith("# Rails 7.1.3")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "api_response",
        [
            httpx.Response(200, headers={"content-type": "text/html"}, text="<html>Unicorn!</html>"),
            httpx.Response(200, json=["not", "a", "release"]),
        ],
    )
    async def test_github_release_unreadable_body_falls_back_to_page(
        self, clock, api_response: httpx.Response
    ) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/rails.json": _gem(
                    "rails", "https://github.com/rails/rails/releases/tag/v7.1.3"
                ),
                "api.github.com/repos/rails/rails/releases/tags/v7.1.3": api_response,
                "github.com/rails/rails/releases/tag/v7.1.3": httpx.Response(
                    200,
                    headers={"content-type": "text/plain"},
                    text="Rails 7.1.3 release notes",
                ),
            }
        )
        changelog = await _changelog(web, clock, "rails")
        assert changelog.source == ChangelogSource.EXTERNAL
        assert changelog.content == "Rails 7.1.3 release notes"

    @pytest.mark.asyncio
    async def test_github_file_with_version(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/puma.json": _gem(
                    "puma", "https://github.com/puma/puma/blob/master/History.md"
                ),
                "raw.githubusercontent.com/puma/puma/master/History.md": httpx.Response(
                    200, text=HISTORY_MD
                ),
            }
        )
        changelog = await _changelog(web, clock, "puma", "6.4.2")
        assert changelog.source == ChangelogSource.GITHUB_FILE
        assert changelog.version == "6.4.2"
        assert changelog.content.startswith("## 6.4.2")
        assert "6.4.1" not in changelog.content

    @pytest.mark.asyncio
    async def test_external_html_converted(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/nokogiri.json": _gem(
                    "nokogiri", "https://nokogiri.org/CHANGELOG.html"
                ),
                "nokogiri.org/CHANGELOG.html": httpx.Response(
                    200, headers={"content-type": "text/html"}, text="<h2>v1.16.0</h2>"
                ),
            }
        )
        changelog = await _changelog(web, clock, "nokogiri")
        assert changelog.content == "## v1.16.0"

    @pytest.mark.asyncio
    async def test_no_changelog_url(self, clock) -> None:
        web = Web({"rubygems.test/api/v1/gems/tiny.json": _gem("tiny", None)})
        with pytest.raises(NotFoundError, match="No changelog URL provided for gem: tiny"):
            await _changelog(web, clock, "tiny")

    @pytest.mark.asyncio
    async def test_changelog_fetch_failure(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/gone.json": _gem(
                    "gone", "https://example.com/CHANGELOG.md"
                ),
                "example.com/CHANGELOG.md": httpx.Response(500),
            }
        )
        with pytest.raises(ServerError, match="Failed to fetch changelog"):
            await _changelog(web, clock, "gone")


class TestChangelogCache:
    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, clock) -> None:
        web = Web(
            {
                "rubygems.test/api/v1/gems/puma.json": _gem(
                    "puma", "https://github.com/puma/puma/blob/master/History.md"
                ),
                "raw.githubusercontent.com/puma/puma/master/History.md": httpx.Response(
                    200, text=HISTORY_MD
                ),
            }
        )
        transport = httpx.MockTransport(web)
        config = RequestConfig(base_url="https://rubygems.test", rate_limit_delay=0)
        async with RubyGemsClient(config, transport=transport, clock=clock) as gems:
            async with ChangelogFetcher(gems, config, transport=transport, clock=clock) as fetcher:
                await fetcher.get_changelog("puma")
                await fetcher.get_changelog("puma")
                assert len(web.requests) == 2
                await fetcher.get_changelog("puma", "6.4.1")
                assert len(web.requests) == 3

                assert fetcher.cache.default_ttl == 24 * 60 * 60
                clock.advance(24 * 60 * 60 + 1)
                await fetcher.get_changelog("puma")
                assert len(web.requests) == 5

    @pytest.mark.asyncio
    async def test_custom_cache_config(self, clock) -> None:
        async with RubyGemsClient() as gems:
            fetcher = ChangelogFetcher(gems, cache_config=CacheConfig(ttl_seconds=5))
            assert fetcher.cache.default_ttl == 5
