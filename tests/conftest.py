"""Shared test fixtures for rubykit.

Provides a controllable clock for cache expiry, isolated config
environments, output state management, canned RubyGems.org payloads, and
a CLI runner.  These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from rubykit.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, forces the XDG layout,
    clears all RUBYKIT_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("rubykit.config._is_xdg_platform", lambda: True)

    for var in [
        "RUBYKIT_NO_CACHE",
        "RUBYKIT_CACHE_TTL",
        "RUBYKIT_BASE_URL",
        "RUBYKIT_RAILS",
        "RUBYKIT_BUNDLE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a PLAIN-format, verbose OutputManager so debug lines reach stderr."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# RubyGems.org payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def rails_gem() -> dict[str, Any]:
    """Trimmed ``/api/v1/gems/rails.json`` payload."""
    return {
        "name": "rails",
        "downloads": 500000000,
        "version": "7.1.3",
        "version_created_at": "2024-01-16T22:00:00.000Z",
        "version_downloads": 1200000,
        "platform": "ruby",
        "authors": "David Heinemeier Hansson",
        "info": "Ruby on Rails is a full-stack web framework.",
        "licenses": ["MIT"],
        "metadata": {
            "changelog_uri": "https://github.com/rails/rails/releases/tag/v7.1.3",
            "source_code_uri": "https://github.com/rails/rails/tree/v7.1.3",
        },
        "yanked": False,
        "sha": "abc123",
        "project_uri": "https://rubygems.org/gems/rails",
        "gem_uri": "https://rubygems.org/gems/rails-7.1.3.gem",
        "homepage_uri": "https://rubyonrails.org",
        "source_code_uri": "https://github.com/rails/rails/tree/v7.1.3",
        "changelog_uri": "https://github.com/rails/rails/releases/tag/v7.1.3",
        "dependencies": {
            "development": [],
            "runtime": [
                {"name": "actionpack", "requirements": "= 7.1.3"},
                {"name": "activerecord", "requirements": "= 7.1.3"},
            ],
        },
    }


@pytest.fixture
def rails_versions() -> list[dict[str, Any]]:
    """Trimmed ``/api/v1/versions/rails.json`` payload (newest first)."""
    return [
        {
            "number": "7.2.0.beta1",
            "created_at": "2024-05-29T18:00:00.000Z",
            "prerelease": True,
            "downloads_count": 5000,
            "platform": "ruby",
        },
        {
            "number": "7.1.3",
            "created_at": "2024-01-16T22:00:00.000Z",
            "prerelease": False,
            "downloads_count": 1200000,
            "platform": "ruby",
            "summary": "Full-stack web application framework.",
            "ruby_version": ">= 2.7.0",
        },
        {
            "number": "7.0.8",
            "created_at": "2023-09-09T19:00:00.000Z",
            "prerelease": False,
            "downloads_count": 900000,
            "platform": "ruby",
        },
    ]


# ---------------------------------------------------------------------------
# Rails project fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def rails_project(tmp_path: Path) -> Path:
    """A minimal Rails application layout: Gemfile, Gemfile.lock, config/application.rb."""
    root = tmp_path / "blog"
    (root / "config").mkdir(parents=True)
    (root / "Gemfile").write_text('source "https://rubygems.org"\ngem "rails", "~> 7.1.3"\n')
    (root / "Gemfile.lock").write_text(
        "GEM\n  remote: https://rubygems.org/\n  specs:\n"
        "    rails (7.1.3)\n      actionpack (= 7.1.3)\n"
    )
    (root / "config" / "application.rb").write_text(
        "module Blog\n  class Application < Rails::Application\n  end\nend\n"
    )
    return root


# ---------------------------------------------------------------------------
# Fake upstream web
# ---------------------------------------------------------------------------

RUBYGEMS_HOST = "rubygems.test"


class Web:
    """httpx.MockTransport handler keyed on ``host + path``.

    Routes map to an :class:`httpx.Response` (returned as-is) or to a
    JSON-serialisable payload (returned with status 200).  Unknown routes
    answer 404.  Every request is recorded.
    """

    def __init__(self, routes: Optional[dict[str, Any]] = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.url.host}{request.url.path}")
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def gem_api(self, path: str, payload: Any) -> None:
        """Serve *payload* at ``/api/v1/<path>`` on the fake RubyGems host."""
        self.routes[f"{RUBYGEMS_HOST}/api/v1/{path}"] = payload


@pytest.fixture
def web() -> Web:
    return Web()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
