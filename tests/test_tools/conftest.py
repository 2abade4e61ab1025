"""Fixtures for tool tests: a ToolContext wired to the fake web."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
import pytest

from rubykit.client.bundler import BundlerClient
from rubykit.client.changelog import ChangelogFetcher
from rubykit.client.rails import RailsClient
from rubykit.client.rubygems import RubyGemsClient
from rubykit.models import CacheConfig, ProjectConfig, QuoteConfig, RequestConfig
from rubykit.projects import ProjectManager
from rubykit.tools import ToolContext


@pytest.fixture
def open_context(web, clock, tmp_path: Path):
    """Factory for an entered :class:`ToolContext` over the ``web`` fixture.

    Usage::

        async with open_context(projects=[...]) as ctx:
            result = await search_gems(ctx, {"query": "rack"})
    """

    @asynccontextmanager
    async def factory(
        projects: tuple[ProjectConfig, ...] = (),
        default_path: Optional[Path] = None,
        quotes: Optional[QuoteConfig] = None,
    ) -> AsyncIterator[ToolContext]:
        transport = httpx.MockTransport(web)
        request = RequestConfig(base_url="https://rubygems.test", rate_limit_delay=0)
        async with RubyGemsClient(
            request, CacheConfig(ttl_seconds=300), transport=transport, clock=clock
        ) as gems:
            async with ChangelogFetcher(gems, request, transport=transport, clock=clock) as changelogs:
                yield ToolContext(
                    gems=gems,
                    changelogs=changelogs,
                    rails=RailsClient(clock=clock),
                    bundler=BundlerClient(clock=clock),
                    projects=ProjectManager(projects, default_path or tmp_path),
                    quotes=quotes or QuoteConfig(),
                )

    return factory


@pytest.fixture(autouse=True)
def _quiet(quiet_output):
    yield
