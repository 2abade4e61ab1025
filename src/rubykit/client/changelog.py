"""Changelog retrieval for gems, cached for a day.

A gem's changelog URL comes from its RubyGems.org record
(``changelog_uri``, or the same key under ``metadata``).  The URL decides
how the text is fetched:

* ``github.com/<owner>/<repo>/releases/tag/<tag>`` -- the GitHub releases
  API, falling back to the HTML page if the API refuses.
* ``github.com/<owner>/<repo>/blob/<ref>/<path>`` -- the raw file from
  ``raw.githubusercontent.com``.
* anything else -- a plain GET; HTML is reduced to Markdown.

Results are stored in the fetcher's own :class:`~rubykit.cache.ResponseCache`
(default TTL 24 h, see :attr:`~rubykit.models.GlobalConfig.changelog_cache`),
keyed ``changelog?{"name":..,"version":..}``.
"""

from __future__ import annotations

import html
import re
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

from rubykit.cache import ResponseCache, generate_key
from rubykit.cache.cache import Clock
from rubykit.client.rubygems import RubyGemsClient
from rubykit.exceptions import ConnectionError_, NotFoundError, ServerError
from rubykit.models import CacheConfig, Changelog, ChangelogSource, GemDetails, RequestConfig
from rubykit.output import get_output

_GITHUB_API = "https://api.github.com"
_GITHUB_RAW = "https://raw.githubusercontent.com"


class ChangelogFetcher:
    """Fetch, normalise, and cache gem changelogs.

    Must be used as an async context manager.  Gem metadata is looked up
    through *gems*, so it benefits from that client's cache too.

    Args:
        gems: An entered :class:`~rubykit.client.rubygems.RubyGemsClient`.
        config: Timeout and User-Agent for changelog requests.
        cache_config: Cache settings; defaults to a 24 h TTL.
        transport: Optional :mod:`httpx` transport for tests.
        clock: Time source for cache freshness.
    """

    def __init__(
        self,
        gems: RubyGemsClient,
        config: Optional[RequestConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.time,
    ) -> None:
        self._gems = gems
        self._config = config or RequestConfig()
        self._transport = transport
        self._cache = ResponseCache(
            cache_config or CacheConfig(ttl_seconds=24 * 60 * 60), clock=clock
        )
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def __aenter__(self) -> ChangelogFetcher:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            headers={"User-Agent": self._config.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get_changelog(self, gem_name: str, version: Optional[str] = None) -> Changelog:
        """Return the changelog of *gem_name*, narrowed to *version* if given.

        Raises:
            NotFoundError: If the gem is unknown or declares no changelog URL.
            ServerError: If the changelog URL answers with an error status.
            ConnectionError_: On network failures.
        """

        async def fetch() -> Changelog:
            details = await self._gems.get_gem_details(gem_name)
            url = changelog_url(details)
            if url is None:
                raise NotFoundError(f"No changelog URL provided for gem: {gem_name}")
            content, fmt, source = await self.fetch_from_url(url)
            if fmt == "html":
                content, fmt = html_to_markdown(content), "markdown"
            if version:
                content = extract_version_section(content, version)
            return Changelog(
                gem_name=details.name,
                version=version,
                content=content,
                format=fmt,
                source=source,
                url=url,
            )

        key = generate_key("changelog", {"name": gem_name, "version": version})
        return await self._cache.get_or_fetch(key, fetch)

    async def fetch_from_url(self, url: str) -> tuple[str, str, ChangelogSource]:
        """Fetch *url* according to its :func:`detect_source` kind.

        Returns:
            ``(content, format, source)`` where *format* is ``markdown``,
            ``html``, or ``text``.
        """
        source = detect_source(url)
        if source == ChangelogSource.GITHUB_RELEASE:
            release = await self._fetch_github_release(url)
            if release is not None:
                return release, "markdown", source
            source = ChangelogSource.EXTERNAL
        elif source == ChangelogSource.GITHUB_FILE:
            response = await self._get(to_raw_url(url))
            return response.text, "markdown", source

        response = await self._get(url)
        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type:
            fmt = "html"
        elif "text/markdown" in content_type or url.endswith(".md"):
            fmt = "markdown"
        else:
            fmt = "text"
        return response.text, fmt, source

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _fetch_github_release(self, url: str) -> Optional[str]:
        """Render a GitHub release as Markdown, or ``None`` if the API refuses."""
        parts = urlparse(url).path.strip("/").split("/")
        # owner/repo/releases/tag/<tag>
        if len(parts) < 5 or parts[2:4] != ["releases", "tag"]:
            raise NotFoundError(f"Invalid GitHub release URL: {url}")
        owner, repo, tag = parts[0], parts[1], "/".join(parts[4:])
        api_url = f"{_GITHUB_API}/repos/{owner}/{repo}/releases/tags/{tag}"
        try:
            response = await self._get(api_url, headers={"Accept": "application/vnd.github+json"})
        except ServerError as exc:
            get_output().debug(f"GitHub release API failed ({exc}), using {url}")
            return None

        try:
            data = response.json()
        except ValueError as exc:
            get_output().debug(f"GitHub release API sent invalid JSON ({exc}), using {url}")
            return None
        if not isinstance(data, dict):
            get_output().debug(f"GitHub release API sent no release object, using {url}")
            return None

        lines =[f"# {data.get('name') or data.get('tag_name') or tag}", ""]
        if data.get("published_at"):
            lines += [f"**Released:** {data['published_at'][:10]}", ""]
        lines.append(data.get("body") or "No release notes provided.")
        return "\n".join(lines)

    async def _get(self, url: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"
        get_output().debug(f"GET {url}")
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(
                f"Request timeout after {self._config.timeout}s: {url}"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise ServerError(
                f"Failed to fetch changelog from {url}: {response.status_code}"
            )
        return response


# ------------------------------------------------------------------ #
# Pure helpers
# ------------------------------------------------------------------ #


def changelog_url(details: GemDetails) -> Optional[str]:
    """Return the changelog URL declared by a gem, if any."""
    return details.changelog_uri or details.metadata.get("changelog_uri") or None


def detect_source(url: str) -> ChangelogSource:
    """Classify *url* as a GitHub release, a GitHub file, or anything else."""
    parsed = urlparse(url)
    if parsed.hostname == "github.com":
        if "/releases/tag/" in parsed.path:
            return ChangelogSource.GITHUB_RELEASE
        if "/blob/" in parsed.path:
            return ChangelogSource.GITHUB_FILE
    return ChangelogSource.EXTERNAL


def to_raw_url(url: str) -> str:
    """Turn ``github.com/o/r/blob/<ref>/<path>`` into its raw.githubusercontent.com URL.

    Other URLs are returned unchanged.
    """
    parsed = urlparse(url)
    if parsed.hostname != "github.com" or "/blob/" not in parsed.path:
        return url
    repo_path, file_path = parsed.path.split("/blob/", 1)
    owner, repo = [p for p in repo_path.split("/") if p][:2]
    return f"{_GITHUB_RAW}/{owner}/{repo}/{file_path}"


def extract_version_section(content: str, version: str) -> str:
    """Cut the section describing *version* out of a changelog.

    Recognises ``## 7.0.3 / 2024-11-26``, ``## v7.0.3``, ``# Version 7.0.3``,
    ``[7.0.3] ...`` and ``7.0.3 (2024-11-26)`` headers.  The section runs
    until the next Markdown header of the same or a higher level.  When the
    version is not found the whole changelog is returned behind a note.
    """
    v = re.escape(version)
    patterns = [
        rf"^##\s+{v}\s*/.*$",
        rf"^#+\s*(?:v|Version)?\s*{v}\b.*$",
        rf"^\[{v}\].*$",
        rf"^{v}\s*\(.*?\).*$",
    ]
    for pattern in patterns:
        match = re.search(pattern, content, re.MULTILINE | re.IGNORECASE)
        if match is None:
            continue
        header = re.match(r"^(#+)", match.group(0))
        level = len(header.group(1)) if header else 2
        lines = content.split("\n")
        start = content.count("\n", 0, match.start())
        end = len(lines)
        next_header = re.compile(rf"^#{{1,{level}}}\s+\S")
        for i in range(start + 1, len(lines)):
            if next_header.match(lines[i]):
                end = i
                break
        return "\n".join(lines[start:end]).strip()

    return f"*Note: Version {version} not found in changelog*\n\n{content}"


_HTML_RULES: list[tuple[str, str]] = [
    (r"<(script|style)\b.*?</\1>", ""),
    *[(rf"<h{n}[^>]*>(.*?)</h{n}>", "#" * n + r" \1\n") for n in range(1, 7)],
    (r"<li\b[^>]*>(.*?)</li>", r"- \1\n"),
    (r"</?(ul|ol)[^>]*>", "\n"),
    (r"<p\b[^>]*>(.*?)</p>", r"\1\n\n"),
    (r"<br\b[^>]*>", "\n"),
    (r'<a[^>]+href="([^"]*)"[^>]*>(.*?)</a>', r"[\2](\1)"),
    (r"<(strong|b)\b[^>]*>(.*?)</\1>", r"**\2**"),
    (r"<(em|i)\b[^>]*>(.*?)</\1>", r"*\2*"),
    (r"<code[^>]*>(.*?)</code>", r"`\1`"),
    (r"<[^>]+>", ""),
]


def html_to_markdown(markup: str) -> str:
    """Reduce an HTML changelog page to rough Markdown."""
    text = markup
    for pattern, replacement in _HTML_RULES:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE | re.DOTALL)
    text = html.unescape(text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
