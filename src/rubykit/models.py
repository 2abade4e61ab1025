"""Canonical Pydantic models shared across all rubykit modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, :class:`RailsConfig`,
    :class:`BundlerConfig`, :class:`QuoteConfig`, :class:`OutputConfig`,
    :class:`ProjectConfig`, and :class:`GlobalConfig`.

**RubyGems models** -- parsed from RubyGems.org API responses:
    :class:`GemDependency`, :class:`GemDependencies`, :class:`GemSearchResult`,
    :class:`GemDetails`, :class:`GemVersion`, :class:`ReverseDependency`, and
    :class:`Changelog`.

**Rails models** -- parsed from ``rails`` CLI output:
    :class:`RailsGenerator`, :class:`GeneratorOption`,
    :class:`GeneratorArgument`, :class:`GeneratorHelp`,
    :class:`RailsProjectInfo`, :class:`GenerateResult`, and
    :class:`DestroyResult`.

**Gemfile models** -- parsed from Gemfiles, gemspecs and ``bundle`` output:
    :class:`ParsedGem`, :class:`ParsedGemfile`, and :class:`CommandResult`.

API payload models use ``extra="allow"`` so that fields RubyGems.org adds in
the future survive a round trip through the cache.
"""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings for one client.

    ``enabled=False`` makes every fetch go straight to the upstream producer
    without reading or writing the cache.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: float = Field(default=300.0, description="Default cache TTL in seconds")


class RequestConfig(BaseModel):
    """HTTP settings for the RubyGems.org client."""

    base_url: str = Field(
        default="https://rubygems.org", description="RubyGems API base URL"
    )
    timeout: float = Field(default=10.0, description="Request timeout in seconds")
    user_agent: str = Field(
        default="rubykit/0.1.0", description="User-Agent header sent upstream"
    )
    rate_limit_delay: float = Field(
        default=0.1, description="Minimum seconds between two upstream requests"
    )


class RailsConfig(BaseModel):
    """Settings for running the ``rails`` executable."""

    executable: str = Field(default="rails", description="Rails executable to run")
    timeout: float = Field(default=30.0, description="Command timeout in seconds")


class BundlerConfig(BaseModel):
    """Settings for running the ``bundle`` executable."""

    executable: str = Field(default="bundle", description="Bundler executable to run")
    timeout: float = Field(default=300.0, description="Command timeout in seconds")


QuoteStyle = Literal["single", "double"]


class QuoteConfig(BaseModel):
    """Quote characters rubykit uses when it writes gem declarations."""

    gemfile: QuoteStyle = Field(default="single", description="Quotes in Gemfile entries")
    gemspec: QuoteStyle = Field(default="double", description="Quotes in gemspec entries")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class ProjectConfig(BaseModel):
    """A named Rails project directory."""

    name: str
    path: str


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/rubykit/config.json``.

    Loaded and saved by :func:`~rubykit.config.load_global_config` and
    :func:`~rubykit.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~rubykit.config.resolve_config`
    for the full precedence chain.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    changelog_cache: CacheConfig = Field(
        default_factory=lambda: CacheConfig(ttl_seconds=24 * 60 * 60.0)
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    rails: RailsConfig = Field(default_factory=RailsConfig)
    bundler: BundlerConfig = Field(default_factory=BundlerConfig)
    quotes: QuoteConfig = Field(default_factory=QuoteConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    projects: list[ProjectConfig] = Field(default_factory=list)


# --- RubyGems ---


class GemDependency(BaseModel):
    """A single runtime or development dependency of a gem."""

    name: str
    requirements: str = ""


class GemDependencies(BaseModel):
    development: list[GemDependency] = Field(default_factory=list)
    runtime: list[GemDependency] = Field(default_factory=list)


class GemSearchResult(BaseModel):
    """One hit from ``/api/v1/search.json``."""

    model_config = ConfigDict(extra="allow")

    name: str
    downloads: int = 0
    version: str = ""
    version_created_at: Optional[str] = None
    version_downloads: int = 0
    platform: str = "ruby"
    authors: Optional[str] = None
    info: Optional[str] = None
    licenses: Optional[list[str]] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    yanked: bool = False
    sha: Optional[str] = None
    project_uri: Optional[str] = None
    gem_uri: Optional[str] = None
    homepage_uri: Optional[str] = None
    wiki_uri: Optional[str] = None
    documentation_uri: Optional[str] = None
    mailing_list_uri: Optional[str] = None
    source_code_uri: Optional[str] = None
    bug_tracker_uri: Optional[str] = None
    changelog_uri: Optional[str] = None
    funding_uri: Optional[str] = None


class GemDetails(GemSearchResult):
    """Full gem record from ``/api/v1/gems/<name>.json``."""

    dependencies: GemDependencies = Field(default_factory=GemDependencies)


class GemVersion(BaseModel):
    """One release from ``/api/v1/versions/<name>.json``."""

    model_config = ConfigDict(extra="allow")

    number: str
    created_at: str = ""
    built_at: Optional[str] = None
    authors: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    downloads_count: int = 0
    metadata: dict[str, str] = Field(default_factory=dict)
    platform: str = "ruby"
    ruby_version: Optional[str] = None
    rubygems_version: Optional[str] = None
    prerelease: bool = False
    licenses: Optional[list[str]] = None
    requirements: Optional[list[str]] = None
    sha: Optional[str] = None


class ReverseDependency(BaseModel):
    """A gem that depends on the queried gem."""

    name: str


class ChangelogSource(str, enum.Enum):
    """Where a changelog was fetched from."""

    GITHUB_RELEASE = "github-release"
    GITHUB_FILE = "github-file"
    EXTERNAL = "external"


class Changelog(BaseModel):
    """Changelog text for a gem, optionally narrowed to one version."""

    gem_name: str
    version: Optional[str] = None
    content: str
    format: str = Field(default="text", description="markdown, html, or text")
    source: ChangelogSource = ChangelogSource.EXTERNAL
    url: str


# --- Rails ---


class RailsGenerator(BaseModel):
    """A generator listed by ``rails generate --help``."""

    name: str
    description: str = ""
    namespace: Optional[str] = None


class GeneratorOption(BaseModel):
    name: str
    description: str = ""
    type: str = Field(default="boolean", description="boolean, string, or array")
    default: Any = None
    required: bool = False
    aliases: list[str] = Field(default_factory=list)


class GeneratorArgument(BaseModel):
    name: str
    description: str = ""
    required: bool = True
    type: str = Field(default="string", description="string or array")


class GeneratorHelp(BaseModel):
    """Parsed output of ``rails generate <name> --help``."""

    name: str
    description: str = ""
    usage: str = ""
    options: list[GeneratorOption] = Field(default_factory=list)
    arguments: list[GeneratorArgument] = Field(default_factory=list)


class ProjectType(str, enum.Enum):
    APPLICATION = "application"
    ENGINE = "engine"
    GEM = "gem"


class RailsProjectInfo(BaseModel):
    """What :meth:`~rubykit.client.rails.RailsClient.check_rails_project` found."""

    is_rails_project: bool
    root_path: str
    rails_version: Optional[str] = None
    project_type: Optional[ProjectType] = None


class GenerateResult(BaseModel):
    """Files touched by a ``rails generate`` run."""

    output: str
    files_created: list[str] = Field(default_factory=list)
    files_modified: list[str] = Field(default_factory=list)


class DestroyResult(BaseModel):
    """Files touched by a ``rails destroy`` run."""

    output: str
    files_removed: list[str] = Field(default_factory=list)
    files_modified: list[str] = Field(default_factory=list)


# --- Gemfiles and Bundler ---


class DependencyFileType(str, enum.Enum):
    GEMFILE = "gemfile"
    GEMSPEC = "gemspec"


class ParsedGem(BaseModel):
    """One ``gem`` line of a Gemfile or ``add_*dependency`` line of a gemspec."""

    name: str
    requirement: Optional[str] = Field(
        default=None, description="Version constraints joined by ', ', e.g. '>= 7.0, < 8'"
    )
    source: Optional[str] = None
    group: list[str] = Field(default_factory=list)
    platform: list[str] = Field(default_factory=list)


class ParsedGemfile(BaseModel):
    """Dependencies declared by a Gemfile or gemspec."""

    path: str
    type: DependencyFileType
    gems: list[ParsedGem] = Field(default_factory=list)
    ruby_version: Optional[str] = None
    source: Optional[str] = None


class CommandResult(BaseModel):
    """Outcome of a ``bundle`` command."""

    command: list[str]
    output: str
    success: bool = True
