"""Upstream clients, each owning its own response cache.

* :class:`RubyGemsClient` -- RubyGems.org API over :mod:`httpx`.
* :class:`ChangelogFetcher` -- changelog retrieval via GitHub or plain HTTP.
* :class:`RailsClient` -- ``rails generate`` / ``rails destroy`` subprocesses.
* :class:`BundlerClient` -- ``bundle install`` / ``check`` / ``show`` /
  ``audit`` / ``clean`` subprocesses.
"""

from rubykit.client.bundler import BundlerClient
from rubykit.client.changelog import ChangelogFetcher
from rubykit.client.rails import RailsClient
from rubykit.client.rubygems import RubyGemsClient

__all__ = ["BundlerClient", "ChangelogFetcher", "RailsClient", "RubyGemsClient"]
