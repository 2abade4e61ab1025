"""rubykit -- cached RubyGems.org and Rails generator tooling.

This package exposes two thin tool surfaces to agents and humans alike: one
wrapping the RubyGems.org HTTP API, the other wrapping the Rails
code-generator CLI. Each tool validates its arguments, calls a client and
renders the result as human-readable text plus structured JSON.

Both clients share the same response caching layer (:mod:`rubykit.cache`)
so repeated lookups never hit the network or spawn ``rails`` twice within
the TTL.

Typical usage::

    rubykit gems search rails --limit 5
    rubykit rails generators --project blog

Modules:
    app: Typer application and CLI entry point.
    cache: TTL response cache, key derivation, fetch-or-populate.
    client: RubyGems, changelog, and Rails clients.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    models: Pydantic models shared across the package.
    output: stdout/stderr formatting system with Rich support.
    projects: Named Rails project directories.
    tools: Text and structured rendering of client results.
"""

__version__ = "0.1.0"
