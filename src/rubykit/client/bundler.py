"""Bundler CLI client: install, check, show, audit, and clean.

:class:`BundlerClient` runs ``bundle`` as a subprocess inside a project
directory.  ``bundle check`` and ``bundle show`` are cached per project and
arguments.  ``install`` and ``clean`` change the installed gem set: they
bypass the cache and clear it once they succeed.  ``audit`` always runs,
since its advisory database changes independently of the project.

A Gemfile edit also invalidates cached reads; the tools that edit Gemfiles
call :meth:`BundlerClient.clear_cache` afterwards.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional, Sequence

from rubykit.cache import ResponseCache, generate_key
from rubykit.cache.cache import Clock
from rubykit.client.process import run_command
from rubykit.exceptions import CommandError
from rubykit.models import BundlerConfig, CacheConfig, CommandResult

AUDIT_MISSING_HINT = (
    "bundle-audit command not found or failed to execute. "
    "Make sure the bundler-audit gem is installed."
)


class BundlerClient:
    """Run ``bundle`` commands for a project directory.

    Args:
        config: Executable name and command timeout.
        cache_config: ``enabled`` flag and default TTL for the cache.
        clock: Time source for cache freshness.
    """

    def __init__(
        self,
        config: Optional[BundlerConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        clock: Clock = time.time,
    ) -> None:
        self._config = config or BundlerConfig()
        self._cache = ResponseCache(cache_config, clock=clock)

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------ #
    # Cached reads
    # ------------------------------------------------------------------ #

    async def check(self, project_path: Path, gemfile: Optional[str] = None) -> CommandResult:
        """Run ``bundle check``.

        Raises:
            CommandError: If dependencies are missing or bundle fails.
        """
        command = ["check"]
        if gemfile:
            command += ["--gemfile", gemfile]
        return await self._cached(command, project_path)

    async def show(
        self,
        project_path: Path,
        gem_name: Optional[str] = None,
        paths: bool = False,
        outdated: bool = False,
    ) -> CommandResult:
        """Run ``bundle show`` for every gem, or for *gem_name*.

        Raises:
            CommandError: If the gem is not in the bundle or bundle fails.
        """
        command = ["show"]
        if gem_name:
            command.append(gem_name)
        if paths:
            command.append("--paths")
        if outdated:
            command.append("--outdated")
        return await self._cached(command, project_path)

    # ------------------------------------------------------------------ #
    # Uncached commands
    # ------------------------------------------------------------------ #

    async def install(
        self,
        project_path: Path,
        *,
        deployment: bool = False,
        without: Sequence[str] = (),
        gemfile: Optional[str] = None,
        clean: bool = False,
        frozen: bool = False,
        quiet: bool = False,
    ) -> CommandResult:
        """Run ``bundle install`` and clear the cache.

        Raises:
            CommandError: If the install fails.
        """
        command = ["install"]
        if deployment:
            command.append("--deployment")
        if without:
            command += ["--without", ",".join(without)]
        if gemfile:
            command += ["--gemfile", gemfile]
        for flag, enabled in (("--clean", clean), ("--frozen", frozen), ("--quiet", quiet)):
            if enabled:
                command.append(flag)

        async def run() -> CommandResult:
            output = await self._run(command, project_path)
            return CommandResult(
                command=command,
                output=output.strip() or "Bundle install completed successfully.",
            )

        result = await self._cache.get_or_fetch("install", run, bypass=True)
        self._cache.clear()
        return result

    async def clean(self, project_path: Path, dry_run: bool = False, force: bool = False) -> CommandResult:
        """Run ``bundle clean``; the cache is cleared unless *dry_run*.

        Raises:
            CommandError: If bundle refuses or fails.
        """
        command = ["clean"]
        if dry_run:
            command.append("--dry-run")
        if force:
            command.append("--force")

        async def run() -> CommandResult:
            return CommandResult(command=command, output=(await self._run(command, project_path)).strip())

        result = await self._cache.get_or_fetch("clean", run, bypass=True)
        if not dry_run:
            self._cache.clear()
        return result

    async def audit(
        self,
        project_path: Path,
        update: bool = False,
        verbose: bool = False,
        format: str = "text",
        gemfile_lock: Optional[str] = None,
    ) -> CommandResult:
        """Run ``bundle audit``.

        bundler-audit exits non-zero when it finds vulnerabilities; that is
        reported as ``success=False`` with the report in ``output``.

        Raises:
            CommandError: If bundler-audit is missing or produced no output.
        """
        command = ["audit"]
        if update:
            command.append("--update")
        if verbose:
            command.append("--verbose")
        if format == "json":
            command += ["--format", "json"]
        if gemfile_lock:
            command += ["--gemfile-lock", gemfile_lock]

        try:
            output = await self._run(command, project_path)
        except CommandError as exc:
            if not exc.output.strip():
                raise CommandError(f"{exc}. {AUDIT_MISSING_HINT}") from exc
            return CommandResult(command=command, output=exc.output.strip(), success=False)
        return CommandResult(command=command, output=output.strip() or "No vulnerabilities found")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _cached(self, command: list[str], project_path: Path) -> CommandResult:
        async def fetch() -> CommandResult:
            return CommandResult(command=command, output=(await self._run(command, project_path)).strip())

        key = generate_key("bundle", {"command": command, "path": str(project_path)})
        return await self._cache.get_or_fetch(key, fetch)

    async def _run(self, args: list[str], cwd: Path) -> str:
        """Run ``bundle *args`` in *cwd* and return its stdout.

        Raises:
            CommandError: On a missing executable, timeout, or non-zero exit.
        """
        return await run_command("bundle", self._config.executable, args, cwd, self._config.timeout)
