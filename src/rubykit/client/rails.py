"""Rails CLI client: generator discovery, help, generate, and destroy.

:class:`RailsClient` runs ``rails`` as a subprocess inside a project
directory and parses its text output into
:mod:`rubykit.models` objects.  Read-only commands (listing generators and
generator help) are cached per project, since starting Rails takes
seconds.  ``generate`` and ``destroy`` bypass the cache and clear it when
they succeed: a generator run can add new generators (``rails g
generator``) or gems.

Commands run with ``RAILS_ENV=development`` and are killed after
:attr:`~rubykit.models.RailsConfig.timeout` seconds.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from rubykit.cache import ResponseCache, generate_key
from rubykit.cache.cache import Clock
from rubykit.client.process import run_command
from rubykit.exceptions import ProjectError
from rubykit.models import (
    CacheConfig,
    DestroyResult,
    GenerateResult,
    GeneratorArgument,
    GeneratorHelp,
    GeneratorOption,
    ProjectType,
    RailsConfig,
    RailsGenerator,
    RailsProjectInfo,
)

_RAILS_VERSION_RE = re.compile(r"^\s+rails \((\d+\.\d+\.\d+(?:\.\w+)?)\)", re.MULTILINE)
_GENERATOR_NAME_RE = re.compile(r"^(\w+(?::\w+)*)$")
_SECTION_RE = re.compile(r"^(\w+)( options)?:$", re.IGNORECASE)
_OPTION_RE = re.compile(
    r"^\[?(?:(-\w),\s*)?\[?--([\w-]+)(?:=(\S+?))?\]?(?:,\s*\[--no-[\w-]+\])?\s+(?:#\s*)?(.*)$"
)
_MODIFY_ACTIONS = ("insert", "inject", "append", "prepend", "gsub")


class RailsClient:
    """Run and parse ``rails`` commands for a project directory.

    Args:
        config: Executable name and command timeout.
        cache_config: ``enabled`` flag and default TTL for the cache.
        clock: Time source for cache freshness.
    """

    def __init__(
        self,
        config: Optional[RailsConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        clock: Clock = time.time,
    ) -> None:
        self._config = config or RailsConfig()
        self._cache = ResponseCache(cache_config, clock=clock)

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    # ------------------------------------------------------------------ #
    # Project inspection
    # ------------------------------------------------------------------ #

    def check_rails_project(self, project_path: str | Path) -> RailsProjectInfo:
        """Inspect *project_path* for a Gemfile and ``config/application.rb``.

        The Rails version comes from ``Gemfile.lock`` when present.  A
        directory with a Gemfile but no application config is reported as a
        gem; an application config mentioning ``Rails::Engine`` as an engine.
        """
        root = Path(project_path)
        if not (root / "Gemfile").is_file():
            return RailsProjectInfo(is_rails_project=False, root_path=str(root))

        rails_version: Optional[str] = None
        lockfile = root / "Gemfile.lock"
        if lockfile.is_file():
            match = _RAILS_VERSION_RE.search(lockfile.read_text(encoding="utf-8", errors="replace"))
            if match:
                rails_version = match.group(1)

        project_type = ProjectType.GEM
        application = root / "config" / "application.rb"
        if application.is_file():
            if "Rails::Engine" in application.read_text(encoding="utf-8", errors="replace"):
                project_type = ProjectType.ENGINE
            else:
                project_type = ProjectType.APPLICATION

        return RailsProjectInfo(
            is_rails_project=True,
            root_path=str(root),
            rails_version=rails_version,
            project_type=project_type,
        )

    # ------------------------------------------------------------------ #
    # Cached reads
    # ------------------------------------------------------------------ #

    async def list_generators(self, project_path: str | Path) -> list[RailsGenerator]:
        """List the generators available in the project.

        Raises:
            ProjectError: If *project_path* is not a Rails project.
            CommandError: If ``rails generate --help`` fails.
        """
        root = self._require_rails_project(project_path, "list generators")

        async def fetch() -> list[RailsGenerator]:
            output = await self._run(["generate", "--help"], root)
            return parse_generators_list(output)

        key = generate_key("generators", {"path": str(root)})
        return await self._cache.get_or_fetch(key, fetch)

    async def get_generator_help(
        self, generator_name: str, project_path: str | Path
    ) -> GeneratorHelp:
        """Return the parsed ``--help`` of one generator.

        Raises:
            ProjectError: If *project_path* is not a Rails project.
            CommandError: If the generator does not exist or rails fails.
        """
        root = self._require_rails_project(project_path, "get generator help")

        async def fetch() -> GeneratorHelp:
            output = await self._run(["generate", generator_name, "--help"], root)
            return parse_generator_help(generator_name, output)

        key = generate_key("generator_help", {"name": generator_name, "path": str(root)})
        return await self._cache.get_or_fetch(key, fetch)

    # ------------------------------------------------------------------ #
    # Mutating commands
    # ------------------------------------------------------------------ #

    async def generate(
        self,
        generator_name: str,
        args: Sequence[str] = (),
        options: Optional[Mapping[str, Any]] = None,
        project_path: str | Path = ".",
    ) -> GenerateResult:
        """Run ``rails generate`` and report the files it touched.

        Raises:
            ProjectError: If *project_path* is not a Rails project.
            CommandError: If the generator fails.
        """
        root = self._require_rails_project(project_path, "run generators")
        command = ["generate", generator_name, *args, *options_to_flags(options or {})]

        async def run() -> GenerateResult:
            return parse_generate_output(await self._run(command, root))

        result = await self._cache.get_or_fetch("generate", run, bypass=True)
        self._cache.clear()
        return result

    async def destroy(
        self,
        generator_name: str,
        args: Sequence[str] = (),
        options: Optional[Mapping[str, Any]] = None,
        project_path: str | Path = ".",
    ) -> DestroyResult:
        """Run ``rails destroy`` and report the files it removed.

        Raises:
            ProjectError: If *project_path* is not a Rails project.
            CommandError: If the command fails.
        """
        root = self._require_rails_project(project_path, "run destroy")
        command = ["destroy", generator_name, *args, *options_to_flags(options or {})]

        async def run() -> DestroyResult:
            return parse_destroy_output(await self._run(command, root))

        result = await self._cache.get_or_fetch("destroy", run, bypass=True)
        self._cache.clear()
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _require_rails_project(self, project_path: str | Path, action: str) -> Path:
        info = self.check_rails_project(project_path)
        if not info.is_rails_project:
            raise ProjectError(
                f"Not a Rails project: {project_path}. "
                f"Cannot {action} outside of Rails projects."
            )
        return Path(info.root_path)

    async def _run(self, args: list[str], cwd: Path) -> str:
        """Run ``rails *args`` in *cwd* with ``RAILS_ENV=development`` and return its stdout.

        Raises:
            CommandError: On a missing executable, timeout, or non-zero exit.
        """
        return await run_command(
            "rails",
            self._config.executable,
            args,
            cwd,
            self._config.timeout,
            env={"RAILS_ENV": "development"},
        )


# ------------------------------------------------------------------ #
# Command building and output parsing
# ------------------------------------------------------------------ #


def options_to_flags(options: Mapping[str, Any]) -> list[str]:
    """Translate an options mapping into ``rails`` command-line flags.

    ``True`` gives ``--key``, ``False`` gives ``--no-key``, a list gives
    ``--key a,b`` and anything else ``--key value``.  ``None`` is skipped.
    """
    flags: list[str] = []
    for key, value in options.items():
        if isinstance(value, bool):
            flags.append(f"--{key}" if value else f"--no-{key}")
        elif isinstance(value, (list, tuple)):
            flags += [f"--{key}", ",".join(str(v) for v in value)]
        elif value is not None:
            flags += [f"--{key}", str(value)]
    return flags


def parse_generators_list(output: str) -> list[RailsGenerator]:
    """Parse ``rails generate --help`` into generators.

    Only lines after "Please choose a generator below" are considered;
    namespace headers such as ``ActiveRecord:`` are skipped.
    """
    generators: list[RailsGenerator] = []
    in_list = False
    for line in output.splitlines():
        trimmed = line.strip()
        if "Please choose a generator below" in trimmed:
            in_list = True
            continue
        if not in_list or not trimmed or trimmed.startswith("==="):
            continue
        match = _GENERATOR_NAME_RE.match(trimmed)
        if match:
            name = match.group(1)
            generators.append(
                RailsGenerator(
                    name=name,
                    description=f"Rails {name} generator",
                    namespace=name.split(":")[0] if ":" in name else None,
                )
            )
    return generators


def parse_generator_help(generator_name: str, output: str) -> GeneratorHelp:
    """Parse ``rails generate <name> --help`` output.

    Understands the ``Usage:``, ``Options:`` (and ``... options:``) and
    ``Description:`` sections.  Positional arguments are read from the
    usage line: upper-case words are required, bracketed groups optional.
    """
    help_ = GeneratorHelp(name=generator_name)
    section = ""
    description: list[str] = []
    first_line = ""

    for line in output.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        if trimmed.startswith("Usage:"):
            help_.usage = trimmed[len("Usage:"):].strip()
            section = "usage"
            continue
        header = _SECTION_RE.match(trimmed)
        if header:
            section = "options" if header.group(2) else header.group(1).lower()
            continue

        if section == "usage" and not help_.usage:
            help_.usage = trimmed
        elif section == "options":
            if trimmed.startswith(("-", "[-")):
                option = _parse_option(trimmed)
                if option is not None:
                    help_.options.append(option)
            elif trimmed.startswith("# Default:") and help_.options:
                help_.options[-1].default = trimmed[len("# Default:"):].strip()
        elif section == "description":
            description.append(trimmed)
        elif not first_line:
            first_line = trimmed

    help_.description = " ".join(description) or first_line
    help_.arguments = _usage_arguments(help_.usage, generator_name)
    return help_


def parse_generate_output(output: str) -> GenerateResult:
    """Collect created and modified files from ``rails generate`` output."""
    result = GenerateResult(output=output)
    for action, target in _actions(output):
        if action == "create":
            result.files_created.append(target)
        elif action in _MODIFY_ACTIONS and target not in result.files_modified:
            result.files_modified.append(target)
    return result


def parse_destroy_output(output: str) -> DestroyResult:
    """Collect removed and modified files from ``rails destroy`` output."""
    result = DestroyResult(output=output)
    for action, target in _actions(output):
        if action == "remove":
            result.files_removed.append(target)
        elif action in (*_MODIFY_ACTIONS, "subtract") and target not in result.files_modified:
            result.files_modified.append(target)
    return result


def _actions(output: str) -> list[tuple[str, str]]:
    """Split Thor status lines (``create  app/models/user.rb``) into pairs."""
    pairs = []
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) >= 2:
            pairs.append((parts[0], parts[1]))
    return pairs


def _parse_option(line: str) -> Optional[GeneratorOption]:
    match = _OPTION_RE.match(line)
    if match is None:
        return None
    short, name, value, description = match.groups()
    return GeneratorOption(
        name=name,
        description=description.strip(),
        type="string" if value else "boolean",
        aliases=[short] if short else [],
    )


def _usage_arguments(usage: str, generator_name: str) -> list[GeneratorArgument]:
    tokens = _top_level_tokens(usage)
    if generator_name in tokens:
        tokens = tokens[tokens.index(generator_name) + 1:]

    arguments: list[GeneratorArgument] = []
    for token in tokens:
        if re.fullmatch(r"[A-Z][A-Z_]*", token):
            arguments.append(GeneratorArgument(name=token, required=True))
        elif token.startswith("[") and token != "[options]":
            name = re.match(r"\[+(\w+)", token)
            if name:
                repeated = " " in token or "..." in token
                arguments.append(
                    GeneratorArgument(
                        name=name.group(1),
                        required=False,
                        type="array" if repeated else "string",
                    )
                )
    return arguments


def _top_level_tokens(text: str) -> list[str]:
    """Split on spaces that are not inside square brackets."""
    tokens: list[str] = []
    current = ""
    depth = 0
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        if ch == " " and depth == 0:
            if current:
                tokens.append(current)
            current = ""
        else:
            current += ch
    if current:
        tokens.append(current)
    return tokens
