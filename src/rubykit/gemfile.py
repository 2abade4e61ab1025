"""Reading and editing Gemfiles and gemspecs.

Parsing is line based, the same way Bundler users write these files: one
``gem`` (or ``spec.add_dependency``) call per line.  ``group``,
``platforms``, ``source``, ``git``, ``path`` and ``github`` blocks are
tracked so that a gem inside them carries the block's groups, platforms or
source.  Ruby code that Bundler would evaluate dynamically (loops,
``eval_gemfile``, string interpolation) is not interpreted.

The editing helpers take the file's text and return the new text; they
never touch the filesystem.  :func:`read_dependency_file` and
:func:`write_dependency_file` do the I/O and map ``OSError`` onto
:class:`~rubykit.exceptions.RubykitError` subclasses.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Sequence, Union

from rubykit.config import atomic_write
from rubykit.exceptions import InvalidUsageError, NotFoundError, ProjectError
from rubykit.models import DependencyFileType, ParsedGem, ParsedGemfile, QuoteStyle

PIN_TYPES = ("~>", ">=", ">", "<", "<=", "=")

_GEM_RE = re.compile(r"""^(\s*)gem\s+(['"])([^'"]+)\2(.*)$""")
_REQUIREMENT_RE = re.compile(r"""^\s*,\s*(['"])([^'"]*)\1""")
_RUBY_RE = re.compile(r"""^ruby\s+['"]([^'"]+)['"]""")
_SOURCE_RE = re.compile(r"""^source\s+['"]([^'"]+)['"]""")
_BLOCK_RE = re.compile(r"^(group|platforms?|source|git|path|github)\b\s*\(?(.*?)\)?\s+do$")
_OPENS_BLOCK_RE = re.compile(r"(^(if|unless|case|begin|while|until|def|class|module)\b|\bdo(\s*\|[^|]*\|)?$)")
_DEPENDENCY_RE = re.compile(
    r"""^(\s*)(\w+)\.add_(runtime_|development_)?dependency\s*\(?\s*(['"])([^'"]+)\4(.*)$"""
)
_REQUIRED_RUBY_RE = re.compile(r"""required_ruby_version\s*=\s*['"]([^'"]+)['"]""")
_SPEC_BLOCK_RE = re.compile(r"^(\s*)Gem::Specification\.new\b.*\bdo\s*\|\s*(\w+)\s*\|")
_OPTION_VALUE = r"""(%[iw]\[[^\]]*\]|\[[^\]]*\]|['"][^'"]*['"]|:?[\w./:-]+)"""
_KEYWORD_RE = re.compile(r"^\w+:\s|^:\w+\s*=>")

_SOURCE_OPTIONS = ("source", "git", "path", "github")


# ------------------------------------------------------------------ #
# File access
# ------------------------------------------------------------------ #


def read_dependency_file(path: Path) -> str:
    """Return the text of a Gemfile or gemspec.

    Raises:
        NotFoundError: If *path* does not exist.
        ProjectError: If *path* is not a readable UTF-8 file.
    """
    if not path.exists():
        raise NotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ProjectError(f"{path} is not a file")
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError:
        raise ProjectError(f"Permission denied reading file: {path}") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise ProjectError(f"Cannot read {path}: {exc}") from exc


def write_dependency_file(path: Path, content: str) -> None:
    """Replace the contents of *path* atomically.

    Raises:
        ProjectError: If the file cannot be written.
    """
    try:
        atomic_write(path, content)
    except PermissionError:
        raise ProjectError(f"Permission denied writing file: {path}") from None
    except OSError as exc:
        raise ProjectError(f"Cannot write {path}: {exc}") from exc


def detect_file_type(path: Path, content: str) -> DependencyFileType:
    """Tell a gemspec from a Gemfile by name, then by content."""
    name = path.name.lower()
    if name.endswith("gemfile") or name == "gems.rb":
        return DependencyFileType.GEMFILE
    if path.suffix.lower() == ".gemspec":
        return DependencyFileType.GEMSPEC
    if "Gem::Specification.new" in content or ".add_dependency" in content:
        return DependencyFileType.GEMSPEC
    return DependencyFileType.GEMFILE


def parse_dependency_file(path: Path) -> ParsedGemfile:
    """Read and parse a Gemfile or gemspec at *path*."""
    content = read_dependency_file(path)
    if detect_file_type(path, content) == DependencyFileType.GEMSPEC:
        return parse_gemspec(content, str(path))
    return parse_gemfile(content, str(path))


# ------------------------------------------------------------------ #
# Parsing
# ------------------------------------------------------------------ #


def parse_gemfile(content: str, path: str) -> ParsedGemfile:
    """Extract the gems, Ruby version and primary source of a Gemfile."""
    result = ParsedGemfile(path=path, type=DependencyFileType.GEMFILE)
    blocks: list[tuple[str, list[str]]] = []
    current_source: Optional[str] = None

    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        block = _BLOCK_RE.match(line)
        if block:
            blocks.append((block.group(1), _symbols(block.group(2))))
            continue
        if line == "end":
            if blocks:
                blocks.pop()
            continue
        if _OPENS_BLOCK_RE.search(line):
            blocks.append(("", []))
            continue

        ruby = _RUBY_RE.match(line)
        if ruby:
            result.ruby_version = ruby.group(1)
            continue
        source = _SOURCE_RE.match(line)
        if source:
            if result.source is None:
                result.source = source.group(1)
            current_source = source.group(1)
            continue

        gem = _GEM_RE.match(line)
        if gem is None:
            continue
        requirements, options = _split_requirements(gem.group(4))
        parsed = ParsedGem(name=gem.group(3), requirement=", ".join(requirements) or None)
        if current_source and current_source != result.source:
            parsed.source = current_source
        for kind, values in blocks:
            if kind == "group":
                parsed.group += values
            elif kind.startswith("platform"):
                parsed.platform += values
            elif kind in _SOURCE_OPTIONS and values:
                parsed.source = values[0]
        _apply_options(parsed, options)
        result.gems.append(parsed)

    return result


def parse_gemspec(content: str, path: str) -> ParsedGemfile:
    """Extract runtime and development dependencies of a gemspec.

    Development dependencies are reported with ``group == ["development"]``.
    """
    result = ParsedGemfile(path=path, type=DependencyFileType.GEMSPEC)
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        dependency = _DEPENDENCY_RE.match(line)
        if dependency:
            requirements, _ = _split_requirements(dependency.group(6))
            result.gems.append(
                ParsedGem(
                    name=dependency.group(5),
                    requirement=", ".join(requirements) or None,
                    group=["development"] if dependency.group(3) == "development_" else [],
                )
            )
            continue
        ruby = _REQUIRED_RUBY_RE.search(line)
        if ruby:
            result.ruby_version = ruby.group(1)
    return result


# ------------------------------------------------------------------ #
# Declarations
# ------------------------------------------------------------------ #


def quote_char(style: QuoteStyle) -> str:
    return "'" if style == "single" else '"'


def detect_quote_style(line: str) -> QuoteStyle:
    """Return the quote style of the gem name on *line*; ``single`` if unknown."""
    match = re.search(r"""gem\s+(['"])""", line)
    if match and match.group(1) == '"':
        return "double"
    return "single"


def format_gem_declaration(
    gem_name: str,
    *,
    version: Optional[str] = None,
    pin_type: str = "~>",
    source: Optional[str] = None,
    require: Union[bool, str, None] = None,
    quote_style: QuoteStyle = "single",
) -> str:
    """Build a ``gem`` line.

    A *source* starting with ``http`` or ``git`` becomes ``git:``, one
    starting with ``/``, ``./`` or ``../`` becomes ``path:``, and anything
    else ``source:``.  ``require=False`` writes ``require: false``.
    """
    q = quote_char(quote_style)
    declaration = f"gem {q}{gem_name}{q}"
    if version:
        declaration += f", {q}{pin_type} {version}{q}"
    if source:
        if source.startswith(("http", "git")):
            declaration += f", git: {q}{source}{q}"
        elif source.startswith(("/", "./", "../")):
            declaration += f", path: {q}{source}{q}"
        else:
            declaration += f", source: {q}{source}{q}"
    if require is False:
        declaration += ", require: false"
    elif isinstance(require, str):
        declaration += f", require: {q}{require}{q}"
    return declaration


def format_dependency_declaration(
    gem_name: str,
    *,
    version: Optional[str] = None,
    pin_type: str = "~>",
    dependency_type: str = "runtime",
    quote_style: QuoteStyle = "double",
    receiver: str = "spec",
    indent: str = "  ",
) -> str:
    """Build a ``spec.add_dependency`` (or ``add_development_dependency``) line."""
    q = quote_char(quote_style)
    method = "add_development_dependency" if dependency_type == "development" else "add_dependency"
    declaration = f"{indent}{receiver}.{method} {q}{gem_name}{q}"
    if version:
        declaration += f", {q}{pin_type} {version}{q}"
    return declaration


# ------------------------------------------------------------------ #
# Editing
# ------------------------------------------------------------------ #


def add_gem_to_gemfile(content: str, gem_name: str, declaration: str, groups: Sequence[str] = ()) -> str:
    """Insert *declaration* into a Gemfile.

    With *groups*, the gem goes at the end of the ``group`` block naming
    exactly those groups, or into a new block appended to the file.
    Without, it goes after the last non-blank line.

    Raises:
        InvalidUsageError: If the Gemfile already declares *gem_name*.
    """
    lines = content.split("\n")
    if _find_gem(lines, gem_name) is not None:
        raise InvalidUsageError(f"Gem '{gem_name}' already exists in the Gemfile")

    insert_at = _content_end(lines)
    if not groups:
        lines.insert(insert_at, declaration)
        return "\n".join(lines)

    block = _find_group_block(lines, groups)
    if block is not None:
        start, end = block
        indent = re.match(r"^\s*", lines[start]).group(0)
        lines.insert(end, f"{indent}  {declaration}")
    else:
        header = "group " + ", ".join(f":{g}" for g in groups) + " do"
        lines[insert_at:insert_at] = ["", header, f"  {declaration}", "end"]
    return "\n".join(lines)


def add_dependency_to_gemspec(
    content: str,
    gem_name: str,
    *,
    version: Optional[str] = None,
    pin_type: str = "~>",
    dependency_type: str = "runtime",
    quote_style: QuoteStyle = "double",
) -> str:
    """Insert a dependency after the gemspec's last one.

    Without existing dependencies it goes before the ``end`` of the
    ``Gem::Specification.new`` block, after a blank line.  The block
    variable (``spec``, ``s``, ...) and indentation follow the file.

    Raises:
        InvalidUsageError: If *gem_name* is already a dependency.
        ProjectError: If there is no ``Gem::Specification.new`` block.
    """
    lines = content.split("\n")
    spec_start: Optional[int] = None
    spec_indent, receiver, indent = "", "spec", "  "
    last_dependency: Optional[int] = None

    for i, line in enumerate(lines):
        spec = _SPEC_BLOCK_RE.match(line)
        if spec and spec_start is None:
            spec_start, spec_indent, receiver = i, spec.group(1), spec.group(2)
            indent = spec_indent + "  "
        dependency = _DEPENDENCY_RE.match(line)
        if dependency:
            if dependency.group(5) == gem_name:
                raise InvalidUsageError(f"Dependency '{gem_name}' already exists in the gemspec")
            last_dependency = i

    if last_dependency is not None:
        dependency = _DEPENDENCY_RE.match(lines[last_dependency])
        indent, receiver = dependency.group(1), dependency.group(2)
        insert_at = last_dependency + 1
    elif spec_start is not None:
        end = next(
            (j for j in range(spec_start + 1, len(lines)) if lines[j].rstrip() == f"{spec_indent}end"),
            None,
        )
        if end is None:
            raise ProjectError("Could not find the end of the Gem::Specification block")
        insert_at = end
        if lines[end - 1].strip():
            lines.insert(end, "")
            insert_at += 1
    else:
        raise ProjectError("Could not find Gem::Specification block")

    lines.insert(
        insert_at,
        format_dependency_declaration(
            gem_name,
            version=version,
            pin_type=pin_type,
            dependency_type=dependency_type,
            quote_style=quote_style,
            receiver=receiver,
            indent=indent,
        ),
    )
    return "\n".join(lines)


def pin_gem(
    content: str,
    gem_name: str,
    version: str,
    pin_type: str = "~>",
    quote_style: Optional[QuoteStyle] = None,
) -> str:
    """Replace the version constraints of *gem_name* with ``pin_type version``.

    Options and a trailing comment on the line are kept.  Without
    *quote_style* the line's own quotes are reused.

    Raises:
        NotFoundError: If the Gemfile does not declare *gem_name*.
    """
    lines = content.split("\n")
    index = _require_gem(lines, gem_name)
    lines[index] = _rewrite_gem_line(lines[index], [f"{pin_type} {version}"], quote_style)
    return "\n".join(lines)


def unpin_gem(content: str, gem_name: str, quote_style: Optional[QuoteStyle] = None) -> tuple[str, bool]:
    """Remove every version constraint of *gem_name*.

    Returns:
        ``(content, changed)``; *changed* is ``False`` when the gem had no
        constraints and *content* is returned untouched.

    Raises:
        NotFoundError: If the Gemfile does not declare *gem_name*.
    """
    lines = content.split("\n")
    index = _require_gem(lines, gem_name)
    requirements, _ = _split_requirements(_GEM_RE.match(lines[index]).group(4))
    if not requirements:
        return content, False
    lines[index] = _rewrite_gem_line(lines[index], [], quote_style)
    return "\n".join(lines), True


# ------------------------------------------------------------------ #
# Private helpers
# ------------------------------------------------------------------ #


def _symbols(text: str) -> list[str]:
    """``:test, "dev"`` or ``[:a, :b]`` -> ``["test", "dev"]``; keyword arguments dropped."""
    text = text.strip()
    if text.startswith(("%i[", "%w[")):
        return text[3:].rstrip("]").split()
    values = []
    for part in text.strip("[]()").split(","):
        part = part.strip()
        if not part or _KEYWORD_RE.match(part):
            continue
        value = part.strip("[]").strip().lstrip(":").strip("'\"")
        if value:
            values.append(value)
    return values


def _split_requirements(rest: str) -> tuple[list[str], str]:
    """Split ``, "~> 7.1", ">= 7.1.2", require: false`` into constraints and the remainder."""
    requirements = []
    match = _REQUIREMENT_RE.match(rest)
    while match:
        requirements.append(match.group(2))
        rest = rest[match.end():]
        match = _REQUIREMENT_RE.match(rest)
    return requirements, rest


def _option(options: str, key: str) -> list[str]:
    match = re.search(rf"(?:\b(?:{key}):|:(?:{key})\s*=>)\s*{_OPTION_VALUE}", options)
    return _symbols(match.group(1)) if match else []


def _apply_options(gem: ParsedGem, options: str) -> None:
    for group in _option(options, "groups?"):
        if group not in gem.group:
            gem.group.append(group)
    for platform in _option(options, "platforms?"):
        if platform not in gem.platform:
            gem.platform.append(platform)
    for key in _SOURCE_OPTIONS:
        value = _option(options, key)
        if value:
            gem.source = value[0]


def _find_gem(lines: list[str], gem_name: str) -> Optional[int]:
    for i, line in enumerate(lines):
        match = _GEM_RE.match(line)
        if match and match.group(3) == gem_name:
            return i
    return None


def _require_gem(lines: list[str], gem_name: str) -> int:
    index = _find_gem(lines, gem_name)
    if index is None:
        raise NotFoundError(f"Gem '{gem_name}' not found in the Gemfile")
    return index


def _rewrite_gem_line(line: str, requirements: list[str], quote_style: Optional[QuoteStyle]) -> str:
    indent, _, name, rest = _GEM_RE.match(line).groups()
    q = quote_char(quote_style or detect_quote_style(line))
    _, remainder = _split_requirements(rest)
    remainder = remainder.strip()

    rewritten = f"{indent}gem {q}{name}{q}"
    for requirement in requirements:
        rewritten += f", {q}{requirement}{q}"
    if remainder.startswith(","):
        rewritten += ", " + remainder[1:].strip()
    elif remainder:
        rewritten += " " + remainder
    return rewritten


def _content_end(lines: list[str]) -> int:
    """Index just past the last non-blank line."""
    end = len(lines)
    while end > 0 and not lines[end - 1].strip():
        end -= 1
    return end


def _find_group_block(lines: list[str], groups: Sequence[str]) -> Optional[tuple[int, int]]:
    """Return ``(start, end)`` line indexes of the block for exactly *groups*."""
    wanted = set(groups)
    for start, line in enumerate(lines):
        block = _BLOCK_RE.match(line.strip())
        if not block or block.group(1) != "group" or set(_symbols(block.group(2))) != wanted:
            continue
        depth = 1
        for end in range(start + 1, len(lines)):
            stripped = lines[end].strip()
            if stripped == "end":
                depth -= 1
                if depth == 0:
                    return start, end
            elif stripped and not stripped.startswith("#") and _OPENS_BLOCK_RE.search(stripped):
                depth += 1
        return None
    return None
