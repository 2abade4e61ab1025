"""Rails commands -- discover and run generators in a Rails project.

Provides the ``rubykit rails`` sub-command group.  The project directory
comes from the global ``--project NAME`` flag (see
:class:`~rubykit.projects.ProjectManager`), defaulting to the working
directory.

Generator options are passed as ``KEY=VALUE`` pairs; ``KEY`` alone means
``--KEY``, ``no-KEY`` means ``--no-KEY``, and a comma in ``VALUE`` makes a
list::

    rubykit rails generate model User name:string --option skip-fixtures
"""

from __future__ import annotations

from typing import Optional, Union

import typer

from rubykit.commands import emit, run_tool, tool_args
from rubykit.exceptions import InvalidUsageError
from rubykit.tools import rails as tools


rails_app = typer.Typer(no_args_is_help=True)


def parse_options(pairs: Optional[list[str]]) -> dict[str, Union[bool, str, list[str]]]:
    """Turn ``KEY[=VALUE]`` strings into a generator options mapping.

    Raises:
        InvalidUsageError: For an empty key.
    """
    options: dict[str, Union[bool, str, list[str]]] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        key = key.strip().lstrip("-")
        if not key:
            raise InvalidUsageError(f"Invalid generator option: {pair!r}")
        if not sep:
            if key.startswith("no-"):
                options[key[3:]] = False
            else:
                options[key] = True
        elif "," in value:
            options[key] = [v for v in value.split(",") if v]
        else:
            options[key] = value
    return options


@rails_app.command("generators")
def rails_generators(ctx: typer.Context) -> None:
    """List the generators available in the project."""
    emit(run_tool(ctx, tools.list_generators, tool_args(ctx)))


@rails_app.command("help")
def rails_help(
    ctx: typer.Context,
    generator_name: str = typer.Argument(help="Generator name, e.g. 'model'."),
) -> None:
    """Show usage, arguments, and options of one generator."""
    emit(run_tool(ctx, tools.get_generator_help, tool_args(ctx, generator_name=generator_name)))


@rails_app.command("generate")
def rails_generate(
    ctx: typer.Context,
    generator_name: str = typer.Argument(help="Generator name, e.g. 'model'."),
    arguments: Optional[list[str]] = typer.Argument(None, help="Generator arguments."),
    option: Optional[list[str]] = typer.Option(
        None, "--option", "-O", help="Generator option as KEY[=VALUE]; repeatable."
    ),
) -> None:
    """Run a generator and list the files it created or modified.

    Example::

        rubykit rails generate model User name:string -O skip-fixtures
    """
    args = tool_args(
        ctx,
        generator_name=generator_name,
        arguments=arguments or [],
        options=parse_options(option),
    )
    emit(run_tool(ctx, tools.generate, args))


@rails_app.command("destroy")
def rails_destroy(
    ctx: typer.Context,
    generator_name: str = typer.Argument(help="Generator name, e.g. 'model'."),
    arguments: Optional[list[str]] = typer.Argument(None, help="Generator arguments."),
    option: Optional[list[str]] = typer.Option(
        None, "--option", "-O", help="Generator option as KEY[=VALUE]; repeatable."
    ),
) -> None:
    """Undo a generator and list the files it removed."""
    args = tool_args(
        ctx,
        generator_name=generator_name,
        arguments=arguments or [],
        options=parse_options(option),
    )
    emit(run_tool(ctx, tools.destroy, args))
