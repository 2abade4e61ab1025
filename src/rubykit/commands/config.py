"""Config commands -- view and modify global configuration.

Provides the ``rubykit config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~rubykit.models.GlobalConfig`), and for registering the named
Rails projects that ``--project`` refers to.
"""

from __future__ import annotations

from typing import Any

import typer

from rubykit.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    effective: bool = typer.Option(
        False,
        "--effective",
        help="Show the config after applying project config, env vars, and flags.",
    ),
) -> None:
    """Show current configuration.

    Example::

        rubykit config show
        rubykit --no-cache config show --effective --json
    """
    from rubykit.commands import load_settings
    from rubykit.config import get_config_dir, load_global_config

    config = load_settings(ctx) if effective else load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field it replaces."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, (list, dict)):
        error(f"Cannot set {key} directly; use 'rubykit config add-project'")
        raise typer.Exit(code=2)
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the type of
    the existing field and the result validated before saving.

    Example::

        rubykit config set cache.ttl_seconds 600
        rubykit config set cache.enabled false
        rubykit config set rails.executable bin/rails
        rubykit config set quotes.gemfile double
    """
    from rubykit.config import load_global_config, save_global_config
    from rubykit.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("add-project")
def config_add_project(
    name: str = typer.Argument(help="Project name used with --project."),
    path: str = typer.Argument(help="Project directory."),
) -> None:
    """Register a named Rails project directory.

    Example::

        rubykit config add-project blog ~/code/blog
        rubykit --project blog rails generators
    """
    from rubykit.config import load_global_config, save_global_config
    from rubykit.models import ProjectConfig
    from rubykit.projects import ProjectManager

    config = load_global_config()
    resolved = ProjectManager(config.projects).add_project(name, path)
    config.projects = [p for p in config.projects if p.name != name]
    config.projects.append(ProjectConfig(name=name, path=str(resolved)))
    save_global_config(config)
    success(f"Added project {name} -> {resolved}")


@config_app.command("remove-project")
def config_remove_project(
    name: str = typer.Argument(help="Project name."),
) -> None:
    """Forget a named Rails project."""
    from rubykit.config import load_global_config, save_global_config

    config = load_global_config()
    remaining = [p for p in config.projects if p.name != name]
    if len(remaining) == len(config.projects):
        error(f"Project not found: {name}")
        raise typer.Exit(code=2)
    config.projects = remaining
    save_global_config(config)
    success(f"Removed project {name}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        rubykit config reset
        rubykit --force config reset
    """
    from rubykit.config import save_global_config
    from rubykit.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
