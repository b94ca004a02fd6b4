"""Config commands -- view and modify the persisted configuration.

Provides the ``pagecache config`` sub-command group. The file operated on is
the one :func:`~pagecache.config.resolve_config_path` selects, so
``pagecache --config ./site.json config set ...`` edits ``./site.json``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from pagecache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _config_path(ctx: typer.Context) -> Path:
    from pagecache.config import resolve_config_path

    obj = ctx.obj or {}
    return resolve_config_path(obj.get("config"))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Example::

        pagecache config show
        pagecache --json config show
    """
    from pagecache.config import resolve_config

    obj = ctx.obj or {}
    config = resolve_config(obj.get("config"))
    info(f"Config file: {_config_path(ctx)}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'fetch.timeout')."),
    value: str = typer.Argument(help="Value to set. Lists take comma-separated values."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field (bool, int,
    float or comma-separated list) and the result is validated before it
    is saved.

    Example::

        pagecache config set domains "www.example.com, example.com"
        pagecache config set fetch.parallel_requests 16
        pagecache config set store.host cache.internal
    """
    from pagecache.config import load_config, parse_list, save_config
    from pagecache.models import CacheConfig

    path = _config_path(ctx)
    config = load_config(path) if path.is_file() else CacheConfig()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: Any
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current, list):
        coerced = parse_list(value)
    elif isinstance(current, (int, float)):
        try:
            coerced = type(current)(value)
        except ValueError:
            error(f"Expected {type(current).__name__} for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif current is None and value.lower() in ("", "none", "null"):
        coerced = None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = CacheConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config, path)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the configuration file to defaults.

    Asks for confirmation unless ``--force`` was given.
    """
    from pagecache.config import save_config
    from pagecache.models import CacheConfig

    obj = ctx.obj or {}
    path = _config_path(ctx)
    if not obj.get("force"):
        typer.confirm(f"Reset {path} to defaults?", abort=True)

    save_config(CacheConfig(), path)
    success("Configuration reset to defaults.")
