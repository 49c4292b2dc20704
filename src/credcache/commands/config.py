"""Config commands -- view and change settings.

Provides the ``credcache config`` sub-command group. Settings come from
``~/.config/credcache/config.json`` overlaid with environment variables
and the ``--database-url`` option.
"""

from __future__ import annotations

import typer

from credcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the resolved settings.

    Example::

        credcache config show
        CREDCACHE_ENABLE_CACHE=false credcache --json config show
    """
    from credcache.config import get_config_dir, resolve_settings
    from credcache.exceptions import CredcacheError

    obj = ctx.obj or {}
    try:
        settings = resolve_settings(database_url=obj.get("database_url"))
    except CredcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"Config directory: {get_config_dir()}")
    format_response(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Setting name; dot notation for request options, e.g. 'request.timeout'."
    ),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Persist one setting in the config file.

    Only the file is changed; environment variables and ``--database-url``
    still take precedence when resolving. Boolean settings follow the
    environment-flag rules (``false``/``0``/``no``/``off`` disable).

    Example::

        credcache config set invalidation any_failure
        credcache config set database_url sqlite+aiosqlite:///headers.db
        credcache config set request.timeout 10
    """
    from credcache.config import load_settings, parse_flag, save_settings
    from credcache.exceptions import CredcacheError, InvalidUsageError
    from credcache.models import CacheSettings

    try:
        data = load_settings().model_dump(mode="json")
        *parents, name = key.split(".")
        section = data
        for part in parents:
            section = section.get(part)
            if not isinstance(section, dict):
                raise InvalidUsageError(f"Unknown setting: {key}")
        if name not in section or isinstance(section[name], dict):
            raise InvalidUsageError(f"Unknown setting: {key}")

        current = section[name]
        if isinstance(current, bool):
            section[name] = parse_flag(value)
        elif isinstance(current, int):
            try:
                section[name] = int(value)
            except ValueError:
                raise InvalidUsageError(f"Expected an integer for {key}, got {value!r}") from None
        else:
            section[name] = value

        try:
            settings = CacheSettings.model_validate(data)
        except ValueError as exc:
            raise InvalidUsageError(f"Invalid value for {key}: {exc}") from exc
        save_settings(settings)
    except CredcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success(f"Set {key} = {section[name]}")
