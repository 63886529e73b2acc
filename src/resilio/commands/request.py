"""Request commands -- cached, retried reads against the console API.

``resilio get PATH`` fetches any path under the configured base URL;
``resilio configs`` loads gates, experiments and dynamic configs in one
go. Both go through the response cache on disk, so repeating a command
within the TTL does not touch the network. ``--refresh`` skips the
lookup.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from resilio.exceptions import InvalidUsageError
from resilio.models import TTLClass
from resilio.output import format_response, print_table


def _parse_params(values: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Invalid query parameter {item!r}, expected KEY=VALUE")
        params[key] = value
    return params


def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="API path, e.g. /gates or /experiments/my_exp."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Query parameter as KEY=VALUE (repeatable)."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Bypass the cache lookup."
    ),
    ttl: Optional[TTLClass] = typer.Option(
        None, "--ttl", help="Cache the response with this TTL class."
    ),
) -> None:
    """Fetch a path through the cache and retry layers.

    Example::

        resilio get /gates
        resilio get /experiments -P limit=50 --refresh
    """
    from resilio.commands.session import cli_config, open_client, run

    params = _parse_params(param)
    config = cli_config(ctx)

    async def _fetch() -> Any:
        async with open_client(config) as client:
            return await client.get(
                path,
                params=params or None,
                ttl_class=ttl,
                force_refresh=refresh,
            )

    format_response(run(_fetch))


def configs_command(
    ctx: typer.Context,
    refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Bypass the cache lookup."
    ),
) -> None:
    """List every feature gate, experiment and dynamic config.

    Example::

        resilio configs
        resilio configs --json
    """
    from resilio.commands.session import cli_config, open_client, run
    from resilio.models import ConfigurationSet
    from resilio.services import ConsoleAPI

    config = cli_config(ctx)

    async def _fetch() -> ConfigurationSet:
        async with open_client(config) as client:
            return await ConsoleAPI(client).get_all_configurations(use_cache=not refresh)

    result = run(_fetch)

    rows: list[list[str]] = []
    for kind, items in (
        ("gate", result.feature_gates),
        ("experiment", result.experiments),
        ("dynamic_config", result.dynamic_configs),
    ):
        for item in items:
            rows.append([
                kind,
                str(item.get("name") or item.get("id") or ""),
                str(item.get("isEnabled", item.get("status", ""))),
            ])
    print_table(["Type", "Name", "Status"], rows, title="Configurations")
