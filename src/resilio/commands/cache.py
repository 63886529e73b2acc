"""Cache commands -- inspect and clear the on-disk response cache."""

from __future__ import annotations

from typing import Optional

import typer

from resilio.output import format_response, info, print_table, success


cache_app = typer.Typer(no_args_is_help=True)

_KINDS = ("gates", "experiments", "dynamic-configs", "all")


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the number of cached responses with their age and TTL.

    Example::

        resilio cache stats
        resilio cache stats --json
    """
    from resilio.commands.session import cli_config, open_resilience
    from resilio.output import OutputFormat, get_output

    resilience = open_resilience(cli_config(ctx))
    try:
        stats = resilience.cache.stats()
    finally:
        resilience.close()

    if get_output().format == OutputFormat.JSON:
        format_response(stats.model_dump(mode="json"))
        return

    info(f"{stats.size} cached responses")
    rows = [
        [entry.key, f"{entry.age:.0f}s", f"{entry.ttl:.0f}s"]
        for entry in stats.entries
    ]
    print_table(["Key", "Age", "TTL"], rows, title="Response cache")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    kind: Optional[str] = typer.Option(
        None,
        "--kind",
        "-k",
        help="Only drop one data kind: gates, experiments, dynamic-configs or all.",
    ),
) -> None:
    """Remove cached responses.

    Example::

        resilio cache clear
        resilio cache clear --kind gates
    """
    from resilio.commands.session import cli_config, open_resilience
    from resilio.exceptions import InvalidUsageError

    if kind is not None and kind not in _KINDS:
        raise InvalidUsageError(
            f"Unknown data kind: {kind} (expected one of {', '.join(_KINDS)})"
        )

    resilience = open_resilience(cli_config(ctx))
    try:
        if kind is None:
            removed = resilience.cache.clear()
        else:
            removed = resilience.cache.invalidate_data(kind)  # type: ignore[arg-type]
    finally:
        resilience.close()

    success(f"Removed {removed} cached responses.")
