"""Per-invocation runtime shared by the request and cache commands.

Each CLI invocation is a fresh process, so the in-memory cache would never
see a second request. Commands therefore always open the response cache
on disk under :func:`~resilio.config.get_cache_dir`, whatever
``cache.persist`` says in the user's config.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Coroutine, TypeVar

import typer

from resilio.client import ResilientClient
from resilio.config import resolve_config
from resilio.context import Resilience
from resilio.models import GlobalConfig

T = TypeVar("T")


def cli_config(ctx: typer.Context) -> GlobalConfig:
    """Effective config for this invocation, with the disk cache enabled."""
    obj: dict[str, Any] = ctx.obj or {}
    config = resolve_config(cli_base_url=obj.get("base_url"))
    config.cache = config.cache.model_copy(update={"persist": True})
    return config


def open_resilience(config: GlobalConfig) -> Resilience:
    return Resilience.create(config)


@asynccontextmanager
async def open_client(config: GlobalConfig) -> AsyncIterator[ResilientClient]:
    """Yield an open client whose resilience state is released on exit."""
    resilience = open_resilience(config)
    try:
        async with ResilientClient(config.api, resilience) as client:
            yield client
    finally:
        resilience.close()


def run(coro_fn: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Run an async command body to completion."""
    return asyncio.run(coro_fn())
