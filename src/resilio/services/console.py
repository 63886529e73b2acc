"""Typed operations against the configuration console API.

:class:`ConsoleAPI` is a thin layer over
:class:`~resilio.client.ResilientClient`: every call inherits the client's
caching, retry and error mapping. Gate, experiment and dynamic-config
listings are slow-changing and cached with the long TTL.
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal

from resilio.client import ResilientClient
from resilio.exceptions import (
    AuthError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    OfflineError,
    RateLimitError,
    ResilioError,
    TimeoutError_,
)
from resilio.models import ApiKeyValidation, ConfigurationSet, RetryConfig, TTLClass
from resilio.output import info, warning

ConfigKind = Literal["gates", "experiments", "dynamic_configs"]

_KIND_PATHS: dict[str, str] = {
    "gates": "/gates",
    "experiments": "/experiments",
    "dynamic_configs": "/dynamic_configs",
}

# Key validation must answer quickly; one attempt is enough.
_VALIDATION_RETRY = RetryConfig(max_retries=0)


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    return []


def _kind_path(kind: str) -> str:
    try:
        return _KIND_PATHS[kind]
    except KeyError:
        raise InvalidUsageError(
            f"Unknown configuration kind: {kind!r} "
            f"(expected one of {', '.join(_KIND_PATHS)})"
        ) from None


class ConsoleAPI:
    """Console API operations built on a :class:`ResilientClient`.

    The client must be open (inside its ``async with`` block) for the
    lifetime of the calls.
    """

    def __init__(self, client: ResilientClient) -> None:
        self._client = client

    async def list_gates(self, use_cache: bool = True) -> list[dict[str, Any]]:
        return await self._list("gates", use_cache)

    async def list_experiments(self, use_cache: bool = True) -> list[dict[str, Any]]:
        return await self._list("experiments", use_cache)

    async def list_dynamic_configs(self, use_cache: bool = True) -> list[dict[str, Any]]:
        return await self._list("dynamic_configs", use_cache)

    async def get_all_configurations(self, use_cache: bool = True) -> ConfigurationSet:
        """Fetch gates, experiments and dynamic configs concurrently.

        Any failing listing propagates its error.
        """
        gates, experiments, dynamic_configs = await asyncio.gather(
            self.list_gates(use_cache),
            self.list_experiments(use_cache),
            self.list_dynamic_configs(use_cache),
        )
        result = ConfigurationSet(
            feature_gates=gates,
            experiments=experiments,
            dynamic_configs=dynamic_configs,
        )
        info(
            f"Loaded {result.total} configurations "
            f"({len(gates)} gates, {len(experiments)} experiments, "
            f"{len(dynamic_configs)} dynamic configs)"
        )
        return result

    async def get_overrides(self, kind: ConfigKind, name: str) -> Any:
        return await self._client.get(
            f"{_kind_path(kind)}/{name}/overrides", ttl_class=TTLClass.SHORT
        )

    async def update_overrides(self, kind: ConfigKind, name: str, payload: dict[str, Any]) -> Any:
        """Replace the overrides of one configuration.

        The write invalidates the cached overrides of that configuration.
        """
        return await self._client.post(
            f"{_kind_path(kind)}/{name}/overrides", json_body=payload
        )

    async def validate_api_key(self) -> ApiKeyValidation:
        """Check the configured key with a single uncached listing request.

        Failures are reported in the result rather than raised.
        """
        try:
            await self._client.get("/gates", force_refresh=True, retry=_VALIDATION_RETRY)
        except AuthError as exc:
            if exc.status_code == 403:
                message = "API key does not have sufficient permissions."
            else:
                message = "Invalid API key. Please check your credentials."
            return self._invalid(message)
        except NotFoundError:
            return self._invalid("API endpoint not found. Please check the base URL.")
        except RateLimitError:
            return self._invalid("Rate limit exceeded. Please wait before trying again.")
        except TimeoutError_:
            return self._invalid("Request timeout. Please check your internet connection.")
        except (ConnectionError_, OfflineError):
            return self._invalid("Network error. Please check your internet connection.")
        except ResilioError as exc:
            return self._invalid(f"API key validation failed: {exc}")

        info("API key validation successful")
        return ApiKeyValidation(valid=True)

    async def _list(self, kind: str, use_cache: bool) -> list[dict[str, Any]]:
        payload = await self._client.get(
            _kind_path(kind),
            ttl_class=TTLClass.LONG,
            force_refresh=not use_cache,
        )
        return _as_list(payload)

    @staticmethod
    def _invalid(message: str) -> ApiKeyValidation:
        warning(f"API key validation failed: {message}")
        return ApiKeyValidation(valid=False, error=message)
