"""Canonical Pydantic models shared across all resilio modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ApiConfig`, :class:`RetryConfig`, :class:`CacheConfig`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

**Runtime models** -- produced and consumed by the resilience layer:
    :class:`TTLClass`, :class:`CacheEntry`, :class:`CacheEntryInfo`,
    :class:`CacheStats`, :class:`NetworkStatus`, :class:`QueuedOperation`,
    :class:`ApiKeyValidation` and :class:`ConfigurationSet`.

All durations are in seconds.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_RETRYABLE_ERRORS = ["timeout", "network", "429", "500", "502", "503", "504"]
"""Fragments matched against an error's message, kind and status code."""


# --- Configuration models ---


class ApiConfig(BaseModel):
    """Connection settings for the remote configuration API."""

    base_url: str = Field(
        default="https://statsigapi.net/console/v1",
        description="Base URL every request path is appended to",
    )
    api_key_source: Optional[str] = Field(
        default=None,
        description="Credential source: env:VAR, file:/path, or prompt",
    )
    api_key_header: str = Field(
        default="STATSIG-API-KEY", description="Header carrying the API key"
    )
    headers: dict[str, str] = Field(
        default_factory=lambda: {"STATSIG-API-VERSION": "20240601"},
        description="Static headers sent with every request",
    )
    timeout: float = Field(
        default=5.0, gt=0, description="Per-call timeout in seconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class RetryConfig(BaseModel):
    """Retry budget and backoff shape for one :class:`~resilio.retry.RetryExecutor` call.

    Immutable; build a variant with ``config.model_copy(update={...})``.
    The two callables are never serialised, so the same model doubles as
    the persisted ``retry`` section of :class:`GlobalConfig`.

    Example::

        RetryConfig(max_retries=2, base_delay=0.1, retryable_errors=["timeout"])
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay: float = Field(default=1.0, ge=0, description="Delay before the first retry")
    max_delay: float = Field(default=30.0, ge=0, description="Ceiling for any single delay")
    backoff_multiplier: float = Field(
        default=2.0, gt=1, description="Growth factor between consecutive delays"
    )
    retryable_errors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS),
        description="Case-insensitive fragments marking an error as transient",
    )
    retryable: Optional[Callable[[BaseException], bool]] = Field(
        default=None,
        exclude=True,
        description="Custom predicate; replaces the built-in classification",
    )
    on_retry: Optional[Callable[[int, BaseException], None]] = Field(
        default=None,
        exclude=True,
        description="Called with (attempt, error) before each backoff wait",
    )


class CacheConfig(BaseModel):
    """Response cache sizing and TTL policy stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    max_size: int = Field(default=100, ge=1, description="Entry count that triggers size eviction")
    default_ttl: float = Field(default=300, description="TTL for ordinary GET responses")
    long_ttl: float = Field(default=3600, description="TTL for slow-changing endpoints")
    short_ttl: float = Field(default=30, description="TTL for explicitly volatile reads")
    long_ttl_paths: list[str] = Field(
        default_factory=lambda: [
            "/gates",
            "/experiments",
            "/dynamic-configs",
            "/dynamic_configs",
        ],
        description="Path fragments classified as slow-changing",
    )
    eviction_probability: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Chance that a store triggers an eviction pass",
    )
    persist: bool = Field(
        default=False, description="Back the cache with the on-disk key-value store"
    )


class OutputConfig(BaseModel):
    """Default output format used when neither ``--json`` nor ``--plain`` is given."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/resilio/config.json``.

    Loaded and saved by :func:`~resilio.config.load_global_config` and
    :func:`~resilio.config.save_global_config`. See
    :func:`~resilio.config.resolve_config` for the precedence chain.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Runtime models ---


class TTLClass(str, enum.Enum):
    """Named TTL buckets a caller can request explicitly."""

    SHORT = "short"
    DEFAULT = "default"
    LONG = "long"


class CacheEntry(BaseModel):
    """A single cached value.

    The entry is valid while ``now - stored_at < ttl``; an invalid entry is
    treated as absent and may be removed at any time.
    """

    key: str
    value: Any = None
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_valid(self, now: float) -> bool:
        return self.age(now) < self.ttl


class CacheEntryInfo(BaseModel):
    """Per-entry line of :class:`CacheStats`."""

    key: str
    age: float
    ttl: float


class CacheStats(BaseModel):
    """Snapshot returned by :meth:`~resilio.cache.ResponseCache.stats`."""

    size: int
    entries: list[CacheEntryInfo] = Field(default_factory=list)


class NetworkStatus(BaseModel):
    """Reachability as last reported by the connectivity notifier."""

    is_online: bool
    last_online_timestamp: Optional[datetime] = None


class QueuedOperation(BaseModel):
    """Deferred work waiting for the next :meth:`~resilio.retry.RetryQueue.drain`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    queue_name: str
    operation: Callable[[], Awaitable[Any]]
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ApiKeyValidation(BaseModel):
    """Result of :meth:`~resilio.services.ConsoleAPI.validate_api_key`."""

    valid: bool
    error: Optional[str] = None


class ConfigurationSet(BaseModel):
    """Everything :meth:`~resilio.services.ConsoleAPI.get_all_configurations` returns."""

    feature_gates: list[dict[str, Any]] = Field(default_factory=list)
    experiments: list[dict[str, Any]] = Field(default_factory=list)
    dynamic_configs: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.feature_gates) + len(self.experiments) + len(self.dynamic_configs)
