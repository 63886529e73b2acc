"""resilio -- a resilient client layer for remote HTTP configuration APIs.

This package sits between an application and a remote configuration API
(feature gates, experiments, dynamic configs) and makes every call survive
flaky networks. It combines a bounded, TTL-based response cache with a
retry manager that classifies failures, backs off exponentially with
jitter, tracks network reachability, and replays deferred work once the
network comes back.

Typical usage::

    from resilio.context import Resilience
    from resilio.client import ResilientClient

    resilience = Resilience.create(config)
    async with ResilientClient(config.api, resilience) as client:
        gates = await client.get("/gates")

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration loading and credential resolution.
    context: Composition root wiring cache, retry and network tracking.
    exceptions: Exception hierarchy with error kinds and exit codes.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
