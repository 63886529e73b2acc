"""HTTP client module for resilio.

:class:`ResilientClient` wraps :class:`httpx.AsyncClient` with the response
cache, the retry executor and the offline queue from
:class:`~resilio.context.Resilience`.

Example::

    from resilio.client import ResilientClient

    async with ResilientClient(config.api, resilience) as client:
        experiments = await client.get("/experiments")
"""

from resilio.client.async_client import ResilientClient
from resilio.client.response import extract_response_data

__all__ = ["ResilientClient", "extract_response_data"]
