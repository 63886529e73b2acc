"""Payload extraction from :class:`httpx.Response` objects.

The configuration API wraps most payloads in a ``{"data": ...}`` envelope.
:func:`extract_response_data` unwraps it so that cached values and return
values are the payload itself.
"""

from __future__ import annotations

from typing import Any

import httpx


def extract_response_data(response: httpx.Response) -> Any:
    """Return the decoded payload of *response*.

    JSON bodies are decoded and unwrapped from a top-level ``data`` key when
    it is present and not ``null``. Other bodies are returned as text.
    Empty bodies yield ``None``.
    """
    if not response.content:
        return None

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            payload = response.json()
        except ValueError:
            return response.text
        if isinstance(payload, dict) and payload.get("data") is not None:
            return payload["data"]
        return payload

    return response.text


def error_detail(response: httpx.Response) -> str:
    """Best-effort human-readable reason from an error response."""
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("error") or detail.get("detail") or "")
    return str(detail)
