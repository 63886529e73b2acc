"""Service layer over :class:`~resilio.client.ResilientClient`."""

from resilio.services.console import ConfigKind, ConsoleAPI

__all__ = ["ConfigKind", "ConsoleAPI"]
