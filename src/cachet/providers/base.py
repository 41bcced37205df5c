"""Transport protocol: minimal interface for reaching the service."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Send one JSON request body and return the decoded JSON response.

    Implementations raise ``TransportError`` when no response arrived,
    ``ServiceError`` subclasses for non-2xx statuses, and ``ParseError``
    when a 2xx body is not JSON. They never retry; retry belongs to the
    dispatcher.
    """

    async def send(self, path: str, payload: dict[str, Any]) -> Any:
        """POST *payload* to *path* and return the decoded body."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
