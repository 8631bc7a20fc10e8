"""Duplex transport protocol used by the streaming session."""
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TransportProtocol(Protocol):
    """Persistent text-frame connection (e.g. a WebSocket)."""

    async def receive_text(self) -> str:
        """Wait for the next frame.

        Raises:
            Exception: Any error means the connection is gone.
        """
        ...

    async def send_json(self, data: Any) -> None:
        """Serialize and send one frame."""
        ...
