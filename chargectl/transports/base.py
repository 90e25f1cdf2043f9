"""Radio interfaces driven by the connection engine."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Any, Protocol


class Link(Protocol):
    async def discover(self) -> Mapping[str, Collection[str]]:
        """Return lower-case service UUIDs mapped to their characteristic UUIDs."""

    async def write(self, characteristic_uuid: str, payload: bytes) -> None:
        """Write with response and return once the peer acknowledged it."""

    async def pair(self) -> None:
        """Request pairing with the peer."""

    async def close(self) -> None:
        """Disconnect and release the link."""


class Radio(Protocol):
    def cached_handle(self, address: str) -> Any | None:
        """Return a handle usable without scanning, if one is known."""

    def remember(self, address: str, handle: Any) -> None:
        """Keep a handle that just delivered a command."""

    def forget(self, address: str) -> None:
        """Drop any handle kept for the address."""

    async def scan(self, address: str) -> Any:
        """Scan until the address advertises and return its handle."""

    async def connect(self, handle: Any) -> Link:
        """Open a link to a resolved handle."""
