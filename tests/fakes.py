"""Scripted radio and in-memory store shared by the engine and controller tests."""

from __future__ import annotations

import asyncio
from typing import Any

from chargectl.core import codec
from chargectl.core.engine import ConnectionEngine
from chargectl.core.model import ConfirmedState, Timings

ADDRESS = "AA:BB:CC:11:22:33"
FAST_TIMINGS = Timings(
    scan_timeout_s=0.05,
    connect_timeout_s=0.05,
    discovery_timeout_s=0.05,
    write_timeout_s=0.05,
    retry_delay_s=0.01,
    max_retries=3,
    pair_grace_s=0.03,
)


class FakeLink:
    def __init__(self, radio: FakeRadio) -> None:
        self.radio = radio
        self.closed = False

    async def discover(self):
        await self.radio.step("discover")
        return self.radio.services

    async def write(self, characteristic_uuid: str, payload: bytes) -> None:
        await self.radio.step("write")
        self.radio.writes.append((characteristic_uuid, payload))

    async def pair(self) -> None:
        self.radio.pair_calls += 1
        await self.radio.step("pair")
        self.radio.bonded += 1

    async def close(self) -> None:
        await self.radio.step("close")
        self.closed = True


class FakeRadio:
    """Scripted radio: each step pops its next outcome.

    An outcome is an exception to raise, a float delay in seconds, "hang"
    to block until cancelled, or None to succeed at once.
    """

    def __init__(self) -> None:
        self.script: dict[str, list[Any]] = {}
        self.services = {codec.SERVICE_UUID: {codec.WRITE_CHAR_UUID}}
        self.handles: dict[str, Any] = {}
        self.scans = 0
        self.connects = 0
        self.pair_calls = 0
        self.bonded = 0
        self.forgotten: list[str] = []
        self.links: list[FakeLink] = []
        self.writes: list[tuple[str, bytes]] = []

    def queue(self, step: str, *outcomes: Any) -> None:
        self.script.setdefault(step, []).extend(outcomes)

    async def step(self, step: str) -> None:
        outcomes = self.script.get(step)
        outcome = outcomes.pop(0) if outcomes else None
        if outcome == "hang":
            await asyncio.Event().wait()
        elif isinstance(outcome, BaseException):
            raise outcome
        elif isinstance(outcome, float):
            await asyncio.sleep(outcome)

    def cached_handle(self, address: str) -> Any | None:
        return self.handles.get(address)

    def remember(self, address: str, handle: Any) -> None:
        self.handles[address] = handle

    def forget(self, address: str) -> None:
        self.forgotten.append(address)
        self.handles.pop(address, None)

    async def scan(self, address: str) -> Any:
        self.scans += 1
        await self.step("scan")
        return f"device:{address}"

    async def connect(self, handle: Any) -> FakeLink:
        self.connects += 1
        await self.step("connect")
        link = FakeLink(self)
        self.links.append(link)
        return link


class MemoryStateStore:
    def __init__(self, state: ConfirmedState | None = None) -> None:
        self.state = state
        self.writes: list[ConfirmedState] = []

    def read_confirmed_state(self) -> ConfirmedState | None:
        return self.state

    def write_confirmed_state(self, state: ConfirmedState) -> None:
        self.state = state
        self.writes.append(state)


async def settle(engine: ConnectionEngine, timeout_s: float = 2.0) -> None:
    """Wait until the engine has no command in flight."""
    async def _wait() -> None:
        while engine.active is not None:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout_s)
