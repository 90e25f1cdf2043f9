"""Command delivery state machine for the BLE outlet.

One engine owns one radio. Each command becomes a ``ConnectionAttempt`` that
walks resolve -> connect -> discover -> write -> teardown, retrying the whole
walk on transient failures. A newer command replaces the one in flight: the
old task is cancelled, its link torn down, and its callbacks never fire.

Pairing is requested in the background and never delays the write. Once a
write is acknowledged, teardown gives an unfinished pairing up to
``Timings.pair_grace_s`` before dropping the link, so the bond that later
direct connects (``assume_paired``) rely on can complete. A superseded or
failed attempt cancels pairing immediately.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from chargectl.core import codec
from chargectl.core.errors import (
    AdapterDisabledError,
    CharacteristicNotFoundError,
    ConnectTimeoutError,
    RadioFaultError,
    ResolutionTimeoutError,
    RetriesExhaustedError,
    ServiceNotFoundError,
    SupersededError,
    TransportError,
    WriteFailedError,
)
from chargectl.core.model import (
    ConnectionAttempt,
    EngineEvent,
    EventKind,
    OutletState,
    Phase,
    Timings,
)
from chargectl.transports.base import Link, Radio

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
SuccessCallback = Callable[[ConnectionAttempt], None]
FailureCallback = Callable[[ConnectionAttempt, TransportError], None]
EventListener = Callable[[EngineEvent], None]


class ConnectionEngine:
    def __init__(
        self,
        radio: Radio,
        *,
        timings: Timings | None = None,
        pair: bool = True,
    ) -> None:
        self.radio = radio
        self.timings = timings or Timings()
        self.pair = pair
        self._listeners: list[EventListener] = []
        self._active: ConnectionAttempt | None = None
        self._task: asyncio.Task[None] | None = None
        self._retiring: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> ConnectionAttempt | None:
        return self._active

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def submit(
        self,
        address: str,
        target: OutletState,
        *,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> ConnectionAttempt:
        """Start delivering ``target`` to ``address``, replacing any command in flight.

        Exactly one of the callbacks fires, once, unless the attempt is
        superseded or the engine is closed first. Must be called from the
        event loop that runs the engine.
        """
        previous = self._supersede()
        attempt = ConnectionAttempt(id=uuid.uuid4().hex, address=address, target=target)
        self._active = attempt
        self._task = asyncio.create_task(
            self._run(attempt, on_success, on_failure, previous),
            name=f"chargectl-attempt-{attempt.id[:8]}",
        )
        return attempt

    async def send(self, address: str, target: OutletState) -> ConnectionAttempt:
        """Deliver a command and wait for its outcome."""
        outcome: asyncio.Future[ConnectionAttempt] = asyncio.get_running_loop().create_future()

        def _on_success(attempt: ConnectionAttempt) -> None:
            if not outcome.done():
                outcome.set_result(attempt)

        def _on_failure(_attempt: ConnectionAttempt, exc: TransportError) -> None:
            if not outcome.done():
                outcome.set_exception(exc)

        def _on_done(_task: asyncio.Task[None]) -> None:
            if not outcome.done():
                outcome.set_exception(
                    SupersededError(f"Command {target.value} to {address} was superseded or cancelled")
                )

        self.submit(address, target, on_success=_on_success, on_failure=_on_failure)
        if self._task is not None:
            self._task.add_done_callback(_on_done)
        return await outcome

    async def close(self) -> None:
        """Abort the command in flight and release the radio.

        Waits for superseded attempts as well, so no link is left mid-teardown.
        """
        task = self._task
        self._active = None
        self._task = None
        pending = {t for t in self._retiring if not t.done()}
        if task is not None and not task.done():
            task.cancel()
            pending.add(task)
        if pending:
            await asyncio.wait(pending)

    def _supersede(self) -> asyncio.Task[None] | None:
        previous, task = self._active, self._task
        self._active = None
        self._task = None
        if task is None or task.done():
            return None
        if previous is not None:
            LOGGER.info(
                "Command %s to %s superseded", previous.target.value, previous.address
            )
            self._emit(EventKind.SUPERSEDED, previous)
        task.cancel()
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)
        return task

    async def _run(
        self,
        attempt: ConnectionAttempt,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        previous: asyncio.Task[None] | None,
    ) -> None:
        if previous is not None:
            # The radio is not reentrant; wait for the replaced attempt's teardown.
            await asyncio.wait({previous})

        timings = self.timings
        try:
            while True:
                try:
                    await self._deliver(attempt)
                except TransportError as exc:
                    if not exc.retryable:
                        self._fail(attempt, exc, on_failure)
                        return

                    attempt.attempt_count += 1
                    self.radio.forget(attempt.address)
                    if attempt.attempt_count >= timings.max_retries:
                        exhausted = RetriesExhaustedError(
                            f"Command {attempt.target.value} to {attempt.address} failed after "
                            f"{attempt.attempt_count} attempts: {exc}",
                            last_error=exc,
                        )
                        self._fail(attempt, exhausted, on_failure)
                        return

                    LOGGER.warning(
                        "Retrying command to %s (%d/%d) after: %s",
                        attempt.address,
                        attempt.attempt_count,
                        timings.max_retries,
                        exc,
                    )
                    self._enter(attempt, Phase.RETRYING)
                    self._emit(EventKind.RETRY, attempt, error=str(exc))
                    await asyncio.sleep(timings.retry_delay_s)
                    continue
                except Exception as exc:
                    LOGGER.exception("Unexpected radio error delivering to %s", attempt.address)
                    fault = RadioFaultError(
                        f"Command {attempt.target.value} to {attempt.address} crashed: {exc!r}"
                    )
                    fault.__cause__ = exc
                    self._fail(attempt, fault, on_failure)
                    return

                self._succeed(attempt, on_success)
                return
        finally:
            if self._active is attempt:
                self._active = None
                self._task = None

    async def _deliver(self, attempt: ConnectionAttempt) -> None:
        timings = self.timings
        command = codec.encode(attempt.target)
        link: Link | None = None
        pairing: asyncio.Task[None] | None = None
        delivered = False
        try:
            self._enter(attempt, Phase.RESOLVING)
            handle = self.radio.cached_handle(attempt.address)
            if handle is None:
                handle = await self._bounded(
                    attempt,
                    self.radio.scan(attempt.address),
                    timings.scan_timeout_s,
                    ResolutionTimeoutError(
                        f"{attempt.address} did not advertise within {timings.scan_timeout_s}s"
                    ),
                )
            else:
                LOGGER.debug("Using known handle for %s", attempt.address)

            self._enter(attempt, Phase.CONNECTING)
            link = await self._bounded(
                attempt,
                self.radio.connect(handle),
                timings.connect_timeout_s,
                ConnectTimeoutError(
                    f"Link to {attempt.address} not established within {timings.connect_timeout_s}s"
                ),
            )
            if self.pair:
                pairing = asyncio.create_task(link.pair())
                pairing.add_done_callback(_log_pairing_result)

            self._enter(attempt, Phase.DISCOVERING_SERVICES)
            services = await self._bounded(
                attempt,
                link.discover(),
                timings.discovery_timeout_s,
                ServiceNotFoundError(
                    f"Service discovery on {attempt.address} did not finish within "
                    f"{timings.discovery_timeout_s}s"
                ),
            )
            characteristics = services.get(command.service_uuid)
            if characteristics is None:
                raise ServiceNotFoundError(
                    f"{attempt.address} does not expose service {command.service_uuid}"
                )
            if command.characteristic_uuid not in characteristics:
                raise CharacteristicNotFoundError(
                    f"{attempt.address} does not expose characteristic {command.characteristic_uuid}"
                )

            self._enter(attempt, Phase.WRITING)
            LOGGER.debug("Writing %s to %s", command.payload.hex(), attempt.address)
            await self._bounded(
                attempt,
                link.write(command.characteristic_uuid, command.payload),
                timings.write_timeout_s,
                WriteFailedError(
                    f"Write to {attempt.address} not acknowledged within {timings.write_timeout_s}s"
                ),
            )
            self.radio.remember(attempt.address, handle)
            delivered = True
        finally:
            self._enter(attempt, Phase.TEARDOWN)
            try:
                if delivered and pairing is not None and not pairing.done():
                    await asyncio.wait({pairing}, timeout=timings.pair_grace_s)
            finally:
                if pairing is not None:
                    pairing.cancel()
                if link is not None:
                    await self._close_link(link)

    async def _bounded(
        self,
        attempt: ConnectionAttempt,
        awaitable: Awaitable[T],
        timeout_s: float,
        timeout_error: TransportError,
    ) -> T:
        attempt.deadline = asyncio.get_running_loop().time() + timeout_s
        try:
            return await asyncio.wait_for(awaitable, timeout_s)
        except asyncio.TimeoutError:
            raise timeout_error from None
        finally:
            attempt.deadline = None

    async def _close_link(self, link: Link) -> None:
        try:
            await asyncio.wait_for(link.close(), self.timings.connect_timeout_s)
        except (TransportError, asyncio.TimeoutError) as exc:
            LOGGER.debug("Closing link failed: %s", exc)

    def _succeed(self, attempt: ConnectionAttempt, on_success: SuccessCallback) -> None:
        if self._active is not attempt:
            return
        self._active = None
        self._task = None
        self._enter(attempt, Phase.IDLE)
        LOGGER.info("Outlet %s set %s", attempt.address, attempt.target.value)
        self._emit(EventKind.SUCCESS, attempt)
        on_success(attempt)

    def _fail(
        self,
        attempt: ConnectionAttempt,
        exc: TransportError,
        on_failure: FailureCallback,
    ) -> None:
        if self._active is not attempt:
            return
        self._active = None
        self._task = None
        if isinstance(exc, AdapterDisabledError):
            self._emit(EventKind.ADAPTER_DISABLED, attempt, error=str(exc))
        self._enter(attempt, Phase.FAILED)
        LOGGER.error("Command %s to %s failed: %s", attempt.target.value, attempt.address, exc)
        self._emit(EventKind.FAILURE, attempt, error=str(exc))
        attempt.phase = Phase.IDLE
        on_failure(attempt, exc)

    def _enter(self, attempt: ConnectionAttempt, phase: Phase) -> None:
        attempt.phase = phase
        LOGGER.debug("Attempt %s for %s entered %s", attempt.id[:8], attempt.address, phase.value)
        self._emit(EventKind.PHASE, attempt)

    def _emit(self, kind: EventKind, attempt: ConnectionAttempt, *, error: str | None = None) -> None:
        event = EngineEvent(
            kind=kind,
            attempt_id=attempt.id,
            address=attempt.address,
            target=attempt.target,
            phase=attempt.phase,
            attempt_count=attempt.attempt_count,
            max_retries=self.timings.max_retries,
            error=error,
        )
        for listener in list(self._listeners):
            listener(event)


def _log_pairing_result(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug("Opportunistic pairing did not complete: %s", exc)
