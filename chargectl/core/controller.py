"""Battery sample handling that turns threshold decisions into outlet commands."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from chargectl.core import policy
from chargectl.core.engine import ConnectionEngine
from chargectl.core.errors import ChargectlError, StateStoreError, TransportError
from chargectl.core.model import (
    AccessoryConfig,
    ConfirmedState,
    ConnectionAttempt,
    Decision,
    OutletState,
)

LOGGER = logging.getLogger(__name__)


class ConfirmedStateStore(Protocol):
    def read_confirmed_state(self) -> ConfirmedState | None: ...

    def write_confirmed_state(self, state: ConfirmedState) -> None: ...


class ChargeController:
    """Feeds battery samples through the threshold policy into the engine.

    The confirmed state only changes when the engine reports an acknowledged
    write. A failed command leaves it stale, so the next qualifying sample
    asks for the same transition again.
    """

    def __init__(
        self,
        engine: ConnectionEngine,
        *,
        config_source: Callable[[], AccessoryConfig | None],
        state_store: ConfirmedStateStore,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._read_config = config_source
        self._store = state_store
        self._clock = clock
        self._confirmed = state_store.read_confirmed_state()
        self._confirmed_at: float | None = None
        self._pending: OutletState | None = None
        self._last_percent: int | None = None

    @property
    def engine(self) -> ConnectionEngine:
        return self._engine

    @property
    def confirmed(self) -> ConfirmedState | None:
        return self._confirmed

    @property
    def pending(self) -> OutletState | None:
        return self._pending

    def on_battery_sample(self, percent: int) -> Decision:
        if not 0 <= percent <= 100:
            LOGGER.warning("Ignoring out-of-range battery sample %s", percent)
            return Decision.NO_ACTION
        if percent == self._last_percent:
            return Decision.NO_ACTION
        self._last_percent = percent

        try:
            config = self._read_config()
        except ChargectlError as exc:
            LOGGER.error("Ignoring battery sample %d%%: %s", percent, exc)
            # Re-evaluate this level once the config is readable again.
            self._last_percent = None
            return Decision.NO_ACTION
        if config is None:
            LOGGER.warning("No accessory configured; ignoring battery sample %d%%", percent)
            return Decision.NO_ACTION

        if self._pending is not None:
            baseline: ConfirmedState | None = ConfirmedState(is_on=self._pending.is_on)
        else:
            baseline = self._confirmed
        decision = policy.decide(percent, config, baseline)
        if decision is Decision.NO_ACTION:
            decision = self._reassert_decision(percent, config)

        target = decision.target
        if target is None:
            LOGGER.debug(
                "Battery %d%% (thresholds %d-%d): no action",
                percent,
                config.low_threshold,
                config.high_threshold,
            )
            return decision

        LOGGER.info(
            "Battery %d%% (thresholds %d-%d): turning outlet %s",
            percent,
            config.low_threshold,
            config.high_threshold,
            target.value,
        )
        self._dispatch(config.address, target, percent)
        return decision

    async def close(self) -> None:
        await self._engine.close()
        self._pending = None

    def _reassert_decision(self, percent: int, config: AccessoryConfig) -> Decision:
        interval = config.reassert_interval_s
        if interval is None or self._pending is not None or self._confirmed is None:
            return Decision.NO_ACTION
        desired = policy.desired_state(percent, config)
        if desired is None:
            return Decision.NO_ACTION
        if self._confirmed_at is not None and self._clock() - self._confirmed_at < interval:
            return Decision.NO_ACTION
        LOGGER.info("Re-asserting outlet %s after %ss without confirmation", desired.value, interval)
        return Decision.ASSERT_ON if desired is OutletState.ON else Decision.ASSERT_OFF

    def _dispatch(self, address: str, target: OutletState, percent: int) -> None:
        def _on_success(_attempt: ConnectionAttempt) -> None:
            self._pending = None
            self._confirmed = ConfirmedState(is_on=target.is_on, confirmed_at_level=percent)
            self._confirmed_at = self._clock()
            try:
                self._store.write_confirmed_state(self._confirmed)
            except StateStoreError as exc:
                LOGGER.error("Outlet is %s but the state was not saved: %s", target.value, exc)

        def _on_failure(_attempt: ConnectionAttempt, exc: TransportError) -> None:
            self._pending = None
            # Let the next sample retry even if the level has not moved.
            self._last_percent = None
            LOGGER.error("Could not turn outlet %s: %s", target.value, exc)

        self._pending = target
        self._engine.submit(address, target, on_success=_on_success, on_failure=_on_failure)
