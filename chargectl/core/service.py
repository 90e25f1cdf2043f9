"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from pathlib import Path

from chargectl.core import codec
from chargectl.core.config_loader import default_config_path, normalize_address, read_config, write_config
from chargectl.core.controller import ChargeController
from chargectl.core.engine import ConnectionEngine, EventListener
from chargectl.core.errors import ConfigLoadError, ConfigValidationError
from chargectl.core.model import AccessoryConfig, CommandResult, ConfirmedState, OutletState, Timings
from chargectl.core.state_store import StateStore
from chargectl.host.battery import POWER_SUPPLY_ROOT, read_battery_percent, watch_battery
from chargectl.transports.base import Radio
from chargectl.transports.ble_gatt import BleakRadio

LOGGER = logging.getLogger(__name__)

RadioFactory = Callable[[AccessoryConfig | None], Radio]


def _default_radio(config: AccessoryConfig | None) -> Radio:
    return BleakRadio(assume_paired=config.assume_paired if config else False)


class ChargeService:
    def __init__(
        self,
        *,
        config_path: Path | None = None,
        state_store: StateStore | None = None,
        radio_factory: RadioFactory | None = None,
        battery_root: Path = POWER_SUPPLY_ROOT,
    ) -> None:
        self.config_path = config_path or default_config_path()
        self.state_store = state_store or StateStore()
        self.radio_factory = radio_factory or _default_radio
        self.battery_root = battery_root

    def load_config(self) -> AccessoryConfig | None:
        return read_config(self.config_path)

    def require_config(self) -> AccessoryConfig:
        config = self.load_config()
        if config is None:
            raise ConfigLoadError(
                f"No configuration found at {self.config_path}. Run 'chargectl configure' first."
            )
        return config

    def configure(self, address: str, *, low: int, high: int) -> AccessoryConfig:
        try:
            existing = self.load_config()
        except ConfigValidationError as exc:
            LOGGER.warning("Replacing invalid config: %s", exc)
            existing = None

        base = existing or AccessoryConfig(address=address)
        config = dataclasses.replace(
            base,
            address=normalize_address(address),
            low_threshold=low,
            high_threshold=high,
        )
        write_config(config, self.config_path)
        # A new accessory or band invalidates what we knew about the outlet.
        self.state_store.clear()
        return config

    def confirmed_state(self) -> ConfirmedState | None:
        return self.state_store.read_confirmed_state()

    def battery_percent(self) -> int:
        return read_battery_percent(self.battery_root)

    async def send_command(
        self,
        target: OutletState,
        *,
        address: str | None = None,
        on_event: EventListener | None = None,
    ) -> CommandResult:
        """Deliver one command outside the threshold loop; the confirmed state is untouched."""
        config = self.load_config()
        if address is not None:
            address = normalize_address(address)
        elif config is not None:
            address = config.address
        else:
            raise ConfigLoadError(
                f"No configuration found at {self.config_path}. Pass --address or run 'chargectl configure'."
            )

        engine = self.build_engine(config)
        if on_event is not None:
            engine.subscribe(on_event)
        try:
            attempt = await engine.send(address, target)
        finally:
            await engine.close()

        return CommandResult(
            address=address,
            target=target,
            payload_hex=codec.encode(target).payload.hex(),
            attempts=attempt.attempt_count + 1,
        )

    async def run(
        self,
        *,
        interval_s: float | None = None,
        stop: asyncio.Event | None = None,
        on_event: EventListener | None = None,
    ) -> None:
        """Watch the host battery and drive the outlet until ``stop`` is set or cancelled."""
        config = self.require_config()
        engine = self.build_engine(config)
        if on_event is not None:
            engine.subscribe(on_event)
        controller = ChargeController(
            engine,
            config_source=self.load_config,
            state_store=self.state_store,
        )
        LOGGER.info(
            "Monitoring battery for outlet %s (thresholds %d-%d)",
            config.address,
            config.low_threshold,
            config.high_threshold,
        )
        try:
            await watch_battery(
                controller.on_battery_sample,
                interval_s=interval_s or config.poll_interval_s,
                root=self.battery_root,
                stop=stop,
            )
        finally:
            await controller.close()

    def build_engine(self, config: AccessoryConfig | None) -> ConnectionEngine:
        return ConnectionEngine(
            self.radio_factory(config),
            timings=config.timings if config else Timings(),
            pair=config.pair if config else True,
        )
