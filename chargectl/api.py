"""Stable public API for building tooling on top of chargectl.

This module is the supported integration surface for third-party callers,
for example a platform adapter that produces battery samples from its own
event source instead of polling sysfs.
"""

from __future__ import annotations

from pathlib import Path

from chargectl.core.codec import encode
from chargectl.core.controller import ChargeController
from chargectl.core.engine import ConnectionEngine
from chargectl.core.errors import (
    AdapterDisabledError,
    BatteryUnavailableError,
    ChargectlError,
    CharacteristicNotFoundError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectFailedError,
    ConnectTimeoutError,
    RadioFaultError,
    ResolutionTimeoutError,
    RetriesExhaustedError,
    ScanFailedError,
    ServiceNotFoundError,
    StateStoreError,
    SupersededError,
    TransportError,
    WriteFailedError,
)
from chargectl.core.model import (
    AccessoryConfig,
    CommandResult,
    ConfirmedState,
    ConnectionAttempt,
    Decision,
    EncodedCommand,
    EngineEvent,
    EventKind,
    OutletState,
    Phase,
    Timings,
)
from chargectl.core.policy import decide
from chargectl.core.service import ChargeService, RadioFactory
from chargectl.core.state_store import StateStore
from chargectl.transports.base import Link, Radio
from chargectl.transports.ble_gatt import BleakRadio

__all__ = [
    "ChargectlError",
    "ConfigLoadError",
    "ConfigValidationError",
    "StateStoreError",
    "BatteryUnavailableError",
    "TransportError",
    "AdapterDisabledError",
    "ResolutionTimeoutError",
    "ScanFailedError",
    "ConnectTimeoutError",
    "ConnectFailedError",
    "RadioFaultError",
    "ServiceNotFoundError",
    "CharacteristicNotFoundError",
    "WriteFailedError",
    "RetriesExhaustedError",
    "SupersededError",
    "AccessoryConfig",
    "CommandResult",
    "ConfirmedState",
    "ConnectionAttempt",
    "Decision",
    "EncodedCommand",
    "EngineEvent",
    "EventKind",
    "OutletState",
    "Phase",
    "Timings",
    "ChargeController",
    "ConnectionEngine",
    "StateStore",
    "Link",
    "Radio",
    "BleakRadio",
    "decide",
    "encode",
    "Client",
]


class Client:
    """Public client for interacting with chargectl core capabilities.

    A `Client` wraps configuration, persisted state, and the command engine
    behind a stable API intended for third-party tools (tray apps, services,
    scripts).
    """

    def __init__(
        self,
        *,
        config_path: Path | None = None,
        state_store: StateStore | None = None,
        radio_factory: RadioFactory | None = None,
    ) -> None:
        self._service = ChargeService(
            config_path=config_path,
            state_store=state_store,
            radio_factory=radio_factory,
        )

    def get_config(self) -> AccessoryConfig | None:
        return self._service.load_config()

    def configure(self, address: str, *, low: int = 20, high: int = 80) -> AccessoryConfig:
        return self._service.configure(address, low=low, high=high)

    def get_confirmed_state(self) -> ConfirmedState | None:
        return self._service.confirmed_state()

    async def send_command(self, target: OutletState, *, address: str | None = None) -> CommandResult:
        return await self._service.send_command(target, address=address)

    def create_controller(self) -> ChargeController:
        """Build a controller for callers that deliver battery samples themselves.

        Must be called from a running event loop; call ``close()`` on the
        controller at shutdown.
        """
        config = self._service.require_config()
        return ChargeController(
            self._service.build_engine(config),
            config_source=self._service.load_config,
            state_store=self._service.state_store,
        )
