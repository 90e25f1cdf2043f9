"""BLE GATT radio implementation backed by bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Mapping
from typing import Any

from chargectl.core.errors import (
    AdapterDisabledError,
    ConnectFailedError,
    ScanFailedError,
    ServiceNotFoundError,
    WriteFailedError,
)

LOGGER = logging.getLogger(__name__)


def _require_bleak() -> Any:
    try:
        import bleak  # type: ignore
        import bleak.backends.device  # type: ignore
        import bleak.exc  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise AdapterDisabledError(
            "BLE radio requires 'bleak'. Install chargectl[ble] and retry."
        ) from exc
    return bleak


def _bluez_device_path(address: str, adapter: str) -> str:
    return f"/org/bluez/{adapter}/dev_{address.upper().replace(':', '_')}"


class BleakLink:
    def __init__(self, client: Any) -> None:
        self._client = client

    async def discover(self) -> Mapping[str, Collection[str]]:
        # bleak resolves the GATT table while connecting.
        bleak = _require_bleak()
        try:
            return {
                service.uuid.lower(): {char.uuid.lower() for char in service.characteristics}
                for service in self._client.services
            }
        except (bleak.exc.BleakError, OSError) as exc:
            raise ServiceNotFoundError(f"Service discovery failed: {exc}") from exc

    async def write(self, characteristic_uuid: str, payload: bytes) -> None:
        bleak = _require_bleak()
        try:
            await self._client.write_gatt_char(characteristic_uuid, payload, response=True)
        except (bleak.exc.BleakError, OSError) as exc:
            raise WriteFailedError(f"Write to {characteristic_uuid} failed: {exc}") from exc

    async def pair(self) -> None:
        await self._client.pair()

    async def close(self) -> None:
        bleak = _require_bleak()
        try:
            await self._client.disconnect()
        except (bleak.exc.BleakError, OSError) as exc:
            LOGGER.debug("BLE disconnect failed: %s", exc)


class BleakRadio:
    """Single-adapter radio that scans, connects, and keeps known handles.

    With ``assume_paired`` set, an address the host has bonded with is reached
    through its stable BlueZ object path, skipping the scan entirely.
    """

    def __init__(self, *, assume_paired: bool = False, adapter: str = "hci0") -> None:
        self._assume_paired = assume_paired
        self._adapter = adapter
        self._handles: dict[str, Any] = {}

    def cached_handle(self, address: str) -> Any | None:
        handle = self._handles.get(address.upper())
        if handle is not None or not self._assume_paired:
            return handle
        bleak = _require_bleak()
        details = {"path": _bluez_device_path(address, self._adapter), "props": {}}
        return bleak.backends.device.BLEDevice(address.upper(), None, details)

    def remember(self, address: str, handle: Any) -> None:
        self._handles[address.upper()] = handle

    def forget(self, address: str) -> None:
        self._handles.pop(address.upper(), None)

    async def scan(self, address: str) -> Any:
        bleak = _require_bleak()
        target = address.upper()
        found: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def _on_advertisement(device: Any, _advertisement: Any) -> None:
            if device.address.upper() == target and not found.done():
                found.set_result(device)

        try:
            async with bleak.BleakScanner(_on_advertisement, scanning_mode="active"):
                LOGGER.debug("Scanning for %s", target)
                return await found
        except bleak.exc.BleakBluetoothNotAvailableError as exc:
            raise AdapterDisabledError(f"Bluetooth is not available: {exc}") from exc
        except (bleak.exc.BleakError, OSError) as exc:
            raise ScanFailedError(f"Scan for {target} failed: {exc}") from exc

    async def connect(self, handle: Any) -> BleakLink:
        bleak = _require_bleak()
        client = bleak.BleakClient(handle)
        try:
            await client.connect()
        except bleak.exc.BleakBluetoothNotAvailableError as exc:
            raise AdapterDisabledError(f"Bluetooth is not available: {exc}") from exc
        except (bleak.exc.BleakError, OSError) as exc:
            raise ConnectFailedError(f"BLE connect failed: {exc}") from exc
        except asyncio.CancelledError:
            await BleakLink(client).close()
            raise

        if not client.is_connected:
            raise ConnectFailedError("BLE connect returned without a link")
        return BleakLink(client)
