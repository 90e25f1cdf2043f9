"""Host battery observer reading the Linux power_supply class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from chargectl.core.errors import BatteryUnavailableError

POWER_SUPPLY_ROOT = Path("/sys/class/power_supply")
LOGGER = logging.getLogger(__name__)


def _read_attr(directory: Path, name: str) -> str | None:
    try:
        return (directory / name).read_text(encoding="utf-8").strip()
    except OSError:
        return None


def _read_int(directory: Path, name: str) -> int | None:
    raw = _read_attr(directory, name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _supply_percent(directory: Path) -> int | None:
    capacity = _read_int(directory, "capacity")
    if capacity is not None:
        return max(0, min(100, capacity))

    # Some drivers only publish energy or charge counters.
    for now_name, full_name in (("energy_now", "energy_full"), ("charge_now", "charge_full")):
        now = _read_int(directory, now_name)
        full = _read_int(directory, full_name)
        if now is not None and full:
            return max(0, min(100, int(now / full * 100)))
    return None


def battery_supplies(root: Path = POWER_SUPPLY_ROOT) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted(
        directory
        for directory in root.iterdir()
        if _read_attr(directory, "type") == "Battery"
    )


def read_battery_percent(root: Path = POWER_SUPPLY_ROOT) -> int:
    for directory in battery_supplies(root):
        percent = _supply_percent(directory)
        if percent is not None:
            return percent
    raise BatteryUnavailableError(f"No readable battery under {root}")


async def watch_battery(
    on_sample: Callable[[int], object],
    *,
    interval_s: float,
    root: Path = POWER_SUPPLY_ROOT,
    stop: asyncio.Event | None = None,
) -> None:
    """Deliver a sample immediately and then every ``interval_s`` until ``stop`` is set."""
    stop = stop or asyncio.Event()
    while not stop.is_set():
        try:
            percent = read_battery_percent(root)
        except BatteryUnavailableError as exc:
            LOGGER.warning("%s", exc)
        else:
            on_sample(percent)

        try:
            await asyncio.wait_for(stop.wait(), interval_s)
        except asyncio.TimeoutError:
            continue
