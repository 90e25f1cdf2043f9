"""Threshold decision logic with a hysteresis band."""

from __future__ import annotations

from chargectl.core.model import AccessoryConfig, ConfirmedState, Decision, OutletState


def desired_state(percent: int, config: AccessoryConfig) -> OutletState | None:
    """Return the state the outlet should be in, or None inside the dead zone."""
    if percent <= config.low_threshold:
        return OutletState.ON
    if percent >= config.high_threshold:
        return OutletState.OFF
    return None


def decide(
    percent: int,
    config: AccessoryConfig,
    confirmed: ConfirmedState | None,
) -> Decision:
    """Decide whether a command must be sent for a battery sample.

    Percentages strictly between the thresholds never cause a transition,
    even while the confirmed state is unknown. Outside that band a command
    is issued only when it differs from the confirmed state, or when no
    state has been confirmed yet.
    """
    if not 0 <= percent <= 100:
        raise ValueError(f"Battery percent must be within 0..100, got {percent}")

    desired = desired_state(percent, config)
    if desired is None:
        return Decision.NO_ACTION

    if confirmed is not None and confirmed.outlet is desired:
        return Decision.NO_ACTION

    return Decision.ASSERT_ON if desired is OutletState.ON else Decision.ASSERT_OFF
