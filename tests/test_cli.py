from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from chargectl import cli
from chargectl.core.errors import BatteryUnavailableError, RetriesExhaustedError
from chargectl.core.model import AccessoryConfig, CommandResult, ConfirmedState, EngineEvent, EventKind, OutletState, Phase

ADDRESS = "AA:BB:CC:11:22:33"


class FakeService:
    config: AccessoryConfig | None = AccessoryConfig(address=ADDRESS)
    state: ConfirmedState | None = ConfirmedState(is_on=True, confirmed_at_level=18)
    send_error: Exception | None = None

    def __init__(self) -> None:
        self.config_path = Path("/tmp/chargectl/config.yaml")

    def configure(self, address, *, low, high):
        return AccessoryConfig(address=address.upper(), low_threshold=low, high_threshold=high)

    def load_config(self):
        return self.config

    def confirmed_state(self):
        return self.state

    def battery_percent(self):
        return 64

    async def send_command(self, target, *, address=None, on_event=None):
        if self.send_error is not None:
            raise self.send_error
        if on_event is not None:
            on_event(
                EngineEvent(
                    kind=EventKind.SUCCESS,
                    attempt_id="a1",
                    address=address or ADDRESS,
                    target=target,
                    phase=Phase.IDLE,
                    attempt_count=0,
                    max_retries=3,
                )
            )
        return CommandResult(
            address=address or ADDRESS,
            target=target,
            payload_hex="570101" if target is OutletState.ON else "570102",
            attempts=1,
        )


class UnconfiguredService(FakeService):
    config = None
    state = None


class FailingService(FakeService):
    send_error = RetriesExhaustedError("Command on to AA:BB:CC:11:22:33 failed after 3 attempts")


class NoBatteryService(FakeService):
    def battery_percent(self):
        raise BatteryUnavailableError("No readable battery under /sys/class/power_supply")


runner = CliRunner()


def test_configure_command(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", FakeService)
    result = runner.invoke(cli.app, ["configure", "aa:bb:cc:11:22:33", "--low", "25", "--high", "75"])
    assert result.exit_code == 0
    assert "Saved AA:BB:CC:11:22:33 with thresholds 25%-75%" in result.stdout


def test_show_command(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", FakeService)
    result = runner.invoke(cli.app, ["show"])
    assert result.exit_code == 0
    assert f"Accessory: {ADDRESS}" in result.stdout
    assert "Thresholds: 20%-80%" in result.stdout
    assert "Outlet: on at 18%" in result.stdout


def test_show_without_config(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", UnconfiguredService)
    result = runner.invoke(cli.app, ["show"])
    assert result.exit_code == 1
    assert "Not configured" in result.stdout


def test_on_and_off_commands(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", FakeService)

    result = runner.invoke(cli.app, ["on"])
    assert result.exit_code == 0
    assert "Outlet ON: confirmed" in result.stdout
    assert f"Sent on to {ADDRESS} payload=570101" in result.stdout

    result = runner.invoke(cli.app, ["off", "--address", "11:22:33:44:55:66"])
    assert result.exit_code == 0
    assert "Sent off to 11:22:33:44:55:66 payload=570102" in result.stdout


def test_send_failure_is_reported(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", FailingService)
    result = runner.invoke(cli.app, ["on"])
    assert result.exit_code == 1
    assert "Error: Command on to AA:BB:CC:11:22:33 failed after 3 attempts" in result.output
    assert "Traceback" not in result.output


def test_battery_command(monkeypatch):
    monkeypatch.setattr(cli, "ChargeService", FakeService)
    result = runner.invoke(cli.app, ["battery"])
    assert result.exit_code == 0
    assert "64%" in result.stdout

    monkeypatch.setattr(cli, "ChargeService", NoBatteryService)
    result = runner.invoke(cli.app, ["battery"])
    assert result.exit_code == 1
    assert "Error: No readable battery" in result.output
