"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging

import typer

from chargectl.core.errors import ChargectlError
from chargectl.core.model import EngineEvent, EventKind, OutletState, Phase
from chargectl.core.service import ChargeService

app = typer.Typer(help="Keep the host battery in a band by switching a BLE smart plug")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _render_event(event: EngineEvent) -> None:
    target = event.target.value.upper()
    if event.kind is EventKind.PHASE and event.phase is Phase.RESOLVING and event.attempt_count == 0:
        typer.echo(f"Outlet {target}: pending")
    elif event.kind is EventKind.RETRY:
        typer.echo(f"Retry {event.attempt_count}/{event.max_retries}: {event.error}", err=True)
    elif event.kind is EventKind.ADAPTER_DISABLED:
        typer.echo("Warning: Bluetooth adapter is unavailable", err=True)
    elif event.kind is EventKind.SUCCESS:
        typer.echo(f"Outlet {target}: confirmed")
    elif event.kind is EventKind.FAILURE:
        typer.echo(f"Outlet {target}: failed ({event.error})", err=True)


@app.command("configure")
def configure(
    address: str = typer.Argument(..., help="Smart plug MAC address"),
    low: int = typer.Option(20, "--low", help="Turn the outlet on at or below this percent"),
    high: int = typer.Option(80, "--high", help="Turn the outlet off at or above this percent"),
) -> None:
    """Save the accessory address and thresholds."""
    try:
        service = ChargeService()
        config = service.configure(address, low=low, high=high)
        typer.echo(
            f"Saved {config.address} with thresholds {config.low_threshold}%-{config.high_threshold}% "
            f"to {service.config_path}"
        )
    except ChargectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("show")
def show() -> None:
    """Show the configuration and the last confirmed outlet state."""
    try:
        service = ChargeService()
        config = service.load_config()
        if config is None:
            typer.echo("Not configured")
            raise typer.Exit(code=1)
        typer.echo(f"Accessory: {config.address}")
        typer.echo(f"Thresholds: {config.low_threshold}%-{config.high_threshold}%")
        state = service.confirmed_state()
        if state is None:
            typer.echo("Outlet: unknown")
        else:
            level = f" at {state.confirmed_at_level}%" if state.confirmed_at_level is not None else ""
            typer.echo(f"Outlet: {state.outlet.value}{level}")
    except ChargectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _send(target: OutletState, address: str | None) -> None:
    try:
        service = ChargeService()
        result = asyncio.run(service.send_command(target, address=address, on_event=_render_event))
        typer.echo(
            f"Sent {result.target.value} to {result.address} payload={result.payload_hex} "
            f"attempts={result.attempts}"
        )
    except ChargectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("on")
def turn_on(
    address: str | None = typer.Option(None, "--address", help="Override the configured MAC"),
) -> None:
    """Turn the outlet on once."""
    _send(OutletState.ON, address)


@app.command("off")
def turn_off(
    address: str | None = typer.Option(None, "--address", help="Override the configured MAC"),
) -> None:
    """Turn the outlet off once."""
    _send(OutletState.OFF, address)


@app.command("run")
def run_monitor(
    interval: float | None = typer.Option(None, "--interval", help="Seconds between battery polls"),
) -> None:
    """Monitor the battery and switch the outlet until interrupted."""
    try:
        service = ChargeService()
        asyncio.run(service.run(interval_s=interval, on_event=_render_event))
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except ChargectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("battery")
def battery() -> None:
    """Print the current host battery level."""
    try:
        service = ChargeService()
        typer.echo(f"{service.battery_percent()}%")
    except ChargectlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
