"""Thin CLI wrapper over :class:`sengled.Client`."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
from collections.abc import Coroutine
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.syntax import Syntax

from sengled.client import AttributesChanged, Client, Device, SengledError
from sengled.server import load_config, run_server

app = typer.Typer(help="Control Sengled Wi-Fi devices.", invoke_without_command=True)

_T = TypeVar("_T")

_SKIP_OPTION = typer.Option(
    False, "--skip-server-check", help="Use the default MQTT broker instead of asking the API"
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Control Sengled Wi-Fi devices."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


def _print_json(obj: object) -> None:
    """Pretty-print JSON on a TTY, compact JSON when piped."""
    if sys.stdout.isatty():
        Console().print(Syntax(json.dumps(obj, indent=2), "json"))
    else:
        typer.echo(json.dumps(obj))


def _ensure_client(skip_server_check: bool = False) -> Client:
    """Load the saved session or exit with an error."""
    try:
        return Client.from_saved(skip_server_check=skip_server_check)
    except FileNotFoundError:
        typer.echo("No saved session. Run `sengled login` first.", err=True)
        raise typer.Exit(1) from None
    except SengledError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None


def _run(coro: Coroutine[Any, Any, _T]) -> _T:
    """Run *coro*, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except SengledError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None


def _find(devices: list[Device], mac: str) -> Device:
    for device in devices:
        if device.mac == mac:
            return device
    typer.echo(f"No device with MAC '{mac}'.", err=True)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def login(
    username: str = typer.Option(..., prompt=True, help="Sengled account email"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, help="Sengled account password"
    ),
) -> None:
    """Authenticate with Sengled and save the session locally."""
    typer.echo(f"Logging in as {username}...")
    client = Client()
    _run(client.login(username, password))
    client.save_session()
    typer.echo("Logged in. Session saved.")


@app.command()
def devices(
    as_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List Wi-Fi devices on the account."""
    client = _ensure_client()
    all_devices = _run(client.wifi_devices())
    if as_json:
        _print_json([d.to_dict() for d in all_devices])
        return
    if not all_devices:
        typer.echo("No devices found.", err=True)
        raise typer.Exit(1)
    for i, dev in enumerate(all_devices):
        name = dev.get_attribute_or("name", "unknown")
        switch = dev.get_attribute_or("switch", "?")
        typer.echo(f"  [{i}] {name} — {dev.type_code or dev.category} (switch: {switch})")
        typer.echo(f"        MAC: {dev.mac}")


@app.command("get")
def get_attribute(
    mac: str = typer.Argument(..., help="Device MAC"),
    attribute: str | None = typer.Argument(None, help="Attribute name"),
    as_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show a device's attributes, or a single attribute."""
    client = _ensure_client()
    device = _find(_run(client.wifi_devices()), mac)

    if attribute is not None:
        value = device.get_attribute(attribute)
        if value is None:
            typer.echo(f"Attribute '{attribute}' not reported by {mac}.", err=True)
            raise typer.Exit(1)
        if as_json:
            _print_json({attribute: value})
        else:
            typer.echo(f"{attribute}: {value}")
        return

    if as_json:
        _print_json(device.attributes)
        return
    typer.echo(device.get_attribute_or("name", device.mac))
    for key, value in sorted(device.attributes.items()):
        typer.echo(f"  {key}: {value}")


@app.command("set")
def set_attribute(
    mac: str = typer.Argument(..., help="Device MAC"),
    attribute: str = typer.Argument(..., help="Attribute name, e.g. switch or brightness"),
    value: str = typer.Argument(..., help="New value"),
    skip_server_check: bool = _SKIP_OPTION,
) -> None:
    """Set an attribute on a device via MQTT."""
    client = _ensure_client(skip_server_check)
    typer.echo(f"Setting {attribute} to {value}...")
    _run(_set_async(client, mac, attribute, value))
    typer.echo(f"Update sent to {mac}.")


async def _set_async(client: Client, mac: str, attribute: str, value: str) -> None:
    async with client:
        await client.start()
        await client.set_device_attribute(mac, attribute, value)


@app.command()
def toggle(
    mac: str = typer.Argument(..., help="Device MAC"),
    skip_server_check: bool = _SKIP_OPTION,
) -> None:
    """Flip a device's ``switch`` attribute."""
    client = _ensure_client(skip_server_check)
    new_value = _run(_toggle_async(client, mac))
    typer.echo(f"{mac} switch: {new_value}")


async def _toggle_async(client: Client, mac: str) -> str:
    async with client:
        device = _find(await client.wifi_devices(), mac)
        switch = device.get_attribute("switch")
        if switch is None:
            typer.echo(f"{mac} has no switch attribute.", err=True)
            raise typer.Exit(1)
        new_value = "1" if switch == "0" else "0"
        await client.start()
        await device.set_attribute(client, "switch", new_value)
        return new_value


@app.command()
def watch(skip_server_check: bool = _SKIP_OPTION) -> None:
    """Watch real-time attribute updates via MQTT.

    Press Ctrl+C to stop.
    """
    client = _ensure_client(skip_server_check)
    with contextlib.suppress(KeyboardInterrupt):
        _run(_watch_async(client))


async def _watch_async(client: Client) -> None:
    """Async implementation of the watch command."""
    is_tty = sys.stdout.isatty()

    async def on_update(event: AttributesChanged) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        for key, value in event.attributes.items():
            if is_tty:
                typer.echo(
                    f"[{ts}] {typer.style(event.device, bold=True)} "
                    f"{typer.style(key, fg='cyan')}: {value}"
                )
            else:
                typer.echo(f"[{ts}] {event.device} {key}: {value}")

    async with client:
        await client.start()
        subscribed = await client.wifi_devices_and_subscribe()
        typer.echo(f"Watching {len(subscribed)} device(s)... (Ctrl+C to stop)")
        subscription = await client.listen(on_update)
        await subscription.wait()


@app.command()
def serve(
    config: Path = typer.Option(Path("config.yml"), "--config", "-c", help="YAML config file"),
) -> None:
    """Run the HTTP bridge described in the config file."""
    try:
        server_config = load_config(config)
    except FileNotFoundError as e:
        typer.echo(f"{e} Fill in your credentials and run again.", err=True)
        raise typer.Exit(1) from None
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None

    with contextlib.suppress(KeyboardInterrupt):
        _run(run_server(server_config))
