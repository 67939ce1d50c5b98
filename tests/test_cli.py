"""Tests for sengled.cli."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from sengled.cli import app
from sengled.client import AttributesChanged, AuthError, Client, Device, MqttError, Subscription

runner = CliRunner()

MAC = "B0:CE:18:00:00:01"


def _saved_client() -> Client:
    client = Client()
    client.set_session("sess-123")
    return client


def _devices() -> list[Device]:
    return [
        Device(MAC, "wifielement", "W21-N13", {"name": "Kitchen", "switch": "0"}),
        Device("B0:CE:18:00:00:02", "wifielement", "W21-N11", {"name": "Hallway"}),
    ]


class TestLogin:
    def test_saves_session(self):
        with (
            patch.object(Client, "login", AsyncMock(return_value="sess-abc")) as login,
            patch.object(Client, "save_session") as save,
        ):
            result = runner.invoke(app, ["login", "--username", "me", "--password", "pw"])

        assert result.exit_code == 0
        assert "Session saved" in result.output
        login.assert_awaited_once_with("me", "pw")
        save.assert_called_once()

    def test_failure(self):
        with (
            patch.object(Client, "login", AsyncMock(side_effect=AuthError("Login failed: nope"))),
            patch.object(Client, "save_session") as save,
        ):
            result = runner.invoke(app, ["login", "--username", "me", "--password", "pw"])

        assert result.exit_code == 1
        assert "Login failed: nope" in result.output
        save.assert_not_called()


class TestDevices:
    def test_lists_devices(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
        ):
            result = runner.invoke(app, ["devices"])

        assert result.exit_code == 0
        assert "Kitchen" in result.output
        assert MAC in result.output
        assert "switch: 0" in result.output

    def test_json_output(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
        ):
            result = runner.invoke(app, ["devices", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[1]["attributes"] == {"name": "Hallway"}

    def test_no_saved_session(self):
        with patch.object(Client, "from_saved", side_effect=FileNotFoundError):
            result = runner.invoke(app, ["devices"])

        assert result.exit_code == 1
        assert "sengled login" in result.output

    def test_expired_session(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(
                Client, "wifi_devices", AsyncMock(side_effect=AuthError("Session expired"))
            ),
        ):
            result = runner.invoke(app, ["devices"])

        assert result.exit_code == 1
        assert "Session expired" in result.output


class TestGet:
    def test_single_attribute(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
        ):
            result = runner.invoke(app, ["get", MAC, "name"])

        assert result.exit_code == 0
        assert "name: Kitchen" in result.output

    def test_missing_attribute(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
        ):
            result = runner.invoke(app, ["get", MAC, "brightness"])

        assert result.exit_code == 1

    def test_unknown_device(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
        ):
            result = runner.invoke(app, ["get", "FF:FF"])

        assert result.exit_code == 1
        assert "No device" in result.output


class TestSet:
    def test_publishes_and_closes(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "start", AsyncMock()) as start,
            patch.object(Client, "set_device_attribute", AsyncMock()) as set_attr,
            patch.object(Client, "close", AsyncMock()) as close,
        ):
            result = runner.invoke(app, ["set", MAC, "switch", "1"])

        assert result.exit_code == 0
        start.assert_awaited_once()
        set_attr.assert_awaited_once_with(MAC, "switch", "1")
        close.assert_awaited_once()

    def test_mqtt_failure(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "start", AsyncMock(side_effect=MqttError("refused"))),
            patch.object(Client, "close", AsyncMock()),
        ):
            result = runner.invoke(app, ["set", MAC, "switch", "1"])

        assert result.exit_code == 1
        assert "refused" in result.output


class TestToggle:
    def test_flips_switch(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
            patch.object(Client, "start", AsyncMock()),
            patch.object(Client, "set_device_attribute", AsyncMock()) as set_attr,
            patch.object(Client, "close", AsyncMock()),
        ):
            result = runner.invoke(app, ["toggle", MAC])

        assert result.exit_code == 0
        assert f"{MAC} switch: 1" in result.output
        assert set_attr.call_args[0][1:] == ("switch", "1")

    def test_no_switch(self):
        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "wifi_devices", AsyncMock(return_value=_devices())),
            patch.object(Client, "start", AsyncMock()),
            patch.object(Client, "close", AsyncMock()),
        ):
            result = runner.invoke(app, ["toggle", "B0:CE:18:00:00:02"])

        assert result.exit_code == 1
        assert "no switch" in result.output


class TestWatch:
    def test_displays_updates(self):
        events = [
            AttributesChanged(MAC, {"switch": "1"}),
            AttributesChanged("B0:CE:18:00:00:02", {"brightness": "40"}),
        ]

        async def fake_listen(callback: Any) -> Subscription:
            async def run() -> None:
                for event in events:
                    await callback(event)

            return Subscription(asyncio.get_running_loop().create_task(run()), _saved_client())

        with (
            patch.object(Client, "from_saved", return_value=_saved_client()),
            patch.object(Client, "start", AsyncMock()),
            patch.object(
                Client, "wifi_devices_and_subscribe", AsyncMock(return_value=_devices())
            ),
            patch.object(Client, "listen", AsyncMock(side_effect=fake_listen)),
            patch.object(Client, "close", AsyncMock()),
        ):
            result = runner.invoke(app, ["watch"])

        assert result.exit_code == 0
        assert "Watching 2 device(s)" in result.output
        assert f"{MAC} switch: 1" in result.output
        assert "brightness: 40" in result.output


class TestServe:
    def test_missing_config_writes_defaults(self, tmp_path):
        config = tmp_path / "config.yml"
        result = runner.invoke(app, ["serve", "--config", str(config)])

        assert result.exit_code == 1
        assert config.exists()
        assert "Fill in your credentials" in result.output

    def test_runs_server(self, tmp_path):
        config = tmp_path / "config.yml"
        config.write_text("username: me\npassword: pw\n")
        with patch("sengled.cli.run_server", AsyncMock()) as run:
            result = runner.invoke(app, ["serve", "--config", str(config)])

        assert result.exit_code == 0
        server_config = run.call_args[0][0]
        assert server_config.username == "me"
