"""HTTP bridge exposing Sengled devices over a small REST API.

Routes (all behind the ``Authorization`` check when ``require_auth`` is set)::

    GET  /devices              cached devices
    POST /devices              bulk update: [{"devices": [...], "attributes": {...}}]
    GET  /devices/{id}         one cached device
    POST /devices/{id}/toggle  flip the ``switch`` attribute between "0" and "1"

The device cache is kept current by MQTT status updates.  Every response
carries permissive CORS headers.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml
from aiohttp import web
from aiohttp.typedefs import Handler

from sengled.client import AttributesChanged, Client, MqttError, QoS

_LOGGER = logging.getLogger(__name__)


@dataclass
class ServerConfig:
    """Settings read from ``config.yml``."""

    username: str = ""
    password: str = ""
    host: str = "127.0.0.1"
    port: int = 5005
    require_auth: bool = True
    auth_key: str | None = "key"


CLIENT_KEY = web.AppKey("client", Client)
CONFIG_KEY = web.AppKey("config", ServerConfig)


def load_config(path: Path) -> ServerConfig:
    """Read the bridge configuration from a YAML file.

    If *path* does not exist the defaults are written there and
    :class:`FileNotFoundError` is raised so the user can fill them in.

    Raises :class:`ValueError` if the file is not a mapping of known keys.
    """
    if not path.exists():
        path.write_text(yaml.safe_dump(asdict(ServerConfig()), sort_keys=False))
        raise FileNotFoundError(f"No config file at {path}. Wrote the defaults there.")

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping.")
    unknown = set(raw) - {f.name for f in fields(ServerConfig)}
    if unknown:
        raise ValueError(f"Unknown key(s) in {path}: {', '.join(sorted(unknown))}")
    return ServerConfig(**raw)


_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


@web.middleware
async def _cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    # Preflight requests carry no Authorization header.
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        return web.Response(status=204, headers=_CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(_CORS_HEADERS)
        raise
    response.headers.update(_CORS_HEADERS)
    return response


@web.middleware
async def _auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    if not config.require_auth:
        return await handler(request)

    auth = request.headers.get("Authorization")
    if auth is None:
        return web.Response(status=401)
    if auth != (config.auth_key or ""):
        return web.Response(status=403)
    return await handler(request)


async def _get_devices(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    return web.json_response([device.to_dict() for device in client.devices])


async def _get_device(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    try:
        device = client.device(request.match_info["id"])
    except KeyError:
        return web.Response(status=404)
    return web.json_response(device.to_dict())


async def _set_device_attributes(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    try:
        payload = await request.json()
    except ValueError:
        return web.Response(status=400)

    if not isinstance(payload, list) or not all(_is_bulk_update(bulk) for bulk in payload):
        return web.Response(status=400)

    for bulk in payload:
        attributes = {str(k): str(v) for k, v in bulk["attributes"].items()}
        for mac in bulk["devices"]:
            try:
                await client.set_device_attributes(str(mac), attributes)
            except MqttError as e:
                _LOGGER.warning("Failed to update %s: %s", mac, e)
                return web.Response(status=500)

    return web.Response(status=200)


async def _toggle_device(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    try:
        device = client.device(request.match_info["id"])
    except KeyError:
        return web.Response(status=404)

    switch = device.get_attribute("switch")
    if switch is None:
        return web.Response(status=400)

    new_switch = "1" if switch == "0" else "0"
    try:
        await device.set_attribute(client, "switch", new_switch)
    except MqttError as e:
        _LOGGER.warning("Failed to toggle %s: %s", device.mac, e)
        return web.Response(status=500)

    return web.json_response({"value": new_switch})


def _is_bulk_update(bulk: object) -> bool:
    return (
        isinstance(bulk, dict)
        and isinstance(bulk.get("devices"), list)
        and isinstance(bulk.get("attributes"), dict)
    )


def create_app(client: Client, config: ServerConfig) -> web.Application:
    """Build the bridge application around a started :class:`Client`."""
    app = web.Application(middlewares=[_cors_middleware, _auth_middleware])
    app[CLIENT_KEY] = client
    app[CONFIG_KEY] = config
    app.router.add_get("/devices", _get_devices)
    app.router.add_post("/devices", _set_device_attributes)
    app.router.add_get("/devices/{id}", _get_device)
    app.router.add_post("/devices/{id}/toggle", _toggle_device)
    return app


async def _log_update(event: AttributesChanged) -> None:
    _LOGGER.debug("%s changed: %s", event.device, event.attributes)


async def run_server(config: ServerConfig, session_file: Path | None = None) -> None:
    """Log in (or reuse a saved session), then serve until the broker disconnects.

    A fresh session from :meth:`Client.login` is saved to *session_file*
    for the next run.
    """
    try:
        client = Client.from_saved(
            session_file, preferred_qos=QoS.AT_MOST_ONCE, skip_server_check=True
        )
        _LOGGER.info("Using saved session")
    except FileNotFoundError:
        client = Client(preferred_qos=QoS.AT_MOST_ONCE, skip_server_check=True)
        await client.login(config.username, config.password)
        client.save_session(session_file)

    async with client:
        await client.start()
        await client.wifi_devices_and_subscribe()
        subscription = await client.listen(_log_update)

        runner = web.AppRunner(create_app(client, config))
        await runner.setup()
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        _LOGGER.info(
            "Serving %d device(s) on http://%s:%d", len(client.devices), config.host, config.port
        )
        try:
            await subscription.wait()
        finally:
            await runner.cleanup()
