"""Sengled cloud API client.

Provides programmatic access to Sengled Wi-Fi devices via the cloud HTTP
API and MQTT broker.  The :class:`Client` class is the main entry point;
:meth:`~Client.wifi_devices` returns :class:`Device` objects whose
attributes can be read locally and changed over MQTT::

    import asyncio
    from sengled import Client, QoS

    client = Client().with_preferred_qos(QoS.AT_MOST_ONCE)
    session = await client.login_and_start("email@example.com", "password")

    for device in await client.wifi_devices():
        await device.set_attribute(client, "switch", "1")

    # Flushes outstanding publishes before disconnecting
    await client.close()

The session returned by :meth:`~Client.login_and_start` can be cached and
passed to :meth:`~Client.start` on a later run to skip the REST login.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import functools
import json
import logging
import re
import ssl
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp
import aiomqtt
from yarl import URL

from sengled._constants import (
    APP_HEADERS,
    DEFAULT_BROKER_URL,
    DEVICE_LIST_URL,
    HTTP_TIMEOUT,
    LOGIN_BODY,
    LOGIN_URL,
    MQTT_CLIENT_SUFFIX,
    MQTT_HEADERS,
    MQTT_KEEPALIVE,
    SERVER_INFO_URL,
    SESSION_EXPIRED_RET,
    SESSION_FILE,
)

_LOGGER = logging.getLogger(__name__)

_STATUS_TOPIC_RE = re.compile(r"^wifielement/([0-9A-F:]+)/status$")


class SengledError(Exception):
    """Base class for all errors raised by this package."""


class AuthError(SengledError):
    """Raised when credentials or the session are missing, rejected or expired."""


class ApiError(SengledError, ConnectionError):
    """Raised when a Sengled REST endpoint is unreachable or returns an HTTP error."""


class MqttError(SengledError, ConnectionError):
    """Raised when an MQTT operation fails or no MQTT connection is active.

    Wraps :class:`aiomqtt.MqttError` so callers do not need to import
    ``aiomqtt`` to catch broker failures from :meth:`Client.start` or
    :meth:`Client.set_device_attribute`.
    """


class ParseError(SengledError, ValueError):
    """Raised when an API response does not have the expected shape."""


class QoS(enum.IntEnum):
    """MQTT delivery guarantee used for attribute updates."""

    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2


class ClientState(enum.Enum):
    """Lifecycle of a :class:`Client`."""

    UNINITIALIZED = "uninitialized"
    AUTHENTICATED = "authenticated"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass(frozen=True)
class BrokerConfig:
    """Where to reach the MQTT broker (websockets over TLS)."""

    host: str
    port: int = 443
    path: str = "/mqtt"

    @classmethod
    def from_url(cls, url: str) -> BrokerConfig:
        """Parse a ``wss://host[:port]/path`` address.

        Raises :class:`ParseError` if the address has no host.
        """
        try:
            parsed = URL(url)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid broker address '{url}'.") from e
        if not parsed.host:
            raise ParseError(f"Broker address '{url}' has no host.")
        return cls(host=parsed.host, port=parsed.port or 443, path=parsed.path or "/")

    @classmethod
    def default(cls) -> BrokerConfig:
        """The fixed broker used when server discovery is skipped."""
        return cls.from_url(DEFAULT_BROKER_URL)

    @property
    def url(self) -> str:
        return f"wss://{self.host}:{self.port}{self.path}"


@dataclass(frozen=True)
class AttributesChanged:
    """A status push from the broker for one device."""

    device: str
    """MAC address of the device that changed."""

    attributes: dict[str, str]
    """Changed attributes, name to new value."""


@dataclass
class Device:
    """A Sengled Wi-Fi device.

    Obtained via :meth:`Client.wifi_devices`.  Attribute reads are local;
    use :meth:`set_attribute` to change an attribute on the device and in
    the local map.

    Example::

        devices = await client.wifi_devices()
        device = devices[0]
        if device.get_attribute_or("switch", "0") == "0":
            await device.set_attribute(client, "switch", "1")
    """

    mac: str
    """Device identifier (``deviceUuid``), usually the MAC address."""

    category: str = ""
    """Device category reported by the API."""

    type_code: str = ""
    """Product type code (``typeCode``)."""

    attributes: dict[str, str] = field(default_factory=dict)
    """Attribute name to value, as last reported or set."""

    @classmethod
    def from_api(cls, record: object) -> Device:
        """Build a device from one entry of the ``deviceList`` response.

        Raises :class:`ParseError` on a malformed record.
        """
        if not isinstance(record, dict):
            raise ParseError(f"Expected a device record, got {type(record).__name__}.")
        mac = record.get("deviceUuid")
        if not isinstance(mac, str) or not mac:
            raise ParseError("Device record has no deviceUuid.")
        return cls(
            mac=mac,
            category=str(record.get("category") or ""),
            type_code=str(record.get("typeCode") or ""),
            attributes=_parse_attribute_list(record.get("attributeList") or []),
        )

    @property
    def id(self) -> str:
        """Alias of :attr:`mac`."""
        return self.mac

    def get_attribute(self, attribute: str) -> str | None:
        """Return the stored value of *attribute*, or ``None`` if unknown."""
        return self.attributes.get(attribute)

    def get_attribute_or(self, attribute: str, default: str) -> str:
        """Return the stored value of *attribute*, or *default* if unknown."""
        return self.attributes.get(attribute, default)

    async def set_attribute(self, client: Client, attribute: str, value: str) -> None:
        """Set *attribute* on the device and update it locally.

        The local map changes only after the MQTT publish has been
        dispatched at the client's preferred QoS; the device's own
        confirmation is not awaited.

        Raises:
            MqttError: If the client is not started or the publish fails.
        """
        await client.set_device_attribute(self, attribute, value)

    async def set_attributes(self, client: Client, attributes: Mapping[str, str]) -> None:
        """Set several attributes in a single publish."""
        await client.set_device_attributes(self, attributes)

    def to_dict(self) -> dict[str, object]:
        return {
            "deviceUuid": self.mac,
            "category": self.category,
            "typeCode": self.type_code,
            "attributes": dict(self.attributes),
        }


class Client:
    """Sengled cloud API client.

    Use :meth:`login` and :meth:`start` (or :meth:`login_and_start`) to
    connect, :meth:`wifi_devices` to list devices, and :meth:`close` to
    disconnect.  Configuration (:meth:`with_preferred_qos`,
    :meth:`with_skip_server_check`) must happen before :meth:`start`.

    :meth:`close` before :meth:`start` is a no-op.
    """

    def __init__(
        self,
        *,
        preferred_qos: QoS = QoS.AT_MOST_ONCE,
        skip_server_check: bool = False,
    ) -> None:
        self._preferred_qos = QoS(preferred_qos)
        self._skip_server_check = skip_server_check
        self._session: str | None = None
        self._mqtt: aiomqtt.Client | None = None
        self._exit_stack: contextlib.AsyncExitStack | None = None
        self._closed = False
        self._devices: dict[str, Device] = {}
        self._inflight: set[asyncio.Future[None]] = set()
        self._listeners: set[Subscription] = set()
        self._lifecycle_lock = asyncio.Lock()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def with_preferred_qos(self, qos: QoS) -> Client:
        """Set the QoS used for attribute updates. Default is at-most-once."""
        self._preferred_qos = QoS(qos)
        return self

    def with_skip_server_check(self) -> Client:
        """Use the default MQTT broker instead of asking the API for one."""
        self._skip_server_check = True
        return self

    @property
    def preferred_qos(self) -> QoS:
        return self._preferred_qos

    @property
    def skip_server_check(self) -> bool:
        return self._skip_server_check

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> str | None:
        """Current session token (``jsessionId``), if any."""
        return self._session

    def set_session(self, session: str) -> None:
        """Use a previously obtained session instead of logging in."""
        if not session:
            raise AuthError("Session must be a non-empty string.")
        self._session = session

    @property
    def state(self) -> ClientState:
        if self._mqtt is not None:
            return ClientState.CONNECTED
        if self._closed and not self._session:
            return ClientState.CLOSED
        if self._session:
            return ClientState.AUTHENTICATED
        return ClientState.UNINITIALIZED

    @property
    def is_connected(self) -> bool:
        """True while the MQTT connection opened by :meth:`start` is active."""
        return self._mqtt is not None

    @classmethod
    def from_saved(cls, path: Path | None = None, **kwargs: Any) -> Client:
        """Create a client from a session saved by :meth:`save_session`.

        Extra keyword arguments are passed to the constructor.

        Raises :class:`FileNotFoundError` if no session file exists.
        """
        path = path or SESSION_FILE
        if not path.exists():
            raise FileNotFoundError(f"No saved session at {path}. Call login() first.")
        try:
            data = json.loads(path.read_text())
        except ValueError as e:
            raise ParseError(f"Saved session at {path} is not valid JSON.") from e
        session = data.get("session") if isinstance(data, dict) else None
        if not isinstance(session, str) or not session:
            raise ParseError(f"Saved session at {path} has no session.")
        client = cls(**kwargs)
        client.set_session(session)
        return client

    def save_session(self, path: Path | None = None) -> None:
        """Persist the session to ``~/.config/sengled/session.json``."""
        session = self._require_session()
        path = path or SESSION_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"session": session}, indent=2))
        path.chmod(0o600)

    async def login(self, username: str, password: str) -> str:
        """Authenticate and return the new session token.

        The token is also stored on the client for :meth:`start`.

        Raises:
            AuthError: If the credentials are rejected, the login endpoint
                is unreachable, or the client is already started.
        """
        if self._mqtt is not None:
            raise AuthError("Already logged in. Call close() first.")
        session = await _http_login(username, password)
        self._session = session
        self._closed = False
        _LOGGER.debug("Logged in as %s", username)
        return session

    async def fetch_broker_config(self, session: str | None = None) -> BrokerConfig:
        """Ask the API which MQTT broker serves this account."""
        session = session or self._require_session()
        async with aiohttp.ClientSession() as http:
            data = await _post_json(http, SERVER_INFO_URL, {}, session=session)
        addr = data.get("inceptionAddr")
        if not isinstance(addr, str) or not addr:
            raise ParseError("Server info response has no inceptionAddr.")
        _LOGGER.debug("Broker address from server info: %s", addr)
        return BrokerConfig.from_url(addr)

    async def start(self, session: str | None = None) -> None:
        """Connect to the MQTT broker.

        Uses *session* if given, otherwise the one stored by :meth:`login`
        or :meth:`set_session`.  Unless :meth:`with_skip_server_check` was
        called, the broker address is fetched from the API first.

        Raises:
            AuthError: If no session is available.  No request is made.
            MqttError: If the broker cannot be reached or rejects the
                session, or the client is already started.
        """
        async with self._lifecycle_lock:
            if self._mqtt is not None:
                raise MqttError("Client already started.")
            if session is not None and not session:
                raise AuthError("Session must be a non-empty string.")
            token = session or self._require_session()

            if self._skip_server_check:
                broker = BrokerConfig.default()
            else:
                broker = await self.fetch_broker_config(token)

            stack = contextlib.AsyncExitStack()
            try:
                mqtt = await stack.enter_async_context(
                    aiomqtt.Client(**_mqtt_params(token, broker))  # type: ignore[arg-type]
                )
            except aiomqtt.MqttError as e:
                raise MqttError(f"Failed to connect to {broker.url}: {e}") from e

            # The token is stored only once the broker has accepted it.
            self._session = token
            self._mqtt = mqtt
            self._exit_stack = stack
            self._closed = False
            _LOGGER.info("Connected to MQTT broker %s", broker.url)

    async def login_and_start(self, username: str, password: str) -> str:
        """Log in, then start.  Returns the session for caching."""
        session = await self.login(username, password)
        await self.start()
        return session

    async def close(self) -> None:
        """Flush outstanding publishes, then disconnect.

        Every publish issued before this call has either been delivered at
        the preferred QoS or has failed by the time the connection is torn
        down.  The session is cleared.  A no-op if the client was never
        started or is already closed.  Concurrent calls are serialized with
        :meth:`start`; only the first one disconnects.
        """
        async with self._lifecycle_lock:
            if self._exit_stack is None:
                return

            if self._inflight:
                _LOGGER.debug("Waiting for %d in-flight publish(es)", len(self._inflight))
                # Failures reach the awaiting caller, or are logged when it was cancelled.
                await asyncio.gather(*self._inflight, return_exceptions=True)

            for subscription in list(self._listeners):
                await subscription.stop()

            stack, self._exit_stack = self._exit_stack, None
            self._mqtt = None
            self._session = None
            self._closed = True
            try:
                await stack.aclose()
            except aiomqtt.MqttError as e:
                raise MqttError(f"Error while disconnecting: {e}") from e
            _LOGGER.info("Disconnected from MQTT broker")

    # ------------------------------------------------------------------
    # Devices (HTTP)
    # ------------------------------------------------------------------

    @property
    def devices(self) -> list[Device]:
        """Devices from the last :meth:`wifi_devices` call."""
        return list(self._devices.values())

    def device(self, mac: str) -> Device:
        """Return a cached device by MAC.

        Raises :class:`KeyError` if the device is not cached.
        """
        try:
            return self._devices[mac]
        except KeyError:
            raise KeyError(f"No device with MAC '{mac}'. Call wifi_devices() first.") from None

    async def wifi_devices(self) -> list[Device]:
        """Fetch the Wi-Fi devices registered to the account.

        Only a session is needed; the MQTT connection is not used.  The
        result replaces the client's device cache.

        Raises:
            AuthError: If there is no session or it was rejected.
            ApiError: If the API is unreachable.
            ParseError: If the response has an unexpected shape.
        """
        session = self._require_session()
        async with aiohttp.ClientSession() as http:
            data = await _post_json(http, DEVICE_LIST_URL, {}, session=session)
        records = data.get("deviceList")
        if not isinstance(records, list):
            raise ParseError("Device list response has no deviceList.")
        devices = [Device.from_api(record) for record in records]
        self._devices = {device.mac: device for device in devices}
        _LOGGER.debug("Fetched %d device(s)", len(devices))
        return devices

    async def wifi_devices_and_subscribe(self) -> list[Device]:
        """Fetch devices, then subscribe to their status updates."""
        devices = await self.wifi_devices()
        await self.subscribe_devices(devices)
        return devices

    # ------------------------------------------------------------------
    # Control (MQTT)
    # ------------------------------------------------------------------

    async def set_device_attribute(self, device: Device | str, attribute: str, value: str) -> None:
        """Set one attribute on a device by publishing to its update topic.

        *device* is a :class:`Device` or a MAC string.  Once the publish is
        dispatched, the attribute is updated on *device* and on the cached
        copy from :meth:`wifi_devices`.

        Raises:
            MqttError: If the client is not started or the publish fails.
        """
        mac = _device_mac(device)
        await self._publish(_update_topic(mac), _build_update_payload(mac, attribute, value))
        self._apply_attributes(device, {attribute: value})

    async def set_device_attributes(
        self, device: Device | str, attributes: Mapping[str, str]
    ) -> None:
        """Set several attributes on a device in one publish."""
        if not attributes:
            return
        mac = _device_mac(device)
        await self._publish(_update_topic(mac), _build_bulk_update_payload(mac, attributes))
        self._apply_attributes(device, attributes)

    async def subscribe_device(self, device: Device | str) -> None:
        """Receive status updates for a single device via :meth:`events`."""
        await self.subscribe_devices([device])

    async def subscribe_devices(self, devices: Iterable[Device | str]) -> None:
        """Receive status updates for several devices via :meth:`events`."""
        mqtt = self._require_mqtt()
        topics = [(_status_topic(_device_mac(d)), int(QoS.AT_MOST_ONCE)) for d in devices]
        if not topics:
            return
        try:
            await mqtt.subscribe(topics)
        except aiomqtt.MqttError as e:
            raise MqttError(f"Failed to subscribe: {e}") from e
        _LOGGER.debug("Subscribed to %d status topic(s)", len(topics))

    async def events(self) -> AsyncIterator[AttributesChanged]:
        """Yield status updates from subscribed devices.

        Each update is applied to the device cache before it is yielded.
        Messages on other topics and malformed payloads are skipped.

        Raises :class:`MqttError` when the broker connection is lost.
        """
        mqtt = self._require_mqtt()
        try:
            async for message in mqtt.messages:
                event = _parse_status_message(str(message.topic), message.payload)
                if event is None:
                    continue
                self._apply_attributes(event.device, event.attributes)
                yield event
        except aiomqtt.MqttError as e:
            raise MqttError(f"Disconnected from MQTT broker: {e}") from e

    async def listen(
        self, callback: Callable[[AttributesChanged], Awaitable[None]]
    ) -> Subscription:
        """Run :meth:`events` in the background, awaiting *callback* per update.

        Returns a :class:`Subscription`; :meth:`close` stops it as well.
        """
        self._require_mqtt()
        task = asyncio.create_task(self._run_listener(callback))
        subscription = Subscription(task, self)
        self._listeners.add(subscription)
        task.add_done_callback(lambda _: self._listeners.discard(subscription))
        return subscription

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _require_session(self) -> str:
        if not self._session:
            raise AuthError("No session. Call login() or set_session() first.")
        return self._session

    def _require_mqtt(self) -> aiomqtt.Client:
        if self._mqtt is None:
            raise MqttError("Client is not started. Call start() first.")
        return self._mqtt

    async def _publish(self, topic: str, payload: str) -> None:
        """Publish at the preferred QoS, tracking the publish until it completes.

        The publish keeps running if the caller is cancelled, so that
        :meth:`close` can still flush it.
        """
        mqtt = self._require_mqtt()
        future = asyncio.ensure_future(mqtt.publish(topic, payload, qos=int(self._preferred_qos)))
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)
        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(functools.partial(_log_abandoned_publish, topic))
            raise
        except aiomqtt.MqttError as e:
            raise MqttError(f"Failed to publish to {topic}: {e}") from e

    def _apply_attributes(self, device: Device | str, attributes: Mapping[str, str]) -> None:
        if isinstance(device, Device):
            device.attributes.update(attributes)
        cached = self._devices.get(_device_mac(device))
        if cached is not None and cached is not device:
            cached.attributes.update(attributes)

    async def _run_listener(self, callback: Callable[[AttributesChanged], Awaitable[None]]) -> None:
        async for event in self.events():
            await callback(event)


class Subscription:
    """Handle for a background status listener.

    Returned by :meth:`Client.listen`.  Call :meth:`stop` to cancel the
    listener, or :meth:`wait` to block until it ends (e.g. on disconnect).
    """

    def __init__(self, task: asyncio.Task[None], client: Client) -> None:
        self._task = task
        self._client = client

    @property
    def is_connected(self) -> bool:
        """True while the listener runs on a live connection."""
        return self._client.is_connected and not self._task.done()

    async def stop(self) -> None:
        """Cancel the listener and wait for cleanup."""
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError, MqttError):
            await self._task

    async def wait(self) -> None:
        """Wait until the listener ends.

        Raises :class:`MqttError` if the connection was lost.
        """
        await self._task


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _device_mac(device: Device | str) -> str:
    return device.mac if isinstance(device, Device) else device


def _parse_attribute_list(raw: object) -> dict[str, str]:
    """Convert ``[{"name": ..., "value": ...}, ...]`` into a dict."""
    if not isinstance(raw, list):
        raise ParseError("attributeList is not a list.")
    attributes: dict[str, str] = {}
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise ParseError(f"Malformed attribute entry: {entry!r}")
        if "value" not in entry:
            raise ParseError(f"Attribute '{entry['name']}' has no value.")
        attributes[entry["name"]] = _attribute_value(entry["value"])
    return attributes


def _attribute_value(value: object) -> str:
    """Coerce a reported attribute value to the stored string form."""
    return "" if value is None else str(value)


def _log_abandoned_publish(topic: str, future: asyncio.Future[None]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        _LOGGER.warning("Publish to %s failed after its caller was cancelled: %s", topic, exc)


async def _post_json(
    http: aiohttp.ClientSession,
    url: str,
    body: dict[str, object],
    *,
    session: str | None = None,
) -> dict[str, Any]:
    """POST *body* as JSON and return the decoded JSON object.

    When *session* is given it is sent as the ``JSESSIONID`` cookie, and a
    rejected or expired session raises :class:`AuthError`.
    """
    headers = dict(APP_HEADERS)
    if session:
        headers["Cookie"] = f"JSESSIONID={session}"
    try:
        async with http.post(
            url,
            json=body,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT),
        ) as resp:
            if resp.status in (401, 403):
                raise AuthError(f"Session rejected (HTTP {resp.status}).")
            resp.raise_for_status()
            text = await resp.text()
    except (aiohttp.ClientError, TimeoutError) as e:
        raise ApiError(f"Request to {url} failed: {e}") from e

    try:
        data = json.loads(text)
    except ValueError as e:
        raise ParseError(f"Response from {url} is not JSON.") from e
    if not isinstance(data, dict):
        raise ParseError(f"Response from {url} is not a JSON object.")
    if session and data.get("ret") == SESSION_EXPIRED_RET:
        raise AuthError(f"Session expired: {data.get('msg', 'not logged in')}")
    return data


async def _http_login(username: str, password: str) -> str:
    """Perform the REST login and return the ``jsessionId``."""
    body: dict[str, object] = {**LOGIN_BODY, "user": username, "pwd": password}
    try:
        async with aiohttp.ClientSession() as http:
            data = await _post_json(http, LOGIN_URL, body)
    except (ApiError, ParseError) as e:
        raise AuthError(f"Login failed: {e}") from e

    ret = data.get("ret")
    if ret not in (None, 0):
        msg = data.get("msg", "unknown error")
        raise AuthError(f"Login failed: {msg}")
    session = data.get("jsessionId")
    if not isinstance(session, str) or not session:
        raise AuthError("Login failed: no jsessionId in response.")
    return session


# ---------------------------------------------------------------------------
# MQTT
# ---------------------------------------------------------------------------


def _update_topic(mac: str) -> str:
    return f"wifielement/{mac}/update"


def _status_topic(mac: str) -> str:
    return f"wifielement/{mac}/status"


def _make_tls_context() -> ssl.SSLContext:
    """Create an SSL context for the broker's public certificate."""
    return ssl.create_default_context()


def _mqtt_params(session: str, broker: BrokerConfig) -> dict[str, object]:
    """Derive aiomqtt.Client constructor kwargs from a session and broker."""
    return {
        "hostname": broker.host,
        "port": broker.port,
        "identifier": f"{session}{MQTT_CLIENT_SUFFIX}",
        "transport": "websockets",
        "websocket_path": broker.path,
        "websocket_headers": {**MQTT_HEADERS, "Cookie": f"JSESSIONID={session}"},
        "tls_context": _make_tls_context(),
        "keepalive": MQTT_KEEPALIVE,
    }


def _update_entry(mac: str, attribute: str, value: str) -> dict[str, object]:
    return {
        "dn": mac,
        "type": attribute,
        "value": value,
        "time": int(time.time() * 1000),
    }


def _build_update_payload(mac: str, attribute: str, value: str) -> str:
    """Build the JSON payload for a single attribute update."""
    return json.dumps(_update_entry(mac, attribute, value), separators=(",", ":"))


def _build_bulk_update_payload(mac: str, attributes: Mapping[str, str]) -> str:
    """Build the JSON list payload for a multi-attribute update."""
    return json.dumps(
        [_update_entry(mac, key, value) for key, value in attributes.items()],
        separators=(",", ":"),
    )


def _parse_status_message(topic: str, payload: bytes | bytearray | str) -> AttributesChanged | None:
    """Parse a status push into an :class:`AttributesChanged`, or ``None``.

    Returns ``None`` for topics other than ``wifielement/<MAC>/status``,
    non-JSON payloads, payloads that are not a list of ``{type, value}``
    objects, and empty updates.
    """
    match = _STATUS_TOPIC_RE.match(topic)
    if match is None:
        return None
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        _LOGGER.debug("Ignoring non-JSON status payload on %s", topic)
        return None
    if not isinstance(data, list):
        _LOGGER.debug("Ignoring status payload on %s: not a list", topic)
        return None
    attributes: dict[str, str] = {}
    for entry in data:
        if not isinstance(entry, dict) or not isinstance(entry.get("type"), str):
            _LOGGER.debug("Ignoring malformed status entry on %s: %r", topic, entry)
            return None
        attributes[entry["type"]] = _attribute_value(entry.get("value"))
    if not attributes:
        return None
    return AttributesChanged(device=match.group(1), attributes=attributes)
