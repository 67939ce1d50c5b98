"""Python API, CLI and HTTP bridge for Sengled Wi-Fi smart-home devices."""

from sengled.client import (
    ApiError,
    AttributesChanged,
    AuthError,
    BrokerConfig,
    Client,
    ClientState,
    Device,
    MqttError,
    ParseError,
    QoS,
    SengledError,
    Subscription,
)

__all__ = [
    "ApiError",
    "AttributesChanged",
    "AuthError",
    "BrokerConfig",
    "Client",
    "ClientState",
    "Device",
    "MqttError",
    "ParseError",
    "QoS",
    "SengledError",
    "Subscription",
]
