"""Internal constants for the Sengled cloud (element / life2) API."""

from __future__ import annotations

from pathlib import Path

LOGIN_URL = "https://ucenter.cloud.sengled.com/user/app/customer/v2/AuthenCross.json"
SERVER_INFO_URL = "https://life2.cloud.sengled.com/life2/server/getServerInfo.json"
DEVICE_LIST_URL = "https://life2.cloud.sengled.com/life2/device/list.json"

DEFAULT_BROKER_URL = "wss://us-mqtt.cloud.sengled.com:443/mqtt"

MQTT_KEEPALIVE = 30
MQTT_CLIENT_SUFFIX = "@lifeApp"

HTTP_TIMEOUT = 15

# Body ``ret`` code the API uses for an expired or unknown session
SESSION_EXPIRED_RET = 100

APP_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Host": "element.cloud.sengled.com:443",
    "Connection": "keep-alive",
}

MQTT_HEADERS: dict[str, str] = {
    "X-Requested-With": "com.sengled.life2",
}

LOGIN_BODY: dict[str, str] = {
    "uuid": "xxxxxx",
    "osType": "android",
    "productCode": "life",
    "appCode": "life",
}

CRED_DIR = Path.home() / ".config" / "sengled"
SESSION_FILE = CRED_DIR / "session.json"
