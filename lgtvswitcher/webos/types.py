#!/usr/bin/env python3
"""
Shared data types and constants for the webOS SSAP protocol

This module contains the data classes, constants, and exceptions
used throughout the webOS client implementation.
"""

import enum
from dataclasses import dataclass
from typing import Any

# Protocol constants
DEFAULT_TV_PORT = 3001
REGISTRATION_TIMEOUT = 120.0

SWITCH_INPUT_URI = "ssap://tv/switchInput"
FOREGROUND_APP_INFO_URI = "ssap://com.webos.applicationManager/getForegroundAppInfo"

HDMI_APP_PREFIX = "com.webos.app.hdmi"

MANIFEST_VERSION = 1
MANIFEST_PERMISSIONS = (
    "LAUNCH",
    "LAUNCH_WEBAPP",
    "CONTROL_INPUT_TEXT",
    "CONTROL_MOUSE_AND_KEYBOARD",
    "READ_INSTALLED_APPS",
    "CONTROL_DISPLAY",
    "CONTROL_POWER",
    "READ_INPUT_DEVICE_LIST",
    "READ_NETWORK_STATE",
    "READ_TV_CHANNEL_LIST",
    "WRITE_NOTIFICATION_TOAST",
    "READ_POWER_STATE",
    "READ_CURRENT_CHANNEL",
    "READ_RUNNING_APPS",
    "READ_UPDATE_INFO",
)

# SSDP
SSDP_MULTICAST_ADDRESS = "239.255.255.250"
SSDP_MULTICAST_PORT = 1900
SSDP_DISCOVERY_TIMEOUT = 2.0
SSDP_SEARCH_TARGETS = (
    "urn:lge-com:service:webos-second-screen:1",
    "urn:schemas-upnp-org:device:Basic:1",
    "urn:schemas-upnp-org:device:MediaRenderer:1",
    "urn:schemas-upnp-org:service:dial:1",
    "ssdp:all",
)
SSDP_WEBOS_ST = "urn:lge-com:service:webos-second-screen:1"


class RegistrationStatus(enum.Enum):
    """Outcome of a single registration response"""

    UNKNOWN = "unknown"
    RESPONSE = "response"
    REGISTERED = "registered"
    REQUIRES_PROMPT = "requires_prompt"
    ERROR = "error"


@dataclass(frozen=True)
class RegistrationResponse:
    """Parsed registration response"""

    raw_json: str
    status: RegistrationStatus
    client_key: str | None = None


@dataclass(frozen=True)
class ResponseEnvelope:
    """Generic SSAP response envelope"""

    type: str
    id: str | None = None
    payload: Any = None
    error: str | None = None


@dataclass(frozen=True)
class DiscoveryResult:
    """A TV candidate found via SSDP"""

    address: str
    location: str | None = None
    usn: str | None = None
    server: str | None = None
    st: str | None = None


@dataclass(frozen=True)
class WebOsEndpoint:
    """A single connection candidate, chosen once per connection attempt"""

    host: str
    usn: str | None = None
    location: str | None = None


class WebOsError(Exception):
    """Base exception for webOS protocol errors"""


class RegistrationError(WebOsError):
    """Pairing handshake failed, timed out, or no candidate accepted us"""


class CommandError(WebOsError):
    """The TV returned a structured error for a specific request"""


class TransportError(WebOsError):
    """Socket or stream level fault"""
