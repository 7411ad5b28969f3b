#!/usr/bin/env python3
"""
LG webOS client package

This package contains the components needed to pair with and control an
LG webOS TV over its SSAP WebSocket protocol, organized into focused modules.
"""

# Re-export main components for easy importing
from .controller import WebOsController
from .discovery import SsdpDiscoveryService, SsdpResponseParser
from .keystore import ConfigKeyStore
from .parser import ResponseParser
from .session import WebOsSession
from .transport import WebSocketTransport
from .types import (
    CommandError,
    DiscoveryResult,
    RegistrationError,
    RegistrationStatus,
    TransportError,
    WebOsError,
)

__all__ = [
    "CommandError",
    "ConfigKeyStore",
    "DiscoveryResult",
    "RegistrationError",
    "RegistrationStatus",
    "ResponseParser",
    "SsdpDiscoveryService",
    "SsdpResponseParser",
    "TransportError",
    "WebOsController",
    "WebOsError",
    "WebOsSession",
    "WebSocketTransport",
]
