#!/usr/bin/env python3
"""
Display data model

Immutable values describing the monitors attached to this machine and
whether the configured monitor is currently online.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum


class MonitorConnectionKind(Enum):
    """how a monitor is attached"""

    UNKNOWN = "unknown"
    INTERNAL = "internal"
    DISPLAYPORT = "displayport"
    HDMI = "hdmi"
    USB = "usb"
    WIRELESS = "wireless"
    VIRTUAL = "virtual"

    @classmethod
    def from_setting(cls, value: str | None) -> "MonitorConnectionKind | None":
        """config value to enum; None for blank/auto/unrecognized"""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class MonitorBounds:
    """screen geometry in virtual desktop coordinates"""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class MonitorSnapshot:
    """one monitor as reported by a detector"""

    device_name: str
    friendly_name: str
    bounds: MonitorBounds = field(default_factory=MonitorBounds)
    is_primary: bool = False
    connection_kind: MonitorConnectionKind = MonitorConnectionKind.UNKNOWN
    edid_key: str | None = None


@dataclass(frozen=True)
class MonitorInfo:
    """monitor as carried inside a DisplaySnapshot"""

    device_name: str
    friendly_name: str
    is_primary: bool = False
    connection: MonitorConnectionKind = MonitorConnectionKind.UNKNOWN

    @classmethod
    def from_monitor(cls, monitor: MonitorSnapshot) -> "MonitorInfo":
        """drop the detector-only fields"""
        return cls(
            device_name=monitor.device_name,
            friendly_name=monitor.friendly_name,
            is_primary=monitor.is_primary,
            connection=monitor.connection_kind,
        )


def utcnow() -> datetime.datetime:
    """timezone aware now"""
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class DisplaySnapshot:
    """
    State of the display topology at one instant.

    monitors is a tuple so the whole value stays immutable once built.
    """

    timestamp: datetime.datetime = field(default_factory=utcnow)
    monitors: tuple[MonitorInfo, ...] = ()
    preferred_monitor: MonitorInfo | None = None
    preferred_monitor_online: bool = False
    preferred_monitor_edid_key: str | None = None

    @property
    def preferred_connection(self) -> MonitorConnectionKind:
        """connection kind of the preferred monitor, UNKNOWN when absent"""
        if self.preferred_monitor is None:
            return MonitorConnectionKind.UNKNOWN
        return self.preferred_monitor.connection

    def age(self, now: datetime.datetime | None = None) -> datetime.timedelta:
        """how long ago this snapshot was taken"""
        return (now or utcnow()) - self.timestamp


@dataclass(frozen=True)
class DisplaySnapshotNotification:
    """a snapshot plus a diagnostic reason string"""

    snapshot: DisplaySnapshot
    reason: str = ""
