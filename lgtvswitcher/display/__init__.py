#!/usr/bin/env python3
"""
Display topology package

Monitor enumeration, the snapshot data model and the notification stream
the sync worker consumes.
"""

from .equality import SnapshotEqualityComparer
from .provider import DetectorSnapshotProvider, DisplaySnapshotStream, SnapshotBuilder
from .types import (
    DisplaySnapshot,
    DisplaySnapshotNotification,
    MonitorBounds,
    MonitorConnectionKind,
    MonitorInfo,
    MonitorSnapshot,
)

__all__ = [
    "DetectorSnapshotProvider",
    "DisplaySnapshot",
    "DisplaySnapshotNotification",
    "DisplaySnapshotStream",
    "MonitorBounds",
    "MonitorConnectionKind",
    "MonitorInfo",
    "MonitorSnapshot",
    "SnapshotBuilder",
    "SnapshotEqualityComparer",
]
