#!/usr/bin/env python3
"""
Display snapshot provider

Turns raw monitor lists coming from a detector into DisplaySnapshot values
and fans them out to subscribers as notifications.
"""

import datetime
import logging
import threading
from typing import TYPE_CHECKING, Callable, Protocol, Sequence

from .types import (
    DisplaySnapshot,
    DisplaySnapshotNotification,
    MonitorInfo,
    MonitorSnapshot,
    utcnow,
)

if TYPE_CHECKING:
    from lgtvswitcher.options import SwitcherOptions

NotificationCallback = Callable[[DisplaySnapshotNotification], None]
MonitorCallback = Callable[[Sequence[MonitorSnapshot], str], None]
Unsubscribe = Callable[[], None]


class MonitorDetector(Protocol):
    """source of monitor lists"""

    def subscribe(self, callback: MonitorCallback) -> Unsubscribe:
        """callback(monitors, reason) on every topology change"""

    def start(self) -> None:
        """begin publishing, including an initial list"""


class DisplaySnapshotStream:
    """thread-safe fan-out of notifications to callbacks"""

    def __init__(self):
        self._subscribers: list[NotificationCallback] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once close() has been called"""
        return self._closed

    def subscribe(self, callback: NotificationCallback) -> Unsubscribe:
        """register a callback; returns a callable that removes it again"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, notification: DisplaySnapshotNotification) -> None:
        """deliver to every subscriber"""
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot publish on a closed snapshot stream")
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(notification)
            except Exception as error:  # pylint: disable=broad-exception-caught
                logging.error("Display snapshot subscriber failed: %s", error, exc_info=True)

    def close(self) -> None:
        """drop all subscribers and refuse further publishing"""
        with self._lock:
            self._closed = True
            self._subscribers.clear()


class SnapshotBuilder:
    """Build DisplaySnapshot values for the configured preferred monitor"""

    def __init__(self, options: "SwitcherOptions"):
        self.options = options

    def find_preferred(self, monitors: Sequence[MonitorSnapshot]) -> MonitorSnapshot | None:
        """first monitor matching the preferred name by EDID key, device or friendly name"""
        preferred = (self.options.preferred_monitor_name or "").strip()
        if not preferred:
            return None

        wanted = preferred.casefold()
        for monitor in monitors:
            if monitor.edid_key and wanted in monitor.edid_key.casefold():
                return monitor
            if monitor.device_name and monitor.device_name.casefold() == wanted:
                return monitor
            if monitor.friendly_name and wanted in monitor.friendly_name.casefold():
                return monitor
        return None

    def build(
        self,
        monitors: Sequence[MonitorSnapshot],
        timestamp: datetime.datetime | None = None,
    ) -> DisplaySnapshot:
        """snapshot for the given monitor list"""
        preferred = self.find_preferred(monitors)
        if preferred:
            edid_key = preferred.edid_key or preferred.device_name or None
        else:
            edid_key = self.options.preferred_monitor_name or None

        return DisplaySnapshot(
            timestamp=timestamp or utcnow(),
            monitors=tuple(MonitorInfo.from_monitor(monitor) for monitor in monitors),
            preferred_monitor=MonitorInfo.from_monitor(preferred) if preferred else None,
            preferred_monitor_online=preferred is not None,
            preferred_monitor_edid_key=edid_key,
        )


class DetectorSnapshotProvider:
    """snapshot provider on top of a MonitorDetector"""

    def __init__(
        self,
        detector: MonitorDetector,
        options: "SwitcherOptions",
        stream: DisplaySnapshotStream | None = None,
    ):
        self.detector = detector
        self.builder = SnapshotBuilder(options)
        self.stream = stream or DisplaySnapshotStream()
        self._lock = threading.Lock()
        self._started = False
        self._last_monitors: tuple[MonitorSnapshot, ...] | None = None
        self._detector_unsubscribe: Unsubscribe | None = None

    def subscribe(self, callback: NotificationCallback) -> Unsubscribe:
        """subscribe to DisplaySnapshotNotification values"""
        return self.stream.subscribe(callback)

    async def start(self) -> None:
        """hook up the detector; later calls do nothing"""
        with self._lock:
            if self._started:
                return
            self._started = True

        self._detector_unsubscribe = self.detector.subscribe(self._on_monitors)
        self.detector.start()
        logging.info("Display snapshot provider started")

    def stop(self) -> None:
        """detach from the detector and close the stream"""
        if self._detector_unsubscribe:
            self._detector_unsubscribe()
            self._detector_unsubscribe = None
        self.stream.close()

    def _on_monitors(self, monitors: Sequence[MonitorSnapshot], reason: str) -> None:
        current = tuple(monitors)
        with self._lock:
            if current == self._last_monitors:
                logging.debug("Ignoring unchanged monitor list (%s)", reason)
                return
            self._last_monitors = current

        snapshot = self.builder.build(current)
        logging.info(
            "Display topology changed (%s): %d monitor(s), preferred online=%s, edid=%s",
            reason,
            len(current),
            snapshot.preferred_monitor_online,
            snapshot.preferred_monitor_edid_key,
        )
        if self.stream.closed:
            return
        self.stream.publish(DisplaySnapshotNotification(snapshot=snapshot, reason=reason))
