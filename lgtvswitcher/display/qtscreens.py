#!/usr/bin/env python3
"""
Qt based monitor detection

Enumerates QGuiApplication.screens() and republishes the monitor list
whenever Qt reports a screen being added, removed or made primary.
The detector must be created on the Qt GUI thread; start() may be called
from any thread.
"""

import logging
import re
import threading
from typing import Callable, Sequence

from PySide6.QtCore import QObject, Signal, Slot  # pylint: disable=no-name-in-module
from PySide6.QtGui import QGuiApplication, QScreen  # pylint: disable=no-name-in-module

from .types import MonitorBounds, MonitorConnectionKind, MonitorSnapshot

MonitorCallback = Callable[[Sequence[MonitorSnapshot], str], None]


def _tokens(value: str | None) -> set[str]:
    if not value:
        return set()
    return {token for token in re.split(r"[^A-Z0-9]+", value.upper()) if token}


def infer_connection_kind(
    device_name: str | None, friendly_name: str | None
) -> MonitorConnectionKind:
    """best guess at the connection from the names the OS hands us"""
    names = " ".join(value for value in (device_name, friendly_name) if value).upper()
    tokens = _tokens(device_name) | _tokens(friendly_name)

    if "INTERNAL" in names or tokens & {"EDP", "LVDS", "DSI"}:
        return MonitorConnectionKind.INTERNAL
    if "DISPLAYPORT" in names or "DP" in tokens:
        return MonitorConnectionKind.DISPLAYPORT
    if "HDMI" in names:
        return MonitorConnectionKind.HDMI
    if "USB" in names:
        return MonitorConnectionKind.USB
    if "WIRELESS" in names or "MIRA" in names:
        return MonitorConnectionKind.WIRELESS
    if "VIRTUAL" in names:
        return MonitorConnectionKind.VIRTUAL
    return MonitorConnectionKind.UNKNOWN


class QtScreenDetector(QObject):
    """MonitorDetector backed by QGuiApplication"""

    refresh_requested = Signal(str)

    def __init__(self, connection_override: MonitorConnectionKind | None = None, app=None):
        super().__init__()
        self.connection_override = connection_override
        self.app = app or QGuiApplication.instance()
        self._callbacks: list[MonitorCallback] = []
        self._lock = threading.Lock()

        # queued to the GUI thread when emitted from elsewhere
        self.refresh_requested.connect(self.refresh)
        self.app.screenAdded.connect(self._on_screen_added)
        self.app.screenRemoved.connect(self._on_screen_removed)
        self.app.primaryScreenChanged.connect(self._on_primary_changed)

    def subscribe(self, callback: MonitorCallback) -> Callable[[], None]:
        """callback(monitors, reason) after every refresh"""
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def start(self) -> None:
        """publish the initial monitor list"""
        self.refresh_requested.emit("initial-startup")

    def screen_to_monitor(self, screen: QScreen, primary: QScreen | None) -> MonitorSnapshot:
        """QScreen to MonitorSnapshot"""
        device_name = screen.name() or ""
        friendly_name = " ".join(
            part for part in (screen.manufacturer(), screen.model()) if part
        ) or device_name
        edid_key = "-".join(part for part in (screen.model(), screen.serialNumber()) if part)
        geometry = screen.geometry()

        kind = self.connection_override or infer_connection_kind(device_name, friendly_name)
        return MonitorSnapshot(
            device_name=device_name,
            friendly_name=friendly_name,
            bounds=MonitorBounds(
                x=geometry.x(), y=geometry.y(), width=geometry.width(), height=geometry.height()
            ),
            is_primary=primary is not None and screen == primary,
            connection_kind=kind,
            edid_key=edid_key or None,
        )

    def enumerate(self, exclude: QScreen | None = None) -> list[MonitorSnapshot]:
        """all screens Qt currently knows about"""
        primary = QGuiApplication.primaryScreen()
        return [
            self.screen_to_monitor(screen, primary)
            for screen in QGuiApplication.screens()
            if exclude is None or screen != exclude
        ]

    @Slot(str)
    def refresh(self, reason: str, exclude: QScreen | None = None) -> None:
        """enumerate and notify subscribers"""
        monitors = self.enumerate(exclude)
        logging.debug("Qt reports %d screen(s) (%s)", len(monitors), reason)
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(monitors, reason)

    @Slot(QScreen)
    def _on_screen_added(self, screen: QScreen) -> None:
        logging.info("Screen added: %s", screen.name())
        self.refresh("screen-added")

    @Slot(QScreen)
    def _on_screen_removed(self, screen: QScreen) -> None:
        logging.info("Screen removed: %s", screen.name())
        self.refresh("screen-removed", exclude=screen)

    @Slot(QScreen)
    def _on_primary_changed(self, screen: QScreen) -> None:
        logging.info("Primary screen changed: %s", screen.name() if screen else None)
        self.refresh("primary-screen-changed")
