#!/usr/bin/env python3
"""
Display to TV synchronization

Consumes display snapshot notifications, settles bursts, drops snapshots
that cannot be trusted or that change nothing, and drives the TV to the
input that matches the preferred monitor's state.
"""

import asyncio
import datetime
import logging
from typing import TYPE_CHECKING, Callable, Protocol

import aiohttp

from lgtvswitcher.display.equality import SnapshotEqualityComparer
from lgtvswitcher.display.types import (
    DisplaySnapshot,
    DisplaySnapshotNotification,
    MonitorConnectionKind,
    utcnow,
)
from lgtvswitcher.webos.types import TransportError, WebOsError

if TYPE_CHECKING:
    from lgtvswitcher.options import SwitcherOptions
    from lgtvswitcher.webos.controller import WebOsController

DEBOUNCE_SECONDS = 0.8
STALE_SECONDS = 5.0

# the TV cannot be reached at all
TRANSPORT_ERRORS = (TransportError, aiohttp.ClientError, OSError, asyncio.TimeoutError)

# failures of a single TV call that must not take the worker down
TV_ERRORS = (WebOsError,) + TRANSPORT_ERRORS


class SnapshotProvider(Protocol):
    """source of display notifications"""

    def subscribe(
        self, callback: Callable[[DisplaySnapshotNotification], None]
    ) -> Callable[[], None]:
        """returns an unsubscribe callable"""

    async def start(self) -> None:
        """begin producing notifications"""


class DisplaySyncWorker:  # pylint: disable=too-many-instance-attributes
    """keep the TV input in sync with the preferred monitor"""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        provider: SnapshotProvider,
        controller: "WebOsController",
        options: "SwitcherOptions",
        debounce: float = DEBOUNCE_SECONDS,
        stale_after: float = STALE_SECONDS,
    ):
        self.provider = provider
        self.controller = controller
        self.options = options
        self.debounce = debounce
        self.stale_after = datetime.timedelta(seconds=stale_after)
        self.comparer = SnapshotEqualityComparer(self.select_target)
        self.last_snapshot: DisplaySnapshot | None = None
        self.tasks: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._incoming: asyncio.Queue[DisplaySnapshotNotification] = asyncio.Queue()
        self._dispatch: asyncio.Queue[DisplaySnapshot] = asyncio.Queue()
        self._unsubscribe: Callable[[], None] | None = None

    def select_target(self, snapshot: DisplaySnapshot) -> str | None:
        """input the TV should show for this snapshot"""
        return self.options.target_for(snapshot.preferred_monitor_online)

    async def start(self) -> None:
        """subscribe, start the provider and spin up the pipeline"""
        if self._unsubscribe:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.provider.subscribe(self._on_notification)
        await self.provider.start()

        for coro in (self._pipeline(), self._dispatcher()):
            task = asyncio.create_task(coro)
            self.tasks.add(task)
            task.add_done_callback(self.tasks.discard)
        logging.info("Display sync worker started")

    async def stop(self) -> None:
        """unsubscribe and stop the pipeline"""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        tasks = list(self.tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logging.info("Display sync worker stopped")

    async def __aenter__(self) -> "DisplaySyncWorker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _on_notification(self, notification: DisplaySnapshotNotification) -> None:
        # may be called from the provider's thread
        if not self._loop or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._incoming.put_nowait, notification)

    async def _settle(self) -> DisplaySnapshotNotification:
        """wait for a burst of notifications to go quiet, return the last one"""
        latest = await self._incoming.get()
        while True:
            try:
                latest = await asyncio.wait_for(self._incoming.get(), timeout=self.debounce)
            except asyncio.TimeoutError:
                return latest

    def is_valid(self, snapshot: DisplaySnapshot) -> bool:
        """reject snapshots taken during transient enumeration states"""
        edid_key = snapshot.preferred_monitor_edid_key
        if not edid_key or not edid_key.strip():
            logging.debug("Dropping snapshot without an EDID key")
            return False
        if (
            snapshot.preferred_monitor is not None
            and snapshot.preferred_monitor.connection == MonitorConnectionKind.UNKNOWN
        ):
            logging.debug("Dropping snapshot with unknown connection kind")
            return False
        return True

    def is_stale(self, snapshot: DisplaySnapshot, now: datetime.datetime | None = None) -> bool:
        """older than the staleness window"""
        return snapshot.age(now or utcnow()) > self.stale_after

    def is_duplicate(self, snapshot: DisplaySnapshot) -> bool:
        """same switching situation as the last accepted snapshot"""
        return self.comparer.equals(self.last_snapshot, snapshot)

    async def _pipeline(self) -> None:
        try:
            while True:
                notification = await self._settle()
                snapshot = notification.snapshot
                logging.debug(
                    "Display snapshot settled (%s): online=%s edid=%s",
                    notification.reason,
                    snapshot.preferred_monitor_online,
                    snapshot.preferred_monitor_edid_key,
                )

                if not self.is_valid(snapshot):
                    continue
                if self.is_stale(snapshot):
                    logging.debug("Dropping stale snapshot from %s", snapshot.timestamp)
                    continue
                if self.is_duplicate(snapshot):
                    logging.debug("Display state unchanged, nothing to do")
                    continue

                self.last_snapshot = snapshot
                self._dispatch.put_nowait(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            logging.error("Display sync pipeline terminated: %s", error, exc_info=True)

    async def _dispatcher(self) -> None:
        while True:
            snapshot = await self._dispatch.get()
            try:
                await self.apply(snapshot)
            except asyncio.CancelledError:
                raise
            except Exception as error:  # pylint: disable=broad-exception-caught
                logging.error("Unexpected failure applying display state: %s", error, exc_info=True)

    async def apply(self, snapshot: DisplaySnapshot) -> None:
        """bring the TV to the input for this snapshot; never raises for TV trouble"""
        target = self.select_target(snapshot)
        if not target or not target.strip():
            logging.info(
                "No input configured for preferred monitor online=%s; leaving TV alone",
                snapshot.preferred_monitor_online,
            )
            return

        try:
            await self.controller.ensure_connected()
        except TV_ERRORS as error:
            logging.warning("Unable to connect to the TV: %s", error)
            return

        try:
            current = await self.controller.get_current_input()
        except TRANSPORT_ERRORS as error:
            logging.warning("Unable to query current TV input: %s", error)
            return
        except WebOsError as error:
            logging.warning("Failed to query current TV input; proceeding with switch: %s", error)
            current = None

        if current and current.casefold() == target.casefold():
            logging.info("TV already on %s, skipping switch", target)
            return

        logging.info("Switching TV input from %s to %s", current, target)
        try:
            await self.controller.switch_input(target)
        except asyncio.CancelledError:
            raise
        except Exception as error:  # pylint: disable=broad-exception-caught
            logging.error("Failed to switch TV input to %s: %s", target, error)
