#!/usr/bin/env python3
"""
command line entry points

run       keep the TV in sync with the preferred monitor
discover  list TVs on the network and optionally remember one of them
"""

import argparse
import asyncio
import contextlib
import logging
import pathlib
import platform
import signal
import sys
import threading
from typing import Iterator, Sequence

from PySide6.QtCore import (  # pylint: disable=no-name-in-module
    QLockFile,
    QStandardPaths,
    QTimer,
)
from PySide6.QtGui import QGuiApplication  # pylint: disable=no-name-in-module

import lgtvswitcher
import lgtvswitcher.bootstrap
import lgtvswitcher.config
from lgtvswitcher.display.provider import DetectorSnapshotProvider
from lgtvswitcher.display.qtscreens import QtScreenDetector
from lgtvswitcher.syncworker import DisplaySyncWorker
from lgtvswitcher.webos.controller import WebOsController
from lgtvswitcher.webos.discovery import SsdpDiscoveryService
from lgtvswitcher.webos.keystore import ClientKeyStore, ConfigKeyStore
from lgtvswitcher.webos.session import DiscoveryService, WebOsSession
from lgtvswitcher.webos.types import DiscoveryResult

# a crashed switcher's lock may be taken over after this long
STALE_LOCK_MS = 30000


class AlreadyRunningError(Exception):
    """another switcher holds the lock"""


def lock_path(name: str = "lgtvswitcher") -> pathlib.Path:
    """where the per-user lock file lives"""
    tempdir = QStandardPaths.standardLocations(QStandardPaths.TempLocation)[0]
    return pathlib.Path(tempdir, f"{name}.lock")


@contextlib.contextmanager
def instance_lock(name: str = "lgtvswitcher") -> Iterator[QLockFile]:
    """hold the switcher lock; two switchers would fight over the TV"""
    path = lock_path(name)
    lockfile = QLockFile(str(path))
    lockfile.setStaleLockTime(STALE_LOCK_MS)
    if not lockfile.tryLock(0):
        if lockfile.error() == QLockFile.LockFailedError:
            raise AlreadyRunningError(f"{path} is held by another switcher, already running")
        raise AlreadyRunningError(f"cannot create {path}: {lockfile.error()}")
    try:
        yield lockfile
    finally:
        lockfile.unlock()


def normalize_args(argv: Sequence[str] | None) -> list[str]:
    """map the old --run/--discover/--pair style onto subcommands"""
    if not argv:
        return ["run"]

    args = list(argv)
    first = args[0].lower()
    if first.startswith("--discover"):
        return ["discover"] + args[1:]
    if first.startswith("--pair"):
        return ["discover"] + args
    if first.startswith("--run"):
        return ["run"] + args[1:]
    return args


def build_parser() -> argparse.ArgumentParser:
    """argparse layout for both commands"""
    parser = argparse.ArgumentParser(
        prog="lgtvswitcher",
        description="Switch an LG webOS TV's input when a monitor comes and goes",
    )
    parser.add_argument("--version", action="version", version=lgtvswitcher.__version__)
    parser.add_argument("--debug", action="store_true", help="force DEBUG logging")
    parser.add_argument("--logfile", default=None, help="write the log here")
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="run")
    subparsers.add_parser("run", help="run the switcher (default)")

    discover = subparsers.add_parser("discover", help="find TVs via SSDP")
    discover.add_argument(
        "--pair", action="store_true", help="remember the TV if exactly one is found"
    )
    discover.add_argument("--pair-usn", default=None, help="remember the TV with this USN")
    discover.add_argument("--pair-ip", default=None, help="remember the TV at this address")
    return parser


def select_pair_target(
    results: list[DiscoveryResult],
    pair_usn: str | None = None,
    pair_ip: str | None = None,
    pair: bool = False,
) -> DiscoveryResult | None:
    """pick the TV to remember; USN beats IP beats a lone --pair"""
    if not results:
        print("No TVs were found, nothing to pair with.")
        return None

    if pair_usn and pair_usn.strip():
        for result in results:
            if result.usn and result.usn.lower() == pair_usn.lower():
                return result
        print(f"USN {pair_usn} is not among the discovered TVs.")
        return None

    if pair_ip and pair_ip.strip():
        for result in results:
            if result.address.lower() == pair_ip.lower():
                return result
        print(f"IP {pair_ip} is not among the discovered TVs.")
        return None

    if pair and len(results) == 1:
        return results[0]

    if pair and len(results) > 1:
        print("More than one TV was found. Use --pair-usn or --pair-ip to choose one.")

    return None


async def discover(  # pylint: disable=too-many-arguments
    config: lgtvswitcher.config.ConfigFile,
    pair: bool = False,
    pair_usn: str | None = None,
    pair_ip: str | None = None,
    discovery: DiscoveryService | None = None,
    keystore: ClientKeyStore | None = None,
) -> DiscoveryResult | None:
    """print the SSDP candidates and store the chosen TV's USN"""
    discovery = discovery or SsdpDiscoveryService()
    keystore = keystore or ConfigKeyStore(config)

    results = await discovery.discover()
    print(f"LG TV candidates found via SSDP: {len(results)}")
    for index, result in enumerate(results):
        print(
            f"{index}: IP={result.address}  USN={result.usn or '(none)'}  "
            f"ST={result.st or ''}  LOCATION={result.location or ''}"
        )

    target = select_pair_target(results, pair_usn=pair_usn, pair_ip=pair_ip, pair=pair)
    if not target:
        return None

    if not target.usn or not target.usn.strip():
        print("The selected TV has no USN, so it cannot be remembered.")
        return None

    await keystore.persist_preferred_tv_usn(target.usn)
    print(f"Saved preferred TV USN: {target.usn} (IP={target.address})")
    return target


class SwitcherDaemon:
    """owns the asyncio side of the run command"""

    def __init__(self, config: lgtvswitcher.config.ConfigFile, detector):
        self.config = config
        self.detector = detector
        self.loop: asyncio.AbstractEventLoop | None = None
        self.stopevent: asyncio.Event | None = None
        self.started = threading.Event()

    async def run(self) -> None:
        """run until stop() is called"""
        self.loop = asyncio.get_running_loop()
        self.stopevent = asyncio.Event()
        self.started.set()

        options = self.config.options()
        provider = DetectorSnapshotProvider(self.detector, options)
        session = WebOsSession(
            options,
            discovery=SsdpDiscoveryService(),
            keystore=ConfigKeyStore(self.config),
        )
        async with WebOsController(session) as controller:
            worker = DisplaySyncWorker(provider, controller, options)
            async with worker:
                await self.stopevent.wait()
        provider.stop()

    def thread_main(self) -> None:
        """body of the asyncio thread"""
        try:
            asyncio.run(self.run())
        except Exception as error:  # pylint: disable=broad-exception-caught
            logging.exception("Switcher loop crashed: %s", error)
        finally:
            self.started.set()
            app = QGuiApplication.instance()
            if app:
                app.quit()

    def stop(self) -> None:
        """ask the asyncio side to shut down; safe from any thread"""
        if self.loop and self.stopevent:
            with contextlib.suppress(RuntimeError):
                self.loop.call_soon_threadsafe(self.stopevent.set)


def run(args: argparse.Namespace) -> int:  # pragma: no cover
    """the run command: Qt in the main thread, asyncio on a worker thread"""
    qapp = QGuiApplication(sys.argv[:1])
    qapp.setQuitOnLastWindowClosed(False)
    lgtvswitcher.bootstrap.set_qt_names(qapp)

    try:
        with instance_lock():
            lgtvswitcher.bootstrap.setuplogging(logdir=args.logfile, rotate=True)
            logging.info("starting up v%s on %s", lgtvswitcher.__version__, platform.platform())
            config = lgtvswitcher.config.ConfigFile(logpath=args.logfile)
            logging.getLogger().setLevel("DEBUG" if args.debug else config.loglevel)

            detector = QtScreenDetector(config.connection_override(), app=qapp)
            daemon = SwitcherDaemon(config, detector)
            thread = threading.Thread(target=daemon.thread_main, name="SwitcherLoop")

            signal.signal(signal.SIGINT, lambda *_: qapp.quit())
            signal.signal(signal.SIGTERM, lambda *_: qapp.quit())
            # let the interpreter see signals while Qt owns the main loop
            ticker = QTimer()
            ticker.timeout.connect(lambda: None)
            ticker.start(500)

            thread.start()
            daemon.started.wait()
            exitval = qapp.exec()
            daemon.stop()
            thread.join(timeout=10)
            logging.info("shutting main down v%s", config.version)
            return exitval
    except AlreadyRunningError as error:
        print(f"LGTVSwitcher appears to be already running: {error}", file=sys.stderr)
        return 1


def run_discover(args: argparse.Namespace) -> int:  # pragma: no cover
    """the discover command"""
    lgtvswitcher.bootstrap.set_qt_names()
    lgtvswitcher.bootstrap.setuplogging(logdir=args.logfile)
    config = lgtvswitcher.config.ConfigFile(logpath=args.logfile)
    logging.getLogger().setLevel("DEBUG" if args.debug else config.loglevel)
    asyncio.run(
        discover(config, pair=args.pair, pair_usn=args.pair_usn, pair_ip=args.pair_ip)
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:  # pragma: no cover
    """entrypoint"""
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(normalize_args(argv))
    if args.command == "discover":
        return run_discover(args)
    return run(args)
