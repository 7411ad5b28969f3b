#!/usr/bin/env python3
"""pytest fixtures"""

import contextlib
import json
import os
import pathlib
import shutil
import sys
import tempfile

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from PySide6.QtCore import (  # pylint: disable=import-error, no-name-in-module
    QCoreApplication,
    QSettings,
)

# no display server in CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import lgtvswitcher.bootstrap  # pylint: disable=wrong-import-position
import lgtvswitcher.config  # pylint: disable=wrong-import-position
from lgtvswitcher.webos.types import (  # pylint: disable=wrong-import-position
    FOREGROUND_APP_INFO_URI,
    SWITCH_INPUT_URI,
)

# DO NOT CHANGE THIS TO BE com.github.lgtvswitcher
# otherwise your actual pairing will disappear!
DOMAIN = "com.github.lgtvswitcher.testsuite"


def reboot_macosx_prefs():
    """work around Mac OS X's preference caching"""
    if sys.platform == "darwin":
        os.system(f"defaults delete {DOMAIN}")


@pytest.fixture
def bootstrap(qapp):  # pylint: disable=unused-argument
    """bootstrap a configuration"""
    with contextlib.suppress(PermissionError):  # Windows blows
        with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as newpath:
            rmdir = newpath
            lgtvswitcher.bootstrap.set_qt_names(domain=DOMAIN, appname="testsuite")
            config = lgtvswitcher.config.ConfigFile(
                logpath=pathlib.Path(newpath).joinpath("debug.log"), testmode=True
            )
            config.cparser.sync()
            yield config
            if pathlib.Path(rmdir).exists():
                shutil.rmtree(rmdir)


#
# OS X has a lot of caching wrt preference files
# so we have do a lot of work to make sure they
# don't stick around
#
@pytest.fixture(autouse=True, scope="function")
def clear_old_testsuite(qapp):  # pylint: disable=unused-argument
    """clear out old testsuite configs"""
    if sys.platform == "win32":
        qsettingsformat = QSettings.IniFormat
    else:
        qsettingsformat = QSettings.NativeFormat

    lgtvswitcher.bootstrap.set_qt_names(domain=DOMAIN, appname="testsuite")
    for scope in (QSettings.SystemScope, QSettings.UserScope):
        config = QSettings(
            qsettingsformat,
            scope,
            QCoreApplication.organizationName(),
            QCoreApplication.applicationName(),
        )
        config.clear()
        config.sync()

    config = QSettings(
        qsettingsformat,
        QSettings.UserScope,
        QCoreApplication.organizationName(),
        QCoreApplication.applicationName(),
    )
    filename = pathlib.Path(config.fileName())
    del config
    if filename.exists():
        filename.unlink()
    reboot_macosx_prefs()
    yield filename
    if filename.exists():
        filename.unlink()
    reboot_macosx_prefs()


class FakeTv:  # pylint: disable=too-many-instance-attributes
    """In-process webOS SSAP endpoint for session tests"""

    def __init__(self):
        self.port: int = 0
        self.client_key = "fake-client-key"
        self.prompt = False
        self.register_error: str | None = None
        self.register_silent = False
        self.current_app = "com.webos.app.hdmi1"
        self.not_registered_responses = 0
        self.drop_requests = 0
        self.errors: dict[str, str] = {}
        self.connections = 0
        self.registrations: list[dict] = []
        self.requests: list[str] = []
        self.switches: list[str] = []

    async def handler(self, request: web.Request) -> web.WebSocketResponse:
        """one websocket connection"""
        websocket = web.WebSocketResponse()
        await websocket.prepare(request)
        self.connections += 1
        async for msg in websocket:
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            await self._handle(websocket, json.loads(msg.data))
        return websocket

    async def _handle(self, websocket: web.WebSocketResponse, data: dict) -> None:
        msgid = data.get("id")
        if data.get("type") == "register":
            self.registrations.append(data.get("payload", {}))
            if self.register_silent:
                return
            if self.register_error:
                await websocket.send_json({"type": "error", "id": msgid, "error": self.register_error})
                return
            if self.prompt:
                await websocket.send_json(
                    {
                        "type": "response",
                        "id": msgid,
                        "payload": {"pairingType": "PROMPT", "returnValue": True},
                    }
                )
            await websocket.send_json(
                {"type": "registered", "id": msgid, "payload": {"client-key": self.client_key}}
            )
            return

        uri = data.get("uri")
        self.requests.append(uri)
        if self.drop_requests > 0:
            self.drop_requests -= 1
            await websocket.close()
            return

        if self.not_registered_responses > 0:
            self.not_registered_responses -= 1
            await websocket.send_json(
                {
                    "type": "error",
                    "id": msgid,
                    "error": "401 insufficient permissions (not registered)",
                    "payload": {},
                }
            )
            return

        if uri in self.errors:
            await websocket.send_json(
                {"type": "error", "id": msgid, "error": self.errors[uri], "payload": {}}
            )
            return

        if uri == SWITCH_INPUT_URI:
            input_id = data["payload"]["inputId"]
            self.switches.append(input_id)
            self.current_app = f"com.webos.app.{input_id.replace('_', '').lower()}"
            await websocket.send_json(
                {"type": "response", "id": msgid, "payload": {"returnValue": True}}
            )
        elif uri == FOREGROUND_APP_INFO_URI:
            await websocket.send_json(
                {
                    "type": "response",
                    "id": msgid,
                    "payload": {"returnValue": True, "appId": self.current_app},
                }
            )
        else:
            await websocket.send_json(
                {"type": "error", "id": msgid, "error": "404 no such service or method"}
            )


@pytest_asyncio.fixture
async def faketv():
    """a FakeTv listening on 127.0.0.1"""
    tv = FakeTv()
    app = web.Application()
    app.router.add_get("/", tv.handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    tv.port = runner.addresses[0][1]
    yield tv
    await runner.cleanup()
