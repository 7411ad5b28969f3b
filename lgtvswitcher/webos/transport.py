#!/usr/bin/env python3
"""
webOS WebSocket Transport

Thin duplex, message-framed connection over aiohttp's WebSocket client.
Every socket level failure is surfaced as TransportError so the session can
decide whether to reconnect.
"""

import asyncio
import contextlib
import logging
import ssl

import aiohttp

from .types import TransportError


class WebSocketTransport:
    """connect / send / receive one message / close"""

    def __init__(self, connect_timeout: float = 10.0):
        self.connect_timeout = connect_timeout
        self.session: aiohttp.ClientSession | None = None
        self.websocket: aiohttp.ClientWebSocketResponse | None = None
        self.url: str | None = None

    @property
    def is_open(self) -> bool:
        """True while the websocket is usable"""
        return self.websocket is not None and not self.websocket.closed

    @staticmethod
    def _ssl_context(url: str) -> ssl.SSLContext | bool:
        """webOS TVs present self-signed certificates"""
        if not url.startswith("wss://"):
            return True
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        logging.warning("Ignoring TLS certificate validation for %s", url)
        return context

    async def connect(self, url: str) -> None:
        """open the websocket, closing any previous connection first"""
        if self.is_open and self.url == url:
            return

        await self.close()

        self.url = url
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, connect=self.connect_timeout)
        )
        try:
            self.websocket = await self.session.ws_connect(
                url, ssl=self._ssl_context(url), heartbeat=30.0, max_msg_size=0
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as err:
            await self.close()
            raise TransportError(f"Failed to connect to {url}: {err}") from err

    async def send(self, message: str) -> None:
        """send one text frame"""
        if not self.is_open:
            raise TransportError("Transport is not connected.")

        try:
            await self.websocket.send_str(message)
        except (aiohttp.ClientError, OSError, RuntimeError) as err:
            raise TransportError(f"Failed to send to {self.url}: {err}") from err
        logging.debug("Sent message: %s", message)

    async def receive(self) -> str:
        """receive exactly one text message"""
        if not self.is_open:
            raise TransportError("Transport is not connected.")

        try:
            msg = await self.websocket.receive()
        except (aiohttp.ClientError, OSError) as err:
            raise TransportError(f"Failed to receive from {self.url}: {err}") from err

        if msg.type == aiohttp.WSMsgType.TEXT:
            logging.debug("Received message: %s", msg.data)
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            text = msg.data.decode("utf-8", errors="replace")
            logging.debug("Received binary message: %s", text)
            return text
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise TransportError(f"WebSocket error from {self.url}: {self.websocket.exception()}")

        # CLOSE, CLOSING, CLOSED
        raise TransportError(f"WebSocket to {self.url} closed ({msg.type.name})")

    async def close(self) -> None:
        """close everything, never raises"""
        if self.websocket is not None:
            with contextlib.suppress(Exception):
                await self.websocket.close()
            self.websocket = None
        if self.session is not None:
            with contextlib.suppress(Exception):
                await self.session.close()
            self.session = None
