#!/usr/bin/env python3
"""
webOS Session

This module owns the connection and registration state for a single TV.
It resolves connection candidates, performs the pairing handshake, and
dispatches requests with a bounded reconnect/re-register retry.
"""

import asyncio
import json
import logging
import urllib.parse
import uuid
from typing import TYPE_CHECKING, Any, Protocol

from .parser import ResponseParser
from .transport import WebSocketTransport
from .types import (
    MANIFEST_PERMISSIONS,
    MANIFEST_VERSION,
    REGISTRATION_TIMEOUT,
    CommandError,
    DiscoveryResult,
    RegistrationError,
    RegistrationResponse,
    RegistrationStatus,
    ResponseEnvelope,
    TransportError,
    WebOsEndpoint,
)

if TYPE_CHECKING:
    from lgtvswitcher.options import SwitcherOptions

    from .keystore import ClientKeyStore


class DiscoveryService(Protocol):  # pylint: disable=too-few-public-methods
    """source of TV candidates"""

    async def discover(self) -> list[DiscoveryResult]:
        """best-effort discovery, may be empty"""


class WebOsSession:  # pylint: disable=too-many-instance-attributes
    """Connection + registration state for one TV"""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        options: "SwitcherOptions",
        discovery: DiscoveryService | None = None,
        keystore: "ClientKeyStore | None" = None,
        transport: WebSocketTransport | None = None,
        parser: ResponseParser | None = None,
        scheme: str = "wss",
        registration_timeout: float = REGISTRATION_TIMEOUT,
    ):
        self.options = options
        self.discovery = discovery
        self.keystore = keystore
        self.transport = transport or WebSocketTransport()
        self.parser = parser or ResponseParser()
        self.scheme = scheme
        self.registration_timeout = registration_timeout
        self.active_host: str | None = None
        self.active_usn: str | None = None
        self.is_registered = False
        self._connection_lock = asyncio.Lock()
        self._request_lock = asyncio.Lock()
        self._closed = False

    @property
    def is_ready(self) -> bool:
        """transport open and registered"""
        return self.transport.is_open and self.is_registered

    async def __aenter__(self) -> "WebOsSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def ensure_connected(self) -> None:
        """connect and register unless already ready"""
        if self.is_ready:
            logging.debug("Already connected and registered with LG TV")
            return

        async with self._connection_lock:
            if self.is_ready:
                return

            candidates = await self._resolve_candidates()
            if not candidates:
                raise RegistrationError("No LG TV discovered via SSDP or configuration.")

            if not self.options.client_key:
                logging.info(
                    "No client-key configured. Accept the pairing prompt on the TV to continue."
                )

            last_error: Exception | None = None
            for candidate in candidates:
                try:
                    await self._connect_transport(candidate)
                    response = await self._register()
                    await self._persist_registration(response, candidate)
                    self.is_registered = True
                    logging.info("Registered with LG TV at %s", candidate.host)
                    return
                except (RegistrationError, TransportError) as err:
                    last_error = err
                    logging.warning(
                        "Failed to connect/register with LG TV at %s: %s. Trying next candidate.",
                        candidate.host,
                        err,
                    )
                    await self._reset()

            raise RegistrationError(
                "Failed to register with any discovered LG TV."
            ) from last_error

    async def send_request(self, uri: str, payload: dict[str, Any] | None = None) -> Any:
        """send one request and return the response payload"""
        await self.ensure_connected()

        envelope: dict[str, Any] = {"id": str(uuid.uuid4()), "type": "request", "uri": uri}
        if payload is not None:
            envelope["payload"] = payload
        message = json.dumps(envelope)

        transport_retries = 1
        auth_retries = 1
        while True:
            try:
                response_json = await self._round_trip(message)
            except TransportError as err:
                if transport_retries <= 0:
                    raise
                transport_retries -= 1
                logging.warning(
                    "LG TV transport failed (%s). Re-establishing session and retrying.", err
                )
                await self._reset()
                await self.ensure_connected()
                continue

            response = self.parser.parse_response(response_json, uri)
            if response.id and response.id != envelope["id"]:
                logging.debug("Response id %s does not match request %s", response.id, envelope["id"])

            if self._is_not_registered(response):
                if auth_retries <= 0:
                    raise CommandError(
                        f"LG TV rejected '{uri}' because the client is not registered: "
                        f"{response.error}"
                    )
                auth_retries -= 1
                logging.warning(
                    "LG TV reports the client is not registered for %s. "
                    "Re-establishing the session.",
                    uri,
                )
                self.is_registered = False
                await self.ensure_connected()
                continue

            if response.type.lower() == "error" and response.error and response.error.strip():
                host = self.active_host or self.options.tv_host
                raise CommandError(
                    f"LG TV returned an error for '{uri}' on {host}:{self.options.tv_port}: "
                    f"{response.error}"
                )

            return response.payload

    async def close(self) -> None:
        """release the transport; safe to call more than once"""
        if self._closed:
            return
        self._closed = True
        self.is_registered = False
        await self.transport.close()

    async def _round_trip(self, message: str) -> str:
        async with self._request_lock:
            await self.transport.send(message)
            return await self.transport.receive()

    async def _reset(self) -> None:
        self.is_registered = False
        self.active_host = None
        self.active_usn = None
        await self.transport.close()

    async def _connect_transport(self, endpoint: WebOsEndpoint) -> None:
        url = f"{self.scheme}://{endpoint.host}:{self.options.tv_port}"
        logging.info("Connecting to LG TV at %s", url)
        if self.transport.is_open:
            await self.transport.close()
        await self.transport.connect(url)
        self._closed = False
        self.active_host = endpoint.host
        self.active_usn = endpoint.usn
        self.is_registered = False

    async def _resolve_candidates(self) -> list[WebOsEndpoint]:
        discovered: list[DiscoveryResult] = []
        if self.discovery:
            try:
                discovered = await self.discovery.discover()
            except Exception as err:  # pylint: disable=broad-exception-caught
                logging.warning("LG TV discovery failed: %s", err)

        preferred = self.options.preferred_tv_usn
        if preferred and preferred.strip():
            for result in discovered:
                if result.usn and result.usn.lower() == preferred.lower():
                    return [self.to_endpoint(result)]
            logging.warning(
                "PreferredTvUsn %s was not found via SSDP discovery. "
                "Falling back to discovered candidates.",
                preferred,
            )

        if discovered:
            return [self.to_endpoint(result) for result in discovered]

        if self.options.tv_host and self.options.tv_host.strip():
            logging.warning(
                "No LG TV discovered via SSDP. Falling back to configured TvHost %s.",
                self.options.tv_host,
            )
            return [WebOsEndpoint(host=self.options.tv_host)]

        return []

    async def _persist_registration(
        self, response: RegistrationResponse, endpoint: WebOsEndpoint
    ) -> None:
        key_changed, usn_changed = self.options.remember_pairing(
            client_key=response.client_key, preferred_tv_usn=endpoint.usn
        )
        if key_changed:
            logging.info("Received client-key from LG TV.")
        if not self.keystore:
            return

        try:
            if key_changed:
                await self.keystore.persist_client_key(response.client_key)
            if usn_changed:
                await self.keystore.persist_preferred_tv_usn(endpoint.usn)
        except Exception as err:  # pylint: disable=broad-exception-caught
            logging.error("Failed to persist LG TV pairing state: %s", err)

    def _registration_message(self) -> str:
        payload: dict[str, Any] = {
            "manifest": {
                "manifestVersion": MANIFEST_VERSION,
                "permissions": list(MANIFEST_PERMISSIONS),
            }
        }
        if self.options.client_key:
            payload["client-key"] = self.options.client_key
        return json.dumps({"id": str(uuid.uuid4()), "type": "register", "payload": payload})

    async def _register(self) -> RegistrationResponse:
        logging.info("Registering with LG TV")
        await self.transport.send(self._registration_message())
        try:
            return await asyncio.wait_for(
                self._wait_for_registration(), timeout=self.registration_timeout
            )
        except asyncio.TimeoutError as err:
            raise RegistrationError("Timed out waiting for LG TV pairing confirmation.") from err

    async def _wait_for_registration(self) -> RegistrationResponse:
        while True:
            response_json = await self.transport.receive()
            if not response_json or not response_json.strip():
                raise RegistrationError("Empty registration response received from LG TV.")

            response = self.parser.parse_registration_response(response_json)
            if response.status == RegistrationStatus.REGISTERED:
                return response
            if response.status == RegistrationStatus.REQUIRES_PROMPT:
                logging.info("Waiting for pairing approval on the TV...")
                continue
            if response.status == RegistrationStatus.ERROR:
                raise RegistrationError(f"LG TV registration failed: {response.raw_json}")
            logging.debug("Ignoring registration response: %s", response_json)

    @staticmethod
    def _is_not_registered(response: ResponseEnvelope) -> bool:
        if response.type.lower() != "error" or not response.error:
            return False
        error = response.error.lower()
        return "401" in error and "not registered" in error

    @staticmethod
    def to_endpoint(result: DiscoveryResult) -> WebOsEndpoint:
        """prefer the LOCATION host over the responder address"""
        host = None
        if result.location and result.location.strip():
            try:
                host = urllib.parse.urlsplit(result.location).hostname
            except ValueError:
                host = None
        return WebOsEndpoint(host=host or result.address, usn=result.usn, location=result.location)
