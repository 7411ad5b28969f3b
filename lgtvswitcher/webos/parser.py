#!/usr/bin/env python3
"""
SSAP Response Parser

This module turns raw webOS protocol JSON into typed envelopes, registration
outcomes and the TV's current input. It encapsulates all the message shape
details so the session only deals with typed values.
"""

import json
import logging
import string
from typing import Any

from .types import (
    HDMI_APP_PREFIX,
    CommandError,
    RegistrationResponse,
    RegistrationStatus,
    ResponseEnvelope,
)


class ResponseParser:
    """Handles SSAP response parsing"""

    @staticmethod
    def parse_response(json_text: str | None, request_uri: str) -> ResponseEnvelope:
        """Parse a response envelope, raising CommandError on garbage"""
        if not json_text or not json_text.strip():
            raise CommandError(f"LG TV returned an empty response for '{request_uri}'.")

        try:
            data = json.loads(json_text)
        except ValueError as err:
            raise CommandError(f"Failed to parse response from LG TV for '{request_uri}'.") from err

        if not isinstance(data, dict):
            raise CommandError(f"Failed to parse response from LG TV for '{request_uri}'.")

        msgtype = data.get("type")
        msgid = data.get("id")
        error = data.get("error")
        return ResponseEnvelope(
            type=msgtype if isinstance(msgtype, str) else "",
            id=str(msgid) if msgid is not None else None,
            payload=data.get("payload"),
            error=error if isinstance(error, str) else None,
        )

    @staticmethod
    def parse_registration_response(json_text: str | None) -> RegistrationResponse:
        """Classify a registration response. Never raises."""
        raw = json_text or ""
        try:
            envelope = ResponseParser.parse_response(json_text, "register")
        except CommandError as err:
            logging.debug("Unparsable registration response: %s", err)
            return RegistrationResponse(raw_json=raw, status=RegistrationStatus.UNKNOWN)

        client_key: str | None = None
        pairing_type: str | None = None
        return_value: bool | None = None

        if isinstance(envelope.payload, dict):
            payload = envelope.payload
            if isinstance(payload.get("client-key"), str):
                client_key = payload["client-key"]
            if isinstance(payload.get("pairingType"), str):
                pairing_type = payload["pairingType"]
            if isinstance(payload.get("returnValue"), bool):
                return_value = payload["returnValue"]

        msgtype = envelope.type.lower()
        if msgtype == "registered":
            status = RegistrationStatus.REGISTERED
        elif msgtype == "response":
            if pairing_type and pairing_type.upper() == "PROMPT":
                status = RegistrationStatus.REQUIRES_PROMPT
            elif return_value is True and client_key and client_key.strip():
                status = RegistrationStatus.REGISTERED
            else:
                status = RegistrationStatus.RESPONSE
        elif msgtype == "error":
            if envelope.error and "register already in progress" in envelope.error.lower():
                status = RegistrationStatus.REQUIRES_PROMPT
            else:
                status = RegistrationStatus.ERROR
        else:
            status = RegistrationStatus.UNKNOWN

        return RegistrationResponse(raw_json=raw, status=status, client_key=client_key)

    @staticmethod
    def parse_current_input(payload: str | dict[str, Any] | None) -> str | None:
        """Resolve the current input from a getForegroundAppInfo payload"""
        if payload is None or (isinstance(payload, str) and not payload.strip()):
            logging.warning("LG TV returned foreground app info response without a payload.")
            return None

        appinfo = payload
        if isinstance(payload, str):
            try:
                appinfo = json.loads(payload)
            except ValueError as err:
                logging.warning(
                    "Failed to deserialize getForegroundAppInfo payload %s: %s", payload, err
                )
                return None

        if not isinstance(appinfo, dict):
            logging.warning("Unexpected getForegroundAppInfo payload: %s", payload)
            return None

        if not appinfo.get("returnValue"):
            raise CommandError("LG TV rejected getForegroundAppInfo request.")

        appid = appinfo.get("appId")
        if not appid and isinstance(appinfo.get("foregroundAppInfo"), dict):
            appid = appinfo["foregroundAppInfo"].get("appId")

        if not isinstance(appid, str) or not appid.strip():
            logging.warning(
                "LG TV returned foreground app info response without an appId: %s", payload
            )
            return None

        return ResponseParser.map_app_id_to_input(appid) or appid

    @staticmethod
    def map_app_id_to_input(appid: str | None) -> str | None:
        """com.webos.app.hdmi3 -> HDMI_3, anything else -> None"""
        if not appid or not appid.lower().startswith(HDMI_APP_PREFIX):
            return None

        suffix = appid[len(HDMI_APP_PREFIX) :]
        digits = ""
        for char in suffix:
            if char not in string.digits:
                break
            digits += char

        if not digits:
            return None
        return f"HDMI_{int(digits)}"
