#!/usr/bin/env python3
"""High level TV control: the two commands the switcher needs"""

import logging

from .parser import ResponseParser
from .session import WebOsSession
from .types import FOREGROUND_APP_INFO_URI, SWITCH_INPUT_URI


class WebOsController:
    """switch inputs and ask the TV which input is showing"""

    def __init__(self, session: WebOsSession, parser: ResponseParser | None = None):
        self.session = session
        self.parser = parser or session.parser

    async def __aenter__(self) -> "WebOsController":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def ensure_connected(self) -> None:
        """connect and pair if needed"""
        await self.session.ensure_connected()

    async def switch_input(self, input_id: str) -> None:
        """ssap://tv/switchInput"""
        if not input_id or not input_id.strip():
            raise ValueError("input_id cannot be empty.")

        logging.info("Sending switchInput to %s", input_id)
        await self.session.send_request(SWITCH_INPUT_URI, {"inputId": input_id})

    async def get_current_input(self) -> str | None:
        """HDMI_n for HDMI inputs, the raw appId otherwise, None if unknown"""
        payload = await self.session.send_request(FOREGROUND_APP_INFO_URI)
        current = self.parser.parse_current_input(payload)
        logging.debug("LG TV current input: %s", current)
        return current

    async def close(self) -> None:
        """close the underlying session"""
        await self.session.close()
