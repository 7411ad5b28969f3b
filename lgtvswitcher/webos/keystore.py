#!/usr/bin/env python3
"""Persist the pairing key and preferred TV identity"""

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import lgtvswitcher.config


class ClientKeyStore(Protocol):
    """anything that can durably remember pairing state"""

    async def persist_client_key(self, client_key: str) -> None:
        """remember the client key"""

    async def persist_preferred_tv_usn(self, preferred_tv_usn: str) -> None:
        """remember which TV we paired with"""


class ConfigKeyStore:
    """store pairing state in the QSettings backed config file"""

    def __init__(self, config: "lgtvswitcher.config.ConfigFile"):
        self.config = config

    async def persist_client_key(self, client_key: str) -> None:
        """write webos/clientkey"""
        if not client_key or not client_key.strip():
            return
        self.config.client_key = client_key
        self._persist("webos/clientkey", client_key)
        logging.info("Persisted client-key to %s", self.config.cparser.fileName())

    async def persist_preferred_tv_usn(self, preferred_tv_usn: str) -> None:
        """write webos/preferredusn"""
        if not preferred_tv_usn or not preferred_tv_usn.strip():
            return
        self.config.preferred_tv_usn = preferred_tv_usn
        self._persist("webos/preferredusn", preferred_tv_usn)
        logging.info(
            "Persisted preferred TV USN %s to %s",
            preferred_tv_usn,
            self.config.cparser.fileName(),
        )

    def _persist(self, key: str, value: str) -> None:
        try:
            self.config.cparser.setValue(key, value)
            self.config.cparser.sync()
        except Exception as err:  # pylint: disable=broad-exception-caught
            logging.error("Failed to persist %s: %s", key, err)
