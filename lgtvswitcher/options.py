#!/usr/bin/env python3
"""Runtime options shared between the session, the worker and the key store"""

import threading
from dataclasses import dataclass, field

from lgtvswitcher.webos.types import DEFAULT_TV_PORT


@dataclass
class SwitcherOptions:  # pylint: disable=too-many-instance-attributes
    """
    Owned, mutable configuration record.

    client_key and preferred_tv_usn are learned at runtime; they must only be
    changed through remember_pairing() so concurrent readers never see a
    half-written pairing.
    """

    tv_host: str = "lgwebostv.local"
    tv_port: int = DEFAULT_TV_PORT
    client_key: str | None = None
    preferred_tv_usn: str | None = None
    target_input_id: str = "HDMI_1"
    fallback_input_id: str | None = None
    preferred_monitor_name: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def remember_pairing(
        self, client_key: str | None = None, preferred_tv_usn: str | None = None
    ) -> tuple[bool, bool]:
        """store newly learned values; returns which of them actually changed"""
        key_changed = False
        usn_changed = False
        with self._lock:
            if client_key and client_key.strip() and client_key != self.client_key:
                self.client_key = client_key
                key_changed = True
            if (
                preferred_tv_usn
                and preferred_tv_usn.strip()
                and preferred_tv_usn != self.preferred_tv_usn
            ):
                self.preferred_tv_usn = preferred_tv_usn
                usn_changed = True
        return key_changed, usn_changed

    def target_for(self, online: bool) -> str | None:
        """input to use for a given preferred monitor state"""
        return self.target_input_id if online else self.fallback_input_id
