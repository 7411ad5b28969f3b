#!/usr/bin/env python3
"""Change detection between two display snapshots"""

from typing import Callable

from .types import DisplaySnapshot

TargetSelector = Callable[[DisplaySnapshot], str | None]


def _fold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


class SnapshotEqualityComparer:
    """
    Decide whether two snapshots describe the same switching situation.

    Two snapshots are equal when the online flag, the EDID key
    (case-insensitive), the preferred monitor's connection kind and, if a
    selector is given, the resulting target input (case-insensitive) all
    match.  hash() covers the same fields.
    """

    def __init__(self, target_selector: TargetSelector | None = None):
        self.target_selector = target_selector

    def _key(self, snapshot: DisplaySnapshot) -> tuple:
        key: tuple = (
            snapshot.preferred_monitor_online,
            _fold(snapshot.preferred_monitor_edid_key),
            snapshot.preferred_connection,
        )
        if self.target_selector:
            key += (_fold(self.target_selector(snapshot)),)
        return key

    def equals(self, first: DisplaySnapshot | None, second: DisplaySnapshot | None) -> bool:
        """True if both snapshots lead to the same switching decision"""
        if first is second:
            return True
        if first is None or second is None:
            return False
        return self._key(first) == self._key(second)

    def hash(self, snapshot: DisplaySnapshot | None) -> int:
        """hash consistent with equals()"""
        if snapshot is None:
            return 0
        return hash(self._key(snapshot))
