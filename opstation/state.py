"""
Operator control state shared between command sources and the guidance loop.
"""

from __future__ import annotations

import threading
from dataclasses import fields, replace

from common.types import ControlSnapshot, FlightMode

_WRITABLE = {f.name for f in fields(ControlSnapshot)} - {"version"}


class ControlState:
    """
    Versioned copy-on-write cell holding a frozen ControlSnapshot.
    Writers replace the whole snapshot under a lock, so a reader always sees the
    fields of a single update together.
    """

    def __init__(self, initial: ControlSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial or ControlSnapshot()

    def snapshot(self) -> ControlSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> int:
        return self.snapshot().version

    def update(self, **changes) -> ControlSnapshot:
        """Atomically apply any of x, y, z, r, mode, arm; returns the new snapshot."""
        unknown = set(changes) - _WRITABLE
        if unknown:
            raise TypeError(f"Unknown control fields: {sorted(unknown)}")
        if "mode" in changes:
            changes["mode"] = FlightMode(changes["mode"])
        if "arm" in changes:
            changes["arm"] = bool(changes["arm"])
        for axis in ("x", "y", "z", "r"):
            if axis in changes:
                changes[axis] = float(changes[axis])
        with self._lock:
            self._snapshot = replace(self._snapshot, version=self._snapshot.version + 1, **changes)
            return self._snapshot

    def set_setpoint(self, x: float, y: float, z: float, r: float) -> ControlSnapshot:
        return self.update(x=x, y=y, z=z, r=r)

    def set_mode(self, mode: FlightMode, arm: bool) -> ControlSnapshot:
        return self.update(mode=mode, arm=arm)
