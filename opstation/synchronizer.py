"""
Pose synchronizer: hands poses from asynchronous producers to the fixed-rate
guidance loop through one single-slot channel per role.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional

from common.realtime import monotonic_time
from common.types import Pose, PoseRole

DEFAULT_TIMEOUT = 0.2
DEFAULT_MAX_AGE = 0.2


class PoseSlot:
    """
    Single-slot rendezvous: the latest pushed pose wins and is consumed at most once.
    A pose overwritten before it is pulled is dropped, and so is one older than
    `max_age` seconds when it is finally pulled.
    """

    def __init__(self, max_age: Optional[float] = DEFAULT_MAX_AGE, clock=monotonic_time) -> None:
        if max_age is not None and max_age <= 0.0:
            raise ValueError("max_age must be positive")
        self.max_age = max_age
        self.clock = clock
        self._cond = threading.Condition()
        self._pose: Optional[Pose] = None
        self._stamp = 0.0
        self._fresh = False

    def put(self, pose: Pose) -> None:
        with self._cond:
            self._pose = pose
            self._stamp = self.clock()
            self._fresh = True
            self._cond.notify_all()

    def _expire(self) -> None:
        if self._fresh and self.max_age is not None and self.clock() - self._stamp > self.max_age:
            self._fresh = False

    def take(self, timeout: float) -> Optional[Pose]:
        """Wait up to `timeout` seconds for an unconsumed, unexpired pose; None on timeout."""
        with self._cond:
            self._expire()
            if not self._cond.wait_for(lambda: self._fresh, timeout=max(0.0, timeout)):
                return None
            self._fresh = False
            return self._pose

    def pending(self) -> bool:
        with self._cond:
            self._expire()
            return self._fresh

    def clear(self) -> None:
        with self._cond:
            self._pose = None
            self._fresh = False


class PoseSynchronizer:
    """Holds the most recent current/target poses pushed by updater threads."""

    def __init__(self, max_age: Optional[float] = DEFAULT_MAX_AGE, clock=monotonic_time) -> None:
        self._slots: Dict[PoseRole, PoseSlot] = {role: PoseSlot(max_age, clock) for role in PoseRole}

    def push(self, role: PoseRole, pose: Pose) -> None:
        self._slots[PoseRole(role)].put(pose)

    def pull(self, role: PoseRole, timeout: float = DEFAULT_TIMEOUT) -> Optional[Pose]:
        return self._slots[PoseRole(role)].take(timeout)

    def has_pending(self, role: PoseRole) -> bool:
        return self._slots[PoseRole(role)].pending()

    def reset(self) -> None:
        """Drop any unconsumed pose in every slot."""
        for slot in self._slots.values():
            slot.clear()
