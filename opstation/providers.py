"""
Pose providers: the two ways the guidance loop obtains its (current, target) pair.
"""

from __future__ import annotations

from common.interface import PoseProvider, PoseTree, PoseUnavailable, TransformLookupError
from common.types import PosePair, PoseRole
from opstation.synchronizer import DEFAULT_TIMEOUT, PoseSynchronizer


class TreeLookupProvider(PoseProvider):
    """Looks both poses up in a frame tree, relative to a fixed reference frame."""

    def __init__(self, tree: PoseTree, reference_frame: str, vehicle_frame: str, target_frame: str):
        self.tree = tree
        self.reference_frame = reference_frame
        self.vehicle_frame = vehicle_frame
        self.target_frame = target_frame

    def set_reference_frame(self, name: str) -> None:
        self.reference_frame = name

    def set_vehicle_frame(self, name: str) -> None:
        self.vehicle_frame = name

    def set_target_frame(self, name: str) -> None:
        self.target_frame = name

    def acquire(self) -> PosePair:
        try:
            current = self.tree.lookup(self.reference_frame, self.vehicle_frame)
            target = self.tree.lookup(self.reference_frame, self.target_frame)
        except TransformLookupError as exc:
            raise PoseUnavailable(str(exc)) from exc
        return PosePair(current=current, target=target)


class PushProvider(PoseProvider):
    """Pulls the latest pushed poses from a PoseSynchronizer with a bounded wait each."""

    def __init__(self, synchronizer: PoseSynchronizer, timeout: float = DEFAULT_TIMEOUT):
        if timeout <= 0.0:
            raise ValueError("timeout must be positive")
        self.synchronizer = synchronizer
        self.timeout = timeout

    def acquire(self) -> PosePair:
        current = self.synchronizer.pull(PoseRole.CURRENT, self.timeout)
        if current is None:
            raise PoseUnavailable("rov position unavailable")
        target = self.synchronizer.pull(PoseRole.TARGET, self.timeout)
        if target is None:
            raise PoseUnavailable("target position unavailable")
        return PosePair(current=current, target=target)
