"""
In-memory frame tree: updater threads publish parent->child transforms and the
guidance loop looks up one frame relative to another.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from common.interface import PoseTree, TransformLookupError
from common.realtime import monotonic_time
from common.types import Pose

MAX_DEPTH = 64


class FrameTree(PoseTree):
    """Each child frame has exactly one parent; lookups compose along the tree."""

    def __init__(self, max_age: Optional[float] = None, clock=monotonic_time):
        if max_age is not None and max_age <= 0.0:
            raise ValueError("max_age must be positive")
        self.max_age = max_age
        self.clock = clock
        self._lock = threading.Lock()
        # child -> (parent, pose of child in parent, stamp)
        self._edges: Dict[str, Tuple[str, Pose, float]] = {}

    def set_transform(self, parent: str, child: str, pose: Pose) -> None:
        if not parent or not child:
            raise ValueError("frame names must not be empty")
        if parent == child:
            raise ValueError(f"frame '{child}' cannot be its own parent")
        with self._lock:
            self._edges[child] = (parent, pose, self.clock())

    def frames(self) -> set:
        with self._lock:
            names = set(self._edges)
            names.update(parent for parent, _, _ in self._edges.values())
        return names

    def _to_root(self, frame: str, edges) -> Tuple[str, Pose]:
        """Return (root name, pose of `frame` in root)."""
        pose = Pose()
        current = frame
        now = self.clock()
        for _ in range(MAX_DEPTH):
            edge = edges.get(current)
            if edge is None:
                return current, pose
            parent, local, stamp = edge
            if self.max_age is not None and now - stamp > self.max_age:
                raise TransformLookupError(f"transform {parent} -> {current} is stale ({now - stamp:.3f} s)")
            pose = local.compose(pose)
            current = parent
        raise TransformLookupError(f"frame '{frame}' exceeds depth {MAX_DEPTH} (cycle?)")

    def lookup(self, reference_frame: str, target_frame: str, time: float | None = None) -> Pose:
        # `time` is accepted for interface parity; only the latest transforms are kept
        with self._lock:
            edges = dict(self._edges)
        known = set(edges) | {parent for parent, _, _ in edges.values()}
        for name in (reference_frame, target_frame):
            if name not in known:
                raise TransformLookupError(f"frame '{name}' does not exist")
        if reference_frame == target_frame:
            return Pose()
        ref_root, ref_pose = self._to_root(reference_frame, edges)
        tgt_root, tgt_pose = self._to_root(target_frame, edges)
        if ref_root != tgt_root:
            raise TransformLookupError(
                f"'{reference_frame}' and '{target_frame}' are not connected (roots '{ref_root}', '{tgt_root}')"
            )
        return ref_pose.relative(tgt_pose)
