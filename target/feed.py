"""
ZeroMQ updater feed: subscribes to JSON messages from external pose and operator
sources and forwards them to the synchronizer, frame tree and control state.

Messages:
    {"kind": "pose", "role": "current"|"target", "position": [x, y, z], "orientation": [w, x, y, z]}
    {"kind": "pose", "parent": "local_origin_ned", "frame": "erov", "position": [...], "orientation": [...]}
    {"kind": "control", "x": 0, "y": 0, "z": 0, "r": 0, "mode": "GUIDED", "arm": true}
"""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, Optional

import zmq

from common.logger import get_logger
from common.types import Pose, PoseRole
from opstation.state import ControlState
from opstation.synchronizer import PoseSynchronizer
from target.frames import FrameTree

logger = get_logger("feed")

DEFAULT_ADDRESS = "tcp://localhost:5556"


class ZmqFeed:
    """Background SUB socket reader; every consumer is optional."""

    def __init__(
        self,
        address: str = DEFAULT_ADDRESS,
        synchronizer: Optional[PoseSynchronizer] = None,
        tree: Optional[FrameTree] = None,
        control_state: Optional[ControlState] = None,
        role_frames: Optional[Dict[str, str]] = None,
    ):
        self.address = address
        self.synchronizer = synchronizer
        self.tree = tree
        self.control_state = control_state
        # role -> (parent, child) used to mirror role-tagged poses into the tree
        self.role_frames = role_frames or {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0

    def __enter__(self) -> ZmqFeed:
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._receive_loop, daemon=True, name="zmq-feed")
        self._thread.start()
        logger.info(f"Feed subscribed to {self.address}")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None

    def handle(self, message: Dict[str, Any]) -> bool:
        """Apply one decoded message; returns False when it is ignored."""
        kind = message.get("kind")
        if kind == "pose":
            return self._handle_pose(message)
        if kind == "control" and self.control_state is not None:
            changes = {k: message[k] for k in ("x", "y", "z", "r", "mode", "arm") if k in message}
            self.control_state.update(**changes)
            return True
        return False

    def _handle_pose(self, message: Dict[str, Any]) -> bool:
        pose = Pose.from_sequences(message["position"], message["orientation"])
        handled = False
        role = message.get("role")
        if role is not None:
            role = PoseRole(role)
            if self.synchronizer is not None:
                self.synchronizer.push(role, pose)
                handled = True
            frames = self.role_frames.get(role.value)
            if frames is not None and self.tree is not None:
                self.tree.set_transform(frames[0], frames[1], pose)
                handled = True
        if "frame" in message and "parent" in message and self.tree is not None:
            self.tree.set_transform(message["parent"], message["frame"], pose)
            handled = True
        return handled

    def _receive_loop(self) -> None:
        context = zmq.Context()
        subscriber = context.socket(zmq.SUB)
        subscriber.connect(self.address)
        subscriber.setsockopt_string(zmq.SUBSCRIBE, "")
        subscriber.setsockopt(zmq.RCVTIMEO, 100)

        try:
            while not self._stop.is_set():
                try:
                    raw = subscriber.recv()
                except zmq.Again:
                    continue
                try:
                    message = json.loads(raw.decode("utf-8"))
                    if not isinstance(message, dict) or not self.handle(message):
                        self.dropped += 1
                except (ValueError, KeyError, TypeError) as exc:
                    self.dropped += 1
                    logger.warning(f"Dropping malformed feed message: {exc}")
        finally:
            subscriber.close()
            context.term()
