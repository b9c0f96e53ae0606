"""
Shared data structures for the guidance core, its collaborators and telemetry.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, Sequence

from common.math import Quaternion, Vector3D


@dataclass(frozen=True)
class Pose:
    """Position plus orientation of a frame, expressed in its parent frame."""

    position: Vector3D = field(default_factory=Vector3D)
    orientation: Quaternion = field(default_factory=Quaternion)

    @classmethod
    def from_xyz_yaw(cls, x: float, y: float, z: float, yaw: float = 0.0) -> Pose:
        return cls(Vector3D(x, y, z), Quaternion.from_yaw(yaw))

    @classmethod
    def from_sequences(cls, position: Sequence[float], orientation: Sequence[float]) -> Pose:
        """Build from [x, y, z] and scalar-first [w, x, y, z] sequences."""
        if len(position) != 3 or len(orientation) != 4:
            raise ValueError("position needs 3 values and orientation needs 4")
        q = Quaternion(*orientation)
        q.normalize()
        return cls(Vector3D(*position), q)

    @property
    def yaw(self) -> float:
        return self.orientation.yaw()

    def inverse(self) -> Pose:
        q_inv = self.orientation.conjugate()
        return Pose(-q_inv.rotate(self.position), q_inv)

    def compose(self, other: Pose) -> Pose:
        """Return self * other: `other` is expressed in the frame described by self."""
        q = self.orientation * other.orientation
        q.normalize()
        return Pose(self.position + self.orientation.rotate(other.position), q)

    def relative(self, other: Pose) -> Pose:
        """Express `other` in this pose's own frame (self^-1 * other)."""
        return self.inverse().compose(other)


@dataclass(frozen=True)
class PosePair:
    """Current and target pose sampled for one tick, in a shared reference frame."""

    current: Pose
    target: Pose


class PoseRole(Enum):
    CURRENT = "current"
    TARGET = "target"


class FlightMode(Enum):
    MANUAL = "MANUAL"
    STABILIZE = "STABILIZE"
    DEPTH_HOLD = "DEPTH_HOLD"
    GUIDED = "GUIDED"


@dataclass(frozen=True)
class ControlSnapshot:
    """
    Operator request as seen by one guidance tick:
    - x, y, z, r: manual setpoint in percent (-100..100)
    - mode, arm: requested flight mode and arm flag
    - version: incremented on every update of the owning ControlState
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    r: float = 0.0
    mode: FlightMode = FlightMode.MANUAL
    arm: bool = False
    version: int = 0

    @property
    def guided(self) -> bool:
        return self.mode is FlightMode.GUIDED and self.arm


@dataclass(frozen=True)
class ActuatorCommand:
    """Four-axis command in the actuator's native units."""

    x: int
    y: int
    z: int
    r: int

    def as_tuple(self) -> tuple:
        return (self.x, self.y, self.z, self.r)


@dataclass(frozen=True)
class TelemetryRecord:
    """
    Flat debug record emitted once per autonomous tick:
    - pout_*: shaped command in native units
    - raw_*: clamped PID outputs in percent, before offsets (raw_z excludes base_z)
    """

    pout_yaw: float
    pout_x: float
    pout_y: float
    pout_z: float
    raw_yaw: float
    raw_x: float
    raw_y: float
    raw_z: float
    error_yaw: float
    error_x: float
    error_y: float
    error_z: float
    target_yaw: float
    target_x: float
    target_y: float
    target_z: float
    current_yaw: float
    current_x: float
    current_y: float
    current_z: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)
