"""
Small rigid-body math helpers: 3D vectors, unit quaternions and angle wrapping.
Quaternions are stored scalar-first (w, x, y, z).
"""

from __future__ import annotations

import math

import numpy as np


def wrap_angle(angle: float) -> float:
    """Wrap an angle in radians to [-pi, pi)."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


class Vector3D:
    """Thin wrapper around a length-3 numpy array."""

    __slots__ = ("v",)

    def __init__(self, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.v = np.array([x, y, z], dtype=float)

    @property
    def x(self) -> float:
        return float(self.v[0])

    @property
    def y(self) -> float:
        return float(self.v[1])

    @property
    def z(self) -> float:
        return float(self.v[2])

    def __add__(self, other: Vector3D) -> Vector3D:
        return Vector3D(*(self.v + other.v))

    def __sub__(self, other: Vector3D) -> Vector3D:
        return Vector3D(*(self.v - other.v))

    def __neg__(self) -> Vector3D:
        return Vector3D(*(-self.v))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vector3D):
            return NotImplemented
        return bool(np.array_equal(self.v, other.v))

    def __repr__(self) -> str:
        return f"Vector3D({self.x:.4f}, {self.y:.4f}, {self.z:.4f})"

    def norm(self) -> float:
        return float(np.linalg.norm(self.v))

    def distance(self, other: Vector3D) -> float:
        return float(np.linalg.norm(self.v - other.v))


class Quaternion:
    """Unit quaternion for rotations, scalar-first."""

    __slots__ = ("q",)

    def __init__(self, w: float = 1.0, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self.q = np.array([w, x, y, z], dtype=float)

    @classmethod
    def from_euler(cls, roll: float, pitch: float, yaw: float) -> Quaternion:
        """Build from intrinsic Z-Y-X (yaw, pitch, roll) angles in radians."""
        cr, sr = math.cos(roll / 2.0), math.sin(roll / 2.0)
        cp, sp = math.cos(pitch / 2.0), math.sin(pitch / 2.0)
        cy, sy = math.cos(yaw / 2.0), math.sin(yaw / 2.0)
        return cls(
            cr * cp * cy + sr * sp * sy,
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
        )

    @classmethod
    def from_yaw(cls, yaw: float) -> Quaternion:
        return cls(math.cos(yaw / 2.0), 0.0, 0.0, math.sin(yaw / 2.0))

    @classmethod
    def from_axis_angle(cls, axis, angle: float) -> Quaternion:
        axis = np.asarray(axis, dtype=float)
        n = np.linalg.norm(axis)
        if n < 1e-12:
            return cls()
        axis = axis / n
        s = math.sin(angle / 2.0)
        return cls(math.cos(angle / 2.0), *(axis * s))

    def __mul__(self, other: Quaternion) -> Quaternion:
        w1, x1, y1, z1 = self.q
        w2, x2, y2, z2 = other.q
        return Quaternion(
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        )

    def __repr__(self) -> str:
        w, x, y, z = self.q
        return f"Quaternion({w:.4f}, {x:.4f}, {y:.4f}, {z:.4f})"

    def conjugate(self) -> Quaternion:
        w, x, y, z = self.q
        return Quaternion(w, -x, -y, -z)

    def normalize(self) -> None:
        n = np.linalg.norm(self.q)
        if n < 1e-12:
            self.q = np.array([1.0, 0.0, 0.0, 0.0])
        else:
            self.q = self.q / n

    def rotate(self, vec: Vector3D) -> Vector3D:
        """Rotate a vector from the local frame into the parent frame."""
        return Vector3D(*(self.as_rotation_matrix() @ vec.v))

    def as_rotation_matrix(self) -> np.ndarray:
        w, x, y, z = self.q
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
                [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
                [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
            ]
        )

    def yaw(self) -> float:
        """Heading about Z taken from the Z-Y-X decomposition."""
        w, x, y, z = self.q
        return math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
