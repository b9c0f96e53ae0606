"""
Interface definitions for the collaborators of the guidance loop: actuation link,
pose tree, pose providers and telemetry sinks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from common.types import FlightMode, Pose, PosePair, TelemetryRecord


class TransformLookupError(LookupError):
    """Raised by a pose tree when a frame is unknown or not connected."""


class PoseUnavailable(RuntimeError):
    """Raised by a pose provider when no fresh pose pair exists for this tick."""


class Actuation(ABC):
    """Vehicle command link. Calls are fire-and-forget from the caller's side."""

    @abstractmethod
    def set_manual_control(self, x: int, y: int, z: int, r: int) -> None:
        """Send a 4-axis command in native units."""

    @abstractmethod
    def arm(self, armed: bool) -> None:
        """Arm or disarm the vehicle."""

    @abstractmethod
    def set_flight_mode(self, mode: FlightMode) -> None:
        """Request a vehicle flight mode."""

    def start(self) -> None:
        """Optional lifecycle hook: open the link."""
        return None

    def close(self) -> None:
        """Optional cleanup hook."""
        return None


class PoseTree(ABC):
    """Frame graph able to express one frame relative to another."""

    @abstractmethod
    def lookup(self, reference_frame: str, target_frame: str, time: float | None = None) -> Pose:
        """Return the pose of target_frame in reference_frame or raise TransformLookupError."""


class PoseProvider(ABC):
    """Source of the (current, target) pose pair consumed by the guidance loop."""

    @abstractmethod
    def acquire(self) -> PosePair:
        """Return a fresh pose pair or raise PoseUnavailable."""


class TelemetrySink(ABC):
    """Receiver for per-tick debug records."""

    @abstractmethod
    def publish(self, record: TelemetryRecord) -> None:
        """Accept one record."""

    def close(self) -> None:
        return None
