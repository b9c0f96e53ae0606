"""
Guidance configuration: PID presets for the simulated and physical vehicle, frame
names and loop timing. Runtime selection comes from OPSTATION_* environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional

# PID channel clamp; the loop narrows outputs to +-100 before shaping
VMAX = 1000.0
VMIN = -1000.0

DEFAULT_REFERENCE_FRAME = "local_origin_ned"
DEFAULT_VEHICLE_FRAME = "erov"
DEFAULT_TARGET_FRAME = "bluerov2_ghost"


@dataclass(frozen=True)
class PIDGains:
    kp: float
    kd: float
    filter_constant: float
    ki: float = 0.0
    max_output: float = VMAX
    min_output: float = VMIN


@dataclass(frozen=True)
class Preset:
    """
    Per-vehicle tuning:
    - yaw/x/y/z: PID gains per channel
    - base_z: vertical bias added to the z PID output (percent)
    - x_offset, y_offset, yaw_offset: native-unit offsets outside the deadband
    - z_offset_positive / z_offset_negative: offsets above / at-or-below the vertical midpoint
    """

    name: str
    yaw: PIDGains
    x: PIDGains
    y: PIDGains
    z: PIDGains
    base_z: float
    x_offset: float
    y_offset: float
    yaw_offset: float
    z_offset_negative: float
    z_offset_positive: float
    deadband: float = 0.0


SITL = Preset(
    name="sitl",
    yaw=PIDGains(kp=10, kd=20, filter_constant=0.05),
    x=PIDGains(kp=10, kd=60, filter_constant=0.05),
    y=PIDGains(kp=10, kd=60, filter_constant=0.05),
    z=PIDGains(kp=20, kd=10, filter_constant=0.1),
    base_z=-77,
    x_offset=60,
    y_offset=60,
    yaw_offset=400,
    z_offset_negative=10,
    z_offset_positive=0,
)

HARDWARE = Preset(
    name="hardware",
    yaw=PIDGains(kp=10, kd=20, filter_constant=0.05),
    x=PIDGains(kp=20, kd=60, filter_constant=0.05),
    y=PIDGains(kp=20, kd=60, filter_constant=0.05),
    z=PIDGains(kp=20, kd=10, filter_constant=0.05),
    base_z=-20,
    x_offset=45,
    y_offset=45,
    yaw_offset=440,
    z_offset_negative=10,
    z_offset_positive=100,
)

PRESETS: Dict[str, Preset] = {p.name: p for p in (SITL, HARDWARE)}


def preset_by_name(name: str) -> Preset:
    key = (name or "").strip().lower()
    try:
        return PRESETS[key]
    except KeyError:
        raise ValueError(f"Unknown preset '{name}' (expected one of {sorted(PRESETS)})") from None


@dataclass(frozen=True)
class GuidanceParams:
    """Everything the guidance loop needs besides its collaborators."""

    preset: Preset = SITL
    use_tree_lookup: bool = True
    reference_frame: str = DEFAULT_REFERENCE_FRAME
    vehicle_frame: str = DEFAULT_VEHICLE_FRAME
    target_frame: str = DEFAULT_TARGET_FRAME
    tick_period: float = 0.1
    abort_backoff: float = 0.05
    pose_timeout: float = 0.2
    extra: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("tick_period", "abort_backoff", "pose_timeout"):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive")
        for name in ("reference_frame", "vehicle_frame", "target_frame"):
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> GuidanceParams:
        """
        Read OPSTATION_PRESET (sitl|hardware), OPSTATION_POSE_SOURCE (tree|push) and
        OPSTATION_REF_FRAME / OPSTATION_VEHICLE_FRAME / OPSTATION_TARGET_FRAME.
        Remaining OPSTATION_* values are kept in `extra` for the entry point.
        """
        env = os.environ if environ is None else environ
        source = (env.get("OPSTATION_POSE_SOURCE") or "tree").strip().lower()
        if source not in {"tree", "push"}:
            raise ValueError(f"OPSTATION_POSE_SOURCE must be 'tree' or 'push', got '{source}'")
        params = cls(
            preset=preset_by_name(env.get("OPSTATION_PRESET") or "sitl"),
            use_tree_lookup=source == "tree",
            reference_frame=env.get("OPSTATION_REF_FRAME") or DEFAULT_REFERENCE_FRAME,
            vehicle_frame=env.get("OPSTATION_VEHICLE_FRAME") or DEFAULT_VEHICLE_FRAME,
            target_frame=env.get("OPSTATION_TARGET_FRAME") or DEFAULT_TARGET_FRAME,
        )
        extra = {k: v for k, v in env.items() if k.startswith("OPSTATION_")}
        return replace(params, extra=extra)

    def option(self, key: str, default: str = "") -> str:
        return self.extra.get(key, default)
