"""
Command shaping: maps percent-scale velocity commands into ArduSub native
manual-control units and applies the per-axis offset rules.

Native ranges: x, y, r in [-1000, 1000] around 0; z in [0, 1000] around 500.
"""

from __future__ import annotations

import math

from common.types import ActuatorCommand
from opstation.params import Preset

PERCENT_LIMIT = 100.0
Z_MIDPOINT = 500
YAW_POSITIVE_BIAS = 5


def clamp_percent(value: float, limit: float = PERCENT_LIMIT) -> float:
    return max(-limit, min(limit, value))


def ardusub_xyr(percent: float) -> float:
    """-100..100 percent to -1000..1000."""
    return percent * 10.0


def ardusub_z(percent: float) -> float:
    """-100..100 percent to 0..1000 with 500 as neutral."""
    return (percent + 100.0) / 0.2


def to_native(value: float) -> int:
    return int(math.ceil(value))


def apply_deadband_offset(value: int, deadband: float, offset: float, positive_bias: float = 0) -> int:
    """Push values outside [-deadband, deadband] away from zero by `offset`."""
    if value > deadband:
        return to_native(value + offset + positive_bias)
    if value < -deadband:
        return to_native(value - offset)
    return value


def apply_vertical_offset(
    value: int, positive_offset: float, negative_offset: float, midpoint: int = Z_MIDPOINT
) -> int:
    """
    Above the midpoint add `positive_offset`; at or below it subtract `negative_offset`.
    The jump at the midpoint is intentional and kept as tuned on the vehicle.
    """
    if value > midpoint:
        return to_native(value + positive_offset)
    return to_native(value - negative_offset)


def shape_manual(x: float, y: float, z: float, r: float) -> ActuatorCommand:
    """Operator pass-through: scaling only, no offsets."""
    return ActuatorCommand(
        x=to_native(ardusub_xyr(x)),
        y=to_native(ardusub_xyr(y)),
        z=to_native(ardusub_z(z)),
        r=to_native(ardusub_xyr(r)),
    )


def shape_autonomous(vx: float, vy: float, vz: float, vr: float, preset: Preset) -> ActuatorCommand:
    """
    Shape PID outputs (percent) into a native command using the preset offsets.
    `vz` must already include the preset's base_z.
    """
    base = shape_manual(vx, vy, vz, vr)
    return ActuatorCommand(
        x=apply_deadband_offset(base.x, preset.deadband, preset.x_offset),
        y=apply_deadband_offset(base.y, preset.deadband, preset.y_offset),
        z=apply_vertical_offset(base.z, preset.z_offset_positive, preset.z_offset_negative),
        r=apply_deadband_offset(base.r, preset.deadband, preset.yaw_offset, YAW_POSITIVE_BIAS),
    )
