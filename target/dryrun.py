"""
Dry-run actuation: logs every command instead of talking to a vehicle.
"""

from __future__ import annotations

from typing import Optional

from common.interface import Actuation
from common.logger import get_logger
from common.types import ActuatorCommand, FlightMode

logger = get_logger("dryrun")


class DryRunActuation(Actuation):
    """Keeps the last command, arm flag and mode for inspection."""

    def __init__(self):
        self.command: Optional[ActuatorCommand] = None
        self.armed = False
        self.mode = FlightMode.MANUAL
        self.started = False

    def start(self) -> None:
        self.started = True
        logger.info("Dry-run actuation started")

    def set_manual_control(self, x: int, y: int, z: int, r: int) -> None:
        self.command = ActuatorCommand(int(x), int(y), int(z), int(r))
        logger.debug(f"MANUAL_CONTROL x={x} y={y} z={z} r={r}")

    def arm(self, armed: bool) -> None:
        if bool(armed) != self.armed:
            logger.info("ARM" if armed else "DISARM")
        self.armed = bool(armed)

    def set_flight_mode(self, mode: FlightMode) -> None:
        if mode is not self.mode:
            logger.info(f"Mode {self.mode.value} -> {mode.value}")
        self.mode = mode

    def close(self) -> None:
        self.started = False
