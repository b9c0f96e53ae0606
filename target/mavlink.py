"""
MAVLink actuation for ArduSub: acts as a ground station sending MANUAL_CONTROL,
arm/disarm and mode changes over a pymavlink connection.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from pymavlink import mavutil

from common.interface import Actuation
from common.logger import get_logger
from common.types import FlightMode

logger = get_logger("mavlink")

DEFAULT_URL = "udpin:0.0.0.0:14550"
GCS_SYSTEM_ID = 255

ARDUSUB_MODES = {
    FlightMode.MANUAL: "MANUAL",
    FlightMode.STABILIZE: "STABILIZE",
    FlightMode.DEPTH_HOLD: "ALT_HOLD",
    FlightMode.GUIDED: "GUIDED",
}


class MavlinkActuation(Actuation):
    """
    Fire-and-forget link: send failures are logged (rate limited) and never raised
    into the guidance loop.
    """

    def __init__(self, url: str = DEFAULT_URL, heartbeat_timeout: float = 10.0, heartbeat_period: float = 1.0):
        self.url = url
        self.heartbeat_timeout = heartbeat_timeout
        self.heartbeat_period = heartbeat_period
        self._master = None
        self._tx_lock = threading.Lock()
        self._stop = threading.Event()
        self._hb_thread: Optional[threading.Thread] = None
        self._armed: Optional[bool] = None
        self._mode: Optional[FlightMode] = None
        self._tx_errors = 0
        self._last_error_log = 0.0

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        logger.info(f"Opening MAVLink connection {self.url}")
        master = mavutil.mavlink_connection(self.url, source_system=GCS_SYSTEM_ID)
        hb = master.wait_heartbeat(timeout=self.heartbeat_timeout)
        if hb is None:
            master.close()
            raise TimeoutError(f"No heartbeat from vehicle on {self.url} within {self.heartbeat_timeout} s")
        logger.info(f"Vehicle heartbeat: system {master.target_system} component {master.target_component}")
        self._master = master
        self._stop.clear()
        self._hb_thread = threading.Thread(target=self._heartbeat_loop, daemon=True, name="mav-hb")
        self._hb_thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._hb_thread is not None and self._hb_thread.is_alive():
            self._hb_thread.join(timeout=2.0)
        self._hb_thread = None
        if self._master is not None:
            self._master.close()
            self._master = None

    # -- Commands ------------------------------------------------------------

    def set_manual_control(self, x: int, y: int, z: int, r: int) -> None:
        self._send(lambda m: m.mav.manual_control_send(m.target_system, int(x), int(y), int(z), int(r), 0))

    def arm(self, armed: bool) -> None:
        armed = bool(armed)
        if self._send(lambda m: m.arducopter_arm() if armed else m.arducopter_disarm()):
            if armed != self._armed:
                logger.info("Arm request sent" if armed else "Disarm request sent")
            self._armed = armed

    def set_flight_mode(self, mode: FlightMode) -> None:
        mode = FlightMode(mode)
        name = ARDUSUB_MODES[mode]

        def _set(m):
            mapping = m.mode_mapping() or {}
            if name not in mapping:
                raise KeyError(f"vehicle does not support mode {name}")
            m.set_mode(mapping[name])

        if self._send(_set):
            if mode is not self._mode:
                logger.info(f"Mode request sent: {name}")
            self._mode = mode

    # -- Internal ------------------------------------------------------------

    def _send(self, action) -> bool:
        master = self._master
        if master is None:
            self._report_error("link not started")
            return False
        try:
            with self._tx_lock:
                action(master)
            return True
        except (OSError, KeyError, ValueError) as exc:
            self._report_error(exc)
            return False

    def _report_error(self, exc) -> None:
        self._tx_errors += 1
        now = time.monotonic()
        if now - self._last_error_log >= 1.0:
            self._last_error_log = now
            logger.warning(f"MAVLink send failed: {exc} (errors={self._tx_errors})")

    def _heartbeat_loop(self) -> None:
        while not self._stop.wait(self.heartbeat_period):
            self._send(
                lambda m: m.mav.heartbeat_send(
                    mavutil.mavlink.MAV_TYPE_GCS, mavutil.mavlink.MAV_AUTOPILOT_INVALID, 0, 0, 0
                )
            )
