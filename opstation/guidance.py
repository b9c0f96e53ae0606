"""
Guidance loop: arbitrates between operator pass-through and autonomous station
keeping, and drives the actuation link once per tick.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional

from common.interface import Actuation, PoseProvider, PoseUnavailable, TelemetrySink
from common.logger import get_logger
from common.realtime import ElapsedTimer, monotonic_time
from common.types import ActuatorCommand, ControlSnapshot, FlightMode, PosePair, TelemetryRecord
from opstation.control import PIDController
from opstation.params import GuidanceParams, PIDGains
from opstation.shaper import clamp_percent, shape_autonomous, shape_manual
from opstation.state import ControlState

logger = get_logger("guidance")

# Modes the operator may request directly; anything else falls back to STABILIZE
_PASSTHROUGH_MODES = (FlightMode.MANUAL, FlightMode.STABILIZE, FlightMode.DEPTH_HOLD)


class LoopState(Enum):
    MANUAL_PASSTHROUGH = "manual_passthrough"
    AUTONOMOUS = "autonomous"


class TickResult(Enum):
    MANUAL = "manual"
    AUTONOMOUS = "autonomous"
    ABORTED = "aborted"


def _make_pid(gains: PIDGains) -> PIDController:
    pid = PIDController()
    pid.configure(gains.max_output, gains.min_output, gains.kp, gains.kd, gains.filter_constant, gains.ki)
    return pid


class GuidanceLoop:
    """Tick pipeline: snapshot control state -> manual or autonomous stage -> actuation."""

    def __init__(
        self,
        actuation: Actuation,
        provider: PoseProvider,
        control_state: ControlState,
        params: Optional[GuidanceParams] = None,
        telemetry: Optional[TelemetrySink] = None,
        clock=monotonic_time,
    ):
        self.params = params or GuidanceParams()
        self.preset = self.params.preset
        self.actuation = actuation
        self.provider = provider
        self.control_state = control_state
        self.telemetry = telemetry

        self.yaw_pid = _make_pid(self.preset.yaw)
        self.x_pid = _make_pid(self.preset.x)
        self.y_pid = _make_pid(self.preset.y)
        self.z_pid = _make_pid(self.preset.z)
        self.timer = ElapsedTimer(clock)

        self.state = LoopState.MANUAL_PASSTHROUGH
        self.last_command: Optional[ActuatorCommand] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def reset_pid(self) -> None:
        for pid in (self.yaw_pid, self.x_pid, self.y_pid, self.z_pid):
            pid.reset()
        self.timer.reset()

    # -- Pipeline stages -----------------------------------------------------

    def tick(self) -> TickResult:
        """Run one iteration without sleeping."""
        snapshot = self.control_state.snapshot()
        if snapshot.guided:
            if self.state is LoopState.MANUAL_PASSTHROUGH:
                logger.info("GUIDED ON")
                self.reset_pid()
                self.state = LoopState.AUTONOMOUS
            return self._autonomous_tick()

        if self.state is LoopState.AUTONOMOUS:
            logger.info("GUIDED OFF")
        self.state = LoopState.MANUAL_PASSTHROUGH
        return self._manual_tick(snapshot)

    def _autonomous_tick(self) -> TickResult:
        try:
            pair = self.provider.acquire()
        except PoseUnavailable as exc:
            logger.warning(f"Unable to get position info: {exc}")
            self.actuation.arm(False)
            return TickResult.ABORTED

        self.actuation.set_flight_mode(FlightMode.STABILIZE)
        self.actuation.arm(True)

        # Target expressed in the vehicle body frame
        relative = pair.current.relative(pair.target)
        ex, ey, ez = relative.position.x, relative.position.y, relative.position.z
        yaw_error = relative.yaw

        dt = self.timer.elapsed()
        vx = clamp_percent(self.x_pid.calculate(dt, 0.0, -ex))
        vy = clamp_percent(self.y_pid.calculate(dt, 0.0, -ey))
        vz = clamp_percent(self.z_pid.calculate(dt, 0.0, ez))
        vr = clamp_percent(self.yaw_pid.calculate(dt, 0.0, -yaw_error))

        command = shape_autonomous(vx, vy, vz + self.preset.base_z, vr, self.preset)

        logger.info(f"T.DIST: {pair.current.position.distance(pair.target.position):.3f}")
        logger.info(
            f"Send order: X: {command.x} ({vx:.2f}) ; Y: {command.y} ({vy:.2f}) ; "
            f"Z: {command.z} ({vz:.2f}) ; R: {command.r} ; rdiff: {yaw_error:.3f} ; rout: {vr:.2f}"
        )
        self.publish(command)
        self._emit_telemetry(pair, command, (vx, vy, vz, vr), (ex, ey, -ez, yaw_error))
        self.timer.reset()
        return TickResult.AUTONOMOUS

    def _manual_tick(self, snapshot: ControlSnapshot) -> TickResult:
        mode = snapshot.mode if snapshot.mode in _PASSTHROUGH_MODES else FlightMode.STABILIZE
        self.actuation.set_flight_mode(mode)
        self.actuation.arm(snapshot.arm)
        command = shape_manual(snapshot.x, snapshot.y, snapshot.z, snapshot.r)
        self.publish(command)
        logger.debug(
            f"Send order: X: {command.x} ; Y: {command.y} ; Z: {command.z} ; R: {command.r} ; "
            f"Arm: {'true' if snapshot.arm else 'false'}"
        )
        return TickResult.MANUAL

    def publish(self, command: ActuatorCommand) -> None:
        """Write the command to the actuation link."""
        self.actuation.set_manual_control(*command.as_tuple())
        self.last_command = command

    # -- Helpers -------------------------------------------------------------

    def _emit_telemetry(self, pair: PosePair, command: ActuatorCommand, raw, errors) -> None:
        if self.telemetry is None:
            return
        vx, vy, vz, vr = raw
        ex, ey, ez, eyaw = errors
        current, target = pair.current, pair.target
        record = TelemetryRecord(
            pout_yaw=command.r,
            pout_x=command.x,
            pout_y=command.y,
            pout_z=command.z,
            raw_yaw=vr,
            raw_x=vx,
            raw_y=vy,
            raw_z=vz,
            error_yaw=eyaw,
            error_x=ex,
            error_y=ey,
            error_z=ez,
            target_yaw=target.yaw,
            target_x=target.position.x,
            target_y=target.position.y,
            target_z=target.position.z,
            current_yaw=current.yaw,
            current_x=current.position.x,
            current_y=current.position.y,
            current_z=current.position.z,
        )
        self.telemetry.publish(record)

    # -- Lifecycle -----------------------------------------------------------

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Tick until stop_event is set; checked once per iteration."""
        if stop_event is None:
            stop_event = self._stop
        logger.info("Starting guidance loop")
        while not stop_event.is_set():
            try:
                result = self.tick()
            except Exception:
                logger.exception("Guidance tick failed")
                result = TickResult.ABORTED
            delay = self.params.abort_backoff if result is TickResult.ABORTED else self.params.tick_period
            stop_event.wait(delay)
        logger.info("Guidance loop stopped")

    def start(self) -> None:
        """Open the actuation link, send a neutral command and run on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("guidance loop already running")
        self.actuation.start()
        self.publish(shape_manual(0.0, 0.0, 0.0, 0.0))
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, args=(self._stop,), daemon=True, name="guidance")
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
