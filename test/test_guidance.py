import threading
import time
import unittest
from unittest.mock import Mock, call

from common.interface import Actuation, TelemetrySink
from common.types import ActuatorCommand, FlightMode, Pose, PoseRole
from opstation.guidance import GuidanceLoop, LoopState, TickResult
from opstation.main import OperatorStation
from opstation.params import SITL, GuidanceParams
from opstation.providers import PushProvider, TreeLookupProvider
from opstation.state import ControlState
from opstation.synchronizer import PoseSynchronizer
from target.frames import FrameTree

REF, ROV, GHOST = "local_origin_ned", "erov", "bluerov2_ghost"


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


class SteppingClock:
    """Advances by a fixed step on every read."""

    def __init__(self, step=0.05):
        self.t = 0.0
        self.step = step

    def __call__(self):
        self.t += self.step
        return self.t


class GuidanceTestBase(unittest.TestCase):
    def setUp(self):
        self.actuation = Mock(spec=Actuation)
        self.telemetry = Mock(spec=TelemetrySink)
        self.control = ControlState()
        self.tree = FrameTree()
        self.provider = TreeLookupProvider(self.tree, REF, ROV, GHOST)
        self.params = GuidanceParams(preset=SITL, tick_period=0.01, abort_backoff=0.01)

    def make_loop(self, provider=None, clock=None):
        return GuidanceLoop(
            self.actuation,
            provider or self.provider,
            self.control,
            self.params,
            self.telemetry,
            clock=clock or SteppingClock(),
        )

    def place(self, rov, ghost):
        self.tree.set_transform(REF, ROV, rov)
        self.tree.set_transform(REF, GHOST, ghost)


class TestManualPassthrough(GuidanceTestBase):
    def test_manual_tick_scales_setpoint(self):
        self.control.update(x=10, y=0, z=0, r=-10, mode=FlightMode.MANUAL, arm=True)
        loop = self.make_loop()
        self.assertIs(loop.tick(), TickResult.MANUAL)
        self.actuation.set_flight_mode.assert_called_once_with(FlightMode.MANUAL)
        self.actuation.arm.assert_called_once_with(True)
        self.actuation.set_manual_control.assert_called_once_with(100, 0, 500, -100)
        self.telemetry.publish.assert_not_called()

    def test_mode_pass_through(self):
        loop = self.make_loop()
        cases = [
            (FlightMode.MANUAL, True, FlightMode.MANUAL),
            (FlightMode.STABILIZE, True, FlightMode.STABILIZE),
            (FlightMode.DEPTH_HOLD, False, FlightMode.DEPTH_HOLD),
            # GUIDED without arm is not autonomous and falls back to STABILIZE
            (FlightMode.GUIDED, False, FlightMode.STABILIZE),
        ]
        for requested, arm, expected in cases:
            with self.subTest(requested=requested, arm=arm):
                self.actuation.reset_mock()
                self.control.update(mode=requested, arm=arm)
                self.assertIs(loop.tick(), TickResult.MANUAL)
                self.actuation.set_flight_mode.assert_called_once_with(expected)
                self.actuation.arm.assert_called_once_with(arm)
        self.assertIs(loop.state, LoopState.MANUAL_PASSTHROUGH)


class TestAutonomous(GuidanceTestBase):
    def setUp(self):
        super().setUp()
        self.control.update(mode=FlightMode.GUIDED, arm=True)

    def test_target_ahead_gives_positive_surge(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(1, 0, 0))
        loop = self.make_loop()
        self.assertIs(loop.tick(), TickResult.AUTONOMOUS)
        self.assertIs(loop.state, LoopState.AUTONOMOUS)

        # First sample after entering GUIDED is proportional only: kp * 1 m = 10 %
        self.actuation.set_manual_control.assert_called_once_with(160, 0, 105, 0)
        self.actuation.set_flight_mode.assert_called_once_with(FlightMode.STABILIZE)
        self.actuation.arm.assert_called_once_with(True)
        self.assertEqual(loop.last_command, ActuatorCommand(160, 0, 105, 0))

    def test_command_within_clamp(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(500, -500, 0, 3.0))
        loop = self.make_loop()
        loop.tick()
        x, y, z, r = self.actuation.set_manual_control.call_args[0]
        self.assertEqual(x, 1000 + SITL.x_offset)
        self.assertEqual(y, -1000 - SITL.y_offset)
        self.assertGreater(r, 0)

    def test_target_in_body_frame(self):
        # Vehicle heading +y; target one metre further along +y is straight ahead
        self.place(Pose.from_xyz_yaw(2, 3, 0, 1.5707963267948966), Pose.from_xyz_yaw(2, 4, 0, 1.5707963267948966))
        loop = self.make_loop()
        loop.tick()
        x = self.actuation.set_manual_control.call_args[0][0]
        self.assertIn(x, (160, 161))

    def test_depth_and_yaw_signs(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(0, 0, 2, 0.25))
        loop = self.make_loop()
        loop.tick()
        _, _, z, r = self.actuation.set_manual_control.call_args[0]
        self.assertLess(z, 500)
        self.assertGreater(r, SITL.yaw_offset)

    def test_telemetry_record(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(1, 0, 2))
        loop = self.make_loop()
        loop.tick()
        self.telemetry.publish.assert_called_once()
        record = self.telemetry.publish.call_args[0][0]
        self.assertEqual(record.pout_x, loop.last_command.x)
        self.assertAlmostEqual(record.error_x, 1.0)
        self.assertAlmostEqual(record.error_z, -2.0)
        self.assertAlmostEqual(record.target_x, 1.0)
        self.assertAlmostEqual(record.target_z, 2.0)
        self.assertAlmostEqual(record.current_x, 0.0)
        self.assertEqual(record.raw_x, 10.0)
        self.assertEqual(record.raw_z, -40.0)

    def test_tree_failure_disarms_once(self):
        loop = self.make_loop()
        self.assertIs(loop.tick(), TickResult.ABORTED)
        self.assertEqual(self.actuation.arm.call_args_list, [call(False)])
        self.actuation.set_manual_control.assert_not_called()
        self.actuation.set_flight_mode.assert_not_called()
        self.telemetry.publish.assert_not_called()

    def test_push_provider_timeout_aborts(self):
        sync = PoseSynchronizer()
        loop = self.make_loop(provider=PushProvider(sync, timeout=0.01))
        self.assertIs(loop.tick(), TickResult.ABORTED)
        self.assertEqual(self.actuation.arm.call_args_list, [call(False)])
        self.actuation.set_manual_control.assert_not_called()

        # Only the current pose arrives: still aborted
        self.actuation.reset_mock()
        sync.push(PoseRole.CURRENT, Pose.from_xyz_yaw(0, 0, 0))
        self.assertIs(loop.tick(), TickResult.ABORTED)
        self.actuation.arm.assert_called_once_with(False)

    def test_stale_tree_poses_abort(self):
        clock = FakeClock()
        self.tree = FrameTree(max_age=self.params.pose_timeout, clock=clock)
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(1, 0, 0))
        loop = self.make_loop(provider=TreeLookupProvider(self.tree, REF, ROV, GHOST))
        clock.t = 0.1
        self.assertIs(loop.tick(), TickResult.AUTONOMOUS)

        self.actuation.reset_mock()
        clock.t = 0.3
        self.assertIs(loop.tick(), TickResult.ABORTED)
        self.assertEqual(self.actuation.arm.call_args_list, [call(False)])
        self.actuation.set_manual_control.assert_not_called()

    def test_stale_pushed_poses_abort(self):
        clock = FakeClock()
        sync = PoseSynchronizer(clock=clock)
        sync.push(PoseRole.CURRENT, Pose.from_xyz_yaw(0, 0, 0))
        sync.push(PoseRole.TARGET, Pose.from_xyz_yaw(1, 0, 0))
        clock.t = 0.5
        loop = self.make_loop(provider=PushProvider(sync, timeout=0.01))
        self.assertIs(loop.tick(), TickResult.ABORTED)
        self.assertEqual(self.actuation.arm.call_args_list, [call(False)])
        self.actuation.set_manual_control.assert_not_called()

    def test_push_provider_drives_loop(self):
        sync = PoseSynchronizer()
        loop = self.make_loop(provider=PushProvider(sync, timeout=0.1))
        sync.push(PoseRole.CURRENT, Pose.from_xyz_yaw(0, 0, 0))
        sync.push(PoseRole.TARGET, Pose.from_xyz_yaw(1, 0, 0))
        self.assertIs(loop.tick(), TickResult.AUTONOMOUS)
        self.actuation.set_manual_control.assert_called_once_with(160, 0, 105, 0)

    def test_reentering_guided_resets_pid(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(2, 0, 0))
        loop = self.make_loop()
        loop.tick()
        loop.tick()

        self.control.update(mode=FlightMode.MANUAL)
        self.assertIs(loop.tick(), TickResult.MANUAL)
        self.assertIs(loop.state, LoopState.MANUAL_PASSTHROUGH)

        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(1, 0, 0))
        self.control.update(mode=FlightMode.GUIDED)
        self.actuation.reset_mock()
        loop.tick()
        resumed = self.actuation.set_manual_control.call_args[0]

        fresh = self.make_loop()
        self.actuation.reset_mock()
        fresh.tick()
        self.assertEqual(resumed, self.actuation.set_manual_control.call_args[0])
        self.assertEqual(resumed[0], 160)

    def test_derivative_without_reset_would_differ(self):
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(2, 0, 0))
        loop = self.make_loop()
        loop.tick()
        self.place(Pose.from_xyz_yaw(0, 0, 0), Pose.from_xyz_yaw(1, 0, 0))
        loop.tick()
        # Error shrinking quickly makes the derivative term dominate
        self.assertLess(self.actuation.set_manual_control.call_args[0][0], 0)


class TestOperatorStation(unittest.TestCase):
    def test_default_tree_rejects_old_poses(self):
        station = OperatorStation(GuidanceParams.from_env({"OPSTATION_POSE_SOURCE": "tree"}))
        self.addCleanup(station.close)
        self.assertEqual(station.tree.max_age, 0.2)

        clock = FakeClock()
        station.tree.clock = clock
        station.tree.set_transform(REF, ROV, Pose.from_xyz_yaw(0, 0, 0))
        station.tree.set_transform(REF, GHOST, Pose.from_xyz_yaw(1, 0, 0))
        station.control_state.update(mode=FlightMode.GUIDED, arm=True)

        clock.t = 0.1
        self.assertIs(station.loop.tick(), TickResult.AUTONOMOUS)
        self.assertTrue(station.actuation.armed)

        clock.t = 10.0
        self.assertIs(station.loop.tick(), TickResult.ABORTED)
        self.assertFalse(station.actuation.armed)

    def test_env_overrides_tree_max_age(self):
        station = OperatorStation(GuidanceParams.from_env({"OPSTATION_TREE_MAX_AGE": "1.5"}))
        self.addCleanup(station.close)
        self.assertEqual(station.tree.max_age, 1.5)


class TestLifecycle(GuidanceTestBase):
    def test_run_stops_on_event(self):
        loop = self.make_loop(clock=time.monotonic)
        stop = threading.Event()
        worker = threading.Thread(target=loop.run, args=(stop,))
        worker.start()
        time.sleep(0.1)
        stop.set()
        worker.join(timeout=1.0)
        self.assertFalse(worker.is_alive())
        self.assertGreaterEqual(self.actuation.set_manual_control.call_count, 2)

    def test_run_survives_tick_errors(self):
        self.actuation.set_flight_mode.side_effect = RuntimeError("link down")
        loop = self.make_loop(clock=time.monotonic)
        stop = threading.Event()
        worker = threading.Thread(target=loop.run, args=(stop,))
        worker.start()
        time.sleep(0.1)
        self.assertTrue(worker.is_alive())
        stop.set()
        worker.join(timeout=1.0)
        self.assertFalse(worker.is_alive())
        self.assertGreaterEqual(self.actuation.set_flight_mode.call_count, 2)

    def test_start_sends_neutral_command(self):
        loop = self.make_loop(clock=time.monotonic)
        loop.start()
        try:
            with self.assertRaises(RuntimeError):
                loop.start()
        finally:
            loop.stop()
        self.actuation.start.assert_called_once_with()
        self.assertEqual(self.actuation.set_manual_control.call_args_list[0], call(0, 0, 500, 0))

if __name__ == '__main__':
    unittest.main()
