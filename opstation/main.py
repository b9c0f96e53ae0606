#!/usr/bin/env python3
"""
Entry point for the operator station: build collaborators from OPSTATION_* environment
variables and run the guidance loop until interrupted.

    OPSTATION_TARGET        dryrun | mavlink          (default dryrun)
    OPSTATION_MAVLINK_URL   pymavlink connection URL  (default udpin:0.0.0.0:14550)
    OPSTATION_FEED_URL      ZeroMQ SUB address for poses and operator commands
    OPSTATION_TELEMETRY_CSV file or directory for the per-tick debug CSV
    OPSTATION_TREE_MAX_AGE  max transform age in seconds for tree lookups (default 0.2)
"""

from __future__ import annotations

import threading

from common.interface import Actuation, TelemetrySink
from common.logger import get_logger
from opstation.guidance import GuidanceLoop
from opstation.params import GuidanceParams
from opstation.providers import PushProvider, TreeLookupProvider
from opstation.shaper import shape_manual
from opstation.state import ControlState
from opstation.synchronizer import PoseSynchronizer
from opstation.telemetry import CsvTelemetrySink, LogTelemetrySink
from target.dryrun import DryRunActuation
from target.feed import DEFAULT_ADDRESS, ZmqFeed
from target.frames import FrameTree

logger = get_logger("main")


def init_actuation(params: GuidanceParams) -> Actuation:
    """Instantiate the vehicle link named by OPSTATION_TARGET."""
    target = (params.option("OPSTATION_TARGET") or "dryrun").lower()
    if target == "dryrun":
        return DryRunActuation()
    if target == "mavlink":
        from target.mavlink import DEFAULT_URL, MavlinkActuation

        return MavlinkActuation(params.option("OPSTATION_MAVLINK_URL") or DEFAULT_URL)
    raise NotImplementedError(f"Unsupported target '{target}'")


def init_telemetry(params: GuidanceParams) -> TelemetrySink:
    path = params.option("OPSTATION_TELEMETRY_CSV")
    return CsvTelemetrySink(path) if path else LogTelemetrySink()


class OperatorStation:
    """Wires control state, pose sources, actuation and the guidance loop together."""

    def __init__(self, params: GuidanceParams):
        self.params = params
        self.control_state = ControlState()
        self.synchronizer = PoseSynchronizer(max_age=params.pose_timeout)
        max_age = params.option("OPSTATION_TREE_MAX_AGE")
        self.tree = FrameTree(max_age=float(max_age) if max_age else params.pose_timeout)

        if params.use_tree_lookup:
            provider = TreeLookupProvider(
                self.tree, params.reference_frame, params.vehicle_frame, params.target_frame
            )
        else:
            provider = PushProvider(self.synchronizer, timeout=params.pose_timeout)

        self.actuation = init_actuation(params)
        self.telemetry = init_telemetry(params)
        self.loop = GuidanceLoop(self.actuation, provider, self.control_state, params, self.telemetry)
        self.feed = ZmqFeed(
            params.option("OPSTATION_FEED_URL") or DEFAULT_ADDRESS,
            synchronizer=self.synchronizer,
            tree=self.tree,
            control_state=self.control_state,
            role_frames={
                "current": (params.reference_frame, params.vehicle_frame),
                "target": (params.reference_frame, params.target_frame),
            },
        )
        logger.info(
            f"Operator station ready (preset={params.preset.name}, "
            f"pose source={'tree' if params.use_tree_lookup else 'push'}, "
            f"actuation={type(self.actuation).__name__})"
        )

    def run(self, stop_event: threading.Event) -> None:
        self.actuation.start()
        self.loop.publish(shape_manual(0.0, 0.0, 0.0, 0.0))
        self.feed.start()
        try:
            self.loop.run(stop_event)
        finally:
            self.close()

    def close(self) -> None:
        self.feed.stop()
        self.actuation.close()
        self.telemetry.close()


def main():
    params = GuidanceParams.from_env()
    station = OperatorStation(params)
    stop_event = threading.Event()
    try:
        station.run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
