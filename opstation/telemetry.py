"""
Telemetry sinks for the per-tick guidance debug record.
"""

from __future__ import annotations

import csv
import os
from dataclasses import fields
from datetime import datetime
from typing import Optional, TextIO

from common.interface import TelemetrySink
from common.logger import get_logger
from common.realtime import monotonic_time
from common.types import TelemetryRecord

logger = get_logger("telemetry")

FIELDS = [f.name for f in fields(TelemetryRecord)]


class LogTelemetrySink(TelemetrySink):
    """Writes each record to the debug log."""

    def publish(self, record: TelemetryRecord) -> None:
        logger.debug(" ".join(f"{k}={v:.3f}" for k, v in record.as_dict().items()))


class CsvTelemetrySink(TelemetrySink):
    """
    Appends records to a CSV file with a leading timestamp column.
    A directory path gets a timestamped file name.
    """

    def __init__(self, path: str, flush_every: int = 10, clock=monotonic_time):
        if flush_every <= 0:
            raise ValueError("flush_every must be positive")
        if os.path.isdir(path):
            path = os.path.join(path, datetime.now().strftime("pid_debug_%Y%m%d_%H%M%S.csv"))
        self.path = path
        self.flush_every = flush_every
        self.clock = clock
        self._rows = 0
        self._file: Optional[TextIO] = open(path, "w", newline="")
        self._writer = csv.writer(self._file)
        self._writer.writerow(["timestamp", *FIELDS])
        self._file.flush()
        logger.info(f"Writing telemetry to {self.path}")

    def publish(self, record: TelemetryRecord) -> None:
        if self._file is None:
            return
        values = record.as_dict()
        self._writer.writerow([self.clock(), *(values[name] for name in FIELDS)])
        self._rows += 1
        if self._rows % self.flush_every == 0:
            self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
