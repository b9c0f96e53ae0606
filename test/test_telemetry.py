import csv
import os
import tempfile
import unittest

from common.types import TelemetryRecord
from opstation.telemetry import FIELDS, CsvTelemetrySink, LogTelemetrySink


def make_record(value=1.0):
    return TelemetryRecord(**{name: value for name in FIELDS})


class TestCsvTelemetrySink(unittest.TestCase):
    def test_writes_header_and_rows(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "pid.csv")
            sink = CsvTelemetrySink(path, flush_every=1, clock=lambda: 12.5)
            sink.publish(make_record(1.0))
            sink.publish(make_record(2.0))
            sink.close()
            sink.publish(make_record(3.0))

            with open(path, newline="") as f:
                rows = list(csv.reader(f))
        self.assertEqual(rows[0], ["timestamp", *FIELDS])
        self.assertEqual(len(rows), 3)
        self.assertEqual(float(rows[1][0]), 12.5)
        self.assertEqual([float(v) for v in rows[2][1:]], [2.0] * len(FIELDS))

    def test_directory_gets_timestamped_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = CsvTelemetrySink(tmp)
            sink.close()
            self.assertEqual(os.path.dirname(sink.path), tmp)
            self.assertTrue(os.path.basename(sink.path).startswith("pid_debug_"))
            self.assertTrue(os.path.exists(sink.path))

    def test_log_sink_accepts_records(self):
        sink = LogTelemetrySink()
        sink.publish(make_record())
        sink.close()

if __name__ == '__main__':
    unittest.main()
