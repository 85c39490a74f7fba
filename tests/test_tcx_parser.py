import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from parsers.exceptions import ParseFailure
from parsers.tcx_parser import parse_tcx
from sample_files import TCX


class TestTcxParser(unittest.TestCase):
    def test_trackpoints(self):
        result = parse_tcx(TCX)
        self.assertEqual(len(result.points), 3)
        first = result.points[0]
        self.assertEqual(first.time, datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc))
        self.assertEqual((first.lat, first.lon), (45.0, 7.0))
        self.assertEqual(first.hr, 130.0)
        self.assertEqual(first.cad, 85.0)
        self.assertEqual(first.pwr, 200.0)
        self.assertEqual(first.speed, 6.0)
        self.assertEqual(first.distance, 0.0)
        self.assertFalse(result.points[1].has_position)
        self.assertEqual(result.points[2].distance, 12.0)

    def test_metadata(self):
        result = parse_tcx(TCX)
        self.assertEqual(result.sport, 'Biking')
        self.assertEqual(result.calories, 20.0)
        self.assertEqual(result.start_time, datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc))

    def test_laps(self):
        result = parse_tcx(TCX)
        self.assertEqual(len(result.laps), 2)
        lap = result.laps[0]
        self.assertEqual(lap.total_time, 2.0)
        self.assertEqual(lap.avg_hr, 131.0)
        self.assertEqual(lap.intensity, 'Active')
        self.assertEqual(lap.trigger, 'Manual')

    def test_trackpoint_without_time_is_skipped(self):
        content = TCX.replace('<Time>2024-05-01T08:00:01Z</Time>', '')
        result = parse_tcx(content)
        self.assertEqual(len(result.points), 2)
        self.assertEqual(result.warnings[0].skipped, 1)

    def test_non_iso_time_is_skipped(self):
        content = TCX.replace('<Time>2024-05-01T08:00:01Z</Time>', '<Time>now</Time>')
        first = parse_tcx(content)
        self.assertEqual(len(first.points), 2)
        self.assertEqual(first.warnings[0].skipped, 1)
        self.assertEqual(first.points[1].time, datetime(2024, 5, 1, 8, 0, 2, tzinfo=timezone.utc))
        self.assertEqual(parse_tcx(content).points, first.points)

    def test_no_trackpoints(self):
        with self.assertRaises(ParseFailure):
            parse_tcx('<TrainingCenterDatabase><Activities/></TrainingCenterDatabase>')

    def test_malformed(self):
        with self.assertRaises(ParseFailure):
            parse_tcx(b'\x00\x01not xml')

if __name__ == '__main__':
    unittest.main()
