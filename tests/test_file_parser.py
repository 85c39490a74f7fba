import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import ACTIVITY_COLORS
from parsers.exceptions import ParseFailure, UnsupportedFormat
from parsers.file_parser import FileParser, ImportBatch, UploadedFile
from fit_fixtures import two_record_fit
from sample_files import TCX, THREE_POINT_GPX


class TestFileParser(unittest.TestCase):
    def setUp(self):
        self.parser = FileParser()

    def test_three_point_gpx(self):
        activity = self.parser.import_file(UploadedFile('run.gpx', THREE_POINT_GPX, 'application/gpx+xml'))
        self.assertEqual(len(activity.records), 3)
        self.assertEqual([r.t for r in activity.records], [0.0, 10.0, 20.0])
        self.assertEqual(activity.offset, 0.0)
        self.assertEqual(activity.name, 'run.gpx')
        self.assertEqual(activity.source_type, 'gpx')
        self.assertGreater(activity.total_distance, 200.0)

    def test_two_record_fit(self):
        activity = self.parser.import_file(UploadedFile('ride.fit', two_record_fit()))
        self.assertEqual(len(activity.records), 2)
        for record in activity.records:
            self.assertIsNotNone(record.lat)
            self.assertIsNotNone(record.lon)
            self.assertIsNotNone(record.hr)
            self.assertIsNone(record.pwr)
            self.assertIsNone(record.cad)
        self.assertEqual(activity.records[1].t, 1.0)
        self.assertNotIn('pwr', activity.available_channels())

    def test_tcx(self):
        activity = self.parser.import_file(UploadedFile('lap.tcx', TCX))
        self.assertEqual([r.d for r in activity.records], [0.0, 6.0, 12.0])
        self.assertEqual(activity.sport, 'Biking')
        self.assertEqual(len(activity.laps), 2)

    def test_media_type_only(self):
        activity = self.parser.import_file(UploadedFile('upload', two_record_fit(), 'application/octet-stream'))
        self.assertEqual(activity.source_type, 'fit')

    def test_unsupported(self):
        with self.assertRaises(UnsupportedFormat) as ctx:
            self.parser.import_file(UploadedFile('notes.txt', b'hello', 'text/plain'))
        self.assertEqual(ctx.exception.user_message, 'unsupported file type')
        self.assertEqual(ctx.exception.file_name, 'notes.txt')

    def test_generic_xml_is_unsupported(self):
        with self.assertRaises(UnsupportedFormat):
            self.parser.import_file(UploadedFile('upload', THREE_POINT_GPX, 'application/xml'))

    def test_truncated_fit(self):
        with self.assertRaises(ParseFailure) as ctx:
            self.parser.import_file(UploadedFile('broken.fit', two_record_fit()[:20]))
        self.assertEqual(ctx.exception.user_message, 'could not read this file')
        self.assertEqual(ctx.exception.file_name, 'broken.fit')

    def test_unexpected_error_becomes_parse_failure(self):
        with patch('parsers.file_parser.normalize', side_effect=RuntimeError('boom')):
            with self.assertRaises(ParseFailure) as ctx:
                self.parser.import_file(UploadedFile('run.gpx', THREE_POINT_GPX))
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_deterministic_records(self):
        upload = UploadedFile('run.gpx', THREE_POINT_GPX)
        first = self.parser.import_file(upload)
        second = self.parser.import_file(upload)
        self.assertEqual(first.records, second.records)
        self.assertNotEqual(first.id, second.id)

    def test_parse_file_from_disk(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'ride.fit'
            path.write_bytes(two_record_fit())
            activity = self.parser.parse_file(path)
        self.assertEqual(activity.name, 'ride.fit')

    def test_parse_missing_file(self):
        with self.assertRaises(ParseFailure):
            self.parser.parse_file(Path('/nonexistent/ride.fit'))


class TestImportFiles(unittest.TestCase):
    def uploads(self):
        return [
            UploadedFile('a.gpx', THREE_POINT_GPX),
            UploadedFile('bad.txt', b'nope'),
            UploadedFile('b.fit', two_record_fit()),
            UploadedFile('c.fit', b'\x0e\x10'),
            UploadedFile('d.tcx', TCX),
        ]

    def check_batch(self, batch):
        self.assertIsInstance(batch, ImportBatch)
        self.assertEqual([a.name for a in batch.activities], ['a.gpx', 'b.fit', 'd.tcx'])
        self.assertEqual([a.color for a in batch.activities], list(ACTIVITY_COLORS[:3]))
        self.assertEqual([f.file_name for f in batch.failures], ['bad.txt', 'c.fit'])
        self.assertIsInstance(batch.failures[0].error, UnsupportedFormat)
        self.assertIsInstance(batch.failures[1].error, ParseFailure)
        self.assertEqual(batch.failures[1].user_message, 'could not read this file')

    def test_sequential(self):
        self.check_batch(FileParser().import_files(self.uploads(), max_workers=1))

    def test_parallel_keeps_input_order(self):
        self.check_batch(FileParser().import_files(self.uploads(), max_workers=4))

    def test_empty(self):
        batch = FileParser().import_files([])
        self.assertEqual(batch.activities, [])
        self.assertEqual(batch.failures, [])


class TestUploadedFile(unittest.TestCase):
    def test_from_path_guesses_media_type(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'notes.txt'
            path.write_text('hello')
            upload = UploadedFile.from_path(path)
        self.assertEqual(upload.name, 'notes.txt')
        self.assertEqual(upload.media_type, 'text/plain')
        self.assertEqual(upload.content, b'hello')

    def test_explicit_media_type(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'upload'
            path.write_bytes(b'\x00')
            upload = UploadedFile.from_path(path, media_type='application/gpx+xml')
        self.assertEqual(upload.media_type, 'application/gpx+xml')


if __name__ == '__main__':
    unittest.main()
