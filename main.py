#!/usr/bin/env python3
"""Main entry point for Activity Overlay."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import settings
from analyzers.timeline import XAxis, aligned_frame, delta_series
from models.activity import CHANNELS, Activity
from parsers.exceptions import ActivityImportError
from parsers.file_parser import FileParser, ImportBatch, UploadedFile
from parsers.fit_parser import decode_messages


def setup_logging(verbose: bool = False):
    """Set up logging configuration.

    Args:
        verbose: Enable verbose logging
    """
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=settings.LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Import GPX, TCX and FIT activities and align them on a shared timeline',
        formatter_class=argparse.RawTextHelpFormatter,
        epilog=(
            'Examples:\n'
            '  %(prog)s inspect ride.fit run.gpx\n'
            '  %(prog)s batch --directory data/\n'
            '  %(prog)s compare a.fit b.fit --channel hr --offset 0 -30\n'
            '  %(prog)s messages ride.fit --name record\n'
            '  %(prog)s config --show'
        )
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Inspect command
    inspect_parser = subparsers.add_parser('inspect', help='Import files and print activity summaries')
    inspect_parser.add_argument('files', nargs='+', help='Activity files (FIT, TCX, or GPX)')
    inspect_parser.add_argument(
        '--records', type=int, default=0, help='Also print the first N records of each activity'
    )

    # Batch command
    batch_parser = subparsers.add_parser('batch', help='Import every supported file in a directory')
    batch_parser.add_argument(
        '--directory', '-d', required=True, type=str, help='Directory containing activity files'
    )
    batch_parser.add_argument(
        '--workers', type=int, default=None, help='Parallel decoders (default: IMPORT_MAX_WORKERS)'
    )

    # Compare command
    compare_parser = subparsers.add_parser('compare', help='Align activities and export one channel as CSV')
    compare_parser.add_argument('files', nargs='+', help='Activity files; the first one is the delta base')
    compare_parser.add_argument('--channel', choices=CHANNELS, default='hr', help='Channel to align')
    compare_parser.add_argument(
        '--axis', choices=[axis.value for axis in XAxis], default=XAxis.TIME.value, help='Shared x axis'
    )
    compare_parser.add_argument(
        '--offset', type=float, nargs='*', default=[], help='Offset in seconds per file, in file order'
    )
    compare_parser.add_argument(
        '--delta', action='store_true', help='Export the difference to the first file instead'
    )
    compare_parser.add_argument('--output', '-o', type=str, help='CSV output path (default: stdout)')

    # Messages command
    messages_parser = subparsers.add_parser('messages', help='Dump decoded FIT messages')
    messages_parser.add_argument('file', help='FIT file')
    messages_parser.add_argument('--name', type=str, help='Only show messages of this type, e.g. record')

    # Config command
    config_parser = subparsers.add_parser('config', help='Show configuration')
    config_parser.add_argument(
        '--show', action='store_true', help='Show current configuration'
    )

    return parser.parse_args(argv)


class ActivityOverlay:
    """Main application class."""

    def __init__(self):
        """Initialize the application."""
        self.settings = settings
        self.file_parser = FileParser()

    def import_paths(self, paths: List[Path], max_workers: Optional[int] = None) -> ImportBatch:
        """Import files from disk, keeping going past files that fail.

        Args:
            paths: Activity files
            max_workers: Parallel decoders

        Returns:
            ImportBatch in input order
        """
        uploads = []
        failures = []
        for path in paths:
            try:
                uploads.append(UploadedFile.from_path(path))
            except OSError as e:
                logging.error(f"Cannot read {path}: {e}")
                failures.append(path.name)
        batch = self.file_parser.import_files(uploads, max_workers=max_workers)
        if failures:
            logging.warning(f"Skipped unreadable files: {failures}")
        return batch

    def import_directory(self, directory: Path, max_workers: Optional[int] = None) -> ImportBatch:
        """Import every supported file found under a directory."""
        logging.info(f"Importing directory: {directory}")
        paths = sorted(
            path for path in directory.rglob('*')
            if path.is_file() and path.suffix.lower() in self.settings.SUPPORTED_FORMATS
        )
        return self.import_paths(paths, max_workers=max_workers)

    @staticmethod
    def apply_offsets(activities: List[Activity], offsets: List[float]) -> List[Activity]:
        """Shift activities along the shared timeline, in order; missing offsets stay 0."""
        return [
            activity.with_offset(offsets[i]) if i < len(offsets) else activity
            for i, activity in enumerate(activities)
        ]

    def show_config(self):
        """Display current configuration."""
        logging.info("Current Configuration:")
        logging.info("-" * 30)
        config_dict = {
            'SUPPORTED_FORMATS': self.settings.SUPPORTED_FORMATS,
            'GPS_MIN_MOVE_METERS': self.settings.GPS_MIN_MOVE_METERS,
            'GPS_MAX_SPEED_MPS': self.settings.GPS_MAX_SPEED_MPS,
            'GPS_MAX_JUMP_METERS_AT_1S': self.settings.GPS_MAX_JUMP_METERS_AT_1S,
            'GPS_INCLUDE_ELEVATION': self.settings.GPS_INCLUDE_ELEVATION,
            'IMPORT_MAX_WORKERS': self.settings.IMPORT_MAX_WORKERS,
            'LOG_LEVEL': self.settings.LOG_LEVEL,
        }
        for key, value in config_dict.items():
            logging.info(f"{key}: {value}")


def _print_batch(batch: ImportBatch, records: int = 0):
    summaries = []
    for activity in batch.activities:
        summary = activity.get_summary()
        if records:
            summary['records_head'] = [record.to_dict() for record in activity.records[:records]]
        summaries.append(summary)
    output = {
        'activities': summaries,
        'failures': [
            {'file_name': failure.file_name, 'message': failure.user_message, 'reason': str(failure.error)}
            for failure in batch.failures
        ],
    }
    print(json.dumps(output, indent=2, default=str))


def main(argv: Optional[List[str]] = None):
    """Main application entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        app = ActivityOverlay()

        if args.command == 'inspect':
            batch = app.import_paths([Path(name) for name in args.files])
            _print_batch(batch, records=args.records)
            if not batch.activities:
                sys.exit(1)

        elif args.command == 'batch':
            directory = Path(args.directory)
            if not directory.exists():
                logging.error(f"Directory not found: {directory}")
                sys.exit(1)
            batch = app.import_directory(directory, max_workers=args.workers)
            _print_batch(batch)
            logging.info(f"Imported {len(batch.activities)} activities, {len(batch.failures)} failed")

        elif args.command == 'compare':
            batch = app.import_paths([Path(name) for name in args.files])
            if batch.failures:
                for failure in batch.failures:
                    logging.error(f"{failure.file_name}: {failure.user_message}")
                sys.exit(1)
            activities = app.apply_offsets(batch.activities, args.offset)
            axis = XAxis(args.axis)
            if args.delta:
                if len(activities) < 2:
                    logging.error("Delta needs at least two files")
                    sys.exit(1)
                frame = delta_series(activities[0], activities[1], args.channel, axis).to_frame()
            else:
                frame = aligned_frame(activities, args.channel, axis)
            if args.output:
                frame.to_csv(args.output)
                logging.info(f"Aligned {args.channel} saved to: {args.output}")
            else:
                frame.to_csv(sys.stdout)

        elif args.command == 'messages':
            path = Path(args.file)
            for message in decode_messages(path.read_bytes()):
                if args.name and message.name != args.name:
                    continue
                print(json.dumps({'message': message.name or message.global_num, **message.fields}, default=str))

        elif args.command == 'config':
            if getattr(args, 'show', False):
                app.show_config()

        else:
            parse_args(['--help'])

    except ActivityImportError as e:
        logging.error(f"{e.file_name or 'input'}: {e.user_message} ({e})")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            logging.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
