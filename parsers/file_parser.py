"""File parser for activity formats (FIT, TCX, GPX)."""

import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from config import settings
from models.activity import Activity, ParseResult
from parsers.assembler import ActivityAssembler
from parsers.exceptions import ActivityImportError, ParseFailure, UnsupportedFormat
from parsers.fit_parser import parse_fit
from parsers.format_detector import FileType, detect_file_type, is_supported_file_type
from parsers.gpx_parser import parse_gpx
from parsers.normalizer import NormalizedActivity, normalize
from parsers.tcx_parser import parse_tcx
from utils.gps_distance import GpsDistanceOptions

logger = logging.getLogger(__name__)

ParserFunc = Callable[[Union[bytes, str]], ParseResult]

# One parser per supported format; the set of formats is fixed
PARSERS: Dict[FileType, ParserFunc] = {
    FileType.GPX: parse_gpx,
    FileType.FIT: parse_fit,
    FileType.TCX: parse_tcx,
}


@dataclass(frozen=True)
class UploadedFile:
    """A file handed over by the upload layer."""

    name: str
    content: Union[bytes, str]
    media_type: str = ''

    @classmethod
    def from_path(cls, file_path: Path, media_type: Optional[str] = None) -> 'UploadedFile':
        """Read a file from disk, guessing the media type from its name when not given."""
        file_path = Path(file_path)
        if media_type is None:
            media_type = mimetypes.guess_type(file_path.name)[0] or ''
        return cls(name=file_path.name, content=file_path.read_bytes(), media_type=media_type)


@dataclass(frozen=True)
class ImportFailure:
    """A file that could not be imported, with the typed error."""

    file_name: str
    error: ActivityImportError

    @property
    def user_message(self) -> str:
        return self.error.user_message


@dataclass
class ImportBatch:
    """Result of importing several files: activities in input order plus failures."""

    activities: List[Activity] = field(default_factory=list)
    failures: List[ImportFailure] = field(default_factory=list)


class FileParser:
    """Entry point turning uploaded files into Activities."""

    def __init__(self, assembler: Optional[ActivityAssembler] = None,
                 distance_options: Optional[GpsDistanceOptions] = None):
        """Initialize file parser.

        Args:
            assembler: Assembler holding the color palette; a new one by default
            distance_options: GPS distance filtering, defaults to configured options
        """
        self.assembler = assembler or ActivityAssembler()
        self.distance_options = distance_options or GpsDistanceOptions.from_settings()

    def import_file(self, upload: UploadedFile) -> Activity:
        """Parse an uploaded file and return the assembled Activity.

        Args:
            upload: Uploaded file with name, media type and content

        Returns:
            Activity with at least one record

        Raises:
            UnsupportedFormat: If the file is not GPX, FIT or TCX
            ParseFailure: If no valid record could be read
        """
        file_type, parse_result, normalized = self._decode(upload)
        return self._assemble(upload, file_type, parse_result, normalized)

    def parse_file(self, file_path: Path) -> Activity:
        """Import a workout file from disk.

        Args:
            file_path: Path to the workout file

        Returns:
            Assembled Activity

        Raises:
            ParseFailure: If the file does not exist or cannot be parsed
            UnsupportedFormat: If the format is not supported
        """
        file_path = Path(file_path)
        if not file_path.exists():
            logger.error(f"File not found: {file_path}")
            raise ParseFailure(f"File not found: {file_path}", file_path.name)
        return self.import_file(UploadedFile.from_path(file_path))

    def import_files(self, uploads: Iterable[UploadedFile], max_workers: Optional[int] = None) -> ImportBatch:
        """Import several files, collecting failures instead of stopping at the first one.

        Files may be decoded in parallel; colors are still assigned in input order.

        Args:
            uploads: Files to import
            max_workers: Parallel decoders, defaults to IMPORT_MAX_WORKERS

        Returns:
            ImportBatch with successful activities and per-file failures
        """
        uploads = list(uploads)
        workers = max_workers or settings.IMPORT_MAX_WORKERS

        if workers > 1 and len(uploads) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                decoded = list(executor.map(self._try_decode, uploads))
        else:
            decoded = [self._try_decode(upload) for upload in uploads]

        batch = ImportBatch()
        for upload, outcome in zip(uploads, decoded):
            if isinstance(outcome, ActivityImportError):
                batch.failures.append(ImportFailure(upload.name, outcome))
                continue
            batch.activities.append(self._assemble(upload, *outcome))

        if batch.failures:
            logger.warning(f"{len(batch.failures)} of {len(uploads)} files failed to import: "
                           f"{[failure.file_name for failure in batch.failures]}")
        return batch

    def _try_decode(self, upload: UploadedFile):
        try:
            return self._decode(upload)
        except ActivityImportError as e:
            return e

    def _decode(self, upload: UploadedFile) -> Tuple[FileType, ParseResult, NormalizedActivity]:
        file_type = detect_file_type(upload.name, upload.media_type)
        parser = PARSERS.get(file_type) if is_supported_file_type(file_type) else None
        if parser is None:
            logger.error(f"Unsupported file format: {upload.name} ({upload.media_type or 'no media type'})")
            raise UnsupportedFormat(upload.name, file_type.value)

        logger.info(f"Parsing {upload.name} as {file_type.value.upper()}")
        try:
            parse_result = parser(upload.content)
            normalized = normalize(parse_result, self.distance_options)
        except ParseFailure as e:
            e.file_name = e.file_name or upload.name
            logger.error(f"Failed to parse file {upload.name}: {e.reason}")
            raise
        except Exception as e:
            logger.error(f"Failed to parse file {upload.name}: {e}")
            raise ParseFailure(f"Unexpected error while decoding {file_type.value}: {e}", upload.name) from e

        return file_type, parse_result, normalized

    def _assemble(self, upload: UploadedFile, file_type: FileType,
                  parse_result: ParseResult, normalized: NormalizedActivity) -> Activity:
        activity = self.assembler.assemble(
            normalized,
            file_name=upload.name,
            source_type=file_type.value,
            start_time=parse_result.start_time,
            sport=parse_result.sport,
            calories=parse_result.calories,
        )
        if activity.warnings:
            logger.warning(f"Imported {upload.name} with {len(activity.warnings)} warnings")
        return activity
