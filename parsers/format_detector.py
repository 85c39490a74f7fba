"""Classify uploaded files as GPX, FIT or TCX."""

from enum import Enum
from typing import Optional

from config.settings import SUPPORTED_FORMATS, MEDIA_TYPE_HINTS


class FileType(str, Enum):
    """Activity file formats the importer knows about."""

    GPX = 'gpx'
    FIT = 'fit'
    TCX = 'tcx'
    UNKNOWN = 'unknown'


def _extension(file_name: str) -> str:
    # Only the last dot counts: "ride.2024-01-01.fit" -> "fit"
    base = file_name.replace('\\', '/').rsplit('/', 1)[-1]
    if '.' not in base:
        return ''
    return base.rsplit('.', 1)[-1].lower()


def detect_file_type(file_name: Optional[str], media_type: Optional[str] = None) -> FileType:
    """Detect the activity format from a file name and declared media type.

    The extension wins when it is one of the supported formats. Otherwise the
    media type is matched by substring. A media type that only says "XML" is
    left as unknown rather than guessing between GPX and TCX.

    Args:
        file_name: Name of the uploaded file, with or without a path
        media_type: Media type declared by the uploader, may be empty

    Returns:
        Detected FileType
    """
    extension = _extension(file_name or '')
    if f'.{extension}' in SUPPORTED_FORMATS:
        return FileType(extension)

    mime = (media_type or '').lower()
    if mime:
        for file_type, fragments in MEDIA_TYPE_HINTS:
            if any(fragment in mime for fragment in fragments):
                return FileType(file_type)
        if 'xml' in mime:
            return FileType.UNKNOWN

    return FileType.UNKNOWN


def is_supported_file_type(file_type: FileType) -> bool:
    """Check whether a detected type has a parser."""
    return file_type in (FileType.GPX, FileType.FIT, FileType.TCX)
