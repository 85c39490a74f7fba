"""Activity file parsers."""

from .exceptions import ActivityImportError, UnsupportedFormat, ParseFailure, PartialDecodeWarning
from .file_parser import FileParser, UploadedFile, ImportBatch, ImportFailure

__all__ = [
    'ActivityImportError',
    'UnsupportedFormat',
    'ParseFailure',
    'PartialDecodeWarning',
    'FileParser',
    'UploadedFile',
    'ImportBatch',
    'ImportFailure',
]
