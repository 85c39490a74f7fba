"""Errors raised while importing activity files."""

from typing import Optional


class ActivityImportError(Exception):
    """Base class for file-level import failures."""

    user_message = "could not import this file"

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class UnsupportedFormat(ActivityImportError):
    """The file is not GPX, FIT or TCX."""

    user_message = "unsupported file type"

    def __init__(self, file_name: Optional[str] = None, file_type: Optional[str] = None):
        detail = f" (detected as {file_type})" if file_type else ""
        super().__init__(f"Unsupported file type: {file_name or '<unnamed>'}{detail}", file_name)
        self.file_type = file_type


class ParseFailure(ActivityImportError):
    """A parser could not extract a single valid record."""

    user_message = "could not read this file"

    def __init__(self, reason: str, file_name: Optional[str] = None):
        super().__init__(reason, file_name)
        self.reason = reason


class PartialDecodeWarning(UserWarning):
    """Non-fatal decode problem: samples skipped or integrity check failed."""

    def __init__(self, message: str, skipped: int = 0):
        super().__init__(message)
        self.message = message
        self.skipped = skipped

    def __str__(self) -> str:
        return self.message
