"""Custom exceptions for record decoding and validation."""


class RecordError(Exception):
    """Base exception for record errors."""


class MalformedRecordError(RecordError):
    """A record file could not be decoded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class InvalidRecordError(RecordError):
    """A record is not valid for writing (e.g. missing title, bad id)."""
