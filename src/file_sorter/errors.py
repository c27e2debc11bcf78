"""Exceptions raised by the file sorter."""

from typing import Optional


class SorterError(Exception):
    """Base error for the project."""


class ValidationError(SorterError, ValueError):
    """A sort request was rejected before any file was touched."""


class SortInProgressError(SorterError):
    """A sort batch is already running in this service."""


class SortIOError(SorterError, OSError):
    """
    A file-system operation failed mid-batch and the batch was aborted.

    Attributes:
        file_name: The entry being processed when the failure happened
    """

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name
