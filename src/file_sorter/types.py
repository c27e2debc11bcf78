"""
Type definitions and data classes for the file sorter.

This module defines:
- DirectoryEntry: A single filename taken from a source folder listing
- EntryStatus: Enum for the outcome of one entry in a batch
- EntryResult: Data class describing what happened to one entry
- BatchState: Enum for the lifecycle of a sort batch
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class DirectoryEntry:
    """
    Represents one name returned by a directory listing.

    Attributes:
        file_name: The entry's basename (e.g., "09-014-1234-56-789_Plan.pdf")
    """
    file_name: str


class EntryStatus(Enum):
    """Outcome of processing a single entry."""
    MOVED = "moved"                          # Moved into its identifier folder
    SKIPPED_DIRECTORY = "skipped_directory"  # Not a regular file
    SKIPPED_NO_MATCH = "skipped_no_match"    # No identifier in the name
    ERROR = "error"                          # Failed, batch aborted here


@dataclass
class EntryResult:
    """Result of processing one entry."""
    file_name: str
    identifier: str
    status: EntryStatus
    source_path: str
    dest_path: Optional[str]
    message: str


class BatchState(Enum):
    """Lifecycle of a batch: IDLE -> RUNNING -> COMPLETED | FAILED."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
