"""
Batch dispatcher that sorts files into identifier folders.

This module is responsible for:
- Walking directory entries strictly in the order supplied
- Skipping directories and files without an identifier (silently)
- Creating identifier folders under the output root on demand
- Moving each recognised file into its identifier folder
- Reporting progress after every successful move
- Aborting the whole batch on the first file-system failure
- Keeping per-status statistics and results for reporting
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from .errors import SortIOError
from .identifier import IdentifierMatcher, get_matcher
from .types import BatchState, DirectoryEntry, EntryResult, EntryStatus
from .utils import ensure_directory, format_os_error, is_regular_file, safe_move_file

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class BatchDispatcher:
    """
    Sorts one batch of directory entries into identifier folders.

    A dispatcher runs exactly once. Entries are processed one at a time;
    the first folder-creation, stat or move failure stops the batch and
    leaves already-moved files where they are.
    """

    def __init__(
        self,
        source_folder: Union[str, Path],
        output_folder: Union[str, Path],
        matcher: Optional[IdentifierMatcher] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize the dispatcher for one batch.

        Args:
            source_folder: Folder the entries were listed from
            output_folder: Root under which identifier folders are created
            matcher: Identifier rule (defaults to the strict rule)
            progress_callback: Optional callable(percent) invoked after
                               each successful move
        """
        self.source_folder = Path(source_folder)
        self.output_folder = Path(output_folder)
        self.matcher = matcher or get_matcher()
        self.progress_callback = progress_callback

        self.state = BatchState.IDLE
        self.results: List[EntryResult] = []
        self._stats: Dict[EntryStatus, int] = {status: 0 for status in EntryStatus}

    def run(self, entries: Iterable[DirectoryEntry]) -> List[EntryResult]:
        """
        Process every entry in order.

        Args:
            entries: Directory entries, in listing order

        Returns:
            List of EntryResult objects, one per processed entry

        Raises:
            RuntimeError: If this dispatcher has already run
            SortIOError: If a file-system operation fails; the batch stops
        """
        if self.state is not BatchState.IDLE:
            raise RuntimeError(f"Batch already {self.state.value}")

        entries = list(entries)
        total = len(entries)
        self.state = BatchState.RUNNING
        logger.info(
            f"Sorting {total} entries from {self.source_folder} "
            f"into {self.output_folder} ({self.matcher.name} rule)"
        )

        for index, entry in enumerate(entries):
            try:
                result = self.process_entry(entry)
            except SortIOError:
                self.state = BatchState.FAILED
                logger.error(f"Batch aborted at entry {index + 1}/{total}")
                raise

            if result.status is EntryStatus.MOVED:
                self._report_progress((index + 1) / total * 100)

        self.state = BatchState.COMPLETED
        logger.info(
            f"Completed batch: {self._stats[EntryStatus.MOVED]} moved, "
            f"{total - self._stats[EntryStatus.MOVED]} skipped"
        )
        return self.results

    def process_entry(self, entry: DirectoryEntry) -> EntryResult:
        """
        Classify one entry and move it if it carries an identifier.

        Args:
            entry: The directory entry to process

        Returns:
            EntryResult describing the outcome

        Raises:
            SortIOError: If stat, folder creation or the move fails
        """
        src_path = self.source_folder / entry.file_name

        try:
            if not is_regular_file(src_path):
                logger.debug(f"Skipping non-file entry: {src_path}")
                return self._record(EntryResult(
                    file_name=entry.file_name,
                    identifier="",
                    status=EntryStatus.SKIPPED_DIRECTORY,
                    source_path=str(src_path),
                    dest_path=None,
                    message="Not a regular file"
                ))
        except OSError as e:
            self._fail(entry, "", src_path, None, e)

        identifier = self.matcher.extract(entry.file_name)
        if not identifier:
            logger.debug(f"No identifier in {entry.file_name!r}, leaving in place")
            return self._record(EntryResult(
                file_name=entry.file_name,
                identifier="",
                status=EntryStatus.SKIPPED_NO_MATCH,
                source_path=str(src_path),
                dest_path=None,
                message="No identifier found in file name"
            ))

        folder_path = self.output_folder / identifier
        dest_path = folder_path / entry.file_name

        try:
            ensure_directory(folder_path)
        except OSError as e:
            logger.error(f"Failed to create folder {folder_path}: {e}")
            self._fail(entry, identifier, src_path, dest_path, e)

        try:
            logger.info(f"Moving: {src_path} -> {dest_path}")
            safe_move_file(src_path, dest_path)
        except OSError as e:
            logger.error(f"Failed to move file {entry.file_name}: {e}")
            self._fail(entry, identifier, src_path, dest_path, e)

        return self._record(EntryResult(
            file_name=entry.file_name,
            identifier=identifier,
            status=EntryStatus.MOVED,
            source_path=str(src_path),
            dest_path=str(dest_path),
            message="Moved successfully"
        ))

    def _record(self, result: EntryResult) -> EntryResult:
        self.results.append(result)
        self._stats[result.status] += 1
        return result

    def _fail(
        self,
        entry: DirectoryEntry,
        identifier: str,
        src_path: Path,
        dest_path: Optional[Path],
        error: OSError
    ) -> None:
        """Record an ERROR result and raise SortIOError chained to the cause."""
        message = format_os_error(error)
        self._record(EntryResult(
            file_name=entry.file_name,
            identifier=identifier,
            status=EntryStatus.ERROR,
            source_path=str(src_path),
            dest_path=str(dest_path) if dest_path else None,
            message=message
        ))
        raise SortIOError(message, file_name=entry.file_name) from error

    def _report_progress(self, percent: float) -> None:
        """Deliver a progress value; a failing callback never stops the batch."""
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(percent)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def get_stats(self) -> Dict[str, int]:
        """
        Get statistics about processed entries.

        Returns:
            Dictionary mapping status names to counts
        """
        return {status.value: count for status, count in self._stats.items()}

    @property
    def moved_count(self) -> int:
        return self._stats[EntryStatus.MOVED]

    def get_summary(self) -> str:
        """
        Get a human-readable summary of the batch.

        Returns:
            Formatted summary string
        """
        stats = self.get_stats()
        total = sum(stats.values())

        lines = [f"Sort Summary ({total} processed, {self.state.value}):"]
        lines.append(f"  Moved: {stats['moved']}")

        skipped = stats["skipped_directory"] + stats["skipped_no_match"]
        if skipped:
            lines.append(f"  Skipped: {skipped}")
            if stats["skipped_no_match"]:
                lines.append(f"    (no identifier: {stats['skipped_no_match']})")
            if stats["skipped_directory"]:
                lines.append(f"    (not a file: {stats['skipped_directory']})")

        if stats["error"]:
            lines.append(f"  Errors: {stats['error']}")

        return "\n".join(lines)


def sort_files_into_folders(
    entries: Iterable[DirectoryEntry],
    source_folder: Union[str, Path],
    output_folder: Union[str, Path],
    progress_callback: Optional[ProgressCallback] = None,
    matcher: Optional[IdentifierMatcher] = None
) -> List[EntryResult]:
    """
    Sort a batch of entries into identifier folders under output_folder.

    Progress is reported as (index + 1) / len(entries) * 100 after each
    moved file; skipped entries still count toward the denominator, so the
    last value is below 100 when the final entries are skipped.

    Args:
        entries: Directory entries, in listing order
        source_folder: Folder the entries were listed from
        output_folder: Root under which identifier folders are created
        progress_callback: Optional callable(percent)
        matcher: Identifier rule (defaults to the strict rule)

    Returns:
        List of EntryResult objects

    Raises:
        SortIOError: On the first file-system failure
    """
    dispatcher = BatchDispatcher(
        source_folder,
        output_folder,
        matcher=matcher,
        progress_callback=progress_callback
    )
    return dispatcher.run(entries)
