"""
Caller-facing sort service.

This module is responsible for:
- Validating a sort request before anything is touched
- Rejecting a new batch while another one is running
- Listing the source folder and running the batch dispatcher
- Updating the moved-files counter after each batch
- Logging mid-batch failures to the error log
- Surfacing user-facing error messages through a callback
- Optionally writing an XLSX report of the batch
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from . import __version__
from .dispatcher import BatchDispatcher, ProgressCallback
from .errors import SortInProgressError, SortIOError, ValidationError
from .identifier import IdentifierMatcher, get_matcher
from .report import write_report
from .store import ConfigStore, ErrorLog
from .types import DirectoryEntry
from .utils import list_directory

logger = logging.getLogger(__name__)

ERROR_TITLE = "Error Sorting Files"
IN_PROGRESS_MESSAGE = (
    "You're already sorting files. Please wait for that process to finish."
)

ErrorCallback = Callable[[str, str], None]

PathLike = Union[str, Path]


def validate_request(
    source_folder: Optional[PathLike],
    output_folder: Optional[PathLike] = None
) -> None:
    """
    Check a sort request before any file is touched.

    Args:
        source_folder: Folder to sort
        output_folder: Optional output root (must already exist if given)

    Raises:
        ValidationError: With a user-facing message
    """
    if not source_folder:
        raise ValidationError("Source folder not provided")

    source = Path(source_folder)
    if not source.exists():
        raise ValidationError("Source directory does not exist")
    if not source.is_dir():
        raise ValidationError("Source path is not a directory")

    if output_folder and not Path(output_folder).exists():
        raise ValidationError("Output directory was provided but does not exist")


def list_source_entries(source_folder: PathLike) -> List[DirectoryEntry]:
    """
    List the source folder for a batch.

    Raises:
        ValidationError: If the folder has no entries
    """
    entries = list_directory(source_folder)
    if not entries:
        raise ValidationError("No files found in source directory")
    return entries


def _log_error_callback(title: str, message: str) -> None:
    logger.error(f"{title}: {message}")


class SorterService:
    """
    Runs sort batches and exposes the persisted config and error log.

    Only one batch runs at a time per service instance.
    """

    def __init__(
        self,
        config_store: Optional[ConfigStore] = None,
        error_log: Optional[ErrorLog] = None,
        matcher: Optional[IdentifierMatcher] = None,
        error_callback: Optional[ErrorCallback] = None
    ):
        """
        Initialize the service.

        Args:
            config_store: Config/counter store (default location if omitted)
            error_log: Error log (same directory as the config store if omitted)
            matcher: Identifier rule; when omitted the config's
                     "identifierRule" is used, then the strict rule
            error_callback: Optional callable(title, message) for user-facing
                            errors (defaults to logging them)
        """
        self.config_store = config_store or ConfigStore()
        self.error_log = error_log or ErrorLog(self.config_store.config_dir)
        self.matcher = matcher
        self.error_callback = error_callback or _log_error_callback

        self._batch_lock = threading.Lock()
        self.last_dispatcher: Optional[BatchDispatcher] = None

    @property
    def is_sorting(self) -> bool:
        return self._batch_lock.locked()

    def get_config(self) -> Dict[str, Any]:
        """Return the persisted config, creating it on first use."""
        return self.config_store.load()

    def get_errors(self) -> List[Dict[str, Any]]:
        """Return all error log records, oldest first."""
        return self.error_log.read_all()

    def resolve_matcher(self) -> IdentifierMatcher:
        """Pick the identifier rule: explicit matcher, then config, then default."""
        if self.matcher is not None:
            return self.matcher
        return get_matcher(self.config_store.get("identifierRule"))

    def sort_files(
        self,
        source_folder: Optional[PathLike],
        output_folder: Optional[PathLike] = None,
        progress_callback: Optional[ProgressCallback] = None,
        report_path: Optional[PathLike] = None
    ) -> Optional[str]:
        """
        Run one sort batch.

        Files in source_folder whose names carry an identifier are moved to
        <output>/<identifier>/<name>, where <output> is output_folder if given,
        otherwise source_folder.

        Args:
            source_folder: Folder to sort
            output_folder: Optional existing output root
            progress_callback: Optional callable(percent)
            report_path: Optional .xlsx path for a batch report

        Returns:
            The effective output folder on success, None on failure (the
            failure has already been reported through error_callback)
        """
        if not self._batch_lock.acquire(blocking=False):
            self._report(SortInProgressError(IN_PROGRESS_MESSAGE), IN_PROGRESS_MESSAGE)
            return None

        try:
            return self._sort_locked(
                source_folder, output_folder, progress_callback, report_path
            )
        finally:
            self._batch_lock.release()

    def _sort_locked(
        self,
        source_folder: Optional[PathLike],
        output_folder: Optional[PathLike],
        progress_callback: Optional[ProgressCallback],
        report_path: Optional[PathLike]
    ) -> Optional[str]:
        try:
            validate_request(source_folder, output_folder)
            entries = list_source_entries(source_folder)
            matcher = self.resolve_matcher()
        except ValueError as e:
            # ValidationError, unknown identifier rule or unreadable config
            self._report(e, str(e))
            return None
        except OSError as e:
            self._record_error(e)
            self._report(e, f"Failed to sort the files: {e}")
            return None

        effective_output = str(output_folder or source_folder)
        dispatcher = BatchDispatcher(
            source_folder,
            effective_output,
            matcher=matcher,
            progress_callback=progress_callback
        )
        self.last_dispatcher = dispatcher

        failure: Optional[SortIOError] = None
        try:
            dispatcher.run(entries)
        except SortIOError as e:
            failure = e
        finally:
            if report_path:
                self._write_report(report_path, dispatcher, source_folder, effective_output)
            logger.info(dispatcher.get_summary())

        if failure is not None:
            self._record_error(failure.__cause__ or failure)
            self._report(failure, f"Failed to sort the files: {failure}")
            # Files moved before the abort stay moved and are counted
            try:
                self.config_store.add_files_moved(dispatcher.moved_count)
            except (OSError, ValueError) as e:
                logger.error(f"Could not update the moved-files counter: {e}")
            return None

        try:
            total = self.config_store.add_files_moved(dispatcher.moved_count)
        except (OSError, ValueError) as e:
            logger.error(f"Could not update the moved-files counter: {e}")
            self._record_error(e)
            self._report(e, f"Failed to sort the files: {e}")
            return None

        logger.info(f"Files moved so far: {total}")
        return effective_output

    def _record_error(self, error: BaseException) -> None:
        """Append an error to the error log; a broken log never hides the error."""
        try:
            self.error_log.record(error)
        except (OSError, ValueError) as e:
            logger.error(f"Could not write error log {self.error_log.document.path}: {e}")

    def _write_report(
        self,
        report_path: PathLike,
        dispatcher: BatchDispatcher,
        source_folder: PathLike,
        output_folder: str
    ) -> None:
        parameters = {
            "version": __version__,
            "timestamp": datetime.now().isoformat(),
            "source_folder": str(source_folder),
            "output_folder": output_folder,
            "rule": dispatcher.matcher.name,
            "state": dispatcher.state.value,
        }
        try:
            write_report(report_path, dispatcher.results, parameters)
        except OSError as e:
            logger.error(f"Could not write report {report_path}: {e}")

    def _report(self, error: BaseException, message: str) -> None:
        logger.debug(f"Reporting {type(error).__name__}: {message}")
        self.error_callback(ERROR_TITLE, message)
