"""
Excel report writer for sort batches.

This module is responsible for:
- Writing XLSX reports using openpyxl
- Recording one row per processed entry (timestamp, paths, status)
- Recording the run parameters and per-status counts on a summary sheet
- Creating the report's parent folder when needed
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import openpyxl
from openpyxl.styles import Font

from .types import EntryResult, EntryStatus

logger = logging.getLogger(__name__)

RESULTS_SHEET = "Results"
SUMMARY_SHEET = "Summary"

# Column headers of the results sheet, in order
REPORT_COLUMNS = [
    "timestamp",
    "file_name",
    "identifier",
    "status",
    "source_path",
    "dest_path",
    "message",
]


class ReportWriter:
    """
    XLSX report for one sort batch.

    Rows are buffered in an openpyxl workbook and saved on close().
    """

    def __init__(self, report_path: Union[str, Path]):
        """
        Initialize the report writer.

        Args:
            report_path: Path where the XLSX report will be written
        """
        self.report_path = Path(report_path)

        self._workbook = openpyxl.Workbook()
        self._results = self._workbook.active
        self._results.title = RESULTS_SHEET
        self._results.append(REPORT_COLUMNS)
        for cell in self._results[1]:
            cell.font = Font(bold=True)

        self._parameters: Dict[str, str] = {}
        self._stats: Dict[str, int] = {status.name: 0 for status in EntryStatus}
        self._row_count = 0
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def write_parameters(self, params: Dict[str, str]) -> None:
        """Record run parameters for the summary sheet (empty values are dropped)."""
        self._parameters.update({k: v for k, v in params.items() if v})

    def write_result(self, result: EntryResult, timestamp: Optional[str] = None) -> None:
        """
        Write a single entry result.

        Args:
            result: The EntryResult to record
            timestamp: Optional timestamp (defaults to current time)
        """
        self._results.append([
            timestamp or datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            result.file_name,
            result.identifier,
            result.status.name,
            result.source_path,
            result.dest_path or "",
            result.message,
        ])
        self._row_count += 1
        self._stats[result.status.name] += 1

    def write_results(self, results: Iterable[EntryResult]) -> None:
        for result in results:
            self.write_result(result)

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def close(self) -> None:
        """Build the summary sheet and save the workbook."""
        if self._closed:
            return

        summary = self._workbook.create_sheet(SUMMARY_SHEET)
        summary.append(["key", "value"])
        for key, value in self._parameters.items():
            summary.append([key, value])
        summary.append([])
        summary.append(["status", "count"])
        for status, count in self._stats.items():
            summary.append([status, count])
        summary.append(["TOTAL", self._row_count])

        self.report_path.parent.mkdir(parents=True, exist_ok=True)
        self._workbook.save(self.report_path)
        self._workbook.close()
        self._closed = True
        logger.info(
            f"Report saved: {self._row_count} rows written to {self.report_path}"
        )


def write_report(
    report_path: Union[str, Path],
    results: Iterable[EntryResult],
    parameters: Optional[Dict[str, str]] = None
) -> Path:
    """
    Write a complete XLSX report in one call.

    Args:
        report_path: Destination .xlsx path
        results: Entry results of the batch
        parameters: Optional run parameters for the summary sheet

    Returns:
        Path to the written report
    """
    with ReportWriter(report_path) as writer:
        if parameters:
            writer.write_parameters(parameters)
        writer.write_results(results)
    return writer.report_path

