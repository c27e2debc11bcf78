"""
Unit tests for the sort service.
"""

import threading
from pathlib import Path
from unittest.mock import patch

import openpyxl
import pytest

from file_sorter import dispatcher as dispatcher_module
from file_sorter.errors import ValidationError
from file_sorter.identifier import get_matcher
from file_sorter.service import (
    ERROR_TITLE,
    IN_PROGRESS_MESSAGE,
    SorterService,
    list_source_entries,
    validate_request,
)
from file_sorter.store import ConfigStore, ErrorLog


class ErrorCollector:
    """Collects (title, message) pairs passed to the error callback."""

    def __init__(self):
        self.calls = []

    def __call__(self, title, message):
        self.calls.append((title, message))


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


@pytest.fixture
def errors():
    return ErrorCollector()


@pytest.fixture
def service(config_dir, errors):
    return SorterService(
        config_store=ConfigStore(config_dir),
        error_log=ErrorLog(config_dir),
        error_callback=errors,
    )


@pytest.fixture
def source(tmp_path):
    folder = tmp_path / "source"
    folder.mkdir()
    return folder


def make_files(folder: Path, names):
    for name in names:
        (folder / name).write_text(name)


class TestValidateRequest:
    """Tests for validate_request function."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_source_not_provided(self, value):
        with pytest.raises(ValidationError, match="Source folder not provided"):
            validate_request(value)

    def test_source_missing(self, tmp_path):
        with pytest.raises(ValidationError, match="Source directory does not exist"):
            validate_request(tmp_path / "missing")

    def test_source_is_file(self, tmp_path):
        (tmp_path / "f.txt").write_text("x")
        with pytest.raises(ValidationError, match="not a directory"):
            validate_request(tmp_path / "f.txt")

    def test_output_missing(self, tmp_path):
        with pytest.raises(ValidationError, match="Output directory was provided but does not exist"):
            validate_request(tmp_path, tmp_path / "missing")

    def test_output_optional(self, tmp_path):
        validate_request(tmp_path)
        validate_request(tmp_path, "")

    def test_validation_error_is_value_error(self):
        """Callers catching ValueError also catch validation failures."""
        assert issubclass(ValidationError, ValueError)


class TestListSourceEntries:
    """Tests for list_source_entries function."""

    def test_empty_source_rejected(self, tmp_path):
        with pytest.raises(ValidationError, match="No files found in source directory"):
            list_source_entries(tmp_path)

    def test_lists_entries(self, tmp_path):
        make_files(tmp_path, ["a.pdf"])
        assert [e.file_name for e in list_source_entries(tmp_path)] == ["a.pdf"]


class TestGetConfig:
    """Tests for SorterService.get_config."""

    def test_creates_default(self, service, config_dir):
        config = service.get_config()

        assert config["filesMoved"] == 0
        assert (config_dir / "config.json").exists()

    def test_get_errors_empty(self, service):
        assert service.get_errors() == []


class TestSortFiles:
    """Tests for SorterService.sort_files."""

    def test_sorts_into_output(self, service, source, tmp_path, errors):
        output = tmp_path / "output"
        output.mkdir()
        make_files(source, ["09-014-1234-56-789_RandomText.pdf", "readme.txt"])
        progress = []

        result = service.sort_files(source, output, progress.append)

        assert result == str(output)
        assert (output / "09014123456789" / "09-014-1234-56-789_RandomText.pdf").exists()
        assert (source / "readme.txt").exists()
        assert len(progress) == 1
        assert errors.calls == []

    def test_defaults_to_source_folder(self, service, source):
        make_files(source, ["09-014-1234-56-789.pdf"])

        result = service.sort_files(source)

        assert result == str(source)
        assert (source / "09014123456789" / "09-014-1234-56-789.pdf").exists()

    def test_counter_counts_moved_files(self, service, source):
        make_files(source, [
            "10-000-0001-00-001.pdf",
            "10-000-0002-00-001.pdf",
            "unrelated.txt",
        ])

        service.sort_files(source)

        assert service.get_config()["filesMoved"] == 2

    def test_validation_failure(self, service, tmp_path, errors, config_dir):
        """Validation errors are reported and nothing is logged or moved."""
        result = service.sort_files(tmp_path / "missing")

        assert result is None
        assert errors.calls == [(ERROR_TITLE, "Source directory does not exist")]
        assert not (config_dir / "errors.json").exists()

    def test_empty_source_is_validation_error(self, service, source, errors):
        """Running on an already-sorted (empty) source is rejected, not an abort."""
        result = service.sort_files(source)

        assert result is None
        assert errors.calls == [(ERROR_TITLE, "No files found in source directory")]

    def test_second_run_after_sort(self, service, source, tmp_path, errors):
        """Re-running on an emptied source moves nothing and is reported."""
        output = tmp_path / "output"
        output.mkdir()
        make_files(source, ["10-000-0001-00-001.pdf"])

        assert service.sort_files(source, output) == str(output)
        assert service.sort_files(source, output) is None

        assert errors.calls == [(ERROR_TITLE, "No files found in source directory")]
        assert (output / "10000000100001" / "10-000-0001-00-001.pdf").exists()

    def test_io_failure_aborts_and_logs(self, service, source, tmp_path, errors):
        """A failed move stops the batch, logs the error and returns None."""
        output = tmp_path / "output"
        output.mkdir()
        names = [f"10-000-000{i}-00-001.pdf" for i in range(1, 6)]
        make_files(source, names)
        real_move = dispatcher_module.safe_move_file
        moved = []

        def move(src, dest):
            if len(moved) == 2:
                raise PermissionError(13, "Permission denied", str(src))
            real_move(src, dest)
            moved.append(Path(src).name)

        with patch.object(dispatcher_module, "safe_move_file", move):
            result = service.sort_files(source, output)

        assert result is None
        assert len(moved) == 2
        for name in moved:
            assert not (source / name).exists()
        assert len(list(source.iterdir())) == 3

        assert len(errors.calls) == 1
        title, message = errors.calls[0]
        assert title == ERROR_TITLE
        assert message.startswith("Failed to sort the files: ")
        assert "Permission denied" in message

        records = service.get_errors()
        assert records[-1]["error"]["name"] == "PermissionError"
        # Files moved before the abort are still counted
        assert service.get_config()["filesMoved"] == 2

    def test_corrupt_config_reported(self, config_dir, source, errors):
        """An unreadable config after the batch is reported, not raised."""
        config_dir.mkdir()
        (config_dir / "config.json").write_text("{bad")
        service = SorterService(
            config_store=ConfigStore(config_dir),
            error_log=ErrorLog(config_dir),
            matcher=get_matcher("strict"),
            error_callback=errors,
        )
        make_files(source, ["10-000-0001-00-001.pdf"])

        result = service.sort_files(source)

        assert result is None
        assert len(errors.calls) == 1
        title, message = errors.calls[0]
        assert title == ERROR_TITLE
        assert message.startswith("Failed to sort the files: ")
        assert "Corrupt JSON" in message
        assert (source / "10000000100001" / "10-000-0001-00-001.pdf").exists()

    def test_corrupt_error_log_keeps_original_failure(self, service, source, tmp_path, errors, config_dir):
        """A broken error log does not hide the IO failure that aborted the batch."""
        config_dir.mkdir()
        (config_dir / "errors.json").write_text("{bad")
        output = tmp_path / "output"
        output.mkdir()
        (output / "10000000100001").write_text("not a folder")
        make_files(source, ["10-000-0001-00-001.pdf"])

        result = service.sort_files(source, output)

        assert result is None
        assert len(errors.calls) == 1
        title, message = errors.calls[0]
        assert title == ERROR_TITLE
        assert message.startswith("Failed to sort the files: ")
        assert "Corrupt JSON" not in message
        assert (source / "10-000-0001-00-001.pdf").exists()
        assert (config_dir / "errors.json").read_text() == "{bad"

    def test_no_match_is_not_an_error(self, service, source, errors):
        """A batch with only unrecognised names completes successfully."""
        make_files(source, ["notes.txt", "09-014-0-AA01-10-001 other text.pdf"])

        result = service.sort_files(source)

        assert result == str(source)
        assert errors.calls == []
        assert service.get_errors() == []
        assert sorted(p.name for p in source.iterdir()) == [
            "09-014-0-AA01-10-001 other text.pdf",
            "notes.txt",
        ]

    def test_rejects_overlapping_batch(self, service, source, errors):
        """A second sort while one is running is rejected."""
        make_files(source, ["10-000-0001-00-001.pdf"])
        started = threading.Event()
        release = threading.Event()
        results = []

        def slow_progress(percent):
            started.set()
            release.wait(timeout=5)

        worker = threading.Thread(
            target=lambda: results.append(service.sort_files(source, None, slow_progress))
        )
        worker.start()
        assert started.wait(timeout=5)

        assert service.is_sorting
        assert service.sort_files(source) is None
        assert errors.calls == [(ERROR_TITLE, IN_PROGRESS_MESSAGE)]

        release.set()
        worker.join(timeout=5)
        assert results == [str(source)]
        assert not service.is_sorting

    def test_writes_report(self, service, source, tmp_path):
        make_files(source, ["10-000-0001-00-001.pdf", "notes.txt"])
        report_path = tmp_path / "report.xlsx"

        service.sort_files(source, report_path=report_path)

        workbook = openpyxl.load_workbook(report_path)
        try:
            statuses = sorted(row[3] for row in workbook["Results"].iter_rows(min_row=2, values_only=True))
        finally:
            workbook.close()
        assert statuses == ["MOVED", "SKIPPED_NO_MATCH"]

    def test_writes_report_on_failure(self, service, source, tmp_path):
        """The report records the failing entry too."""
        make_files(source, ["10-000-0001-00-001.pdf"])
        report_path = tmp_path / "report.xlsx"

        def move(src, dest):
            raise PermissionError(13, "Permission denied", str(src))

        with patch.object(dispatcher_module, "safe_move_file", move):
            assert service.sort_files(source, report_path=report_path) is None

        workbook = openpyxl.load_workbook(report_path)
        try:
            rows = list(workbook["Results"].iter_rows(min_row=2, values_only=True))
        finally:
            workbook.close()
        assert [row[3] for row in rows] == ["ERROR"]


class TestIdentifierRuleSelection:
    """Tests for picking the identifier rule."""

    def test_default_is_strict(self, service):
        assert service.resolve_matcher().name == "strict"

    def test_rule_from_config(self, service, source):
        """The config's identifierRule is used when no matcher is given."""
        service.config_store.document.write({"filesMoved": 0, "identifierRule": "legacy"})
        make_files(source, ["09-014-0-AA01-10-001 other text.pdf"])

        service.sort_files(source)

        assert (source / "090140AA0110001" / "09-014-0-AA01-10-001 other text.pdf").exists()

    def test_explicit_matcher_wins(self, config_dir, source):
        store = ConfigStore(config_dir)
        store.document.write({"identifierRule": "strict"})
        service = SorterService(config_store=store, matcher=get_matcher("legacy"))

        assert service.resolve_matcher().name == "legacy"

    def test_unknown_rule_in_config(self, service, source, errors):
        service.config_store.document.write({"identifierRule": "fuzzy"})
        make_files(source, ["09-014-1234-56-789.pdf"])

        assert service.sort_files(source) is None
        assert "Unknown identifier rule" in errors.calls[0][1]
        assert (source / "09-014-1234-56-789.pdf").exists()
