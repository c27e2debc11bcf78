"""
Command-line interface for the file sorter.

This module is responsible for:
- Parsing command-line arguments using argparse
- Configuring logging based on verbosity level
- Running sort batches and printing their progress
- Printing the persisted config and the error log
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__, PRODUCT_NAME, PRODUCT_DESCRIPTION
from .identifier import DEFAULT_RULE, MATCHERS, get_matcher
from .service import SorterService
from .store import ConfigStore, ErrorLog

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="file-sorter",
        description=f"""
{PRODUCT_NAME} - {PRODUCT_DESCRIPTION}

Moves files whose names contain an identifier such as 09-014-1234-56-789
into OUTPUT/<identifier>/. Files without an identifier stay where they are.
        """.strip(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sort in place (identifier folders are created inside the source)
  %(prog)s sort C:\\Scans

  # Sort into a separate output folder and write a report
  %(prog)s sort C:\\Scans C:\\Sorted --report sort.xlsx

  # Use the legacy rule (alphanumeric third segment)
  %(prog)s sort C:\\Scans --rule legacy

  # Show the config and the last 5 errors
  %(prog)s config
  %(prog)s errors --limit 5
        """
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory holding config.json and errors.json"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v for INFO, -vv for DEBUG)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=__version__
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    sort_parser = subparsers.add_parser("sort", help="Sort files into identifier folders")
    sort_parser.add_argument(
        "source_folder",
        type=Path,
        help="Folder containing the files to sort"
    )
    sort_parser.add_argument(
        "output_folder",
        type=Path,
        nargs="?",
        default=None,
        help="Existing folder to sort into (default: the source folder)"
    )
    sort_parser.add_argument(
        "--rule",
        type=str,
        choices=sorted(MATCHERS),
        default=None,
        help=f"Identifier rule (default: config 'identifierRule', else {DEFAULT_RULE})"
    )
    sort_parser.add_argument(
        "-r", "--report",
        type=Path,
        default=None,
        metavar="XLSX_FILE",
        help="Write an XLSX report to XLSX_FILE"
    )

    subparsers.add_parser("config", help="Print the persisted config")

    errors_parser = subparsers.add_parser("errors", help="Print logged errors")
    errors_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        metavar="N",
        help="Show only the N most recent errors (0 for all, default: 10)"
    )

    return parser


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def print_error(title: str, message: str) -> None:
    print(f"{title}: {message}", file=sys.stderr)


def print_progress(percent: float) -> None:
    print(f"Sorting progress: {percent:.0f}%")


def build_service(args: argparse.Namespace) -> SorterService:
    config_store = ConfigStore(args.config_dir)
    matcher = get_matcher(args.rule) if getattr(args, "rule", None) else None
    return SorterService(
        config_store=config_store,
        error_log=ErrorLog(config_store.config_dir),
        matcher=matcher,
        error_callback=print_error
    )


def run_sort(args: argparse.Namespace) -> int:
    """Run a sort batch; returns the exit code."""
    service = build_service(args)

    report_path = args.report

    print(f"\n{'='*60}")
    print(f"{PRODUCT_NAME} {__version__}")
    print(f"{'='*60}")
    print(f"Source folder: {args.source_folder}")
    print(f"Output folder: {args.output_folder or args.source_folder}")
    if report_path:
        print(f"Report:        {report_path}")
    print(f"{'='*60}\n")

    result = service.sort_files(
        args.source_folder,
        args.output_folder,
        progress_callback=print_progress,
        report_path=report_path
    )

    if service.last_dispatcher is not None:
        print(f"\n{service.last_dispatcher.get_summary()}")

    if result is None:
        return 1

    print(f"\nFiles have been sorted and moved to: {result}")
    return 0


def run_config(args: argparse.Namespace) -> int:
    service = build_service(args)
    print(json.dumps(service.get_config(), indent=2))
    return 0


def run_errors(args: argparse.Namespace) -> int:
    service = build_service(args)
    records = service.get_errors()
    if args.limit > 0:
        records = records[-args.limit:]

    if not records:
        print("No errors logged.")
        return 0

    for record in records:
        error = record.get("error", {})
        print(
            f"{record.get('date', '?')}  {record.get('errorId', '?')}  "
            f"{error.get('name', 'Unknown')}: {error.get('message', '')}"
        )
    return 0


COMMANDS = {
    "sort": run_sort,
    "config": run_config,
    "errors": run_errors,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    logger.info(f"{PRODUCT_NAME} v{__version__}")
    logger.debug(f"Arguments: {args}")

    try:
        return COMMANDS[args.command](args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.debug("Unhandled OS error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
