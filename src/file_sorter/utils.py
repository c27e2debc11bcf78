"""
File-system helpers used by the batch dispatcher.

This module provides:
- list_directory(): Directory listing as DirectoryEntry objects, in OS order
- is_regular_file(): stat-based check that a path is a regular file
- ensure_directory(): Idempotent folder creation that tolerates races
- safe_move_file(): File move with a copy+delete fallback for cross-volume moves
"""

import errno
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import List, Union

from .types import DirectoryEntry

logger = logging.getLogger(__name__)

# WinError 17: The system cannot move the file to a different disk drive
WINERROR_NOT_SAME_DEVICE = 17


def list_directory(path: Union[str, Path]) -> List[DirectoryEntry]:
    """
    List the entries of a directory without sorting them.

    Args:
        path: Directory to list

    Returns:
        One DirectoryEntry per name, in the order the OS returned them

    Raises:
        OSError: If the directory cannot be read
    """
    return [DirectoryEntry(file_name=name) for name in os.listdir(path)]


def is_regular_file(path: Union[str, Path]) -> bool:
    """
    Check whether a path is a regular file.

    Unlike Path.is_file(), errors from stat are not swallowed: a path that
    vanished or cannot be read raises.

    Raises:
        OSError: If stat fails
    """
    return stat.S_ISREG(os.stat(path).st_mode)


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Create a directory and any missing parents.

    A directory that already exists (including one created concurrently
    by another process) counts as success.

    Args:
        path: Directory to create

    Returns:
        The directory as a Path

    Raises:
        OSError: If the directory cannot be created, or a non-directory
                 already occupies the path
    """
    path = Path(path)
    if not path.is_dir():
        logger.debug(f"Creating folder: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_move_file(src: Union[str, Path], dest: Union[str, Path]) -> None:
    """
    Move a single file, never overwriting an existing destination.

    This function:
    - Refuses to replace an existing file at dest (FileExistsError)
    - Uses os.rename for same-volume moves
    - Falls back to copy + delete when the rename crosses devices
    - Removes a partial copy if the fallback fails

    Args:
        src: Source file path
        dest: Destination file path (full path including the file name)

    Raises:
        FileExistsError: If dest already exists
        OSError: For permission, locking and other move failures
    """
    src_str = str(src)
    dest_str = str(dest)

    if os.path.lexists(dest_str):
        raise FileExistsError(
            errno.EEXIST,
            "A different file with the same name already exists at the destination",
            dest_str
        )

    try:
        os.rename(src_str, dest_str)
    except OSError as e:
        if not _is_cross_device(e):
            raise
        logger.info(f"Cross-volume move detected, using copy+delete: {src_str}")
        _copy_and_delete(src_str, dest_str)


def _is_cross_device(e: OSError) -> bool:
    """Check whether an OSError means the rename crossed devices."""
    if e.errno == errno.EXDEV:
        return True
    return getattr(e, "winerror", None) == WINERROR_NOT_SAME_DEVICE


def _copy_and_delete(src: str, dest: str) -> None:
    """
    Fall back to copy + delete when a rename cannot cross devices.

    Args:
        src: Source file path
        dest: Destination file path

    Raises:
        OSError: If the copy or the delete fails
    """
    try:
        shutil.copy2(src, dest)
    except OSError:
        _cleanup_partial_copy(dest)
        raise

    if not os.path.exists(dest):
        raise OSError(
            errno.ENOENT,
            "Copy appeared to succeed but destination not found",
            dest
        )

    try:
        os.unlink(src)
    except OSError:
        # Keep exactly one copy of the file
        _cleanup_partial_copy(dest)
        raise
    logger.info("Moved via copy+delete fallback")


def _cleanup_partial_copy(dest: str) -> None:
    """Attempt to clean up a partial copy on failure."""
    try:
        if os.path.exists(dest):
            os.unlink(dest)
            logger.debug(f"Cleaned up partial copy at {dest}")
    except OSError as e:
        logger.warning(f"Could not clean up partial copy at {dest}: {e}")


def format_os_error(e: BaseException) -> str:
    """
    Format an error with its Windows error code if available.

    Args:
        e: The exception to format

    Returns:
        Formatted error string
    """
    error_code = getattr(e, "winerror", None)
    if error_code is not None:
        return f"[WinError {error_code}] {e}"
    return str(e)
