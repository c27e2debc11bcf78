"""
File Sorter - moves files into folders named after the identifier in their filename.

This package provides functionality to:
- Extract a structured identifier (e.g. 09-014-1234-56-789) from a filename
- Move each recognised file into an output subfolder named by its identifier
- Report progress after every moved file
- Keep a persisted config document with a moved-files counter
- Keep an append-only JSON error log
- Write optional XLSX reports of a sort batch
"""

PRODUCT_NAME = "File Sorter"
PRODUCT_VERSION = "1.2.0"
PRODUCT_DESCRIPTION = "Organize your files by name"

__version__ = PRODUCT_VERSION
__author__ = "WPS Programs"
