"""Utility modules - provide common utility functions and classes."""
from chunked_upload.utils.file_utils import (
    ensure_directory,
    get_file_size,
    is_valid_filename,
    safe_remove,
    sanitize_filename,
)
from chunked_upload.utils.logger import configure_logging, get_logger

__all__ = [
    "ensure_directory",
    "safe_remove",
    "sanitize_filename",
    "get_file_size",
    "is_valid_filename",
    "configure_logging",
    "get_logger",
]
