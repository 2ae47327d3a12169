"""Utility functions for file operations"""
import logging
import re
import shutil
from pathlib import Path
from typing import Union

from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

INVALID_FILENAME_CHARS = ['/', '\\', ':', '*', '?', '"', '<', '>', '|', '\x00']

_UNSAFE_RUN = re.compile(r"[^A-Za-z0-9._-]+")


class FileProcessor:
    """File Processor - filesystem helpers shared by the storage services"""

    @staticmethod
    def safe_remove(path: Union[str, Path]) -> bool:
        """
        Delete a file or directory tree, logging instead of raising when it is already gone

        Args:
            path: Path to file or directory

        Returns:
            bool: True if something was deleted, False otherwise
        """
        path = Path(path)

        if path.is_file():
            path.unlink()
            logger.debug(f"File removed: {path}")
            return True
        elif path.is_dir():
            shutil.rmtree(path)
            logger.debug(f"Directory removed: {path}")
            return True

        logger.debug(f"Path does not exist: {path}")
        return False

    @staticmethod
    def ensure_directory(path: Union[str, Path], mode: int = 0o755) -> Path:
        """
        Ensure directory exists; create if it doesn't

        Args:
            path: Directory path
            mode: Directory permission mode

        Returns:
            Path: Created directory path
        """
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True, mode=mode)
        return path

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """
        Reduce a client-declared file name to a safe single path component

        Runs of characters outside ``[A-Za-z0-9._-]`` collapse to ``_`` and
        leading dots are stripped so the result can never escape its directory
        or become a hidden file.
        """
        name = Path(filename.replace("\\", "/")).name
        name = _UNSAFE_RUN.sub("_", name).lstrip(".")
        return name or "upload"


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure directory exists (compatibility wrapper)"""
    return FileProcessor.ensure_directory(path)


def safe_remove(path: Union[str, Path]) -> bool:
    """Safely delete file or directory (compatibility wrapper)"""
    return FileProcessor.safe_remove(path)


def sanitize_filename(filename: str) -> str:
    return FileProcessor.sanitize_filename(filename)


def get_file_size(file_path: Union[str, Path]) -> int:
    """Get file size in bytes"""
    return Path(file_path).stat().st_size


def is_valid_filename(filename: str) -> bool:
    """Check if filename is valid (no invalid characters)"""
    if not filename or not filename.strip() or filename in (".", ".."):
        return False

    return not any(char in filename for char in INVALID_FILENAME_CHARS)
