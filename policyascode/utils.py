"""
Utility functions and helpers for the toolkit.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Optional

from policyascode.exceptions import DocumentNotFoundError

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "policyascode"


# ============================================================================
# Logging Setup
# ============================================================================

def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure and return the package logger.

    Args:
        level: Logging level name
        log_file: Optional path of a rotating log file

    Returns:
        logging.Logger: Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)

    # Repeated calls (tests, nested CLI invocations) must not stack handlers
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    # Console handler; stdout is reserved for JSON output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_format = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    package_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_format = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_format)
        package_logger.addHandler(file_handler)

    return package_logger


# ============================================================================
# Decorators
# ============================================================================

def timeit(func):
    """Decorator to measure function execution time."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.time()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.time() - start
            logger.debug(f"{func.__name__} took {elapsed:.2f}s")
    return wrapper


# ============================================================================
# JSON Utilities
# ============================================================================

def save_json(data: Any, filepath: Path, indent: int = 2) -> None:
    """
    Save data to JSON file.

    Args:
        data: Data to save
        filepath: Path to output file
        indent: JSON indentation level
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
        f.write("\n")
    logger.info(f"Saved JSON to {filepath}")


def load_json(filepath: Path) -> Any:
    """
    Load data from JSON file.

    Args:
        filepath: Path to JSON file

    Returns:
        Loaded JSON data

    Raises:
        DocumentNotFoundError: If the file does not exist
    """
    filepath = Path(filepath)
    if not filepath.is_file():
        raise DocumentNotFoundError(filepath)
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


def dump_json(data: Any, indent: int = 2) -> str:
    """Serialize data the same way ``save_json`` writes it."""
    return json.dumps(data, indent=indent, ensure_ascii=False)


# ============================================================================
# Progress and Reporting
# ============================================================================

class ProgressTracker:
    """Track progress of batch operations."""

    def __init__(self, total: int, name: str = "Processing"):
        self.total = total
        self.name = name
        self.current = 0
        self.succeeded = 0
        self.failed = 0
        self.skipped = 0
        self.start_time = datetime.now()

    def update(self, success: bool = True, increment: int = 1):
        """Update progress."""
        self.current += increment
        if success:
            self.succeeded += increment
        else:
            self.failed += increment
        self._log()

    def skip(self, increment: int = 1):
        """Count items that needed no work."""
        self.current += increment
        self.skipped += increment
        self._log()

    def _log(self):
        percentage = (self.current / self.total) * 100 if self.total else 100.0
        logger.info(
            f"{self.name}: {self.current}/{self.total} ({percentage:.1f}%) - "
            f"{self.succeeded} ok, {self.failed} failed, {self.skipped} skipped"
        )

    def finish(self):
        """Mark as finished."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        logger.info(
            f"{self.name} completed in {elapsed:.1f}s "
            f"({self.succeeded}/{self.total} succeeded, {self.skipped} skipped)"
        )
