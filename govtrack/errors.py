"""
Error types and error logging for govtrack.

Domain errors are raised synchronously to the caller and carry a message
naming the offending field or id. The CLI logs full stack traces for
unexpected failures while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class GovtrackError(Exception):
    """Base class for all govtrack domain errors."""


class ValidationError(GovtrackError, ValueError):
    """Malformed or out-of-range input (length, enum, priority, location)."""


class NotFoundError(GovtrackError, LookupError):
    """A referenced entity, government, or relation does not exist."""

    def __str__(self) -> str:
        # LookupError would otherwise repr() a single string argument
        return str(self.args[0]) if self.args else ""


class ConflictError(GovtrackError, ValueError):
    """Duplicate relation edge, duplicate support, or exhausted slug space."""


class CycleError(GovtrackError, ValueError):
    """A dependency relation would close a cycle in the dependency graph."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting GOVTRACK_DATA_DIR."""
    data_dir = os.environ.get("GOVTRACK_DATA_DIR")
    if data_dir:
        return Path(data_dir) / "govtrack-errors.log"
    return Path.home() / ".govtrack" / "govtrack-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
