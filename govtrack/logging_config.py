"""
Logging configuration for govtrack.

Quiet by default for better CLI output; debug output goes to stderr and
mutations are recorded in a per-data-directory operations log.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_quiet_mode(quiet: bool = True):
    """
    Keep library and govtrack log output off the terminal.

    Args:
        quiet: If True, suppress warnings and anything below WARNING.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        logging.getLogger("govtrack").setLevel(logging.WARNING)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("govtrack").setLevel(logging.DEBUG)


def configure_ops_log(data_dir):
    """Configure a persistent operations log for a data directory.

    Writes to {data_dir}/govtrack-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    log_path = Path(data_dir) / "govtrack-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    govtrack_logger = logging.getLogger("govtrack")
    govtrack_logger.addHandler(handler)
    # Let INFO through to the ops log even in quiet mode
    if govtrack_logger.level == logging.NOTSET or govtrack_logger.level > logging.INFO:
        govtrack_logger.setLevel(logging.INFO)

    return handler
