"""Diagnostics for the duotone CLI.

faulthandler covers native crashes inside numpy / Pillow, sys.excepthook
turns uncaught Python exceptions into JSON crash dumps, and the root logger
writes one JSON object per line to a size-rotated file.
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import traceback
from pathlib import Path

import numpy as np
import PIL

from _version import __version__
from security import strip_pii

logger = logging.getLogger(__name__)

APP_DIR = "~/.duotone"
LOG_NAME = "duotone.log"
FAULT_LOG_NAME = "duotone_fault.log"

MAX_CRASH_REPORTS = 5
LOG_MAX_BYTES = 10_000_000
LOG_BACKUPS = 7


def _validate_log_dir(env_dir: str) -> str:
    """Keep APP_LOG_DIR under ~/.duotone; anything else falls back to the default."""
    default = os.path.expanduser(f"{APP_DIR}/logs")
    if not env_dir:
        return default
    resolved = os.path.realpath(env_dir)
    allowed = os.path.realpath(os.path.expanduser(APP_DIR))
    if resolved != allowed and not resolved.startswith(allowed + os.sep):
        logger.warning("APP_LOG_DIR outside allowed prefix, using default")
        return default
    return resolved


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry)


def _cleanup_old_crash_reports(crash_dir: str):
    """Keep only the newest MAX_CRASH_REPORTS crash files."""
    try:
        crash_files = sorted(
            Path(crash_dir).glob("crash_*.json"),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        for old in crash_files[MAX_CRASH_REPORTS:]:
            old.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Crash report cleanup skipped: %s", e)


def setup_structured_logging(log_dir: str | None = None) -> str:
    """Attach the rotating JSON log handler to the root logger.

    Calling it again for the same directory does not add a second handler.
    Returns the directory actually used.
    """
    resolved_dir = _validate_log_dir(log_dir or os.environ.get("APP_LOG_DIR", ""))
    os.makedirs(resolved_dir, mode=0o700, exist_ok=True)
    log_path = os.path.abspath(os.path.join(resolved_dir, LOG_NAME))

    root = logging.getLogger()
    level = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    for h in root.handlers:
        if (
            isinstance(h, logging.handlers.RotatingFileHandler)
            and h.baseFilename == log_path
        ):
            return resolved_dir

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS
    )
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    return resolved_dir


def setup_faulthandler(log_dir: str):
    # Separate file: rotation would invalidate faulthandler's descriptor
    fault_path = os.path.join(log_dir, FAULT_LOG_NAME)
    try:
        fault_file = open(fault_path, "a", buffering=1)  # noqa: SIM115
        os.chmod(fault_path, 0o600)
        faulthandler.enable(file=fault_file, all_threads=True)
    except OSError as e:
        logger.warning("Could not enable faulthandler: %s", e)


def write_crash_report(crash_dir: str, exc_type, exc_value, exc_tb) -> str:
    """Write a PII-scrubbed JSON crash dump and return its path.

    Library versions are included because most native crashes come from a
    specific numpy or Pillow build.
    """
    os.makedirs(crash_dir, mode=0o700, exist_ok=True)
    timestamp = datetime.datetime.now(tz=datetime.timezone.utc).strftime(
        "%Y%m%dT%H%M%S%fZ"
    )
    crash_path = os.path.join(crash_dir, f"crash_{timestamp}.json")

    report = {
        "timestamp": timestamp,
        "exception_type": exc_type.__name__ if exc_type else "Unknown",
        "exception_message": str(exc_value),
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
        "versions": {
            "duotone": __version__,
            "numpy": np.__version__,
            "pillow": PIL.__version__,
            "python": sys.version.split()[0],
        },
        "platform": sys.platform,
    }
    # strip_pii takes a Sentry event; the dump rides in "extra"
    report = strip_pii({"extra": report}, {}).get("extra", report)

    old_umask = os.umask(0o077)
    try:
        with open(crash_path, "w") as f:
            json.dump(report, f, indent=2)
    finally:
        os.umask(old_umask)

    _cleanup_old_crash_reports(crash_dir)
    return crash_path


def setup_excepthook(crash_dir: str | None = None):
    """Route uncaught exceptions through write_crash_report, then the default hook."""
    crash_dir = crash_dir or os.path.expanduser(f"{APP_DIR}/crash_reports")

    def _crash_excepthook(exc_type, exc_value, exc_tb):
        try:
            write_crash_report(crash_dir, exc_type, exc_value, exc_tb)
        except Exception as e:
            print(f"WARNING: Could not write crash report: {e}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_excepthook


def init_diagnostics():
    """Logging, faulthandler and crash dumps, in that order. Called by main()."""
    log_dir = setup_structured_logging()
    setup_faulthandler(log_dir)
    setup_excepthook()
    logger.info("Diagnostics initialized: logging=%s", log_dir)
