"""Sidecar diagnostics: JSON log file, fault log, crash dumps.

Everything is written under ``~/.pixelsort``. Sort runs attach their
generation and line counts through ``extra=``; the formatter copies those
onto each JSON line so a run can be followed through the log.
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback
from pathlib import Path

from security import strip_pii

logger = logging.getLogger(__name__)

APP_DIR = os.path.expanduser("~/.pixelsort")
DEFAULT_LOG_DIR = os.path.join(APP_DIR, "logs")
DEFAULT_CRASH_DIR = os.path.join(APP_DIR, "crash_reports")
LOG_FILE_NAME = "pixelsort.log"
FAULT_FILE_NAME = "pixelsort_fault.log"

MAX_CRASH_REPORTS = 5
MAX_LOG_AGE_DAYS = 7
MAX_LOG_BYTES = 10_000_000
LOG_BACKUP_COUNT = 7

# Record attributes set through ``logger.info(..., extra={...})``
RUN_CONTEXT_FIELDS = ("generation", "mode", "processed_lines", "total_lines")


def _validate_log_dir(env_dir: str) -> str:
    """Return ``env_dir`` resolved if it lies under APP_DIR, else the default."""
    if not env_dir:
        return DEFAULT_LOG_DIR
    resolved = os.path.realpath(env_dir)
    allowed = os.path.realpath(APP_DIR)
    if resolved == allowed or resolved.startswith(allowed + os.sep):
        return resolved
    logger.warning("APP_LOG_DIR outside %s, using default", APP_DIR)
    return DEFAULT_LOG_DIR


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with sort-run context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        run = {
            name: getattr(record, name)
            for name in RUN_CONTEXT_FIELDS
            if hasattr(record, name)
        }
        if run:
            entry["run"] = run
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


def _prune(
    directory: str,
    pattern: str,
    keep: int | None = None,
    max_age_days: int | None = None,
):
    """Delete files matching ``pattern``: beyond the newest ``keep``, or older than ``max_age_days``."""
    try:
        files = sorted(
            Path(directory).glob(pattern),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        doomed = files[keep:] if keep is not None else []
        if max_age_days is not None:
            cutoff = time.time() - max_age_days * 86400
            doomed += [f for f in files if f.stat().st_mtime < cutoff and f not in doomed]
        for f in doomed:
            f.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Pruning %s skipped: %s", pattern, type(e).__name__)


def setup_structured_logging(log_dir: str | None = None) -> str:
    """Attach a rotating JSON file handler to the root logger. Returns the log dir.

    ``log_dir`` (or ``APP_LOG_DIR``) must stay under ``~/.pixelsort``;
    ``APP_LOG_LEVEL`` sets the root level.
    """
    resolved_dir = _validate_log_dir(log_dir or os.environ.get("APP_LOG_DIR", ""))
    os.makedirs(resolved_dir, mode=0o700, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        os.path.join(resolved_dir, LOG_FILE_NAME),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    handler.setFormatter(JSONFormatter())

    level = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.addHandler(handler)

    _prune(resolved_dir, f"{LOG_FILE_NAME}*", max_age_days=MAX_LOG_AGE_DAYS)
    return resolved_dir


def setup_faulthandler(log_dir: str):
    """Send C-level crash tracebacks to their own file.

    Kept apart from the rotating log, whose rollover would close the
    descriptor faulthandler writes to.
    """
    fault_path = os.path.join(log_dir, FAULT_FILE_NAME)
    try:
        fault_file = open(fault_path, "a", buffering=1)  # noqa: SIM115
        os.chmod(fault_path, 0o600)
        faulthandler.enable(file=fault_file, all_threads=True)
    except OSError as e:
        print(f"WARNING: Could not enable faulthandler: {e}", file=sys.stderr)


def write_crash_report(exc_type, exc_value, exc_tb, crash_dir: str) -> str:
    """Write a PII-stripped JSON crash dump into ``crash_dir``. Returns its path."""
    os.makedirs(crash_dir, mode=0o700, exist_ok=True)
    stamp = datetime.datetime.now(tz=datetime.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    crash_path = os.path.join(crash_dir, f"crash_{stamp}.json")

    report = {
        "timestamp": stamp,
        "exception_type": exc_type.__name__ if exc_type else "Unknown",
        "exception_message": str(exc_value),
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
        "python_version": sys.version,
        "platform": sys.platform,
    }
    # strip_pii takes a Sentry event; the dump rides in "extra"
    report = strip_pii({"extra": report}, {})["extra"]

    old_umask = os.umask(0o077)
    try:
        with open(crash_path, "w") as f:
            json.dump(report, f, indent=2)
    finally:
        os.umask(old_umask)

    _prune(crash_dir, "crash_*.json", keep=MAX_CRASH_REPORTS)
    return crash_path


def setup_excepthook(crash_dir: str | None = None):
    """Install a sys.excepthook that dumps a crash report, then defers to the default."""
    crash_dir = crash_dir or DEFAULT_CRASH_DIR

    def _crash_excepthook(exc_type, exc_value, exc_tb):
        try:
            write_crash_report(exc_type, exc_value, exc_tb, crash_dir)
        except Exception:
            # Never let the crash handler raise from inside the hook
            pass
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_excepthook


def init_diagnostics() -> str:
    """Set up logging, faulthandler and the crash hook. Returns the log dir."""
    log_dir = setup_structured_logging()
    setup_faulthandler(log_dir)
    setup_excepthook()
    logger.info("Diagnostics initialized: logging=%s, faulthandler=enabled", log_dir)
    return log_dir
