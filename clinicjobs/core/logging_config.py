"""
Logging configuration for the ClinicJobs API.

Two rotating files are written under LOG_DIR:

- clinicjobs.log: everything at the configured level
- application_audit.log: the audit trail of application writes (submission,
  withdrawal, resubmission, review decisions), kept separately so it can be
  retained longer than the general log
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from clinicjobs.core import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers whose INFO records form the application audit trail
AUDIT_LOGGERS = (
    "clinicjobs.services.lifecycle_service",
    "clinicjobs.services.application_repository",
)

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = (
    "password", "token", "secret", "key", "authorization",
    "database_url", "cover_letter", "notes", "reason",
)


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_mb * 1024 * 1024, backupCount=backups)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_level: str = None, log_dir: str = None):
    """
    Configure application and audit logging.

    Safe to call more than once; handlers installed by a previous call are
    replaced, not duplicated.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log files
    """
    level = getattr(logging, (log_level or config.LOG_LEVEL).upper(), logging.INFO)

    log_path = Path(log_dir or config.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console_handler)
    root.addHandler(_rotating_handler(log_path / "clinicjobs.log", level, max_mb=10, backups=5))

    # Audit records are kept even when the general level is WARNING or above
    audit_handler = _rotating_handler(log_path / "application_audit.log", logging.INFO, max_mb=20, backups=10)
    for name in AUDIT_LOGGERS:
        audit_logger = logging.getLogger(name)
        audit_logger.setLevel(min(level, logging.INFO))
        for handler in list(audit_logger.handlers):
            if getattr(handler, "clinicjobs_audit", False):
                audit_logger.removeHandler(handler)
                handler.close()
        audit_handler.clinicjobs_audit = True
        audit_logger.addHandler(audit_handler)

    # Quiet third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS)


def sanitize_log_data(data: Any) -> Any:
    """
    Return a copy of log data with secrets and free text masked.

    Nested dicts and lists are walked. Cover letters, notes and withdrawal
    reasons are written by users, so they are masked along with credentials.
    """
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_sensitive(key) else sanitize_log_data(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_log_data(item) for item in data)
    return data
