"""
API Dependencies
Wiring of the lifecycle engine for route handlers.
"""
from functools import lru_cache

from clinicjobs.core import config
from clinicjobs.db.session import SessionLocal
from clinicjobs.services.lifecycle_service import ApplicationLifecycle, retry_on_busy
from clinicjobs.services.notification_service import ApplicationNotifier, DatabaseNotificationDispatcher


@lru_cache
def get_lifecycle() -> ApplicationLifecycle:
    """Process-wide lifecycle engine bound to the configured database."""
    notifier = ApplicationNotifier(
        DatabaseNotificationDispatcher(SessionLocal),
        enabled=config.NOTIFICATIONS_ENABLED,
    )
    return ApplicationLifecycle(SessionLocal, notifier=notifier, lock_timeout_ms=config.LOCK_TIMEOUT_MS)


def run_with_retry(operation):
    """Run a lifecycle write, retrying lock timeouts with the configured backoff."""
    return retry_on_busy(
        operation,
        attempts=config.BUSY_RETRY_ATTEMPTS,
        backoff_seconds=config.BUSY_RETRY_BACKOFF_SECONDS,
    )
