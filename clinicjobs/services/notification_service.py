"""
Notification adapter for application lifecycle events.

The lifecycle engine calls ApplicationNotifier only after a successful
commit. Delivery is best-effort: any failure is logged here and never
reaches the caller, so a notification problem cannot undo an application
state change.
"""
import enum
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from clinicjobs.core.logging_config import sanitize_log_data
from clinicjobs.db.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    APPLICATION_CREATED = "application_created"
    APPLICATION_WITHDRAWN = "application_withdrawn"
    APPLICATION_STATUS_CHANGED = "application_status_changed"


class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of user-facing events."""

    def notify(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        ...


STATUS_CHANGE_MESSAGES = {
    "reviewing": ("info", "Application Under Review",
                  "Your application for {job_title} at {hospital_name} is now under review."),
    "accepted": ("success", "Application Accepted",
                 "Your application for {job_title} at {hospital_name} has been accepted."),
    "rejected": ("error", "Application Rejected",
                 "Your application for {job_title} at {hospital_name} has been rejected."),
}


def render_notification(event: NotificationEvent, payload: Dict[str, Any]) -> Dict[str, str]:
    """Build the type, title and body shown to the recipient."""
    if event == NotificationEvent.APPLICATION_CREATED:
        return {
            "type": "info",
            "title": "New Application Received",
            "body": f"Dr. {payload.get('doctor_name')} applied for {payload.get('job_title')}.",
        }

    if event == NotificationEvent.APPLICATION_WITHDRAWN:
        reason = payload.get("reason") or "Not specified"
        return {
            "type": "warning",
            "title": "Application Withdrawn",
            "body": (
                f"Dr. {payload.get('doctor_name')} withdrew the application for "
                f"{payload.get('job_title')}. Reason: {reason}"
            ),
        }

    notification_type, title, template = STATUS_CHANGE_MESSAGES.get(
        payload.get("status"),
        ("info", "Application Status Changed",
         "The status of your application for {job_title} at {hospital_name} has changed."),
    )
    body = template.format(
        job_title=payload.get("job_title"),
        hospital_name=payload.get("hospital_name") or "the hospital",
    )
    if payload.get("notes"):
        body = f"{body} Note: {payload['notes']}"
    return {"type": notification_type, "title": title, "body": body}


class DatabaseNotificationDispatcher:
    """
    Persists in-app notifications.

    Uses its own session so it never shares a transaction with the
    lifecycle operation that triggered it.
    """

    def __init__(self, session_factory: Callable[[], Session], channel: str = "inapp"):
        self.session_factory = session_factory
        self.channel = channel

    def notify(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        recipient = payload.get("recipient_user_id")
        if recipient is None:
            logger.warning(f"Notification skipped, no recipient: event={event.value}")
            return

        rendered = render_notification(event, payload)
        data = {k: v for k, v in payload.items() if k != "recipient_user_id"}

        db = self.session_factory()
        try:
            notification = Notification(
                user_id=recipient,
                event=event.value,
                type=rendered["type"],
                title=rendered["title"],
                body=rendered["body"],
                data=data,
                channel=self.channel,
            )
            db.add(notification)
            db.commit()
            logger.info(f"Notification stored: event={event.value}, user_id={recipient}, id={notification.id}")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class ApplicationNotifier:
    """Post-commit side effects of the application lifecycle."""

    def __init__(self, dispatcher: Optional[NotificationDispatcher], enabled: bool = True):
        self.dispatcher = dispatcher
        self.enabled = enabled

    def dispatch(self, event: NotificationEvent, payload: Dict[str, Any]) -> bool:
        """
        Attempt delivery once.

        Returns:
            True if the dispatcher accepted the event, False otherwise
        """
        if not self.enabled or self.dispatcher is None:
            logger.debug(f"Notifications disabled, dropping event={event.value}")
            return False

        try:
            self.dispatcher.notify(event, payload)
            return True
        except Exception as e:
            logger.error(
                f"Notification failed: event={event.value}, "
                f"payload={sanitize_log_data(payload)}: {e}",
                exc_info=True
            )
            return False

    def application_created(self, payload: Dict[str, Any]) -> bool:
        return self.dispatch(NotificationEvent.APPLICATION_CREATED, payload)

    def application_withdrawn(self, payload: Dict[str, Any]) -> bool:
        return self.dispatch(NotificationEvent.APPLICATION_WITHDRAWN, payload)

    def application_status_changed(self, payload: Dict[str, Any]) -> bool:
        return self.dispatch(NotificationEvent.APPLICATION_STATUS_CHANGED, payload)
