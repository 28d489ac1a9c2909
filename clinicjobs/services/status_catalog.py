"""
Application status catalog.

The fixed set of application statuses and the table of legal transitions.
Every entry point that changes an application's status goes through
ensure_transition() so the rules live in exactly one place.
"""
import enum
from typing import Dict, FrozenSet, Union

from clinicjobs.core.errors import AlreadyWithdrawn, InvalidTransition


class ApplicationStatus(str, enum.Enum):
    """Lifecycle states of an application."""
    APPLIED = "applied"
    REVIEWING = "reviewing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class JobStatus(str, enum.Enum):
    """Lifecycle states of a job posting (owned by the job directory)."""
    PENDING_APPROVAL = "pending_approval"
    NEEDS_REVISION = "needs_revision"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


ALLOWED_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.APPLIED: frozenset({
        ApplicationStatus.REVIEWING,
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    }),
    ApplicationStatus.REVIEWING: frozenset({
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    }),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.WITHDRAWN: frozenset(),
}

# Statuses a hospital reviewer may set; withdrawal is doctor-initiated only.
REVIEW_TARGETS: FrozenSet[ApplicationStatus] = frozenset({
    ApplicationStatus.REVIEWING,
    ApplicationStatus.ACCEPTED,
    ApplicationStatus.REJECTED,
})


def parse_status(value: Union[str, ApplicationStatus]) -> ApplicationStatus:
    """
    Resolve a status value to the enum.

    Only exact values are accepted; "accept" or "Accepted " do not match.

    Raises:
        ValueError: If value is not a known status
    """
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ApplicationStatus)
        raise ValueError(f"Unknown application status '{value}'. Allowed: {allowed}")


def is_terminal(status: Union[str, ApplicationStatus]) -> bool:
    """Terminal statuses allow no further transition."""
    return not ALLOWED_TRANSITIONS[parse_status(status)]


def can_transition(current: Union[str, ApplicationStatus], target: Union[str, ApplicationStatus]) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def ensure_transition(current: Union[str, ApplicationStatus], target: Union[str, ApplicationStatus]) -> None:
    """
    Validate a status change against the transition table.

    Raises:
        AlreadyWithdrawn: If the application is already withdrawn
        InvalidTransition: If the table does not allow current -> target
    """
    current = parse_status(current)
    target = parse_status(target)

    if current == ApplicationStatus.WITHDRAWN:
        raise AlreadyWithdrawn()

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change application status from '{current.value}' to '{target.value}'"
        )
