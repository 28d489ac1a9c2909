"""
Visibility resolver.

Derives client-facing flags for an application from the current state of
its job posting and hospital account. Job and hospital state change
independently of the application, so these flags are recomputed on every
read and never stored on the application row.
"""
from dataclasses import dataclass, asdict

from clinicjobs.services.status_catalog import JobStatus, is_terminal


@dataclass(frozen=True)
class VisibilityFlags:
    is_job_withdrawn: bool
    is_hospital_suspended: bool
    is_actionable: bool

    def to_dict(self) -> dict:
        return asdict(self)


def resolve(application, job, hospital) -> VisibilityFlags:
    """
    Compute visibility flags without touching the database.

    Args:
        application: Anything with a ``status`` attribute
        job: Job snapshot (``status``, ``deleted_at``) or None if it no longer exists
        hospital: Hospital snapshot (``is_active``) or None if it no longer exists

    Returns:
        VisibilityFlags
    """
    job_deleted = job is None or job.deleted_at is not None
    is_job_withdrawn = job_deleted or job.status != JobStatus.APPROVED.value
    is_hospital_suspended = hospital is None or not hospital.is_active

    is_actionable = (
        not is_terminal(application.status)
        and not job_deleted
        and not is_hospital_suspended
    )

    return VisibilityFlags(
        is_job_withdrawn=is_job_withdrawn,
        is_hospital_suspended=is_hospital_suspended,
        is_actionable=is_actionable,
    )
