"""
Application repository.

Transactional data access for application rows. Functions here never
commit; the caller owns the transaction boundary.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicjobs.core.errors import Busy, DuplicateApplication, NotFound
from clinicjobs.db.models.application import Application, ACTIVE_PAIR_INDEX
from clinicjobs.db.models.job import Job
from clinicjobs.services.status_catalog import ApplicationStatus, ensure_transition, parse_status

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = "\n\n"
MAX_TRANSITION_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _active_filter():
    return (
        Application.deleted_at.is_(None),
        Application.status != ApplicationStatus.WITHDRAWN.value,
    )


def find_active(db: Session, doctor_profile_id: int, job_id: int) -> Optional[Application]:
    """
    Return the active application for a (doctor, job) pair, if any.

    Active means not soft-deleted and not withdrawn.
    """
    return db.query(Application).filter(
        Application.doctor_profile_id == doctor_profile_id,
        Application.job_id == job_id,
        *_active_filter()
    ).first()


def get(db: Session, application_id: int) -> Optional[Application]:
    """Return a non-deleted application, always re-read from the database."""
    return db.query(Application).populate_existing().filter(
        Application.id == application_id,
        Application.deleted_at.is_(None)
    ).first()


def _is_active_pair_conflict(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    # psycopg2 names the violated constraint; other unique keys are not duplicates
    constraint_name = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if constraint_name:
        return constraint_name == ACTIVE_PAIR_INDEX
    message = str(orig or error)
    return (
        ACTIVE_PAIR_INDEX in message
        or "applications.doctor_profile_id, applications.job_id" in message
    )


def insert(
    db: Session,
    doctor_profile_id: int,
    job_id: int,
    cover_letter: Optional[str] = None,
    previous_application_id: Optional[int] = None,
) -> Application:
    """
    Insert a new application in the applied state.

    Callers must already have checked, in the same transaction, that the job
    is eligible and that no active application exists. The partial unique
    index still catches a racing insert that slipped past that check.

    Raises:
        DuplicateApplication: If the unique index rejects the row
    """
    now = utcnow()
    application = Application(
        doctor_profile_id=doctor_profile_id,
        job_id=job_id,
        previous_application_id=previous_application_id,
        status=ApplicationStatus.APPLIED.value,
        cover_letter=cover_letter,
        applied_at=now,
        updated_at=now,
    )
    db.add(application)
    try:
        db.flush()
    except IntegrityError as e:
        if _is_active_pair_conflict(e):
            logger.warning(
                f"Active application index rejected insert: doctor_profile_id={doctor_profile_id}, job_id={job_id}"
            )
            raise DuplicateApplication(original_error=e) from e
        raise
    return application


def _append_note(note: str):
    return case(
        (or_(Application.notes.is_(None), Application.notes == ""), note),
        else_=Application.notes + NOTE_SEPARATOR + note,
    )


def transition(
    db: Session,
    application_id: int,
    expected_status: Union[str, ApplicationStatus],
    to_status: Union[str, ApplicationStatus],
    note: Optional[str] = None,
) -> Application:
    """
    Conditionally move an application to a new status.

    The UPDATE only matches while the row still has the expected status, so
    a concurrent transition shows up as zero affected rows. The row is then
    re-read and the change re-validated against its fresh status.

    Args:
        db: Database session
        application_id: Application ID
        expected_status: Status the caller observed
        to_status: Target status
        note: Optional text appended to notes (never overwrites)

    Returns:
        The updated application

    Raises:
        NotFound: If the row disappeared
        AlreadyWithdrawn / InvalidTransition: If the fresh status forbids the change
        Busy: If the row kept changing under us
    """
    expected = parse_status(expected_status)
    target = parse_status(to_status)

    for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
        ensure_transition(expected, target)

        values = {"status": target.value, "updated_at": utcnow()}
        if note:
            values["notes"] = _append_note(note)

        result = db.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.status == expected.value,
                Application.deleted_at.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 1:
            logger.info(
                f"Application transitioned: application_id={application_id}, "
                f"{expected.value} -> {target.value}"
            )
            return get(db, application_id)

        current = db.query(Application.status).filter(
            Application.id == application_id,
            Application.deleted_at.is_(None)
        ).scalar()
        if current is None:
            raise NotFound()

        logger.info(
            f"Application status changed concurrently: application_id={application_id}, "
            f"expected={expected.value}, found={current}, attempt={attempt}"
        )
        expected = parse_status(current)

    raise Busy("Application is being modified concurrently, please retry")


def list_for_doctor(
    db: Session,
    doctor_profile_id: int,
    status: Optional[ApplicationStatus] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Application], int]:
    """List a doctor's non-deleted applications, newest first."""
    query = db.query(Application).filter(
        Application.doctor_profile_id == doctor_profile_id,
        Application.deleted_at.is_(None)
    )
    if status:
        query = query.filter(Application.status == status.value)

    total = query.count()
    rows = query.order_by(
        Application.applied_at.desc(), Application.id.desc()
    ).offset(offset).limit(limit).all()
    return rows, total


def list_for_hospital(
    db: Session,
    hospital_id: int,
    status: Optional[ApplicationStatus] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[Application], int]:
    """List non-deleted applications to any job owned by a hospital, newest first."""
    query = db.query(Application).join(Job, Job.id == Application.job_id).filter(
        Job.hospital_id == hospital_id,
        Application.deleted_at.is_(None)
    )
    if status:
        query = query.filter(Application.status == status.value)

    total = query.count()
    rows = query.order_by(
        Application.applied_at.desc(), Application.id.desc()
    ).offset(offset).limit(limit).all()
    return rows, total


def count_by_status(db: Session, doctor_profile_id: int) -> Dict[str, int]:
    """Per-status counts of a doctor's non-deleted applications."""
    rows = db.query(
        Application.status,
        func.count(Application.id).label("total")
    ).filter(
        Application.doctor_profile_id == doctor_profile_id,
        Application.deleted_at.is_(None)
    ).group_by(Application.status).all()

    return {status: int(total) for status, total in rows}
