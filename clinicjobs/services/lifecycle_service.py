"""
Application lifecycle engine.

Orchestrates submission, withdrawal, resubmission and hospital review of
applications. Each write runs in one transaction:

1. bound the lock wait
2. lock / read the job and hospital through the directories
3. validate against the status catalog and the active-application guard
4. write through the repository and commit

Notifications are attempted only after the commit, outside the
transaction, and can never fail the operation.
"""
import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar, Union

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from clinicjobs.core import config
from clinicjobs.core.errors import (
    ApplicationError,
    Busy,
    DuplicateApplication,
    Forbidden,
    InvalidTransition,
    JobNotEligible,
    NotFound,
)
from clinicjobs.db.models.application import Application
from clinicjobs.db.session import is_lock_timeout, set_lock_timeout
from clinicjobs.services import application_repository as repo
from clinicjobs.services.directories import (
    DoctorDirectory,
    DoctorSnapshot,
    HospitalDirectory,
    HospitalSnapshot,
    JobDirectory,
    JobSnapshot,
)
from clinicjobs.services.notification_service import ApplicationNotifier
from clinicjobs.services.status_catalog import (
    REVIEW_TARGETS,
    ApplicationStatus,
    JobStatus,
    ensure_transition,
    parse_status,
)
from clinicjobs.services.visibility_service import VisibilityFlags, resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ApplicationRecord:
    """Detached copy of an application row, safe to use after the session closes."""
    id: int
    doctor_profile_id: int
    job_id: int
    status: str
    cover_letter: Optional[str]
    notes: Optional[str]
    applied_at: datetime
    updated_at: datetime
    previous_application_id: Optional[int] = None

    @classmethod
    def from_model(cls, application: Application) -> "ApplicationRecord":
        return cls(
            id=application.id,
            doctor_profile_id=application.doctor_profile_id,
            job_id=application.job_id,
            status=application.status,
            cover_letter=application.cover_letter,
            notes=application.notes,
            applied_at=application.applied_at,
            updated_at=application.updated_at,
            previous_application_id=application.previous_application_id,
        )


@dataclass(frozen=True)
class ApplicationView:
    """An application together with its related entities and derived flags."""
    application: ApplicationRecord
    job: Optional[JobSnapshot]
    hospital: Optional[HospitalSnapshot]
    doctor: Optional[DoctorSnapshot]
    flags: VisibilityFlags


@dataclass
class ApplicationPage:
    items: List[ApplicationView] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def page_bounds(page: Optional[int], page_size: Optional[int]):
    """Clamp pagination input and return (page, page_size, offset)."""
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or config.DEFAULT_PAGE_SIZE), 1), config.MAX_PAGE_SIZE)
    return page, page_size, (page - 1) * page_size


def retry_on_busy(
    operation: Callable[[], T],
    attempts: int = None,
    backoff_seconds: float = None,
    backoff_multiplier: float = 2.0,
) -> T:
    """
    Run an operation, retrying only Busy errors with exponential backoff.

    Args:
        operation: Zero-argument callable
        attempts: Total attempts (default: BUSY_RETRY_ATTEMPTS)
        backoff_seconds: Sleep before the first retry (default: BUSY_RETRY_BACKOFF_SECONDS)
        backoff_multiplier: Backoff multiplier for sleep duration

    Raises:
        Busy: If every attempt timed out on a lock
    """
    attempts = max(1, attempts or config.BUSY_RETRY_ATTEMPTS)
    sleep_duration = config.BUSY_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Busy:
            if attempt >= attempts:
                logger.warning(f"Giving up after {attempts} busy attempts")
                raise
            logger.info(f"Busy, retrying in {sleep_duration:.2f}s (attempt {attempt}/{attempts})")
            time.sleep(sleep_duration)
            sleep_duration *= backoff_multiplier


class ApplicationLifecycle:
    """Create, withdraw, resubmit, review and read applications."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: Optional[ApplicationNotifier] = None,
        lock_timeout_ms: int = None,
        jobs: JobDirectory = None,
        hospitals: HospitalDirectory = None,
        doctors: DoctorDirectory = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or ApplicationNotifier(None, enabled=False)
        self.lock_timeout_ms = lock_timeout_ms or config.LOCK_TIMEOUT_MS
        self.jobs = jobs or JobDirectory()
        self.hospitals = hospitals or HospitalDirectory()
        self.doctors = doctors or DoctorDirectory()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self):
        """One write transaction; commits on success, rolls back on any error."""
        db = self.session_factory()
        try:
            set_lock_timeout(db, self.lock_timeout_ms)
            yield db
            db.commit()
        except ApplicationError as e:
            db.rollback()
            logger.warning(f"Application operation rejected: code={e.code.value}, message={e.message}")
            raise
        except DBAPIError as e:
            db.rollback()
            if is_lock_timeout(e):
                logger.warning(f"Lock wait timed out: {e.orig}")
                raise Busy(original_error=e) from e
            raise
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def _read_session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, doctor_profile_id: int, job_id: int, cover_letter: Optional[str] = None) -> ApplicationView:
        """
        Submit a doctor's application to a job posting.

        Raises:
            NotFound: Doctor profile does not exist
            JobNotEligible: Job missing, deleted, not approved, or hospital inactive
            DuplicateApplication: An active application already exists for the pair
            Busy: The job row lock could not be acquired in time
        """
        return self._create(doctor_profile_id, job_id, cover_letter)

    def _create(
        self,
        doctor_profile_id: int,
        job_id: int,
        cover_letter: Optional[str],
        previous_application_id: Optional[int] = None,
    ) -> ApplicationView:
        cover_letter = cover_letter.strip() if cover_letter and cover_letter.strip() else None

        with self._transaction() as db:
            doctor = self.doctors.get(db, doctor_profile_id)
            if doctor is None:
                raise NotFound("Doctor profile not found")

            # Serializes submitters for this job until commit
            job = self.jobs.get_job_for_update(db, job_id)
            if job is None:
                raise JobNotEligible(f"Job {job_id} not found")
            if job.deleted_at is not None or job.status != JobStatus.APPROVED.value:
                raise JobNotEligible()

            hospital = self.hospitals.get(db, job.hospital_id)
            if hospital is None or not hospital.is_active:
                raise JobNotEligible("Hospital is not accepting applications")

            if repo.find_active(db, doctor_profile_id, job_id) is not None:
                raise DuplicateApplication()

            application = repo.insert(
                db,
                doctor_profile_id=doctor_profile_id,
                job_id=job_id,
                cover_letter=cover_letter,
                previous_application_id=previous_application_id,
            )
            record = ApplicationRecord.from_model(application)

        logger.info(
            f"Application created: application_id={record.id}, job_id={job_id}, "
            f"doctor_profile_id={doctor_profile_id}, previous_application_id={previous_application_id}"
        )

        self.notifier.application_created({
            "recipient_user_id": hospital.user_id,
            "application_id": record.id,
            "job_id": job.id,
            "job_title": job.title,
            "doctor_profile_id": doctor.id,
            "doctor_name": doctor.full_name,
        })

        return self._view(record, job, hospital, doctor)

    def withdraw(self, application_id: int, doctor_profile_id: int, reason: Optional[str] = None) -> ApplicationView:
        """
        Withdraw a doctor's own application.

        The reason, if given, is appended to notes; hospital notes are kept.

        Raises:
            NotFound: Application missing or soft-deleted
            Forbidden: Application belongs to another doctor
            AlreadyWithdrawn: Application is already withdrawn
            InvalidTransition: Application was accepted or rejected
        """
        reason = reason.strip() if reason and reason.strip() else None

        with self._transaction() as db:
            application = repo.get(db, application_id)
            if application is None:
                raise NotFound()
            if application.doctor_profile_id != doctor_profile_id:
                raise Forbidden()

            ensure_transition(application.status, ApplicationStatus.WITHDRAWN)

            note = f"Withdrawal reason: {reason}" if reason else None
            updated = repo.transition(
                db, application.id, application.status, ApplicationStatus.WITHDRAWN, note
            )
            record = ApplicationRecord.from_model(updated)

            job = self.jobs.get_job(db, record.job_id)
            hospital = self.hospitals.get(db, job.hospital_id) if job else None
            doctor = self.doctors.get(db, doctor_profile_id)

        logger.info(f"Application withdrawn: application_id={record.id}, doctor_profile_id={doctor_profile_id}")

        if hospital is not None:
            self.notifier.application_withdrawn({
                "recipient_user_id": hospital.user_id,
                "application_id": record.id,
                "job_id": record.job_id,
                "job_title": job.title,
                "doctor_profile_id": doctor_profile_id,
                "doctor_name": doctor.full_name if doctor else None,
                "reason": reason,
            })

        return self._view(record, job, hospital, doctor)

    def reapply(self, application_id: int, doctor_profile_id: int, cover_letter: Optional[str] = None) -> ApplicationView:
        """
        Resubmit to the job of a withdrawn application.

        Always creates a new row that points back at the withdrawn one; the
        withdrawn row stays untouched for audit history.

        Raises:
            NotFound / Forbidden: As for withdraw
            InvalidTransition: The application is not withdrawn
            JobNotEligible / DuplicateApplication / Busy: As for create
        """
        with self._read_session() as db:
            application = repo.get(db, application_id)
            if application is None:
                raise NotFound()
            if application.doctor_profile_id != doctor_profile_id:
                raise Forbidden()
            if application.status != ApplicationStatus.WITHDRAWN.value:
                raise InvalidTransition("Only withdrawn applications can be resubmitted")
            job_id = application.job_id

        return self._create(doctor_profile_id, job_id, cover_letter, previous_application_id=application_id)

    def review(
        self,
        application_id: int,
        hospital_id: int,
        to_status: Union[str, ApplicationStatus],
        notes: Optional[str] = None,
    ) -> ApplicationView:
        """
        Apply a hospital review decision.

        Raises:
            NotFound: Application missing or soft-deleted
            Forbidden: Job not owned by this hospital, or hospital inactive
            JobNotEligible: Job has been deleted
            AlreadyWithdrawn / InvalidTransition: Transition table forbids the change
        """
        target = parse_status(to_status)
        notes = notes.strip() if notes and notes.strip() else None

        with self._transaction() as db:
            application = repo.get(db, application_id)
            if application is None:
                raise NotFound()

            job = self.jobs.get_job(db, application.job_id)
            if job is None or job.hospital_id != hospital_id:
                raise Forbidden()

            hospital = self.hospitals.get(db, hospital_id)
            if hospital is None or not hospital.is_active:
                raise Forbidden("Hospital account is inactive")
            if job.deleted_at is not None:
                raise JobNotEligible("Job posting has been deleted")

            ensure_transition(application.status, target)
            if target not in REVIEW_TARGETS:
                raise InvalidTransition("Only the doctor can withdraw an application")

            updated = repo.transition(db, application.id, application.status, target, notes)
            record = ApplicationRecord.from_model(updated)
            doctor = self.doctors.get(db, record.doctor_profile_id)

        logger.info(
            f"Application reviewed: application_id={record.id}, hospital_id={hospital_id}, status={record.status}"
        )

        if doctor is not None:
            self.notifier.application_status_changed({
                "recipient_user_id": doctor.user_id,
                "application_id": record.id,
                "job_id": job.id,
                "job_title": job.title,
                "hospital_name": hospital.name,
                "status": record.status,
                "notes": notes,
            })

        return self._view(record, job, hospital, doctor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, application_id: int, doctor_profile_id: int) -> ApplicationView:
        """Application detail for its owner, with freshly computed flags."""
        with self._read_session() as db:
            application = repo.get(db, application_id)
            if application is None:
                raise NotFound()
            if application.doctor_profile_id != doctor_profile_id:
                raise Forbidden()

            record = ApplicationRecord.from_model(application)
            job = self.jobs.get_job(db, record.job_id)
            hospital = self.hospitals.get(db, job.hospital_id) if job else None
            doctor = self.doctors.get(db, doctor_profile_id)

        return self._view(record, job, hospital, doctor)

    def list(
        self,
        doctor_profile_id: int,
        status: Optional[Union[str, ApplicationStatus]] = None,
        page: int = 1,
        page_size: int = None,
    ) -> ApplicationPage:
        """A page of the doctor's applications, newest first."""
        status = parse_status(status) if status else None
        page, page_size, offset = page_bounds(page, page_size)

        with self._read_session() as db:
            rows, total = repo.list_for_doctor(db, doctor_profile_id, status, offset, page_size)
            records = [ApplicationRecord.from_model(row) for row in rows]
            jobs = self.jobs.get_jobs(db, [r.job_id for r in records])
            hospitals = self.hospitals.get_many(db, [j.hospital_id for j in jobs.values()])
            doctor = self.doctors.get(db, doctor_profile_id)

        items = []
        for record in records:
            job = jobs.get(record.job_id)
            hospital = hospitals.get(job.hospital_id) if job else None
            items.append(self._view(record, job, hospital, doctor))

        return ApplicationPage(items=items, total=total, page=page, page_size=page_size)

    def list_for_hospital(
        self,
        hospital_id: int,
        status: Optional[Union[str, ApplicationStatus]] = None,
        page: int = 1,
        page_size: int = None,
    ) -> ApplicationPage:
        """
        A page of applications to the hospital's jobs.

        Inactive hospitals get an empty page: their applications stay stored
        but are excluded from hospital dashboards.
        """
        status = parse_status(status) if status else None
        page, page_size, offset = page_bounds(page, page_size)

        with self._read_session() as db:
            hospital = self.hospitals.get(db, hospital_id)
            if hospital is None:
                raise NotFound("Hospital not found")
            if not hospital.is_active:
                logger.info(f"Hospital inactive, hiding applications: hospital_id={hospital_id}")
                return ApplicationPage(page=page, page_size=page_size)

            rows, total = repo.list_for_hospital(db, hospital_id, status, offset, page_size)
            records = [ApplicationRecord.from_model(row) for row in rows]
            jobs = self.jobs.get_jobs(db, [r.job_id for r in records])
            doctors = self.doctors.get_many(db, [r.doctor_profile_id for r in records])

        items = [
            self._view(record, jobs.get(record.job_id), hospital, doctors.get(record.doctor_profile_id))
            for record in records
        ]
        return ApplicationPage(items=items, total=total, page=page, page_size=page_size)

    def stats(self, doctor_profile_id: int) -> Dict:
        """Total and per-status counts of the doctor's applications."""
        with self._read_session() as db:
            counts = repo.count_by_status(db, doctor_profile_id)

        by_status = {status.value: counts.get(status.value, 0) for status in ApplicationStatus}
        return {"total": sum(by_status.values()), "by_status": by_status}

    @staticmethod
    def _view(record, job, hospital, doctor) -> ApplicationView:
        return ApplicationView(
            application=record,
            job=job,
            hospital=hospital,
            doctor=doctor,
            flags=resolve(record, job, hospital),
        )
