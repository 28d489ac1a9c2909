"""
Read-only directories over jobs, hospitals and doctor profiles.

The lifecycle engine only needs a handful of fields from each of these
entities, so lookups return small immutable snapshots instead of ORM rows.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from clinicjobs.db.models.job import Job
from clinicjobs.db.models.hospital import Hospital
from clinicjobs.db.models.doctor import DoctorProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSnapshot:
    id: int
    hospital_id: int
    title: str
    status: str
    deleted_at: Optional[datetime]


@dataclass(frozen=True)
class HospitalSnapshot:
    id: int
    user_id: int
    name: str
    is_active: bool


@dataclass(frozen=True)
class DoctorSnapshot:
    id: int
    user_id: int
    full_name: str


def _job_snapshot(job: Job) -> JobSnapshot:
    return JobSnapshot(
        id=job.id,
        hospital_id=job.hospital_id,
        title=job.title,
        status=job.status,
        deleted_at=job.deleted_at,
    )


def _hospital_snapshot(hospital: Hospital) -> HospitalSnapshot:
    return HospitalSnapshot(
        id=hospital.id,
        user_id=hospital.user_id,
        name=hospital.institution_name,
        is_active=bool(hospital.is_active),
    )


def _doctor_snapshot(doctor: DoctorProfile) -> DoctorSnapshot:
    return DoctorSnapshot(id=doctor.id, user_id=doctor.user_id, full_name=doctor.full_name)


class JobDirectory:
    """Job postings, their lifecycle status and soft-delete marker."""

    def lock_query(self, db: Session, job_id: int):
        """SELECT ... FOR UPDATE on one job row."""
        return db.query(Job).filter(Job.id == job_id).with_for_update()

    def get_job_for_update(self, db: Session, job_id: int) -> Optional[JobSnapshot]:
        """
        Read a job while holding a row-level write lock until the transaction ends.

        Concurrent submitters for the same job serialize here; submitters for
        other jobs are not blocked.
        """
        job = self.lock_query(db, job_id).one_or_none()
        if job is None:
            return None
        logger.debug(f"Job row locked: job_id={job_id}")
        return _job_snapshot(job)

    def get_job(self, db: Session, job_id: int) -> Optional[JobSnapshot]:
        job = db.query(Job).filter(Job.id == job_id).one_or_none()
        return _job_snapshot(job) if job else None

    def get_jobs(self, db: Session, job_ids: Iterable[int]) -> Dict[int, JobSnapshot]:
        ids = set(job_ids)
        if not ids:
            return {}
        return {job.id: _job_snapshot(job) for job in db.query(Job).filter(Job.id.in_(ids)).all()}


class HospitalDirectory:
    """Hospital accounts and their active flag."""

    def is_active(self, db: Session, hospital_id: int) -> bool:
        hospital = self.get(db, hospital_id)
        return bool(hospital and hospital.is_active)

    def get(self, db: Session, hospital_id: int) -> Optional[HospitalSnapshot]:
        hospital = db.query(Hospital).filter(Hospital.id == hospital_id).one_or_none()
        return _hospital_snapshot(hospital) if hospital else None

    def get_many(self, db: Session, hospital_ids: Iterable[int]) -> Dict[int, HospitalSnapshot]:
        ids = set(hospital_ids)
        if not ids:
            return {}
        hospitals = db.query(Hospital).filter(Hospital.id.in_(ids)).all()
        return {hospital.id: _hospital_snapshot(hospital) for hospital in hospitals}


class DoctorDirectory:
    """Doctor profile identity; no profile data beyond the name is used."""

    def exists(self, db: Session, doctor_profile_id: int) -> bool:
        return self.get(db, doctor_profile_id) is not None

    def get(self, db: Session, doctor_profile_id: int) -> Optional[DoctorSnapshot]:
        doctor = db.query(DoctorProfile).filter(
            DoctorProfile.id == doctor_profile_id,
            DoctorProfile.deleted_at.is_(None)
        ).one_or_none()
        return _doctor_snapshot(doctor) if doctor else None

    def get_many(self, db: Session, doctor_ids: Iterable[int]) -> Dict[int, DoctorSnapshot]:
        ids = set(doctor_ids)
        if not ids:
            return {}
        doctors = db.query(DoctorProfile).filter(
            DoctorProfile.id.in_(ids),
            DoctorProfile.deleted_at.is_(None)
        ).all()
        return {doctor.id: _doctor_snapshot(doctor) for doctor in doctors}
