"""
Application model - a doctor's application to a job posting.

Rows are never hard-deleted. A non-null deleted_at hides the row from every
active-application query while keeping it for audit history.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from clinicjobs.db.base import Base
from clinicjobs.services.status_catalog import ApplicationStatus

ACTIVE_PAIR_INDEX = "uq_applications_active_pair"
ACTIVE_ROW_CLAUSE = text("status != 'withdrawn' AND deleted_at IS NULL")


class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    doctor_profile_id = Column(Integer, ForeignKey("doctor_profiles.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    # Set when the doctor reapplies after withdrawing
    previous_application_id = Column(Integer, ForeignKey("applications.id"), nullable=True)

    status = Column(String(20), nullable=False, default=ApplicationStatus.APPLIED.value)
    cover_letter = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)  # hospital notes + withdrawal reasons, append-only

    applied_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    doctor = relationship("DoctorProfile", backref="applications")
    job = relationship("Job", backref="applications")

    __table_args__ = (
        # At most one active application per (doctor, job)
        Index(
            ACTIVE_PAIR_INDEX,
            "doctor_profile_id",
            "job_id",
            unique=True,
            postgresql_where=ACTIVE_ROW_CLAUSE,
            sqlite_where=ACTIVE_ROW_CLAUSE,
        ),
        Index("idx_applications_doctor_applied", "doctor_profile_id", "applied_at"),
        Index("idx_applications_job_status", "job_id", "status"),
    )

    def __repr__(self):
        return f"<Application(id={self.id}, doctor={self.doctor_profile_id}, job={self.job_id}, status='{self.status}')>"
