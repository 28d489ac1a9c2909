"""
Script to seed a hospital, an approved job and a doctor for local testing,
and print bearer tokens for both accounts.
Run: python -m scripts.seed_demo_data
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clinicjobs.db.session import SessionLocal
from clinicjobs.db.init_db import init_db
from clinicjobs.db.models.user import User
from clinicjobs.db.models.hospital import Hospital
from clinicjobs.db.models.doctor import DoctorProfile
from clinicjobs.db.models.job import Job
from clinicjobs.core.security import create_access_token
from clinicjobs.services.status_catalog import JobStatus
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def get_or_create_user(db, email: str, full_name: str, role: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if user:
        logger.info(f"Found existing user: {email} (ID: {user.id})")
        return user

    user = User(email=email.lower(), full_name=full_name, role=role)
    db.add(user)
    db.flush()
    logger.info(f"Created user {email} with ID: {user.id}")
    return user


def seed(hospital_email: str, doctor_email: str):
    """Create (or reuse) the demo accounts and one approved job."""
    db = SessionLocal()
    try:
        hospital_user = get_or_create_user(db, hospital_email, "St. Mary Hospital", "hospital")
        hospital = db.query(Hospital).filter(Hospital.user_id == hospital_user.id).first()
        if not hospital:
            hospital = Hospital(user_id=hospital_user.id, institution_name="St. Mary Hospital", is_active=True)
            db.add(hospital)
            db.flush()

        job = db.query(Job).filter(Job.hospital_id == hospital.id, Job.deleted_at.is_(None)).first()
        if not job:
            job = Job(
                hospital_id=hospital.id,
                title="ER Physician",
                description="Night shifts in the emergency department.",
                status=JobStatus.APPROVED.value,
            )
            db.add(job)
            db.flush()

        doctor_user = get_or_create_user(db, doctor_email, "Ana Silva", "doctor")
        doctor = db.query(DoctorProfile).filter(DoctorProfile.user_id == doctor_user.id).first()
        if not doctor:
            doctor = DoctorProfile(user_id=doctor_user.id, first_name="Ana", last_name="Silva")
            db.add(doctor)

        db.commit()
        logger.info(f"Seeded hospital_id={hospital.id}, job_id={job.id}, doctor_profile_id={doctor.id}")
        return job.id
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding demo data: {e}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    hospital_email = os.getenv("DEMO_HOSPITAL_EMAIL", "hospital@example.com")
    doctor_email = os.getenv("DEMO_DOCTOR_EMAIL", "doctor@example.com")

    init_db()
    job_id = seed(hospital_email, doctor_email)

    print(f"\n[SUCCESS] Demo data ready, approved job_id={job_id}")
    print(f"   Hospital token: {create_access_token({'sub': hospital_email.lower()})}")
    print(f"   Doctor token:   {create_access_token({'sub': doctor_email.lower()})}")
