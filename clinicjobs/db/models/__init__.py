"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from clinicjobs.db.models.user import User
from clinicjobs.db.models.hospital import Hospital
from clinicjobs.db.models.doctor import DoctorProfile
from clinicjobs.db.models.job import Job
from clinicjobs.db.models.application import Application
from clinicjobs.db.models.notification import Notification

__all__ = [
    "User",
    "Hospital",
    "DoctorProfile",
    "Job",
    "Application",
    "Notification",
]
