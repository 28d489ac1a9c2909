"""
Shared fixtures: in-memory SQLite database, seeded accounts and a
lifecycle engine wired to a recording notification dispatcher.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicjobs.main import app
from clinicjobs.api.deps import get_lifecycle
from clinicjobs.core.rate_limit import apply_limiter
from clinicjobs.core.security import create_access_token
from clinicjobs.db.base import Base
from clinicjobs.db.session import get_db
from clinicjobs.db.models.user import User
from clinicjobs.db.models.hospital import Hospital
from clinicjobs.db.models.doctor import DoctorProfile
from clinicjobs.db.models.job import Job
from clinicjobs.services.lifecycle_service import ApplicationLifecycle
from clinicjobs.services.notification_service import ApplicationNotifier
from clinicjobs.services.status_catalog import JobStatus


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingDispatcher:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))


class FailingDispatcher:
    def __init__(self):
        self.calls = 0

    def notify(self, event, payload):
        self.calls += 1
        raise RuntimeError("notification backend down")


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    apply_limiter.reset()
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _make_user(db, email, full_name, role):
    user = User(email=email, full_name=full_name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def hospital_user(db_session):
    return _make_user(db_session, "hr@stmary.example", "St. Mary HR", "hospital")


@pytest.fixture
def hospital(db_session, hospital_user):
    """Create an active hospital account."""
    hospital = Hospital(user_id=hospital_user.id, institution_name="St. Mary Hospital", is_active=True)
    db_session.add(hospital)
    db_session.commit()
    db_session.refresh(hospital)
    return hospital


@pytest.fixture
def other_hospital(db_session):
    user = _make_user(db_session, "hr@general.example", "General HR", "hospital")
    hospital = Hospital(user_id=user.id, institution_name="General Hospital", is_active=True)
    db_session.add(hospital)
    db_session.commit()
    db_session.refresh(hospital)
    return hospital


@pytest.fixture
def make_job(db_session, hospital):
    """Factory for job postings owned by the default hospital."""
    def _make_job(title="ER Physician", status=JobStatus.APPROVED.value, owner=None, deleted_at=None):
        job = Job(
            hospital_id=(owner or hospital).id,
            title=title,
            status=status,
            deleted_at=deleted_at,
        )
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job
    return _make_job


@pytest.fixture
def job(make_job):
    """Create an approved job posting."""
    return make_job()


@pytest.fixture
def doctor_user(db_session):
    return _make_user(db_session, "ana.silva@example.com", "Ana Silva", "doctor")


@pytest.fixture
def doctor(db_session, doctor_user):
    """Create a doctor profile."""
    doctor = DoctorProfile(user_id=doctor_user.id, first_name="Ana", last_name="Silva")
    db_session.add(doctor)
    db_session.commit()
    db_session.refresh(doctor)
    return doctor


@pytest.fixture
def other_doctor(db_session):
    user = _make_user(db_session, "ben.okafor@example.com", "Ben Okafor", "doctor")
    doctor = DoctorProfile(user_id=user.id, first_name="Ben", last_name="Okafor")
    db_session.add(doctor)
    db_session.commit()
    db_session.refresh(doctor)
    return doctor


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher():
    return FailingDispatcher()


@pytest.fixture
def lifecycle(recording_dispatcher):
    """Lifecycle engine on the test database with recorded notifications."""
    return ApplicationLifecycle(
        TestSessionLocal,
        notifier=ApplicationNotifier(recording_dispatcher),
        lock_timeout_ms=1000,
    )


@pytest.fixture
def doctor_token(doctor, doctor_user):
    """Create JWT token for the doctor."""
    return create_access_token({"sub": doctor_user.email})


@pytest.fixture
def hospital_token(hospital, hospital_user):
    """Create JWT token for the hospital account owner."""
    return create_access_token({"sub": hospital_user.email})


@pytest.fixture
def client(lifecycle):
    """Create test client wired to the test database."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    yield TestClient(app)
    app.dependency_overrides.clear()
