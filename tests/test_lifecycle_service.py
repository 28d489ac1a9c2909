"""
Tests for the application lifecycle engine.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from clinicjobs.core.errors import (
    AlreadyWithdrawn,
    Busy,
    DuplicateApplication,
    Forbidden,
    InvalidTransition,
    JobNotEligible,
    NotFound,
)
from clinicjobs.db.models.application import Application
from clinicjobs.services.directories import JobDirectory
from clinicjobs.services.lifecycle_service import ApplicationLifecycle, retry_on_busy
from clinicjobs.services.notification_service import ApplicationNotifier, NotificationEvent
from clinicjobs.services.status_catalog import JobStatus


def _application_row(db_session, application_id):
    return db_session.query(Application).populate_existing().filter(Application.id == application_id).one()


# ------------------------------------------------------------------
# create
# ------------------------------------------------------------------

def test_create_application(lifecycle, doctor, job, hospital_user, recording_dispatcher):
    view = lifecycle.create(doctor.id, job.id, cover_letter="  Five years in the ER.  ")

    assert view.application.status == "applied"
    assert view.application.cover_letter == "Five years in the ER."
    assert view.flags.is_actionable is True
    assert view.job.title == "ER Physician"
    assert view.hospital.name == "St. Mary Hospital"
    assert view.doctor.full_name == "Ana Silva"

    assert len(recording_dispatcher.events) == 1
    event, payload = recording_dispatcher.events[0]
    assert event == NotificationEvent.APPLICATION_CREATED
    assert payload["recipient_user_id"] == hospital_user.id
    assert payload["application_id"] == view.application.id


@pytest.mark.parametrize("job_status", [
    JobStatus.REJECTED.value,
    JobStatus.PENDING_APPROVAL.value,
    JobStatus.SUSPENDED.value,
])
def test_create_rejects_unapproved_job(lifecycle, doctor, make_job, db_session, job_status):
    job = make_job(status=job_status)

    with pytest.raises(JobNotEligible):
        lifecycle.create(doctor.id, job.id)
    assert db_session.query(Application).count() == 0


def test_create_rejects_deleted_job(lifecycle, doctor, make_job, db_session):
    job = make_job(deleted_at=datetime.now(timezone.utc))

    with pytest.raises(JobNotEligible):
        lifecycle.create(doctor.id, job.id)
    assert db_session.query(Application).count() == 0


def test_create_rejects_missing_job(lifecycle, doctor):
    with pytest.raises(JobNotEligible):
        lifecycle.create(doctor.id, 4242)


def test_create_rejects_inactive_hospital(lifecycle, doctor, job, hospital, db_session):
    hospital.is_active = False
    db_session.commit()

    with pytest.raises(JobNotEligible):
        lifecycle.create(doctor.id, job.id)


def test_create_requires_doctor_profile(lifecycle, job):
    with pytest.raises(NotFound):
        lifecycle.create(999, job.id)


def test_create_duplicate(lifecycle, doctor, job, db_session, recording_dispatcher):
    lifecycle.create(doctor.id, job.id)

    with pytest.raises(DuplicateApplication):
        lifecycle.create(doctor.id, job.id)

    assert db_session.query(Application).count() == 1
    assert len(recording_dispatcher.events) == 1


def test_create_survives_notification_failure(doctor, job, db_session, session_factory, failing_dispatcher):
    lifecycle = ApplicationLifecycle(session_factory, notifier=ApplicationNotifier(failing_dispatcher))

    view = lifecycle.create(doctor.id, job.id)

    assert failing_dispatcher.calls == 1
    assert _application_row(db_session, view.application.id).status == "applied"


def test_disabled_notifier_skips_dispatch(doctor, job, recording_dispatcher, session_factory):
    lifecycle = ApplicationLifecycle(
        session_factory,
        notifier=ApplicationNotifier(recording_dispatcher, enabled=False),
    )
    lifecycle.create(doctor.id, job.id)
    assert recording_dispatcher.events == []


# ------------------------------------------------------------------
# withdraw
# ------------------------------------------------------------------

def test_withdraw_appends_reason(lifecycle, doctor, job, hospital, hospital_user, recording_dispatcher):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.review(created.application.id, hospital.id, "reviewing", notes="Shortlisted")

    view = lifecycle.withdraw(created.application.id, doctor.id, reason="Accepted another offer")

    assert view.application.status == "withdrawn"
    assert view.application.notes == "Shortlisted\n\nWithdrawal reason: Accepted another offer"
    assert view.flags.is_actionable is False

    event, payload = recording_dispatcher.events[-1]
    assert event == NotificationEvent.APPLICATION_WITHDRAWN
    assert payload["recipient_user_id"] == hospital_user.id
    assert payload["reason"] == "Accepted another offer"


def test_withdraw_without_reason_keeps_notes_empty(lifecycle, doctor, job):
    created = lifecycle.create(doctor.id, job.id)
    view = lifecycle.withdraw(created.application.id, doctor.id)
    assert view.application.notes is None


def test_withdraw_twice_fails_without_touching_row(lifecycle, doctor, job, db_session):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.withdraw(created.application.id, doctor.id)
    updated_at = _application_row(db_session, created.application.id).updated_at

    with pytest.raises(AlreadyWithdrawn):
        lifecycle.withdraw(created.application.id, doctor.id, reason="again")

    row = _application_row(db_session, created.application.id)
    assert row.updated_at == updated_at
    assert row.notes is None


def test_withdraw_accepted_application(lifecycle, doctor, job, hospital):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.review(created.application.id, hospital.id, "accepted")

    with pytest.raises(InvalidTransition) as exc_info:
        lifecycle.withdraw(created.application.id, doctor.id)
    assert not isinstance(exc_info.value, AlreadyWithdrawn)


def test_withdraw_other_doctors_application(lifecycle, doctor, other_doctor, job):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(Forbidden):
        lifecycle.withdraw(created.application.id, other_doctor.id)


def test_withdraw_missing_or_deleted(lifecycle, doctor, job, db_session):
    with pytest.raises(NotFound):
        lifecycle.withdraw(12345, doctor.id)

    created = lifecycle.create(doctor.id, job.id)
    row = _application_row(db_session, created.application.id)
    row.deleted_at = datetime.now(timezone.utc)
    db_session.commit()

    with pytest.raises(NotFound):
        lifecycle.withdraw(created.application.id, doctor.id)


# ------------------------------------------------------------------
# reapply
# ------------------------------------------------------------------

def test_reapply_creates_new_row(lifecycle, doctor, job, db_session):
    first = lifecycle.create(doctor.id, job.id, cover_letter="First letter")
    lifecycle.withdraw(first.application.id, doctor.id, reason="Timing")

    second = lifecycle.reapply(first.application.id, doctor.id, cover_letter="Second letter")

    assert second.application.id != first.application.id
    assert second.application.status == "applied"
    assert second.application.previous_application_id == first.application.id
    assert second.application.cover_letter == "Second letter"

    original = _application_row(db_session, first.application.id)
    assert original.status == "withdrawn"
    assert original.cover_letter == "First letter"


def test_reapply_requires_withdrawn_application(lifecycle, doctor, job):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(InvalidTransition):
        lifecycle.reapply(created.application.id, doctor.id)


def test_reapply_rechecks_job_eligibility(lifecycle, doctor, job, db_session):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.withdraw(created.application.id, doctor.id)

    job.status = JobStatus.SUSPENDED.value
    db_session.commit()

    with pytest.raises(JobNotEligible):
        lifecycle.reapply(created.application.id, doctor.id)


def test_reapply_other_doctor(lifecycle, doctor, other_doctor, job):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.withdraw(created.application.id, doctor.id)

    with pytest.raises(Forbidden):
        lifecycle.reapply(created.application.id, other_doctor.id)


# ------------------------------------------------------------------
# review
# ------------------------------------------------------------------

def test_review_notifies_doctor(lifecycle, doctor, doctor_user, job, hospital, recording_dispatcher):
    created = lifecycle.create(doctor.id, job.id)

    view = lifecycle.review(created.application.id, hospital.id, "rejected", notes="Position filled")

    assert view.application.status == "rejected"
    assert view.application.notes == "Position filled"
    event, payload = recording_dispatcher.events[-1]
    assert event == NotificationEvent.APPLICATION_STATUS_CHANGED
    assert payload["recipient_user_id"] == doctor_user.id
    assert payload["status"] == "rejected"


def test_review_by_other_hospital(lifecycle, doctor, job, other_hospital):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(Forbidden):
        lifecycle.review(created.application.id, other_hospital.id, "accepted")


def test_review_by_inactive_hospital(lifecycle, doctor, job, hospital, db_session):
    created = lifecycle.create(doctor.id, job.id)
    hospital.is_active = False
    db_session.commit()

    with pytest.raises(Forbidden):
        lifecycle.review(created.application.id, hospital.id, "accepted")


def test_review_on_deleted_job(lifecycle, doctor, job, hospital, db_session):
    created = lifecycle.create(doctor.id, job.id)
    job.deleted_at = datetime.now(timezone.utc)
    db_session.commit()

    with pytest.raises(JobNotEligible):
        lifecycle.review(created.application.id, hospital.id, "reviewing")


def test_review_cannot_withdraw(lifecycle, doctor, job, hospital):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(InvalidTransition):
        lifecycle.review(created.application.id, hospital.id, "withdrawn")


def test_review_withdrawn_application(lifecycle, doctor, job, hospital, db_session):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.withdraw(created.application.id, doctor.id)

    with pytest.raises(InvalidTransition):
        lifecycle.review(created.application.id, hospital.id, "accepted")
    assert _application_row(db_session, created.application.id).status == "withdrawn"


def test_review_rejects_unknown_status(lifecycle, doctor, job, hospital):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(ValueError):
        lifecycle.review(created.application.id, hospital.id, "accept")


# ------------------------------------------------------------------
# reads
# ------------------------------------------------------------------

def test_flags_follow_hospital_state(lifecycle, doctor, job, hospital, db_session):
    created = lifecycle.create(doctor.id, job.id)
    updated_at = _application_row(db_session, created.application.id).updated_at

    assert lifecycle.get(created.application.id, doctor.id).flags.is_actionable is True

    hospital.is_active = False
    db_session.commit()

    view = lifecycle.get(created.application.id, doctor.id)
    assert view.flags.is_actionable is False
    assert view.flags.is_hospital_suspended is True
    assert _application_row(db_session, created.application.id).updated_at == updated_at


def test_get_other_doctor(lifecycle, doctor, other_doctor, job):
    created = lifecycle.create(doctor.id, job.id)

    with pytest.raises(Forbidden):
        lifecycle.get(created.application.id, other_doctor.id)


def test_list_paginates_newest_first(lifecycle, doctor, make_job):
    ids = [lifecycle.create(doctor.id, make_job(title=f"Job {i}").id).application.id for i in range(3)]

    first = lifecycle.list(doctor.id, page=1, page_size=2)
    assert first.total == 3
    assert first.total_pages == 2
    assert first.has_next is True
    assert first.has_prev is False
    assert [item.application.id for item in first.items] == [ids[2], ids[1]]

    second = lifecycle.list(doctor.id, page=2, page_size=2)
    assert [item.application.id for item in second.items] == [ids[0]]
    assert second.has_next is False
    assert second.has_prev is True


def test_list_clamps_page_size_and_filters(lifecycle, doctor, job):
    created = lifecycle.create(doctor.id, job.id)
    lifecycle.withdraw(created.application.id, doctor.id)

    page = lifecycle.list(doctor.id, page_size=500)
    assert page.page_size == 50

    assert lifecycle.list(doctor.id, status="applied").total == 0
    assert lifecycle.list(doctor.id, status="withdrawn").total == 1


def test_list_for_hospital(lifecycle, doctor, other_doctor, job, hospital, db_session):
    lifecycle.create(doctor.id, job.id)
    lifecycle.create(other_doctor.id, job.id)

    page = lifecycle.list_for_hospital(hospital.id)
    assert page.total == 2
    assert {item.doctor.full_name for item in page.items} == {"Ana Silva", "Ben Okafor"}

    hospital.is_active = False
    db_session.commit()

    hidden = lifecycle.list_for_hospital(hospital.id)
    assert hidden.total == 0
    assert hidden.items == []


def test_list_for_missing_hospital(lifecycle):
    with pytest.raises(NotFound):
        lifecycle.list_for_hospital(999)


def test_stats(lifecycle, doctor, make_job, hospital):
    a = lifecycle.create(doctor.id, make_job().id)
    b = lifecycle.create(doctor.id, make_job().id)
    lifecycle.create(doctor.id, make_job().id)
    lifecycle.withdraw(a.application.id, doctor.id)
    lifecycle.review(b.application.id, hospital.id, "accepted")

    stats = lifecycle.stats(doctor.id)
    assert stats["total"] == 3
    assert stats["by_status"] == {
        "applied": 1,
        "reviewing": 0,
        "accepted": 1,
        "rejected": 0,
        "withdrawn": 1,
    }


# ------------------------------------------------------------------
# lock timeouts
# ------------------------------------------------------------------

class LockedJobDirectory(JobDirectory):
    """Simulates a job row held by another transaction past the lock timeout."""

    def __init__(self):
        self.attempts = 0

    def get_job_for_update(self, db, job_id):
        self.attempts += 1
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("database is locked"))


def test_lock_timeout_maps_to_busy(doctor, job, db_session, session_factory):
    lifecycle = ApplicationLifecycle(session_factory, jobs=LockedJobDirectory())

    with pytest.raises(Busy) as exc_info:
        lifecycle.create(doctor.id, job.id)

    assert exc_info.value.retryable is True
    assert db_session.query(Application).count() == 0


def test_retry_on_busy_gives_up_after_attempts(doctor, job, session_factory):
    jobs = LockedJobDirectory()
    lifecycle = ApplicationLifecycle(session_factory, jobs=jobs)

    with pytest.raises(Busy):
        retry_on_busy(lambda: lifecycle.create(doctor.id, job.id), attempts=3, backoff_seconds=0)
    assert jobs.attempts == 3


def test_retry_on_busy_returns_first_success():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise Busy()
        return "ok"

    assert retry_on_busy(flaky, attempts=3, backoff_seconds=0) == "ok"
    assert len(calls) == 3


def test_retry_on_busy_does_not_retry_other_errors():
    calls = []

    def duplicate():
        calls.append(1)
        raise DuplicateApplication()

    with pytest.raises(DuplicateApplication):
        retry_on_busy(duplicate, attempts=5, backoff_seconds=0)
    assert len(calls) == 1
