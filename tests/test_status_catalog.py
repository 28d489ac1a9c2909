"""
Unit tests for the application status catalog.
"""
import pytest

from clinicjobs.core.errors import AlreadyWithdrawn, InvalidTransition
from clinicjobs.services.status_catalog import (
    ALLOWED_TRANSITIONS,
    REVIEW_TARGETS,
    ApplicationStatus,
    can_transition,
    ensure_transition,
    is_terminal,
    parse_status,
)

S = ApplicationStatus


def test_every_status_has_a_transition_entry():
    assert set(ALLOWED_TRANSITIONS) == set(ApplicationStatus)


@pytest.mark.parametrize("status", [S.ACCEPTED, S.REJECTED, S.WITHDRAWN])
def test_terminal_statuses(status):
    assert is_terminal(status)
    assert ALLOWED_TRANSITIONS[status] == frozenset()


@pytest.mark.parametrize("status", [S.APPLIED, S.REVIEWING])
def test_open_statuses_are_not_terminal(status):
    assert not is_terminal(status)


@pytest.mark.parametrize("current,target", [
    (S.APPLIED, S.REVIEWING),
    (S.APPLIED, S.ACCEPTED),
    (S.APPLIED, S.REJECTED),
    (S.APPLIED, S.WITHDRAWN),
    (S.REVIEWING, S.ACCEPTED),
    (S.REVIEWING, S.REJECTED),
    (S.REVIEWING, S.WITHDRAWN),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (S.APPLIED, S.APPLIED),
    (S.REVIEWING, S.APPLIED),
    (S.REVIEWING, S.REVIEWING),
    (S.ACCEPTED, S.REJECTED),
    (S.ACCEPTED, S.WITHDRAWN),
    (S.REJECTED, S.ACCEPTED),
    (S.REJECTED, S.REVIEWING),
])
def test_forbidden_transitions_raise_invalid_transition(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(current, target)
    assert not isinstance(exc_info.value, AlreadyWithdrawn)


@pytest.mark.parametrize("target", list(ApplicationStatus))
def test_withdrawn_rejects_every_target_as_already_withdrawn(target):
    with pytest.raises(AlreadyWithdrawn):
        ensure_transition(S.WITHDRAWN, target)


def test_already_withdrawn_is_an_invalid_transition():
    assert issubclass(AlreadyWithdrawn, InvalidTransition)


def test_parse_status_accepts_exact_values():
    assert parse_status("reviewing") is S.REVIEWING
    assert parse_status(S.ACCEPTED) is S.ACCEPTED


@pytest.mark.parametrize("value", ["accept", "Accepted", " applied", "withdraw", ""])
def test_parse_status_rejects_partial_or_fuzzy_values(value):
    with pytest.raises(ValueError):
        parse_status(value)


def test_review_targets_exclude_withdrawal():
    assert S.WITHDRAWN not in REVIEW_TARGETS
    assert S.APPLIED not in REVIEW_TARGETS
