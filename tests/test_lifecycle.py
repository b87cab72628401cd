"""Tests for the work lifecycle state machine."""

import pytest

from quadriparlanti.db.models import UserRole, WorkStatus
from quadriparlanti.domain.work_lifecycle import (
    TRANSITIONS,
    Actor,
    WorkAction,
    allowed_actions,
    can_delete,
    can_edit,
    can_view,
    check_submission_ready,
    transition,
)

OWNER = Actor(user_id="owner-1", role=UserRole.DOCENTE)
STRANGER = Actor(user_id="other-2", role=UserRole.DOCENTE)
ADMIN = Actor(user_id="admin-3", role=UserRole.ADMIN)


@pytest.mark.parametrize(
    "current,action,actor,expected",
    [
        (WorkStatus.DRAFT, WorkAction.SUBMIT, OWNER, WorkStatus.PENDING_REVIEW),
        (WorkStatus.NEEDS_REVISION, WorkAction.SUBMIT, OWNER, WorkStatus.PENDING_REVIEW),
        (WorkStatus.PENDING_REVIEW, WorkAction.APPROVE, ADMIN, WorkStatus.PUBLISHED),
        (WorkStatus.PENDING_REVIEW, WorkAction.REJECT, ADMIN, WorkStatus.NEEDS_REVISION),
        (WorkStatus.PUBLISHED, WorkAction.ARCHIVE, ADMIN, WorkStatus.ARCHIVED),
    ],
)
def test_valid_transitions(current, action, actor, expected):
    result = transition(current, action, actor, OWNER.user_id)
    assert result.ok
    assert result.from_state == current
    assert result.to_state == expected
    assert result.error is None


def test_teacher_cannot_approve_regardless_of_state():
    for status in WorkStatus:
        result = transition(status, WorkAction.APPROVE, OWNER, OWNER.user_id)
        assert not result.ok
        assert result.code == "forbidden"
        assert result.error == "Insufficient permissions"


def test_non_owner_cannot_submit():
    result = transition(WorkStatus.DRAFT, WorkAction.SUBMIT, STRANGER, OWNER.user_id)
    assert not result.ok
    assert result.code == "forbidden"


def test_invalid_transition_names_state():
    result = transition(WorkStatus.PUBLISHED, WorkAction.SUBMIT, OWNER, OWNER.user_id)
    assert not result.ok
    assert result.code == "invalid_transition"
    assert result.error == "Cannot submit a work in status 'published'"


def test_archived_is_terminal():
    for action in WorkAction:
        result = transition(WorkStatus.ARCHIVED, action, ADMIN, OWNER.user_id)
        assert not result.ok


def test_published_only_reachable_through_approve():
    sources = [(s, a) for (s, a), target in TRANSITIONS.items() if target == WorkStatus.PUBLISHED]
    assert sources == [(WorkStatus.PENDING_REVIEW, WorkAction.APPROVE)]


def test_allowed_actions_per_role():
    assert allowed_actions(WorkStatus.DRAFT, OWNER, OWNER.user_id) == [
        WorkAction.SUBMIT,
        WorkAction.ARCHIVE,
    ]
    assert set(allowed_actions(WorkStatus.PENDING_REVIEW, ADMIN, OWNER.user_id)) == {
        WorkAction.APPROVE,
        WorkAction.REJECT,
        WorkAction.ARCHIVE,
    }
    assert allowed_actions(WorkStatus.PENDING_REVIEW, STRANGER, OWNER.user_id) == []


def test_edit_rules():
    assert can_edit(WorkStatus.DRAFT, OWNER, OWNER.user_id)
    assert can_edit(WorkStatus.NEEDS_REVISION, OWNER, OWNER.user_id)
    assert not can_edit(WorkStatus.PENDING_REVIEW, OWNER, OWNER.user_id)
    assert not can_edit(WorkStatus.PUBLISHED, OWNER, OWNER.user_id)
    assert not can_edit(WorkStatus.DRAFT, STRANGER, OWNER.user_id)
    assert can_edit(WorkStatus.PUBLISHED, ADMIN, OWNER.user_id)


def test_delete_and_view_rules():
    assert can_delete(WorkStatus.DRAFT, OWNER, OWNER.user_id)
    assert not can_delete(WorkStatus.NEEDS_REVISION, OWNER, OWNER.user_id)
    assert can_delete(WorkStatus.PUBLISHED, ADMIN, OWNER.user_id)
    assert can_view(OWNER, OWNER.user_id)
    assert not can_view(STRANGER, OWNER.user_id)
    assert can_view(ADMIN, OWNER.user_id)


def test_submission_readiness_collects_every_error():
    report = check_submission_ready("ab", "short", 0)
    assert not report.ready
    assert report.errors == [
        "title_it must be at least 3 characters",
        "description_it must be at least 10 characters",
        "at least one theme must be selected",
    ]


def test_submission_readiness_ignores_surrounding_whitespace():
    assert not check_submission_ready("  ab  ", "0123456789", 1).ready
    assert check_submission_ready("Abc", "0123456789", 1).ready
