"""
Work lifecycle state machine.

Every status change of a work goes through ``transition``; handlers never
assign ``Work.status`` directly.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from quadriparlanti.db.models import UserRole, WorkStatus

MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10


class WorkAction(str, enum.Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    ARCHIVE = "archive"


class Permission(str, enum.Enum):
    """Who may trigger an action."""

    OWNER_OR_ADMIN = "owner_or_admin"
    ADMIN = "admin"


TRANSITIONS: dict[tuple[WorkStatus, WorkAction], WorkStatus] = {
    (WorkStatus.DRAFT, WorkAction.SUBMIT): WorkStatus.PENDING_REVIEW,
    (WorkStatus.NEEDS_REVISION, WorkAction.SUBMIT): WorkStatus.PENDING_REVIEW,
    (WorkStatus.PENDING_REVIEW, WorkAction.APPROVE): WorkStatus.PUBLISHED,
    (WorkStatus.PENDING_REVIEW, WorkAction.REJECT): WorkStatus.NEEDS_REVISION,
    (WorkStatus.DRAFT, WorkAction.ARCHIVE): WorkStatus.ARCHIVED,
    (WorkStatus.PENDING_REVIEW, WorkAction.ARCHIVE): WorkStatus.ARCHIVED,
    (WorkStatus.NEEDS_REVISION, WorkAction.ARCHIVE): WorkStatus.ARCHIVED,
    (WorkStatus.PUBLISHED, WorkAction.ARCHIVE): WorkStatus.ARCHIVED,
}

ACTION_PERMISSIONS: dict[WorkAction, Permission] = {
    WorkAction.SUBMIT: Permission.OWNER_OR_ADMIN,
    WorkAction.APPROVE: Permission.ADMIN,
    WorkAction.REJECT: Permission.ADMIN,
    WorkAction.ARCHIVE: Permission.OWNER_OR_ADMIN,
}

EDITABLE_BY_OWNER = {WorkStatus.DRAFT, WorkStatus.NEEDS_REVISION}


@dataclass(slots=True)
class Actor:
    """The authenticated caller."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(slots=True)
class TransitionResult:
    ok: bool
    from_state: WorkStatus
    action: WorkAction
    to_state: Optional[WorkStatus] = None
    error: Optional[str] = None
    code: Optional[str] = None  # "forbidden" | "invalid_transition"


@dataclass(slots=True)
class ReadinessReport:
    errors: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.errors


def is_allowed(action: WorkAction, actor: Actor, owner_id: Optional[str]) -> bool:
    permission = ACTION_PERMISSIONS[action]
    if actor.is_admin:
        return True
    if permission == Permission.ADMIN:
        return False
    return owner_id is not None and actor.user_id == owner_id


def transition(
    current: WorkStatus,
    action: WorkAction,
    actor: Actor,
    owner_id: Optional[str],
) -> TransitionResult:
    """
    Resolve ``action`` from ``current`` for ``actor``.

    The role check comes first, so a docente approving a work is told it is
    forbidden regardless of the work's state.
    """
    if not is_allowed(action, actor, owner_id):
        return TransitionResult(
            ok=False,
            from_state=current,
            action=action,
            error="Insufficient permissions",
            code="forbidden",
        )

    target = TRANSITIONS.get((current, action))
    if target is None:
        return TransitionResult(
            ok=False,
            from_state=current,
            action=action,
            error=f"Cannot {action.value} a work in status '{current.value}'",
            code="invalid_transition",
        )

    return TransitionResult(ok=True, from_state=current, action=action, to_state=target)


def allowed_actions(current: WorkStatus, actor: Actor, owner_id: Optional[str]) -> list[WorkAction]:
    """Actions ``actor`` may take on a work in ``current``."""
    return [
        action
        for (state, action) in TRANSITIONS
        if state == current and is_allowed(action, actor, owner_id)
    ]


def can_edit(current: WorkStatus, actor: Actor, owner_id: Optional[str]) -> bool:
    """Owners edit while draft or needs_revision; admins always."""
    if actor.is_admin:
        return True
    return actor.user_id == owner_id and current in EDITABLE_BY_OWNER


def can_delete(current: WorkStatus, actor: Actor, owner_id: Optional[str]) -> bool:
    """Owners delete drafts only; admins always."""
    if actor.is_admin:
        return True
    return actor.user_id == owner_id and current == WorkStatus.DRAFT


def can_view(actor: Actor, owner_id: Optional[str]) -> bool:
    return actor.is_admin or actor.user_id == owner_id


def check_submission_ready(
    title_it: Optional[str],
    description_it: Optional[str],
    theme_count: int,
) -> ReadinessReport:
    """Collect every reason a work cannot be submitted for review."""
    report = ReadinessReport()
    if len((title_it or "").strip()) < MIN_TITLE_LENGTH:
        report.errors.append(f"title_it must be at least {MIN_TITLE_LENGTH} characters")
    if len((description_it or "").strip()) < MIN_DESCRIPTION_LENGTH:
        report.errors.append(
            f"description_it must be at least {MIN_DESCRIPTION_LENGTH} characters"
        )
    if theme_count < 1:
        report.errors.append("at least one theme must be selected")
    return report
