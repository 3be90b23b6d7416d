"""
ABFI CI Engine - Verification Workflow

State machine governing a CI report from draft to verified or rejected.

    draft --submit--> submitted --start_review--> under_review
    under_review --approve--> verified
    under_review --reject--> rejected
    under_review --request_revision--> draft

Actions are a closed set of frozen dataclasses. apply_transition() is pure:
it decides the outcome and describes the audit entry to write, and leaves
persistence to CIReportService.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, Union
from uuid import UUID

from ci_engine.models.ci_enums import CIAuditAction, CIReportStatus
from ci_engine.utils.error_handling import (
    AppException,
    InvalidTransitionException,
    MissingNotesException,
    MissingReasonException,
    ValidationException,
)


# ===========================================
# ACTIONS
# ===========================================

@dataclass(frozen=True)
class Submit:
    """Supplier hands a draft over for verification."""


@dataclass(frozen=True)
class StartReview:
    """Auditor picks up a submitted report."""


@dataclass(frozen=True)
class Approve:
    notes: Optional[str] = None


@dataclass(frozen=True)
class Reject:
    reason: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class RequestRevision:
    notes: str


WorkflowAction = Union[Submit, StartReview, Approve, Reject, RequestRevision]


# ===========================================
# RESULTS
# ===========================================

class TransitionErrorKind(str, Enum):
    INVALID_TRANSITION = "invalid_transition"
    MISSING_REASON = "missing_reason"
    MISSING_NOTES = "missing_notes"


@dataclass(frozen=True)
class AuditLogEntry:
    """Audit row to append for a successful transition."""
    action: CIAuditAction
    previous_status: CIReportStatus
    new_status: CIReportStatus
    actor_id: Optional[UUID]
    notes: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionOk:
    new_status: CIReportStatus
    log_entry: AuditLogEntry


@dataclass(frozen=True)
class TransitionErr:
    kind: TransitionErrorKind
    message: str
    action: str
    current_status: CIReportStatus

    def to_exception(self) -> AppException:
        if self.kind == TransitionErrorKind.MISSING_REASON:
            return MissingReasonException(self.message)
        if self.kind == TransitionErrorKind.MISSING_NOTES:
            return MissingNotesException(self.message)
        return InvalidTransitionException(
            action=self.action,
            current_status=self.current_status.value,
            message=self.message,
        )


TransitionResult = Union[TransitionOk, TransitionErr]


# action type -> (name, required status, target status, audit action)
TRANSITIONS: Dict[Type, Tuple[str, CIReportStatus, CIReportStatus, CIAuditAction]] = {
    Submit: ("submit", CIReportStatus.DRAFT, CIReportStatus.SUBMITTED, CIAuditAction.SUBMITTED),
    StartReview: ("start_review", CIReportStatus.SUBMITTED, CIReportStatus.UNDER_REVIEW, CIAuditAction.REVIEW_STARTED),
    Approve: ("approve", CIReportStatus.UNDER_REVIEW, CIReportStatus.VERIFIED, CIAuditAction.APPROVED),
    Reject: ("reject", CIReportStatus.UNDER_REVIEW, CIReportStatus.REJECTED, CIAuditAction.REJECTED),
    RequestRevision: ("request_revision", CIReportStatus.UNDER_REVIEW, CIReportStatus.DRAFT, CIAuditAction.REVISION_REQUESTED),
}

VERIFY_ACTIONS = ("start_review", "approve", "reject", "request_revision")


def action_name(action: WorkflowAction) -> str:
    return TRANSITIONS[type(action)][0]


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def allowed_actions(current_status: Union[CIReportStatus, str]) -> Tuple[str, ...]:
    """Names of the actions permitted from a status."""
    current_status = CIReportStatus(current_status)
    return tuple(name for name, source, _, _ in TRANSITIONS.values() if source == current_status)


def apply_transition(
    current_status: Union[CIReportStatus, str],
    action: WorkflowAction,
    actor_id: Optional[UUID],
) -> TransitionResult:
    """
    Decide the outcome of an action on a report in current_status.

    Args:
        current_status: Status the report is in now
        action: One of Submit, StartReview, Approve, Reject, RequestRevision
        actor_id: User performing the action

    Returns:
        TransitionOk with the new status and the audit entry to append, or
        TransitionErr describing why nothing may change
    """
    current_status = CIReportStatus(current_status)
    rule = TRANSITIONS.get(type(action))
    if rule is None:
        raise TypeError(f"Unknown workflow action: {action!r}")
    name, source, target, audit_action = rule

    if current_status != source:
        return TransitionErr(
            kind=TransitionErrorKind.INVALID_TRANSITION,
            message=f"Cannot {name} report with status '{current_status.value}'",
            action=name,
            current_status=current_status,
        )

    notes: Optional[str] = None
    metadata: Dict[str, Any] = {}

    if isinstance(action, Reject):
        if _blank(action.reason):
            return TransitionErr(
                kind=TransitionErrorKind.MISSING_REASON,
                message="rejection_reason is required when rejecting a report",
                action=name,
                current_status=current_status,
            )
        notes = action.reason
        if not _blank(action.notes):
            metadata["auditor_notes"] = action.notes
    elif isinstance(action, RequestRevision):
        if _blank(action.notes):
            return TransitionErr(
                kind=TransitionErrorKind.MISSING_NOTES,
                message="notes are required when requesting a revision",
                action=name,
                current_status=current_status,
            )
        notes = action.notes
    elif isinstance(action, Approve) and not _blank(action.notes):
        notes = action.notes

    return TransitionOk(
        new_status=target,
        log_entry=AuditLogEntry(
            action=audit_action,
            previous_status=current_status,
            new_status=target,
            actor_id=actor_id,
            notes=notes,
            metadata=metadata,
        ),
    )


def parse_action(
    action: str,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
) -> WorkflowAction:
    """Build a workflow action from the verify endpoint's request fields."""
    if action == "submit":
        return Submit()
    if action == "start_review":
        return StartReview()
    if action == "approve":
        return Approve(notes=notes)
    if action == "reject":
        return Reject(reason=rejection_reason or "", notes=notes)
    if action == "request_revision":
        return RequestRevision(notes=notes or "")
    raise ValidationException(
        message=f"action must be one of {', '.join(VERIFY_ACTIONS)}",
        field="action",
    )
