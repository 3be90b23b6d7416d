"""
ABFI CI Engine - Verification Workflow Tests

The state machine is pure, so these tests need no database.
"""

from uuid import uuid4

import pytest

from ci_engine.models.ci_enums import CIAuditAction, CIReportStatus
from ci_engine.services.verification_workflow import (
    Approve,
    Reject,
    RequestRevision,
    StartReview,
    Submit,
    TransitionErr,
    TransitionErrorKind,
    TransitionOk,
    action_name,
    allowed_actions,
    apply_transition,
    parse_action,
)
from ci_engine.utils.error_handling import (
    ErrorCode,
    InvalidTransitionException,
    MissingNotesException,
    MissingReasonException,
    ValidationException,
)


ACTOR = uuid4()

ALL_ACTIONS = [
    Submit(),
    StartReview(),
    Approve(),
    Reject(reason="Missing evidence"),
    RequestRevision(notes="Provide electricity invoices"),
]

VALID_PAIRS = {
    (CIReportStatus.DRAFT, "submit"): CIReportStatus.SUBMITTED,
    (CIReportStatus.SUBMITTED, "start_review"): CIReportStatus.UNDER_REVIEW,
    (CIReportStatus.UNDER_REVIEW, "approve"): CIReportStatus.VERIFIED,
    (CIReportStatus.UNDER_REVIEW, "reject"): CIReportStatus.REJECTED,
    (CIReportStatus.UNDER_REVIEW, "request_revision"): CIReportStatus.DRAFT,
}


class TestTransitionTable:
    """Every (status, action) pair."""

    @pytest.mark.parametrize("status", list(CIReportStatus))
    @pytest.mark.parametrize("action", ALL_ACTIONS, ids=action_name)
    def test_pair(self, status, action):
        outcome = apply_transition(status, action, ACTOR)
        expected = VALID_PAIRS.get((status, action_name(action)))

        if expected is None:
            assert isinstance(outcome, TransitionErr)
            assert outcome.kind == TransitionErrorKind.INVALID_TRANSITION
            assert outcome.current_status == status
        else:
            assert isinstance(outcome, TransitionOk)
            assert outcome.new_status == expected
            assert outcome.log_entry.previous_status == status
            assert outcome.log_entry.new_status == expected
            assert outcome.log_entry.actor_id == ACTOR

    @pytest.mark.parametrize("status", [CIReportStatus.VERIFIED, CIReportStatus.REJECTED])
    def test_terminal_states_allow_nothing(self, status):
        assert allowed_actions(status) == ()

    def test_submitted_only_allows_start_review(self):
        assert allowed_actions(CIReportStatus.SUBMITTED) == ("start_review",)
        assert isinstance(apply_transition("submitted", Approve(), ACTOR), TransitionErr)

    def test_allowed_actions_under_review(self):
        assert set(allowed_actions("under_review")) == {"approve", "reject", "request_revision"}

    def test_audit_actions(self):
        cases = {
            CIReportStatus.DRAFT: (Submit(), CIAuditAction.SUBMITTED),
            CIReportStatus.SUBMITTED: (StartReview(), CIAuditAction.REVIEW_STARTED),
        }
        for status, (action, audit_action) in cases.items():
            assert apply_transition(status, action, ACTOR).log_entry.action == audit_action

    def test_error_converts_to_exception(self):
        outcome = apply_transition(CIReportStatus.VERIFIED, Approve(), ACTOR)
        exc = outcome.to_exception()

        assert isinstance(exc, InvalidTransitionException)
        assert exc.status_code == 409
        assert exc.details["current_status"] == "verified"


class TestActionPayloads:
    """Reasons and notes carried by reject, revision and approve."""

    def test_reject_requires_reason(self):
        outcome = apply_transition(CIReportStatus.UNDER_REVIEW, Reject(reason="  "), ACTOR)

        assert isinstance(outcome, TransitionErr)
        assert outcome.kind == TransitionErrorKind.MISSING_REASON
        exc = outcome.to_exception()
        assert isinstance(exc, MissingReasonException)
        assert exc.code == ErrorCode.MISSING_REASON

    def test_reject_reason_becomes_log_notes(self):
        outcome = apply_transition(
            CIReportStatus.UNDER_REVIEW,
            Reject(reason="Emission factors not evidenced", notes="See section 3"),
            ACTOR,
        )

        assert outcome.log_entry.notes == "Emission factors not evidenced"
        assert outcome.log_entry.metadata == {"auditor_notes": "See section 3"}

    def test_revision_requires_notes(self):
        outcome = apply_transition(CIReportStatus.UNDER_REVIEW, RequestRevision(notes=""), ACTOR)

        assert outcome.kind == TransitionErrorKind.MISSING_NOTES
        assert isinstance(outcome.to_exception(), MissingNotesException)

    def test_revision_notes_logged(self):
        outcome = apply_transition(
            CIReportStatus.UNDER_REVIEW, RequestRevision(notes="Fix transport figures"), ACTOR
        )
        assert outcome.log_entry.notes == "Fix transport figures"

    def test_status_checked_before_payload(self):
        outcome = apply_transition(CIReportStatus.DRAFT, Reject(reason=""), ACTOR)
        assert outcome.kind == TransitionErrorKind.INVALID_TRANSITION

    def test_approve_notes_optional(self):
        assert apply_transition(CIReportStatus.UNDER_REVIEW, Approve(), ACTOR).log_entry.notes is None
        assert apply_transition(
            CIReportStatus.UNDER_REVIEW, Approve(notes="All evidence checked"), ACTOR
        ).log_entry.notes == "All evidence checked"

    def test_actions_are_immutable(self):
        action = Reject(reason="x")
        with pytest.raises(Exception):
            action.reason = "y"


class TestParseAction:
    """Building actions from verify request fields."""

    def test_parse_each_action(self):
        assert parse_action("start_review") == StartReview()
        assert parse_action("approve", notes="ok") == Approve(notes="ok")
        assert parse_action("reject", notes="n", rejection_reason="r") == Reject(reason="r", notes="n")
        assert parse_action("request_revision", notes="fix") == RequestRevision(notes="fix")

    def test_missing_fields_become_blank(self):
        assert parse_action("reject") == Reject(reason="")
        assert parse_action("request_revision") == RequestRevision(notes="")

    def test_unknown_action(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_action("publish")
        assert exc_info.value.field == "action"
