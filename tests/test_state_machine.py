"""Tests for status derivation and line transitions."""

import itertools
from dataclasses import dataclass

import pytest

from approval_engine.services.state_machine import (
    InvalidTransitionError,
    LineStateMachine,
    Status,
    derive_status,
)


@dataclass
class Line:
    status: str


class TestDeriveStatus:
    """Test the line-to-report status roll-up."""

    def test_empty_is_draft(self):
        assert derive_status([]) == Status.DRAFT

    def test_all_draft_is_draft(self):
        assert derive_status(["draft", "draft", "draft"]) == Status.DRAFT

    def test_all_approved_is_approved(self):
        assert derive_status(["approved"]) == Status.APPROVED
        assert derive_status(["approved", "approved"]) == Status.APPROVED

    def test_submitted_dominates_rejected(self):
        """A report is still awaiting a decision while any line is submitted."""
        assert derive_status(["submitted", "rejected"]) == Status.SUBMITTED
        assert derive_status(["rejected", "approved", "submitted"]) == Status.SUBMITTED

    def test_rejected_with_approved_is_rejected(self):
        assert derive_status(["rejected", "approved"]) == Status.REJECTED

    def test_approved_with_draft_falls_back_to_draft(self):
        assert derive_status(["approved", "draft"]) == Status.DRAFT

    def test_draft_with_submitted_is_submitted(self):
        assert derive_status(["draft", "submitted"]) == Status.SUBMITTED

    def test_draft_with_rejected_is_rejected(self):
        assert derive_status(["draft", "rejected"]) == Status.REJECTED

    def test_accepts_objects_with_status(self):
        lines = [Line("approved"), Line("rejected")]
        assert derive_status(lines) == Status.REJECTED

    def test_accepts_enum_values(self):
        assert derive_status([Status.SUBMITTED, Status.DRAFT]) == Status.SUBMITTED

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            derive_status(["pending"])

    def test_pure_and_order_independent(self):
        """Same multiset of statuses always derives the same value."""
        values = [s.value for s in Status]
        for combo in itertools.combinations_with_replacement(values, 3):
            expected = derive_status(list(combo))
            for perm in itertools.permutations(combo):
                assert derive_status(list(perm)) == expected
            assert derive_status(list(combo)) == expected

    def test_result_is_always_a_status(self):
        values = [s.value for s in Status]
        for size in range(0, 4):
            for combo in itertools.product(values, repeat=size):
                assert derive_status(list(combo)) in set(Status)


class TestLineStateMachine:
    """Test line status transitions."""

    def test_valid_transitions(self):
        # draft → submitted
        assert LineStateMachine.can_transition("draft", "submitted") is True

        # rejected → submitted (resubmission)
        assert LineStateMachine.can_transition("rejected", "submitted") is True

        # submitted → approved | rejected
        assert LineStateMachine.can_transition("submitted", "approved") is True
        assert LineStateMachine.can_transition("submitted", "rejected") is True

        # edits return the line to draft
        assert LineStateMachine.can_transition("approved", "draft") is True
        assert LineStateMachine.can_transition("rejected", "draft") is True

    def test_invalid_transitions(self):
        # Can't skip review
        assert LineStateMachine.can_transition("draft", "approved") is False
        assert LineStateMachine.can_transition("draft", "rejected") is False

        # Approved lines are not resubmitted
        assert LineStateMachine.can_transition("approved", "submitted") is False
        assert LineStateMachine.can_transition("approved", "rejected") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            LineStateMachine.validate_transition("draft", "approved")

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "approved"
        assert exc_info.value.kind == "validation"
        assert exc_info.value.status_code == 400
        assert "allowed: submitted" in exc_info.value.message

    def test_unknown_status_has_no_transitions(self):
        with pytest.raises(InvalidTransitionError, match="no transitions allowed"):
            LineStateMachine.validate_transition("archived", "draft")

    def test_is_submittable(self):
        assert LineStateMachine.is_submittable("draft") is True
        assert LineStateMachine.is_submittable("rejected") is True
        assert LineStateMachine.is_submittable("approved") is False
        assert LineStateMachine.is_submittable("submitted") is False

    def test_get_next_statuses(self):
        assert LineStateMachine.get_next_statuses("draft") == ["submitted"]
        assert set(LineStateMachine.get_next_statuses("submitted")) == {
            "approved",
            "rejected",
            "draft",
        }
        assert LineStateMachine.get_next_statuses("unknown") == []

    def test_all_approved(self):
        assert LineStateMachine.all_approved(["approved", "approved"]) is True
        assert LineStateMachine.all_approved(["approved", "submitted"]) is False
        assert LineStateMachine.all_approved([]) is False
