"""Tests for the escrow and migration-task state machines.

These tests verify that:
    1. Forward moves, skips and repeats are allowed.
    2. Backward moves are blocked.
    3. Unknown statuses are rejected.
    4. Task status is derived from the two confirmations.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from business_escrow.domain.state_machine import (
    EscrowStateMachine,
    advance_task_status,
    normalize_status,
    status_aliases,
    validate_transition,
)

FORWARD = ["initiated", "funded", "in_migration", "complete", "released"]


class TestHappyPath:
    """Test the full lifecycle: initiated -> released."""

    def test_full_lifecycle(self) -> None:
        sm = EscrowStateMachine("initiated")
        assert sm.status == "initiated"

        sm.mark_funded()
        assert sm.status == "funded"

        sm.mark_in_migration()
        assert sm.status == "in_migration"

        sm.mark_complete()
        assert sm.status == "complete"

        sm.mark_released()
        assert sm.status == "released"

    def test_default_start_is_initiated(self) -> None:
        assert EscrowStateMachine().status == "initiated"


class TestForwardOnly:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (FORWARD[i], FORWARD[j])
            for i in range(len(FORWARD))
            for j in range(len(FORWARD))
            if j >= i
        ],
    )
    def test_equal_or_later_allowed(self, current: str, target: str) -> None:
        assert validate_transition(current, target) == target

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("funded", "initiated"),
            ("in_migration", "funded"),
            ("complete", "funded"),
            ("complete", "in_migration"),
            ("released", "complete"),
            ("released", "initiated"),
        ],
    )
    def test_backward_blocked(self, current: str, target: str) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(current, target)

    def test_skip_straight_to_released(self) -> None:
        sm = EscrowStateMachine("initiated")
        sm.mark_released()
        assert sm.status == "released"


class TestAllowedEvents:
    def test_released_only_repeats(self) -> None:
        sm = EscrowStateMachine("released")
        assert sm.get_allowed_events() == ["mark_released"]

    def test_initiated_allows_everything(self) -> None:
        sm = EscrowStateMachine("initiated")
        assert set(sm.get_allowed_events()) == {f"mark_{s}" for s in FORWARD}


class TestEdgeCases:
    def test_unknown_current_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            EscrowStateMachine("cancelled")

    def test_unknown_target_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown target status"):
            validate_transition("funded", "refunded")

    def test_unknown_target_lists_event_ids(self) -> None:
        with pytest.raises(ValueError, match=r"\['mark_released'\]"):
            validate_transition("released", "refunded")

    def test_legacy_aliases_normalize(self) -> None:
        assert normalize_status("migration_in_progress") == "in_migration"
        assert normalize_status("completed") == "complete"
        assert normalize_status("funded") == "funded"
        assert normalize_status("on_hold") == "on_hold"

    def test_status_aliases(self) -> None:
        assert status_aliases("complete") == ["complete", "completed"]
        assert status_aliases("in_migration") == ["in_migration", "migration_in_progress"]
        assert status_aliases("funded") == ["funded"]


class TestTaskStatus:
    def test_no_confirmation_stays_pending(self) -> None:
        assert advance_task_status("pending", False, False) == "pending"

    def test_one_confirmation_is_in_progress(self) -> None:
        assert advance_task_status("pending", True, False) == "in_progress"
        assert advance_task_status("pending", False, True) == "in_progress"

    def test_repeated_single_confirmation_stays_in_progress(self) -> None:
        assert advance_task_status("in_progress", True, False) == "in_progress"

    def test_both_confirmations_complete(self) -> None:
        assert advance_task_status("in_progress", True, True) == "complete"

    def test_dual_role_completes_from_pending(self) -> None:
        assert advance_task_status("pending", True, True) == "complete"

    def test_complete_is_sticky(self) -> None:
        assert advance_task_status("complete", True, True) == "complete"
