"""Escrow and migration-task state machine guards.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter what the API layer does, a backward move (e.g. complete -> funded)
raises TransitionNotAllowed before the ORM row is touched.

Escrow transition table (party path, forward only, skips and repeats allowed):
    initiated     -> initiated | funded | in_migration | complete | released
    funded        ->             funded | in_migration | complete | released
    in_migration  ->                      in_migration | complete | released
    complete      ->                                     complete | released
    released      ->                                                released

The provider webhook bypasses this machine entirely (see WebhookService).

Migration task transition table (derived from the two confirmations):
    pending       -> in_progress  (confirm_one)
    pending       -> complete     (confirm_both, dual-role user)
    in_progress   -> in_progress  (confirm_one, repeated single confirmation)
    in_progress   -> complete     (confirm_both)
"""

from __future__ import annotations

from statemachine import State, StateMachine

from business_escrow.domain.enums import EscrowStatus, TaskStatus

# Values written by the webhook path that mean the same as a forward state.
LEGACY_STATUS_ALIASES: dict[str, str] = {
    "migration_in_progress": EscrowStatus.IN_MIGRATION,
    "completed": EscrowStatus.COMPLETE,
}

# Side statuses from which parties cannot move the transaction.
TERMINAL_SIDE_STATUSES: frozenset[str] = frozenset(
    {EscrowStatus.CANCELLED, EscrowStatus.DISPUTED}
)


class EscrowStateMachine(StateMachine):
    """State machine that guards party-requested escrow status changes.

    Usage:
        sm = EscrowStateMachine(current_status="funded")
        sm.mark_complete()   # skips in_migration
        sm.status            # "complete"
    """

    # --- States ---
    initiated = State("Initiated", initial=True)
    funded = State("Funded")
    in_migration = State("In migration")
    complete = State("Complete")
    released = State("Released")

    # --- Events / Transitions ---
    mark_initiated = initiated.to.itself()
    mark_funded = initiated.to(funded) | funded.to.itself()
    mark_in_migration = (
        initiated.to(in_migration) | funded.to(in_migration) | in_migration.to.itself()
    )
    mark_complete = (
        initiated.to(complete)
        | funded.to(complete)
        | in_migration.to(complete)
        | complete.to.itself()
    )
    mark_released = (
        initiated.to(released)
        | funded.to(released)
        | in_migration.to(released)
        | complete.to(released)
        | released.to.itself()
    )

    def __init__(self, current_status: str = EscrowStatus.INITIATED) -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: One of the five forward EscrowStatus values.
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown status '{current_status}'. Valid states: {valid}")
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches EscrowStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the ids of the events that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def normalize_status(status: str) -> str:
    """Map a legacy webhook status onto its forward-path equivalent."""
    return LEGACY_STATUS_ALIASES.get(status, status)


def status_aliases(status: str) -> list[str]:
    """Return a status together with the legacy values that normalize to it."""
    legacy = [old for old, canonical in LEGACY_STATUS_ALIASES.items() if canonical == status]
    return [status, *legacy]


def validate_transition(current_status: str, target_status: str) -> str:
    """Validate a party-requested transition and return the new status.

    Args:
        current_status: A forward-path status (already normalized).
        target_status: One of the five forward-path statuses.

    Raises:
        TransitionNotAllowed: If the target is earlier than the current status.
        ValueError: If either status is not on the forward path.
    """
    sm = EscrowStateMachine(current_status=current_status)

    event_method = getattr(sm, f"mark_{target_status}", None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown target status '{target_status}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


class MigrationTaskStateMachine(StateMachine):
    """Derives a migration task's status from its buyer/seller confirmations."""

    pending = State("Pending", initial=True)
    in_progress = State("In progress")
    complete = State("Complete", final=True)

    confirm_one = pending.to(in_progress) | in_progress.to.itself()
    confirm_both = pending.to(complete) | in_progress.to(complete)

    def __init__(self, current_status: str = TaskStatus.PENDING) -> None:
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        return str(self.current_state.value)


def advance_task_status(
    current_status: str,
    buyer_confirmed: bool,
    seller_confirmed: bool,
) -> str:
    """Return the task status implied by the post-update confirmation flags.

    A completed task stays complete. With no confirmation at all the
    status is left as is.
    """
    if current_status == TaskStatus.COMPLETE:
        return current_status

    sm = MigrationTaskStateMachine(current_status=current_status)
    if buyer_confirmed and seller_confirmed:
        sm.confirm_both()
    elif buyer_confirmed or seller_confirmed:
        sm.confirm_one()
    return sm.status
