"""
State Transition Logic for Regenerations and Credit Reservations.

Contains business rules for valid state transitions.
Separated from data models for clean architecture.

Exports:
    can_regeneration_transition: Check if a regeneration state transition is valid
    can_reservation_transition: Check if a reservation status transition is valid
    is_regeneration_terminal: Check if a regeneration state is terminal
    is_refundable_state: Check if a failure in this state owes a refund
    get_regeneration_terminal_states: Terminal regeneration states

Dependencies:
    core.models.enums: RegenerationState, ReservationStatus
"""

from typing import List

from ..models.enums import RegenerationState, ReservationStatus


_REGENERATION_TRANSITIONS = {
    RegenerationState.START: [RegenerationState.RESERVE_CREDIT, RegenerationState.FAILED],
    RegenerationState.RESERVE_CREDIT: [RegenerationState.RESOLVE_CONTEXT, RegenerationState.FAILED],
    RegenerationState.RESOLVE_CONTEXT: [RegenerationState.COMPOSE_PROMPT, RegenerationState.REFUND_CREDIT],
    RegenerationState.COMPOSE_PROMPT: [RegenerationState.GENERATE, RegenerationState.REFUND_CREDIT],
    RegenerationState.GENERATE: [RegenerationState.UPLOAD, RegenerationState.REFUND_CREDIT],
    RegenerationState.UPLOAD: [RegenerationState.COMMIT_REVISION, RegenerationState.REFUND_CREDIT],
    RegenerationState.COMMIT_REVISION: [RegenerationState.DONE, RegenerationState.REFUND_CREDIT],
    RegenerationState.REFUND_CREDIT: [RegenerationState.FAILED],
    RegenerationState.DONE: [],  # Terminal state
    RegenerationState.FAILED: [],  # Terminal state
}

# Failures in these states happen after a successful reservation
_REFUNDABLE_STATES = {
    RegenerationState.RESOLVE_CONTEXT,
    RegenerationState.COMPOSE_PROMPT,
    RegenerationState.GENERATE,
    RegenerationState.UPLOAD,
    RegenerationState.COMMIT_REVISION,
}


def can_regeneration_transition(current: RegenerationState, target: RegenerationState) -> bool:
    """
    Check if a regeneration can move from current to target state.

    The machine is linear with one compensation edge: any refundable state
    may fall through REFUND_CREDIT to FAILED.

    Args:
        current: Current state
        target: Target state

    Returns:
        True if transition is valid, False otherwise
    """
    return target in _REGENERATION_TRANSITIONS.get(current, [])


def can_reservation_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    """
    Check if a reservation can move from current to target status.

    Only RESERVED may settle, and it settles exactly once.
    """
    if current != ReservationStatus.RESERVED:
        return False
    return target in (ReservationStatus.COMMITTED, ReservationStatus.REFUNDED)


def get_regeneration_terminal_states() -> List[RegenerationState]:
    """Get terminal regeneration states."""
    return [RegenerationState.DONE, RegenerationState.FAILED]


def is_regeneration_terminal(state: RegenerationState) -> bool:
    """Check if a regeneration state is terminal."""
    return state in get_regeneration_terminal_states()


def is_refundable_state(state: RegenerationState) -> bool:
    """Check if a failure while in this state owes the user a refund."""
    return state in _REFUNDABLE_STATES
