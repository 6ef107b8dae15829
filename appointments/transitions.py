r"""
Purpose: The appointment lifecycle rules, as pure functions.

    pending -> confirmed -> driver_enroute -> picked_up -> in_verification -> completed
       \___________\_____________\________________\______________\______-> cancelled

completed and cancelled are terminal. Everything not in ALLOWED_TRANSITIONS is illegal.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from .models import AppointmentStatus

S = AppointmentStatus

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),  # driver assignment / client cancel
    S.CONFIRMED: frozenset({S.DRIVER_ENROUTE, S.CANCELLED}),  # driver starts travel
    S.DRIVER_ENROUTE: frozenset({S.PICKED_UP, S.CANCELLED}),  # driver arrives
    S.PICKED_UP: frozenset({S.IN_VERIFICATION, S.CANCELLED}),  # inspection begins
    S.IN_VERIFICATION: frozenset({S.COMPLETED, S.CANCELLED}),  # inspection finishes
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}


class TransitionError(Exception):
    """Base class for rejected lifecycle changes. Never retried automatically."""
    pass


class IllegalTransition(TransitionError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: AppointmentStatus, to_status: AppointmentStatus):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot transition appointment from {from_status.value} to {to_status.value}")


class UnknownAppointment(TransitionError):
    """Raised when the state machine does not own the appointment id."""
    pass


def is_terminal(status: AppointmentStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def can_transition(from_status: AppointmentStatus, to_status: str | AppointmentStatus) -> bool:
    return AppointmentStatus.parse(to_status) in ALLOWED_TRANSITIONS[from_status]


def validate_transition(from_status: AppointmentStatus, to_status: str | AppointmentStatus) -> AppointmentStatus:
    """
    Returns the canonical target status, or raises IllegalTransition.
    """
    target = AppointmentStatus.parse(to_status)
    if target not in ALLOWED_TRANSITIONS[from_status]:
        raise IllegalTransition(from_status, target)
    return target
