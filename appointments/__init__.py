"""
Purpose: Package entry + stable exports.

Appointments domain package.

Public API:
- Domain models: Appointment, AppointmentStatus, PartyRef, PartyRole, StatusChange,
  AppointmentChange, ChangeKind
- Lifecycle rules: ALLOWED_TRANSITIONS, can_transition, validate_transition,
  TransitionError, IllegalTransition, UnknownAppointment
- AppointmentStateMachine + MergeOutcome
- Persistence: AppointmentApiClient, TransitionIntent, PersistenceError
- RoutePlanner + RouteOutcome
"""
from .models import (
    Appointment,
    AppointmentChange,
    AppointmentStatus,
    ChangeKind,
    PartyRef,
    PartyRole,
    StatusChange,
)
from .transitions import (
    ALLOWED_TRANSITIONS,
    IllegalTransition,
    TransitionError,
    UnknownAppointment,
    can_transition,
    is_terminal,
    validate_transition,
)
from .policy import AppointmentPolicy, default_appointment_policy
from .persistence import AppointmentApiClient, PersistenceError, TransitionIntent
from .state_machine import AppointmentStateMachine, MergeOutcome
from .route_planner import RoutePlanner, RouteOutcome, RouteRequestStatus

__all__ = ["Appointment",
           "AppointmentChange",
             "AppointmentStatus",
               "ChangeKind",
               "PartyRef",
               "PartyRole",
               "StatusChange",
               "ALLOWED_TRANSITIONS",
               "IllegalTransition",
               "TransitionError",
               "UnknownAppointment",
               "can_transition",
               "is_terminal",
               "validate_transition",
               "AppointmentPolicy",
               "default_appointment_policy",
               "AppointmentApiClient",
               "PersistenceError",
               "TransitionIntent",
               "AppointmentStateMachine",
               "MergeOutcome",
               "RoutePlanner",
               "RouteOutcome",
               "RouteRequestStatus",
               ]
