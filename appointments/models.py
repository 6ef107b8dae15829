"""
Purpose: Domain models for the Appointments capability.
What it does:
- Defines core data structures:
- Appointment (aggregate root: status, parties, pickup point, route, driver position, version)
- PartyRef (client / driver / admin reference)
- StatusChange (one entry of the status history)

Defines enums/constants:
- AppointmentStatus = PENDING | CONFIRMED | DRIVER_ENROUTE | PICKED_UP | IN_VERIFICATION | COMPLETED | CANCELLED
- PartyRole = CLIENT | DRIVER | ADMIN
- ChangeKind = STATUS | LOCATION | ROUTE

Every model is frozen: observers get snapshots they cannot mutate.
Rule: No HTTP, no channel, no transition rules. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from routing.geo import GeoPoint
from routing.models import Route


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentStatus(str, Enum):
    """
    The one canonical status vocabulary.
    Older screens used other words for the same states, parse() maps them.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DRIVER_ENROUTE = "driver_enroute"
    PICKED_UP = "picked_up"
    IN_VERIFICATION = "in_verification"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str | AppointmentStatus) -> AppointmentStatus:
        if isinstance(value, AppointmentStatus):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        normalized = STATUS_ALIASES.get(normalized, normalized)
        return cls(normalized)


#legacy vocabulary -> canonical status
STATUS_ALIASES = {
    "assigned": AppointmentStatus.CONFIRMED.value,
    "in_progress": AppointmentStatus.DRIVER_ENROUTE.value,
    "delivered": AppointmentStatus.COMPLETED.value,
}


class PartyRole(str, Enum):
    CLIENT = "client"
    DRIVER = "driver"
    ADMIN = "admin"


class ChangeKind(str, Enum):
    STATUS = "status"      # full appointment changed (local transition or remote merge)
    LOCATION = "location"  # only driver_location moved, skip the heavy re-render
    ROUTE = "route"        # current_route was replaced


@dataclass(frozen=True)
class PartyRef:
    id: str
    role: PartyRole
    display_name: str = ""


@dataclass(frozen=True)
class StatusChange:
    status: AppointmentStatus
    at: datetime
    notes: str = ""
    updated_by: Optional[str] = None


@dataclass(frozen=True)
class Appointment:
    """
    Aggregate root. Only AppointmentStateMachine builds new versions of it.
    `version` is the conflict resolution key: higher version wins, clocks are not trusted.
    """
    id: str
    status: AppointmentStatus
    scheduled_at: datetime
    client: PartyRef
    pickup_location: GeoPoint
    driver: Optional[PartyRef] = None

    current_route: Optional[Route] = None
    driver_location: Optional[GeoPoint] = None
    driver_location_at: Optional[datetime] = None

    last_updated_at: datetime = field(default_factory=utcnow)
    version: int = 0

    status_history: Tuple[StatusChange, ...] = ()
    cancellation_reason: Optional[str] = None
    appointment_number: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

    @staticmethod # Factory method for a freshly booked appointment
    def new(appointment_id: str, client: PartyRef, pickup_location: GeoPoint,
            scheduled_at: datetime, driver: Optional[PartyRef] = None) -> Appointment:
        now = utcnow()
        return Appointment(
            id=appointment_id,
            status=AppointmentStatus.PENDING,
            scheduled_at=scheduled_at,
            client=client,
            pickup_location=pickup_location,
            driver=driver,
            last_updated_at=now,
            version=1,
            status_history=(StatusChange(AppointmentStatus.PENDING, now),),
        )

    # ------------------------------------------------------------------
    # REST payloads (camelCase, like the appointments API)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """
        Durable fields only: current_route is derived client-side and never shipped.
        """
        return {
            "id": self.id,
            "status": self.status.value,
            "scheduledAt": self.scheduled_at.isoformat(),
            "client": _party_to_dict(self.client),
            "driver": _party_to_dict(self.driver) if self.driver else None,
            "pickupLocation": _point_to_dict(self.pickup_location),
            "driverLocation": _point_to_dict(self.driver_location) if self.driver_location else None,
            "driverLocationAt": self.driver_location_at.isoformat() if self.driver_location_at else None,
            "lastUpdatedAt": self.last_updated_at.isoformat(),
            "version": self.version,
            "statusHistory": [
                {
                    "status": change.status.value,
                    "at": change.at.isoformat(),
                    "notes": change.notes,
                    "updatedBy": change.updated_by,
                }
                for change in self.status_history
            ],
            "cancellationReason": self.cancellation_reason,
            "appointmentNumber": self.appointment_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Appointment:
        driver = data.get("driver")
        driver_location = data.get("driverLocation")
        driver_location_at = data.get("driverLocationAt")
        return cls(
            id=str(data["id"]),
            status=AppointmentStatus.parse(data["status"]),
            scheduled_at=_parse_time(data["scheduledAt"]),
            client=_party_from_dict(data["client"]),
            driver=_party_from_dict(driver) if driver else None,
            pickup_location=_point_from_dict(data["pickupLocation"]),
            driver_location=_point_from_dict(driver_location) if driver_location else None,
            driver_location_at=_parse_time(driver_location_at) if driver_location_at else None,
            last_updated_at=_parse_time(data["lastUpdatedAt"]) if data.get("lastUpdatedAt") else utcnow(),
            version=int(data.get("version", 0)),
            status_history=tuple(
                StatusChange(
                    status=AppointmentStatus.parse(entry["status"]),
                    at=_parse_time(entry["at"]),
                    notes=entry.get("notes") or "",
                    updated_by=entry.get("updatedBy"),
                )
                for entry in data.get("statusHistory") or []
            ),
            cancellation_reason=data.get("cancellationReason"),
            appointment_number=data.get("appointmentNumber"),
        )


@dataclass(frozen=True)
class AppointmentChange:
    """What observers receive: the kind of change and the new snapshot."""
    kind: ChangeKind
    appointment: Appointment


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _point_to_dict(point: GeoPoint) -> Dict[str, float]:
    return {"latitude": point.latitude, "longitude": point.longitude}


def _point_from_dict(data: Dict[str, Any]) -> GeoPoint:
    return GeoPoint(float(data["latitude"]), float(data["longitude"]))


def _party_to_dict(party: PartyRef) -> Dict[str, str]:
    return {"id": party.id, "role": party.role.value, "displayName": party.display_name}


def _party_from_dict(data: Dict[str, Any]) -> PartyRef:
    return PartyRef(id=str(data["id"]), role=PartyRole(data["role"]), display_name=data.get("displayName") or "")
