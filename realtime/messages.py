"""
Purpose: The two message kinds carried by the live channel, and their wire frames.
What it does:
- StatusChanged   -> {"type": "appointment-status-updated", "appointmentId", "status", "version"}
- LocationUpdated -> {"type": "driver-location-updated", "driverId", "appointmentId",
                      "location": {"latitude", "longitude"}, "timestamp"}
- encode_message / decode_message between dataclasses and JSON-able dicts

Rule: the channel never interprets a message beyond routing it by appointment id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Union

from routing.geo import GeoPoint

STATUS_CHANGED = "appointment-status-updated"
LOCATION_UPDATED = "driver-location-updated"


@dataclass(frozen=True)
class StatusChanged:
    appointment_id: str
    status: str
    version: int


@dataclass(frozen=True)
class LocationUpdated:
    driver_id: str
    appointment_id: str
    point: GeoPoint
    timestamp: datetime


ChannelMessage = Union[StatusChanged, LocationUpdated]


def encode_message(message: ChannelMessage) -> Dict[str, Any]:
    if isinstance(message, StatusChanged):
        return {
            "type": STATUS_CHANGED,
            "appointmentId": message.appointment_id,
            "status": message.status,
            "version": message.version,
        }
    if isinstance(message, LocationUpdated):
        return {
            "type": LOCATION_UPDATED,
            "driverId": message.driver_id,
            "appointmentId": message.appointment_id,
            "location": {
                "latitude": message.point.latitude,
                "longitude": message.point.longitude,
            },
            "timestamp": message.timestamp.isoformat(),
        }
    raise TypeError(f"Not a channel message: {message!r}")


def decode_message(frame: Dict[str, Any]) -> ChannelMessage:
    """
    Raises ValueError for anything that is not a well-formed message frame.
    """
    if not isinstance(frame, dict):
        raise ValueError(f"Frame must be an object, got {type(frame).__name__}")

    kind = frame.get("type")
    try:
        if kind == STATUS_CHANGED:
            return StatusChanged(
                appointment_id=str(frame["appointmentId"]),
                status=str(frame["status"]),
                version=int(frame["version"]),
            )
        if kind == LOCATION_UPDATED:
            location = frame["location"]
            timestamp = datetime.fromisoformat(frame["timestamp"])
            if timestamp.tzinfo is None:
                # naive timestamps on the wire are UTC
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            return LocationUpdated(
                driver_id=str(frame["driverId"]),
                appointment_id=str(frame["appointmentId"]),
                point=GeoPoint(float(location["latitude"]), float(location["longitude"])),
                timestamp=timestamp,
            )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed {kind} frame: {exc}") from exc

    raise ValueError(f"Unknown frame type: {kind!r}")
