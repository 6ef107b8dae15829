#Purpose: The appointments REST API "adapter/client".
#Sole responsibility: move appointment snapshots and status intents over HTTP.
#- fetch_appointment(id): authoritative snapshot (used after a channel reconnect)
#- save_status(intent): durable write of a locally applied transition
#Every failure (network, timeout, non-2xx, bad body) is a PersistenceError.
#It should not contain transition rules or merge logic.

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

from .models import Appointment, AppointmentStatus, utcnow
from .policy import AppointmentPolicy, default_appointment_policy

# Example in .env:
# APPOINTMENTS_API_URL=https://api.example.com/api
# APPOINTMENTS_API_TOKEN=eyJ...
load_dotenv()
API_URL = os.getenv("APPOINTMENTS_API_URL")
API_TOKEN = os.getenv("APPOINTMENTS_API_TOKEN")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionIntent:
    """
    Outbound request to durably store a transition that was already applied locally.
    """
    appointment_id: str
    status: AppointmentStatus
    version: int
    notes: str = ""
    updated_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    at: datetime = field(default_factory=utcnow)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "notes": self.notes,
            "updatedBy": self.updated_by,
            "cancellationReason": self.cancellation_reason,
            "at": self.at.isoformat(),
        }


class PersistenceError(Exception):
    """
    The transition is valid and applied locally but could not be stored.
    `appointment` is the (already advanced) local snapshot when raised by the state machine.
    """
    def __init__(self, message: str, *, intent: Optional[TransitionIntent] = None,
                 status_code: Optional[int] = None, appointment: Optional[Appointment] = None):
        super().__init__(message)
        self.intent = intent
        self.status_code = status_code
        self.appointment = appointment


class AppointmentApiClient:
    """
    Thin requests-based client. Blocking; the state machine runs it off the event loop.
    """
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None,
                 policy: Optional[AppointmentPolicy] = None):
        self.base_url = (base_url or API_URL or "").rstrip("/")
        self.token = token or API_TOKEN
        policy = policy or default_appointment_policy()
        self.timeout = timeout if timeout is not None else policy.http_timeout_s
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("Appointments API URL not set. Please set APPOINTMENTS_API_URL in the .env file.")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch_appointment(self, appointment_id: str) -> Appointment:
        url = f"{self.base_url}/appointments/{appointment_id}"
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise PersistenceError(f"Could not fetch appointment {appointment_id}: {exc}") from exc

        if not response.ok:
            raise PersistenceError(
                f"Fetching appointment {appointment_id} failed: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
            # the API wraps single resources as {"appointment": {...}}
            payload = body.get("appointment", body) if isinstance(body, dict) else body
            return Appointment.from_dict(payload)
        except (ValueError, KeyError, TypeError) as exc:
            raise PersistenceError(f"Malformed appointment payload for {appointment_id}: {exc}") from exc

    def save_status(self, intent: TransitionIntent) -> None:
        url = f"{self.base_url}/appointments/{intent.appointment_id}/status"
        try:
            response = self.session.put(
                url,
                json=intent.to_payload(),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PersistenceError(f"Could not save status for {intent.appointment_id}: {exc}",
                                   intent=intent) from exc

        if not response.ok:
            raise PersistenceError(
                f"Saving status {intent.status.value} for {intent.appointment_id} failed: {response.status_code}",
                intent=intent,
                status_code=response.status_code,
            )
        logger.debug("Persisted %s v%d for %s", intent.status.value, intent.version, intent.appointment_id)
