"""
Purpose: Authoritative in-memory owner of appointment state for one actor session
(client app, driver app or admin console).
What it does:
- Owns appointment snapshots by id (the only place new versions are built)
- Local transitions: validate -> bump version -> notify observers -> publish on the
  channel -> persist (optimistic, PersistenceError if the save fails)
- Remote updates: last-writer-wins by version (never by wall clock)
- Driver location: lightweight updates, no version bump, stale fixes dropped
- Route attachment: replaces current_route wholesale
- Re-fetches authoritative state after the live channel reconnects

Observers receive AppointmentChange(kind, snapshot); snapshots are frozen.

Rule: transitions are validated by appointments.transitions; HTTP lives in
appointments.persistence; this module owns state and ordering only.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from realtime.channel import LiveLocationChannel
from realtime.messages import ChannelMessage, LocationUpdated, StatusChanged
from routing.geo import GeoPoint
from routing.models import Route

from .models import (
    Appointment,
    AppointmentChange,
    AppointmentStatus,
    ChangeKind,
    StatusChange,
    utcnow,
)
from .persistence import AppointmentApiClient, PersistenceError, TransitionIntent
from .policy import AppointmentPolicy, default_appointment_policy
from .transitions import UnknownAppointment, validate_transition

logger = logging.getLogger(__name__)

Observer = Callable[[AppointmentChange], None]


class MergeOutcome(str, Enum):
    APPLIED = "applied"                      # incoming was newer, replaced local state
    STALE = "stale"                          # older or identical, silently ignored
    CONFLICT_RESOLVED = "conflict_resolved"  # same version, different content, remote kept


def same_content(a: Appointment, b: Appointment) -> bool:
    """
    Compare the durable fields that a version number vouches for.

    Driver position, the computed route and timestamps move without a version
    bump (or are stamped per machine), so they are not part of the comparison.
    """
    return (
        a.status == b.status
        and a.client == b.client
        and a.driver == b.driver
        and a.pickup_location == b.pickup_location
        and a.scheduled_at == b.scheduled_at
        and a.cancellation_reason == b.cancellation_reason
        and a.appointment_number == b.appointment_number
    )


class AppointmentStateMachine:
    """
    Typical lifecycle (driver app):
        machine = AppointmentStateMachine(channel, api_client)
        machine.track(appointment)
        machine.observe(appointment.id, render)
        await machine.apply_local_transition(appointment.id, "driver_enroute")
    """

    def __init__(
        self,
        channel: LiveLocationChannel,
        persistence: Optional[AppointmentApiClient] = None,
        policy: Optional[AppointmentPolicy] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.channel = channel
        self.persistence = persistence
        self.policy = policy or default_appointment_policy()
        self._clock = clock

        self._appointments: Dict[str, Appointment] = {}
        self._observers: Dict[str, List[Observer]] = {}
        self._channel_unsubscribers: Dict[str, Callable[[], None]] = {}

        # transitions applied locally but not yet stored, oldest first
        self._pending_intents: Dict[str, List[TransitionIntent]] = {}
        self._flush_locks: Dict[str, asyncio.Lock] = {}

        self.is_live = channel.connected
        self.needs_resync = False
        self.resync_task: Optional[asyncio.Task] = None

        channel.on_connection_lost(self._on_connection_lost)
        channel.on_reconnected(self._on_reconnected)

    # ------------------------------------------------------------------
    # ownership
    # ------------------------------------------------------------------

    def track(self, appointment: Appointment) -> Appointment:
        """
        Start owning an appointment (created by the external booking flow).
        Tracking an id we already own goes through the normal version merge.
        """
        if appointment.id in self._appointments:
            self.apply_remote_update(appointment)
            return self._appointments[appointment.id]

        self._appointments[appointment.id] = appointment
        self._channel_unsubscribers[appointment.id] = self.channel.subscribe(
            appointment.id, self._on_channel_message
        )
        return appointment

    def forget(self, appointment_id: str) -> None:
        unsubscribe = self._channel_unsubscribers.pop(appointment_id, None)
        if unsubscribe is not None:
            unsubscribe()
        self._appointments.pop(appointment_id, None)
        self._observers.pop(appointment_id, None)
        self._pending_intents.pop(appointment_id, None)
        self._flush_locks.pop(appointment_id, None)

    def get(self, appointment_id: str) -> Appointment:
        try:
            return self._appointments[appointment_id]
        except KeyError:
            raise UnknownAppointment(f"Appointment {appointment_id} is not tracked") from None

    def appointments(self) -> List[Appointment]:
        return list(self._appointments.values())

    def observe(self, appointment_id: str, callback: Observer) -> Callable[[], None]:
        """
        Register callback for every accepted change of appointment_id.
        Returns an unsubscribe function.
        """
        self._observers.setdefault(appointment_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._observers.get(appointment_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # local transitions (owning actor)
    # ------------------------------------------------------------------

    async def apply_local_transition(
        self,
        appointment_id: str,
        target_status: str | AppointmentStatus,
        *,
        notes: str = "",
        updated_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment forward on behalf of the local actor.

        Raises:
            IllegalTransition: not allowed from the current status (nothing changes)
            UnknownAppointment: id not tracked
            PersistenceError: applied locally but not stored; .appointment holds the
                advanced snapshot and the intent stays queued for
                retry_pending_persistence()
        """
        current = self.get(appointment_id)
        new_status = validate_transition(current.status, target_status)

        now = self._clock()
        updated = replace(
            current,
            status=new_status,
            version=current.version + 1,
            last_updated_at=now,
            status_history=current.status_history + (StatusChange(new_status, now, notes, updated_by),),
            cancellation_reason=reason if new_status == AppointmentStatus.CANCELLED else current.cancellation_reason,
        )
        self._appointments[appointment_id] = updated
        logger.info("Appointment %s: %s -> %s (v%d)",
                    appointment_id, current.status.value, new_status.value, updated.version)

        self._notify(ChangeKind.STATUS, updated)
        self.channel.publish(StatusChanged(appointment_id, new_status.value, updated.version))

        self._pending_intents.setdefault(appointment_id, []).append(
            TransitionIntent(
                appointment_id=appointment_id,
                status=new_status,
                version=updated.version,
                notes=notes,
                updated_by=updated_by,
                cancellation_reason=updated.cancellation_reason,
                at=now,
            )
        )
        try:
            await self._flush_intents(appointment_id)
        except PersistenceError as exc:
            logger.warning("Appointment %s v%d not persisted: %s", appointment_id, updated.version, exc)
            raise PersistenceError(
                str(exc), intent=exc.intent, status_code=exc.status_code, appointment=updated
            ) from exc
        return updated

    def pending_intents(self, appointment_id: str) -> List[TransitionIntent]:
        return list(self._pending_intents.get(appointment_id, ()))

    async def retry_pending_persistence(self, appointment_id: str) -> bool:
        """
        Retry storing queued transitions with exponential backoff.
        The optimistic local state is never rolled back.

        Returns True once nothing is pending; re-raises the last PersistenceError
        when all attempts are used up.
        """
        last_error: Optional[PersistenceError] = None
        for attempt in range(self.policy.persist_retry_attempts):
            if not self._pending_intents.get(appointment_id):
                return True
            try:
                await self._flush_intents(appointment_id)
                return True
            except PersistenceError as exc:
                last_error = exc
                if attempt < self.policy.persist_retry_attempts - 1:
                    delay = self.policy.backoff_delay(attempt)
                    logger.debug("Persist retry %d for %s in %.1fs", attempt + 1, appointment_id, delay)
                    await asyncio.sleep(delay)

        logger.warning("Giving up persisting %s after %d attempts",
                       appointment_id, self.policy.persist_retry_attempts)
        raise last_error

    async def _flush_intents(self, appointment_id: str) -> None:
        """Send queued intents in order; stop at the first failure (which propagates)."""
        if self.persistence is None:
            self._pending_intents.pop(appointment_id, None)
            return

        lock = self._flush_locks.setdefault(appointment_id, asyncio.Lock())
        async with lock:
            queue = self._pending_intents.get(appointment_id)
            while queue:
                await asyncio.to_thread(self.persistence.save_status, queue[0])
                queue.pop(0)
            self._pending_intents.pop(appointment_id, None)

    # ------------------------------------------------------------------
    # remote updates (other actors, API re-fetch)
    # ------------------------------------------------------------------

    def apply_remote_update(self, incoming: Appointment) -> MergeOutcome:
        """
        Last-writer-wins by version. Commutative and idempotent: any delivery
        order of the same set of snapshots ends on the highest version, and a
        duplicate never reaches observers twice.

        The locally computed current_route is kept when the incoming snapshot
        has none (routes are never shipped over the wire).
        """
        local = self._appointments.get(incoming.id)

        if local is None:
            self.track(incoming)
            self._notify(ChangeKind.STATUS, incoming)
            return MergeOutcome.APPLIED

        if incoming.version < local.version:
            logger.debug("Stale update for %s: v%d < v%d", incoming.id, incoming.version, local.version)
            return MergeOutcome.STALE

        if incoming.version == local.version:
            if same_content(incoming, local):
                return MergeOutcome.STALE
            logger.warning(
                "Consistency anomaly on %s: two different snapshots share v%d (%s vs %s), keeping remote",
                incoming.id, incoming.version, local.status.value, incoming.status.value,
            )
            outcome = MergeOutcome.CONFLICT_RESOLVED
        else:
            outcome = MergeOutcome.APPLIED

        merged = incoming
        if merged.current_route is None and local.current_route is not None:
            merged = replace(merged, current_route=local.current_route)

        self._appointments[incoming.id] = merged
        self._notify(ChangeKind.STATUS, merged)
        return outcome

    def apply_status_message(self, message: StatusChanged) -> MergeOutcome:
        """
        A StatusChanged only carries (status, version); build the implied
        snapshot from local state and merge it like any remote update.

        No transition-table check here: we may have missed intermediate
        messages, and the version is what decides.
        """
        local = self._appointments.get(message.appointment_id)
        if local is None:
            logger.debug("Status message for untracked appointment %s", message.appointment_id)
            return MergeOutcome.STALE
        if message.version < local.version:
            return MergeOutcome.STALE

        try:
            status = AppointmentStatus.parse(message.status)
        except ValueError:
            logger.warning("Dropping status message with unknown status %r", message.status)
            return MergeOutcome.STALE

        # same version and status is a duplicate; same version with another
        # status is a conflict that apply_remote_update resolves
        if message.version == local.version and status == local.status:
            return MergeOutcome.STALE

        now = self._clock()
        incoming = replace(
            local,
            status=status,
            version=message.version,
            last_updated_at=now,
            status_history=local.status_history + (StatusChange(status, now),),
        )
        return self.apply_remote_update(incoming)

    # ------------------------------------------------------------------
    # driver location / route
    # ------------------------------------------------------------------

    def apply_location_update(self, appointment_id: str, point: GeoPoint,
                              timestamp: Optional[datetime] = None) -> bool:
        """
        Move the driver marker. No version bump, LOCATION change kind.
        Returns False (and changes nothing) for fixes older than the one we hold.
        """
        local = self._appointments.get(appointment_id)
        if local is None:
            logger.debug("Location for untracked appointment %s", appointment_id)
            return False

        timestamp = timestamp or self._clock()
        if local.driver_location_at is not None and timestamp <= local.driver_location_at:
            logger.debug("Dropping late location fix for %s", appointment_id)
            return False

        updated = replace(local, driver_location=point, driver_location_at=timestamp)
        self._appointments[appointment_id] = updated
        self._notify(ChangeKind.LOCATION, updated)
        return True

    def publish_driver_location(self, appointment_id: str, point: GeoPoint,
                                timestamp: Optional[datetime] = None) -> bool:
        """
        Driver app: record our own position and fan it out.
        Returns whether the fix was sent (False when dropped locally or the channel is down).
        """
        appointment = self.get(appointment_id)
        if appointment.driver is None:
            raise ValueError(f"Appointment {appointment_id} has no driver assigned")

        timestamp = timestamp or self._clock()
        if not self.apply_location_update(appointment_id, point, timestamp):
            return False
        return self.channel.publish(LocationUpdated(appointment.driver.id, appointment_id, point, timestamp))

    def attach_route(self, appointment_id: str, route: Optional[Route]) -> Appointment:
        """Replace current_route wholesale (never merged). Not versioned: routes are session-local."""
        updated = replace(self.get(appointment_id), current_route=route)
        self._appointments[appointment_id] = updated
        self._notify(ChangeKind.ROUTE, updated)
        return updated

    # ------------------------------------------------------------------
    # channel + connection handling
    # ------------------------------------------------------------------

    def _on_channel_message(self, message: ChannelMessage) -> None:
        if isinstance(message, StatusChanged):
            self.apply_status_message(message)
        elif isinstance(message, LocationUpdated):
            self.apply_location_update(message.appointment_id, message.point, message.timestamp)

    def _on_connection_lost(self) -> None:
        self.is_live = False

    def _on_reconnected(self) -> None:
        self.is_live = True
        self.needs_resync = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Channel reconnected outside an event loop; call resync() to re-fetch state")
            return
        self.resync_task = loop.create_task(self.resync())

    async def resync(self) -> Dict[str, MergeOutcome]:
        """
        Re-fetch every tracked appointment from the API and merge it.
        Needed after an outage: the channel does not replay what we missed.
        """
        outcomes: Dict[str, MergeOutcome] = {}
        if self.persistence is None:
            self.needs_resync = False
            return outcomes

        failed = False
        for appointment_id in list(self._appointments):
            try:
                fresh = await asyncio.to_thread(self.persistence.fetch_appointment, appointment_id)
            except PersistenceError as exc:
                logger.warning("Resync of %s failed: %s", appointment_id, exc)
                failed = True
                continue
            outcomes[appointment_id] = self.apply_remote_update(fresh)

            if self._pending_intents.get(appointment_id):
                try:
                    await self._flush_intents(appointment_id)
                except PersistenceError as exc:
                    logger.warning("Pending transitions of %s still not persisted: %s", appointment_id, exc)

        self.needs_resync = failed
        logger.info("Resynced %d appointment(s)", len(outcomes))
        return outcomes

    def _notify(self, kind: ChangeKind, appointment: Appointment) -> None:
        change = AppointmentChange(kind, appointment)
        for callback in list(self._observers.get(appointment.id, ())):
            try:
                callback(change)
            except Exception:
                logger.exception("Observer failed for appointment %s", appointment.id)
