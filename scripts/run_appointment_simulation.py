"""
Replays a generated appointment feed through three independent actor sessions
(driver app, client app, admin console) connected by an in-memory realtime hub,
with one injected network outage on the client side.

Usage:
    python -m scripts.generate_mock_feed
    python -m scripts.run_appointment_simulation appointment_feed_generated.csv
"""

import asyncio
import logging
import sys
from dataclasses import replace
from datetime import datetime, timezone

import pandas as pd

from appointments.models import Appointment, PartyRef, PartyRole, ChangeKind
from appointments.state_machine import AppointmentStateMachine
from appointments.persistence import PersistenceError
from realtime.channel import LiveLocationChannel
from realtime.transports import InMemoryHub
from routing.geo import GeoPoint, format_distance, distance_m


class InMemoryAppointmentApi:
    """Stands in for the REST backend: keeps the latest stored version of each appointment."""
    def __init__(self):
        self.records = {}
        self.saves = 0

    def fetch_appointment(self, appointment_id):
        if appointment_id not in self.records:
            raise PersistenceError(f"{appointment_id} not found", status_code=404)
        return self.records[appointment_id]

    def save_status(self, intent):
        self.saves += 1
        stored = self.records[intent.appointment_id]
        if intent.version > stored.version:
            self.records[intent.appointment_id] = replace(
                stored, status=intent.status, version=intent.version, last_updated_at=intent.at
            )


def load_feed(filepath):
    df = pd.read_csv(filepath)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df.sort_values("seq")


async def run(filepath, outage_at=0.3, outage_until=0.6):
    df = load_feed(filepath)
    first = df.iloc[0]

    appointment = Appointment.new(
        appointment_id=str(first["appointment_id"]),
        client=PartyRef("client-1", PartyRole.CLIENT, "Client"),
        driver=PartyRef(str(first["driver_id"]), PartyRole.DRIVER, "Driver"),
        pickup_location=GeoPoint(float(first["pickup_lat"]), float(first["pickup_lon"])),
        scheduled_at=datetime.now(timezone.utc),
    )

    api = InMemoryAppointmentApi()
    api.records[appointment.id] = appointment

    hub = InMemoryHub()
    sessions = {}
    for actor in ("driver", "client", "admin"):
        transport = hub.transport()
        channel = LiveLocationChannel(transport)
        await channel.connect()
        machine = AppointmentStateMachine(channel, api)
        machine.track(appointment)
        sessions[actor] = {"transport": transport, "machine": machine, "renders": {kind: 0 for kind in ChangeKind}}

        def count(change, renders=sessions[actor]["renders"]):
            renders[change.kind] += 1
        machine.observe(appointment.id, count)

    total = len(df)
    outage_start, outage_end = int(total * outage_at), int(total * outage_until)
    sent_fixes = dropped_fixes = 0

    for position, row in enumerate(df.itertuples(index=False)):
        if position == outage_start:
            print(f"⚠️  Client connection lost at event {position}")
            sessions["client"]["transport"].disconnect()
        if position == outage_end:
            print(f"🔌 Client reconnected at event {position}")
            sessions["client"]["transport"].reconnect()
            await sessions["client"]["machine"].resync_task

        machine = sessions[row.actor]["machine"]
        if row.kind == "status":
            await machine.apply_local_transition(appointment.id, row.status, updated_by=row.actor)
        elif row.kind == "location":
            point = GeoPoint(float(row.lat), float(row.lon))
            if machine.publish_driver_location(appointment.id, point, row.timestamp.to_pydatetime()):
                sent_fixes += 1
            else:
                dropped_fixes += 1

    print(f"\n--- Simulation Results ({total} events) ---")
    print(f"Location fixes sent: {sent_fixes}, dropped as late: {dropped_fixes}")
    print(f"Persisted transitions: {api.saves}")

    final = {}
    for actor, session in sessions.items():
        snapshot = session["machine"].get(appointment.id)
        final[actor] = (snapshot.status, snapshot.version)
        renders = session["renders"]
        last_fix = snapshot.driver_location
        gap = format_distance(distance_m(last_fix, snapshot.pickup_location)) if last_fix else "n/a"
        print(f"  {actor:>6}: {snapshot.status.value} v{snapshot.version} | "
              f"status renders {renders[ChangeKind.STATUS]}, location renders {renders[ChangeKind.LOCATION]} | "
              f"driver {gap} from pickup")

    converged = len(set(final.values())) == 1
    print(f"\nConverged: {'✅ yes' if converged else '❌ no'}")
    return converged


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    feed = sys.argv[1] if len(sys.argv) > 1 else "appointment_feed_generated.csv"
    asyncio.run(run(feed))
