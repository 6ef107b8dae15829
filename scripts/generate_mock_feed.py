import uuid
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd

def generate_mock_feed(output_file="appointment_feed_generated.csv", fix_interval_s=5,
                       late_fraction=0.1, seed=None):
    """
    Generates the event feed of one appointment as seen by the realtime channel:
    the driver drives towards the client's pickup point publishing GPS fixes,
    and status changes are interleaved along the way (admin confirms, driver
    goes enroute, picks up, verifies, completes).

    A fraction of the location rows is swapped with its neighbour so the feed
    arrives out of order, like a real socket under load.
    """
    rng = np.random.default_rng(seed)

    # Center around Mexico City (where the verification fleet operates)
    CENTER_LAT = 19.432608
    CENTER_LON = -99.133209

    appointment_id = f"apt_{str(uuid.uuid4())[:8]}"
    driver_id = f"drv_{rng.integers(1000, 9999)}"

    # 1. Pickup point and driver start ~3-6 km apart (roughly 0.03-0.05 degrees)
    pickup_lat = CENTER_LAT + rng.uniform(-0.02, 0.02)
    pickup_lon = CENTER_LON + rng.uniform(-0.02, 0.02)
    start_lat = pickup_lat + rng.choice([-1, 1]) * rng.uniform(0.03, 0.05)
    start_lon = pickup_lon + rng.choice([-1, 1]) * rng.uniform(0.03, 0.05)

    # 2. Driver trajectory: straight line + GPS jitter (~10 m)
    num_fixes = int(rng.integers(60, 120))
    alphas = np.linspace(0.0, 1.0, num_fixes)
    lats = start_lat + alphas * (pickup_lat - start_lat) + rng.normal(0, 0.0001, num_fixes)
    lons = start_lon + alphas * (pickup_lon - start_lon) + rng.normal(0, 0.0001, num_fixes)

    now = datetime.now(timezone.utc)
    rows = []

    rows.append({"actor": "admin", "kind": "status", "status": "confirmed",
                 "timestamp": now.isoformat(), "lat": None, "lon": None})
    rows.append({"actor": "driver", "kind": "status", "status": "driver_enroute",
                 "timestamp": (now + timedelta(seconds=1)).isoformat(), "lat": None, "lon": None})

    for fix_index in range(num_fixes):
        rows.append({
            "actor": "driver",
            "kind": "location",
            "status": None,
            "timestamp": (now + timedelta(seconds=2 + fix_index * fix_interval_s)).isoformat(),
            "lat": np.round(lats[fix_index], 6),
            "lon": np.round(lons[fix_index], 6),
        })

    arrival = now + timedelta(seconds=2 + num_fixes * fix_interval_s)
    for offset, status in enumerate(["picked_up", "in_verification", "completed"]):
        rows.append({"actor": "driver", "kind": "status", "status": status,
                     "timestamp": (arrival + timedelta(minutes=15 * offset)).isoformat(),
                     "lat": None, "lon": None})

    # 3. Shuffle some location rows with their neighbour (late arrivals)
    location_rows = [i for i, row in enumerate(rows) if row["kind"] == "location"]
    num_late = int(len(location_rows) * late_fraction)
    for i in rng.choice(location_rows[:-1], size=num_late, replace=False):
        if rows[i + 1]["kind"] == "location":
            rows[i], rows[i + 1] = rows[i + 1], rows[i]

    # 4. Save to CSV (file order = arrival order)
    df = pd.DataFrame(rows)
    df.insert(0, "seq", range(len(df)))
    df.insert(1, "appointment_id", appointment_id)
    df.insert(2, "driver_id", driver_id)
    df["pickup_lat"] = np.round(pickup_lat, 6)
    df["pickup_lon"] = np.round(pickup_lon, 6)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {len(df)} events for appointment {appointment_id} and saved to '{output_file}'")

    print("\nEvent mix:")
    for kind, count in df["kind"].value_counts().items():
        print(f"  {kind}: {count}")

if __name__ == "__main__":
    generate_mock_feed(seed=42)
