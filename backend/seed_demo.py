"""
Database seeding script for demo fleet data.

Creates shippers, drivers, a week of loads and a GPS breadcrumb trail per
driver so the dashboard, live map and playback have something to show.
Run this script after database is set up but before first use.
"""

import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.driver import Driver
from backend.app.models.driver_location import DriverLocation
from backend.app.models.enums import DriverStatus, LoadStatus
from backend.app.models.load import Load
from backend.app.models.shipper import Shipper
from sqlalchemy import select

CITIES = {
    "Dallas": (32.7767, -96.7970),
    "Houston": (29.7604, -95.3698),
    "Austin": (30.2672, -97.7431),
    "Oklahoma City": (35.4676, -97.5164),
    "Memphis": (35.1495, -90.0490),
}

SHIPPERS = [("S-001", "Acme Freight"), ("S-002", "Lone Star Produce"), ("S-003", "Gulf Steel")]

DRIVERS = [
    ("D-001", "Maria Lopez", DriverStatus.IN_TRANSIT, "Dallas", "Houston"),
    ("D-002", "Sam Carter", DriverStatus.PICKUP, "Austin", "Dallas"),
    ("D-003", "Priya Nair", DriverStatus.ACCOMPLISHED, "Houston", "Memphis"),
    ("D-004", "Jon Park", DriverStatus.BREAKDOWN, "Oklahoma City", "Dallas"),
]

BREADCRUMB_COUNT = 12
BREADCRUMB_SPACING = timedelta(minutes=5)


def seed_loads(now: datetime, rng: random.Random) -> list:
    """Twenty loads spread over the last nine days."""
    statuses = list(LoadStatus)
    city_names = list(CITIES)
    loads = []
    for i in range(20):
        origin, destination = rng.sample(city_names, 2)
        priced_per_mile = i % 3 != 0
        loads.append(Load(
            id=f"L-{i + 1:03d}",
            shipper_id=SHIPPERS[i % len(SHIPPERS)][0],
            origin_city=origin,
            destination_city=destination,
            status=statuses[i % len(statuses)].value,
            rate=round(rng.uniform(800, 2500), 2),
            rate_per_mile=round(rng.uniform(2.0, 4.0), 2) if priced_per_mile else None,
            distance=round(rng.uniform(150, 700), 1) if priced_per_mile else None,
            mpg=round(rng.uniform(5.5, 9.0), 1) if i % 4 else None,
            created_at=now - timedelta(days=i % 9, hours=rng.randint(0, 12)),
        ))
    return loads


def seed_breadcrumbs(driver_id: str, origin: str, destination: str, now: datetime) -> list:
    """Evenly spaced fixes from origin towards destination, oldest first."""
    (lat0, lng0), (lat1, lng1) = CITIES[origin], CITIES[destination]
    started = now - BREADCRUMB_SPACING * BREADCRUMB_COUNT
    crumbs = []
    for i in range(BREADCRUMB_COUNT):
        fraction = i / (BREADCRUMB_COUNT - 1) * 0.6
        crumbs.append(DriverLocation(
            driver_id=driver_id,
            latitude=lat0 + (lat1 - lat0) * fraction,
            longitude=lng0 + (lng1 - lng0) * fraction,
            recorded_at=started + BREADCRUMB_SPACING * i,
        ))
    return crumbs


async def seed_demo():
    """
    Seed demo fleet data.

    Creates:
    - 3 shippers
    - 4 drivers, one per status, with a breadcrumb trail each
    - 20 loads across every load status
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo seeding...")

        existing = await db.execute(select(Driver).limit(1))
        if existing.scalar_one_or_none():
            print("ℹ️  Drivers already exist, skipping seeding")
            return

        now = datetime.now(timezone.utc)
        rng = random.Random(42)

        for shipper_id, name in SHIPPERS:
            db.add(Shipper(id=shipper_id, name=name, created_at=now))
        print(f"✅ Created {len(SHIPPERS)} shippers")

        for driver_id, name, status, origin, destination in DRIVERS:
            crumbs = seed_breadcrumbs(driver_id, origin, destination, now)
            last = crumbs[-1]
            db.add(Driver(
                id=driver_id,
                name=name,
                status=status.value,
                latitude=last.latitude,
                longitude=last.longitude,
                dropoff_lat=CITIES[destination][0],
                dropoff_lng=CITIES[destination][1],
                last_update=last.recorded_at,
            ))
            await db.flush()
            db.add_all(crumbs)
        print(f"✅ Created {len(DRIVERS)} drivers with {BREADCRUMB_COUNT} breadcrumbs each")

        loads = seed_loads(now, rng)
        db.add_all(loads)
        print(f"✅ Created {len(loads)} loads")

        await db.commit()

        print("\n🎉 Demo seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_demo())
