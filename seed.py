"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 sample users
  - 4 vehicles and 4 drivers (one per vehicle)
  - 8 sample reservations spread around "now", so the first scheduler
    tick visibly starts one ride and confirms another
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.domain.entities import utcnow
from src.domain.enums import ReservationStatus, ServiceType, VehicleType
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    DriverModel,
    ReservationModel,
    UserModel,
    VehicleModel,
)


USERS = [
    {"first_name": "Awa", "last_name": "Diop", "email": "awa@example.com"},
    {"first_name": "Moussa", "last_name": "Ndiaye", "email": "moussa@example.com"},
    {"first_name": "Fatou", "last_name": "Sarr", "email": "fatou@example.com"},
    {"first_name": "Ibrahima", "last_name": "Fall", "email": "ibrahima@example.com"},
    {"first_name": "Aminata", "last_name": "Ba", "email": "aminata@example.com"},
]

VEHICLES = [
    {"vehicle_type": VehicleType.SEDAN, "brand": "Toyota", "model": "Corolla", "license_plate": "DK-1001-A", "capacity": 4},
    {"vehicle_type": VehicleType.SUV, "brand": "Hyundai", "model": "Santa Fe", "license_plate": "DK-1002-A", "capacity": 6},
    {"vehicle_type": VehicleType.VAN, "brand": "Mercedes", "model": "Vito", "license_plate": "DK-1003-A", "capacity": 8},
    {"vehicle_type": VehicleType.LUXURY, "brand": "Mercedes", "model": "E-Class", "license_plate": "DK-1004-A", "capacity": 4},
]

DRIVERS = [
    {"first_name": "Cheikh", "last_name": "Gueye", "license_number": "SN-DRV-001"},
    {"first_name": "Ousmane", "last_name": "Sow", "license_number": "SN-DRV-002"},
    {"first_name": "Mamadou", "last_name": "Diallo", "license_number": "SN-DRV-003"},
    {"first_name": "Abdou", "last_name": "Faye", "license_number": "SN-DRV-004"},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = utcnow()

        # ── Users ─────────────────────────────────────────────────────
        users = [UserModel(**u) for u in USERS]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        # ── Vehicles & drivers ────────────────────────────────────────
        vehicles = [VehicleModel(**v) for v in VEHICLES]
        session.add_all(vehicles)
        await session.flush()

        drivers = [
            DriverModel(**d, vehicle_id=v.id, is_available=True)
            for d, v in zip(DRIVERS, vehicles)
        ]
        session.add_all(drivers)
        await session.flush()
        print(f"  Created {len(vehicles)} vehicles and {len(drivers)} drivers")

        # ── Reservations ──────────────────────────────────────────────
        reservations_data = [
            # Due now: the scheduler starts it on its first tick
            {"user": 0, "status": ReservationStatus.ASSIGNED, "offset": timedelta(minutes=-10), "driver": 0,
             "service_type": ServiceType.AIRPORT, "pickup": "AIBD Airport", "destination": "Plateau"},
            # Within the confirmation window: confirmed on the first tick
            {"user": 1, "status": ReservationStatus.PENDING, "offset": timedelta(minutes=30), "driver": None,
             "service_type": ServiceType.CITY, "pickup": "Almadies", "destination": "Medina"},
            # Too far ahead to be touched yet
            {"user": 2, "status": ReservationStatus.PENDING, "offset": timedelta(hours=3), "driver": None,
             "service_type": ServiceType.INTERCITY, "pickup": "Dakar", "destination": "Thies"},
            {"user": 3, "status": ReservationStatus.CONFIRMED, "offset": timedelta(hours=5), "driver": None,
             "service_type": ServiceType.EVENT, "pickup": "Ngor", "destination": "Stade Abdoulaye Wade"},
            {"user": 4, "status": ReservationStatus.ASSIGNED, "offset": timedelta(hours=2), "driver": 1,
             "service_type": ServiceType.HOURLY, "pickup": "Point E", "destination": "Point E"},
            {"user": 0, "status": ReservationStatus.IN_PROGRESS, "offset": timedelta(minutes=-40), "driver": 2,
             "service_type": ServiceType.AIRPORT, "pickup": "Mermoz", "destination": "AIBD Airport"},
            {"user": 1, "status": ReservationStatus.COMPLETED, "offset": timedelta(days=-1), "driver": 3,
             "service_type": ServiceType.CITY, "pickup": "Yoff", "destination": "Ouakam"},
            {"user": 2, "status": ReservationStatus.CANCELLED, "offset": timedelta(days=-2), "driver": None,
             "service_type": ServiceType.CITY, "pickup": "Fann", "destination": "Sicap"},
        ]

        for r in reservations_data:
            driver = drivers[r["driver"]] if r["driver"] is not None else None
            session.add(
                ReservationModel(
                    user_id=users[r["user"]].id,
                    service_type=r["service_type"],
                    pickup_location=r["pickup"],
                    destination=r["destination"],
                    passengers=1,
                    status=r["status"],
                    scheduled_at=now + r["offset"],
                    driver_id=driver.id if driver else None,
                    vehicle_id=driver.vehicle_id if driver else None,
                )
            )
        await session.flush()
        print(f"  Created {len(reservations_data)} reservations")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
