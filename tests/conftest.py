"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Every test gets a fresh engine; ``StaticPool``
keeps all sessions on the one connection that owns the in-memory database.
"""

from __future__ import annotations

from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.enums import ReservationStatus, VehicleType
from src.infrastructure.database import Base
from src.infrastructure.models import (
    DriverModel,
    ReservationModel,
    UserModel,
    VehicleModel,
)

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables on a fresh engine, yield a session factory, dispose."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def fleet(session_factory) -> dict:
    """One user, two vehicles, an available driver and a busy one."""
    async with session_factory() as session:
        user = UserModel(first_name="Awa", last_name="Diop", email="awa@example.com")
        sedan = VehicleModel(
            vehicle_type=VehicleType.SEDAN,
            brand="Toyota",
            model="Corolla",
            license_plate="DK-1001-A",
        )
        van = VehicleModel(
            vehicle_type=VehicleType.VAN,
            brand="Mercedes",
            model="Vito",
            license_plate="DK-1003-A",
            capacity=8,
        )
        session.add_all([user, sedan, van])
        await session.flush()

        driver = DriverModel(
            first_name="Cheikh",
            last_name="Gueye",
            license_number="SN-DRV-001",
            vehicle_id=sedan.id,
            is_available=True,
        )
        busy_driver = DriverModel(
            first_name="Ousmane",
            last_name="Sow",
            license_number="SN-DRV-002",
            is_available=False,
        )
        session.add_all([driver, busy_driver])
        await session.commit()

        return {
            "user_id": user.id,
            "sedan_id": sedan.id,
            "van_id": van.id,
            "driver_id": driver.id,
            "busy_driver_id": busy_driver.id,
        }


async def add_reservation(
    session_factory,
    *,
    user_id: int,
    scheduled_at: datetime,
    status: ReservationStatus = ReservationStatus.PENDING,
    driver_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    special_requests: Optional[str] = None,
) -> int:
    async with session_factory() as session:
        reservation = ReservationModel(
            user_id=user_id,
            pickup_location="AIBD Airport",
            destination="Plateau",
            scheduled_at=scheduled_at,
            status=status,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            special_requests=special_requests,
        )
        session.add(reservation)
        await session.commit()
        return reservation.id


async def fetch_reservation(session_factory, reservation_id: int) -> ReservationModel:
    async with session_factory() as session:
        return await session.get(ReservationModel, reservation_id)
