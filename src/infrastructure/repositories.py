"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Committing is left to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DriverModel, ReservationModel, UserModel, VehicleModel
from src.domain.enums import ReservationStatus, ServiceType
from src.domain.exceptions import ReservationConflict, ReservationNotFound


class ReservationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_reservation(
        self,
        *,
        user_id: int,
        scheduled_at: datetime,
        pickup_location: str,
        destination: str,
        service_type: ServiceType = ServiceType.CITY,
        passengers: int = 1,
        special_requests: str | None = None,
        total_price: float | None = None,
        idempotency_key: str | None = None,
        status: ReservationStatus = ReservationStatus.PENDING,
        driver_id: int | None = None,
        vehicle_id: int | None = None,
    ) -> ReservationModel:
        reservation = ReservationModel(
            user_id=user_id,
            scheduled_at=scheduled_at,
            pickup_location=pickup_location,
            destination=destination,
            service_type=service_type,
            passengers=passengers,
            special_requests=special_requests,
            total_price=total_price,
            idempotency_key=idempotency_key,
            status=status,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_by_id(self, reservation_id: int) -> Optional[ReservationModel]:
        return await self.session.get(ReservationModel, reservation_id)

    async def get_by_idempotency_key(self, key: str) -> Optional[ReservationModel]:
        result = await self.session.execute(
            select(ReservationModel).where(ReservationModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def find(
        self,
        *,
        statuses: Iterable[ReservationStatus] | None = None,
        driver_assigned: bool | None = None,
        scheduled_before: datetime | None = None,
        scheduled_after: datetime | None = None,
        limit: int | None = None,
    ) -> list[ReservationModel]:
        """Reservations matching every given filter, earliest pickup first.

        ``scheduled_before`` / ``scheduled_after`` are inclusive bounds.
        """
        query = select(ReservationModel)
        if statuses is not None:
            query = query.where(ReservationModel.status.in_(list(statuses)))
        if driver_assigned is True:
            query = query.where(ReservationModel.driver_id.is_not(None))
        elif driver_assigned is False:
            query = query.where(ReservationModel.driver_id.is_(None))
        if scheduled_before is not None:
            query = query.where(ReservationModel.scheduled_at <= scheduled_before)
        if scheduled_after is not None:
            query = query.where(ReservationModel.scheduled_at >= scheduled_after)
        query = query.order_by(ReservationModel.scheduled_at, ReservationModel.id)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(
        self,
        reservation_id: int,
        fields: dict[str, Any],
        *,
        expected_status: ReservationStatus | None = None,
    ) -> ReservationModel:
        """Apply *fields* in one UPDATE scoped by id.

        With *expected_status* the row is only written while it still has
        that status; otherwise ``ReservationConflict`` is raised.  A missing
        row raises ``ReservationNotFound``.
        """
        stmt = update(ReservationModel).where(ReservationModel.id == reservation_id)
        if expected_status is not None:
            stmt = stmt.where(ReservationModel.status == expected_status)
        result = await self.session.execute(
            stmt.values(**fields).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.session.execute(
                select(ReservationModel.status).where(
                    ReservationModel.id == reservation_id
                )
            )
            actual = current.scalar_one_or_none()
            if actual is None:
                raise ReservationNotFound(reservation_id)
            raise ReservationConflict(reservation_id, expected_status, actual)

        return await self.session.get(
            ReservationModel, reservation_id, populate_existing=True
        )

    async def count_by_status(
        self,
        statuses: Iterable[ReservationStatus],
        scheduled_between: tuple[datetime, datetime] | None = None,
    ) -> int:
        query = (
            select(func.count())
            .select_from(ReservationModel)
            .where(ReservationModel.status.in_(list(statuses)))
        )
        if scheduled_between is not None:
            start, end = scheduled_between
            query = query.where(ReservationModel.scheduled_at.between(start, end))
        result = await self.session.execute(query)
        return result.scalar() or 0


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)
