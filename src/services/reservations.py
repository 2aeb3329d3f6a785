"""
Manual reservation transitions
==============================

Called from request handlers.  Every operation follows the same shape:

1. load the row and turn it into a domain ``Reservation``;
2. let ``src.domain.state_machine`` decide the new value (or raise);
3. write the changed fields in a single UPDATE guarded by the status we
   read, so a concurrent change (e.g. a scheduler tick) surfaces as
   ``ReservationConflict`` instead of being overwritten.

The session is not committed here; the request's unit of work does that.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain import state_machine
from src.domain.entities import Reservation
from src.domain.enums import ReservationStatus
from src.domain.exceptions import (
    DriverNotFound,
    ReservationNotFound,
    VehicleNotFound,
)
from src.infrastructure.models import ReservationModel
from src.infrastructure.repositories import (
    DriverRepository,
    ReservationRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


class ReservationService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.reservations = ReservationRepository(session)
        self.drivers = DriverRepository(session)
        self.vehicles = VehicleRepository(session)

    async def _load(self, reservation_id: int) -> Reservation:
        record = await self.reservations.get_by_id(reservation_id)
        if record is None:
            raise ReservationNotFound(reservation_id)
        return Reservation.from_record(record)

    async def _persist(
        self, before: Reservation, after: Reservation, **extra: Any
    ) -> ReservationModel:
        fields = {
            "status": after.status,
            "driver_id": after.driver_id,
            "vehicle_id": after.vehicle_id,
            "updated_at": after.updated_at,
            **extra,
        }
        record = await self.reservations.update(
            before.id, fields, expected_status=before.status
        )
        logger.info(
            "Reservation %s: %s -> %s",
            before.id,
            before.status.value,
            after.status.value,
        )
        return record

    async def transition(
        self, reservation_id: int, target_status: ReservationStatus
    ) -> ReservationModel:
        current = await self._load(reservation_id)
        updated = state_machine.apply_transition(current, target_status)
        return await self._persist(current, updated)

    async def assign_driver(
        self,
        reservation_id: int,
        driver_id: int,
        vehicle_id: Optional[int] = None,
    ) -> ReservationModel:
        current = await self._load(reservation_id)
        # Status check first: an unassignable booking fails regardless of driver
        updated = state_machine.assign_driver(current, driver_id, vehicle_id)

        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise DriverNotFound(driver_id)

        if vehicle_id is not None:
            if await self.vehicles.get_by_id(vehicle_id) is None:
                raise VehicleNotFound(vehicle_id)
        else:
            updated = replace(updated, vehicle_id=driver.vehicle_id)

        return await self._persist(current, updated)

    async def unassign_driver(self, reservation_id: int) -> ReservationModel:
        current = await self._load(reservation_id)
        updated = state_machine.unassign_driver(current)
        return await self._persist(current, updated)

    async def cancel(
        self, reservation_id: int, reason: Optional[str] = None
    ) -> ReservationModel:
        current = await self._load(reservation_id)
        updated = state_machine.apply_transition(current, ReservationStatus.CANCELLED)
        extra = {}
        if reason:
            record = await self.reservations.get_by_id(reservation_id)
            notes = (record.special_requests or "").strip()
            extra["special_requests"] = f"{notes} [Cancelled: {reason}]".strip()
        return await self._persist(current, updated, **extra)

    async def complete(self, reservation_id: int) -> ReservationModel:
        current = await self._load(reservation_id)
        updated = state_machine.apply_transition(current, ReservationStatus.COMPLETED)
        return await self._persist(current, updated)
