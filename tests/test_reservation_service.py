"""Manual transitions through ``ReservationService`` (SQLite-backed)."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.domain.entities import utcnow
from src.domain.enums import ReservationStatus
from src.domain.exceptions import (
    CannotUnassignInProgress,
    DriverNotFound,
    InvalidTransition,
    NotAssignable,
    ReservationNotFound,
    VehicleNotFound,
)
from src.services.reservations import ReservationService
from tests.conftest import add_reservation, fetch_reservation

S = ReservationStatus


async def _run(session_factory, operation):
    """Run *operation(service)* in one committed unit of work."""
    async with session_factory() as session:
        result = await operation(ReservationService(session))
        await session.commit()
        return result


@pytest.fixture
def tomorrow():
    return utcnow() + timedelta(days=1)


class TestAssignDriver:
    @pytest.mark.asyncio
    async def test_pending_booking_gets_driver_and_default_vehicle(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)

        await _run(session_factory, lambda s: s.assign_driver(rid, fleet["driver_id"]))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.ASSIGNED
        assert row.driver_id == fleet["driver_id"]
        assert row.vehicle_id == fleet["sedan_id"]

    @pytest.mark.asyncio
    async def test_explicit_vehicle_wins(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow, status=S.CONFIRMED
        )

        await _run(
            session_factory,
            lambda s: s.assign_driver(rid, fleet["driver_id"], fleet["van_id"]),
        )

        assert (await fetch_reservation(session_factory, rid)).vehicle_id == fleet["van_id"]

    @pytest.mark.asyncio
    async def test_unknown_driver(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)
        with pytest.raises(DriverNotFound):
            await _run(session_factory, lambda s: s.assign_driver(rid, 999))

    @pytest.mark.asyncio
    async def test_driver_marked_unavailable_can_still_be_assigned(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)

        await _run(session_factory, lambda s: s.assign_driver(rid, fleet["busy_driver_id"]))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.ASSIGNED
        assert row.driver_id == fleet["busy_driver_id"]

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)
        with pytest.raises(VehicleNotFound):
            await _run(session_factory, lambda s: s.assign_driver(rid, fleet["driver_id"], 999))

    @pytest.mark.asyncio
    async def test_ride_in_progress_is_not_assignable(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory,
            user_id=fleet["user_id"],
            scheduled_at=tomorrow,
            status=S.IN_PROGRESS,
            driver_id=fleet["driver_id"],
        )
        with pytest.raises(NotAssignable):
            await _run(session_factory, lambda s: s.assign_driver(rid, fleet["driver_id"]))


class TestUnassignDriver:
    @pytest.mark.asyncio
    async def test_assigned_goes_back_to_confirmed(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory,
            user_id=fleet["user_id"],
            scheduled_at=tomorrow,
            status=S.ASSIGNED,
            driver_id=fleet["driver_id"],
            vehicle_id=fleet["sedan_id"],
        )

        await _run(session_factory, lambda s: s.unassign_driver(rid))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.CONFIRMED
        assert row.driver_id is None
        assert row.vehicle_id is None

    @pytest.mark.asyncio
    async def test_in_progress_keeps_its_driver(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory,
            user_id=fleet["user_id"],
            scheduled_at=tomorrow,
            status=S.IN_PROGRESS,
            driver_id=fleet["driver_id"],
        )

        with pytest.raises(CannotUnassignInProgress):
            await _run(session_factory, lambda s: s.unassign_driver(rid))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.IN_PROGRESS
        assert row.driver_id == fleet["driver_id"]

    @pytest.mark.asyncio
    async def test_pending_booking_is_not_confirmed_by_unassign(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)

        with pytest.raises(InvalidTransition) as excinfo:
            await _run(session_factory, lambda s: s.unassign_driver(rid))

        assert excinfo.value.from_status == S.PENDING
        assert excinfo.value.to_status == S.CONFIRMED
        assert (await fetch_reservation(session_factory, rid)).status == S.PENDING


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_transition_follows_the_table(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)

        record = await _run(session_factory, lambda s: s.transition(rid, S.CONFIRMED))

        assert record.status == S.CONFIRMED

    @pytest.mark.asyncio
    async def test_illegal_transition_is_rejected(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow)

        with pytest.raises(InvalidTransition) as excinfo:
            await _run(session_factory, lambda s: s.transition(rid, S.COMPLETED))

        assert excinfo.value.from_status == S.PENDING
        assert excinfo.value.to_status == S.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_reservation(self, session_factory):
        with pytest.raises(ReservationNotFound):
            await _run(session_factory, lambda s: s.transition(404, S.CONFIRMED))

    @pytest.mark.asyncio
    async def test_cancel_records_the_reason(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory,
            user_id=fleet["user_id"],
            scheduled_at=tomorrow,
            special_requests="Child seat",
        )

        await _run(session_factory, lambda s: s.cancel(rid, "flight delayed"))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.CANCELLED
        assert row.special_requests == "Child seat [Cancelled: flight delayed]"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.CANCELLED])
    async def test_cancel_terminal_reservation_fails(self, session_factory, fleet, tomorrow, terminal):
        rid = await add_reservation(
            session_factory, user_id=fleet["user_id"], scheduled_at=tomorrow, status=terminal
        )
        with pytest.raises(InvalidTransition):
            await _run(session_factory, lambda s: s.cancel(rid))

    @pytest.mark.asyncio
    async def test_complete_ride_in_progress(self, session_factory, fleet, tomorrow):
        rid = await add_reservation(
            session_factory,
            user_id=fleet["user_id"],
            scheduled_at=tomorrow,
            status=S.IN_PROGRESS,
            driver_id=fleet["driver_id"],
        )

        await _run(session_factory, lambda s: s.complete(rid))

        row = await fetch_reservation(session_factory, rid)
        assert row.status == S.COMPLETED
        assert row.driver_id == fleet["driver_id"]
