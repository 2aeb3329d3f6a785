"""
Booking state machine
=====================

Single source of truth for which status changes are legal::

    PENDING -> CONFIRMED -> ASSIGNED -> IN_PROGRESS -> COMPLETED
       |           |          |  ^           |
       +-----------+----------+--+-----------+--> CANCELLED
                              |  |
                              +--+  (ASSIGNED -> CONFIRMED: driver unassigned)

Every function is pure: it validates, then returns an updated copy of the
``Reservation``.  Persisting the copy is the caller's job.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from .entities import Reservation, utcnow
from .enums import RESERVATION_TRANSITIONS, TERMINAL_STATUSES, ReservationStatus
from .exceptions import (
    CannotUnassignInProgress,
    DriverRequired,
    InvalidTransition,
    NotAssignable,
)

ASSIGNABLE_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


def can_transition(current: ReservationStatus, new: ReservationStatus) -> bool:
    """True if *new* is a legal next status for *current*.

    Self-transitions are never legal.
    """
    return ReservationStatus(new) in RESERVATION_TRANSITIONS[ReservationStatus(current)]


def allowed_transitions(status: ReservationStatus) -> frozenset[ReservationStatus]:
    return RESERVATION_TRANSITIONS[ReservationStatus(status)]


def is_terminal(status: ReservationStatus) -> bool:
    return ReservationStatus(status) in TERMINAL_STATUSES


def _touch(previous: Optional[datetime], now: Optional[datetime]) -> datetime:
    # updated_at must strictly increase even if the clock has not moved
    stamp = now or utcnow()
    if previous is not None and stamp <= previous:
        stamp = previous + timedelta(microseconds=1)
    return stamp


def apply_transition(
    reservation: Reservation,
    new_status: ReservationStatus,
    *,
    now: Optional[datetime] = None,
) -> Reservation:
    """Return a copy of *reservation* moved to *new_status*, else raise.

    Entering ASSIGNED also needs a driver on the reservation; without one the
    edge is refused with ``DriverRequired``.
    """
    new_status = ReservationStatus(new_status)
    if not can_transition(reservation.status, new_status):
        raise InvalidTransition(reservation.status, new_status)

    changes: dict = {
        "status": new_status,
        "updated_at": _touch(reservation.updated_at, now),
    }
    if new_status is ReservationStatus.ASSIGNED and reservation.driver_id is None:
        raise DriverRequired()
    if (
        reservation.status == ReservationStatus.ASSIGNED
        and new_status is ReservationStatus.CONFIRMED
    ):
        changes["driver_id"] = None
        changes["vehicle_id"] = None
    return replace(reservation, **changes)


def assign_driver(
    reservation: Reservation,
    driver_id: int,
    vehicle_id: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> Reservation:
    """Attach a driver (and vehicle) and move the reservation to ASSIGNED.

    A PENDING reservation is confirmed on the way, so only table edges
    are ever taken.
    """
    if reservation.status not in ASSIGNABLE_STATUSES:
        raise NotAssignable(reservation.status)

    current = reservation
    if current.status == ReservationStatus.PENDING:
        current = apply_transition(current, ReservationStatus.CONFIRMED, now=now)
    current = replace(current, driver_id=driver_id, vehicle_id=vehicle_id)
    return apply_transition(current, ReservationStatus.ASSIGNED, now=now)


def unassign_driver(
    reservation: Reservation, *, now: Optional[datetime] = None
) -> Reservation:
    """Detach the driver and move an ASSIGNED reservation back to CONFIRMED."""
    if reservation.status == ReservationStatus.IN_PROGRESS:
        raise CannotUnassignInProgress()
    if reservation.status != ReservationStatus.ASSIGNED:
        raise InvalidTransition(reservation.status, ReservationStatus.CONFIRMED)
    # apply_transition clears driver_id / vehicle_id on ASSIGNED -> CONFIRMED
    return apply_transition(reservation, ReservationStatus.CONFIRMED, now=now)
