"""
Domain entities.

``Reservation`` is a plain value: the state machine in
``src.domain.state_machine`` returns modified copies of it and never
touches the database.  ``scheduled_at`` is the only time the lifecycle
reads; the date / time strings shown to users are derived from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .enums import TERMINAL_STATUSES, ReservationStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Reservation:
    id: Optional[int] = None
    status: ReservationStatus = ReservationStatus.PENDING
    scheduled_at: datetime = datetime.min.replace(tzinfo=timezone.utc)
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def scheduled_date(self) -> str:
        """Display-only ``YYYY-MM-DD`` in UTC."""
        return self.scheduled_at.astimezone(timezone.utc).strftime("%Y-%m-%d")

    @property
    def scheduled_time(self) -> str:
        """Display-only ``HH:MM`` in UTC."""
        return self.scheduled_at.astimezone(timezone.utc).strftime("%H:%M")

    @classmethod
    def from_record(cls, record) -> "Reservation":
        """Build from any object exposing the reservation columns (ORM row)."""
        return cls(
            id=record.id,
            status=ReservationStatus(record.status),
            scheduled_at=record.scheduled_at,
            driver_id=record.driver_id,
            vehicle_id=record.vehicle_id,
            updated_at=record.updated_at,
        )
