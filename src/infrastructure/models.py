"""
SQLAlchemy ORM models.

Tables
------
* ``users``         -- customers who book rides
* ``vehicles``      -- fleet vehicles
* ``drivers``       -- drivers, each optionally bound to a default vehicle
* ``reservations``  -- ride bookings governed by the lifecycle state machine

Indexes
-------
* **B-Tree** on ``(status, scheduled_at)`` -- the scheduler's two candidate
  queries filter on exactly these columns.
* **B-Tree** on ``user_id``, ``driver_id`` and ``idempotency_key``.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.types import TypeDecorator

from .database import Base
from src.domain.enums import ReservationStatus, ServiceType, VehicleType


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend.

    PostgreSQL stores ``timestamptz`` natively; SQLite has no time zone
    support, so values are stored as naive UTC and re-tagged on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            value = value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(UTCDateTime, default=_utcnow)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_type = Column(Enum(VehicleType), default=VehicleType.SEDAN)
    brand = Column(String(60), nullable=False)
    model = Column(String(60), nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False)
    capacity = Column(Integer, default=4, nullable=False)
    created_at = Column(UTCDateTime, default=_utcnow)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone = Column(String(32), nullable=True)
    license_number = Column(String(40), unique=True, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    created_at = Column(UTCDateTime, default=_utcnow)

    __table_args__ = (Index("idx_drivers_available", "is_available"),)


class ReservationModel(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    service_type = Column(Enum(ServiceType), default=ServiceType.CITY, nullable=False)
    pickup_location = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    passengers = Column(Integer, default=1, nullable=False)

    status = Column(
        Enum(ReservationStatus),
        default=ReservationStatus.PENDING,
        nullable=False,
    )
    # Canonical pickup time; date / time strings are derived for display
    scheduled_at = Column(UTCDateTime, nullable=False)

    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)

    special_requests = Column(Text, nullable=True)
    total_price = Column(Float, nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(UTCDateTime, default=_utcnow)
    updated_at = Column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_reservations_status_scheduled", "status", "scheduled_at"),
        Index("idx_reservations_user", "user_id"),
        Index("idx_reservations_driver", "driver_id"),
        Index("idx_reservations_idempotency", "idempotency_key"),
    )
