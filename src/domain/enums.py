"""Domain enumerations and state-transition rules."""

import enum


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.ASSIGNED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.ASSIGNED: frozenset(
        {
            ReservationStatus.IN_PROGRESS,
            ReservationStatus.CONFIRMED,
            ReservationStatus.CANCELLED,
        }
    ),
    ReservationStatus.IN_PROGRESS: frozenset(
        {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, allowed in RESERVATION_TRANSITIONS.items() if not allowed
)

# Statuses a reservation can be in before its ride has started
UPCOMING_STATUSES = (
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.ASSIGNED,
)


class ServiceType(str, enum.Enum):
    AIRPORT = "AIRPORT"
    CITY = "CITY"
    INTERCITY = "INTERCITY"
    HOURLY = "HOURLY"
    EVENT = "EVENT"


class VehicleType(str, enum.Enum):
    SEDAN = "SEDAN"
    SUV = "SUV"
    VAN = "VAN"
    LUXURY = "LUXURY"
