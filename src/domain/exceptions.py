"""
Reservation lifecycle errors.

Every error carries the fields a caller needs to build its own message;
the API layer maps them to HTTP responses in ``src.api.app``.
"""

from __future__ import annotations

from .enums import ReservationStatus


class ReservationError(Exception):
    """Base class for all lifecycle errors."""


class InvalidTransition(ReservationError):
    """Raised when a status change is not a legal edge of the state machine."""

    def __init__(self, from_status: ReservationStatus, to_status: ReservationStatus):
        self.from_status = ReservationStatus(from_status)
        self.to_status = ReservationStatus(to_status)
        super().__init__(
            f"Invalid reservation transition: "
            f"{self.from_status.value} -> {self.to_status.value}"
        )


class NotAssignable(ReservationError):
    def __init__(self, status: ReservationStatus):
        self.status = ReservationStatus(status)
        super().__init__(
            f"Cannot assign a driver to a reservation in status {self.status.value}"
        )


class CannotUnassignInProgress(ReservationError):
    def __init__(self) -> None:
        super().__init__("Cannot unassign the driver of a ride in progress")


class DriverRequired(ReservationError):
    def __init__(self) -> None:
        super().__init__("An ASSIGNED reservation needs a driver")


class ReservationNotFound(ReservationError):
    def __init__(self, reservation_id: int):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} not found")


class ReservationConflict(ReservationError):
    """The row changed status between read and write (lost race)."""

    def __init__(
        self,
        reservation_id: int,
        expected: ReservationStatus,
        actual: ReservationStatus,
    ):
        self.reservation_id = reservation_id
        self.expected = ReservationStatus(expected)
        self.actual = ReservationStatus(actual)
        super().__init__(
            f"Reservation {reservation_id} is {self.actual.value}, "
            f"expected {self.expected.value}"
        )


class DriverNotFound(ReservationError):
    def __init__(self, driver_id: int):
        self.driver_id = driver_id
        super().__init__(f"Driver {driver_id} not found")


class VehicleNotFound(ReservationError):
    def __init__(self, vehicle_id: int):
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} not found")


class SchedulerTickError(ReservationError):
    """A failure that affects a whole scheduler pass rather than one item."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Scheduler error during {stage}: {cause}")
