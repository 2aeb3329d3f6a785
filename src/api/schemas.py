"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from src.domain.enums import ReservationStatus, ServiceType


# ── Requests ──────────────────────────────────────────────────────────


class ReservationCreateRequest(BaseModel):
    user_id: int
    service_type: ServiceType = ServiceType.CITY
    pickup_location: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    scheduled_at: datetime = Field(
        ..., description="Pickup time; naive values are read as UTC."
    )
    passengers: int = Field(1, ge=1, le=8)
    special_requests: Optional[str] = Field(None, max_length=2000)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )

    @field_validator("scheduled_at")
    @classmethod
    def _in_future(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value <= datetime.now(timezone.utc):
            raise ValueError("scheduled_at must be in the future")
        return value


class StatusUpdateRequest(BaseModel):
    status: ReservationStatus


class AssignDriverRequest(BaseModel):
    driver_id: int
    vehicle_id: Optional[int] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ── Responses ─────────────────────────────────────────────────────────


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    service_type: str
    pickup_location: str
    destination: str
    passengers: int
    status: str
    scheduled_at: datetime
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    special_requests: Optional[str] = None
    total_price: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("status", "service_type", mode="before")
    @classmethod
    def _enum_value(cls, value):
        return value.value if hasattr(value, "value") else value

    # Display-only, derived from scheduled_at
    @computed_field
    @property
    def scheduled_date(self) -> str:
        return self.scheduled_at.astimezone(timezone.utc).strftime("%Y-%m-%d")

    @computed_field
    @property
    def scheduled_time(self) -> str:
        return self.scheduled_at.astimezone(timezone.utc).strftime("%H:%M")


class TickResultResponse(BaseModel):
    processed: int
    updated: int
    errors: list[str] = []
    message: str


class SchedulerStatsResponse(BaseModel):
    pending_count: int
    confirmed_count: int
    assigned_count: int
    in_progress_count: int
    upcoming_24h_count: int
    active: bool
    interval_minutes: float
    checked_at: datetime


class UpcomingReservationResponse(BaseModel):
    id: int
    status: str
    scheduled_at: datetime
    driver_id: Optional[int] = None
    minutes_left: int
    can_auto_start: bool


class UpcomingSummary(BaseModel):
    total_upcoming: int
    ready_to_start: int
    needing_driver: int
    pending: int


class SchedulerStatusResponse(BaseModel):
    checked_at: datetime
    reservations: list[UpcomingReservationResponse]
    summary: UpcomingSummary


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
