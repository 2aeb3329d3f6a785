"""
Reservation endpoints
=====================

POST  /api/v1/reservations                  -- create a booking (PENDING)
GET   /api/v1/reservations/{id}             -- read a booking
PATCH /api/v1/reservations/{id}/status      -- move to another status
POST  /api/v1/reservations/{id}/assign      -- assign a driver (and vehicle)
POST  /api/v1/reservations/{id}/unassign    -- remove the driver
PATCH /api/v1/reservations/{id}/cancel      -- cancel, optionally with a reason
PATCH /api/v1/reservations/{id}/complete    -- finish a ride in progress

Lifecycle errors raised by ``ReservationService`` are turned into 404 / 409
responses by the handlers registered in ``src.api.app``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_reservation_service
from src.api.middleware import limiter
from src.api.schemas import (
    AssignDriverRequest,
    CancelRequest,
    ErrorResponse,
    ReservationCreateRequest,
    ReservationResponse,
    StatusUpdateRequest,
)
from src.infrastructure.repositories import ReservationRepository, UserRepository
from src.services.reservations import ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])

_LIFECYCLE_ERRORS = {
    404: {"model": ErrorResponse, "description": "Reservation not found."},
    409: {"model": ErrorResponse, "description": "Illegal status change."},
}


@router.post(
    "",
    status_code=201,
    response_model=ReservationResponse,
    summary="Create a reservation",
)
@limiter.limit("100/minute")
async def create_reservation(
    request: Request,
    body: ReservationCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = ReservationRepository(db)

    # ── Idempotency guard ─────────────────────────────────────────
    if body.idempotency_key:
        existing = await repo.get_by_idempotency_key(body.idempotency_key)
        if existing:
            return existing

    if await UserRepository(db).get_by_id(body.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    return await repo.create_reservation(
        user_id=body.user_id,
        service_type=body.service_type,
        pickup_location=body.pickup_location,
        destination=body.destination,
        scheduled_at=body.scheduled_at,
        passengers=body.passengers,
        special_requests=body.special_requests,
        idempotency_key=body.idempotency_key,
    )


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get a reservation",
)
@limiter.limit("100/minute")
async def get_reservation(
    request: Request,
    reservation_id: int,
    db: AsyncSession = Depends(get_db),
):
    reservation = await ReservationRepository(db).get_by_id(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return reservation


@router.patch(
    "/{reservation_id}/status",
    response_model=ReservationResponse,
    responses=_LIFECYCLE_ERRORS,
    summary="Change a reservation's status",
)
@limiter.limit("100/minute")
async def update_status(
    request: Request,
    reservation_id: int,
    body: StatusUpdateRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.transition(reservation_id, body.status)


@router.post(
    "/{reservation_id}/assign",
    response_model=ReservationResponse,
    responses=_LIFECYCLE_ERRORS,
    summary="Assign a driver",
    description=(
        "Only PENDING or CONFIRMED reservations can be assigned.  Without a "
        "vehicle_id the driver's own vehicle is used."
    ),
)
@limiter.limit("100/minute")
async def assign_driver(
    request: Request,
    reservation_id: int,
    body: AssignDriverRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.assign_driver(reservation_id, body.driver_id, body.vehicle_id)


@router.post(
    "/{reservation_id}/unassign",
    response_model=ReservationResponse,
    responses=_LIFECYCLE_ERRORS,
    summary="Remove the assigned driver",
)
@limiter.limit("100/minute")
async def unassign_driver(
    request: Request,
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.unassign_driver(reservation_id)


@router.patch(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    responses=_LIFECYCLE_ERRORS,
    summary="Cancel a reservation",
)
@limiter.limit("100/minute")
async def cancel_reservation(
    request: Request,
    reservation_id: int,
    body: Optional[CancelRequest] = Body(None),
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.cancel(reservation_id, body.reason if body else None)


@router.patch(
    "/{reservation_id}/complete",
    response_model=ReservationResponse,
    responses=_LIFECYCLE_ERRORS,
    summary="Complete a ride in progress",
)
@limiter.limit("100/minute")
async def complete_reservation(
    request: Request,
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.complete(reservation_id)
