"""
Admin / operator endpoints
==========================

POST /api/v1/admin/scheduler/trigger -- run one scheduler tick now
GET  /api/v1/admin/scheduler/stats   -- reservation counts and scheduler state
GET  /api/v1/admin/scheduler/status  -- upcoming reservations, soonest first
GET  /api/v1/admin/health            -- simple health check
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_scheduler, get_scheduler_handle
from src.api.middleware import limiter
from src.api.schemas import (
    HealthResponse,
    SchedulerStatsResponse,
    SchedulerStatusResponse,
    TickResultResponse,
    UpcomingReservationResponse,
    UpcomingSummary,
)
from src.config import settings
from src.workers.scheduler import BookingScheduler, SchedulerHandle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/scheduler/trigger",
    response_model=TickResultResponse,
    summary="Run one scheduler tick immediately",
)
@limiter.limit("10/minute")
async def trigger_tick(
    request: Request,
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    logger.info("Manual scheduler tick requested")
    result = await scheduler.process_scheduled_bookings()
    return TickResultResponse(
        **result.as_dict(),
        message=(
            f"Scheduler ran: {result.updated}/{result.processed} "
            f"reservations updated"
        ),
    )


@router.get(
    "/scheduler/stats",
    response_model=SchedulerStatsResponse,
    summary="Scheduler statistics",
)
@limiter.limit("100/minute")
async def get_scheduler_stats(
    request: Request,
    scheduler: BookingScheduler = Depends(get_scheduler),
    handle: Optional[SchedulerHandle] = Depends(get_scheduler_handle),
):
    stats = await scheduler.get_stats(handle)
    return SchedulerStatsResponse(
        pending_count=stats.pending_count,
        confirmed_count=stats.confirmed_count,
        assigned_count=stats.assigned_count,
        in_progress_count=stats.in_progress_count,
        upcoming_24h_count=stats.upcoming_24h_count,
        active=stats.active,
        interval_minutes=stats.interval_minutes,
        checked_at=stats.checked_at,
    )


@router.get(
    "/scheduler/status",
    response_model=SchedulerStatusResponse,
    summary="Upcoming reservations and what the scheduler will do with them",
)
@limiter.limit("100/minute")
async def get_scheduler_status(
    request: Request,
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    overview = await scheduler.get_upcoming_overview(settings.upcoming_overview_limit)
    return SchedulerStatusResponse(
        checked_at=overview.checked_at,
        reservations=[
            UpcomingReservationResponse(
                id=item.reservation.id,
                status=item.reservation.status.value,
                scheduled_at=item.reservation.scheduled_at,
                driver_id=item.reservation.driver_id,
                minutes_left=item.minutes_left,
                can_auto_start=item.can_auto_start,
            )
            for item in overview.reservations
        ],
        summary=UpcomingSummary(
            total_upcoming=overview.total_upcoming,
            ready_to_start=overview.ready_to_start,
            needing_driver=overview.needing_driver,
            pending=overview.pending,
        ),
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
