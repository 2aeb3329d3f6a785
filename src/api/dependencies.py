"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import async_session_factory
from src.services.reservations import ReservationService
from src.workers.scheduler import BookingScheduler, SchedulerHandle


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_scheduler(request: Request) -> BookingScheduler:
    return request.app.state.scheduler


def get_scheduler_handle(request: Request) -> Optional[SchedulerHandle]:
    """Handle of the running scheduler, ``None`` when it is disabled."""
    return request.app.state.scheduler_handle


def get_reservation_service(
    db: AsyncSession = Depends(get_db),
) -> ReservationService:
    return ReservationService(db)
