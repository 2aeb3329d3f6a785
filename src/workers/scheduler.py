"""
Booking Scheduler
=================

Advances reservations on wall-clock time, every ``interval_minutes``
(default 1 min).

Algorithm per tick
------------------
1. Capture ``now`` once; every comparison in the tick uses it.
2. **Auto-start**: ASSIGNED reservations with a driver and
   ``scheduled_at <= now`` move to IN_PROGRESS.
3. **Auto-confirm**: PENDING reservations with
   ``scheduled_at <= now + auto_confirm_lead`` move to CONFIRMED.
4. Return a ``TickResult`` (processed / updated / errors) and log a summary.

Failure isolation
-----------------
* Each reservation is written and committed on its own.  A failing write
  becomes a ``TransitionOutcome`` carrying the error message and the tick
  moves on to the next candidate.
* A failure of a whole pass (e.g. the candidate query) is recorded as a
  ``SchedulerTickError`` message; the other pass still runs.
* ``process_scheduled_bookings`` never raises.

Concurrency
-----------
Writes are ``UPDATE ... WHERE id = :id AND status = :expected`` so a manual
change racing with a tick is reported, never overwritten.  Within a process
ticks do not overlap: one asyncio task per ``SchedulerHandle`` runs them
back to back.  Across processes an optional Redis lock lets a single
process run each periodic tick.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain import state_machine
from src.domain.entities import Reservation, utcnow
from src.domain.enums import UPCOMING_STATUSES, ReservationStatus
from src.domain.exceptions import SchedulerTickError
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock
from src.infrastructure.repositories import ReservationRepository

logger = logging.getLogger(__name__)

READY_TO_START_MINUTES = 5


# ── Result values ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of advancing one reservation inside a tick."""

    reservation_id: int
    target: ReservationStatus
    updated: bool = False
    error: Optional[str] = None


@dataclass
class TickResult:
    processed: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, outcome: TransitionOutcome) -> None:
        self.processed += 1
        if outcome.updated:
            self.updated += 1
        elif outcome.error:
            self.errors.append(outcome.error)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SchedulerStats:
    pending_count: int
    confirmed_count: int
    assigned_count: int
    in_progress_count: int
    upcoming_24h_count: int
    active: bool
    interval_minutes: float
    checked_at: datetime


@dataclass(frozen=True)
class UpcomingReservation:
    reservation: Reservation
    minutes_left: int
    can_auto_start: bool


@dataclass(frozen=True)
class UpcomingOverview:
    checked_at: datetime
    reservations: list[UpcomingReservation]
    total_upcoming: int
    ready_to_start: int
    needing_driver: int
    pending: int


# ── Handle ────────────────────────────────────────────────────────────


class SchedulerHandle:
    """Owns the periodic task started by ``BookingScheduler.start``."""

    def __init__(
        self, task: asyncio.Task, stop_event: asyncio.Event, interval_minutes: float
    ):
        self._task = task
        self._stop_event = stop_event
        self.interval_minutes = interval_minutes

    @property
    def active(self) -> bool:
        return not self._stop_event.is_set() and not self._task.done()


# ── Scheduler ─────────────────────────────────────────────────────────


class BookingScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        *,
        tolerance: timedelta = timedelta(minutes=settings.auto_start_tolerance_minutes),
        confirm_lead: timedelta = timedelta(minutes=settings.auto_confirm_lead_minutes),
        stats_lookahead: timedelta = timedelta(hours=settings.stats_lookahead_hours),
        lock_factory: Optional[Callable[[], Awaitable[DistributedLock]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.tolerance = tolerance
        self.confirm_lead = confirm_lead
        self.stats_lookahead = stats_lookahead
        self._lock_factory = lock_factory
        self._clock = clock

    # ── Tick ──────────────────────────────────────────────────────────

    async def process_scheduled_bookings(self) -> TickResult:
        """Run one tick.  Never raises; failures end up in ``errors``."""
        result = TickResult()
        now = self._clock()
        logger.info("Scheduler tick at %s", now.isoformat())

        try:
            await self._run_pass(
                "auto-start",
                self._auto_start_candidates,
                ReservationStatus.IN_PROGRESS,
                now,
                result,
                is_due=self._should_start,
            )
            await self._run_pass(
                "auto-confirm",
                self._auto_confirm_candidates,
                ReservationStatus.CONFIRMED,
                now,
                result,
            )
        except Exception as exc:
            error = SchedulerTickError("tick", exc)
            logger.exception("%s", error)
            result.errors.append(str(error))

        logger.info(
            "Scheduler tick done: %d/%d reservations updated, %d error(s)",
            result.updated,
            result.processed,
            len(result.errors),
        )
        return result

    async def _auto_start_candidates(
        self, repo: ReservationRepository, now: datetime
    ) -> list[Reservation]:
        rows = await repo.find(
            statuses=[ReservationStatus.ASSIGNED],
            driver_assigned=True,
            scheduled_before=now,
        )
        return [Reservation.from_record(row) for row in rows]

    def _should_start(self, reservation: Reservation, now: datetime) -> bool:
        # The query already implies scheduled_at <= now, so the tolerance
        # only matters if the stored time and the clock disagree.
        return now - reservation.scheduled_at >= -self.tolerance

    async def _auto_confirm_candidates(
        self, repo: ReservationRepository, now: datetime
    ) -> list[Reservation]:
        rows = await repo.find(
            statuses=[ReservationStatus.PENDING],
            scheduled_before=now + self.confirm_lead,
        )
        return [Reservation.from_record(row) for row in rows]

    async def _run_pass(
        self,
        stage: str,
        select_candidates: Callable[
            [ReservationRepository, datetime], Awaitable[list[Reservation]]
        ],
        target: ReservationStatus,
        now: datetime,
        result: TickResult,
        is_due: Optional[Callable[[Reservation, datetime], bool]] = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                repo = ReservationRepository(session)
                candidates = await select_candidates(repo, now)
                logger.info("%s: %d candidate(s)", stage, len(candidates))
                for reservation in candidates:
                    if is_due is not None and not is_due(reservation, now):
                        logger.debug(
                            "Reservation %s not due yet (scheduled for %s)",
                            reservation.id,
                            reservation.scheduled_at.isoformat(),
                        )
                        result.record(TransitionOutcome(reservation.id, target))
                        continue
                    outcome = await self._advance(
                        session, repo, reservation, target, now, stage
                    )
                    result.record(outcome)
        except Exception as exc:
            error = SchedulerTickError(stage, exc)
            logger.exception("%s", error)
            result.errors.append(str(error))

    async def _advance(
        self,
        session: AsyncSession,
        repo: ReservationRepository,
        reservation: Reservation,
        target: ReservationStatus,
        now: datetime,
        stage: str,
    ) -> TransitionOutcome:
        try:
            updated = state_machine.apply_transition(reservation, target, now=now)
            await repo.update(
                reservation.id,
                {"status": updated.status, "updated_at": updated.updated_at},
                expected_status=reservation.status,
            )
            await session.commit()
        except Exception as exc:
            message = f"{stage} failed for reservation {reservation.id}: {exc}"
            logger.error(message)
            try:
                await session.rollback()
            except Exception:
                logger.exception("Rollback failed for reservation %s", reservation.id)
            return TransitionOutcome(reservation.id, target, error=message)

        logger.info(
            "Reservation %s: %s -> %s (%s)",
            reservation.id,
            reservation.status.value,
            target.value,
            stage,
        )
        return TransitionOutcome(reservation.id, target, updated=True)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self, interval_minutes: Optional[float] = None) -> SchedulerHandle:
        """Tick now, then every *interval_minutes*.  Keep the returned handle."""
        if interval_minutes is None:
            interval_minutes = settings.scheduler_interval_minutes
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        stop_event = asyncio.Event()
        task = asyncio.create_task(
            self._loop(interval_minutes * 60, stop_event), name="booking-scheduler"
        )
        logger.info("Booking scheduler started (interval=%s min)", interval_minutes)
        return SchedulerHandle(task, stop_event, interval_minutes)

    async def stop(self, handle: SchedulerHandle) -> None:
        """Stop future ticks.  A tick already running is allowed to finish."""
        if handle._stop_event.is_set() and handle._task.done():
            return
        handle._stop_event.set()
        try:
            await handle._task
        except asyncio.CancelledError:
            pass
        logger.info("Booking scheduler stopped")

    async def _loop(self, interval_seconds: float, stop_event: asyncio.Event) -> None:
        # The first tick runs even if stop was requested before the task started
        while True:
            await self._periodic_tick()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
            return

    async def _periodic_tick(self) -> None:
        try:
            if self._lock_factory is None:
                await self.process_scheduled_bookings()
                return

            lock = await self._lock_factory()
            if not await lock.acquire():
                logger.debug("Lock held by another process, skipping tick")
                return
            try:
                await self.process_scheduled_bookings()
            finally:
                await lock.release()
        except Exception:
            logger.exception("Unhandled error in scheduler tick")

    # ── Read-only views ───────────────────────────────────────────────

    async def get_stats(self, handle: Optional[SchedulerHandle] = None) -> SchedulerStats:
        now = self._clock()
        async with self._session_factory() as session:
            repo = ReservationRepository(session)
            pending = await repo.count_by_status([ReservationStatus.PENDING])
            confirmed = await repo.count_by_status([ReservationStatus.CONFIRMED])
            assigned = await repo.count_by_status([ReservationStatus.ASSIGNED])
            in_progress = await repo.count_by_status([ReservationStatus.IN_PROGRESS])
            upcoming = await repo.count_by_status(
                UPCOMING_STATUSES,
                scheduled_between=(now, now + self.stats_lookahead),
            )

        return SchedulerStats(
            pending_count=pending,
            confirmed_count=confirmed,
            assigned_count=assigned,
            in_progress_count=in_progress,
            upcoming_24h_count=upcoming,
            active=handle.active if handle else False,
            interval_minutes=(
                handle.interval_minutes if handle else settings.scheduler_interval_minutes
            ),
            checked_at=now,
        )

    async def get_upcoming_overview(self, limit: int = 20) -> UpcomingOverview:
        """Next *limit* not-yet-started reservations, soonest first."""
        now = self._clock()
        async with self._session_factory() as session:
            rows = await ReservationRepository(session).find(
                statuses=UPCOMING_STATUSES, scheduled_after=now, limit=limit
            )

        items = []
        for row in rows:
            reservation = Reservation.from_record(row)
            minutes_left = int((reservation.scheduled_at - now).total_seconds() // 60)
            can_auto_start = (
                reservation.status == ReservationStatus.ASSIGNED
                and reservation.driver_id is not None
            )
            items.append(UpcomingReservation(reservation, minutes_left, can_auto_start))

        return UpcomingOverview(
            checked_at=now,
            reservations=items,
            total_upcoming=len(items),
            ready_to_start=sum(
                1
                for i in items
                if i.can_auto_start and i.minutes_left <= READY_TO_START_MINUTES
            ),
            needing_driver=sum(
                1
                for i in items
                if i.reservation.status == ReservationStatus.CONFIRMED
                and i.reservation.driver_id is None
            ),
            pending=sum(
                1 for i in items if i.reservation.status == ReservationStatus.PENDING
            ),
        )
