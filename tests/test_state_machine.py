"""Unit tests for the reservation state machine (pure, no database)."""

from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from src.domain import state_machine
from src.domain.entities import Reservation
from src.domain.enums import RESERVATION_TRANSITIONS, ReservationStatus
from src.domain.exceptions import (
    CannotUnassignInProgress,
    DriverRequired,
    InvalidTransition,
    NotAssignable,
)

S = ReservationStatus

LEGAL_EDGES = {
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.ASSIGNED),
    (S.CONFIRMED, S.CANCELLED),
    (S.ASSIGNED, S.IN_PROGRESS),
    (S.ASSIGNED, S.CONFIRMED),
    (S.ASSIGNED, S.CANCELLED),
    (S.IN_PROGRESS, S.COMPLETED),
    (S.IN_PROGRESS, S.CANCELLED),
}

ALL_PAIRS = list(product(S, S))

UPDATED_AT = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def _reservation(status: ReservationStatus, **kwargs) -> Reservation:
    if status in (S.ASSIGNED, S.IN_PROGRESS):
        kwargs.setdefault("driver_id", 7)
        kwargs.setdefault("vehicle_id", 3)
    return Reservation(
        id=1,
        status=status,
        scheduled_at=UPDATED_AT + timedelta(hours=2),
        updated_at=UPDATED_AT,
        **kwargs,
    )


class TestCanTransition:
    def test_table_has_all_six_statuses(self):
        assert set(RESERVATION_TRANSITIONS) == set(S)

    @pytest.mark.parametrize("current,new", ALL_PAIRS)
    def test_matches_edge_table(self, current, new):
        assert state_machine.can_transition(current, new) == ((current, new) in LEGAL_EDGES)

    @pytest.mark.parametrize("status", list(S))
    def test_self_transition_is_never_allowed(self, status):
        assert not state_machine.can_transition(status, status)

    def test_accepts_raw_strings(self):
        assert state_machine.can_transition("PENDING", "CONFIRMED")

    def test_terminal_statuses(self):
        assert state_machine.is_terminal(S.COMPLETED)
        assert state_machine.is_terminal(S.CANCELLED)
        assert not state_machine.is_terminal(S.IN_PROGRESS)
        assert state_machine.allowed_transitions(S.COMPLETED) == frozenset()


class TestApplyTransition:
    @pytest.mark.parametrize("current,new", sorted(LEGAL_EDGES))
    def test_legal_edge_updates_status_and_timestamp(self, current, new):
        if new == S.ASSIGNED:
            before = _reservation(current, driver_id=7)
        else:
            before = _reservation(current)
        after = state_machine.apply_transition(before, new)
        assert after.status == new
        assert after.updated_at > before.updated_at

    def test_returns_a_copy(self):
        before = _reservation(S.PENDING)
        state_machine.apply_transition(before, S.CONFIRMED)
        assert before.status == S.PENDING
        assert before.updated_at == UPDATED_AT

    def test_updated_at_increases_even_with_a_stale_clock(self):
        before = _reservation(S.PENDING)
        after = state_machine.apply_transition(
            before, S.CONFIRMED, now=UPDATED_AT - timedelta(minutes=1)
        )
        assert after.updated_at > UPDATED_AT

    @pytest.mark.parametrize(
        "current,new", [pair for pair in ALL_PAIRS if pair not in LEGAL_EDGES]
    )
    def test_illegal_edge_raises(self, current, new):
        with pytest.raises(InvalidTransition) as excinfo:
            state_machine.apply_transition(_reservation(current), new)
        assert excinfo.value.from_status == current
        assert excinfo.value.to_status == new

    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.CANCELLED])
    @pytest.mark.parametrize("target", list(S))
    def test_terminal_statuses_never_move(self, terminal, target):
        with pytest.raises(InvalidTransition):
            state_machine.apply_transition(_reservation(terminal), target)

    def test_error_message_names_the_edge(self):
        with pytest.raises(InvalidTransition, match="PENDING -> COMPLETED"):
            state_machine.apply_transition(_reservation(S.PENDING), S.COMPLETED)

    def test_assigned_without_driver_is_rejected(self):
        with pytest.raises(DriverRequired):
            state_machine.apply_transition(_reservation(S.CONFIRMED), S.ASSIGNED)

    def test_back_to_confirmed_clears_driver(self):
        after = state_machine.apply_transition(_reservation(S.ASSIGNED), S.CONFIRMED)
        assert after.driver_id is None
        assert after.vehicle_id is None


class TestAssignDriver:
    @pytest.mark.parametrize("status", [S.PENDING, S.CONFIRMED])
    def test_assignable_statuses(self, status):
        after = state_machine.assign_driver(_reservation(status), 42, 9)
        assert after.status == S.ASSIGNED
        assert after.driver_id == 42
        assert after.vehicle_id == 9
        assert after.updated_at > UPDATED_AT

    def test_vehicle_is_optional(self):
        after = state_machine.assign_driver(_reservation(S.CONFIRMED), 42)
        assert after.driver_id == 42
        assert after.vehicle_id is None

    @pytest.mark.parametrize(
        "status", [S.ASSIGNED, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED]
    )
    def test_other_statuses_are_not_assignable(self, status):
        with pytest.raises(NotAssignable):
            state_machine.assign_driver(_reservation(status), 42)


class TestUnassignDriver:
    def test_from_assigned(self):
        after = state_machine.unassign_driver(_reservation(S.ASSIGNED))
        assert after.status == S.CONFIRMED
        assert after.driver_id is None
        assert after.vehicle_id is None

    def test_in_progress_is_refused_and_unchanged(self):
        before = _reservation(S.IN_PROGRESS)
        with pytest.raises(CannotUnassignInProgress):
            state_machine.unassign_driver(before)
        assert before.status == S.IN_PROGRESS
        assert before.driver_id == 7

    @pytest.mark.parametrize("status", [S.PENDING, S.CONFIRMED, S.COMPLETED, S.CANCELLED])
    def test_without_assignment_is_an_invalid_transition(self, status):
        with pytest.raises(InvalidTransition):
            state_machine.unassign_driver(_reservation(status))


class TestReservationEntity:
    def test_display_fields_derive_from_scheduled_at(self):
        reservation = Reservation(
            scheduled_at=datetime(2026, 10, 18, 14, 5, tzinfo=timezone.utc)
        )
        assert reservation.scheduled_date == "2026-10-18"
        assert reservation.scheduled_time == "14:05"

    def test_display_fields_are_utc(self):
        plus_two = timezone(timedelta(hours=2))
        reservation = Reservation(scheduled_at=datetime(2026, 10, 19, 1, 30, tzinfo=plus_two))
        assert reservation.scheduled_date == "2026-10-18"
        assert reservation.scheduled_time == "23:30"
