"""Tests for pure cost arithmetic."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from meeting_cost.models import Increment
from meeting_cost.services.cost_calculator import (
    calculate_cost,
    close_increment,
    elapsed_seconds,
    rollup,
    slice_cost,
    to_money,
)

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
MEETING_ID = uuid4()


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def closed(start: int, stop: int, count: int, wage: float) -> Increment:
    return close_increment(open_at(start, count, wage), at(stop))


def open_at(start: int, count: int, wage: float) -> Increment:
    return Increment(
        meeting_id=MEETING_ID,
        start_time=at(start),
        attendee_count=count,
        average_wage=wage,
    )


class TestMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.125, 0.12), (0.135, 0.14), (2.675, 2.68), (10.0, 10.0), (0.0, 0.0)],
    )
    def test_rounds_half_to_even(self, value, expected) -> None:
        assert to_money(value) == expected

    def test_elapsed_floors_to_whole_seconds(self) -> None:
        assert elapsed_seconds(T0, at(59.999)) == 59

    def test_elapsed_never_negative(self) -> None:
        assert elapsed_seconds(at(10), T0) == 0

    def test_slice_cost(self) -> None:
        # Half an hour, three people at 40/hour
        assert slice_cost(1800, 3, 40.0) == pytest.approx(60.0)


class TestCloseIncrement:
    def test_materializes_elapsed_and_cost(self) -> None:
        increment = closed(0, 900, 4, 60.0)

        assert increment.stop_time == at(900)
        assert increment.elapsed_time == 900
        assert increment.cost == 60.0
        assert increment.running_total == 0.0

    def test_leaves_original_untouched(self) -> None:
        tail = open_at(0, 2, 30.0)
        close_increment(tail, at(60))
        assert tail.is_open


class TestCalculateCost:
    def test_empty_ledger_is_zero(self) -> None:
        cost = calculate_cost([], T0, is_active=False)
        assert cost.total_cost == 0.0
        assert cost.cost_per_second == 0.0
        assert cost.cost_per_hour == 0.0

    def test_open_tail_accrues_while_active(self) -> None:
        increments = [closed(0, 1800, 2, 30.0), open_at(1800, 2, 60.0)]

        cost = calculate_cost(increments, at(2700), is_active=True)

        assert cost.total_cost == pytest.approx(30.0 + 30.0)
        assert cost.total_duration_seconds == 2700
        assert cost.cost_per_hour == pytest.approx(60.0 / 2700 * 3600)
        assert cost.cost_per_minute == pytest.approx(cost.cost_per_second * 60)

    def test_open_tail_ignored_when_inactive(self) -> None:
        increments = [closed(0, 600, 1, 60.0), open_at(600, 5, 60.0)]

        cost = calculate_cost(increments, at(6000), is_active=False)

        assert cost.total_cost == pytest.approx(10.0)
        assert cost.total_duration_seconds == 600

    def test_now_before_tail_start_adds_nothing(self) -> None:
        cost = calculate_cost([open_at(60, 3, 60.0)], at(0), is_active=True)
        assert cost.total_cost == 0.0
        assert cost.total_duration_seconds == 0


class TestRollup:
    def test_folds_closed_increments(self) -> None:
        increments = [
            closed(0, 1800, 2, 30.0),
            closed(1800, 3600, 5, 60.0),
            open_at(3600, 9, 60.0),
        ]

        totals = rollup(increments)

        assert totals.total_cost == 180.0
        assert totals.total_duration == 3600
        # Open tail does not count towards max attendees
        assert totals.max_attendees == 5
        assert [i.running_total for i in totals.stale] == [30.0, 180.0]

    def test_running_totals_already_correct_are_not_stale(self) -> None:
        first = closed(0, 60, 1, 60.0).model_copy(update={"running_total": 1.0})
        second = closed(60, 120, 1, 60.0)

        totals = rollup([first, second])

        assert [i.id for i in totals.stale] == [second.id]
        assert totals.stale[0].running_total == 2.0
