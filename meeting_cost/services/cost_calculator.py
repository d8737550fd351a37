"""Pure cost arithmetic over an increment ledger.

Nothing here performs I/O or reads the clock: callers pass ``now`` in.
Money is computed in double precision and only rounded (half-to-even, two
places) when a value is persisted.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal

from meeting_cost.models import CostView, Increment

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
_CENT = Decimal("0.01")


def to_money(value: float) -> float:
    """Round a monetary amount to cents, half-to-even."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_EVEN))


def elapsed_seconds(start: datetime, stop: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    return max(0, math.floor((stop - start).total_seconds()))


def slice_cost(elapsed: int, attendee_count: int, average_wage: float) -> float:
    """Cost of ``elapsed`` seconds at a fixed head count and hourly wage."""
    return (elapsed / SECONDS_PER_HOUR) * attendee_count * average_wage


def close_increment(increment: Increment, at: datetime) -> Increment:
    """Return a copy of an open increment closed at ``at``.

    ``elapsed_time`` and ``cost`` are materialized; ``running_total`` is left
    for ``rollup`` to fill in.
    """
    elapsed = elapsed_seconds(increment.start_time, at)
    cost = slice_cost(elapsed, increment.attendee_count, increment.average_wage)
    return increment.model_copy(
        update={
            "stop_time": at,
            "elapsed_time": elapsed,
            "cost": to_money(cost),
            "updated_at": at,
        }
    )


def calculate_cost(
    increments: Iterable[Increment],
    now: datetime,
    is_active: bool,
) -> CostView:
    """Live cost of a meeting at ``now``.

    Closed increments contribute their stored cost and elapsed time. The open
    tail contributes its accrued cost only while the meeting is active.

    Args:
        increments: The meeting's increments in start_time order
        now: Instant to evaluate the open tail at
        is_active: Whether the meeting is running

    Returns:
        CostView with unrounded totals and per-second/minute/hour rates
    """
    total_cost = 0.0
    total_duration = 0

    for increment in increments:
        if not increment.is_open:
            total_cost += increment.cost
            total_duration += increment.elapsed_time
        elif is_active:
            elapsed = elapsed_seconds(increment.start_time, now)
            total_cost += slice_cost(
                elapsed, increment.attendee_count, increment.average_wage
            )
            total_duration += elapsed

    cost_per_second = total_cost / total_duration if total_duration > 0 else 0.0
    return CostView(
        total_cost=total_cost,
        total_duration_seconds=total_duration,
        cost_per_second=cost_per_second,
        cost_per_minute=cost_per_second * SECONDS_PER_MINUTE,
        cost_per_hour=cost_per_second * SECONDS_PER_HOUR,
    )


@dataclass
class Rollup:
    """Aggregates folded over a meeting's closed increments."""

    total_cost: float = 0.0
    total_duration: int = 0
    max_attendees: int = 0
    # Closed increments whose stored running_total disagrees with the fold
    stale: list[Increment] = field(default_factory=list)


def rollup(increments: Iterable[Increment]) -> Rollup:
    """Fold the closed ledger into meeting rollups and running totals.

    The open tail is ignored: ``max_attendees`` only reflects closed slices.
    """
    result = Rollup()
    running = 0.0
    for increment in increments:
        if increment.is_open:
            continue
        running += increment.cost
        result.total_duration += increment.elapsed_time
        result.max_attendees = max(result.max_attendees, increment.attendee_count)
        expected = to_money(running)
        if increment.running_total != expected:
            result.stale.append(increment.model_copy(update={"running_total": expected}))
    result.total_cost = to_money(running)
    return result
