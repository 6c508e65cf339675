"""
Interval Analytics

Overlap detection and largest-gap search over event intervals.

Both functions are pure: they take an event snapshot and return
immutable results. Events are half-open in effect: two events that
merely touch (one ends exactly when the other starts) do not overlap
and leave no gap.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from ..contracts.base import TimeRange, minutes_between
from ..contracts.events import HistoricalEvent


NO_GAP_MESSAGE = (
    "No significant temporal gaps found within the specified range, or too few events."
)
GAP_FOUND_MESSAGE = "Largest temporal gap identified."


# =============================================================================
# OVERLAPS
# =============================================================================

@dataclass(frozen=True)
class OverlapPair:
    """Two distinct overlapping events, lower event_id first."""
    first: HistoricalEvent
    second: HistoricalEvent
    overlap_start: datetime
    overlap_end: datetime

    @property
    def overlap_duration_minutes(self) -> int:
        return minutes_between(self.overlap_start, self.overlap_end)


def _ordered_pair(a: HistoricalEvent, b: HistoricalEvent) -> Tuple[HistoricalEvent, HistoricalEvent]:
    return (a, b) if a.event_id < b.event_id else (b, a)


def find_overlaps(events: Iterable[HistoricalEvent]) -> List[OverlapPair]:
    """
    Every unordered pair with max(start) < min(end).

    Sweep over start-sorted events: an event is compared only against
    still-open predecessors, so each pair is seen exactly once.
    Ordered by overlap duration descending, then by the pair's ids.
    """
    ordered = sorted(events, key=lambda e: (e.start_date, e.event_id))
    pairs: List[OverlapPair] = []
    active: List[HistoricalEvent] = []

    for event in ordered:
        active = [other for other in active if other.end_date > event.start_date]
        for other in active:
            first, second = _ordered_pair(other, event)
            pair = OverlapPair(first, second, event.start_date, min(other.end_date, event.end_date))
            # Sub-minute overlaps round to zero and are not reported
            if pair.overlap_duration_minutes > 0:
                pairs.append(pair)
        active.append(event)

    pairs.sort(key=lambda p: (
        -(p.overlap_end - p.overlap_start),
        p.first.event_id,
        p.second.event_id
    ))
    return pairs


# =============================================================================
# GAPS
# =============================================================================

@dataclass(frozen=True)
class TemporalGap:
    """Idle interval between two consecutive (by start) events."""
    start_of_gap: datetime
    end_of_gap: datetime
    preceding_event: HistoricalEvent
    succeeding_event: HistoricalEvent

    @property
    def duration(self) -> timedelta:
        return self.end_of_gap - self.start_of_gap

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_of_gap, self.end_of_gap)


@dataclass(frozen=True)
class GapReport:
    window: TimeRange
    largest_gap: Optional[TemporalGap]
    message: str


def find_largest_gap(
    events: Iterable[HistoricalEvent],
    window_start: datetime,
    window_end: datetime
) -> GapReport:
    """
    Largest positive gap between consecutive events fully inside the window.

    Consecutive means adjacent in start order; the end of the earlier event
    is compared with the start of the next one only. Fewer than two
    qualifying events, or no positive gap, is reported as "no gap".

    Raises ValueError if window_start >= window_end.
    """
    window = TimeRange(window_start, window_end)
    inside = sorted(
        (e for e in events if window.contains_interval(e.start_date, e.end_date)),
        key=lambda e: (e.start_date, e.event_id)
    )

    largest: Optional[TemporalGap] = None
    for preceding, succeeding in zip(inside, inside[1:]):
        if succeeding.start_date <= preceding.end_date:
            continue
        gap = TemporalGap(
            start_of_gap=preceding.end_date,
            end_of_gap=succeeding.start_date,
            preceding_event=preceding,
            succeeding_event=succeeding
        )
        if largest is None or gap.duration > largest.duration:
            largest = gap

    if largest is None:
        return GapReport(window=window, largest_gap=None, message=NO_GAP_MESSAGE)
    return GapReport(window=window, largest_gap=largest, message=GAP_FOUND_MESSAGE)
