"""Merge freshly fetched position samples into a track's history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from app.models.flights import PositionBatch, PositionSample

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class MergeResult:
    positions: tuple[PositionSample, ...]
    appended: tuple[PositionSample, ...]
    distance: Optional[float]
    duration: Optional[int]


def flight_duration_minutes(
    actual_off: Optional[datetime], actual_on: Optional[datetime]
) -> Optional[int]:
    """Whole minutes between takeoff and landing, floored."""

    if actual_off is None or actual_on is None:
        return None
    return int((actual_on - actual_off).total_seconds() // 60)


def merge_positions(
    existing: Sequence[PositionSample],
    batch: PositionBatch,
    *,
    actual_off: Optional[datetime] = None,
    actual_on: Optional[datetime] = None,
    distance: Optional[float] = None,
    duration: Optional[int] = None,
) -> MergeResult:
    """Append only samples newer than anything already stored.

    Samples that are not strictly newer than the running maximum (including
    out-of-order or repeated samples inside ``batch``) are dropped, so the
    result is strictly increasing in timestamp and re-applying a batch is a
    no-op.
    """

    latest_seen = max((sample.timestamp for sample in existing), default=EPOCH)

    appended: list[PositionSample] = []
    for sample in batch.positions:
        if sample.timestamp > latest_seen:
            appended.append(sample)
            latest_seen = sample.timestamp

    if batch.actual_distance is not None:
        distance = batch.actual_distance

    computed = flight_duration_minutes(actual_off, actual_on)
    if computed is not None:
        duration = computed

    return MergeResult(
        positions=tuple(existing) + tuple(appended),
        appended=tuple(appended),
        distance=distance,
        duration=duration,
    )


__all__ = ["EPOCH", "MergeResult", "flight_duration_minutes", "merge_positions"]
