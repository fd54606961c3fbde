"""Immutable in-memory view of a tracking session."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from app.domain.status import is_terminal
from app.models.flights import AirportDescriptor, PositionSample


@dataclass(frozen=True)
class TrackState:
    """Snapshot of a track as loaded from, or about to be written to, the store."""

    id: str
    tail_number: str
    status: str
    start_time: datetime
    version: int = 0
    flight_id: Optional[str] = None
    school_id: Optional[str] = None
    plane_id: Optional[str] = None
    instructor_id: Optional[str] = None
    student_id: Optional[str] = None
    end_time: Optional[datetime] = None
    flight_date: Optional[datetime] = None
    scheduled_off: Optional[datetime] = None
    estimated_off: Optional[datetime] = None
    actual_off: Optional[datetime] = None
    scheduled_on: Optional[datetime] = None
    estimated_on: Optional[datetime] = None
    actual_on: Optional[datetime] = None
    origin: Optional[AirportDescriptor] = None
    destination: Optional[AirportDescriptor] = None
    route: Optional[str] = None
    flight_type: Optional[str] = None
    distance: Optional[float] = None
    duration: Optional[int] = None
    positions: tuple[PositionSample, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def latest_position(self) -> Optional[PositionSample]:
        return self.positions[-1] if self.positions else None

    def with_note(self, line: str) -> "TrackState":
        """Return a copy with ``line`` appended to the audit trail."""

        notes = f"{self.notes}\n{line}" if self.notes else line
        return replace(self, notes=notes)


__all__ = ["TrackState"]
