"""Persistence of tracking sessions and their position history."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Iterable, Optional
from uuid import uuid4

from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app import db_models
from app.domain.status import TERMINAL_STATUSES
from app.domain.track import TrackState
from app.models.flights import AirportDescriptor, PositionSample
from app.models.tracking import TrackListFilter
from app.services.errors import (
    FlightAlreadyTrackedError,
    PlaneNotFoundError,
    TrackNotFoundError,
    TrackWriteConflictError,
)
from app.services.reconciler import ReconcileResult

logger = logging.getLogger("flighttrack.track_store")

_SAMPLE_FIELDS = (
    "timestamp",
    "latitude",
    "longitude",
    "altitude",
    "ground_speed",
    "heading",
    "vertical_speed",
    "fuel_remaining",
    "engine_rpm",
    "outside_air_temp",
    "wind_speed",
    "wind_direction",
)

_SCALAR_FIELDS = (
    "flight_id",
    "tail_number",
    "status",
    "school_id",
    "plane_id",
    "instructor_id",
    "student_id",
    "start_time",
    "end_time",
    "flight_date",
    "scheduled_off",
    "estimated_off",
    "actual_off",
    "scheduled_on",
    "estimated_on",
    "actual_on",
    "route",
    "flight_type",
    "distance",
    "duration",
    "notes",
)

_DATETIME_FIELDS = {
    "start_time",
    "end_time",
    "flight_date",
    "scheduled_off",
    "estimated_off",
    "actual_off",
    "scheduled_on",
    "estimated_on",
    "actual_on",
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; all stored timestamps are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _descriptor(raw: Optional[dict]) -> Optional[AirportDescriptor]:
    return AirportDescriptor.model_validate(raw) if raw else None


def _position_row(sample: PositionSample) -> db_models.TrackPosition:
    return db_models.TrackPosition(**{name: getattr(sample, name) for name in _SAMPLE_FIELDS})


def _sample(row: db_models.TrackPosition) -> PositionSample:
    values = {name: getattr(row, name) for name in _SAMPLE_FIELDS}
    values["timestamp"] = _as_utc(row.timestamp)
    return PositionSample(**values)


def to_state(row: db_models.Track) -> TrackState:
    """Build an immutable state from an ORM row."""

    values = {
        name: _as_utc(getattr(row, name)) if name in _DATETIME_FIELDS else getattr(row, name)
        for name in _SCALAR_FIELDS
    }
    return TrackState(
        id=row.id,
        version=row.version,
        origin=_descriptor(row.origin),
        destination=_descriptor(row.destination),
        positions=tuple(_sample(position) for position in row.positions),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
        **values,
    )


def _apply_scalars(row: db_models.Track, state: TrackState) -> None:
    for name in _SCALAR_FIELDS:
        setattr(row, name, getattr(state, name))
    row.origin = state.origin.model_dump() if state.origin else None
    row.destination = state.destination.model_dump() if state.destination else None


class TrackStore:
    """Read and write tracks through a SQLAlchemy session.

    Writes are guarded twice: the unique constraint on ``flight_id`` rejects a
    second binding of the same upstream flight, and the row ``version`` rejects
    a save based on a stale read.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, track_id: str) -> TrackState:
        row = self.db.get(db_models.Track, track_id)
        if row is None:
            raise TrackNotFoundError(track_id)
        return to_state(row)

    def find_by_flight_id(self, flight_id: str) -> Optional[TrackState]:
        row = (
            self.db.query(db_models.Track)
            .filter(db_models.Track.flight_id == flight_id)
            .first()
        )
        return to_state(row) if row else None

    def bound_flight_ids(
        self, flight_ids: Iterable[str], exclude_track_id: Optional[str] = None
    ) -> set[str]:
        """Return which of ``flight_ids`` are already bound to a track."""

        ids = list(flight_ids)
        if not ids:
            return set()
        query = self.db.query(db_models.Track.flight_id).filter(
            db_models.Track.flight_id.in_(ids)
        )
        if exclude_track_id is not None:
            query = query.filter(db_models.Track.id != exclude_track_id)
        return {flight_id for (flight_id,) in query.all()}

    def create(self, state: TrackState, now: Optional[datetime] = None) -> TrackState:
        """Insert a new track with its initial position history."""

        now = now or datetime.now(timezone.utc)
        row = db_models.Track(id=state.id or str(uuid4()), created_at=now, updated_at=now)
        _apply_scalars(row, state)
        row.positions = [_position_row(sample) for sample in state.positions]
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if state.flight_id is None:
                raise
            raise self._binding_conflict(state.flight_id) from exc
        self.db.refresh(row)
        logger.info("Created track %s for %s (%s)", row.id, row.tail_number, row.status)
        return to_state(row)

    def save(self, result: ReconcileResult, now: Optional[datetime] = None) -> TrackState:
        """Persist a reconciled state if it differs from what was loaded."""

        state = result.state
        if not result.changed:
            return state

        now = now or datetime.now(timezone.utc)
        row = self.db.get(db_models.Track, state.id)
        if row is None:
            raise TrackNotFoundError(state.id)
        if row.version != state.version:
            raise TrackWriteConflictError(state.id)

        try:
            _apply_scalars(row, state)
            row.updated_at = now
            if result.history_reset:
                row.positions.clear()
            self.db.flush()
            for sample in result.appended:
                row.positions.append(_position_row(sample))
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise TrackWriteConflictError(state.id) from exc
        except IntegrityError as exc:
            self.db.rollback()
            if state.flight_id and self.bound_flight_ids([state.flight_id], state.id):
                raise self._binding_conflict(state.flight_id) from exc
            raise TrackWriteConflictError(state.id) from exc

        self.db.refresh(row)
        return to_state(row)

    def list(self, filters: TrackListFilter) -> tuple[list[TrackState], int]:
        """Return one page of tracks matching ``filters`` and the total count."""

        Track = db_models.Track
        query = self.db.query(Track)

        for name in ("school_id", "plane_id", "instructor_id", "student_id"):
            value = getattr(filters, name)
            if value:
                query = query.filter(getattr(Track, name) == value)
        if filters.tail_number:
            query = query.filter(Track.tail_number == filters.tail_number.upper())

        if filters.status:
            query = query.filter(Track.status == filters.status)
        elif filters.active_only:
            query = query.filter(Track.status.notin_(sorted(TERMINAL_STATUSES)))

        if filters.start_date:
            query = query.filter(Track.flight_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Track.flight_date <= filters.end_date)

        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Track.tail_number).like(pattern),
                    func.lower(cast(Track.origin, String)).like(pattern),
                    func.lower(cast(Track.destination, String)).like(pattern),
                    func.lower(Track.notes).like(pattern),
                )
            )

        total = query.count()
        column = getattr(Track, filters.sort_by)
        ordering = column.asc() if filters.sort_order == "asc" else column.desc()
        rows = (
            query.order_by(ordering, Track.id)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
            .all()
        )
        return [to_state(row) for row in rows], total

    def _binding_conflict(self, flight_id: Optional[str]) -> FlightAlreadyTrackedError:
        existing = self.find_by_flight_id(flight_id) if flight_id else None
        return FlightAlreadyTrackedError(
            flight_id or "", existing.id if existing else None
        )


class PlaneDirectory:
    """Resolve tail numbers from plane references."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def tail_number_for(self, plane_id: str) -> Optional[str]:
        plane = self.db.get(db_models.Plane, plane_id)
        if plane is None:
            raise PlaneNotFoundError(plane_id)
        return plane.tail_number


__all__ = ["PlaneDirectory", "TrackStore", "to_state"]
