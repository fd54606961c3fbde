"""Entry points that start, refresh, list and stop tracking sessions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.domain.status import TrackStatus
from app.domain.track import TrackState
from app.ingestors import FlightDataUnavailable
from app.models.flights import PositionBatch
from app.models.tracking import RefreshError, TrackCreateRequest, TrackListFilter
from app.services.errors import (
    FlightAlreadyTrackedError,
    InvalidTrackRequestError,
    NoFlightDataError,
    TrackingError,
)
from app.services.flight_log_correlator import FlightLogCorrelator
from app.services.reconciler import (
    PassOutcome,
    ReconcileResult,
    TrackReconciler,
    bind_flight,
)
from app.services.track_store import PlaneDirectory, TrackStore

logger = logging.getLogger("flighttrack.session_controller")

PREPARING_NOTE = "No active flights found. Preparing for next flight."


def _utc(value: Optional[datetime], default: datetime) -> datetime:
    if value is None:
        return default
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class SessionPage:
    tracks: list[TrackState]
    total: int
    refresh_errors: list[RefreshError] = field(default_factory=list)


class TrackingSessionController:
    """Coordinate the store, the reconciler and the flight-log correlator."""

    def __init__(
        self,
        store: TrackStore,
        reconciler: TrackReconciler,
        correlator: FlightLogCorrelator,
        planes: PlaneDirectory,
        *,
        concurrency: Optional[int] = None,
    ) -> None:
        self.store = store
        self.reconciler = reconciler
        self.correlator = correlator
        self.planes = planes
        self.concurrency = max(1, concurrency or settings.bulk_refresh_concurrency)

    def _resolve_tail_number(self, request: TrackCreateRequest) -> str:
        tail_number = (request.tail_number or "").strip()
        if not tail_number and request.plane_id:
            tail_number = self.planes.tail_number_for(request.plane_id)
            if not tail_number:
                raise InvalidTrackRequestError(
                    f"Plane {request.plane_id} has no tail number"
                )
        if not tail_number or not tail_number.strip():
            raise InvalidTrackRequestError("A tail number is required")
        return tail_number.strip().upper()

    async def start_session(
        self, request: TrackCreateRequest, now: Optional[datetime] = None
    ) -> TrackState:
        """Open a session for an aircraft and bind it to its current flight."""

        now = now or datetime.now(timezone.utc)
        tail_number = self._resolve_tail_number(request)
        track = TrackState(
            id=str(uuid4()),
            tail_number=tail_number,
            status=TrackStatus.PREPARING.value,
            start_time=_utc(request.start_time, now),
            school_id=request.school_id,
            plane_id=request.plane_id,
            instructor_id=request.instructor_id,
            student_id=request.student_id,
        )

        selection = await self.reconciler.select(tail_number, now)
        if selection is None:
            raise NoFlightDataError(tail_number)

        if selection.placeholder:
            logger.info("No active flight for %s; creating a preparing track", tail_number)
            created = self.store.create(track.with_note(PREPARING_NOTE), now)
            self.correlator.correlate(created)
            return created

        flight = selection.flight
        existing = self.store.find_by_flight_id(flight.flight_id)
        if existing is not None:
            raise FlightAlreadyTrackedError(flight.flight_id, existing.id)

        origin_detail, destination_detail = await self.reconciler.fetch_airports(flight)
        try:
            positions = await self.reconciler.gateway.list_positions(flight.flight_id)
        except FlightDataUnavailable as exc:
            logger.warning("Starting %s without positions: %s", flight.flight_id, exc)
            positions = PositionBatch()

        state, _ = bind_flight(
            track,
            flight,
            positions=positions,
            origin_detail=origin_detail,
            destination_detail=destination_detail,
        )
        created = self.store.create(
            state.with_note(f"Found flight to track: {flight.flight_id}"), now
        )
        logger.info(
            "Started tracking %s on flight %s (%s)",
            tail_number,
            flight.flight_id,
            created.status,
        )
        self.correlator.correlate(created)
        return created

    async def _refresh(self, track: TrackState, now: datetime) -> TrackState:
        result = await self.reconciler.run_pass(
            track,
            now,
            bound_elsewhere=lambda ids: self.store.bound_flight_ids(ids, track.id),
        )
        saved = self.store.save(result, now)
        self.correlator.correlate(saved)
        return saved

    async def update_session(
        self, track_id: str, now: Optional[datetime] = None
    ) -> TrackState:
        """Run one reconciliation pass for a single track and persist it."""

        now = now or datetime.now(timezone.utc)
        track = self.store.get(track_id)
        return await self._refresh(track, now)

    async def list_sessions(
        self,
        filters: TrackListFilter,
        refresh: bool = True,
        now: Optional[datetime] = None,
    ) -> SessionPage:
        """List a page of tracks, refreshing the non-terminal ones first.

        Each track on the page gets at most one pass, with up to
        ``concurrency`` passes in flight. A failing track is reported in
        ``refresh_errors`` and does not stop the others.
        """

        tracks, total = self.store.list(filters)
        if not refresh:
            return SessionPage(tracks=tracks, total=total)

        now = now or datetime.now(timezone.utc)
        semaphore = asyncio.Semaphore(self.concurrency)
        errors: list[RefreshError] = []

        async def refresh_one(track: TrackState) -> None:
            async with semaphore:
                try:
                    await self._refresh(track, now)
                except (TrackingError, FlightDataUnavailable) as exc:
                    code = getattr(exc, "code", "upstream_unavailable")
                    logger.warning("Refresh of track %s failed: %s", track.id, exc)
                    errors.append(RefreshError(track_id=track.id, code=code, message=str(exc)))
                except SQLAlchemyError as exc:
                    self.store.db.rollback()
                    logger.error("Refresh of track %s failed to persist: %s", track.id, exc)
                    errors.append(
                        RefreshError(track_id=track.id, code="storage_error", message=str(exc))
                    )
                except Exception as exc:  # one track must not abort the page
                    self.store.db.rollback()
                    logger.exception("Unexpected failure refreshing track %s", track.id)
                    errors.append(
                        RefreshError(track_id=track.id, code="refresh_failed", message=str(exc))
                    )

        active = [track for track in tracks if not track.is_terminal]
        await asyncio.gather(*(refresh_one(track) for track in active))

        if active:
            tracks, total = self.store.list(filters)
        errors.sort(key=lambda error: error.track_id)
        return SessionPage(tracks=tracks, total=total, refresh_errors=errors)

    def get_session(self, track_id: str) -> TrackState:
        return self.store.get(track_id)

    def stop_session(
        self,
        track_id: str,
        status: str = TrackStatus.COMPLETED.value,
        now: Optional[datetime] = None,
    ) -> TrackState:
        """End a session manually; terminal sessions are returned unchanged."""

        if status not in (TrackStatus.COMPLETED.value, TrackStatus.CANCELLED.value):
            raise InvalidTrackRequestError(f"Cannot stop a track with status {status}")

        now = now or datetime.now(timezone.utc)
        track = self.store.get(track_id)
        if track.is_terminal:
            return track

        state = replace(track, status=status, end_time=now).with_note(
            f"Tracking stopped at {now.isoformat()} with status: {status}"
        )
        saved = self.store.save(
            ReconcileResult(state=state, outcome=PassOutcome.TERMINAL, changed=True), now
        )
        logger.info("Stopped track %s with status %s", track_id, status)
        self.correlator.correlate(saved)
        return saved


__all__ = ["PREPARING_NOTE", "SessionPage", "TrackingSessionController"]
