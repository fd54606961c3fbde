"""Lifecycle reconciliation of tracking sessions against upstream flight data.

A pass has two halves. :class:`TrackReconciler` performs all upstream I/O and
collects it into an :class:`UpstreamSnapshot`; any gateway failure raises
before anything is reconciled. :func:`reconcile` is then a pure function of
``(track, snapshot, now, policy)`` that returns the next track state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
import logging
from typing import Callable, Collection, Optional, Sequence
from zoneinfo import ZoneInfo

from app.config import settings
from app.domain.status import TrackStatus, normalize_status
from app.domain.track import TrackState
from app.ingestors import FlightDataGateway
from app.models.flights import (
    AirportDescriptor,
    AirportDetail,
    FlightRecord,
    PositionBatch,
    PositionSample,
)
from app.services.flight_selector import FlightSelection, select_flight
from app.services.position_merger import merge_positions

logger = logging.getLogger("flighttrack.reconciler")

BoundElsewhere = Callable[[Sequence[str]], Collection[str]]


@dataclass(frozen=True)
class TrackingPolicy:
    """Time thresholds applied by the reconciler and the selector."""

    inactivity_threshold: timedelta = timedelta(minutes=5)
    selection_timezone: tzinfo = timezone.utc

    @classmethod
    def from_settings(cls) -> "TrackingPolicy":
        return cls(
            inactivity_threshold=timedelta(minutes=settings.track_inactivity_minutes),
            selection_timezone=ZoneInfo(settings.track_selection_timezone),
        )


class PassKind(str, Enum):
    BIND = "bind"
    REBIND = "rebind"
    REFRESH = "refresh"


class PassOutcome(str, Enum):
    WAITING = "waiting"
    BOUND = "bound"
    REBOUND = "rebound"
    TERMINAL = "terminal"
    LANDED = "landed"
    REFRESHED = "refreshed"
    INACTIVE = "inactive"


def classify_pass(track: TrackState) -> PassKind:
    if track.flight_id is None:
        return PassKind.BIND
    if track.actual_on is not None or track.is_terminal:
        return PassKind.REBIND
    return PassKind.REFRESH


@dataclass(frozen=True)
class UpstreamSnapshot:
    """Everything fetched from the provider for one pass."""

    kind: PassKind
    selection: Optional[FlightSelection] = None
    flight: Optional[FlightRecord] = None
    positions: Optional[PositionBatch] = None
    origin_detail: Optional[AirportDetail] = None
    destination_detail: Optional[AirportDetail] = None


@dataclass(frozen=True)
class ReconcileResult:
    state: TrackState
    outcome: PassOutcome
    appended: tuple[PositionSample, ...] = ()
    history_reset: bool = False
    changed: bool = False


def _stamp_end_time(state: TrackState, now: datetime) -> TrackState:
    if state.is_terminal and state.end_time is None:
        return replace(state, end_time=now)
    return state


def bind_flight(
    track: TrackState,
    flight: FlightRecord,
    *,
    positions: Optional[PositionBatch] = None,
    origin_detail: Optional[AirportDetail] = None,
    destination_detail: Optional[AirportDetail] = None,
) -> tuple[TrackState, tuple[PositionSample, ...]]:
    """Copy a flight record onto ``track`` with a fresh position history."""

    state = replace(
        track,
        flight_id=flight.flight_id,
        status=normalize_status(flight.status) or TrackStatus.PREPARING.value,
        flight_date=flight.best_departure,
        scheduled_off=flight.scheduled_off,
        estimated_off=flight.estimated_off,
        actual_off=flight.actual_off,
        scheduled_on=flight.scheduled_on,
        estimated_on=flight.estimated_on,
        actual_on=flight.actual_on,
        origin=(
            AirportDescriptor.from_upstream(flight.origin, origin_detail)
            if flight.origin
            else None
        ),
        destination=(
            AirportDescriptor.from_upstream(flight.destination, destination_detail)
            if flight.destination
            else None
        ),
        route=flight.route,
        flight_type=flight.flight_type,
        distance=flight.route_distance,
        duration=None,
        end_time=None,
        positions=(),
    )
    merged = merge_positions(
        (),
        positions or PositionBatch(),
        actual_off=state.actual_off,
        actual_on=state.actual_on,
        distance=state.distance,
    )
    state = replace(
        state,
        positions=merged.positions,
        distance=merged.distance,
        duration=merged.duration,
    )
    return state, merged.appended


def _apply_flight_update(state: TrackState, flight: FlightRecord) -> TrackState:
    return replace(
        state,
        status=normalize_status(flight.status) or state.status,
        actual_off=flight.actual_off or state.actual_off,
        estimated_off=flight.estimated_off or state.estimated_off,
        scheduled_off=flight.scheduled_off or state.scheduled_off,
        actual_on=flight.actual_on or state.actual_on,
        estimated_on=flight.estimated_on or state.estimated_on,
        scheduled_on=flight.scheduled_on or state.scheduled_on,
    )


def _inactivity_reference(track: TrackState) -> Optional[datetime]:
    latest = track.latest_position
    if latest is not None:
        return latest.timestamp
    return track.updated_at or track.created_at


def _result(
    original: TrackState,
    state: TrackState,
    outcome: PassOutcome,
    now: datetime,
    appended: tuple[PositionSample, ...] = (),
    history_reset: bool = False,
) -> ReconcileResult:
    state = _stamp_end_time(state, now)
    return ReconcileResult(
        state=state,
        outcome=outcome,
        appended=appended,
        history_reset=history_reset,
        changed=state != original,
    )


def reconcile(
    track: TrackState,
    snapshot: UpstreamSnapshot,
    now: datetime,
    policy: TrackingPolicy = TrackingPolicy(),
) -> ReconcileResult:
    """Compute the next state of ``track`` from one upstream snapshot."""

    if snapshot.kind is PassKind.BIND:
        selection = snapshot.selection
        if selection is None or selection.placeholder:
            return ReconcileResult(state=track, outcome=PassOutcome.WAITING)
        state, appended = bind_flight(
            track,
            selection.flight,
            positions=snapshot.positions,
            origin_detail=snapshot.origin_detail,
            destination_detail=snapshot.destination_detail,
        )
        state = state.with_note(f"Found flight to track: {selection.flight.flight_id}")
        return _result(track, state, PassOutcome.BOUND, now, appended)

    if snapshot.kind is PassKind.REBIND:
        selection = snapshot.selection
        if (
            selection is None
            or selection.placeholder
            or selection.flight.flight_id == track.flight_id
        ):
            if track.is_terminal:
                return ReconcileResult(state=track, outcome=PassOutcome.TERMINAL)
            state = replace(track, status=TrackStatus.COMPLETED.value)
            return _result(track, state, PassOutcome.LANDED, now)

        state, appended = bind_flight(
            track,
            selection.flight,
            positions=snapshot.positions,
            origin_detail=snapshot.origin_detail,
            destination_detail=snapshot.destination_detail,
        )
        state = state.with_note(f"Found new flight: {selection.flight.flight_id}")
        return _result(
            track, state, PassOutcome.REBOUND, now, appended, history_reset=True
        )

    state = track
    if snapshot.flight is not None:
        state = _apply_flight_update(state, snapshot.flight)

    merged = merge_positions(
        state.positions,
        snapshot.positions or PositionBatch(),
        actual_off=state.actual_off,
        actual_on=state.actual_on,
        distance=state.distance,
        duration=state.duration,
    )
    state = replace(
        state,
        positions=merged.positions,
        distance=merged.distance,
        duration=merged.duration,
    )

    if snapshot.flight is not None and snapshot.flight.actual_on is not None:
        state = replace(state, status=TrackStatus.COMPLETED.value, end_time=now)
        return _result(track, state, PassOutcome.LANDED, now, merged.appended)

    if not state.is_terminal:
        reference = _inactivity_reference(state)
        if reference is not None and now - reference > policy.inactivity_threshold:
            idle_minutes = (now - reference).total_seconds() / 60
            state = replace(
                state, status=TrackStatus.COMPLETED.value, end_time=now
            ).with_note(
                "Track automatically marked as completed due to inactivity "
                f"({idle_minutes:.1f} minutes)"
            )
            return _result(track, state, PassOutcome.INACTIVE, now, merged.appended)

    return _result(track, state, PassOutcome.REFRESHED, now, merged.appended)


class TrackReconciler:
    """Run one reconciliation pass for a track against the flight gateway."""

    def __init__(
        self,
        gateway: FlightDataGateway,
        policy: Optional[TrackingPolicy] = None,
    ) -> None:
        self.gateway = gateway
        self.policy = policy or TrackingPolicy.from_settings()

    async def select(
        self,
        tail_number: str,
        now: datetime,
        *,
        exclude_flight_ids: Collection[str] = (),
        bound_elsewhere: Optional[BoundElsewhere] = None,
    ) -> Optional[FlightSelection]:
        flights = await self.gateway.list_flights(tail_number)
        excluded = set(exclude_flight_ids)
        if bound_elsewhere is not None and flights:
            excluded.update(bound_elsewhere([flight.flight_id for flight in flights]))
        return select_flight(
            flights,
            now,
            exclude_flight_ids=excluded,
            tz=self.policy.selection_timezone,
        )

    async def fetch_airports(
        self, flight: FlightRecord
    ) -> tuple[Optional[AirportDetail], Optional[AirportDetail]]:
        """Best-effort airport enrichment; failures leave the detail unset."""

        origin_detail = None
        destination_detail = None
        if flight.origin and flight.origin.code:
            origin_detail = await self.gateway.get_airport(flight.origin.code)
        if flight.destination and flight.destination.code:
            destination_detail = await self.gateway.get_airport(flight.destination.code)
        return origin_detail, destination_detail

    async def fetch_snapshot(
        self,
        track: TrackState,
        now: datetime,
        *,
        bound_elsewhere: Optional[BoundElsewhere] = None,
    ) -> UpstreamSnapshot:
        kind = classify_pass(track)

        if kind is PassKind.REFRESH:
            flight = await self.gateway.get_flight(track.flight_id)
            positions = None
            if flight is not None:
                positions = await self.gateway.list_positions(track.flight_id)
            return UpstreamSnapshot(kind=kind, flight=flight, positions=positions)

        exclude = (track.flight_id,) if track.flight_id else ()
        selection = await self.select(
            track.tail_number,
            now,
            exclude_flight_ids=exclude,
            bound_elsewhere=bound_elsewhere,
        )
        if selection is None or selection.placeholder:
            return UpstreamSnapshot(kind=kind, selection=selection)

        positions = await self.gateway.list_positions(selection.flight.flight_id)
        origin_detail, destination_detail = await self.fetch_airports(selection.flight)
        return UpstreamSnapshot(
            kind=kind,
            selection=selection,
            positions=positions,
            origin_detail=origin_detail,
            destination_detail=destination_detail,
        )

    async def run_pass(
        self,
        track: TrackState,
        now: Optional[datetime] = None,
        *,
        bound_elsewhere: Optional[BoundElsewhere] = None,
    ) -> ReconcileResult:
        now = now or datetime.now(timezone.utc)
        snapshot = await self.fetch_snapshot(track, now, bound_elsewhere=bound_elsewhere)
        result = reconcile(track, snapshot, now, self.policy)
        logger.info(
            "Reconciled track %s (%s): %s -> %s [%s], %s new positions",
            track.id,
            snapshot.kind.value,
            track.status,
            result.state.status,
            result.outcome.value,
            len(result.appended),
        )
        return result


__all__ = [
    "PassKind",
    "PassOutcome",
    "ReconcileResult",
    "TrackReconciler",
    "TrackingPolicy",
    "UpstreamSnapshot",
    "bind_flight",
    "classify_pass",
    "reconcile",
]
