from datetime import timedelta

import pytest
from conftest import NOW, make_flight, make_sample

from app.domain.track import TrackState
from app.ingestors import FlightDataUnavailable
from app.models.flights import PositionBatch
from app.services.flight_selector import FlightSelection
from app.services.reconciler import (
    PassKind,
    PassOutcome,
    TrackReconciler,
    UpstreamSnapshot,
    classify_pass,
    reconcile,
)


def _track(**overrides):
    values = {
        "id": "track-1",
        "tail_number": "N12345",
        "status": "Preparing",
        "start_time": NOW - timedelta(minutes=30),
        "created_at": NOW - timedelta(minutes=30),
        "updated_at": NOW - timedelta(minutes=1),
    }
    values.update(overrides)
    return TrackState(**values)


def test_classify_pass():
    assert classify_pass(_track()) is PassKind.BIND
    assert classify_pass(_track(flight_id="F-1", status="In Flight")) is PassKind.REFRESH
    assert classify_pass(_track(flight_id="F-1", actual_on=NOW)) is PassKind.REBIND
    assert classify_pass(_track(flight_id="F-1", status="Completed")) is PassKind.REBIND


def test_bind_waits_without_selectable_flight():
    track = _track(updated_at=NOW - timedelta(hours=2))
    placeholder = FlightSelection(flight=make_flight("F-0", landed=NOW), placeholder=True)

    for selection in (None, placeholder):
        result = reconcile(track, UpstreamSnapshot(kind=PassKind.BIND, selection=selection), NOW)

        assert result.outcome is PassOutcome.WAITING
        assert result.state == track
        assert not result.changed


def test_bind_copies_flight_and_positions():
    flight = make_flight("F-1", departure=NOW + timedelta(minutes=10), status="Scheduled")
    batch = PositionBatch(positions=[make_sample(NOW - timedelta(seconds=30))], actual_distance=3.0)
    snapshot = UpstreamSnapshot(
        kind=PassKind.BIND, selection=FlightSelection(flight=flight), positions=batch
    )

    result = reconcile(_track(), snapshot, NOW)

    assert result.outcome is PassOutcome.BOUND
    assert result.changed
    assert result.state.flight_id == "F-1"
    assert result.state.status == "Scheduled"
    assert result.state.flight_date == flight.scheduled_off
    assert result.state.origin.code == "KBOI"
    assert result.state.distance == 3.0
    assert len(result.appended) == 1
    assert result.state.notes.endswith("Found flight to track: F-1")


def test_refresh_appends_positions_and_normalizes_status():
    existing = (make_sample(NOW - timedelta(minutes=2)),)
    track = _track(flight_id="F-1", status="Scheduled", positions=existing)
    flight = make_flight("F-1", status="En Route / On Time", actual_off=NOW - timedelta(minutes=20))
    batch = PositionBatch(
        positions=[existing[0]] + [make_sample(NOW - timedelta(seconds=s)) for s in (90, 60, 30)],
        actual_distance=18.2,
    )

    result = reconcile(
        track, UpstreamSnapshot(kind=PassKind.REFRESH, flight=flight, positions=batch), NOW
    )

    assert result.outcome is PassOutcome.REFRESHED
    assert result.state.status == "In Flight"
    assert result.state.actual_off == flight.actual_off
    assert len(result.appended) == 3
    assert len(result.state.positions) == 4
    assert result.state.distance == 18.2
    assert result.state.end_time is None


def test_refresh_keeps_known_times_when_upstream_omits_them():
    off = NOW - timedelta(minutes=40)
    track = _track(flight_id="F-1", status="In Flight", actual_off=off)
    flight = make_flight("F-1", status="En Route")

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REFRESH, flight=flight), NOW)

    assert result.state.actual_off == off


def test_landing_completes_track():
    track = _track(flight_id="F-1", status="In Flight", actual_off=NOW - timedelta(minutes=50))
    flight = make_flight(
        "F-1",
        status="Landed / Taxiing",
        actual_off=NOW - timedelta(minutes=50),
        landed=NOW - timedelta(minutes=1),
    )

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REFRESH, flight=flight), NOW)

    assert result.outcome is PassOutcome.LANDED
    assert result.state.status == "Completed"
    assert result.state.end_time == NOW
    assert result.state.duration == 49


def test_stale_track_without_fresh_data_is_closed_for_inactivity():
    track = _track(flight_id="F-1", status="In Flight", updated_at=NOW - timedelta(minutes=6))

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REFRESH), NOW)

    assert result.outcome is PassOutcome.INACTIVE
    assert result.state.status == "Completed"
    assert result.state.end_time == NOW
    assert "due to inactivity (6.0 minutes)" in result.state.notes


def test_latest_sample_is_the_inactivity_reference():
    track = _track(
        flight_id="F-1",
        status="In Flight",
        updated_at=NOW - timedelta(seconds=10),
        positions=(make_sample(NOW - timedelta(minutes=8)),),
    )

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REFRESH), NOW)

    assert result.outcome is PassOutcome.INACTIVE


def test_recent_track_stays_open():
    track = _track(flight_id="F-1", status="In Flight", updated_at=NOW - timedelta(minutes=4))

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REFRESH), NOW)

    assert result.outcome is PassOutcome.REFRESHED
    assert not result.changed


def test_rebind_moves_to_next_flight_and_resets_history():
    track = _track(
        flight_id="F-1",
        status="Completed",
        end_time=NOW - timedelta(minutes=30),
        actual_on=NOW - timedelta(minutes=30),
        positions=(make_sample(NOW - timedelta(minutes=31)),),
    )
    next_flight = make_flight("F-2", departure=NOW + timedelta(minutes=15))
    batch = PositionBatch(positions=[make_sample(NOW - timedelta(seconds=5))])
    snapshot = UpstreamSnapshot(
        kind=PassKind.REBIND, selection=FlightSelection(flight=next_flight), positions=batch
    )

    result = reconcile(track, snapshot, NOW)

    assert result.outcome is PassOutcome.REBOUND
    assert result.history_reset
    assert result.state.flight_id == "F-2"
    assert result.state.actual_on is None
    assert result.state.end_time is None
    assert [s.timestamp for s in result.state.positions] == [NOW - timedelta(seconds=5)]
    assert result.state.notes.endswith("Found new flight: F-2")


def test_terminal_track_without_replacement_is_unchanged():
    track = _track(flight_id="F-1", status="Completed", end_time=NOW - timedelta(hours=1))

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REBIND), NOW)

    assert result.outcome is PassOutcome.TERMINAL
    assert not result.changed


def test_landed_track_without_replacement_is_completed():
    track = _track(flight_id="F-1", status="Landed / Taxiing", actual_on=NOW - timedelta(minutes=2))

    result = reconcile(track, UpstreamSnapshot(kind=PassKind.REBIND), NOW)

    assert result.outcome is PassOutcome.LANDED
    assert result.state.status == "Completed"
    assert result.state.end_time == NOW


@pytest.mark.anyio
async def test_run_pass_binds_and_excludes_flights_bound_elsewhere(gateway, policy):
    gateway.flights["N12345"] = [
        make_flight("F-1", departure=NOW.replace(hour=14)),
        make_flight("F-2", departure=NOW.replace(hour=16)),
    ]
    reconciler = TrackReconciler(gateway, policy)

    result = await reconciler.run_pass(_track(), NOW, bound_elsewhere=lambda ids: {"F-1"})

    assert result.outcome is PassOutcome.BOUND
    assert result.state.flight_id == "F-2"
    assert ("list_positions", "F-2") in gateway.calls


@pytest.mark.anyio
async def test_run_pass_refresh_without_record_skips_positions(gateway, policy):
    reconciler = TrackReconciler(gateway, policy)
    track = _track(flight_id="F-9", status="In Flight")

    result = await reconciler.run_pass(track, NOW)

    assert result.outcome is PassOutcome.REFRESHED
    assert ("list_positions", "F-9") not in gateway.calls


@pytest.mark.anyio
async def test_gateway_failure_raises_before_reconciling(gateway, policy):
    gateway.failing.add("F-1")
    reconciler = TrackReconciler(gateway, policy)

    with pytest.raises(FlightDataUnavailable):
        await reconciler.run_pass(_track(flight_id="F-1", status="In Flight"), NOW)
