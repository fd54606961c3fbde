"""Operator CLI for tracking sessions.

Usage examples:
    python scripts/tracking_admin.py list --school-id school-1
    python scripts/tracking_admin.py refresh 3f1c...
    python scripts/tracking_admin.py stop 3f1c... --status Cancelled --yes
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from app.db import SessionLocal, init_db
from app.ingestors import FlightDataGateway, FlightDataUnavailable
from app.models.tracking import TrackListFilter, TrackResponse
from app.services import (
    FlightLogCorrelator,
    PlaneDirectory,
    SqlFlightLogRepository,
    TrackingError,
    TrackingSessionController,
    TrackReconciler,
    TrackStore,
)


def _get_session():
    init_db()
    return SessionLocal()


def _controller(session) -> TrackingSessionController:
    return TrackingSessionController(
        store=TrackStore(session),
        reconciler=TrackReconciler(FlightDataGateway()),
        correlator=FlightLogCorrelator(SqlFlightLogRepository(session)),
        planes=PlaneDirectory(session),
    )


def _print_track(track, as_json: bool) -> None:
    if as_json:
        print(TrackResponse.from_state(track).model_dump_json(indent=2))
        return
    print(
        f"{track.id}: tail={track.tail_number} status={track.status}"
        f" flight={track.flight_id or 'unbound'} positions={len(track.positions)}"
        f" end={track.end_time.isoformat() if track.end_time else 'open'}"
    )


def _fail(message: str) -> None:
    sys.stderr.write(f"{message}\n")
    raise SystemExit(1)


def cmd_list(args) -> None:
    session = _get_session()
    try:
        filters = TrackListFilter(
            school_id=args.school_id,
            tail_number=args.tail_number,
            active_only=not args.all,
            limit=args.limit,
        )
        page = asyncio.run(_controller(session).list_sessions(filters, refresh=args.refresh))

        if not page.tracks:
            print("No tracks found.")
        elif args.json:
            output = [
                TrackResponse.from_state(track).model_dump(mode="json") for track in page.tracks
            ]
            print(json.dumps(output, indent=2))
        else:
            for track in page.tracks:
                _print_track(track, as_json=False)
        for error in page.refresh_errors:
            sys.stderr.write(f"refresh failed for {error.track_id}: {error.message}\n")
    finally:
        session.close()


def cmd_refresh(args) -> None:
    session = _get_session()
    try:
        track = asyncio.run(_controller(session).update_session(args.track_id))
    except (TrackingError, FlightDataUnavailable) as exc:
        _fail(f"Refresh failed: {exc}")
    else:
        _print_track(track, args.json)
    finally:
        session.close()


def cmd_stop(args) -> None:
    session = _get_session()
    try:
        controller = _controller(session)
        try:
            track = controller.get_session(args.track_id)
        except TrackingError as exc:
            _fail(str(exc))

        if track.is_terminal:
            print(f"Track is already {track.status}.")
            return

        if not args.yes:
            confirmation = input(
                f"Stop track {track.id} for {track.tail_number} as {args.status}? [y/N]: "
            ).strip().lower()
            if confirmation not in {"y", "yes"}:
                print("Cancelled.")
                return

        try:
            track = controller.stop_session(args.track_id, args.status)
        except TrackingError as exc:
            _fail(str(exc))
        _print_track(track, args.json)
    finally:
        session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and manage tracking sessions")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List tracking sessions")
    list_cmd.add_argument("--school-id", help="Filter by school")
    list_cmd.add_argument("--tail-number", help="Filter by tail number")
    list_cmd.add_argument("--all", action="store_true", help="Include completed and cancelled tracks")
    list_cmd.add_argument("--limit", type=int, default=50, help="Maximum tracks to show")
    list_cmd.add_argument("--refresh", action="store_true", help="Refresh active tracks first")
    list_cmd.add_argument("--json", action="store_true", help="Return JSON output")
    list_cmd.set_defaults(func=cmd_list)

    refresh_cmd = sub.add_parser("refresh", help="Run one reconciliation pass for a track")
    refresh_cmd.add_argument("track_id", help="Track identifier")
    refresh_cmd.add_argument("--json", action="store_true", help="Return JSON output")
    refresh_cmd.set_defaults(func=cmd_refresh)

    stop_cmd = sub.add_parser("stop", help="Stop a tracking session")
    stop_cmd.add_argument("track_id", help="Track identifier")
    stop_cmd.add_argument(
        "--status", choices=["Completed", "Cancelled"], default="Completed", help="Final status"
    )
    stop_cmd.add_argument("--yes", action="store_true", help="Confirm without prompt")
    stop_cmd.add_argument("--json", action="store_true", help="Return JSON output")
    stop_cmd.set_defaults(func=cmd_stop)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
