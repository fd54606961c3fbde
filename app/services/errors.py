"""Errors raised by the tracking services."""

from __future__ import annotations


class TrackingError(Exception):
    """Base class for tracking-session failures reported to callers."""

    code = "tracking_error"


class InvalidTrackRequestError(TrackingError):
    code = "invalid_request"


class TrackNotFoundError(TrackingError):
    code = "track_not_found"

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track {track_id} not found")
        self.track_id = track_id


class PlaneNotFoundError(TrackingError):
    code = "plane_not_found"

    def __init__(self, plane_id: str) -> None:
        super().__init__(f"Plane {plane_id} not found")
        self.plane_id = plane_id


class NoFlightDataError(TrackingError):
    """The provider returned no flights for the tail number."""

    code = "no_flight_data"

    def __init__(self, tail_number: str) -> None:
        super().__init__(f"No flight data found for tail number {tail_number}")
        self.tail_number = tail_number


class FlightAlreadyTrackedError(TrackingError):
    """The selected upstream flight is bound to another track."""

    code = "flight_already_tracked"

    def __init__(self, flight_id: str, existing_track_id: str | None) -> None:
        super().__init__(f"Flight {flight_id} is already being tracked")
        self.flight_id = flight_id
        self.existing_track_id = existing_track_id


class TrackWriteConflictError(TrackingError):
    """Another pass wrote the track after it was loaded."""

    code = "track_write_conflict"

    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track {track_id} was modified concurrently")
        self.track_id = track_id


__all__ = [
    "FlightAlreadyTrackedError",
    "InvalidTrackRequestError",
    "NoFlightDataError",
    "PlaneNotFoundError",
    "TrackNotFoundError",
    "TrackWriteConflictError",
    "TrackingError",
]
