"""Service layer for the flight-tracking backend."""

from .errors import (
    FlightAlreadyTrackedError,
    InvalidTrackRequestError,
    NoFlightDataError,
    PlaneNotFoundError,
    TrackingError,
    TrackNotFoundError,
    TrackWriteConflictError,
)
from .flight_log_correlator import FlightLogCorrelator, SqlFlightLogRepository
from .flight_selector import FlightSelection, select_flight
from .position_merger import MergeResult, merge_positions
from .reconciler import (
    PassKind,
    PassOutcome,
    ReconcileResult,
    TrackingPolicy,
    TrackReconciler,
    UpstreamSnapshot,
    reconcile,
)
from .session_controller import SessionPage, TrackingSessionController
from .track_store import PlaneDirectory, TrackStore

__all__ = [
    "FlightAlreadyTrackedError",
    "FlightLogCorrelator",
    "FlightSelection",
    "InvalidTrackRequestError",
    "MergeResult",
    "NoFlightDataError",
    "PassKind",
    "PassOutcome",
    "PlaneDirectory",
    "PlaneNotFoundError",
    "ReconcileResult",
    "SessionPage",
    "SqlFlightLogRepository",
    "TrackNotFoundError",
    "TrackReconciler",
    "TrackStore",
    "TrackWriteConflictError",
    "TrackingError",
    "TrackingPolicy",
    "TrackingSessionController",
    "UpstreamSnapshot",
    "merge_positions",
    "reconcile",
    "select_flight",
]
