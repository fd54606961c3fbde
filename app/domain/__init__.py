"""Domain vocabulary for flight tracking."""

from .status import (
    FlightLogStatus,
    TERMINAL_STATUSES,
    TrackStatus,
    is_terminal,
    normalize_status,
    to_flight_log_status,
)

__all__ = [
    "FlightLogStatus",
    "TERMINAL_STATUSES",
    "TrackStatus",
    "is_terminal",
    "normalize_status",
    "to_flight_log_status",
]
