"""Track status vocabulary and its mapping from upstream and to flight logs."""

from __future__ import annotations

from enum import Enum


class TrackStatus(str, Enum):
    """Canonical track statuses. Unmapped upstream strings are kept verbatim."""

    PREPARING = "Preparing"
    IN_FLIGHT = "In Flight"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class FlightLogStatus(str, Enum):
    """Status vocabulary of the flight-log collection."""

    SCHEDULED = "Scheduled"
    IN_FLIGHT = "In-Flight"
    COMPLETED = "Completed"
    CANCELED = "Canceled"


TERMINAL_STATUSES: frozenset[str] = frozenset(
    {TrackStatus.COMPLETED.value, TrackStatus.CANCELLED.value}
)

# Keys are lower-cased, whitespace-trimmed upstream status strings.
UPSTREAM_STATUS_MAP: dict[str, TrackStatus] = {
    "en route": TrackStatus.IN_FLIGHT,
    "en route / on time": TrackStatus.IN_FLIGHT,
    "en route / delayed": TrackStatus.IN_FLIGHT,
    "en route / early": TrackStatus.IN_FLIGHT,
    "in flight": TrackStatus.IN_FLIGHT,
    "cancelled": TrackStatus.CANCELLED,
    "canceled": TrackStatus.CANCELLED,
}

FLIGHT_LOG_STATUS_MAP: dict[str, FlightLogStatus] = {
    TrackStatus.PREPARING.value: FlightLogStatus.IN_FLIGHT,
    TrackStatus.IN_FLIGHT.value: FlightLogStatus.IN_FLIGHT,
    TrackStatus.COMPLETED.value: FlightLogStatus.COMPLETED,
    TrackStatus.CANCELLED.value: FlightLogStatus.CANCELED,
}


def normalize_status(raw_status: str | None) -> str | None:
    """Map an upstream status string onto the canonical vocabulary.

    Strings missing from ``UPSTREAM_STATUS_MAP`` pass through unchanged so
    provider-specific labels such as ``"Scheduled"`` or ``"Landed / Taxiing"``
    stay visible to operators.
    """

    if raw_status is None:
        return None
    mapped = UPSTREAM_STATUS_MAP.get(raw_status.strip().lower())
    return mapped.value if mapped is not None else raw_status


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


def to_flight_log_status(status: str | None) -> str:
    """Translate a track status into the flight-log status vocabulary."""

    mapped = FLIGHT_LOG_STATUS_MAP.get(status or "")
    return (mapped or FlightLogStatus.SCHEDULED).value


__all__ = [
    "FLIGHT_LOG_STATUS_MAP",
    "FlightLogStatus",
    "TERMINAL_STATUSES",
    "TrackStatus",
    "UPSTREAM_STATUS_MAP",
    "is_terminal",
    "normalize_status",
    "to_flight_log_status",
]
