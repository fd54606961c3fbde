"""Pydantic models for the flight-tracking backend."""

from .flights import (
    AirportDescriptor,
    AirportDetail,
    FlightEndpoint,
    FlightRecord,
    PositionBatch,
    PositionSample,
)
from .tracking import (
    TrackCreateRequest,
    TrackListFilter,
    TrackListResponse,
    TrackResponse,
    TrackStopRequest,
)

__all__ = [
    "AirportDescriptor",
    "AirportDetail",
    "FlightEndpoint",
    "FlightRecord",
    "PositionBatch",
    "PositionSample",
    "TrackCreateRequest",
    "TrackListFilter",
    "TrackListResponse",
    "TrackResponse",
    "TrackStopRequest",
]
