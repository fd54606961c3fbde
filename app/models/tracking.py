"""Request and response models for tracking sessions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.flights import AirportDescriptor, PositionSample

if TYPE_CHECKING:  # pragma: no cover - typing only
    from app.domain.track import TrackState

SortField = Literal["created_at", "updated_at", "flight_date", "start_time", "tail_number", "status"]


class TrackCreateRequest(BaseModel):
    """Payload to open a tracking session for an aircraft."""

    school_id: str = Field(..., min_length=1, description="School that owns the session")
    tail_number: Optional[str] = Field(
        default=None, min_length=1, max_length=16, description="Aircraft registration"
    )
    plane_id: Optional[str] = Field(
        default=None, min_length=1, description="Plane used to resolve the tail number"
    )
    instructor_id: Optional[str] = Field(default=None, min_length=1)
    student_id: Optional[str] = Field(default=None, min_length=1)
    start_time: Optional[datetime] = Field(
        default=None, description="Session start; defaults to the time of the request"
    )
    polling_interval: int = Field(
        default=30,
        ge=10,
        description="Advisory polling interval in seconds for callers refreshing the session",
    )

    @model_validator(mode="after")
    def _require_aircraft(self) -> "TrackCreateRequest":
        if not self.tail_number and not self.plane_id:
            raise ValueError("Either tail_number or plane_id is required")
        return self


class TrackStopRequest(BaseModel):
    """Payload to end a tracking session manually."""

    status: Literal["Completed", "Cancelled"] = Field(
        default="Completed", description="Terminal status to record"
    )


class TrackListFilter(BaseModel):
    """Filter, sort and pagination options for listing sessions."""

    tail_number: Optional[str] = None
    school_id: Optional[str] = None
    plane_id: Optional[str] = None
    instructor_id: Optional[str] = None
    student_id: Optional[str] = None
    status: Optional[str] = Field(
        default=None, description="Exact status; overrides active_only"
    )
    active_only: bool = Field(default=True, description="Only non-terminal sessions")
    start_date: Optional[datetime] = Field(
        default=None, description="Earliest flight date (inclusive)"
    )
    end_date: Optional[datetime] = Field(
        default=None, description="Latest flight date (inclusive)"
    )
    search: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Case-insensitive match on tail number, airports and notes",
    )
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=200)
    sort_by: SortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _check_range(self) -> "TrackListFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class TrackResponse(BaseModel):
    """Tracking session as returned by the API."""

    id: str
    flight_id: Optional[str] = Field(default=None, description="Upstream flight identifier")
    tail_number: str
    status: str
    school_id: Optional[str] = None
    plane_id: Optional[str] = None
    instructor_id: Optional[str] = None
    student_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    flight_date: Optional[datetime] = None
    scheduled_off: Optional[datetime] = None
    estimated_off: Optional[datetime] = None
    actual_off: Optional[datetime] = None
    scheduled_on: Optional[datetime] = None
    estimated_on: Optional[datetime] = None
    actual_on: Optional[datetime] = None
    origin: Optional[AirportDescriptor] = None
    destination: Optional[AirportDescriptor] = None
    route: Optional[str] = None
    flight_type: Optional[str] = None
    distance: Optional[float] = Field(default=None, description="Distance in nautical miles")
    duration: Optional[int] = Field(default=None, description="Flight duration in minutes")
    positions: list[PositionSample] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: TrackState) -> "TrackResponse":
        return cls(
            id=state.id,
            flight_id=state.flight_id,
            tail_number=state.tail_number,
            status=state.status,
            school_id=state.school_id,
            plane_id=state.plane_id,
            instructor_id=state.instructor_id,
            student_id=state.student_id,
            start_time=state.start_time,
            end_time=state.end_time,
            flight_date=state.flight_date,
            scheduled_off=state.scheduled_off,
            estimated_off=state.estimated_off,
            actual_off=state.actual_off,
            scheduled_on=state.scheduled_on,
            estimated_on=state.estimated_on,
            actual_on=state.actual_on,
            origin=state.origin,
            destination=state.destination,
            route=state.route,
            flight_type=state.flight_type,
            distance=state.distance,
            duration=state.duration,
            positions=list(state.positions),
            notes=state.notes,
            created_at=state.created_at,
            updated_at=state.updated_at,
        )


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class RefreshError(BaseModel):
    """A track whose refresh pass failed during a listing."""

    track_id: str
    code: str
    message: str


class TrackListResponse(BaseModel):
    tracks: list[TrackResponse]
    pagination: Pagination
    filters: dict[str, Any] = Field(default_factory=dict)
    refresh_errors: list[RefreshError] = Field(default_factory=list)


__all__ = [
    "Pagination",
    "RefreshError",
    "SortField",
    "TrackCreateRequest",
    "TrackListFilter",
    "TrackListResponse",
    "TrackResponse",
    "TrackStopRequest",
]
