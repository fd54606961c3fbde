"""Tracking-session endpoints."""

from __future__ import annotations

from datetime import datetime
import logging
import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.ingestors import FlightDataGateway, FlightDataUnavailable
from app.models.tracking import (
    Pagination,
    SortField,
    TrackCreateRequest,
    TrackListFilter,
    TrackListResponse,
    TrackResponse,
    TrackStopRequest,
)
from app.services import (
    FlightAlreadyTrackedError,
    FlightLogCorrelator,
    InvalidTrackRequestError,
    NoFlightDataError,
    PlaneDirectory,
    PlaneNotFoundError,
    SqlFlightLogRepository,
    TrackingError,
    TrackingSessionController,
    TrackNotFoundError,
    TrackReconciler,
    TrackStore,
    TrackWriteConflictError,
)

router = APIRouter(prefix="/api/v1", tags=["tracking"])

logger = logging.getLogger("flighttrack.api.tracking")


def get_gateway() -> FlightDataGateway:
    return FlightDataGateway()


def get_controller(
    db: Session = Depends(get_db),
    gateway: FlightDataGateway = Depends(get_gateway),
) -> TrackingSessionController:
    return TrackingSessionController(
        store=TrackStore(db),
        reconciler=TrackReconciler(gateway),
        correlator=FlightLogCorrelator(SqlFlightLogRepository(db)),
        planes=PlaneDirectory(db),
    )


def _error(status_code: int, exc: Exception, **extra) -> HTTPException:
    code = getattr(exc, "code", "upstream_unavailable")
    return HTTPException(
        status_code=status_code, detail={"code": code, "message": str(exc), **extra}
    )


def _http_error(exc: Exception) -> HTTPException:
    """Translate a service failure into an API error response."""

    if isinstance(exc, FlightDataUnavailable):
        return _error(status.HTTP_502_BAD_GATEWAY, exc)
    if isinstance(exc, (TrackNotFoundError, PlaneNotFoundError, NoFlightDataError)):
        return _error(status.HTTP_404_NOT_FOUND, exc)
    if isinstance(exc, FlightAlreadyTrackedError):
        return _error(
            status.HTTP_409_CONFLICT, exc, existing_track_id=exc.existing_track_id
        )
    if isinstance(exc, TrackWriteConflictError):
        return _error(status.HTTP_409_CONFLICT, exc)
    if isinstance(exc, InvalidTrackRequestError):
        return _error(status.HTTP_400_BAD_REQUEST, exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)


@router.post(
    "/tracking-sessions",
    response_model=TrackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start tracking an aircraft",
)
async def start_tracking_session(
    request: TrackCreateRequest,
    controller: TrackingSessionController = Depends(get_controller),
) -> TrackResponse:
    """Bind a new session to the aircraft's current or next flight."""

    try:
        track = await controller.start_session(request)
    except (TrackingError, FlightDataUnavailable) as exc:
        raise _http_error(exc) from exc
    return TrackResponse.from_state(track)


@router.get(
    "/tracking-sessions",
    response_model=TrackListResponse,
    summary="List tracking sessions",
)
async def list_tracking_sessions(
    tail_number: Optional[str] = Query(default=None),
    school_id: Optional[str] = Query(default=None),
    plane_id: Optional[str] = Query(default=None),
    instructor_id: Optional[str] = Query(default=None),
    student_id: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    active_only: bool = Query(default=True),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.track_page_limit, ge=1, le=200),
    sort_by: SortField = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    update_tracking: bool = Query(
        default=settings.refresh_on_list,
        description="Refresh non-terminal sessions before returning them",
    ),
    controller: TrackingSessionController = Depends(get_controller),
) -> TrackListResponse:
    """Return one page of sessions, optionally refreshed against the provider."""

    try:
        filters = TrackListFilter(
            tail_number=tail_number,
            school_id=school_id,
            plane_id=plane_id,
            instructor_id=instructor_id,
            student_id=student_id,
            status=status_filter,
            active_only=active_only,
            start_date=start_date,
            end_date=end_date,
            search=search or None,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_request", "message": str(exc)},
        ) from exc

    result = await controller.list_sessions(filters, refresh=update_tracking)
    logger.info(
        "Listed %s of %s tracks (refresh=%s, errors=%s)",
        len(result.tracks),
        result.total,
        update_tracking,
        len(result.refresh_errors),
    )
    return TrackListResponse(
        tracks=[TrackResponse.from_state(track) for track in result.tracks],
        pagination=Pagination(
            total=result.total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(result.total / filters.limit) if result.total else 0,
        ),
        filters=filters.model_dump(mode="json", exclude_none=True),
        refresh_errors=result.refresh_errors,
    )


@router.get(
    "/tracking-sessions/{track_id}",
    response_model=TrackResponse,
    summary="Get a tracking session",
)
async def get_tracking_session(
    track_id: str,
    controller: TrackingSessionController = Depends(get_controller),
) -> TrackResponse:
    try:
        track = controller.get_session(track_id)
    except TrackingError as exc:
        raise _http_error(exc) from exc
    return TrackResponse.from_state(track)


@router.get(
    "/tracking-sessions/{track_id}/update",
    response_model=TrackResponse,
    summary="Refresh a tracking session",
)
async def update_tracking_session(
    track_id: str,
    controller: TrackingSessionController = Depends(get_controller),
) -> TrackResponse:
    """Run one reconciliation pass and return the stored result."""

    try:
        track = await controller.update_session(track_id)
    except (TrackingError, FlightDataUnavailable) as exc:
        raise _http_error(exc) from exc
    return TrackResponse.from_state(track)


@router.post(
    "/tracking-sessions/{track_id}/stop",
    response_model=TrackResponse,
    summary="Stop a tracking session",
)
async def stop_tracking_session(
    track_id: str,
    request: Optional[TrackStopRequest] = None,
    controller: TrackingSessionController = Depends(get_controller),
) -> TrackResponse:
    stop_status = request.status if request else "Completed"
    try:
        track = controller.stop_session(track_id, stop_status)
    except TrackingError as exc:
        raise _http_error(exc) from exc
    return TrackResponse.from_state(track)
