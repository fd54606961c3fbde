"""Mirror track status into the matching flight-log record."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import db_models
from app.domain.status import to_flight_log_status
from app.domain.track import TrackState

logger = logging.getLogger("flighttrack.flight_log_correlator")


class FlightLogRepository(Protocol):
    def find_one(
        self,
        *,
        student_id: str,
        instructor_id: str,
        plane_reg: str,
        school_id: Optional[str],
        start_time: str,
    ) -> Optional[str]:
        ...

    def patch_status(self, flight_log_id: str, status: str) -> None:
        ...


class SqlFlightLogRepository:
    """Flight logs stored in the shared ``flight_logs`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_one(
        self,
        *,
        student_id: str,
        instructor_id: str,
        plane_reg: str,
        school_id: Optional[str],
        start_time: str,
    ) -> Optional[str]:
        FlightLog = db_models.FlightLog
        query = self.db.query(FlightLog.id).filter(
            FlightLog.student_id == student_id,
            FlightLog.instructor_id == instructor_id,
            FlightLog.plane_reg == plane_reg,
            FlightLog.start_time == start_time,
        )
        if school_id is not None:
            query = query.filter(FlightLog.school_id == school_id)
        row = query.first()
        return row[0] if row else None

    def patch_status(self, flight_log_id: str, status: str) -> None:
        log = self.db.get(db_models.FlightLog, flight_log_id)
        if log is None:
            return
        log.status = status
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class FlightLogCorrelator:
    """Best-effort status propagation; never raises and never touches the track."""

    def __init__(self, repository: FlightLogRepository) -> None:
        self.repository = repository

    def correlate(self, track: TrackState) -> Optional[str]:
        """Patch the matching flight log and return its id, if one was found."""

        if not track.student_id or not track.instructor_id:
            return None

        start_time = track.start_time.strftime("%H:%M")
        try:
            flight_log_id = self.repository.find_one(
                student_id=track.student_id,
                instructor_id=track.instructor_id,
                plane_reg=track.tail_number.upper(),
                school_id=track.school_id,
                start_time=start_time,
            )
            if flight_log_id is None:
                logger.info(
                    "No flight log matches track %s (%s at %s)",
                    track.id,
                    track.tail_number,
                    start_time,
                )
                return None

            status = to_flight_log_status(track.status)
            self.repository.patch_status(flight_log_id, status)
        except Exception as exc:  # advisory: failures never reach the caller
            logger.warning("Failed to update flight log for track %s: %s", track.id, exc)
            return None

        logger.info("Flight log %s set to %s for track %s", flight_log_id, status, track.id)
        return flight_log_id


__all__ = ["FlightLogCorrelator", "FlightLogRepository", "SqlFlightLogRepository"]
