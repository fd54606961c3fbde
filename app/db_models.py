"""SQLAlchemy ORM models for the flight-tracking backend."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Track(Base):
    """One tracking session for one aircraft."""

    __tablename__ = "tracks"
    __table_args__ = (
        Index("ix_tracks_status", "status"),
        Index("ix_tracks_flight_date", "flight_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # NULLs never collide, so unbound "Preparing" tracks may coexist
    flight_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    tail_number: Mapped[str] = mapped_column(String(16), index=True, nullable=False)

    school_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    plane_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    instructor_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    student_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    status: Mapped[str] = mapped_column(String(64), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    flight_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    scheduled_off: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_off: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_off: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    origin = Column(JSON(none_as_null=True), nullable=True)
    destination = Column(JSON(none_as_null=True), nullable=True)
    route: Mapped[str | None] = mapped_column(Text, nullable=True)
    flight_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    distance: Mapped[float | None] = mapped_column(Float, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    positions: Mapped[list["TrackPosition"]] = relationship(
        back_populates="track",
        order_by="TrackPosition.timestamp",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class TrackPosition(Base):
    """One telemetry sample in a track's position history."""

    __tablename__ = "track_positions"
    __table_args__ = (
        UniqueConstraint("track_id", "timestamp", name="uq_track_positions_track_ts"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), index=True, nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    altitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    ground_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    heading: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Secondary telemetry, rarely supplied upstream
    vertical_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    fuel_remaining: Mapped[float | None] = mapped_column(Float, nullable=True)
    engine_rpm: Mapped[float | None] = mapped_column(Float, nullable=True)
    outside_air_temp: Mapped[float | None] = mapped_column(Float, nullable=True)
    wind_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    wind_direction: Mapped[float | None] = mapped_column(Float, nullable=True)

    track: Mapped[Track] = relationship(back_populates="positions")


class Plane(Base):
    """Aircraft reference record owned by the fleet subsystem."""

    __tablename__ = "planes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tail_number: Mapped[str | None] = mapped_column(String(16), nullable=True)
    school_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)


class FlightLog(Base):
    """Flight-log record owned by the scheduling subsystem."""

    __tablename__ = "flight_logs"
    __table_args__ = (
        Index("ix_flight_logs_student_instructor", "student_id", "instructor_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    plane_reg: Mapped[str] = mapped_column(String(16), nullable=False)
    plane_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    instructor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    school_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Scheduled")
