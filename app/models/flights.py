"""Models for flight, position and airport records returned by AeroAPI."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FlightEndpoint(BaseModel):
    """Origin or destination as embedded in a flight record."""

    code: Optional[str] = Field(default=None, description="Airport code (ICAO preferred)")
    name: Optional[str] = Field(default=None, description="Airport name")
    city: Optional[str] = Field(default=None, description="Airport city")

    model_config = ConfigDict(extra="ignore")


class FlightRecord(BaseModel):
    """One upstream flight for a tail number."""

    flight_id: str = Field(
        ...,
        validation_alias=AliasChoices("fa_flight_id", "flight_id"),
        description="Upstream flight identifier",
    )
    ident: Optional[str] = Field(default=None, description="Flight ident or registration")
    status: Optional[str] = Field(default=None, description="Raw upstream status label")
    scheduled_off: Optional[datetime] = None
    estimated_off: Optional[datetime] = None
    actual_off: Optional[datetime] = None
    scheduled_on: Optional[datetime] = None
    estimated_on: Optional[datetime] = None
    actual_on: Optional[datetime] = None
    origin: Optional[FlightEndpoint] = None
    destination: Optional[FlightEndpoint] = None
    route: Optional[str] = Field(default=None, description="Filed route string")
    route_distance: Optional[float] = Field(
        default=None, description="Planned route distance in nautical miles"
    )
    flight_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("type", "flight_type"),
        description="Flight category, e.g. General_Aviation",
    )

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator(
        "scheduled_off",
        "estimated_off",
        "actual_off",
        "scheduled_on",
        "estimated_on",
        "actual_on",
    )
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def has_landed(self) -> bool:
        return self.actual_on is not None

    @property
    def best_departure(self) -> Optional[datetime]:
        """Actual, else estimated, else scheduled departure time."""

        return self.actual_off or self.estimated_off or self.scheduled_off


class PositionSample(BaseModel):
    """One timestamped telemetry point."""

    timestamp: datetime = Field(..., description="Time of the observation (UTC)")
    latitude: float = Field(..., description="Latitude in decimal degrees")
    longitude: float = Field(..., description="Longitude in decimal degrees")
    altitude: Optional[float] = Field(
        default=None, description="Altitude in hundreds of feet, as reported upstream"
    )
    ground_speed: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("groundspeed", "ground_speed"),
        description="Ground speed in knots",
    )
    heading: Optional[float] = Field(default=None, description="Heading in degrees")
    vertical_speed: Optional[float] = None
    fuel_remaining: Optional[float] = None
    engine_rpm: Optional[float] = None
    outside_air_temp: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class PositionBatch(BaseModel):
    """Position history for one flight as returned by the track endpoint."""

    positions: list[PositionSample] = Field(default_factory=list)
    actual_distance: Optional[float] = Field(
        default=None, description="Cumulative distance flown in nautical miles"
    )

    model_config = ConfigDict(extra="ignore")


class AirportDetail(BaseModel):
    """Airport metadata used to enrich origin and destination descriptors."""

    code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("airport_code", "code")
    )
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = ConfigDict(extra="ignore")


class AirportDescriptor(BaseModel):
    """Origin or destination stored on a track."""

    code: Optional[str] = None
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_upstream(
        cls, endpoint: FlightEndpoint, detail: Optional[AirportDetail] = None
    ) -> "AirportDescriptor":
        return cls(
            code=endpoint.code,
            name=endpoint.name or (detail.name if detail else None),
            city=endpoint.city or (detail.city if detail else None),
            state=detail.state if detail else None,
            country=detail.country_code if detail else None,
            latitude=detail.latitude if detail else None,
            longitude=detail.longitude if detail else None,
        )


__all__ = [
    "AirportDescriptor",
    "AirportDetail",
    "FlightEndpoint",
    "FlightRecord",
    "PositionBatch",
    "PositionSample",
]
