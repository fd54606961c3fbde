import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db_models  # noqa: F401 - register tables on Base
from app.db import Base
from app.ingestors import FlightDataUnavailable
from app.models.flights import FlightRecord, PositionBatch, PositionSample
from app.services import (
    FlightLogCorrelator,
    PlaneDirectory,
    SqlFlightLogRepository,
    TrackingPolicy,
    TrackingSessionController,
    TrackReconciler,
    TrackStore,
)

NOW = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)


def make_flight(flight_id, *, departure=None, landed=None, status="Scheduled", **extra):
    payload = {
        "fa_flight_id": flight_id,
        "ident": "N12345",
        "status": status,
        "scheduled_off": departure,
        "actual_on": landed,
        "origin": {"code": "KBOI", "name": "Boise Air Terminal", "city": "Boise"},
        "destination": {"code": "KSUN", "name": "Friedman Memorial", "city": "Hailey"},
        "route_distance": 110.0,
        "type": "General_Aviation",
    }
    payload.update(extra)
    return FlightRecord.model_validate(payload)


def make_sample(timestamp, lat=43.56, lon=-116.22, **extra):
    return PositionSample(timestamp=timestamp, latitude=lat, longitude=lon, **extra)


class FakeGateway:
    """In-memory stand-in for the AeroAPI gateway."""

    def __init__(self):
        self.flights: dict[str, list[FlightRecord]] = {}
        self.positions: dict[str, PositionBatch] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def _check(self, method, key):
        self.calls.append((method, key))
        if key in self.failing:
            raise FlightDataUnavailable(f"{method} failed for {key}")

    async def list_flights(self, ident):
        self._check("list_flights", ident)
        await asyncio.sleep(0)
        return list(self.flights.get(ident, []))

    async def get_flight(self, flight_id):
        self._check("get_flight", flight_id)
        for flights in self.flights.values():
            for flight in flights:
                if flight.flight_id == flight_id:
                    return flight
        return None

    async def list_positions(self, flight_id):
        self._check("list_positions", flight_id)
        await asyncio.sleep(0)
        return self.positions.get(flight_id, PositionBatch())

    async def get_airport(self, code):
        self.calls.append(("get_airport", code))
        return None


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def policy():
    return TrackingPolicy(inactivity_threshold=timedelta(minutes=5))


@pytest.fixture
def controller(db_session, gateway, policy):
    return TrackingSessionController(
        store=TrackStore(db_session),
        reconciler=TrackReconciler(gateway, policy),
        correlator=FlightLogCorrelator(SqlFlightLogRepository(db_session)),
        planes=PlaneDirectory(db_session),
        concurrency=2,
    )
