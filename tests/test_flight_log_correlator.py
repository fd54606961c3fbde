from datetime import datetime, timedelta, timezone

import pytest
from conftest import NOW
from sqlalchemy.exc import OperationalError

from app.db_models import FlightLog
from app.domain.track import TrackState
from app.services.flight_log_correlator import FlightLogCorrelator, SqlFlightLogRepository


def _track(**overrides):
    values = {
        "id": "track-1",
        "tail_number": "N12345",
        "status": "In Flight",
        "start_time": datetime(2026, 3, 14, 14, 30, tzinfo=timezone.utc),
        "school_id": "school-1",
        "student_id": "student-1",
        "instructor_id": "instructor-1",
    }
    values.update(overrides)
    return TrackState(**values)


def _log(db_session, **overrides):
    values = {
        "id": "log-1",
        "date": NOW - timedelta(hours=1),
        "start_time": "14:30",
        "plane_reg": "N12345",
        "student_id": "student-1",
        "instructor_id": "instructor-1",
        "school_id": "school-1",
        "status": "Scheduled",
    }
    values.update(overrides)
    log = FlightLog(**values)
    db_session.add(log)
    db_session.commit()
    return log


def test_matching_log_gets_translated_status(db_session):
    _log(db_session)
    correlator = FlightLogCorrelator(SqlFlightLogRepository(db_session))

    assert correlator.correlate(_track()) == "log-1"
    assert db_session.get(FlightLog, "log-1").status == "In-Flight"

    correlator.correlate(_track(status="Cancelled"))
    assert db_session.get(FlightLog, "log-1").status == "Canceled"


def test_miss_is_logged_and_ignored(db_session, caplog):
    _log(db_session, start_time="09:00")
    correlator = FlightLogCorrelator(SqlFlightLogRepository(db_session))

    with caplog.at_level("INFO", logger="flighttrack.flight_log_correlator"):
        assert correlator.correlate(_track()) is None

    assert db_session.get(FlightLog, "log-1").status == "Scheduled"
    assert "No flight log matches track track-1" in caplog.text


def test_requires_student_and_instructor(db_session):
    _log(db_session)
    correlator = FlightLogCorrelator(SqlFlightLogRepository(db_session))

    assert correlator.correlate(_track(student_id=None)) is None
    assert db_session.get(FlightLog, "log-1").status == "Scheduled"


@pytest.mark.parametrize(
    "failure",
    [
        OperationalError("SELECT", {}, Exception("database is locked")),
        ConnectionError("flight-log service down"),
    ],
)
def test_repository_failure_is_not_raised(failure):
    class BrokenRepository:
        def find_one(self, **criteria):
            raise failure

        def patch_status(self, flight_log_id, status):
            raise AssertionError("not reached")

    correlator = FlightLogCorrelator(BrokenRepository())

    assert correlator.correlate(_track()) is None


def test_patch_failure_is_not_raised(db_session):
    _log(db_session)

    class FailingPatchRepository(SqlFlightLogRepository):
        def patch_status(self, flight_log_id, status):
            raise RuntimeError("flight-log write rejected")

    correlator = FlightLogCorrelator(FailingPatchRepository(db_session))

    assert correlator.correlate(_track()) is None
    assert db_session.get(FlightLog, "log-1").status == "Scheduled"
