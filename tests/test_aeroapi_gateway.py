from datetime import datetime, timezone

import httpx
import pytest

from app.ingestors.aeroapi import FlightDataGateway, FlightDataUnavailable


def _gateway(handler, api_key="test-key"):
    return FlightDataGateway(
        base_url="https://aeroapi.test/aeroapi/",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.anyio
async def test_list_flights_parses_records():
    payload = {
        "flights": [
            {
                "fa_flight_id": "N12345-1710000000-adhoc-0",
                "ident": "N12345",
                "status": "En Route / On Time",
                "scheduled_off": "2026-03-14T14:50:00Z",
                "actual_off": "2026-03-14T14:55:12Z",
                "actual_on": None,
                "origin": {"code": "KBOI", "name": "Boise Air Terminal", "city": "Boise"},
                "destination": {"code": "KSUN", "name": "Friedman Memorial", "city": "Hailey"},
                "route_distance": 110,
                "type": "General_Aviation",
                "unused_field": "ignored",
            }
        ],
        "links": None,
    }

    def handler(request: httpx.Request):
        assert request.url.path == "/aeroapi/flights/N12345"
        assert request.headers["x-apikey"] == "test-key"
        return httpx.Response(200, json=payload)

    flights = await _gateway(handler).list_flights("N12345")

    assert len(flights) == 1
    flight = flights[0]
    assert flight.flight_id == "N12345-1710000000-adhoc-0"
    assert flight.actual_off == datetime(2026, 3, 14, 14, 55, 12, tzinfo=timezone.utc)
    assert flight.best_departure == flight.actual_off
    assert flight.flight_type == "General_Aviation"
    assert flight.origin.code == "KBOI"
    assert not flight.has_landed


@pytest.mark.anyio
async def test_not_found_is_empty():
    def handler(request: httpx.Request):
        return httpx.Response(404, json={"title": "not found"})

    gateway = _gateway(handler)

    assert await gateway.list_flights("N00000") == []
    assert await gateway.get_flight("F-1") is None
    batch = await gateway.list_positions("F-1")
    assert batch.positions == []


@pytest.mark.anyio
async def test_list_positions_parses_samples():
    payload = {
        "actual_distance": 37,
        "positions": [
            {
                "timestamp": "2026-03-14T15:00:00Z",
                "latitude": 43.56,
                "longitude": -116.22,
                "altitude": 45,
                "groundspeed": 102,
                "heading": 71,
                "altitude_change": "C",
            }
        ],
    }

    def handler(request: httpx.Request):
        assert request.url.path.endswith("/flights/F-1/track")
        return httpx.Response(200, json=payload)

    batch = await _gateway(handler).list_positions("F-1")

    assert batch.actual_distance == 37
    assert batch.positions[0].ground_speed == 102
    assert batch.positions[0].timestamp.tzinfo is not None


@pytest.mark.anyio
async def test_get_flight_prefers_matching_id():
    payload = {"flights": [{"fa_flight_id": "F-2"}, {"fa_flight_id": "F-1"}]}

    def handler(request: httpx.Request):
        return httpx.Response(200, json=payload)

    flight = await _gateway(handler).get_flight("F-1")

    assert flight.flight_id == "F-1"


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [429, 500, 503])
async def test_error_responses_raise(status_code):
    def handler(request: httpx.Request):
        return httpx.Response(status_code, text="unavailable")

    with pytest.raises(FlightDataUnavailable):
        await _gateway(handler).list_flights("N12345")


@pytest.mark.anyio
async def test_timeout_raises():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(FlightDataUnavailable):
        await _gateway(handler).list_positions("F-1")


@pytest.mark.anyio
async def test_malformed_payload_raises():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"flights": [{"ident": "missing id"}]})

    with pytest.raises(FlightDataUnavailable):
        await _gateway(handler).list_flights("N12345")


@pytest.mark.anyio
async def test_missing_key_raises_without_request():
    def handler(request: httpx.Request):
        raise AssertionError("no request expected")

    with pytest.raises(FlightDataUnavailable):
        await _gateway(handler, api_key="").list_flights("N12345")


@pytest.mark.anyio
async def test_airport_lookup_is_best_effort():
    def handler(request: httpx.Request):
        if request.url.path.endswith("/airports/KBOI"):
            return httpx.Response(
                200,
                json={
                    "airport_code": "KBOI",
                    "name": "Boise Air Terminal",
                    "city": "Boise",
                    "state": "ID",
                    "country_code": "US",
                    "latitude": 43.5644,
                    "longitude": -116.2228,
                },
            )
        return httpx.Response(500, text="boom")

    gateway = _gateway(handler)

    airport = await gateway.get_airport("KBOI")
    assert airport.code == "KBOI"
    assert airport.state == "ID"
    assert await gateway.get_airport("KSUN") is None


@pytest.mark.anyio
async def test_get_flight_without_matching_record_is_none():
    payload = {"flights": [{"fa_flight_id": "F-2", "actual_on": "2026-03-14T15:00:00Z"}]}

    def handler(request: httpx.Request):
        return httpx.Response(200, json=payload)

    assert await _gateway(handler).get_flight("F-1") is None
