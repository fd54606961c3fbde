"""Flight data gateway backed by the FlightAware AeroAPI REST service."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from app.config import settings
from app.models.flights import AirportDetail, FlightRecord, PositionBatch

logger = logging.getLogger("flighttrack.ingestors.aeroapi")


class FlightDataUnavailable(RuntimeError):
    """Upstream timeout, HTTP error or malformed payload."""


class FlightDataGateway:
    """Fetch flights, position history and airport metadata from AeroAPI.

    Empty results (including HTTP 404 on the list endpoints) are returned as
    "no data". Transport, HTTP and payload failures raise
    :class:`FlightDataUnavailable`, except for airport lookups which are
    best-effort and return ``None``.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.aeroapi_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.aeroapi_key
        self.timeout = timeout or settings.aeroapi_timeout
        self.transport = transport

    async def list_flights(self, ident: str) -> list[FlightRecord]:
        """Return the flights the provider knows for a tail number or flight id."""

        payload = await self._get_json(f"/flights/{quote(ident, safe='')}")
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise FlightDataUnavailable("Unexpected flights payload from AeroAPI")

        raw_flights = payload.get("flights") or []
        try:
            flights = [FlightRecord.model_validate(entry) for entry in raw_flights]
        except ValidationError as exc:
            logger.warning("Malformed flight record for %s: %s", ident, exc)
            raise FlightDataUnavailable("Malformed flight record from AeroAPI") from exc

        logger.debug("Fetched %s flights for %s", len(flights), ident)
        return flights

    async def get_flight(self, flight_id: str) -> Optional[FlightRecord]:
        """Return the latest record for a bound flight, or ``None`` if unknown."""

        flights = await self.list_flights(flight_id)
        for flight in flights:
            if flight.flight_id == flight_id:
                return flight
        logger.info("No record for bound flight %s among %s returned", flight_id, len(flights))
        return None

    async def list_positions(self, flight_id: str) -> PositionBatch:
        payload = await self._get_json(f"/flights/{quote(flight_id, safe='')}/track")
        if payload is None:
            return PositionBatch()
        try:
            batch = PositionBatch.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed position payload for %s: %s", flight_id, exc)
            raise FlightDataUnavailable("Malformed position payload from AeroAPI") from exc

        logger.debug("Fetched %s positions for %s", len(batch.positions), flight_id)
        return batch

    async def get_airport(self, code: str) -> Optional[AirportDetail]:
        try:
            payload = await self._get_json(f"/airports/{quote(code, safe='')}")
            if not isinstance(payload, dict):
                return None
            return AirportDetail.model_validate(payload)
        except (FlightDataUnavailable, ValidationError) as exc:
            logger.info("Airport details unavailable for %s: %s", code, exc)
            return None

    async def _get_json(self, path: str) -> Any:
        if not self.api_key:
            raise FlightDataUnavailable("AeroAPI key not configured")

        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(url, headers={"x-apikey": self.api_key})
        except httpx.TimeoutException as exc:
            logger.warning("AeroAPI request timed out: %s", exc)
            raise FlightDataUnavailable("AeroAPI request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("AeroAPI request failed: %s", exc)
            raise FlightDataUnavailable("AeroAPI request failed") from exc

        if response.status_code == 404:
            return None
        if response.status_code == 429:
            logger.warning("AeroAPI rate limit encountered: %s", response.text)
            raise FlightDataUnavailable("AeroAPI rate limit exceeded")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "AeroAPI returned HTTP %s for %s", exc.response.status_code, path
            )
            raise FlightDataUnavailable(
                f"AeroAPI returned HTTP {exc.response.status_code}"
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Failed to parse AeroAPI JSON response: %s", exc)
            raise FlightDataUnavailable("AeroAPI returned invalid JSON") from exc


__all__ = ["FlightDataGateway", "FlightDataUnavailable"]
