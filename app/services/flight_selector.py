"""Choose which upstream flight a tracking session should follow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
import logging
from typing import Iterable, Optional, Sequence

from app.models.flights import FlightRecord

logger = logging.getLogger("flighttrack.flight_selector")


@dataclass(frozen=True)
class FlightSelection:
    """Outcome of a selection.

    ``placeholder`` is set when every returned flight has already landed (or is
    bound elsewhere); the flight is informational only and must not be bound.
    """

    flight: FlightRecord
    placeholder: bool = False
    same_day: bool = False


def _departure_key(flight: FlightRecord) -> tuple[int, datetime]:
    departure = flight.best_departure
    if departure is None:
        return (1, datetime.max.replace(tzinfo=timezone.utc))
    return (0, departure)


def select_flight(
    flights: Sequence[FlightRecord],
    now: datetime,
    *,
    exclude_flight_ids: Iterable[str] = (),
    tz: tzinfo = timezone.utc,
) -> Optional[FlightSelection]:
    """Pick the flight to track among those returned for a tail number.

    Landed flights are never candidates. Among the rest, the earliest departure
    on ``now``'s calendar day (in ``tz``) wins; failing that, the earliest
    departure overall. Returns ``None`` only when ``flights`` is empty.
    """

    if not flights:
        return None

    excluded = set(exclude_flight_ids)
    candidates = [
        flight
        for flight in flights
        if not flight.has_landed and flight.flight_id not in excluded
    ]
    if not candidates:
        logger.debug("No selectable flight among %s returned", len(flights))
        return FlightSelection(flight=flights[0], placeholder=True)

    today = now.astimezone(tz).date()
    same_day = [
        flight
        for flight in candidates
        if flight.best_departure is not None
        and flight.best_departure.astimezone(tz).date() == today
    ]
    if same_day:
        return FlightSelection(flight=min(same_day, key=_departure_key), same_day=True)

    return FlightSelection(flight=min(candidates, key=_departure_key))


__all__ = ["FlightSelection", "select_flight"]
