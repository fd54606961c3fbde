"""Upstream data ingestors for flight tracking."""

from .aeroapi import FlightDataGateway, FlightDataUnavailable

__all__ = ["FlightDataGateway", "FlightDataUnavailable"]
