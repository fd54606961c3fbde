"""Configuration settings for the flight-tracking backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger("flighttrack.config")


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def _ssm_client():
    # Default to a region so lookups do not fail in environments without AWS
    # configuration (e.g. CI test runners).
    return boto3.client(
        "ssm",
        region_name=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-east-1",
    )


@lru_cache(maxsize=1)
def get_aeroapi_key() -> str:
    """Return the AeroAPI key from the environment or AWS SSM Parameter Store.

    ``AEROAPI_KEY`` wins when set. Otherwise the parameter named by
    ``AEROAPI_KEY_SSM_PARAMETER`` is read (with decryption) and cached
    in-memory. Any failure results in a runtime error.
    """

    value = os.getenv("AEROAPI_KEY")
    if value:
        return value

    parameter = os.getenv("AEROAPI_KEY_SSM_PARAMETER")
    if not parameter:
        raise RuntimeError("AeroAPI key not configured")

    try:
        response = _ssm_client().get_parameter(Name=parameter, WithDecryption=True)
        value = response.get("Parameter", {}).get("Value")
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - AWS error passthrough
        logger.error("Failed to load AeroAPI key from SSM: %s", exc)
        raise RuntimeError("Unable to load AeroAPI key from SSM") from exc

    if not value:
        logger.error("Received empty AeroAPI key from SSM")
        raise RuntimeError("AeroAPI key not configured in SSM")

    return value


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    flighttrack_env: str = os.getenv("FLIGHTTRACK_ENV", "local")
    log_level: str = os.getenv("FLIGHTTRACK_LOG_LEVEL", "INFO")

    # Upstream flight data provider (FlightAware AeroAPI)
    aeroapi_base_url: str = os.getenv(
        "AEROAPI_BASE_URL", "https://aeroapi.flightaware.com/aeroapi"
    )
    aeroapi_timeout: float = float(os.getenv("AEROAPI_TIMEOUT", "10.0"))
    aeroapi_key: str = ""

    # Tracking policy
    track_inactivity_minutes: float = float(os.getenv("TRACK_INACTIVITY_MINUTES", "5"))
    track_selection_timezone: str = os.getenv("TRACK_SELECTION_TIMEZONE", "UTC")
    bulk_refresh_concurrency: int = int(os.getenv("BULK_REFRESH_CONCURRENCY", "4"))
    track_page_limit: int = int(os.getenv("TRACK_PAGE_LIMIT", "50"))

    # Listing refreshes non-terminal tracks unless the caller opts out
    refresh_on_list: bool = _get_bool("TRACK_REFRESH_ON_LIST", default=True)


settings = Settings()

# Populate the key lazily so tests can override behavior via env
try:
    settings.aeroapi_key = get_aeroapi_key()
except RuntimeError:
    logger.warning("AeroAPI key not available at import time")

__all__ = ["settings", "Settings", "get_aeroapi_key"]
