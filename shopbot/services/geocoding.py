"""Reverse geocoding through OpenStreetMap Nominatim.

Nominatim allows one request per second per application, so calls are
serialized behind a process-wide lock and spaced by
``GEOCODING_MIN_INTERVAL_SECONDS``.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

import httpx

from shopbot.core.config import (
    DEFAULT_COUNTRY,
    GEOCODING_MIN_INTERVAL_SECONDS,
    GEOCODING_USER_AGENT,
    NOMINATIM_URL,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodedAddress:
    formatted_address: str
    street_address: str | None = None
    locality: str | None = None
    admin_area: str | None = None
    postcode: str | None = None
    country: str | None = None
    confidence: str = "low"


def _first(address: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


def confidence_for(street: str | None, locality: str | None, postcode: str | None) -> str:
    if street and locality and postcode:
        return "high"
    if locality and (street or postcode):
        return "medium"
    return "low"


def format_delivery_address(
    *,
    street_address: str | None,
    locality: str | None,
    admin_area: str | None,
    postcode: str | None,
    country: str | None,
    default_country: str = DEFAULT_COUNTRY,
) -> str:
    parts = [part for part in (street_address, locality, admin_area) if part]
    if postcode:
        parts.append(f"PIN: {postcode}")
    if country and country.lower() != default_country.lower():
        parts.append(country)
    return ", ".join(parts)


def parse_nominatim(data: dict[str, Any]) -> GeocodedAddress | None:
    address = data.get("address") or {}
    if not address:
        return None
    street = " ".join(part for part in (address.get("house_number"), address.get("road")) if part) or None
    locality = _first(address, "city", "town", "village", "suburb", "county")
    admin_area = _first(address, "state", "state_district")
    postcode = _first(address, "postcode")
    country = _first(address, "country")
    formatted = format_delivery_address(
        street_address=street,
        locality=locality,
        admin_area=admin_area,
        postcode=postcode,
        country=country,
    )
    if not formatted:
        formatted = data.get("display_name") or ""
    if not formatted:
        return None
    return GeocodedAddress(
        formatted_address=formatted,
        street_address=street,
        locality=locality,
        admin_area=admin_area,
        postcode=postcode,
        country=country,
        confidence=confidence_for(street, locality, postcode),
    )


class NominatimGeocoder:
    def __init__(
        self,
        *,
        base_url: str = NOMINATIM_URL,
        user_agent: str = GEOCODING_USER_AGENT,
        min_interval_seconds: float = GEOCODING_MIN_INTERVAL_SECONDS,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url
        self.user_agent = user_agent
        self.min_interval_seconds = min_interval_seconds
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: float | None = None
        self._lock = Lock()

    def _throttle(self) -> None:
        if self._last_request_at is not None:
            wait = self.min_interval_seconds - (self._clock() - self._last_request_at)
            if wait > 0:
                self._sleep(wait)
        self._last_request_at = self._clock()

    def reverse(self, latitude: float, longitude: float) -> GeocodedAddress | None:
        params = {"lat": latitude, "lon": longitude, "format": "json", "addressdetails": 1}
        headers = {"User-Agent": self.user_agent}
        with self._lock:
            self._throttle()
            try:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(self.base_url, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("reverse geocoding failed lat=%s lon=%s: %s", latitude, longitude, exc)
                return None

        result = parse_nominatim(data or {})
        if result is None:
            logger.warning("reverse geocoding returned no address lat=%s lon=%s", latitude, longitude)
        return result
