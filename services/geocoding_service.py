"""
Geocoding adapters.

The round controller only depends on the ``Geocoder`` protocol: an async
``geocode(address)`` that always returns a ``GeocodeResult``. Network and
HTTP errors are turned into failed results here, so a failed lookup is a
state the controller can show, never an exception it has to catch.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import requests

from core.exceptions import UnknownGeocoder
from services.region_service import Coordinate

logger = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"
STATUS_REQUEST_FAILED = "REQUEST_FAILED"


@dataclass(frozen=True)
class GeocodeResult:
    status: str
    location: Optional[Coordinate] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK and self.location is not None

    @classmethod
    def success(cls, location: Coordinate) -> "GeocodeResult":
        return cls(status=STATUS_OK, location=location)

    @classmethod
    def failure(cls, status: str, error: Optional[str] = None) -> "GeocodeResult":
        return cls(status=status, error=error)


class Geocoder(Protocol):
    async def geocode(self, address: str) -> GeocodeResult: ...


class GoogleGeocoder:
    """Google Geocoding web service, first result wins."""

    def __init__(self, api_key: str, url: str, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    async def geocode(self, address: str) -> GeocodeResult:
        # requests is blocking; keep the event loop free while it runs
        return await asyncio.to_thread(self.lookup, address)

    def lookup(self, address: str) -> GeocodeResult:
        try:
            response = self.session.get(
                self.url,
                params={"address": address, "key": self.api_key},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Geocode request for '{address}' failed: {e}")
            return GeocodeResult.failure(STATUS_REQUEST_FAILED, str(e))

        if response.status_code != 200:
            logger.warning(
                f"Geocode request for '{address}' returned HTTP {response.status_code}"
            )
            return GeocodeResult.failure(f"HTTP_{response.status_code}", response.text[:200])

        try:
            payload = response.json()
        except ValueError as e:
            return GeocodeResult.failure(STATUS_REQUEST_FAILED, f"Invalid JSON: {e}")

        status = payload.get("status", STATUS_REQUEST_FAILED)
        results = payload.get("results") or []
        if status != STATUS_OK or not results:
            logger.warning(f"Geocode status for '{address}': {status}")
            return GeocodeResult.failure(
                status if status != STATUS_OK else STATUS_ZERO_RESULTS,
                payload.get("error_message"),
            )

        location = results[0]["geometry"]["location"]
        return GeocodeResult.success(Coordinate(lat=location["lat"], lng=location["lng"]))


class StaticGeocoder:
    """
    Fixed address table, for running without an API key.

    Unknown addresses resolve to ZERO_RESULTS, the same way the web
    service reports them.
    """

    def __init__(self, table: Dict[str, Coordinate]):
        self.table = dict(table)

    async def geocode(self, address: str) -> GeocodeResult:
        location = self.table.get(address)
        if location is None:
            return GeocodeResult.failure(STATUS_ZERO_RESULTS)
        return GeocodeResult.success(location)


# Approximate building positions, used by StaticGeocoder
CAMPUS_COORDINATES: Dict[str, Coordinate] = {
    "Oasis Wellness Center, CSUN, Northridge, CA": Coordinate(34.2394, -118.5263),
    "Chaparral Hall, CSUN, Northridge, CA": Coordinate(34.2383, -118.5272),
    "Sierra Tower, CSUN, Northridge, CA": Coordinate(34.2380, -118.5307),
    "Black House, CSUN, Northridge, CA": Coordinate(34.2372, -118.5337),
    "The Soraya, CSUN, Northridge, CA": Coordinate(34.2363, -118.5284),
}


def build_geocoder(settings) -> Geocoder:
    """Pick the geocoder named by ``settings.geocoder``."""
    if settings.geocoder == "google":
        if not settings.google_maps_api_key:
            logger.warning("GOOGLE_MAPS_API_KEY is empty, geocoding will fail")
        return GoogleGeocoder(
            api_key=settings.google_maps_api_key,
            url=settings.geocode_url,
            timeout=settings.geocode_timeout,
        )
    if settings.geocoder == "static":
        return StaticGeocoder(CAMPUS_COORDINATES)
    raise UnknownGeocoder(settings.geocoder)
