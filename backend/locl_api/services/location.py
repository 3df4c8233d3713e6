"""
Location resolution: a device fix plus a best-effort place name
"""

import asyncio
import enum
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional, Tuple

import httpx

from ..config import settings
from ..core.logging import get_logger
from ..utils.geo import Coordinates

logger = get_logger(__name__)


class Accuracy(str, enum.Enum):
    HIGH = "high"
    BALANCED = "balanced"


class PositionUnavailable(Exception):
    pass


class GeocodingError(Exception):
    pass


@dataclass
class LocationData:
    latitude: float
    longitude: float
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postcode: Optional[str] = None
    address: Optional[str] = None
    is_complete: bool = True

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def coordinates_label(latitude: float, longitude: float) -> str:
    return f"Location ({latitude:.4f}, {longitude:.4f})"


class PositionProvider:
    """Source of device fixes"""

    def has_permission(self) -> bool:
        raise NotImplementedError

    def request_permission(self) -> bool:
        raise NotImplementedError

    async def get_position(self, accuracy: Accuracy) -> Coordinates:
        raise NotImplementedError


class ReportedPosition(PositionProvider):
    """
    A fix reported by the client device.

    A coarse (balanced) fix cannot satisfy a high accuracy request, so the
    resolver's high -> balanced fallback applies to it as it would on device.
    """

    def __init__(self, latitude: Optional[float], longitude: Optional[float],
                 accuracy: Accuracy = Accuracy.HIGH, permission_granted: bool = True):
        self.coordinates = None if latitude is None or longitude is None else Coordinates(latitude, longitude)
        self.accuracy = accuracy
        self.permission_granted = permission_granted

    def has_permission(self) -> bool:
        return self.permission_granted

    def request_permission(self) -> bool:
        return self.permission_granted

    async def get_position(self, accuracy: Accuracy) -> Coordinates:
        if self.coordinates is None:
            raise PositionUnavailable("No position reported")
        if accuracy == Accuracy.HIGH and self.accuracy != Accuracy.HIGH:
            raise PositionUnavailable("High accuracy position unavailable")
        return self.coordinates


class NominatimGeocoder:
    """Reverse geocoding against an OSM Nominatim compatible endpoint"""

    def __init__(self, base_url: str = None, timeout: float = None, user_agent: str = None,
                 transport: httpx.AsyncBaseTransport = None, cache_seconds: int = None,
                 clock: Callable[[], float] = time.monotonic):
        self.base_url = (base_url or settings.geocoding_base_url).rstrip("/")
        self.timeout = settings.geocoding_timeout_seconds if timeout is None else timeout
        self.user_agent = user_agent or settings.geocoding_user_agent
        self.transport = transport
        self.cache_seconds = settings.geocode_cache_seconds if cache_seconds is None else cache_seconds
        self.clock = clock
        self._cache: Dict[str, Tuple[float, dict]] = {}

    @staticmethod
    def cache_key(latitude: float, longitude: float) -> str:
        return f"{round(latitude, 5)},{round(longitude, 5)}"

    async def reverse(self, latitude: float, longitude: float) -> dict:
        """
        Look up place details for a coordinate pair.

        Returns a dict with city/region/country/postcode/address and
        is_complete. Raises GeocodingError when the service fails or has no
        address for the point.
        """
        key = self.cache_key(latitude, longitude)
        cached = self._cache.get(key)
        if cached and self.clock() - cached[0] < self.cache_seconds:
            return dict(cached[1])

        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "zoom": 18,
            "addressdetails": 1,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}/reverse",
                    params=params,
                    headers={"User-Agent": self.user_agent},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Reverse geocoding failed: {e}") from e

        result = self.parse(data)
        if result is None:
            raise GeocodingError("No address in geocoding response")
        self._cache[key] = (self.clock(), result)
        return dict(result)

    @staticmethod
    def parse(data: dict) -> Optional[dict]:
        address = (data or {}).get("address")
        if not address:
            return None

        city = (address.get("city") or address.get("town") or address.get("village")
                or address.get("hamlet") or address.get("suburb"))
        display_name = city or address.get("county") or address.get("state")
        country = address.get("country")
        if country and country != "United States" and display_name:
            display_name = f"{display_name}, {country}"
        elif country and not display_name:
            display_name = country
        if not display_name and data.get("display_name"):
            display_name = data["display_name"].split(",")[0]

        parts = [address.get("road"), address.get("house_number"), address.get("suburb"), city,
                 address.get("state"), address.get("postcode"), country]
        return {
            "city": display_name or "Nearby Location",
            "region": address.get("state") or address.get("county"),
            "country": country,
            "postcode": address.get("postcode"),
            "address": ", ".join(p for p in parts if p),
            "is_complete": bool(display_name),
        }


class LocationService:
    """
    Resolve a (latitude, longitude, place name) fix for a device.

    Fixes are cached per key for location_cache_seconds. Geocoding is
    bounded by location_resolve_timeout_seconds and only ever improves the
    label: coordinates alone make a complete fix.
    """

    def __init__(self, geocoder: NominatimGeocoder = None, cache_seconds: int = None,
                 resolve_timeout: float = None, clock: Callable[[], float] = time.monotonic):
        self.geocoder = geocoder or NominatimGeocoder()
        self.cache_seconds = settings.location_cache_seconds if cache_seconds is None else cache_seconds
        self.resolve_timeout = settings.location_resolve_timeout_seconds if resolve_timeout is None else resolve_timeout
        self.clock = clock
        self._cache: Dict[str, Tuple[float, LocationData]] = {}

    def cached(self, cache_key: str) -> Optional[LocationData]:
        entry = self._cache.get(cache_key)
        if entry and self.clock() - entry[0] < self.cache_seconds:
            return entry[1]
        return None

    def clear(self, cache_key: str = None) -> None:
        if cache_key is None:
            self._cache.clear()
        else:
            self._cache.pop(cache_key, None)

    async def _position(self, provider: PositionProvider) -> Coordinates:
        try:
            return await provider.get_position(Accuracy.HIGH)
        except PositionUnavailable as e:
            logger.info(f"High accuracy position failed, trying balanced: {e}")
            return await provider.get_position(Accuracy.BALANCED)

    async def _describe(self, coords: Coordinates) -> dict:
        try:
            return await asyncio.wait_for(
                self.geocoder.reverse(coords.latitude, coords.longitude),
                timeout=self.resolve_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Reverse geocoding timed out")
        except GeocodingError as e:
            logger.warning(f"Reverse geocoding failed: {e}")
            return {"city": "Nearby"}
        return {}

    async def resolve(self, provider: PositionProvider, cache_key: str = "device",
                      use_cache: bool = True) -> Optional[LocationData]:
        if use_cache:
            cached = self.cached(cache_key)
            if cached is not None:
                logger.debug(f"Using cached location for {cache_key}")
                return cached

        if not provider.has_permission() and not provider.request_permission():
            logger.info(f"Location permission not granted for {cache_key}")
            return None

        try:
            coords = await self._position(provider)
        except PositionUnavailable as e:
            logger.warning(f"Could not get a position for {cache_key}: {e}")
            return None

        details = await self._describe(coords)
        location = LocationData(
            latitude=coords.latitude,
            longitude=coords.longitude,
            city=details.get("city"),
            region=details.get("region"),
            country=details.get("country"),
            postcode=details.get("postcode"),
            address=details.get("address"),
            is_complete=True,
        )
        if not location.city:
            location.city = location.region or coordinates_label(coords.latitude, coords.longitude)

        self._cache[cache_key] = (self.clock(), location)
        return location


location_service = LocationService()
