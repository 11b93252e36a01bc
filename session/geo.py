# =============================================================================
# CORRIDOR ACCESS SYSTEM - IP GEOLOCATION
# =============================================================================
# File: session/geo.py
# Description: Pluggable IP → city/country lookup for session rows
#              Failures degrade to "Unknown" and never abort a request
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

import httpx

from core.config import settings, Settings
from session.models import LocationInfo
from utils.helpers import mask_ip


logger = logging.getLogger(__name__)

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})


class GeoLocator(ABC):
    """Strategy resolving a client IP address to a LocationInfo."""

    @abstractmethod
    async def locate(self, ip_address: Optional[str]) -> LocationInfo:
        """Resolve the address; must not raise for lookup failures."""


class NullGeoLocator(GeoLocator):
    """Locator used when geolocation is disabled."""

    async def locate(self, ip_address: Optional[str]) -> LocationInfo:
        if ip_address in LOOPBACK_ADDRESSES:
            return LocationInfo(city="localhost", country="localhost")
        return LocationInfo()


class IPGeolocationLocator(GeoLocator):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    IPGEOLOCATION.IO LOOKUP                               │
    │  GET {api_url}?apiKey=...&ip=... with a bounded timeout                 │
    └─────────────────────────────────────────────────────────────────────────┘

    Loopback addresses short-circuit to "localhost" without a request.
    Any transport error, non-2xx status or unparseable body yields
    ``LocationInfo(error="API call failed")`` with city/country "Unknown".
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: Settings providing URL, key and timeout
            client: Shared client; a short-lived one is opened per call otherwise
        """
        self._config = config or settings
        self._client = client

    async def locate(self, ip_address: Optional[str]) -> LocationInfo:
        if ip_address in LOOPBACK_ADDRESSES:
            return LocationInfo(city="localhost", country="localhost")
        if not ip_address or ip_address == "unknown":
            return LocationInfo()

        params = {"apiKey": self._config.geolocation_api_key, "ip": ip_address}
        try:
            if self._client is not None:
                response = await self._client.get(
                    self._config.geolocation_api_url,
                    params=params,
                    timeout=self._config.geolocation_timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self._config.geolocation_timeout) as client:
                    response = await client.get(self._config.geolocation_api_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch IP info for {mask_ip(ip_address)}: {e}")
            return LocationInfo(error="API call failed")

        if not isinstance(payload, dict):
            return LocationInfo(error="API call failed")
        return self._parse(payload)

    @staticmethod
    def _parse(payload: Dict[str, Any]) -> LocationInfo:
        location = payload.get("location") if isinstance(payload.get("location"), dict) else payload
        return LocationInfo(
            city=location.get("city") or "Unknown",
            country=location.get("country_name") or location.get("country") or "Unknown",
        )


def build_geo_locator(config: Optional[Settings] = None) -> GeoLocator:
    """Locator selected by ``geolocation_enabled``."""
    config = config or settings
    if config.geolocation_enabled and config.geolocation_api_key:
        return IPGeolocationLocator(config)
    return NullGeoLocator()
