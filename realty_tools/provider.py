"""
Property-data provider interface and startup selection.

Two implementations share this interface:
  - ZillowApiClient (zillow_api.py) — live RapidAPI Zillow data, needs RAPIDAPI_KEY
  - DemoProvider (demo_provider.py)  — fixed demo dataset, works offline

build_provider() picks one at startup. The dispatcher receives the provider
by injection and never checks which one it got; payloads report
``using_mock_data`` from the provider's ``is_demo`` attribute.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional

from .errors import InvalidArgument
from .log import get_logger
from .models import (
    AreaFilters,
    ListingIntent,
    LocationCandidate,
    PropertyDetail,
    RateTable,
    SearchFilters,
    SearchPage,
    ValuationEstimate,
)
from .settings import Settings

logger = get_logger("provider")


class PropertyDataProvider(ABC):
    """Read-only lookups against a property-data source. Never mutates remote state."""

    is_demo: bool = False
    name: str = "provider"

    @abstractmethod
    async def search_properties(self, filters: SearchFilters) -> SearchPage:
        """Listings matching a free-text location plus optional filters."""

    @abstractmethod
    async def search_by_coordinates(
        self,
        latitude: float,
        longitude: float,
        listing_intent: ListingIntent = "for-sale",
        radius: Optional[float] = None,
        filters: Optional[AreaFilters] = None,
    ) -> SearchPage:
        """Listings around a coordinate pair."""

    @abstractmethod
    async def resolve_location(self, text: str) -> list[LocationCandidate]:
        """Candidate centroids for a place name. Empty list when nothing matches."""

    @abstractmethod
    async def get_property_detail(self, property_id: str) -> PropertyDetail:
        """Extended record for one listing."""

    @abstractmethod
    async def get_valuation_estimate(self, property_id: str) -> ValuationEstimate:
        """Automated value (and rent) estimate for one listing."""

    @abstractmethod
    async def get_mortgage_rates(self, location: Optional[str] = None) -> RateTable:
        """Current rate table, optionally for a location."""


# ---------------------------------------------------------------------------
# Shared argument checks, raised before any network call
# ---------------------------------------------------------------------------

def check_coordinates(latitude: float, longitude: float) -> None:
    for label, value in (("latitude", latitude), ("longitude", longitude)):
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidArgument(f"{label} is required and must be a number.")
        if not math.isfinite(value):
            raise InvalidArgument(f"{label} must be finite, got {value}.")
    if not -90 <= latitude <= 90:
        raise InvalidArgument(f"latitude must be within [-90, 90], got {latitude}.")
    if not -180 <= longitude <= 180:
        raise InvalidArgument(f"longitude must be within [-180, 180], got {longitude}.")


def valid_coordinates(latitude: Optional[float], longitude: Optional[float]) -> bool:
    try:
        check_coordinates(latitude, longitude)
    except InvalidArgument:
        return False
    return True


def check_identifier(property_id: str) -> str:
    property_id = (property_id or "").strip()
    if not property_id:
        raise InvalidArgument("A property id is required.")
    return property_id


def check_location_text(text: str) -> str:
    text = (text or "").strip()
    if not text:
        raise InvalidArgument("location must be a non-empty string.")
    return text


# ---------------------------------------------------------------------------
# Startup selection
# ---------------------------------------------------------------------------

def build_provider(settings: Settings) -> PropertyDataProvider:
    """
    Returns the live Zillow client when a RapidAPI key is configured,
    otherwise the demo provider. Called once at process startup.
    """
    from .demo_provider import DemoProvider
    from .zillow_api import ZillowApiClient

    if settings.has_credentials:
        logger.info("Zillow API client initialized (host=%s)", settings.rapidapi_host)
        return ZillowApiClient(
            api_key=settings.rapidapi_key,
            api_host=settings.rapidapi_host,
            timeout=settings.provider_timeout_seconds,
        )

    logger.warning(
        "No RAPIDAPI_KEY configured; every tool will answer from demo data. "
        "Set RAPIDAPI_KEY to use live Zillow data."
    )
    return DemoProvider()


def build_fallback(settings: Settings, primary: PropertyDataProvider) -> Optional[PropertyDataProvider]:
    """Demo provider used when the live provider fails mid-request, or None."""
    from .demo_provider import DemoProvider

    if primary.is_demo or not settings.enable_demo_fallback:
        return None
    return DemoProvider()
