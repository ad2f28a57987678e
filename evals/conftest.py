"""
pytest conftest for the realty_tools suite.

Three responsibilities:
1. Provides in-memory providers (FakeProvider, FailingProvider) so dispatcher
   tests never touch the network and can assert on the calls they received.
2. Provides zillow_client(handler): a ZillowApiClient wired to an
   httpx.MockTransport, for exercising the live client's parsing and error
   mapping with canned responses.
3. Clears the dispatcher's in-memory invocation log before every test.

pytest-asyncio runs in STRICT mode (pyproject.toml); every async test
carries @pytest.mark.asyncio.
"""

from typing import Callable, Optional

import httpx
import pytest

from realty_tools.dispatcher import clear_invocation_log
from realty_tools.errors import ProviderUnavailable
from realty_tools.models import (
    LocationCandidate,
    PropertyDetail,
    PropertyRecord,
    SearchPage,
    ValuationEstimate,
)
from realty_tools.provider import PropertyDataProvider
from realty_tools.zillow_api import ZillowApiClient, estimated_rate_table


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------

class FakeProvider(PropertyDataProvider):
    """
    Live-looking provider backed by dicts.

    candidates            — returned by resolve_location
    coordinate_pages      — {(lat, lng, intent): SearchPage}; missing → empty page
    failing_coordinates   — {(lat, lng)} whose coordinate searches raise
    search_page           — returned by search_properties
    calls                 — every method call, in order, as (method, args...)
    """

    is_demo = False
    name = "fake"

    def __init__(
        self,
        candidates: Optional[list[LocationCandidate]] = None,
        coordinate_pages: Optional[dict] = None,
        failing_coordinates: Optional[set] = None,
        search_page: Optional[SearchPage] = None,
    ):
        self.candidates = candidates or []
        self.coordinate_pages = coordinate_pages or {}
        self.failing_coordinates = failing_coordinates or set()
        self.search_page = search_page or SearchPage()
        self.calls: list[tuple] = []

    async def search_properties(self, filters):
        self.calls.append(("search_properties", filters))
        return self.search_page

    async def search_by_coordinates(self, latitude, longitude, listing_intent="for-sale",
                                    radius=None, filters=None):
        self.calls.append(("search_by_coordinates", latitude, longitude, listing_intent))
        if (latitude, longitude) in self.failing_coordinates:
            raise ProviderUnavailable("Zillow API error: 503 Service Unavailable", status_code=503)
        return self.coordinate_pages.get((latitude, longitude, listing_intent), SearchPage())

    async def resolve_location(self, text):
        self.calls.append(("resolve_location", text))
        return list(self.candidates)

    async def get_property_detail(self, property_id):
        self.calls.append(("get_property_detail", property_id))
        return PropertyDetail(id=property_id, address="1 Test Way, Austin, TX 78701", price=500000)

    async def get_valuation_estimate(self, property_id):
        self.calls.append(("get_valuation_estimate", property_id))
        return ValuationEstimate(id=property_id, estimate=510000, rent_estimate=2900)

    async def get_mortgage_rates(self, location=None):
        self.calls.append(("get_mortgage_rates", location))
        return estimated_rate_table(location)


class FailingProvider(PropertyDataProvider):
    """Every call raises ProviderUnavailable, like a provider that is down."""

    is_demo = False
    name = "failing"

    def __init__(self):
        self.calls: list[str] = []

    async def _fail(self, method: str):
        self.calls.append(method)
        raise ProviderUnavailable("Zillow API timed out after 10s.")

    async def search_properties(self, filters):
        await self._fail("search_properties")

    async def search_by_coordinates(self, latitude, longitude, listing_intent="for-sale",
                                    radius=None, filters=None):
        await self._fail("search_by_coordinates")

    async def resolve_location(self, text):
        await self._fail("resolve_location")

    async def get_property_detail(self, property_id):
        await self._fail("get_property_detail")

    async def get_valuation_estimate(self, property_id):
        await self._fail("get_valuation_estimate")

    async def get_mortgage_rates(self, location=None):
        await self._fail("get_mortgage_rates")


def make_record(zpid: str, price: Optional[int] = 400000, **fields) -> PropertyRecord:
    return PropertyRecord(id=zpid, address=f"{zpid} Test St", price=price, **fields)


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    return FakeProvider


@pytest.fixture
def failing_provider() -> FailingProvider:
    return FailingProvider()


@pytest.fixture
def record() -> Callable[..., PropertyRecord]:
    return make_record


# ---------------------------------------------------------------------------
# Live client over httpx.MockTransport — no network
# ---------------------------------------------------------------------------

@pytest.fixture
def zillow_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], ZillowApiClient]:
    """
    Returns a factory: zillow_client(handler) → ZillowApiClient whose requests
    are answered by handler(request) instead of the network.
    """
    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> ZillowApiClient:
        return ZillowApiClient(
            api_key="test-key",
            api_host="zillow-com1.p.rapidapi.com",
            timeout=2.0,
            transport=httpx.MockTransport(handler),
        )
    return _build


# ---------------------------------------------------------------------------
# Invocation log isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_invocation_log():
    clear_invocation_log()
    yield
    clear_invocation_log()
