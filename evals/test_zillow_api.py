"""
Unit tests for the live Zillow client (httpx.MockTransport, no network).

Tests cover:
  1. Normalization — provider aliases map to one canonical record; odd field types degrade to None
  2. Search parsing — props pages, single-home answers, coordinate lists
  3. Location resolution — resultGroups shape, empty answers, odd metadata, out-of-range centroids
  4. Error mapping — timeout / 5xx / bad JSON / bad shape
  5. Request shape — auth headers, filter parameters, argument checks
  6. Valuation — rent estimate supplement and its failure mode
"""

import json

import httpx
import pytest

from realty_tools.errors import (
    InvalidArgument,
    ProviderMalformedResponse,
    ProviderUnavailable,
)
from realty_tools.models import SearchFilters
from realty_tools.zillow_api import normalize_detail, normalize_property


def _json(payload, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(),
                          headers={"content-type": "application/json"})


# ---------------------------------------------------------------------------
# Test 1 — normalization
# ---------------------------------------------------------------------------

def test_normalize_maps_aliases():
    record = normalize_property({
        "zpid": 2077838,
        "address": "1207 E Pine St, Seattle, WA 98122",
        "price": 749000,
        "bedrooms": 2,
        "bathrooms": 1.5,
        "sqft": 1180,
        "homeType": "CONDO",
        "homeStatus": "FOR_SALE",
        "imgSrc": "https://photos.zillowstatic.com/fp/abc.jpg",
        "latitude": 47.615,
        "longitude": -122.317,
        "detailUrl": "/homedetails/2077838_zpid/",
    })

    assert record.id == "2077838"
    assert record.living_area == 1180
    assert record.property_type == "CONDO"
    assert record.listing_status == "FOR_SALE"
    assert record.bathrooms == 1.5
    assert record.image_url.endswith("abc.jpg")
    assert record.detail_url == "https://www.zillow.com/homedetails/2077838_zpid/"


def test_normalize_keeps_missing_fields_none():
    record = normalize_property({"zpid": "42", "address": "1 Main St"})

    assert record.price is None
    assert record.bedrooms is None
    assert record.living_area is None
    assert record.zestimate is None


def test_normalize_composes_split_address_and_parses_price_strings():
    record = normalize_property({
        "zpid": "7",
        "streetAddress": "456 Oak Ave",
        "city": "Austin",
        "state": "TX",
        "zipcode": "78704",
        "price": "$2,100/mo",
        "livingArea": "1,850",
        "carouselPhotos": [{"url": "https://photos.zillowstatic.com/fp/first.jpg"}],
    })

    assert record.address == "456 Oak Ave, Austin, TX 78704"
    assert record.price == 2100
    assert record.living_area == 1850
    assert record.image_url == "https://photos.zillowstatic.com/fp/first.jpg"


def test_normalize_without_zpid_is_malformed():
    with pytest.raises(ProviderMalformedResponse):
        normalize_property({"address": "nowhere"})


def test_normalize_detail_extras():
    detail = normalize_detail({
        "zpid": 99,
        "address": {"streetAddress": "1 Hill Rd", "city": "Seattle", "state": "WA", "zipcode": "98109"},
        "price": 900000,
        "yearBuilt": 1925,
        "schools": [{"name": "John Hay Elementary", "rating": 8, "distance": 0.4, "level": "Primary"}],
        "priceHistory": [{"date": "2024-05-01", "event": "Listed for sale", "price": 900000}],
        "taxHistory": [{"time": 1704067200000, "taxPaid": 7432.1}],
        "annualHomeownersInsurance": 2100,
        "nearbyHomes": [{"zpid": 100, "price": 850000}, {"no": "zpid"}],
    })

    assert detail.address == "1 Hill Rd, Seattle, WA 98109"
    assert detail.year_built == 1925
    assert detail.schools[0].rating == 8.0
    assert detail.price_history[0].event == "Listed for sale"
    assert detail.annual_tax == 7432
    assert detail.annual_insurance == 2100
    assert [c.id for c in detail.comparables] == ["100"]


def test_normalize_detail_coerces_odd_field_types():
    """
    GIVEN  a /property payload whose optional fields carry numbers, objects
           and wrong containers where text and lists are expected
    WHEN   it is normalized
    THEN   scalars become text, objects and wrong containers are dropped,
           and nothing escapes as a validation error.
    """
    detail = normalize_detail({
        "zpid": 7,
        "address": {"streetAddress": "7 Elm St", "city": "Austin", "state": "TX", "zipcode": 78701},
        "description": {"html": "<p>Lovely</p>"},
        "schools": [{"name": "Lee Elementary", "level": 3}],
        "priceHistory": [{"date": 20240501, "event": 5, "price": "$410,000"}],
        "taxHistory": {"2023": 6100},
        "carouselPhotos": {"url": "https://photos.zillowstatic.com/fp/x.jpg"},
    })

    assert detail.address == "7 Elm St, Austin, TX 78701"
    assert detail.description is None
    assert detail.schools[0].level == "3"
    assert detail.price_history[0].event == "5"
    assert detail.price_history[0].date == "20240501"
    assert detail.price_history[0].price == 410000
    assert detail.annual_tax is None
    assert detail.image_url is None


def test_normalize_non_finite_numbers_are_absent():
    record = normalize_property({"zpid": 8, "price": float("nan"), "latitude": float("inf")})

    assert record.price is None
    assert record.latitude is None


# ---------------------------------------------------------------------------
# Test 2 — search parsing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_properties_parses_props(zillow_client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/propertyExtendedSearch"
        return _json({
            "props": [
                {"zpid": "1", "address": "1 A St", "price": 500000, "livingArea": 1500},
                {"zpid": "2", "address": "2 B St", "price": 450000, "livingArea": 1400},
            ],
            "totalResultCount": 231,
            "currentPage": 1,
            "totalPages": 6,
        })

    page = await zillow_client(handler).search_properties(SearchFilters(location="Seattle, WA"))

    assert [r.id for r in page.records] == ["1", "2"]
    assert page.total_count == 231
    assert page.total_pages == 6


@pytest.mark.asyncio
async def test_search_single_home_answer(zillow_client):
    def handler(request):
        return _json({"zpid": 55, "address": "55 Exact Match Ln", "price": 610000})

    page = await zillow_client(handler).search_properties(SearchFilters(location="55 Exact Match Ln"))

    assert page.total_count == 1
    assert page.records[0].id == "55"


@pytest.mark.asyncio
async def test_coordinate_search_list_shape(zillow_client):
    def handler(request):
        assert request.url.path == "/propertyByCoordinates"
        assert request.url.params["lat"] == "30.27"
        assert request.url.params["status_type"] == "ForRent"
        return _json([{"property": {"zpid": 1, "price": 2400}}, {"property": {"zpid": 2}}])

    page = await zillow_client(handler).search_by_coordinates(30.27, -97.74, listing_intent="for-rent")

    assert page.total_count == 2
    assert page.records[1].price is None


@pytest.mark.asyncio
async def test_search_unexpected_shape_is_malformed(zillow_client):
    def handler(request):
        return _json({"message": "You are not subscribed to this API."})

    with pytest.raises(ProviderMalformedResponse):
        await zillow_client(handler).search_properties(SearchFilters(location="Austin, TX"))


# ---------------------------------------------------------------------------
# Test 3 — location resolution
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resolve_location_result_groups(zillow_client):
    def handler(request):
        assert request.url.params["q"] == "Austin"
        return _json({"resultGroups": [{"results": [
            {"display": "Austin, TX", "metaData": {"regionId": 10221, "regionType": "city",
                                                   "lat": 30.27, "lng": -97.74}},
            {"display": "Austin, MN", "metaData": {"regionType": "city", "lat": 43.66, "lng": -92.97}},
        ]}]})

    candidates = await zillow_client(handler).resolve_location("Austin")

    assert [c.display_name for c in candidates] == ["Austin, TX", "Austin, MN"]
    assert candidates[0].region_id == "10221"
    assert candidates[0].latitude == 30.27


@pytest.mark.asyncio
async def test_resolve_location_no_match_is_empty(zillow_client):
    candidates = await zillow_client(lambda r: _json({"resultGroups": []})).resolve_location("Xyzzy")
    assert candidates == []


@pytest.mark.asyncio
async def test_resolve_location_tolerates_odd_metadata(zillow_client):
    """
    GIVEN  suggestions with a list-valued regionType, an object regionId and
           a metaData that is a list instead of an object
    WHEN   they are resolved
    THEN   the odd values are dropped and both candidates survive.
    """
    def handler(request):
        return _json({"results": [
            {"display": "Hyde Park, Austin, TX",
             "metaData": {"regionType": ["neighborhood"], "regionId": {"id": 1}, "lat": 30.3, "lng": -97.73}},
            {"display": "Mueller, Austin, TX", "metaData": ["not", "an", "object"]},
        ]})

    candidates = await zillow_client(handler).resolve_location("Austin")

    assert [c.display_name for c in candidates] == ["Hyde Park, Austin, TX", "Mueller, Austin, TX"]
    assert candidates[0].region_type is None
    assert candidates[0].region_id is None
    assert candidates[0].latitude == 30.3
    assert candidates[1].latitude is None


@pytest.mark.asyncio
@pytest.mark.parametrize("meta", [
    {"lat": 95.0, "lng": -97.7},
    {"lat": 30.2, "lng": -200.0},
])
async def test_resolve_location_out_of_range_centroid_is_malformed(zillow_client, meta):
    def handler(request):
        return _json({"results": [{"display": "Nowhere", "metaData": meta}]})

    with pytest.raises(ProviderMalformedResponse):
        await zillow_client(handler).resolve_location("Nowhere")


# ---------------------------------------------------------------------------
# Test 4 — error mapping
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_timeout_maps_to_provider_unavailable(zillow_client):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderUnavailable):
        await zillow_client(handler).resolve_location("Seattle")


@pytest.mark.asyncio
async def test_connect_error_maps_to_provider_unavailable(zillow_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        await zillow_client(handler).get_property_detail("123")


@pytest.mark.asyncio
async def test_non_success_status_keeps_status_code(zillow_client):
    with pytest.raises(ProviderUnavailable) as info:
        await zillow_client(lambda r: _json({"message": "Too many requests"}, status=429)).resolve_location("Boise")

    assert info.value.status_code == 429
    assert info.value.code == "PROVIDER_UNAVAILABLE"


@pytest.mark.asyncio
async def test_non_json_body_is_malformed(zillow_client):
    def handler(request):
        return httpx.Response(200, content=b"<html>gateway</html>")

    with pytest.raises(ProviderMalformedResponse):
        await zillow_client(handler).resolve_location("Denver")


# ---------------------------------------------------------------------------
# Test 5 — request shape
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_auth_headers_and_filter_params(zillow_client):
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["params"] = dict(request.url.params)
        return _json({"props": [], "totalResultCount": 0})

    filters = SearchFilters(
        location="Portland, OR", listing_intent="for-rent", max_price=3000,
        bedrooms=2, property_type="apartment",
    )
    await zillow_client(handler).search_properties(filters)

    assert seen["headers"]["X-RapidAPI-Key"] == "test-key"
    assert seen["headers"]["X-RapidAPI-Host"] == "zillow-com1.p.rapidapi.com"
    assert seen["params"]["status_type"] == "ForRent"
    assert seen["params"]["rentMaxPrice"] == "3000"
    assert seen["params"]["bedsMin"] == "2"
    assert seen["params"]["home_type"] == "Apartments"
    assert "minPrice" not in seen["params"]


@pytest.mark.asyncio
async def test_invalid_coordinates_rejected_before_request(zillow_client):
    def handler(request):
        raise AssertionError("no request expected")

    client = zillow_client(handler)
    with pytest.raises(InvalidArgument):
        await client.search_by_coordinates(None, -97.7)
    with pytest.raises(InvalidArgument):
        await client.search_by_coordinates(float("nan"), -97.7)
    with pytest.raises(InvalidArgument):
        await client.search_by_coordinates(120.0, -97.7)


# ---------------------------------------------------------------------------
# Test 6 — valuation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_valuation_fills_rent_from_second_call(zillow_client):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.path == "/zestimate":
            return _json({"zestimate": 812000, "valuationRange": {"low": 770000, "high": 855000}})
        return _json({"rent": 3450})

    estimate = await zillow_client(handler).get_valuation_estimate("2077838")

    assert paths == ["/zestimate", "/rentEstimate"]
    assert estimate.estimate == 812000
    assert estimate.rent_estimate == 3450
    assert estimate.valuation_range.high == 855000


@pytest.mark.asyncio
async def test_valuation_rent_failure_leaves_rent_absent(zillow_client):
    def handler(request):
        if request.url.path == "/zestimate":
            return _json({"zestimate": 812000})
        return _json({"message": "error"}, status=500)

    estimate = await zillow_client(handler).get_valuation_estimate("2077838")

    assert estimate.estimate == 812000
    assert estimate.rent_estimate is None
