"""
Zillow API client — live data via RapidAPI
==========================================
Host: zillow-com1.p.rapidapi.com (override with RAPIDAPI_HOST)
Auth: static RapidAPI key sent as X-RapidAPI-Key on every request.

Endpoints used (all GET, all read-only):
  /propertyExtendedSearch   — search by free-text location + filters
  /propertyByCoordinates    — search around a lat/lng
  /locationSuggestions      — place name → candidate regions with centroids
  /property                 — full detail for one zpid
  /zestimate, /rentEstimate — valuation for one zpid

Every call is bounded by a timeout (PROVIDER_TIMEOUT_SECONDS, default 10s).
There is no retry: a timeout, transport failure or non-2xx status raises
ProviderUnavailable; a body that is not the expected JSON shape raises
ProviderMalformedResponse. The dispatcher decides what to do with either.

Zillow's payloads name the same thing differently depending on the endpoint
(livingArea vs sqft, homeStatus vs listingStatus, address as a string or an
object ...). normalize_property() maps them through _FIELD_ALIASES into one
PropertyRecord; a field none of the aliases supply stays None.
"""

import math
import re
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .errors import ProviderMalformedResponse, ProviderUnavailable
from .log import get_logger
from .models import (
    AreaFilters,
    ListingIntent,
    LocationCandidate,
    PriceEvent,
    PropertyDetail,
    PropertyRecord,
    RateQuote,
    RateTable,
    School,
    SearchFilters,
    SearchPage,
    ValuationEstimate,
    ValuationRange,
)
from .provider import (
    PropertyDataProvider,
    check_coordinates,
    check_identifier,
    check_location_text,
)
from .settings import DEFAULT_RAPIDAPI_HOST, DEFAULT_TIMEOUT_SECONDS

logger = get_logger("zillow_api")

_ZILLOW_WEB = "https://www.zillow.com"

# ---------------------------------------------------------------------------
# Field normalization table: canonical name → provider aliases, first wins
# ---------------------------------------------------------------------------

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("zpid", "id", "propertyId"),
    "price": ("price", "unformattedPrice", "listPrice"),
    "bedrooms": ("bedrooms", "beds"),
    "bathrooms": ("bathrooms", "baths"),
    "living_area": ("livingArea", "sqft", "livingAreaValue", "area"),
    "property_type": ("propertyType", "homeType"),
    "listing_status": ("listingStatus", "homeStatus", "statusType"),
    "image_url": ("imgSrc", "imageUrl", "hiResImageLink"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "long"),
    "zestimate": ("zestimate",),
    "rent_zestimate": ("rentZestimate",),
    "detail_url": ("detailUrl", "hdpUrl"),
}

_INT_FIELDS = {"price", "bedrooms", "living_area", "zestimate", "rent_zestimate"}
_FLOAT_FIELDS = {"bathrooms", "latitude", "longitude"}

# Errors a payload of the wrong shape can raise while it is being normalized.
_MALFORMED = (ValidationError, TypeError, ValueError, AttributeError, KeyError, IndexError)

_STATUS_TYPE: dict[str, str] = {"for-sale": "ForSale", "for-rent": "ForRent"}

_HOME_TYPE: dict[str, str] = {
    "house": "Houses",
    "apartment": "Apartments",
    "condo": "Condos",
    "townhouse": "Townhomes",
    "multi-family": "Multi-family",
}

# The RapidAPI Zillow API has no rate endpoint; quotes are published
# estimates. Shared with the demo provider.
ESTIMATED_RATES: tuple[dict, ...] = (
    {"term": 30, "rate": 6.5, "apr": 6.7, "loan_type": "Conventional"},
    {"term": 15, "rate": 5.9, "apr": 6.1, "loan_type": "Conventional"},
    {"term": 30, "rate": 6.3, "apr": 6.5, "loan_type": "FHA"},
    {"term": 15, "rate": 5.7, "apr": 5.9, "loan_type": "FHA"},
)
RATES_DISCLAIMER = "Rates are estimates and may vary. Contact a lender for actual rates."


def estimated_rate_table(location: Optional[str] = None) -> RateTable:
    return RateTable(
        rates=[RateQuote(**row) for row in ESTIMATED_RATES],
        as_of=datetime.utcnow().isoformat(),
        location=location or "United States",
        disclaimer=RATES_DISCLAIMER,
    )


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        # "$425,000", "$2,100/mo", "1,850 sqft"
        cleaned = re.sub(r"[^\d.\-]", "", value.split("/")[0])
        if cleaned in ("", ".", "-"):
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    return None if number is None else int(round(number))


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _coordinate(value: Any, limit: float) -> Optional[float]:
    number = _as_float(value)
    if number is not None and abs(number) > limit:
        raise ProviderMalformedResponse(f"Coordinate {number} is out of range.")
    return number


def _first(raw: dict, aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _compose_address(raw: dict) -> Optional[str]:
    address = raw.get("address")
    if isinstance(address, str) and address.strip():
        return address.strip()

    parts = address if isinstance(address, dict) else raw
    street = _as_text(parts.get("streetAddress"))
    city = _as_text(parts.get("city"))
    state = _as_text(parts.get("state"))
    zipcode = _as_text(parts.get("zipcode"))
    if not any((street, city, state, zipcode)):
        return None
    locality = " ".join(p for p in (state, zipcode) if p)
    return ", ".join(p for p in (street, city, locality) if p)


def _image_url(raw: dict) -> Optional[str]:
    url = _first(raw, _FIELD_ALIASES["image_url"])
    if url:
        return str(url)
    photos = _as_list(raw.get("carouselPhotos"))
    if photos and isinstance(photos[0], dict):
        return _as_text(photos[0].get("url"))
    return None


def _detail_url(raw: dict) -> Optional[str]:
    url = _first(raw, _FIELD_ALIASES["detail_url"])
    if not url:
        return None
    url = str(url)
    return url if url.startswith("http") else f"{_ZILLOW_WEB}{url}"


def _canonical_fields(raw: dict) -> dict:
    fields: dict[str, Any] = {}
    for canonical, aliases in _FIELD_ALIASES.items():
        if canonical in ("id", "image_url", "detail_url"):
            continue
        value = _first(raw, aliases)
        if canonical in _INT_FIELDS:
            value = _as_int(value)
        elif canonical in _FLOAT_FIELDS:
            value = _as_float(value)
        elif value is not None:
            value = str(value)
        fields[canonical] = value

    fields["address"] = _compose_address(raw)
    fields["image_url"] = _image_url(raw)
    fields["detail_url"] = _detail_url(raw)
    return fields


def normalize_property(raw: dict) -> PropertyRecord:
    """Maps one provider listing onto the canonical PropertyRecord."""
    if not isinstance(raw, dict):
        raise ProviderMalformedResponse(f"Expected a listing object, got {type(raw).__name__}.")
    raw_id = _first(raw, _FIELD_ALIASES["id"])
    if raw_id is None:
        raise ProviderMalformedResponse("Listing is missing its zpid.")
    try:
        return PropertyRecord(id=str(raw_id), **_canonical_fields(raw))
    except _MALFORMED as exc:
        raise ProviderMalformedResponse(f"Listing {raw_id} could not be normalized.") from exc


def normalize_detail(raw: dict) -> PropertyDetail:
    """Maps a /property payload onto PropertyDetail; every extra is optional."""
    base = normalize_property(raw)
    try:
        return _detail_with_extras(raw, base)
    except _MALFORMED as exc:
        raise ProviderMalformedResponse(f"Property {base.id} detail could not be normalized.") from exc


def _detail_with_extras(raw: dict, base: PropertyRecord) -> PropertyDetail:
    schools = [
        School(
            name=str(s["name"]),
            rating=_as_float(s.get("rating")),
            distance=_as_float(s.get("distance")),
            level=_as_text(s.get("level")),
        )
        for s in _as_list(raw.get("schools"))
        if isinstance(s, dict) and s.get("name")
    ]

    history = [
        PriceEvent(
            date=_as_text(h.get("date")),
            event=_as_text(h.get("event")),
            price=_as_int(h.get("price")),
        )
        for h in _as_list(raw.get("priceHistory"))
        if isinstance(h, dict)
    ]

    comparables = []
    for item in _as_list(raw.get("nearbyHomes") or raw.get("comps")):
        try:
            comparables.append(normalize_property(item))
        except ProviderMalformedResponse:
            continue

    annual_tax = None
    tax_history = _as_list(raw.get("taxHistory"))
    if tax_history and isinstance(tax_history[0], dict):
        annual_tax = _as_int(tax_history[0].get("taxPaid"))
    if annual_tax is None:
        tax_rate = _as_float(raw.get("propertyTaxRate"))
        if tax_rate is not None and base.price is not None:
            annual_tax = round(base.price * tax_rate / 100)

    return PropertyDetail(
        **base.model_dump(),
        year_built=_as_int(raw.get("yearBuilt")),
        description=_as_text(raw.get("description")),
        schools=schools,
        annual_tax=annual_tax,
        annual_insurance=_as_int(raw.get("annualHomeownersInsurance")),
        price_history=history,
        comparables=comparables,
    )


def _search_page(data: Any, requested_page: int = 1) -> SearchPage:
    """Parses /propertyExtendedSearch and /propertyByCoordinates bodies."""
    if isinstance(data, list):
        # propertyByCoordinates: [{"property": {...}}, ...] or a bare list
        items = [item.get("property", item) if isinstance(item, dict) else item for item in data]
        records = [normalize_property(item) for item in items]
        return SearchPage(records=records, total_count=len(records), page=1, total_pages=1)

    if not isinstance(data, dict):
        raise ProviderMalformedResponse(f"Unexpected search response type {type(data).__name__}.")

    if "props" not in data:
        # A location that resolves to a single home returns that home directly.
        if "zpid" in data:
            record = normalize_property(data)
            return SearchPage(records=[record], total_count=1, page=1, total_pages=1)
        if "totalResultCount" in data:
            return SearchPage(records=[], total_count=_as_int(data["totalResultCount"]) or 0)
        raise ProviderMalformedResponse("Search response has neither 'props' nor 'zpid'.")

    props = data.get("props") or []
    if not isinstance(props, list):
        raise ProviderMalformedResponse("Search response 'props' is not a list.")

    records = [normalize_property(p) for p in props]
    total = _as_int(data.get("totalResultCount"))
    return SearchPage(
        records=records,
        total_count=total if total is not None else len(records),
        page=_as_int(data.get("currentPage")) or requested_page,
        total_pages=_as_int(data.get("totalPages")) or 1,
    )


def _location_candidates(data: Any) -> list[LocationCandidate]:
    if not isinstance(data, dict):
        raise ProviderMalformedResponse("Location suggestions response is not an object.")

    groups = data.get("resultGroups")
    if isinstance(groups, list) and groups:
        results = (groups[0].get("results") or []) if isinstance(groups[0], dict) else []
    else:
        results = data.get("results") or []
    if not isinstance(results, list):
        raise ProviderMalformedResponse("Location suggestions 'results' is not a list.")

    candidates = []
    for item in results:
        if not isinstance(item, dict):
            continue
        meta = item.get("metaData")
        if not isinstance(meta, dict):
            meta = {}
        name = _as_text(item.get("display") or item.get("name"))
        if not name:
            continue
        try:
            candidate = LocationCandidate(
                display_name=name,
                region_type=_as_text(meta.get("regionType") or item.get("resultType")),
                latitude=_coordinate(meta.get("lat"), 90),
                longitude=_coordinate(meta.get("lng"), 180),
                region_id=_as_text(meta.get("regionId")),
            )
        except _MALFORMED as exc:
            raise ProviderMalformedResponse(f"Location suggestion {name!r} could not be normalized.") from exc
        candidates.append(candidate)
    return candidates


def _number_param(value: Optional[float]) -> Optional[float | int]:
    if value is None:
        return None
    return int(value) if float(value).is_integer() else value


def _filter_params(
    listing_intent: ListingIntent,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    bedrooms: Optional[float] = None,
    bathrooms: Optional[float] = None,
    sqft_min: Optional[float] = None,
    sqft_max: Optional[float] = None,
    property_type: Optional[str] = None,
) -> dict:
    # Rentals are priced per month and filtered with their own parameters.
    price_prefix = "rent" if listing_intent == "for-rent" else ""
    min_key = f"{price_prefix}MinPrice" if price_prefix else "minPrice"
    max_key = f"{price_prefix}MaxPrice" if price_prefix else "maxPrice"
    return {
        "status_type": _STATUS_TYPE[listing_intent],
        "home_type": _HOME_TYPE.get(property_type) if property_type else None,
        min_key: _number_param(min_price),
        max_key: _number_param(max_price),
        "bedsMin": _number_param(bedrooms),
        "bathsMin": _number_param(bathrooms),
        "sqftMin": _number_param(sqft_min),
        "sqftMax": _number_param(sqft_max),
    }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ZillowApiClient(PropertyDataProvider):
    is_demo = False
    name = "zillow"

    def __init__(
        self,
        api_key: str,
        api_host: str = DEFAULT_RAPIDAPI_HOST,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_host = api_host
        self.base_url = f"https://{api_host}"
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport); None means real network.
        self._transport = transport

    async def _request(self, endpoint: str, params: dict) -> Any:
        query = {k: v for k, v in params.items() if v is not None}
        headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": self.api_host}
        logger.debug("GET %s%s params=%s", self.base_url, endpoint, query)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}{endpoint}", params=query, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Zillow %s timed out after %.1fs", endpoint, self.timeout)
            raise ProviderUnavailable(
                f"Zillow API timed out after {self.timeout:g}s on {endpoint}."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Zillow %s transport error: %s", endpoint, exc)
            raise ProviderUnavailable(f"Zillow API request to {endpoint} failed: {exc}") from exc

        if not resp.is_success:
            logger.warning("Zillow %s returned HTTP %s: %s", endpoint, resp.status_code, resp.text[:200])
            raise ProviderUnavailable(
                f"Zillow API error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderMalformedResponse(f"Zillow {endpoint} returned a non-JSON body.") from exc

    async def search_properties(self, filters: SearchFilters) -> SearchPage:
        location = check_location_text(filters.location)
        params = {
            "location": location,
            "page": filters.page,
            **_filter_params(
                filters.listing_intent,
                min_price=filters.min_price,
                max_price=filters.max_price,
                bedrooms=filters.bedrooms,
                bathrooms=filters.bathrooms,
                sqft_min=filters.sqft_min,
                sqft_max=filters.sqft_max,
                property_type=filters.property_type,
            ),
        }
        data = await self._request("/propertyExtendedSearch", params)
        page = _search_page(data, requested_page=filters.page)
        logger.info("Zillow search location=%r found %s listings", location, page.total_count)
        return page

    async def search_by_coordinates(
        self,
        latitude: float,
        longitude: float,
        listing_intent: ListingIntent = "for-sale",
        radius: Optional[float] = None,
        filters: Optional[AreaFilters] = None,
    ) -> SearchPage:
        check_coordinates(latitude, longitude)
        params: dict = {"lat": latitude, "long": longitude, "d": radius}
        if filters is not None:
            params.update(
                _filter_params(
                    listing_intent,
                    min_price=filters.min_price,
                    max_price=filters.max_price,
                    bedrooms=filters.bedrooms,
                    bathrooms=filters.bathrooms,
                    sqft_min=filters.sqft_min,
                    sqft_max=filters.sqft_max,
                    property_type=filters.property_type,
                )
            )
        else:
            params["status_type"] = _STATUS_TYPE[listing_intent]
        data = await self._request("/propertyByCoordinates", params)
        return _search_page(data)

    async def resolve_location(self, text: str) -> list[LocationCandidate]:
        text = check_location_text(text)
        data = await self._request("/locationSuggestions", {"q": text})
        return _location_candidates(data)

    async def get_property_detail(self, property_id: str) -> PropertyDetail:
        property_id = check_identifier(property_id)
        data = await self._request("/property", {"zpid": property_id})
        if not isinstance(data, dict):
            raise ProviderMalformedResponse("Property detail response is not an object.")
        data.setdefault("zpid", property_id)
        return normalize_detail(data)

    async def get_valuation_estimate(self, property_id: str) -> ValuationEstimate:
        property_id = check_identifier(property_id)
        data = await self._request("/zestimate", {"zpid": property_id})

        if isinstance(data, (int, float)) and not isinstance(data, bool):
            data = {"zestimate": data}
        if not isinstance(data, dict):
            raise ProviderMalformedResponse("Zestimate response is not an object.")

        rent = _as_int(_first(data, ("rentZestimate", "rentEstimate")))
        if rent is None:
            rent = await self._rent_estimate(property_id)

        valuation_range = None
        raw_range = data.get("valuationRange")
        if isinstance(raw_range, dict):
            low, high = _as_int(raw_range.get("low")), _as_int(raw_range.get("high"))
            if low is not None and high is not None:
                valuation_range = ValuationRange(low=low, high=high)

        return ValuationEstimate(
            id=property_id,
            estimate=_as_int(_first(data, ("zestimate", "value", "estimate"))),
            rent_estimate=rent,
            valuation_range=valuation_range,
            value_change=_as_int(data.get("valueChange")),
        )

    async def _rent_estimate(self, property_id: str) -> Optional[int]:
        """Second lookup for the rent figure; absent rather than fatal on failure."""
        try:
            data = await self._request("/rentEstimate", {"zpid": property_id})
        except (ProviderUnavailable, ProviderMalformedResponse) as exc:
            logger.info("Rent estimate unavailable for zpid=%s: %s", property_id, exc.message)
            return None
        if isinstance(data, dict):
            return _as_int(_first(data, ("rentZestimate", "rent", "median")))
        return _as_int(data)

    async def get_mortgage_rates(self, location: Optional[str] = None) -> RateTable:
        return estimated_rate_table(location)
