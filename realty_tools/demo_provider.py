"""
Demo provider — fixed sample data, works offline
=================================================
Used when no RAPIDAPI_KEY is configured, and as the fallback when the live
Zillow client fails mid-request (ENABLE_DEMO_FALLBACK=true).

Dataset:
  - two areas per query ("<query> - Downtown", "<query> - Suburbs")
    with fixed for-sale / for-rent counts
  - two featured homes (Capitol Hill, Queen Anne) on the areas' sale pages
  - two search listings ("123 Main St", "456 Oak Ave") echoing the
    caller's bedroom / bathroom / type filters
  - the four-row estimated rate table shared with the live client

Every payload built from this provider carries using_mock_data=True.
"""

from typing import Optional

from .models import (
    AreaFilters,
    ListingIntent,
    LocationCandidate,
    PropertyDetail,
    PropertyRecord,
    RateTable,
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
from .zillow_api import estimated_rate_table

PLACEHOLDER_IMAGE = "https://via.placeholder.com/400x300"

# ---------------------------------------------------------------------------
# Demo areas: keyed by centroid so coordinate searches find their counts
# ---------------------------------------------------------------------------

_DEMO_AREAS: tuple[dict, ...] = (
    {
        "suffix": "Downtown",
        "latitude": 47.6062, "longitude": -122.3321,
        "for_sale": 45, "for_rent": 32,
        "featured": {
            "id": "1",
            "address": "Capitol Hill, WA",
            "price": 450000,
            "bedrooms": 2, "bathrooms": 2.0, "living_area": 1100,
            "property_type": "condo",
            "listing_status": "FOR_SALE",
            "image_url": "https://photos.zillowstatic.com/fp/d6025c6891ff0e4f6c3b1b5e1eac3f09-cc_ft_768.webp",
            "latitude": 47.6205, "longitude": -122.3209,
        },
    },
    {
        "suffix": "Suburbs",
        "latitude": 47.6205, "longitude": -122.3209,
        "for_sale": 120, "for_rent": 85,
        "featured": {
            "id": "2",
            "address": "Queen Anne, WA",
            "price": 350000,
            "bedrooms": 3, "bathrooms": 2.0, "living_area": 1900,
            "property_type": "house",
            "listing_status": "FOR_SALE",
            "image_url": "https://photos.zillowstatic.com/fp/3c4e2d3c1b8f7e9a5c6d8e2f3a4b5c6d-cc_ft_768.webp",
            "latitude": 47.6369, "longitude": -122.3573,
        },
    },
)

_STATUS_LABEL: dict[str, str] = {"for-sale": "FOR_SALE", "for-rent": "FOR_RENT"}


def _area_at(latitude: float, longitude: float) -> Optional[dict]:
    for area in _DEMO_AREAS:
        if abs(area["latitude"] - latitude) < 1e-6 and abs(area["longitude"] - longitude) < 1e-6:
            return area
    return None


# ---------------------------------------------------------------------------
# Demo listings
# ---------------------------------------------------------------------------

def _demo_listings(filters: SearchFilters) -> list[PropertyRecord]:
    location = filters.location
    bedrooms = int(filters.bedrooms) if filters.bedrooms else 3
    property_type = filters.property_type or "house"
    status = _STATUS_LABEL[filters.listing_intent]
    return [
        PropertyRecord(
            id="1",
            address=f"123 Main St, {location}",
            price=425000,
            bedrooms=bedrooms,
            bathrooms=filters.bathrooms or 2,
            living_area=2000,
            property_type=property_type,
            listing_status=status,
            image_url=PLACEHOLDER_IMAGE,
        ),
        PropertyRecord(
            id="2",
            address=f"456 Oak Ave, {location}",
            price=385000,
            bedrooms=bedrooms,
            bathrooms=2.5,
            living_area=1850,
            property_type=property_type,
            listing_status=status,
            image_url=PLACEHOLDER_IMAGE,
        ),
    ]


class DemoProvider(PropertyDataProvider):
    is_demo = True
    name = "demo"

    async def search_properties(self, filters: SearchFilters) -> SearchPage:
        check_location_text(filters.location)
        records = _demo_listings(filters)
        return SearchPage(records=records, total_count=len(records), page=1, total_pages=1)

    async def search_by_coordinates(
        self,
        latitude: float,
        longitude: float,
        listing_intent: ListingIntent = "for-sale",
        radius: Optional[float] = None,
        filters: Optional[AreaFilters] = None,
    ) -> SearchPage:
        check_coordinates(latitude, longitude)
        area = _area_at(latitude, longitude)
        if area is None:
            return SearchPage()

        if listing_intent == "for-rent":
            return SearchPage(total_count=area["for_rent"])
        featured = PropertyRecord(**area["featured"])
        return SearchPage(records=[featured], total_count=area["for_sale"])

    async def resolve_location(self, text: str) -> list[LocationCandidate]:
        text = check_location_text(text)
        return [
            LocationCandidate(
                display_name=f"{text} - {area['suffix']}",
                region_type="neighborhood",
                latitude=area["latitude"],
                longitude=area["longitude"],
            )
            for area in _DEMO_AREAS
        ]

    async def get_property_detail(self, property_id: str) -> PropertyDetail:
        property_id = check_identifier(property_id)
        return PropertyDetail(
            id=property_id,
            address="123 Main St, Seattle, WA 98101",
            price=425000,
            bedrooms=3,
            bathrooms=2,
            living_area=2000,
            property_type="house",
            listing_status="FOR_SALE",
            image_url=PLACEHOLDER_IMAGE,
            latitude=47.6062,
            longitude=-122.3321,
            zestimate=431000,
            rent_zestimate=2650,
            year_built=1998,
            description="Demo listing. Set RAPIDAPI_KEY for real property data.",
            annual_tax=5100,
            annual_insurance=1700,
        )

    async def get_valuation_estimate(self, property_id: str) -> ValuationEstimate:
        property_id = check_identifier(property_id)
        return ValuationEstimate(
            id=property_id,
            estimate=431000,
            rent_estimate=2650,
            valuation_range=ValuationRange(low=409000, high=453000),
            value_change=3200,
        )

    async def get_mortgage_rates(self, location: Optional[str] = None) -> RateTable:
        return estimated_rate_table(location)
