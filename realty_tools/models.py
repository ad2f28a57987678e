"""
Canonical data shapes.

Entities are request-scoped and immutable once built. Optional fields use
``None`` for "unknown" so a consumer can tell zero bedrooms from a listing
that simply did not report them.

Tool argument models accept the camelCase keys used on the wire
(``annualIncome``, ``listingType`` ...) as well as the snake_case field names,
and ignore any key they do not know.
"""

from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field

ListingIntent = Literal["for-sale", "for-rent"]
AreaIntent = Literal["for-sale", "for-rent", "both"]
PropertyType = Literal["house", "apartment", "condo", "townhouse", "multi-family"]


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


class _Args(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


def _required_location(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("location must be a non-empty string")
    return value


def _optional_location(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


Location = Annotated[str, AfterValidator(_required_location)]
OptionalLocation = Annotated[Optional[str], AfterValidator(_optional_location)]


# ---------------------------------------------------------------------------
# Search input
# ---------------------------------------------------------------------------

class SearchFilters(_Entity):
    location: Location
    listing_intent: ListingIntent = "for-sale"
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    sqft_min: Optional[float] = None
    sqft_max: Optional[float] = None
    property_type: Optional[PropertyType] = None
    page: int = Field(default=1, ge=1)


# ---------------------------------------------------------------------------
# Provider records
# ---------------------------------------------------------------------------

class PropertyRecord(_Entity):
    id: str
    address: Optional[str] = None
    price: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    living_area: Optional[int] = None
    property_type: Optional[str] = None
    listing_status: Optional[str] = None
    image_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    zestimate: Optional[int] = None
    rent_zestimate: Optional[int] = None
    detail_url: Optional[str] = None


class School(_Entity):
    name: str
    rating: Optional[float] = None
    distance: Optional[float] = None
    level: Optional[str] = None


class PriceEvent(_Entity):
    date: Optional[str] = None
    event: Optional[str] = None
    price: Optional[int] = None


class PropertyDetail(PropertyRecord):
    year_built: Optional[int] = None
    description: Optional[str] = None
    schools: list[School] = Field(default_factory=list)
    annual_tax: Optional[int] = None
    annual_insurance: Optional[int] = None
    price_history: list[PriceEvent] = Field(default_factory=list)
    comparables: list[PropertyRecord] = Field(default_factory=list)


class ValuationRange(_Entity):
    low: int
    high: int


class ValuationEstimate(_Entity):
    id: str
    estimate: Optional[int] = None
    rent_estimate: Optional[int] = None
    valuation_range: Optional[ValuationRange] = None
    value_change: Optional[int] = None


class LocationCandidate(_Entity):
    display_name: str
    region_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    region_id: Optional[str] = None


class SearchPage(_Entity):
    records: list[PropertyRecord] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    total_pages: int = 1


class RateQuote(_Entity):
    term: int
    rate: float
    apr: float
    loan_type: str


class RateTable(_Entity):
    rates: list[RateQuote]
    as_of: str
    location: str
    disclaimer: str


# ---------------------------------------------------------------------------
# Tool payloads
# ---------------------------------------------------------------------------

class AreaSummary(_Entity):
    name: str
    region_type: str = "neighborhood"
    # None when the count lookup for this area failed; 0 is a real count.
    for_sale_count: Optional[int] = None
    for_rent_count: Optional[int] = None
    average_price: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: str = ""


class CostBreakdown(_Entity):
    principal_and_interest: int
    property_tax: int
    insurance: int
    pmi: int
    total: int


class AffordabilityResult(_Entity):
    annual_income: float
    down_payment: float
    credit_score: int
    monthly_debts: float
    interest_rate: float
    loan_term: int
    max_home_price: int
    max_loan_amount: int
    housing_budget: int
    monthly_payment: int
    dti_ratio: float
    breakdown: CostBreakdown
    assumptions: dict


class MortgagePaymentResult(_Entity):
    home_price: float
    down_payment: float
    loan_amount: float
    interest_rate: float
    loan_term: int
    monthly_payment: int
    total_payment: int
    total_interest: float
    apr: float


# ---------------------------------------------------------------------------
# Tool arguments
# ---------------------------------------------------------------------------

class AreaFilters(_Args):
    min_price: Optional[float] = Field(default=None, alias="minPrice")
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    sqft_min: Optional[float] = Field(default=None, alias="sqftMin")
    sqft_max: Optional[float] = Field(default=None, alias="sqftMax")
    property_type: Optional[PropertyType] = Field(default=None, alias="propertyType")


class AreaLookupArgs(_Args):
    location: Location
    property_intent: AreaIntent = Field(
        default="both",
        validation_alias=AliasChoices("propertyIntent", "propertyType", "property_intent"),
    )
    filters: Optional[AreaFilters] = None


class AffordabilityArgs(_Args):
    annual_income: Optional[float] = Field(default=None, alias="annualIncome")
    down_payment: Optional[float] = Field(default=None, alias="downPayment")
    credit_score: Optional[int] = Field(default=None, alias="creditScore")
    monthly_debts: Optional[float] = Field(default=None, alias="monthlyDebts")
    location: OptionalLocation = None


class MortgageRateArgs(_Args):
    home_price: Optional[float] = Field(default=None, alias="homePrice")
    down_payment: Optional[float] = Field(default=None, alias="downPayment")
    credit_score: Optional[int] = Field(default=None, alias="creditScore")
    location: OptionalLocation = None
    loan_term: Literal[15, 30] = Field(default=30, alias="loanTerm")


class PropertySearchArgs(_Args):
    location: Location
    listing_type: ListingIntent = Field(
        default="for-sale",
        validation_alias=AliasChoices("listingType", "listingIntent", "listing_type"),
    )
    min_price: Optional[float] = Field(default=None, alias="minPrice")
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    property_type: Optional[PropertyType] = Field(default=None, alias="propertyType")
    sqft_min: Optional[float] = Field(default=None, alias="sqftMin")
    sqft_max: Optional[float] = Field(default=None, alias="sqftMax")

    def to_filters(self) -> SearchFilters:
        return SearchFilters(
            location=self.location,
            listing_intent=self.listing_type,
            min_price=self.min_price,
            max_price=self.max_price,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            sqft_min=self.sqft_min,
            sqft_max=self.sqft_max,
            property_type=self.property_type,
        )
