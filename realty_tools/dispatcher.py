"""
Tool dispatcher — tool name + flat arguments → result envelope
===============================================================
Four tools:
  zillow_city_neighborhood_real_estate_information  — areas + listing counts
  calculateHomeAffordability                          — DTI-based buying power
  interestRateMortgagePaymentSimulator                — rates + monthly payment
  zillow_property_search                              — listings for a location

Handlers take (provider, args) and never ask which provider they got.
ToolDispatcher.call() runs a handler against the primary provider; when that
raises ProviderError and a fallback provider is configured, the SAME handler
is re-run from scratch against the fallback. A response is therefore either
entirely live or entirely demo, and says which via ``using_mock_data``.

call() never raises. Every outcome is an envelope:
  {tool_name, success, tool_result_id, timestamp, summary_text,
   result, presentation, error?}
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from .errors import InvalidArgument, ProviderError, RealtyToolsError, UnknownTool
from .log import get_logger
from .models import (
    AffordabilityArgs,
    AreaLookupArgs,
    AreaSummary,
    ListingIntent,
    LocationCandidate,
    MortgageRateArgs,
    PropertyRecord,
    PropertySearchArgs,
    SearchFilters,
    SearchPage,
)
from .mortgage import DEFAULT_INTEREST_RATE, max_affordable_price, mortgage_payment
from .provider import PropertyDataProvider, valid_coordinates

logger = get_logger("dispatcher")

AREA_TOOL = "zillow_city_neighborhood_real_estate_information"
AFFORDABILITY_TOOL = "calculateHomeAffordability"
MORTGAGE_TOOL = "interestRateMortgagePaymentSimulator"
SEARCH_TOOL = "zillow_property_search"

MAX_AREAS = 5
MAX_FEATURED = 8
FEATURED_PER_AREA = 2
MAX_SEARCH_RESULTS = 10

DEFAULT_ANNUAL_INCOME = 75000
DEFAULT_AFFORDABILITY_DOWN_PAYMENT = 50000
DEFAULT_CREDIT_SCORE = 720
DEFAULT_MONTHLY_DEBTS = 500
DEFAULT_HOME_PRICE = 400000
DEFAULT_MORTGAGE_DOWN_PAYMENT = 80000

DEFAULT_LOCATION_LABEL = "United States"
DEMO_SUFFIX = " (using demo data - set RAPIDAPI_KEY for real data)"
INTERNAL_ERROR_MESSAGE = "Unexpected error while running the tool."

PRESENTATION: dict[str, dict] = {
    AREA_TOOL: {
        "template_id": "ui://widget/zillow-areas.html",
        "invoking_label": "Working with Zillow to find areas",
        "invoked_label": "Loaded areas with Zillow",
    },
    AFFORDABILITY_TOOL: {
        "template_id": "ui://widget/zillow-buyability.html",
        "invoking_label": "Working with Zillow Home Loans (NMLS ID#: 10287) to calculate affordability",
        "invoked_label": "Loaded affordability calculator with Zillow Home Loans (NMLS ID#: 10287)",
    },
    MORTGAGE_TOOL: {
        "template_id": None,
        "invoking_label": "Working with Zillow Home Loans (NMLS ID#: 10287) to get rates and monthly payment",
        "invoked_label": "Displayed rates and monthly payment from Zillow Home Loans (NMLS ID#: 10287)",
    },
    SEARCH_TOOL: {
        "template_id": "ui://widget/zillow-property-search.html",
        "invoking_label": "Working with Zillow to find properties",
        "invoked_label": "Loaded properties with Zillow",
    },
}

_NO_PRESENTATION = {"template_id": None, "invoking_label": None, "invoked_label": None}


# ---------------------------------------------------------------------------
# Invocation logging  (in-memory, no sensitive data stored)
# ---------------------------------------------------------------------------

_invocation_log: list[dict] = []
_MAX_LOG_ENTRIES = 500  # prevent unbounded growth


def _log_invocation(
    function: str,
    query: str,
    duration_ms: float,
    success: bool,
    using_mock_data: bool = False,
) -> None:
    """
    Records a single tool call to the in-memory log.
    query is truncated to 80 chars — no sensitive data stored.
    """
    entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "function": function,
        "query": query[:80],
        "duration_ms": round(duration_ms, 1),
        "success": success,
        "using_mock_data": using_mock_data,
    }
    _invocation_log.append(entry)
    if len(_invocation_log) > _MAX_LOG_ENTRIES:
        del _invocation_log[: len(_invocation_log) - _MAX_LOG_ENTRIES]


def get_invocation_log() -> list[dict]:
    """Returns a copy of the invocation log. Called by the /tools/log endpoint."""
    return list(_invocation_log)


def clear_invocation_log() -> None:
    _invocation_log.clear()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def _money(value: float) -> str:
    return f"${value:,.0f}"


def _with_demo_suffix(text: str, using_mock_data: bool) -> str:
    if not using_mock_data:
        return text
    return text.rstrip(".") + DEMO_SUFFIX + "."


def _listing_dict(record: PropertyRecord, listing_type: Optional[str] = None) -> dict:
    data = record.model_dump()
    if listing_type:
        data["listing_type"] = listing_type
    return data


def _featured_dict(record: PropertyRecord) -> dict:
    data = record.model_dump()
    data["subtitle"] = record.listing_status or "For Sale"
    data["description"] = (
        f"{record.property_type or 'Property'} - "
        f"{record.bedrooms or 0} bed, {record.bathrooms or 0} bath"
    )
    return data


def _average_price(records: list[PropertyRecord]) -> Optional[int]:
    prices = [r.price for r in records if r.price is not None]
    if not prices:
        return None
    return round(sum(prices) / len(prices))


# ---------------------------------------------------------------------------
# AreaLookup
# ---------------------------------------------------------------------------

def _intents(property_intent: str) -> list[ListingIntent]:
    if property_intent == "both":
        return ["for-sale", "for-rent"]
    return [property_intent]


def _area_description(name: str, for_sale: Optional[int], for_rent: Optional[int]) -> str:
    if for_sale is None and for_rent is None:
        return f"{name} - listing counts unavailable"
    text = f"{name} - {for_sale or 0} homes for sale"
    if for_rent:
        text += f", {for_rent} for rent"
    return text


def _build_area(
    name: str,
    region_type: Optional[str],
    latitude: Optional[float],
    longitude: Optional[float],
    pages: Optional[dict[str, SearchPage]],
) -> tuple[AreaSummary, list[PropertyRecord]]:
    """pages is None when the count lookup failed; an intent not searched counts 0."""
    if pages is None:
        counts: dict[str, Optional[int]] = {"for-sale": None, "for-rent": None}
        sample: list[PropertyRecord] = []
    else:
        counts = {intent: (pages[intent].total_count if intent in pages else 0)
                  for intent in ("for-sale", "for-rent")}
        first = pages.get("for-sale") or pages.get("for-rent")
        sample = list(first.records) if first else []

    summary = AreaSummary(
        name=name,
        region_type=region_type or "neighborhood",
        for_sale_count=counts["for-sale"],
        for_rent_count=counts["for-rent"],
        average_price=_average_price(sample),
        latitude=latitude,
        longitude=longitude,
        description=_area_description(name, counts["for-sale"], counts["for-rent"]),
    )
    return summary, sample


def _raise_unexpected(results: list) -> None:
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, ProviderError):
            raise result


async def _summarize_candidate(
    provider: PropertyDataProvider,
    candidate: LocationCandidate,
    args: AreaLookupArgs,
) -> tuple[AreaSummary, list[PropertyRecord]]:
    name = candidate.display_name
    if not valid_coordinates(candidate.latitude, candidate.longitude):
        logger.info("Area %r has no usable centroid; skipping count searches", name)
        return _build_area(name, candidate.region_type, None, None, None)

    intents = _intents(args.property_intent)
    # Every search settles before this returns, so no request outlives the call.
    results = await asyncio.gather(
        *(
            provider.search_by_coordinates(
                candidate.latitude,
                candidate.longitude,
                listing_intent=intent,
                filters=args.filters,
            )
            for intent in intents
        ),
        return_exceptions=True,
    )
    _raise_unexpected(results)
    failures = [r for r in results if isinstance(r, ProviderError)]
    if failures:
        logger.warning(
            "Count search failed for %r at %s,%s: %s",
            name, candidate.latitude, candidate.longitude, failures[0].message,
        )
        pages = None
    else:
        pages = dict(zip(intents, results))

    return _build_area(name, candidate.region_type, candidate.latitude, candidate.longitude, pages)


async def _area_from_text_search(
    provider: PropertyDataProvider, args: AreaLookupArgs
) -> tuple[AreaSummary, list[PropertyRecord]]:
    """Single area named after the query, for places the resolver does not know."""
    filters = args.filters
    pages: dict[str, SearchPage] = {}
    for intent in _intents(args.property_intent):
        search = SearchFilters(
            location=args.location,
            listing_intent=intent,
            min_price=filters.min_price if filters else None,
            max_price=filters.max_price if filters else None,
            bedrooms=filters.bedrooms if filters else None,
            bathrooms=filters.bathrooms if filters else None,
            sqft_min=filters.sqft_min if filters else None,
            sqft_max=filters.sqft_max if filters else None,
            property_type=filters.property_type if filters else None,
        )
        pages[intent] = await provider.search_properties(search)

    sample = (pages.get("for-sale") or pages["for-rent"]).records
    located = [r for r in sample if r.latitude is not None and r.longitude is not None]
    latitude = located[0].latitude if located else None
    longitude = located[0].longitude if located else None
    return _build_area(args.location, "region", latitude, longitude, pages)


async def area_lookup(provider: PropertyDataProvider, args: AreaLookupArgs) -> tuple[dict, str]:
    candidates = (await provider.resolve_location(args.location))[:MAX_AREAS]

    if candidates:
        # gather preserves argument order, so areas follow candidate order.
        built = await asyncio.gather(
            *(_summarize_candidate(provider, c, args) for c in candidates),
            return_exceptions=True,
        )
        for outcome in built:
            if isinstance(outcome, BaseException):
                raise outcome
    else:
        logger.info("No location candidates for %r; falling back to text search", args.location)
        built = [await _area_from_text_search(provider, args)]

    areas = [summary for summary, _ in built]
    featured: list[dict] = []
    for _, sample in built:
        for record in sample[:FEATURED_PER_AREA]:
            if len(featured) >= MAX_FEATURED:
                break
            featured.append(_featured_dict(record))

    total_results = sum(a.for_sale_count or 0 for a in areas)
    payload = {
        "location": args.location,
        "property_intent": args.property_intent,
        "areas": [a.model_dump() for a in areas],
        "featured_properties": featured,
        "filters": args.filters.model_dump() if args.filters else None,
        "total_results": total_results,
        "using_mock_data": provider.is_demo,
    }
    if provider.is_demo:
        summary = f"Found {len(areas)} areas in {args.location}."
    else:
        summary = f"Found {len(areas)} areas in {args.location} with {total_results} properties available."
    return payload, _with_demo_suffix(summary, provider.is_demo)


# ---------------------------------------------------------------------------
# AffordabilityLookup
# ---------------------------------------------------------------------------

async def affordability_lookup(
    provider: PropertyDataProvider, args: AffordabilityArgs
) -> tuple[dict, str]:
    result = max_affordable_price(
        annual_income=args.annual_income or DEFAULT_ANNUAL_INCOME,
        down_payment=args.down_payment if args.down_payment is not None else DEFAULT_AFFORDABILITY_DOWN_PAYMENT,
        credit_score=args.credit_score or DEFAULT_CREDIT_SCORE,
        monthly_debts=args.monthly_debts if args.monthly_debts is not None else DEFAULT_MONTHLY_DEBTS,
    )

    latitude = longitude = None
    resolved_by_demo = False
    if args.location:
        # Coordinates are for display only; the calculation stands without them.
        try:
            candidates = await provider.resolve_location(args.location)
        except ProviderError as exc:
            logger.info("Could not resolve %r for display: %s", args.location, exc.message)
        else:
            if candidates:
                latitude, longitude = candidates[0].latitude, candidates[0].longitude
                resolved_by_demo = provider.is_demo

    payload = {
        **result.model_dump(),
        "location": args.location or DEFAULT_LOCATION_LABEL,
        "latitude": latitude,
        "longitude": longitude,
        "using_mock_data": resolved_by_demo,
    }
    summary = (
        f"Based on your financial profile, you can afford a home up to "
        f"{_money(result.max_home_price)} with an estimated monthly payment of "
        f"{_money(result.monthly_payment)}. Your DTI ratio is {result.dti_ratio}%."
    )
    return payload, _with_demo_suffix(summary, resolved_by_demo)


# ---------------------------------------------------------------------------
# MortgageRateLookup
# ---------------------------------------------------------------------------

async def mortgage_rate_lookup(
    provider: PropertyDataProvider, args: MortgageRateArgs
) -> tuple[dict, str]:
    table = await provider.get_mortgage_rates(args.location)
    quote = next((q for q in table.rates if q.term == args.loan_term), None)
    rate = quote.rate if quote else DEFAULT_INTEREST_RATE

    result = mortgage_payment(
        home_price=args.home_price or DEFAULT_HOME_PRICE,
        down_payment=args.down_payment if args.down_payment is not None else DEFAULT_MORTGAGE_DOWN_PAYMENT,
        interest_rate=rate,
        term_years=args.loan_term,
    )

    payload = {
        **result.model_dump(),
        "location": args.location or DEFAULT_LOCATION_LABEL,
        "credit_score": args.credit_score or DEFAULT_CREDIT_SCORE,
        "available_rates": [q.model_dump() for q in table.rates],
        "rates_as_of": table.as_of,
        "disclaimer": table.disclaimer,
        "using_mock_data": provider.is_demo,
    }
    summary = (
        f"Current {args.loan_term}-year mortgage rate: {result.interest_rate}% "
        f"(APR: {result.apr}%). For a {_money(result.home_price)} home with "
        f"{_money(result.down_payment)} down, your estimated monthly payment "
        f"would be {_money(result.monthly_payment)}."
    )
    return payload, _with_demo_suffix(summary, provider.is_demo)


# ---------------------------------------------------------------------------
# PropertySearch
# ---------------------------------------------------------------------------

async def property_search(
    provider: PropertyDataProvider, args: PropertySearchArgs
) -> tuple[dict, str]:
    page = await provider.search_properties(args.to_filters())
    records = page.records[:MAX_SEARCH_RESULTS]
    total = page.total_count or len(records)

    payload = {
        "location": args.location,
        "listing_type": args.listing_type,
        "filters": {
            "min_price": args.min_price,
            "max_price": args.max_price,
            "bedrooms": args.bedrooms,
            "bathrooms": args.bathrooms,
            "property_type": args.property_type,
            "sqft_min": args.sqft_min,
            "sqft_max": args.sqft_max,
        },
        "properties": [_listing_dict(r, args.listing_type) for r in records],
        "total_results": total,
        "current_page": page.page,
        "total_pages": page.total_pages,
        "using_mock_data": provider.is_demo,
    }
    summary = f"Found {total} properties in {args.location} matching your criteria."
    if len(records) < total:
        summary += f" Showing {len(records)} results."
    return payload, _with_demo_suffix(summary, provider.is_demo)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

Handler = Callable[[PropertyDataProvider, Any], Awaitable[tuple[dict, str]]]

_HANDLERS: dict[str, tuple[type[BaseModel], Handler]] = {
    AREA_TOOL: (AreaLookupArgs, area_lookup),
    AFFORDABILITY_TOOL: (AffordabilityArgs, affordability_lookup),
    MORTGAGE_TOOL: (MortgageRateArgs, mortgage_rate_lookup),
    SEARCH_TOOL: (PropertySearchArgs, property_search),
}


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{field}: {err.get('msg', 'invalid value')}")
    return "Invalid arguments — " + "; ".join(parts)


def _query_for_log(arguments: dict) -> str:
    location = arguments.get("location")
    if isinstance(location, str) and location:
        return location
    return ",".join(sorted(arguments))


class ToolDispatcher:
    """
    Routes tool calls to their handlers with one fallback policy for all.

    ``provider`` is used first. ``fallback`` (normally the demo provider, or
    None) answers the whole call when ``provider`` raises ProviderError.
    """

    def __init__(self, provider: PropertyDataProvider, fallback: Optional[PropertyDataProvider] = None):
        self.provider = provider
        self.fallback = fallback

    @property
    def tool_names(self) -> list[str]:
        return list(_HANDLERS)

    async def _run(self, name: str, handler: Handler, args: BaseModel) -> tuple[dict, str]:
        try:
            return await handler(self.provider, args)
        except ProviderError as exc:
            if self.fallback is None:
                raise
            logger.warning(
                "%s failed on %s provider (%s: %s); answering from %s provider",
                name, self.provider.name, exc.code, exc.message, self.fallback.name,
            )
            return await handler(self.fallback, args)

    def _envelope(self, name: str, success: bool, summary: str,
                  result: Optional[dict] = None, error: Optional[dict] = None) -> dict:
        now = datetime.utcnow()
        envelope = {
            "tool_name": name,
            "success": success,
            "tool_result_id": f"{name}_{int(now.timestamp() * 1000)}",
            "timestamp": now.isoformat(),
            "summary_text": summary,
            "result": result,
            "presentation": dict(PRESENTATION.get(name, _NO_PRESENTATION)),
        }
        if error is not None:
            envelope["error"] = error
        return envelope

    async def call(self, name: str, arguments: Optional[dict] = None) -> dict:
        """Runs one tool call. Never raises; failures come back as error envelopes."""
        start = time.time()
        arguments = arguments if isinstance(arguments, dict) else {}
        query = _query_for_log(arguments)

        try:
            if name not in _HANDLERS:
                raise UnknownTool(
                    f"Unknown tool '{name}'. Available tools: {', '.join(_HANDLERS)}."
                )
            args_model, handler = _HANDLERS[name]
            try:
                args = args_model.model_validate(arguments)
            except ValidationError as exc:
                raise InvalidArgument(_validation_message(exc)) from exc

            payload, summary = await self._run(name, handler, args)
        except RealtyToolsError as exc:
            logger.info("%s failed: %s %s", name, exc.code, exc.message)
            _log_invocation(name, query, (time.time() - start) * 1000, False)
            return self._envelope(name, False, exc.message, error=exc.to_dict())
        except Exception:
            # Exception text stays in the server log.
            logger.exception("%s raised an unexpected error", name)
            _log_invocation(name, query, (time.time() - start) * 1000, False)
            return self._envelope(
                name, False, INTERNAL_ERROR_MESSAGE,
                error={"code": "INTERNAL_ERROR", "message": INTERNAL_ERROR_MESSAGE},
            )

        using_mock_data = bool(payload.get("using_mock_data"))
        _log_invocation(name, query, (time.time() - start) * 1000, True, using_mock_data)
        return self._envelope(name, True, summary, result=payload)
