from .dispatcher import (
    AFFORDABILITY_TOOL,
    AREA_TOOL,
    MORTGAGE_TOOL,
    PRESENTATION,
    SEARCH_TOOL,
    ToolDispatcher,
)
from .provider import PropertyDataProvider, build_fallback, build_provider

TOOL_REGISTRY = {
    AREA_TOOL: {
        "name": AREA_TOOL,
        "title": "Zillow Areas & Neighborhoods",
        "description": (
            "Returns U.S. regions, areas, neighborhoods or cities with for-sale and/or "
            "for-rent listing counts for each area, based on a place name and optional "
            "property filters. Use for 'best places to live / buy / rent' questions."
        ),
        "parameters": {
            "location": "city, state, or region to search (required)",
            "propertyIntent": "for-sale | for-rent | both (default both)",
            "filters": "optional {minPrice, maxPrice, bedrooms, bathrooms, sqftMin, sqftMax, propertyType}",
        },
        "required": ["location"],
        "returns": (
            "up to 5 areas (name, counts, average price, centroid, description), "
            "up to 8 featured properties, total_results, using_mock_data"
        ),
        "presentation": PRESENTATION[AREA_TOOL],
    },
    AFFORDABILITY_TOOL: {
        "name": AFFORDABILITY_TOOL,
        "title": "Home Affordability Calculator",
        "description": (
            "Calculates how much house a user can afford. Works with no inputs or partial "
            "inputs. Uses a 43% debt-to-income target at the default 6.5% rate and adds "
            "property tax, insurance and PMI to the monthly payment."
        ),
        "parameters": {
            "annualIncome": "gross annual income in USD (default 75000)",
            "downPayment": "down payment in USD (default 50000)",
            "creditScore": "credit score 300-850 (default 720; echoed, not priced)",
            "monthlyDebts": "total monthly debt payments in USD (default 500)",
            "location": "optional location within the United States",
        },
        "required": [],
        "returns": (
            "max_home_price, max_loan_amount, monthly_payment, dti_ratio, "
            "breakdown (principal & interest, tax, insurance, PMI), assumptions"
        ),
        "presentation": PRESENTATION[AFFORDABILITY_TOOL],
    },
    MORTGAGE_TOOL: {
        "name": MORTGAGE_TOOL,
        "title": "Mortgage Rate & Payment Simulator",
        "description": (
            "Simulates a monthly mortgage payment from the current rate table for a "
            "home price, down payment and loan term. Focused on exploring rates and "
            "payments, not on the maximum affordable price."
        ),
        "parameters": {
            "homePrice": "home price in USD (default 400000)",
            "downPayment": "down payment in USD (default 80000)",
            "creditScore": "credit score 300-850 (default 720; echoed, not priced)",
            "location": "optional location to get rates for",
            "loanTerm": "15 | 30 (default 30)",
        },
        "required": [],
        "returns": (
            "interest_rate, apr (rate + 0.2 estimate), monthly_payment, total_payment, "
            "total_interest, available_rates"
        ),
        "presentation": PRESENTATION[MORTGAGE_TOOL],
    },
    SEARCH_TOOL: {
        "name": SEARCH_TOOL,
        "title": "Zillow Property Search",
        "description": (
            "Searches for U.S. real estate listings for sale or for rent. Supports "
            "filters for price, bedrooms, bathrooms, property type and size. Must comply "
            "with the U.S. Fair Housing Act and applicable state and local laws."
        ),
        "parameters": {
            "location": "city, zip code, or address to search (required)",
            "listingType": "for-sale | for-rent (default for-sale)",
            "minPrice": "optional minimum price",
            "maxPrice": "optional maximum price",
            "bedrooms": "optional minimum bedrooms",
            "bathrooms": "optional minimum bathrooms",
            "propertyType": "house | apartment | condo | townhouse | multi-family",
            "sqftMin": "optional minimum square footage",
            "sqftMax": "optional maximum square footage",
        },
        "required": ["location"],
        "returns": "up to 10 properties, total_results, current_page, total_pages, using_mock_data",
        "presentation": PRESENTATION[SEARCH_TOOL],
    },
}

__all__ = [
    "TOOL_REGISTRY",
    "ToolDispatcher",
    "PropertyDataProvider",
    "build_provider",
    "build_fallback",
]
