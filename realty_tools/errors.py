"""
Typed errors shared by the provider client, the calculation engine and the
tool dispatcher. Every error carries a stable ``code`` that ends up in the
``error`` block of a failed tool envelope:

    {"code": "PROVIDER_UNAVAILABLE", "message": "..."}
"""


class RealtyToolsError(Exception):
    code = "REALTY_TOOLS_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------

class InvalidArgument(RealtyToolsError):
    """Bad or missing tool input. Raised before any network call is made."""
    code = "INVALID_ARGUMENT"


class UnknownTool(InvalidArgument):
    code = "UNKNOWN_TOOL"


# ---------------------------------------------------------------------------
# External data provider
# ---------------------------------------------------------------------------

class ProviderError(RealtyToolsError):
    """Base for failures talking to the property-data provider."""
    code = "PROVIDER_ERROR"


class ProviderUnavailable(ProviderError):
    """Network failure, timeout, or a non-success HTTP status."""
    code = "PROVIDER_UNAVAILABLE"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderMalformedResponse(ProviderError):
    """The provider answered, but not in a shape we can parse."""
    code = "PROVIDER_MALFORMED_RESPONSE"


# ---------------------------------------------------------------------------
# Calculation engine
# ---------------------------------------------------------------------------

class CalculationError(RealtyToolsError):
    code = "CALCULATION_ERROR"


class InvalidRate(CalculationError):
    """Zero, negative or non-finite interest rate."""
    code = "INVALID_RATE"


class InvalidInput(CalculationError):
    """Calculation precondition violated (negative loan, zero income, ...)."""
    code = "INVALID_INPUT"
