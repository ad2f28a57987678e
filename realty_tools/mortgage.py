"""
Mortgage & Affordability Calculations
=====================================
Pure, deterministic functions — no network, no hidden state.

  amortized_payment(principal, rate, term)      — fixed-rate monthly P&I
  max_loan_for_payment(payment, rate, term)     — inverse of the above
  max_affordable_price(income, down, ...)       — DTI-based buying power
  mortgage_payment(price, down, rate, term)     — payment, totals, APR estimate

Policy constants (not inputs):
  property tax 1.2%/yr, homeowners insurance 0.4%/yr,
  PMI 0.5%/yr of the loan when the down payment is under 20% of price.

Credit score is accepted and echoed back but does not tier the rate.
"""

import math

from .errors import InvalidInput, InvalidRate
from .models import AffordabilityResult, CostBreakdown, MortgagePaymentResult

DEFAULT_INTEREST_RATE = 6.5
DEFAULT_TARGET_DTI = 0.43
DEFAULT_TERM_YEARS = 30

PROPERTY_TAX_RATE = 0.012
INSURANCE_RATE = 0.004
PMI_RATE = 0.005
PMI_DOWN_PAYMENT_THRESHOLD = 0.20

# Fixed spread used to quote an APR next to the note rate. Not a real APR
# computation (no fees or points are modelled).
APR_OFFSET = 0.2


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _check_rate(annual_rate_percent: float) -> None:
    if not isinstance(annual_rate_percent, (int, float)) or not math.isfinite(annual_rate_percent):
        raise InvalidRate(f"Interest rate must be a finite number, got {annual_rate_percent!r}.")
    if annual_rate_percent <= 0:
        raise InvalidRate(f"Interest rate must be greater than 0%, got {annual_rate_percent}%.")


def _check_term(term_years: float) -> None:
    if not math.isfinite(term_years) or term_years <= 0:
        raise InvalidInput(f"Loan term must be a positive number of years, got {term_years}.")


def _check_non_negative(name: str, value: float) -> None:
    if not math.isfinite(value) or value < 0:
        raise InvalidInput(f"{name} must be a non-negative number, got {value}.")


def _growth(annual_rate_percent: float, term_years: float) -> tuple[float, float]:
    """Returns (monthly rate r, (1 + r) ** n)."""
    r = annual_rate_percent / 100 / 12
    n = term_years * 12
    return r, (1 + r) ** n


# ---------------------------------------------------------------------------
# Amortization
# ---------------------------------------------------------------------------

def amortized_payment(principal: float, annual_rate_percent: float, term_years: float) -> float:
    """
    Standard fixed-rate amortization:

        payment = P * r * (1 + r)^n / ((1 + r)^n - 1)

    with r the monthly rate and n the number of monthly payments. Returns the
    unrounded monthly payment. A zero or negative rate raises InvalidRate
    instead of dividing by zero.
    """
    _check_rate(annual_rate_percent)
    _check_term(term_years)
    _check_non_negative("Principal", principal)

    r, growth = _growth(annual_rate_percent, term_years)
    return principal * (r * growth) / (growth - 1)


def max_loan_for_payment(monthly_payment: float, annual_rate_percent: float, term_years: float) -> float:
    """Largest principal whose amortized payment equals monthly_payment."""
    _check_rate(annual_rate_percent)
    _check_term(term_years)
    _check_non_negative("Monthly payment", monthly_payment)

    r, growth = _growth(annual_rate_percent, term_years)
    return monthly_payment * (growth - 1) / (r * growth)


# ---------------------------------------------------------------------------
# Affordability
# ---------------------------------------------------------------------------

def max_affordable_price(
    annual_income: float,
    down_payment: float,
    credit_score: int,
    monthly_debts: float,
    interest_rate: float = DEFAULT_INTEREST_RATE,
    target_dti_ratio: float = DEFAULT_TARGET_DTI,
    term_years: int = DEFAULT_TERM_YEARS,
) -> AffordabilityResult:
    """
    Maximum home price a borrower can carry at the target debt-to-income ratio.

    The housing budget is what remains of ``income * DTI`` after existing
    monthly debts. That budget is turned into a loan amount by inverting the
    amortization formula, and the down payment is added on top. When existing
    debts already consume the budget the result is a purchase funded entirely
    by the down payment, with a zero monthly payment.

    The reported monthly payment is the sum of the cost breakdown
    (principal & interest, property tax, insurance, PMI), so tax, insurance
    and PMI are on top of the P&I budget and the resulting DTI can exceed the
    target.
    """
    _check_rate(interest_rate)
    _check_term(term_years)
    if not math.isfinite(annual_income) or annual_income <= 0:
        raise InvalidInput(f"Annual income must be greater than 0, got {annual_income}.")
    _check_non_negative("Down payment", down_payment)
    _check_non_negative("Monthly debts", monthly_debts)
    if not math.isfinite(target_dti_ratio) or not 0 < target_dti_ratio <= 1:
        raise InvalidInput(f"Target DTI ratio must be in (0, 1], got {target_dti_ratio}.")

    monthly_income = annual_income / 12
    housing_budget = monthly_income * target_dti_ratio - monthly_debts

    if housing_budget <= 0:
        max_loan = 0.0
        max_home_price = round(down_payment)
        breakdown = CostBreakdown(
            principal_and_interest=0, property_tax=0, insurance=0, pmi=0, total=0,
        )
    else:
        max_loan = max_loan_for_payment(housing_budget, interest_rate, term_years)
        max_home_price = round(max_loan + down_payment)

        principal_and_interest = round(amortized_payment(max_loan, interest_rate, term_years))
        property_tax = round(max_home_price * PROPERTY_TAX_RATE / 12)
        insurance = round(max_home_price * INSURANCE_RATE / 12)
        pmi = (
            round(max_loan * PMI_RATE / 12)
            if down_payment < max_home_price * PMI_DOWN_PAYMENT_THRESHOLD
            else 0
        )
        breakdown = CostBreakdown(
            principal_and_interest=principal_and_interest,
            property_tax=property_tax,
            insurance=insurance,
            pmi=pmi,
            total=principal_and_interest + property_tax + insurance + pmi,
        )

    monthly_payment = breakdown.total
    dti_ratio = round((monthly_payment + monthly_debts) / monthly_income * 100, 2)

    return AffordabilityResult(
        annual_income=annual_income,
        down_payment=down_payment,
        credit_score=credit_score,
        monthly_debts=monthly_debts,
        interest_rate=interest_rate,
        loan_term=term_years,
        max_home_price=max_home_price,
        max_loan_amount=round(max_loan),
        housing_budget=round(max(housing_budget, 0.0)),
        monthly_payment=monthly_payment,
        dti_ratio=dti_ratio,
        breakdown=breakdown,
        assumptions={
            "loan_term": term_years,
            "property_tax_rate": PROPERTY_TAX_RATE * 100,
            "insurance_rate": INSURANCE_RATE * 100,
            "pmi_rate": PMI_RATE * 100,
            "pmi_threshold_pct": PMI_DOWN_PAYMENT_THRESHOLD * 100,
            "max_dti_ratio": round(target_dti_ratio * 100, 2),
        },
    )


# ---------------------------------------------------------------------------
# Payment simulation
# ---------------------------------------------------------------------------

def mortgage_payment(
    home_price: float,
    down_payment: float,
    interest_rate: float,
    term_years: int = DEFAULT_TERM_YEARS,
) -> MortgagePaymentResult:
    """
    Monthly payment and lifetime totals for a fixed-rate loan.

    ``apr`` is ``interest_rate + 0.2``: a quoted estimate, not an APR derived
    from fees.
    """
    _check_rate(interest_rate)
    _check_term(term_years)
    if not math.isfinite(home_price) or home_price <= 0:
        raise InvalidInput(f"Home price must be greater than 0, got {home_price}.")
    _check_non_negative("Down payment", down_payment)
    if down_payment > home_price:
        raise InvalidInput(
            f"Down payment ({down_payment:,.0f}) cannot exceed the home price ({home_price:,.0f})."
        )

    loan_amount = home_price - down_payment
    monthly = round(amortized_payment(loan_amount, interest_rate, term_years))
    total_payment = monthly * int(term_years * 12)

    return MortgagePaymentResult(
        home_price=home_price,
        down_payment=down_payment,
        loan_amount=loan_amount,
        interest_rate=interest_rate,
        loan_term=term_years,
        monthly_payment=monthly,
        total_payment=total_payment,
        total_interest=round(total_payment - loan_amount, 2),
        apr=round(interest_rate + APR_OFFSET, 3),
    )
