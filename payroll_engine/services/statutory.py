"""
Statutory Deduction Calculator

Pure functions turning a taxable income into the statutory deduction lines:
health levy (SHIF), tiered pension contribution (NSSF), housing levy and
progressive income tax (PAYE). No I/O, no session, no clock.

Every line is rounded half-up to a whole currency unit on its own, so callers
can sum lines without introducing rounding drift.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from payroll_engine.core.money import ZERO, round_whole, to_decimal
from payroll_engine.schemas.payroll import (
    DeductionCategory,
    DeductionLine,
    PensionBreakdown,
    StatutorySummary,
)

logger = logging.getLogger(__name__)

HEALTH_LEVY = "SHIF"
PENSION = "NSSF"
HOUSING_LEVY = "Housing Levy"
INCOME_TAX = "PAYE"

STATUTORY_TYPES = (HEALTH_LEVY, PENSION, HOUSING_LEVY, INCOME_TAX)

HEALTH_LEVY_RATE = Decimal("0.0275")
HOUSING_LEVY_RATE = Decimal("0.015")

PENSION_RATE = Decimal("0.06")
PENSION_LOWER_LIMIT = Decimal("8000")
PENSION_UPPER_LIMIT = Decimal("72000")
PENSION_CAP = Decimal("4320")

TAX_FREE_THRESHOLD = Decimal("24000")
PERSONAL_RELIEF = Decimal("2400")
# (upper bound of band, rate); None means unbounded
TAX_BANDS: Tuple[Tuple[Optional[Decimal], Decimal], ...] = (
    (Decimal("32333"), Decimal("0.25")),
    (Decimal("500000"), Decimal("0.30")),
    (Decimal("800000"), Decimal("0.325")),
    (None, Decimal("0.35")),
)


def is_statutory_type(deduction_type: Optional[str]) -> bool:
    if not deduction_type:
        return False
    normalized = deduction_type.strip().casefold()
    return any(normalized == t.casefold() for t in STATUTORY_TYPES)


def _positive_income(income: Any) -> Optional[Decimal]:
    value = to_decimal(income)
    if value is None or value <= 0:
        return None
    return value


def _pension_tiers(income: Decimal) -> Tuple[Decimal, Decimal, Decimal, Decimal]:
    """Returns (tier1_base, tier2_base, tier1_amount, tier2_amount), unrounded."""
    tier1_base = min(income, PENSION_LOWER_LIMIT)
    tier2_base = max(ZERO, min(income, PENSION_UPPER_LIMIT) - PENSION_LOWER_LIMIT)
    return tier1_base, tier2_base, tier1_base * PENSION_RATE, tier2_base * PENSION_RATE


def calculate_income_tax(income: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Progressive tax on income above the tax-free threshold.

    Returns (gross_tax, net_tax): gross before personal relief, net after it
    and floored at zero. Both unrounded.
    """
    if income <= TAX_FREE_THRESHOLD:
        return ZERO, ZERO

    gross_tax = ZERO
    lower = TAX_FREE_THRESHOLD
    for upper, rate in TAX_BANDS:
        if income <= lower:
            break
        top = income if upper is None else min(income, upper)
        gross_tax += (top - lower) * rate
        if upper is None:
            break
        lower = upper

    return gross_tax, max(gross_tax - PERSONAL_RELIEF, ZERO)


def calculate_statutory_deductions(taxable_income: Any) -> List[DeductionLine]:
    """
    Compute the ordered statutory deduction lines for a taxable income.

    Returns an empty list for zero, negative or non-numeric income; callers
    must validate positivity before relying on a non-empty result.
    """
    income = _positive_income(taxable_income)
    if income is None:
        logger.warning(f"Invalid taxable income provided for statutory deductions: {taxable_income!r}")
        return []

    lines: List[DeductionLine] = []

    lines.append(DeductionLine(
        type=HEALTH_LEVY,
        amount=round_whole(income * HEALTH_LEVY_RATE),
        recurring=True,
        category=DeductionCategory.STATUTORY,
        description="Social Health Insurance Fund (2.75% of gross salary)",
    ))

    tier1_base, tier2_base, tier1, tier2 = _pension_tiers(income)
    uncapped = tier1 + tier2
    pension = min(uncapped, PENSION_CAP)
    if tier2_base > 0:
        description = f"NSSF - Tier 1: 6% on {tier1_base:,.0f} + Tier 2: 6% on {tier2_base:,.0f}"
    else:
        description = f"NSSF Tier 1: 6% on {tier1_base:,.0f}"
    if uncapped > PENSION_CAP:
        description += f" (capped at {PENSION_CAP:,.0f})"
    lines.append(DeductionLine(
        type=PENSION,
        amount=round_whole(pension),
        recurring=True,
        category=DeductionCategory.STATUTORY,
        description=description,
        details={
            "tier1": round_whole(tier1),
            "tier2": round_whole(tier2),
            "tier1_base": tier1_base,
            "tier2_base": tier2_base,
        },
    ))

    lines.append(DeductionLine(
        type=HOUSING_LEVY,
        amount=round_whole(income * HOUSING_LEVY_RATE),
        recurring=True,
        category=DeductionCategory.STATUTORY,
        description="Affordable Housing Levy (1.5% of gross)",
    ))

    gross_tax, tax = calculate_income_tax(income)
    if gross_tax > 0:
        tax_description = f"Progressive PAYE on income above {TAX_FREE_THRESHOLD:,.0f} (less {PERSONAL_RELIEF:,.0f} personal relief)"
    else:
        tax_description = f"No PAYE (income at or below {TAX_FREE_THRESHOLD:,.0f})"
    lines.append(DeductionLine(
        type=INCOME_TAX,
        amount=round_whole(tax),
        recurring=True,
        category=DeductionCategory.STATUTORY,
        description=tax_description,
        details={
            "gross_tax": round_whole(gross_tax),
            "personal_relief": PERSONAL_RELIEF if gross_tax > 0 else ZERO,
        },
    ))

    logger.debug(
        "Calculated statutory deductions",
        extra={"income": str(income), "lines": {line.type: str(line.amount) for line in lines}},
    )
    return lines


def statutory_amounts(lines: List[DeductionLine]) -> Dict[str, Decimal]:
    """Map each statutory type to its amount (zero when absent)."""
    amounts = {t: ZERO for t in STATUTORY_TYPES}
    for line in lines:
        if line.category == DeductionCategory.STATUTORY and line.type in amounts:
            amounts[line.type] = line.amount
    return amounts


def pension_breakdown(income: Any) -> Optional[PensionBreakdown]:
    """Employee and matching employer contribution per tier, each side capped."""
    value = _positive_income(income)
    if value is None:
        return None

    tier1_base, tier2_base, tier1, tier2 = _pension_tiers(value)
    uncapped = tier1 + tier2
    total_employee = round_whole(min(uncapped, PENSION_CAP))
    # Employer matches the employee contribution at the same rate and cap
    total_employer = total_employee
    return PensionBreakdown(
        income=value,
        lower_limit=PENSION_LOWER_LIMIT,
        upper_limit=PENSION_UPPER_LIMIT,
        tier1_base=tier1_base,
        tier2_base=tier2_base,
        tier1_employee=round_whole(tier1),
        tier1_employer=round_whole(tier1),
        tier2_employee=round_whole(tier2),
        tier2_employer=round_whole(tier2),
        total_employee=total_employee,
        total_employer=total_employer,
        total_contribution=total_employee + total_employer,
        is_capped=uncapped > PENSION_CAP,
    )


def statutory_summary(income: Any) -> StatutorySummary:
    lines = calculate_statutory_deductions(income)
    value = to_decimal(income)
    total = sum((line.amount for line in lines), ZERO)
    base = value if value is not None else ZERO
    return StatutorySummary(
        income=base,
        deductions=lines,
        total_deductions=total,
        net_after_statutory=base - total,
        breakdown=statutory_amounts(lines),
        pension=pension_breakdown(income),
    )
