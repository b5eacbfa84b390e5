"""
Benefit Resolver

Resolves an employee's benefit lines from a fixed registry of benefit types,
applying per-employee overrides and exclusions.
"""

from decimal import Decimal
from typing import Any, Callable, Iterable, List, Mapping, NamedTuple, Optional

from payroll_engine.core.money import ZERO, round_whole, to_decimal
from payroll_engine.schemas.payroll import BenefitLine


class BenefitType(NamedTuple):
    name: str
    default_amount: Callable[[Decimal], Decimal]
    recurring: bool = True


def _percent_of_gross(rate: str) -> Callable[[Decimal], Decimal]:
    factor = Decimal(rate)
    return lambda gross: gross * factor


def _flat(amount: str) -> Callable[[Decimal], Decimal]:
    value = Decimal(amount)
    return lambda gross: value


# Order is the order lines appear on a payslip
BENEFIT_REGISTRY: List[BenefitType] = [
    BenefitType("Medical Insurance", _percent_of_gross("0.02")),
    BenefitType("Transport Allowance", _flat("3000")),
    BenefitType("Housing Allowance", _percent_of_gross("0.15")),
    BenefitType("Meal Allowance", _flat("2000")),
    BenefitType("Phone Allowance", _flat("1000")),
    # Variable, performance-linked pay
    BenefitType("Overtime", _flat("0"), recurring=False),
    BenefitType("Commission", _flat("0"), recurring=False),
]

BENEFIT_TYPES = tuple(b.name for b in BENEFIT_REGISTRY)


def resolve_benefits(
    gross_income: Decimal,
    overrides: Optional[Mapping[str, Any]] = None,
    excluded: Iterable[str] = (),
) -> List[BenefitLine]:
    """
    Build the benefit lines for one employee.

    Excluded types are left out entirely. An override wins when it is a real
    number; anything else falls back to the registry default for
    ``gross_income``. Amounts are rounded to whole units and never negative.
    """
    overrides = overrides or {}
    excluded_types = set(excluded or ())
    lines: List[BenefitLine] = []

    for benefit in BENEFIT_REGISTRY:
        if benefit.name in excluded_types:
            continue
        amount = to_decimal(overrides.get(benefit.name))
        if amount is None:
            amount = benefit.default_amount(gross_income)
        lines.append(BenefitLine(
            type=benefit.name,
            amount=max(round_whole(amount), ZERO),
            recurring=benefit.recurring,
        ))

    return lines

