"""
Per-Employee Payroll Computation

Combines basic salary, attendance and overtime, resolved benefits, statutory
deductions and custom deductions into one employee's payroll item.

This is an explicit, side-effect free function. Nothing recomputes net pay
implicitly when an employee record is saved.

Order of operations:
1. daily rate and overtime pay
2. adjusted gross (pro-rated basic + overtime)
3. benefits against adjusted gross
4. statutory deductions against taxable income (adjusted gross + benefits)
5. custom deductions minus reserved statutory types, plus advance/loan lines
6. totals
7. net salary
"""

import calendar
from decimal import Decimal
from typing import List, Optional

from payroll_engine.core.exceptions import EmployeeComputationError
from payroll_engine.core.money import ZERO, round_cents, to_decimal
from payroll_engine.schemas.payroll import (
    DeductionCategory,
    DeductionLine,
    EmployeeRecord,
    PayrollItemData,
    PayrollOptions,
)
from payroll_engine.services import statutory
from payroll_engine.services.benefits import resolve_benefits

HOURS_PER_DAY = Decimal("8")


def period_label(month: int, year: int) -> str:
    if isinstance(month, int) and 1 <= month <= 12:
        return f"{calendar.month_name[month]} {year}"
    return f"Unknown {year}"


def _require_amount(employee: EmployeeRecord, value, field: str, allow_zero: bool = True) -> Decimal:
    amount = to_decimal(value)
    if amount is None:
        raise EmployeeComputationError(employee.id, employee.name, f"{field} is missing or not numeric ({value!r})")
    if amount < 0 or (not allow_zero and amount == 0):
        raise EmployeeComputationError(employee.id, employee.name, f"{field} must be {'non-negative' if allow_zero else 'positive'} (got {amount})")
    return amount


def _custom_deductions(
    employee: EmployeeRecord,
    month: int,
    year: int,
    extra_advance: Decimal,
    extra_loan: Decimal,
) -> List[DeductionLine]:
    lines = [
        line.model_copy(update={
            "amount": round_cents(line.amount),
            "category": DeductionCategory.CUSTOM
            if line.category == DeductionCategory.STATUTORY else line.category,
        })
        for line in employee.deductions
        if not statutory.is_statutory_type(line.type)
    ]

    label = period_label(month, year)
    if extra_advance > 0:
        lines.append(DeductionLine(
            type="Advance Payment",
            amount=round_cents(extra_advance),
            recurring=False,
            category=DeductionCategory.ADVANCE,
            description=f"Advance payment for {label}",
        ))
    if extra_loan > 0:
        lines.append(DeductionLine(
            type="Loan Repayment",
            amount=round_cents(extra_loan),
            recurring=True,
            category=DeductionCategory.LOAN,
            description=f"Loan repayment for {label}",
        ))
    return lines


def compute_employee_payroll(
    employee: EmployeeRecord,
    month: int,
    year: int,
    options: Optional[PayrollOptions] = None,
) -> PayrollItemData:
    """
    Compute one employee's payroll item for a period.

    Raises:
        EmployeeComputationError: a required field (id, salary) is missing or
            not numeric, the directory could not read the record, or the
            attendance/overtime options are invalid.
    """
    options = options or PayrollOptions()

    if not employee.id:
        raise EmployeeComputationError(employee.id, employee.name, "employee id is missing")
    if employee.load_error:
        raise EmployeeComputationError(employee.id, employee.name, employee.load_error)
    basic_salary = round_cents(_require_amount(employee, employee.gross_salary, "salary"))

    working_days = options.working_days
    if working_days < 1:
        raise EmployeeComputationError(employee.id, employee.name, f"working days must be at least 1 (got {working_days})")
    days_worked = _require_amount(
        employee,
        options.days_worked if options.days_worked is not None else working_days,
        "days worked",
    )
    overtime_hours = _require_amount(employee, options.overtime_hours, "overtime hours")
    overtime_rate = _require_amount(employee, options.overtime_rate, "overtime rate")
    extra_advance = _require_amount(employee, options.extra_advance, "advance")
    extra_loan = _require_amount(employee, options.extra_loan, "loan")

    # 1. Overtime
    daily_rate = basic_salary / working_days
    overtime_pay = round_cents(daily_rate / HOURS_PER_DAY * overtime_hours * overtime_rate)

    # 2. Adjusted gross
    if days_worked == working_days:
        adjusted_gross = round_cents(basic_salary + overtime_pay)
    else:
        adjusted_gross = round_cents(basic_salary * days_worked / working_days + overtime_pay)

    # 3. Benefits
    benefits = resolve_benefits(adjusted_gross, employee.benefit_overrides, employee.excluded_benefits)
    total_benefits = sum((b.amount for b in benefits), ZERO)

    # 4. Statutory deductions
    taxable_income = adjusted_gross + total_benefits
    statutory_lines = statutory.calculate_statutory_deductions(taxable_income)

    # 5. Custom deductions
    custom_lines = _custom_deductions(employee, month, year, extra_advance, extra_loan)

    # 6. Totals
    deductions = statutory_lines + custom_lines
    total_deductions = sum((d.amount for d in deductions), ZERO)

    # 7. Net
    net_salary = adjusted_gross + total_benefits - total_deductions

    amounts = statutory.statutory_amounts(statutory_lines)
    pension_line = next((d for d in statutory_lines if d.type == statutory.PENSION), None)
    pension_details = pension_line.details if pension_line else {}

    return PayrollItemData(
        employee_id=employee.id,
        employee_name=employee.name or employee.id,
        employee_number=employee.employee_number,
        month=month,
        year=year,
        working_days=working_days,
        days_worked=days_worked,
        overtime_hours=overtime_hours,
        overtime_rate=overtime_rate,
        basic_salary=basic_salary,
        overtime_pay=overtime_pay,
        adjusted_gross=adjusted_gross,
        taxable_income=taxable_income,
        deductions=deductions,
        benefits=benefits,
        total_benefits=total_benefits,
        total_deductions=total_deductions,
        net_salary=net_salary,
        tax_amount=amounts[statutory.INCOME_TAX],
        pension_amount=amounts[statutory.PENSION],
        pension_tier1=pension_details.get("tier1", ZERO),
        pension_tier2=pension_details.get("tier2", ZERO),
        health_levy_amount=amounts[statutory.HEALTH_LEVY],
        housing_levy_amount=amounts[statutory.HOUSING_LEVY],
        advances=round_cents(extra_advance),
        loans=round_cents(extra_loan),
    )
