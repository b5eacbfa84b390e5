"""
Batch Generation Orchestrator

Turns the active roster into one payroll batch per (month, year):

1. validate the period and options, reporting every violation
2. return a conflict if the period already has a batch
3. load the active roster in stable employee-id order
4. compute each employee, recording failures without aborting the run
5. aggregate item fields into batch totals
6. persist the batch in ``draft``
7. return a summary

``preview`` runs steps 1 and 3-5 through the same computation path and
persists nothing, so its totals match what ``generate`` would store for an
unchanged roster.
"""

import calendar
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import List, Optional, Tuple, Union

from payroll_engine.core.config import settings
from payroll_engine.core.exceptions import (
    EmployeeComputationError,
    PayrollGenerationError,
    PayrollValidationError,
    PeriodConflictError,
)
from payroll_engine.core.money import ZERO
from payroll_engine.schemas.payroll import (
    BatchTotals,
    ConflictResult,
    EmployeeRecord,
    GenerationMetadata,
    GenerationOptions,
    GenerationResult,
    GenerationSummary,
    PayrollItemData,
    PreviewResult,
)
from payroll_engine.services import store as batch_store
from payroll_engine.services.audit import AuditService
from payroll_engine.services.computation import compute_employee_payroll, period_label
from payroll_engine.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)

# BatchTotals field -> PayrollItemData field
TOTALS_MAP = {
    "total_basic_salary": "basic_salary",
    "total_overtime_pay": "overtime_pay",
    "total_adjusted_gross": "adjusted_gross",
    "total_taxable_income": "taxable_income",
    "total_benefits": "total_benefits",
    "total_deductions": "total_deductions",
    "total_net_salary": "net_salary",
    "total_tax": "tax_amount",
    "total_pension": "pension_amount",
    "total_pension_tier1": "pension_tier1",
    "total_pension_tier2": "pension_tier2",
    "total_health_levy": "health_levy_amount",
    "total_housing_levy": "housing_levy_amount",
    "total_advances": "advances",
    "total_loans": "loans",
}


def validate_generation_request(
    month,
    year,
    options: GenerationOptions,
    today: Optional[date] = None
) -> None:
    """Raise ``PayrollValidationError`` listing every violation found."""
    today = today or date.today()
    min_year, max_year = settings.payroll.min_year, settings.payroll.max_year
    violations: List[str] = []

    if not _is_int(month) or not 1 <= month <= 12:
        violations.append("Month must be between 1 and 12")
    if not _is_int(year) or not min_year <= year <= max_year:
        violations.append(f"Year must be between {min_year} and {max_year}")
    if not _is_int(options.working_days) or not 1 <= options.working_days <= 31:
        violations.append("Working days must be between 1 and 31")
    if options.pay_date and options.pay_date < today:
        violations.append("Pay date cannot be in the past")
    if options.pay_date and options.cutoff_date and options.cutoff_date > options.pay_date:
        violations.append("Cutoff date cannot be after the pay date")

    if violations:
        raise PayrollValidationError(violations)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def default_pay_date(month: int, year: int) -> date:
    """First day of the month after the period."""
    return date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)


def default_cutoff_date(month: int, year: int) -> date:
    """Last day of the period month."""
    return date(year, month, calendar.monthrange(year, month)[1])


def new_batch_id(month: int, year: int) -> str:
    return f"PAYROLL-{year}-{month:02d}-{uuid.uuid4().hex[:12].upper()}"


def roster_order(record: EmployeeRecord) -> Tuple[bool, str]:
    return (record.id is None, str(record.id or ""))


def aggregate_totals(items: List[PayrollItemData]) -> BatchTotals:
    sums = {total: sum((getattr(item, field) for item in items), ZERO) for total, field in TOTALS_MAP.items()}
    return BatchTotals(total_employees=len(items), **sums)


class PayrollGenerator:
    def __init__(
        self,
        store: batch_store.SqlPayrollStore,
        directory: EmployeeDirectory,
        audit: Optional[AuditService] = None,
        max_workers: Optional[int] = None
    ):
        self.store = store
        self.directory = directory
        self.audit = audit
        self.max_workers = max_workers if max_workers is not None else settings.payroll.max_workers

    def generate(
        self,
        month: int,
        year: int,
        options: Optional[GenerationOptions] = None
    ) -> Union[GenerationResult, ConflictResult]:
        options = options or GenerationOptions()
        started = time.perf_counter()
        validate_generation_request(month, year, options)
        label = period_label(month, year)

        existing = self.store.find_by_period(month, year)
        if existing:
            logger.info(f"Payroll for {label} already exists as {existing.id}")
            return self._conflict(existing, label)

        logger.info(f"Starting payroll generation for {label}")
        items, metadata = self._compute_roster(month, year, options)
        totals = aggregate_totals(items)
        metadata.processing_time_ms = _elapsed_ms(started)

        batch_id = new_batch_id(month, year)
        row = batch_store.build_batch_row(
            batch_id,
            month,
            year,
            label,
            items,
            totals,
            metadata,
            pay_date=options.pay_date or default_pay_date(month, year),
            cutoff_date=options.cutoff_date or default_cutoff_date(month, year),
            generated_by=options.generated_by,
            notes=options.notes or None,
        )
        if self.audit:
            self.audit.log_action(
                action="generate_payroll",
                entity_type="payroll_batch",
                entity_id=batch_id,
                actor=options.generated_by,
                details={
                    "month": month,
                    "year": year,
                    "employees": totals.total_employees,
                    "errors": len(metadata.errors),
                },
                after_state={"status": row.status, "total_net_salary": totals.total_net_salary},
            )

        try:
            self.store.create(row)
        except PeriodConflictError:
            existing = self.store.find_by_period(month, year)
            if existing is None:
                raise
            logger.warning(f"Concurrent generation for {label}; keeping {existing.id}")
            return self._conflict(existing, label)

        processing_time = _elapsed_ms(started)
        logger.info(
            f"Payroll generated successfully: {batch_id} ({processing_time:.0f}ms)",
            extra={"batch_id": batch_id, "employees": totals.total_employees, "errors": len(metadata.errors)}
        )
        return GenerationResult(
            message=f"Payroll for {label} generated successfully",
            batch_id=batch_id,
            summary=self._summary(month, year, label, totals, metadata, processing_time, batch_id),
            metadata=metadata,
        )

    def preview(
        self,
        month: int,
        year: int,
        options: Optional[GenerationOptions] = None
    ) -> PreviewResult:
        options = options or GenerationOptions()
        started = time.perf_counter()
        validate_generation_request(month, year, options)
        label = period_label(month, year)
        items, metadata = self._compute_roster(month, year, options)
        totals = aggregate_totals(items)
        metadata.processing_time_ms = _elapsed_ms(started)

        return PreviewResult(
            summary=self._summary(month, year, label, totals, metadata, metadata.processing_time_ms),
            items=items,
            metadata=metadata,
        )

    def _compute_roster(
        self,
        month: int,
        year: int,
        options: GenerationOptions
    ) -> Tuple[List[PayrollItemData], GenerationMetadata]:
        roster = sorted(self.directory.list_active(), key=roster_order)
        if not roster:
            raise PayrollGenerationError("No active employees found with valid salaries")
        logger.info(f"Found {len(roster)} active employees")

        def compute(employee: EmployeeRecord):
            try:
                return compute_employee_payroll(employee, month, year, options.options_for(employee.id)), None
            except EmployeeComputationError as e:
                return None, e.message
            except Exception as e:
                logger.exception(f"Unexpected error computing payroll for employee {employee.id}")
                return None, f"Failed to calculate payroll for {employee.name or 'Unknown employee'} ({employee.id}): {e}"

        if self.max_workers > 1 and len(roster) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                # map() yields in submission order, i.e. roster order
                outcomes = list(pool.map(compute, roster))
        else:
            outcomes = [compute(employee) for employee in roster]

        items: List[PayrollItemData] = []
        metadata = GenerationMetadata()
        for employee, (item, error) in zip(roster, outcomes):
            if item is not None:
                items.append(item)
                continue
            logger.error(error)
            metadata.errors.append(error)
            metadata.warnings.append(f"Skipped {employee.name or employee.id} due to calculation error")

        if not items:
            raise PayrollGenerationError(
                "No valid payroll items generated. Check employee data and try again.",
                details={"errors": metadata.errors}
            )
        return items, metadata

    def _conflict(self, existing, label: str) -> ConflictResult:
        return ConflictResult(
            message=f"Payroll for {label} already exists",
            batch_id=existing.id,
            existing=batch_store.existing_info(existing),
        )

    @staticmethod
    def _summary(
        month: int,
        year: int,
        label: str,
        totals: BatchTotals,
        metadata: GenerationMetadata,
        processing_time: float,
        batch_id: Optional[str] = None
    ) -> GenerationSummary:
        return GenerationSummary(
            batch_id=batch_id,
            month=month,
            year=year,
            pay_period=label,
            total_employees=totals.total_employees,
            totals=totals,
            processing_time_ms=processing_time,
            errors_count=len(metadata.errors),
            warnings_count=len(metadata.warnings),
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
