"""
Persistent Payroll Store

SQLAlchemy-backed persistence for payroll batches. Period uniqueness is
enforced by the ``uq_payroll_batches_period`` constraint at write time;
status changes are compare-and-swap updates on the current status.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from payroll_engine.core.exceptions import PeriodConflictError
from payroll_engine.core.money import ZERO, round_cents
from payroll_engine.models.payroll import PayrollBatch, PayrollItem, PayrollStatus
from payroll_engine.models.payroll_line import LineKind, PayrollLine
from payroll_engine.schemas.payroll import (
    BatchAnalytics,
    BatchTotals,
    BenefitLine,
    DeductionLine,
    ExistingBatchInfo,
    GenerationMetadata,
    PayrollBatchDetails,
    PayrollBatchListing,
    PayrollItemData,
    PayrollStatistics,
)

logger = logging.getLogger(__name__)

# PayrollItemData field -> persisted column; identical names on both sides
ITEM_COLUMNS = (
    "employee_id", "employee_name", "employee_number",
    "working_days", "days_worked", "overtime_hours", "overtime_rate",
    "basic_salary", "overtime_pay", "adjusted_gross", "taxable_income",
    "total_benefits", "total_deductions", "net_salary",
    "tax_amount", "pension_amount", "pension_tier1", "pension_tier2",
    "health_levy_amount", "housing_levy_amount", "advances", "loans",
)

TOTAL_COLUMNS = tuple(name for name in BatchTotals.model_fields)

PERIOD_CONSTRAINT = "uq_payroll_batches_period"


class SqlPayrollStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_period(self, month: int, year: int) -> Optional[PayrollBatch]:
        return self.db.query(PayrollBatch).filter(
            PayrollBatch.month == month,
            PayrollBatch.year == year
        ).first()

    def get(self, batch_id: str) -> Optional[PayrollBatch]:
        return self.db.query(PayrollBatch).options(
            selectinload(PayrollBatch.items).selectinload(PayrollItem.lines)
        ).filter(PayrollBatch.id == batch_id).first()

    def create(self, batch: PayrollBatch) -> str:
        """
        Persist a new batch (and anything else pending in the session).

        Raises:
            PeriodConflictError: a batch for the same (month, year) was
                written first. The session is rolled back.
            IntegrityError: any other constraint failure, after rollback.
        """
        self.db.add(batch)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if not _is_period_clash(e):
                raise
            logger.warning(
                f"Payroll period {batch.month:02d}/{batch.year} already persisted",
                extra={"batch_id": batch.id, "error": str(e.orig)}
            )
            raise PeriodConflictError(batch.month, batch.year) from e
        except Exception:
            self.db.rollback()
            raise
        return batch.id

    def update_status(self, batch_id: str, expected_status: str, patch: Dict[str, Any]) -> bool:
        """Apply ``patch`` only if the batch is still in ``expected_status``."""
        result = self.db.execute(
            update(PayrollBatch)
            .where(PayrollBatch.id == batch_id, PayrollBatch.status == expected_status)
            .values(**patch)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def list(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[PayrollBatch]:
        query = self.db.query(PayrollBatch)
        if year is not None:
            query = query.filter(PayrollBatch.year == year)
        if month is not None:
            query = query.filter(PayrollBatch.month == month)
        if status is not None:
            query = query.filter(PayrollBatch.status == status)
        return query.order_by(
            PayrollBatch.year.desc(), PayrollBatch.month.desc()
        ).offset(offset).limit(limit).all()

    def statistics(self, year: int) -> PayrollStatistics:
        row = self.db.query(
            func.count(PayrollBatch.id),
            func.sum(PayrollBatch.total_adjusted_gross),
            func.sum(PayrollBatch.total_net_salary),
            func.sum(PayrollBatch.total_deductions),
            func.avg(PayrollBatch.total_employees),
        ).filter(
            PayrollBatch.year == year,
            PayrollBatch.status != PayrollStatus.CANCELLED.value
        ).one()
        count, gross, net, deductions, avg_employees = row
        return PayrollStatistics(
            year=year,
            total_payrolls=count or 0,
            total_adjusted_gross=_money(gross),
            total_net_salary=_money(net),
            total_deductions=_money(deductions),
            average_employees=_money(avg_employees),
        )


def _is_period_clash(error: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite names the columns
    message = str(error.orig)
    return PERIOD_CONSTRAINT in message or "payroll_batches.month, payroll_batches.year" in message


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return round_cents(Decimal(str(value)))


def build_batch_row(
    batch_id: str,
    month: int,
    year: int,
    pay_period: str,
    items: List[PayrollItemData],
    totals: BatchTotals,
    metadata: GenerationMetadata,
    **fields: Any
) -> PayrollBatch:
    """Map computed items and totals onto a new draft ``PayrollBatch`` row."""
    batch = PayrollBatch(
        id=batch_id,
        month=month,
        year=year,
        pay_period=pay_period,
        status=PayrollStatus.DRAFT.value,
        generation_metadata=metadata.model_dump(mode="json"),
        **{name: getattr(totals, name) for name in TOTAL_COLUMNS},
        **fields
    )
    for position, item in enumerate(items):
        row = PayrollItem(position=position, **{name: getattr(item, name) for name in ITEM_COLUMNS})
        lines = [(LineKind.DEDUCTION, d) for d in item.deductions] + [(LineKind.BENEFIT, b) for b in item.benefits]
        for line_position, (kind, line) in enumerate(lines):
            row.lines.append(PayrollLine(
                position=line_position,
                kind=kind.value,
                category=line.category.value if kind == LineKind.DEDUCTION else None,
                type=line.type,
                amount=line.amount,
                recurring=line.recurring,
                description=getattr(line, "description", None),
            ))
        batch.items.append(row)
    return batch


def item_from_row(batch: PayrollBatch, row: PayrollItem) -> PayrollItemData:
    deductions = [
        DeductionLine(
            type=line.type,
            amount=line.amount,
            recurring=line.recurring,
            description=line.description,
            category=line.category,
        )
        for line in row.lines if line.kind == LineKind.DEDUCTION.value
    ]
    benefits = [
        BenefitLine(type=line.type, amount=line.amount, recurring=line.recurring)
        for line in row.lines if line.kind == LineKind.BENEFIT.value
    ]
    return PayrollItemData(
        month=batch.month,
        year=batch.year,
        deductions=deductions,
        benefits=benefits,
        **{name: getattr(row, name) for name in ITEM_COLUMNS}
    )


def batch_analytics(totals: BatchTotals) -> BatchAnalytics:
    employees = totals.total_employees
    gross = totals.total_adjusted_gross
    return BatchAnalytics(
        average_gross=round_cents(gross / employees) if employees else ZERO,
        average_net=round_cents(totals.total_net_salary / employees) if employees else ZERO,
        deduction_rate=round_cents(totals.total_deductions / gross * 100) if gross else ZERO,
        net_pay_rate=round_cents(totals.total_net_salary / gross * 100) if gross else ZERO,
    )


def totals_from_row(batch: PayrollBatch) -> BatchTotals:
    return BatchTotals.model_validate(batch)


def existing_info(batch: PayrollBatch) -> ExistingBatchInfo:
    return ExistingBatchInfo(
        status=batch.status,
        generation_date=batch.generation_date,
        total_employees=batch.total_employees,
    )


def batch_listing(batch: PayrollBatch) -> PayrollBatchListing:
    return PayrollBatchListing.model_validate(batch)


def batch_details(batch: PayrollBatch, include_items: bool = True) -> PayrollBatchDetails:
    totals = totals_from_row(batch)
    return PayrollBatchDetails(
        id=batch.id,
        month=batch.month,
        year=batch.year,
        pay_period=batch.pay_period,
        status=batch.status,
        generation_date=batch.generation_date,
        pay_date=batch.pay_date,
        cutoff_date=batch.cutoff_date,
        generated_by=batch.generated_by,
        finalized_by=batch.finalized_by,
        finalized_at=batch.finalized_at,
        approved_by=batch.approved_by,
        approved_at=batch.approved_at,
        paid_by=batch.paid_by,
        paid_at=batch.paid_at,
        notes=batch.notes,
        totals=totals,
        metadata=GenerationMetadata.model_validate(batch.generation_metadata or {}),
        items=[item_from_row(batch, row) for row in batch.items] if include_items else [],
        analytics=batch_analytics(totals),
        created_at=batch.created_at,
        updated_at=batch.updated_at,
    )
