"""
Payroll Service Layer

This module provides the business logic entry points for payroll operations.
It wires the SQL-backed store, employee directory and audit trail into the
generation orchestrator and lifecycle state machine, keeping the router
focused on HTTP request/response handling.

Architecture:
- Router / scheduler -> Service (this module) -> Generator / Lifecycle -> Store
- Computation itself is pure and lives in computation/statutory/benefits
"""

from sqlalchemy.orm import Session
from typing import List, Optional, Union
import logging

from payroll_engine.core.exceptions import PayrollNotFoundError
from payroll_engine.schemas.payroll import (
    ConflictResult,
    GenerationOptions,
    GenerationResult,
    PayrollBatchDetails,
    PayrollBatchListing,
    PayrollStatistics,
    PreviewResult,
    StatutorySummary,
)
from payroll_engine.services import lifecycle, statutory
from payroll_engine.services.audit import AuditService
from payroll_engine.services.directory import EmployeeDirectory, SqlEmployeeDirectory
from payroll_engine.services.generation import PayrollGenerator
from payroll_engine.services.store import SqlPayrollStore, batch_details, batch_listing

logger = logging.getLogger(__name__)


def _generator(db: Session, directory: Optional[EmployeeDirectory] = None) -> PayrollGenerator:
    return PayrollGenerator(
        store=SqlPayrollStore(db),
        directory=directory or SqlEmployeeDirectory(db),
        audit=AuditService(db),
    )


def generate_payroll(
    db: Session,
    month: int,
    year: int,
    options: Optional[GenerationOptions] = None,
    directory: Optional[EmployeeDirectory] = None
) -> Union[GenerationResult, ConflictResult]:
    """
    Generate and persist the payroll batch for a period.

    Returns a ConflictResult (not an error) when the period already has a
    batch. Raises PayrollValidationError or PayrollGenerationError.
    """
    return _generator(db, directory).generate(month, year, options)


def preview_payroll(
    db: Session,
    month: int,
    year: int,
    options: Optional[GenerationOptions] = None,
    directory: Optional[EmployeeDirectory] = None
) -> PreviewResult:
    """Compute the batch a generate call would persist, without persisting it."""
    return _generator(db, directory).preview(month, year, options)


def transition_payroll_status(
    db: Session,
    batch_id: str,
    target_status: str,
    actor: str,
    notes: Optional[str] = None
) -> PayrollBatchDetails:
    batch = lifecycle.transition_status(
        SqlPayrollStore(db),
        batch_id,
        target_status,
        actor,
        notes=notes,
        audit=AuditService(db),
    )
    return batch_details(batch, include_items=False)


def get_payroll_details(db: Session, batch_id: str) -> PayrollBatchDetails:
    batch = SqlPayrollStore(db).get(batch_id)
    if batch is None:
        raise PayrollNotFoundError(batch_id)
    return batch_details(batch)


def list_payrolls(
    db: Session,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> List[PayrollBatchListing]:
    if status is not None:
        status = lifecycle.parse_status(status).value
    batches = SqlPayrollStore(db).list(year=year, month=month, status=status, limit=limit, offset=offset)
    return [batch_listing(b) for b in batches]


def get_payroll_statistics(db: Session, year: int) -> PayrollStatistics:
    """Aggregate totals across the year's batches, cancelled batches excluded."""
    return SqlPayrollStore(db).statistics(year)


def calculate_statutory(income) -> StatutorySummary:
    return statutory.statutory_summary(income)
