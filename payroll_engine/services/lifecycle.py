"""
Payroll Lifecycle State Machine

A batch starts in ``draft`` and moves forward through ``finalized`` and
``approved`` to ``paid``, which is terminal. Finalized and approved batches
can step back one state; anything but a paid batch can be cancelled, and a
cancelled batch can only return to ``draft``.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from payroll_engine.core.exceptions import (
    InvalidTransitionError,
    PayrollNotFoundError,
    PayrollValidationError,
)
from payroll_engine.models.payroll import PayrollBatch, PayrollStatus
from payroll_engine.services.audit import AuditService
from payroll_engine.services.store import SqlPayrollStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[PayrollStatus, FrozenSet[PayrollStatus]] = {
    PayrollStatus.DRAFT: frozenset({PayrollStatus.FINALIZED, PayrollStatus.CANCELLED}),
    PayrollStatus.FINALIZED: frozenset({PayrollStatus.APPROVED, PayrollStatus.DRAFT, PayrollStatus.CANCELLED}),
    PayrollStatus.APPROVED: frozenset({PayrollStatus.PAID, PayrollStatus.FINALIZED, PayrollStatus.CANCELLED}),
    PayrollStatus.PAID: frozenset(),
    PayrollStatus.CANCELLED: frozenset({PayrollStatus.DRAFT}),
}

# Target status -> (actor column, timestamp column)
STAMP_COLUMNS = {
    PayrollStatus.FINALIZED: ("finalized_by", "finalized_at"),
    PayrollStatus.APPROVED: ("approved_by", "approved_at"),
    PayrollStatus.PAID: ("paid_by", "paid_at"),
}


def parse_status(value: str) -> PayrollStatus:
    try:
        return PayrollStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in PayrollStatus)
        raise PayrollValidationError([f"Invalid status '{value}'. Must be one of: {valid}"])


def can_transition(current: PayrollStatus, target: PayrollStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition_status(
    store: SqlPayrollStore,
    batch_id: str,
    target_status: str,
    actor: str,
    notes: Optional[str] = None,
    audit: Optional[AuditService] = None,
    now: Optional[datetime] = None
) -> PayrollBatch:
    """
    Move a batch to ``target_status`` on behalf of ``actor``.

    Raises:
        PayrollNotFoundError: unknown batch id.
        PayrollValidationError: ``target_status`` is not a known status.
        InvalidTransitionError: the move is not allowed from the current
            status, or another transition changed the status first.
    """
    target = parse_status(target_status)

    batch = store.get(batch_id)
    if batch is None:
        raise PayrollNotFoundError(batch_id)

    current = PayrollStatus(batch.status)
    if not can_transition(current, target):
        logger.warning(f"Rejected payroll transition {current.value} -> {target.value} for {batch_id}")
        raise InvalidTransitionError(current.value, target.value)

    patch = {"status": target.value}
    if target in STAMP_COLUMNS:
        by_column, at_column = STAMP_COLUMNS[target]
        patch[by_column] = actor
        patch[at_column] = now or datetime.now(timezone.utc)
    if notes:
        patch["notes"] = notes

    if audit:
        audit.log_action(
            action="transition_payroll_status",
            entity_type="payroll_batch",
            entity_id=batch_id,
            actor=actor,
            details={"notes": notes} if notes else {},
            before_state={"status": current.value},
            after_state={"status": target.value},
        )

    if not store.update_status(batch_id, current.value, patch):
        # Lost a race: someone else moved the batch after we read it
        latest = store.get(batch_id)
        latest_status = latest.status if latest else current.value
        raise InvalidTransitionError(latest_status, target.value, reason="status changed concurrently")

    logger.info(f"Payroll {batch_id} status updated: {current.value} -> {target.value} by {actor}")
    return store.get(batch_id)
