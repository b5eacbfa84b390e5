"""
Employee Directory collaborators.

The engine only needs ``list_active()``: employees eligible for payroll
(active flag true or absent, salary above zero), as read-only
``EmployeeRecord`` values. Directories never mutate employee rows.
"""

import logging
from typing import Iterable, List, Protocol

from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from payroll_engine.core.money import to_decimal
from payroll_engine.models.employee import Employee
from payroll_engine.schemas.payroll import EmployeeRecord

logger = logging.getLogger(__name__)


class EmployeeDirectory(Protocol):
    def list_active(self) -> List[EmployeeRecord]:
        ...


class SqlEmployeeDirectory:
    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> List[EmployeeRecord]:
        employees = self.db.query(Employee).options(
            selectinload(Employee.deductions)
        ).filter(
            or_(Employee.is_active.is_(True), Employee.is_active.is_(None)),
            Employee.gross_salary > 0
        ).order_by(Employee.id).all()
        return [self._to_record(e) for e in employees]

    @staticmethod
    def _to_record(employee: Employee) -> EmployeeRecord:
        try:
            return EmployeeRecord.model_validate(employee)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            logger.warning(f"Unreadable employee record {employee.id}: {problems}")
            # Keep the row on the roster so the failure is reported, not dropped
            return EmployeeRecord(
                id=employee.id,
                name=employee.name,
                employee_number=employee.employee_number,
                gross_salary=employee.gross_salary,
                is_active=employee.is_active,
                load_error=f"invalid employee record ({problems})",
            )


class InMemoryEmployeeDirectory:
    """Directory over already-loaded records, e.g. an imported roster file."""

    def __init__(self, records: Iterable[EmployeeRecord]):
        self.records = list(records)

    def list_active(self) -> List[EmployeeRecord]:
        return [r for r in self.records if self._is_eligible(r)]

    @staticmethod
    def _is_eligible(record: EmployeeRecord) -> bool:
        if record.is_active is False:
            return False
        salary = to_decimal(record.gross_salary)
        # Unreadable salaries stay on the roster and fail per employee
        return salary is None or salary > 0
