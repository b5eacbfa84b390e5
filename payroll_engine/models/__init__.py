# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import employee, payroll, payroll_line, audit_log

# Explicit class exports for cleaner imports
from .employee import Employee, EmployeeDeduction
from .payroll import PayrollBatch, PayrollItem, PayrollStatus
from .payroll_line import PayrollLine, LineKind
from .audit_log import AuditLog

__all__ = [
    "Employee",
    "EmployeeDeduction",
    "PayrollBatch",
    "PayrollItem",
    "PayrollStatus",
    "PayrollLine",
    "LineKind",
    "AuditLog",
]
