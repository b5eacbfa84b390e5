from typing import Any, Dict, List, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class PayrollValidationError(AppException):
    """Bad period or options. Carries every violation, not just the first."""
    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__(
            message="; ".join(self.violations) or "Validation failed",
            status_code=422,
            error_code="VALIDATION_FAILED",
            details={"violations": self.violations}
        )

class PayrollNotFoundError(AppException):
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(
            message=f"Payroll {batch_id} not found",
            status_code=404,
            error_code="PAYROLL_NOT_FOUND",
            details={"batch_id": batch_id}
        )

class PeriodConflictError(AppException):
    """Raised by the store when a batch for the period was written first."""
    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(
            message=f"Payroll for {month:02d}/{year} already exists",
            status_code=409,
            error_code="PAYROLL_PERIOD_CONFLICT",
            details={"month": month, "year": year}
        )

class PayrollGenerationError(AppException):
    """Fatal generation failure. No batch is persisted."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Payroll generation failed: {message}",
            status_code=422,
            error_code="PAYROLL_GENERATION_FAILED",
            details=details
        )

class EmployeeComputationError(AppException):
    def __init__(self, employee_id: Optional[str], employee_name: Optional[str], reason: str):
        self.employee_id = employee_id
        self.employee_name = employee_name or "Unknown employee"
        self.reason = reason
        super().__init__(
            message=f"Failed to calculate payroll for {self.employee_name} ({employee_id}): {reason}",
            status_code=422,
            error_code="EMPLOYEE_COMPUTATION_FAILED",
            details={"employee_id": employee_id, "employee_name": self.employee_name}
        )

class InvalidTransitionError(AppException):
    def __init__(self, current_status: str, target_status: str, reason: Optional[str] = None):
        self.current_status = current_status
        self.target_status = target_status
        message = f"Invalid transition: cannot change status from {current_status} to {target_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_STATUS_TRANSITION",
            details={"from": current_status, "to": target_status}
        )
