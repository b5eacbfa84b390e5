from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import enum

from payroll_engine.core.config import settings

class DeductionCategory(str, enum.Enum):
    STATUTORY = "statutory"
    CUSTOM = "custom"
    ADVANCE = "advance"
    LOAN = "loan"

class DeductionLine(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    type: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    recurring: bool = True
    description: Optional[str] = None
    category: DeductionCategory = DeductionCategory.CUSTOM
    # Named sub-amounts, e.g. pension tiers or pre-relief tax
    details: Dict[str, Decimal] = Field(default_factory=dict)

class BenefitLine(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    type: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    recurring: bool = True

class EmployeeRecord(BaseModel):
    """Read-only roster entry handed to the engine by the employee directory."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    employee_number: Optional[str] = None
    gross_salary: Any = None  # validated per employee during computation
    deductions: List[DeductionLine] = Field(default_factory=list)
    benefit_overrides: Dict[str, Any] = Field(default_factory=dict)
    excluded_benefits: List[str] = Field(default_factory=list)
    is_active: Optional[bool] = True
    # Set by a directory that could not read the row; computation reports it per employee
    load_error: Optional[str] = None

    @field_validator("deductions", "excluded_benefits", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value):
        return [] if value is None else value

    @field_validator("benefit_overrides", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, value):
        return {} if value is None else value

class EmployeeAdjustments(BaseModel):
    """Per-employee attendance and one-off inputs for a single run."""
    days_worked: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    overtime_rate: Optional[Decimal] = None
    extra_advance: Optional[Decimal] = None
    extra_loan: Optional[Decimal] = None

class PayrollOptions(BaseModel):
    working_days: int = Field(default_factory=lambda: settings.payroll.default_working_days)
    days_worked: Optional[Decimal] = None  # defaults to working_days
    overtime_hours: Decimal = Decimal("0")
    overtime_rate: Decimal = Field(default_factory=lambda: Decimal(str(settings.payroll.default_overtime_rate)))
    extra_advance: Decimal = Decimal("0")
    extra_loan: Decimal = Decimal("0")

class GenerationOptions(BaseModel):
    working_days: int = Field(default_factory=lambda: settings.payroll.default_working_days)
    overtime_rate: Decimal = Field(default_factory=lambda: Decimal(str(settings.payroll.default_overtime_rate)))
    pay_date: Optional[date] = None
    cutoff_date: Optional[date] = None
    generated_by: str = Field(default_factory=lambda: settings.payroll.generated_by)
    notes: str = ""
    employee_options: Dict[str, EmployeeAdjustments] = Field(default_factory=dict)

    def options_for(self, employee_id: Optional[str]) -> PayrollOptions:
        adjustments = self.employee_options.get(employee_id) if employee_id else None
        overrides = adjustments.model_dump(exclude_none=True) if adjustments else {}
        overrides.setdefault("overtime_rate", self.overtime_rate)
        return PayrollOptions(working_days=self.working_days, **overrides)

class PayrollItemData(BaseModel):
    """One employee's computed payroll for a period."""
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    employee_name: str
    employee_number: Optional[str] = None
    month: int
    year: int
    working_days: int
    days_worked: Decimal
    overtime_hours: Decimal
    overtime_rate: Decimal
    basic_salary: Decimal
    overtime_pay: Decimal
    adjusted_gross: Decimal
    taxable_income: Decimal
    deductions: List[DeductionLine]
    benefits: List[BenefitLine]
    total_benefits: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    tax_amount: Decimal
    pension_amount: Decimal
    pension_tier1: Decimal
    pension_tier2: Decimal
    health_levy_amount: Decimal
    housing_levy_amount: Decimal
    advances: Decimal
    loans: Decimal

class BatchTotals(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_employees: int = 0
    total_basic_salary: Decimal = Decimal("0")
    total_overtime_pay: Decimal = Decimal("0")
    total_adjusted_gross: Decimal = Decimal("0")
    total_taxable_income: Decimal = Decimal("0")
    total_benefits: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    total_net_salary: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total_pension: Decimal = Decimal("0")
    total_pension_tier1: Decimal = Decimal("0")
    total_pension_tier2: Decimal = Decimal("0")
    total_health_levy: Decimal = Decimal("0")
    total_housing_levy: Decimal = Decimal("0")
    total_advances: Decimal = Decimal("0")
    total_loans: Decimal = Decimal("0")

class GenerationMetadata(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0

class GenerationSummary(BaseModel):
    batch_id: Optional[str] = None
    month: int
    year: int
    pay_period: str
    total_employees: int
    totals: BatchTotals
    processing_time_ms: float
    errors_count: int
    warnings_count: int

class GenerationResult(BaseModel):
    success: bool = True
    message: str
    batch_id: str
    summary: GenerationSummary
    metadata: GenerationMetadata

class ExistingBatchInfo(BaseModel):
    status: str
    generation_date: Optional[datetime] = None
    total_employees: int

class ConflictResult(BaseModel):
    success: bool = False
    message: str
    batch_id: str
    existing: ExistingBatchInfo

class PreviewResult(BaseModel):
    summary: GenerationSummary
    items: List[PayrollItemData]
    metadata: GenerationMetadata

class BatchAnalytics(BaseModel):
    average_gross: Decimal
    average_net: Decimal
    deduction_rate: Decimal  # percent of adjusted gross
    net_pay_rate: Decimal  # percent of adjusted gross

class PayrollBatchDetails(BaseModel):
    id: str
    month: int
    year: int
    pay_period: str
    status: str
    generation_date: Optional[datetime] = None
    pay_date: date
    cutoff_date: Optional[date] = None
    generated_by: Optional[str] = None
    finalized_by: Optional[str] = None
    finalized_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    totals: BatchTotals
    metadata: GenerationMetadata
    items: List[PayrollItemData] = Field(default_factory=list)
    analytics: Optional[BatchAnalytics] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PayrollBatchListing(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    month: int
    year: int
    pay_period: str
    status: str
    total_employees: int
    total_net_salary: Decimal
    generation_date: Optional[datetime] = None

class PayrollStatistics(BaseModel):
    year: int
    total_payrolls: int = 0
    total_adjusted_gross: Decimal = Decimal("0")
    total_net_salary: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    average_employees: Decimal = Decimal("0")

class StatusTransitionRequest(BaseModel):
    status: str
    actor: str = Field(min_length=1)
    notes: Optional[str] = None

class GenerationRequest(GenerationOptions):
    month: int
    year: int

class PensionBreakdown(BaseModel):
    income: Decimal
    lower_limit: Decimal
    upper_limit: Decimal
    tier1_base: Decimal
    tier2_base: Decimal
    tier1_employee: Decimal
    tier1_employer: Decimal
    tier2_employee: Decimal
    tier2_employer: Decimal
    total_employee: Decimal
    total_employer: Decimal
    total_contribution: Decimal
    is_capped: bool

class StatutoryRequest(BaseModel):
    income: Decimal

class StatutorySummary(BaseModel):
    income: Decimal
    deductions: List[DeductionLine]
    total_deductions: Decimal
    net_after_statutory: Decimal
    breakdown: Dict[str, Decimal]
    pension: Optional[PensionBreakdown] = None
