from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_engine.database import Base
import enum

class PayrollStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"

MONEY = Numeric(16, 2)

class PayrollBatch(Base):
    """One payroll run per (month, year). Never deleted; cancellation is a status."""
    __tablename__ = "payroll_batches"
    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_payroll_batches_period"),
        Index("ix_payroll_batches_status_generated", "status", "generation_date"),
    )

    id = Column(String, primary_key=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False, index=True)
    pay_period = Column(String, nullable=False)
    generation_date = Column(DateTime(timezone=True), server_default=func.now())
    pay_date = Column(Date, nullable=False)
    cutoff_date = Column(Date, nullable=True)
    status = Column(String, default=PayrollStatus.DRAFT.value, nullable=False)

    total_employees = Column(Integer, nullable=False, default=0)
    total_basic_salary = Column(MONEY, nullable=False, default=0)
    total_overtime_pay = Column(MONEY, nullable=False, default=0)
    total_adjusted_gross = Column(MONEY, nullable=False, default=0)
    total_taxable_income = Column(MONEY, nullable=False, default=0)
    total_benefits = Column(MONEY, nullable=False, default=0)
    total_deductions = Column(MONEY, nullable=False, default=0)
    total_net_salary = Column(MONEY, nullable=False, default=0)
    total_tax = Column(MONEY, nullable=False, default=0)
    total_pension = Column(MONEY, nullable=False, default=0)
    total_pension_tier1 = Column(MONEY, nullable=False, default=0)
    total_pension_tier2 = Column(MONEY, nullable=False, default=0)
    total_health_levy = Column(MONEY, nullable=False, default=0)
    total_housing_levy = Column(MONEY, nullable=False, default=0)
    total_advances = Column(MONEY, nullable=False, default=0)
    total_loans = Column(MONEY, nullable=False, default=0)

    generated_by = Column(String, default="system")
    finalized_by = Column(String, nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    generation_metadata = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "PayrollItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="PayrollItem.position",
    )

class PayrollItem(Base):
    __tablename__ = "payroll_items"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(String, ForeignKey("payroll_batches.id"), index=True, nullable=False)
    position = Column(Integer, nullable=False)

    employee_id = Column(String, index=True, nullable=False)
    employee_name = Column(String, nullable=False)
    employee_number = Column(String, nullable=True)

    working_days = Column(Integer, nullable=False)
    days_worked = Column(Numeric(6, 2), nullable=False)
    overtime_hours = Column(Numeric(8, 2), default=0)
    overtime_rate = Column(Numeric(6, 2), default=0)

    basic_salary = Column(MONEY, nullable=False)
    overtime_pay = Column(MONEY, default=0)
    adjusted_gross = Column(MONEY, nullable=False)
    taxable_income = Column(MONEY, nullable=False)
    total_benefits = Column(MONEY, nullable=False)
    total_deductions = Column(MONEY, nullable=False)
    net_salary = Column(MONEY, nullable=False)
    tax_amount = Column(MONEY, default=0)
    pension_amount = Column(MONEY, default=0)
    pension_tier1 = Column(MONEY, default=0)
    pension_tier2 = Column(MONEY, default=0)
    health_levy_amount = Column(MONEY, default=0)
    housing_levy_amount = Column(MONEY, default=0)
    advances = Column(MONEY, default=0)
    loans = Column(MONEY, default=0)

    batch = relationship("PayrollBatch", back_populates="items")
    lines = relationship(
        "PayrollLine",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="PayrollLine.position",
    )
