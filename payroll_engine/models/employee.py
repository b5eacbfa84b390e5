from sqlalchemy import Column, String, Numeric, Boolean, DateTime, ForeignKey, Integer, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_engine.database import Base
import uuid

class Employee(Base):
    """Employee directory row. Read-only from the payroll engine's point of view."""
    __tablename__ = "employees"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    employee_number = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, nullable=True)
    department = Column(String, nullable=True)
    gross_salary = Column(Numeric(14, 2), nullable=False, default=0)
    benefit_overrides = Column(JSON, default=dict)  # benefit type -> amount
    excluded_benefits = Column(JSON, default=list)  # benefit types
    is_active = Column(Boolean, default=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    deductions = relationship(
        "EmployeeDeduction",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeeDeduction.id",
    )

class EmployeeDeduction(Base):
    __tablename__ = "employee_deductions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, ForeignKey("employees.id"), index=True)
    type = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False, default=0)
    recurring = Column(Boolean, default=True)
    description = Column(String, nullable=True)

    employee = relationship("Employee", back_populates="deductions")
