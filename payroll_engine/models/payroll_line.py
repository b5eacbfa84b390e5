from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from payroll_engine.database import Base
import enum

class LineKind(str, enum.Enum):
    BENEFIT = "benefit"
    DEDUCTION = "deduction"

class PayrollLine(Base):
    __tablename__ = "payroll_lines"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("payroll_items.id"), index=True)
    position = Column(Integer, nullable=False)
    kind = Column(String, nullable=False)  # Store enum value as string
    category = Column(String, nullable=True)  # deductions only
    type = Column(String, nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    recurring = Column(Boolean, default=True)
    description = Column(String, nullable=True)

    item = relationship("PayrollItem", back_populates="lines")
