from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from payroll_engine.database import Base

class AuditLog(Base):
    """Append-only record of payroll actions."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, index=True, nullable=False)
    entity_type = Column(String, index=True, nullable=False)
    entity_id = Column(String, index=True, nullable=True)
    actor = Column(String, nullable=True)
    details = Column(JSON, default=dict)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
