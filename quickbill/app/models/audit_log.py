"""
Audit Log Database Model.

Append-only compliance trail of state-changing actions.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from quickbill.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - PAYMENT_RECORDED (payments) with before/after balance snapshot
    - BILL_FULLY_PAID (bills) when a payment settles the bill
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    user_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which record was affected
    table_name = Column(String(50), nullable=True, index=True)
    record_id = Column(Integer, nullable=True, index=True)

    # Snapshots
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    # Origin metadata
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(255), nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', table='{self.table_name}', record={self.record_id})>"
