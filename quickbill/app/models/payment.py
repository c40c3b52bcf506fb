"""
Payment database model.

Append-only record of money received against a bill.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum, Text
from sqlalchemy.sql import func
from quickbill.app.db.session import Base
from quickbill.app.models.billing_enums import PaymentMethod, PaymentStatus


class Payment(Base):
    """
    Payment model.

    Created exactly once per confirmed submission. Once Successful the row
    is never edited; corrections are made with compensating entries.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_reference = Column(String(30), unique=True, index=True, nullable=False)

    bill_id = Column(Integer, ForeignKey('bills.id'), nullable=False, index=True)

    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_channel = Column(String(50), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.SUCCESSFUL, nullable=False, index=True)

    payment_date = Column(DateTime(timezone=True), nullable=False, index=True)
    processed_by = Column(Integer, nullable=True, index=True)
    notes = Column(Text, nullable=True)

    # Immutable - no updated_at
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, reference='{self.payment_reference}', amount={self.amount_paid})>"
