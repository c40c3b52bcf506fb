"""
Bill database model.

One bill per account per billing period.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, UniqueConstraint
from sqlalchemy.sql import func
from quickbill.app.db.session import Base
from quickbill.app.models.billing_enums import AccountType, BillStatus


class Bill(Base):
    """
    Bill model.

    amount_payable is the remaining balance for this period only. It never
    increases through payments and never goes negative; status follows it:
    Pending -> Partially Paid -> Paid.

    reference_id points at businesses.id or properties.id depending on
    bill_type, so it carries no foreign key.
    """
    __tablename__ = "bills"
    __table_args__ = (
        UniqueConstraint("bill_type", "reference_id", "billing_year", name="uq_bill_account_period"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    bill_number = Column(String(50), unique=True, index=True, nullable=False)

    bill_type = Column(Enum(AccountType), nullable=False, index=True)
    reference_id = Column(Integer, nullable=False, index=True)
    billing_year = Column(Integer, nullable=False, index=True)

    # Financials
    old_bill = Column(Numeric(12, 2), nullable=False, default=0)
    arrears = Column(Numeric(12, 2), nullable=False, default=0)
    current_bill = Column(Numeric(12, 2), nullable=False, default=0)
    previous_payments = Column(Numeric(12, 2), nullable=False, default=0)
    amount_payable = Column(Numeric(12, 2), nullable=False)

    status = Column(Enum(BillStatus), default=BillStatus.PENDING, nullable=False, index=True)

    generated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Bill(id={self.id}, number='{self.bill_number}', status='{self.status.value}', payable={self.amount_payable})>"
