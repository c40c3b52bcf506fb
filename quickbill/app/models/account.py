"""
Ratepayer account models.

An account is either a Business or a Property. Both carry the same
financial aggregate and are mutated only by the ledger writer.
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from sqlalchemy.sql import func
from quickbill.app.db.session import Base
from quickbill.app.models.billing_enums import AccountType


class AccountMixin:
    """
    Financial aggregate shared by both account variants.

    amount_payable: outstanding across all billing periods
    previous_payments: cumulative total ever paid
    """
    amount_payable = Column(Numeric(12, 2), nullable=False, default=0)
    previous_payments = Column(Numeric(12, 2), nullable=False, default=0)

    owner_name = Column(String(150), nullable=False)
    telephone = Column(String(30), nullable=True)

    # Accounts are never deleted, only deactivated
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Business(AccountMixin, Base):
    """Business operating permit account."""
    __tablename__ = "businesses"

    account_type = AccountType.BUSINESS

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_number = Column(String(50), unique=True, index=True, nullable=False)
    business_name = Column(String(200), nullable=False)
    business_type = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)

    @property
    def display_number(self) -> str:
        return self.account_number

    @property
    def display_name(self) -> str:
        return self.business_name

    def __repr__(self):
        return f"<Business(id={self.id}, account_number='{self.account_number}', name='{self.business_name}')>"


class Property(AccountMixin, Base):
    """
    Property rate account.

    Identified by property_number; older records may instead be keyed by
    the legacy account_number alias, so lookups check both.
    """
    __tablename__ = "properties"

    account_type = AccountType.PROPERTY

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    property_number = Column(String(50), unique=True, index=True, nullable=False)
    account_number = Column(String(50), unique=True, index=True, nullable=True)
    structure = Column(String(100), nullable=True)
    property_use = Column(String(100), nullable=True)
    number_of_rooms = Column(Integer, nullable=True)

    @property
    def display_number(self) -> str:
        return self.property_number

    @property
    def display_name(self) -> str:
        return self.owner_name

    def __repr__(self):
        return f"<Property(id={self.id}, property_number='{self.property_number}', owner='{self.owner_name}')>"
