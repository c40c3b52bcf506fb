"""
Billing and payment enumerations.
"""

import enum


class AccountType(str, enum.Enum):
    """Ratepayer account variant. Also used as the bill type."""
    BUSINESS = "Business"
    PROPERTY = "Property"


class BillStatus(str, enum.Enum):
    """Bill status enumeration."""
    PENDING = "Pending"  # Generated, nothing paid yet
    PARTIALLY_PAID = "Partially Paid"  # Some payment applied, balance remains
    PAID = "Paid"  # Balance settled


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration."""
    CASH = "Cash"
    MOBILE_MONEY = "Mobile Money"
    BANK_TRANSFER = "Bank Transfer"
    ONLINE = "Online"

    @property
    def requires_transaction_id(self) -> bool:
        return self is not PaymentMethod.CASH


class PaymentStatus(str, enum.Enum):
    """Payment status enumeration."""
    SUCCESSFUL = "Successful"
    PENDING = "Pending"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
