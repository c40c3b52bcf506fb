"""
Payment Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, List
from quickbill.app.models.billing_enums import AccountType, BillStatus, PaymentMethod, PaymentStatus


class AccountLookupRequest(BaseModel):
    """Find an account and its bill for a billing period."""
    account_number: str = Field(..., min_length=1, max_length=50)
    account_type: AccountType
    period: Optional[int] = Field(None, ge=2000, le=2100, description="Billing year; defaults to the current year")


class PaymentSubmission(BaseModel):
    """
    Schema for recording a payment.

    Method and amount accept any JSON value; the payment validator checks
    them together with the balance and transaction id rules so that every
    problem is reported at once.
    """
    account_number: str = Field(..., min_length=1, max_length=50)
    account_type: AccountType
    period: Optional[int] = Field(None, ge=2000, le=2100)
    payment_method: Any = None
    payment_channel: Optional[str] = Field(None, max_length=50)
    amount_paid: Any = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentResult(BaseModel):
    """Outcome of a payment submission."""
    success: bool
    payment_id: Optional[int] = None
    payment_reference: Optional[str] = None
    receipt_number: Optional[str] = None
    new_balance: Optional[Decimal] = None
    bill_status: Optional[BillStatus] = None
    error_code: Optional[str] = None
    errors: List[str] = []
    warnings: List[str] = []
    http_status: int = Field(201, exclude=True)


class BillSummary(BaseModel):
    id: int
    bill_number: str
    bill_type: AccountType
    billing_year: int
    old_bill: Decimal
    arrears: Decimal
    current_bill: Decimal
    previous_payments: Decimal
    amount_payable: Decimal
    status: BillStatus

    class Config:
        from_attributes = True


class AccountLookupResponse(BaseModel):
    """Account, current bill and payment history totals."""
    account_type: AccountType
    account_id: int
    account_number: str
    account_name: str
    owner_name: str
    telephone: Optional[str]
    account_amount_payable: Decimal
    account_previous_payments: Decimal
    bill: BillSummary
    remaining_balance: Decimal
    total_paid: Decimal
    successful_payments: int
    total_transactions: int


class PaymentResponse(BaseModel):
    """Schema for listing payments."""
    id: int
    payment_reference: str
    amount_paid: Decimal
    payment_method: PaymentMethod
    payment_channel: Optional[str]
    transaction_id: Optional[str]
    payment_status: PaymentStatus
    payment_date: datetime
    processed_by: Optional[int]
    notes: Optional[str]
    bill_id: int
    bill_number: Optional[str] = None
    bill_type: Optional[AccountType] = None
    billing_year: Optional[int] = None
    payer_name: Optional[str] = None
    account_number: Optional[str] = None


class PaymentDetailResponse(PaymentResponse):
    receipt_number: str
    formatted_reference: str
    bill_amount_payable: Optional[Decimal] = None
    bill_status: Optional[BillStatus] = None


class PaymentPage(BaseModel):
    items: List[PaymentResponse]
    total: int
    page: int
    page_size: int
    pages: int


class PaymentFilters(BaseModel):
    """List filters; all optional."""
    search: Optional[str] = None
    account_type: Optional[AccountType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1)


class PaymentStatistics(BaseModel):
    total_payments: int
    total_amount: Decimal
    today_payments: int
    today_amount: Decimal
    as_of: date


class PaymentMethodInfo(BaseModel):
    method: PaymentMethod
    name: str
    requires_transaction_id: bool
