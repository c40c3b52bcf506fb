"""
Payment Validator.

Checks a candidate payment against the resolved bill. Every rule is
evaluated and all violations are reported together.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

from quickbill.app.core.exceptions import PaymentValidationError
from quickbill.app.core.money import ZERO, format_money, has_cents_only, parse_amount, round_money
from quickbill.app.models.bill import Bill
from quickbill.app.models.billing_enums import PaymentMethod


@dataclass
class PaymentCandidate:
    """Raw payment fields as submitted by the caller."""
    method: Any = None
    amount: Any = None
    transaction_id: Optional[str] = None
    channel: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ValidatedPayment:
    """
    A payment that passed every rule.

    expected_balance is the bill balance the rules were checked against;
    the ledger writer refuses to commit if the stored balance moved since.
    """
    bill_id: int
    method: PaymentMethod
    amount: Decimal
    expected_balance: Decimal
    period: int
    transaction_id: Optional[str] = None
    channel: Optional[str] = None
    notes: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_method(raw: Any) -> Optional[PaymentMethod]:
    if isinstance(raw, PaymentMethod):
        return raw
    try:
        return PaymentMethod(_clean(raw))
    except ValueError:
        return None


class PaymentValidator:

    @staticmethod
    def check(candidate: PaymentCandidate, bill: Bill) -> List[str]:
        """
        Evaluate every rule and return the list of violations (empty if valid).

        Rules:
        1. method is a recognized payment method
        2. amount is present, numeric, at most two decimals and > 0
        3. amount does not exceed the bill's outstanding balance, and the
           bill actually has something outstanding
        4. non-cash methods carry a transaction id
        """
        errors = []
        raw_method = _clean(candidate.method)
        method = _parse_method(candidate.method)

        # 1. Method
        if raw_method is None:
            errors.append("Payment method is required.")
        elif method is None:
            errors.append(f"Payment method '{raw_method}' is not recognized.")

        # 2. Amount
        amount = None
        if candidate.amount is None or (isinstance(candidate.amount, str) and not candidate.amount.strip()):
            errors.append("Payment amount is required.")
        else:
            amount = parse_amount(candidate.amount)
            if amount is None:
                errors.append("Payment amount must be a valid number.")
            elif amount <= ZERO:
                errors.append("Payment amount must be greater than zero.")
                amount = None
            elif not has_cents_only(amount):
                errors.append("Payment amount cannot have more than two decimal places.")
                amount = None

        # 3. Outstanding balance
        balance = round_money(bill.amount_payable)
        if balance <= ZERO:
            errors.append("This bill has no outstanding balance.")
        elif amount is not None and amount > balance:
            errors.append(f"Payment amount exceeds outstanding balance of {format_money(balance)}.")

        # 4. Transaction id for non-cash methods
        if method is not None and method.requires_transaction_id and not _clean(candidate.transaction_id):
            errors.append(f"Transaction ID is required for {method.value} payments.")

        return errors

    @staticmethod
    def validate(candidate: PaymentCandidate, bill: Bill) -> ValidatedPayment:
        """
        Validate a candidate payment.

        Raises:
            PaymentValidationError: Carrying every violated rule.
        """
        errors = PaymentValidator.check(candidate, bill)
        if errors:
            raise PaymentValidationError(errors)

        return ValidatedPayment(
            bill_id=bill.id,
            method=_parse_method(candidate.method),
            amount=round_money(parse_amount(candidate.amount)),
            expected_balance=round_money(bill.amount_payable),
            period=bill.billing_year,
            transaction_id=_clean(candidate.transaction_id),
            channel=_clean(candidate.channel),
            notes=_clean(candidate.notes)
        )
