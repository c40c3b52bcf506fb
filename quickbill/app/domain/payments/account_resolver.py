"""
Account/Bill Resolver.

Locates the ratepayer account and its bill for a billing period.
Read-only: never mutates anything.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, case

from quickbill.app.core.exceptions import AccountNotFoundError, BillNotFoundError
from quickbill.app.core.money import round_money
from quickbill.app.models.account import Business, Property
from quickbill.app.models.bill import Bill
from quickbill.app.models.payment import Payment
from quickbill.app.models.billing_enums import AccountType, PaymentStatus

logger = logging.getLogger(__name__)

Account = Union[Business, Property]


@dataclass
class ResolvedAccount:
    account: Account
    bill: Bill
    period: int

    @property
    def account_type(self) -> AccountType:
        return self.account.account_type

    @property
    def remaining_balance(self) -> Decimal:
        return round_money(self.bill.amount_payable)


@dataclass
class PaymentSummary:
    """Payments across all periods for one account."""
    total_paid: Decimal
    successful_payments: int
    total_transactions: int


class AccountResolver:

    @staticmethod
    async def find_account(
        db: AsyncSession,
        account_number: str,
        account_type: AccountType
    ) -> Account:
        """
        Find an account by number, scoped to its type.

        Property numbers may also match the legacy account_number alias.

        Raises:
            AccountNotFoundError: If no account matches.
        """
        account_number = (account_number or "").strip()
        account = None

        if account_number:
            if account_type == AccountType.BUSINESS:
                query = select(Business).where(Business.account_number == account_number)
            else:
                query = select(Property).where(
                    or_(
                        Property.property_number == account_number,
                        Property.account_number == account_number
                    )
                ).order_by(
                    # Prefer the primary identifier when both columns match different rows
                    case((Property.property_number == account_number, 0), else_=1)
                ).limit(1)

            result = await db.execute(query)
            account = result.scalars().first()

        if account is None:
            logger.debug("Account not found - number=%s type=%s", account_number, account_type.value)
            raise AccountNotFoundError(account_number, account_type.value)

        return account

    @staticmethod
    async def find_bill(
        db: AsyncSession,
        account: Account,
        period: int
    ) -> Bill:
        """
        Find the account's bill for a billing period.

        Raises:
            BillNotFoundError: If no bill was generated for the period.
        """
        result = await db.execute(
            select(Bill).where(
                Bill.bill_type == account.account_type,
                Bill.reference_id == account.id,
                Bill.billing_year == period
            )
        )
        bill = result.scalar_one_or_none()

        if bill is None:
            logger.debug(
                "No bill found for %s id=%s period=%s",
                account.account_type.value, account.id, period
            )
            raise BillNotFoundError(account.account_type.value, period, account.id)

        return bill

    @staticmethod
    async def resolve(
        db: AsyncSession,
        account_number: str,
        account_type: AccountType,
        period: int
    ) -> ResolvedAccount:
        """
        Resolve an account and its bill for the given period.

        Raises:
            AccountNotFoundError: Unknown account for this type.
            BillNotFoundError: Account exists but no bill for the period.
        """
        account = await AccountResolver.find_account(db, account_number, account_type)
        bill = await AccountResolver.find_bill(db, account, period)

        logger.debug(
            "Resolved %s %s to bill %s (payable %s)",
            account_type.value, account_number, bill.bill_number, bill.amount_payable
        )
        return ResolvedAccount(account=account, bill=bill, period=period)

    @staticmethod
    async def payment_summary(db: AsyncSession, account: Account) -> PaymentSummary:
        """Totals over every payment recorded against any of the account's bills."""
        successful = Payment.payment_status == PaymentStatus.SUCCESSFUL
        result = await db.execute(
            select(
                func.coalesce(func.sum(case((successful, Payment.amount_paid), else_=0)), 0),
                func.count(case((successful, 1))),
                func.count(Payment.id),
            )
            .select_from(Payment)
            .join(Bill, Payment.bill_id == Bill.id)
            .where(
                Bill.bill_type == account.account_type,
                Bill.reference_id == account.id
            )
        )
        total_paid, successful_count, total_count = result.one()

        return PaymentSummary(
            total_paid=round_money(total_paid),
            successful_payments=successful_count or 0,
            total_transactions=total_count or 0
        )
