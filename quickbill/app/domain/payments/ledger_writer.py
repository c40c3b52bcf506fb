"""
Ledger Writer (Domain Logic).

Applies a validated payment across the payment, bill and account records
as one unit of work. Either every row changes or none does.

Flow:
1. Generate payment reference
2. Re-read and lock bill + account, re-check the balance
3. Insert Payment (Successful)
4. Compute new bill balance and status
5. Update Bill (compare-and-set on the balance it was validated against)
6. Update Account aggregate (compare-and-set)
7. Commit

Row locks (SELECT ... FOR UPDATE) serialize writers on PostgreSQL; the
compare-and-set updates catch lost updates on stores without row locks.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Type, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quickbill.app.core.config import settings
from quickbill.app.core.context import RequestContext
from quickbill.app.core.exceptions import (
    AppException,
    AccountNotFoundError,
    BillNotFoundError,
    ConcurrentModificationError,
    DuplicateReferenceError,
    PersistenceFailure,
)
from quickbill.app.core.money import ZERO, clamp_non_negative, round_money
from quickbill.app.db.session import rollback_quietly
from quickbill.app.domain.payments.reference_generator import ReferenceGenerator
from quickbill.app.domain.payments.validator import ValidatedPayment
from quickbill.app.models.account import Business, Property
from quickbill.app.models.bill import Bill
from quickbill.app.models.billing_enums import AccountType, BillStatus, PaymentMethod, PaymentStatus
from quickbill.app.models.payment import Payment

logger = logging.getLogger(__name__)

Account = Union[Business, Property]


def derive_bill_status(new_balance: Decimal) -> BillStatus:
    """
    Status after a payment has been applied.

    A bill that has received a payment never goes back to Pending.
    """
    return BillStatus.PAID if new_balance <= ZERO else BillStatus.PARTIALLY_PAID


@dataclass(frozen=True)
class LedgerEntryResult:
    """What was committed, with before/after values for the audit trail."""
    payment_id: int
    payment_reference: str
    receipt_number: str
    payment_date: datetime
    amount_paid: Decimal
    payment_method: PaymentMethod
    payment_channel: Optional[str]
    transaction_id: Optional[str]
    notes: Optional[str]

    bill_id: int
    bill_number: str
    billing_year: int
    bill_balance_before: Decimal
    bill_balance_after: Decimal
    bill_status_before: BillStatus
    bill_status_after: BillStatus

    account_type: AccountType
    account_id: int
    account_number: str
    account_name: str
    owner_name: str
    account_payable_before: Decimal
    account_payable_after: Decimal
    previous_payments_before: Decimal
    previous_payments_after: Decimal

    @property
    def settled_bill(self) -> bool:
        return self.bill_status_after == BillStatus.PAID and self.bill_status_before != BillStatus.PAID


class LedgerWriter:

    def __init__(
        self,
        reference_generator: Optional[ReferenceGenerator] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.reference_generator = reference_generator
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.ledger_timeout_seconds

    async def apply(
        self,
        db: AsyncSession,
        payment: ValidatedPayment,
        account: Account,
        context: RequestContext,
        timeout_seconds: Optional[float] = None
    ) -> LedgerEntryResult:
        """
        Durably apply a validated payment.

        The staging phase (locks, insert, updates) runs under the timeout.
        Commit is not cancelled from here, so a started commit either
        completes or fails as a whole; the driver's command timeout bounds it.

        Raises:
            DuplicateReferenceError: Generated reference already exists.
            ConcurrentModificationError: Bill or account changed since validation.
            BillNotFoundError / AccountNotFoundError: Rows vanished since resolution.
            PersistenceFailure: Any storage fault or timeout.
        """
        account_model = type(account)
        account_id = account.id
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        references = self.reference_generator or ReferenceGenerator(clock=context.clock)

        try:
            staged = await asyncio.wait_for(
                self._stage(db, payment, account_model, account_id, context, references),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            await rollback_quietly(db)
            logger.error("Payment for bill %s timed out after %ss, rolled back", payment.bill_id, timeout)
            raise PersistenceFailure("timeout", f"the database did not respond within {timeout} seconds")
        except AppException as exc:
            await rollback_quietly(db)
            logger.error("Payment for bill %s rolled back: %s", payment.bill_id, exc.error_code)
            raise
        except Exception:
            await rollback_quietly(db)
            logger.exception("Unexpected error staging payment for bill %s, rolled back", payment.bill_id)
            raise

        try:
            await db.commit()
        except (SQLAlchemyError, asyncio.TimeoutError) as exc:
            await rollback_quietly(db)
            logger.error("Commit failed for payment %s: %s", staged.payment_reference, exc)
            raise PersistenceFailure("commit", "failed to commit payment") from exc

        logger.info(
            "Payment recorded: %s %s for %s (%s) via %s by user %s, bill %s now %s",
            settings.currency_code, staged.amount_paid, staged.account_name, staged.account_number,
            staged.payment_method.value, context.actor.username, staged.bill_number,
            staged.bill_status_after.value
        )
        return staged

    async def _stage(
        self,
        db: AsyncSession,
        payment: ValidatedPayment,
        account_model: Type[Account],
        account_id: int,
        context: RequestContext,
        references: ReferenceGenerator
    ) -> LedgerEntryResult:
        now = context.now()
        step = "lock"
        try:
            # 1. Reference
            reference = references.payment_reference(now)

            # 2. Lock and re-validate against fresh rows
            bill = await self._lock_bill(db, payment.bill_id)
            if bill is None:
                raise BillNotFoundError(account_model.account_type.value, payment.period, account_id)

            account = await self._lock_account(db, account_model, account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id), account_model.account_type.value)

            balance_before = round_money(bill.amount_payable)
            status_before = bill.status
            if balance_before != payment.expected_balance or payment.amount > balance_before:
                raise ConcurrentModificationError(
                    "bill", bill.id,
                    {"expected_balance": str(payment.expected_balance), "current_balance": str(balance_before)}
                )

            # 3. Payment row
            step = "insert_payment"
            payment_row = await self._insert_payment(db, payment, reference, context, now)

            # 4. New bill state
            raw_balance = balance_before - payment.amount
            balance_after = clamp_non_negative(raw_balance)
            if balance_after != raw_balance:
                logger.warning(
                    "Clamped bill %s balance from %s to %s; validation let an overpayment through",
                    bill.id, raw_balance, balance_after
                )
            status_after = derive_bill_status(balance_after)

            # 5. Bill
            step = "update_bill"
            await self._update_bill(db, bill, balance_before, balance_after, status_after, now)

            # 6. Account aggregate
            step = "update_account"
            payable_before = round_money(account.amount_payable)
            paid_before = round_money(account.previous_payments)
            payable_after = clamp_non_negative(payable_before - payment.amount)
            paid_after = paid_before + payment.amount
            await self._update_account(db, account, payable_before, paid_before, payable_after, paid_after, now)

        except SQLAlchemyError as exc:
            raise PersistenceFailure(step, f"failed to {step.replace('_', ' ')}") from exc

        return LedgerEntryResult(
            payment_id=payment_row.id,
            payment_reference=reference,
            receipt_number=references.receipt_number(payment_row.id, now),
            payment_date=now,
            amount_paid=payment.amount,
            payment_method=payment.method,
            payment_channel=payment.channel,
            transaction_id=payment.transaction_id,
            notes=payment.notes,
            bill_id=bill.id,
            bill_number=bill.bill_number,
            billing_year=bill.billing_year,
            bill_balance_before=balance_before,
            bill_balance_after=balance_after,
            bill_status_before=status_before,
            bill_status_after=status_after,
            account_type=account_model.account_type,
            account_id=account_id,
            account_number=account.display_number,
            account_name=account.display_name,
            owner_name=account.owner_name,
            account_payable_before=payable_before,
            account_payable_after=payable_after,
            previous_payments_before=paid_before,
            previous_payments_after=paid_after,
        )

    @staticmethod
    async def _lock_bill(db: AsyncSession, bill_id: int) -> Optional[Bill]:
        result = await db.execute(
            select(Bill)
            .where(Bill.id == bill_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _lock_account(db: AsyncSession, account_model: Type[Account], account_id: int) -> Optional[Account]:
        result = await db.execute(
            select(account_model)
            .where(account_model.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _insert_payment(
        db: AsyncSession,
        payment: ValidatedPayment,
        reference: str,
        context: RequestContext,
        now: datetime
    ) -> Payment:
        row = Payment(
            payment_reference=reference,
            bill_id=payment.bill_id,
            amount_paid=payment.amount,
            payment_method=payment.method,
            payment_channel=payment.channel,
            transaction_id=payment.transaction_id,
            payment_status=PaymentStatus.SUCCESSFUL,
            payment_date=now,
            processed_by=context.actor.user_id,
            notes=payment.notes
        )
        db.add(row)
        try:
            await db.flush()
        except IntegrityError as exc:
            # The bill row is locked and known to exist, so the only
            # constraint this insert can trip is the unique reference.
            raise DuplicateReferenceError(reference) from exc
        return row

    @staticmethod
    async def _update_bill(
        db: AsyncSession,
        bill: Bill,
        balance_before: Decimal,
        balance_after: Decimal,
        status_after: BillStatus,
        now: datetime
    ) -> None:
        result = await db.execute(
            update(Bill)
            .where(Bill.id == bill.id, Bill.amount_payable == balance_before)
            .values(amount_payable=balance_after, status=status_after, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError("bill", bill.id)

    @staticmethod
    async def _update_account(
        db: AsyncSession,
        account: Account,
        payable_before: Decimal,
        paid_before: Decimal,
        payable_after: Decimal,
        paid_after: Decimal,
        now: datetime
    ) -> None:
        model = type(account)
        result = await db.execute(
            update(model)
            .where(
                model.id == account.id,
                model.amount_payable == payable_before,
                model.previous_payments == paid_before
            )
            .values(amount_payable=payable_after, previous_payments=paid_after, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError("account", account.id)
