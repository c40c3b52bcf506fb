"""
Payment Recording Service (Domain Logic).

Entry point for recording a payment against an account's bill.

Flow:
1. Resolve account + bill for the period
2. Validate the candidate payment (all rules, all errors)
3. Apply it through the ledger writer (atomic)
4. Audit trail (post-commit, best effort)
5. Invalidate cached statistics

Validation and not-found failures never reach the ledger writer. Reads
before the ledger step share its deadline. No failure is retried here;
the caller decides whether to resubmit.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickbill.app.core.context import RequestContext
from quickbill.app.core.exceptions import AppException, PersistenceFailure
from quickbill.app.core.money import round_money
from quickbill.app.db.session import bounded, rollback_quietly
from quickbill.app.domain.payments.account_resolver import AccountResolver
from quickbill.app.domain.payments.ledger_writer import LedgerWriter
from quickbill.app.domain.payments.validator import PaymentCandidate, PaymentValidator
from quickbill.app.models.billing_enums import PaymentMethod
from quickbill.app.schemas.payment import (
    AccountLookupRequest,
    AccountLookupResponse,
    BillSummary,
    PaymentMethodInfo,
    PaymentResult,
    PaymentSubmission,
)
from quickbill.app.services.audit import log_payment_recorded
from quickbill.app.services.cache import PaymentStatsCache

logger = logging.getLogger(__name__)


class PaymentRecordingService:

    def __init__(
        self,
        ledger_writer: Optional[LedgerWriter] = None,
        stats_cache: Optional[PaymentStatsCache] = None
    ):
        self.ledger_writer = ledger_writer or LedgerWriter()
        self.stats_cache = stats_cache

    @staticmethod
    def payment_methods() -> List[PaymentMethodInfo]:
        """Catalogue of accepted payment methods."""
        return [
            PaymentMethodInfo(
                method=method,
                name=method.value,
                requires_transaction_id=method.requires_transaction_id
            )
            for method in PaymentMethod
        ]

    async def lookup(
        self,
        db: AsyncSession,
        request: AccountLookupRequest,
        context: RequestContext
    ) -> AccountLookupResponse:
        """
        Account, bill for the period and payment history, for the payment form.

        Raises:
            AccountNotFoundError / BillNotFoundError
            PersistenceFailure: Storage fault or timeout while reading.
        """
        period = request.period or context.now().year
        timeout = self.ledger_writer.timeout_seconds
        resolved = await bounded(
            AccountResolver.resolve(db, request.account_number, request.account_type, period), "resolve", timeout
        )
        summary = await bounded(AccountResolver.payment_summary(db, resolved.account), "resolve", timeout)
        account = resolved.account

        return AccountLookupResponse(
            account_type=resolved.account_type,
            account_id=account.id,
            account_number=account.display_number,
            account_name=account.display_name,
            owner_name=account.owner_name,
            telephone=account.telephone,
            account_amount_payable=round_money(account.amount_payable),
            account_previous_payments=round_money(account.previous_payments),
            bill=BillSummary.model_validate(resolved.bill),
            remaining_balance=resolved.remaining_balance,
            total_paid=summary.total_paid,
            successful_payments=summary.successful_payments,
            total_transactions=summary.total_transactions
        )

    async def record(
        self,
        db: AsyncSession,
        submission: PaymentSubmission,
        context: RequestContext
    ) -> PaymentResult:
        """
        Record a payment. Never raises for business failures; they come back
        as an unsuccessful result carrying every reason.
        """
        period = submission.period or context.now().year

        try:
            resolved = await bounded(
                AccountResolver.resolve(db, submission.account_number, submission.account_type, period),
                "resolve",
                self.ledger_writer.timeout_seconds
            )
            validated = PaymentValidator.validate(
                PaymentCandidate(
                    method=submission.payment_method,
                    amount=submission.amount_paid,
                    transaction_id=submission.transaction_id,
                    channel=submission.payment_channel,
                    notes=submission.notes
                ),
                resolved.bill
            )
            entry = await self.ledger_writer.apply(db, validated, resolved.account, context)
        except AppException as exc:
            if isinstance(exc, PersistenceFailure):
                await rollback_quietly(db)
            logger.info(
                "Payment rejected for %s %s (%s): %s",
                submission.account_type.value, submission.account_number, exc.error_code, "; ".join(exc.errors)
            )
            return PaymentResult(
                success=False,
                error_code=exc.error_code,
                errors=exc.errors,
                http_status=exc.status_code
            )

        warnings = await log_payment_recorded(db, entry, context)

        if self.stats_cache is not None:
            await self.stats_cache.invalidate(context.now().date())

        return PaymentResult(
            success=True,
            payment_id=entry.payment_id,
            payment_reference=entry.payment_reference,
            receipt_number=entry.receipt_number,
            new_balance=entry.bill_balance_after,
            bill_status=entry.bill_status_after,
            warnings=[str(w) for w in warnings]
        )
