"""
Payment Query Service.

Listing, detail and statistics over recorded payments.
Focused on READ-ONLY operations. Bills and accounts are outer-joined so a
missing row never fails the whole query. Every statement runs under the
read deadline; a timeout or storage fault surfaces as PersistenceFailure.
"""

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_, case, desc

from quickbill.app.core.config import settings
from quickbill.app.core.exceptions import ResourceNotFoundError
from quickbill.app.core.money import round_money
from quickbill.app.db.session import bounded
from quickbill.app.domain.payments.reference_generator import ReferenceGenerator
from quickbill.app.models.account import Business, Property
from quickbill.app.models.bill import Bill
from quickbill.app.models.payment import Payment
from quickbill.app.models.billing_enums import AccountType, PaymentStatus
from quickbill.app.schemas.payment import (
    PaymentDetailResponse, PaymentFilters, PaymentPage, PaymentResponse, PaymentStatistics
)
from quickbill.app.services.cache import PaymentStatsCache

logger = logging.getLogger(__name__)


def _day_bounds(day: date):
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


payer_name = case(
    (Bill.bill_type == AccountType.BUSINESS, Business.business_name),
    (Bill.bill_type == AccountType.PROPERTY, Property.owner_name),
    else_=None
)

payer_account_number = case(
    (Bill.bill_type == AccountType.BUSINESS, Business.account_number),
    (Bill.bill_type == AccountType.PROPERTY, Property.property_number),
    else_=None
)


def _with_joins(query):
    return (
        query
        .outerjoin(Bill, Payment.bill_id == Bill.id)
        .outerjoin(Business, and_(Bill.bill_type == AccountType.BUSINESS, Bill.reference_id == Business.id))
        .outerjoin(Property, and_(Bill.bill_type == AccountType.PROPERTY, Bill.reference_id == Property.id))
    )


def _to_response(row) -> PaymentResponse:
    payment = row.Payment
    return PaymentResponse(
        id=payment.id,
        payment_reference=payment.payment_reference,
        amount_paid=round_money(payment.amount_paid),
        payment_method=payment.payment_method,
        payment_channel=payment.payment_channel,
        transaction_id=payment.transaction_id,
        payment_status=payment.payment_status,
        payment_date=payment.payment_date,
        processed_by=payment.processed_by,
        notes=payment.notes,
        bill_id=payment.bill_id,
        bill_number=row.bill_number,
        bill_type=row.bill_type,
        billing_year=row.billing_year,
        payer_name=row.payer_name,
        account_number=row.account_number,
    )


class PaymentQueryService:

    @staticmethod
    def _filtered(query, filters: PaymentFilters):
        conditions = []

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(or_(
                Payment.payment_reference.ilike(pattern),
                Payment.transaction_id.ilike(pattern),
                Bill.bill_number.ilike(pattern),
                payer_name.ilike(pattern)
            ))

        if filters.account_type:
            conditions.append(Bill.bill_type == filters.account_type)

        if filters.date_from:
            conditions.append(Payment.payment_date >= _day_bounds(filters.date_from)[0])

        if filters.date_to:
            conditions.append(Payment.payment_date < _day_bounds(filters.date_to)[1])

        return query.where(*conditions) if conditions else query

    @staticmethod
    async def list_payments(db: AsyncSession, filters: PaymentFilters) -> PaymentPage:
        """Filtered, paginated payments, newest first."""
        page_size = min(filters.page_size or settings.payments_page_size, settings.payments_max_page_size)
        offset = (filters.page - 1) * page_size

        count_query = PaymentQueryService._filtered(
            _with_joins(select(func.count(Payment.id)).select_from(Payment)), filters
        )
        total = (await bounded(db.execute(count_query), "query")).scalar() or 0

        query = PaymentQueryService._filtered(
            _with_joins(
                select(
                    Payment,
                    Bill.bill_number,
                    Bill.bill_type,
                    Bill.billing_year,
                    payer_name.label("payer_name"),
                    payer_account_number.label("account_number"),
                ).select_from(Payment)
            ),
            filters
        ).order_by(desc(Payment.payment_date), desc(Payment.id)).limit(page_size).offset(offset)

        result = await bounded(db.execute(query), "query")
        items = [_to_response(row) for row in result.all()]
        logger.debug("Listed %d of %d payments (page %d)", len(items), total, filters.page)

        return PaymentPage(
            items=items,
            total=total,
            page=filters.page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if total else 0
        )

    @staticmethod
    async def get_payment(
        db: AsyncSession,
        payment_id: int,
        references: Optional[ReferenceGenerator] = None
    ) -> PaymentDetailResponse:
        """
        Fetch one payment with its bill and payer.

        Raises:
            ResourceNotFoundError: If the payment does not exist.
        """
        references = references or ReferenceGenerator()
        query = _with_joins(
            select(
                Payment,
                Bill.bill_number,
                Bill.bill_type,
                Bill.billing_year,
                Bill.amount_payable.label("bill_amount_payable"),
                Bill.status.label("bill_status"),
                payer_name.label("payer_name"),
                payer_account_number.label("account_number"),
            ).select_from(Payment)
        ).where(Payment.id == payment_id)

        row = (await bounded(db.execute(query), "query")).first()
        if row is None:
            raise ResourceNotFoundError("Payment", payment_id)

        base = _to_response(row)
        return PaymentDetailResponse(
            **base.model_dump(),
            receipt_number=references.receipt_number(base.id, base.payment_date),
            formatted_reference=references.format_reference(base.payment_reference),
            bill_amount_payable=row.bill_amount_payable,
            bill_status=row.bill_status,
        )

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        today: date,
        cache: Optional[PaymentStatsCache] = None
    ) -> PaymentStatistics:
        """Count and sum of successful payments, overall and for today."""
        generation = None
        if cache is not None:
            cached = await cache.get(today)
            if cached:
                return PaymentStatistics(**cached)
            generation = await cache.generation(today)

        start, end = _day_bounds(today)
        is_today = and_(Payment.payment_date >= start, Payment.payment_date < end)

        result = await bounded(db.execute(
            select(
                func.count(Payment.id),
                func.coalesce(func.sum(Payment.amount_paid), 0),
                func.count(case((is_today, 1))),
                func.coalesce(func.sum(case((is_today, Payment.amount_paid), else_=0)), 0),
            ).where(Payment.payment_status == PaymentStatus.SUCCESSFUL)
        ), "query")
        total_payments, total_amount, today_payments, today_amount = result.one()

        stats = PaymentStatistics(
            total_payments=total_payments or 0,
            total_amount=round_money(total_amount),
            today_payments=today_payments or 0,
            today_amount=round_money(today_amount),
            as_of=today
        )

        if cache is not None:
            await cache.set(today, stats.model_dump(mode="json"), generation)

        return stats
