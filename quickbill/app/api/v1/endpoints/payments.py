"""
Payment API Endpoints.

Recording, account lookup and read-only payment queries.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from quickbill.app.db.session import get_db
from quickbill.app.core.context import RequestContext
from quickbill.app.core.dependencies import get_request_context
from quickbill.app.core.guards import require_permission
from quickbill.app.core.redis_client import get_redis
from quickbill.app.domain.payments.recording_service import PaymentRecordingService
from quickbill.app.models.billing_enums import AccountType
from quickbill.app.schemas.payment import (
    AccountLookupRequest,
    AccountLookupResponse,
    PaymentDetailResponse,
    PaymentFilters,
    PaymentMethodInfo,
    PaymentPage,
    PaymentResult,
    PaymentStatistics,
    PaymentSubmission,
)
from quickbill.app.services.cache import PaymentStatsCache
from quickbill.app.services.payment_query import PaymentQueryService

router = APIRouter(prefix="/payments", tags=["Payments"])


async def get_stats_cache(redis=Depends(get_redis)) -> PaymentStatsCache:
    return PaymentStatsCache(redis)


@router.get("/methods", response_model=List[PaymentMethodInfo])
async def list_payment_methods():
    """Accepted payment methods and whether each needs a transaction id."""
    return PaymentRecordingService.payment_methods()


@router.post("/lookup", response_model=AccountLookupResponse)
async def lookup_account(
    request: AccountLookupRequest,
    _=Depends(require_permission("payments.view")),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db)
):
    """Find an account and its bill for the period before taking a payment."""
    return await PaymentRecordingService().lookup(db, request, context)


@router.post("", response_model=PaymentResult, status_code=201)
async def record_payment(
    submission: PaymentSubmission,
    response: Response,
    _=Depends(require_permission("payments.create")),
    context: RequestContext = Depends(get_request_context),
    cache: PaymentStatsCache = Depends(get_stats_cache),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment against an account's bill.

    Always answers with a PaymentResult. When success is false the HTTP
    status reflects the failure (422 validation, 404 not found, 409
    conflict, 503 persistence).
    """
    result = await PaymentRecordingService(stats_cache=cache).record(db, submission, context)
    response.status_code = result.http_status
    return result


@router.get("", response_model=PaymentPage)
async def list_payments(
    search: Optional[str] = Query(None, max_length=100),
    account_type: Optional[AccountType] = Query(None, alias="type"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    _=Depends(require_permission("payments.view")),
    db: AsyncSession = Depends(get_db)
):
    """List payments, newest first."""
    filters = PaymentFilters(
        search=search,
        account_type=account_type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size
    )
    return await PaymentQueryService.list_payments(db, filters)


@router.get("/stats", response_model=PaymentStatistics)
async def payment_statistics(
    _=Depends(require_permission("payments.view")),
    context: RequestContext = Depends(get_request_context),
    cache: PaymentStatsCache = Depends(get_stats_cache),
    db: AsyncSession = Depends(get_db)
):
    """Totals of successful payments, overall and today."""
    return await PaymentQueryService.get_statistics(db, context.now().date(), cache)


@router.get("/{payment_id}", response_model=PaymentDetailResponse)
async def get_payment(
    payment_id: int = Path(..., ge=1),
    _=Depends(require_permission("payments.view")),
    db: AsyncSession = Depends(get_db)
):
    """Single payment with bill, payer and receipt number."""
    return await PaymentQueryService.get_payment(db, payment_id)
