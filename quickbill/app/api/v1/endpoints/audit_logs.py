"""
Audit Trail API Endpoints (admin-only).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quickbill.app.db.session import get_db
from quickbill.app.core.guards import require_permission
from quickbill.app.schemas.audit import AuditLogResponse, AuditTrailResponse
from quickbill.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=AuditTrailResponse)
async def list_audit_logs(
    table_name: Optional[str] = Query(None, max_length=50, description="e.g. payments, bills"),
    record_id: Optional[int] = Query(None, ge=1),
    action: Optional[str] = Query(None, max_length=100, description="e.g. PAYMENT_RECORDED"),
    user_id: Optional[int] = Query(None, ge=1, description="Acting user"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    _=Depends(require_permission("audit_logs.view")),
    db: AsyncSession = Depends(get_db)
):
    """
    Recent audit entries, newest first.

    Used to inspect who recorded a payment, from where, and the balances
    before and after.
    """
    logs = await get_audit_trail(
        db,
        table_name=table_name,
        record_id=record_id,
        action=action,
        user_id=user_id,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
