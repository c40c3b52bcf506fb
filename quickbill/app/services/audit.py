"""
Audit logging service for payment recording.

Writes append-only compliance entries after the financial mutation has
committed. A failed audit write is logged and reported as a warning; it
never reverses the payment it describes.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from quickbill.app.core.context import RequestContext
from quickbill.app.core.money import round_money
from quickbill.app.db.session import bounded
from quickbill.app.domain.payments.ledger_writer import LedgerEntryResult
from quickbill.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    BILL_FULLY_PAID = "BILL_FULLY_PAID"


@dataclass(frozen=True)
class AuditWriteWarning:
    """Non-fatal: an audit entry could not be written."""
    action: str
    table_name: str
    record_id: Optional[int]
    reason: str

    def __str__(self) -> str:
        return f"Audit entry {self.action} for {self.table_name} #{self.record_id} was not recorded: {self.reason}"


def serialize_snapshot(values: Dict[str, Any]) -> Dict[str, Any]:
    """Make a snapshot JSON-safe. Money is kept as two-decimal strings."""
    out = {}
    for key, value in values.items():
        if isinstance(value, Decimal):
            value = str(round_money(value))
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        out[key] = value
    return out


async def log_event(
    db: AsyncSession,
    action: str,
    context: RequestContext,
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    new_values: Optional[Dict[str, Any]] = None,
    old_values: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Append one audit entry and commit it.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        context: Request context (actor, clock, origin metadata)
        table_name: Affected table
        record_id: Affected row id
        new_values: Snapshot after the action
        old_values: Snapshot before the action

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        user_id=context.actor.user_id,
        actor_username=context.actor.username,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_values=serialize_snapshot(old_values) if old_values else None,
        new_values=serialize_snapshot(new_values) if new_values else None,
        ip_address=context.ip_address,
        user_agent=(context.user_agent or "")[:255] or None,
        correlation_id=context.correlation_id,
        created_at=context.now()
    )

    db.add(audit_log)
    await db.commit()

    return audit_log


async def log_event_safely(db: AsyncSession, action: str, context: RequestContext, **kwargs) -> Optional[AuditWriteWarning]:
    """
    Like log_event, but failures are captured instead of raised.

    Returns:
        None on success, otherwise the warning describing the failure
    """
    try:
        await log_event(db, action, context, **kwargs)
        return None
    except Exception as exc:
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback after failed audit write also failed")
        logger.warning(
            "Failed to write audit entry %s for %s #%s (correlation %s): %s",
            action, kwargs.get("table_name"), kwargs.get("record_id"), context.correlation_id, exc
        )
        return AuditWriteWarning(
            action=action,
            table_name=kwargs.get("table_name") or "",
            record_id=kwargs.get("record_id"),
            reason=str(exc) or type(exc).__name__
        )


async def log_payment_recorded(
    db: AsyncSession,
    entry: LedgerEntryResult,
    context: RequestContext
) -> List[AuditWriteWarning]:
    """
    Write the audit trail for a committed payment.

    Always one PAYMENT_RECORDED entry; a BILL_FULLY_PAID entry as well when
    the payment moved the bill to Paid.

    Returns:
        Warnings for any entries that could not be written
    """
    warnings = []

    payment_snapshot = {
        "payment_reference": entry.payment_reference,
        "receipt_number": entry.receipt_number,
        "bill_id": entry.bill_id,
        "bill_number": entry.bill_number,
        "billing_year": entry.billing_year,
        "account_type": entry.account_type,
        "account_id": entry.account_id,
        "account_name": entry.account_name,
        "account_number": entry.account_number,
        "account_owner": entry.owner_name,
        "amount_paid": entry.amount_paid,
        "payment_method": entry.payment_method,
        "payment_channel": entry.payment_channel,
        "transaction_id": entry.transaction_id,
        "previous_balance": entry.bill_balance_before,
        "new_balance": entry.bill_balance_after,
        "bill_status_updated": entry.bill_status_after,
        "account_amount_payable_after": entry.account_payable_after,
        "account_previous_payments_after": entry.previous_payments_after,
        "payment_status": "Successful",
        "processed_by_id": context.actor.user_id,
        "processed_by_name": context.actor.username,
        "notes": entry.notes,
        "timestamp": entry.payment_date,
    }
    before_snapshot = {
        "bill_amount_payable": entry.bill_balance_before,
        "bill_status": entry.bill_status_before,
        "account_amount_payable": entry.account_payable_before,
        "account_previous_payments": entry.previous_payments_before,
    }

    warning = await log_event_safely(
        db, AuditAction.PAYMENT_RECORDED, context,
        table_name="payments",
        record_id=entry.payment_id,
        new_values=payment_snapshot,
        old_values=before_snapshot
    )
    if warning:
        warnings.append(warning)

    if entry.settled_bill:
        warning = await log_event_safely(
            db, AuditAction.BILL_FULLY_PAID, context,
            table_name="bills",
            record_id=entry.bill_id,
            new_values={
                "bill_id": entry.bill_id,
                "bill_number": entry.bill_number,
                "previous_status": entry.bill_status_before,
                "new_status": entry.bill_status_after,
                "final_payment_reference": entry.payment_reference,
                "final_payment_amount": entry.amount_paid,
                "amount_settled": entry.bill_balance_before,
                "account_type": entry.account_type,
                "account_id": entry.account_id,
                "completed_by": context.actor.username,
                "completion_timestamp": entry.payment_date,
            }
        )
        if warning:
            warnings.append(warning)

    return warnings


async def get_audit_trail(
    db: AsyncSession,
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    action: Optional[str] = None,
    user_id: Optional[int] = None,
    limit: int = 100
) -> List[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.created_at), desc(AuditLog.id))

    if table_name:
        query = query.where(AuditLog.table_name == table_name)

    if record_id is not None:
        query = query.where(AuditLog.record_id == record_id)

    if action:
        query = query.where(AuditLog.action == action)

    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)

    query = query.limit(limit)

    result = await bounded(db.execute(query), "read_audit_trail")
    return list(result.scalars().all())
