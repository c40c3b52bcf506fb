"""
Audit Trail Tests.

Entries are written after the payment commits; a failed audit write is
reported as a warning and never undoes the payment.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from quickbill.app.domain.payments.recording_service import PaymentRecordingService
from quickbill.app.models.audit_log import AuditLog
from quickbill.app.models.bill import Bill
from quickbill.app.models.billing_enums import AccountType, BillStatus, PaymentMethod
from quickbill.app.models.payment import Payment
from quickbill.app.schemas.payment import PaymentSubmission
from quickbill.app.services import audit
from quickbill.app.services.audit import AuditAction, AuditWriteWarning, get_audit_trail, serialize_snapshot


def submission(amount, method="Cash", transaction_id=None):
    return PaymentSubmission(
        account_number="BUS-0001",
        account_type=AccountType.BUSINESS,
        period=2025,
        payment_method=method,
        amount_paid=amount,
        transaction_id=transaction_id,
        notes="Paid at counter 2"
    )


def test_serialize_snapshot():
    snapshot = serialize_snapshot({
        "amount": Decimal("12.5"),
        "status": BillStatus.PAID,
        "method": PaymentMethod.MOBILE_MONEY,
        "at": datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc),
        "note": None,
        "count": 3,
    })

    assert snapshot == {
        "amount": "12.50",
        "status": "Paid",
        "method": "Mobile Money",
        "at": "2025-01-15T10:30:00+00:00",
        "note": None,
        "count": 3,
    }


def test_warning_text():
    warning = AuditWriteWarning(action="PAYMENT_RECORDED", table_name="payments", record_id=9, reason="disk full")
    assert str(warning) == "Audit entry PAYMENT_RECORDED for payments #9 was not recorded: disk full"


@pytest.mark.asyncio
async def test_settling_payment_writes_two_entries(db_session, session_factory, context, business, business_bill):
    result = await PaymentRecordingService().record(db_session, submission("500.00"), context)
    assert result.success is True
    assert result.warnings == []

    async with session_factory() as session:
        entries = await get_audit_trail(session)

    assert [e.action for e in entries] == [AuditAction.BILL_FULLY_PAID, AuditAction.PAYMENT_RECORDED]
    settled, recorded = entries

    assert recorded.table_name == "payments"
    assert recorded.record_id == result.payment_id
    assert recorded.user_id == context.actor.user_id
    assert recorded.actor_username == "officer.ama"
    assert recorded.correlation_id == "corr-test-0001"
    assert recorded.ip_address == "10.0.0.5"
    assert recorded.user_agent == "pytest-agent"
    assert recorded.new_values["payment_reference"] == result.payment_reference
    assert recorded.new_values["amount_paid"] == "500.00"
    assert recorded.new_values["previous_balance"] == "500.00"
    assert recorded.new_values["new_balance"] == "0.00"
    assert recorded.new_values["bill_status_updated"] == "Paid"
    assert recorded.new_values["account_type"] == "Business"
    assert recorded.new_values["notes"] == "Paid at counter 2"
    assert recorded.old_values == {
        "bill_amount_payable": "500.00",
        "bill_status": "Pending",
        "account_amount_payable": "500.00",
        "account_previous_payments": "0.00",
    }

    assert settled.table_name == "bills"
    assert settled.record_id == business_bill.id
    assert settled.new_values["previous_status"] == "Pending"
    assert settled.new_values["new_status"] == "Paid"
    assert settled.new_values["final_payment_reference"] == result.payment_reference


@pytest.mark.asyncio
async def test_partial_payment_writes_one_entry(db_session, session_factory, context, business, business_bill):
    result = await PaymentRecordingService().record(db_session, submission("120.00"), context)
    assert result.success is True

    async with session_factory() as session:
        entries = await get_audit_trail(session, table_name="payments", record_id=result.payment_id)
        settled = await get_audit_trail(session, action=AuditAction.BILL_FULLY_PAID)

    assert len(entries) == 1
    assert entries[0].new_values["bill_status_updated"] == "Partially Paid"
    assert settled == []


@pytest.mark.asyncio
async def test_rejected_payment_writes_nothing(db_session, session_factory, context, business, business_bill):
    result = await PaymentRecordingService().record(db_session, submission("600.00"), context)
    assert result.success is False

    async with session_factory() as session:
        count = (await session.execute(select(func.count(AuditLog.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_audit_failure_does_not_undo_payment(db_session, session_factory, context, business, business_bill, mocker):
    mocker.patch.object(audit, "log_event", side_effect=OperationalError("INSERT", {}, Exception("disk full")))

    result = await PaymentRecordingService().record(db_session, submission("500.00"), context)

    assert result.success is True
    assert result.new_balance == Decimal("0.00")
    assert len(result.warnings) == 2
    assert result.warnings[0].startswith(f"Audit entry PAYMENT_RECORDED for payments #{result.payment_id}")
    assert result.warnings[1].startswith(f"Audit entry BILL_FULLY_PAID for bills #{business_bill.id}")

    async with session_factory() as session:
        payment = await session.get(Payment, result.payment_id)
        bill = await session.get(Bill, business_bill.id)
        count = (await session.execute(select(func.count(AuditLog.id)))).scalar()

    assert payment is not None
    assert bill.status == BillStatus.PAID
    assert count == 0


@pytest.mark.asyncio
async def test_one_failed_entry_keeps_the_other(db_session, session_factory, context, business, business_bill, mocker):
    real_log_event = audit.log_event

    async def flaky(db, action, context, **kwargs):
        if action == AuditAction.BILL_FULLY_PAID:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return await real_log_event(db, action, context, **kwargs)

    mocker.patch.object(audit, "log_event", side_effect=flaky)

    result = await PaymentRecordingService().record(db_session, submission("500.00"), context)

    assert result.success is True
    assert len(result.warnings) == 1
    assert "BILL_FULLY_PAID" in result.warnings[0]

    async with session_factory() as session:
        entries = await get_audit_trail(session)

    assert [e.action for e in entries] == [AuditAction.PAYMENT_RECORDED]
