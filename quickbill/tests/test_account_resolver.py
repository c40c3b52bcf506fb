"""
Account/Bill Resolver Tests.
"""

from decimal import Decimal

import pytest

from quickbill.app.core.exceptions import AccountNotFoundError, BillNotFoundError, NotFoundError
from quickbill.app.domain.payments.account_resolver import AccountResolver
from quickbill.app.models.account import Property
from quickbill.app.models.bill import Bill
from quickbill.app.models.billing_enums import AccountType, PaymentMethod, PaymentStatus
from quickbill.app.models.payment import Payment


@pytest.mark.asyncio
async def test_resolves_business_and_bill(db_session, business, business_bill):
    resolved = await AccountResolver.resolve(db_session, "BUS-0001", AccountType.BUSINESS, 2025)

    assert resolved.account.id == business.id
    assert resolved.bill.id == business_bill.id
    assert resolved.account_type == AccountType.BUSINESS
    assert resolved.remaining_balance == Decimal("500.00")
    assert resolved.period == 2025


@pytest.mark.asyncio
async def test_account_number_is_scoped_to_type(db_session, business, business_bill):
    with pytest.raises(AccountNotFoundError):
        await AccountResolver.resolve(db_session, "BUS-0001", AccountType.PROPERTY, 2025)


@pytest.mark.asyncio
async def test_property_by_property_number(db_session, property_account, property_bill):
    resolved = await AccountResolver.resolve(db_session, "PROP-0001", AccountType.PROPERTY, 2025)
    assert resolved.account.id == property_account.id
    assert resolved.bill.id == property_bill.id


@pytest.mark.asyncio
async def test_property_by_legacy_account_number(db_session, property_account, property_bill):
    resolved = await AccountResolver.resolve(db_session, "LEGACY-77", AccountType.PROPERTY, 2025)
    assert resolved.account.id == property_account.id


@pytest.mark.asyncio
async def test_property_number_match_wins_over_alias(db_session, property_account):
    # A second property whose legacy alias equals the first one's property number
    db_session.add(Property(
        property_number="PROP-0002",
        account_number="PROP-0001",
        owner_name="Efua Owusu",
        amount_payable=Decimal("0.00"),
        previous_payments=Decimal("0.00"),
    ))
    await db_session.commit()

    account = await AccountResolver.find_account(db_session, "PROP-0001", AccountType.PROPERTY)
    assert account.id == property_account.id


@pytest.mark.asyncio
async def test_unknown_account(db_session):
    with pytest.raises(AccountNotFoundError) as exc_info:
        await AccountResolver.resolve(db_session, "NOPE-1", AccountType.BUSINESS, 2025)

    assert isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.status_code == 404
    assert exc_info.value.errors == ["Account not found. Please check the account number and type."]


@pytest.mark.asyncio
async def test_blank_account_number(db_session, business):
    with pytest.raises(AccountNotFoundError):
        await AccountResolver.find_account(db_session, "   ", AccountType.BUSINESS)


@pytest.mark.asyncio
async def test_no_bill_for_period_is_distinct(db_session, business, business_bill):
    with pytest.raises(BillNotFoundError) as exc_info:
        await AccountResolver.resolve(db_session, "BUS-0001", AccountType.BUSINESS, 2024)

    assert exc_info.value.error_code == "ERR_NOT_FOUND_003"
    assert "for the year 2024" in exc_info.value.message
    assert exc_info.value.details["period"] == 2024


@pytest.mark.asyncio
async def test_resolution_does_not_mutate(db_session, session_factory, business, business_bill):
    await AccountResolver.resolve(db_session, "BUS-0001", AccountType.BUSINESS, 2025)
    await db_session.rollback()

    async with session_factory() as session:
        bill = await session.get(Bill, business_bill.id)
        assert bill.amount_payable == Decimal("500.00")


@pytest.mark.asyncio
async def test_payment_summary(db_session, clock, business, business_bill):
    db_session.add_all([
        Payment(
            payment_reference="PAY20250115AAAAA1", bill_id=business_bill.id, amount_paid=Decimal("100.00"),
            payment_method=PaymentMethod.CASH, payment_status=PaymentStatus.SUCCESSFUL, payment_date=clock.now()
        ),
        Payment(
            payment_reference="PAY20250115AAAAA2", bill_id=business_bill.id, amount_paid=Decimal("50.25"),
            payment_method=PaymentMethod.MOBILE_MONEY, transaction_id="MM-1",
            payment_status=PaymentStatus.SUCCESSFUL, payment_date=clock.now()
        ),
        Payment(
            payment_reference="PAY20250115AAAAA3", bill_id=business_bill.id, amount_paid=Decimal("75.00"),
            payment_method=PaymentMethod.ONLINE, transaction_id="WEB-9",
            payment_status=PaymentStatus.FAILED, payment_date=clock.now()
        ),
    ])
    await db_session.commit()

    summary = await AccountResolver.payment_summary(db_session, business)

    assert summary.total_paid == Decimal("150.25")
    assert summary.successful_payments == 2
    assert summary.total_transactions == 3


@pytest.mark.asyncio
async def test_payment_summary_without_payments(db_session, property_account, property_bill):
    summary = await AccountResolver.payment_summary(db_session, property_account)

    assert summary.total_paid == Decimal("0.00")
    assert summary.successful_payments == 0
    assert summary.total_transactions == 0
