"""
Centralized Test Configuration.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from quickbill.app.main import app
from quickbill.app.core.config import settings
from quickbill.app.db.session import get_db, Base
from quickbill.app.core.context import Actor, FixedClock, RequestContext
from quickbill.app.core.dependencies import get_clock
from quickbill.app.core.redis_client import get_redis
from quickbill.app.models.account import Business, Property
from quickbill.app.models.bill import Bill
from quickbill.app.models.billing_enums import AccountType, BillStatus
from quickbill.app.models.enums import UserRole

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PAYMENT_INSTANT = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Fresh database per test (one engine per event loop)
@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self.expiry[key] = seconds
        return key in self.store


class BrokenRedis:
    """Every call fails as if the server were unreachable."""

    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")

    async def delete(self, key):
        raise ConnectionError("redis down")

    async def incr(self, key):
        raise ConnectionError("redis down")

    async def expire(self, key, seconds):
        raise ConnectionError("redis down")


@pytest.fixture
def redis_client():
    return MockRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture
def clock():
    return FixedClock(PAYMENT_INSTANT)


@pytest.fixture
def actor():
    return Actor(user_id=7, username="officer.ama", role=UserRole.REVENUE_OFFICER)


@pytest.fixture
def context(actor, clock):
    return RequestContext(
        actor=actor,
        clock=clock,
        correlation_id="corr-test-0001",
        ip_address="10.0.0.5",
        user_agent="pytest-agent"
    )


# Seed data, written through a separate session
@pytest.fixture
async def business(session_factory):
    async with session_factory() as session:
        account = Business(
            account_number="BUS-0001",
            business_name="Adjoa Chop Bar",
            business_type="Restaurant",
            category="Small",
            owner_name="Adjoa Mensah",
            telephone="0244000001",
            amount_payable=Decimal("500.00"),
            previous_payments=Decimal("0.00"),
        )
        session.add(account)
        await session.commit()
        return account


@pytest.fixture
async def business_bill(session_factory, business):
    async with session_factory() as session:
        bill = Bill(
            bill_number="BL-B-2025-000001",
            bill_type=AccountType.BUSINESS,
            reference_id=business.id,
            billing_year=2025,
            old_bill=Decimal("0.00"),
            arrears=Decimal("100.00"),
            current_bill=Decimal("400.00"),
            previous_payments=Decimal("0.00"),
            amount_payable=Decimal("500.00"),
            status=BillStatus.PENDING,
        )
        session.add(bill)
        await session.commit()
        return bill


@pytest.fixture
async def property_account(session_factory):
    async with session_factory() as session:
        account = Property(
            property_number="PROP-0001",
            account_number="LEGACY-77",
            owner_name="Kwame Boateng",
            telephone="0200000002",
            structure="Concrete",
            property_use="Residential",
            number_of_rooms=4,
            amount_payable=Decimal("250.00"),
            previous_payments=Decimal("50.00"),
        )
        session.add(account)
        await session.commit()
        return account


@pytest.fixture
async def property_bill(session_factory, property_account):
    async with session_factory() as session:
        bill = Bill(
            bill_number="BL-P-2025-000001",
            bill_type=AccountType.PROPERTY,
            reference_id=property_account.id,
            billing_year=2025,
            current_bill=Decimal("250.00"),
            amount_payable=Decimal("250.00"),
            status=BillStatus.PENDING,
        )
        session.add(bill)
        await session.commit()
        return bill


@pytest.fixture
def issue_token():
    """Sign tokens the way the user management system does: issue_token(claims, expires_in)."""
    def make(claims: dict, expires_in: timedelta = timedelta(minutes=30)) -> str:
        payload = {**claims, "exp": datetime.now(timezone.utc) + expires_in}
        return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)
    return make


@pytest.fixture
def auth_headers(issue_token):
    """Factory for bearer headers: auth_headers(UserRole.OFFICER)."""
    def make(role: UserRole = UserRole.REVENUE_OFFICER, user_id: int = 7, username: str = "officer.ama") -> dict:
        token = issue_token({"sub": username, "user_id": user_id, "role": role.value})
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
async def client(session_factory, redis_client, clock):
    """Async client for testing, wired to the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
