"""
Reference Generator Tests.
"""

from datetime import date, datetime, timezone

from quickbill.app.core.context import FixedClock
from quickbill.app.domain.payments.reference_generator import (
    REFERENCE_ALPHABET, SUFFIX_LENGTH, ReferenceGenerator, random_suffix
)


def test_payment_reference_layout():
    clock = FixedClock(datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc))
    generator = ReferenceGenerator(clock=clock, suffix_factory=lambda: "ABC123")

    assert generator.payment_reference() == "PAY20250115ABC123"


def test_random_suffix_alphabet():
    suffix = random_suffix()
    assert len(suffix) == SUFFIX_LENGTH
    assert all(ch in REFERENCE_ALPHABET for ch in suffix)


def test_references_do_not_repeat():
    generator = ReferenceGenerator(clock=FixedClock(datetime(2025, 1, 15, tzinfo=timezone.utc)))
    references = {generator.payment_reference() for _ in range(500)}
    assert len(references) == 500


def test_receipt_number_uses_payment_year_and_padded_id():
    generator = ReferenceGenerator()
    at = datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc)

    assert generator.receipt_number(42, at) == "RCP2024000042"
    assert generator.receipt_number(1234567, at) == "RCP20241234567"


def test_format_reference():
    generator = ReferenceGenerator()

    assert generator.format_reference("PAY20250115ABC123") == "PAY 2025-01-15 ABC123"
    assert generator.format_reference("MANUAL-001") == "MANUAL-001"


def test_reference_date():
    generator = ReferenceGenerator()

    assert generator.reference_date("PAY20250115ABC123") == date(2025, 1, 15)
    assert generator.reference_date("PAY20251399ABC123") is None
    assert generator.reference_date("XYZ20250115ABC123") is None
    assert generator.reference_date(None) is None


def test_custom_prefixes():
    clock = FixedClock(datetime(2025, 3, 1, tzinfo=timezone.utc))
    generator = ReferenceGenerator(clock=clock, prefix="QB", receipt_prefix="R", suffix_factory=lambda: "000001")

    assert generator.payment_reference() == "QB20250301000001"
    assert generator.receipt_number(7) == "R2025000007"
    assert generator.format_reference("QB20250301000001") == "QB 2025-03-01 000001"
