"""
Payment Reference Generator.

References look like PAY20250115ABC123: prefix, payment date (YYYYMMDD),
six random characters from [0-9A-Z]. Receipt numbers are derived from the
committed payment id: RCP + year + id padded to six digits.
"""

import re
import secrets
import string
from datetime import date, datetime
from typing import Callable, Optional

from quickbill.app.core.config import settings
from quickbill.app.core.context import Clock, SystemClock

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 6


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))


class ReferenceGenerator:
    """
    Produces payment references and receipt numbers.

    With 36**6 suffixes per prefix per day, collisions are rare but possible;
    uniqueness is ultimately enforced by the database and a collision is
    surfaced as DuplicateReferenceError, never overwritten.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        prefix: Optional[str] = None,
        receipt_prefix: Optional[str] = None,
        suffix_factory: Callable[[], str] = random_suffix,
    ):
        self.clock = clock or SystemClock()
        self.prefix = prefix or settings.payment_reference_prefix
        self.receipt_prefix = receipt_prefix or settings.receipt_prefix
        self.suffix_factory = suffix_factory
        self._pattern = re.compile(rf"^{re.escape(self.prefix)}(\d{{8}})([A-Z0-9]+)$")

    def payment_reference(self, at: Optional[datetime] = None) -> str:
        at = at or self.clock.now()
        return f"{self.prefix}{at:%Y%m%d}{self.suffix_factory()}"

    def receipt_number(self, payment_id: int, at: Optional[datetime] = None) -> str:
        at = at or self.clock.now()
        return f"{self.receipt_prefix}{at:%Y}{payment_id:06d}"

    def reference_date(self, reference: str) -> Optional[date]:
        """Date component of a reference, or None if it is not one of ours."""
        match = self._pattern.match(reference or "")
        if not match:
            return None
        try:
            return datetime.strptime(match.group(1), "%Y%m%d").date()
        except ValueError:
            return None

    def format_reference(self, reference: str) -> str:
        """PAY20250115ABC123 -> 'PAY 2025-01-15 ABC123'; other values unchanged."""
        match = self._pattern.match(reference or "")
        if not match:
            return reference
        raw_date, code = match.groups()
        return f"{self.prefix} {raw_date[:4]}-{raw_date[4:6]}-{raw_date[6:]} {code}"
