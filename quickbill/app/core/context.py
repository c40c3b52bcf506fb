"""
Request-scoped context passed explicitly into every payment-core call.

Replaces ambient session state: who is acting, what time it is, and
where the request came from.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
import uuid

from quickbill.app.models.enums import UserRole


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **delta) -> None:
        self.instant = self.instant + timedelta(**delta)


# Role -> permissions for non-admin roles. Admins get everything
# except restrictions.view.
ROLE_PERMISSIONS = {
    UserRole.OFFICER: {
        "businesses.view", "businesses.create", "businesses.edit",
        "properties.view", "properties.create", "properties.edit",
        "payments.view", "payments.create",
        "billing.view", "billing.generate",
        "reports.view",
    },
    UserRole.REVENUE_OFFICER: {
        "businesses.view", "properties.view",
        "payments.view", "payments.create",
        "reports.view",
    },
    UserRole.DATA_COLLECTOR: {
        "businesses.view", "businesses.create", "businesses.edit",
        "properties.view", "properties.create", "properties.edit",
    },
}


@dataclass(frozen=True)
class Actor:
    """Opaque identity of whoever is processing a payment."""
    user_id: int
    username: str
    role: UserRole

    def has_permission(self, permission: str) -> bool:
        if self.role in (UserRole.SUPER_ADMIN, UserRole.ADMIN):
            return permission != "restrictions.view"
        return permission in ROLE_PERMISSIONS.get(self.role, set())


@dataclass
class RequestContext:
    actor: Actor
    clock: Clock = field(default_factory=SystemClock)
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def now(self) -> datetime:
        return self.clock.now()
