"""
Security guards for permission-based access control.

The payment core never checks permissions itself; endpoints declare the
permission they need with these dependencies.
"""

from fastapi import Depends
from quickbill.app.core.context import Actor
from quickbill.app.core.dependencies import get_current_actor
from quickbill.app.core.exceptions import InsufficientPermissionsError


def require_permission(permission: str):
    """
    Dependency factory for permission checks.

    Usage:
        @router.post("/payments")
        async def record_payment(actor: Actor = Depends(require_permission("payments.create"))):
            ...

    Raises:
        InsufficientPermissionsError (403) if the actor's role lacks the permission
    """
    async def permission_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.has_permission(permission):
            raise InsufficientPermissionsError(
                f"Access denied. Missing permission: {permission}",
                details={"permission": permission, "role": actor.role.value}
            )
        return actor

    return permission_checker

