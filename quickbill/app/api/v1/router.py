"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from quickbill.app.api.v1.endpoints import audit_logs, payments

router = APIRouter()

router.include_router(payments.router)
router.include_router(audit_logs.router)
