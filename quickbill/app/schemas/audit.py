"""
Audit Trail Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional


class AuditLogResponse(BaseModel):
    """One audit entry with its snapshots."""
    id: int
    user_id: Optional[int]
    actor_username: Optional[str]
    action: str
    table_name: Optional[str]
    record_id: Optional[int]
    old_values: Optional[Dict[str, Any]]
    new_values: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    correlation_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
