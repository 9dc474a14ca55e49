"""
Audit Log Schemas
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime


class AuditLogResponse(BaseModel):
    """Audit log entry response"""
    id: str
    user_id: Optional[str]
    action: str
    entity: str
    entity_id: Optional[str]
    payload: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogsResponse(BaseModel):
    """Paginated audit logs response"""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
