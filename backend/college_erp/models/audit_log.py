from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime

from college_erp.core.database import Base
from college_erp.core.types import GUID, generate_uuid


class AuditLog(Base):
    """Append-only audit trail of lifecycle changes"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, nullable=True, index=True)  # actor; no FK so system actions and deleted users still log

    # Action details
    action = Column(String(100), nullable=False, index=True)  # e.g., 'UPDATE_ADMISSION_STATUS'
    entity = Column(String(50), nullable=False)  # e.g., 'Admission', 'StudentSemester'
    entity_id = Column(String(64), nullable=True)

    payload = Column(JSON, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.user_id}>"
