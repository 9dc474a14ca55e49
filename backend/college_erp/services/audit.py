"""
Audit sink for lifecycle changes.

Every mutating service call records one or more audit entries after its
transaction commits. Writes go through a separate session so a failed
audit insert can never roll back, or be rolled back with, the change it
describes. Failures are logged and swallowed.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from college_erp.core.config import settings
from college_erp.core.logging_config import logger
from college_erp.core.database import get_session_local
from college_erp.models import AuditLog


class AuditAction:
    """Audit action names"""
    CREATE_ADMISSION = "CREATE_ADMISSION"
    UPDATE_ADMISSION_STATUS = "UPDATE_ADMISSION_STATUS"
    SEMESTER_AUTO_ASSIGNMENT = "SEMESTER_AUTO_ASSIGNMENT"
    ASSIGN_SEMESTER_TO_STUDENT = "ASSIGN_SEMESTER_TO_STUDENT"
    UPDATE_STUDENT_SEMESTER_STATUS = "UPDATE_STUDENT_SEMESTER_STATUS"
    SEMESTER_AUTO_PROMOTION = "SEMESTER_AUTO_PROMOTION"
    STUDENT_COURSE_COMPLETION = "STUDENT_COURSE_COMPLETION"
    SEMESTER_FAILED = "SEMESTER_FAILED"
    BULK_UPDATE_STUDENT_SEMESTER_STATUS = "BULK_UPDATE_STUDENT_SEMESTER_STATUS"
    AUTO_ASSIGN_STUDENTS_TO_SEMESTER = "AUTO_ASSIGN_STUDENTS_TO_SEMESTER"
    PROMOTE_STUDENTS_TO_NEXT_SEMESTER = "PROMOTE_STUDENTS_TO_NEXT_SEMESTER"
    CREATE_STUDENT_SUBJECT = "CREATE_STUDENT_SUBJECT"
    BULK_ASSIGN_SUBJECTS = "BULK_ASSIGN_SUBJECTS"
    DELETE_STUDENT_SUBJECT = "DELETE_STUDENT_SUBJECT"
    CREATE_STUDENT = "CREATE_STUDENT"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"
    CREATE_COURSE = "CREATE_COURSE"
    CREATE_SESSION = "CREATE_SESSION"
    ESTABLISH_CURRICULUM = "ESTABLISH_CURRICULUM"
    CREATE_SUBJECT = "CREATE_SUBJECT"


class AuditSink(ABC):
    """Append-only, fire-and-forget audit log"""

    @abstractmethod
    async def record(
        self,
        user_id: Optional[str],
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one entry. Must not raise."""


class DatabaseAuditSink(AuditSink):
    """Writes `audit_logs` rows in a session of its own"""

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def record(
        self,
        user_id: Optional[str],
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not settings.AUDIT_ENABLED:
            return

        try:
            factory = self._session_factory or get_session_local()
            async with factory() as session:
                session.add(AuditLog(
                    user_id=user_id,
                    action=action,
                    entity=entity,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    payload=payload,
                    ip_address=self.ip_address,
                    user_agent=self.user_agent,
                ))
                await session.commit()
        except Exception as e:
            logger.warning(f"Audit logging failed for {action} on {entity} {entity_id}: {e}")
