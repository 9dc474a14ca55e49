"""
Per-request wiring: unit of work, audit sink and services
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from college_erp.core.database import get_db
from college_erp.repositories import SqlAlchemyUnitOfWork
from college_erp.services.admission_service import AdmissionService
from college_erp.services.audit import AuditSink, DatabaseAuditSink
from college_erp.services.curriculum_service import CurriculumService
from college_erp.services.semester_service import SemesterService
from college_erp.services.student_service import StudentService
from college_erp.services.subject_selection_service import SubjectSelectionService


def get_uow(db: AsyncSession = Depends(get_db)) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db)


def get_audit_sink(request: Request) -> AuditSink:
    """Audit sink tagged with the caller's address and user agent"""
    return DatabaseAuditSink(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_admission_service(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    audit: AuditSink = Depends(get_audit_sink),
) -> AdmissionService:
    return AdmissionService(uow, audit)


def get_semester_service(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    audit: AuditSink = Depends(get_audit_sink),
) -> SemesterService:
    return SemesterService(uow, audit)


def get_subject_selection_service(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    audit: AuditSink = Depends(get_audit_sink),
) -> SubjectSelectionService:
    return SubjectSelectionService(uow, audit)


def get_student_service(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    audit: AuditSink = Depends(get_audit_sink),
) -> StudentService:
    return StudentService(uow, audit)


def get_curriculum_service(
    uow: SqlAlchemyUnitOfWork = Depends(get_uow),
    audit: AuditSink = Depends(get_audit_sink),
) -> CurriculumService:
    return CurriculumService(uow, audit)
