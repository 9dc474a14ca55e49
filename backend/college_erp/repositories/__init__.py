from college_erp.repositories.base import (
    UnitOfWork,
    StudentRepository,
    CourseRepository,
    SessionRepository,
    SemesterRepository,
    SubjectRepository,
    AdmissionRepository,
    StudentSemesterRepository,
    StudentSubjectRepository,
)
from college_erp.repositories.sql import SqlAlchemyUnitOfWork, translate_integrity_error

__all__ = [
    "UnitOfWork",
    "StudentRepository",
    "CourseRepository",
    "SessionRepository",
    "SemesterRepository",
    "SubjectRepository",
    "AdmissionRepository",
    "StudentSemesterRepository",
    "StudentSubjectRepository",
    "SqlAlchemyUnitOfWork",
    "translate_integrity_error",
]
