# Re-export all models for convenient imports
from college_erp.models.user import User, UserRole, STAFF_ROLES
from college_erp.models.academics import (
    Course,
    AcademicSession,
    Semester,
    Subject,
    SubjectType,
    EXCLUSIVE_SUBJECT_TYPES,
)
from college_erp.models.student import (
    Student,
    StudentStatus,
    StudentSemester,
    StudentSemesterStatus,
    StudentSubject,
)
from college_erp.models.admission import (
    Admission,
    AdmissionHistory,
    AdmissionStatus,
    ADMISSION_TRANSITIONS,
)
from college_erp.models.audit_log import AuditLog

__all__ = [
    # User
    "User",
    "UserRole",
    "STAFF_ROLES",
    # Curriculum
    "Course",
    "AcademicSession",
    "Semester",
    "Subject",
    "SubjectType",
    "EXCLUSIVE_SUBJECT_TYPES",
    # Students
    "Student",
    "StudentStatus",
    "StudentSemester",
    "StudentSemesterStatus",
    "StudentSubject",
    # Admissions
    "Admission",
    "AdmissionHistory",
    "AdmissionStatus",
    "ADMISSION_TRANSITIONS",
    # Audit
    "AuditLog",
]
