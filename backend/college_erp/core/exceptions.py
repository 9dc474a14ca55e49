"""
Custom Exceptions for College ERP
=================================

Every domain rule violation raised by the lifecycle services is one of
these. The API layer maps them to HTTP responses through `status_code`
and `to_dict()`; anything else is treated as a system error.

Usage:
    from college_erp.core.exceptions import AdmissionNotFoundError, InvalidTransitionError

    if not admission:
        raise AdmissionNotFoundError(admission_id)
"""

from typing import Optional, Any, Dict, List


class CollegeERPError(Exception):
    """Base exception for all College ERP errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(CollegeERPError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(CollegeERPError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class NotFoundError(CollegeERPError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class StudentNotFoundError(NotFoundError):
    def __init__(self, student_id: Any):
        super().__init__("Student", student_id)


class CourseNotFoundError(NotFoundError):
    def __init__(self, course_id: Any):
        super().__init__("Course", course_id)


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: Any):
        super().__init__("Session", session_id)


class SemesterNotFoundError(NotFoundError):
    def __init__(self, semester_id: Any):
        super().__init__("Semester", semester_id)


class SubjectNotFoundError(NotFoundError):
    def __init__(self, subject_id: Any):
        super().__init__("Subject", subject_id)


class AdmissionNotFoundError(NotFoundError):
    def __init__(self, admission_id: Any):
        super().__init__("Admission", admission_id)


class StudentSemesterNotFoundError(NotFoundError):
    """No enrollment row for the (student, semester) pair"""

    def __init__(self, student_id: Any, semester_id: Any):
        super().__init__("StudentSemester", f"{student_id}/{semester_id}")
        self.details.update({"student_id": str(student_id), "semester_id": str(semester_id)})


class StudentSubjectNotFoundError(NotFoundError):
    def __init__(self, student_subject_id: Any):
        super().__init__("StudentSubject", student_subject_id)


# ============================================
# Lifecycle Errors
# ============================================

class InvalidTransitionError(CollegeERPError):
    """Admission status change outside the allowed transition set"""

    status_code = 409

    def __init__(self, from_status: Any, to_status: Any, allowed: Optional[List[str]] = None):
        super().__init__(
            f"Cannot transition admission from {from_status} to {to_status}",
            code="INVALID_TRANSITION",
            details={
                "from_status": str(from_status),
                "to_status": str(to_status),
                "allowed": allowed or [],
            }
        )


class InvalidStatusError(CollegeERPError):
    """Status value outside its enum"""

    status_code = 400

    def __init__(self, value: Any, allowed: List[str]):
        super().__init__(
            f"Invalid status '{value}'. Allowed: {', '.join(allowed)}",
            code="INVALID_STATUS",
            details={"value": str(value), "allowed": allowed}
        )


class ConstraintViolationError(CollegeERPError):
    """Cross-reference mismatch between student, course, semester or subject"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONSTRAINT_VIOLATION", details=details)


class NotEnrolledError(CollegeERPError):
    """Operation requires an ongoing enrollment that is absent"""

    status_code = 400

    def __init__(self, student_id: Any, semester_id: Any):
        super().__init__(
            f"Student '{student_id}' is not enrolled in semester '{semester_id}'",
            code="NOT_ENROLLED",
            details={"student_id": str(student_id), "semester_id": str(semester_id)}
        )


# ============================================
# Uniqueness Errors (409-type)
# ============================================

class DuplicateRecordError(CollegeERPError):
    """A uniqueness invariant would be violated"""

    status_code = 409

    def __init__(self, message: str = "Record already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="DUPLICATE_RECORD", details=details)


class AlreadyAssignedError(DuplicateRecordError):
    """Student already occupies the semester or already holds the subject"""

    def __init__(self, message: str = "Already assigned", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.code = "ALREADY_ASSIGNED"


class AlreadyEnrolledError(DuplicateRecordError):
    """Student already holds the admission or an ongoing semester"""

    def __init__(self, message: str = "Already enrolled", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.code = "ALREADY_ENROLLED"


class ExclusiveTypeConflictError(DuplicateRecordError):
    """MJC/MIC/MDC picked more than once for a semester"""

    def __init__(self, subject_type: Any, semester_id: Any = None):
        super().__init__(
            f"Only one {getattr(subject_type, 'value', subject_type)} subject may be selected per semester",
            details={
                "subject_type": str(getattr(subject_type, 'value', subject_type)),
                "semester_id": str(semester_id) if semester_id else None,
            }
        )
        self.code = "EXCLUSIVE_TYPE_CONFLICT"


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: CollegeERPError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "status": "error",
        "error": error.to_dict()
    }
