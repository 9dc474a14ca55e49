"""
Unit Tests for the error taxonomy
"""
import pytest

from college_erp.core.exceptions import (
    AlreadyAssignedError,
    AlreadyEnrolledError,
    AuthorizationError,
    CollegeERPError,
    ConstraintViolationError,
    DuplicateRecordError,
    ExclusiveTypeConflictError,
    InvalidStatusError,
    InvalidTransitionError,
    NotEnrolledError,
    StudentNotFoundError,
    StudentSemesterNotFoundError,
    error_response,
)
from college_erp.models import SubjectType


class TestStatusCodes:
    @pytest.mark.parametrize(
        "error, status_code, code",
        [
            (StudentNotFoundError("s1"), 404, "STUDENT_NOT_FOUND"),
            (InvalidTransitionError("INITIATED", "CONFIRMED"), 409, "INVALID_TRANSITION"),
            (InvalidStatusError("X", ["A"]), 400, "INVALID_STATUS"),
            (ConstraintViolationError("bad"), 400, "CONSTRAINT_VIOLATION"),
            (NotEnrolledError("s1", "sem1"), 400, "NOT_ENROLLED"),
            (AlreadyAssignedError(), 409, "ALREADY_ASSIGNED"),
            (AlreadyEnrolledError(), 409, "ALREADY_ENROLLED"),
            (ExclusiveTypeConflictError(SubjectType.MIC), 409, "EXCLUSIVE_TYPE_CONFLICT"),
            (AuthorizationError(), 403, "NOT_AUTHORIZED"),
        ],
    )
    def test_status_and_code(self, error, status_code, code):
        assert error.status_code == status_code
        assert error.code == code

    def test_uniqueness_errors_share_a_base(self):
        """Callers that only care about 'already exists' catch DuplicateRecordError"""
        for error in (AlreadyAssignedError(), AlreadyEnrolledError(), ExclusiveTypeConflictError("MJC")):
            assert isinstance(error, DuplicateRecordError)


class TestDetails:
    def test_invalid_transition_lists_allowed_targets(self):
        error = InvalidTransitionError("INITIATED", "CONFIRMED", ["CANCELLED", "PAYMENT_PENDING"])

        assert error.details == {
            "from_status": "INITIATED",
            "to_status": "CONFIRMED",
            "allowed": ["CANCELLED", "PAYMENT_PENDING"],
        }
        assert "INITIATED" in error.message

    def test_exclusive_conflict_names_type(self):
        error = ExclusiveTypeConflictError(SubjectType.MDC, "sem-1")

        assert error.details == {"subject_type": "MDC", "semester_id": "sem-1"}
        assert "MDC" in error.message

    def test_student_semester_not_found_details(self):
        error = StudentSemesterNotFoundError("s1", "sem1")

        assert error.details["student_id"] == "s1"
        assert error.details["semester_id"] == "sem1"


def test_error_response_envelope():
    body = error_response(CollegeERPError("boom"))

    assert body == {
        "status": "error",
        "error": {"code": "INTERNAL_ERROR", "message": "boom", "details": {}},
    }
