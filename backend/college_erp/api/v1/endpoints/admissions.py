"""
Admission API Endpoints

Endpoints:
- POST  /admissions              - Open an admission (INITIATED)
- GET   /admissions              - List admissions, newest first
- GET   /admissions/{id}         - Admission with its status history
- PATCH /admissions/{id}/status  - Move an admission through the state machine
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from college_erp.api.deps import get_admission_service
from college_erp.models.user import User, UserRole
from college_erp.modules.auth.dependencies import get_staff_user, require_roles
from college_erp.schemas.common import ApiResponse, success
from college_erp.schemas.admission import (
    AdmissionCreate,
    AdmissionStatusUpdate,
    AdmissionResponse,
    AdmissionDetailResponse,
    AdmissionHistoryResponse,
    AdmissionTransitionResponse,
    EnrollmentOutcomeResponse,
)
from college_erp.services.admission_service import AdmissionService, TransitionResult

router = APIRouter(prefix="/admissions", tags=["Admissions"])

_readers = require_roles(UserRole.ADMIN, UserRole.HOD, UserRole.ACCOUNTANT)


def _transition_response(result: TransitionResult) -> AdmissionTransitionResponse:
    enrollment = None
    if result.enrollment is not None:
        row = result.enrollment.student_semester
        enrollment = EnrollmentOutcomeResponse(
            student_activated=result.enrollment.student_activated,
            semester_auto_assigned=result.enrollment.auto_assigned,
            student_semester_id=str(row.id) if row is not None else None,
            skipped_reason=result.enrollment.skipped_reason,
        )
    return AdmissionTransitionResponse(
        admission=AdmissionResponse.model_validate(result.admission),
        from_status=result.from_status,
        to_status=result.to_status,
        history_id=str(result.history_id),
        enrollment=enrollment,
        cascade_error=result.cascade_error,
    )


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_admission(
    request: AdmissionCreate,
    current_user: User = Depends(get_staff_user),
    service: AdmissionService = Depends(get_admission_service),
):
    """Open an admission for a student in a course"""
    admission = await service.create_admission(request.student_id, request.course_id, actor=current_user)
    return success(AdmissionResponse.model_validate(admission), "Admission created")


@router.get("", response_model=ApiResponse)
async def list_admissions(
    admission_status: Optional[str] = Query(None, alias="status"),
    course_id: Optional[str] = None,
    student_id: Optional[str] = None,
    current_user: User = Depends(_readers),
    service: AdmissionService = Depends(get_admission_service),
):
    """List admissions, optionally filtered by status, course or student"""
    admissions = await service.list_admissions(
        status=admission_status.upper() if admission_status else None,
        course_id=course_id,
        student_id=student_id,
    )
    return success([AdmissionResponse.model_validate(a) for a in admissions])


@router.get("/{admission_id}", response_model=ApiResponse)
async def get_admission(
    admission_id: str,
    current_user: User = Depends(_readers),
    service: AdmissionService = Depends(get_admission_service),
):
    admission, history = await service.get_admission(admission_id)
    detail = AdmissionDetailResponse(
        **AdmissionResponse.model_validate(admission).model_dump(),
        history=[AdmissionHistoryResponse.model_validate(h) for h in history],
    )
    return success(detail)


@router.patch("/{admission_id}/status", response_model=ApiResponse)
async def update_admission_status(
    admission_id: str,
    request: AdmissionStatusUpdate,
    current_user: User = Depends(get_staff_user),
    service: AdmissionService = Depends(get_admission_service),
):
    """
    Change an admission's status

    Confirming an admission also activates the student and seats them in
    semester 1 of the course. If that cascade fails the confirmation is
    kept and `cascade_error` explains what went wrong.
    """
    result = await service.transition(admission_id, request.status, request.notes, actor=current_user)
    return success(
        _transition_response(result),
        f"Admission status updated to {result.to_status.value}",
    )
