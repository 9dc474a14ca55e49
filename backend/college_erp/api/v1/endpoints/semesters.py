"""
Semester Progression API Endpoints

Endpoints:
- POST /semesters/{id}/bulk-status  - Set one status for many students (per-student soft-fail)
- POST /semesters/{id}/auto-assign  - Seat every eligible student
- POST /semesters/{id}/promote      - Move COMPLETED students to the next semester
"""

from fastapi import APIRouter, Depends
from typing import Optional

from college_erp.api.deps import get_semester_service
from college_erp.models.user import User
from college_erp.modules.auth.dependencies import get_staff_user
from college_erp.schemas.common import ApiResponse, success
from college_erp.schemas.semester import (
    AutoAssignRequest,
    AutoAssignResponse,
    BulkStatusResponse,
    BulkStatusUpdate,
    ProgressionResponse,
    PromotionResponse,
    StatusChangeResponse,
    StudentSemesterResponse,
)
from college_erp.services.semester_service import AutoAssignCriteria, SemesterService, StatusChangeResult

router = APIRouter(prefix="/semesters", tags=["Semesters"])


def status_change_response(result: StatusChangeResult) -> StatusChangeResponse:
    progression = None
    if result.progression is not None:
        p = result.progression
        progression = ProgressionResponse(
            promoted=p.promoted,
            passed_out=p.passed_out,
            next_semester_id=str(p.next_semester.id) if p.next_semester is not None else None,
            student_semester_id=str(p.student_semester.id) if p.student_semester is not None else None,
            skipped_reason=p.skipped_reason,
        )
    return StatusChangeResponse(
        student_semester=StudentSemesterResponse.model_validate(result.student_semester),
        previous_status=result.previous_status,
        progression=progression,
    )


@router.post("/{semester_id}/bulk-status", response_model=ApiResponse)
async def bulk_update_status(
    semester_id: str,
    request: BulkStatusUpdate,
    current_user: User = Depends(get_staff_user),
    service: SemesterService = Depends(get_semester_service),
):
    result = await service.bulk_set_status(
        semester_id, request.student_ids, request.status.upper(), fee_paid=request.fee_paid, actor=current_user
    )
    return success(
        BulkStatusResponse(
            updated=result.updated,
            skipped=result.skipped,
            promoted=result.promoted,
            passed_out=result.passed_out,
            skipped_student_ids=result.skipped_student_ids,
            errors=result.errors,
        ),
        f"{result.updated} updated, {result.skipped} skipped",
    )


@router.post("/{semester_id}/auto-assign", response_model=ApiResponse)
async def auto_assign_students(
    semester_id: str,
    request: Optional[AutoAssignRequest] = None,
    current_user: User = Depends(get_staff_user),
    service: SemesterService = Depends(get_semester_service),
):
    criteria = AutoAssignCriteria(
        session_id=request.session_id if request else None,
        min_semester_number=request.min_semester_number if request else None,
    )
    result = await service.auto_assign(semester_id, criteria, actor=current_user)
    return success(
        AutoAssignResponse(
            semester_id=str(result.semester.id),
            semester_number=result.semester.number,
            considered=result.considered,
            assigned_count=len(result.assigned),
            assigned=[StudentSemesterResponse.model_validate(r) for r in result.assigned],
        ),
        f"{len(result.assigned)} students assigned to semester {result.semester.number}",
    )


@router.post("/{semester_id}/promote", response_model=ApiResponse)
async def promote_students(
    semester_id: str,
    current_user: User = Depends(get_staff_user),
    service: SemesterService = Depends(get_semester_service),
):
    result = await service.promote(semester_id, actor=current_user)
    return success(
        PromotionResponse(
            from_semester_id=str(result.current_semester.id),
            to_semester_id=str(result.next_semester.id),
            to_semester_number=result.next_semester.number,
            promoted_count=len(result.promoted),
            skipped_student_ids=result.skipped_student_ids,
            promoted=[StudentSemesterResponse.model_validate(r) for r in result.promoted],
        ),
        f"{len(result.promoted)} students promoted to semester {result.next_semester.number}",
    )
