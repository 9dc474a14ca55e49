"""
Subject Selection API Endpoints

Endpoints:
- POST   /student-subjects                                           - Pick one subject
- POST   /student-subjects/bulk                                      - Pick several subjects, all or nothing
- GET    /student-subjects                                           - Picks filtered by student, subject, semester or type
- DELETE /student-subjects/{id}                                      - Drop a pick
- GET    /student-subjects/students/{student_id}/semesters/{sem_id}  - A student's picks for a semester

Students may act only for themselves; ADMIN and HOD may act for anyone.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from college_erp.api.deps import get_subject_selection_service
from college_erp.core.exceptions import AuthorizationError
from college_erp.models import SubjectType
from college_erp.models.user import User, UserRole
from college_erp.modules.auth.dependencies import get_current_user
from college_erp.schemas.common import ApiResponse, success
from college_erp.schemas.student_subject import (
    SelectedSubjectResponse,
    StudentSelectionResponse,
    StudentSubjectBulkCreate,
    StudentSubjectCreate,
    StudentSubjectResponse,
)
from college_erp.services.subject_selection_service import SubjectSelectionService

router = APIRouter(prefix="/student-subjects", tags=["Subject Selection"])


def _ensure_selector(current_user: User) -> None:
    """Accountants have read-only access to subject picks"""
    if not current_user.is_staff and current_user.role != UserRole.STUDENT:
        raise AuthorizationError("Not allowed to manage subject selections")


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def assign_subject(
    request: StudentSubjectCreate,
    current_user: User = Depends(get_current_user),
    service: SubjectSelectionService = Depends(get_subject_selection_service),
):
    _ensure_selector(current_user)
    row = await service.assign(request.student_id, request.subject_id, request.semester_id, actor=current_user)
    return success(StudentSubjectResponse.model_validate(row), "Subject assigned")


@router.post("/bulk", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def bulk_assign_subjects(
    request: StudentSubjectBulkCreate,
    current_user: User = Depends(get_current_user),
    service: SubjectSelectionService = Depends(get_subject_selection_service),
):
    _ensure_selector(current_user)
    rows = await service.bulk_assign(
        request.student_id, request.semester_id, request.subject_ids, actor=current_user
    )
    return success(
        [StudentSubjectResponse.model_validate(r) for r in rows],
        f"{len(rows)} subjects assigned",
    )


@router.delete("/{student_subject_id}", response_model=ApiResponse)
async def remove_subject(
    student_subject_id: str,
    current_user: User = Depends(get_current_user),
    service: SubjectSelectionService = Depends(get_subject_selection_service),
):
    await service.remove(student_subject_id, actor=current_user)
    return success(message="Subject selection removed")


@router.get("/students/{student_id}/semesters/{semester_id}", response_model=ApiResponse)
async def list_student_subjects(
    student_id: str,
    semester_id: str,
    current_user: User = Depends(get_current_user),
    service: SubjectSelectionService = Depends(get_subject_selection_service),
):
    picks = await service.list_for_semester(student_id, semester_id, actor=current_user)
    return success([
        SelectedSubjectResponse(
            id=str(row.id),
            subject_id=str(subject.id),
            code=subject.code,
            name=subject.name,
            type=subject.type,
            credit=subject.credit,
            created_at=row.created_at,
        )
        for row, subject in picks
    ])


@router.get("", response_model=ApiResponse)
async def list_selections(
    student_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    subject_type: Optional[SubjectType] = Query(None, alias="type"),
    current_user: User = Depends(get_current_user),
    service: SubjectSelectionService = Depends(get_subject_selection_service),
):
    """A student always gets their own picks whatever student_id says"""
    picks = await service.list_selections(
        student_id=student_id,
        subject_id=subject_id,
        semester_id=semester_id,
        subject_type=subject_type,
        actor=current_user,
    )
    return success([
        StudentSelectionResponse(
            id=str(row.id),
            student_id=str(row.student_id),
            semester_id=str(row.semester_id),
            subject_id=str(subject.id),
            code=subject.code,
            name=subject.name,
            type=subject.type,
            credit=subject.credit,
            created_at=row.created_at,
        )
        for row, subject in picks
    ])
