"""
Student API Endpoints

Endpoints:
- POST   /students                               - Create a student
- GET    /students                               - Search students (ADMIN, HOD, ACCOUNTANT)
- GET    /students/{id}                          - Student record
- PATCH  /students/{id}                          - Update contact details or session (ADMIN, HOD)
- DELETE /students/{id}                          - Soft-delete (ADMIN)
- GET    /students/{id}/semesters                - Semester occupancy history
- POST   /students/{id}/semesters                - Seat the student in a semester
- PATCH  /students/{id}/semesters/{semester_id}  - Change the semester status
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from college_erp.api.deps import get_semester_service, get_student_service
from college_erp.api.v1.endpoints.semesters import status_change_response
from college_erp.models.user import User, UserRole
from college_erp.modules.auth.dependencies import get_current_admin, get_current_user, get_staff_user, require_roles
from college_erp.schemas.common import ApiResponse, success
from college_erp.schemas.semester import SemesterAssign, SemesterStatusUpdate, StudentSemesterResponse
from college_erp.schemas.student import StudentCreate, StudentResponse, StudentUpdate
from college_erp.services.semester_service import SemesterService
from college_erp.services.student_service import StudentService

router = APIRouter(prefix="/students", tags=["Students"])

_readers = require_roles(UserRole.ADMIN, UserRole.HOD, UserRole.ACCOUNTANT)


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    request: StudentCreate,
    current_user: User = Depends(get_staff_user),
    service: StudentService = Depends(get_student_service),
):
    student = await service.create_student(
        name=request.name,
        email=request.email,
        course_id=request.course_id,
        session_id=request.session_id,
        phone=request.phone,
        actor=current_user,
    )
    return success(StudentResponse.model_validate(student), "Student created")


@router.get("", response_model=ApiResponse)
async def list_students(
    student_status: Optional[str] = Query(None, alias="status"),
    course_id: Optional[str] = None,
    session_id: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(_readers),
    service: StudentService = Depends(get_student_service),
):
    """List students, newest first; search matches name, email or registration number"""
    students = await service.list_students(
        status=student_status.upper() if student_status else None,
        course_id=course_id,
        session_id=session_id,
        search=search,
    )
    return success([StudentResponse.model_validate(s) for s in students])


@router.get("/{student_id}", response_model=ApiResponse)
async def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    """Staff and accountants see any student; a student sees only themselves"""
    student = await service.get_student(student_id, actor=current_user)
    return success(StudentResponse.model_validate(student))


@router.patch("/{student_id}", response_model=ApiResponse)
async def update_student(
    student_id: str,
    request: StudentUpdate,
    current_user: User = Depends(get_staff_user),
    service: StudentService = Depends(get_student_service),
):
    student = await service.update_student(
        student_id,
        name=request.name,
        email=request.email,
        phone=request.phone,
        session_id=request.session_id,
        actor=current_user,
    )
    return success(StudentResponse.model_validate(student), "Student updated")


@router.delete("/{student_id}", response_model=ApiResponse)
async def delete_student(
    student_id: str,
    current_user: User = Depends(get_current_admin),
    service: StudentService = Depends(get_student_service),
):
    await service.soft_delete(student_id, actor=current_user)
    return success(message="Student deleted")


@router.get("/{student_id}/semesters", response_model=ApiResponse)
async def list_student_semesters(
    student_id: str,
    current_user: User = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    rows = await service.list_semesters(student_id, actor=current_user)
    return success([StudentSemesterResponse.model_validate(r) for r in rows])


@router.post("/{student_id}/semesters", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def assign_semester(
    student_id: str,
    request: SemesterAssign,
    current_user: User = Depends(get_staff_user),
    service: SemesterService = Depends(get_semester_service),
):
    row = await service.assign_semester(
        student_id,
        request.semester_id,
        start_date=request.start_date,
        end_date=request.end_date,
        fee_paid=request.fee_paid,
        actor=current_user,
    )
    return success(StudentSemesterResponse.model_validate(row), "Semester assigned")


@router.patch("/{student_id}/semesters/{semester_id}", response_model=ApiResponse)
async def update_semester_status(
    student_id: str,
    semester_id: str,
    request: SemesterStatusUpdate,
    current_user: User = Depends(get_staff_user),
    service: SemesterService = Depends(get_semester_service),
):
    """
    Change a student's status in a semester

    COMPLETED seats the student in the next semester, or marks them
    PASSED_OUT after the final one.
    """
    result = await service.set_status(
        student_id, semester_id, request.status.upper(), fee_paid=request.fee_paid, actor=current_user
    )
    return success(status_change_response(result), "Semester status updated")
