"""
Curriculum API Endpoints

Writes are ADMIN only; any signed-in user can read the catalog.

Endpoints:
- GET  /curriculum/courses                   - Courses by name
- GET  /curriculum/courses/{id}              - One course
- GET  /curriculum/sessions                  - Academic sessions, latest first
- GET  /curriculum/semesters                 - Semesters, optionally for one course
- GET  /curriculum/semesters/{id}            - A semester with its subjects
- GET  /curriculum/subjects                  - Subjects filtered by course, semester or type
- POST /curriculum/courses                   - Create a course
- POST /curriculum/sessions                  - Create an academic session
- POST /curriculum/courses/{id}/semesters    - Create semesters 1..N for a course
- POST /curriculum/subjects                  - Create a subject in a semester
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from college_erp.api.deps import get_curriculum_service
from college_erp.models import SubjectType
from college_erp.models.user import User
from college_erp.modules.auth.dependencies import get_current_admin, get_current_user
from college_erp.schemas.common import ApiResponse, success
from college_erp.schemas.curriculum import (
    CourseCreate,
    CourseResponse,
    CurriculumCreate,
    SemesterDetailResponse,
    SemesterResponse,
    SessionCreate,
    SessionResponse,
    SubjectCreate,
    SubjectResponse,
)
from college_erp.services.curriculum_service import CurriculumService

router = APIRouter(prefix="/curriculum", tags=["Curriculum"])


@router.post("/courses", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    request: CourseCreate,
    current_user: User = Depends(get_current_admin),
    service: CurriculumService = Depends(get_curriculum_service),
):
    course = await service.create_course(
        request.code, request.name, duration_years=request.duration_years, actor=current_user
    )
    return success(CourseResponse.model_validate(course), "Course created")


@router.post("/sessions", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreate,
    current_user: User = Depends(get_current_admin),
    service: CurriculumService = Depends(get_curriculum_service),
):
    academic_session = await service.create_session(
        request.name, request.start_year, request.end_year, actor=current_user
    )
    return success(SessionResponse.model_validate(academic_session), "Session created")


@router.post("/courses/{course_id}/semesters", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def establish_curriculum(
    course_id: str,
    request: Optional[CurriculumCreate] = None,
    current_user: User = Depends(get_current_admin),
    service: CurriculumService = Depends(get_curriculum_service),
):
    """Create the course's semesters; numbers that already exist are left alone"""
    semesters = await service.establish_curriculum(
        course_id, request.semester_count if request else None, actor=current_user
    )
    return success([SemesterResponse.model_validate(s) for s in semesters], "Curriculum established")


@router.post("/subjects", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(
    request: SubjectCreate,
    current_user: User = Depends(get_current_admin),
    service: CurriculumService = Depends(get_curriculum_service),
):
    subject = await service.create_subject(
        request.code,
        request.name,
        request.type,
        request.semester_id,
        credit=request.credit,
        actor=current_user,
    )
    return success(SubjectResponse.model_validate(subject), "Subject created")


@router.get("/courses", response_model=ApiResponse)
async def list_courses(
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    courses = await service.list_courses()
    return success([CourseResponse.model_validate(c) for c in courses])


@router.get("/courses/{course_id}", response_model=ApiResponse)
async def get_course(
    course_id: str,
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    course = await service.get_course(course_id)
    return success(CourseResponse.model_validate(course))


@router.get("/sessions", response_model=ApiResponse)
async def list_sessions(
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    sessions = await service.list_sessions()
    return success([SessionResponse.model_validate(s) for s in sessions])


@router.get("/semesters", response_model=ApiResponse)
async def list_semesters(
    course_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    semesters = await service.list_semesters(course_id)
    return success([SemesterResponse.model_validate(s) for s in semesters])


@router.get("/semesters/{semester_id}", response_model=ApiResponse)
async def get_semester(
    semester_id: str,
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    semester, subjects = await service.get_semester(semester_id)
    return success(SemesterDetailResponse(
        **SemesterResponse.model_validate(semester).model_dump(),
        subjects=[SubjectResponse.model_validate(s) for s in subjects],
    ))


@router.get("/subjects", response_model=ApiResponse)
async def list_subjects(
    course_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    subject_type: Optional[SubjectType] = Query(None, alias="type"),
    current_user: User = Depends(get_current_user),
    service: CurriculumService = Depends(get_curriculum_service),
):
    subjects = await service.list_subjects(course_id, semester_id, subject_type)
    return success([SubjectResponse.model_validate(s) for s in subjects])
