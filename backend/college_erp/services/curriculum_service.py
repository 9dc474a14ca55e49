"""
Curriculum Service - courses, sessions, semesters and subjects

Semesters are created in bulk when a course's curriculum is established
and are not updated afterwards.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from college_erp.core.exceptions import (
    ConstraintViolationError,
    CourseNotFoundError,
    DuplicateRecordError,
    SemesterNotFoundError,
)
from college_erp.core.logging_config import logger
from college_erp.core.types import generate_uuid
from college_erp.models import AcademicSession, Course, Semester, Subject, SubjectType, User
from college_erp.repositories import UnitOfWork
from college_erp.services.audit import AuditAction, AuditSink
from college_erp.services.cascades import actor_id


class CurriculumService:
    """Service for course structure"""

    def __init__(self, uow: UnitOfWork, audit: AuditSink):
        self.uow = uow
        self.audit = audit

    async def create_course(
        self,
        code: str,
        name: str,
        duration_years: int = 3,
        actor: Optional[User] = None,
    ) -> Course:
        code = code.strip().upper()
        async with self.uow.transaction():
            if await self.uow.courses.get_by_code(code) is not None:
                raise DuplicateRecordError(f"Course code '{code}' already exists", {"code": code})
            course = await self.uow.courses.add(Course(
                id=generate_uuid(),
                code=code,
                name=name.strip(),
                duration_years=duration_years,
                created_at=datetime.utcnow(),
            ))

        await self.audit.record(actor_id(actor), AuditAction.CREATE_COURSE, "Course", course.id, {"code": code})
        return course

    async def list_courses(self) -> List[Course]:
        return await self.uow.courses.list_all()

    async def get_course(self, course_id: str) -> Course:
        course = await self.uow.courses.get(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    async def create_session(
        self,
        name: str,
        start_year: int,
        end_year: int,
        actor: Optional[User] = None,
    ) -> AcademicSession:
        if end_year < start_year:
            raise ConstraintViolationError("Session cannot end before it starts", {"field": "end_year"})

        async with self.uow.transaction():
            academic_session = await self.uow.sessions.add(AcademicSession(
                id=generate_uuid(),
                name=name.strip(),
                start_year=start_year,
                end_year=end_year,
                created_at=datetime.utcnow(),
            ))

        await self.audit.record(
            actor_id(actor), AuditAction.CREATE_SESSION, "Session", academic_session.id, {"name": academic_session.name}
        )
        return academic_session

    async def list_sessions(self) -> List[AcademicSession]:
        return await self.uow.sessions.list_all()

    async def list_semesters(self, course_id: Optional[str] = None) -> List[Semester]:
        """Semesters ordered by number, for one course or all of them"""
        if course_id is None:
            return await self.uow.semesters.list_all()
        await self.get_course(course_id)
        return await self.uow.semesters.list_by_course(course_id)

    async def get_semester(self, semester_id: str) -> Tuple[Semester, List[Subject]]:
        """A semester with the subjects offered in it"""
        semester = await self.uow.semesters.get(semester_id)
        if semester is None:
            raise SemesterNotFoundError(semester_id)
        return semester, await self.uow.subjects.list(semester_id=semester_id)

    async def list_subjects(
        self,
        course_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        subject_type: Optional[SubjectType] = None,
    ) -> List[Subject]:
        return await self.uow.subjects.list(course_id=course_id, semester_id=semester_id, subject_type=subject_type)

    async def establish_curriculum(
        self,
        course_id: str,
        semester_count: Optional[int] = None,
        actor: Optional[User] = None,
    ) -> List[Semester]:
        """
        Create semesters 1..N for a course, skipping numbers that already exist

        Args:
            course_id: Course to structure
            semester_count: N; defaults to two semesters per year of the course

        Returns:
            All semesters of the course ordered by number
        """
        async with self.uow.transaction():
            course = await self.uow.courses.get(course_id)
            if course is None:
                raise CourseNotFoundError(course_id)

            count = semester_count if semester_count is not None else course.duration_years * 2
            if count < 1:
                raise ConstraintViolationError("A curriculum needs at least one semester", {"field": "semester_count"})

            existing = {s.number for s in await self.uow.semesters.list_by_course(course_id)}
            created = []
            now = datetime.utcnow()
            for number in range(1, count + 1):
                if number in existing:
                    continue
                created.append(await self.uow.semesters.add(Semester(
                    id=generate_uuid(),
                    course_id=course_id,
                    number=number,
                    created_at=now,
                )))
            await self.uow.flush()
            semesters = await self.uow.semesters.list_by_course(course_id)

        await self.audit.record(
            actor_id(actor),
            AuditAction.ESTABLISH_CURRICULUM,
            "Course",
            course_id,
            {"semester_count": count, "created_numbers": [s.number for s in created]},
        )
        logger.info(f"Curriculum for course {course.code}: {len(created)} semesters created")
        return semesters

    async def create_subject(
        self,
        code: str,
        name: str,
        subject_type: SubjectType,
        semester_id: str,
        credit: int = 4,
        actor: Optional[User] = None,
    ) -> Subject:
        code = code.strip().upper()
        async with self.uow.transaction():
            semester = await self.uow.semesters.get(semester_id)
            if semester is None:
                raise SemesterNotFoundError(semester_id)

            subject = await self.uow.subjects.add(Subject(
                id=generate_uuid(),
                code=code,
                name=name.strip(),
                type=SubjectType(subject_type),
                credit=credit,
                course_id=semester.course_id,
                semester_id=semester_id,
                created_at=datetime.utcnow(),
            ))

        await self.audit.record(
            actor_id(actor),
            AuditAction.CREATE_SUBJECT,
            "Subject",
            subject.id,
            {"code": code, "type": subject.type.value, "semester_id": str(semester_id)},
        )
        return subject
