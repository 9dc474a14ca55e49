"""SQLAlchemy (async) implementation of the repository interfaces"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from college_erp.core.exceptions import (
    AlreadyAssignedError,
    AlreadyEnrolledError,
    CollegeERPError,
    ConstraintViolationError,
    DuplicateRecordError,
    ExclusiveTypeConflictError,
)
from college_erp.core.logging_config import logger
from college_erp.models import (
    AcademicSession,
    Admission,
    AdmissionHistory,
    AdmissionStatus,
    Course,
    Semester,
    Student,
    StudentSemester,
    StudentSemesterStatus,
    StudentStatus,
    StudentSubject,
    Subject,
    SubjectType,
)
from college_erp.repositories.base import (
    AdmissionRepository,
    CourseRepository,
    SemesterRepository,
    SessionRepository,
    StudentRepository,
    StudentSemesterRepository,
    StudentSubjectRepository,
    SubjectRepository,
    UnitOfWork,
)


# (markers, error factory). PostgreSQL reports the constraint name, SQLite the column list.
_UNIQUE_VIOLATIONS = [
    (
        ("uq_admissions_student_course", "admissions.student_id, admissions.course_id"),
        lambda: AlreadyEnrolledError("Student already has an admission for this course"),
    ),
    (
        ("uq_student_semesters_student_semester", "student_semesters.semester_id"),
        lambda: AlreadyAssignedError("Student is already assigned to this semester"),
    ),
    (
        ("uq_student_semesters_one_ongoing", "student_semesters.student_id"),
        lambda: AlreadyEnrolledError("Student already has an ongoing semester"),
    ),
    (
        ("uq_student_subjects_exclusive_type", "student_subjects.exclusive_type"),
        lambda: ExclusiveTypeConflictError("MJC/MIC/MDC"),
    ),
    (
        ("uq_student_subjects_student_subject_semester", "student_subjects.subject_id"),
        lambda: AlreadyAssignedError("Subject is already assigned to the student for this semester"),
    ),
    (
        ("students_email_key", "students.email"),
        lambda: DuplicateRecordError("A student with this email already exists"),
    ),
]


def translate_integrity_error(exc: IntegrityError) -> CollegeERPError:
    """Map a store constraint failure onto the domain error taxonomy"""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = message.lower()

    if "unique" not in lowered and "duplicate" not in lowered:
        return ConstraintViolationError("Referenced record is missing or invalid", {"reason": message})

    for markers, factory in _UNIQUE_VIOLATIONS:
        if any(marker in message for marker in markers):
            return factory()
    return DuplicateRecordError(details={"reason": message})


class SqlStudentRepository(StudentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, student_id: str) -> Optional[Student]:
        student = await self.session.get(Student, student_id)
        if student is None or student.is_deleted:
            return None
        return student

    async def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[Student]:
        query = select(Student).where(Student.email == email)
        if not include_deleted:
            query = query.where(Student.is_deleted.is_(False))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_course(
        self,
        course_id: str,
        session_id: Optional[str] = None,
        status: Optional[StudentStatus] = None,
    ) -> List[Student]:
        query = select(Student).where(Student.course_id == course_id, Student.is_deleted.is_(False))
        if session_id:
            query = query.where(Student.session_id == session_id)
        if status is not None:
            query = query.where(Student.status == status)
        result = await self.session.execute(query.order_by(Student.created_at))
        return list(result.scalars().all())

    async def search(
        self,
        status: Optional[StudentStatus] = None,
        course_id: Optional[str] = None,
        session_id: Optional[str] = None,
        text: Optional[str] = None,
    ) -> List[Student]:
        query = select(Student).where(Student.is_deleted.is_(False))
        if status is not None:
            query = query.where(Student.status == status)
        if course_id:
            query = query.where(Student.course_id == course_id)
        if session_id:
            query = query.where(Student.session_id == session_id)
        if text:
            pattern = f"%{text.lower()}%"
            query = query.where(or_(
                func.lower(Student.name).like(pattern),
                func.lower(Student.email).like(pattern),
                func.lower(Student.reg_no).like(pattern),
            ))
        result = await self.session.execute(query.order_by(Student.created_at.desc()))
        return list(result.scalars().all())

    async def add(self, student: Student) -> Student:
        self.session.add(student)
        return student


class SqlCourseRepository(CourseRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, course_id: str) -> Optional[Course]:
        return await self.session.get(Course, course_id)

    async def get_by_code(self, code: str) -> Optional[Course]:
        result = await self.session.execute(select(Course).where(Course.code == code))
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Course]:
        result = await self.session.execute(select(Course).order_by(Course.name))
        return list(result.scalars().all())

    async def add(self, course: Course) -> Course:
        self.session.add(course)
        return course


class SqlSessionRepository(SessionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, session_id: str) -> Optional[AcademicSession]:
        return await self.session.get(AcademicSession, session_id)

    async def list_all(self) -> List[AcademicSession]:
        result = await self.session.execute(
            select(AcademicSession).order_by(AcademicSession.start_year.desc())
        )
        return list(result.scalars().all())

    async def add(self, academic_session: AcademicSession) -> AcademicSession:
        self.session.add(academic_session)
        return academic_session


class SqlSemesterRepository(SemesterRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, semester_id: str) -> Optional[Semester]:
        return await self.session.get(Semester, semester_id)

    async def find_by_number(self, course_id: str, number: int) -> Optional[Semester]:
        result = await self.session.execute(
            select(Semester).where(Semester.course_id == course_id, Semester.number == number)
        )
        return result.scalar_one_or_none()

    async def list_by_course(self, course_id: str) -> List[Semester]:
        result = await self.session.execute(
            select(Semester).where(Semester.course_id == course_id).order_by(Semester.number)
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[Semester]:
        result = await self.session.execute(select(Semester).order_by(Semester.course_id, Semester.number))
        return list(result.scalars().all())

    async def add(self, semester: Semester) -> Semester:
        self.session.add(semester)
        return semester


class SqlSubjectRepository(SubjectRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, subject_id: str) -> Optional[Subject]:
        return await self.session.get(Subject, subject_id)

    async def get_many(self, subject_ids: Iterable[str]) -> List[Subject]:
        ids = list(subject_ids)
        if not ids:
            return []
        result = await self.session.execute(select(Subject).where(Subject.id.in_(ids)))
        return list(result.scalars().all())

    async def list(
        self,
        course_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        subject_type: Optional[SubjectType] = None,
    ) -> List[Subject]:
        query = select(Subject)
        if course_id:
            query = query.where(Subject.course_id == course_id)
        if semester_id:
            query = query.where(Subject.semester_id == semester_id)
        if subject_type is not None:
            query = query.where(Subject.type == subject_type)
        result = await self.session.execute(query.order_by(Subject.code))
        return list(result.scalars().all())

    async def add(self, subject: Subject) -> Subject:
        self.session.add(subject)
        return subject


class SqlAdmissionRepository(AdmissionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, admission_id: str) -> Optional[Admission]:
        return await self.session.get(Admission, admission_id)

    async def find_by_student_course(self, student_id: str, course_id: str) -> Optional[Admission]:
        result = await self.session.execute(
            select(Admission).where(Admission.student_id == student_id, Admission.course_id == course_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        status: Optional[AdmissionStatus] = None,
        course_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Admission]:
        query = select(Admission)
        if status is not None:
            query = query.where(Admission.status == status)
        if course_id:
            query = query.where(Admission.course_id == course_id)
        if student_id:
            query = query.where(Admission.student_id == student_id)
        result = await self.session.execute(query.order_by(Admission.created_at.desc()))
        return list(result.scalars().all())

    async def add(self, admission: Admission) -> Admission:
        self.session.add(admission)
        return admission

    async def update_status_if(
        self,
        admission: Admission,
        expected: AdmissionStatus,
        new_status: AdmissionStatus,
    ) -> bool:
        table = Admission.__table__
        now = datetime.utcnow()
        result = await self.session.execute(
            update(table)
            .where(table.c.id == admission.id, table.c.status == expected)
            .values(status=new_status, updated_at=now)
            .returning(table.c.id)
        )
        # Count returned rows; rowcount is unreliable alongside RETURNING on some drivers
        if result.first() is None:
            return False
        set_committed_value(admission, "status", new_status)
        set_committed_value(admission, "updated_at", now)
        return True

    async def add_history(self, entry: AdmissionHistory) -> AdmissionHistory:
        self.session.add(entry)
        return entry

    async def list_history(self, admission_id: str) -> List[AdmissionHistory]:
        result = await self.session.execute(
            select(AdmissionHistory)
            .where(AdmissionHistory.admission_id == admission_id)
            .order_by(AdmissionHistory.changed_at.desc())
        )
        return list(result.scalars().all())


class SqlStudentSemesterRepository(StudentSemesterRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_student_semester(self, student_id: str, semester_id: str) -> Optional[StudentSemester]:
        result = await self.session.execute(
            select(StudentSemester).where(
                StudentSemester.student_id == student_id,
                StudentSemester.semester_id == semester_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_ongoing(self, student_id: str) -> Optional[StudentSemester]:
        result = await self.session.execute(
            select(StudentSemester).where(
                StudentSemester.student_id == student_id,
                StudentSemester.status == StudentSemesterStatus.ONGOING,
            )
        )
        return result.scalars().first()

    async def list_for_student(self, student_id: str) -> List[StudentSemester]:
        result = await self.session.execute(
            select(StudentSemester)
            .where(StudentSemester.student_id == student_id)
            .order_by(StudentSemester.start_date.desc())
        )
        return list(result.scalars().all())

    async def list_for_semester(
        self,
        semester_id: str,
        status: Optional[StudentSemesterStatus] = None,
    ) -> List[StudentSemester]:
        query = select(StudentSemester).where(StudentSemester.semester_id == semester_id)
        if status is not None:
            query = query.where(StudentSemester.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def add(self, row: StudentSemester) -> StudentSemester:
        self.session.add(row)
        return row

    async def add_many(self, rows: Sequence[StudentSemester]) -> None:
        self.session.add_all(rows)


class SqlStudentSubjectRepository(StudentSubjectRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, student_subject_id: str) -> Optional[StudentSubject]:
        return await self.session.get(StudentSubject, student_subject_id)

    async def find(self, student_id: str, subject_id: str, semester_id: str) -> Optional[StudentSubject]:
        result = await self.session.execute(
            select(StudentSubject).where(
                StudentSubject.student_id == student_id,
                StudentSubject.subject_id == subject_id,
                StudentSubject.semester_id == semester_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_by_exclusive_type(
        self,
        student_id: str,
        semester_id: str,
        subject_type: SubjectType,
    ) -> Optional[StudentSubject]:
        result = await self.session.execute(
            select(StudentSubject).where(
                StudentSubject.student_id == student_id,
                StudentSubject.semester_id == semester_id,
                StudentSubject.exclusive_type == subject_type,
            )
        )
        return result.scalars().first()

    async def list_for_student_semester(self, student_id: str, semester_id: str) -> List[StudentSubject]:
        result = await self.session.execute(
            select(StudentSubject)
            .where(StudentSubject.student_id == student_id, StudentSubject.semester_id == semester_id)
            .order_by(StudentSubject.created_at)
        )
        return list(result.scalars().all())

    async def list(
        self,
        student_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        semester_id: Optional[str] = None,
    ) -> List[StudentSubject]:
        query = select(StudentSubject)
        if student_id:
            query = query.where(StudentSubject.student_id == student_id)
        if subject_id:
            query = query.where(StudentSubject.subject_id == subject_id)
        if semester_id:
            query = query.where(StudentSubject.semester_id == semester_id)
        result = await self.session.execute(query.order_by(StudentSubject.created_at))
        return list(result.scalars().all())

    async def add(self, row: StudentSubject) -> StudentSubject:
        self.session.add(row)
        return row

    async def add_many(self, rows: Sequence[StudentSubject]) -> None:
        self.session.add_all(rows)

    async def delete(self, row: StudentSubject) -> None:
        await self.session.delete(row)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Unit of work over one request-scoped AsyncSession"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.students = SqlStudentRepository(session)
        self.courses = SqlCourseRepository(session)
        self.sessions = SqlSessionRepository(session)
        self.semesters = SqlSemesterRepository(session)
        self.subjects = SqlSubjectRepository(session)
        self.admissions = SqlAdmissionRepository(session)
        self.student_semesters = SqlStudentSemesterRepository(session)
        self.student_subjects = SqlStudentSubjectRepository(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyUnitOfWork"]:
        try:
            yield self
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            error = translate_integrity_error(exc)
            logger.warning(f"Integrity error translated to {error.code}: {exc.orig}")
            raise error from exc
        except Exception:
            await self.session.rollback()
            raise

    async def flush(self) -> None:
        await self.session.flush()
