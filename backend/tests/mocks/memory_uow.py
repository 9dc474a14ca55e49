"""
In-memory UnitOfWork for testing the lifecycle services without a database

Rows live in dicts keyed by id. A transaction snapshots every row's column
values on entry and restores them (dropping rows added since) on error.
The store's unique constraints are checked when a transaction exits, the
way a database reports them on commit.
"""
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence

from college_erp.core.exceptions import (
    AlreadyAssignedError,
    AlreadyEnrolledError,
    DuplicateRecordError,
    ExclusiveTypeConflictError,
)
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
from college_erp.repositories import (
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


def _columns(obj) -> Dict[str, Any]:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


def _sort_key(value):
    return (value is None, value)


def _given(**filters) -> Dict[str, Any]:
    return {name: value for name, value in filters.items() if value is not None}


class _Table:
    def __init__(self):
        self.rows: Dict[str, Any] = {}

    def put(self, obj):
        self.rows[str(obj.id)] = obj
        return obj

    def get(self, key) -> Optional[Any]:
        return self.rows.get(str(key)) if key is not None else None

    def where(self, **filters) -> List[Any]:
        return [
            row for row in self.rows.values()
            if all(getattr(row, name) == value for name, value in filters.items())
        ]


class MemoryStudentRepository(StudentRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, student_id: str) -> Optional[Student]:
        student = self.table.get(student_id)
        if student is None or student.is_deleted:
            return None
        return student

    async def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[Student]:
        matches = self.table.where(email=email) if include_deleted else self.table.where(email=email, is_deleted=False)
        return matches[0] if matches else None

    async def list_by_course(
        self,
        course_id: str,
        session_id: Optional[str] = None,
        status: Optional[StudentStatus] = None,
    ) -> List[Student]:
        rows = self.table.where(course_id=course_id, is_deleted=False)
        if session_id:
            rows = [r for r in rows if r.session_id == session_id]
        if status is not None:
            rows = [r for r in rows if r.status == status]
        return sorted(rows, key=lambda r: _sort_key(r.created_at))

    async def search(
        self,
        status: Optional[StudentStatus] = None,
        course_id: Optional[str] = None,
        session_id: Optional[str] = None,
        text: Optional[str] = None,
    ) -> List[Student]:
        rows = self.table.where(is_deleted=False, **_given(status=status, course_id=course_id, session_id=session_id))
        if text:
            needle = text.lower()
            rows = [r for r in rows if any(needle in (v or "").lower() for v in (r.name, r.email, r.reg_no))]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def add(self, student: Student) -> Student:
        return self.table.put(student)


class MemoryCourseRepository(CourseRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, course_id: str) -> Optional[Course]:
        return self.table.get(course_id)

    async def get_by_code(self, code: str) -> Optional[Course]:
        matches = self.table.where(code=code)
        return matches[0] if matches else None

    async def list_all(self) -> List[Course]:
        return sorted(self.table.rows.values(), key=lambda c: c.name)

    async def add(self, course: Course) -> Course:
        return self.table.put(course)


class MemorySessionRepository(SessionRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, session_id: str) -> Optional[AcademicSession]:
        return self.table.get(session_id)

    async def list_all(self) -> List[AcademicSession]:
        return sorted(self.table.rows.values(), key=lambda s: s.start_year, reverse=True)

    async def add(self, academic_session: AcademicSession) -> AcademicSession:
        return self.table.put(academic_session)


class MemorySemesterRepository(SemesterRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, semester_id: str) -> Optional[Semester]:
        return self.table.get(semester_id)

    async def find_by_number(self, course_id: str, number: int) -> Optional[Semester]:
        matches = self.table.where(course_id=course_id, number=number)
        return matches[0] if matches else None

    async def list_by_course(self, course_id: str) -> List[Semester]:
        return sorted(self.table.where(course_id=course_id), key=lambda s: s.number)

    async def list_all(self) -> List[Semester]:
        return sorted(self.table.rows.values(), key=lambda s: (str(s.course_id), s.number))

    async def add(self, semester: Semester) -> Semester:
        return self.table.put(semester)


class MemorySubjectRepository(SubjectRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, subject_id: str) -> Optional[Subject]:
        return self.table.get(subject_id)

    async def get_many(self, subject_ids: Iterable[str]) -> List[Subject]:
        return [s for s in (self.table.get(i) for i in subject_ids) if s is not None]

    async def list(
        self,
        course_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        subject_type: Optional[SubjectType] = None,
    ) -> List[Subject]:
        rows = self.table.where(**_given(course_id=course_id, semester_id=semester_id, type=subject_type))
        return sorted(rows, key=lambda s: s.code)

    async def add(self, subject: Subject) -> Subject:
        return self.table.put(subject)


class MemoryAdmissionRepository(AdmissionRepository):
    def __init__(self, table: _Table, history: _Table):
        self.table = table
        self.history = history

    async def get(self, admission_id: str) -> Optional[Admission]:
        return self.table.get(admission_id)

    async def find_by_student_course(self, student_id: str, course_id: str) -> Optional[Admission]:
        matches = self.table.where(student_id=student_id, course_id=course_id)
        return matches[0] if matches else None

    async def list(
        self,
        status: Optional[AdmissionStatus] = None,
        course_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Admission]:
        rows = list(self.table.rows.values())
        if status is not None:
            rows = [r for r in rows if r.status == status]
        if course_id:
            rows = [r for r in rows if r.course_id == course_id]
        if student_id:
            rows = [r for r in rows if r.student_id == student_id]
        return sorted(rows, key=lambda r: _sort_key(r.created_at), reverse=True)

    async def add(self, admission: Admission) -> Admission:
        return self.table.put(admission)

    async def update_status_if(
        self,
        admission: Admission,
        expected: AdmissionStatus,
        new_status: AdmissionStatus,
    ) -> bool:
        stored = self.table.get(admission.id)
        if stored is None or stored.status != expected:
            return False
        stored.status = new_status
        return True

    async def add_history(self, entry: AdmissionHistory) -> AdmissionHistory:
        return self.history.put(entry)

    async def list_history(self, admission_id: str) -> List[AdmissionHistory]:
        return sorted(
            self.history.where(admission_id=admission_id),
            key=lambda h: _sort_key(h.changed_at),
            reverse=True,
        )


class MemoryStudentSemesterRepository(StudentSemesterRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get_by_student_semester(self, student_id: str, semester_id: str) -> Optional[StudentSemester]:
        matches = self.table.where(student_id=student_id, semester_id=semester_id)
        return matches[0] if matches else None

    async def find_ongoing(self, student_id: str) -> Optional[StudentSemester]:
        matches = self.table.where(student_id=student_id, status=StudentSemesterStatus.ONGOING)
        return matches[0] if matches else None

    async def list_for_student(self, student_id: str) -> List[StudentSemester]:
        return sorted(
            self.table.where(student_id=student_id), key=lambda r: _sort_key(r.start_date), reverse=True
        )

    async def list_for_semester(
        self,
        semester_id: str,
        status: Optional[StudentSemesterStatus] = None,
    ) -> List[StudentSemester]:
        rows = self.table.where(semester_id=semester_id)
        if status is not None:
            rows = [r for r in rows if r.status == status]
        return rows

    async def add(self, row: StudentSemester) -> StudentSemester:
        return self.table.put(row)

    async def add_many(self, rows: Sequence[StudentSemester]) -> None:
        for row in rows:
            self.table.put(row)


class MemoryStudentSubjectRepository(StudentSubjectRepository):
    def __init__(self, table: _Table):
        self.table = table

    async def get(self, student_subject_id: str) -> Optional[StudentSubject]:
        return self.table.get(student_subject_id)

    async def find(self, student_id: str, subject_id: str, semester_id: str) -> Optional[StudentSubject]:
        matches = self.table.where(student_id=student_id, subject_id=subject_id, semester_id=semester_id)
        return matches[0] if matches else None

    async def find_by_exclusive_type(
        self,
        student_id: str,
        semester_id: str,
        subject_type: SubjectType,
    ) -> Optional[StudentSubject]:
        matches = self.table.where(student_id=student_id, semester_id=semester_id, exclusive_type=subject_type)
        return matches[0] if matches else None

    async def list_for_student_semester(self, student_id: str, semester_id: str) -> List[StudentSubject]:
        return sorted(
            self.table.where(student_id=student_id, semester_id=semester_id),
            key=lambda r: _sort_key(r.created_at),
        )

    async def list(
        self,
        student_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        semester_id: Optional[str] = None,
    ) -> List[StudentSubject]:
        rows = self.table.where(**_given(student_id=student_id, subject_id=subject_id, semester_id=semester_id))
        return sorted(rows, key=lambda r: _sort_key(r.created_at))

    async def add(self, row: StudentSubject) -> StudentSubject:
        return self.table.put(row)

    async def add_many(self, rows: Sequence[StudentSubject]) -> None:
        for row in rows:
            self.table.put(row)

    async def delete(self, row: StudentSubject) -> None:
        self.table.rows.pop(str(row.id), None)


class InMemoryUnitOfWork(UnitOfWork):
    """UnitOfWork over plain dicts with snapshot rollback"""

    def __init__(self):
        self.tables: Dict[str, _Table] = {
            name: _Table()
            for name in (
                "students", "courses", "sessions", "semesters", "subjects",
                "admissions", "admission_history", "student_semesters", "student_subjects",
            )
        }
        self.students = MemoryStudentRepository(self.tables["students"])
        self.courses = MemoryCourseRepository(self.tables["courses"])
        self.sessions = MemorySessionRepository(self.tables["sessions"])
        self.semesters = MemorySemesterRepository(self.tables["semesters"])
        self.subjects = MemorySubjectRepository(self.tables["subjects"])
        self.admissions = MemoryAdmissionRepository(self.tables["admissions"], self.tables["admission_history"])
        self.student_semesters = MemoryStudentSemesterRepository(self.tables["student_semesters"])
        self.student_subjects = MemoryStudentSubjectRepository(self.tables["student_subjects"])
        self.commits = 0
        self.rollbacks = 0

    def _snapshot(self):
        return {
            name: {key: (row, _columns(row)) for key, row in table.rows.items()}
            for name, table in self.tables.items()
        }

    def _restore(self, snapshot) -> None:
        for name, saved in snapshot.items():
            table = self.tables[name]
            table.rows = {}
            for key, (row, values) in saved.items():
                for column, value in values.items():
                    setattr(row, column, value)
                table.rows[key] = row

    def _check_constraints(self) -> None:
        semesters = list(self.tables["student_semesters"].rows.values())
        if any(n > 1 for n in Counter((r.student_id, r.semester_id) for r in semesters).values()):
            raise AlreadyAssignedError("Student is already assigned to this semester")
        ongoing = Counter(r.student_id for r in semesters if r.status == StudentSemesterStatus.ONGOING)
        if any(n > 1 for n in ongoing.values()):
            raise AlreadyEnrolledError("Student already has an ongoing semester")

        picks = list(self.tables["student_subjects"].rows.values())
        exclusive = Counter(
            (r.student_id, r.semester_id, r.exclusive_type) for r in picks if r.exclusive_type is not None
        )
        if any(n > 1 for n in exclusive.values()):
            raise ExclusiveTypeConflictError("MJC/MIC/MDC")
        if any(n > 1 for n in Counter((r.student_id, r.subject_id, r.semester_id) for r in picks).values()):
            raise AlreadyAssignedError("Subject is already assigned to the student for this semester")

        admissions = self.tables["admissions"].rows.values()
        if any(n > 1 for n in Counter((a.student_id, a.course_id) for a in admissions).values()):
            raise AlreadyEnrolledError("Student already has an admission for this course")

        courses = self.tables["courses"].rows.values()
        if any(n > 1 for n in Counter(c.code for c in courses).values()):
            raise DuplicateRecordError()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryUnitOfWork"]:
        snapshot = self._snapshot()
        try:
            yield self
            self._check_constraints()
        except Exception:
            self._restore(snapshot)
            self.rollbacks += 1
            raise
        self.commits += 1

    async def flush(self) -> None:
        return None
