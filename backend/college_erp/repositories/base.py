"""
Repository interfaces used by the lifecycle services.

The services never touch a session directly; they depend on these
abstract repositories grouped under a `UnitOfWork`. Production code
uses `SqlAlchemyUnitOfWork`; the test suite substitutes an in-memory
implementation.

Entities are the ORM model instances. Attribute changes made inside
`UnitOfWork.transaction()` are persisted when the block exits.
"""
from abc import ABC, abstractmethod
from typing import AsyncContextManager, Iterable, List, Optional, Sequence

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


class StudentRepository(ABC):
    """Tombstoned students are invisible to every read"""

    @abstractmethod
    async def get(self, student_id: str) -> Optional[Student]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[Student]:
        """Student with this email; `include_deleted` also matches soft-deleted rows"""

    @abstractmethod
    async def list_by_course(
        self,
        course_id: str,
        session_id: Optional[str] = None,
        status: Optional[StudentStatus] = None,
    ) -> List[Student]:
        ...

    @abstractmethod
    async def search(
        self,
        status: Optional[StudentStatus] = None,
        course_id: Optional[str] = None,
        session_id: Optional[str] = None,
        text: Optional[str] = None,
    ) -> List[Student]:
        """Newest first; `text` matches name, email or registration number, case-insensitively"""

    @abstractmethod
    async def add(self, student: Student) -> Student:
        ...


class CourseRepository(ABC):
    @abstractmethod
    async def get(self, course_id: str) -> Optional[Course]:
        ...

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Course]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Course]:
        """Ordered by name"""

    @abstractmethod
    async def add(self, course: Course) -> Course:
        ...


class SessionRepository(ABC):
    @abstractmethod
    async def get(self, session_id: str) -> Optional[AcademicSession]:
        ...

    @abstractmethod
    async def list_all(self) -> List[AcademicSession]:
        """Latest start year first"""

    @abstractmethod
    async def add(self, academic_session: AcademicSession) -> AcademicSession:
        ...


class SemesterRepository(ABC):
    @abstractmethod
    async def get(self, semester_id: str) -> Optional[Semester]:
        ...

    @abstractmethod
    async def find_by_number(self, course_id: str, number: int) -> Optional[Semester]:
        ...

    @abstractmethod
    async def list_by_course(self, course_id: str) -> List[Semester]:
        """Semesters of a course ordered by number"""

    @abstractmethod
    async def list_all(self) -> List[Semester]:
        """Every semester, ordered by course then number"""

    @abstractmethod
    async def add(self, semester: Semester) -> Semester:
        ...


class SubjectRepository(ABC):
    @abstractmethod
    async def get(self, subject_id: str) -> Optional[Subject]:
        ...

    @abstractmethod
    async def get_many(self, subject_ids: Iterable[str]) -> List[Subject]:
        """Existing subjects among `subject_ids`; missing ids are simply absent"""

    @abstractmethod
    async def list(
        self,
        course_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        subject_type: Optional[SubjectType] = None,
    ) -> List[Subject]:
        """Ordered by code"""

    @abstractmethod
    async def add(self, subject: Subject) -> Subject:
        ...


class AdmissionRepository(ABC):
    @abstractmethod
    async def get(self, admission_id: str) -> Optional[Admission]:
        ...

    @abstractmethod
    async def find_by_student_course(self, student_id: str, course_id: str) -> Optional[Admission]:
        ...

    @abstractmethod
    async def list(
        self,
        status: Optional[AdmissionStatus] = None,
        course_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Admission]:
        """Newest first"""

    @abstractmethod
    async def add(self, admission: Admission) -> Admission:
        ...

    @abstractmethod
    async def update_status_if(
        self,
        admission: Admission,
        expected: AdmissionStatus,
        new_status: AdmissionStatus,
    ) -> bool:
        """Set `new_status` only if the stored status is still `expected`.

        Returns False when another writer changed the status first.
        """

    @abstractmethod
    async def add_history(self, entry: AdmissionHistory) -> AdmissionHistory:
        ...

    @abstractmethod
    async def list_history(self, admission_id: str) -> List[AdmissionHistory]:
        """Newest first"""


class StudentSemesterRepository(ABC):
    @abstractmethod
    async def get_by_student_semester(self, student_id: str, semester_id: str) -> Optional[StudentSemester]:
        ...

    @abstractmethod
    async def find_ongoing(self, student_id: str) -> Optional[StudentSemester]:
        ...

    @abstractmethod
    async def list_for_student(self, student_id: str) -> List[StudentSemester]:
        ...

    @abstractmethod
    async def list_for_semester(
        self,
        semester_id: str,
        status: Optional[StudentSemesterStatus] = None,
    ) -> List[StudentSemester]:
        ...

    @abstractmethod
    async def add(self, row: StudentSemester) -> StudentSemester:
        ...

    @abstractmethod
    async def add_many(self, rows: Sequence[StudentSemester]) -> None:
        ...


class StudentSubjectRepository(ABC):
    @abstractmethod
    async def get(self, student_subject_id: str) -> Optional[StudentSubject]:
        ...

    @abstractmethod
    async def find(self, student_id: str, subject_id: str, semester_id: str) -> Optional[StudentSubject]:
        ...

    @abstractmethod
    async def find_by_exclusive_type(
        self,
        student_id: str,
        semester_id: str,
        subject_type: SubjectType,
    ) -> Optional[StudentSubject]:
        ...

    @abstractmethod
    async def list_for_student_semester(self, student_id: str, semester_id: str) -> List[StudentSubject]:
        ...

    @abstractmethod
    async def list(
        self,
        student_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        semester_id: Optional[str] = None,
    ) -> List[StudentSubject]:
        """Oldest first"""

    @abstractmethod
    async def add(self, row: StudentSubject) -> StudentSubject:
        ...

    @abstractmethod
    async def add_many(self, rows: Sequence[StudentSubject]) -> None:
        ...

    @abstractmethod
    async def delete(self, row: StudentSubject) -> None:
        ...


class UnitOfWork(ABC):
    """Transaction boundary plus the repositories bound to it"""

    students: StudentRepository
    courses: CourseRepository
    sessions: SessionRepository
    semesters: SemesterRepository
    subjects: SubjectRepository
    admissions: AdmissionRepository
    student_semesters: StudentSemesterRepository
    student_subjects: StudentSubjectRepository

    @abstractmethod
    def transaction(self) -> AsyncContextManager["UnitOfWork"]:
        """Commit on normal exit, roll back on error.

        Unique-constraint violations raised by the store surface as
        `DuplicateRecordError` subclasses.
        """

    @abstractmethod
    async def flush(self) -> None:
        """Push pending changes so later reads and constraints see them"""
