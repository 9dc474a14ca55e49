"""
Student Service - student records

Students are never physically removed. `soft_delete` sets the tombstone,
after which the student is invisible to every repository read.
"""

from datetime import datetime
from typing import List, Optional, Union

from college_erp.core.exceptions import (
    AuthorizationError,
    CourseNotFoundError,
    DuplicateRecordError,
    InvalidStatusError,
    SessionNotFoundError,
    StudentNotFoundError,
)
from college_erp.core.logging_config import logger
from college_erp.core.types import generate_registration_number, generate_uuid
from college_erp.models import Student, StudentSemester, StudentStatus, User, UserRole
from college_erp.repositories import UnitOfWork
from college_erp.services.audit import AuditAction, AuditSink
from college_erp.services.cascades import actor_id
from college_erp.services.subject_selection_service import ensure_can_act_for


class StudentService:
    """Service for creating, reading and tombstoning students"""

    def __init__(self, uow: UnitOfWork, audit: AuditSink):
        self.uow = uow
        self.audit = audit

    async def create_student(
        self,
        name: str,
        email: str,
        course_id: str,
        session_id: Optional[str] = None,
        phone: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Student:
        """
        Create an ACTIVE student with a generated registration number

        Raises:
            CourseNotFoundError / SessionNotFoundError: unknown reference
            DuplicateRecordError: email already used by another student, deleted or not
        """
        email = email.strip().lower()

        async with self.uow.transaction():
            if await self.uow.courses.get(course_id) is None:
                raise CourseNotFoundError(course_id)
            if session_id and await self.uow.sessions.get(session_id) is None:
                raise SessionNotFoundError(session_id)
            existing = await self.uow.students.get_by_email(email, include_deleted=True)
            if existing is not None:
                if existing.is_deleted:
                    raise DuplicateRecordError(
                        "This email belongs to a deleted student record", {"email": email, "deleted": True}
                    )
                raise DuplicateRecordError("A student with this email already exists", {"email": email})

            now = datetime.utcnow()
            student = await self.uow.students.add(Student(
                id=generate_uuid(),
                reg_no=generate_registration_number(),
                name=name.strip(),
                email=email,
                phone=phone,
                course_id=course_id,
                session_id=session_id,
                status=StudentStatus.ACTIVE,
                is_deleted=False,
                created_at=now,
                updated_at=now,
            ))

        await self.audit.record(
            actor_id(actor),
            AuditAction.CREATE_STUDENT,
            "Student",
            student.id,
            {"reg_no": student.reg_no, "course_id": str(course_id)},
        )
        logger.info(f"Created student {student.reg_no}")
        return student

    async def get_student(self, student_id: str, actor: Optional[User] = None) -> Student:
        ensure_can_act_for(actor, student_id)
        student = await self.uow.students.get(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        return student

    async def list_students(
        self,
        status: Optional[Union[str, StudentStatus]] = None,
        course_id: Optional[str] = None,
        session_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Student]:
        """Roster of students that are not deleted, newest first"""
        parsed = None
        if status is not None:
            try:
                parsed = StudentStatus(status)
            except ValueError:
                raise InvalidStatusError(status, [s.value for s in StudentStatus])
        return await self.uow.students.search(
            status=parsed,
            course_id=course_id,
            session_id=session_id,
            text=search.strip() if search else None,
        )

    async def update_student(
        self,
        student_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        session_id: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Student:
        """
        Update contact details or the academic session

        Status and course are owned by the admission and semester workflows
        and cannot be changed here.

        Raises:
            StudentNotFoundError / SessionNotFoundError: unknown reference
            DuplicateRecordError: email already used by another student
        """
        changes = {}
        async with self.uow.transaction():
            student = await self.uow.students.get(student_id)
            if student is None:
                raise StudentNotFoundError(student_id)

            if email is not None:
                email = email.strip().lower()
                if email != student.email:
                    if await self.uow.students.get_by_email(email, include_deleted=True) is not None:
                        raise DuplicateRecordError("A student with this email already exists", {"email": email})
                    changes["email"] = email
            if session_id is not None and session_id != student.session_id:
                if await self.uow.sessions.get(session_id) is None:
                    raise SessionNotFoundError(session_id)
                changes["session_id"] = session_id
            if name is not None and name.strip() != student.name:
                changes["name"] = name.strip()
            if phone is not None and phone != student.phone:
                changes["phone"] = phone

            for field_name, value in changes.items():
                setattr(student, field_name, value)
            if changes:
                student.updated_at = datetime.utcnow()

        if changes:
            await self.audit.record(actor_id(actor), AuditAction.UPDATE_STUDENT, "Student", student_id, changes)
        return student

    async def list_semesters(self, student_id: str, actor: Optional[User] = None) -> List[StudentSemester]:
        """Enrollment history, most recent first"""
        await self.get_student(student_id, actor)
        return await self.uow.student_semesters.list_for_student(student_id)

    async def soft_delete(self, student_id: str, actor: Optional[User] = None) -> None:
        """Tombstone a student (ADMIN only)"""
        if actor is not None and actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only administrators can delete students")

        async with self.uow.transaction():
            student = await self.uow.students.get(student_id)
            if student is None:
                raise StudentNotFoundError(student_id)
            student.is_deleted = True
            student.status = StudentStatus.DROPOUT
            student.updated_at = datetime.utcnow()
            reg_no = student.reg_no

        await self.audit.record(actor_id(actor), AuditAction.DELETE_STUDENT, "Student", student_id, {"reg_no": reg_no})
        logger.info(f"Soft-deleted student {reg_no}")
