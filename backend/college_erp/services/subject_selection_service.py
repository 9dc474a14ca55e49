"""
Subject Selection Service - a student's subject picks per semester

A pick needs an ONGOING StudentSemester for that semester. MJC, MIC and
MDC are exclusive: at most one of each per student per semester. SEC and
VAC are unconstrained.
"""

from collections import Counter
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from college_erp.core.exceptions import (
    AlreadyAssignedError,
    AuthorizationError,
    ConstraintViolationError,
    ExclusiveTypeConflictError,
    NotEnrolledError,
    SemesterNotFoundError,
    StudentNotFoundError,
    StudentSubjectNotFoundError,
    SubjectNotFoundError,
)
from college_erp.core.logging_config import logger
from college_erp.core.types import generate_uuid
from college_erp.models import (
    EXCLUSIVE_SUBJECT_TYPES,
    Semester,
    Student,
    StudentSemesterStatus,
    StudentSubject,
    Subject,
    SubjectType,
    User,
    UserRole,
)
from college_erp.repositories import UnitOfWork
from college_erp.services.audit import AuditAction, AuditSink
from college_erp.services.cascades import actor_id


def ensure_can_act_for(actor: Optional[User], student_id: str) -> None:
    """Students may only act on their own record"""
    if actor is not None and actor.role == UserRole.STUDENT and str(actor.student_id) != str(student_id):
        raise AuthorizationError("Students can only manage their own subjects")


def _new_pick(student_id: str, semester_id: str, subject: Subject) -> StudentSubject:
    return StudentSubject(
        id=generate_uuid(),
        student_id=student_id,
        subject_id=subject.id,
        semester_id=semester_id,
        exclusive_type=subject.type if subject.type in EXCLUSIVE_SUBJECT_TYPES else None,
        created_at=datetime.utcnow(),
    )


class SubjectSelectionService:
    """Enforces per-semester subject-type cardinality"""

    def __init__(self, uow: UnitOfWork, audit: AuditSink):
        self.uow = uow
        self.audit = audit

    async def _load_student_and_semester(self, student_id: str, semester_id: str) -> Tuple[Student, Semester]:
        student = await self.uow.students.get(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        semester = await self.uow.semesters.get(semester_id)
        if semester is None:
            raise SemesterNotFoundError(semester_id)
        return student, semester

    async def _ensure_enrolled(self, student_id: str, semester_id: str) -> None:
        enrollment = await self.uow.student_semesters.get_by_student_semester(student_id, semester_id)
        if enrollment is None or enrollment.status != StudentSemesterStatus.ONGOING:
            raise NotEnrolledError(student_id, semester_id)

    @staticmethod
    def _ensure_same_course(student: Student, semester: Semester) -> None:
        if semester.course_id != student.course_id:
            raise ConstraintViolationError(
                "Semester does not belong to the student's course",
                {"student_course_id": str(student.course_id), "semester_course_id": str(semester.course_id)},
            )

    async def assign(
        self,
        student_id: str,
        subject_id: str,
        semester_id: str,
        actor: Optional[User] = None,
    ) -> StudentSubject:
        """
        Record one subject pick

        Raises:
            StudentNotFoundError / SubjectNotFoundError / SemesterNotFoundError
            ConstraintViolationError: subject, semester and student course disagree
            NotEnrolledError: no ONGOING enrollment in the semester
            AlreadyAssignedError: subject already picked
            ExclusiveTypeConflictError: another subject of the same exclusive type already picked
        """
        ensure_can_act_for(actor, student_id)

        async with self.uow.transaction():
            student = await self.uow.students.get(student_id)
            if student is None:
                raise StudentNotFoundError(student_id)
            subject = await self.uow.subjects.get(subject_id)
            if subject is None:
                raise SubjectNotFoundError(subject_id)
            semester = await self.uow.semesters.get(semester_id)
            if semester is None:
                raise SemesterNotFoundError(semester_id)

            if subject.semester_id != semester.id:
                raise ConstraintViolationError(
                    "Subject does not belong to this semester",
                    {"subject_id": str(subject_id), "semester_id": str(semester_id)},
                )
            self._ensure_same_course(student, semester)

            await self._ensure_enrolled(student_id, semester_id)

            if await self.uow.student_subjects.find(student_id, subject_id, semester_id) is not None:
                raise AlreadyAssignedError(
                    "Subject is already assigned to the student for this semester",
                    details={"subject_id": str(subject_id)},
                )

            if subject.type in EXCLUSIVE_SUBJECT_TYPES:
                if await self.uow.student_subjects.find_by_exclusive_type(
                    student_id, semester_id, subject.type
                ) is not None:
                    raise ExclusiveTypeConflictError(subject.type, semester_id)

            row = await self.uow.student_subjects.add(_new_pick(student_id, semester_id, subject))

        await self.audit.record(
            actor_id(actor),
            AuditAction.CREATE_STUDENT_SUBJECT,
            "StudentSubject",
            row.id,
            {
                "student_id": str(student_id),
                "subject_id": str(subject_id),
                "semester_id": str(semester_id),
                "subject_type": subject.type.value,
            },
        )
        logger.log_lifecycle_event(AuditAction.CREATE_STUDENT_SUBJECT, "StudentSubject", row.id)
        return row

    async def bulk_assign(
        self,
        student_id: str,
        semester_id: str,
        subject_ids: Sequence[str],
        actor: Optional[User] = None,
    ) -> List[StudentSubject]:
        """
        Record several picks at once; either all are created or none

        Raises:
            ConstraintViolationError: empty or repeated ids, or a subject from another semester
            ExclusiveTypeConflictError: two exclusive subjects of one type in the batch,
                or one already picked for the semester
            NotEnrolledError: no ONGOING enrollment in the semester
            AlreadyAssignedError: a subject in the batch is already picked
        """
        if not subject_ids:
            raise ConstraintViolationError("At least one subject is required", {"field": "subject_ids"})
        if len(set(subject_ids)) != len(subject_ids):
            raise ConstraintViolationError("Subject ids must not repeat", {"field": "subject_ids"})

        ensure_can_act_for(actor, student_id)

        async with self.uow.transaction():
            student, semester = await self._load_student_and_semester(student_id, semester_id)
            self._ensure_same_course(student, semester)

            subjects = await self.uow.subjects.get_many(subject_ids)
            found = {s.id for s in subjects}
            missing = [sid for sid in subject_ids if sid not in found]
            if missing:
                raise SubjectNotFoundError(missing[0])

            foreign = [str(s.id) for s in subjects if s.semester_id != semester.id]
            if foreign:
                raise ConstraintViolationError(
                    "All subjects must belong to the selected semester",
                    {"subject_ids": foreign, "semester_id": str(semester_id)},
                )

            type_counts = Counter(s.type for s in subjects if s.type in EXCLUSIVE_SUBJECT_TYPES)
            for subject_type, count in type_counts.items():
                if count > 1:
                    raise ExclusiveTypeConflictError(subject_type, semester_id)

            await self._ensure_enrolled(student_id, semester_id)

            for subject in subjects:
                if await self.uow.student_subjects.find(student_id, subject.id, semester_id) is not None:
                    raise AlreadyAssignedError(
                        "Subject is already assigned to the student for this semester",
                        details={"subject_id": str(subject.id)},
                    )

            for subject_type in type_counts:
                if await self.uow.student_subjects.find_by_exclusive_type(
                    student_id, semester_id, subject_type
                ) is not None:
                    raise ExclusiveTypeConflictError(subject_type, semester_id)

            rows = [_new_pick(student_id, semester_id, subject) for subject in subjects]
            await self.uow.student_subjects.add_many(rows)

        await self.audit.record(
            actor_id(actor),
            AuditAction.BULK_ASSIGN_SUBJECTS,
            "StudentSubject",
            None,
            {
                "student_id": str(student_id),
                "semester_id": str(semester_id),
                "subject_ids": [str(s.id) for s in subjects],
                "count": len(rows),
            },
        )
        logger.log_lifecycle_event(
            AuditAction.BULK_ASSIGN_SUBJECTS, "StudentSubject", None,
            student_id=str(student_id), count=len(rows),
        )
        return rows

    async def remove(self, student_subject_id: str, actor: Optional[User] = None) -> None:
        """
        Delete a pick. Staff may always delete; a student only their own pick,
        and only while the semester is ONGOING.
        """
        async with self.uow.transaction():
            row = await self.uow.student_subjects.get(student_subject_id)
            if row is None:
                raise StudentSubjectNotFoundError(student_subject_id)

            student_id, subject_id, semester_id = row.student_id, row.subject_id, row.semester_id
            if actor is not None and actor.role == UserRole.STUDENT:
                ensure_can_act_for(actor, student_id)
                await self._ensure_enrolled(student_id, semester_id)
            elif actor is not None and not actor.is_staff:
                raise AuthorizationError("Not allowed to remove subject selections")

            await self.uow.student_subjects.delete(row)

        await self.audit.record(
            actor_id(actor),
            AuditAction.DELETE_STUDENT_SUBJECT,
            "StudentSubject",
            student_subject_id,
            {"student_id": str(student_id), "subject_id": str(subject_id), "semester_id": str(semester_id)},
        )

    async def list_for_semester(
        self,
        student_id: str,
        semester_id: str,
        actor: Optional[User] = None,
    ) -> List[Tuple[StudentSubject, Subject]]:
        """A student's picks for a semester, each with its subject"""
        ensure_can_act_for(actor, student_id)
        await self._load_student_and_semester(student_id, semester_id)

        rows = await self.uow.student_subjects.list_for_student_semester(student_id, semester_id)
        subjects = {s.id: s for s in await self.uow.subjects.get_many(r.subject_id for r in rows)}
        return [(row, subjects[row.subject_id]) for row in rows if row.subject_id in subjects]

    async def list_selections(
        self,
        student_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        subject_type: Optional[SubjectType] = None,
        actor: Optional[User] = None,
    ) -> List[Tuple[StudentSubject, Subject]]:
        """Picks across students and semesters; a student actor only ever sees their own"""
        if actor is not None and actor.role == UserRole.STUDENT:
            student_id = str(actor.student_id)

        rows = await self.uow.student_subjects.list(
            student_id=student_id, subject_id=subject_id, semester_id=semester_id
        )
        subjects = {s.id: s for s in await self.uow.subjects.get_many({r.subject_id for r in rows})}
        return [
            (row, subjects[row.subject_id])
            for row in rows
            if row.subject_id in subjects and (subject_type is None or subjects[row.subject_id].type == subject_type)
        ]
