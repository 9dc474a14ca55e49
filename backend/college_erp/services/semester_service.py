"""
Semester Service - student progression through a course's semesters

Handles:
- Direct assignment of a student to a semester
- Status changes on a StudentSemester, with the completion cascade
- Bulk status changes (per-student, soft-fail)
- Eligibility-based auto assignment (atomic)
- Explicit promotion of a semester's COMPLETED students (atomic, idempotent)

A student has at most one ONGOING StudentSemester at any time; every path
that creates or reopens one goes through `cascades.ensure_no_other_ongoing`
or `cascades.find_conflicting_ongoing`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from college_erp.core.config import settings
from college_erp.core.exceptions import (
    AlreadyAssignedError,
    CollegeERPError,
    ConstraintViolationError,
    InvalidStatusError,
    NotFoundError,
    SemesterNotFoundError,
    StudentNotFoundError,
    StudentSemesterNotFoundError,
)
from college_erp.core.logging_config import logger
from college_erp.core.types import add_months
from college_erp.models import (
    Semester,
    StudentSemester,
    StudentSemesterStatus,
    StudentStatus,
    User,
)
from college_erp.repositories import UnitOfWork
from college_erp.services import cascades
from college_erp.services.audit import AuditAction, AuditSink
from college_erp.services.cascades import ProgressionOutcome, actor_id


def parse_semester_status(value: Union[str, StudentSemesterStatus]) -> StudentSemesterStatus:
    try:
        return StudentSemesterStatus(value)
    except ValueError:
        raise InvalidStatusError(value, [s.value for s in StudentSemesterStatus])


def default_end_date(start: datetime) -> datetime:
    return add_months(start, settings.SEMESTER_DEFAULT_DURATION_MONTHS)


@dataclass
class AutoAssignCriteria:
    session_id: Optional[str] = None
    # Only students with at least this many completed semesters
    min_semester_number: Optional[int] = None


@dataclass
class StatusChangeResult:
    student_semester: StudentSemester
    previous_status: StudentSemesterStatus
    progression: Optional[ProgressionOutcome] = None


@dataclass
class BulkStatusResult:
    updated: int = 0
    skipped: int = 0
    promoted: int = 0
    passed_out: int = 0
    skipped_student_ids: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class AutoAssignResult:
    semester: Semester
    considered: int
    assigned: List[StudentSemester] = field(default_factory=list)


@dataclass
class PromotionResult:
    current_semester: Semester
    next_semester: Semester
    promoted: List[StudentSemester] = field(default_factory=list)
    skipped_student_ids: List[str] = field(default_factory=list)


_COMPLETED_STATES = (StudentSemesterStatus.COMPLETED, StudentSemesterStatus.PROMOTED)


class SemesterService:
    """Single-ongoing-semester enforcement and semester progression"""

    def __init__(self, uow: UnitOfWork, audit: AuditSink):
        self.uow = uow
        self.audit = audit

    # ==================== DIRECT ASSIGNMENT ====================

    async def assign_semester(
        self,
        student_id: str,
        semester_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        fee_paid: bool = False,
        actor: Optional[User] = None,
    ) -> StudentSemester:
        """
        Seat a student in a semester of their own course as ONGOING

        Raises:
            StudentNotFoundError / SemesterNotFoundError: unknown reference
            ConstraintViolationError: semester belongs to another course
            AlreadyAssignedError: student already occupies this semester
            AlreadyEnrolledError: student is ONGOING in another semester
        """
        async with self.uow.transaction():
            student = await self.uow.students.get(student_id)
            if student is None:
                raise StudentNotFoundError(student_id)
            semester = await self.uow.semesters.get(semester_id)
            if semester is None:
                raise SemesterNotFoundError(semester_id)

            if semester.course_id != student.course_id:
                raise ConstraintViolationError(
                    "Semester does not belong to the student's course",
                    {"student_course_id": str(student.course_id), "semester_course_id": str(semester.course_id)},
                )

            if await self.uow.student_semesters.get_by_student_semester(student_id, semester_id) is not None:
                raise AlreadyAssignedError(
                    "Student is already assigned to this semester",
                    details={"student_id": str(student_id), "semester_id": str(semester_id)},
                )

            await cascades.ensure_no_other_ongoing(self.uow, student_id, semester_id)

            start = start_date or datetime.utcnow()
            row = cascades.new_ongoing_semester(
                student_id, semester_id, start_date=start, end_date=end_date or default_end_date(start)
            )
            row.fee_paid = fee_paid
            await self.uow.student_semesters.add(row)

        await self.audit.record(
            actor_id(actor),
            AuditAction.ASSIGN_SEMESTER_TO_STUDENT,
            "StudentSemester",
            row.id,
            {"student_id": str(student_id), "semester_id": str(semester_id), "semester_number": semester.number},
        )
        logger.log_lifecycle_event(AuditAction.ASSIGN_SEMESTER_TO_STUDENT, "StudentSemester", row.id)
        return row

    # ==================== STATUS CHANGES ====================

    async def _apply_status(
        self,
        student_id: str,
        semester_id: str,
        status: StudentSemesterStatus,
        fee_paid: Optional[bool],
    ):
        """Validate and write one status change inside a transaction; returns (row, previous_status)"""
        async with self.uow.transaction():
            row = await self.uow.student_semesters.get_by_student_semester(student_id, semester_id)
            if row is None:
                raise StudentSemesterNotFoundError(student_id, semester_id)
            if await self.uow.students.get(student_id) is None:
                raise StudentNotFoundError(student_id)

            previous = row.status
            if status == StudentSemesterStatus.ONGOING and previous != StudentSemesterStatus.ONGOING:
                await cascades.ensure_no_other_ongoing(self.uow, student_id, semester_id)

            row.status = status
            if fee_paid is not None:
                row.fee_paid = fee_paid
            row.updated_at = datetime.utcnow()
        return row, previous

    async def _after_status_change(
        self,
        student_id: str,
        semester_id: str,
        row_id: str,
        status: StudentSemesterStatus,
        actor: Optional[User],
    ) -> Optional[ProgressionOutcome]:
        if status == StudentSemesterStatus.COMPLETED:
            return await cascades.advance_after_completion(self.uow, self.audit, student_id, semester_id, actor)
        if status == StudentSemesterStatus.FAILED:
            # No automation: the student is re-assigned or detained by staff
            await self.audit.record(
                actor_id(actor),
                AuditAction.SEMESTER_FAILED,
                "StudentSemester",
                row_id,
                {"student_id": str(student_id), "semester_id": str(semester_id)},
            )
        return None

    async def set_status(
        self,
        student_id: str,
        semester_id: str,
        new_status: Union[str, StudentSemesterStatus],
        fee_paid: Optional[bool] = None,
        actor: Optional[User] = None,
    ) -> StatusChangeResult:
        """
        Change one student's status in one semester

        COMPLETED opens the next semester (or marks the student PASSED_OUT
        after the last one). FAILED has no cascade.

        Raises:
            InvalidStatusError: status outside ONGOING/COMPLETED/FAILED/PROMOTED
            StudentSemesterNotFoundError: no row for (student, semester)
            AlreadyEnrolledError: reopening as ONGOING while another semester is ONGOING
        """
        status = parse_semester_status(new_status)
        row, previous = await self._apply_status(student_id, semester_id, status, fee_paid)

        await self.audit.record(
            actor_id(actor),
            AuditAction.UPDATE_STUDENT_SEMESTER_STATUS,
            "StudentSemester",
            row.id,
            {
                "student_id": str(student_id),
                "semester_id": str(semester_id),
                "from_status": previous.value,
                "to_status": status.value,
                "fee_paid": fee_paid,
            },
        )
        logger.log_lifecycle_event(
            AuditAction.UPDATE_STUDENT_SEMESTER_STATUS, "StudentSemester", row.id,
            from_status=previous.value, to_status=status.value,
        )

        progression = await self._after_status_change(student_id, semester_id, row.id, status, actor)
        if progression is not None:
            # Re-read after the cascade transaction so the returned row reflects committed state
            row = await self.uow.student_semesters.get_by_student_semester(student_id, semester_id)
        return StatusChangeResult(student_semester=row, previous_status=previous, progression=progression)

    async def bulk_set_status(
        self,
        semester_id: str,
        student_ids: Sequence[str],
        new_status: Union[str, StudentSemesterStatus],
        fee_paid: Optional[bool] = None,
        actor: Optional[User] = None,
    ) -> BulkStatusResult:
        """
        Apply `set_status` to many students of one semester

        Not atomic: each student is its own transaction, and a student whose
        row is missing or whose change is rejected is skipped.
        """
        status = parse_semester_status(new_status)
        if await self.uow.semesters.get(semester_id) is None:
            raise SemesterNotFoundError(semester_id)

        result = BulkStatusResult()
        for student_id in dict.fromkeys(student_ids):
            try:
                row, _ = await self._apply_status(student_id, semester_id, status, fee_paid)
            except CollegeERPError as e:
                result.skipped += 1
                result.skipped_student_ids.append(str(student_id))
                result.errors[str(student_id)] = e.code
                continue

            result.updated += 1
            progression = await self._after_status_change(student_id, semester_id, row.id, status, actor)
            if progression is not None:
                if progression.promoted:
                    result.promoted += 1
                elif progression.passed_out:
                    result.passed_out += 1

        await self.audit.record(
            actor_id(actor),
            AuditAction.BULK_UPDATE_STUDENT_SEMESTER_STATUS,
            "Semester",
            semester_id,
            {
                "status": status.value,
                "fee_paid": fee_paid,
                "updated": result.updated,
                "skipped": result.skipped,
                "promoted": result.promoted,
                "passed_out": result.passed_out,
            },
        )
        logger.info(
            f"Bulk status {status.value} on semester {semester_id}: "
            f"{result.updated} updated, {result.skipped} skipped"
        )
        return result

    # ==================== AUTO ASSIGNMENT ====================

    async def auto_assign(
        self,
        semester_id: str,
        criteria: Optional[AutoAssignCriteria] = None,
        actor: Optional[User] = None,
    ) -> AutoAssignResult:
        """
        Seat every eligible ACTIVE student of the semester's course, as one batch

        Eligible students are not already in this semester, are not ONGOING
        elsewhere, and (above semester 1) have COMPLETED the previous semester.
        """
        criteria = criteria or AutoAssignCriteria()

        async with self.uow.transaction():
            semester = await self.uow.semesters.get(semester_id)
            if semester is None:
                raise SemesterNotFoundError(semester_id)

            previous_semester = None
            if semester.number > 1:
                previous_semester = await self.uow.semesters.find_by_number(semester.course_id, semester.number - 1)

            candidates = await self.uow.students.list_by_course(
                semester.course_id,
                session_id=criteria.session_id,
                status=StudentStatus.ACTIVE,
            )

            start = datetime.utcnow()
            end = default_end_date(start)
            rows: List[StudentSemester] = []

            for student in candidates:
                history = await self.uow.student_semesters.list_for_student(student.id)

                if criteria.min_semester_number is not None:
                    completed = sum(1 for r in history if r.status in _COMPLETED_STATES)
                    if completed < criteria.min_semester_number:
                        continue

                if any(r.semester_id == semester.id for r in history):
                    continue

                if await cascades.find_conflicting_ongoing(self.uow, student.id, semester.id) is not None:
                    continue

                if semester.number > 1:
                    if previous_semester is None:
                        continue
                    if not any(
                        r.semester_id == previous_semester.id and r.status == StudentSemesterStatus.COMPLETED
                        for r in history
                    ):
                        continue

                rows.append(cascades.new_ongoing_semester(student.id, semester.id, start_date=start, end_date=end))

            if rows:
                await self.uow.student_semesters.add_many(rows)

        result = AutoAssignResult(semester=semester, considered=len(candidates), assigned=rows)

        await self.audit.record(
            actor_id(actor),
            AuditAction.AUTO_ASSIGN_STUDENTS_TO_SEMESTER,
            "Semester",
            semester_id,
            {
                "semester_number": semester.number,
                "criteria": {
                    "session_id": criteria.session_id,
                    "min_semester_number": criteria.min_semester_number,
                },
                "considered": result.considered,
                "assigned": len(rows),
                "student_ids": [str(r.student_id) for r in rows],
            },
        )
        logger.log_lifecycle_event(
            AuditAction.AUTO_ASSIGN_STUDENTS_TO_SEMESTER, "Semester", semester_id,
            assigned=len(rows), considered=result.considered,
        )
        return result

    # ==================== PROMOTION ====================

    async def promote(self, current_semester_id: str, actor: Optional[User] = None) -> PromotionResult:
        """
        Move every COMPLETED student of a semester into the next one, as one batch

        Students already present in the next semester (for example through the
        completion cascade) or ONGOING elsewhere are skipped, so repeated calls
        are safe. Source rows of promoted students become PROMOTED.

        Raises:
            SemesterNotFoundError: the semester or its successor does not exist
        """
        async with self.uow.transaction():
            current = await self.uow.semesters.get(current_semester_id)
            if current is None:
                raise SemesterNotFoundError(current_semester_id)

            next_semester = await self.uow.semesters.find_by_number(current.course_id, current.number + 1)
            if next_semester is None:
                raise NotFoundError("Semester", f"{current.course_id}#{current.number + 1}")

            completed = await self.uow.student_semesters.list_for_semester(
                current.id, StudentSemesterStatus.COMPLETED
            )
            already_in_next = {
                r.student_id for r in await self.uow.student_semesters.list_for_semester(next_semester.id)
            }

            start = datetime.utcnow()
            end = default_end_date(start)
            new_rows: List[StudentSemester] = []
            sources: List[StudentSemester] = []
            skipped: List[str] = []

            for row in completed:
                if row.student_id in already_in_next:
                    skipped.append(str(row.student_id))
                    continue
                if await self.uow.students.get(row.student_id) is None:
                    skipped.append(str(row.student_id))
                    continue
                if await cascades.find_conflicting_ongoing(self.uow, row.student_id, next_semester.id) is not None:
                    skipped.append(str(row.student_id))
                    continue
                new_rows.append(
                    cascades.new_ongoing_semester(row.student_id, next_semester.id, start_date=start, end_date=end)
                )
                sources.append(row)

            if new_rows:
                await self.uow.student_semesters.add_many(new_rows)
                for row in sources:
                    row.status = StudentSemesterStatus.PROMOTED
                    row.updated_at = start

        result = PromotionResult(
            current_semester=current,
            next_semester=next_semester,
            promoted=new_rows,
            skipped_student_ids=skipped,
        )

        await self.audit.record(
            actor_id(actor),
            AuditAction.PROMOTE_STUDENTS_TO_NEXT_SEMESTER,
            "Semester",
            current_semester_id,
            {
                "from_semester_number": current.number,
                "to_semester_id": str(next_semester.id),
                "to_semester_number": next_semester.number,
                "promoted": len(new_rows),
                "skipped": len(skipped),
            },
        )
        logger.log_lifecycle_event(
            AuditAction.PROMOTE_STUDENTS_TO_NEXT_SEMESTER, "Semester", current_semester_id,
            promoted=len(new_rows), skipped=len(skipped),
        )
        return result
