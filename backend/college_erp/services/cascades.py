"""
Follow-on state changes triggered by a committed status change.

- `enroll_confirmed_admission`: a CONFIRMED admission activates the student
  and seats them in semester 1 of the course.
- `advance_after_completion`: a COMPLETED semester opens the next semester
  or, after the last one, marks the student PASSED_OUT.

Each cascade runs in its own transaction and emits its own audit entry.
Both are idempotent: a row that already exists, including one inserted
concurrently by another request, is reported as skipped.

`ensure_no_other_ongoing` / `find_conflicting_ongoing` are the single
place the one-ongoing-semester-per-student rule is checked.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import inspect

from college_erp.core.exceptions import AlreadyEnrolledError, DuplicateRecordError, SemesterNotFoundError
from college_erp.core.types import generate_uuid
from college_erp.core.logging_config import logger
from college_erp.models import (
    Admission,
    Semester,
    StudentSemester,
    StudentSemesterStatus,
    StudentStatus,
    User,
)
from college_erp.repositories import UnitOfWork
from college_erp.services.audit import AuditAction, AuditSink


# Reasons a cascade did not create a row
SKIP_NO_CURRICULUM = "no_curriculum"
SKIP_ALREADY_ASSIGNED = "already_assigned"
SKIP_ONGOING_SEMESTER = "ongoing_semester"
SKIP_STUDENT_MISSING = "student_missing"


def actor_id(actor: Optional[User]) -> Optional[str]:
    """Id of the acting user, read from the identity key so a rolled-back session never reloads it"""
    if actor is None:
        return None
    identity = inspect(actor).identity
    if identity:
        return str(identity[0])
    return str(actor.id) if actor.id is not None else None


def new_ongoing_semester(
    student_id: str,
    semester_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> StudentSemester:
    """Build an ONGOING, unpaid StudentSemester"""
    now = datetime.utcnow()
    return StudentSemester(
        id=generate_uuid(),
        student_id=student_id,
        semester_id=semester_id,
        status=StudentSemesterStatus.ONGOING,
        fee_paid=False,
        start_date=start_date or now,
        end_date=end_date,
        created_at=now,
        updated_at=now,
    )


async def find_conflicting_ongoing(
    uow: UnitOfWork,
    student_id: str,
    semester_id: Optional[str] = None,
) -> Optional[StudentSemester]:
    """The student's ONGOING row for a semester other than `semester_id`, if any"""
    ongoing = await uow.student_semesters.find_ongoing(student_id)
    if ongoing is not None and ongoing.semester_id != semester_id:
        return ongoing
    return None


async def ensure_no_other_ongoing(uow: UnitOfWork, student_id: str, semester_id: Optional[str] = None) -> None:
    """Raise AlreadyEnrolledError if the student is ONGOING in another semester"""
    ongoing = await find_conflicting_ongoing(uow, student_id, semester_id)
    if ongoing is not None:
        raise AlreadyEnrolledError(
            "Student already has an ongoing semester",
            details={
                "student_id": str(student_id),
                "ongoing_semester_id": str(ongoing.semester_id),
            },
        )


# ============================================
# Enrollment cascade (admission CONFIRMED)
# ============================================

@dataclass
class EnrollmentOutcome:
    student_activated: bool = False
    student_semester: Optional[StudentSemester] = None
    skipped_reason: Optional[str] = None

    @property
    def auto_assigned(self) -> bool:
        return self.student_semester is not None


async def _activate(uow: UnitOfWork, student_id: str) -> Optional[bool]:
    """Set the student ACTIVE; None when the student is missing"""
    student = await uow.students.get(student_id)
    if student is None:
        return None
    if student.status == StudentStatus.ACTIVE:
        return False
    student.status = StudentStatus.ACTIVE
    student.updated_at = datetime.utcnow()
    return True


async def _seat_first_semester(uow: UnitOfWork, student_id: str, course_id: str, outcome: EnrollmentOutcome) -> None:
    first_semester = await uow.semesters.find_by_number(course_id, 1)
    if first_semester is None:
        outcome.skipped_reason = SKIP_NO_CURRICULUM
        return

    if await uow.student_semesters.get_by_student_semester(student_id, first_semester.id) is not None:
        outcome.skipped_reason = SKIP_ALREADY_ASSIGNED
        return

    if await find_conflicting_ongoing(uow, student_id, first_semester.id) is not None:
        outcome.skipped_reason = SKIP_ONGOING_SEMESTER
        return

    outcome.student_semester = await uow.student_semesters.add(
        new_ongoing_semester(student_id, first_semester.id)
    )


async def enroll_confirmed_admission(
    uow: UnitOfWork,
    audit: AuditSink,
    admission: Admission,
    actor: Optional[User] = None,
) -> EnrollmentOutcome:
    """Activate the student and seat them in semester 1 of the admitted course

    Activation commits on its own so a lost race on the seat insert cannot undo it.
    """
    admission_id = str(admission.id)
    student_id, course_id = str(admission.student_id), str(admission.course_id)
    outcome = EnrollmentOutcome()

    async with uow.transaction():
        activated = await _activate(uow, student_id)
    if activated is None:
        outcome.skipped_reason = SKIP_STUDENT_MISSING
        return outcome
    outcome.student_activated = activated

    try:
        async with uow.transaction():
            await _seat_first_semester(uow, student_id, course_id, outcome)
    except DuplicateRecordError:
        # A concurrent confirmation won the insert
        outcome.student_semester = None
        outcome.skipped_reason = SKIP_ALREADY_ASSIGNED

    if outcome.auto_assigned:
        row = outcome.student_semester
        await audit.record(
            actor_id(actor),
            AuditAction.SEMESTER_AUTO_ASSIGNMENT,
            "StudentSemester",
            row.id,
            {
                "student_id": student_id,
                "semester_id": str(row.semester_id),
                "semester_number": 1,
                "admission_id": admission_id,
                "auto_assigned": True,
            },
        )
        logger.log_lifecycle_event(
            AuditAction.SEMESTER_AUTO_ASSIGNMENT, "StudentSemester", row.id,
            student_id=student_id, admission_id=admission_id,
        )
    else:
        logger.info(
            f"Enrollment cascade for admission {admission_id} skipped seat assignment: {outcome.skipped_reason}"
        )
    return outcome


# ============================================
# Promotion cascade (semester COMPLETED)
# ============================================

@dataclass
class ProgressionOutcome:
    next_semester: Optional[Semester] = None
    student_semester: Optional[StudentSemester] = None
    passed_out: bool = False
    skipped_reason: Optional[str] = None

    @property
    def promoted(self) -> bool:
        return self.student_semester is not None


async def _advance(uow: UnitOfWork, student_id: str, semester_id: str) -> ProgressionOutcome:
    semester = await uow.semesters.get(semester_id)
    if semester is None:
        raise SemesterNotFoundError(semester_id)

    next_semester = await uow.semesters.find_by_number(semester.course_id, semester.number + 1)
    if next_semester is None:
        student = await uow.students.get(student_id)
        if student is None:
            return ProgressionOutcome(skipped_reason=SKIP_STUDENT_MISSING)
        if student.status != StudentStatus.PASSED_OUT:
            student.status = StudentStatus.PASSED_OUT
            student.updated_at = datetime.utcnow()
        return ProgressionOutcome(passed_out=True)

    outcome = ProgressionOutcome(next_semester=next_semester)
    if await uow.student_semesters.get_by_student_semester(student_id, next_semester.id) is not None:
        outcome.skipped_reason = SKIP_ALREADY_ASSIGNED
    elif await find_conflicting_ongoing(uow, student_id, next_semester.id) is not None:
        outcome.skipped_reason = SKIP_ONGOING_SEMESTER
    else:
        outcome.student_semester = await uow.student_semesters.add(
            new_ongoing_semester(student_id, next_semester.id)
        )
    return outcome


async def advance_after_completion(
    uow: UnitOfWork,
    audit: AuditSink,
    student_id: str,
    semester_id: str,
    actor: Optional[User] = None,
) -> ProgressionOutcome:
    """Open the next semester for the student, or mark them PASSED_OUT after the last one"""
    try:
        async with uow.transaction():
            outcome = await _advance(uow, student_id, semester_id)
    except DuplicateRecordError:
        outcome = ProgressionOutcome(skipped_reason=SKIP_ALREADY_ASSIGNED)

    if outcome.promoted:
        await audit.record(
            actor_id(actor),
            AuditAction.SEMESTER_AUTO_PROMOTION,
            "StudentSemester",
            outcome.student_semester.id,
            {
                "student_id": str(student_id),
                "from_semester_id": str(semester_id),
                "to_semester_id": str(outcome.next_semester.id),
                "to_semester_number": outcome.next_semester.number,
            },
        )
    elif outcome.passed_out:
        await audit.record(
            actor_id(actor),
            AuditAction.STUDENT_COURSE_COMPLETION,
            "Student",
            student_id,
            {"final_semester_id": str(semester_id), "status": StudentStatus.PASSED_OUT.value},
        )
    return outcome
