"""
Admission Service - admission workflow and its enrollment cascade

State machine:
    INITIATED       -> PAYMENT_PENDING | CANCELLED
    PAYMENT_PENDING -> CONFIRMED | CANCELLED
    CONFIRMED, CANCELLED are terminal

Every transition writes the new status and one AdmissionHistory row in a
single transaction. A CONFIRMED transition then runs the enrollment
cascade; a cascade failure is logged and reported on the result, and the
confirmation stays committed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple, Union

from college_erp.core.config import settings
from college_erp.core.exceptions import (
    AdmissionNotFoundError,
    AlreadyEnrolledError,
    ConstraintViolationError,
    CourseNotFoundError,
    InvalidStatusError,
    InvalidTransitionError,
    StudentNotFoundError,
)
from college_erp.core.logging_config import logger
from college_erp.core.types import generate_uuid
from college_erp.models import (
    ADMISSION_TRANSITIONS,
    Admission,
    AdmissionHistory,
    AdmissionStatus,
    User,
)
from college_erp.repositories import UnitOfWork
from college_erp.services import cascades
from college_erp.services.audit import AuditAction, AuditSink
from college_erp.services.cascades import EnrollmentOutcome, actor_id


@dataclass
class TransitionResult:
    admission: Admission
    from_status: AdmissionStatus
    to_status: AdmissionStatus
    history_id: str
    enrollment: Optional[EnrollmentOutcome] = None
    cascade_error: Optional[str] = None


def allowed_transitions(status: AdmissionStatus) -> List[str]:
    return sorted(s.value for s in ADMISSION_TRANSITIONS[status])


class AdmissionService:
    """Creates admissions and drives them through the admission state machine"""

    def __init__(self, uow: UnitOfWork, audit: AuditSink):
        self.uow = uow
        self.audit = audit

    async def create_admission(
        self,
        student_id: str,
        course_id: str,
        actor: Optional[User] = None,
    ) -> Admission:
        """
        Open an admission in INITIATED status

        Raises:
            StudentNotFoundError / CourseNotFoundError: unknown reference
            AlreadyEnrolledError: the student already has an admission for this course
        """
        async with self.uow.transaction():
            if await self.uow.students.get(student_id) is None:
                raise StudentNotFoundError(student_id)
            if await self.uow.courses.get(course_id) is None:
                raise CourseNotFoundError(course_id)

            if await self.uow.admissions.find_by_student_course(student_id, course_id) is not None:
                raise AlreadyEnrolledError(
                    "Admission already exists for this student and course",
                    details={"student_id": str(student_id), "course_id": str(course_id)},
                )

            now = datetime.utcnow()
            admission = await self.uow.admissions.add(Admission(
                id=generate_uuid(),
                student_id=student_id,
                course_id=course_id,
                status=AdmissionStatus.INITIATED,
                created_at=now,
                updated_at=now,
            ))

        await self.audit.record(
            actor_id(actor),
            AuditAction.CREATE_ADMISSION,
            "Admission",
            admission.id,
            {"student_id": str(student_id), "course_id": str(course_id)},
        )
        logger.log_lifecycle_event(AuditAction.CREATE_ADMISSION, "Admission", admission.id)
        return admission

    async def get_admission(self, admission_id: str) -> Tuple[Admission, List[AdmissionHistory]]:
        """Admission with its history, newest change first"""
        admission = await self.uow.admissions.get(admission_id)
        if admission is None:
            raise AdmissionNotFoundError(admission_id)
        history = await self.uow.admissions.list_history(admission_id)
        return admission, history

    async def list_admissions(
        self,
        status: Optional[Union[str, AdmissionStatus]] = None,
        course_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[Admission]:
        parsed = None
        if status is not None:
            try:
                parsed = AdmissionStatus(status)
            except ValueError:
                raise InvalidStatusError(status, [s.value for s in AdmissionStatus])
        return await self.uow.admissions.list(status=parsed, course_id=course_id, student_id=student_id)

    async def transition(
        self,
        admission_id: str,
        target_status: Union[str, AdmissionStatus],
        notes: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> TransitionResult:
        """
        Move an admission to `target_status`

        Args:
            admission_id: Admission to change
            target_status: Requested status
            notes: Free text stored on the history row
            actor: Authenticated user making the change

        Returns:
            TransitionResult, with `enrollment` set for CONFIRMED and
            `cascade_error` set if that cascade failed

        Raises:
            AdmissionNotFoundError: unknown admission
            InvalidTransitionError: target not reachable from the current status,
                including a concurrent writer changing it first
            ConstraintViolationError: notes longer than ADMISSION_NOTES_MAX_LENGTH
        """
        async with self.uow.transaction():
            admission = await self.uow.admissions.get(admission_id)
            if admission is None:
                raise AdmissionNotFoundError(admission_id)

            if notes is not None and len(notes) > settings.ADMISSION_NOTES_MAX_LENGTH:
                raise ConstraintViolationError(
                    f"Notes must be at most {settings.ADMISSION_NOTES_MAX_LENGTH} characters",
                    {"field": "notes"},
                )

            current = admission.status
            try:
                target = AdmissionStatus(target_status)
            except ValueError:
                raise InvalidTransitionError(current.value, target_status, allowed_transitions(current))

            if target not in ADMISSION_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value, allowed_transitions(current))

            # Compare-and-set: a concurrent transition leaves us with zero rows updated
            if not await self.uow.admissions.update_status_if(admission, current, target):
                raise InvalidTransitionError(current.value, target.value, allowed_transitions(current))

            history = await self.uow.admissions.add_history(AdmissionHistory(
                id=generate_uuid(),
                admission_id=admission.id,
                from_status=current,
                to_status=target,
                changed_by_id=actor_id(actor),
                notes=notes,
                changed_at=datetime.utcnow(),
            ))
            history_id = history.id

        result = TransitionResult(
            admission=admission,
            from_status=current,
            to_status=target,
            history_id=history_id,
        )

        await self.audit.record(
            actor_id(actor),
            AuditAction.UPDATE_ADMISSION_STATUS,
            "Admission",
            admission_id,
            {"from_status": current.value, "to_status": target.value, "notes": notes},
        )
        logger.log_lifecycle_event(
            AuditAction.UPDATE_ADMISSION_STATUS, "Admission", admission_id,
            from_status=current.value, to_status=target.value,
        )

        if target == AdmissionStatus.CONFIRMED:
            try:
                result.enrollment = await cascades.enroll_confirmed_admission(
                    self.uow, self.audit, admission, actor
                )
            except Exception as e:
                logger.log_error_with_context(e, context="enrollment cascade", admission_id=str(admission_id))
                result.cascade_error = f"{type(e).__name__}: {e}"
            # A rolled-back cascade step expires loaded rows; reload the committed admission
            result.admission = await self.uow.admissions.get(admission_id)

        return result
