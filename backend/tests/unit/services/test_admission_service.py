"""
Unit Tests for AdmissionService

Covers the admission state machine, the history it writes and the
enrollment cascade that follows a confirmation.
"""
import pytest

from college_erp.core.exceptions import (
    AdmissionNotFoundError,
    AlreadyEnrolledError,
    ConstraintViolationError,
    CourseNotFoundError,
    InvalidStatusError,
    InvalidTransitionError,
    StudentNotFoundError,
)
from college_erp.models import (
    ADMISSION_TRANSITIONS,
    AdmissionStatus,
    StudentSemesterStatus,
    StudentStatus,
)
from college_erp.services import cascades
from college_erp.services.audit import AuditAction

from mocks.memory_factories import build_admission, build_course, build_seat, build_student


async def _confirm(service, admission_id, actor=None):
    await service.transition(admission_id, AdmissionStatus.PAYMENT_PENDING, actor=actor)
    return await service.transition(admission_id, AdmissionStatus.CONFIRMED, actor=actor)


class TestCreateAdmission:
    async def test_creates_initiated_admission(self, admission_service, audit, student, course, admin):
        admission = await admission_service.create_admission(student.id, course.id, actor=admin)

        assert admission.status == AdmissionStatus.INITIATED
        assert audit.actions() == [AuditAction.CREATE_ADMISSION]
        assert audit.entries[0]["user_id"] == admin.id

    async def test_unknown_student(self, admission_service, course):
        with pytest.raises(StudentNotFoundError):
            await admission_service.create_admission("missing", course.id)

    async def test_unknown_course(self, admission_service, student):
        with pytest.raises(CourseNotFoundError):
            await admission_service.create_admission(student.id, "missing")

    async def test_second_admission_for_same_course_rejected(self, admission_service, student, course):
        await admission_service.create_admission(student.id, course.id)

        with pytest.raises(AlreadyEnrolledError):
            await admission_service.create_admission(student.id, course.id)

    async def test_deleted_student_is_not_found(self, admission_service, student, course):
        student.is_deleted = True

        with pytest.raises(StudentNotFoundError):
            await admission_service.create_admission(student.id, course.id)


class TestTransition:
    async def test_initiated_cannot_jump_to_confirmed(self, admission_service, uow, student, course, audit):
        """Confirmation must pass through PAYMENT_PENDING"""
        admission = build_admission(uow, student, course)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await admission_service.transition(admission.id, AdmissionStatus.CONFIRMED)

        assert exc_info.value.details["allowed"] == ["CANCELLED", "PAYMENT_PENDING"]
        assert admission.status == AdmissionStatus.INITIATED
        assert uow.tables["admission_history"].rows == {}
        assert uow.tables["student_semesters"].rows == {}
        assert audit.entries == []

    @pytest.mark.parametrize("terminal", [AdmissionStatus.CONFIRMED, AdmissionStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(AdmissionStatus))
    async def test_terminal_states_have_no_exits(self, admission_service, uow, student, course, terminal, target):
        admission = build_admission(uow, student, course, status=terminal)

        with pytest.raises(InvalidTransitionError):
            await admission_service.transition(admission.id, target)

    async def test_unknown_target_status_is_invalid_transition(self, admission_service, uow, student, course):
        admission = build_admission(uow, student, course)

        with pytest.raises(InvalidTransitionError):
            await admission_service.transition(admission.id, "APPROVED")

    async def test_missing_admission(self, admission_service):
        with pytest.raises(AdmissionNotFoundError):
            await admission_service.transition("missing", AdmissionStatus.CANCELLED)

    async def test_missing_admission_checked_before_notes(self, admission_service):
        with pytest.raises(AdmissionNotFoundError):
            await admission_service.transition("missing", AdmissionStatus.CANCELLED, notes="x" * 501)

    async def test_notes_longer_than_limit_rejected(self, admission_service, uow, student, course):
        admission = build_admission(uow, student, course)

        with pytest.raises(ConstraintViolationError):
            await admission_service.transition(admission.id, AdmissionStatus.CANCELLED, notes="x" * 501)

    async def test_each_transition_writes_one_history_row(self, admission_service, uow, student, course, admin):
        admission = build_admission(uow, student, course)

        first = await admission_service.transition(
            admission.id, AdmissionStatus.PAYMENT_PENDING, notes="Fee invoice sent", actor=admin
        )
        second = await admission_service.transition(admission.id, AdmissionStatus.CANCELLED, actor=admin)

        _, history = await admission_service.get_admission(admission.id)
        by_id = {h.id: h for h in history}
        assert set(by_id) == {first.history_id, second.history_id}
        entry = by_id[first.history_id]
        assert entry.from_status == AdmissionStatus.INITIATED
        assert entry.to_status == AdmissionStatus.PAYMENT_PENDING
        assert entry.notes == "Fee invoice sent"
        assert entry.changed_by_id == admin.id

    async def test_history_is_a_path_through_the_state_graph(self, admission_service, uow, student, course):
        admission = build_admission(uow, student, course)
        await _confirm(admission_service, admission.id)

        _, history = await admission_service.get_admission(admission.id)
        for entry in history:
            assert entry.to_status in ADMISSION_TRANSITIONS[entry.from_status]

    async def test_cancel_from_payment_pending(self, admission_service, uow, student, course, audit):
        admission = build_admission(uow, student, course, status=AdmissionStatus.PAYMENT_PENDING)

        result = await admission_service.transition(admission.id, "CANCELLED")

        assert result.to_status == AdmissionStatus.CANCELLED
        assert result.enrollment is None
        assert audit.actions() == [AuditAction.UPDATE_ADMISSION_STATUS]
        assert audit.entries[0]["payload"]["from_status"] == "PAYMENT_PENDING"

    async def test_stale_read_loses_compare_and_set(self, admission_service, uow, student, course, monkeypatch):
        """A concurrent writer changed the status between read and write"""
        admission = build_admission(uow, student, course)

        async def lost_race(stored, expected, new_status):
            stored.status = AdmissionStatus.CANCELLED
            return False

        monkeypatch.setattr(uow.admissions, "update_status_if", lost_race)

        with pytest.raises(InvalidTransitionError):
            await admission_service.transition(admission.id, AdmissionStatus.PAYMENT_PENDING)
        assert uow.tables["admission_history"].rows == {}


class TestConfirmationCascade:
    async def test_confirmation_activates_student_and_seats_semester_one(
        self, admission_service, uow, course, audit
    ):
        student = build_student(uow, course, status=StudentStatus.SUSPENDED)
        admission = build_admission(uow, student, course)

        result = await _confirm(admission_service, admission.id)

        assert result.cascade_error is None
        assert result.enrollment.student_activated is True
        assert result.enrollment.auto_assigned is True
        assert student.status == StudentStatus.ACTIVE

        rows = await uow.student_semesters.list_for_student(student.id)
        assert len(rows) == 1
        assert rows[0].semester_id == course.semester_ids[0]
        assert rows[0].status == StudentSemesterStatus.ONGOING
        assert rows[0].fee_paid is False
        assert audit.of(AuditAction.SEMESTER_AUTO_ASSIGNMENT)[0]["payload"]["admission_id"] == admission.id

    async def test_confirmation_without_curriculum_still_commits(self, admission_service, uow, student, course):
        uow.tables["semesters"].rows.clear()
        admission = build_admission(uow, student, course, status=AdmissionStatus.PAYMENT_PENDING)

        result = await admission_service.transition(admission.id, AdmissionStatus.CONFIRMED)

        assert admission.status == AdmissionStatus.CONFIRMED
        assert result.enrollment.skipped_reason == cascades.SKIP_NO_CURRICULUM
        assert uow.tables["student_semesters"].rows == {}

    async def test_cascade_skips_student_with_other_ongoing_semester(self, admission_service, uow, course):
        other_course = build_course(uow, semester_count=1)
        student = build_student(uow, other_course)
        build_seat(uow, student, other_course.semesters[0])
        admission = build_admission(uow, student, course, status=AdmissionStatus.PAYMENT_PENDING)

        result = await admission_service.transition(admission.id, AdmissionStatus.CONFIRMED)

        assert result.enrollment.skipped_reason == cascades.SKIP_ONGOING_SEMESTER
        assert len(await uow.student_semesters.list_for_student(student.id)) == 1

    async def test_cascade_failure_keeps_confirmation(self, admission_service, uow, student, course, monkeypatch):
        admission = build_admission(uow, student, course, status=AdmissionStatus.PAYMENT_PENDING)

        async def broken_seat(uow, student_id, course_id, outcome):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(cascades, "_seat_first_semester", broken_seat)

        result = await admission_service.transition(admission.id, AdmissionStatus.CONFIRMED)

        assert result.to_status == AdmissionStatus.CONFIRMED
        assert "store unavailable" in result.cascade_error
        assert result.admission.status == AdmissionStatus.CONFIRMED
        assert len(uow.tables["admission_history"].rows) == 1

    async def test_cascade_twice_creates_one_seat(self, uow, student, course, audit):
        admission = build_admission(uow, student, course, status=AdmissionStatus.CONFIRMED)

        first = await cascades.enroll_confirmed_admission(uow, audit, admission)
        second = await cascades.enroll_confirmed_admission(uow, audit, admission)

        assert first.auto_assigned is True
        assert second.auto_assigned is False
        assert second.skipped_reason == cascades.SKIP_ALREADY_ASSIGNED
        assert len(await uow.student_semesters.list_for_student(student.id)) == 1
        assert len(audit.of(AuditAction.SEMESTER_AUTO_ASSIGNMENT)) == 1

    async def test_concurrent_insert_is_treated_as_already_assigned(
        self, uow, student, course, audit, monkeypatch
    ):
        """The other request committed after our existence checks ran"""
        student.status = StudentStatus.SUSPENDED
        admission = build_admission(uow, student, course, status=AdmissionStatus.CONFIRMED)
        build_seat(uow, student, course.semesters[0])

        async def not_yet_visible(*args, **kwargs):
            return None

        monkeypatch.setattr(uow.student_semesters, "get_by_student_semester", not_yet_visible)
        monkeypatch.setattr(uow.student_semesters, "find_ongoing", not_yet_visible)

        outcome = await cascades.enroll_confirmed_admission(uow, audit, admission)

        assert outcome.skipped_reason == cascades.SKIP_ALREADY_ASSIGNED
        assert len(uow.tables["student_semesters"].rows) == 1
        assert uow.rollbacks == 1
        assert outcome.student_activated is True
        assert student.status == StudentStatus.ACTIVE


class TestQueries:
    async def test_list_filters_by_status(self, admission_service, uow, course):
        first = build_admission(uow, build_student(uow, course), course)
        build_admission(uow, build_student(uow, course), course, status=AdmissionStatus.CANCELLED)

        initiated = await admission_service.list_admissions(status="INITIATED")

        assert [a.id for a in initiated] == [first.id]

    async def test_list_rejects_unknown_status(self, admission_service):
        with pytest.raises(InvalidStatusError):
            await admission_service.list_admissions(status="PENDING")

    async def test_get_missing(self, admission_service):
        with pytest.raises(AdmissionNotFoundError):
            await admission_service.get_admission("missing")
