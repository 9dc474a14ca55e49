"""
Unit Tests for SubjectSelectionService
"""
import pytest

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
from college_erp.models import StudentSemesterStatus, SubjectType, UserRole
from college_erp.services.audit import AuditAction

from mocks.memory_factories import build_course, build_seat, build_student, build_user


@pytest.fixture
def enrolled(uow, student, course):
    """`student` ONGOING in semester 2 after completing semester 1"""
    build_seat(uow, student, course.semesters[0], StudentSemesterStatus.COMPLETED)
    build_seat(uow, student, course.semesters[1])
    return student


def _picks(uow, student):
    return uow.tables["student_subjects"].where(student_id=student.id)


class TestAssign:
    async def test_second_exclusive_subject_of_a_type_conflicts(self, selection_service, uow, audit, enrolled, course):
        subjects = course.subjects[2]
        semester_id = course.semester_ids[1]

        first = await selection_service.assign(enrolled.id, subjects["mjc"].id, semester_id)

        with pytest.raises(ExclusiveTypeConflictError) as exc_info:
            await selection_service.assign(enrolled.id, subjects["mjc2"].id, semester_id)

        assert exc_info.value.details["subject_type"] == "MJC"
        assert first.exclusive_type == SubjectType.MJC
        assert [p.subject_id for p in _picks(uow, enrolled)] == [subjects["mjc"].id]
        assert audit.actions() == [AuditAction.CREATE_STUDENT_SUBJECT]

    async def test_non_exclusive_types_stack(self, selection_service, uow, enrolled, course):
        subjects = course.subjects[2]

        for key in ("sec", "sec2", "vac", "mjc", "mic", "mdc"):
            await selection_service.assign(enrolled.id, subjects[key].id, course.semester_ids[1])

        picks = _picks(uow, enrolled)
        assert len(picks) == 6
        assert {p.exclusive_type for p in picks} == {None, SubjectType.MJC, SubjectType.MIC, SubjectType.MDC}

    async def test_same_subject_twice(self, selection_service, enrolled, course):
        vac = course.subjects[2]["vac"]
        await selection_service.assign(enrolled.id, vac.id, course.semester_ids[1])

        with pytest.raises(AlreadyAssignedError):
            await selection_service.assign(enrolled.id, vac.id, course.semester_ids[1])

    async def test_requires_ongoing_enrollment(self, selection_service, enrolled, course):
        with pytest.raises(NotEnrolledError):
            await selection_service.assign(enrolled.id, course.subjects[1]["mjc"].id, course.semester_ids[0])

    async def test_subject_from_another_semester(self, selection_service, enrolled, course):
        with pytest.raises(ConstraintViolationError):
            await selection_service.assign(enrolled.id, course.subjects[1]["mjc"].id, course.semester_ids[1])

    async def test_semester_from_another_course(self, selection_service, uow, enrolled):
        other = build_course(uow, semester_count=1)

        with pytest.raises(ConstraintViolationError):
            await selection_service.assign(enrolled.id, other.subjects[1]["mjc"].id, other.semester_ids[0])

    async def test_reference_checks_come_first(self, selection_service, enrolled, course):
        with pytest.raises(StudentNotFoundError):
            await selection_service.assign("missing", "missing", "missing")
        with pytest.raises(SubjectNotFoundError):
            await selection_service.assign(enrolled.id, "missing", course.semester_ids[1])
        with pytest.raises(SemesterNotFoundError):
            await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, "missing")

    async def test_student_may_only_pick_for_self(self, selection_service, uow, enrolled, course):
        someone_else = build_user(UserRole.STUDENT, student_id=build_student(uow, course).id)
        owner = build_user(UserRole.STUDENT, student_id=enrolled.id)

        with pytest.raises(AuthorizationError):
            await selection_service.assign(
                enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1], actor=someone_else
            )

        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1], actor=owner)
        assert row.student_id == enrolled.id


class TestBulkAssign:
    async def test_two_exclusive_subjects_of_one_type_fail_whole_batch(self, selection_service, uow, enrolled, course):
        subjects = course.subjects[2]

        with pytest.raises(ExclusiveTypeConflictError):
            await selection_service.bulk_assign(
                enrolled.id,
                course.semester_ids[1],
                [subjects["mjc"].id, subjects["sec"].id, subjects["mjc2"].id],
            )

        assert _picks(uow, enrolled) == []

    async def test_creates_every_pick(self, selection_service, uow, audit, enrolled, course):
        subjects = course.subjects[2]
        ids = [subjects[k].id for k in ("mjc", "mic", "mdc", "sec", "sec2", "vac")]

        rows = await selection_service.bulk_assign(enrolled.id, course.semester_ids[1], ids)

        assert [r.subject_id for r in rows] == ids
        assert len(_picks(uow, enrolled)) == 6
        assert audit.of(AuditAction.BULK_ASSIGN_SUBJECTS)[0]["payload"]["count"] == 6

    async def test_conflict_with_existing_pick(self, selection_service, uow, enrolled, course):
        subjects = course.subjects[2]
        await selection_service.assign(enrolled.id, subjects["mjc"].id, course.semester_ids[1])

        with pytest.raises(ExclusiveTypeConflictError):
            await selection_service.bulk_assign(
                enrolled.id, course.semester_ids[1], [subjects["vac"].id, subjects["mic"].id, subjects["mjc2"].id]
            )

        assert len(_picks(uow, enrolled)) == 1

    async def test_already_assigned_subject_fails_batch(self, selection_service, uow, enrolled, course):
        subjects = course.subjects[2]
        await selection_service.assign(enrolled.id, subjects["sec"].id, course.semester_ids[1])

        with pytest.raises(AlreadyAssignedError):
            await selection_service.bulk_assign(
                enrolled.id, course.semester_ids[1], [subjects["vac"].id, subjects["sec"].id]
            )

        assert len(_picks(uow, enrolled)) == 1

    @pytest.mark.parametrize("subject_ids", [[], ["a", "a"]])
    async def test_empty_or_repeated_ids(self, selection_service, enrolled, course, subject_ids):
        with pytest.raises(ConstraintViolationError):
            await selection_service.bulk_assign(enrolled.id, course.semester_ids[1], subject_ids)

    async def test_foreign_subject(self, selection_service, enrolled, course):
        with pytest.raises(ConstraintViolationError):
            await selection_service.bulk_assign(
                enrolled.id, course.semester_ids[1], [course.subjects[2]["vac"].id, course.subjects[1]["vac"].id]
            )

    async def test_unknown_subject(self, selection_service, enrolled, course):
        with pytest.raises(SubjectNotFoundError):
            await selection_service.bulk_assign(enrolled.id, course.semester_ids[1], [course.subjects[2]["vac"].id, "missing"])

    async def test_requires_ongoing_enrollment(self, selection_service, student, course):
        with pytest.raises(NotEnrolledError):
            await selection_service.bulk_assign(student.id, course.semester_ids[0], [course.subjects[1]["vac"].id])


class TestRemove:
    async def test_staff_can_remove_after_semester_closes(self, selection_service, uow, audit, enrolled, course, hod):
        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1])
        uow.tables["student_semesters"].where(student_id=enrolled.id, semester_id=course.semester_ids[1])[0].status = (
            StudentSemesterStatus.COMPLETED
        )

        await selection_service.remove(row.id, actor=hod)

        assert _picks(uow, enrolled) == []
        assert audit.of(AuditAction.DELETE_STUDENT_SUBJECT)[0]["payload"]["subject_id"] == course.subjects[2]["mjc"].id

    async def test_student_removes_own_pick_while_ongoing(self, selection_service, uow, enrolled, course):
        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1])

        await selection_service.remove(row.id, actor=build_user(UserRole.STUDENT, student_id=enrolled.id))

        assert _picks(uow, enrolled) == []

    async def test_student_cannot_remove_once_semester_closed(self, selection_service, uow, enrolled, course):
        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1])
        uow.tables["student_semesters"].where(student_id=enrolled.id, semester_id=course.semester_ids[1])[0].status = (
            StudentSemesterStatus.COMPLETED
        )

        with pytest.raises(NotEnrolledError):
            await selection_service.remove(row.id, actor=build_user(UserRole.STUDENT, student_id=enrolled.id))
        assert len(_picks(uow, enrolled)) == 1

    async def test_other_student_cannot_remove(self, selection_service, uow, enrolled, course):
        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1])

        with pytest.raises(AuthorizationError):
            await selection_service.remove(row.id, actor=build_user(UserRole.STUDENT, student_id="someone-else"))

    async def test_accountant_cannot_remove(self, selection_service, enrolled, course):
        row = await selection_service.assign(enrolled.id, course.subjects[2]["mjc"].id, course.semester_ids[1])

        with pytest.raises(AuthorizationError):
            await selection_service.remove(row.id, actor=build_user(UserRole.ACCOUNTANT))

    async def test_missing_pick(self, selection_service, hod):
        with pytest.raises(StudentSubjectNotFoundError):
            await selection_service.remove("missing", actor=hod)


class TestListForSemester:
    async def test_returns_picks_with_subjects(self, selection_service, enrolled, course):
        subjects = course.subjects[2]
        await selection_service.bulk_assign(enrolled.id, course.semester_ids[1], [subjects["mjc"].id, subjects["vac"].id])

        picks = await selection_service.list_for_semester(enrolled.id, course.semester_ids[1])

        assert {subject.code for _, subject in picks} == {subjects["mjc"].code, subjects["vac"].code}
        assert all(row.subject_id == subject.id for row, subject in picks)

    async def test_student_sees_only_own(self, selection_service, enrolled, course):
        with pytest.raises(AuthorizationError):
            await selection_service.list_for_semester(
                enrolled.id, course.semester_ids[1], actor=build_user(UserRole.STUDENT, student_id="someone-else")
            )

    async def test_unknown_semester(self, selection_service, enrolled):
        with pytest.raises(SemesterNotFoundError):
            await selection_service.list_for_semester(enrolled.id, "missing")


class TestListSelections:
    async def test_filters_by_subject_type(self, selection_service, enrolled, course):
        subjects = course.subjects[2]
        await selection_service.bulk_assign(
            enrolled.id, course.semester_ids[1], [subjects["mjc"].id, subjects["sec"].id, subjects["vac"].id]
        )

        picks = await selection_service.list_selections(student_id=enrolled.id, subject_type=SubjectType.SEC)

        assert [subject.id for _, subject in picks] == [subjects["sec"].id]

    async def test_subject_across_students(self, selection_service, uow, enrolled, course):
        classmate = build_student(uow, course)
        build_seat(uow, classmate, course.semesters[1])
        mjc = course.subjects[2]["mjc"]
        await selection_service.assign(enrolled.id, mjc.id, course.semester_ids[1])
        await selection_service.assign(classmate.id, mjc.id, course.semester_ids[1])

        picks = await selection_service.list_selections(subject_id=mjc.id)

        assert {row.student_id for row, _ in picks} == {enrolled.id, classmate.id}

    async def test_student_gets_only_own_picks(self, selection_service, uow, enrolled, course):
        classmate = build_student(uow, course)
        build_seat(uow, classmate, course.semesters[1])
        mjc = course.subjects[2]["mjc"]
        await selection_service.assign(enrolled.id, mjc.id, course.semester_ids[1])
        await selection_service.assign(classmate.id, mjc.id, course.semester_ids[1])

        picks = await selection_service.list_selections(
            student_id=classmate.id, actor=build_user(UserRole.STUDENT, student_id=enrolled.id)
        )

        assert [row.student_id for row, _ in picks] == [enrolled.id]
