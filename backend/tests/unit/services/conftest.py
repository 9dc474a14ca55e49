"""
Service tests run on the in-memory UnitOfWork; no database is created.
"""
import pytest

from college_erp.models import UserRole

from mocks.memory_factories import build_course, build_student, build_user
from mocks.memory_uow import InMemoryUnitOfWork


@pytest.fixture
def uow() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork()


@pytest.fixture
def course(uow):
    """A two-semester course"""
    return build_course(uow, semester_count=2)


@pytest.fixture
def student(uow, course):
    return build_student(uow, course)


@pytest.fixture
def admin():
    return build_user(UserRole.ADMIN)


@pytest.fixture
def hod():
    return build_user(UserRole.HOD)
