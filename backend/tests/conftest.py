"""
College ERP - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test_college_erp.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['LOG_FILE'] = ''
os.environ['LOG_LEVEL'] = 'WARNING'

from college_erp.main import app
from college_erp.api.deps import get_audit_sink
from college_erp.core.database import Base, get_db
from college_erp.core.security import create_access_token
from college_erp.models import User, UserRole
from college_erp.repositories import SqlAlchemyUnitOfWork
from college_erp.services.admission_service import AdmissionService
from college_erp.services.audit import DatabaseAuditSink
from college_erp.services.curriculum_service import CurriculumService
from college_erp.services.semester_service import SemesterService
from college_erp.services.student_service import StudentService
from college_erp.services.subject_selection_service import SubjectSelectionService

from mocks.mock_audit import InMemoryAuditSink
import factories

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test_college_erp.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def audit() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def uow(db_session: AsyncSession) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db_session)


@pytest.fixture
def admission_service(uow, audit) -> AdmissionService:
    return AdmissionService(uow, audit)


@pytest.fixture
def semester_service(uow, audit) -> SemesterService:
    return SemesterService(uow, audit)


@pytest.fixture
def selection_service(uow, audit) -> SubjectSelectionService:
    return SubjectSelectionService(uow, audit)


@pytest.fixture
def student_service(uow, audit) -> StudentService:
    return StudentService(uow, audit)


@pytest.fixture
def curriculum_service(uow, audit) -> CurriculumService:
    return CurriculumService(uow, audit)


@pytest.fixture
async def course(db_session: AsyncSession):
    """A two-semester course"""
    return await factories.create_course(db_session, semester_count=2)


@pytest.fixture
async def student(db_session: AsyncSession, course):
    return await factories.create_student(db_session, course)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and audit overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = lambda: DatabaseAuditSink(session_factory=TestSessionLocal)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, role: UserRole, student_id=None) -> User:
    user = User(
        email=fake.unique.email(),
        full_name=fake.name(),
        role=role,
        is_active=True,
        student_id=student_id,
    )
    db_session.add(user)
    await db_session.commit()
    return user


def _headers(user: User) -> dict:
    token = create_access_token({'sub': str(user.id), 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, UserRole.ADMIN)


@pytest.fixture
async def hod_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, UserRole.HOD)


@pytest.fixture
async def accountant_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, UserRole.ACCOUNTANT)


@pytest.fixture
async def student_user(db_session: AsyncSession, student) -> User:
    """Login linked to the `student` fixture"""
    return await _create_user(db_session, UserRole.STUDENT, student_id=student.id)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest.fixture
def hod_headers(hod_user: User) -> dict:
    return _headers(hod_user)


@pytest.fixture
def accountant_headers(accountant_user: User) -> dict:
    return _headers(accountant_user)


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return _headers(student_user)
