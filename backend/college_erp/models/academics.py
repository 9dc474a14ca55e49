from sqlalchemy import (
    Column, String, Integer, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint, CheckConstraint
)
from datetime import datetime
import enum

from college_erp.core.database import Base
from college_erp.core.types import GUID, generate_uuid


class SubjectType(str, enum.Enum):
    """Subject categories"""
    MJC = "MJC"  # Major core
    MIC = "MIC"  # Minor core
    MDC = "MDC"  # Multidisciplinary
    SEC = "SEC"  # Skill enhancement
    VAC = "VAC"  # Value added


# A student may hold at most one subject of each of these per semester
EXCLUSIVE_SUBJECT_TYPES = frozenset({SubjectType.MJC, SubjectType.MIC, SubjectType.MDC})


class Course(Base):
    """A degree programme with a numbered semester curriculum"""
    __tablename__ = "courses"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    duration_years = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Course {self.code}>"


class AcademicSession(Base):
    """An intake batch, e.g. 2024-2027"""
    __tablename__ = "academic_sessions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(50), unique=True, nullable=False)
    start_year = Column(Integer, nullable=False)
    end_year = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AcademicSession {self.name}>"


class Semester(Base):
    """Numbered stage (1..N) of a course. Immutable once created."""
    __tablename__ = "semesters"
    __table_args__ = (
        UniqueConstraint("course_id", "number", name="uq_semesters_course_number"),
        CheckConstraint("number >= 1", name="ck_semesters_number_positive"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Semester {self.number} of {self.course_id}>"


class Subject(Base):
    """A course offering inside one semester"""
    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("semester_id", "code", name="uq_subjects_semester_code"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    code = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(SQLEnum(SubjectType), nullable=False)
    credit = Column(Integer, nullable=False, default=4)

    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_exclusive(self) -> bool:
        return self.type in EXCLUSIVE_SUBJECT_TYPES

    def __repr__(self):
        return f"<Subject {self.code} ({self.type})>"
