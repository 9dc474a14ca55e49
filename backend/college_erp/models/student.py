from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint, Index, text
)
from datetime import datetime
import enum

from college_erp.core.database import Base
from college_erp.core.types import GUID, generate_uuid
from college_erp.models.academics import SubjectType


class StudentStatus(str, enum.Enum):
    """Student status"""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    PASSED_OUT = "PASSED_OUT"
    ALUMNI = "ALUMNI"
    DROPOUT = "DROPOUT"


class StudentSemesterStatus(str, enum.Enum):
    """Occupancy status of one student in one semester"""
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PROMOTED = "PROMOTED"


class Student(Base):
    """Student record. Never physically removed; `is_deleted` is the tombstone."""
    __tablename__ = "students"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    reg_no = Column(String(40), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)

    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False, index=True)
    session_id = Column(GUID, ForeignKey("academic_sessions.id"), nullable=True, index=True)

    status = Column(SQLEnum(StudentStatus), default=StudentStatus.ACTIVE, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Student {self.reg_no} ({self.status})>"


class StudentSemester(Base):
    """One student's occupancy of one semester"""
    __tablename__ = "student_semesters"
    __table_args__ = (
        UniqueConstraint("student_id", "semester_id", name="uq_student_semesters_student_semester"),
        # At most one ONGOING row per student
        Index(
            "uq_student_semesters_one_ongoing",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'ONGOING'"),
            sqlite_where=text("status = 'ONGOING'"),
        ),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)

    status = Column(SQLEnum(StudentSemesterStatus), default=StudentSemesterStatus.ONGOING, nullable=False)
    fee_paid = Column(Boolean, default=False, nullable=False)
    start_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StudentSemester {self.student_id}/{self.semester_id} ({self.status})>"


class StudentSubject(Base):
    """A student's pick of one subject for one semester"""
    __tablename__ = "student_subjects"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "semester_id",
            name="uq_student_subjects_student_subject_semester",
        ),
        # NULL for SEC/VAC, so only MJC/MIC/MDC are limited to one per semester
        UniqueConstraint(
            "student_id", "semester_id", "exclusive_type",
            name="uq_student_subjects_exclusive_type",
        ),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    subject_id = Column(GUID, ForeignKey("subjects.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)
    exclusive_type = Column(SQLEnum(SubjectType), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StudentSubject {self.student_id}/{self.subject_id}>"
