from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey
from datetime import datetime
import enum

from college_erp.core.database import Base
from college_erp.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "ADMIN"
    HOD = "HOD"
    ACCOUNTANT = "ACCOUNTANT"
    STUDENT = "STUDENT"


# Roles allowed to drive the admission/semester/subject lifecycle
STAFF_ROLES = (UserRole.ADMIN, UserRole.HOD)


class User(Base):
    """Authenticated principal. Tokens are issued elsewhere; this row is looked up by token subject."""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True)

    # Set for STUDENT users only
    student_id = Column(GUID, ForeignKey("students.id"), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
