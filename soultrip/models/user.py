"""
User model. A user is either a participant (books tours), an organizer
(creates tours) or an admin.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, CheckConstraint

from soultrip.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    avatar_url = Column(String(1000), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.PARTICIPANT.value)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('participant', 'organizer', 'admin')", name="check_user_role"),
    )

    @property
    def can_manage_tours(self) -> bool:
        return self.role in (UserRole.ORGANIZER.value, UserRole.ADMIN.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
