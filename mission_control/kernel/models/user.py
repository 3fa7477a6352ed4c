"""
User model: identity plus running reward counters.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mission_control.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from mission_control.kernel.models.progress import UserCompetency, UserMission


class UserRole(str, Enum):
    """User roles in the system."""
    CADET = "cadet"
    ARCHITECT = "architect"
    OFFICER = "officer"


class User(Base, TimestampMixin):
    """
    Platform user.

    ``experience`` and ``mana`` are running totals incremented on each completion.
    The completion history is authoritative; see ProgressionService.reconcile.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(String(50), default=UserRole.CADET, nullable=False)

    experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mana: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_rank: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    missions: Mapped[List["UserMission"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
    competencies: Mapped[List["UserCompetency"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
