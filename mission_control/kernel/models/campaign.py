"""
Campaign content: campaigns, missions, the dependency graph, competencies and ranks.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mission_control.engines.progression.payloads import ConfirmationType, MissionType
from mission_control.kernel.models.base import Base, TimestampMixin, generate_uuid


class Campaign(Base, TimestampMixin):
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    missions: Mapped[List["Mission"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
    )
    competencies: Mapped[List["Competency"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
    )


class Competency(Base, TimestampMixin):
    __tablename__ = "competencies"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    campaign: Mapped["Campaign"] = relationship(back_populates="competencies")


class Mission(Base, TimestampMixin):
    """
    One mission node. ``payload`` is stored as loose JSON and normalized by the
    engine when loaded, so a broken row degrades to the type's default payload.
    """

    __tablename__ = "missions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mission_type: Mapped[MissionType] = mapped_column(String(50), default=MissionType.CUSTOM, nullable=False)
    payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    confirmation_type: Mapped[ConfirmationType] = mapped_column(
        String(50),
        default=ConfirmationType.AUTO,
        nullable=False,
    )
    experience_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mana_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_rank: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    position_x: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    position_y: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    campaign: Mapped["Campaign"] = relationship(back_populates="missions")
    competencies: Mapped[List["MissionCompetency"]] = relationship(
        back_populates="mission",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class MissionCompetency(Base):
    """Competency points granted by a mission."""

    __tablename__ = "mission_competencies"
    __table_args__ = (UniqueConstraint("mission_id", "competency_id", name="uq_mission_competency"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    mission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competency_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("competencies.id", ondelete="CASCADE"),
        nullable=False,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    mission: Mapped["Mission"] = relationship(back_populates="competencies")


class MissionDependency(Base, TimestampMixin):
    """Edge source -> target: source must be COMPLETED before target is reachable."""

    __tablename__ = "mission_dependencies"
    __table_args__ = (
        UniqueConstraint("source_mission_id", "target_mission_id", name="uq_mission_dependency"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    source_mission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_mission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("missions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class Rank(Base, TimestampMixin):
    """
    Rank threshold. Rows with ``campaign_id`` NULL are global ranks, used when a
    campaign defines none of its own.
    """

    __tablename__ = "ranks"
    __table_args__ = (UniqueConstraint("campaign_id", "level", name="uq_rank_level"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    campaign_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    min_experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_missions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # {competency_id: min points}
    required_competencies: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    rewards: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
