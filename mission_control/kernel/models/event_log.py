"""
Append-only progression event log.

Unlocks, completions, reviews and rank changes are written here in the same
transaction as the state change they describe.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mission_control.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the progression log."""

    # Mission events
    MISSION_UNLOCKED = "mission.unlocked"
    MISSION_STARTED = "mission.started"
    SUBMISSION_PENDING = "mission.submission_pending"
    MISSION_COMPLETED = "mission.completed"
    SUBMISSION_REJECTED = "mission.submission_rejected"
    QUIZ_ATTEMPT_FAILED = "mission.quiz_attempt_failed"

    # Cadet events
    RANK_UP = "cadet.rank_up"
    TOTALS_REPAIRED = "cadet.totals_repaired"

    # Campaign events
    DEPENDENCY_ADDED = "campaign.dependency_added"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressionEvent(Base):
    """
    Immutable event row. No updates or deletes.
    """

    __tablename__ = "progression_events"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    event_type: Mapped[EventType] = mapped_column(String(100), nullable=False, index=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    # Actor; NULL for system events
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True, index=True)
    campaign_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True, index=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # set client-side with microseconds; activity feeds order on it
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_progression_events_entity", "entity_type", "entity_id"),
        Index("ix_progression_events_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ProgressionEvent {self.event_type} {self.entity_type}:{self.entity_id}>"
