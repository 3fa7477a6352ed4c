"""
Test-mode snapshots, one per (architect, campaign). Never joined with user_missions.
"""

import uuid
from typing import Any, Dict

from sqlalchemy import JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mission_control.kernel.models.base import Base, TimestampMixin, generate_uuid


class TestModeSession(Base, TimestampMixin):
    __tablename__ = "test_mode_sessions"
    __table_args__ = (UniqueConstraint("architect_id", "campaign_id", name="uq_test_mode_session"),)
    __test__ = False

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    architect_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
    )
    # SimulationState.model_dump(mode="json")
    snapshot: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
