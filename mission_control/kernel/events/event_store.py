"""
Event Store service for the append-only progression log.

State changes are logged here inside the same transaction that makes them.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from mission_control.kernel.models.event_log import EventType, ProgressionEvent


class EventStore:
    """
    Service for writing and reading progression events.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.MISSION_COMPLETED,
            entity_type="mission",
            entity_id=mission.id,
            user_id=cadet.id,
            campaign_id=mission.campaign_id,
            payload={"experience": 100},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        campaign_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ProgressionEvent:
        """
        Add an event to the session. The caller commits.

        Args:
            event_type: The type of event
            entity_type: "mission", "user" or "campaign"
            entity_id: The ID of the entity
            user_id: The user the event concerns (None for system events)
            campaign_id: Campaign scope, when there is one
            payload: Additional event data; UUIDs, datetimes and enums are stringified
        """
        event = ProgressionEvent(
            event_type=EventType(event_type).value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            campaign_id=campaign_id,
            payload=self._serialize_payload(payload) if payload else {},
        )
        self.session.add(event)
        return event

    async def get_user_activity(
        self,
        user_id: uuid.UUID,
        campaign_id: Optional[uuid.UUID] = None,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[ProgressionEvent]:
        """Events concerning a user, newest first."""
        query = select(ProgressionEvent).where(ProgressionEvent.user_id == user_id)
        if campaign_id:
            query = query.where(ProgressionEvent.campaign_id == campaign_id)
        if event_types:
            query = query.where(ProgressionEvent.event_type.in_([e.value for e in event_types]))
        query = query.order_by(desc(ProgressionEvent.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        return {key: self._serialize_value(value) for key, value in payload.items()}

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, dict):
            return {str(k): self._serialize_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self._serialize_value(v) for v in value]
        return value
