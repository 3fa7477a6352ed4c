"""
Pydantic schemas for campaign editing endpoints.
"""

import uuid

from pydantic import BaseModel


class DependencyCreate(BaseModel):
    source_mission_id: uuid.UUID
    target_mission_id: uuid.UUID


class DependencyResponse(BaseModel):
    campaign_id: uuid.UUID
    source_mission_id: uuid.UUID
    target_mission_id: uuid.UUID
    created: bool
    total_dependencies: int
