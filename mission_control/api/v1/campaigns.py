"""
Campaign editing endpoints - health check and dependency edges.
"""

import uuid

from fastapi import APIRouter, Response, status

from mission_control.api.deps import ArchitectUser, DbSession
from mission_control.engines.progression.campaign_validator import CampaignHealthReport
from mission_control.schemas.campaign import DependencyCreate, DependencyResponse
from mission_control.services.progression_service import ProgressionService

router = APIRouter()


@router.post("/campaigns/{campaign_id}/validate", response_model=CampaignHealthReport)
async def validate_campaign(campaign_id: uuid.UUID, architect: ArchitectUser, db: DbSession):
    """Structural health report; never fails on broken graphs, reports them instead."""
    return await ProgressionService(db).validate_campaign(campaign_id)


@router.post("/campaigns/{campaign_id}/dependencies", response_model=DependencyResponse)
async def add_dependency(
    campaign_id: uuid.UUID,
    request: DependencyCreate,
    architect: ArchitectUser,
    db: DbSession,
    response: Response,
):
    """Add a prerequisite edge. Edges that would create a cycle are refused with 409."""
    created, total = await ProgressionService(db).add_dependency(
        architect, campaign_id, request.source_mission_id, request.target_mission_id,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return DependencyResponse(
        campaign_id=campaign_id,
        source_mission_id=request.source_mission_id,
        target_mission_id=request.target_mission_id,
        created=created,
        total_dependencies=total,
    )
