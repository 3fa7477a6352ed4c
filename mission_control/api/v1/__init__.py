"""
API v1 routes.
"""

from fastapi import APIRouter

from mission_control.api.v1 import campaigns, progression, test_mode

router = APIRouter()

router.include_router(progression.router, tags=["Progression"])
router.include_router(campaigns.router, tags=["Campaigns"])
router.include_router(test_mode.router, tags=["Test Mode"])
