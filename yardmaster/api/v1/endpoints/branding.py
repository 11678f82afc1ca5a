from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from yardmaster.api import deps
from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.approval import BrandingAccrual
from yardmaster.schemas.reports import BrandingPriority
from yardmaster.services.branding import compute_daily_accrual
from yardmaster.services.ranking import branding_priority
from yardmaster.services.snapshot import DomainSnapshot, SnapshotIncompleteError

router = APIRouter(prefix="/branding", tags=["branding"])


@router.get("/accrual", response_model=List[BrandingAccrual])
async def daily_accrual(
    day: Optional[date] = Query(None, description="Day to account for, today when omitted"),
    snapshot: DomainSnapshot = Depends(deps.get_snapshot),
    policy: PlanningPolicy = Depends(deps.get_policy),
):
    """
    Exposure hours earned at the entrance on ``day``.
    """
    try:
        snapshot.require("logs")
    except SnapshotIncompleteError as e:
        raise deps.planning_error(e)
    return compute_daily_accrual(snapshot.movements, day or snapshot.today, policy.entrance)


@router.get("/priority", response_model=List[BrandingPriority])
async def campaign_priority(
    limit: int = Query(10, ge=1, le=100),
    snapshot: DomainSnapshot = Depends(deps.get_snapshot),
):
    """Campaigns ranked by remaining hours per day left."""
    return branding_priority(snapshot, limit=limit)
