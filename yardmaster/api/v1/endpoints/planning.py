import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from yardmaster.api import deps
from yardmaster.schemas.fleet import CleaningTier
from yardmaster.schemas.proposals import Proposal
from yardmaster.schemas.reports import PlanningPass
from yardmaster.services.clients.sheets import StoreClientError
from yardmaster.services.ranking import PriorityPolicy
from yardmaster.services.scheduler import Scheduler
from yardmaster.services.snapshot import SnapshotIncompleteError

router = APIRouter(prefix="/planning", tags=["planning"])
logger = logging.getLogger(__name__)


@router.get("/maintenance", response_model=List[Proposal])
async def propose_maintenance(scheduler: Scheduler = Depends(deps.get_scheduler)):
    """
    Maintenance moves for every open work order, oldest first.
    """
    try:
        return await scheduler.propose_maintenance_movements()
    except (StoreClientError, SnapshotIncompleteError) as e:
        raise deps.planning_error(e)


@router.get("/cleaning/{kind}", response_model=List[Proposal])
async def propose_cleaning(kind: CleaningTier, scheduler: Scheduler = Depends(deps.get_scheduler)):
    """
    Cleaning moves with allocated slots for today, most stale vehicles first.
    """
    try:
        return await scheduler.propose_cleaning_movements(kind)
    except (StoreClientError, SnapshotIncompleteError) as e:
        raise deps.planning_error(e)


@router.get("/service-checks", response_model=List[Proposal])
async def propose_service_checks(scheduler: Scheduler = Depends(deps.get_scheduler)):
    try:
        return await scheduler.propose_service_check_movements()
    except (StoreClientError, SnapshotIncompleteError) as e:
        raise deps.planning_error(e)


@router.get("/entrance", response_model=List[Proposal])
async def propose_entrance(
    policy: Optional[PriorityPolicy] = Query(None, description="Ranking policy for day mode"),
    scheduler: Scheduler = Depends(deps.get_scheduler),
):
    """
    Entrance swaps by day, night returns to stabling by night.
    """
    try:
        return await scheduler.propose_entrance_plan(policy)
    except (StoreClientError, SnapshotIncompleteError) as e:
        raise deps.planning_error(e)


@router.post("/run", response_model=PlanningPass)
async def run_planning_pass(
    policy: Optional[PriorityPolicy] = Query(None, description="Ranking policy for day mode"),
    force_refresh: bool = Query(False, description="Bypass the table cache"),
    scheduler: Scheduler = Depends(deps.get_scheduler),
):
    """
    Run every planner against one snapshot.

    The returned payload holds the valid proposals only and can be posted
    unchanged to the approval endpoint.
    """
    try:
        result = await scheduler.run_full_planning_pass(policy, force_refresh=force_refresh)
    except StoreClientError as e:
        logger.error(f"Planning pass failed: {str(e)}")
        raise deps.planning_error(e)
    return result
