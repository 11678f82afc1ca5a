from fastapi import APIRouter, Depends

from yardmaster.api import deps
from yardmaster.schemas.reports import FleetStats
from yardmaster.services.snapshot import DomainSnapshot
from yardmaster.services.stats import fleet_stats

router = APIRouter(tags=["stats"])


@router.get("/stats", response_model=FleetStats)
async def get_stats(snapshot: DomainSnapshot = Depends(deps.get_snapshot)):
    """
    Dashboard counters: vehicles, pending work orders, expired certificates
    and running campaigns.
    """
    return fleet_stats(snapshot)
