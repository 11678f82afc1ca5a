from fastapi import APIRouter, Depends, HTTPException, status

from yardmaster.api import deps
from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.reports import EligibilityReport, VehicleEligibility
from yardmaster.services.eligibility import EligibilityFilter
from yardmaster.services.snapshot import DomainSnapshot

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


@router.get("", response_model=EligibilityReport)
async def eligibility_report(
    snapshot: DomainSnapshot = Depends(deps.get_snapshot),
    policy: PlanningPolicy = Depends(deps.get_policy),
):
    """
    Eligible and ineligible vehicles with reasons, plus cleaning, maintenance
    and certificate watch lists.
    """
    return EligibilityFilter(policy).build_report(snapshot)


@router.get("/{vehicle_id}", response_model=VehicleEligibility)
async def vehicle_eligibility(
    vehicle_id: str,
    snapshot: DomainSnapshot = Depends(deps.get_snapshot),
    policy: PlanningPolicy = Depends(deps.get_policy),
):
    if snapshot.vehicle(vehicle_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Vehicle {vehicle_id} not found in vehicle master",
        )
    return EligibilityFilter(policy).describe(vehicle_id, snapshot)
