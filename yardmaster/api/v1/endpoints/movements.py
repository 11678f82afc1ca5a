from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from yardmaster.api import deps
from yardmaster.schemas.fleet import MovementRecord
from yardmaster.schemas.proposals import ValidationResult
from yardmaster.services.snapshot import DomainSnapshot
from yardmaster.services.validator import MovementValidator

router = APIRouter(prefix="/movements", tags=["movements"])


class MovementValidationRequest(BaseModel):
    movement: MovementRecord
    allowed_locations: Optional[List[str]] = Field(
        None,
        description="Location vocabulary to check against, the movement log when omitted",
    )


@router.post("/validate", response_model=ValidationResult)
async def validate_movement(
    request: MovementValidationRequest,
    snapshot: DomainSnapshot = Depends(deps.get_snapshot),
):
    """
    Validate a movement record before it is written to the log.
    """
    known = request.allowed_locations if request.allowed_locations is not None else snapshot.known_locations
    return MovementValidator(known).validate(request.movement)


@router.get("/locations", response_model=List[str])
async def known_locations(snapshot: DomainSnapshot = Depends(deps.get_snapshot)):
    """Every location seen in the movement log, normalized."""
    return snapshot.known_locations
