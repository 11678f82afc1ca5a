from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from yardmaster.schemas.approval import ApprovalPayload, BrandingAccrual
from yardmaster.schemas.proposals import Proposal


class EligibilityResult(BaseModel):
    vehicle_id: str
    eligible: bool
    reasons: List[str] = Field(default_factory=list)


class VehicleEligibility(EligibilityResult):
    """Detailed per-vehicle row of the eligibility report."""
    status: str = ""
    last_service_type: str = ""
    last_service_date: Optional[date] = None
    days_since_service: Optional[int] = None
    cleaning_required: bool = False
    maintenance_due: bool = False
    certificate_issue: bool = False


class EligibilityReport(BaseModel):
    generated_on: date
    eligible: List[VehicleEligibility] = Field(default_factory=list)
    ineligible: List[VehicleEligibility] = Field(default_factory=list)
    cleaning_required: List[VehicleEligibility] = Field(default_factory=list)
    maintenance_due: List[VehicleEligibility] = Field(default_factory=list)
    certificate_issues: List[VehicleEligibility] = Field(default_factory=list)


class BrandingPriority(BaseModel):
    vehicle_id: str
    campaign_id: str = ""
    remaining_hours: float
    days_left: int
    priority: float


class FleetStats(BaseModel):
    total_vehicles: int = 0
    active_work_orders: int = 0
    expired_certificates: int = 0
    active_campaigns: int = 0


class PlanningPass(BaseModel):
    """Aggregated result of one full planning pass."""
    generated_at: datetime
    proposals: Dict[str, List[Proposal]] = Field(default_factory=dict)
    invalid: List[Proposal] = Field(default_factory=list)
    accrual: List[BrandingAccrual] = Field(default_factory=list)
    payload: ApprovalPayload = Field(default_factory=ApprovalPayload)
    failed_branches: Dict[str, str] = Field(default_factory=dict)
