from typing import Dict, List

from pydantic import BaseModel, Field

from yardmaster.schemas.fleet import MovementRecord, ServiceCheckType
from yardmaster.schemas.proposals import SlotRef, WorkOrderRef


class ServiceCheckRef(BaseModel):
    vehicle_id: str
    check_type: ServiceCheckType


class BrandingAccrual(BaseModel):
    vehicle_id: str
    add_hours: float


class ApprovalPayload(BaseModel):
    """Everything an approved planning pass asks the commit pipeline to apply."""
    logs: List[MovementRecord] = Field(default_factory=list)
    cleaning_slots: List[SlotRef] = Field(default_factory=list)
    work_orders_to_close: List[WorkOrderRef] = Field(default_factory=list)
    service_checks_to_update: List[ServiceCheckRef] = Field(default_factory=list)
    branding_accumulations: List[BrandingAccrual] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.logs or self.cleaning_slots or self.work_orders_to_close
            or self.service_checks_to_update or self.branding_accumulations
        )


class CommitResult(BaseModel):
    """Per-category counts of the mutations that actually landed."""
    logs_appended: int = 0
    slots_occupied: int = 0
    work_orders_closed: int = 0
    service_checks_updated: int = 0
    branding_updated: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)
    skipped: List[str] = Field(default_factory=list)
