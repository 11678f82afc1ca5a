from datetime import date
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from yardmaster.schemas.fleet import MovementRecord


class ProposalKind(str, Enum):
    MAINTENANCE = "maintenance"
    LIGHT_CLEAN = "light_clean"
    DEEP_CLEAN = "deep_clean"
    A_SERVICE_CHECK = "a_service_check"
    B_SERVICE_CHECK = "b_service_check"
    ENTRANCE_SWAP_IN = "entrance_swap_in"
    ENTRANCE_SWAP_OUT = "entrance_swap_out"
    NIGHT_RETURN = "entrance_night_return"


class ValidationResult(BaseModel):
    """Outcome of validating one movement record, never raised."""
    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    suggestions: Dict[str, List[str]] = Field(default_factory=dict)
    normalized: Optional[MovementRecord] = None


class WorkOrderRef(BaseModel):
    """Reference to a work order to close, by id or by vehicle (oldest open)."""
    work_order_id: Optional[str] = None
    vehicle_id: Optional[str] = None


class SlotRef(BaseModel):
    date: str
    start_time: str
    end_time: str


class ProposalBase(BaseModel):
    vehicle_id: str
    movement: MovementRecord
    validation: ValidationResult = Field(default_factory=ValidationResult)
    energy_kwh: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self.validation.valid


class MaintenanceProposal(ProposalBase):
    kind: Literal[ProposalKind.MAINTENANCE] = ProposalKind.MAINTENANCE
    work_order: WorkOrderRef


class LightCleanProposal(ProposalBase):
    kind: Literal[ProposalKind.LIGHT_CLEAN] = ProposalKind.LIGHT_CLEAN
    slots: List[SlotRef]


class DeepCleanProposal(ProposalBase):
    kind: Literal[ProposalKind.DEEP_CLEAN] = ProposalKind.DEEP_CLEAN
    slots: List[SlotRef]


class AServiceCheckProposal(ProposalBase):
    kind: Literal[ProposalKind.A_SERVICE_CHECK] = ProposalKind.A_SERVICE_CHECK
    check_date: date


class BServiceCheckProposal(ProposalBase):
    kind: Literal[ProposalKind.B_SERVICE_CHECK] = ProposalKind.B_SERVICE_CHECK
    check_date: date


class EntranceSwapInProposal(ProposalBase):
    kind: Literal[ProposalKind.ENTRANCE_SWAP_IN] = ProposalKind.ENTRANCE_SWAP_IN


class EntranceSwapOutProposal(ProposalBase):
    kind: Literal[ProposalKind.ENTRANCE_SWAP_OUT] = ProposalKind.ENTRANCE_SWAP_OUT


class NightReturnProposal(ProposalBase):
    kind: Literal[ProposalKind.NIGHT_RETURN] = ProposalKind.NIGHT_RETURN


Proposal = Annotated[
    Union[
        MaintenanceProposal,
        LightCleanProposal,
        DeepCleanProposal,
        AServiceCheckProposal,
        BServiceCheckProposal,
        EntranceSwapInProposal,
        EntranceSwapOutProposal,
        NightReturnProposal,
    ],
    Field(discriminator="kind"),
]
