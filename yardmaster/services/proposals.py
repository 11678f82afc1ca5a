import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Type

from yardmaster.schemas.fleet import MovementRecord
from yardmaster.schemas.proposals import (
    AServiceCheckProposal, BServiceCheckProposal, DeepCleanProposal, EntranceSwapInProposal,
    EntranceSwapOutProposal, LightCleanProposal, MaintenanceProposal, NightReturnProposal,
    ProposalBase, ProposalKind,
)
from yardmaster.services.geometry import GeometryResolver
from yardmaster.services.locations import normalize_location
from yardmaster.services.schema_map import format_sheet_datetime
from yardmaster.services.validator import MovementValidator

logger = logging.getLogger(__name__)

PROPOSAL_MODELS: Dict[ProposalKind, Type[ProposalBase]] = {
    ProposalKind.MAINTENANCE: MaintenanceProposal,
    ProposalKind.LIGHT_CLEAN: LightCleanProposal,
    ProposalKind.DEEP_CLEAN: DeepCleanProposal,
    ProposalKind.A_SERVICE_CHECK: AServiceCheckProposal,
    ProposalKind.B_SERVICE_CHECK: BServiceCheckProposal,
    ProposalKind.ENTRANCE_SWAP_IN: EntranceSwapInProposal,
    ProposalKind.ENTRANCE_SWAP_OUT: EntranceSwapOutProposal,
    ProposalKind.NIGHT_RETURN: NightReturnProposal,
}


class ProposalBuilder:
    """Turns (vehicle, source, destination, action) into a validated proposal."""

    def __init__(self, resolver: GeometryResolver, validator: MovementValidator,
                 clock: Callable[[], datetime] = datetime.now):
        self.resolver = resolver
        self.validator = validator
        self.clock = clock

    def build(self, kind: ProposalKind, vehicle_id: str, source: str, destination: str,
              action: str, **payload: Any) -> ProposalBase:
        """
        Build one proposal of the given kind.

        The movement starts now (minute resolution, as stored in the log
        table) and ends after the topology duration for the pair. The
        validation outcome is attached, never raised.

        Args:
            kind: Proposal kind
            vehicle_id: Vehicle to move
            source: Current location
            destination: Target location
            action: Action tag written to the movement log
            **payload: Kind specific fields (work_order, slots, check_date)

        Returns:
            The proposal model for ``kind``
        """
        start = self.clock().replace(second=0, microsecond=0)
        cost = self.resolver.resolve(source, destination)
        end = start + timedelta(minutes=cost.duration_minutes)
        movement = MovementRecord(
            vehicle_id=vehicle_id.strip(),
            source=normalize_location(source),
            destination=normalize_location(destination),
            start_time=format_sheet_datetime(start),
            end_time=format_sheet_datetime(end),
            action=action,
        )
        validation = self.validator.validate(movement)
        if not validation.valid:
            logger.warning(
                f"{kind.value} proposal for {vehicle_id} is invalid: {'; '.join(validation.errors)}"
            )
        model = PROPOSAL_MODELS[kind]
        return model(
            vehicle_id=movement.vehicle_id,
            movement=movement,
            validation=validation,
            energy_kwh=cost.energy_kwh,
            **payload,
        )
