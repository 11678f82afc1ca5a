from .fleet import (
    Vehicle, VehicleStatus, WorkOrder, WorkOrderStatus, Certificate, CertificateStatus,
    MileageRecord, CleaningStatus, CleaningTier, CleaningSlot, TopologyEdge, MovementRecord,
    BrandingCampaign, ServiceCheck, ServiceCheckType,
)
from .store import Table
from .proposals import (
    Proposal, ProposalKind, ValidationResult, WorkOrderRef, SlotRef,
    MaintenanceProposal, LightCleanProposal, DeepCleanProposal, AServiceCheckProposal,
    BServiceCheckProposal, EntranceSwapInProposal, EntranceSwapOutProposal, NightReturnProposal,
)
from .approval import ApprovalPayload, BrandingAccrual, CommitResult, ServiceCheckRef
from .reports import (
    EligibilityResult, VehicleEligibility, EligibilityReport, BrandingPriority, FleetStats, PlanningPass,
)

__all__ = [
    'Vehicle', 'VehicleStatus', 'WorkOrder', 'WorkOrderStatus', 'Certificate', 'CertificateStatus',
    'MileageRecord', 'CleaningStatus', 'CleaningTier', 'CleaningSlot', 'TopologyEdge', 'MovementRecord',
    'BrandingCampaign', 'ServiceCheck', 'ServiceCheckType',
    'Table',
    'Proposal', 'ProposalKind', 'ValidationResult', 'WorkOrderRef', 'SlotRef',
    'MaintenanceProposal', 'LightCleanProposal', 'DeepCleanProposal', 'AServiceCheckProposal',
    'BServiceCheckProposal', 'EntranceSwapInProposal', 'EntranceSwapOutProposal', 'NightReturnProposal',
    'ApprovalPayload', 'BrandingAccrual', 'CommitResult', 'ServiceCheckRef',
    'EligibilityResult', 'VehicleEligibility', 'EligibilityReport', 'BrandingPriority', 'FleetStats',
    'PlanningPass',
]
