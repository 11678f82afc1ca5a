"""
Planning entry points.

The scheduler loads one snapshot per pass, wires the geometry resolver,
validator and proposal builder for it and runs the planners. A full pass
runs every planner branch against the same snapshot and folds the result
into an approval payload.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.approval import ApprovalPayload, BrandingAccrual, ServiceCheckRef
from yardmaster.schemas.fleet import CleaningTier, MovementRecord, ServiceCheckType, SlotIdentity
from yardmaster.schemas.proposals import (
    AServiceCheckProposal, BServiceCheckProposal, DeepCleanProposal, LightCleanProposal,
    MaintenanceProposal, ProposalBase,
)
from yardmaster.schemas.reports import PlanningPass
from yardmaster.services.branding import compute_daily_accrual
from yardmaster.services.cleaning import CleaningPlanner
from yardmaster.services.clients.sheets import StoreClientError
from yardmaster.services.eligibility import EligibilityFilter
from yardmaster.services.entrance import EntrancePlanner
from yardmaster.services.geometry import GeometryResolver
from yardmaster.services.maintenance import MaintenancePlanner
from yardmaster.services.proposals import ProposalBuilder
from yardmaster.services.ranking import PriorityPolicy
from yardmaster.services.schema_map import SchemaError, format_sheet_datetime
from yardmaster.services.snapshot import DomainSnapshot, SnapshotIncompleteError, SnapshotLoader
from yardmaster.services.validator import MovementValidator

logger = logging.getLogger(__name__)

# Errors that degrade a single planner branch to an empty result
BRANCH_ERRORS = (StoreClientError, SchemaError, SnapshotIncompleteError)


@dataclass
class PlanningContext:
    """Planners wired for one snapshot."""
    snapshot: DomainSnapshot
    builder: ProposalBuilder
    maintenance: MaintenancePlanner
    cleaning: CleaningPlanner
    entrance: EntrancePlanner


def stagger_start_times(logs: List[MovementRecord], base: datetime, gap_seconds: int) -> List[MovementRecord]:
    """
    Re-time log rows so their start times are ``gap_seconds`` apart.

    Each row keeps its duration in whole minutes. Rows with unreadable
    times get a zero duration.
    """
    staggered = []
    for i, record in enumerate(logs):
        start, end = record.starts_at(base.date()), record.ends_at(base.date())
        minutes = 0
        if start is not None and end is not None:
            minutes = max(0, round((end - start).total_seconds() / 60))
        new_start = base + timedelta(seconds=i * gap_seconds)
        staggered.append(record.model_copy(update={
            "start_time": format_sheet_datetime(new_start),
            "end_time": format_sheet_datetime(new_start + timedelta(minutes=minutes)),
        }))
    return staggered


def build_approval_payload(proposals: Iterable[ProposalBase],
                           accrual: Optional[List[BrandingAccrual]] = None) -> ApprovalPayload:
    """Collect the side effects of every valid proposal; invalid ones are left out."""
    payload = ApprovalPayload(branding_accumulations=list(accrual or []))
    for proposal in proposals:
        if not proposal.is_valid:
            continue
        payload.logs.append(proposal.validation.normalized or proposal.movement)
        if isinstance(proposal, MaintenanceProposal):
            payload.work_orders_to_close.append(proposal.work_order)
        elif isinstance(proposal, (LightCleanProposal, DeepCleanProposal)):
            payload.cleaning_slots.extend(proposal.slots)
        elif isinstance(proposal, AServiceCheckProposal):
            payload.service_checks_to_update.append(
                ServiceCheckRef(vehicle_id=proposal.vehicle_id, check_type=ServiceCheckType.A))
        elif isinstance(proposal, BServiceCheckProposal):
            payload.service_checks_to_update.append(
                ServiceCheckRef(vehicle_id=proposal.vehicle_id, check_type=ServiceCheckType.B))
    return payload


class Scheduler:
    def __init__(self, loader: SnapshotLoader, policy: Optional[PlanningPolicy] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.loader = loader
        self.policy = policy or PlanningPolicy()
        self.clock = clock
        self.eligibility = EligibilityFilter(self.policy)
        # Raises ValueError at startup for an unknown configured policy
        self.default_priority = PriorityPolicy(self.policy.default_priority_policy)

    def context(self, snapshot: DomainSnapshot) -> PlanningContext:
        resolver = GeometryResolver(snapshot.edges)
        builder = ProposalBuilder(resolver, MovementValidator(snapshot.known_locations), self.clock)
        return PlanningContext(
            snapshot=snapshot,
            builder=builder,
            maintenance=MaintenancePlanner(builder, self.policy),
            cleaning=CleaningPlanner(builder, self.policy),
            entrance=EntrancePlanner(builder, resolver, self.eligibility, self.policy),
        )

    async def _context(self, snapshot: Optional[DomainSnapshot]) -> PlanningContext:
        if snapshot is None:
            snapshot = await self.loader.load()
        return self.context(snapshot)

    async def propose_maintenance_movements(self, snapshot: Optional[DomainSnapshot] = None) -> List[ProposalBase]:
        ctx = await self._context(snapshot)
        return ctx.maintenance.plan_work_orders(ctx.snapshot)

    async def propose_cleaning_movements(self, kind: Union[CleaningTier, str],
                                         snapshot: Optional[DomainSnapshot] = None) -> List[ProposalBase]:
        ctx = await self._context(snapshot)
        return ctx.cleaning.plan(ctx.snapshot, CleaningTier(kind), self.clock().date())

    async def propose_service_check_movements(self, snapshot: Optional[DomainSnapshot] = None) -> List[ProposalBase]:
        ctx = await self._context(snapshot)
        return ctx.maintenance.plan_service_checks(ctx.snapshot, self.clock().date())

    async def propose_entrance_plan(self, priority: Union[PriorityPolicy, str, None] = None,
                                    snapshot: Optional[DomainSnapshot] = None) -> List[ProposalBase]:
        ctx = await self._context(snapshot)
        return ctx.entrance.plan(ctx.snapshot, self.clock(), priority or self.default_priority)

    async def _branch(self, name: str, plan: Callable[[], List[ProposalBase]],
                      failed: Dict[str, str]) -> List[ProposalBase]:
        return self._safe(plan, name, failed)

    async def run_full_planning_pass(self, priority: Union[PriorityPolicy, str, None] = None,
                                     force_refresh: bool = False) -> PlanningPass:
        """
        Run every planner against one snapshot and build the approval payload.

        Args:
            priority: Ranking policy for the entrance branch
            force_refresh: Bypass the table cache for this pass

        Returns:
            PlanningPass with proposals per branch, the invalid proposals,
            the day's branding accrual and the staggered approval payload
        """
        snapshot = await self.loader.load(force_refresh=force_refresh)
        ctx = self.context(snapshot)
        now = self.clock()
        today = now.date()
        failed: Dict[str, str] = {}
        reserved: Set[SlotIdentity] = set()

        def plan_cleaning() -> List[ProposalBase]:
            # Light first, deep cleaning takes what is left of the day
            light = self._safe(lambda: ctx.cleaning.plan(snapshot, CleaningTier.LIGHT, today, reserved),
                               "light_clean", failed)
            deep = self._safe(lambda: ctx.cleaning.plan(snapshot, CleaningTier.DEEP, today, reserved),
                              "deep_clean", failed)
            return light + deep

        names = ("maintenance", "cleaning", "service_checks", "entrance")
        results = await asyncio.gather(
            self._branch("maintenance", lambda: ctx.maintenance.plan_work_orders(snapshot), failed),
            self._branch("cleaning", plan_cleaning, failed),
            self._branch("service_checks", lambda: ctx.maintenance.plan_service_checks(snapshot, today), failed),
            self._branch("entrance", lambda: ctx.entrance.plan(snapshot, now, priority or self.default_priority), failed),
        )
        proposals = dict(zip(names, results))
        everything = [p for branch in results for p in branch]
        invalid = [p for p in everything if not p.is_valid]

        accrual: List[BrandingAccrual] = []
        if "logs" not in snapshot.failed_tables:
            accrual = compute_daily_accrual(snapshot.movements, today, self.policy.entrance)

        payload = build_approval_payload(everything, accrual)
        payload.logs = stagger_start_times(payload.logs, now, self.policy.log_stagger_seconds)

        logger.info(
            "Planning pass: %s; %d invalid, %d accrual entries, %d failed branch(es)",
            ", ".join(f"{name}={len(proposals[name])}" for name in names),
            len(invalid), len(accrual), len(failed),
        )
        return PlanningPass(
            generated_at=now,
            proposals=proposals,
            invalid=invalid,
            accrual=accrual,
            payload=payload,
            failed_branches=failed,
        )

    @staticmethod
    def _safe(plan: Callable[[], List[ProposalBase]], name: str, failed: Dict[str, str]) -> List[ProposalBase]:
        try:
            return plan()
        except BRANCH_ERRORS as e:
            logger.warning(f"Planning branch {name} skipped: {str(e)}")
            failed[name] = str(e)
            return []
