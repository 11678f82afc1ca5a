"""
Cleaning slot allocation.

Cleaning capacity is published as fixed-width slots (10 minutes by default).
A task of D minutes needs ceil(D / width) Available slots on the same date
whose start times follow each other without gaps. Allocation is first-fit.
"""
import logging
import math
from datetime import date
from typing import Iterable, List, Optional, Set, Union

from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.fleet import CleaningSlot, CleaningStatus, CleaningTier, SlotIdentity, vehicle_key
from yardmaster.schemas.proposals import ProposalBase, ProposalKind, SlotRef
from yardmaster.services.proposals import ProposalBuilder
from yardmaster.services.schema_map import parse_date
from yardmaster.services.snapshot import DomainSnapshot

logger = logging.getLogger(__name__)


def find_consecutive_slots(
    slots: Iterable[CleaningSlot],
    day: Union[date, str],
    needed_blocks: int,
    reserved: Optional[Set[SlotIdentity]] = None,
    slot_minutes: int = 10,
) -> List[CleaningSlot]:
    """
    First run of ``needed_blocks`` contiguous available slots on ``day``.

    Args:
        slots: Slot rows as read from the store
        day: Target date (date or any accepted date string)
        needed_blocks: Number of slots the task needs, at least one
        reserved: Identities of slots already handed out in this pass
        slot_minutes: Slot width, consecutive starts differ by exactly this

    Returns:
        The slots of the first fitting run in start order, or an empty list
        when the date has no such run
    """
    target = parse_date(day)
    if target is None:
        return []
    need = max(1, int(needed_blocks))
    reserved = reserved or set()
    day_slots = sorted(
        (s for s in slots if s.slot_date == target and s.start_minutes is not None),
        key=lambda s: s.start_minutes,
    )

    def usable(slot: CleaningSlot) -> bool:
        return slot.is_available and slot.identity not in reserved

    for i in range(len(day_slots) - need + 1):
        run = day_slots[i:i + need]
        if not all(usable(s) for s in run):
            continue
        if all(run[j].start_minutes == run[j - 1].start_minutes + slot_minutes for j in range(1, need)):
            return run
    return []


def blocks_for(duration_minutes: int, slot_minutes: int) -> int:
    return max(1, math.ceil(duration_minutes / slot_minutes))


class CleaningPlanner:
    """Proposes cleaning moves for vehicles whose cleaning is due."""

    def __init__(self, builder: ProposalBuilder, policy: Optional[PlanningPolicy] = None):
        self.builder = builder
        self.policy = policy or PlanningPolicy()

    def _tier_settings(self, tier: CleaningTier):
        p = self.policy
        if tier == CleaningTier.DEEP:
            return ProposalKind.DEEP_CLEAN, p.deep_clean_bay, p.deep_clean_minutes, p.deep_clean_stale_days, "Deep_Clean"
        return ProposalKind.LIGHT_CLEAN, p.light_clean_bay, p.light_clean_minutes, p.light_clean_stale_days, "Light_Clean"

    def candidates(self, snapshot: DomainSnapshot, tier: CleaningTier,
                   today: Optional[date] = None) -> List[CleaningStatus]:
        """Derived-required statuses of ``tier``, most stale first."""
        today = today or snapshot.today
        _, _, _, stale_days, _ = self._tier_settings(tier)
        due = [
            s for s in snapshot.cleaning_statuses
            if s.tier == tier and s.is_required(today, stale_days)
        ]

        # Unknown staleness sorts after every dated row
        def staleness(status: CleaningStatus) -> float:
            days = status.staleness_days(today)
            return -math.inf if days is None else days

        due.sort(key=staleness, reverse=True)
        return due

    def plan(self, snapshot: DomainSnapshot, tier: Union[CleaningTier, str],
             today: Optional[date] = None,
             reserved: Optional[Set[SlotIdentity]] = None) -> List[ProposalBase]:
        """
        Allocate slots on ``today`` to the most urgent vehicles first.

        Slots handed to a proposal are added to ``reserved`` so later
        proposals of the same pass never reuse them. A vehicle without a
        fitting run is deferred, not failed.
        """
        tier = CleaningTier(tier)
        snapshot.require("cleaning_slots", f"{tier.value}_clean")
        today = today or snapshot.today
        reserved = reserved if reserved is not None else set()
        kind, bay, minutes, _, action = self._tier_settings(tier)
        need = blocks_for(minutes, self.policy.cleaning_slot_minutes)

        proposals = []
        planned = set()
        for status in self.candidates(snapshot, tier, today):
            key = vehicle_key(status.vehicle_id)
            if key in planned:
                continue
            slots = find_consecutive_slots(
                snapshot.cleaning_slots, today, need, reserved, self.policy.cleaning_slot_minutes,
            )
            if len(slots) != need:
                logger.info(f"No {need} free cleaning slot(s) on {today} for {status.vehicle_id}, deferring")
                continue
            reserved.update(s.identity for s in slots)
            planned.add(key)
            source = snapshot.current_location(status.vehicle_id) or self.policy.default_source
            proposals.append(self.builder.build(
                kind,
                snapshot.display_id(status.vehicle_id),
                source,
                bay,
                action,
                slots=[SlotRef(date=s.date, start_time=s.start_time, end_time=s.end_time) for s in slots],
            ))
        logger.info("Planned %d %s cleaning proposal(s)", len(proposals), tier.value)
        return proposals
