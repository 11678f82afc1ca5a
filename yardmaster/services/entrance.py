"""
Entrance (ready area) capacity planning.

Day mode keeps the highest ranked dispatchable vehicles at the entrance and
swaps the rest out; night mode returns every vehicle parked there to the
nearest free stabling slot. Swap-ins are limited to the room left by the
valid swap-outs, so applying the valid part of a day plan never leaves more
vehicles at the entrance than the configured capacity allows.
"""
import logging
from datetime import datetime
from typing import List, Optional, Set, Union

from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.fleet import vehicle_key
from yardmaster.schemas.proposals import ProposalBase, ProposalKind
from yardmaster.services.eligibility import EligibilityFilter
from yardmaster.services.geometry import GeometryResolver
from yardmaster.services.locations import (
    is_stabling, location_key, normalize_location, same_location, stabling_locations,
)
from yardmaster.services.proposals import ProposalBuilder
from yardmaster.services.ranking import PriorityPolicy, rank
from yardmaster.services.snapshot import DomainSnapshot

logger = logging.getLogger(__name__)


class EntrancePlanner:
    def __init__(
        self,
        builder: ProposalBuilder,
        resolver: GeometryResolver,
        eligibility: Optional[EligibilityFilter] = None,
        policy: Optional[PlanningPolicy] = None,
    ):
        self.builder = builder
        self.resolver = resolver
        self.policy = policy or PlanningPolicy()
        self.eligibility = eligibility or EligibilityFilter(self.policy)

    def stabling_candidates(self, snapshot: Optional[DomainSnapshot] = None) -> List[str]:
        """
        Configured stabling slots, plus stabling slots the topology reaches
        from the entrance that lie outside the configured grid.
        """
        p = self.policy
        candidates = stabling_locations(p.depot, p.stabling_bays, p.stabling_slots_per_bay)
        if snapshot is None:
            return candidates
        seen = {location_key(c) for c in candidates}
        for edge in snapshot.edges:
            if not same_location(edge.source, p.entrance) or not is_stabling(edge.destination):
                continue
            key = location_key(edge.destination)
            if key not in seen:
                seen.add(key)
                candidates.append(normalize_location(edge.destination))
        return candidates

    def plan(self, snapshot: DomainSnapshot, now: datetime,
             priority: Union[PriorityPolicy, str, None] = None) -> List[ProposalBase]:
        """
        Plan entrance movements for the mode selected by ``now``.

        Args:
            snapshot: Snapshot of the current planning pass
            now: Wall clock time of the pass, its hour selects day or night mode
            priority: Ranking policy for day mode, the policy default when omitted

        Returns:
            NightReturn proposals at night, SwapOut then SwapIn proposals by day
        """
        snapshot.require("logs")
        occupants = snapshot.occupants(self.policy.entrance)
        if self.policy.is_night(now.hour):
            return self._plan_night(snapshot, occupants)
        priority = PriorityPolicy(priority or self.policy.default_priority_policy)
        return self._plan_day(snapshot, occupants, priority, now)

    def _stabling_in_use(self, snapshot: DomainSnapshot, leaving: List[str]) -> Set[str]:
        """Location keys currently held by vehicles other than ``leaving``."""
        leaving_keys = {vehicle_key(v) for v in leaving}
        return {
            loc for loc, vehicle_id in snapshot.occupied_locations().items()
            if vehicle_key(vehicle_id) not in leaving_keys
        }

    def _route_to_stabling(self, snapshot: DomainSnapshot, vehicle_id: str, kind: ProposalKind,
                           action: str, taken: Set[str], candidates: List[str]) -> ProposalBase:
        destination, cost = self.resolver.nearest(self.policy.entrance, candidates, exclude=taken)
        taken.add(location_key(destination))
        if not cost.found:
            logger.warning(f"No topology edge from {self.policy.entrance} to stabling, using {destination}")
        return self.builder.build(kind, snapshot.display_id(vehicle_id), self.policy.entrance, destination, action)

    def _plan_night(self, snapshot: DomainSnapshot, occupants: List[str]) -> List[ProposalBase]:
        taken = self._stabling_in_use(snapshot, [])
        candidates = self.stabling_candidates(snapshot)
        returning = occupants[:self.policy.entrance_capacity]
        proposals = [
            self._route_to_stabling(snapshot, vehicle_id, ProposalKind.NIGHT_RETURN, "Night_Return",
                                    taken, candidates)
            for vehicle_id in returning
        ]
        logger.info("Night mode: %d of %d vehicle(s) return to stabling", len(proposals), len(occupants))
        return proposals

    def _plan_day(self, snapshot: DomainSnapshot, occupants: List[str],
                  priority: PriorityPolicy, now: datetime) -> List[ProposalBase]:
        snapshot.require("vehicles", "fitness_certificates", "job_cards")
        capacity = self.policy.entrance_capacity
        dispatchable = self.eligibility.dispatchable(snapshot, now.date())
        target = rank(dispatchable, snapshot, priority)[:capacity]
        target_keys = {vehicle_key(v) for v in target}
        current_keys = {vehicle_key(v) for v in occupants}
        candidates = self.stabling_candidates(snapshot)

        swap_out = [v for v in occupants if vehicle_key(v) not in target_keys]
        swap_in = [v for v in target if vehicle_key(v) not in current_keys]

        # Only valid swap-outs free entrance room. Dropping a swap-in keeps its
        # stabling slot occupied, so swap-outs are routed again until stable.
        while True:
            # Slots vacated by vehicles swapping in can take vehicles swapping out
            taken = self._stabling_in_use(snapshot, swap_in)
            outgoing = [
                self._route_to_stabling(snapshot, vehicle_id, ProposalKind.ENTRANCE_SWAP_OUT, "Swap_Out",
                                        taken, candidates)
                for vehicle_id in swap_out
            ]
            leaving = sum(1 for p in outgoing if p.is_valid)
            room = max(0, capacity - (len(occupants) - leaving))
            if len(swap_in) <= room:
                break
            logger.warning(
                "Only %d of %d swap-out(s) are valid, limiting swap-ins to %d",
                leaving, len(swap_out), room,
            )
            swap_in = swap_in[:room]

        proposals = list(outgoing)
        for vehicle_id in swap_in:
            source = snapshot.current_location(vehicle_id) or self.policy.default_source
            proposals.append(self.builder.build(
                ProposalKind.ENTRANCE_SWAP_IN, snapshot.display_id(vehicle_id), source,
                self.policy.entrance, "Swap_In",
            ))
        logger.info(
            "Day mode: %d at entrance, target %d, %d swap out, %d swap in",
            len(occupants), len(target), len(swap_out), len(swap_in),
        )
        return proposals
