import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from yardmaster.schemas.fleet import TopologyEdge
from yardmaster.services.locations import location_key, normalize_location

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovementCost:
    duration_minutes: float = 0.0
    energy_kwh: float = 0.0
    found: bool = False


ZERO_COST = MovementCost()


class GeometryResolver:
    """Travel duration and energy between named depot locations.

    Lookups use the normalized location names of the topology table. A pair
    with no edge resolves to the zero-cost default instead of failing, so a
    single missing edge cannot block a planning pass.
    """

    def __init__(self, edges: Iterable[TopologyEdge]):
        self._edges: Dict[Tuple[str, str], MovementCost] = {}
        for edge in edges:
            key = (location_key(edge.source), location_key(edge.destination))
            if key in self._edges:
                # First matching row wins
                continue
            self._edges[key] = MovementCost(
                duration_minutes=edge.duration_minutes or 0.0,
                energy_kwh=edge.energy_kwh or 0.0,
                found=True,
            )

    def __len__(self) -> int:
        return len(self._edges)

    def resolve(self, source: str, destination: str) -> MovementCost:
        cost = self._edges.get((location_key(source), location_key(destination)))
        if cost is None:
            logger.debug("No topology edge %s -> %s, using zero cost", source, destination)
            return ZERO_COST
        return cost

    def nearest(self, source: str, candidates: List[str],
                exclude: Optional[Iterable[str]] = None) -> Tuple[Optional[str], MovementCost]:
        """
        Pick the candidate reachable from ``source`` with the shortest duration.

        Args:
            source: Starting location
            candidates: Destinations to scan, in preference order for ties
            exclude: Locations that must not be chosen while another is free

        Returns:
            (location, cost); the first allowed candidate with zero cost when
            no candidate has a topology edge, (None, ZERO_COST) when there are
            no candidates at all
        """
        excluded = {location_key(x) for x in (exclude or ())}
        allowed = [c for c in candidates if location_key(c) not in excluded] or list(candidates)
        if not allowed:
            return None, ZERO_COST
        best: Optional[str] = None
        best_cost = ZERO_COST
        for candidate in allowed:
            cost = self.resolve(source, candidate)
            if not cost.found:
                continue
            if best is None or cost.duration_minutes < best_cost.duration_minutes:
                best, best_cost = candidate, cost
        if best is None:
            return normalize_location(allowed[0]), ZERO_COST
        return normalize_location(best), best_cost
