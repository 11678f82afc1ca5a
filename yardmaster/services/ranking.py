import math
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Union

from yardmaster.schemas.fleet import vehicle_key
from yardmaster.schemas.reports import BrandingPriority
from yardmaster.services.snapshot import DomainSnapshot


class PriorityPolicy(str, Enum):
    BRANDING_THEN_MILEAGE = "branding_then_mileage"
    MILEAGE_ONLY = "mileage_only"


def remaining_hours(vehicle_id: str, snapshot: DomainSnapshot) -> float:
    """Remaining exposure hours of the vehicle's campaign row, 0 without one."""
    campaign = snapshot.campaign_for(vehicle_id)
    return campaign.remaining if campaign else 0.0


def total_km(vehicle_id: str, snapshot: DomainSnapshot) -> float:
    """Cumulative distance, +inf when the vehicle has no usable mileage row."""
    record = snapshot.mileage_for(vehicle_id)
    if record is None or record.total_km is None:
        return math.inf
    return record.total_km


def rank(vehicle_ids: Iterable[str], snapshot: DomainSnapshot,
         policy: Union[PriorityPolicy, str] = PriorityPolicy.BRANDING_THEN_MILEAGE) -> List[str]:
    """
    Order vehicles for dispatch.

    ``branding_then_mileage`` sorts by remaining exposure hours descending,
    then distance ascending. ``mileage_only`` sorts by distance ascending,
    then exposure hours descending. Vehicles that compare equal keep their
    input order.

    Args:
        vehicle_ids: Candidates, typically the eligible set
        snapshot: Snapshot providing campaigns and mileage
        policy: Ranking policy

    Returns:
        A new list with the same identifiers in priority order
    """
    policy = PriorityPolicy(policy)
    rows = [(vid, remaining_hours(vid, snapshot), total_km(vid, snapshot)) for vid in vehicle_ids]
    if policy == PriorityPolicy.MILEAGE_ONLY:
        rows.sort(key=lambda r: (r[2], -r[1]))
    else:
        rows.sort(key=lambda r: (-r[1], r[2]))
    return [vid for vid, _, _ in rows]


def branding_priority(snapshot: DomainSnapshot, today: Optional[date] = None,
                      limit: Optional[int] = None) -> List[BrandingPriority]:
    """Campaigns with hours left, scored by remaining hours per day left."""
    today = today or snapshot.today
    entries = []
    seen = set()
    for row in snapshot.campaigns:
        key = vehicle_key(row.vehicle_id)
        if key in seen:
            continue
        seen.add(key)
        # Duplicate rows resolve to the last occurrence
        campaign = snapshot.campaign_for(key)
        remaining = campaign.remaining
        if remaining <= 0:
            continue
        days_left = 1
        if campaign.end_date is not None:
            days_left = max(1, (campaign.end_date - today).days)
        entries.append(BrandingPriority(
            vehicle_id=campaign.vehicle_id,
            campaign_id=campaign.campaign_id,
            remaining_hours=round(remaining, 2),
            days_left=days_left,
            priority=round(remaining / days_left, 2),
        ))
    entries.sort(key=lambda e: -e.priority)
    return entries[:limit] if limit else entries
