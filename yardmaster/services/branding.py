"""
Advertising exposure accrual.

Branded vehicles earn exposure hours while parked at the entrance. Dwell is
measured from the movement log: an arrival is the end time of a movement
into the entrance, a departure the start time of the next movement out of
it. Intervals are clipped to the requested day.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List

from yardmaster.schemas.approval import BrandingAccrual
from yardmaster.schemas.fleet import MovementRecord, vehicle_key
from yardmaster.services.locations import same_location

logger = logging.getLogger(__name__)


def compute_daily_accrual(movements: Iterable[MovementRecord], day: date,
                          entrance: str = "Muttom_Entrance") -> List[BrandingAccrual]:
    """
    Exposure hours earned at ``entrance`` on ``day`` per vehicle.

    Args:
        movements: Movement log rows, any order
        day: Day to account for, midnight to midnight
        entrance: Name of the ready area

    Returns:
        One entry per vehicle with a positive dwell, hours rounded to two
        decimals, in order of first accrual
    """
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)

    timed = []
    for m in movements:
        start, end = m.starts_at(day), m.ends_at(day)
        if not m.vehicle_id.strip() or start is None or end is None:
            continue
        timed.append((end, start, m))
    # Stable sort keeps scan order for identical timestamps
    timed.sort(key=lambda t: (t[0], t[1]))

    arrivals: Dict[str, datetime] = {}
    totals: Dict[str, timedelta] = {}
    names: Dict[str, str] = {}

    def add(key: str, arrived: datetime, departed: datetime) -> None:
        a = max(arrived, day_start)
        d = min(departed, day_end)
        if d > a:
            totals[key] = totals.get(key, timedelta()) + (d - a)

    for end, start, m in timed:
        key = vehicle_key(m.vehicle_id)
        names.setdefault(key, m.vehicle_id.strip())
        if same_location(m.destination, entrance):
            arrivals[key] = max(day_start, end)
        if same_location(m.source, entrance):
            arrived = arrivals.pop(key, None)
            if arrived is not None:
                add(key, arrived, min(day_end, start))

    # Still parked at the end of the day
    for key, arrived in arrivals.items():
        add(key, arrived, day_end)

    result = []
    for key, dwell in totals.items():
        hours = round(dwell.total_seconds() / 3600, 2)
        if hours > 0:
            result.append(BrandingAccrual(vehicle_id=names[key], add_hours=hours))
    logger.debug("Accrual for %s: %d vehicle(s)", day, len(result))
    return result
