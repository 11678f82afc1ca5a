"""
Domain snapshot loading.

One planning pass works on a single read of every table it needs. Reads go
through the injected ``TableCache`` with a per-table TTL; the commit pipeline
invalidates the tables it mutates.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from yardmaster.core.cache import CacheError, TableCache, cache_key
from yardmaster.schemas.fleet import (
    BrandingCampaign, Certificate, CleaningSlot, CleaningStatus, CleaningTier, MileageRecord,
    MovementRecord, ServiceCheck, ServiceCheckType, TopologyEdge, Vehicle, WorkOrder, vehicle_key,
)
from yardmaster.schemas.store import Table
from yardmaster.services.clients.sheets import StoreClientError, TableStore
from yardmaster.services.locations import location_key, normalize_location
from yardmaster.services.schema_map import SCHEMAS, SchemaError

logger = logging.getLogger(__name__)

TABLES: Tuple[str, ...] = tuple(SCHEMAS)


class SnapshotIncompleteError(Exception):
    """A planner needs a table that could not be loaded for this snapshot."""

    def __init__(self, tables: Dict[str, str]):
        self.tables = tables
        super().__init__("Snapshot incomplete, failed tables: " + ", ".join(sorted(tables)))


@dataclass
class DomainSnapshot:
    """Read-only view of the store for one planning pass."""
    loaded_at: datetime
    vehicles: List[Vehicle] = field(default_factory=list)
    work_orders: List[WorkOrder] = field(default_factory=list)
    certificates: List[Certificate] = field(default_factory=list)
    mileage: List[MileageRecord] = field(default_factory=list)
    cleaning_statuses: List[CleaningStatus] = field(default_factory=list)
    cleaning_slots: List[CleaningSlot] = field(default_factory=list)
    edges: List[TopologyEdge] = field(default_factory=list)
    movements: List[MovementRecord] = field(default_factory=list)
    campaigns: List[BrandingCampaign] = field(default_factory=list)
    service_checks: List[ServiceCheck] = field(default_factory=list)
    failed_tables: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._vehicles: Dict[str, Vehicle] = {}
        for v in self.vehicles:
            self._vehicles.setdefault(v.key, v)
        self._work_orders = self._group(self.work_orders)
        self._certificates = self._group(self.certificates)
        self._cleaning = self._group(self.cleaning_statuses)
        # Last occurrence in scan order wins for one-row-per-vehicle tables
        self._mileage = {vehicle_key(m.vehicle_id): m for m in self.mileage}
        self._campaigns = {vehicle_key(c.vehicle_id): c for c in self.campaigns}
        self._locations, self._arrivals = self._replay_movements()

    @staticmethod
    def _group(records) -> Dict[str, list]:
        grouped = defaultdict(list)
        for r in records:
            grouped[vehicle_key(r.vehicle_id)].append(r)
        return grouped

    def ordered_movements(self) -> List[MovementRecord]:
        """Movements by end time (start time when end is missing), scan order on ties."""
        day = self.loaded_at.date()

        def sort_key(m: MovementRecord):
            return m.ends_at(day) or m.starts_at(day) or datetime.min

        return sorted(self.movements, key=sort_key)

    def _replay_movements(self):
        locations: Dict[str, Tuple[str, str]] = {}
        arrivals: Dict[str, int] = {}
        for seq, m in enumerate(self.ordered_movements()):
            key = vehicle_key(m.vehicle_id)
            if not key:
                continue
            locations[key] = (m.vehicle_id.strip(), normalize_location(m.destination))
            arrivals[key] = seq
        return locations, arrivals

    def require(self, *tables: str) -> None:
        """Raise SnapshotIncompleteError if any of ``tables`` failed to load."""
        failed = {t: self.failed_tables[t] for t in tables if t in self.failed_tables}
        if failed:
            raise SnapshotIncompleteError(failed)

    @property
    def today(self):
        return self.loaded_at.date()

    def vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return self._vehicles.get(vehicle_key(vehicle_id))

    def vehicle_ids(self) -> List[str]:
        """Vehicle master identifiers, unique, in table order."""
        return [v.vehicle_id for v in self._vehicles.values()]

    def display_id(self, vehicle_id: str) -> str:
        vehicle = self.vehicle(vehicle_id)
        return vehicle.vehicle_id if vehicle else vehicle_id.strip()

    def work_orders_for(self, vehicle_id: str) -> List[WorkOrder]:
        return self._work_orders.get(vehicle_key(vehicle_id), [])

    def certificates_for(self, vehicle_id: str) -> List[Certificate]:
        return self._certificates.get(vehicle_key(vehicle_id), [])

    def cleaning_for(self, vehicle_id: str) -> List[CleaningStatus]:
        return self._cleaning.get(vehicle_key(vehicle_id), [])

    def mileage_for(self, vehicle_id: str) -> Optional[MileageRecord]:
        return self._mileage.get(vehicle_key(vehicle_id))

    def campaign_for(self, vehicle_id: str) -> Optional[BrandingCampaign]:
        return self._campaigns.get(vehicle_key(vehicle_id))

    def service_checks_of(self, check_type: ServiceCheckType) -> List[ServiceCheck]:
        return [c for c in self.service_checks if c.check_type == check_type]

    def current_location(self, vehicle_id: str) -> str:
        """Destination of the vehicle's latest movement, '' when it never moved."""
        entry = self._locations.get(vehicle_key(vehicle_id))
        return entry[1] if entry else ""

    def occupants(self, location: str) -> List[str]:
        """Vehicles whose current location is ``location``, in arrival order."""
        wanted = location_key(location)
        found = [
            (self._arrivals[key], vehicle_id)
            for key, (vehicle_id, loc) in self._locations.items()
            if location_key(loc) == wanted
        ]
        return [vehicle_id for _, vehicle_id in sorted(found)]

    def occupied_locations(self) -> Dict[str, str]:
        """location key -> vehicle id for every vehicle with a known location."""
        return {location_key(loc): vehicle_id for vehicle_id, loc in self._locations.values() if loc}

    @property
    def known_locations(self) -> List[str]:
        """Normalized union of every movement source and destination, sorted."""
        seen: Dict[str, str] = {}
        for m in self.movements:
            for name in (m.source, m.destination):
                value = normalize_location(name)
                if value:
                    seen.setdefault(value.lower(), value)
        return sorted(seen.values(), key=str.lower)


class SnapshotLoader:
    """Loads a DomainSnapshot from the store through the table cache."""

    def __init__(
        self,
        store: TableStore,
        cache: TableCache,
        ttls: Optional[Dict[str, int]] = None,
        default_ttl: int = 20,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.cache = cache
        self.ttls = ttls or {}
        self.default_ttl = default_ttl
        self.clock = clock

    async def read_table(self, name: str, force_refresh: bool = False) -> Table:
        key = cache_key(name)
        if not force_refresh:
            try:
                cached = await self.cache.get(key, model=Table)
            except CacheError as e:
                logger.warning(f"Cache read failed for {name}, reading store: {str(e)}")
                cached = None
            if cached is not None:
                return cached
        table = await self.store.read_table(name)
        try:
            await self.cache.set(key, table, self.ttls.get(name, self.default_ttl))
        except CacheError as e:
            logger.warning(f"Cache write failed for {name}: {str(e)}")
        return table

    async def invalidate(self, *tables: str) -> None:
        for table in tables:
            await self.cache.invalidate(table)

    async def load(self, force_refresh: bool = False) -> DomainSnapshot:
        """
        Read every table concurrently and build a snapshot.

        A table that cannot be read or parsed is recorded in
        ``failed_tables``; planners that need it refuse to run.
        """
        results = await asyncio.gather(
            *(self.read_table(name, force_refresh) for name in TABLES),
            return_exceptions=True,
        )
        tables: Dict[str, Table] = {}
        failed: Dict[str, str] = {}
        for name, result in zip(TABLES, results):
            if isinstance(result, StoreClientError):
                logger.warning(f"Could not load {name}: {str(result)}")
                failed[name] = str(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                tables[name] = result

        snapshot = build_snapshot(tables, self.clock(), failed)
        logger.info(
            "Snapshot loaded: %d vehicles, %d movements, %d slots, %d failed tables",
            len(snapshot.vehicles), len(snapshot.movements), len(snapshot.cleaning_slots),
            len(snapshot.failed_tables),
        )
        return snapshot


def build_snapshot(
    tables: Dict[str, Table],
    loaded_at: datetime,
    failed: Optional[Dict[str, str]] = None,
) -> DomainSnapshot:
    """Resolve each table's schema once and build the typed snapshot."""
    failed = dict(failed or {})

    def records(name: str) -> List[Dict[str, str]]:
        table = tables.get(name)
        if table is None or (not table.headers and not table.rows):
            return []
        try:
            cmap = SCHEMAS[name].resolve(table.headers)
        except SchemaError as e:
            logger.warning(str(e))
            failed[name] = str(e)
            return []
        return [cmap.extract(row) for row in table.rows]

    def keyed(name: str) -> List[Dict[str, str]]:
        return [r for r in records(name) if r.get("vehicle_id")]

    return DomainSnapshot(
        loaded_at=loaded_at,
        vehicles=[Vehicle.from_fields(r) for r in keyed("vehicles")],
        work_orders=[WorkOrder.from_fields(r) for r in keyed("job_cards")],
        certificates=[Certificate.from_fields(r) for r in keyed("fitness_certificates")],
        mileage=[MileageRecord.from_fields(r) for r in keyed("mileage")],
        cleaning_statuses=(
            [CleaningStatus.from_fields(r, CleaningTier.LIGHT) for r in keyed("light_clean")]
            + [CleaningStatus.from_fields(r, CleaningTier.DEEP) for r in keyed("deep_clean")]
        ),
        cleaning_slots=[CleaningSlot.from_fields(r) for r in records("cleaning_slots")],
        edges=[TopologyEdge.from_fields(r) for r in records("stabling_geometry")],
        movements=[MovementRecord.from_fields(r) for r in keyed("logs")],
        campaigns=[BrandingCampaign.from_fields(r) for r in keyed("branding")],
        service_checks=(
            [ServiceCheck.from_fields(r, ServiceCheckType.A) for r in keyed("a_service_check")]
            + [ServiceCheck.from_fields(r, ServiceCheckType.B) for r in keyed("b_service_check")]
        ),
        failed_tables=failed,
    )
