"""
Commit pipeline for approved planning payloads.

Each mutation class is applied independently in a fixed order: movement
logs, cleaning slots, work orders, service checks, branding hours. A class
reads its table fresh from the store, writes the affected rows and
invalidates the cached copy of that table only. A failure in one class is
recorded in ``CommitResult.errors`` and the next class still runs.
"""
import asyncio
import logging
import math
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from yardmaster.core.cache import CacheError, TableCache
from yardmaster.schemas.approval import (
    ApprovalPayload, BrandingAccrual, CommitResult, ServiceCheckRef,
)
from yardmaster.schemas.fleet import ServiceCheckType, WorkOrderStatus, slot_identity, vehicle_key
from yardmaster.schemas.proposals import SlotRef, WorkOrderRef
from yardmaster.schemas.store import Table
from yardmaster.services.clients.sheets import StoreClientError, TableStore
from yardmaster.services.schema_map import (
    LOGS, SCHEMAS, ColumnMap, SchemaError,
    format_number, format_sheet_date, normalize_key, parse_date, parse_number,
)

logger = logging.getLogger(__name__)

OCCUPIED = "Occupied"
CLOSED = "Closed"

_CHECK_TABLES = {
    ServiceCheckType.A: "a_service_check",
    ServiceCheckType.B: "b_service_check",
}


class CommitPipeline:
    def __init__(self, store: TableStore, cache: Optional[TableCache] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.cache = cache
        self.clock = clock
        # One commit at a time per process, rows are read-modify-written
        self._lock = asyncio.Lock()

    async def commit(self, payload: ApprovalPayload) -> CommitResult:
        """
        Apply an approved payload to the store.

        Args:
            payload: Approved logs, slots, work orders, service checks and
                branding accruals

        Returns:
            CommitResult with the count of mutations that landed per class,
            the error of every class that failed and the skipped items
        """
        result = CommitResult()
        today = self.clock().date()
        steps = (
            ("logs", payload.logs, self._append_logs),
            ("cleaning_slots", payload.cleaning_slots, self._occupy_slots),
            ("work_orders", payload.work_orders_to_close, self._close_work_orders),
            ("service_checks", payload.service_checks_to_update, self._update_service_checks),
            ("branding", payload.branding_accumulations, self._accrue_branding),
        )
        async with self._lock:
            for category, items, step in steps:
                if not items:
                    continue
                try:
                    await step(items, today, result)
                except (StoreClientError, SchemaError) as e:
                    logger.error(f"Commit of {category} failed: {str(e)}")
                    result.errors[category] = str(e)
        logger.info(
            "Commit applied: %d logs, %d slots, %d work orders, %d service checks, %d branding rows",
            result.logs_appended, result.slots_occupied, result.work_orders_closed,
            result.service_checks_updated, result.branding_updated,
        )
        return result

    async def _read(self, name: str, required: Tuple[str, ...]) -> Tuple[Table, ColumnMap]:
        table = await self.store.read_table(name)
        if not table.headers:
            raise SchemaError(name, ["header row"])
        return table, SCHEMAS[name].resolve(table.headers, required=required)

    async def _invalidate(self, name: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.invalidate(name)
        except CacheError as e:
            logger.warning(f"Could not invalidate cache for {name}: {str(e)}")

    async def _write_row(self, table: Table, index: int, row: Dict[str, str]) -> None:
        await self.store.update_row(table.name, index, row)
        table.rows[index] = row

    @staticmethod
    def _skip(result: CommitResult, message: str) -> None:
        logger.warning(f"Skipped commit item: {message}")
        result.skipped.append(message)

    async def _append_logs(self, logs, today: date, result: CommitResult) -> None:
        table, cmap = await self._read("logs", LOGS.required)
        rows = []
        for record in logs:
            row = {h: "" for h in table.headers}
            row.update(cmap.to_row(record.model_dump()))
            rows.append(row)
        try:
            result.logs_appended = await self.store.append_rows("logs", rows)
        finally:
            await self._invalidate("logs")

    async def _occupy_slots(self, refs: List[SlotRef], today: date, result: CommitResult) -> None:
        table, cmap = await self._read(
            "cleaning_slots", ("date", "start_time", "end_time", "status"),
        )
        index: Dict[tuple, int] = {}
        for i, row in enumerate(table.rows):
            fields = cmap.extract(row)
            index.setdefault(slot_identity(fields["date"], fields["start_time"], fields["end_time"]), i)

        status_header = cmap.header("status")
        try:
            for ref in refs:
                i = index.get(slot_identity(ref.date, ref.start_time, ref.end_time))
                if i is None:
                    self._skip(result, f"cleaning slot {ref.date} {ref.start_time}-{ref.end_time} not found")
                    continue
                row = dict(table.rows[i])
                if normalize_key(row.get(status_header)) == normalize_key(OCCUPIED):
                    self._skip(result, f"cleaning slot {ref.date} {ref.start_time} already occupied")
                    continue
                row[status_header] = OCCUPIED
                await self._write_row(table, i, row)
                result.slots_occupied += 1
        finally:
            await self._invalidate("cleaning_slots")

    def _find_work_order(self, table: Table, cmap: ColumnMap, ref: WorkOrderRef) -> Optional[int]:
        if ref.work_order_id and cmap.has("work_order_id"):
            wanted = ref.work_order_id.strip()
            for i, row in enumerate(table.rows):
                if cmap.extract(row)["work_order_id"] == wanted:
                    return i
            return None
        # No identifier: the vehicle's oldest Open work order
        candidates = []
        for i, row in enumerate(table.rows):
            fields = cmap.extract(row)
            if vehicle_key(fields["vehicle_id"]) != vehicle_key(ref.vehicle_id):
                continue
            if WorkOrderStatus.parse(fields["status"]) != WorkOrderStatus.OPEN:
                continue
            candidates.append((parse_date(fields.get("opened_date")) or date.min, i))
        return min(candidates)[1] if candidates else None

    async def _close_work_orders(self, refs: List[WorkOrderRef], today: date, result: CommitResult) -> None:
        table, cmap = await self._read("job_cards", ("vehicle_id", "status"))
        seen: Set[str] = set()
        try:
            for ref in refs:
                # A reference without an id closes the vehicle's oldest Open
                # order at that point, so repeating it closes the next one
                if ref.work_order_id:
                    ref_key = ref.work_order_id.strip()
                    if ref_key in seen:
                        logger.info(f"Work order {ref_key} repeated in payload, applying once")
                        continue
                    seen.add(ref_key)
                i = self._find_work_order(table, cmap, ref)
                if i is None:
                    self._skip(result, f"work order {ref.work_order_id or ref.vehicle_id} not found")
                    continue
                row = dict(table.rows[i])
                if WorkOrderStatus.parse(row.get(cmap.header("status"))) == WorkOrderStatus.CLOSED:
                    logger.info(f"Work order {ref.work_order_id or ref.vehicle_id} already closed")
                    continue
                row[cmap.header("status")] = CLOSED
                if cmap.has("closed_date"):
                    row[cmap.header("closed_date")] = format_sheet_date(today)
                await self._write_row(table, i, row)
                result.work_orders_closed += 1
        finally:
            await self._invalidate("job_cards")

    async def _update_service_checks(self, refs: List[ServiceCheckRef], today: date,
                                     result: CommitResult) -> None:
        for check_type, name in _CHECK_TABLES.items():
            wanted = []
            for ref in refs:
                key = vehicle_key(ref.vehicle_id)
                if ref.check_type == check_type and key and key not in wanted:
                    wanted.append(key)
            if not wanted:
                continue
            table, cmap = await self._read(name, ("vehicle_id", "check_date"))
            try:
                for key in wanted:
                    i = next(
                        (i for i, row in enumerate(table.rows)
                         if vehicle_key(cmap.extract(row)["vehicle_id"]) == key),
                        None,
                    )
                    if i is None:
                        self._skip(result, f"{check_type.value}-check row for {key} not found")
                        continue
                    row = dict(table.rows[i])
                    row[cmap.header("check_date")] = format_sheet_date(today)
                    await self._write_row(table, i, row)
                    result.service_checks_updated += 1
            finally:
                await self._invalidate(name)

    async def _accrue_branding(self, accruals: List[BrandingAccrual], today: date,
                               result: CommitResult) -> None:
        table, cmap = await self._read("branding", ("vehicle_id", "accumulated_hours"))
        # Last occurrence per vehicle is the row that gets credited
        last_index: Dict[str, int] = {}
        for i, row in enumerate(table.rows):
            key = vehicle_key(cmap.extract(row)["vehicle_id"])
            if key:
                last_index[key] = i

        try:
            for accrual in accruals:
                key = vehicle_key(accrual.vehicle_id)
                if not key or accrual.add_hours is None or math.isnan(accrual.add_hours):
                    self._skip(result, f"branding accrual for {accrual.vehicle_id!r} has no usable hours")
                    continue
                i = last_index.get(key)
                if i is None:
                    self._skip(result, f"branding row for {accrual.vehicle_id} not found")
                    continue
                row = dict(table.rows[i])
                fields = cmap.extract(row)
                accumulated = (parse_number(fields["accumulated_hours"]) or 0.0) + accrual.add_hours
                row[cmap.header("accumulated_hours")] = format_number(accumulated)
                required = parse_number(fields.get("required_hours"))
                if required is not None and cmap.has("remaining_hours"):
                    row[cmap.header("remaining_hours")] = format_number(max(0.0, required - accumulated))
                await self._write_row(table, i, row)
                result.branding_updated += 1
        finally:
            await self._invalidate("branding")
