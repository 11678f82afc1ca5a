import copy
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pytest

from yardmaster.core.cache import MemoryTableCache
from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.store import Table
from yardmaster.services.clients.sheets import StoreClientError
from yardmaster.services.locations import stabling_locations
from yardmaster.services.snapshot import build_snapshot

# Monday morning, day mode
NOW = datetime(2024, 1, 1, 9, 0)


def make_table(name: str, headers: List[str], rows: List[List[Any]]) -> Table:
    return Table.from_records(name, headers, [dict(zip(headers, row)) for row in rows])


class InMemoryStore:
    """Table store double keeping tables in memory and recording writes."""

    def __init__(self, tables: Dict[str, Table]):
        self.tables = {name: copy.deepcopy(t) for name, t in tables.items()}
        self.reads: List[str] = []
        self.appends: List[tuple] = []
        self.updates: List[tuple] = []
        self.failing: Dict[str, str] = {}

    def fail(self, name: str, message: str = "rate limited") -> None:
        self.failing[name] = message

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise StoreClientError(f"{name}: {self.failing[name]}")

    async def read_table(self, name: str) -> Table:
        self.reads.append(name)
        self._check(name)
        return copy.deepcopy(self.tables.get(name, Table(name=name)))

    async def append_rows(self, name: str, rows: List[Dict[str, Any]]) -> int:
        self._check(name)
        self.appends.append((name, rows))
        self.tables[name].rows.extend(dict(r) for r in rows)
        return len(rows)

    async def update_row(self, name: str, row_index: int, row: Dict[str, Any]) -> None:
        self._check(name)
        self.updates.append((name, row_index, dict(row)))
        self.tables[name].rows[row_index] = dict(row)

    def rows(self, name: str) -> List[Dict[str, str]]:
        return self.tables[name].rows


def depot_tables() -> Dict[str, Table]:
    """A small depot: V2 is the only vehicle fit and clean for dispatch."""
    return {
        "vehicles": make_table("vehicles", ["Train_ID", "Current_Status", "Last_Service_Type", "Last_Service_Date"], [
            ["V1", "Service", "A", "12/28/2023"],
            ["V2", "Standby", "B", "12/20/2023"],
            ["V3", "IBL", "A", "12/30/2023"],
            ["V4", "Service", "A", "12/01/2023"],
            ["V5", "Service", "B", "12/25/2023"],
        ]),
        "fitness_certificates": make_table("fitness_certificates", ["Train_ID", "Certificate_Type", "Status", "Expiry_Date"], [
            ["V1", "Rolling Stock", "Valid", "6/30/2024"],
            ["V1", "Signalling", "Expired", "12/15/2023"],
            ["V2", "Rolling Stock", "Valid", "6/30/2024"],
            ["V3", "Rolling Stock", "Valid", "6/30/2024"],
            ["V4", "Rolling Stock", "Valid", "6/30/2024"],
            ["V5", "Rolling Stock", "Valid", "6/30/2024"],
        ]),
        "job_cards": make_table("job_cards", ["JobCard_ID", "Train_ID", "Description", "Status", "Opened_Date", "Closed_Date"], [
            ["JC1", "V3", "Door fault", "Open", "12/20/2023", ""],
            ["JC2", "V1", "Wiper", "Closed", "12/01/2023", "12/02/2023"],
            ["JC3", "V4", "Brake pads", "Open", "12/10/2023", ""],
        ]),
        "mileage": make_table("mileage", ["Train_ID", "Total_KM", "Daily_Avg_KM"], [
            ["V1", "1,000", "200"],
            ["V2", "5000", "210"],
            ["V2", "4000", "210"],
            ["V5", "3000", "190"],
        ]),
        "light_clean": make_table("light_clean", ["Train_ID", "Last_Cleaning_Date", "Cleanliness_Status"], [
            ["V2", "12/31/2023", "Clean"],
            ["V5", "12/20/2023", "Clean"],
            ["V4", "12/30/2023", "Required"],
        ]),
        "deep_clean": make_table("deep_clean", ["Train_ID", "Last_Cleaning_Date", "Cleanliness_Status"], [
            ["V2", "12/15/2023", "Clean"],
        ]),
        "cleaning_slots": make_table("cleaning_slots", ["Date", "Start_Time", "End_Time", "Status"], [
            ["1/01/2024", "09:00", "09:10", "Available"],
            ["1/01/2024", "09:10", "09:20", "Available"],
            ["1/01/2024", "09:20", "09:30", "Available"],
        ]),
        "stabling_geometry": make_table("stabling_geometry", ["Source", "Destination", "Travel_Duration_Minutes", "Energy_Cost_kWh"], [
            ["Muttom_Entrance", "Muttom_Stb01_S1", "5", "12"],
            ["Muttom_Entrance", "Muttom_Stb02_S1", "3", "8"],
            ["Muttom_Stb05_S1", "Muttom_Entrance", "7", "15"],
            ["Muttom_Stb02_S1", "Muttom_Maint01", "6", "10"],
            ["Muttom_Stb02_S1", "Muttom_Inspect01", "4", "9"],
            ["Muttom_Stb03_S1", "Muttom_Inspect01", "5", "9"],
            ["Muttom_Stb03_S1", "Muttom_Clean01", "4", "7"],
        ]),
        "logs": make_table("logs", ["Train_ID", "Source", "Destination", "Start_Time", "End_Time", "Action"], [
            ["V2", "Muttom_Clean01", "Muttom_Clean02", "12/28/2023 11:00", "12/28/2023 11:10", "Move"],
            ["V2", "Muttom_Clean02", "Muttom_Stb05_S1", "12/28/2023 13:00", "12/28/2023 13:10", "Move"],
            ["V4", "Muttom_Inspect01", "Muttom_Stb02_S1", "12/29/2023 10:00", "12/29/2023 10:05", "Move"],
            ["V3", "Muttom_Stb04_S1", "Muttom_Maint01", "12/30/2023 09:00", "12/30/2023 09:06", "Maintenance"],
            ["V5", "Muttom_Stb02_S2", "Muttom_Stb03_S1", "12/31/2023 08:00", "12/31/2023 08:05", "Move"],
            ["V1", "Muttom_Stb01_S1", "Muttom_Entrance", "12/31/2023 18:00", "12/31/2023 18:10", "Swap_In"],
        ]),
        "branding": make_table("branding", ["Record_ID", "Train_ID", "Campaign_ID", "Required_Hours", "Accumulated_Hours", "Remaining_Hours", "Start_Date", "End_Date"], [
            ["B1", "V2", "C1", "100", "40", "60", "12/01/2023", "1/31/2024"],
            ["B2", "V5", "C2", "50", "10", "40", "12/01/2023", "1/11/2024"],
            ["B3", "V2", "C3", "100", "90", "10", "12/15/2023", "2/29/2024"],
        ]),
        "a_service_check": make_table("a_service_check", ["Train_ID", "a_check_date"], [
            ["V2", "12/20/2023"],
            ["V4", "12/10/2023"],
        ]),
        "b_service_check": make_table("b_service_check", ["Train_ID", "b_check_date"], [
            ["V5", "11/01/2023"],
            ["V2", "12/01/2023"],
        ]),
    }


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def policy() -> PlanningPolicy:
    return PlanningPolicy()


@pytest.fixture
def tables() -> Dict[str, Table]:
    return depot_tables()


@pytest.fixture
def store(tables) -> InMemoryStore:
    return InMemoryStore(tables)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock) -> MemoryTableCache:
    return MemoryTableCache(clock=fake_clock)


@pytest.fixture
def snapshot(tables):
    return build_snapshot(tables, NOW)


def fixed_clock(value: Optional[datetime] = None):
    return lambda: value or NOW


def large_fleet_tables(known_slots: Optional[List[str]] = None) -> Tuple[List[str], List[str], Dict[str, Table]]:
    """Twenty fit vehicles, ten of them crowding the entrance.

    T11 has earlier history through ``known_slots`` (every stabling slot by
    default), which puts those slots in the movement log vocabulary.
    """
    ids = [f"T{i:02d}" for i in range(1, 21)]
    slots = stabling_locations("Muttom", 13, 2)
    known = slots if known_slots is None else known_slots
    logs = [
        ["T11", "Muttom_Clean01", slot, "12/30/2023 10:00", f"12/30/2023 10:{n + 1:02d}", "Move"]
        for n, slot in enumerate(known)
    ]
    for i, vehicle_id in enumerate(ids):
        destination = "Muttom_Entrance" if i < 10 else slots[i - 10]
        logs.append([vehicle_id, "Muttom_Clean01", destination, "12/31/2023 20:00", f"12/31/2023 20:{i + 10:02d}", "Move"])
    geometry = [["Muttom_Entrance", slot, str(n + 1), "5"] for n, slot in enumerate(slots)]
    geometry += [[slot, "Muttom_Entrance", "6", "5"] for slot in slots]
    return ids, slots, {
        "vehicles": make_table("vehicles", ["Train_ID", "Current_Status"], [[v, "Service"] for v in ids]),
        "fitness_certificates": make_table(
            "fitness_certificates", ["Train_ID", "Status"], [[v, "Valid"] for v in ids],
        ),
        "job_cards": make_table("job_cards", ["JobCard_ID", "Train_ID", "Status"], []),
        # Lower mileage ranks first, so T13..T20 make up the target
        "mileage": make_table("mileage", ["Train_ID", "Total_KM"], [[v, str(1000 * (21 - i))] for i, v in enumerate(ids, 1)]),
        "stabling_geometry": make_table(
            "stabling_geometry", ["Source", "Destination", "Travel_Duration_Minutes", "Energy_Cost_kWh"], geometry,
        ),
        "logs": make_table("logs", ["Train_ID", "Source", "Destination", "Start_Time", "End_Time", "Action"], logs),
    }
