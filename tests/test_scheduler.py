from datetime import datetime

import pytest

from conftest import NOW, InMemoryStore, fixed_clock, large_fleet_tables
from yardmaster.schemas.fleet import MovementRecord, ServiceCheckType
from yardmaster.schemas.proposals import ProposalKind
from yardmaster.services.commit import CommitPipeline
from yardmaster.services.locations import stabling_locations
from yardmaster.services.scheduler import Scheduler, build_approval_payload, stagger_start_times
from yardmaster.services.snapshot import SnapshotIncompleteError, SnapshotLoader, build_snapshot


@pytest.fixture
def scheduler(store, cache, policy):
    loader = SnapshotLoader(store, cache, clock=fixed_clock())
    return Scheduler(loader, policy, clock=fixed_clock())


def summary(proposals):
    return [(p.kind, p.vehicle_id, p.is_valid) for p in proposals]


@pytest.mark.asyncio
async def test_full_planning_pass(scheduler):
    result = await scheduler.run_full_planning_pass()

    assert result.failed_branches == {}
    assert summary(result.proposals["maintenance"]) == [
        (ProposalKind.MAINTENANCE, "V4", True),
        (ProposalKind.MAINTENANCE, "V3", False),
    ]
    assert summary(result.proposals["cleaning"]) == [
        (ProposalKind.LIGHT_CLEAN, "V5", True),
        (ProposalKind.LIGHT_CLEAN, "V4", False),
    ]
    assert summary(result.proposals["service_checks"]) == [
        (ProposalKind.A_SERVICE_CHECK, "V4", True),
        (ProposalKind.B_SERVICE_CHECK, "V5", True),
    ]
    assert summary(result.proposals["entrance"]) == [
        (ProposalKind.ENTRANCE_SWAP_OUT, "V1", True),
        (ProposalKind.ENTRANCE_SWAP_IN, "V2", True),
    ]
    assert len(result.invalid) == 2
    assert [(a.vehicle_id, a.add_hours) for a in result.accrual] == [("V1", 24.0)]


@pytest.mark.asyncio
async def test_payload_holds_only_valid_proposals(scheduler):
    payload = (await scheduler.run_full_planning_pass()).payload

    assert [log.vehicle_id for log in payload.logs] == ["V4", "V5", "V4", "V5", "V1", "V2"]
    assert [w.work_order_id for w in payload.work_orders_to_close] == ["JC3"]
    assert [s.start_time for s in payload.cleaning_slots] == ["09:00"]
    assert [(c.vehicle_id, c.check_type) for c in payload.service_checks_to_update] == [
        ("V4", ServiceCheckType.A), ("V5", ServiceCheckType.B),
    ]
    assert payload.branding_accumulations[0].vehicle_id == "V1"


@pytest.mark.asyncio
async def test_payload_logs_are_staggered(scheduler):
    logs = (await scheduler.run_full_planning_pass()).payload.logs

    assert (logs[0].start_time, logs[0].end_time) == ("1/01/2024 09:00", "1/01/2024 09:06")
    assert (logs[2].start_time, logs[2].end_time) == ("1/01/2024 09:01", "1/01/2024 09:05")
    assert logs[5].start_time == "1/01/2024 09:02"


@pytest.mark.asyncio
async def test_failed_table_degrades_only_dependent_branches(scheduler, store):
    store.fail("job_cards")

    result = await scheduler.run_full_planning_pass()

    assert set(result.failed_branches) == {"maintenance", "entrance"}
    assert result.proposals["maintenance"] == []
    assert result.proposals["entrance"] == []
    assert len(result.proposals["cleaning"]) == 2
    assert len(result.proposals["service_checks"]) == 2
    assert result.payload.work_orders_to_close == []


@pytest.mark.asyncio
async def test_failed_log_table_skips_accrual(scheduler, store):
    store.fail("logs")

    result = await scheduler.run_full_planning_pass()

    assert result.accrual == []
    assert "entrance" in result.failed_branches


@pytest.mark.asyncio
async def test_single_planner_entry_points(scheduler):
    maintenance = await scheduler.propose_maintenance_movements()
    assert [p.vehicle_id for p in maintenance] == ["V4", "V3"]

    light = await scheduler.propose_cleaning_movements("light")
    assert [p.vehicle_id for p in light] == ["V5", "V4"]

    checks = await scheduler.propose_service_check_movements()
    assert [p.kind for p in checks] == [ProposalKind.A_SERVICE_CHECK, ProposalKind.B_SERVICE_CHECK]


@pytest.mark.asyncio
async def test_entrance_plan_raises_when_tables_are_missing(scheduler, store):
    store.fail("fitness_certificates")
    with pytest.raises(SnapshotIncompleteError):
        await scheduler.propose_entrance_plan()


@pytest.mark.asyncio
async def test_night_pass_returns_entrance_vehicles(store, cache, policy):
    night = datetime(2024, 1, 1, 23, 30)
    scheduler = Scheduler(SnapshotLoader(store, cache, clock=fixed_clock(night)), policy, clock=fixed_clock(night))

    plan = await scheduler.propose_entrance_plan()

    assert [(p.kind, p.movement.destination) for p in plan] == [
        (ProposalKind.NIGHT_RETURN, "Muttom_Stb01_S1"),
    ]


def test_stagger_keeps_durations():
    logs = [
        MovementRecord(vehicle_id="V1", start_time="1/01/2024 09:00", end_time="1/01/2024 09:05"),
        MovementRecord(vehicle_id="V2", start_time="1/01/2024 09:00", end_time="1/01/2024 09:07"),
        MovementRecord(vehicle_id="V3", start_time="", end_time=""),
    ]

    staggered = stagger_start_times(logs, datetime(2024, 1, 1, 10, 0), 60)

    assert [(r.start_time, r.end_time) for r in staggered] == [
        ("1/01/2024 10:00", "1/01/2024 10:05"),
        ("1/01/2024 10:01", "1/01/2024 10:08"),
        ("1/01/2024 10:02", "1/01/2024 10:02"),
    ]
    assert logs[0].start_time == "1/01/2024 09:00"


@pytest.mark.asyncio
async def test_approval_payload_from_proposals(scheduler, snapshot):
    proposals = await scheduler.propose_maintenance_movements(snapshot)
    payload = build_approval_payload(proposals)
    assert [log.vehicle_id for log in payload.logs] == ["V4"]
    assert payload.branding_accumulations == []
    assert not payload.is_empty
    assert build_approval_payload([]).is_empty


@pytest.mark.asyncio
@pytest.mark.parametrize("known", ["all", "partial", "occupied_only"])
async def test_committed_pass_keeps_entrance_within_capacity(known, cache, policy):
    slots = stabling_locations("Muttom", 13, 2)
    known_slots = {"all": None, "partial": slots[:10] + slots[12:14], "occupied_only": []}[known]
    _, _, tables = large_fleet_tables(known_slots=known_slots)
    store = InMemoryStore(tables)
    before = len(build_snapshot(store.tables, NOW).occupants(policy.entrance))
    scheduler = Scheduler(SnapshotLoader(store, cache, clock=fixed_clock()), policy, clock=fixed_clock())

    result = await scheduler.run_full_planning_pass()
    await CommitPipeline(store, cache, clock=fixed_clock()).commit(result.payload)

    after = build_snapshot(store.tables, NOW).occupants(policy.entrance)
    assert before == 10
    assert len(after) <= max(policy.entrance_capacity, before)
    if known != "occupied_only":
        assert len(after) == policy.entrance_capacity
