import pytest

from conftest import fixed_clock
from yardmaster.schemas.approval import ApprovalPayload, BrandingAccrual, ServiceCheckRef
from yardmaster.schemas.fleet import MovementRecord, ServiceCheckType
from yardmaster.schemas.proposals import SlotRef, WorkOrderRef
from yardmaster.services.commit import CommitPipeline


@pytest.fixture
def pipeline(store, cache):
    return CommitPipeline(store, cache, clock=fixed_clock())


def log(vehicle_id="V4"):
    return MovementRecord(
        vehicle_id=vehicle_id, source="Muttom_Stb02_S1", destination="Muttom_Maint01",
        start_time="1/01/2024 09:00", end_time="1/01/2024 09:06", action="Maintenance",
    )


@pytest.mark.asyncio
async def test_logs_are_appended_in_one_batch(pipeline, store):
    result = await pipeline.commit(ApprovalPayload(logs=[log("V4"), log("V3")]))

    assert result.logs_appended == 2
    assert len(store.appends) == 1
    name, rows = store.appends[0]
    assert name == "logs"
    assert rows[0] == {
        "Train_ID": "V4", "Source": "Muttom_Stb02_S1", "Destination": "Muttom_Maint01",
        "Start_Time": "1/01/2024 09:00", "End_Time": "1/01/2024 09:06", "Action": "Maintenance",
    }
    assert len(store.rows("logs")) == 8


@pytest.mark.asyncio
async def test_slots_are_occupied_once(pipeline, store):
    store.rows("cleaning_slots")[1]["Status"] = "Occupied"
    payload = ApprovalPayload(cleaning_slots=[
        SlotRef(date="1/01/2024", start_time="09:00", end_time="09:10"),
        SlotRef(date="01/01/2024", start_time="9:10", end_time="9:20"),
        SlotRef(date="1/01/2024", start_time="11:00", end_time="11:10"),
    ])

    result = await pipeline.commit(payload)

    assert result.slots_occupied == 1
    assert [r["Status"] for r in store.rows("cleaning_slots")] == ["Occupied", "Occupied", "Available"]
    assert len(result.skipped) == 2
    assert result.errors == {}


@pytest.mark.asyncio
async def test_duplicate_work_order_is_closed_once(pipeline, store):
    payload = ApprovalPayload(work_orders_to_close=[
        WorkOrderRef(work_order_id="JC3", vehicle_id="V4"),
        WorkOrderRef(work_order_id="JC3", vehicle_id="V4"),
        WorkOrderRef(work_order_id="JC2", vehicle_id="V1"),
    ])

    result = await pipeline.commit(payload)

    assert result.work_orders_closed == 1
    assert len([u for u in store.updates if u[0] == "job_cards"]) == 1
    jc3 = store.rows("job_cards")[2]
    assert jc3["Status"] == "Closed"
    assert jc3["Closed_Date"] == "1/01/2024"


@pytest.mark.asyncio
async def test_work_order_without_id_closes_the_oldest_open_one(pipeline, store):
    store.rows("job_cards").append({
        "JobCard_ID": "", "Train_ID": "V3", "Description": "HVAC", "Status": "Open",
        "Opened_Date": "11/01/2023", "Closed_Date": "",
    })

    result = await pipeline.commit(ApprovalPayload(work_orders_to_close=[WorkOrderRef(vehicle_id="v3")]))

    assert result.work_orders_closed == 1
    assert store.rows("job_cards")[3]["Status"] == "Closed"
    assert store.rows("job_cards")[0]["Status"] == "Open"


@pytest.mark.asyncio
async def test_service_check_date_is_set_to_today(pipeline, store):
    payload = ApprovalPayload(service_checks_to_update=[
        ServiceCheckRef(vehicle_id="V4", check_type=ServiceCheckType.A),
        ServiceCheckRef(vehicle_id="V4", check_type=ServiceCheckType.A),
        ServiceCheckRef(vehicle_id="V5", check_type=ServiceCheckType.B),
    ])

    result = await pipeline.commit(payload)

    assert result.service_checks_updated == 2
    assert store.rows("a_service_check")[1]["a_check_date"] == "1/01/2024"
    assert store.rows("b_service_check")[0]["b_check_date"] == "1/01/2024"
    assert store.rows("a_service_check")[0]["a_check_date"] == "12/20/2023"


@pytest.mark.asyncio
async def test_branding_credits_the_last_row_of_the_vehicle(pipeline, store):
    payload = ApprovalPayload(branding_accumulations=[
        BrandingAccrual(vehicle_id="V2", add_hours=2.5),
        BrandingAccrual(vehicle_id="V1", add_hours=24.0),
        BrandingAccrual(vehicle_id="V5", add_hours=float("nan")),
    ])

    result = await pipeline.commit(payload)

    assert result.branding_updated == 1
    b1, _, b3 = store.rows("branding")
    assert b1["Accumulated_Hours"] == "40"
    assert b3["Accumulated_Hours"] == "92.5"
    assert b3["Remaining_Hours"] == "7.5"
    assert len(result.skipped) == 2


@pytest.mark.asyncio
async def test_remaining_hours_never_go_negative(pipeline, store):
    await pipeline.commit(ApprovalPayload(branding_accumulations=[BrandingAccrual(vehicle_id="V2", add_hours=15)]))
    b3 = store.rows("branding")[2]
    assert b3["Accumulated_Hours"] == "105"
    assert b3["Remaining_Hours"] == "0"


@pytest.mark.asyncio
async def test_failed_category_does_not_stop_the_others(pipeline, store):
    store.fail("job_cards", "quota exceeded")
    payload = ApprovalPayload(
        logs=[log()],
        cleaning_slots=[SlotRef(date="1/01/2024", start_time="09:00", end_time="09:10")],
        work_orders_to_close=[WorkOrderRef(work_order_id="JC3", vehicle_id="V4")],
        service_checks_to_update=[ServiceCheckRef(vehicle_id="V4", check_type=ServiceCheckType.A)],
    )

    result = await pipeline.commit(payload)

    assert list(result.errors) == ["work_orders"]
    assert "quota exceeded" in result.errors["work_orders"]
    assert result.logs_appended == 1
    assert result.slots_occupied == 1
    assert result.service_checks_updated == 1
    assert store.rows("job_cards")[2]["Status"] == "Open"


@pytest.mark.asyncio
async def test_missing_required_column_is_reported(pipeline, store):
    store.tables["branding"].headers = ["Record_ID", "Train_ID"]
    result = await pipeline.commit(ApprovalPayload(branding_accumulations=[BrandingAccrual(vehicle_id="V2", add_hours=1)]))
    assert "branding" in result.errors
    assert result.branding_updated == 0


@pytest.mark.asyncio
async def test_only_touched_tables_are_invalidated(pipeline, cache):
    for name in ("logs", "cleaning_slots", "job_cards", "branding"):
        await cache.set(name, {"cached": name}, ttl=60)

    await pipeline.commit(ApprovalPayload(logs=[log()]))

    assert await cache.get("logs") is None
    assert await cache.get("cleaning_slots") == {"cached": "cleaning_slots"}
    assert await cache.get("branding") == {"cached": "branding"}


@pytest.mark.asyncio
async def test_empty_payload_touches_nothing(pipeline, store):
    result = await pipeline.commit(ApprovalPayload())
    assert result.model_dump() == {
        "logs_appended": 0, "slots_occupied": 0, "work_orders_closed": 0,
        "service_checks_updated": 0, "branding_updated": 0, "errors": {}, "skipped": [],
    }
    assert store.reads == []


@pytest.mark.asyncio
async def test_each_reference_without_id_closes_the_next_open_order(pipeline, store):
    for opened in ("11/15/2023", "11/01/2023"):
        store.rows("job_cards").append({
            "JobCard_ID": "", "Train_ID": "V6", "Description": "Bogie", "Status": "Open",
            "Opened_Date": opened, "Closed_Date": "",
        })
    refs = [WorkOrderRef(vehicle_id="V6"), WorkOrderRef(vehicle_id="V6"), WorkOrderRef(vehicle_id="v6")]

    result = await pipeline.commit(ApprovalPayload(work_orders_to_close=refs))

    assert result.work_orders_closed == 2
    assert [r["Status"] for r in store.rows("job_cards")[3:]] == ["Closed", "Closed"]
    assert result.skipped == ["work order v6 not found"]
