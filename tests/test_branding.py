from datetime import date

from yardmaster.schemas.fleet import MovementRecord
from yardmaster.services.branding import compute_daily_accrual

DAY = date(2024, 1, 1)


def move(vehicle_id, source, destination, start, end):
    return MovementRecord(
        vehicle_id=vehicle_id, source=source, destination=destination,
        start_time=start, end_time=end, action="Move",
    )


def hours(accruals):
    return {a.vehicle_id: a.add_hours for a in accruals}


def test_dwell_between_arrival_end_and_departure_start():
    movements = [
        move("V2", "Muttom_Entrance", "Muttom_Stb05_S1", "1/01/2024 10:30", "1/01/2024 10:37"),
        move("V2", "Muttom_Stb05_S1", "Muttom_Entrance", "1/01/2024 07:53", "1/01/2024 08:00"),
    ]
    assert hours(compute_daily_accrual(movements, DAY)) == {"V2": 2.5}


def test_vehicle_still_parked_accrues_to_end_of_day():
    movements = [move("V1", "Muttom_Stb01_S1", "Muttom_Entrance", "1/01/2024 21:50", "1/01/2024 22:00")]
    assert hours(compute_daily_accrual(movements, DAY)) == {"V1": 2.0}


def test_overnight_arrival_is_clipped_to_the_day():
    movements = [
        move("V3", "Muttom_Stb02_S1", "Muttom_Entrance", "12/31/2023 19:50", "12/31/2023 20:00"),
        move("V3", "Muttom_Entrance", "Muttom_Stb02_S1", "1/01/2024 02:00", "1/01/2024 02:03"),
    ]
    assert hours(compute_daily_accrual(movements, DAY)) == {"V3": 2.0}


def test_zero_dwell_is_omitted():
    movements = [
        move("V4", "Muttom_Stb02_S1", "Muttom_Entrance", "1/01/2024 08:55", "1/01/2024 09:00"),
        move("V4", "Muttom_Entrance", "Muttom_Stb02_S1", "1/01/2024 09:00", "1/01/2024 09:03"),
    ]
    assert compute_daily_accrual(movements, DAY) == []


def test_visits_add_up_and_other_moves_are_ignored():
    movements = [
        move("V5", "Muttom_Stb03_S1", "muttom entrance", "1/01/2024 05:50", "1/01/2024 06:00"),
        move("V5", "Muttom_Entrance", "Muttom_Clean01", "1/01/2024 07:00", "1/01/2024 07:04"),
        move("V5", "Muttom_Clean01", "Muttom_Stb03_S1", "1/01/2024 08:00", "1/01/2024 08:04"),
        move("v5", "Muttom_Stb03_S1", "Muttom_Entrance", "1/01/2024 11:40", "1/01/2024 11:45"),
        move("V5", "Muttom_Entrance", "Muttom_Stb03_S1", "1/01/2024 12:30", "1/01/2024 12:35"),
    ]
    assert hours(compute_daily_accrual(movements, DAY)) == {"V5": 1.75}


def test_departure_without_arrival_and_unparseable_rows_accrue_nothing():
    movements = [
        move("V1", "Muttom_Entrance", "Muttom_Stb01_S1", "1/01/2024 10:00", "1/01/2024 10:05"),
        move("V2", "Muttom_Stb05_S1", "Muttom_Entrance", "", "not a time"),
        move("", "Muttom_Stb05_S1", "Muttom_Entrance", "1/01/2024 10:00", "1/01/2024 10:05"),
    ]
    assert compute_daily_accrual(movements, DAY) == []


def test_snapshot_log_accrues_a_full_day_for_the_parked_vehicle(snapshot):
    result = compute_daily_accrual(snapshot.movements, DAY)
    assert hours(result) == {"V1": 24.0}
