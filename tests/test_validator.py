import pytest

from yardmaster.schemas.fleet import MovementRecord
from yardmaster.services.validator import MAX_SUGGESTIONS, MovementValidator

KNOWN = [
    "Muttom_Entrance", "Muttom_Clean01", "Muttom_Clean02", "Muttom_Maint01",
    "Muttom_Stb01_S1", "Muttom_Stb01_S2", "Muttom_Stb02_S1", "Muttom_Stb02_S2", "Muttom_Stb03_S1",
]


@pytest.fixture
def validator():
    return MovementValidator(KNOWN)


def movement(**overrides):
    fields = {
        "vehicle_id": "V1",
        "source": "Muttom_Stb01_S1",
        "destination": "Muttom_Entrance",
        "start_time": "1/01/2024 09:00",
        "end_time": "1/01/2024 09:05",
        "action": "Swap_In",
    }
    fields.update(overrides)
    return MovementRecord(**fields)


def test_valid_movement_is_normalized(validator):
    result = validator.validate(movement(vehicle_id=" V1 ", source="muttom stb01 s1"))
    assert result.valid
    assert result.errors == []
    assert result.normalized.vehicle_id == "V1"
    assert result.normalized.source == "Muttom_stb01_s1"
    assert validator.is_known(result.normalized.source)


def test_unknown_destination_gets_suggestions(validator):
    result = validator.validate(movement(destination="Muttom_Stb0"))
    assert not result.valid
    assert result.errors == ["Unknown destination: Muttom_Stb0"]
    assert result.suggestions["destination"] == [
        "Muttom_Stb01_S1", "Muttom_Stb01_S2", "Muttom_Stb02_S1", "Muttom_Stb02_S2", "Muttom_Stb03_S1",
    ]
    assert "source" not in result.suggestions


def test_suggestions_prefer_prefix_then_substring(validator):
    assert validator.suggest("muttom_clean") == ["Muttom_Clean01", "Muttom_Clean02"]
    assert validator.suggest("Maint") == ["Muttom_Maint01"]
    assert validator.suggest("Nowhere") == []
    assert validator.suggest("") == []
    assert len(validator.suggest("Muttom")) == MAX_SUGGESTIONS


def test_missing_fields_are_reported(validator):
    result = validator.validate(movement(vehicle_id=" ", source="", start_time="soon"))
    assert not result.valid
    assert "vehicle_id is required" in result.errors
    assert "source is required" in result.errors
    assert "start_time is invalid" in result.errors
    assert "end_time must be after start_time" not in result.errors


def test_end_must_follow_start(validator):
    result = validator.validate(movement(end_time="1/01/2024 09:00"))
    assert result.errors == ["end_time must be after start_time"]


def test_clock_times_compare_on_the_same_day(validator):
    assert validator.validate(movement(start_time="09:00", end_time="09:10")).valid
    result = validator.validate(movement(start_time="10:00", end_time="09:10"))
    assert result.errors == ["end_time must be after start_time"]


def test_empty_vocabulary_knows_nothing():
    result = MovementValidator([]).validate(movement())
    assert not result.valid
    assert result.suggestions == {"source": [], "destination": []}
