import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from yardmaster.schemas.fleet import MovementRecord
from yardmaster.schemas.proposals import ValidationResult
from yardmaster.services.locations import location_key, normalize_location
from yardmaster.services.schema_map import parse_datetime

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


class MovementValidator:
    """Checks movement records against the known-location vocabulary.

    The vocabulary is the normalized union of every source and destination
    seen in the movement log. Failures are returned as data so a caller can
    surface or discard the record; nothing here raises.
    """

    def __init__(self, known_locations: Iterable[str]):
        self._known: Dict[str, str] = {}
        for name in known_locations:
            value = normalize_location(name)
            if value:
                self._known.setdefault(value.lower(), value)

    @property
    def known_locations(self) -> List[str]:
        return sorted(self._known.values(), key=str.lower)

    def is_known(self, name: str) -> bool:
        return location_key(name) in self._known

    def suggest(self, name: str) -> List[str]:
        """Up to five known locations starting with ``name``, else containing it."""
        wanted = location_key(name)
        if not wanted:
            return []
        pool = self.known_locations
        prefix = [x for x in pool if x.lower().startswith(wanted)]
        if prefix:
            return prefix[:MAX_SUGGESTIONS]
        return [x for x in pool if wanted in x.lower()][:MAX_SUGGESTIONS]

    def validate(self, record: MovementRecord) -> ValidationResult:
        errors: List[str] = []
        suggestions: Dict[str, List[str]] = {}
        normalized = record.model_copy(update={
            "vehicle_id": record.vehicle_id.strip(),
            "source": normalize_location(record.source),
            "destination": normalize_location(record.destination),
        })

        if not normalized.vehicle_id:
            errors.append("vehicle_id is required")
        for field_name in ("source", "destination"):
            value = getattr(normalized, field_name)
            if not value:
                errors.append(f"{field_name} is required")
            elif not self.is_known(value):
                errors.append(f"Unknown {field_name}: {getattr(record, field_name)}")
                suggestions[field_name] = self.suggest(value)

        start = self._parse_time(record.start_time)
        end = self._parse_time(record.end_time)
        if start is None:
            errors.append("start_time is invalid")
        if end is None:
            errors.append("end_time is invalid")
        if start is not None and end is not None and end <= start:
            errors.append("end_time must be after start_time")

        if errors:
            logger.debug("Movement for %s failed validation: %s", record.vehicle_id, "; ".join(errors))
        return ValidationResult(
            valid=not errors,
            errors=errors,
            suggestions=suggestions,
            normalized=normalized,
        )

    @staticmethod
    def _parse_time(value: str) -> Optional[datetime]:
        # Bare HH:MM values share one anchor day so they stay comparable
        return parse_datetime(value, _ANCHOR_DAY) if value else None


_ANCHOR_DAY = date(1970, 1, 1)
