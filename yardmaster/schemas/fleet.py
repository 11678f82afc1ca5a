from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from yardmaster.services.schema_map import (
    normalize_key, parse_clock_minutes, parse_date, parse_datetime, parse_number,
)


def vehicle_key(vehicle_id: Optional[str]) -> str:
    """Comparison key for vehicle identifiers (trimmed, case-insensitive)."""
    return str(vehicle_id or "").strip().lower()


class VehicleStatus(str, Enum):
    IN_SERVICE = "In-Service"
    STANDBY = "Standby"
    HELD_FOR_MAINTENANCE = "Held-for-Maintenance"
    HELD_FOR_INSPECTION = "Held-for-Inspection"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["VehicleStatus"]:
        return _VEHICLE_STATUS_SYNONYMS.get(normalize_key(value))


_VEHICLE_STATUS_SYNONYMS: Dict[str, VehicleStatus] = {
    "inservice": VehicleStatus.IN_SERVICE,
    "service": VehicleStatus.IN_SERVICE,
    "active": VehicleStatus.IN_SERVICE,
    "standby": VehicleStatus.STANDBY,
    "heldformaintenance": VehicleStatus.HELD_FOR_MAINTENANCE,
    "heldmaintenance": VehicleStatus.HELD_FOR_MAINTENANCE,
    "maintenance": VehicleStatus.HELD_FOR_MAINTENANCE,
    "ibl": VehicleStatus.HELD_FOR_MAINTENANCE,
    "heldforinspection": VehicleStatus.HELD_FOR_INSPECTION,
    "heldinspection": VehicleStatus.HELD_FOR_INSPECTION,
    "inspection": VehicleStatus.HELD_FOR_INSPECTION,
}


class WorkOrderStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In-Progress"
    CLOSED = "Closed"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["WorkOrderStatus"]:
        key = normalize_key(value)
        if key == "open":
            return cls.OPEN
        if key in ("inprogress", "progress", "wip"):
            return cls.IN_PROGRESS
        if key in ("closed", "complete", "completed", "done"):
            return cls.CLOSED
        return None


class CertificateStatus(str, Enum):
    VALID = "Valid"
    PENDING = "Pending"
    EXPIRED = "Expired"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CertificateStatus"]:
        key = normalize_key(value)
        if key == "valid":
            return cls.VALID
        if key in ("pending", "awaitingapproval", "awaiting"):
            return cls.PENDING
        if key == "expired":
            return cls.EXPIRED
        return None


class CleaningTier(str, Enum):
    LIGHT = "light"
    DEEP = "deep"


class CleaningState(str, Enum):
    CLEAN = "Clean"
    REQUIRED = "Required"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CleaningState"]:
        key = normalize_key(value)
        if key == "clean":
            return cls.CLEAN
        if key == "required":
            return cls.REQUIRED
        return None


class Vehicle(BaseModel):
    vehicle_id: str
    commissioning_year: Optional[int] = None
    base_km: Optional[float] = None
    status: Optional[VehicleStatus] = None
    status_raw: str = ""
    last_service_type: str = ""
    last_service_date: Optional[date] = None

    @property
    def key(self) -> str:
        return vehicle_key(self.vehicle_id)

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "Vehicle":
        year = parse_number(fields.get("commissioning_year"))
        return cls(
            vehicle_id=fields.get("vehicle_id", "").strip(),
            commissioning_year=int(year) if year is not None else None,
            base_km=parse_number(fields.get("base_km")),
            status=VehicleStatus.parse(fields.get("status")),
            status_raw=fields.get("status", ""),
            last_service_type=fields.get("last_service_type", "").strip().upper(),
            last_service_date=parse_date(fields.get("last_service_date")),
        )


class WorkOrder(BaseModel):
    work_order_id: str = ""
    vehicle_id: str
    description: str = ""
    opened_date: Optional[date] = None
    due_date: Optional[date] = None
    closed_date: Optional[date] = None
    status: Optional[WorkOrderStatus] = None
    status_raw: str = ""

    @property
    def is_pending(self) -> bool:
        """Open and In-Progress work orders both block dispatch."""
        return self.status in (WorkOrderStatus.OPEN, WorkOrderStatus.IN_PROGRESS)

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "WorkOrder":
        return cls(
            work_order_id=fields.get("work_order_id", ""),
            vehicle_id=fields.get("vehicle_id", ""),
            description=fields.get("description", ""),
            opened_date=parse_date(fields.get("opened_date")),
            due_date=parse_date(fields.get("due_date")),
            closed_date=parse_date(fields.get("closed_date")),
            status=WorkOrderStatus.parse(fields.get("status")),
            status_raw=fields.get("status", ""),
        )


class Certificate(BaseModel):
    vehicle_id: str
    certificate_type: str = ""
    issued_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: Optional[CertificateStatus] = None
    status_raw: str = ""

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "Certificate":
        return cls(
            vehicle_id=fields.get("vehicle_id", ""),
            certificate_type=fields.get("certificate_type", ""),
            issued_date=parse_date(fields.get("issued_date")),
            expiry_date=parse_date(fields.get("expiry_date")),
            status=CertificateStatus.parse(fields.get("status")),
            status_raw=fields.get("status", ""),
        )


class MileageRecord(BaseModel):
    vehicle_id: str
    total_km: Optional[float] = None
    daily_avg_km: Optional[float] = None
    last_updated: str = ""

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "MileageRecord":
        return cls(
            vehicle_id=fields.get("vehicle_id", ""),
            total_km=parse_number(fields.get("total_km")),
            daily_avg_km=parse_number(fields.get("daily_avg_km")),
            last_updated=fields.get("last_updated", ""),
        )


class CleaningStatus(BaseModel):
    vehicle_id: str
    tier: CleaningTier
    last_cleaning_date: Optional[date] = None
    status: Optional[CleaningState] = None

    def staleness_days(self, today: date) -> Optional[int]:
        if self.last_cleaning_date is None:
            return None
        return (today - self.last_cleaning_date).days

    def is_required(self, today: date, stale_days: int) -> bool:
        """Explicit Required, or Clean but at least ``stale_days`` old."""
        if self.status == CleaningState.REQUIRED:
            return True
        staleness = self.staleness_days(today)
        return self.status == CleaningState.CLEAN and staleness is not None and staleness >= stale_days

    @classmethod
    def from_fields(cls, fields: Dict[str, str], tier: CleaningTier) -> "CleaningStatus":
        return cls(
            vehicle_id=fields.get("vehicle_id", ""),
            tier=tier,
            last_cleaning_date=parse_date(fields.get("last_cleaning_date")),
            status=CleaningState.parse(fields.get("status")),
        )


SlotIdentity = Tuple[str, str, str]


def slot_identity(slot_date: str, start_time: str, end_time: str) -> SlotIdentity:
    """Identity of a cleaning slot row, tolerant to date/time formatting."""
    parsed = parse_date(slot_date)
    start = parse_clock_minutes(start_time)
    end = parse_clock_minutes(end_time)
    return (
        parsed.isoformat() if parsed else normalize_key(slot_date),
        str(start) if start is not None else normalize_key(start_time),
        str(end) if end is not None else normalize_key(end_time),
    )


class CleaningSlot(BaseModel):
    """A 10-minute unit of cleaning capacity as stored in the slot table."""
    date: str
    start_time: str
    end_time: str
    status: str = ""

    @property
    def slot_date(self) -> Optional[date]:
        return parse_date(self.date)

    @property
    def start_minutes(self) -> Optional[int]:
        return parse_clock_minutes(self.start_time)

    @property
    def is_available(self) -> bool:
        return normalize_key(self.status) == "available"

    @property
    def identity(self) -> SlotIdentity:
        return slot_identity(self.date, self.start_time, self.end_time)

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "CleaningSlot":
        return cls(
            date=fields.get("date", ""),
            start_time=fields.get("start_time", ""),
            end_time=fields.get("end_time", ""),
            status=fields.get("status", ""),
        )


class TopologyEdge(BaseModel):
    source: str
    destination: str
    duration_minutes: Optional[float] = None
    energy_kwh: float = 0.0

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "TopologyEdge":
        return cls(
            source=fields.get("source", ""),
            destination=fields.get("destination", ""),
            duration_minutes=parse_number(fields.get("duration_minutes")),
            energy_kwh=parse_number(fields.get("energy_kwh")) or 0.0,
        )


class MovementRecord(BaseModel):
    """One row of the movement log, timestamps kept in store format."""
    vehicle_id: str = ""
    source: str = ""
    destination: str = ""
    start_time: str = ""
    end_time: str = ""
    action: str = ""

    def starts_at(self, day: Optional[date] = None) -> Optional[datetime]:
        return parse_datetime(self.start_time, day)

    def ends_at(self, day: Optional[date] = None) -> Optional[datetime]:
        return parse_datetime(self.end_time, day)

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "MovementRecord":
        return cls(**{name: fields.get(name, "") for name in cls.model_fields})


class BrandingCampaign(BaseModel):
    record_id: str = ""
    campaign_id: str = ""
    vehicle_id: str
    required_hours: Optional[float] = None
    accumulated_hours: Optional[float] = None
    remaining_hours: Optional[float] = Field(None, description="Value as stored in the table")
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def remaining(self) -> float:
        """max(0, required - accumulated), the stored value when required is unknown."""
        if self.required_hours is not None:
            return max(0.0, self.required_hours - (self.accumulated_hours or 0.0))
        return max(0.0, self.remaining_hours or 0.0)

    def is_active(self, today: date) -> bool:
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= today <= self.end_date

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "BrandingCampaign":
        return cls(
            record_id=fields.get("record_id", ""),
            campaign_id=fields.get("campaign_id", ""),
            vehicle_id=fields.get("vehicle_id", ""),
            required_hours=parse_number(fields.get("required_hours")),
            accumulated_hours=parse_number(fields.get("accumulated_hours")),
            remaining_hours=parse_number(fields.get("remaining_hours")),
            start_date=parse_date(fields.get("start_date")),
            end_date=parse_date(fields.get("end_date")),
        )


class ServiceCheckType(str, Enum):
    A = "A"
    B = "B"


class ServiceCheck(BaseModel):
    vehicle_id: str
    check_type: ServiceCheckType
    check_date: Optional[date] = None

    @classmethod
    def from_fields(cls, fields: Dict[str, str], check_type: ServiceCheckType) -> "ServiceCheck":
        return cls(
            vehicle_id=fields.get("vehicle_id", ""),
            check_type=check_type,
            check_date=parse_date(fields.get("check_date")),
        )
