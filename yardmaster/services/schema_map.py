"""
Header-driven schema mapping for the external store tables.

Every table is read with its first row as header. Column names are spelled
differently across sheets ("Train_ID", "Train ID", "TrainNo"...), so each
table declares the synonyms it accepts per internal field and the mapping is
resolved once per load into a ``ColumnMap``.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Tuple

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y", "%d-%b-%Y")
DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


class SchemaError(Exception):
    """Raised when a table is missing a column an operation depends on."""

    def __init__(self, table: str, missing: Iterable[str]):
        self.table = table
        self.missing = list(missing)
        super().__init__(f"{table} headers missing: {', '.join(self.missing)}")


def normalize_key(value: Any) -> str:
    """Lowercase alphanumerics only, used for header and id matching."""
    return re.sub(r"[^a-z0-9]", "", str(value if value is not None else "").lower())


@dataclass(frozen=True)
class ColumnMap:
    """Resolved ``field -> header`` mapping for one table load."""
    table: str
    columns: Dict[str, str]

    def has(self, field_name: str) -> bool:
        return field_name in self.columns

    def header(self, field_name: str) -> Optional[str]:
        return self.columns.get(field_name)

    def extract(self, row: Dict[str, Any]) -> Dict[str, str]:
        """Project a header-keyed row onto internal field names."""
        out = {}
        for name, header in self.columns.items():
            value = row.get(header, "")
            out[name] = "" if value is None else str(value).strip()
        return out

    def to_row(self, values: Dict[str, Any]) -> Dict[str, str]:
        """Map internal field values back onto this table's headers."""
        return {
            self.columns[name]: "" if value is None else str(value)
            for name, value in values.items()
            if name in self.columns
        }


@dataclass(frozen=True)
class TableSchema:
    table: str
    fields: Dict[str, Tuple[str, ...]]
    required: Tuple[str, ...] = field(default_factory=tuple)

    def resolve(self, headers: List[str], required: Optional[Iterable[str]] = None) -> ColumnMap:
        """Resolve this schema against a header row.

        Args:
            headers: Header row of the table as read from the store
            required: Fields that must be present, defaults to the schema's own

        Returns:
            ColumnMap for the resolved fields

        Raises:
            SchemaError: If a required field has no matching header
        """
        columns: Dict[str, str] = {}
        for name, synonyms in self.fields.items():
            wanted = {normalize_key(s) for s in synonyms}
            for header in headers:
                if normalize_key(header) in wanted:
                    columns[name] = header
                    break
        needed = self.required if required is None else tuple(required)
        missing = [name for name in needed if name not in columns]
        if missing:
            raise SchemaError(self.table, missing)
        return ColumnMap(table=self.table, columns=columns)


VEHICLE_ID = ("Train_ID", "Train ID", "TrainId", "Train_No", "TrainNo", "Train_Number", "Vehicle_ID", "Rake_ID")

VEHICLES = TableSchema("vehicles", {
    "vehicle_id": VEHICLE_ID,
    "commissioning_year": ("Commissioning_Year", "Year_Commissioned", "Year"),
    "base_km": ("Base_KM", "Base_Mileage", "Base_Distance"),
    "status": ("Current_Status", "Status"),
    "last_service_type": ("Last_Service_Type", "Service_Type"),
    "last_service_date": ("Last_Service_Date", "Service_Date"),
}, required=("vehicle_id", "status"))

JOB_CARDS = TableSchema("job_cards", {
    "work_order_id": ("JobCard_ID", "Job_Card_ID", "Work_Order_ID", "WorkOrder_ID", "WO_ID"),
    "vehicle_id": VEHICLE_ID,
    "description": ("Description", "Job_Description", "Details"),
    "opened_date": ("Opened_Date", "Open_Date", "Created_Date"),
    "due_date": ("Due_Date", "Target_Date"),
    "closed_date": ("Closed_Date", "Close_Date"),
    "status": ("Status",),
}, required=("vehicle_id", "status"))

FITNESS_CERTIFICATES = TableSchema("fitness_certificates", {
    "vehicle_id": VEHICLE_ID,
    "certificate_type": ("Certificate_Type", "Cert_Type", "Type"),
    "issued_date": ("Issued_Date", "Issue_Date"),
    "expiry_date": ("Expiry_Date", "Valid_Until"),
    "status": ("Status",),
}, required=("vehicle_id", "status"))

MILEAGE = TableSchema("mileage", {
    "vehicle_id": VEHICLE_ID,
    "total_km": ("Total_KM", "Cumulative_KM", "Total_Distance", "Odometer"),
    "daily_avg_km": ("Daily_Avg_KM", "Average_Daily_KM", "Avg_KM"),
    "last_updated": ("Last_Updated", "Updated_At", "Timestamp"),
}, required=("vehicle_id",))

_CLEANING_FIELDS = {
    "vehicle_id": VEHICLE_ID,
    "last_cleaning_date": ("Last_Cleaning_Date", "Last_Cleaned", "Cleaning_Date"),
    "status": ("Cleanliness_Status", "Cleaning_Status", "Status"),
}
LIGHT_CLEAN = TableSchema("light_clean", _CLEANING_FIELDS, required=("vehicle_id",))
DEEP_CLEAN = TableSchema("deep_clean", _CLEANING_FIELDS, required=("vehicle_id",))

CLEANING_SLOTS = TableSchema("cleaning_slots", {
    "date": ("Date", "Slot_Date"),
    "start_time": ("Start_Time", "Start"),
    "end_time": ("End_Time", "End"),
    "status": ("Status", "Slot_Status"),
}, required=("date", "start_time", "end_time", "status"))

STABLING_GEOMETRY = TableSchema("stabling_geometry", {
    "source": ("Source", "From"),
    "destination": ("Destination", "To"),
    "duration_minutes": ("Travel_Duration_Minutes", "Duration_Minutes", "Minutes", "TravelTime"),
    "energy_kwh": ("Energy_Cost_kWh", "Energy_kWh", "Energy", "kWh"),
}, required=("source", "destination"))

BRANDING = TableSchema("branding", {
    "record_id": ("Record_ID",),
    "campaign_id": ("Campaign_ID", "Campaign"),
    "vehicle_id": VEHICLE_ID,
    "required_hours": ("Required_Hours", "Target_Hours"),
    "accumulated_hours": ("Accumulated_Hours", "AccumulatedHours", "Accumulated"),
    "remaining_hours": ("Remaining_Hours", "RemainingHours"),
    "start_date": ("Start_Date",),
    "end_date": ("End_Date",),
}, required=("vehicle_id",))

LOGS = TableSchema("logs", {
    "vehicle_id": VEHICLE_ID,
    "source": ("Source", "From"),
    "destination": ("Destination", "To"),
    "start_time": ("Start_Time", "Start"),
    "end_time": ("End_Time", "End"),
    "action": ("Action", "Reason"),
}, required=("vehicle_id", "source", "destination"))

A_SERVICE_CHECK = TableSchema("a_service_check", {
    "vehicle_id": VEHICLE_ID,
    "check_date": ("a_check_date", "A_Check_Date", "A_Check"),
}, required=("vehicle_id", "check_date"))

B_SERVICE_CHECK = TableSchema("b_service_check", {
    "vehicle_id": VEHICLE_ID,
    "check_date": ("b_check_date", "B_Check_Date", "B_Check"),
}, required=("vehicle_id", "check_date"))

SCHEMAS: Dict[str, TableSchema] = {
    s.table: s for s in (
        VEHICLES, JOB_CARDS, FITNESS_CERTIFICATES, MILEAGE, LIGHT_CLEAN, DEEP_CLEAN,
        CLEANING_SLOTS, STABLING_GEOMETRY, BRANDING, LOGS, A_SERVICE_CHECK, B_SERVICE_CHECK,
    )
}


# Value parsing

def parse_number(value: Any) -> Optional[float]:
    """Parse numbers like ``"12,345"`` or ``" 7.5 "``; None when not numeric."""
    if value is None:
        return None
    text = re.sub(r"[\s,]", "", str(value))
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return None if math.isnan(number) else number


def format_number(value: float) -> str:
    """Render a number the way the sheets store it (no trailing zeros)."""
    value = round(value, 2)
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def parse_clock_minutes(value: Any) -> Optional[int]:
    """Minutes since midnight for ``HH:MM`` strings."""
    match = _CLOCK_RE.match(str(value or "").strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def parse_datetime(value: Any, day: Optional[date] = None) -> Optional[datetime]:
    """Parse a store timestamp.

    Accepts ``m/d/yyyy HH:MM``, ISO 8601 and bare ``HH:MM`` (anchored to
    ``day``, today when omitted). Timezone-aware values are converted to
    local naive time.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value or "").strip()
    if not text:
        return None
    minutes = parse_clock_minutes(text)
    if minutes is not None:
        anchor = day or date.today()
        return datetime.combine(anchor, time(minutes // 60, minutes % 60))
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text or parse_clock_minutes(text) is not None:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    parsed = parse_datetime(text)
    return parsed.date() if parsed else None


def format_sheet_date(value: date) -> str:
    """``m/dd/yyyy``: month without padding, day zero-padded."""
    return f"{value.month}/{value.day:02d}/{value.year}"


def format_sheet_datetime(value: datetime) -> str:
    return f"{format_sheet_date(value.date())} {value.hour:02d}:{value.minute:02d}"
