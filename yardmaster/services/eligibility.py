"""
Dispatch eligibility.

A vehicle may be dispatched only when every hard constraint passes:
dispatchable status, no pending work order, all certificates Valid and no
overdue interval service. Cleaning freshness is a separate check used by the
entrance planner.
"""
import logging
from datetime import date
from typing import List, Optional, Tuple

from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.fleet import CertificateStatus, CleaningTier, Vehicle, VehicleStatus
from yardmaster.schemas.reports import EligibilityReport, EligibilityResult, VehicleEligibility
from yardmaster.services.snapshot import DomainSnapshot

logger = logging.getLogger(__name__)

DISPATCHABLE_STATUSES = (
    VehicleStatus.IN_SERVICE,
    VehicleStatus.STANDBY,
    # Held-for-Maintenance stays dispatchable to match depot practice
    VehicleStatus.HELD_FOR_MAINTENANCE,
)

A_SERVICE_TYPES = ("A", "C")
B_SERVICE_TYPES = ("B", "D")


class EligibilityFilter:
    def __init__(self, policy: Optional[PlanningPolicy] = None):
        self.policy = policy or PlanningPolicy()

    def is_eligible(self, vehicle_id: str, snapshot: DomainSnapshot,
                    today: Optional[date] = None) -> EligibilityResult:
        """
        Evaluate the hard dispatch constraints for one vehicle.

        Args:
            vehicle_id: Vehicle identifier, matched case-insensitively
            snapshot: Snapshot of the current planning pass
            today: Reference date, the snapshot date when omitted

        Returns:
            EligibilityResult with every failed rule listed in ``reasons``
        """
        today = today or snapshot.today
        vehicle = snapshot.vehicle(vehicle_id)
        if vehicle is None:
            return EligibilityResult(
                vehicle_id=vehicle_id.strip(), eligible=False, reasons=["not in vehicle master"],
            )
        reasons = (
            self._status_reasons(vehicle)
            + self._work_order_reasons(vehicle, snapshot)
            + self._certificate_reasons(vehicle, snapshot)
            + self._service_reasons(vehicle, today)
        )
        return EligibilityResult(vehicle_id=vehicle.vehicle_id, eligible=not reasons, reasons=reasons)

    def _status_reasons(self, vehicle: Vehicle) -> List[str]:
        if vehicle.status in DISPATCHABLE_STATUSES:
            return []
        shown = vehicle.status.value if vehicle.status else (vehicle.status_raw or "unknown")
        return [f"status {shown} is not dispatchable"]

    def _work_order_reasons(self, vehicle: Vehicle, snapshot: DomainSnapshot) -> List[str]:
        pending = [w for w in snapshot.work_orders_for(vehicle.vehicle_id) if w.is_pending]
        if not pending:
            return []
        ids = ", ".join(w.work_order_id or "?" for w in pending)
        return [f"{len(pending)} pending work order(s): {ids}"]

    def _certificate_reasons(self, vehicle: Vehicle, snapshot: DomainSnapshot) -> List[str]:
        certificates = snapshot.certificates_for(vehicle.vehicle_id)
        if not certificates:
            return ["no fitness certificate on record"]
        reasons = []
        for cert in certificates:
            if cert.status != CertificateStatus.VALID:
                shown = cert.status.value if cert.status else (cert.status_raw or "unknown")
                reasons.append(f"{cert.certificate_type or 'fitness'} certificate is {shown}")
        return reasons

    def service_overdue(self, vehicle: Vehicle, today: date) -> Tuple[bool, bool]:
        """(A overdue, B overdue) from the vehicle's last service type and date."""
        if vehicle.last_service_date is None:
            return False, False
        days = (today - vehicle.last_service_date).days
        service_type = vehicle.last_service_type[:1]
        a_due = service_type in A_SERVICE_TYPES and days >= self.policy.a_service_interval_days
        b_due = service_type in B_SERVICE_TYPES and days >= self.policy.b_service_interval_days
        return a_due, b_due

    def _service_reasons(self, vehicle: Vehicle, today: date) -> List[str]:
        a_due, b_due = self.service_overdue(vehicle, today)
        days = (today - vehicle.last_service_date).days if vehicle.last_service_date else 0
        reasons = []
        if a_due:
            reasons.append(f"A-service overdue ({days} days since last service)")
        if b_due:
            reasons.append(f"B-service overdue ({days} days since last service)")
        return reasons

    def stale_days(self, tier: CleaningTier) -> int:
        if tier == CleaningTier.DEEP:
            return self.policy.deep_clean_stale_days
        return self.policy.light_clean_stale_days

    def is_cleaning_fresh(self, vehicle_id: str, snapshot: DomainSnapshot,
                          today: Optional[date] = None) -> bool:
        """True unless one of the vehicle's cleaning statuses is derived-required."""
        today = today or snapshot.today
        return not any(
            status.is_required(today, self.stale_days(status.tier))
            for status in snapshot.cleaning_for(vehicle_id)
        )

    def dispatchable(self, snapshot: DomainSnapshot, today: Optional[date] = None) -> List[str]:
        """Vehicle master ids that are eligible and clean, in table order."""
        today = today or snapshot.today
        return [
            vehicle_id for vehicle_id in snapshot.vehicle_ids()
            if self.is_eligible(vehicle_id, snapshot, today).eligible
            and self.is_cleaning_fresh(vehicle_id, snapshot, today)
        ]

    def build_report(self, snapshot: DomainSnapshot, today: Optional[date] = None) -> EligibilityReport:
        today = today or snapshot.today
        report = EligibilityReport(generated_on=today)
        for vehicle_id in snapshot.vehicle_ids():
            row = self.describe(vehicle_id, snapshot, today)
            (report.eligible if row.eligible else report.ineligible).append(row)
            if row.cleaning_required:
                report.cleaning_required.append(row)
            if row.maintenance_due:
                report.maintenance_due.append(row)
            if row.certificate_issue:
                report.certificate_issues.append(row)
        logger.info(
            "Eligibility report for %s: %d eligible, %d ineligible",
            today, len(report.eligible), len(report.ineligible),
        )
        return report

    def describe(self, vehicle_id: str, snapshot: DomainSnapshot,
                 today: Optional[date] = None) -> VehicleEligibility:
        """Detailed eligibility row for one vehicle of the master table."""
        today = today or snapshot.today
        result = self.is_eligible(vehicle_id, snapshot, today)
        vehicle = snapshot.vehicle(vehicle_id)
        if vehicle is None:
            return VehicleEligibility(**result.model_dump())
        a_due, b_due = self.service_overdue(vehicle, today)
        has_pending = bool(self._work_order_reasons(vehicle, snapshot))
        return VehicleEligibility(
            **result.model_dump(),
            status=vehicle.status.value if vehicle.status else vehicle.status_raw,
            last_service_type=vehicle.last_service_type,
            last_service_date=vehicle.last_service_date,
            days_since_service=(today - vehicle.last_service_date).days if vehicle.last_service_date else None,
            cleaning_required=not self.is_cleaning_fresh(vehicle_id, snapshot, today),
            maintenance_due=a_due or b_due or has_pending,
            certificate_issue=bool(self._certificate_reasons(vehicle, snapshot)),
        )
