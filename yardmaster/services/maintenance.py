import logging
from datetime import date
from typing import List, Optional

from yardmaster.core.config import PlanningPolicy
from yardmaster.schemas.fleet import ServiceCheckType, WorkOrderStatus
from yardmaster.schemas.proposals import ProposalBase, ProposalKind, WorkOrderRef
from yardmaster.services.proposals import ProposalBuilder
from yardmaster.services.snapshot import DomainSnapshot

logger = logging.getLogger(__name__)

_CHECK_KINDS = {
    ServiceCheckType.A: (ProposalKind.A_SERVICE_CHECK, "A_Service_Check", "a_service_check"),
    ServiceCheckType.B: (ProposalKind.B_SERVICE_CHECK, "B_Service_Check", "b_service_check"),
}


class MaintenancePlanner:
    """Moves for open work orders and overdue A/B service checks.

    Neither category is capacity bound: every open or overdue item yields a
    proposal in each pass until it is committed.
    """

    def __init__(self, builder: ProposalBuilder, policy: Optional[PlanningPolicy] = None):
        self.builder = builder
        self.policy = policy or PlanningPolicy()

    def _source(self, snapshot: DomainSnapshot, vehicle_id: str) -> str:
        return snapshot.current_location(vehicle_id) or self.policy.default_source

    def plan_work_orders(self, snapshot: DomainSnapshot) -> List[ProposalBase]:
        """One maintenance move per Open work order, oldest opened first."""
        snapshot.require("job_cards")
        open_orders = [w for w in snapshot.work_orders if w.status == WorkOrderStatus.OPEN]
        open_orders.sort(key=lambda w: (w.opened_date is None, w.opened_date or date.min))

        proposals = []
        for order in open_orders:
            vehicle_id = snapshot.display_id(order.vehicle_id)
            proposals.append(self.builder.build(
                ProposalKind.MAINTENANCE,
                vehicle_id,
                self._source(snapshot, vehicle_id),
                self.policy.maintenance_bay,
                "Maintenance",
                work_order=WorkOrderRef(work_order_id=order.work_order_id or None, vehicle_id=vehicle_id),
            ))
        logger.info("Planned %d maintenance proposal(s)", len(proposals))
        return proposals

    def interval_days(self, check_type: ServiceCheckType) -> int:
        if check_type == ServiceCheckType.A:
            return self.policy.a_service_interval_days
        return self.policy.b_service_interval_days

    def plan_service_checks(self, snapshot: DomainSnapshot, today: Optional[date] = None) -> List[ProposalBase]:
        """
        Inspection moves for overdue A and B checks.

        Overdue is measured in whole days against ``today`` as a date, so a
        check done exactly the interval ago is due. Rows without a readable
        check date are not treated as overdue.
        """
        today = today or snapshot.today
        proposals = []
        for check_type in (ServiceCheckType.A, ServiceCheckType.B):
            kind, action, table = _CHECK_KINDS[check_type]
            snapshot.require(table)
            interval = self.interval_days(check_type)
            for check in snapshot.service_checks_of(check_type):
                if check.check_date is None or (today - check.check_date).days < interval:
                    continue
                vehicle_id = snapshot.display_id(check.vehicle_id)
                proposals.append(self.builder.build(
                    kind,
                    vehicle_id,
                    self._source(snapshot, vehicle_id),
                    self.policy.inspection_bay,
                    action,
                    check_date=today,
                ))
        logger.info("Planned %d service check proposal(s)", len(proposals))
        return proposals
