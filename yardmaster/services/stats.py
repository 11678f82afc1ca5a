from datetime import date
from typing import Optional

from yardmaster.schemas.fleet import BrandingCampaign, CertificateStatus
from yardmaster.schemas.reports import FleetStats
from yardmaster.services.snapshot import DomainSnapshot


def _campaign_running(campaign: BrandingCampaign, today: date) -> bool:
    if campaign.start_date is None and campaign.end_date is None:
        # Undated rows count while hours remain
        return campaign.remaining > 0
    return campaign.is_active(today)


def fleet_stats(snapshot: DomainSnapshot, today: Optional[date] = None) -> FleetStats:
    """Dashboard counters computed from one snapshot."""
    today = today or snapshot.today
    return FleetStats(
        total_vehicles=len(snapshot.vehicle_ids()),
        active_work_orders=sum(1 for w in snapshot.work_orders if w.is_pending),
        expired_certificates=sum(
            1 for c in snapshot.certificates
            if c.status == CertificateStatus.EXPIRED or (c.expiry_date is not None and c.expiry_date < today)
        ),
        active_campaigns=sum(1 for c in snapshot.campaigns if _campaign_running(c, today)),
    )
