"""
Status Aggregator
=================

Pure functions deriving an organization's overall status from its
services. The result is computed on every read and never stored.

Precedence (first match wins):
    major_outage          -> outage
    partial_outage        -> degraded
    degraded_performance  -> degraded
    under_maintenance     -> maintenance
    all operational       -> operational
    no services           -> unknown
"""

from typing import Any, Iterable, Optional

from statuspage.core.enums import (
    CLOSED_INCIDENT_STATUSES,
    IncidentStatus,
    OverallStatus,
    ServiceStatus,
)
from statuspage.schemas.organization import StatusSummary

# Most severe first
SERVICE_STATUS_PRECEDENCE = (
    (ServiceStatus.MAJOR_OUTAGE, OverallStatus.OUTAGE),
    (ServiceStatus.PARTIAL_OUTAGE, OverallStatus.DEGRADED),
    (ServiceStatus.DEGRADED_PERFORMANCE, OverallStatus.DEGRADED),
    (ServiceStatus.UNDER_MAINTENANCE, OverallStatus.MAINTENANCE),
    (ServiceStatus.OPERATIONAL, OverallStatus.OPERATIONAL),
)


def _status_of(service: Any) -> ServiceStatus:
    value = service if isinstance(service, (str, ServiceStatus)) else service.status
    return ServiceStatus(value)


def worst_service_status(services: Iterable[Any]) -> Optional[ServiceStatus]:
    """
    Most severe service-level status present, or None for no services.

    Accepts service rows, ServiceRead models or bare status values.
    """
    present = {_status_of(s) for s in services}
    for status, _ in SERVICE_STATUS_PRECEDENCE:
        if status in present:
            return status
    return None


def overall_status(services: Iterable[Any]) -> OverallStatus:
    worst = worst_service_status(services)
    if worst is None:
        return OverallStatus.UNKNOWN
    return dict(SERVICE_STATUS_PRECEDENCE)[worst]


def is_active_incident(incident: Any) -> bool:
    return IncidentStatus(incident.status) not in CLOSED_INCIDENT_STATUSES


def summarize(services: Iterable[Any], incidents: Iterable[Any]) -> StatusSummary:
    services = list(services)
    worst = worst_service_status(services)
    return StatusSummary(
        overall_status=overall_status(services),
        worst_service_status=worst,
        service_count=len(services),
        active_incident_count=sum(1 for i in incidents if is_active_incident(i)),
    )
