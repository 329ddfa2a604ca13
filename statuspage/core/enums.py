"""
Enumeration Module
==================

Defines enumerations used across the application.
"""

from enum import Enum


class ServiceStatus(str, Enum):
    """Operational state of a single service."""

    OPERATIONAL = "operational"
    DEGRADED_PERFORMANCE = "degraded_performance"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"
    UNDER_MAINTENANCE = "under_maintenance"


class IncidentStatus(str, Enum):
    """Lifecycle statuses for incidents and scheduled maintenance."""

    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFYING = "verifying"
    UNDER_MAINTENANCE = "under_maintenance"
    DEGRADED_PERFORMANCE = "degraded_performance"
    PARTIAL_OUTAGE = "partial_outage"
    FULL_OUTAGE = "full_outage"
    OPERATIONAL = "operational"


# Statuses after which an incident no longer counts as active on the public page
CLOSED_INCIDENT_STATUSES = frozenset({
    IncidentStatus.RESOLVED,
    IncidentStatus.COMPLETED,
    IncidentStatus.OPERATIONAL,
})


class IncidentSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class OverallStatus(str, Enum):
    """Organization-wide status derived from its services."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"
    MAINTENANCE = "maintenance"
    UNKNOWN = "unknown"


class EventType(str, Enum):
    """Real-time event names emitted to subscribers."""

    INCIDENT_CREATED = "incidentCreated"
    INCIDENT_UPDATED = "incidentUpdated"
    INCIDENT_DELETED = "incidentDeleted"
    SERVICE_CREATED = "serviceCreated"
    SERVICE_UPDATED = "serviceUpdated"
    SERVICE_DELETED = "serviceDeleted"
