"""
Status Aggregator Unit Tests
============================
"""

from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st

from statuspage.core.enums import IncidentStatus, OverallStatus, ServiceStatus
from statuspage.services.status_aggregator import (
    SERVICE_STATUS_PRECEDENCE,
    is_active_incident,
    overall_status,
    summarize,
    worst_service_status,
)


pytestmark = pytest.mark.unit


class TestOverallStatus:
    def test_no_services_is_unknown(self):
        assert overall_status([]) == OverallStatus.UNKNOWN
        assert worst_service_status([]) is None

    def test_all_operational(self):
        assert overall_status(["operational", "operational"]) == OverallStatus.OPERATIONAL

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            (["operational", "major_outage", "degraded_performance"], OverallStatus.OUTAGE),
            (["operational", "partial_outage"], OverallStatus.DEGRADED),
            (["degraded_performance", "under_maintenance"], OverallStatus.DEGRADED),
            (["operational", "under_maintenance"], OverallStatus.MAINTENANCE),
        ],
    )
    def test_worst_status_wins(self, statuses, expected):
        assert overall_status(statuses) == expected

    def test_accepts_objects_with_status(self):
        services = [SimpleNamespace(status="partial_outage"), SimpleNamespace(status="operational")]

        assert worst_service_status(services) == ServiceStatus.PARTIAL_OUTAGE

    @given(st.lists(st.sampled_from(list(ServiceStatus)), min_size=1))
    def test_result_is_mapping_of_most_severe(self, statuses):
        ranking = [status for status, _ in SERVICE_STATUS_PRECEDENCE]
        most_severe = min(statuses, key=ranking.index)

        assert worst_service_status(statuses) == most_severe
        assert overall_status(statuses) == dict(SERVICE_STATUS_PRECEDENCE)[most_severe]


class TestSummary:
    def test_active_incidents_exclude_closed(self):
        incidents = [
            SimpleNamespace(status=IncidentStatus.INVESTIGATING),
            SimpleNamespace(status="resolved"),
            SimpleNamespace(status="completed"),
            SimpleNamespace(status="scheduled"),
        ]

        summary = summarize(["operational", "major_outage"], incidents)

        assert summary.overall_status == OverallStatus.OUTAGE
        assert summary.worst_service_status == ServiceStatus.MAJOR_OUTAGE
        assert summary.service_count == 2
        assert summary.active_incident_count == 2

    def test_is_active_incident(self):
        assert is_active_incident(SimpleNamespace(status="monitoring"))
        assert not is_active_incident(SimpleNamespace(status="operational"))
