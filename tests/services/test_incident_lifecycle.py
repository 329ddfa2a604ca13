"""
Incident Lifecycle Unit Tests
=============================

Tests for IncidentLifecycle covering:
- Creation with the initial audit entry and service associations
- Partial updates and the generated audit text
- Progress updates and resolved_at stamping
- Deletion
- Tenant scoping and post-commit broadcasts
"""

from datetime import datetime, timedelta, UTC
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, func, select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from statuspage.core.enums import IncidentSeverity, IncidentStatus
from statuspage.core.exceptions import (
    IncidentNotFoundError,
    MissingFieldError,
    StorageError,
    StorageTimeoutError,
    UnknownServiceError,
    ValidationError,
)
from statuspage.core.tenant.tenant_query import TenantQuery
from statuspage.db.base import Base
from statuspage.models.incident import Incident, IncidentUpdate, incident_services
from statuspage.models.organization import Organization
from statuspage.schemas.events import topic_for_organization
from statuspage.services.incident_lifecycle import (
    IncidentLifecycle,
    initial_update_text,
    join_clauses,
)


pytestmark = pytest.mark.unit


def _subscribe(registry, organization):
    registry.connect("watcher")
    registry.join_topic("watcher", organization.id)


class TestHelpers:
    def test_initial_text_for_incident(self):
        assert initial_update_text("API down", None) == "Incident reported: API down"

    def test_initial_text_for_maintenance(self):
        when = datetime(2030, 1, 1, tzinfo=UTC)
        assert initial_update_text("DB upgrade", when) == "Maintenance scheduled: DB upgrade"

    def test_join_clauses(self):
        assert join_clauses(["A", "B"]) == "A. B."
        assert join_clauses(["Only"]) == "Only."


class TestCreateIncident:
    """Tests for IncidentLifecycle.create."""

    def test_create_writes_initial_update(
        self, incident_lifecycle, sample_organization, sample_admin, api_service
    ):
        # Act
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="API slow",
            description="Elevated latency",
            status="investigating",
            severity="high",
            service_ids=[api_service.id],
        )

        # Assert
        assert incident.status == IncidentStatus.INVESTIGATING
        assert incident.severity == IncidentSeverity.HIGH
        assert incident.resolved_at is None
        assert len(incident.updates) == 1
        assert incident.updates[0].description == "Incident reported: Elevated latency"
        assert incident.updates[0].status == IncidentStatus.INVESTIGATING
        assert incident.updates[0].user_id == sample_admin.id
        assert [s.id for s in incident.affected_services] == [api_service.id]

    def test_create_scheduled_maintenance(
        self, incident_lifecycle, sample_organization, sample_admin
    ):
        when = datetime.now(UTC) + timedelta(days=1)

        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="Database upgrade",
            description="Primary failover",
            status="scheduled",
            scheduled_at=when,
        )

        assert incident.scheduled_at == when
        assert incident.updates[0].description == "Maintenance scheduled: Primary failover"

    def test_create_resolved_sets_resolved_at(
        self, incident_lifecycle, sample_organization, sample_admin
    ):
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="Backfill",
            description="Already fixed",
            status="resolved",
        )

        assert incident.resolved_at is not None

    def test_create_defaults_severity_to_medium(
        self, incident_lifecycle, sample_organization, sample_admin
    ):
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="Blip",
            description="Short blip",
            status="investigating",
        )

        assert incident.severity == IncidentSeverity.MEDIUM
        assert incident.components_affected == []

    def test_create_deduplicates_service_ids(
        self, incident_lifecycle, sample_organization, sample_admin, api_service
    ):
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="Dup",
            description="Duplicated ids",
            status="investigating",
            service_ids=[api_service.id, str(api_service.id)],
        )

        assert len(incident.affected_services) == 1

    @pytest.mark.parametrize("field", ["title", "description"])
    def test_create_requires_text_fields(
        self, incident_lifecycle, sample_organization, sample_admin, field
    ):
        kwargs = {"title": "T", "description": "D", "status": "investigating"}
        kwargs[field] = "   "

        with pytest.raises(MissingFieldError):
            incident_lifecycle.create(sample_organization.id, sample_admin.id, **kwargs)

    def test_create_rejects_unknown_status(
        self, incident_lifecycle, sample_organization, sample_admin
    ):
        with pytest.raises(ValidationError) as exc_info:
            incident_lifecycle.create(
                sample_organization.id,
                sample_admin.id,
                title="T",
                description="D",
                status="on_fire",
            )

        assert exc_info.value.status_code == 400
        assert "resolved" in exc_info.value.details["allowed"]

    def test_create_rejects_foreign_service(
        self, db_session: Session, incident_lifecycle, sample_organization, sample_admin, foreign_service
    ):
        with pytest.raises(UnknownServiceError):
            incident_lifecycle.create(
                sample_organization.id,
                sample_admin.id,
                title="T",
                description="D",
                status="investigating",
                service_ids=[foreign_service.id],
            )

        # Nothing was written
        assert db_session.scalar(select(func.count()).select_from(Incident)) == 0
        assert db_session.scalar(select(func.count()).select_from(IncidentUpdate)) == 0

    def test_create_publishes_to_organization_topic(
        self, incident_lifecycle, registry, transport, sample_organization, sample_admin
    ):
        # Arrange
        _subscribe(registry, sample_organization)

        # Act
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="API down",
            description="Outage",
            status="investigating",
        )

        # Assert
        assert transport.for_sid("watcher") == [
            ("incidentCreated", incident.model_dump(mode="json"))
        ]


class TestUpdateIncident:
    """Tests for IncidentLifecycle.update."""

    @pytest.fixture
    def incident(self, incident_lifecycle, sample_organization, sample_admin, api_service):
        return incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="API slow",
            description="Elevated latency",
            status="investigating",
            severity="high",
            service_ids=[api_service.id],
        )

    def test_status_change_appends_update(
        self, incident_lifecycle, incident, sample_organization, sample_editor
    ):
        updated = incident_lifecycle.update(
            incident.id, {"status": "identified"}, sample_editor.id, sample_organization.id
        )

        assert updated.status == IncidentStatus.IDENTIFIED
        assert len(updated.updates) == 2
        assert updated.updates[-1].description == 'Status changed to "identified".'
        assert updated.updates[-1].status == IncidentStatus.IDENTIFIED
        assert updated.updates[-1].user_id == sample_editor.id

    def test_multiple_changes_are_joined_in_order(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        updated = incident_lifecycle.update(
            incident.id,
            {"title": "API down", "description": "Full outage", "severity": "critical"},
            sample_admin.id,
            sample_organization.id,
        )

        assert updated.updates[-1].description == (
            'Title changed to "API down". Description updated. Severity changed to "critical".'
        )

    def test_resolving_stamps_resolved_at(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        updated = incident_lifecycle.update(
            incident.id, {"status": "resolved"}, sample_admin.id, sample_organization.id
        )

        assert updated.resolved_at is not None
        assert updated.updates[-1].description == (
            'Status changed to "resolved". Marked as resolved.'
        )

    def test_resolved_at_is_kept_after_reopening(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        resolved = incident_lifecycle.update(
            incident.id, {"status": "resolved"}, sample_admin.id, sample_organization.id
        )
        reopened = incident_lifecycle.update(
            incident.id, {"status": "monitoring"}, sample_admin.id, sample_organization.id
        )
        again = incident_lifecycle.update(
            incident.id, {"status": "resolved"}, sample_admin.id, sample_organization.id
        )

        assert reopened.resolved_at == resolved.resolved_at
        assert again.resolved_at == resolved.resolved_at
        assert again.updates[-1].description == 'Status changed to "resolved".'

    def test_explicit_update_description_overrides_text(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        updated = incident_lifecycle.update(
            incident.id,
            {"status": "monitoring", "update_description": "Fix deployed, watching"},
            sample_admin.id,
            sample_organization.id,
        )

        assert updated.updates[-1].description == "Fix deployed, watching"

    def test_replacing_services(
        self, incident_lifecycle, incident, sample_organization, sample_admin, web_service
    ):
        updated = incident_lifecycle.update(
            incident.id, {"service_ids": [web_service.id]}, sample_admin.id, sample_organization.id
        )

        assert [s.id for s in updated.affected_services] == [web_service.id]
        assert updated.updates[-1].description == "Affected services updated."

    def test_clearing_services(
        self, db_session, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        updated = incident_lifecycle.update(
            incident.id, {"service_ids": []}, sample_admin.id, sample_organization.id
        )

        assert updated.affected_services == []
        assert updated.updates[-1].description == "Affected services removed."
        rows = db_session.execute(
            select(incident_services).where(incident_services.c.incident_id == incident.id)
        ).all()
        assert rows == []

    def test_components_and_schedule_changes(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        when = datetime.now(UTC) + timedelta(hours=4)

        updated = incident_lifecycle.update(
            incident.id,
            {"components_affected": ["eu-west"], "scheduled_at": when},
            sample_admin.id,
            sample_organization.id,
        )

        assert updated.components_affected == ["eu-west"]
        assert updated.scheduled_at == when
        assert updated.updates[-1].description == (
            "Affected components updated. Scheduled time updated."
        )

    def test_no_change_is_a_noop(
        self, incident_lifecycle, incident, registry, transport, sample_organization, sample_admin
    ):
        # Arrange
        _subscribe(registry, sample_organization)

        # Act
        result = incident_lifecycle.update(
            incident.id,
            {"status": "investigating", "title": "API slow"},
            sample_admin.id,
            sample_organization.id,
        )

        # Assert
        assert len(result.updates) == 1
        assert result.updated_at == incident.updated_at
        assert transport.sent == []

    def test_update_with_foreign_service_rolls_back(
        self, incident_lifecycle, incident, sample_organization, sample_admin, foreign_service
    ):
        with pytest.raises(UnknownServiceError):
            incident_lifecycle.update(
                incident.id,
                {"status": "identified", "service_ids": [foreign_service.id]},
                sample_admin.id,
                sample_organization.id,
            )

        current = incident_lifecycle.get(incident.id, sample_organization.id)
        assert current.status == IncidentStatus.INVESTIGATING
        assert len(current.updates) == 1

    def test_update_from_other_organization_is_not_found(
        self, incident_lifecycle, incident, second_organization, second_org_admin
    ):
        with pytest.raises(IncidentNotFoundError):
            incident_lifecycle.update(
                incident.id, {"status": "resolved"}, second_org_admin.id, second_organization.id
            )

    def test_update_publishes_full_incident(
        self, incident_lifecycle, incident, registry, transport, sample_organization, sample_admin
    ):
        _subscribe(registry, sample_organization)

        updated = incident_lifecycle.update(
            incident.id, {"status": "monitoring"}, sample_admin.id, sample_organization.id
        )

        [(event, payload)] = transport.for_sid("watcher")
        assert event == "incidentUpdated"
        assert payload["id"] == str(updated.id)
        assert payload["status"] == "monitoring"
        assert len(payload["updates"]) == 2
        assert payload["affected_services"][0]["name"] == "API"


class TestAddUpdate:
    """Tests for IncidentLifecycle.add_update."""

    @pytest.fixture
    def incident(self, incident_lifecycle, sample_organization, sample_admin):
        return incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="Checkout errors",
            description="5xx on checkout",
            status="investigating",
        )

    def test_add_update_moves_status(
        self, incident_lifecycle, incident, sample_organization, sample_editor
    ):
        result = incident_lifecycle.add_update(
            incident.id, "Root cause found", "identified", sample_editor.id, sample_organization.id
        )

        assert result.update.description == "Root cause found"
        assert result.update.status == IncidentStatus.IDENTIFIED
        assert result.incident.status == IncidentStatus.IDENTIFIED
        assert [u.description for u in result.incident.updates] == [
            "Incident reported: 5xx on checkout",
            "Root cause found",
        ]

    def test_add_update_resolves_once(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        first = incident_lifecycle.add_update(
            incident.id, "Fixed", "resolved", sample_admin.id, sample_organization.id
        )
        second = incident_lifecycle.add_update(
            incident.id, "Still fixed", "resolved", sample_admin.id, sample_organization.id
        )

        assert first.incident.resolved_at is not None
        assert second.incident.resolved_at == first.incident.resolved_at

    def test_add_update_requires_description(
        self, incident_lifecycle, incident, sample_organization, sample_admin
    ):
        with pytest.raises(MissingFieldError):
            incident_lifecycle.add_update(
                incident.id, "", "identified", sample_admin.id, sample_organization.id
            )

    def test_add_update_publishes_single_event(
        self, incident_lifecycle, incident, registry, transport, sample_organization, sample_admin
    ):
        _subscribe(registry, sample_organization)

        incident_lifecycle.add_update(
            incident.id, "Monitoring", "monitoring", sample_admin.id, sample_organization.id
        )

        assert transport.events() == ["incidentUpdated"]

    def test_add_update_unknown_incident(
        self, incident_lifecycle, sample_organization, sample_admin
    ):
        with pytest.raises(IncidentNotFoundError):
            incident_lifecycle.add_update(
                uuid4(), "Text", "identified", sample_admin.id, sample_organization.id
            )


class TestDeleteIncident:
    """Tests for IncidentLifecycle.delete."""

    def test_delete_removes_incident_and_children(
        self, db_session, incident_lifecycle, registry, transport,
        sample_organization, sample_admin, api_service,
    ):
        # Arrange
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="T",
            description="D",
            status="investigating",
            service_ids=[api_service.id],
        )
        _subscribe(registry, sample_organization)

        # Act
        deleted = incident_lifecycle.delete(incident.id, sample_organization.id)

        # Assert
        assert deleted.id == incident.id
        assert db_session.scalar(select(func.count()).select_from(Incident)) == 0
        assert db_session.scalar(select(func.count()).select_from(IncidentUpdate)) == 0
        assert db_session.execute(select(incident_services)).all() == []
        assert transport.for_sid("watcher") == [
            (
                "incidentDeleted",
                {"id": str(incident.id), "organization_id": str(sample_organization.id)},
            )
        ]

    def test_delete_from_other_organization_is_not_found(
        self, incident_lifecycle, sample_organization, sample_admin, second_organization
    ):
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="T",
            description="D",
            status="investigating",
        )

        with pytest.raises(IncidentNotFoundError):
            incident_lifecycle.delete(incident.id, second_organization.id)

        assert incident_lifecycle.get(incident.id, sample_organization.id).id == incident.id


def _failing_commit(db_session):
    """Flush the pending rows, then fail the way a dropped connection does."""
    def commit():
        db_session.flush()
        raise OperationalError("COMMIT", None, Exception("server closed the connection"))
    return commit


class TestFailedTransactions:
    """A failed commit leaves no rows behind and publishes nothing."""

    def test_failed_create_leaves_no_rows(
        self, monkeypatch, db_session, incident_lifecycle, registry, transport,
        sample_organization, sample_admin, api_service,
    ):
        # Arrange
        _subscribe(registry, sample_organization)
        monkeypatch.setattr(db_session, "commit", _failing_commit(db_session))

        # Act
        with pytest.raises(StorageError):
            incident_lifecycle.create(
                sample_organization.id,
                sample_admin.id,
                title="API down",
                description="Outage",
                status="investigating",
                service_ids=[api_service.id],
            )

        # Assert
        assert db_session.scalar(select(func.count()).select_from(Incident)) == 0
        assert db_session.scalar(select(func.count()).select_from(IncidentUpdate)) == 0
        assert db_session.execute(select(incident_services)).all() == []
        assert transport.sent == []

    def test_failed_update_keeps_previous_state(
        self, monkeypatch, db_session, incident_lifecycle, registry, transport,
        sample_organization, sample_admin, api_service,
    ):
        incident = incident_lifecycle.create(
            sample_organization.id,
            sample_admin.id,
            title="API slow",
            description="Latency",
            status="investigating",
            service_ids=[api_service.id],
        )
        _subscribe(registry, sample_organization)
        monkeypatch.setattr(db_session, "commit", _failing_commit(db_session))

        with pytest.raises(StorageError):
            incident_lifecycle.update(
                incident.id,
                {"status": "resolved", "service_ids": []},
                sample_admin.id,
                sample_organization.id,
            )

        current = incident_lifecycle.get(incident.id, sample_organization.id)
        assert current.status == IncidentStatus.INVESTIGATING
        assert current.resolved_at is None
        assert len(current.updates) == 1
        assert [s.id for s in current.affected_services] == [api_service.id]
        assert transport.sent == []

    def test_failed_add_update_and_delete_publish_nothing(
        self, monkeypatch, db_session, incident_lifecycle, registry, transport,
        sample_organization, sample_admin,
    ):
        incident = incident_lifecycle.create(
            sample_organization.id, sample_admin.id,
            title="T", description="D", status="monitoring",
        )
        _subscribe(registry, sample_organization)
        monkeypatch.setattr(db_session, "commit", _failing_commit(db_session))

        with pytest.raises(StorageError):
            incident_lifecycle.add_update(
                incident.id, "Fixed", "resolved", sample_admin.id, sample_organization.id
            )
        with pytest.raises(StorageError):
            incident_lifecycle.delete(incident.id, sample_organization.id)

        current = incident_lifecycle.get(incident.id, sample_organization.id)
        assert current.status == IncidentStatus.MONITORING
        assert len(current.updates) == 1
        assert transport.sent == []


class TestStorageFailuresBeforeWrite:
    """The tenant-check read shares the write path's error mapping."""

    @pytest.fixture
    def exhausted_pool(self, tmp_path):
        """A one-connection pool whose only connection is checked out."""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'pool.db'}",
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=0.1,
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        setup = factory()
        org = Organization(name="Pool Org", slug="pool-org")
        setup.add(org)
        setup.commit()
        incident = IncidentLifecycle(setup).create(
            org.id, None, title="T", description="D", status="investigating"
        )
        setup.close()

        held = engine.connect()
        held.execute(text("SELECT 1"))
        session = factory()
        try:
            yield session, org.id, incident.id
        finally:
            session.close()
            held.close()
            engine.dispose()

    def test_pool_timeout_on_update_is_retryable(self, exhausted_pool):
        session, org_id, incident_id = exhausted_pool

        with pytest.raises(StorageTimeoutError) as exc_info:
            IncidentLifecycle(session).update(incident_id, {"status": "resolved"}, None, org_id)

        assert exc_info.value.retryable is True

    def test_pool_timeout_on_add_update_and_delete(self, exhausted_pool):
        session, org_id, incident_id = exhausted_pool
        lifecycle = IncidentLifecycle(session)

        with pytest.raises(StorageTimeoutError):
            lifecycle.add_update(incident_id, "Fixed", "resolved", None, org_id)
        with pytest.raises(StorageTimeoutError):
            lifecycle.delete(incident_id, org_id)

    def test_outage_while_checking_services(
        self, monkeypatch, incident_lifecycle, sample_organization, sample_admin, api_service
    ):
        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", None, Exception("could not connect to server"))

        monkeypatch.setattr(TenantQuery, "ids_owned", unavailable)

        with pytest.raises(StorageError):
            incident_lifecycle.create(
                sample_organization.id, sample_admin.id,
                title="T", description="D", status="investigating",
                service_ids=[api_service.id],
            )


class TestReads:
    def test_list_is_newest_first_and_scoped(
        self, db_session, broadcaster, sample_organization, second_organization,
        sample_admin, second_org_admin,
    ):
        lifecycle = IncidentLifecycle(db_session, broadcaster)
        first = lifecycle.create(
            sample_organization.id, sample_admin.id,
            title="First", description="D", status="investigating",
        )
        second = lifecycle.create(
            sample_organization.id, sample_admin.id,
            title="Second", description="D", status="investigating",
        )
        lifecycle.create(
            second_organization.id, second_org_admin.id,
            title="Foreign", description="D", status="investigating",
        )

        listed = lifecycle.list_for_organization(sample_organization.id)

        assert [i.id for i in listed] == [second.id, first.id]

    def test_publish_failure_does_not_undo_commit(
        self, db_session, sample_organization, sample_admin
    ):
        class BrokenPublisher:
            def publish(self, event):
                raise RuntimeError("broker down")

        lifecycle = IncidentLifecycle(db_session, BrokenPublisher())

        incident = lifecycle.create(
            sample_organization.id, sample_admin.id,
            title="T", description="D", status="investigating",
        )

        assert lifecycle.get(incident.id, sample_organization.id).title == "T"

    def test_topic_name(self, sample_organization):
        assert topic_for_organization(sample_organization.id) == (
            f"organization-{sample_organization.id}"
        )
