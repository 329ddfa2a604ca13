"""
Tenant Session Registry
=======================

Tracks live real-time connections and the tenant topics they are
subscribed to. All state lives in one TopicRegistry guarded by a lock;
HTTP worker threads (publishing) and the event loop (connect, join,
disconnect) only touch it through its methods.

Connection kinds:
- staff: authenticated, bound to exactly one organization and subscribed
  to that organization's topic at connect time. The subscription cannot
  be changed afterwards.
- viewer: anonymous, starts with no subscriptions and may join any number
  of organization topics.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Set
from uuid import UUID

from statuspage.core.exceptions import CrossTenantTopicError, NotFoundError, ValidationError
from statuspage.core.logging import get_logger
from statuspage.db.types import utcnow
from statuspage.schemas.auth import StaffIdentity
from statuspage.schemas.events import topic_for_organization

logger = get_logger(__name__)


def normalize_organization_id(organization_id: Any) -> str:
    """Canonical string form; UUIDs in any accepted spelling become lower-case hyphenated."""
    raw = str(organization_id).strip()
    try:
        return str(UUID(raw))
    except ValueError:
        return raw


@dataclass
class Connection:
    sid: str
    identity: Optional[StaffIdentity] = None
    topics: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=utcnow)

    @property
    def is_staff(self) -> bool:
        return self.identity is not None

    @property
    def home_topic(self) -> Optional[str]:
        if self.identity is None:
            return None
        return topic_for_organization(self.identity.organization_id)


@dataclass(frozen=True)
class ConnectionSnapshot:
    sid: str
    identity: Optional[StaffIdentity]
    topics: FrozenSet[str]
    connected_at: datetime

    @property
    def is_staff(self) -> bool:
        return self.identity is not None


class TopicRegistry:
    """
    Usage:
        registry = TopicRegistry()
        registry.connect("sid-1", identity)          # staff, auto-subscribed
        registry.connect("sid-2")                    # anonymous viewer
        registry.join_topic("sid-2", organization_id)
        registry.subscribers("organization-<id>")
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._connections: Dict[str, Connection] = {}
        self._topics: Dict[str, Set[str]] = {}

    # --------------------------
    # Internal
    # --------------------------

    def _subscribe(self, conn: Connection, topic: str) -> None:
        conn.topics.add(topic)
        self._topics.setdefault(topic, set()).add(conn.sid)

    def _remove(self, conn: Connection) -> None:
        for topic in conn.topics:
            members = self._topics.get(topic)
            if members is None:
                continue
            members.discard(conn.sid)
            if not members:
                del self._topics[topic]
        conn.topics.clear()

    @staticmethod
    def _snapshot(conn: Connection) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            sid=conn.sid,
            identity=conn.identity,
            topics=frozenset(conn.topics),
            connected_at=conn.connected_at,
        )

    # --------------------------
    # Lifecycle
    # --------------------------

    def connect(self, sid: str, identity: Optional[StaffIdentity] = None) -> ConnectionSnapshot:
        """
        Register a connection.

        A staff identity subscribes the connection to its own
        organization's topic and nothing else; no identity registers an
        anonymous viewer with no subscriptions.
        """
        with self._lock:
            previous = self._connections.pop(sid, None)
            if previous is not None:
                self._remove(previous)

            conn = Connection(sid=sid, identity=identity)
            if conn.home_topic is not None:
                self._subscribe(conn, conn.home_topic)
            self._connections[sid] = conn
            return self._snapshot(conn)

    def join_topic(self, sid: str, organization_id) -> str:
        """
        Subscribe a connection to an organization's topic.

        Viewers may join any topic, repeatedly. Staff connections may only
        name their own organization, which is already joined.

        Returns:
            The topic name

        Raises:
            ValidationError: empty organization id
            NotFoundError: unknown or already disconnected sid
            CrossTenantTopicError: staff naming another organization
        """
        if organization_id is None or not str(organization_id).strip():
            raise ValidationError(
                "organization_id is required to join a topic",
                details={"field": "organization_id"},
            )
        topic = topic_for_organization(normalize_organization_id(organization_id))

        with self._lock:
            conn = self._connections.get(sid)
            if conn is None:
                raise NotFoundError("Connection", sid)

            if conn.is_staff:
                if topic != conn.home_topic:
                    raise CrossTenantTopicError(topic)
                return topic

            self._subscribe(conn, topic)
            return topic

    def disconnect(self, sid: str) -> bool:
        """Remove a connection from every topic. Returns False if unknown."""
        with self._lock:
            conn = self._connections.pop(sid, None)
            if conn is None:
                return False
            self._remove(conn)
            return True

    # --------------------------
    # Queries
    # --------------------------

    def subscribers(self, topic: str) -> FrozenSet[str]:
        """Point-in-time copy of a topic's members."""
        with self._lock:
            return frozenset(self._topics.get(topic, ()))

    def topics_for(self, sid: str) -> FrozenSet[str]:
        with self._lock:
            conn = self._connections.get(sid)
            return frozenset(conn.topics) if conn else frozenset()

    def connection(self, sid: str) -> Optional[ConnectionSnapshot]:
        with self._lock:
            conn = self._connections.get(sid)
            return self._snapshot(conn) if conn else None

    def topic_names(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._topics)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, sid: object) -> bool:
        with self._lock:
            return sid in self._connections
