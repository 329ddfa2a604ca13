"""
Broadcast Router
================

Delivers committed mutations to every connection subscribed to the
event's organization topic, and to no other connection.

Delivery is fire-and-forget and at-most-once: the subscriber set is
snapshotted, each delivery is handed to the transport without waiting,
and a failing subscriber is logged and skipped.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from statuspage.core.logging import get_logger
from statuspage.realtime.registry import TopicRegistry
from statuspage.schemas.events import RealtimeEvent

logger = get_logger(__name__)


class Transport(Protocol):
    def deliver(self, sid: str, event: str, payload: Dict[str, Any]) -> None:
        """Hand one event to one connection without blocking."""


class EventPublisher(Protocol):
    def publish(self, event: RealtimeEvent) -> int:
        """Publish a committed event; returns the number of deliveries handed off."""


class BroadcastRouter:
    def __init__(self, registry: TopicRegistry, transport: Transport):
        self.registry = registry
        self.transport = transport

    def publish(self, event: RealtimeEvent) -> int:
        recipients = self.registry.subscribers(event.topic)
        if not recipients:
            logger.debug("event_without_subscribers", event_type=event.name, topic=event.topic)
            return 0

        payload = event.wire_payload()
        delivered = 0
        for sid in recipients:
            try:
                self.transport.deliver(sid, event.name, payload)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "event_delivery_failed",
                    event_type=event.name,
                    topic=event.topic,
                    connection_id=sid,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info(
            "event_published",
            event_type=event.name,
            topic=event.topic,
            recipients=len(recipients),
            delivered=delivered,
        )
        return delivered


def publish_safely(publisher: Optional[EventPublisher], event: RealtimeEvent) -> int:
    """
    Publish after commit. The mutation has already succeeded, so a
    broadcast failure is logged and reported as zero deliveries.
    """
    if publisher is None:
        return 0
    try:
        return publisher.publish(event)
    except Exception as e:
        logger.error(
            "event_publish_failed",
            event_type=event.name,
            topic=event.topic,
            error=str(e),
            error_type=type(e).__name__,
        )
        return 0
