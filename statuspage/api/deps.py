"""
Shared API dependencies.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from statuspage.db.session import get_db
from statuspage.realtime.broadcaster import BroadcastRouter
from statuspage.realtime.socketio import get_broadcaster
from statuspage.services.incident_lifecycle import IncidentLifecycle
from statuspage.services.public_status import PublicStatusReader
from statuspage.services.service_lifecycle import ServiceLifecycle


def get_incident_lifecycle(
    db: Session = Depends(get_db),
    broadcaster: BroadcastRouter = Depends(get_broadcaster),
) -> IncidentLifecycle:
    return IncidentLifecycle(db, broadcaster)


def get_service_lifecycle(
    db: Session = Depends(get_db),
    broadcaster: BroadcastRouter = Depends(get_broadcaster),
) -> ServiceLifecycle:
    return ServiceLifecycle(db, broadcaster)


def get_public_reader(db: Session = Depends(get_db)) -> PublicStatusReader:
    return PublicStatusReader(db)
