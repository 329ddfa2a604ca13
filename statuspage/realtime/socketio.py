"""Socket.IO endpoint for staff dashboards and public status pages.

Frontend convention:
- Socket.IO path: /socket.io (``SOCKETIO_PATH``)
- Auth: ``auth: { token }`` (JWT access token), ``query.token`` as fallback
- A missing or invalid token never refuses the connection; it is admitted
  as an anonymous viewer
- Viewers call ``joinTopic`` (or the legacy ``joinPublicRoom``) with an
  organization id to receive that organization's events
- Server events: incidentCreated, incidentUpdated, incidentDeleted,
  serviceCreated, serviceUpdated, serviceDeleted
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs

import socketio
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from statuspage.core.config import settings
from statuspage.core.exceptions import AuthenticationError, StatusPageError
from statuspage.core.logging import LogContext, get_logger
from statuspage.db.session import SessionLocal
from statuspage.realtime.broadcaster import BroadcastRouter
from statuspage.realtime.registry import TopicRegistry
from statuspage.schemas.auth import StaffIdentity
from statuspage.services.auth_service import AuthService

logger = get_logger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if settings.CORS_ORIGINS == ["*"] else settings.CORS_ORIGINS,
    logger=False,
    engineio_logger=False,
)


def extract_token(environ: Dict[str, Any], auth: Any | None) -> str | None:
    """Extract the JWT from ``auth.token`` or the ``token`` query parameter."""

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token
    return None


def verify_token(token: str) -> StaffIdentity:
    """Verify a credential with a short-lived database session."""
    db = SessionLocal()
    try:
        return AuthService(db).verify_credential(token)
    finally:
        db.close()


# ==========================
# Transport
# ==========================

class SocketIOTransport:
    """
    Schedules ``sio.emit(..., to=sid)`` on the server's event loop.

    ``deliver`` never waits for the emit; it is safe to call from the loop
    itself or from HTTP worker threads.
    """

    def __init__(self, server: socketio.AsyncServer):
        self.server = server
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def _on_done(self, sid: str, event: str) -> Callable[[Any], None]:
        def callback(future) -> None:
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                logger.warning(
                    "event_emit_failed",
                    event_type=event,
                    connection_id=sid,
                    error=str(exc),
                )
        return callback

    def deliver(self, sid: str, event: str, payload: Dict[str, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            raise RuntimeError("Socket.IO transport is not bound to a running event loop")

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task = loop.create_task(self.server.emit(event, payload, to=sid))
            task.add_done_callback(self._on_done(sid, event))
        else:
            future = asyncio.run_coroutine_threadsafe(
                self.server.emit(event, payload, to=sid), loop
            )
            future.add_done_callback(self._on_done(sid, event))


# ==========================
# Gateway
# ==========================

class RealtimeGateway:
    """
    Connection admission and topic membership.

    Kept separate from the Socket.IO decorators so handlers can be driven
    directly in tests.
    """

    def __init__(
        self,
        registry: TopicRegistry,
        resolve_identity: Callable[[str], StaffIdentity] = verify_token,
    ):
        self.registry = registry
        self.resolve_identity = resolve_identity

    async def on_connect(self, sid: str, environ: Dict[str, Any], auth: Any | None = None) -> bool:
        token = extract_token(environ or {}, auth)
        identity: Optional[StaffIdentity] = None

        if token:
            try:
                identity = await run_in_threadpool(self.resolve_identity, token)
            except AuthenticationError as e:
                logger.info(
                    "realtime_credential_rejected",
                    connection_id=sid,
                    reason=e.message,
                )
            except (StatusPageError, SQLAlchemyError) as e:
                logger.warning(
                    "realtime_credential_check_failed",
                    connection_id=sid,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        snapshot = self.registry.connect(sid, identity)
        if identity is not None:
            with LogContext(connection_id=sid, tenant_id=str(identity.organization_id)):
                logger.info(
                    "realtime_staff_connected",
                    user_id=str(identity.user_id),
                    topics=sorted(snapshot.topics),
                )
        else:
            logger.info("realtime_viewer_connected", connection_id=sid)
        return True

    async def on_join_topic(self, sid: str, data: Any) -> Dict[str, Any]:
        organization_id = data.get("organization_id") if isinstance(data, dict) else data
        try:
            topic = self.registry.join_topic(sid, organization_id)
        except StatusPageError as e:
            logger.warning(
                "realtime_join_rejected",
                connection_id=sid,
                organization_id=str(organization_id) if organization_id else None,
                reason=e.message,
            )
            return {"ok": False, "error": e.message}

        logger.info("realtime_topic_joined", connection_id=sid, topic=topic)
        return {"ok": True, "topic": topic}

    async def on_disconnect(self, sid: str) -> None:
        if self.registry.disconnect(sid):
            logger.info("realtime_disconnected", connection_id=sid)


# ==========================
# Process-wide wiring
# ==========================

registry = TopicRegistry()
transport = SocketIOTransport(sio)
broadcaster = BroadcastRouter(registry, transport)
gateway = RealtimeGateway(registry)


def get_broadcaster() -> BroadcastRouter:
    """FastAPI dependency for the process-wide broadcaster."""
    return broadcaster


@sio.event
async def connect(sid: str, environ: Dict[str, Any], auth: Any | None = None):
    return await gateway.on_connect(sid, environ, auth)


@sio.on("joinTopic")
async def join_topic(sid: str, data: Any = None):
    return await gateway.on_join_topic(sid, data)


@sio.on("joinPublicRoom")
async def join_public_room(sid: str, data: Any = None):
    return await gateway.on_join_topic(sid, data)


@sio.event
async def disconnect(sid: str, reason: Any = None):
    await gateway.on_disconnect(sid)
