from typing import Dict, Set, Optional
from fastapi import WebSocket
import asyncio
from datetime import datetime, timezone
import structlog

from .schema.events import AdvisoryEvent, BaseEvent, ConnectionEvent, ErrorEvent
from agentchat.domain.models.advisory import AdvisoryPayload

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and routes events to them"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.session_metadata: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[session_id] = websocket
            self.session_metadata[session_id] = {
                "connected_at": datetime.now(timezone.utc),
                "last_activity": datetime.now(timezone.utc)
            }

        await self.send_event(
            session_id,
            ConnectionEvent(
                status="connected",
                session_id=session_id
            )
        )

        logger.info("WebSocket connected", session_id=session_id)

    async def disconnect(self, session_id: str):
        """Forget a connection and close its socket"""
        async with self._lock:
            ws = self.active_connections.pop(session_id, None)
            self.session_metadata.pop(session_id, None)

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.error("Error closing WebSocket", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    async def send_event(self, session_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific session"""
        websocket = self.active_connections.get(session_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        try:
            await websocket.send_json(event.model_dump(mode="json"))

            if session_id in self.session_metadata:
                self.session_metadata[session_id]["last_activity"] = datetime.now(timezone.utc)

            return True

        except Exception as e:
            logger.error("Failed to send event", session_id=session_id, error=str(e))
            await self.disconnect(session_id)
            return False

    async def send_advisory(self, session_id: str, advisory: AdvisoryPayload) -> bool:
        """Wrap an advisory in an event and send it"""
        return await self.send_event(session_id, AdvisoryEvent(session_id=session_id, payload=advisory))

    async def send_error(self, session_id: str, error_message: str, error_code: Optional[str] = None):
        """Send an error event to a session"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code,
            session_id=session_id
        )
        await self.send_event(session_id, error_event)

    def get_session_metadata(self, session_id: str) -> Optional[Dict]:
        """Get metadata for a session"""
        return self.session_metadata.get(session_id)

    def get_active_sessions(self) -> Set[str]:
        """Get active session IDs"""
        return set(self.active_connections.keys())
