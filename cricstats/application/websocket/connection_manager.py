from typing import Dict, Optional
from fastapi import WebSocket
import asyncio
from datetime import datetime, timezone
import structlog

from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections keyed by connection id"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_metadata: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, connection_id: str, user_id: str, session_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[connection_id] = websocket
            self.connection_metadata[connection_id] = {
                "user_id": user_id,
                "session_id": session_id,
                "connected_at": datetime.now(timezone.utc),
                "last_activity": datetime.now(timezone.utc)
            }

        # Send connection confirmation
        await self.send_event(
            connection_id,
            ConnectionEvent(
                status="connected",
                session_id=session_id
            )
        )

        logger.info("WebSocket connected", connection_id=connection_id, user_id=user_id, session_id=session_id)

    async def disconnect(self, connection_id: str):
        """Forget a connection and close it if it is still open"""
        async with self._lock:
            ws = self.active_connections.pop(connection_id, None)
            metadata = self.connection_metadata.pop(connection_id, None) or {}

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                # Already closed by the client
                logger.debug("WebSocket close skipped", connection_id=connection_id, error=str(e))

        connected_at = metadata.get("connected_at")
        logger.info(
            "WebSocket disconnected",
            connection_id=connection_id,
            user_id=metadata.get("user_id"),
            session_id=metadata.get("session_id"),
            connected_seconds=(datetime.now(timezone.utc) - connected_at).total_seconds() if connected_at else None,
            last_activity=metadata["last_activity"].isoformat() if "last_activity" in metadata else None,
        )

    async def send_event(self, connection_id: str, event: BaseEvent) -> bool:
        """Send an event to a connection; False once the client is gone"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected client", connection_id=connection_id)
            return False

        try:
            await websocket.send_json(event.model_dump(mode="json"))

            if connection_id in self.connection_metadata:
                self.connection_metadata[connection_id]["last_activity"] = datetime.now(timezone.utc)

            return True

        except Exception as e:
            logger.warning("Failed to send event", connection_id=connection_id, error=str(e))
            await self.disconnect(connection_id)
            return False

    async def send_error(
        self,
        connection_id: str,
        error_message: str,
        error_code: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> bool:
        """Send an error event to a connection"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code,
            session_id=session_id
        )
        return await self.send_event(connection_id, error_event)
