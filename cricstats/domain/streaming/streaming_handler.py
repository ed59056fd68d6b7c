from typing import AsyncIterator, Optional
import json
import structlog

from cricstats.application.websocket.connection_manager import ConnectionManager
from cricstats.application.websocket.schema.events import SnapshotEvent
from cricstats.domain.orchestration.core.pipeline_engine import PipelineEngine

logger = structlog.get_logger(__name__)


class StreamingHandler:
    """Relays pipeline snapshots to HTTP and WebSocket clients"""

    def __init__(self, engine: PipelineEngine, connection_manager: Optional[ConnectionManager] = None):
        self.engine = engine
        self.connection_manager = connection_manager or ConnectionManager()

    async def ndjson_lines(
        self,
        question: Optional[str],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """One JSON-encoded snapshot per line, in step order"""

        snapshots = self.engine.run(question, user_id=user_id, session_id=session_id)
        try:
            async for snapshot in snapshots:
                yield json.dumps(snapshot.to_payload()) + "\n"
        finally:
            # Runs on normal completion and when the server cancels a disconnected stream
            await snapshots.aclose()

    async def stream_to_websocket(
        self,
        connection_id: str,
        question: Optional[str],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> bool:
        """Send every snapshot of one run as a snapshot event.

        Returns False if the client went away mid-run, in which case the run is
        closed and no further snapshots are produced.
        """

        snapshots = self.engine.run(question, user_id=user_id, session_id=session_id)
        try:
            async for snapshot in snapshots:
                payload = snapshot.to_payload()
                delivered = await self.connection_manager.send_event(
                    connection_id,
                    SnapshotEvent(payload=payload, session_id=session_id),
                )
                if not delivered:
                    logger.info("Client gone, stopping run", connection_id=connection_id, step=snapshot.step)
                    return False

                if snapshot.is_error:
                    await self.connection_manager.send_error(
                        connection_id,
                        snapshot.error,
                        error_code=snapshot.error_type,
                        session_id=session_id,
                    )
            return True
        finally:
            await snapshots.aclose()
