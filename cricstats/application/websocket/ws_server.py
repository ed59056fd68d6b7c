import uuid

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .schema.events import EventType, UserMessage

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/ws/ask/{user_id}/{session_id}")
async def agent_websocket(
    websocket: WebSocket,
    user_id: str,
    session_id: str,
):
    """Question/answer loop over a WebSocket, one snapshot event per pipeline step"""

    container = websocket.app.state.container
    connection_manager = container.connection_manager
    streaming_handler = container.streaming_handler
    connection_id = uuid.uuid4().hex

    # Connect the WebSocket
    await connection_manager.connect(websocket, connection_id, user_id, session_id)

    try:
        # Main message loop
        while True:
            data = await websocket.receive_json()

            if data.get("type") != EventType.USER_MESSAGE:
                await connection_manager.send_error(
                    connection_id,
                    f"Unsupported event type: {data.get('type')}",
                    error_code="InputValidationError",
                    session_id=session_id,
                )
                continue

            try:
                user_message = UserMessage(**data)
            except ValidationError as e:
                await connection_manager.send_error(
                    connection_id,
                    f"Invalid user message: {e.errors()[0]['msg']}",
                    error_code="InputValidationError",
                    session_id=session_id,
                )
                continue

            delivered = await streaming_handler.stream_to_websocket(
                connection_id,
                user_message.content,
                user_id=user_id,
                session_id=session_id,
            )
            if not delivered:
                break

    except WebSocketDisconnect:
        logger.info("Client disconnected", connection_id=connection_id, session_id=session_id)
    finally:
        await connection_manager.disconnect(connection_id)
