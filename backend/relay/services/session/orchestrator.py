import json
import logging
from typing import Any, Dict

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from relay.config.constants import EVENT_PING, EVENT_REGISTER, EVENT_SIGNAL
from relay.schemas.websocket_events import PongMessage, RegisterEvent, SignalEvent
from relay.services.connection import PeerConnection
from relay.services.signaling import SignalRouter

logger = logging.getLogger(__name__)


class SignalingSession:
    """
    Drives one WebSocket for its whole lifetime.
    Handles:
    - Accepting the socket and attaching it to the router
    - Decoding JSON frames into register / signal / ping events
    - Disconnect cleanup, whatever ended the loop
    """

    def __init__(self, websocket: WebSocket, router: SignalRouter):
        self.websocket = websocket
        self.router = router
        self.connection = PeerConnection(websocket)

    async def run(self):
        """
        Main entry point for handling a WebSocket connection.
        """
        await self.websocket.accept()
        await self.router.connect(self.connection)

        try:
            await self._message_loop()
        finally:
            await self.router.disconnect(self.connection)

    async def _message_loop(self):
        connection_id = self.connection.connection_id
        try:
            while True:
                message = await self.websocket.receive()

                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                if message.get("text") is not None:
                    await self._handle_text_message(message["text"])
                elif message.get("bytes") is not None:
                    logger.warning(f"[Session] Binary frame from {connection_id} ignored")
                else:
                    logger.warning(f"[Session] Unexpected message structure from {connection_id}")

        except WebSocketDisconnect:
            logger.info(f"[Session] Connection {connection_id} closed")

        except Exception as e:
            logger.error(f"[Session] Error during message loop for {connection_id}: {e}")

    async def _handle_text_message(self, text_data: str):
        """
        Handle JSON event frames.
        """
        connection_id = self.connection.connection_id
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.warning(f"[Session] Invalid JSON received from {connection_id}")
            return

        if not isinstance(data, dict):
            logger.warning(f"[Session] Non-object frame received from {connection_id}")
            return

        msg_type = data.get("type")
        try:
            if msg_type == EVENT_REGISTER:
                await self._handle_register(data)
            elif msg_type == EVENT_SIGNAL:
                await self._handle_signal(data)
            elif msg_type == EVENT_PING:
                await self.router.send_to_connection(self.connection, PongMessage().model_dump())
            else:
                logger.warning(f"[Session] Unknown message type from {connection_id}: {msg_type}")
        except ValidationError as e:
            logger.warning(
                f"[Session] Malformed {msg_type} event from {connection_id}: "
                f"{e.error_count()} validation errors"
            )

    async def _handle_register(self, data: Dict[str, Any]):
        logger.info(f"[Session] Raw register payload from {self.connection.connection_id}: {data}")
        event = RegisterEvent.model_validate(data)
        await self.router.register(self.connection, event.user_id, event.user_role)

    async def _handle_signal(self, data: Dict[str, Any]):
        event = SignalEvent.model_validate(data)
        await self.router.route_signal(
            self.connection,
            event.data,
            target_user_id=event.target_user_id,
            from_user_id=event.from_user_id,
        )
