"""
Guarded outbound channel for one WebSocket connection.
"""
from fastapi.websockets import WebSocketState
import structlog

logger = structlog.get_logger()


class Channel:
    """
    Wraps a session's WebSocket. Sending on a closed or closing socket is a
    silent no-op; transport errors are logged, never raised.
    """

    def __init__(self, websocket, client_id: str):
        self._websocket = websocket
        self.client_id = client_id
        self._closed = False

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self._closed = True

    async def send(self, message: dict) -> bool:
        """Send a JSON message if the socket is open. Returns whether it was sent."""
        if not self.is_open:
            logger.debug("send_dropped_socket_closed", client_id=self.client_id, type=message.get("type"))
            return False
        try:
            await self._websocket.send_json(message)
        except Exception as e:
            logger.warning("send_failed", client_id=self.client_id, type=message.get("type"), error=str(e))
            return False
        return True
