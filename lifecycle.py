from backend import RelayBackend
from connection import ConnectionHandle
from constants import WELCOME_MESSAGE
from exceptions import SendError
from logging_config import get_logger
from schemas.messages import LeaveMessage, SystemMessage, serialize

logger = get_logger(__name__)


class LifecycleCoordinator:
    """Connect, close and error transitions for a single connection."""

    def __init__(self, backend: RelayBackend):
        self.backend = backend

    def on_connect(self, handle: ConnectionHandle) -> int:
        connection_id = self.backend.register(handle)
        try:
            handle.send(serialize(SystemMessage(message=WELCOME_MESSAGE)))
        except SendError as e:
            # The transport's close/error event cleans this connection up
            logger.warning(f"Could not send welcome message to client {connection_id}: {e}")
        return connection_id

    def on_close(self, connection_id: int):
        """Graceful disconnect: tell the room, then drop all bookkeeping."""
        client = self.backend.get_client(connection_id)
        if client is not None and client.display_name and client.room_id:
            leave = LeaveMessage(username=client.display_name, room_id=client.room_id)
            self.backend.broadcast_to_room(serialize(leave), client.room_id, connection_id, exclude_sender=True)
        self.backend.remove_client(connection_id)

    def on_error(self, connection_id: int, error: BaseException):
        """Abrupt teardown: same cleanup as on_close but nobody is notified."""
        logger.error(f"WebSocket error for client {connection_id}: {error}", exc_info=error)
        self.backend.remove_client(connection_id)
