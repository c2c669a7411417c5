from typing import Union

from backend import RelayBackend
from exceptions import MalformedMessage
from logging_config import get_logger
from schemas.messages import JoinMessage, SignalingMessage, parse_envelope

logger = get_logger(__name__)


class MessageRouter:
    """Decides who receives each inbound frame."""

    def __init__(self, backend: RelayBackend):
        self.backend = backend

    def handle_message(self, connection_id: int, data: Union[str, bytes]):
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            message = parse_envelope(data)
        except (MalformedMessage, UnicodeDecodeError) as e:
            logger.warning(f"Discarding malformed frame from client {connection_id}: {e}")
            return

        logger.debug(f"Received {message.type} from client {connection_id}")

        if isinstance(message, JoinMessage):
            self.handle_join(connection_id, message, data)
            return

        client = self.backend.get_client(connection_id)
        if client is None or client.room_id is None or client.room_id != message.room_id:
            logger.warning(
                f"Message rejected: client {connection_id} room ({client.room_id if client else None}) "
                f"doesn't match message room ({message.room_id})"
            )
            return

        if isinstance(message, SignalingMessage):
            logger.debug(f"Call signaling: {message.type} in room {client.room_id}")
            self.backend.broadcast_to_room(data, client.room_id, connection_id, exclude_sender=True)
        else:
            logger.debug(f"Broadcasting {message.type} from {client.display_name} in room {client.room_id}")
            self.backend.broadcast_to_room(data, client.room_id, connection_id)

    def handle_join(self, connection_id: int, message: JoinMessage, data: str):
        # The joining client receives its own join back as confirmation
        if self.backend.join_room(connection_id, message.room_id, message.username):
            self.backend.broadcast_to_room(data, message.room_id, connection_id)
