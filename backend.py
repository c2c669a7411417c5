import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set

from connection import ConnectionHandle
from exceptions import SendError
from logging_config import get_logger
from schemas.rooms import RoomStatus, StatusSnapshot

logger = get_logger(__name__)


@dataclass
class Client:
    id: int
    handle: ConnectionHandle
    display_name: Optional[str] = None
    room_id: Optional[str] = None
    connected_at: datetime = field(default_factory=datetime.now)


class ClientRegistry:
    """Connection id -> Client for every live connection."""

    def __init__(self):
        self._clients: Dict[int, Client] = {}
        self._ids = itertools.count(1)

    def register(self, handle: ConnectionHandle) -> int:
        connection_id = next(self._ids)
        self._clients[connection_id] = Client(id=connection_id, handle=handle)
        return connection_id

    def get(self, connection_id: int) -> Optional[Client]:
        return self._clients.get(connection_id)

    def unregister(self, connection_id: int) -> bool:
        return self._clients.pop(connection_id, None) is not None

    def __len__(self):
        return len(self._clients)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._clients))


class RoomIndex:
    """Room id -> member connection ids. Empty rooms are deleted immediately."""

    def __init__(self):
        self._rooms: Dict[str, Set[int]] = {}

    def join(self, room_id: str, connection_id: int):
        self._rooms.setdefault(room_id, set()).add(connection_id)

    def leave(self, room_id: str, connection_id: int) -> bool:
        """Remove a member; returns True when this emptied and deleted the room."""
        members = self._rooms.get(room_id)
        if members is None:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]
            return True
        return False

    def members_of(self, room_id: str) -> frozenset:
        return frozenset(self._rooms.get(room_id, ()))

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def rooms(self) -> Dict[str, int]:
        return {room_id: len(members) for room_id, members in self._rooms.items()}


class RelayBackend:
    """Owns the client registry and room index.

    Every method runs to completion without awaiting, so on a single event
    loop no two mutations interleave and no locking is needed. Callers go
    through these methods; the underlying containers are never handed out.
    """

    def __init__(self):
        self.clients = ClientRegistry()
        self.room_index = RoomIndex()
        logger.info("Initializing RelayBackend")

    def register(self, handle: ConnectionHandle) -> int:
        connection_id = self.clients.register(handle)
        logger.info(f"Client {connection_id} connected. Total clients: {len(self.clients)}")
        return connection_id

    def get_client(self, connection_id: int) -> Optional[Client]:
        return self.clients.get(connection_id)

    def join_room(self, connection_id: int, room_id: str, display_name: str) -> bool:
        """Move a client into ``room_id``, leaving its previous room first."""
        client = self.clients.get(connection_id)
        if client is None:
            logger.debug(f"Join ignored: client {connection_id} is not registered")
            return False
        if client.room_id is not None:
            self._leave(client.room_id, connection_id)
        client.display_name = display_name
        client.room_id = room_id
        self.room_index.join(room_id, connection_id)
        logger.info(f"Client {connection_id} ({display_name}) joined room: {room_id}")
        logger.debug(f"Room {room_id} now has {len(self.room_index.members_of(room_id))} members")
        return True

    def remove_client(self, connection_id: int):
        """Drop a client from its room (if any) and from the registry. Idempotent."""
        client = self.clients.get(connection_id)
        if client is not None and client.room_id is not None:
            self._leave(client.room_id, connection_id)
            client.room_id = None
        if self.clients.unregister(connection_id):
            logger.info(f"Client {connection_id} disconnected. Total clients: {len(self.clients)}")

    def _leave(self, room_id: str, connection_id: int):
        if self.room_index.leave(room_id, connection_id):
            logger.info(f"Room {room_id} deleted (empty)")
        elif room_id in self.room_index:
            logger.debug(f"Room {room_id} now has {len(self.room_index.members_of(room_id))} members")

    def broadcast_to_room(self, payload: str, room_id: str, sender_id: Optional[int] = None,
                          exclude_sender: bool = False) -> int:
        """Deliver ``payload`` to every member of ``room_id``.

        Members that are unregistered, closed, recorded in another room, or
        whose send fails are reaped after the sweep. Returns the number of
        members the payload was handed to.
        """
        members = self.room_index.members_of(room_id)
        if not members:
            logger.debug(f"Room {room_id} not found")
            return 0

        logger.debug(f"Broadcasting to room {room_id}, members: {sorted(members)}")
        sent_count = 0
        disconnected: List[int] = []

        for member_id in members:
            if exclude_sender and member_id == sender_id:
                continue
            client = self.clients.get(member_id)
            if client is None or not client.handle.is_open():
                logger.debug(f"Client {member_id} is disconnected, removing from room {room_id}")
                disconnected.append(member_id)
                continue
            if client.room_id != room_id:
                logger.debug(f"Client {member_id} room mismatch: expected {room_id}, got {client.room_id}")
                disconnected.append(member_id)
                continue
            try:
                client.handle.send(payload)
                sent_count += 1
                logger.debug(f"Sent message to client {member_id} ({client.display_name}) in room {room_id}")
            except SendError as e:
                logger.warning(f"Error sending message to client {member_id}: {e}")
                disconnected.append(member_id)

        for member_id in disconnected:
            self._reap(member_id, room_id)

        logger.debug(f"Successfully sent message to {sent_count} clients in room {room_id}")
        return sent_count

    def _reap(self, connection_id: int, room_id: str):
        client = self.clients.get(connection_id)
        if client is not None:
            client.handle.abort()
            if client.room_id not in (None, room_id):
                self._leave(client.room_id, connection_id)
        self._leave(room_id, connection_id)
        if self.clients.unregister(connection_id):
            logger.info(f"Client {connection_id} reaped. Total clients: {len(self.clients)}")

    def room_status(self, room_id: str) -> Optional[RoomStatus]:
        members = self.room_index.members_of(room_id)
        if not members:
            return None
        return RoomStatus(room_id=room_id, members=len(members))

    def snapshot(self) -> StatusSnapshot:
        rooms = self.room_index.rooms()
        return StatusSnapshot(
            clients=len(self.clients),
            rooms=len(rooms),
            room_details=[RoomStatus(room_id=room_id, members=count) for room_id, count in rooms.items()],
        )


relay_backend = RelayBackend()
