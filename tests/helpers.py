import json

from exceptions import SendError


class FakeHandle:
    """In-memory ConnectionHandle that records every frame it is given."""

    def __init__(self):
        self.sent = []
        self.open = True
        self.fail = False
        self.aborted = False

    def send(self, text):
        if self.fail:
            raise SendError("socket write failed")
        self.sent.append(text)

    def is_open(self):
        return self.open

    def abort(self):
        self.open = False
        self.aborted = True

    def messages(self):
        return [json.loads(text) for text in self.sent]

    def types(self):
        return [message["type"] for message in self.messages()]


def assert_consistent(backend):
    """Every joined client sits in exactly its own room and no room is empty."""
    rooms = backend.room_index.rooms()
    assert all(count > 0 for count in rooms.values())
    for room_id in rooms:
        for member_id in backend.room_index.members_of(room_id):
            assert backend.get_client(member_id) is not None
    for connection_id in backend.clients:
        client = backend.get_client(connection_id)
        containing = [room_id for room_id in rooms if connection_id in backend.room_index.members_of(room_id)]
        if client.room_id is None:
            assert containing == []
        else:
            assert containing == [client.room_id]
