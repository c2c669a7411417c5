from backend import ClientRegistry, RoomIndex
from helpers import FakeHandle, assert_consistent


def test_registry_assigns_increasing_ids():
    registry = ClientRegistry()
    first = registry.register(FakeHandle())
    second = registry.register(FakeHandle())
    assert second > first
    assert registry.get(first).display_name is None
    assert registry.get(first).room_id is None
    assert len(registry) == 2


def test_registry_unregister_is_idempotent():
    registry = ClientRegistry()
    connection_id = registry.register(FakeHandle())
    assert registry.unregister(connection_id) is True
    assert registry.unregister(connection_id) is False
    assert registry.get(connection_id) is None
    assert registry.get(12345) is None


def test_ids_are_not_reused_after_unregister():
    registry = ClientRegistry()
    first = registry.register(FakeHandle())
    registry.unregister(first)
    assert registry.register(FakeHandle()) != first


def test_room_index_deletes_empty_rooms():
    index = RoomIndex()
    index.join("lobby", 1)
    index.join("lobby", 2)
    assert index.members_of("lobby") == {1, 2}

    assert index.leave("lobby", 1) is False
    assert index.leave("lobby", 2) is True
    assert "lobby" not in index
    assert index.rooms() == {}


def test_room_index_leave_is_idempotent():
    index = RoomIndex()
    index.join("lobby", 1)
    index.leave("lobby", 3)
    index.leave("missing", 1)
    assert index.members_of("lobby") == {1}
    assert index.members_of("missing") == frozenset()


def test_broadcast_to_unknown_room_is_noop(backend):
    assert backend.broadcast_to_room('{"type":"chat"}', "nowhere", 1) == 0
    assert backend.snapshot().rooms == 0


def test_join_room_for_unregistered_client_is_ignored(backend):
    assert backend.join_room(99, "lobby", "ghost") is False
    assert "lobby" not in backend.room_index


def test_broadcast_reaps_closed_handles(backend):
    alive, dead = FakeHandle(), FakeHandle()
    alive_id, dead_id = backend.register(alive), backend.register(dead)
    backend.join_room(alive_id, "lobby", "alice")
    backend.join_room(dead_id, "lobby", "bob")
    dead.open = False

    assert backend.broadcast_to_room("one", "lobby", alive_id) == 1
    assert backend.get_client(dead_id) is None
    assert backend.room_index.members_of("lobby") == {alive_id}

    assert backend.broadcast_to_room("two", "lobby", alive_id) == 1
    assert dead.sent == []
    assert alive.sent == ["one", "two"]
    assert_consistent(backend)


def test_send_failure_does_not_abort_other_recipients(backend):
    handles = [FakeHandle() for _ in range(3)]
    ids = [backend.register(handle) for handle in handles]
    for connection_id in ids:
        backend.join_room(connection_id, "lobby", f"user{connection_id}")
    handles[1].fail = True

    assert backend.broadcast_to_room("hello", "lobby", ids[0]) == 2
    assert handles[0].sent == ["hello"]
    assert handles[2].sent == ["hello"]
    assert backend.get_client(ids[1]) is None
    assert backend.room_index.members_of("lobby") == {ids[0], ids[2]}
    assert handles[1].aborted
    assert not handles[0].aborted


def test_reaping_last_member_deletes_room(backend):
    handle = FakeHandle()
    connection_id = backend.register(handle)
    backend.join_room(connection_id, "solo", "alice")
    handle.open = False

    assert backend.broadcast_to_room("hi", "solo", connection_id) == 0
    assert "solo" not in backend.room_index
    assert len(backend.clients) == 0


def test_reaping_room_mismatch_clears_both_rooms(backend):
    handle = FakeHandle()
    connection_id = backend.register(handle)
    backend.join_room(connection_id, "red", "alice")
    backend.room_index.join("blue", connection_id)

    backend.broadcast_to_room("hi", "blue", None)

    assert handle.sent == []
    assert backend.get_client(connection_id) is None
    assert backend.room_index.rooms() == {}


def test_remove_client_is_idempotent(backend):
    connection_id = backend.register(FakeHandle())
    backend.join_room(connection_id, "lobby", "alice")
    backend.remove_client(connection_id)
    backend.remove_client(connection_id)
    assert backend.snapshot().clients == 0
    assert backend.snapshot().rooms == 0


def test_snapshot_counts_rooms_and_members(backend):
    ids = [backend.register(FakeHandle()) for _ in range(4)]
    backend.join_room(ids[0], "a", "u0")
    backend.join_room(ids[1], "a", "u1")
    backend.join_room(ids[2], "b", "u2")

    snapshot = backend.snapshot()
    assert snapshot.clients == 4
    assert snapshot.rooms == 2
    assert {room.room_id: room.members for room in snapshot.room_details} == {"a": 2, "b": 1}
    assert snapshot.model_dump(by_alias=True)["roomDetails"][0].keys() == {"roomId", "members"}


def test_room_status_reads_live_membership(backend):
    ids = [backend.register(FakeHandle()) for _ in range(2)]
    for connection_id in ids:
        backend.join_room(connection_id, "lobby", f"user{connection_id}")

    status = backend.room_status("lobby")
    assert status.room_id == "lobby"
    assert status.members == 2
    assert backend.room_status("missing") is None
