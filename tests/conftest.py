import json

import pytest

from backend import RelayBackend
from helpers import FakeHandle
from lifecycle import LifecycleCoordinator
from relay import MessageRouter


@pytest.fixture
def backend():
    return RelayBackend()


@pytest.fixture
def router(backend):
    return MessageRouter(backend)


@pytest.fixture
def lifecycle(backend):
    return LifecycleCoordinator(backend)


@pytest.fixture
def connect(lifecycle):
    """Open a fake connection; its welcome message is discarded."""

    def _connect():
        handle = FakeHandle()
        connection_id = lifecycle.on_connect(handle)
        handle.sent.clear()
        return connection_id, handle

    return _connect


@pytest.fixture
def join(router):
    def _join(connection_id, room_id, username):
        router.handle_message(connection_id, json.dumps({"type": "join", "username": username, "roomId": room_id}))

    return _join
