import asyncio
import json
from uuid import uuid4

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from skillswap.client.connection import MessagingConnection
from skillswap.client.errors import (
    AckTimeoutError, AuthenticationError, MessageRejectedError, NotConnectedError,
)
from skillswap.core.integrity import hash_metadata
from skillswap.models.schemas import Message
from skillswap.realtime import protocol

USER_ID = str(uuid4())
PROJECT_ID = str(uuid4())
RECIPIENT_ID = str(uuid4())


def closed(code=None):
    frame = Close(code, "") if code is not None else None
    return ConnectionClosed(frame, None)


class FakeSocket:
    """Just enough of a websockets client connection: recv, send, close."""

    def __init__(self, handshake=True, on_send=None):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.on_send = on_send
        if handshake:
            self.push(protocol.CONNECT, {"user_id": USER_ID})

    def push(self, event, data):
        self.incoming.put_nowait(protocol.encode(event, data))

    def drop(self, code=None):
        self.incoming.put_nowait(closed(code))

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, raw):
        frame = json.loads(raw)
        self.sent.append(frame)
        if self.on_send:
            self.on_send(self, frame)

    async def close(self):
        self.closed = True
        self.drop(1000)

    def events(self):
        return [frame["event"] for frame in self.sent]


def connector_for(*outcomes):
    """Connector returning (or raising) the given outcomes in order."""
    pending = list(outcomes)
    urls = []

    async def connect(url):
        urls.append(url)
        outcome = pending.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    connect.urls = urls
    return connect


def acknowledge(socket, frame, decoy=False):
    if frame["event"] != protocol.SEND_MESSAGE:
        return
    data = frame["data"]
    message = Message(
        project_id=data["project_id"], sender_id=USER_ID, recipient_id=data["recipient_id"], text=data["text"],
        timestamp=data["timestamp"], metadata_hash=data["metadata_hash"], client_message_id=data["client_message_id"],
    )
    if decoy:
        # Same text, someone else's send.
        socket.push(protocol.NEW_MESSAGE, {**message.model_dump(mode="json"), "message_id": str(uuid4()), "client_message_id": "other"})
    socket.push(protocol.NEW_MESSAGE, message.model_dump(mode="json"))


async def wait_until(condition, timeout=1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_connect_waits_for_handshake():
    connector = connector_for(FakeSocket())
    connection = MessagingConnection("ws://test/ws", "tok", connector=connector)

    await connection.connect()

    assert connection.connected
    assert connection.user_id == USER_ID
    assert connector.urls == ["ws://test/ws?token=tok"]
    await connection.close()
    assert not connection.connected


@pytest.mark.asyncio
async def test_auth_failure_invalidates_connection():
    rejected = FakeSocket(handshake=False)
    rejected.drop(protocol.AUTH_FAILED_CLOSE_CODE)
    connector = connector_for(rejected)
    connection = MessagingConnection("ws://test/ws", "bad", connector=connector)

    with pytest.raises(AuthenticationError):
        await connection.connect()
    assert connection.invalidated

    with pytest.raises(AuthenticationError):
        await connection.connect()
    assert len(connector.urls) == 1


@pytest.mark.asyncio
async def test_send_without_connection_fails_immediately():
    connection = MessagingConnection("ws://test/ws", "tok", connector=connector_for())

    with pytest.raises(NotConnectedError):
        await connection.send_message(PROJECT_ID, RECIPIENT_ID, "hello")
    with pytest.raises(NotConnectedError):
        await connection.join_project(PROJECT_ID)
    with pytest.raises(NotConnectedError):
        connection.subscribe_to_messages(lambda data: None)
    assert connection.listener_count() == 0


@pytest.mark.asyncio
async def test_send_message_matches_ack_by_correlation_id():
    socket = FakeSocket(on_send=lambda s, f: acknowledge(s, f, decoy=True))
    connection = MessagingConnection("ws://test/ws", "tok", connector=connector_for(socket))
    await connection.connect()

    message = await connection.send_message(PROJECT_ID, RECIPIENT_ID, "same text")

    sent = socket.sent[-1]["data"]
    assert message.client_message_id == sent["client_message_id"]
    assert sent["metadata_hash"] == hash_metadata(USER_ID, RECIPIENT_ID, sent["timestamp"], PROJECT_ID)
    assert connection.listener_count() == 0
    await connection.close()


@pytest.mark.asyncio
async def test_error_event_rejects_the_send():
    def refuse(socket, frame):
        socket.push(protocol.ERROR, {
            "message": "Message not sent",
            "details": "Recipient is not part of this project",
            "client_message_id": frame["data"]["client_message_id"],
        })

    connection = MessagingConnection("ws://test/ws", "tok", connector=connector_for(FakeSocket(on_send=refuse)))
    await connection.connect()

    with pytest.raises(MessageRejectedError) as exc_info:
        await connection.send_message(PROJECT_ID, RECIPIENT_ID, "hello")

    assert exc_info.value.message == "Recipient is not part of this project"
    assert connection.listener_count() == 0
    await connection.close()


@pytest.mark.asyncio
async def test_send_times_out_and_detaches_listeners():
    connection = MessagingConnection("ws://test/ws", "tok", ack_timeout=0.05, connector=connector_for(FakeSocket()))
    await connection.connect()

    with pytest.raises(AckTimeoutError) as exc_info:
        await connection.send_message(PROJECT_ID, RECIPIENT_ID, "anyone there?")

    assert exc_info.value.message == "Message send timeout"
    assert connection.listener_count() == 0
    await connection.close()


@pytest.mark.asyncio
async def test_reconnects_after_transport_loss_and_rejoins_rooms():
    first, second = FakeSocket(), FakeSocket()
    connector = connector_for(first, second)
    connection = MessagingConnection("ws://test/ws", "tok", reconnect_delay=0, connector=connector)
    disconnects = []
    connection.on(protocol.DISCONNECT, disconnects.append)
    await connection.connect()
    await connection.join_project(PROJECT_ID)

    first.drop()
    await wait_until(lambda: protocol.JOIN_PROJECT in second.events())

    assert connection.connected
    assert disconnects == [{"code": None}]
    assert connector.urls == ["ws://test/ws?token=tok"] * 2
    await connection.close()


@pytest.mark.asyncio
async def test_server_termination_reconnects_once_without_delay():
    first, second = FakeSocket(), FakeSocket()
    connector = connector_for(first, second)
    connection = MessagingConnection("ws://test/ws", "tok", reconnect_delay=30, connector=connector)
    await connection.connect()

    first.drop(protocol.SERVER_DISCONNECT_CLOSE_CODE)
    await wait_until(lambda: len(connector.urls) == 2 and connection.connected)

    await connection.close()


@pytest.mark.asyncio
async def test_gives_up_after_reconnect_attempts():
    first = FakeSocket()
    connector = connector_for(first, OSError("refused"), OSError("refused"))
    connection = MessagingConnection("ws://test/ws", "tok", reconnect_attempts=2, reconnect_delay=0, connector=connector)
    await connection.connect()

    first.drop()
    await wait_until(lambda: len(connector.urls) == 3)
    await asyncio.sleep(0.01)

    assert not connection.connected
    assert not connection.invalidated
    with pytest.raises(NotConnectedError):
        await connection.send_message(PROJECT_ID, RECIPIENT_ID, "hello")


@pytest.mark.asyncio
async def test_auth_close_during_session_invalidates():
    first = FakeSocket()
    connector = connector_for(first)
    connection = MessagingConnection("ws://test/ws", "tok", reconnect_delay=0, connector=connector)
    await connection.connect()

    first.drop(protocol.AUTH_FAILED_CLOSE_CODE)
    await wait_until(lambda: connection.invalidated)

    assert not connection.connected
    assert len(connector.urls) == 1


@pytest.mark.asyncio
async def test_subscriptions_and_unsubscribe():
    socket = FakeSocket()
    connection = MessagingConnection("ws://test/ws", "tok", connector=connector_for(socket))
    await connection.connect()
    received, reads = [], []

    unsubscribe = connection.subscribe_to_messages(received.append)
    connection.subscribe_to_message_read(reads.append)
    socket.push(protocol.NEW_MESSAGE, {"text": "hi"})
    socket.push(protocol.MESSAGE_READ, {"message_id": "m1"})
    await wait_until(lambda: received and reads)

    unsubscribe()
    assert connection.listener_count(protocol.NEW_MESSAGE) == 0
    assert connection.listener_count(protocol.MESSAGE_READ) == 1
    await connection.close()


@pytest.mark.asyncio
async def test_mark_read_and_leave_are_fire_and_forget():
    socket = FakeSocket()
    connection = MessagingConnection("ws://test/ws", "tok", connector=connector_for(socket))

    # Leaving while disconnected is a no-op.
    await connection.leave_project(PROJECT_ID)

    await connection.connect()
    message_id = str(uuid4())
    await connection.mark_message_as_read(message_id)
    await connection.leave_project(PROJECT_ID)

    assert socket.sent == [
        {"event": protocol.MARK_MESSAGE_READ, "data": {"message_id": message_id}},
        {"event": protocol.LEAVE_PROJECT, "data": {"project_id": PROJECT_ID}},
    ]
    await connection.close()


@pytest.mark.asyncio
async def test_explicit_connect_during_retry_delay_replaces_recovery():
    first, second = FakeSocket(), FakeSocket()
    connector = connector_for(first, second, FakeSocket())
    connection = MessagingConnection("ws://test/ws", "tok", reconnect_delay=0.2, connector=connector)
    disconnects = []
    connection.on(protocol.DISCONNECT, disconnects.append)
    await connection.connect()
    recovering = connection._reader

    first.drop()
    await wait_until(lambda: disconnects)
    await connection.connect()
    await asyncio.sleep(0.3)

    assert recovering.cancelled()
    assert len(connector.urls) == 2
    await connection.join_project(PROJECT_ID)
    assert second.events() == [protocol.JOIN_PROJECT]
    await connection.close()
    assert second.closed
