"""
Client side of the messaging socket.

A MessagingConnection is an ordinary object owned by whoever created it
(normally a MarketplaceSession). It authenticates once per (re)connect by
presenting its bearer token, and keeps a background task reading frames and
dispatching them to listeners registered with `on`.

Reconnect policy:
  * transport loss: up to `reconnect_attempts` tries, `reconnect_delay` apart
  * server termination (close code 4000): one immediate retry
  * authentication failure (close code 4401): the connection is invalidated
    and never reconnects; the owner has to build a new one
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode
from uuid import uuid4

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from skillswap.client.api import IdLike, require_id
from skillswap.client.errors import (
    AckTimeoutError, AuthenticationError, MessageRejectedError, NotConnectedError, TransportError,
)
from skillswap.core.integrity import format_timestamp, hash_metadata
from skillswap.models.schemas import Message, utcnow
from skillswap.realtime import protocol

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_URL = "ws://localhost:5000/ws"

Listener = Callable[[Dict[str, Any]], None]


def close_code(exc: ConnectionClosed) -> Optional[int]:
    return exc.rcvd.code if exc.rcvd is not None else None


class MessagingConnection:
    def __init__(
        self,
        url: str = DEFAULT_SOCKET_URL,
        token: Optional[str] = None,
        user_id: Optional[str] = None,
        *,
        ack_timeout: float = 5.0,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        connector: Optional[Callable[[str], Any]] = None,
    ):
        self.url = url
        self.token = token
        self.user_id = user_id
        self.ack_timeout = ack_timeout
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.invalidated = False

        self._connector = connector or websockets.connect
        self._socket = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._rooms: Set[str] = set()

    @property
    def connected(self) -> bool:
        return self._socket is not None

    # --- listeners ---

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, ()))
        return sum(len(listeners) for listeners in self._listeners.values())

    def _dispatch(self, event: str, data: Dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(data)
            except Exception:
                logger.exception("Listener for %s failed", event)

    # --- lifecycle ---

    async def connect(self) -> None:
        if self.invalidated:
            raise AuthenticationError("Connection was invalidated after an authentication failure")
        if self.connected:
            return
        # A recovery still waiting out its retry delay is superseded by this connect.
        await self._stop_reader()
        self._closing = False
        await self._open()
        self._reader = asyncio.create_task(self._read_loop())

    async def _open(self) -> None:
        """Open the socket and wait for the server's connect frame."""
        url = f"{self.url}?{urlencode({'token': self.token or ''})}"
        try:
            socket = await self._connector(url)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Could not connect to messaging server: {exc}") from exc

        try:
            raw = await asyncio.wait_for(socket.recv(), timeout=self.ack_timeout)
        except ConnectionClosed as exc:
            if close_code(exc) == protocol.AUTH_FAILED_CLOSE_CODE:
                self.invalidated = True
                raise AuthenticationError("Messaging authentication failed") from exc
            raise TransportError("Messaging server closed the connection during handshake") from exc
        except asyncio.TimeoutError:
            await socket.close()
            raise TransportError("Timed out waiting for the messaging handshake") from None
        except asyncio.CancelledError:
            await socket.close()
            raise

        try:
            envelope = protocol.decode(raw)
        except ValidationError:
            envelope = None
        if envelope is None or envelope.event != protocol.CONNECT:
            await socket.close()
            raise TransportError("Unexpected handshake from messaging server")

        self.user_id = envelope.data.get("user_id", self.user_id)
        self._socket = socket
        logger.info("Messaging connection established for user %s", self.user_id)
        self._dispatch(protocol.CONNECT, envelope.data)

    async def close(self) -> None:
        self._closing = True
        socket, self._socket = self._socket, None
        if socket is not None:
            await socket.close()
        await self._stop_reader()

    async def _stop_reader(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    async def _read_loop(self) -> None:
        while self._socket is not None:
            try:
                raw = await self._socket.recv()
            except ConnectionClosed as exc:
                if self._closing:
                    return
                code = close_code(exc)
                self._socket = None
                logger.warning("Messaging connection lost (close code %s)", code)
                self._dispatch(protocol.DISCONNECT, {"code": code})
                if not await self._recover(code):
                    return
                continue

            try:
                envelope = protocol.decode(raw)
            except ValidationError:
                logger.warning("Ignoring malformed frame from messaging server")
                continue
            self._dispatch(envelope.event, envelope.data)

    async def _recover(self, code: Optional[int]) -> bool:
        if code == protocol.AUTH_FAILED_CLOSE_CODE:
            self.invalidated = True
            return False

        if code == protocol.SERVER_DISCONNECT_CLOSE_CODE:
            attempts, delay = 1, 0.0
        else:
            attempts, delay = self.reconnect_attempts, self.reconnect_delay

        for attempt in range(1, attempts + 1):
            if delay:
                await asyncio.sleep(delay)
            if self._closing:
                return False
            try:
                await self._open()
            except AuthenticationError:
                logger.error("Re-authentication failed; connection invalidated")
                return False
            except TransportError as exc:
                logger.warning("Reconnect attempt %d/%d failed: %s", attempt, attempts, exc.message)
                continue
            for project_id in sorted(self._rooms):
                await self._send_frame(protocol.JOIN_PROJECT, {"project_id": project_id})
            return True

        logger.error("Giving up on messaging connection after %d attempts", attempts)
        return False

    # --- outbound ---

    def _require_connected(self) -> None:
        if not self.connected:
            raise NotConnectedError("Socket not connected")

    async def _send_frame(self, event: str, data: Dict[str, Any]) -> None:
        self._require_connected()
        try:
            await self._socket.send(protocol.encode(event, data))
        except ConnectionClosed as exc:
            raise NotConnectedError("Socket not connected") from exc

    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        await self._send_frame(event, data)

    async def join_project(self, project_id: IdLike) -> None:
        project_id = require_id(project_id, "project ID")
        await self._send_frame(protocol.JOIN_PROJECT, {"project_id": project_id})
        self._rooms.add(project_id)

    async def leave_project(self, project_id: IdLike) -> None:
        project_id = require_id(project_id, "project ID")
        self._rooms.discard(project_id)
        if self.connected:
            await self._send_frame(protocol.LEAVE_PROJECT, {"project_id": project_id})

    async def send_message(self, project_id: IdLike, recipient_id: IdLike, text: str) -> Message:
        """Send and wait for the server's newMessage (or error) carrying our client_message_id."""
        project_id = require_id(project_id, "project ID")
        recipient_id = require_id(recipient_id, "recipient ID")
        self._require_connected()

        client_message_id = uuid4().hex
        ack: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_new_message(data: Dict[str, Any]) -> None:
            if data.get("client_message_id") == client_message_id and not ack.done():
                ack.set_result(data)

        def on_error(data: Dict[str, Any]) -> None:
            if data.get("client_message_id") == client_message_id and not ack.done():
                ack.set_exception(MessageRejectedError(data.get("details") or data.get("message") or "Message not sent"))

        def on_disconnect(data: Dict[str, Any]) -> None:
            if not ack.done():
                ack.set_exception(NotConnectedError("Connection lost before the message was acknowledged"))

        self.on(protocol.NEW_MESSAGE, on_new_message)
        self.on(protocol.ERROR, on_error)
        self.on(protocol.DISCONNECT, on_disconnect)
        try:
            timestamp = format_timestamp(utcnow())
            await self._send_frame(protocol.SEND_MESSAGE, {
                "project_id": project_id,
                "recipient_id": recipient_id,
                "text": text,
                "timestamp": timestamp,
                "metadata_hash": hash_metadata(self.user_id, recipient_id, timestamp, project_id),
                "client_message_id": client_message_id,
            })
            data = await asyncio.wait_for(ack, timeout=self.ack_timeout)
        except asyncio.TimeoutError:
            raise AckTimeoutError("Message send timeout") from None
        finally:
            self.off(protocol.NEW_MESSAGE, on_new_message)
            self.off(protocol.ERROR, on_error)
            self.off(protocol.DISCONNECT, on_disconnect)
        return Message(**data)

    async def mark_message_as_read(self, message_id: IdLike) -> None:
        message_id = require_id(message_id, "message ID")
        await self._send_frame(protocol.MARK_MESSAGE_READ, {"message_id": message_id})

    def subscribe_to_messages(self, callback: Listener) -> Callable[[], None]:
        self._require_connected()
        self.on(protocol.NEW_MESSAGE, callback)
        return lambda: self.off(protocol.NEW_MESSAGE, callback)

    def subscribe_to_message_read(self, callback: Listener) -> Callable[[], None]:
        self._require_connected()
        self.on(protocol.MESSAGE_READ, callback)
        return lambda: self.off(protocol.MESSAGE_READ, callback)
