import logging
from typing import Any, Callable, Dict, Optional

from skillswap.client import operations
from skillswap.client.actions import AddMessage, ResetMessages, UpdateMessageReadStatus
from skillswap.client.api import DEFAULT_API_URL, IdLike, MarketplaceApi
from skillswap.client.connection import DEFAULT_SOCKET_URL, MessagingConnection
from skillswap.client.store import Store
from skillswap.models.schemas import Message
from skillswap.realtime import protocol

logger = logging.getLogger(__name__)


class MarketplaceSession:
    """
    Everything one signed-in user needs: the token, the REST client, the
    store and the messaging connection. The connection is created on first
    use and rebuilt if a previous one was invalidated by an auth failure.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        socket_url: str = DEFAULT_SOCKET_URL,
        api: Optional[MarketplaceApi] = None,
        store: Optional[Store] = None,
        connection_factory: Optional[Callable[[], MessagingConnection]] = None,
    ):
        self.token = token
        self.api = api or MarketplaceApi(api_url, token)
        self.store = store or Store()
        self._connection_factory = connection_factory or (lambda: MessagingConnection(socket_url, token))
        self._connection: Optional[MessagingConnection] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _on_new_message(self, data: Dict[str, Any]) -> None:
        self.store.dispatch(AddMessage(message=Message(**data)))

    def _on_message_read(self, data: Dict[str, Any]) -> None:
        self.store.dispatch(UpdateMessageReadStatus(message_id=data["message_id"], read_at=data.get("read_at")))

    def _new_connection(self) -> MessagingConnection:
        connection = self._connection_factory()
        connection.on(protocol.NEW_MESSAGE, self._on_new_message)
        connection.on(protocol.MESSAGE_READ, self._on_message_read)
        return connection

    async def connection(self) -> MessagingConnection:
        """Return a connected messaging connection, building a fresh one if needed."""
        if self._connection is not None and self._connection.invalidated:
            logger.info("Replacing invalidated messaging connection")
            await self._connection.close()
            self._connection = None
        if self._connection is None:
            self._connection = self._new_connection()
        if not self._connection.connected:
            await self._connection.connect()
        return self._connection

    async def open_conversation(self, project_id: IdLike, recipient_id: IdLike):
        """Join the project room and load its history with `recipient_id`."""
        self.store.dispatch(ResetMessages())
        connection = await self.connection()
        await connection.join_project(project_id)
        return await operations.fetch_messages(self.store, self.api, project_id, recipient_id)

    async def close_conversation(self, project_id: IdLike) -> None:
        if self._connection is not None:
            await self._connection.leave_project(project_id)
        self.store.dispatch(ResetMessages())

    async def send_message(self, project_id: IdLike, recipient_id: IdLike, text: str) -> Message:
        connection = await self.connection()
        return await operations.send_message(self.store, connection, project_id, recipient_id, text)

    async def mark_message_as_read(self, message_id: IdLike) -> None:
        connection = await self.connection()
        await operations.mark_message_as_read(connection, message_id)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        await self.api.aclose()
