import logging
from typing import Any, Awaitable, Callable, List, Optional

from skillswap.client.actions import Fulfilled, Operation, Pending, Rejected
from skillswap.client.errors import ClientError
from skillswap.client.reducers import root_reducer
from skillswap.client.state import AppState

logger = logging.getLogger(__name__)

Subscriber = Callable[[AppState], None]


class Store:
    """Holds the client AppState; every change goes through `dispatch`."""

    def __init__(self, state: Optional[AppState] = None):
        self._state = state or AppState()
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action):
        new_state = root_reducer(self._state, action)
        if new_state is not self._state:
            self._state = new_state
            for subscriber in list(self._subscribers):
                subscriber(new_state)
        return action

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def run(self, operation: Operation, call: Callable[[], Awaitable[Any]], arg: Any = None) -> Any:
        """
        Dispatch Pending, await `call`, then dispatch Fulfilled with its result.
        A ClientError is recorded as Rejected (its message lands in the slice state)
        and re-raised to the caller.
        """
        self.dispatch(Pending(operation=operation))
        try:
            payload = await call()
        except ClientError as exc:
            logger.debug("%s rejected: %s", operation.value, exc.message)
            self.dispatch(Rejected(
                operation=operation,
                message=exc.message,
                status_code=getattr(exc, "status_code", None),
                current_status=getattr(exc, "current_status", None),
            ))
            raise
        self.dispatch(Fulfilled(operation=operation, payload=payload, arg=arg))
        return payload
