"""
The participant handle returned by Registry.register().

A handle pairs a participant name with the registry it joined. Every operation
on it is forwarded to the registry with that name as the owner, so a
participant can only ever publish or unpublish its own handlers.
"""

from typing import TYPE_CHECKING
from typing import Any
from typing import Callable
from typing import Optional

from relay import participant

if TYPE_CHECKING:
    from relay.registry import Registry


class ParticipantHandle(object):
    """
    A participant's view of the registry.

    To answer requests use publish_request_handler() or decorate with
    @answers. To receive broadcasts use publish_broadcast_handler() or
    decorate with @listens.
    """

    def __init__(self, name: str, registry: "Registry") -> None:
        self._name = name
        self._registry = registry

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> "Registry":
        return self._registry

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._name!r})"

    def publish_request_handler(
        self, channel: str, handler: participant.REQUEST_HANDLER
    ) -> None:
        """Answer requests on the exact channel with handler."""
        self._registry.publish_request_handler(self._name, channel, handler)

    def request(self, channel: str, options: Optional[dict[str, Any]] = None) -> Any:
        """
        Ask for a result on channel. Returns None when nobody answers.
        options['prefer'] narrows which participants may answer, in order.
        """
        return self._registry.request(self._name, channel, options)

    def publish_broadcast_handler(
        self, pattern: str, handler: participant.BROADCAST_HANDLER
    ) -> None:
        """Receive broadcasts on every channel matching pattern with handler."""
        self._registry.publish_broadcast_handler(self._name, pattern, handler)

    def broadcast(self, channel: str, data: Any = None) -> int:
        """Send data to all matching listeners. Returns the success count."""
        return self._registry.broadcast(self._name, channel, data)

    def unpublish(self, pattern: str) -> None:
        """Remove this participant's handlers under keys matching pattern."""
        self._registry.unpublish(self._name, pattern)

    # -----Decorators----------------------------------------------------------

    def answers(
        self, channel: str
    ) -> Callable[[participant.REQUEST_HANDLER], participant.REQUEST_HANDLER]:
        """
        Decorator to publish a function as this participant's request handler.

        Args:
            channel (str): The exact channel to answer on.
        """

        def decorator(func: participant.REQUEST_HANDLER) -> participant.REQUEST_HANDLER:
            self.publish_request_handler(channel, func)
            return func

        return decorator

    def listens(
        self, pattern: str
    ) -> Callable[[participant.BROADCAST_HANDLER], participant.BROADCAST_HANDLER]:
        """
        Decorator to publish a function as this participant's broadcast handler.

        Args:
            pattern (str): The channel pattern to listen to.
        """

        def decorator(
            func: participant.BROADCAST_HANDLER,
        ) -> participant.BROADCAST_HANDLER:
            self.publish_broadcast_handler(pattern, func)
            return func

        return decorator
