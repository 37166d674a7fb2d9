"""
Participant and handler data structures for the relay broker.

Defines the Metadata TypedDict a participant registers with, the BroadcastMeta
TypedDict handed to every broadcast handler, and the Publication dataclass the
registry stores for each published handler. Also defines the REQUEST_HANDLER
and BROADCAST_HANDLER type aliases used throughout the package for type hints.
"""

from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import TypedDict
from typing import Union


class Metadata(TypedDict, total=False):
    """
    Descriptive metadata a participant registers with.
    Every field is advisory, the broker stores it and never enforces it.
    """

    version: str
    """Free-form version string of the participant."""

    answers: list[str]
    """Channels the participant intends to answer requests on."""

    emits: list[str]
    """Channels the participant intends to broadcast on."""

    listens: list[str]
    """Patterns the participant intends to listen to."""


class BroadcastMeta(TypedDict):
    """Metadata passed to broadcast handlers alongside the data."""

    source: str
    """Name of the participant that broadcast."""

    channel: str
    """The channel that was broadcast to."""


REQUEST_HANDLER = Callable[[str, dict[str, Any]], Any]
"""
A request handler receives (channel, options) and returns the result handed
back to the requester. Raising propagates straight to the requester.
"""

BROADCAST_HANDLER = Callable[[str, Any, BroadcastMeta], Any]
"""
A broadcast handler receives (channel, data, meta). The return value is
ignored. Raising is reported and never reaches the broadcaster.
"""


@dataclass(frozen=True)
class Publication(object):
    """
    A handler published by a participant. The registry tables key it by
    channel or pattern, then by owner.
    """

    owner: str
    """Name of the participant that published the handler."""

    callback: Union[REQUEST_HANDLER, BROADCAST_HANDLER]
    """The end point that is invoked. i.e. what gets ran."""
