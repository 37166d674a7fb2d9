"""
# Relay

An in-process message broker letting independently written plugins exchange
requests and broadcasts through named channels without holding references to
each other.

    registry = relay.Registry()
    formatter = registry.register("formatter", {"version": "1.2.0"})
    formatter.publish_request_handler("format.state", lambda channel, opts: "on")

    statusline = registry.register("statusline")
    statusline.request("format.state")  # 'on'

For a complete breakdown of registry functionality, read relay.registry.
"""

from relay import handlers
from relay import pattern
from relay.handle import ParticipantHandle
from relay.participant import BroadcastMeta
from relay.participant import Metadata
from relay.pattern import matches
from relay.registry import Registry
from relay.registry import RelayArgumentError


version_major = 0
version_minor = 1
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

__all__ = [
    "BroadcastMeta",
    "Metadata",
    "ParticipantHandle",
    "Registry",
    "RelayArgumentError",
    "handlers",
    "matches",
    "pattern",
]
