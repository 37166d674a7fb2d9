"""
# Broker Registry

Herein is the registry itself. It holds every registered participant and the
handlers they publish, and implements the two dispatch protocols:

- request(): pull a single result from the first request handler on an exact
  channel whose owner matches the caller's preference list. Handler failures
  propagate to the caller.
- broadcast(): push data to every broadcast handler whose pattern matches the
  channel. Handler failures are isolated, reported and swallowed.

Each Registry instance is independent. Participants get a ParticipantHandle
from register() which forwards to the owner-scoped methods below with its
bound name.
"""

import copy
import json
import logging
import os
import threading
from typing import Any
from typing import Optional
from typing import Union

from relay import handlers
from relay import participant
from relay import pattern as pattern_
from relay.handle import ParticipantHandle


logger = logging.getLogger(__name__)


# -----Exceptions--------------------------------------------------------------
class RelayArgumentError(Exception):
    """Raised when a channel, pattern or handler argument is unusable."""


# -----------------------------------------------------------------------------


def _validate_key(key: Any, label: str) -> None:
    """Raise RelayArgumentError unless key is a non-empty string."""
    if not isinstance(key, str):
        raise RelayArgumentError(
            f"{label} must be a string. Received {key!r} "
            f"(a {type(key).__name__}) instead"
        )

    if not key:
        raise RelayArgumentError(f"{label} must not be empty")


def _validate_callback(callback: Any) -> None:
    if not callable(callback):
        raise RelayArgumentError(
            f"handler must be callable. Received {callback!r} instead"
        )


def _normalize_prefer(
    prefer: Union[None, str, list[str], tuple[str, ...]]
) -> list[str]:
    """A single pattern becomes a one-element list, None matches everyone."""
    if prefer is None:
        return [pattern_.WILDCARD]

    if isinstance(prefer, str):
        return [prefer]

    return list(prefer)


class Registry(object):
    """
    Primary message coordinator.
    Channel and participant names are matched with * and ? glob patterns.

    To join the registry use register(), which returns a ParticipantHandle.

    Request handlers are stored under an exact channel and looked up by exact
    channel. Broadcast handlers are stored under a pattern and receive every
    broadcast whose channel matches it. Each (key, participant) pair holds at
    most one handler; publishing again replaces it.
    """

    def __init__(
        self,
        exception_handler: Optional[handlers.BROADCAST_EXCEPTION_HANDLER] = None,
    ) -> None:
        self._lock = threading.RLock()

        self._participants: dict[str, participant.Metadata] = {}
        self._request_handlers: dict[str, dict[str, participant.Publication]] = {}
        self._broadcast_handlers: dict[str, dict[str, participant.Publication]] = {}

        self._broadcast_exception_handler: handlers.BROADCAST_EXCEPTION_HANDLER = (
            handlers.log_broadcast_exception
        )
        self.set_broadcast_exception_handler(exception_handler)

    def reset(self) -> None:
        """Clears every participant and handler."""
        with self._lock:
            self._participants.clear()
            self._request_handlers.clear()
            self._broadcast_handlers.clear()

        logger.debug("Registry reset")

    def set_broadcast_exception_handler(
        self, handler: Optional[handlers.BROADCAST_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for broadcast handler errors.

        Args:
            Optional[handlers.BROADCAST_EXCEPTION_HANDLER]:
                Callable with signature (str, str, Exception) -> None.
                Pass None to restore the default (log and continue).
        """
        if handler is None:
            handler = handlers.log_broadcast_exception

        self._broadcast_exception_handler = handler

    # -----Participant Management----------------------------------------------

    def register(
        self, name: str, metadata: Optional[participant.Metadata] = None
    ) -> ParticipantHandle:
        """
        Register a participant and return a handle bound to its name.

        Registering a name again replaces its metadata. Handlers already
        published under that name are kept.

        Args:
            name (str): Unique participant name (e.g. 'formatter').
            metadata (Metadata): Optional advisory metadata.
        Returns:
            ParticipantHandle: Handle used to publish, request and broadcast.
        """
        with self._lock:
            self._participants[name] = copy.deepcopy(dict(metadata or {}))

        logger.debug(f"Registered participant '{name}'")
        return ParticipantHandle(name, self)

    # -----Request / Response--------------------------------------------------

    def publish_request_handler(
        self, name: str, channel: str, handler: participant.REQUEST_HANDLER
    ) -> None:
        """
        Publish a request handler for an exact channel on behalf of name.

        Args:
            name (str): The owning participant.
            channel (str): The literal channel to answer on.
            handler (REQUEST_HANDLER): Receives (channel, options).
        Raises:
            RelayArgumentError: If channel is not a non-empty string or
                handler is not callable.
        """
        _validate_key(channel, "channel")
        _validate_callback(handler)

        publication = participant.Publication(owner=name, callback=handler)
        with self._lock:
            self._request_handlers.setdefault(channel, {})[name] = publication

        logger.debug(f"'{name}' published request handler on '{channel}'")

    def request(
        self, name: str, channel: str, options: Optional[dict[str, Any]] = None
    ) -> Any:
        """
        Ask for a result on an exact channel.

        Preference patterns are tried in order. For each one, the first request
        handler on the channel whose owner matches the pattern is invoked and
        its result returned.

        Args:
            name (str): The requesting participant.
            channel (str): The literal channel, never matched as a pattern.
            options (dict): Passed to the handler as is. options['prefer'] is a
                pattern or list of patterns of owner names, default '*'.
        Returns:
            Any: The handler's result, or None when no handler matched.
        Raises:
            RelayArgumentError: If channel is not a non-empty string.
            Exception: Whatever the invoked handler raises.
        """
        _validate_key(channel, "channel")
        options = {} if options is None else options
        prefer = _normalize_prefer(options.get("prefer"))

        with self._lock:
            publication = self._resolve_request_handler(channel, prefer)

        if publication is None:
            logger.debug(f"'{name}' requested '{channel}', nobody answered")
            return None

        return publication.callback(channel, options)

    def _resolve_request_handler(
        self, channel: str, prefer: list[str]
    ) -> Optional[participant.Publication]:
        """Find the handler to answer channel. Caller holds the lock."""
        entries = self._request_handlers.get(channel)
        if not entries:
            return None

        for prefer_pattern in prefer:
            for owner, publication in entries.items():
                if pattern_.matches(owner, prefer_pattern):
                    return publication

        return None

    # -----Broadcast-----------------------------------------------------------

    def publish_broadcast_handler(
        self, name: str, pattern: str, handler: participant.BROADCAST_HANDLER
    ) -> None:
        """
        Publish a broadcast handler for a channel pattern on behalf of name.

        Args:
            name (str): The owning participant.
            pattern (str): Channel pattern (e.g. 'file-browser.*').
            handler (BROADCAST_HANDLER): Receives (channel, data, meta).
        Raises:
            RelayArgumentError: If pattern is not a non-empty string or
                handler is not callable.
        """
        _validate_key(pattern, "pattern")
        _validate_callback(handler)

        publication = participant.Publication(owner=name, callback=handler)
        with self._lock:
            self._broadcast_handlers.setdefault(pattern, {})[name] = publication

        logger.debug(f"'{name}' published broadcast handler on '{pattern}'")

    def broadcast(self, name: str, channel: str, data: Any = None) -> int:
        """
        Send data to every broadcast handler whose pattern matches channel.

        Every matching handler runs, even when others fail. Failures are passed
        to the broadcast exception handler.

        Args:
            name (str): The broadcasting participant, passed on as meta source.
            channel (str): The literal channel broadcast to.
            data (Any): Passed to each handler untouched.
        Returns:
            int: Number of handlers that completed without raising.
        Raises:
            RelayArgumentError: If channel is not a non-empty string.
        """
        _validate_key(channel, "channel")

        # Handlers matching at call time all run, even if one of them unpublishes
        # another mid-dispatch. Changes apply from the next broadcast.
        with self._lock:
            targets = [
                publication
                for reg_pattern, entries in self._broadcast_handlers.items()
                if pattern_.matches(channel, reg_pattern)
                for publication in entries.values()
            ]

        count = 0
        for publication in targets:
            meta = participant.BroadcastMeta(source=name, channel=channel)
            try:
                publication.callback(channel, data, meta)
            except Exception as e:
                self._report_broadcast_exception(publication.owner, channel, e)
            else:
                count += 1

        return count

    def _report_broadcast_exception(
        self, owner: str, channel: str, exception: Exception
    ) -> None:
        try:
            self._broadcast_exception_handler(owner, channel, exception)
        except Exception:
            logger.exception(
                f"Broadcast exception handler "
                f"{handlers.get_callable_name(self._broadcast_exception_handler)} "
                f"failed while reporting '{owner}' on '{channel}'"
            )

    # -----Unpublish-----------------------------------------------------------

    def unpublish(self, name: str, pattern: str) -> None:
        """
        Remove the handlers name owns under every key matching pattern.

        The pattern is matched against the stored keys themselves, broadcast
        patterns and literal request channels alike. Other participants'
        handlers are never touched, and a key left without handlers is deleted.

        Args:
            name (str): The owning participant.
            pattern (str): Pattern matched against stored keys.
        Raises:
            RelayArgumentError: If pattern is not a non-empty string.
        """
        _validate_key(pattern, "pattern")

        with self._lock:
            for table in (self._broadcast_handlers, self._request_handlers):
                for key in [k for k in table if pattern_.matches(k, pattern)]:
                    entries = table[key]
                    entries.pop(name, None)
                    if not entries:
                        del table[key]

        logger.debug(f"'{name}' unpublished handlers matching '{pattern}'")

    # -----Introspection API---------------------------------------------------

    def list_participants(
        self, name_pattern: str = pattern_.WILDCARD
    ) -> dict[str, participant.Metadata]:
        """
        Get every participant whose name matches name_pattern.

        Returns:
            dict[str, Metadata]: Participant name to a copy of its metadata.
        """
        with self._lock:
            return {
                name: copy.deepcopy(metadata)
                for name, metadata in self._participants.items()
                if pattern_.matches(name, name_pattern)
            }

    def list_request_handlers(
        self,
        channel_pattern: str = pattern_.WILDCARD,
        name_pattern: str = pattern_.WILDCARD,
    ) -> dict[str, list[str]]:
        """
        Get the owners of request handlers, keyed by channel.

        Args:
            channel_pattern (str): Filter for the stored channels.
            name_pattern (str): Filter for the owning participants.
        Returns:
            dict[str, list[str]]: Channel to sorted owner names. Channels
                without a matching owner are left out.
        """
        with self._lock:
            return self._list_owners(
                self._request_handlers, channel_pattern, name_pattern
            )

    def list_broadcast_handlers(
        self,
        pattern_filter: str = pattern_.WILDCARD,
        name_pattern: str = pattern_.WILDCARD,
    ) -> dict[str, list[str]]:
        """
        Get the owners of broadcast handlers, keyed by stored pattern.

        Args:
            pattern_filter (str): Filter for the stored patterns.
            name_pattern (str): Filter for the owning participants.
        Returns:
            dict[str, list[str]]: Pattern to sorted owner names.
        """
        with self._lock:
            return self._list_owners(
                self._broadcast_handlers, pattern_filter, name_pattern
            )

    @staticmethod
    def _list_owners(
        table: dict[str, dict[str, participant.Publication]],
        key_pattern: str,
        name_pattern: str,
    ) -> dict[str, list[str]]:
        results = {}
        for key, entries in table.items():
            if not pattern_.matches(key, key_pattern):
                continue

            owners = sorted(o for o in entries if pattern_.matches(o, name_pattern))
            if owners:
                results[key] = owners

        return results

    def list_channels(self, channel_pattern: str = pattern_.WILDCARD) -> list[str]:
        """
        Get every request channel and broadcast pattern matching channel_pattern.

        Returns:
            list[str]: Sorted, without duplicates.
        """
        with self._lock:
            keys = set(self._request_handlers) | set(self._broadcast_handlers)

        return sorted(k for k in keys if pattern_.matches(k, channel_pattern))

    def get_matching_broadcast_patterns(self, channel: str) -> list[str]:
        """
        Get the stored broadcast patterns a broadcast on channel would reach.

        Example:
            registry.get_matching_broadcast_patterns('test.a')
            ['test.*', 'test.?']
        """
        with self._lock:
            return sorted(
                p for p in self._broadcast_handlers if pattern_.matches(channel, p)
            )

    def to_dict(self) -> dict:
        """Convert the registry structure to a dictionary."""

        def describe(table: dict[str, dict[str, participant.Publication]]) -> dict:
            return {
                key: [
                    f"{owner}: {handlers.get_callable_name(table[key][owner].callback)}"
                    for owner in sorted(table[key])
                ]
                for key in sorted(table)
            }

        with self._lock:
            return {
                "participants": {
                    name: copy.deepcopy(self._participants[name])
                    for name in sorted(self._participants)
                },
                "request_handlers": describe(self._request_handlers),
                "broadcast_handlers": describe(self._broadcast_handlers),
            }

    def to_string(self) -> str:
        """Returns a string representation of the registry."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export registry structure to filepath."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)
