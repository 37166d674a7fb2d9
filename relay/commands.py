"""
Textual introspection commands over a registry.

A thin renderer: each command calls one or more of the registry's read
operations and returns the result as indented JSON text. Nothing here changes
registry state.

    list participants [name-pattern]
    list channels [channel-pattern]
    list handlers|answerers [channel-pattern] [name-pattern]
    list listeners [pattern-filter] [name-pattern]
    inspect <channel>
"""

import json
from typing import Callable

from relay import pattern
from relay.registry import Registry


VERBS = ("list", "inspect")
LIST_TARGETS = ("answerers", "channels", "handlers", "listeners", "participants")


class CommandError(Exception):
    """Raised when a command line names an unknown verb or list target."""


def _render(data: object) -> str:
    return json.dumps(data, indent=4, sort_keys=True)


def _list(registry: Registry, target: str, filters: list[str]) -> str:
    filter1 = filters[0] if len(filters) > 0 else pattern.WILDCARD
    filter2 = filters[1] if len(filters) > 1 else pattern.WILDCARD

    listings: dict[str, Callable[[], object]] = {
        "participants": lambda: registry.list_participants(filter1),
        "channels": lambda: registry.list_channels(filter1),
        "handlers": lambda: registry.list_request_handlers(filter1, filter2),
        "answerers": lambda: registry.list_request_handlers(filter1, filter2),
        "listeners": lambda: registry.list_broadcast_handlers(filter1, filter2),
    }
    if target not in listings:
        raise CommandError(f"Unknown list target: {target}")

    return _render(listings[target]())


def _inspect(registry: Registry, channel: str) -> str:
    if pattern.is_pattern(channel):
        reaching = registry.list_broadcast_handlers(channel)
    else:
        listeners = registry.list_broadcast_handlers()
        reaching = {
            p: listeners[p] for p in registry.get_matching_broadcast_patterns(channel)
        }

    return "\n".join(
        [
            f"=== Channel: {channel} ===",
            "",
            "Request handlers:",
            _render(registry.list_request_handlers(channel)),
            "",
            "Broadcast handlers:",
            _render(reaching),
        ]
    )


def run(registry: Registry, command_line: str) -> str:
    """
    Run a command line against registry and return the rendered output.

    Args:
        registry (Registry): The registry to read.
        command_line (str): e.g. 'list handlers format*'.
    Returns:
        str: Human-readable output.
    Raises:
        CommandError: If the verb or list target is unknown or missing.
    """
    args = command_line.split()
    if not args:
        raise CommandError("No command given")

    verb = args[0]
    if verb == "list":
        if len(args) < 2:
            raise CommandError("Missing list target")
        return _list(registry, args[1], args[2:])

    elif verb == "inspect":
        channel = args[1] if len(args) > 1 else pattern.WILDCARD
        return _inspect(registry, channel)

    raise CommandError(f"Unknown command: {verb}")


def complete(command_line: str) -> list[str]:
    """Returns completion candidates for the word being typed in command_line."""
    args = command_line.split()
    typing_new_word = not args or command_line[-1].isspace()

    position = len(args) if typing_new_word else len(args) - 1
    prefix = "" if typing_new_word else args[-1]

    if position == 0:
        candidates = VERBS
    elif position == 1 and args[0] == "list":
        candidates = LIST_TARGETS
    else:
        return []

    return [c for c in candidates if c.startswith(prefix)]
