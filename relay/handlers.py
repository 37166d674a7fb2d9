"""
Exception handling utilities for broadcast delivery.

A broadcast handler that raises never stops delivery to the remaining handlers
and never reaches the broadcaster. The failure is instead passed to the
registry's broadcast exception handler. Includes built-in handlers for common
patterns: logging the failure (log_broadcast_exception, the default), silently
ignoring it (silent_broadcast_exception), and collecting failures for batch
processing (collect_broadcast_exception).

Request handlers have no counterpart here. Their failures propagate to the
requester like any direct function call.
"""

import logging
import sys
from typing import Callable


logger = logging.getLogger(__name__)


BROADCAST_EXCEPTION_HANDLER = Callable[[str, str, Exception], None]
"""
Signature for broadcast exception handlers.

Exception handlers receive the failing participant's name, the channel, and
the exception. Their return value is ignored.
"""


def get_callable_name(callable_: Callable) -> str:
    """
    Returns the name of the callable, using class name for items with __self__,
    __name__ for anything with __name__, or str(callback) if neither are found.
    """
    if hasattr(callable_, "__self__"):
        return f"{callable_.__self__.__class__.__name__}.{callable_.__name__}"
    elif hasattr(callable_, "__name__"):
        return callable_.__name__
    else:
        return str(callable_)


def log_broadcast_exception(
    participant: str, channel: str, exception: Exception
) -> None:
    """Log the failing handler with its traceback and carry on."""
    logger.error(
        f"Exception in broadcast handler:\n"
        f"  Participant: {participant}\n"
        f"  Channel:     {channel}\n"
        f"  Exception:   {exception.__class__.__name__}: {exception}",
        exc_info=True,
    )


def silent_broadcast_exception(_: str, __: str, ___: Exception) -> None:
    """Silently ignore all exceptions."""


exceptions_caught = []


def collect_broadcast_exception(
    participant: str, channel: str, exception: Exception
) -> None:
    """
    Collect exceptions for batch processing.
    This appends exceptions caught to relay.handlers.exceptions_caught which
    is a list.
    Either manage the list manually or use this function as an example to create
    a more robust exception collector.
    """
    exceptions_caught.append(
        {
            "participant": participant,
            "channel": channel,
            "exception": f"{exception.__class__.__name__}: {exception}",
            "exc_info": sys.exc_info(),
        }
    )
