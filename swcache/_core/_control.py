from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger("swcache.core.control")

SKIP_WAITING = "SKIP_WAITING"
CLEAR_CACHE = "CLEAR_CACHE"
GET_VERSION = "GET_VERSION"
CACHE_CLEARED = "CACHE_CLEARED"

CACHE_CLEARED_MESSAGE = "Cache cleared"


@dataclass(frozen=True)
class SkipWaiting:
    """Force the waiting generation to become current immediately."""


@dataclass(frozen=True)
class ClearCache:
    """Delete every store of every generation and notify consumers."""


@dataclass(frozen=True)
class GetVersion:
    """Reply with the current generation identifier."""


ControlMessage = Union[SkipWaiting, ClearCache, GetVersion]

_MESSAGE_TYPES = {
    SKIP_WAITING: SkipWaiting,
    CLEAR_CACHE: ClearCache,
    GET_VERSION: GetVersion,
}


def parse_control_message(data: Any) -> Optional[ControlMessage]:
    """
    Map a raw control payload to a command.

    Unknown or malformed payloads are not an error, they yield ``None``.

    Examples:
    --------
    >>> parse_control_message({"type": "GET_VERSION"})
    GetVersion()
    >>> parse_control_message({"type": "PING"}) is None
    True
    >>> parse_control_message("SKIP_WAITING") is None
    True
    """
    if not isinstance(data, Mapping):
        logger.debug(f"Ignoring control payload of type {type(data).__name__}")
        return None

    raw_type = data.get("type")
    message_type = _MESSAGE_TYPES.get(raw_type) if isinstance(raw_type, str) else None
    if message_type is None:
        logger.debug(f"Ignoring unknown control message {raw_type!r}")
        return None
    return message_type()


def version_reply(generation: str) -> Dict[str, str]:
    return {"version": generation}


def cache_cleared_broadcast() -> Dict[str, str]:
    return {"type": CACHE_CLEARED, "message": CACHE_CLEARED_MESSAGE}
