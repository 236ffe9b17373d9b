"""Locates the arguments object of a tool call.

Different clients and transports deliver the arguments of a ``tools/call``
in different places. The resolver walks a fixed list of carrier shapes and
returns the first non-empty mapping it finds:

1. a side-channel entry captured from the raw wire message, keyed by the
   connection and JSON-RPC request id and recorded for the same tool
   (:class:`ArgumentStore`),
2. ``params.arguments``,
3. a top-level ``arguments`` field,
4. ``_meta.rawArgs``,
5. the call context itself.

Nothing here coerces values; validation happens against the tool schema.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from .errors import ValidationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _StoredArguments:
    stored_at: float
    tool_name: Optional[str]
    arguments: Dict[str, Any]


class ArgumentStore:
    """Bounded side channel of raw call arguments keyed by request id.

    Keys are ``(origin, request id)`` where ``origin`` names the client
    connection or MCP session the message arrived on. An entry is only
    handed to a call of the tool it was recorded for. Entries are removed
    when consumed, the oldest entry is evicted once ``max_entries`` is
    reached, and entries older than ``ttl_seconds`` are discarded.
    """

    def __init__(self, max_entries: int = 1024, ttl_seconds: float = 300) -> None:
        self.max_entries = max(1, max_entries)
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[Tuple[str, str], _StoredArguments]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return _key(request_id) in self._entries

    def contains(self, request_id: Any, origin: Optional[str] = None) -> bool:
        return _key(request_id, origin) in self._entries

    def record(
        self,
        request_id: Any,
        arguments: Mapping[str, Any],
        tool_name: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> None:
        key = _key(request_id, origin)
        self._purge_expired()
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted stored arguments for request %s", evicted)
        self._entries[key] = _StoredArguments(time.monotonic(), tool_name, dict(arguments))

    def consume(
        self,
        request_id: Any,
        tool_name: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        entry = self._entries.pop(_key(request_id, origin), None)
        if entry is None or self._expired(entry.stored_at):
            return None
        if entry.tool_name != tool_name:
            logger.warning(
                "Discarding stored arguments for request %s: recorded for %s, called as %s",
                request_id,
                entry.tool_name,
                tool_name,
            )
            return None
        return entry.arguments

    def clear(self) -> None:
        self._entries.clear()

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds > 0 and time.monotonic() - stored_at > self.ttl_seconds

    def _purge_expired(self) -> None:
        while self._entries:
            key, entry = next(iter(self._entries.items()))
            if not self._expired(entry.stored_at):
                break
            del self._entries[key]


def _key(request_id: Any, origin: Optional[str] = None) -> Tuple[str, str]:
    return (origin or "", str(request_id))


@dataclass(frozen=True)
class InvocationContext:
    """What a transport hands over for one tool call."""

    raw: Any = field(default_factory=dict)
    request_id: Optional[Any] = None
    tool_name: Optional[str] = None
    origin: Optional[str] = None


@dataclass(frozen=True)
class SideChannelArguments:
    value: Any


@dataclass(frozen=True)
class NestedParamsArguments:
    value: Any


@dataclass(frozen=True)
class TopLevelArguments:
    value: Any


@dataclass(frozen=True)
class MetaRawArguments:
    value: Any


@dataclass(frozen=True)
class RawContextArguments:
    value: Any


ArgumentCarrier = Union[
    SideChannelArguments,
    NestedParamsArguments,
    TopLevelArguments,
    MetaRawArguments,
    RawContextArguments,
]


def iter_carriers(
    context: InvocationContext, store: Optional[ArgumentStore] = None
) -> Iterator[ArgumentCarrier]:
    """Yield the carriers present in ``context`` in precedence order."""
    if context.request_id is not None and store is not None:
        stored = store.consume(context.request_id, context.tool_name, context.origin)
        if stored is not None:
            yield SideChannelArguments(stored)

    raw = context.raw
    if isinstance(raw, Mapping):
        params = raw.get("params")
        if isinstance(params, Mapping) and "arguments" in params:
            yield NestedParamsArguments(params["arguments"])
        if "arguments" in raw:
            yield TopLevelArguments(raw["arguments"])
        meta = raw.get("_meta")
        if isinstance(meta, Mapping) and "rawArgs" in meta:
            yield MetaRawArguments(meta["rawArgs"])
    yield RawContextArguments(raw)


def resolve_arguments(
    context: InvocationContext, store: Optional[ArgumentStore] = None
) -> Dict[str, Any]:
    for carrier in iter_carriers(context, store):
        if _is_empty(carrier.value):
            continue
        if not isinstance(carrier.value, Mapping):
            raise ValidationError(
                f"{type(carrier).__name__} carried {type(carrier.value).__name__}, expected an object"
            )
        logger.debug("Resolved arguments from %s", type(carrier).__name__)
        return dict(carrier.value)
    return {}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (Mapping, str, list, tuple)) and len(value) == 0)
