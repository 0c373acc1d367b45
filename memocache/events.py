"""Lifecycle events emitted by a cache, and a small synchronous event bus to deliver them."""

from __future__ import annotations

import logging
import threading

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from memocache.constants import InvalidEventKey


logger = logging.getLogger(__name__)

class EventType(Enum):
    HIT = 'HIT'
    MISSED = 'MISSED'
    ERROR = 'ERROR'
    EXPIRED = 'EXPIRED'
    MANUAL_PUT = 'MANUAL_PUT'
    MANUAL_GET = 'MANUAL_GET'


def parse_event_type(event_type: EventType|str) -> EventType:
    """Returns the `EventType` named by `event_type`.

    Strings are matched case-insensitively, with '-' treated as '_' (so 'manual-put' works).
    Raises `InvalidEventKey` for anything else.
    """
    if isinstance(event_type, EventType):
        return event_type
    if isinstance(event_type, str):
        name = event_type.strip().upper().replace('-', '_')
        if name in EventType.__members__:
            return EventType[name]
    valid = ' '.join(e.name for e in EventType)
    raise InvalidEventKey(f'event type must be one of {valid}, not {event_type!r}')


@dataclass(frozen=True)
class Event:
    """A single notification from a cache.

    `fn_name` is None for EXPIRED events, since the backend doesn't know which function produced
    the entry. `cause` is only set for ERROR events.
    """
    event_type: EventType
    cache_name: str
    key: str
    fn_name: str|None = None
    creation_time: datetime = field(default_factory=datetime.now)
    cause: BaseException|None = None

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


Handler = Callable[[Event], Any]


class EventBus:
    """Per-event-type handler registry with synchronous, in-order dispatch.

    Handlers for a type are stored as a tuple that is replaced (never mutated) on subscription,
    so `dispatch()` can read it without taking the lock.

    Every handler is called even if an earlier one raises: failures are logged with their
    traceback and otherwise ignored, so a misbehaving listener can't change the outcome of the
    cache operation that fired the event.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: dict[EventType, tuple[Handler, ...]] = {}

    def subscribe(self, event_type: EventType|str, handler: Handler) -> None:
        event_type = parse_event_type(event_type)
        with self._lock:
            self._handlers[event_type] = self._handlers.get(event_type, ()) + (handler,)

    def listeners(self, event_type: EventType|str) -> tuple[Handler, ...]:
        return self._handlers.get(parse_event_type(event_type), ())

    def dispatch(self, event: Event) -> None:
        """Calls all handlers subscribed to `event.event_type`, in subscription order."""
        for handler in self._handlers.get(event.event_type, ()):
            try:
                handler(event)
            except Exception:
                logger.exception(f'Error in {event.event_type.name} handler {handler!r} for cache {event.cache_name}')
