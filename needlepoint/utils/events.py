from __future__ import annotations
"""Execution events and the ordered **EventBus** that carries them.

Every event is appended to the bus history (an append-only, ordered log that
consumers can :meth:`EventBus.drain` at their own pace) and fanned out to
subscribers synchronously, in emission order.

Example
-------
```python
from needlepoint.utils.events import EventBus, WaveStarted

bus = EventBus()

@bus.subscribe(WaveStarted)
def _on_wave(evt: WaveStarted):
    print(f"wave {evt.wave_number}: {len(evt.node_ids)} node(s)")
```
"""

import threading
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Callable, ClassVar, Dict, List, Optional, Type, TypeVar

from pydantic.alias_generators import to_camel

__all__ = [
    "Event",
    "ExecutionStarted",
    "WaveStarted",
    "NodeUpdate",
    "WaveCompleted",
    "ExecutionCompleted",
    "ExecutionCancelled",
    "ExecutionError",
    "Notice",
    "EventBus",
    "default_bus",
    "subscribe",
    "publish",
]

log = getLogger(__name__)

T = TypeVar("T", bound="Event")
_Handler = Callable[[Any], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, kw_only=True)
class Event:  # noqa: D101 – base event
    kind: ClassVar[str] = "event"
    ts: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: ``{"type": kind, <camelCase fields>}``; ``None`` fields omitted."""
        out: Dict[str, Any] = {"type": self.kind}
        for f in fields(self):
            if f.name == "ts":
                continue
            val = getattr(self, f.name)
            if val is None:
                continue
            out[to_camel(f.name)] = list(val) if isinstance(val, (list, tuple)) else val
        return out


# --------------------------------------------------------------------------- #
# Concrete events
# --------------------------------------------------------------------------- #
@dataclass(slots=True)
class ExecutionStarted(Event):
    kind: ClassVar[str] = "started"
    total_nodes: int
    total_waves: int


@dataclass(slots=True)
class WaveStarted(Event):
    kind: ClassVar[str] = "waveStarted"
    wave_number: int
    node_ids: List[str]


@dataclass(slots=True)
class NodeUpdate(Event):
    kind: ClassVar[str] = "nodeUpdate"
    node_id: str
    status: str
    message: Optional[str] = None
    content: Optional[str] = None


@dataclass(slots=True)
class WaveCompleted(Event):
    kind: ClassVar[str] = "waveCompleted"
    wave_number: int
    success_count: int
    fail_count: int


@dataclass(slots=True)
class ExecutionCompleted(Event):
    kind: ClassVar[str] = "completed"
    total_successful: int
    total_failed: int
    total_skipped: int


@dataclass(slots=True)
class ExecutionCancelled(Event):
    kind: ClassVar[str] = "cancelled"


@dataclass(slots=True)
class ExecutionError(Event):
    """Fatal: the run aborted before any wave started."""

    kind: ClassVar[str] = "error"
    message: str


@dataclass(slots=True)
class Notice(Event):
    """Non-fatal problem worth showing the user (e.g. a failed file write)."""

    kind: ClassVar[str] = "notice"
    message: str


# --------------------------------------------------------------------------- #
# Bus
# --------------------------------------------------------------------------- #
class EventBus:
    """Ordered pub/sub channel.

    ``publish`` is serialized by a lock so the history order is the emission
    order even when tasks publish from worker threads.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[Event], List[_Handler]] = {}
        self._history: List[Event] = []
        self._cursor = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    def subscribe(self, event_type: Type[T]):  # noqa: D401
        """Decorator: register *func* for *event_type* (``Event`` = everything)."""

        def _decorator(func: _Handler) -> _Handler:
            self._handlers.setdefault(event_type, []).append(func)
            return func

        return _decorator

    def unsubscribe(self, event_type: Type[Event], func: _Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if func in handlers:
            handlers.remove(func)

    def publish(self, evt: Event) -> None:
        """Append *evt* to the history and notify subscribers."""
        with self._lock:
            self._history.append(evt)
            for cls in type(evt).__mro__:
                for func in list(self._handlers.get(cls, ())):
                    try:
                        func(evt)
                    except Exception as e:  # noqa: BLE001
                        # A broken observer must never take down a run.
                        log.warning("event handler %s failed: %s", getattr(func, "__name__", func), e)

    # ------------------------------------------------------------------ #
    @property
    def history(self) -> List[Event]:
        with self._lock:
            return list(self._history)

    def drain(self) -> List[Event]:
        """Return events published since the previous drain."""
        with self._lock:
            out = self._history[self._cursor:]
            self._cursor = len(self._history)
            return out

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
            self._cursor = 0


# --------------------------------------------------------------------------- #
# Module-level helpers bound to a process-wide default bus
# --------------------------------------------------------------------------- #
default_bus = EventBus()


def subscribe(event_type: Type[T]):  # noqa: D401
    """Decorator: register *func* on the default bus."""
    return default_bus.subscribe(event_type)


def publish(evt: Event) -> None:  # noqa: D401
    """Publish an event on the default bus."""
    default_bus.publish(evt)
