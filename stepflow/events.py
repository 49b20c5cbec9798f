"""Per-instance publish/subscribe for component lifecycle events.

Event names follow ``"{level}:{lifecycle}"``. Each level has its own closed
enum; because the enums subclass ``str`` the plain string form addresses the
same listeners, so ``hub.on("step:start", fn)`` and
``hub.on(StepEvent.START, fn)`` are equivalent.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Type, Union

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class Lifecycle(str, Enum):
    """Lifecycle part shared by every level's event names."""

    START = "start"
    SUCCESS = "success"
    FAILED = "failed"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    CHANGE = "change"


class StepEvent(str, Enum):
    START = "step:start"
    SUCCESS = "step:success"
    FAILED = "step:failed"
    PAUSE = "step:pause"
    RESUME = "step:resume"
    STOP = "step:stop"
    CHANGE = "step:change"


class WorkEvent(str, Enum):
    START = "work:start"
    SUCCESS = "work:success"
    FAILED = "work:failed"
    PAUSE = "work:pause"
    RESUME = "work:resume"
    STOP = "work:stop"
    CHANGE = "work:change"


class WorkflowEvent(str, Enum):
    START = "workflow:start"
    SUCCESS = "workflow:success"
    FAILED = "workflow:failed"
    PAUSE = "workflow:pause"
    RESUME = "workflow:resume"
    STOP = "workflow:stop"
    CHANGE = "workflow:change"


EventName = Union[StepEvent, WorkEvent, WorkflowEvent, str]

EVENTS_BY_LEVEL: Dict[str, Type[Enum]] = {
    "step": StepEvent,
    "work": WorkEvent,
    "workflow": WorkflowEvent,
}


def event_for(level: str, lifecycle: Lifecycle) -> Enum:
    """Return the event member for ``level`` and ``lifecycle``."""
    return EVENTS_BY_LEVEL[level][lifecycle.name]


def _normalize(event: EventName) -> str:
    return event.value if isinstance(event, Enum) else str(event)


class EventHub:
    """Synchronous event registry scoped to one component instance.

    Listeners run in registration order. A listener that raises is logged and
    skipped so that one bad subscriber cannot break bubbling for the others.
    Listeners returning an awaitable are scheduled on the running loop.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._tasks: Set[asyncio.Future] = set()

    def on(self, event: EventName, listener: Listener) -> None:
        """Register ``listener`` for ``event``."""
        self._listeners[_normalize(event)].append(listener)

    def once(self, event: EventName, listener: Listener) -> None:
        """Register ``listener`` to run on the next ``event`` only."""

        def _wrapper(payload: Any) -> Any:
            self.off(event, _wrapper)
            return listener(payload)

        self.on(event, _wrapper)

    def off(
        self, event: Optional[EventName] = None, listener: Optional[Listener] = None
    ) -> None:
        """Remove one listener, all listeners of an event, or everything."""
        if event is None:
            self._listeners.clear()
            return
        name = _normalize(event)
        if listener is None:
            self._listeners.pop(name, None)
            return
        listeners = self._listeners.get(name)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            pass
        if not listeners:
            self._listeners.pop(name, None)

    def listeners(self, event: EventName) -> List[Listener]:
        """Return a copy of the listeners registered for ``event``."""
        return list(self._listeners.get(_normalize(event), ()))

    def emit(self, event: EventName, payload: Any = None) -> None:
        """Invoke every listener registered for ``event`` with ``payload``."""
        name = _normalize(event)
        for listener in list(self._listeners.get(name, ())):
            try:
                result = listener(payload)
            except Exception:
                logger.exception(f"Listener {listener!r} failed while handling {name}")
                continue
            if inspect.isawaitable(result):
                self._schedule(name, result)

    def _schedule(self, name: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError:
            logger.warning(f"No running event loop to schedule async listener for {name}")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        self._tasks.add(task)

        def _done(fut: asyncio.Future) -> None:
            self._tasks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.error(f"Async listener failed while handling {name}: {exc!r}")

        task.add_done_callback(_done)
