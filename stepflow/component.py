"""State machinery shared by steps, works and workflows."""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    Type,
)

from pydantic import BaseModel

from .events import EVENTS_BY_LEVEL, EventHub, EventName, Lifecycle, Listener, event_for
from .models import (
    ACTIVE_STATUSES,
    BaseSnapshot,
    RunStatus,
    snapshot_key,
)
from .storage.base import Storage
from .storage.inmemory import MemoryStorage

if TYPE_CHECKING:  # pragma: no cover
    from .work import Work
    from .workflow import Workflow

logger = logging.getLogger(__name__)

# Fields whose assignment invalidates the cached snapshot.
_TRACKED_FIELDS = frozenset(
    {"id", "name", "description", "status", "input", "output", "error", "meta"}
)


@dataclass(frozen=True)
class RunContext:
    """Ambient objects handed to a step function for the duration of one call."""

    workflow: Optional["Workflow"] = None
    work: Optional["Work"] = None
    extras: Dict[str, Any] = field(default_factory=dict)


class Component:
    """Fields, events, snapshots and persistence common to every level."""

    type: ClassVar[str]
    snapshot_model: ClassVar[Type[BaseSnapshot]]
    transition_log_level: ClassVar[int] = logging.DEBUG

    def __init__(
        self,
        id: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        status: RunStatus | str = RunStatus.PENDING,
        input: Any = None,
        output: Any = None,
        error: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        storage: Optional[Storage] = None,
        snapshot: Any = None,
    ) -> None:
        self._cached_snapshot: Optional[BaseSnapshot] = None
        self._change_hooks: List[Callable[[], None]] = []
        self.events = EventHub()

        self.id = id or str(uuid.uuid4())
        self.name = name
        self.description = description
        self.status = RunStatus(status)
        self.input = input
        self.output = output
        self.error = error
        self.meta = meta

        self._default_storage = storage is None
        self.storage: Storage = storage if storage is not None else MemoryStorage()
        self._auto_restore = False
        self._restored = False
        self._interrupted = False
        self._gate: Optional[asyncio.Event] = None

        if snapshot is not None:
            self.from_snapshot(snapshot)

    def __setattr__(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)
        if name in _TRACKED_FIELDS:
            self._mark_changed()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, status={self.status.value!r})"

    @property
    def key(self) -> str:
        return snapshot_key(self.type, self.id)

    @property
    def interrupted(self) -> bool:
        """True when a restored RUNNING/PAUSED state has no live execution."""
        return self._interrupted

    # ------------------------------------------------------------------
    # Events
    def on(self, event: EventName, listener: Listener) -> None:
        self.events.on(event, listener)

    def once(self, event: EventName, listener: Listener) -> None:
        self.events.once(event, listener)

    def off(self, event: Optional[EventName] = None, listener: Optional[Listener] = None) -> None:
        self.events.off(event, listener)

    def _announce(self, lifecycle: Lifecycle) -> BaseSnapshot:
        snapshot = self.to_snapshot()
        self.events.emit(event_for(self.type, lifecycle), snapshot)
        self.events.emit(event_for(self.type, Lifecycle.CHANGE), snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Snapshots
    def _mark_changed(self) -> None:
        self._cached_snapshot = None
        for hook in list(self._change_hooks):
            hook()

    def _snapshot_fields(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "input": copy.deepcopy(self.input),
            "output": copy.deepcopy(self.output),
            "error": self.error,
            "meta": copy.deepcopy(self.meta),
        }

    def to_snapshot(self) -> BaseSnapshot:
        """Return an immutable copy of the current state, children included."""
        if self._cached_snapshot is None:
            self._cached_snapshot = self.snapshot_model(**self._snapshot_fields())
        return self._cached_snapshot

    def _coerce_snapshot(self, snapshot: Any) -> BaseSnapshot:
        if isinstance(snapshot, self.snapshot_model):
            return snapshot
        if isinstance(snapshot, BaseModel):
            snapshot = snapshot.model_dump()
        if isinstance(snapshot, (str, bytes, bytearray)):
            return self.snapshot_model.model_validate_json(snapshot)
        return self.snapshot_model.model_validate(snapshot)

    def from_snapshot(self, snapshot: Any) -> "Component":
        """Overwrite this component's state with ``snapshot``.

        Accepts a snapshot model, a mapping or a JSON document. A RUNNING or
        PAUSED snapshot leaves the component *interrupted*: the status is kept
        but nothing is executing until ``start`` is called again.
        """
        snapshot = self._coerce_snapshot(snapshot)
        self.id = snapshot.id
        if snapshot.name is not None:
            self.name = snapshot.name
        if snapshot.description is not None:
            self.description = snapshot.description
        if snapshot.meta is not None:
            self.meta = copy.deepcopy(snapshot.meta)
        self.status = snapshot.status
        self.input = copy.deepcopy(snapshot.input)
        self.output = copy.deepcopy(snapshot.output)
        self.error = snapshot.error

        self._restored = True
        self._interrupted = snapshot.status in ACTIVE_STATUSES
        self._gate = asyncio.Event() if snapshot.status == RunStatus.PAUSED else None
        self._apply_child_snapshots(snapshot)
        logger.debug(f"Applied snapshot to {self.key} ({self.status.value})")
        return self

    def _apply_child_snapshots(self, snapshot: BaseSnapshot) -> None:
        """Hook for composites."""

    def _child_components(self) -> List["Component"]:
        return []

    # ------------------------------------------------------------------
    # Persistence
    def _adopt_storage(self, storage: Storage) -> None:
        if not self._default_storage:
            return
        self.storage = storage
        for child in self._child_components():
            child._adopt_storage(storage)

    async def save(self) -> BaseSnapshot:
        """Write the current snapshot to storage and return it."""
        snapshot = self.to_snapshot()
        await self.storage.set(self.key, snapshot)
        logger.debug(f"Saved {self.key} ({snapshot.status.value})")
        return snapshot

    async def restore(self) -> Optional["Component"]:
        """Load this component's stored snapshot, if any.

        Children are then refreshed from their own keys, which are written on
        every child transition and so can be newer than the nested copy.
        """
        snapshot = await self.storage.get(self.key)
        if snapshot is None:
            logger.debug(f"No stored snapshot for {self.key}")
            return None
        self.from_snapshot(snapshot)
        children = self._child_components()
        if children:
            await asyncio.gather(*(child.restore() for child in children))
        return self

    async def clear_snapshot(self) -> None:
        """Delete this component's stored snapshot."""
        await self.storage.delete(self.key)
        logger.debug(f"Cleared {self.key}")

    def auto_restore(self, enabled: bool = True) -> "Component":
        """Consult storage before the first start, pause or resume.

        Applies to current children and to children added later.
        """
        self._auto_restore = enabled
        for child in self._child_components():
            child.auto_restore(enabled)
        return self

    preload = auto_restore

    async def _consult_storage(self) -> None:
        if not self._auto_restore or self._restored or self.status != RunStatus.PENDING:
            return
        self._restored = True
        await self.restore()

    # ------------------------------------------------------------------
    # Pause gate
    def _close_gate(self) -> None:
        self._gate = asyncio.Event()

    def _open_gate(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def _wait_if_paused(self) -> None:
        while self.status == RunStatus.PAUSED:
            gate = self._gate
            if gate is None or gate.is_set():
                gate = self._gate = asyncio.Event()
            await gate.wait()

    # ------------------------------------------------------------------
    # Lifecycle
    async def _transition(self, status: RunStatus, lifecycle: Lifecycle) -> BaseSnapshot:
        previous = self.status
        self.status = status
        logger.log(
            self.transition_log_level,
            f"{self.key}: {previous.value} -> {status.value}",
        )
        self._announce(lifecycle)
        return await self.save()

    async def _fail(self, exc: BaseException) -> None:
        already_failed = self.status == RunStatus.FAILED
        self.error = str(exc)
        self.status = RunStatus.FAILED
        logger.log(self.transition_log_level, f"{self.key} failed: {exc!r}")
        if not already_failed:
            self._announce(Lifecycle.FAILED)
        try:
            await self.save()
        except Exception:
            logger.exception(f"Could not persist failed state of {self.key}")

    def _can_start(self) -> bool:
        return self.status == RunStatus.PENDING or self._interrupted

    def _prepare_run(self) -> None:
        self._gate = None

    async def _execute(self, input: Any, context: Optional[RunContext]) -> Any:
        raise NotImplementedError

    async def start(self, input: Any = None, context: Optional[RunContext] = None) -> BaseSnapshot:
        """Run this component once and return its final snapshot.

        Calling ``start`` on a component that already left PENDING returns the
        current snapshot without running anything.
        """
        await self._consult_storage()
        if not self._can_start():
            logger.debug(f"{self.key} is {self.status.value}; start ignored")
            return self.to_snapshot()

        if input is None and self._interrupted:
            input = self.input
        self._interrupted = False
        self.input = input
        self.error = None
        self._prepare_run()

        try:
            await self._transition(RunStatus.RUNNING, Lifecycle.START)
            output = await self._execute(input, context)
            await self._wait_if_paused()
            if self.status != RunStatus.RUNNING:
                return await self.save()
            self.output = output
            return await self._transition(RunStatus.SUCCESS, Lifecycle.SUCCESS)
        except Exception as exc:
            await self._fail(exc)
            raise

    async def run(self, input: Any = None, context: Optional[RunContext] = None) -> BaseSnapshot:
        """Alias of :meth:`start`."""
        return await self.start(input, context)

    async def _fan_out(self, method: str) -> None:
        children = self._child_components()
        if children:
            await asyncio.gather(*(getattr(child, method)() for child in children))

    def _on_stop(self) -> None:
        """Hook for releasing anything a running execution waits on."""

    async def pause(self) -> BaseSnapshot:
        """Pause a RUNNING component; no-op otherwise."""
        await self._consult_storage()
        if self.status != RunStatus.RUNNING:
            return self.to_snapshot()
        self.status = RunStatus.PAUSED
        self._close_gate()
        logger.log(self.transition_log_level, f"{self.key}: running -> paused")
        await self._fan_out("pause")
        self._announce(Lifecycle.PAUSE)
        return await self.save()

    async def resume(self) -> BaseSnapshot:
        """Resume a PAUSED component; no-op otherwise."""
        await self._consult_storage()
        if self.status != RunStatus.PAUSED:
            return self.to_snapshot()
        self.status = RunStatus.RUNNING
        self._open_gate()
        logger.log(self.transition_log_level, f"{self.key}: paused -> running")
        if self._interrupted:
            logger.warning(
                f"{self.key} was restored mid-execution; call start() to continue it"
            )
        await self._fan_out("resume")
        self._announce(Lifecycle.RESUME)
        return await self.save()

    async def stop(self) -> BaseSnapshot:
        """Stop a RUNNING or PAUSED component; no-op otherwise."""
        if self.status not in ACTIVE_STATUSES:
            return self.to_snapshot()
        previous = self.status
        self.status = RunStatus.STOPPED
        self._interrupted = False
        self._open_gate()
        self._on_stop()
        logger.log(self.transition_log_level, f"{self.key}: {previous.value} -> stopped")
        await self._fan_out("stop")
        self._announce(Lifecycle.STOP)
        return await self.save()


class Composite(Component):
    """A component owning an ordered list of child components."""

    child_type: ClassVar[str]
    # Child-of-child levels re-emitted unchanged.
    passthrough_levels: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, *args: Any, children: Optional[Iterable[Component]] = None, **kwargs: Any) -> None:
        self._children: List[Component] = []
        self._child_listeners: Dict[int, List[Tuple[str, Listener]]] = {}
        self._pending_snapshots: Dict[str, BaseSnapshot] = {}
        self._save_tasks: Set[asyncio.Task] = set()
        super().__init__(*args, **kwargs)
        for child in children or ():
            self.add(child)

    def _child_components(self) -> List[Component]:
        return list(self._children)

    def _snapshot_fields(self) -> Dict[str, Any]:
        fields = super()._snapshot_fields()
        fields[self.child_field] = [child.to_snapshot() for child in self._children]
        return fields

    @property
    def child_field(self) -> str:
        return f"{self.child_type}s"

    # ------------------------------------------------------------------
    # Child management
    def _index_of(self, child_id: str) -> Optional[int]:
        for index, child in enumerate(self._children):
            if child.id == child_id:
                return index
        return None

    def add(self, child: Component) -> "Composite":
        """Append ``child``, replacing any existing child with the same id."""
        if child.type != self.child_type:
            raise TypeError(f"{type(self).__name__} cannot hold a {child.type}")
        index = self._index_of(child.id)
        if index is not None:
            self._detach(self._children[index])
            self._children[index] = child
        else:
            self._children.append(child)

        self._attach(child)
        child._adopt_storage(self.storage)
        if self._auto_restore:
            child.auto_restore()
        pending = self._pending_snapshots.pop(child.id, None)
        if pending is not None:
            child.from_snapshot(pending)
        self._mark_changed()
        return self

    def delete(self, child_id: str) -> Optional[Component]:
        """Detach and return the child with ``child_id``, if present."""
        index = self._index_of(child_id)
        if index is None:
            return None
        child = self._children.pop(index)
        self._detach(child)
        self._mark_changed()
        return child

    def query(self, child_id: str) -> Optional[Component]:
        index = self._index_of(child_id)
        return None if index is None else self._children[index]

    def _attach(self, child: Component) -> None:
        registered: List[Tuple[str, Listener]] = []

        for lifecycle in Lifecycle:
            event = event_for(self.child_type, lifecycle).value

            def _bubble(snapshot: Any, _event: str = event, _lifecycle: Lifecycle = lifecycle) -> None:
                self.events.emit(_event, snapshot)
                before = (self.status, self.error)
                self._fold(_lifecycle, snapshot)
                if (self.status, self.error) != before:
                    self._persist_fold()

            registered.append((event, _bubble))

        for level in self.passthrough_levels:
            for member in EVENTS_BY_LEVEL[level]:

                def _forward(snapshot: Any, _event: str = member.value) -> None:
                    self.events.emit(_event, snapshot)

                registered.append((member.value, _forward))

        for event, listener in registered:
            child.events.on(event, listener)
        self._child_listeners[id(child)] = registered
        child._change_hooks.append(self._mark_changed)

    def _detach(self, child: Component) -> None:
        for event, listener in self._child_listeners.pop(id(child), []):
            child.events.off(event, listener)
        try:
            child._change_hooks.remove(self._mark_changed)
        except ValueError:
            pass

    def _fold(self, lifecycle: Lifecycle, snapshot: BaseSnapshot) -> None:
        raise NotImplementedError

    def _persist_fold(self) -> None:
        """Save a status taken over from a child without blocking the emitter."""
        try:
            task = asyncio.get_running_loop().create_task(self.save())
        except RuntimeError:
            logger.warning(f"No running event loop to persist {self.key}")
            return
        self._save_tasks.add(task)

        def _done(fut: asyncio.Future) -> None:
            self._save_tasks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.error(f"Could not persist {self.key}: {exc!r}")

        task.add_done_callback(_done)

    def _emit_change(self) -> None:
        self.events.emit(event_for(self.type, Lifecycle.CHANGE), self.to_snapshot())

    # ------------------------------------------------------------------
    # Restore
    def _apply_child_snapshots(self, snapshot: BaseSnapshot) -> None:
        for child_snapshot in getattr(snapshot, self.child_field):
            child = self.query(child_snapshot.id)
            if child is None:
                self._pending_snapshots[child_snapshot.id] = child_snapshot
            else:
                child.from_snapshot(child_snapshot)
