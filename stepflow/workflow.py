"""Parallel set of works."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from .component import Composite, RunContext
from .errors import ChildFailedError
from .events import Lifecycle
from .models import (
    ACTIVE_STATUSES,
    BaseSnapshot,
    RunStatus,
    TERMINAL_STATUSES,
    WorkflowSnapshot,
)
from .work import Work

logger = logging.getLogger(__name__)


class Workflow(Composite):
    """Start every work with the same input and collect their snapshots.

    Works run concurrently. The first failure marks the workflow FAILED and is
    re-raised right away. Sibling works are not cancelled and run to their end.
    """

    type = "workflow"
    snapshot_model = WorkflowSnapshot
    child_type = "work"
    passthrough_levels = ("step",)
    transition_log_level = logging.INFO

    def __init__(
        self,
        id: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        works: Optional[Iterable[Work]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(id=id, name=name, description=description, children=works, **kwargs)

    @property
    def works(self) -> List[Work]:
        return self._child_components()  # type: ignore[return-value]

    async def _execute(self, input: Any, context: Optional[RunContext]) -> Any:
        if context is None:
            context = RunContext(workflow=self)
        else:
            context = replace(context, workflow=self)

        works = self._child_components()
        results = await asyncio.gather(*(work.start(input, context) for work in works))

        for snapshot in results:
            if snapshot.status == RunStatus.FAILED:
                raise ChildFailedError(snapshot)
        if any(s.status == RunStatus.STOPPED for s in results) and self.status != RunStatus.STOPPED:
            await self.stop()
        return list(results)

    def _unsettled(self) -> List[Work]:
        return [w for w in self._children if w.status not in TERMINAL_STATUSES]

    def _fold(self, lifecycle: Lifecycle, snapshot: BaseSnapshot) -> None:
        if lifecycle is Lifecycle.CHANGE:
            self._emit_change()
            return
        # works started on their own leave an idle workflow untouched
        if self.status not in ACTIVE_STATUSES:
            return

        if lifecycle is Lifecycle.PAUSE and self.status == RunStatus.RUNNING:
            unsettled = self._unsettled()
            if unsettled and all(w.status == RunStatus.PAUSED for w in unsettled):
                self.status = RunStatus.PAUSED
                self._close_gate()
                self._announce(Lifecycle.PAUSE)
        elif lifecycle is Lifecycle.RESUME and self.status == RunStatus.PAUSED:
            if not any(w.status == RunStatus.PAUSED for w in self._unsettled()):
                self.status = RunStatus.RUNNING
                self._open_gate()
                self._announce(Lifecycle.RESUME)
        elif lifecycle is Lifecycle.STOP:
            if not any(w.status in ACTIVE_STATUSES for w in self._children):
                self.status = RunStatus.STOPPED
                self._open_gate()
                self._announce(Lifecycle.STOP)
        elif lifecycle is Lifecycle.FAILED:
            self.error = snapshot.error
            self.status = RunStatus.FAILED
            self._announce(Lifecycle.FAILED)
