"""Sequential chain of steps."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from .component import Composite, RunContext
from .errors import ChildFailedError
from .events import Lifecycle
from .models import BaseSnapshot, RunStatus, TERMINAL_STATUSES, WorkSnapshot
from .step import Step

logger = logging.getLogger(__name__)


class Work(Composite):
    """Run steps one after another, feeding each output into the next step."""

    type = "work"
    snapshot_model = WorkSnapshot
    child_type = "step"

    def __init__(
        self,
        id: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        steps: Optional[Iterable[Step]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(id=id, name=name, description=description, children=steps, **kwargs)

    @property
    def steps(self) -> List[Step]:
        return self._child_components()  # type: ignore[return-value]

    async def _execute(self, input: Any, context: Optional[RunContext]) -> Any:
        if context is None:
            context = RunContext(work=self)
        else:
            context = replace(context, work=self)

        current = input
        for step in self._child_components():
            await self._wait_if_paused()
            if self.status == RunStatus.STOPPED:
                break
            snapshot = await step.start(current, context)
            if snapshot.status == RunStatus.FAILED:
                raise ChildFailedError(snapshot)
            if snapshot.status == RunStatus.STOPPED:
                if self.status != RunStatus.STOPPED:
                    await self.stop()
                break
            current = snapshot.output
        return current

    def _fold(self, lifecycle: Lifecycle, snapshot: BaseSnapshot) -> None:
        if lifecycle is Lifecycle.CHANGE:
            self._emit_change()
            return
        if self.status in TERMINAL_STATUSES:
            return

        if lifecycle is Lifecycle.START and self.status != RunStatus.RUNNING:
            self.status = RunStatus.RUNNING
            self._open_gate()
            self._announce(Lifecycle.START)
        elif lifecycle is Lifecycle.PAUSE and self.status != RunStatus.PAUSED:
            self.status = RunStatus.PAUSED
            self._close_gate()
            self._announce(Lifecycle.PAUSE)
        elif lifecycle is Lifecycle.RESUME and self.status == RunStatus.PAUSED:
            self.status = RunStatus.RUNNING
            self._open_gate()
            self._announce(Lifecycle.RESUME)
        elif lifecycle is Lifecycle.STOP:
            self.status = RunStatus.STOPPED
            self._open_gate()
            self._announce(Lifecycle.STOP)
        elif lifecycle is Lifecycle.FAILED:
            self.error = snapshot.error
            self.status = RunStatus.FAILED
            self._announce(Lifecycle.FAILED)
