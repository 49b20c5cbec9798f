"""Atomic unit of work wrapping one user function."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .component import Component, RunContext
from .models import RunStatus, StepSnapshot

logger = logging.getLogger(__name__)

StepFunction = Callable[[Any, RunContext], Union[Any, Awaitable[Any]]]


class Step(Component):
    """Run a single function with pause, resume and stop support.

    ``run`` receives ``(input, context)`` and may be a coroutine function or
    a plain callable. Stopping a running step abandons its task: the result
    is collected in the background and discarded.
    """

    type = "step"
    snapshot_model = StepSnapshot

    def __init__(
        self,
        id: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        run: Optional[StepFunction] = None,
        **kwargs: Any,
    ) -> None:
        self._func = run
        self._stop_signal: Optional[asyncio.Event] = None
        super().__init__(id=id, name=name, description=description, **kwargs)

    def _prepare_run(self) -> None:
        super()._prepare_run()
        self._stop_signal = asyncio.Event()

    def _on_stop(self) -> None:
        if self._stop_signal is not None:
            self._stop_signal.set()

    async def _execute(self, input: Any, context: Optional[RunContext]) -> Any:
        await self._wait_if_paused()
        if self.status == RunStatus.STOPPED:
            return None
        return await self._invoke(input, context or RunContext())

    async def _call(self, input: Any, context: RunContext) -> Any:
        result = self._func(input, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _invoke(self, input: Any, context: RunContext) -> Any:
        if self._func is None:
            return None

        task = asyncio.ensure_future(self._call(input, context))
        stopped = asyncio.ensure_future(self._stop_signal.wait())
        try:
            await asyncio.wait({task, stopped}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if not stopped.done():
                stopped.cancel()

        if self.status == RunStatus.STOPPED:
            if task.done():
                self._discard(task)
            else:
                logger.warning(f"{self.key} stopped while running; its result will be discarded")
                task.add_done_callback(self._discard)
            return None
        return task.result()

    def _discard(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Discarded error from stopped {self.key}: {exc!r}")
        else:
            logger.debug(f"Discarded result from stopped {self.key}")
