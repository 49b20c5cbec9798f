"""Stepflow: hierarchical workflow / work / step execution with snapshots."""

from .component import RunContext
from .errors import ChildFailedError, StepflowError
from .events import EventHub, Lifecycle, StepEvent, WorkEvent, WorkflowEvent
from .models import (
    RunStatus,
    StepSnapshot,
    WorkSnapshot,
    WorkflowSnapshot,
    parse_snapshot,
)
from .step import Step
from .storage import MemoryStorage, get_storage
from .work import Work
from .workflow import Workflow

__version__ = "0.1.0"
__all__ = [
    "Workflow",
    "Work",
    "Step",
    "RunContext",
    "RunStatus",
    "StepSnapshot",
    "WorkSnapshot",
    "WorkflowSnapshot",
    "parse_snapshot",
    "EventHub",
    "Lifecycle",
    "StepEvent",
    "WorkEvent",
    "WorkflowEvent",
    "MemoryStorage",
    "get_storage",
    "StepflowError",
    "ChildFailedError",
]
