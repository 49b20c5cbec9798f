"""Status enum and snapshot records shared by every stepflow component."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .constants import SNAPSHOT_KEY_FORMAT


class RunStatus(str, Enum):
    """Lifecycle status shared by steps, works and workflows."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    SUCCESS = "success"
    FAILED = "failed"
    STOPPED = "stopped"


TERMINAL_STATUSES = frozenset({RunStatus.SUCCESS, RunStatus.FAILED, RunStatus.STOPPED})
ACTIVE_STATUSES = frozenset({RunStatus.RUNNING, RunStatus.PAUSED})


class BaseSnapshot(BaseModel):
    """Immutable record of a component's observable state."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    status: RunStatus = RunStatus.PENDING
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    @property
    def key(self) -> str:
        """Storage key for this snapshot."""
        return snapshot_key(self.type, self.id)  # type: ignore[attr-defined]


class StepSnapshot(BaseSnapshot):
    type: Literal["step"] = "step"


class WorkSnapshot(BaseSnapshot):
    type: Literal["work"] = "work"
    steps: List[StepSnapshot] = Field(default_factory=list)


class WorkflowSnapshot(BaseSnapshot):
    type: Literal["workflow"] = "workflow"
    works: List[WorkSnapshot] = Field(default_factory=list)


AnySnapshot = Annotated[
    Union[StepSnapshot, WorkSnapshot, WorkflowSnapshot], Field(discriminator="type")
]

_snapshot_adapter: TypeAdapter = TypeAdapter(AnySnapshot)


def parse_snapshot(data: Any) -> Union[StepSnapshot, WorkSnapshot, WorkflowSnapshot]:
    """Build the right snapshot model from a model, mapping or JSON document."""
    if isinstance(data, BaseSnapshot):
        return data
    if isinstance(data, (str, bytes, bytearray)):
        return _snapshot_adapter.validate_json(data)
    return _snapshot_adapter.validate_python(data)


def snapshot_key(component_type: str, component_id: str) -> str:
    """Return the storage key used for a component."""
    return SNAPSHOT_KEY_FORMAT.format(type=component_type, id=component_id)
