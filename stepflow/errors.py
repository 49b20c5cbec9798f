"""Exceptions raised by the stepflow engine."""

from __future__ import annotations

from typing import Optional

from .models import BaseSnapshot


class StepflowError(Exception):
    """Base class for engine errors."""


class ChildFailedError(StepflowError):
    """A child reported FAILED without raising.

    Happens when a restored child is already FAILED and its parent's
    interrupted execution is started again.
    """

    def __init__(self, snapshot: BaseSnapshot, message: Optional[str] = None) -> None:
        self.snapshot = snapshot
        super().__init__(message or snapshot.error or f"{snapshot.key} failed")
