"""Application core: pure state transitions plus the tasks they issue."""

from __future__ import annotations

from .events import Action, ActionKind, Completion, Origin, Resized, TaskTag, Tick
from .reducer import apply
from .restore import RestoreContext, capture_restore, initial_state
from .tasks import AnyTask, FanOutTask, Task, TaskServices

__all__ = [
    "Action",
    "ActionKind",
    "AnyTask",
    "Completion",
    "FanOutTask",
    "Origin",
    "Resized",
    "RestoreContext",
    "Task",
    "TaskServices",
    "TaskTag",
    "Tick",
    "apply",
    "capture_restore",
    "initial_state",
]
