"""Side-effecting runtime: terminal, worker pool, handoff and the main loop."""

from __future__ import annotations

from .dispatcher import TaskDispatcher
from .handoff import HandoffController, HandoffPhase, PtyHost
from .loop import RuntimeLoopCallbacks, RuntimeLoopTiming, run_main_loop, run_session
from .terminal import TerminalController

__all__ = [
    "HandoffController",
    "HandoffPhase",
    "PtyHost",
    "RuntimeLoopCallbacks",
    "RuntimeLoopTiming",
    "TaskDispatcher",
    "TerminalController",
    "run_main_loop",
    "run_session",
]
