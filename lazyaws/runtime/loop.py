"""Main interactive loop and the session around it.

The loop only wires things together: completions and keys become events, the
core folds them, issued tasks go to the dispatcher and the frame is repainted
when something changed. A handoff request ends the loop; ``run_session``
performs it and starts a fresh generation from the restore context.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..config import AppConfig, AuthConfig
from ..core import AnyTask, Resized, Tick, apply, capture_restore, initial_state
from ..core.events import Event
from ..log_utils import log_event
from ..state import AppState, ExitReason
from ..viewport import content_rows
from .dispatcher import TaskDispatcher
from .handoff import HandoffController
from .terminal import TerminalController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    key_timeout_seconds: float = 0.1
    spinner_frame_seconds: float = 0.15


@dataclass(frozen=True)
class RuntimeLoopCallbacks:
    """Injected I/O used by ``run_main_loop``."""

    read_key: Callable[[int, int | None], str]
    route_key: Callable[[AppState, str], tuple]
    paint: Callable[[AppState, int, int, int], None]
    terminal_size: Callable[[], os.terminal_size] = lambda: shutil.get_terminal_size((80, 24))
    clock: Callable[[], float] = time.monotonic


def _fold(state: AppState, event: Event, dispatcher: TaskDispatcher) -> AppState:
    state, issued = apply(state, event)
    if issued:
        dispatcher.dispatch_all(issued)
    return state


def run_main_loop(
    state: AppState,
    issued: list[AnyTask],
    terminal: TerminalController,
    dispatcher: TaskDispatcher,
    timing: RuntimeLoopTiming,
    callbacks: RuntimeLoopCallbacks,
) -> AppState:
    """Run until the state carries an exit request; returns that final state."""
    dispatcher.dispatch_all(issued)
    last_rows = -1
    last_size: tuple[int, int] | None = None
    last_painted: AppState | None = None
    spinner_frame = 0
    timeout_ms = int(timing.key_timeout_seconds * 1000)

    while state.exit is None:
        size = callbacks.terminal_size()
        rows = content_rows(size.lines)
        if rows != last_rows:
            last_rows = rows
            state = _fold(state, Resized(rows), dispatcher)

        for completion in dispatcher.drain():
            state = _fold(state, completion, dispatcher)
            if state.exit is not None:
                break
        if state.exit is not None:
            break

        if state.loading:
            frame = int(callbacks.clock() / timing.spinner_frame_seconds)
            if frame != spinner_frame:
                spinner_frame = frame
                last_painted = None

        current_size = (size.columns, size.lines)
        if state is not last_painted or current_size != last_size:
            callbacks.paint(state, size.columns, size.lines, spinner_frame)
            last_painted = state
            last_size = current_size

        key = callbacks.read_key(terminal.stdin_fd, timeout_ms)
        if not key:
            state = _fold(state, Tick(callbacks.clock()), dispatcher)
            continue
        state, action = callbacks.route_key(state, key)
        if action is not None:
            state = _fold(state, action, dispatcher)
    return state


def run_session(
    config: AppConfig,
    auth: AuthConfig | None,
    terminal: TerminalController,
    dispatcher: TaskDispatcher,
    handoff: HandoffController,
    callbacks: RuntimeLoopCallbacks,
    timing: RuntimeLoopTiming | None = None,
) -> int:
    """Drive loops and handoffs until the user quits; returns the exit code."""
    timing = timing or RuntimeLoopTiming()
    state, issued = initial_state(config, auth)
    with terminal.raw_mode():
        while True:
            state = run_main_loop(state, issued, terminal, dispatcher, timing, callbacks)
            request = state.exit
            if request is None or request.reason is ExitReason.QUIT or request.handoff is None:
                log_event(logger, "session.quit", generation=state.generation)
                return 0
            restore = capture_restore(state)
            handoff.set_auth(state.auth)
            restore = handoff.run(request.handoff, restore)
            log_event(logger, "session.resume", generation=state.generation + 1, screen=restore.target_screen.value)
            state, issued = initial_state(config, state.auth, restore, generation=state.generation + 1)
