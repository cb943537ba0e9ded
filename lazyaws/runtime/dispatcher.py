"""Background execution of core tasks.

Workers call providers and report back through a queue; they never touch
``AppState``. Every dispatched task yields exactly one ``Completion``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from queue import Empty, Queue

from ..core.events import Completion
from ..core.tasks import AnyTask, FanOutTask, Task, TaskServices
from ..log_utils import log_event

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or exc.__class__.__name__


class TaskDispatcher:
    """Thread-pool dispatcher with a completion queue drained by the UI loop."""

    def __init__(self, services: TaskServices, *, max_workers: int = 6, max_part_workers: int = 6) -> None:
        self._services = services
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lazyaws-task")
        # Fan-out parts run on a separate pool; their parent task blocks on them.
        self._part_executor = ThreadPoolExecutor(max_workers=max_part_workers, thread_name_prefix="lazyaws-part")
        self._completions: Queue[Completion] = Queue()

    def dispatch(self, task: AnyTask) -> None:
        log_event(logger, "task.dispatch", level=logging.DEBUG, tag=task.tag.value)
        self._executor.submit(self._run, task)

    def dispatch_all(self, tasks: list[AnyTask]) -> None:
        for task in tasks:
            self.dispatch(task)

    def _run(self, task: AnyTask) -> None:
        started = time.monotonic()
        try:
            if isinstance(task, FanOutTask):
                completion = self._run_fan_out(task)
            else:
                completion = self._run_single(task)
        except Exception as exc:
            logger.exception("task %s crashed", task.tag.value)
            completion = Completion(
                tag=task.tag,
                origin=task.origin,
                error=_error_text(exc),
                tracks_loading=task.tracks_loading,
                meta=task.meta,
            )
        log_event(
            logger,
            "task.done",
            level=logging.DEBUG if completion.ok else logging.WARNING,
            tag=task.tag.value,
            ok=completion.ok,
            error=completion.error,
            seconds=round(time.monotonic() - started, 3),
        )
        self._completions.put(completion)

    def _run_single(self, task: Task) -> Completion:
        try:
            value = task.call(self._services)
        except Exception as exc:
            return Completion(
                tag=task.tag,
                origin=task.origin,
                error=_error_text(exc),
                tracks_loading=task.tracks_loading,
                meta=task.meta,
            )
        return Completion(
            tag=task.tag,
            origin=task.origin,
            value=value,
            tracks_loading=task.tracks_loading,
            meta=task.meta,
        )

    def _run_fan_out(self, task: FanOutTask) -> Completion:
        """Run every part concurrently; keep successes and the first error seen."""
        futures: dict[Future, str] = {
            self._part_executor.submit(call, self._services): name for name, call in task.parts.items()
        }
        results: dict[str, object] = {}
        first_error: str | None = None
        for future in as_completed(futures):
            name = futures[future]
            try:
                results[name] = future.result()
            except Exception as exc:
                logger.warning("fan-out part %s of %s failed: %s", name, task.tag.value, exc)
                if first_error is None:
                    first_error = f"{name}: {_error_text(exc)}"
        return Completion(
            tag=task.tag,
            origin=task.origin,
            value=results,
            error=first_error,
            tracks_loading=task.tracks_loading,
            meta=task.meta,
        )

    def drain(self) -> list[Completion]:
        """Return every completion received so far, in arrival order."""
        drained: list[Completion] = []
        while True:
            try:
                drained.append(self._completions.get_nowait())
            except Empty:
                return drained

    def wait(self, timeout: float | None = None) -> Completion | None:
        """Block for the next completion; ``None`` on timeout."""
        try:
            return self._completions.get(timeout=timeout)
        except Empty:
            return None

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._part_executor.shutdown(wait=False, cancel_futures=True)
