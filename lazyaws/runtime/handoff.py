"""Terminal handoff to interactive child processes.

The controller walks ``OWNED -> RELEASING -> CHILD_RUNNING -> RECLAIMING ->
OWNED``: it leaves TUI mode, lets a child own the terminal (an SSM shell or
k9s on a pseudo-terminal, or ``$EDITOR`` on a downloaded S3 object), then
re-enters TUI mode and hands back a ``RestoreContext`` whose message tells the
user how the child went.
"""

from __future__ import annotations

import array
import fcntl
import logging
import os
import pty
import select
import shutil
import signal
import tempfile
import termios
import tty
from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path

from ..config import AUTH_PROFILE, AuthConfig
from ..core.restore import RestoreContext
from ..core.tasks import TaskServices
from ..editor import run_editor
from ..log_utils import log_event
from ..providers.aws import scope_env
from ..providers.base import ProviderError, ProviderScope
from ..state import HandoffKind, HandoffRequest
from .terminal import TerminalController

logger = logging.getLogger(__name__)

ResizeCallback = Callable[[int, int], None]


class HandoffPhase(Enum):
    OWNED = "owned"
    RELEASING = "releasing"
    CHILD_RUNNING = "child-running"
    RECLAIMING = "reclaiming"


def build_child_env(
    request: HandoffRequest,
    restore: RestoreContext,
    auth: AuthConfig | None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment for the child: session credentials or profile plus region."""
    profile = ""
    if auth is not None and auth.method == AUTH_PROFILE:
        profile = auth.profile_name
    scope = ProviderScope(region=request.region or restore.region, profile_name=profile, credentials=restore.credentials)
    return scope_env(scope, base_env)


def child_command(request: HandoffRequest) -> list[str]:
    if request.kind is HandoffKind.SSM_SESSION:
        return ["aws", "ssm", "start-session", "--target", request.target, "--region", request.region]
    if request.kind is HandoffKind.K9S:
        return ["k9s"]
    raise ValueError(f"no command for handoff kind {request.kind.value}")


class PtyHost:
    """Run a child on a pseudo-terminal wired to the real terminal."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd

    def _window_size(self) -> array.array:
        size = array.array("h", [0, 0, 0, 0])
        fcntl.ioctl(self.stdout_fd, termios.TIOCGWINSZ, size, True)
        return size

    def _forward_size(self, master_fd: int, on_resize: ResizeCallback | None) -> None:
        try:
            size = self._window_size()
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, size)
        except OSError as exc:
            logger.debug("window size forward failed: %s", exc)
            return
        if on_resize is not None:
            on_resize(size[0], size[1])

    def spawn(
        self,
        argv: list[str],
        env: Mapping[str, str],
        on_resize: ResizeCallback | None = None,
    ) -> int:
        """Run ``argv`` until it exits and return its exit code."""
        pid, master_fd = pty.fork()
        if pid == 0:
            try:
                os.execvpe(argv[0], argv, dict(env))
            finally:
                os._exit(127)

        previous_handler = signal.signal(
            signal.SIGWINCH,
            lambda _signum, _frame: self._forward_size(master_fd, on_resize),
        )
        saved_tty = termios.tcgetattr(self.stdin_fd)
        try:
            self._forward_size(master_fd, on_resize)
            tty.setraw(self.stdin_fd)
            status = self._pump(pid, master_fd)
        finally:
            termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, saved_tty)
            signal.signal(signal.SIGWINCH, previous_handler)
            os.close(master_fd)
        return os.waitstatus_to_exitcode(status)

    def _pump(self, pid: int, master_fd: int) -> int:
        """Copy bytes both ways until the child exits; returns its wait status."""
        status: int | None = None
        while True:
            readable, _, _ = select.select([master_fd, self.stdin_fd], [], [], 0.1)
            if master_fd in readable:
                try:
                    data = os.read(master_fd, 65536)
                except OSError:
                    # EIO: slave side closed.
                    data = b""
                if not data:
                    break
                os.write(self.stdout_fd, data)
            if self.stdin_fd in readable:
                data = os.read(self.stdin_fd, 4096)
                if data:
                    os.write(master_fd, data)
            if status is None:
                waited, wait_status = os.waitpid(pid, os.WNOHANG)
                if waited == pid:
                    status = wait_status
        if status is None:
            _, status = os.waitpid(pid, 0)
        return status


class HandoffController:
    """Suspend the UI, run a child that owns the terminal, then resume."""

    def __init__(
        self,
        terminal: TerminalController,
        services: TaskServices,
        pty_host: PtyHost | None = None,
        *,
        auth: AuthConfig | None = None,
        environ: Mapping[str, str] | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._terminal = terminal
        self._services = services
        self._pty_host = pty_host or PtyHost(terminal.stdin_fd, terminal.stdout_fd)
        self._auth = auth
        self._environ = environ
        self._which = which
        self.phase = HandoffPhase.OWNED

    def set_auth(self, auth: AuthConfig | None) -> None:
        self._auth = auth

    def run(self, request: HandoffRequest, restore: RestoreContext) -> RestoreContext:
        """Perform one handoff and return the context to resume from."""
        if request.kind is not HandoffKind.EDIT_OBJECT:
            program = child_command(request)[0]
            if self._which(program) is None:
                return restore.with_message(f"{program} not found in PATH")

        log_event(logger, "handoff.start", kind=request.kind.value, target=request.target)
        self.phase = HandoffPhase.RELEASING
        try:
            self._terminal.disable_tui_mode()
        except (termios.error, OSError) as exc:
            logger.error("releasing terminal failed: %s", exc)
            self.phase = HandoffPhase.OWNED
            return restore.with_message(f"Handoff aborted: {exc}")

        self.phase = HandoffPhase.CHILD_RUNNING
        try:
            message = self._run_child(request, restore)
        except (termios.error, OSError) as exc:
            logger.error("handoff child failed: %s", exc)
            message = f"{request.kind.value} failed: {exc}"
        finally:
            self.phase = HandoffPhase.RECLAIMING
            try:
                self._terminal.enable_tui_mode()
            except (termios.error, OSError) as exc:
                logger.error("reclaiming terminal failed: %s", exc)
                message = f"Terminal restore failed: {exc}"
            self.phase = HandoffPhase.OWNED
        log_event(logger, "handoff.end", kind=request.kind.value, message=message)
        return restore.with_message(message)

    def _run_child(self, request: HandoffRequest, restore: RestoreContext) -> str:
        if request.kind is HandoffKind.EDIT_OBJECT:
            return self._edit_object(request, restore)
        env = build_child_env(request, restore, self._auth, self._environ)
        code = self._pty_host.spawn(child_command(request), env)
        label = "SSM session" if request.kind is HandoffKind.SSM_SESSION else "k9s"
        if code == 0:
            return f"{label} ended"
        return f"{label} exited with code {code}"

    def _edit_object(self, request: HandoffRequest, restore: RestoreContext) -> str:
        profile = ""
        if self._auth is not None and self._auth.method == AUTH_PROFILE:
            profile = self._auth.profile_name
        scope = ProviderScope(region=restore.region, profile_name=profile, credentials=restore.credentials)
        provider = self._services.resources(scope)
        location = f"s3://{request.bucket}/{request.target}"
        suffix = Path(request.target).suffix
        with tempfile.TemporaryDirectory(prefix="lazyaws-edit-") as workdir:
            local = Path(workdir) / f"object{suffix}"
            try:
                provider.mutate("object", request.target, "download", bucket=request.bucket, destination=str(local))
            except (ProviderError, OSError) as exc:
                return f"Download of {location} failed: {exc}"
            before = local.stat().st_mtime_ns
            error = run_editor(local, self._environ)
            if error:
                return error
            if local.stat().st_mtime_ns == before:
                return f"No changes to {location}"
            try:
                provider.mutate("object", request.target, "upload", bucket=request.bucket, source=str(local))
            except (ProviderError, OSError) as exc:
                return f"Upload of {location} failed: {exc}"
        return f"Saved changes to {location}"
