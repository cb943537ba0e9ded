from __future__ import annotations

import os
import termios
import unittest
from pathlib import Path
from unittest import mock

from lazyaws.config import AUTH_PROFILE, AuthConfig
from lazyaws.core.restore import RestoreContext
from lazyaws.providers.base import Ack, Credentials, ProviderError
from lazyaws.runtime.handoff import HandoffController, HandoffPhase, build_child_env, child_command
from lazyaws.state import HandoffKind, HandoffRequest, Screen

RESTORE = RestoreContext(target_screen=Screen.EC2_DETAIL, region="us-east-1", instance_id="i-1")


class _FakeTerminal:
    stdin_fd = 0
    stdout_fd = 1

    def __init__(self, fail_disable: bool = False) -> None:
        self.calls: list[str] = []
        self.fail_disable = fail_disable

    def disable_tui_mode(self) -> None:
        if self.fail_disable:
            raise termios.error(5, "Input/output error")
        self.calls.append("disable")

    def enable_tui_mode(self) -> None:
        self.calls.append("enable")


class _FakePtyHost:
    def __init__(self, controller_ref: list, code: int = 0) -> None:
        self.controller_ref = controller_ref
        self.code = code
        self.spawned: list[tuple[list[str], dict]] = []

    def spawn(self, argv, env, on_resize=None) -> int:
        self.phase_during_spawn = self.controller_ref[0].phase
        self.spawned.append((argv, dict(env)))
        return self.code


class _FakeProvider:
    def __init__(self, fail_download: bool = False) -> None:
        self.fail_download = fail_download
        self.calls: list[tuple[str, dict]] = []

    def mutate(self, kind, resource_id, verb, **options):
        self.calls.append((verb, options))
        if verb == "download":
            if self.fail_download:
                raise ProviderError("NoSuchKey: gone")
            Path(options["destination"]).write_text("original", encoding="utf-8")
        return Ack(kind, resource_id, verb)


class _FakeServices:
    def __init__(self, provider: _FakeProvider) -> None:
        self.provider = provider
        self.scopes = []

    def resources(self, scope):
        self.scopes.append(scope)
        return self.provider


def _controller(terminal=None, code: int = 0, which=lambda name: f"/usr/bin/{name}", provider=None, auth=None):
    ref: list = []
    host = _FakePtyHost(ref, code)
    services = _FakeServices(provider or _FakeProvider())
    controller = HandoffController(
        terminal or _FakeTerminal(),
        services,
        host,
        auth=auth,
        environ={"PATH": "/usr/bin", "EDITOR": "true"},
        which=which,
    )
    ref.append(controller)
    return controller, host, services


class ChildCommandTests(unittest.TestCase):
    def test_ssm_session_command(self) -> None:
        request = HandoffRequest(HandoffKind.SSM_SESSION, "i-1", "eu-west-1")
        self.assertEqual(
            child_command(request),
            ["aws", "ssm", "start-session", "--target", "i-1", "--region", "eu-west-1"],
        )

    def test_child_env_prefers_session_credentials(self) -> None:
        request = HandoffRequest(HandoffKind.K9S, "prod", "us-west-2", cluster="prod")
        restore = RestoreContext(
            target_screen=Screen.EKS_DETAIL,
            region="us-east-1",
            credentials=Credentials("AKIA", "secret", "token"),
        )

        env = build_child_env(request, restore, AuthConfig(method=AUTH_PROFILE, profile_name="dev"), {"AWS_PROFILE": "x"})

        self.assertEqual(env["AWS_ACCESS_KEY_ID"], "AKIA")
        self.assertEqual(env["AWS_SESSION_TOKEN"], "token")
        self.assertNotIn("AWS_PROFILE", env)
        self.assertEqual(env["AWS_REGION"], "us-west-2")

    def test_child_env_uses_profile_without_credentials(self) -> None:
        request = HandoffRequest(HandoffKind.SSM_SESSION, "i-1", "")

        env = build_child_env(request, RESTORE, AuthConfig(method=AUTH_PROFILE, profile_name="dev"), {})

        self.assertEqual(env["AWS_PROFILE"], "dev")
        self.assertEqual(env["AWS_DEFAULT_REGION"], "us-east-1")


class HandoffControllerTests(unittest.TestCase):
    def test_successful_session_releases_and_reclaims_terminal(self) -> None:
        terminal = _FakeTerminal()
        controller, host, _ = _controller(terminal)

        restore = controller.run(HandoffRequest(HandoffKind.SSM_SESSION, "i-1", "us-east-1"), RESTORE)

        self.assertEqual(terminal.calls, ["disable", "enable"])
        self.assertIs(host.phase_during_spawn, HandoffPhase.CHILD_RUNNING)
        self.assertIs(controller.phase, HandoffPhase.OWNED)
        self.assertEqual(restore.message, "SSM session ended")
        self.assertEqual(restore.instance_id, "i-1")

    def test_non_zero_exit_code_is_reported(self) -> None:
        controller, _, _ = _controller(code=2)

        restore = controller.run(HandoffRequest(HandoffKind.K9S, "prod", "us-east-1", cluster="prod"), RESTORE)

        self.assertEqual(restore.message, "k9s exited with code 2")

    def test_missing_program_skips_handoff(self) -> None:
        terminal = _FakeTerminal()
        controller, host, _ = _controller(terminal, which=lambda _name: None)

        restore = controller.run(HandoffRequest(HandoffKind.K9S, "prod", "us-east-1"), RESTORE)

        self.assertEqual(restore.message, "k9s not found in PATH")
        self.assertEqual(terminal.calls, [])
        self.assertEqual(host.spawned, [])

    def test_release_failure_aborts_without_spawning(self) -> None:
        controller, host, _ = _controller(_FakeTerminal(fail_disable=True))

        restore = controller.run(HandoffRequest(HandoffKind.SSM_SESSION, "i-1", "us-east-1"), RESTORE)

        self.assertTrue(restore.message.startswith("Handoff aborted:"))
        self.assertEqual(host.spawned, [])
        self.assertIs(controller.phase, HandoffPhase.OWNED)

    def test_spawn_error_still_reclaims_terminal(self) -> None:
        terminal = _FakeTerminal()
        controller, host, _ = _controller(terminal)
        host.spawn = mock.Mock(side_effect=OSError("no pty"))

        restore = controller.run(HandoffRequest(HandoffKind.SSM_SESSION, "i-1", "us-east-1"), RESTORE)

        self.assertEqual(terminal.calls, ["disable", "enable"])
        self.assertEqual(restore.message, "ssm-session failed: no pty")


class EditObjectTests(unittest.TestCase):
    request = HandoffRequest(HandoffKind.EDIT_OBJECT, "conf/app.yaml", "us-east-1", bucket="b")

    def test_unchanged_file_is_not_uploaded(self) -> None:
        provider = _FakeProvider()
        controller, _, _ = _controller(provider=provider)

        with mock.patch("lazyaws.runtime.handoff.run_editor", return_value=None):
            restore = controller.run(self.request, RESTORE)

        self.assertEqual(restore.message, "No changes to s3://b/conf/app.yaml")
        self.assertEqual([verb for verb, _ in provider.calls], ["download"])

    def test_edited_file_is_uploaded_back(self) -> None:
        provider = _FakeProvider()
        controller, _, _ = _controller(provider=provider)

        def edit(path, _environ):
            stat = path.stat()
            path.write_text("changed", encoding="utf-8")
            os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
            return None

        with mock.patch("lazyaws.runtime.handoff.run_editor", side_effect=edit):
            restore = controller.run(self.request, RESTORE)

        self.assertEqual(restore.message, "Saved changes to s3://b/conf/app.yaml")
        verb, options = provider.calls[-1]
        self.assertEqual(verb, "upload")
        self.assertEqual(options["bucket"], "b")
        self.assertTrue(options["source"].endswith(".yaml"))

    def test_download_failure_is_reported(self) -> None:
        controller, _, _ = _controller(provider=_FakeProvider(fail_download=True))

        restore = controller.run(self.request, RESTORE)

        self.assertEqual(restore.message, "Download of s3://b/conf/app.yaml failed: NoSuchKey: gone")

    def test_editor_error_is_reported(self) -> None:
        controller, _, _ = _controller()

        with mock.patch("lazyaws.runtime.handoff.run_editor", return_value="Cannot edit: $EDITOR is empty."):
            restore = controller.run(self.request, RESTORE)

        self.assertEqual(restore.message, "Cannot edit: $EDITOR is empty.")


if __name__ == "__main__":
    unittest.main()
