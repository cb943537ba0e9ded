"""Frame layout tests for the painter and the plain-text views."""

from __future__ import annotations

import unittest
from dataclasses import replace
from unittest import mock

from lazyaws import render
from lazyaws.ansi import display_width, strip_ansi
from lazyaws.config import AUTH_PROFILE, AuthConfig
from lazyaws.providers.base import Instance, S3Object
from lazyaws.state import (
    AccountContext,
    AppState,
    DetailState,
    InputMode,
    ListKind,
    ListState,
    PendingConfirm,
    Screen,
    SearchState,
    ViewportState,
)
from lazyaws.views import breadcrumb, document_lines, help_lines, human_size, metrics_summary, row_text


def _ec2(count: int = 3, **overrides) -> AppState:
    instances = tuple(Instance(f"i-{idx}", name=f"web-{idx}", state="running") for idx in range(count))
    state = AppState(
        screen=Screen.EC2,
        region="eu-west-1",
        viewport=ViewportState(height=5),
        lists={ListKind.INSTANCES: ListState(items=instances, selected=1)},
    )
    return replace(state, **overrides)


class RenderLinesTests(unittest.TestCase):
    def test_frame_fills_terminal_height(self) -> None:
        lines = render.render_lines(_ec2(), 80, 24)
        self.assertEqual(len(lines), 24)

    def test_rows_never_exceed_width(self) -> None:
        state = _ec2(count=40, auth=AuthConfig(method=AUTH_PROFILE, profile_name="x" * 200))
        for line in render.render_lines(state, 30, 12)[:-1]:
            self.assertLessEqual(display_width(line), 29)

    def test_header_shows_service_region_and_identity(self) -> None:
        state = _ec2(account=AccountContext("123", "prod", "Admin"), in_flight=1)

        header = strip_ansi(render.header_line(state, spinner_frame=1))

        self.assertIn("EC2", header)
        self.assertIn("account: prod/Admin", header)
        self.assertIn("region: eu-west-1", header)
        self.assertIn("/ loading", header)

    def test_selected_row_is_reverse_video_and_marked_rows_starred(self) -> None:
        state = _ec2(selected_ids=frozenset({"i-2"}))

        body = render.render_lines(state, 120, 10)[3:6]

        self.assertFalse(body[0].startswith(render.REVERSE))
        self.assertTrue(body[1].startswith(render.REVERSE))
        self.assertTrue(strip_ansi(body[2]).startswith("* i-2"))

    def test_empty_list_messages(self) -> None:
        empty = replace(_ec2(count=0), in_flight=1)
        self.assertIn("Loading...", strip_ansi(render.render_lines(empty, 80, 10)[3]))

        filtered = _ec2().with_list(ListKind.INSTANCES, ListState(items=(Instance("i-1"),), filtered=()))
        self.assertIn("No matches", strip_ansi(render.render_lines(filtered, 80, 10)[3]))

    def test_input_line_reflects_mode(self) -> None:
        self.assertEqual(render.input_line(_ec2(mode=InputMode.SEARCH, search=SearchState(query="web"))), "/web")
        command = _ec2(mode=InputMode.COMMAND, command_buffer="e", command_hints=("ec2", "eks"))
        self.assertEqual(strip_ansi(render.input_line(command)), ":e  ec2 eks")
        confirm = _ec2(confirm=PendingConfirm("instance:stop", ("i-1",), "Stop i-1? (y/n)"))
        self.assertEqual(strip_ansi(render.input_line(confirm)), "Stop i-1? (y/n) [y/n]")
        filtered = _ec2(search=SearchState(last_applied="web"))
        self.assertEqual(strip_ansi(render.input_line(filtered)), "filter: web")

    def test_status_line_keeps_help_hint_on_the_right(self) -> None:
        line = render.status_line(_ec2(status="Loaded 3 instances"), 40)
        self.assertTrue(line.startswith("Loaded 3 instances"))
        self.assertTrue(line.endswith("? Help"))
        self.assertEqual(len(line), 39)

    def test_json_overlay_is_highlighted(self) -> None:
        details = DetailState(info_title="Bucket policy: b", info_text='{\n  "a": 1\n}', info_is_json=True)
        state = AppState(screen=Screen.S3, region="us-east-1", details=details)

        lines = render.render_lines(state, 80, 10)

        self.assertEqual(strip_ansi(lines[1]), "Bucket policy: b")
        self.assertEqual(strip_ansi(lines[4]), '  "a": 1')

    def test_paint_writes_one_frame(self) -> None:
        terminal = mock.MagicMock()

        render.paint(terminal, _ec2(), 60, 8)

        terminal.write.assert_called_once()
        payload = terminal.write.call_args.args[0]
        self.assertTrue(payload.startswith("\033[H\033[J"))
        self.assertEqual(payload.count("\r\n"), 7)


class ViewsTests(unittest.TestCase):
    def test_human_size(self) -> None:
        self.assertEqual(human_size(512), "512 B")
        self.assertEqual(human_size(2048), "2.0 KB")
        self.assertEqual(human_size(5 * 1024 * 1024), "5.0 MB")

    def test_folder_rows_show_trailing_slash_without_size(self) -> None:
        row = row_text(ListKind.OBJECTS, S3Object("logs/2024/", is_folder=True))
        self.assertTrue(row.startswith("2024/"))
        self.assertNotIn(" B ", row)

    def test_breadcrumbs(self) -> None:
        browsing = AppState(screen=Screen.S3_BROWSE, region="us-east-1", bucket="b", prefix="logs/")
        self.assertEqual(breadcrumb(browsing), "s3://b/logs/")
        self.assertEqual(breadcrumb(AppState(screen=Screen.EKS_DETAIL, region="x", cluster="prod")), "EKS > prod")

    def test_instance_document_lists_sections_and_error(self) -> None:
        details = DetailState(
            instance={"details": {"instance_id": "i-1", "tags": {"Name": "web"}}, "ssm": {"connected": False}},
            error="status: throttled",
        )
        state = AppState(screen=Screen.EC2_DETAIL, region="us-east-1", instance_id="i-1", details=details)

        lines = document_lines(state)

        self.assertEqual(lines[0], "! status: throttled")
        self.assertIn("INSTANCE", lines)
        self.assertIn("    Name: web", lines)
        self.assertIn("  connected: no", lines)
        self.assertNotIn("STATUS CHECKS", lines)

    def test_instance_document_shows_metrics(self) -> None:
        metrics = {
            "period": "Last 5 minutes",
            "cpu_utilization": 12.345,
            "network_in": 2048.0,
            "network_out": None,
            "disk_read_bytes": 0.0,
            "disk_write_bytes": 512.0,
            "status_check_failed": 0.0,
        }
        details = DetailState(instance={"details": {"instance_id": "i-1"}, "metrics": metrics})
        state = AppState(screen=Screen.EC2_DETAIL, region="us-east-1", instance_id="i-1", details=details)

        lines = document_lines(state)

        self.assertIn("METRICS", lines)
        self.assertIn("  cpu: 12.3%", lines)
        self.assertIn("  network_in: 2.0 KB", lines)
        self.assertIn("  network_out: -", lines)
        self.assertIn("  disk_write: 512 B", lines)
        self.assertIn("  status_check_failed: 0", lines)

    def test_missing_metrics_part_is_omitted(self) -> None:
        self.assertIsNone(metrics_summary(None))
        self.assertIsNone(metrics_summary({}))

    def test_help_has_every_section(self) -> None:
        lines = help_lines()
        for title in ("NAVIGATION", "EC2", "S3", "EKS"):
            self.assertIn(title, lines)


if __name__ == "__main__":
    unittest.main()
