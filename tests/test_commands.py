from __future__ import annotations

import unittest

from lazyaws.commands import Command, CommandVerb, command_suggestions, complete_command, parse_command
from lazyaws.core.command_exec import execute_command
from lazyaws.core.events import TaskTag
from lazyaws.providers.base import Instance
from lazyaws.state import AppState, ExitReason, ListKind, ListState, Screen


class ParseCommandTests(unittest.TestCase):
    def test_empty_line_is_a_no_op_command(self) -> None:
        command = parse_command("")
        self.assertTrue(command.is_empty)
        self.assertEqual(command.args, ())
        self.assertTrue(parse_command("   ").is_empty)

    def test_splits_verb_and_arguments(self) -> None:
        command = parse_command("echo a b")
        self.assertEqual(command.name, "echo")
        self.assertEqual(command.args, ("a", "b"))

    def test_aliases_resolve_to_verbs(self) -> None:
        self.assertIs(parse_command("q").verb, CommandVerb.BACK)
        self.assertIs(parse_command("qa").verb, CommandVerb.QUIT)
        self.assertIs(parse_command("acc").verb, CommandVerb.ACCOUNT)
        self.assertIs(parse_command("?").verb, CommandVerb.HELP)
        self.assertIsNone(parse_command("bogus").verb)


class CompletionTests(unittest.TestCase):
    def test_suggestions_filter_by_prefix(self) -> None:
        self.assertEqual(command_suggestions("e"), ["ec2", "eks"])
        self.assertEqual(command_suggestions(""), [])

    def test_unique_prefix_completes_fully(self) -> None:
        self.assertEqual(complete_command("reg"), ("region", True))

    def test_ambiguous_prefix_completes_common_part(self) -> None:
        self.assertEqual(complete_command("de"), ("deselectall", True))
        self.assertEqual(complete_command("a"), ("acc", False))

    def test_unknown_prefix_is_returned_unchanged(self) -> None:
        self.assertEqual(complete_command("zz"), ("zz", False))


def _ec2_state() -> AppState:
    instances = (Instance("i-1", name="a"), Instance("i-2", name="b"))
    return AppState(
        screen=Screen.EC2,
        region="us-east-1",
        regions=("us-east-1", "eu-west-1"),
        lists={ListKind.INSTANCES: ListState(items=instances)},
    )


class ExecuteCommandTests(unittest.TestCase):
    def test_empty_command_changes_nothing(self) -> None:
        state = _ec2_state()
        self.assertEqual(execute_command(state, Command()), (state, []))

    def test_unknown_command_reports_status(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("frobnicate now"))
        self.assertEqual(state.status, "Unknown command: frobnicate")
        self.assertEqual(issued, [])

    def test_quit_all_requests_exit(self) -> None:
        state, _ = execute_command(_ec2_state(), parse_command("qa"))
        self.assertIs(state.exit.reason, ExitReason.QUIT)

    def test_question_mark_opens_help(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("?"))
        self.assertIs(state.screen, Screen.HELP)
        self.assertEqual(issued, [])

    def test_select_all_marks_every_visible_instance(self) -> None:
        state, _ = execute_command(_ec2_state(), parse_command("sa"))
        self.assertEqual(state.selected_ids, frozenset({"i-1", "i-2"}))

        state, _ = execute_command(state, parse_command("da"))
        self.assertEqual(state.selected_ids, frozenset())

    def test_service_command_switches_screen_and_loads(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("s3"))
        self.assertIs(state.screen, Screen.S3)
        self.assertEqual([task.tag for task in issued], [TaskTag.BUCKETS_LOADED])
        self.assertEqual(state.in_flight, 1)

    def test_region_with_argument_changes_region_and_reloads(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("region eu-west-1"))
        self.assertEqual(state.region, "eu-west-1")
        self.assertEqual([task.tag for task in issued], [TaskTag.INSTANCES_LOADED])

    def test_region_rejects_unknown_names(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("region mars-1"))
        self.assertEqual(state.status, "Unknown region: mars-1")
        self.assertEqual(issued, [])

    def test_region_without_argument_opens_picker(self) -> None:
        state, _ = execute_command(_ec2_state(), parse_command("region"))
        self.assertIs(state.screen, Screen.REGIONS)
        self.assertIs(state.previous_screen, Screen.EC2)

    def test_upload_requires_bucket_browser(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("upload /tmp/x"))
        self.assertEqual(issued, [])
        self.assertIn("only available", state.status)

    def test_upload_defaults_key_to_current_prefix(self) -> None:
        browsing = AppState(screen=Screen.S3_BROWSE, region="us-east-1", bucket="b", prefix="logs/")
        state, issued = execute_command(browsing, parse_command("upload /tmp/report.txt"))
        self.assertEqual(issued[0].tag, TaskTag.OBJECT_UPLOADED)
        self.assertEqual(issued[0].meta["key"], "logs/report.txt")

    def test_account_requires_sso(self) -> None:
        state, issued = execute_command(_ec2_state(), parse_command("account"))
        self.assertEqual(issued, [])
        self.assertEqual(state.status, "Account switching only available with SSO authentication")


if __name__ == "__main__":
    unittest.main()
