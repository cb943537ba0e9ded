"""Tests for folding async task completions into state."""

from __future__ import annotations

import unittest
from dataclasses import replace

from lazyaws.config import AUTH_SSO, AuthConfig
from lazyaws.core.events import Completion, TaskTag, origin_of
from lazyaws.core.reducer import apply
from lazyaws.providers.base import Account, BulkResult, Credentials, Instance, ListPage, S3Object, SsoSession
from lazyaws.search import commit_search, edit_query, enter_search
from lazyaws.state import AppState, InputMode, ListKind, ListState, Screen


def _ec2(**overrides) -> AppState:
    instances = (Instance("i-1", name="a"), Instance("i-2", name="b"))
    state = AppState(
        screen=Screen.EC2,
        region="us-east-1",
        lists={ListKind.INSTANCES: ListState(items=instances)},
        in_flight=1,
    )
    return replace(state, **overrides)


def _done(state: AppState, tag: TaskTag, value=None, error=None, **meta) -> Completion:
    return Completion(tag=tag, origin=origin_of(state), value=value, error=error, meta=meta)


class StalenessTests(unittest.TestCase):
    def test_completion_from_older_generation_is_dropped(self) -> None:
        issued_from = _ec2()
        state = replace(issued_from, generation=1)
        completion = _done(issued_from, TaskTag.INSTANCES_LOADED, ListPage(items=(Instance("i-9"),)))

        self.assertEqual(apply(state, completion), (state, []))

    def test_result_for_another_region_is_ignored_but_loading_settles(self) -> None:
        issued_from = _ec2()
        state = replace(issued_from, region="eu-west-1")
        completion = _done(issued_from, TaskTag.INSTANCES_LOADED, ListPage(items=(Instance("i-9"),)))

        state, issued = apply(state, completion)

        self.assertEqual(state.in_flight, 0)
        self.assertFalse(state.loading)
        self.assertEqual(len(state.list_for(ListKind.INSTANCES).items), 2)
        self.assertEqual(issued, [])

    def test_errors_are_reported_even_when_stale_context(self) -> None:
        issued_from = _ec2()
        state = replace(issued_from, region="eu-west-1")

        state, _ = apply(state, _done(issued_from, TaskTag.INSTANCES_LOADED, error="AccessDenied: no"))

        self.assertEqual(state.last_error, "AccessDenied: no")
        self.assertEqual(state.status, "Error: AccessDenied: no")


class ListLoadedTests(unittest.TestCase):
    def test_loaded_list_replaces_items_and_keeps_selection_in_range(self) -> None:
        state = _ec2()
        state = state.with_list(ListKind.INSTANCES, ListState(items=state.list_for(ListKind.INSTANCES).items, selected=1))

        state, _ = apply(state, _done(state, TaskTag.INSTANCES_LOADED, ListPage(items=(Instance("i-7"),))))

        instances = state.list_for(ListKind.INSTANCES)
        self.assertEqual(instances.items, (Instance("i-7"),))
        self.assertEqual(instances.selected, 0)
        self.assertEqual(state.status, "Loaded 1 instances")

    def test_objects_loaded_from_bucket_list_opens_browser(self) -> None:
        state = AppState(screen=Screen.S3, region="us-east-1", bucket="b", in_flight=1)
        page = ListPage(items=(S3Object("a.txt"),), continuation_token="next", truncated=True)

        state, _ = apply(state, _done(state, TaskTag.OBJECTS_LOADED, page))

        self.assertIs(state.screen, Screen.S3_BROWSE)
        objects = state.list_for(ListKind.OBJECTS)
        self.assertTrue(objects.truncated)
        self.assertEqual(objects.continuation_token, "next")
        self.assertEqual(state.status, "Loaded 1 objects (more available, press n)")

    def test_objects_for_a_bucket_the_user_left_are_ignored(self) -> None:
        issued_from = AppState(screen=Screen.S3, region="us-east-1", bucket="b", in_flight=1)
        state = replace(issued_from, screen=Screen.EC2, bucket="")

        state, _ = apply(state, _done(issued_from, TaskTag.OBJECTS_LOADED, ListPage(items=(S3Object("a"),))))

        self.assertIs(state.screen, Screen.EC2)
        self.assertEqual(state.list_for(ListKind.OBJECTS).items, ())


class ReloadDuringSearchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.instances = (
            Instance("i-1", name="ec2-a"),
            Instance("i-2", name="ec2-b"),
            Instance("i-3", name="s3-x"),
            Instance("i-4", name="ec2-c"),
        )
        self.state = AppState(
            screen=Screen.EC2,
            region="us-east-1",
            lists={ListKind.INSTANCES: ListState(items=self.instances)},
        )

    def _reload(self, state: AppState) -> AppState:
        state = replace(state, in_flight=1)
        state, _ = apply(state, _done(state, TaskTag.INSTANCES_LOADED, ListPage(items=self.instances)))
        return state

    def test_reload_keeps_live_query_filter(self) -> None:
        state = edit_query(enter_search(self.state), "ec2")

        state = self._reload(state)

        self.assertIs(state.mode, InputMode.SEARCH)
        self.assertEqual(len(state.list_for(ListKind.INSTANCES).active()), 3)
        self.assertEqual(state.search.matches, (0, 1, 3))

    def test_enter_after_reload_commits_filtered_view(self) -> None:
        state = edit_query(enter_search(self.state), "ec2")
        state = commit_search(self._reload(state))

        instances = state.list_for(ListKind.INSTANCES)
        self.assertEqual(state.search.last_applied, "ec2")
        self.assertIsNotNone(instances.filtered)
        self.assertEqual(len(instances.active()), 3)

    def test_reload_in_normal_mode_uses_committed_query(self) -> None:
        state = commit_search(edit_query(enter_search(self.state), "s3"))

        state = self._reload(state)

        self.assertEqual(state.list_for(ListKind.INSTANCES).active(), (self.instances[2],))


class FanOutTests(unittest.TestCase):
    def test_partial_fan_out_opens_detail_with_error(self) -> None:
        state = _ec2(instance_id="i-1")
        parts = {"details": {"instance_id": "i-1"}, "ssm": {"connected": False}}

        state, issued = apply(
            state,
            _done(state, TaskTag.INSTANCE_DETAILS_LOADED, parts, error="status: throttled", instance_id="i-1"),
        )

        self.assertIs(state.screen, Screen.EC2_DETAIL)
        self.assertEqual(state.details.instance, parts)
        self.assertEqual(state.details.error, "status: throttled")
        self.assertEqual(state.last_error, "status: throttled")
        self.assertEqual(state.in_flight, 0)
        self.assertEqual(issued, [])

    def test_fully_failed_fan_out_stays_on_list(self) -> None:
        state = _ec2(instance_id="i-1")

        state, _ = apply(state, _done(state, TaskTag.INSTANCE_DETAILS_LOADED, {}, error="details: gone", instance_id="i-1"))

        self.assertIs(state.screen, Screen.EC2)
        self.assertEqual(state.status, "Error: details: gone")

    def test_detail_for_another_instance_is_ignored(self) -> None:
        issued_from = _ec2(instance_id="i-1")
        state = replace(issued_from, instance_id="i-2")

        state, _ = apply(state, _done(issued_from, TaskTag.INSTANCE_DETAILS_LOADED, {"details": {}}, instance_id="i-1"))

        self.assertIs(state.screen, Screen.EC2)
        self.assertEqual(state.details.instance, {})


class MutationTests(unittest.TestCase):
    def test_bulk_result_reports_counts_and_reloads(self) -> None:
        state = _ec2(selected_ids=frozenset({"i-1", "i-2"}))
        result = BulkResult(verb="stop", succeeded=("i-1",), failed=("i-2",), errors=("i-2: denied",))

        state, issued = apply(state, _done(state, TaskTag.BULK_ACTION_DONE, result, verb="stop", targets=("i-1", "i-2")))

        self.assertEqual(state.status, "Bulk stop: 1 succeeded, 1 failed")
        self.assertEqual(state.last_error, "i-2: denied")
        self.assertEqual(state.selected_ids, frozenset())
        self.assertEqual([task.tag for task in issued], [TaskTag.INSTANCES_LOADED])
        self.assertEqual(state.in_flight, 1)

    def test_single_action_success_message(self) -> None:
        state = _ec2()
        state, _ = apply(state, _done(state, TaskTag.INSTANCE_ACTION_DONE, verb="start", targets=("i-1",)))
        self.assertEqual(state.status, "Start requested for i-1")

    def test_mutation_outcome_is_folded_after_leaving_screen(self) -> None:
        issued_from = _ec2()
        state = replace(issued_from, screen=Screen.EKS)

        state, issued = apply(state, _done(issued_from, TaskTag.KUBECONFIG_UPDATED, cluster="prod"))

        self.assertEqual(state.status, "Updated kubeconfig for prod")
        self.assertEqual(issued, [])

    def test_deleting_open_object_returns_to_browser_and_reloads(self) -> None:
        state = AppState(screen=Screen.S3_OBJECT, region="us-east-1", bucket="b", object_key="a.txt", in_flight=1)

        state, issued = apply(state, _done(state, TaskTag.RESOURCE_DELETED, kind="object", resource_id="a.txt"))

        self.assertIs(state.screen, Screen.S3_BROWSE)
        self.assertEqual(state.object_key, "")
        self.assertEqual([task.tag for task in issued], [TaskTag.OBJECTS_LOADED])


class OverlayTests(unittest.TestCase):
    def test_json_policy_is_pretty_printed(self) -> None:
        state = AppState(screen=Screen.S3, region="us-east-1", in_flight=1)

        state, _ = apply(state, _done(state, TaskTag.INFO_LOADED, '{"b":1,"a":2}', title="Bucket policy: x", json=True))

        self.assertEqual(state.details.info_title, "Bucket policy: x")
        self.assertEqual(state.details.info_text, '{\n  "a": 2,\n  "b": 1\n}')
        self.assertTrue(state.details.info_is_json)
        self.assertEqual(state.status, "Esc to close")


class AccountFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.auth = AuthConfig(method=AUTH_SSO, sso_start_url="https://example.awsapps.com/start")
        self.session = SsoSession("https://example.awsapps.com/start", "us-east-1", "tok", 9999999999.0)

    def test_authentication_triggers_account_listing(self) -> None:
        state = AppState(screen=Screen.ACCOUNTS, region="us-east-1", auth=self.auth, in_flight=1)

        state, issued = apply(state, _done(state, TaskTag.AUTHENTICATED, self.session))

        self.assertEqual(state.sso_session, self.session)
        self.assertEqual([task.tag for task in issued], [TaskTag.ACCOUNTS_LOADED])

    def test_switching_account_installs_credentials_and_opens_ec2(self) -> None:
        state = AppState(
            screen=Screen.ACCOUNTS,
            region="us-east-1",
            auth=self.auth,
            sso_session=self.session,
            in_flight=1,
        )
        account = Account("123456789012", account_name="prod", role_name="Admin")
        creds = Credentials("AKIA", "secret", "token")

        state, issued = apply(state, _done(state, TaskTag.ACCOUNT_SWITCHED, creds, account=account))

        self.assertEqual(state.credentials, creds)
        self.assertEqual(state.account.account_id, "123456789012")
        self.assertIs(state.screen, Screen.EC2)
        self.assertEqual(state.status, "Switched to account prod (123456789012)")
        self.assertEqual([task.tag for task in issued], [TaskTag.INSTANCES_LOADED])


if __name__ == "__main__":
    unittest.main()
