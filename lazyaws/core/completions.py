"""Folding of async completions into state.

Policy: a completion's data is applied only while its origin context (service
family, region, account and S3 location) is still the current one, and a
screen transition it carries only happens from the screen it was issued on.
The loading counter, errors and mutation outcomes are always folded.
Completions from before the last re-initialisation are dropped entirely.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import replace

from ..providers.base import Account, BulkResult, Credentials, ListPage, SsoSession
from ..search import reapply_filter
from ..state import AccountContext, AppState, ListKind, ListState, Screen
from ..viewport import follow_selection
from . import tasks
from .events import Completion, TaskTag, is_current
from .transitions import (
    Outcome,
    issue,
    open_service,
    reset_resource_lists,
    set_error,
    set_status,
    switch_screen,
)

logger = logging.getLogger(__name__)

_LIST_KINDS: dict[TaskTag, tuple[ListKind, str]] = {
    TaskTag.ACCOUNTS_LOADED: (ListKind.ACCOUNTS, "accounts"),
    TaskTag.INSTANCES_LOADED: (ListKind.INSTANCES, "instances"),
    TaskTag.BUCKETS_LOADED: (ListKind.BUCKETS, "buckets"),
    TaskTag.OBJECTS_LOADED: (ListKind.OBJECTS, "objects"),
    TaskTag.CLUSTERS_LOADED: (ListKind.CLUSTERS, "clusters"),
}


def fold_completion(state: AppState, completion: Completion) -> Outcome:
    if completion.origin.generation != state.generation:
        logger.debug("dropping %s from generation %s", completion.tag.value, completion.origin.generation)
        return state, []
    if completion.tracks_loading:
        state = replace(state, in_flight=max(0, state.in_flight - 1))
    if completion.error is not None:
        state = set_error(state, completion.error)
    current = is_current(state, completion.origin)
    handler = _HANDLERS.get(completion.tag)
    if handler is None:
        return state, []
    return handler(state, completion, current)


def _auth_saved(state: AppState, completion: Completion, _current: bool) -> Outcome:
    if completion.error is not None:
        return set_status(state, f"Failed to save auth config: {completion.error}"), []
    return state, []


def _authenticated(state: AppState, completion: Completion, current: bool) -> Outcome:
    if not completion.ok or not current or not isinstance(completion.value, SsoSession):
        return state, []
    state = set_status(replace(state, sso_session=completion.value), "Authenticated, loading accounts...")
    return issue(state, tasks.load_accounts(state))


def _list_loaded(state: AppState, completion: Completion, current: bool) -> Outcome:
    kind, noun = _LIST_KINDS[completion.tag]
    if not completion.ok or not current or not isinstance(completion.value, ListPage):
        return state, []
    page: ListPage = completion.value
    previous = state.list_for(kind)
    selected = 0 if completion.meta.get("paged") else previous.selected
    if kind is ListKind.ACCOUNTS and state.account is not None:
        for idx, item in enumerate(page.items):
            if isinstance(item, Account) and item.account_id == state.account.account_id:
                selected = idx
                break
    fresh = ListState(
        items=tuple(page.items),
        continuation_token=page.continuation_token,
        truncated=page.truncated,
    ).with_selection(selected)

    transition = (
        kind is ListKind.OBJECTS
        and completion.origin.screen is Screen.S3
        and state.screen is Screen.S3
    )
    if transition:
        state = switch_screen(state, Screen.S3_BROWSE)
    state = reapply_filter(state, kind, fresh)
    more = " (more available, press n)" if page.truncated and kind is ListKind.OBJECTS else ""
    state = set_status(state, f"Loaded {len(page.items)} {noun}{more}")
    return follow_selection(state), []


def _account_switched(state: AppState, completion: Completion, current: bool) -> Outcome:
    account = completion.meta.get("account")
    if not completion.ok or not current or not isinstance(completion.value, Credentials):
        return state, []
    if not isinstance(account, Account):
        return state, []
    state = replace(
        reset_resource_lists(state),
        credentials=completion.value,
        account=AccountContext(account.account_id, account.account_name, account.role_name),
        previous_screen=None,
    )
    state, issued = open_service(state, Screen.EC2)
    label = account.account_name or account.account_id
    return set_status(state, f"Switched to account {label} ({account.account_id})"), issued


def _fan_out_detail(
    state: AppState,
    completion: Completion,
    current: bool,
    *,
    list_screen: Screen,
    detail_screen: Screen,
    field_name: str,
) -> Outcome:
    parts = completion.value if isinstance(completion.value, dict) else {}
    if not current or not parts:
        return state, []
    details = replace(state.details, **{field_name: dict(parts)}, error=completion.error or "")
    state = replace(state, details=details)
    if state.screen is list_screen and completion.origin.screen is list_screen:
        state = switch_screen(state, detail_screen, keep_search=True)
    elif state.screen is not detail_screen:
        return state, []
    if completion.ok:
        state = set_status(state, "")
    return state, []


def _instance_details(state: AppState, completion: Completion, current: bool) -> Outcome:
    instance_id = completion.meta.get("instance_id", "")
    if current and instance_id and state.instance_id not in ("", instance_id):
        return state, []
    return _fan_out_detail(
        state,
        completion,
        current,
        list_screen=Screen.EC2,
        detail_screen=Screen.EC2_DETAIL,
        field_name="instance",
    )


def _cluster_details(state: AppState, completion: Completion, current: bool) -> Outcome:
    cluster = completion.meta.get("cluster", "")
    if current and cluster and state.cluster not in ("", cluster):
        return state, []
    return _fan_out_detail(
        state,
        completion,
        current,
        list_screen=Screen.EKS,
        detail_screen=Screen.EKS_DETAIL,
        field_name="cluster",
    )


def _object_details(state: AppState, completion: Completion, current: bool) -> Outcome:
    if not completion.ok or not current or not isinstance(completion.value, dict):
        return state, []
    if state.object_key != completion.meta.get("key"):
        return state, []
    state = replace(state, details=replace(state.details, obj=dict(completion.value), error=""))
    if state.screen is Screen.S3_BROWSE and completion.origin.screen is Screen.S3_BROWSE:
        state = switch_screen(state, Screen.S3_OBJECT, keep_search=True)
    return set_status(state, ""), []


def _instance_action(state: AppState, completion: Completion, current: bool) -> Outcome:
    verb = completion.meta.get("verb", "")
    targets = completion.meta.get("targets", ())
    if completion.ok:
        state = set_status(state, f"{verb.capitalize()} requested for {', '.join(targets)}")
    return _reload_instances(state, current)


def _bulk_action(state: AppState, completion: Completion, current: bool) -> Outcome:
    verb = completion.meta.get("verb", "")
    targets = tuple(completion.meta.get("targets", ()))
    result = completion.value
    if not isinstance(result, BulkResult):
        result = BulkResult(verb=verb, failed=targets)
    message = f"Bulk {verb}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
    if result.errors:
        state = replace(state, last_error=result.errors[0])
    state = set_status(replace(state, selected_ids=frozenset()), message)
    return _reload_instances(state, current)


def _reload_instances(state: AppState, current: bool) -> Outcome:
    if not current or state.screen is not Screen.EC2:
        return state, []
    return issue(state, tasks.load_list(state, ListKind.INSTANCES))


def _downloaded(state: AppState, completion: Completion, _current: bool) -> Outcome:
    if completion.ok:
        key = completion.meta.get("key", "")
        return set_status(state, f"Downloaded {key} to {completion.meta.get('destination', '')}"), []
    return state, []


def _uploaded(state: AppState, completion: Completion, current: bool) -> Outcome:
    if not completion.ok:
        return state, []
    state = set_status(state, f"Uploaded {completion.meta.get('source', '')} to {completion.meta.get('key', '')}")
    if current and state.screen is Screen.S3_BROWSE:
        return issue(state, tasks.load_list(state, ListKind.OBJECTS))
    return state, []


def _deleted(state: AppState, completion: Completion, current: bool) -> Outcome:
    if not completion.ok:
        return state, []
    kind = completion.meta.get("kind", "")
    resource_id = completion.meta.get("resource_id", "")
    state = set_status(state, f"Deleted {resource_id}")
    if not current:
        return state, []
    if kind == "object":
        if state.screen is Screen.S3_OBJECT:
            state = replace(switch_screen(state, Screen.S3_BROWSE, keep_search=True), object_key="")
        if state.screen is Screen.S3_BROWSE:
            return issue(state, tasks.load_list(state, ListKind.OBJECTS))
        return state, []
    if kind == "bucket" and state.screen is Screen.S3:
        return issue(state, tasks.load_list(state, ListKind.BUCKETS))
    return state, []


def _info_loaded(state: AppState, completion: Completion, current: bool) -> Outcome:
    if not completion.ok or not current:
        return state, []
    is_json = bool(completion.meta.get("json"))
    text = _info_text(completion.value, is_json)
    details = replace(
        state.details,
        info_title=str(completion.meta.get("title", "")),
        info_text=text or "(empty)",
        info_is_json=is_json,
    )
    state = replace(state, details=details, viewport=replace(state.viewport, offset=0))
    return set_status(state, "Esc to close"), []


def _info_text(value: object, is_json: bool) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, sort_keys=True, default=str)
    text = "" if value is None else str(value)
    if is_json and text:
        try:
            return json.dumps(json.loads(text), indent=2, sort_keys=True)
        except ValueError:
            return text
    return text


def _kubeconfig_updated(state: AppState, completion: Completion, _current: bool) -> Outcome:
    if completion.ok:
        return set_status(state, f"Updated kubeconfig for {completion.meta.get('cluster', '')}"), []
    return state, []


_HANDLERS: dict[TaskTag, Callable[[AppState, Completion, bool], Outcome]] = {
    TaskTag.AUTH_SAVED: _auth_saved,
    TaskTag.AUTHENTICATED: _authenticated,
    TaskTag.ACCOUNTS_LOADED: _list_loaded,
    TaskTag.ACCOUNT_SWITCHED: _account_switched,
    TaskTag.INSTANCES_LOADED: _list_loaded,
    TaskTag.BUCKETS_LOADED: _list_loaded,
    TaskTag.OBJECTS_LOADED: _list_loaded,
    TaskTag.CLUSTERS_LOADED: _list_loaded,
    TaskTag.INSTANCE_DETAILS_LOADED: _instance_details,
    TaskTag.OBJECT_DETAILS_LOADED: _object_details,
    TaskTag.CLUSTER_DETAILS_LOADED: _cluster_details,
    TaskTag.INSTANCE_ACTION_DONE: _instance_action,
    TaskTag.BULK_ACTION_DONE: _bulk_action,
    TaskTag.OBJECT_DOWNLOADED: _downloaded,
    TaskTag.OBJECT_UPLOADED: _uploaded,
    TaskTag.RESOURCE_DELETED: _deleted,
    TaskTag.INFO_LOADED: _info_loaded,
    TaskTag.KUBECONFIG_UPDATED: _kubeconfig_updated,
}
