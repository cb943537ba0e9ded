"""Pure state transitions: ``apply(state, event) -> (state, tasks)``.

Nothing here performs I/O. Remote work is described as tasks and handed to
the dispatcher; their results come back later as ``Completion`` events.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import replace

from ..commands import parse_command
from ..config import AUTH_ENV, AUTH_PROFILE, AUTH_SSO, AuthConfig, validate_profile_name, validate_sso_start_url
from ..navigation import NavAction, next_index, scroll_offset
from ..providers.base import Account, Bucket, Cluster, Instance, S3Object
from ..search import clear_search, cycle_match
from ..state import (
    DOCUMENT_SCREENS,
    AppState,
    ExitReason,
    ExitRequest,
    HandoffKind,
    HandoffRequest,
    ListKind,
    PendingConfirm,
    Screen,
    SERVICE_SCREENS,
)
from ..viewport import ensure_visible, follow_selection
from ..views import document_lines
from . import tasks
from .command_exec import execute_command
from .completions import fold_completion
from .events import Action, ActionKind, Completion, Event, Resized, Tick
from .transitions import (
    Outcome,
    browse_prefix,
    change_region,
    clear_overlay,
    issue,
    leave_browser,
    open_service,
    parent_prefix,
    refresh,
    set_status,
    show_help,
    step_back,
    switch_screen,
)

INSTANCE_VERBS = ("start", "stop", "reboot", "terminate")


def apply(state: AppState, event: Event) -> Outcome:
    """Fold one event into ``state``."""
    if isinstance(event, Completion):
        return fold_completion(state, event)
    if isinstance(event, Tick):
        return _on_tick(state, event.now)
    if isinstance(event, Resized):
        return _on_resize(state, event.rows), []
    handler = _ACTION_HANDLERS.get(event.kind)
    if handler is None:
        return state, []
    return handler(state, event)


def _on_tick(state: AppState, now: float) -> Outcome:
    if not state.auto_refresh or state.screen is not Screen.EC2:
        return state, []
    if state.next_refresh_at <= 0:
        return replace(state, next_refresh_at=now + state.auto_refresh_seconds), []
    if now < state.next_refresh_at or state.loading:
        return state, []
    state = replace(state, next_refresh_at=now + state.auto_refresh_seconds)
    return issue(state, tasks.load_list(state, ListKind.INSTANCES))


def _on_resize(state: AppState, rows: int) -> AppState:
    rows = max(1, rows)
    state = replace(state, viewport=replace(state.viewport, height=rows))
    if state.screen in DOCUMENT_SCREENS or state.details.info_text:
        max_offset = max(0, len(document_lines(state)) - rows)
        offset = min(state.viewport.offset, max_offset)
        return replace(state, viewport=replace(state.viewport, offset=offset))
    list_state = state.active_list()
    if list_state is None:
        return state
    offset = ensure_visible(list_state.selected, len(list_state.active()), rows, state.viewport.offset)
    return replace(state, viewport=replace(state.viewport, offset=offset))


def _navigate(state: AppState, action: Action) -> Outcome:
    nav: NavAction = action.arg
    viewport = state.viewport
    if state.screen in DOCUMENT_SCREENS or state.details.info_text:
        offset = scroll_offset(nav, viewport.offset, viewport.page_size, len(document_lines(state)), viewport.height)
        return replace(state, viewport=replace(viewport, offset=offset)), []
    kind = state.list_kind
    list_state = state.active_list()
    if kind is None or list_state is None:
        return state, []
    index = next_index(nav, list_state.selected, len(list_state.active()), viewport.page_size)
    return follow_selection(state.with_list(kind, list_state.with_selection(index))), []


def _selected(state: AppState):
    list_state = state.active_list()
    return list_state.selected_item() if list_state is not None else None


def _activate(state: AppState, _action: Action) -> Outcome:
    item = _selected(state)
    screen = state.screen
    if screen is Screen.AUTH_METHOD and item is not None:
        return _choose_auth_method(state, str(item))
    if item is None:
        return state, []
    if screen is Screen.ACCOUNTS and isinstance(item, Account):
        label = item.account_name or item.account_id
        return issue(set_status(state, f"Switching to account {label}..."), tasks.switch_account(state, item))
    if screen is Screen.REGIONS:
        return change_region(state, str(item))
    if screen is Screen.EC2 and isinstance(item, Instance):
        state = replace(state, instance_id=item.instance_id)
        return issue(set_status(state, f"Loading {item.instance_id}..."), tasks.load_instance_details(state, item.instance_id))
    if screen is Screen.S3 and isinstance(item, Bucket):
        state = replace(state, bucket=item.name, prefix="")
        return issue(set_status(state, f"Loading s3://{item.name}/"), tasks.load_list(state, ListKind.OBJECTS))
    if screen is Screen.S3_BROWSE and isinstance(item, S3Object):
        if item.is_folder:
            return browse_prefix(state, item.key)
        state = replace(state, object_key=item.key)
        return issue(set_status(state, f"Loading {item.key}..."), tasks.load_object_details(state, item.key))
    if screen is Screen.EKS and isinstance(item, Cluster):
        state = replace(state, cluster=item.name)
        return issue(set_status(state, f"Loading {item.name}..."), tasks.load_cluster_details(state, item.name))
    return state, []


def _choose_auth_method(state: AppState, method: str) -> Outcome:
    if method == AUTH_ENV:
        auth = AuthConfig(method=AUTH_ENV)
        state = replace(state, auth=auth)
        state, saved = issue(state, tasks.save_auth(state, auth))
        state, loaded = open_service(state, Screen.EC2)
        return state, saved + loaded
    if method == AUTH_PROFILE:
        profile = state.auth.profile_name if state.auth is not None else ""
        return switch_screen(replace(state, prompt_buffer=profile or "default"), Screen.AUTH_PROFILE), []
    if method == AUTH_SSO:
        url = state.auth.sso_start_url if state.auth is not None else ""
        return switch_screen(replace(state, prompt_buffer=url), Screen.SSO_CONFIG), []
    return state, []


def _submit_prompt(state: AppState, _action: Action) -> Outcome:
    value = state.prompt_buffer.strip()
    if state.screen is Screen.AUTH_PROFILE:
        error = validate_profile_name(value)
        if error:
            return set_status(state, error), []
        auth = AuthConfig(method=AUTH_PROFILE, profile_name=value)
        state = replace(state, auth=auth, prompt_buffer="")
        state, saved = issue(state, tasks.save_auth(state, auth))
        state, loaded = open_service(state, Screen.EC2)
        return state, saved + loaded
    if state.screen is Screen.SSO_CONFIG:
        error = validate_sso_start_url(value)
        if error:
            return set_status(state, error), []
        auth = AuthConfig(method=AUTH_SSO, sso_start_url=value, sso_region=state.region)
        state = replace(state, auth=auth, prompt_buffer="", sso_session=None)
        state, saved = issue(state, tasks.save_auth(state, auth))
        state = switch_screen(state, Screen.ACCOUNTS)
        state = set_status(state, "Authenticating with SSO, complete the login in your browser...")
        state, authed = issue(state, tasks.authenticate(state))
        return state, saved + authed
    return state, []


def _back(state: AppState, _action: Action) -> Outcome:
    if state.details.info_text:
        return clear_overlay(state), []
    if state.screen in (Screen.HELP, Screen.REGIONS):
        return step_back(state, quit_at_top=False)
    if state.search.last_applied:
        return set_status(clear_search(state), "Search cleared"), []
    return step_back(state, quit_at_top=False)


def _quit(state: AppState, action: Action) -> Outcome:
    if action.arg == "force":
        return replace(state, exit=ExitRequest(ExitReason.QUIT)), []
    return step_back(state, quit_at_top=True)


def _next_match(state: AppState, action: Action) -> Outcome:
    direction = -1 if action.kind is ActionKind.PREV_MATCH else 1
    moved = cycle_match(state, direction)
    if moved is not None:
        return moved, []
    if direction == 1 and state.screen is Screen.S3_BROWSE:
        objects = state.list_for(ListKind.OBJECTS)
        if objects.truncated and objects.continuation_token:
            state = set_status(state, "Loading next page...")
            return issue(state, tasks.load_list(state, ListKind.OBJECTS, objects.continuation_token))
        return set_status(state, "No more objects"), []
    return state, []


def _execute(state: AppState, action: Action) -> Outcome:
    return execute_command(state, parse_command(str(action.arg or "")))


def _refresh(state: AppState, _action: Action) -> Outcome:
    return refresh(state)


def _cycle_service(state: AppState, _action: Action) -> Outcome:
    family = state.family
    order = [screen.value for screen in SERVICE_SCREENS]
    if family not in order:
        return state, []
    target = SERVICE_SCREENS[(order.index(family) + 1) % len(SERVICE_SCREENS)]
    return open_service(state, target)


def _cycle_region(state: AppState, _action: Action) -> Outcome:
    if not state.regions:
        return set_status(state, "No regions configured"), []
    regions = list(state.regions)
    index = regions.index(state.region) + 1 if state.region in regions else 0
    return change_region(state, regions[index % len(regions)])


def _toggle_select(state: AppState, _action: Action) -> Outcome:
    if state.screen is not Screen.EC2:
        return state, []
    item = _selected(state)
    if not isinstance(item, Instance):
        return state, []
    selected = set(state.selected_ids)
    if item.instance_id in selected:
        selected.discard(item.instance_id)
    else:
        selected.add(item.instance_id)
    state = replace(state, selected_ids=frozenset(selected))
    return set_status(state, f"{len(selected)} selected"), []


def _clear_selection(state: AppState, _action: Action) -> Outcome:
    if state.screen is not Screen.EC2:
        return state, []
    return set_status(replace(state, selected_ids=frozenset()), "Selection cleared"), []


def _toggle_auto_refresh(state: AppState, _action: Action) -> Outcome:
    if state.screen is not Screen.EC2:
        return state, []
    enabled = not state.auto_refresh
    state = replace(state, auto_refresh=enabled, next_refresh_at=0.0)
    if enabled:
        return set_status(state, f"Auto-refresh enabled ({int(state.auto_refresh_seconds)}s)"), []
    return set_status(state, "Auto-refresh disabled"), []


def _instance_targets(state: AppState) -> tuple[str, ...]:
    if state.screen is Screen.EC2_DETAIL and state.instance_id:
        return (state.instance_id,)
    if state.screen is not Screen.EC2:
        return ()
    if state.selected_ids:
        return tuple(sorted(state.selected_ids))
    item = _selected(state)
    return (item.instance_id,) if isinstance(item, Instance) else ()


def _instance_action(state: AppState, action: Action) -> Outcome:
    verb = str(action.arg)
    if verb not in INSTANCE_VERBS:
        return state, []
    targets = _instance_targets(state)
    if not targets:
        return state, []
    label = targets[0] if len(targets) == 1 else f"{len(targets)} instances"
    confirm = PendingConfirm(
        action=f"instance:{verb}",
        targets=targets,
        prompt=f"{verb.capitalize()} {label}? (y/n)",
        options={"bulk": "1" if state.screen is Screen.EC2 and state.selected_ids else ""},
    )
    return replace(state, confirm=confirm), []


def _current_object(state: AppState) -> S3Object | None:
    if state.screen is Screen.S3_OBJECT and state.object_key:
        return S3Object(key=state.object_key)
    if state.screen is Screen.S3_BROWSE:
        item = _selected(state)
        if isinstance(item, S3Object) and not item.is_folder:
            return item
    return None


def _start_session(state: AppState, _action: Action) -> Outcome:
    if state.screen is not Screen.EC2_DETAIL or not state.instance_id:
        return state, []
    ssm = state.details.instance.get("ssm") or {}
    if not ssm.get("connected"):
        return set_status(state, "SSM agent is not connected on this instance"), []
    request = HandoffRequest(kind=HandoffKind.SSM_SESSION, target=state.instance_id, region=state.region)
    return replace(state, exit=ExitRequest(ExitReason.HANDOFF, request)), []


def _current_cluster(state: AppState) -> str:
    if state.screen is Screen.EKS_DETAIL:
        return state.cluster
    if state.screen is Screen.EKS:
        item = _selected(state)
        if isinstance(item, Cluster):
            return item.name
    return ""


def _update_kubeconfig(state: AppState, _action: Action) -> Outcome:
    cluster = _current_cluster(state)
    if not cluster:
        return state, []
    state = set_status(state, f"Updating kubeconfig for {cluster}...")
    return issue(state, tasks.update_kubeconfig(state, cluster))


def _launch_dashboard(state: AppState, _action: Action) -> Outcome:
    cluster = _current_cluster(state)
    if not cluster:
        return state, []
    request = HandoffRequest(kind=HandoffKind.K9S, target=cluster, region=state.region, cluster=cluster)
    return replace(state, exit=ExitRequest(ExitReason.HANDOFF, request)), []


def _edit_object(state: AppState, _action: Action) -> Outcome:
    obj = _current_object(state)
    if obj is None:
        return state, []
    request = HandoffRequest(
        kind=HandoffKind.EDIT_OBJECT,
        target=obj.key,
        region=state.region,
        bucket=state.bucket,
    )
    return replace(state, exit=ExitRequest(ExitReason.HANDOFF, request)), []


def _download_object(state: AppState, _action: Action) -> Outcome:
    obj = _current_object(state)
    if obj is None:
        return state, []
    destination = posixpath.basename(obj.key) or "download"
    state = set_status(state, f"Downloading {obj.key}...")
    return issue(state, tasks.download_object(state, obj.key, destination))


def _delete_resource(state: AppState, _action: Action) -> Outcome:
    obj = _current_object(state)
    if obj is not None:
        name = posixpath.basename(obj.key)
        confirm = PendingConfirm(
            action="delete-object",
            targets=(obj.key,),
            prompt=f"Type '{name}' to delete s3://{state.bucket}/{obj.key}:",
            expected_text=name,
        )
        return replace(state, confirm=confirm), []
    if state.screen is Screen.S3:
        item = _selected(state)
        if isinstance(item, Bucket):
            confirm = PendingConfirm(
                action="delete-bucket",
                targets=(item.name,),
                prompt=f"Type '{item.name}' to delete bucket:",
                expected_text=item.name,
            )
            return replace(state, confirm=confirm), []
    return state, []


def _show_policy_or_url(state: AppState, _action: Action) -> Outcome:
    if state.screen is Screen.S3:
        item = _selected(state)
        if not isinstance(item, Bucket):
            return state, []
        task = tasks.load_info(state, "bucket-policy", item.name, f"Bucket policy: {item.name}", json_body=True)
        return issue(set_status(state, "Loading bucket policy..."), task)
    obj = _current_object(state)
    if obj is None:
        return state, []
    task = tasks.load_info(state, "presigned-url", obj.key, f"Presigned URL: {obj.key}", bucket=state.bucket)
    return issue(set_status(state, "Generating presigned URL..."), task)


def _show_versioning(state: AppState, _action: Action) -> Outcome:
    bucket = state.bucket
    if state.screen is Screen.S3:
        item = _selected(state)
        bucket = item.name if isinstance(item, Bucket) else ""
    elif state.screen not in (Screen.S3_BROWSE, Screen.S3_OBJECT):
        return state, []
    if not bucket:
        return state, []
    task = tasks.load_info(state, "bucket-versioning", bucket, f"Versioning: {bucket}")
    return issue(set_status(state, "Loading versioning..."), task)


def _parent_prefix(state: AppState, _action: Action) -> Outcome:
    if state.screen is not Screen.S3_BROWSE:
        return state, []
    if state.prefix:
        return browse_prefix(state, parent_prefix(state.prefix))
    return leave_browser(state), []


def _show_help(state: AppState, _action: Action) -> Outcome:
    return show_help(state), []


def _confirm(state: AppState, _action: Action) -> Outcome:
    pending = state.confirm
    if pending is None:
        return state, []
    state = replace(state, confirm=None)
    if pending.expected_text is not None and pending.typed != pending.expected_text:
        return set_status(state, "Name doesn't match - delete cancelled"), []
    if pending.action.startswith("instance:"):
        verb = pending.action.split(":", 1)[1]
        bulk = bool(pending.options.get("bulk"))
        state = set_status(state, f"{verb.capitalize()} requested for {len(pending.targets)} instance(s)...")
        return issue(state, tasks.instance_action(state, verb, pending.targets, bulk=bulk))
    if pending.action == "delete-object":
        key = pending.targets[0]
        state = set_status(state, f"Deleting {key}...")
        return issue(state, tasks.delete_resource(state, "object", key, bucket=state.bucket))
    if pending.action == "delete-bucket":
        name = pending.targets[0]
        state = set_status(state, f"Deleting bucket {name}...")
        return issue(state, tasks.delete_resource(state, "bucket", name))
    return state, []


def _cancel_confirm(state: AppState, _action: Action) -> Outcome:
    if state.confirm is None:
        return state, []
    return set_status(replace(state, confirm=None), "Cancelled"), []


_ACTION_HANDLERS: dict[ActionKind, Callable[[AppState, Action], Outcome]] = {
    ActionKind.NAVIGATE: _navigate,
    ActionKind.ACTIVATE: _activate,
    ActionKind.BACK: _back,
    ActionKind.QUIT: _quit,
    ActionKind.NEXT_MATCH: _next_match,
    ActionKind.PREV_MATCH: _next_match,
    ActionKind.EXECUTE_COMMAND: _execute,
    ActionKind.REFRESH: _refresh,
    ActionKind.CYCLE_SERVICE: _cycle_service,
    ActionKind.CYCLE_REGION: _cycle_region,
    ActionKind.TOGGLE_SELECT: _toggle_select,
    ActionKind.CLEAR_SELECTION: _clear_selection,
    ActionKind.TOGGLE_AUTO_REFRESH: _toggle_auto_refresh,
    ActionKind.INSTANCE_ACTION: _instance_action,
    ActionKind.START_SESSION: _start_session,
    ActionKind.UPDATE_KUBECONFIG: _update_kubeconfig,
    ActionKind.LAUNCH_DASHBOARD: _launch_dashboard,
    ActionKind.EDIT_OBJECT: _edit_object,
    ActionKind.DOWNLOAD_OBJECT: _download_object,
    ActionKind.DELETE_RESOURCE: _delete_resource,
    ActionKind.SHOW_POLICY_OR_URL: _show_policy_or_url,
    ActionKind.SHOW_VERSIONING: _show_versioning,
    ActionKind.PARENT_PREFIX: _parent_prefix,
    ActionKind.SHOW_HELP: _show_help,
    ActionKind.CONFIRM: _confirm,
    ActionKind.CANCEL_CONFIRM: _cancel_confirm,
    ActionKind.SUBMIT_PROMPT: _submit_prompt,
}
