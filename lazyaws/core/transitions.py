"""State transitions shared by action handling, commands and completion folding."""

from __future__ import annotations

import posixpath
from dataclasses import replace
from typing import Optional

from ..search import clear_search
from ..state import (
    SCREEN_FAMILY,
    AppState,
    DetailState,
    ExitReason,
    ExitRequest,
    InputMode,
    ListKind,
    ListState,
    Screen,
)
from ..viewport import follow_selection
from . import tasks
from .tasks import AnyTask

Outcome = tuple[AppState, list[AnyTask]]

RESOURCE_LISTS = (ListKind.INSTANCES, ListKind.BUCKETS, ListKind.OBJECTS, ListKind.CLUSTERS)
_FAMILY_LIST_SCREEN = {"ec2": Screen.EC2, "s3": Screen.S3, "eks": Screen.EKS}
_DETAIL_PARENT = {
    Screen.EC2_DETAIL: Screen.EC2,
    Screen.EKS_DETAIL: Screen.EKS,
    Screen.S3_OBJECT: Screen.S3_BROWSE,
}


def issue(state: AppState, *pending: Optional[AnyTask]) -> Outcome:
    """Return ``state`` with the loading counter raised for each issued task."""
    issued = [task for task in pending if task is not None]
    loading = sum(1 for task in issued if task.tracks_loading)
    if loading:
        state = replace(state, in_flight=state.in_flight + loading)
    return state, issued


def set_status(state: AppState, message: str) -> AppState:
    return replace(state, status=message)


def set_error(state: AppState, error: str) -> AppState:
    return replace(state, last_error=error, status=f"Error: {error}")


def clear_overlay(state: AppState) -> AppState:
    details = replace(state.details, info_title="", info_text="", info_is_json=False)
    return follow_selection(replace(state, details=details, viewport=replace(state.viewport, offset=0)))


def switch_screen(
    state: AppState,
    screen: Screen,
    *,
    keep_search: bool = False,
    remember_previous: bool = False,
) -> AppState:
    """Replace the active screen, resetting per-screen transient state."""
    if not keep_search:
        state = clear_search(state)
    previous = state.screen if remember_previous else state.previous_screen
    state = replace(
        state,
        screen=screen,
        previous_screen=previous,
        mode=InputMode.NORMAL,
        command_buffer="",
        command_hints=(),
        selected_ids=frozenset() if screen is not state.screen else state.selected_ids,
        confirm=None,
        details=replace(state.details, info_title="", info_text="", info_is_json=False),
        viewport=replace(state.viewport, offset=0),
    )
    return follow_selection(state)


def reset_resource_lists(state: AppState) -> AppState:
    lists = dict(state.lists)
    for kind in RESOURCE_LISTS:
        lists[kind] = ListState()
    return replace(state, lists=lists, details=DetailState())


def service_screen(state: AppState) -> Screen | None:
    """List screen of the service the user is looking at, if any."""
    return _FAMILY_LIST_SCREEN.get(state.family)


def open_service(state: AppState, screen: Screen) -> Outcome:
    """Switch to an EC2/S3/EKS list screen and load its contents."""
    state = switch_screen(state, screen)
    state = replace(state, bucket="", prefix="", object_key="", cluster="", instance_id="")
    kind = state.list_kind
    if kind is None:
        return state, []
    return issue(set_status(state, f"Loading {screen.value.upper()}..."), tasks.load_list(state, kind))


def show_help(state: AppState) -> AppState:
    if state.screen is Screen.HELP:
        return go_back_from_help(state)
    return switch_screen(state, Screen.HELP, keep_search=True, remember_previous=True)


def go_back_from_help(state: AppState) -> AppState:
    target = state.previous_screen or Screen.EC2
    return switch_screen(replace(state, previous_screen=None), target, keep_search=True)


def parent_prefix(prefix: str) -> str:
    """``a/b/c/`` -> ``a/b/``; top-level prefixes map to ``""``."""
    trimmed = prefix.rstrip("/")
    if "/" not in trimmed:
        return ""
    return posixpath.dirname(trimmed) + "/"


def browse_prefix(state: AppState, prefix: str) -> Outcome:
    state = clear_search(state)
    state = replace(state, prefix=prefix, viewport=replace(state.viewport, offset=0))
    state = state.with_list(ListKind.OBJECTS, ListState())
    return issue(set_status(state, f"Loading s3://{state.bucket}/{prefix}"), tasks.load_list(state, ListKind.OBJECTS))


def leave_browser(state: AppState) -> AppState:
    state = switch_screen(state, Screen.S3)
    return replace(state, bucket="", prefix="", object_key="")


def step_back(state: AppState, *, quit_at_top: bool) -> Outcome:
    """Go back one level; at a top-level screen optionally request exit."""
    if state.details.info_text:
        return clear_overlay(state), []
    screen = state.screen
    if screen is Screen.HELP:
        return go_back_from_help(state), []
    if screen is Screen.REGIONS:
        target = state.previous_screen or Screen.EC2
        state = switch_screen(replace(state, previous_screen=None), target)
        return set_status(state, "Region selection cancelled"), []
    if screen in _DETAIL_PARENT:
        target = _DETAIL_PARENT[screen]
        state = switch_screen(state, target, keep_search=True)
        if target is Screen.S3_BROWSE:
            return replace(state, object_key=""), []
        return replace(state, instance_id="", cluster=""), []
    if screen is Screen.S3_BROWSE:
        if state.prefix and not quit_at_top:
            return browse_prefix(state, parent_prefix(state.prefix))
        return leave_browser(state), []
    if screen in (Screen.AUTH_PROFILE, Screen.SSO_CONFIG):
        return switch_screen(replace(state, prompt_buffer=""), Screen.AUTH_METHOD), []
    if screen is Screen.ACCOUNTS and state.account is not None and state.previous_screen is not None:
        return switch_screen(replace(state, previous_screen=None), state.previous_screen), []
    if quit_at_top:
        return replace(state, exit=ExitRequest(ExitReason.QUIT)), []
    return state, []


def refresh(state: AppState) -> Outcome:
    """Re-issue the load for whatever is on screen."""
    screen = state.screen
    if screen is Screen.EC2_DETAIL and state.instance_id:
        return issue(set_status(state, "Refreshing..."), tasks.load_instance_details(state, state.instance_id))
    if screen is Screen.EKS_DETAIL and state.cluster:
        return issue(set_status(state, "Refreshing..."), tasks.load_cluster_details(state, state.cluster))
    if screen is Screen.S3_OBJECT and state.object_key:
        return issue(set_status(state, "Refreshing..."), tasks.load_object_details(state, state.object_key))
    kind = state.list_kind
    if kind is None:
        return state, []
    task = tasks.load_list(state, kind)
    if task is None:
        return state, []
    return issue(set_status(state, "Refreshing..."), task)


def change_region(state: AppState, region: str) -> Outcome:
    """Switch region, drop data from the old region and reload the service list."""
    target = service_screen(state)
    if state.screen is Screen.REGIONS:
        previous = state.previous_screen
        target = _FAMILY_LIST_SCREEN.get(SCREEN_FAMILY.get(previous, ""), Screen.EC2) if previous else Screen.EC2
        state = replace(state, previous_screen=None)
    state = reset_resource_lists(replace(state, region=region))
    if target is None:
        return set_status(state, f"Region changed to {region}"), []
    state, issued = open_service(state, target)
    return set_status(state, f"Region changed to {region}"), issued


def open_regions(state: AppState) -> AppState:
    if not state.regions:
        return set_status(state, "No regions configured")
    regions = tuple(state.regions)
    selected = regions.index(state.region) if state.region in regions else 0
    state = state.with_list(ListKind.REGIONS, ListState(items=regions).with_selection(selected))
    return switch_screen(state, Screen.REGIONS, remember_previous=True)


def open_accounts(state: AppState) -> Outcome:
    if state.auth is None or state.auth.method != "sso":
        return set_status(state, "Account switching only available with SSO authentication"), []
    previous = state.screen if state.screen is not Screen.ACCOUNTS else state.previous_screen
    state = replace(switch_screen(state, Screen.ACCOUNTS), previous_screen=previous)
    if state.sso_session is None:
        return issue(set_status(state, "Authenticating with SSO..."), tasks.authenticate(state))
    return issue(set_status(state, "Loading accounts..."), tasks.load_accounts(state))
