"""Execution of parsed ``:`` commands against the application state."""

from __future__ import annotations

import os
import posixpath
from collections.abc import Callable
from dataclasses import replace

from ..commands import Command, CommandVerb
from ..providers.base import Instance
from ..search import clear_search
from ..state import AppState, ExitReason, ExitRequest, Screen
from . import tasks
from .transitions import (
    Outcome,
    change_region,
    issue,
    open_accounts,
    open_regions,
    open_service,
    refresh,
    set_status,
    show_help,
    step_back,
)


def execute_command(state: AppState, command: Command) -> Outcome:
    """Run ``command``; unknown verbs only report themselves in the status line."""
    if command.is_empty:
        return state, []
    verb = command.verb
    if verb is None:
        return set_status(state, f"Unknown command: {command.name}"), []
    return _COMMANDS[verb](state, command)


def _back(state: AppState, _command: Command) -> Outcome:
    return step_back(state, quit_at_top=True)


def _quit(state: AppState, _command: Command) -> Outcome:
    return replace(state, exit=ExitRequest(ExitReason.QUIT)), []


def _refresh(state: AppState, _command: Command) -> Outcome:
    return refresh(state)


def _help(state: AppState, _command: Command) -> Outcome:
    return show_help(state), []


def _clear_filter(state: AppState, _command: Command) -> Outcome:
    return set_status(clear_search(state), "Filter cleared"), []


def _select_all(state: AppState, _command: Command) -> Outcome:
    list_state = state.active_list()
    if state.screen is not Screen.EC2 or list_state is None:
        return set_status(state, "Select all is only available on the EC2 list"), []
    ids = frozenset(item.instance_id for item in list_state.active() if isinstance(item, Instance))
    return set_status(replace(state, selected_ids=ids), f"Selected {len(ids)} instances"), []


def _deselect_all(state: AppState, _command: Command) -> Outcome:
    return set_status(replace(state, selected_ids=frozenset()), "Selection cleared"), []


def _service(screen: Screen) -> Callable[[AppState, Command], Outcome]:
    def run(state: AppState, _command: Command) -> Outcome:
        return open_service(state, screen)

    return run


def _account(state: AppState, _command: Command) -> Outcome:
    return open_accounts(state)


def _region(state: AppState, command: Command) -> Outcome:
    if command.args:
        region = command.args[0]
        if state.regions and region not in state.regions:
            return set_status(state, f"Unknown region: {region}"), []
        return change_region(state, region)
    return open_regions(state), []


def _upload(state: AppState, command: Command) -> Outcome:
    if state.screen is not Screen.S3_BROWSE:
        return set_status(state, "Upload is only available while browsing a bucket"), []
    if not command.args:
        return set_status(state, "Usage: upload LOCAL_PATH [KEY]"), []
    source = os.path.expanduser(command.args[0])
    key = command.args[1] if len(command.args) > 1 else state.prefix + posixpath.basename(source)
    state = set_status(state, f"Uploading {source}...")
    return issue(state, tasks.upload_object(state, source, key))


_COMMANDS: dict[CommandVerb, Callable[[AppState, Command], Outcome]] = {
    CommandVerb.BACK: _back,
    CommandVerb.QUIT: _quit,
    CommandVerb.REFRESH: _refresh,
    CommandVerb.HELP: _help,
    CommandVerb.CLEAR_FILTER: _clear_filter,
    CommandVerb.SELECT_ALL: _select_all,
    CommandVerb.DESELECT_ALL: _deselect_all,
    CommandVerb.EC2: _service(Screen.EC2),
    CommandVerb.S3: _service(Screen.S3),
    CommandVerb.EKS: _service(Screen.EKS),
    CommandVerb.ACCOUNT: _account,
    CommandVerb.REGION: _region,
    CommandVerb.UPLOAD: _upload,
}
