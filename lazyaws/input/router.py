"""Modal key routing.

Each key token is handled by exactly one of: a pending confirmation, a text
prompt screen, search mode, command mode, or the normal-mode key table.
Text editing is handled here directly; everything else becomes an
``Action`` for the core.
"""

from __future__ import annotations

from dataclasses import replace

from ..commands import command_suggestions, complete_command
from ..core.events import Action, ActionKind
from ..navigation import NavAction
from ..search import cancel_search, commit_search, edit_query, enter_search
from ..state import PROMPT_SCREENS, AppState, InputMode, PendingConfirm
from .key_registry import KeyComboBinding, KeyComboRegistry

RouteResult = tuple[AppState, Action | None]


def _bind(combos: tuple[str, ...], kind: ActionKind, arg: object = None) -> KeyComboBinding:
    return KeyComboBinding(combos, lambda: Action(kind, arg))


NORMAL_KEYS = KeyComboRegistry().register_bindings(
    _bind(("k", "UP"), ActionKind.NAVIGATE, NavAction.UP),
    _bind(("j", "DOWN"), ActionKind.NAVIGATE, NavAction.DOWN),
    _bind(("g", "HOME"), ActionKind.NAVIGATE, NavAction.TOP),
    _bind(("G", "CTRL_G", "END"), ActionKind.NAVIGATE, NavAction.BOTTOM),
    _bind(("CTRL_U",), ActionKind.NAVIGATE, NavAction.HALF_PAGE_UP),
    _bind(("CTRL_D",), ActionKind.NAVIGATE, NavAction.HALF_PAGE_DOWN),
    _bind(("CTRL_B", "PAGE_UP"), ActionKind.NAVIGATE, NavAction.PAGE_UP),
    _bind(("CTRL_F", "PAGE_DOWN"), ActionKind.NAVIGATE, NavAction.PAGE_DOWN),
    _bind(("ENTER",), ActionKind.ACTIVATE),
    _bind(("ESC",), ActionKind.BACK),
    _bind(("q",), ActionKind.QUIT),
    _bind(("CTRL_C",), ActionKind.QUIT, "force"),
    _bind(("n",), ActionKind.NEXT_MATCH),
    _bind(("N",), ActionKind.PREV_MATCH),
    _bind(("r",), ActionKind.REFRESH),
    _bind(("TAB",), ActionKind.CYCLE_SERVICE),
    _bind(("c",), ActionKind.CYCLE_REGION),
    _bind((" ",), ActionKind.TOGGLE_SELECT),
    _bind(("x",), ActionKind.CLEAR_SELECTION),
    _bind(("a",), ActionKind.TOGGLE_AUTO_REFRESH),
    _bind(("s",), ActionKind.INSTANCE_ACTION, "start"),
    _bind(("S",), ActionKind.INSTANCE_ACTION, "stop"),
    _bind(("R",), ActionKind.INSTANCE_ACTION, "reboot"),
    _bind(("t",), ActionKind.INSTANCE_ACTION, "terminate"),
    _bind(("C",), ActionKind.START_SESSION),
    _bind(("K",), ActionKind.UPDATE_KUBECONFIG),
    _bind(("9",), ActionKind.LAUNCH_DASHBOARD),
    _bind(("e",), ActionKind.EDIT_OBJECT),
    _bind(("d",), ActionKind.DOWNLOAD_OBJECT),
    _bind(("D",), ActionKind.DELETE_RESOURCE),
    _bind(("p",), ActionKind.SHOW_POLICY_OR_URL),
    _bind(("v",), ActionKind.SHOW_VERSIONING),
    _bind(("h", "BACKSPACE", "LEFT"), ActionKind.PARENT_PREFIX),
    _bind(("?",), ActionKind.SHOW_HELP),
)


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


def route_key(state: AppState, key: str) -> RouteResult:
    """Route one key token; returns the new state and an optional action."""
    if not key:
        return state, None
    if state.confirm is not None:
        return _route_confirm(state, state.confirm, key)
    if state.screen in PROMPT_SCREENS:
        return _route_prompt(state, key)
    if state.mode is InputMode.SEARCH:
        return _route_search(state, key), None
    if state.mode is InputMode.COMMAND:
        return _route_command(state, key)
    return _route_normal(state, key)


def _route_normal(state: AppState, key: str) -> RouteResult:
    if key == "/":
        return enter_search(state), None
    if key == ":":
        return replace(state, mode=InputMode.COMMAND, command_buffer="", command_hints=()), None
    return state, NORMAL_KEYS.dispatch(key)


def _route_search(state: AppState, key: str) -> AppState:
    query = state.search.query
    if key == "ESC":
        return cancel_search(state)
    if key == "ENTER":
        return commit_search(state)
    if key == "BACKSPACE":
        return edit_query(state, query[:-1]) if query else state
    if key == "CTRL_U":
        return edit_query(state, "")
    if is_printable(key):
        return edit_query(state, query + key)
    return state


def _route_command(state: AppState, key: str) -> RouteResult:
    buffer = state.command_buffer
    if key == "ESC":
        return replace(state, mode=InputMode.NORMAL, command_buffer="", command_hints=()), None
    if key == "ENTER":
        state = replace(state, mode=InputMode.NORMAL, command_buffer="", command_hints=())
        if not buffer.strip():
            return state, None
        return state, Action(ActionKind.EXECUTE_COMMAND, buffer)
    if key == "TAB":
        return _complete(state), None
    if key == "BACKSPACE":
        buffer = buffer[:-1]
    elif key == "CTRL_U":
        buffer = ""
    elif is_printable(key):
        buffer += key
    else:
        return state, None
    hints = tuple(command_suggestions(buffer)) if " " not in buffer else ()
    return replace(state, command_buffer=buffer, command_hints=hints), None


def _complete(state: AppState) -> AppState:
    buffer = state.command_buffer
    if not buffer or " " in buffer:
        return state
    text, unique = complete_command(buffer)
    if unique:
        return replace(state, command_buffer=text, command_hints=())
    return replace(state, command_buffer=text, command_hints=tuple(command_suggestions(text)))


def _route_confirm(state: AppState, pending: PendingConfirm, key: str) -> RouteResult:
    if pending.expected_text is None:
        if key in ("y", "Y"):
            return state, Action(ActionKind.CONFIRM)
        if key in ("n", "N", "ESC", "q"):
            return state, Action(ActionKind.CANCEL_CONFIRM)
        return state, None
    if key == "ESC":
        return state, Action(ActionKind.CANCEL_CONFIRM)
    if key == "ENTER":
        return state, Action(ActionKind.CONFIRM)
    typed = pending.typed
    if key == "BACKSPACE":
        typed = typed[:-1]
    elif is_printable(key):
        typed += key
    else:
        return state, None
    return replace(state, confirm=replace(pending, typed=typed)), None


def _route_prompt(state: AppState, key: str) -> RouteResult:
    buffer = state.prompt_buffer
    if key == "ENTER":
        return state, Action(ActionKind.SUBMIT_PROMPT)
    if key == "ESC":
        return state, Action(ActionKind.BACK)
    if key == "CTRL_C":
        return state, Action(ActionKind.QUIT, "force")
    if key == "BACKSPACE":
        buffer = buffer[:-1]
    elif key == "CTRL_U":
        buffer = ""
    elif is_printable(key):
        buffer += key
    else:
        return state, None
    return replace(state, prompt_buffer=buffer), None
