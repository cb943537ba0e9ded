"""Full-frame ANSI painter.

``render_lines`` is a pure function of state and terminal size; ``paint``
writes its output in one ``os.write`` so frames never tear.
"""

from __future__ import annotations

from .ansi import clip_ansi_line, fit_ansi_line
from .state import DOCUMENT_SCREENS, PROMPT_SCREENS, AppState, InputMode, ListKind, Screen
from .viewport import CHROME_ROWS, visible_range
from .views import COLUMN_HEADERS, breadcrumb, document_lines, row_text

RESET = "\033[0m"
REVERSE = "\033[7m"
HEADER_STYLE = "\033[1;38;5;81m"
KEY_STYLE = "\033[38;5;229m"
DIM_STYLE = "\033[2;38;5;250m"
ERROR_STYLE = "\033[38;5;203m"
SPINNER_FRAMES: tuple[str, ...] = ("|", "/", "-", "\\")

SERVICE_LABELS = {"ec2": "EC2", "s3": "S3", "eks": "EKS", "accounts": "Accounts", "regions": "Regions", "auth": "Login"}

PROMPT_HINTS = {
    Screen.AUTH_PROFILE: ("Enter the AWS profile name to use (from ~/.aws/config).", "Profile: "),
    Screen.SSO_CONFIG: ("Enter your IAM Identity Center start URL (https://...).", "SSO start URL: "),
}


def selected_with_ansi(text: str) -> str:
    """Reverse-video a row while keeping any colours inside it."""
    if not text:
        return text
    return REVERSE + text.replace(RESET, RESET + REVERSE) + RESET


def highlight_json(text: str) -> list[str]:
    from pygments import highlight
    from pygments.formatters import TerminalFormatter
    from pygments.lexers import JsonLexer

    return highlight(text, JsonLexer(), TerminalFormatter()).splitlines()


def header_line(state: AppState, spinner_frame: int = 0) -> str:
    service = SERVICE_LABELS.get(state.family, state.family)
    parts = [f"{HEADER_STYLE}lazyaws{RESET}", f"{KEY_STYLE}{service}{RESET}"]
    if state.account is not None:
        account = state.account.account_name or state.account.account_id
        role = f"/{state.account.role_name}" if state.account.role_name else ""
        parts.append(f"{DIM_STYLE}account:{RESET} {account}{role}")
    elif state.auth is not None and state.auth.profile_name:
        parts.append(f"{DIM_STYLE}profile:{RESET} {state.auth.profile_name}")
    parts.append(f"{DIM_STYLE}region:{RESET} {state.region}")
    if state.auto_refresh:
        parts.append(f"{DIM_STYLE}auto-refresh{RESET}")
    if state.loading:
        parts.append(f"{KEY_STYLE}{SPINNER_FRAMES[spinner_frame % len(SPINNER_FRAMES)]} loading{RESET}")
    return "  ".join(parts)


def _list_rows(state: AppState, kind: ListKind, rows: int, width: int) -> list[str]:
    list_state = state.list_for(kind)
    items = list_state.active()
    if not items:
        message = "No matches" if list_state.filtered is not None else ("Loading..." if state.loading else "Nothing here")
        return [f"{DIM_STYLE}{message}{RESET}"]
    start, end = visible_range(state.viewport.offset, len(items), rows)
    out: list[str] = []
    for idx in range(start, end):
        item = items[idx]
        text = row_text(kind, item)
        if kind is ListKind.INSTANCES:
            marker = "* " if getattr(item, "instance_id", "") in state.selected_ids else "  "
            text = marker + text
        text = fit_ansi_line(text, width)
        out.append(selected_with_ansi(text) if idx == list_state.selected else text)
    return out


def _document_rows(state: AppState, rows: int) -> list[str]:
    details = state.details
    if details.info_text and details.info_is_json:
        lines = highlight_json(details.info_text)
    else:
        lines = document_lines(state)
        if state.screen is Screen.HELP and not details.info_text:
            lines = [line if line.startswith(" ") or not line else f"{HEADER_STYLE}{line}{RESET}" for line in lines]
    start, end = visible_range(state.viewport.offset, len(lines), rows)
    return lines[start:end]


def input_line(state: AppState) -> str:
    if state.confirm is not None:
        confirm = state.confirm
        if confirm.expected_text is not None:
            return f"{ERROR_STYLE}{confirm.prompt}{RESET} {confirm.typed}"
        return f"{ERROR_STYLE}{confirm.prompt}{RESET} [y/n]"
    if state.mode is InputMode.SEARCH:
        return f"/{state.search.query}"
    if state.mode is InputMode.COMMAND:
        hints = f"  {DIM_STYLE}{' '.join(state.command_hints)}{RESET}" if state.command_hints else ""
        return f":{state.command_buffer}{hints}"
    if state.screen in PROMPT_SCREENS:
        return f"{PROMPT_HINTS[state.screen][1]}{state.prompt_buffer}"
    if state.search.last_applied:
        return f"{DIM_STYLE}filter:{RESET} {state.search.last_applied}"
    return ""


def status_line(state: AppState, width: int) -> str:
    text = state.status or state.last_error
    right = "? Help"
    usable = max(1, width - 1)
    left = text[: max(0, usable - len(right) - 1)]
    return f"{left}{' ' * max(1, usable - len(left) - len(right))}{right}"


def render_lines(state: AppState, width: int, height: int, spinner_frame: int = 0) -> list[str]:
    """Every screen row for one frame, already clipped to ``width``."""
    rows = max(1, height - CHROME_ROWS)
    kind = state.list_kind
    title = breadcrumb(state)
    if state.details.info_title:
        title = state.details.info_title
    column = ""
    if state.details.info_text or state.screen in DOCUMENT_SCREENS:
        body = _document_rows(state, rows)
    elif state.screen in PROMPT_SCREENS:
        body = [PROMPT_HINTS[state.screen][0]]
    elif kind is not None:
        column = f"{DIM_STYLE}{COLUMN_HEADERS.get(kind, '')}{RESET}"
        body = _list_rows(state, kind, rows, max(1, width - 1))
    else:
        body = []
    body = body + [""] * (rows - len(body))

    lines = [header_line(state, spinner_frame), f"{KEY_STYLE}{title}{RESET}", column, *body, input_line(state)]
    lines = [clip_ansi_line(line, max(1, width - 1)) for line in lines]
    lines.append(f"{REVERSE}{status_line(state, width)}{RESET}")
    return lines


def paint(terminal, state: AppState, width: int, height: int, spinner_frame: int = 0) -> None:
    lines = render_lines(state, width, height, spinner_frame)
    out = ["\033[H\033[J"]
    for idx, line in enumerate(lines):
        out.append(line)
        if "\033" in line:
            out.append(RESET)
        if idx < len(lines) - 1:
            out.append("\r\n")
    terminal.write("".join(out))
