"""Viewport math for list screens."""

from __future__ import annotations

from dataclasses import replace

from .state import AppState

# Header, breadcrumb, column header, input line and status line.
CHROME_ROWS = 5


def ensure_visible(selected: int, length: int, visible_height: int, offset: int) -> int:
    """Scroll the minimal amount that brings ``selected`` on screen.

    The returned offset is clamped to ``[0, max(0, length - visible_height)]``.
    """
    height = max(1, visible_height)
    max_offset = max(0, length - height)
    if length <= 0:
        return 0
    if selected < offset:
        offset = selected
    elif selected >= offset + height:
        offset = selected - height + 1
    return max(0, min(offset, max_offset))


def visible_range(offset: int, length: int, visible_height: int) -> tuple[int, int]:
    """Return the half-open ``(start, end)`` slice of rows currently shown."""
    start = max(0, min(offset, max(0, length - 1)))
    end = min(length, start + max(1, visible_height))
    return start, end


def content_rows(terminal_lines: int) -> int:
    """Rows available for list/document content at a given terminal height."""
    return max(1, terminal_lines - CHROME_ROWS)


def follow_selection(state: AppState) -> AppState:
    """Return ``state`` with the list viewport scrolled to the selection."""
    list_state = state.active_list()
    if list_state is None:
        return state
    offset = ensure_visible(
        list_state.selected,
        len(list_state.active()),
        state.viewport.height,
        state.viewport.offset,
    )
    if offset == state.viewport.offset:
        return state
    return replace(state, viewport=replace(state.viewport, offset=offset))
