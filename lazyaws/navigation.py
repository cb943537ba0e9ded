"""Movement vocabulary shared by list screens and scrolling documents.

List screens translate actions into a new selection index. Detail screens
have no selection and translate the same actions into a viewport offset.
"""

from __future__ import annotations

from enum import Enum


class NavAction(Enum):
    UP = "up"
    DOWN = "down"
    TOP = "top"
    BOTTOM = "bottom"
    HALF_PAGE_UP = "half-page-up"
    HALF_PAGE_DOWN = "half-page-down"
    PAGE_UP = "page-up"
    PAGE_DOWN = "page-down"


def _delta(action: NavAction, page_size: int) -> int:
    page = max(1, page_size)
    half = max(1, page // 2)
    return {
        NavAction.UP: -1,
        NavAction.DOWN: 1,
        NavAction.HALF_PAGE_UP: -half,
        NavAction.HALF_PAGE_DOWN: half,
        NavAction.PAGE_UP: -page,
        NavAction.PAGE_DOWN: page,
    }.get(action, 0)


def next_index(action: NavAction, current: int, length: int, page_size: int) -> int:
    """Return the selection index after ``action``, clamped to the list bounds.

    Empty lists always yield ``0``. There is no wraparound.
    """
    if length <= 0:
        return 0
    last = length - 1
    if action is NavAction.TOP:
        return 0
    if action is NavAction.BOTTOM:
        return last
    target = current + _delta(action, page_size)
    return max(0, min(target, last))


def scroll_offset(
    action: NavAction,
    offset: int,
    page_size: int,
    content_length: int,
    visible_height: int,
) -> int:
    """Return a document scroll offset after ``action``.

    The result stays within ``[0, max(0, content_length - visible_height)]``.
    """
    max_offset = max(0, content_length - max(1, visible_height))
    if action is NavAction.TOP:
        return 0
    if action is NavAction.BOTTOM:
        return max_offset
    target = offset + _delta(action, page_size)
    return max(0, min(target, max_offset))
