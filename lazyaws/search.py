"""Incremental list search and filtering.

``search`` and ``apply_filter`` are pure helpers over plain sequences. The
remaining functions move an ``AppState`` through the search-mode lifecycle:
enter, edit as-you-type, commit, cancel, clear and cycle matches.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

from .providers.base import Account, Bucket, Cluster, Instance, S3Object
from .state import AppState, InputMode, ListKind, ListState, SearchSnapshot, SearchState
from .viewport import follow_selection


def search(query: str, items: Sequence[Any], key_fn: Callable[[Any], str]) -> tuple[int, ...]:
    """Return indices of ``items`` whose key contains ``query``, case-insensitively."""
    needle = query.casefold()
    return tuple(idx for idx, item in enumerate(items) if needle in key_fn(item).casefold())


def apply_filter(items: Sequence[Any], matches: Sequence[int]) -> tuple:
    return tuple(items[idx] for idx in matches)


def search_key(kind: ListKind, item: Any) -> str:
    """Composite, case-folded search key for one row of ``kind``."""
    if isinstance(item, str):
        parts: tuple[str, ...] = (item,)
    elif kind is ListKind.ACCOUNTS and isinstance(item, Account):
        parts = (item.account_id, item.account_name, item.role_name, item.email)
    elif kind is ListKind.INSTANCES and isinstance(item, Instance):
        parts = (
            item.instance_id,
            item.name,
            item.state,
            item.instance_type,
            item.public_ip,
            item.private_ip,
        )
    elif kind is ListKind.BUCKETS and isinstance(item, Bucket):
        parts = (item.name, item.region)
    elif kind is ListKind.OBJECTS and isinstance(item, S3Object):
        parts = (item.key,)
    elif kind is ListKind.CLUSTERS and isinstance(item, Cluster):
        parts = (item.name, item.version, item.status, item.region)
    else:
        parts = (str(item),)
    return " ".join(part for part in parts if part).casefold()


def key_fn_for(kind: ListKind) -> Callable[[Any], str]:
    return lambda item: search_key(kind, item)


def filter_list(kind: ListKind, list_state: ListState, query: str) -> tuple[ListState, tuple[int, ...]]:
    """Rebuild the filtered view of ``list_state`` for ``query``.

    An empty query removes the filtered view entirely.
    """
    if not query:
        return replace(list_state, filtered=None).with_selection(list_state.selected), ()
    matches = search(query, list_state.items, key_fn_for(kind))
    filtered = replace(list_state, filtered=apply_filter(list_state.items, matches))
    return filtered.with_selection(0), matches


def reapply_filter(state: AppState, kind: ListKind, list_state: ListState) -> AppState:
    """Store freshly loaded ``list_state``, keeping the active filter applied.

    While search mode is open the live query wins over the committed one;
    ``cancel_search`` rebuilds the committed view from current items.
    """
    query = state.search.query if state.mode is InputMode.SEARCH else state.search.last_applied
    if not query or kind is not state.list_kind:
        return state.with_list(kind, replace(list_state, filtered=None).with_selection(list_state.selected))
    filtered, matches = filter_list(kind, list_state, query)
    position = min(state.search.position, max(0, len(matches) - 1))
    filtered = filtered.with_selection(position)
    return replace(
        state.with_list(kind, filtered),
        search=replace(state.search, matches=matches, position=position),
    )


def enter_search(state: AppState) -> AppState:
    """Switch to search mode with an empty query and the full list visible."""
    kind = state.list_kind
    list_state = state.active_list()
    snapshot = SearchSnapshot(
        last_applied=state.search.last_applied,
        matches=state.search.matches,
        position=state.search.position,
        filtered=list_state.filtered if list_state is not None else None,
        selected=list_state.selected if list_state is not None else 0,
    )
    new_state = replace(
        state,
        mode=InputMode.SEARCH,
        search=SearchState(last_applied=state.search.last_applied, snapshot=snapshot),
    )
    if kind is None or list_state is None:
        return new_state
    selected = list_state.selected
    if list_state.filtered is not None and state.search.matches:
        selected = state.search.matches[min(selected, len(state.search.matches) - 1)]
    unfiltered = replace(list_state, filtered=None).with_selection(selected)
    return follow_selection(new_state.with_list(kind, unfiltered))


def edit_query(state: AppState, query: str) -> AppState:
    """Re-run the search from scratch for the edited ``query``."""
    kind = state.list_kind
    list_state = state.active_list()
    if kind is None or list_state is None:
        return replace(state, search=replace(state.search, query=query))
    filtered, matches = filter_list(kind, list_state, query)
    if not query:
        filtered = filtered.with_selection(0)
    new_state = replace(
        state.with_list(kind, filtered),
        search=replace(state.search, query=query, matches=matches, position=0),
        viewport=replace(state.viewport, offset=0),
    )
    return new_state


def commit_search(state: AppState) -> AppState:
    """Enter: keep the filtered view and remember the query for ``n``/``N``."""
    query = state.search.query
    new_state = replace(
        state,
        mode=InputMode.NORMAL,
        search=replace(state.search, last_applied=query, position=0, snapshot=None),
    )
    if not query:
        return clear_search(new_state)
    return new_state


def cancel_search(state: AppState) -> AppState:
    """Escape: drop the edited query and restore the view from before ``/``."""
    snapshot = state.search.snapshot or SearchSnapshot()
    new_state = replace(
        state,
        mode=InputMode.NORMAL,
        search=SearchState(
            last_applied=snapshot.last_applied,
            matches=snapshot.matches,
            position=snapshot.position,
        ),
    )
    kind = state.list_kind
    list_state = state.active_list()
    if kind is None or list_state is None:
        return new_state
    if snapshot.filtered is not None and snapshot.last_applied:
        # Rebuild from current items so a refresh during search is honoured.
        restored, matches = filter_list(kind, list_state, snapshot.last_applied)
        restored = restored.with_selection(snapshot.selected)
        new_state = replace(new_state, search=replace(new_state.search, matches=matches))
    else:
        restored = replace(list_state, filtered=None).with_selection(snapshot.selected)
    return follow_selection(new_state.with_list(kind, restored))


def clear_search(state: AppState) -> AppState:
    """Forget any query and filtered view on the current list."""
    new_state = replace(state, search=SearchState())
    kind = state.list_kind
    list_state = state.active_list()
    if kind is None or list_state is None:
        return new_state
    selected = 0
    if list_state.filtered is not None and state.search.matches and list_state.filtered:
        selected = state.search.matches[min(list_state.selected, len(state.search.matches) - 1)]
    elif list_state.filtered is None:
        selected = list_state.selected
    cleared = replace(list_state, filtered=None).with_selection(selected)
    return follow_selection(new_state.with_list(kind, cleared))


def cycle_match(state: AppState, direction: int) -> AppState | None:
    """Move to the next (``1``) or previous (``-1``) match, wrapping around.

    Returns ``None`` when no committed query or no matches exist.
    """
    matches = state.search.matches
    if not state.search.last_applied or not matches:
        return None
    kind = state.list_kind
    list_state = state.active_list()
    if kind is None or list_state is None:
        return None
    position = (state.search.position + direction) % len(matches)
    if list_state.filtered is not None:
        target = position
    else:
        target = matches[position]
    moved = list_state.with_selection(target)
    new_state = replace(state.with_list(kind, moved), search=replace(state.search, position=position))
    return follow_selection(new_state)
