"""Events folded by the core: semantic actions, timer ticks, resizes and completions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from ..state import AppState, Screen


class ActionKind(Enum):
    NAVIGATE = "navigate"
    ACTIVATE = "activate"
    BACK = "back"
    QUIT = "quit"
    NEXT_MATCH = "next-match"
    PREV_MATCH = "prev-match"
    EXECUTE_COMMAND = "execute-command"
    REFRESH = "refresh"
    CYCLE_SERVICE = "cycle-service"
    CYCLE_REGION = "cycle-region"
    TOGGLE_SELECT = "toggle-select"
    CLEAR_SELECTION = "clear-selection"
    TOGGLE_AUTO_REFRESH = "toggle-auto-refresh"
    INSTANCE_ACTION = "instance-action"
    START_SESSION = "start-session"
    UPDATE_KUBECONFIG = "update-kubeconfig"
    LAUNCH_DASHBOARD = "launch-dashboard"
    EDIT_OBJECT = "edit-object"
    DOWNLOAD_OBJECT = "download-object"
    DELETE_RESOURCE = "delete-resource"
    SHOW_POLICY_OR_URL = "show-policy-or-url"
    SHOW_VERSIONING = "show-versioning"
    PARENT_PREFIX = "parent-prefix"
    SHOW_HELP = "show-help"
    CONFIRM = "confirm"
    CANCEL_CONFIRM = "cancel-confirm"
    SUBMIT_PROMPT = "submit-prompt"


@dataclass(frozen=True)
class Action:
    """A keystroke translated into intent by the input router."""

    kind: ActionKind
    arg: Any = None


@dataclass(frozen=True)
class Tick:
    now: float


@dataclass(frozen=True)
class Resized:
    """Terminal size changed; ``rows`` is the list/document content height."""

    rows: int


class TaskTag(Enum):
    AUTH_SAVED = "auth-saved"
    AUTHENTICATED = "authenticated"
    ACCOUNTS_LOADED = "accounts-loaded"
    ACCOUNT_SWITCHED = "account-switched"
    INSTANCES_LOADED = "instances-loaded"
    BUCKETS_LOADED = "buckets-loaded"
    OBJECTS_LOADED = "objects-loaded"
    CLUSTERS_LOADED = "clusters-loaded"
    INSTANCE_DETAILS_LOADED = "instance-details-loaded"
    OBJECT_DETAILS_LOADED = "object-details-loaded"
    CLUSTER_DETAILS_LOADED = "cluster-details-loaded"
    INSTANCE_ACTION_DONE = "instance-action-done"
    BULK_ACTION_DONE = "bulk-action-completed"
    OBJECT_DOWNLOADED = "object-downloaded"
    OBJECT_UPLOADED = "object-uploaded"
    RESOURCE_DELETED = "resource-deleted"
    INFO_LOADED = "info-loaded"
    KUBECONFIG_UPDATED = "kubeconfig-updated"


@dataclass(frozen=True)
class Origin:
    """Where a task was issued from, compared against the state at fold time."""

    generation: int
    screen: Screen
    context: tuple[str, ...]


def context_key(state: AppState) -> tuple[str, ...]:
    account_id = state.account.account_id if state.account is not None else ""
    family = state.family
    key = (family, state.region, account_id)
    if family == "s3":
        return key + (state.bucket, state.prefix)
    return key


def origin_of(state: AppState) -> Origin:
    screen = state.screen
    if screen is Screen.HELP and state.previous_screen is not None:
        screen = state.previous_screen
    return Origin(generation=state.generation, screen=screen, context=context_key(state))


def is_current(state: AppState, origin: Origin) -> bool:
    return origin.generation == state.generation and origin.context == context_key(state)


@dataclass(frozen=True)
class Completion:
    """Exactly one of these is produced per dispatched task."""

    tag: TaskTag
    origin: Origin
    value: Any = None
    error: str | None = None
    tracks_loading: bool = True
    meta: Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


Event = Union[Action, Tick, Resized, Completion]
