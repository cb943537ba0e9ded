"""Immutable application state.

``AppState`` is the single source of truth for the UI. It is never mutated
in place: the core returns a new value for every event it folds.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .config import AuthConfig
from .providers.base import Credentials, SsoSession


class Screen(Enum):
    AUTH_METHOD = "auth-method"
    AUTH_PROFILE = "auth-profile"
    SSO_CONFIG = "sso-config"
    ACCOUNTS = "accounts"
    REGIONS = "regions"
    EC2 = "ec2"
    EC2_DETAIL = "ec2-detail"
    S3 = "s3"
    S3_BROWSE = "s3-browse"
    S3_OBJECT = "s3-object"
    EKS = "eks"
    EKS_DETAIL = "eks-detail"
    HELP = "help"


class InputMode(Enum):
    NORMAL = "normal"
    SEARCH = "search"
    COMMAND = "command"


class ListKind(Enum):
    AUTH_METHODS = "auth-methods"
    ACCOUNTS = "accounts"
    REGIONS = "regions"
    INSTANCES = "instances"
    BUCKETS = "buckets"
    OBJECTS = "objects"
    CLUSTERS = "clusters"


LIST_SCREENS: dict[Screen, ListKind] = {
    Screen.AUTH_METHOD: ListKind.AUTH_METHODS,
    Screen.ACCOUNTS: ListKind.ACCOUNTS,
    Screen.REGIONS: ListKind.REGIONS,
    Screen.EC2: ListKind.INSTANCES,
    Screen.S3: ListKind.BUCKETS,
    Screen.S3_BROWSE: ListKind.OBJECTS,
    Screen.EKS: ListKind.CLUSTERS,
}
DOCUMENT_SCREENS = frozenset({Screen.EC2_DETAIL, Screen.S3_OBJECT, Screen.EKS_DETAIL, Screen.HELP})
PROMPT_SCREENS = frozenset({Screen.AUTH_PROFILE, Screen.SSO_CONFIG})
SERVICE_SCREENS: tuple[Screen, ...] = (Screen.EC2, Screen.S3, Screen.EKS)

# Service family per screen; used to decide whether an async result still
# belongs to what is on screen.
SCREEN_FAMILY: dict[Screen, str] = {
    Screen.AUTH_METHOD: "auth",
    Screen.AUTH_PROFILE: "auth",
    Screen.SSO_CONFIG: "auth",
    Screen.ACCOUNTS: "accounts",
    Screen.REGIONS: "regions",
    Screen.EC2: "ec2",
    Screen.EC2_DETAIL: "ec2",
    Screen.S3: "s3",
    Screen.S3_BROWSE: "s3",
    Screen.S3_OBJECT: "s3",
    Screen.EKS: "eks",
    Screen.EKS_DETAIL: "eks",
}


@dataclass(frozen=True)
class ListState:
    """Canonical items, optional filtered view and the selection into it."""

    items: tuple = ()
    filtered: tuple | None = None
    selected: int = 0
    continuation_token: str | None = None
    truncated: bool = False

    def active(self) -> tuple:
        return self.filtered if self.filtered is not None else self.items

    def selected_item(self) -> Any | None:
        active = self.active()
        if not active:
            return None
        return active[self.selected]

    def with_selection(self, index: int) -> ListState:
        length = len(self.active())
        clamped = 0 if length == 0 else max(0, min(index, length - 1))
        return replace(self, selected=clamped)


@dataclass(frozen=True)
class SearchSnapshot:
    """View restored when a search edit is abandoned with Escape."""

    last_applied: str = ""
    matches: tuple[int, ...] = ()
    position: int = 0
    filtered: tuple | None = None
    selected: int = 0


@dataclass(frozen=True)
class SearchState:
    query: str = ""
    last_applied: str = ""
    matches: tuple[int, ...] = ()
    position: int = 0
    snapshot: SearchSnapshot | None = None


@dataclass(frozen=True)
class ViewportState:
    offset: int = 0
    page_size: int = 20
    height: int = 20


@dataclass(frozen=True)
class PendingConfirm:
    """A destructive action waiting for the operator's answer.

    When ``expected_text`` is set the operator must type it exactly; otherwise
    a single ``y`` confirms.
    """

    action: str
    targets: tuple[str, ...]
    prompt: str
    expected_text: str | None = None
    typed: str = ""
    options: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DetailState:
    """Payloads of the detail screens plus the info overlay."""

    instance: Mapping[str, Any] = field(default_factory=dict)
    obj: Mapping[str, Any] = field(default_factory=dict)
    cluster: Mapping[str, Any] = field(default_factory=dict)
    error: str = ""
    info_title: str = ""
    info_text: str = ""
    info_is_json: bool = False


@dataclass(frozen=True)
class AccountContext:
    account_id: str
    account_name: str = ""
    role_name: str = ""


class ExitReason(Enum):
    QUIT = "quit"
    HANDOFF = "handoff"


class HandoffKind(Enum):
    SSM_SESSION = "ssm-session"
    K9S = "k9s"
    EDIT_OBJECT = "edit-object"


@dataclass(frozen=True)
class HandoffRequest:
    kind: HandoffKind
    target: str
    region: str
    bucket: str = ""
    cluster: str = ""


@dataclass(frozen=True)
class ExitRequest:
    reason: ExitReason
    handoff: HandoffRequest | None = None


@dataclass(frozen=True)
class AppState:
    screen: Screen
    region: str
    regions: tuple[str, ...] = ()
    previous_screen: Screen | None = None
    mode: InputMode = InputMode.NORMAL
    lists: Mapping[ListKind, ListState] = field(default_factory=dict)
    search: SearchState = SearchState()
    viewport: ViewportState = ViewportState()
    command_buffer: str = ""
    command_hints: tuple[str, ...] = ()
    prompt_buffer: str = ""
    selected_ids: frozenset[str] = frozenset()
    confirm: PendingConfirm | None = None
    details: DetailState = DetailState()
    bucket: str = ""
    prefix: str = ""
    cluster: str = ""
    instance_id: str = ""
    object_key: str = ""
    auth: AuthConfig | None = None
    sso_session: SsoSession | None = None
    credentials: Credentials | None = None
    account: AccountContext | None = None
    auto_refresh: bool = False
    auto_refresh_seconds: float = 30.0
    next_refresh_at: float = 0.0
    generation: int = 0
    in_flight: int = 0
    last_error: str = ""
    status: str = ""
    exit: ExitRequest | None = None

    @property
    def loading(self) -> bool:
        return self.in_flight > 0

    @property
    def list_kind(self) -> ListKind | None:
        return LIST_SCREENS.get(self.screen)

    def list_for(self, kind: ListKind) -> ListState:
        return self.lists.get(kind, ListState())

    def active_list(self) -> ListState | None:
        kind = self.list_kind
        if kind is None:
            return None
        return self.list_for(kind)

    def with_list(self, kind: ListKind, list_state: ListState) -> AppState:
        return replace(self, lists={**self.lists, kind: list_state})

    @property
    def family(self) -> str:
        if self.screen is Screen.HELP and self.previous_screen is not None:
            return SCREEN_FAMILY.get(self.previous_screen, "help")
        return SCREEN_FAMILY.get(self.screen, "help")
