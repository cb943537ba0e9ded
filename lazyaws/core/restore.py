"""Startup state and the restore context carried across a terminal handoff.

``RestoreContext`` is a plain, serialisable value: everything the UI needs
to come back to the same screen, with the same credentials, after a child
process had the terminal. ``initial_state`` consumes it once and re-issues
the loads for whatever was visible so the user gets fresh data.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from ..config import AUTH_METHODS, AUTH_SSO, AppConfig, AuthConfig
from ..providers.base import Credentials, SsoSession
from ..state import AccountContext, AppState, ListKind, ListState, Screen, ViewportState
from . import tasks
from .transitions import Outcome, issue, open_service, set_status, switch_screen

_TRANSIENT_SCREENS = {Screen.HELP, Screen.REGIONS}


@dataclass(frozen=True)
class RestoreContext:
    target_screen: Screen
    region: str
    bucket: str = ""
    prefix: str = ""
    object_key: str = ""
    cluster: str = ""
    instance_id: str = ""
    account_id: str = ""
    account_name: str = ""
    role_name: str = ""
    credentials: Credentials | None = None
    sso_session: SsoSession | None = None
    pending: bool = True
    message: str = ""

    def consumed(self) -> RestoreContext:
        return replace(self, pending=False)

    def with_message(self, message: str) -> RestoreContext:
        return replace(self, message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_screen": self.target_screen.value,
            "region": self.region,
            "bucket": self.bucket,
            "prefix": self.prefix,
            "object_key": self.object_key,
            "cluster": self.cluster,
            "instance_id": self.instance_id,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "role_name": self.role_name,
            "credentials": self.credentials.to_dict() if self.credentials is not None else None,
            "sso_session": self.sso_session.to_dict() if self.sso_session is not None else None,
            "pending": self.pending,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RestoreContext:
        credentials = data.get("credentials")
        session = data.get("sso_session")
        return cls(
            target_screen=Screen(data.get("target_screen", Screen.EC2.value)),
            region=str(data.get("region", "")),
            bucket=str(data.get("bucket", "")),
            prefix=str(data.get("prefix", "")),
            object_key=str(data.get("object_key", "")),
            cluster=str(data.get("cluster", "")),
            instance_id=str(data.get("instance_id", "")),
            account_id=str(data.get("account_id", "")),
            account_name=str(data.get("account_name", "")),
            role_name=str(data.get("role_name", "")),
            credentials=Credentials.from_dict(credentials) if isinstance(credentials, Mapping) else None,
            sso_session=SsoSession.from_dict(session) if isinstance(session, Mapping) else None,
            pending=bool(data.get("pending", True)),
            message=str(data.get("message", "")),
        )


def capture_restore(state: AppState, message: str = "") -> RestoreContext:
    """Snapshot the minimum needed to resume ``state`` after a handoff."""
    screen = state.screen
    if screen in _TRANSIENT_SCREENS:
        screen = state.previous_screen or Screen.EC2
    account = state.account
    return RestoreContext(
        target_screen=screen,
        region=state.region,
        bucket=state.bucket,
        prefix=state.prefix,
        object_key=state.object_key,
        cluster=state.cluster,
        instance_id=state.instance_id,
        account_id=account.account_id if account is not None else "",
        account_name=account.account_name if account is not None else "",
        role_name=account.role_name if account is not None else "",
        credentials=state.credentials,
        sso_session=state.sso_session,
        message=message,
    )


def initial_state(
    config: AppConfig,
    auth: AuthConfig | None,
    restore: RestoreContext | None = None,
    *,
    generation: int = 0,
) -> Outcome:
    """Build the first state of a session and the tasks it needs."""
    state = AppState(
        screen=Screen.AUTH_METHOD,
        region=config.region,
        regions=tuple(config.regions),
        viewport=ViewportState(page_size=config.page_size),
        lists={ListKind.AUTH_METHODS: ListState(items=AUTH_METHODS)},
        auth=auth,
        auto_refresh_seconds=config.auto_refresh_seconds,
        generation=generation,
    )
    if restore is not None and restore.pending:
        return _replay(state, restore)
    if auth is None:
        return set_status(state, "Choose an authentication method"), []
    if auth.method == AUTH_SSO:
        state = switch_screen(state, Screen.ACCOUNTS)
        state = set_status(state, "Authenticating with SSO...")
        return issue(state, tasks.authenticate(state))
    return open_service(state, Screen.EC2)


def _replay(state: AppState, restore: RestoreContext) -> Outcome:
    account = None
    if restore.account_id:
        account = AccountContext(restore.account_id, restore.account_name, restore.role_name)
    state = replace(
        state,
        region=restore.region or state.region,
        credentials=restore.credentials,
        sso_session=restore.sso_session,
        account=account,
    )
    target = restore.target_screen
    issued: list = []

    if target is Screen.ACCOUNTS and state.sso_session is not None:
        state = switch_screen(state, Screen.ACCOUNTS)
        state, issued = issue(state, tasks.load_accounts(state))
    elif target is Screen.ACCOUNTS and state.auth is not None and state.auth.method == AUTH_SSO:
        state = switch_screen(state, Screen.ACCOUNTS)
        state = set_status(state, "Authenticating with SSO...")
        state, issued = issue(state, tasks.authenticate(state))
    elif target in (Screen.S3_BROWSE, Screen.S3_OBJECT) and restore.bucket:
        state = switch_screen(state, Screen.S3_BROWSE)
        state = replace(state, bucket=restore.bucket, prefix=restore.prefix)
        state, issued = issue(state, tasks.load_list(state, ListKind.OBJECTS))
        if target is Screen.S3_OBJECT and restore.object_key:
            state = replace(state, object_key=restore.object_key)
            state, more = issue(state, tasks.load_object_details(state, restore.object_key))
            issued += more
    elif target in (Screen.S3, Screen.S3_BROWSE, Screen.S3_OBJECT):
        state, issued = open_service(state, Screen.S3)
    elif target in (Screen.EKS, Screen.EKS_DETAIL):
        state, issued = open_service(state, Screen.EKS)
        if target is Screen.EKS_DETAIL and restore.cluster:
            state = replace(state, cluster=restore.cluster)
            state, more = issue(state, tasks.load_cluster_details(state, restore.cluster))
            issued += more
    else:
        state, issued = open_service(state, Screen.EC2)
        if target is Screen.EC2_DETAIL and restore.instance_id:
            state = replace(state, instance_id=restore.instance_id)
            state, more = issue(state, tasks.load_instance_details(state, restore.instance_id))
            issued += more

    if restore.message:
        state = set_status(state, restore.message)
    return state, issued
