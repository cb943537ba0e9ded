"""Deferred work issued by the core.

Factories here only capture what a call needs (scope, ids, options); running
the call is the dispatcher's job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from ..config import AUTH_PROFILE, AuthConfig
from ..providers.base import (
    Account,
    BulkResult,
    CredentialProvider,
    ListPage,
    ProviderScope,
    ResourceProvider,
)
from ..state import AppState, ListKind
from .events import Origin, TaskTag, origin_of

logger = logging.getLogger(__name__)


class TaskServices(Protocol):
    def resources(self, scope: ProviderScope) -> ResourceProvider: ...

    def credentials(self, auth: AuthConfig) -> CredentialProvider: ...

    def save_auth(self, auth: AuthConfig) -> None: ...


TaskCall = Callable[[TaskServices], Any]


@dataclass(frozen=True)
class Task:
    tag: TaskTag
    origin: Origin
    call: TaskCall
    tracks_loading: bool = True
    meta: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FanOutTask:
    """Named sub-calls run in parallel and joined into one completion."""

    tag: TaskTag
    origin: Origin
    parts: Mapping[str, TaskCall]
    tracks_loading: bool = True
    meta: Mapping[str, Any] = field(default_factory=dict)


AnyTask = Union[Task, FanOutTask]


def scope_for(state: AppState) -> ProviderScope:
    profile = ""
    if state.auth is not None and state.auth.method == AUTH_PROFILE:
        profile = state.auth.profile_name
    return ProviderScope(region=state.region, profile_name=profile, credentials=state.credentials)


_LIST_TAGS: dict[ListKind, tuple[TaskTag, str]] = {
    ListKind.INSTANCES: (TaskTag.INSTANCES_LOADED, "instances"),
    ListKind.BUCKETS: (TaskTag.BUCKETS_LOADED, "buckets"),
    ListKind.OBJECTS: (TaskTag.OBJECTS_LOADED, "objects"),
    ListKind.CLUSTERS: (TaskTag.CLUSTERS_LOADED, "clusters"),
}


def load_list(state: AppState, kind: ListKind, continuation_token: str | None = None) -> AnyTask | None:
    """Task that fetches ``kind`` for the current context, or ``None`` for local lists."""
    if kind is ListKind.ACCOUNTS:
        return load_accounts(state)
    if kind not in _LIST_TAGS:
        return None
    tag, provider_kind = _LIST_TAGS[kind]
    scope = scope_for(state)
    filter_: dict[str, str] | None = None
    if kind is ListKind.OBJECTS:
        filter_ = {"bucket": state.bucket, "prefix": state.prefix}

    def call(services: TaskServices) -> ListPage:
        return services.resources(scope).list(provider_kind, filter_, continuation_token)

    return Task(tag=tag, origin=origin_of(state), call=call, meta={"paged": continuation_token is not None})


def load_accounts(state: AppState) -> Task | None:
    auth = state.auth
    session = state.sso_session
    if auth is None or session is None:
        return None

    def call(services: TaskServices) -> ListPage:
        targets = services.credentials(auth).list_access_targets(session)
        return ListPage(items=tuple(targets))

    return Task(tag=TaskTag.ACCOUNTS_LOADED, origin=origin_of(state), call=call)


def authenticate(state: AppState) -> Task | None:
    auth = state.auth
    if auth is None:
        return None

    def call(services: TaskServices):
        return services.credentials(auth).authenticate()

    return Task(tag=TaskTag.AUTHENTICATED, origin=origin_of(state), call=call)


def switch_account(state: AppState, account: Account) -> Task | None:
    auth = state.auth
    session = state.sso_session
    if auth is None or session is None:
        return None

    def call(services: TaskServices):
        return services.credentials(auth).get_credentials(session, account)

    return Task(
        tag=TaskTag.ACCOUNT_SWITCHED,
        origin=origin_of(state),
        call=call,
        meta={"account": account},
    )


def save_auth(state: AppState, auth: AuthConfig) -> Task:
    def call(services: TaskServices) -> None:
        services.save_auth(auth)

    return Task(tag=TaskTag.AUTH_SAVED, origin=origin_of(state), call=call, tracks_loading=False)


def _get(scope: ProviderScope, kind: str, resource_id: str, **options: Any) -> TaskCall:
    return lambda services: services.resources(scope).get(kind, resource_id, **options)


def load_instance_details(state: AppState, instance_id: str) -> FanOutTask:
    scope = scope_for(state)
    return FanOutTask(
        tag=TaskTag.INSTANCE_DETAILS_LOADED,
        origin=origin_of(state),
        parts={
            "details": _get(scope, "instance", instance_id),
            "status": _get(scope, "instance-status", instance_id),
            "ssm": _get(scope, "ssm-status", instance_id),
            "metrics": _get(scope, "instance-metrics", instance_id),
        },
        meta={"instance_id": instance_id},
    )


def load_cluster_details(state: AppState, cluster: str) -> FanOutTask:
    scope = scope_for(state)
    return FanOutTask(
        tag=TaskTag.CLUSTER_DETAILS_LOADED,
        origin=origin_of(state),
        parts={
            "cluster": _get(scope, "cluster", cluster),
            "node_groups": _get(scope, "node-groups", cluster),
            "addons": _get(scope, "addons", cluster),
        },
        meta={"cluster": cluster},
    )


def load_object_details(state: AppState, key: str) -> Task:
    return Task(
        tag=TaskTag.OBJECT_DETAILS_LOADED,
        origin=origin_of(state),
        call=_get(scope_for(state), "object", key, bucket=state.bucket),
        meta={"key": key},
    )


def load_info(state: AppState, kind: str, resource_id: str, title: str, *, json_body: bool = False, **options: Any) -> Task:
    """Fetch a text payload (policy, versioning, presigned URL) for the info overlay."""
    return Task(
        tag=TaskTag.INFO_LOADED,
        origin=origin_of(state),
        call=_get(scope_for(state), kind, resource_id, **options),
        meta={"title": title, "json": json_body},
    )


def run_bulk(provider: ResourceProvider, kind: str, verb: str, resource_ids: Sequence[str]) -> BulkResult:
    """Apply ``verb`` to every id, counting each outcome once."""
    succeeded: list[str] = []
    failed: list[str] = []
    errors: list[str] = []
    for resource_id in resource_ids:
        try:
            provider.mutate(kind, resource_id, verb)
        except Exception as exc:
            logger.warning("bulk %s failed for %s: %s", verb, resource_id, exc)
            failed.append(resource_id)
            errors.append(f"{resource_id}: {exc}")
        else:
            succeeded.append(resource_id)
    return BulkResult(verb=verb, succeeded=tuple(succeeded), failed=tuple(failed), errors=tuple(errors))


def instance_action(state: AppState, verb: str, instance_ids: Sequence[str], *, bulk: bool) -> Task:
    scope = scope_for(state)
    ids = tuple(instance_ids)
    if bulk:
        return Task(
            tag=TaskTag.BULK_ACTION_DONE,
            origin=origin_of(state),
            call=lambda services: run_bulk(services.resources(scope), "instance", verb, ids),
            meta={"verb": verb, "targets": ids},
        )
    target = ids[0]
    return Task(
        tag=TaskTag.INSTANCE_ACTION_DONE,
        origin=origin_of(state),
        call=lambda services: services.resources(scope).mutate("instance", target, verb),
        meta={"verb": verb, "targets": ids},
    )


def delete_resource(state: AppState, kind: str, resource_id: str, **options: str) -> Task:
    scope = scope_for(state)
    return Task(
        tag=TaskTag.RESOURCE_DELETED,
        origin=origin_of(state),
        call=lambda services: services.resources(scope).mutate(kind, resource_id, "delete", **options),
        meta={"kind": kind, "resource_id": resource_id},
    )


def download_object(state: AppState, key: str, destination: str) -> Task:
    scope = scope_for(state)
    bucket = state.bucket
    return Task(
        tag=TaskTag.OBJECT_DOWNLOADED,
        origin=origin_of(state),
        call=lambda services: services.resources(scope).mutate(
            "object", key, "download", bucket=bucket, destination=destination
        ),
        meta={"key": key, "destination": destination},
    )


def upload_object(state: AppState, source: str, key: str) -> Task:
    scope = scope_for(state)
    bucket = state.bucket
    return Task(
        tag=TaskTag.OBJECT_UPLOADED,
        origin=origin_of(state),
        call=lambda services: services.resources(scope).mutate("object", key, "upload", bucket=bucket, source=source),
        meta={"key": key, "source": source},
    )


def update_kubeconfig(state: AppState, cluster: str) -> Task:
    scope = scope_for(state)
    return Task(
        tag=TaskTag.KUBECONFIG_UPDATED,
        origin=origin_of(state),
        call=lambda services: services.resources(scope).mutate("cluster", cluster, "update-kubeconfig"),
        meta={"cluster": cluster},
    )
