"""Collaborator contracts and record types shared by providers and the core.

Providers are the only code allowed to talk to AWS. The core only sees the
records below and the ``ResourceProvider``/``CredentialProvider`` protocols.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol


class ProviderError(Exception):
    """Readable failure raised by a provider call."""


@dataclass(frozen=True)
class Instance:
    instance_id: str
    name: str = ""
    state: str = ""
    instance_type: str = ""
    public_ip: str = ""
    private_ip: str = ""
    availability_zone: str = ""
    launch_time: str = ""


@dataclass(frozen=True)
class Bucket:
    name: str
    region: str = ""
    created: str = ""


@dataclass(frozen=True)
class S3Object:
    key: str
    size: int = 0
    last_modified: str = ""
    storage_class: str = ""
    is_folder: bool = False

    @property
    def display_name(self) -> str:
        """Last path segment, keeping the trailing slash of folders."""
        trimmed = self.key[:-1] if self.key.endswith("/") else self.key
        name = trimmed.rsplit("/", 1)[-1]
        return f"{name}/" if self.is_folder else name


@dataclass(frozen=True)
class Cluster:
    name: str
    version: str = ""
    status: str = ""
    region: str = ""


@dataclass(frozen=True)
class Account:
    account_id: str
    account_name: str = ""
    role_name: str = ""
    email: str = ""


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str
    session_token: str = ""
    expiration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Credentials:
        return cls(
            access_key_id=str(data.get("access_key_id", "")),
            secret_access_key=str(data.get("secret_access_key", "")),
            session_token=str(data.get("session_token", "")),
            expiration=float(data.get("expiration", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class SsoSession:
    """An authenticated SSO login, identified by its start URL."""

    start_url: str
    region: str
    access_token: str
    expires_at: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SsoSession:
        return cls(
            start_url=str(data.get("start_url", "")),
            region=str(data.get("region", "")),
            access_token=str(data.get("access_token", "")),
            expires_at=float(data.get("expires_at", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class ProviderScope:
    """Everything needed to build a resource provider for one context."""

    region: str
    profile_name: str = ""
    credentials: Credentials | None = None


@dataclass(frozen=True)
class ListPage:
    items: tuple = ()
    continuation_token: str | None = None
    truncated: bool = False


@dataclass(frozen=True)
class Ack:
    kind: str
    resource_id: str
    verb: str
    message: str = ""


@dataclass(frozen=True)
class BulkResult:
    """Outcome of one verb applied to many resources."""

    verb: str
    succeeded: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    errors: tuple[str, ...] = field(default=(), compare=False)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class ResourceProvider(Protocol):
    def list(
        self,
        kind: str,
        filter: Mapping[str, Any] | None = None,
        continuation_token: str | None = None,
    ) -> ListPage: ...

    def get(self, kind: str, resource_id: str, **options: Any) -> Any: ...

    def mutate(self, kind: str, resource_id: str, verb: str, **options: Any) -> Ack: ...


class CredentialProvider(Protocol):
    def authenticate(self) -> SsoSession: ...

    def list_access_targets(self, session: SsoSession) -> Sequence[Account]: ...

    def get_credentials(self, session: SsoSession, target: Account) -> Credentials: ...
