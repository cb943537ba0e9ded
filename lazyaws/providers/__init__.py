"""Resource and credential providers backed by AWS APIs."""

from __future__ import annotations

from .base import (
    Account,
    Ack,
    Bucket,
    BulkResult,
    Cluster,
    CredentialProvider,
    Credentials,
    Instance,
    ListPage,
    ProviderError,
    ProviderScope,
    ResourceProvider,
    S3Object,
    SsoSession,
)

__all__ = [
    "Account",
    "Ack",
    "Bucket",
    "BulkResult",
    "Cluster",
    "CredentialProvider",
    "Credentials",
    "Instance",
    "ListPage",
    "ProviderError",
    "ProviderScope",
    "ResourceProvider",
    "S3Object",
    "SsoSession",
]
