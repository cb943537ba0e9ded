"""Concrete services handed to task calls by the dispatcher."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import boto3

from ..config import AuthConfig, save_auth_config
from ..providers.aws import AwsResourceProvider
from ..providers.base import ProviderScope
from ..providers.credentials import SsoCredentialProvider
from ..providers.session_cache import SessionCache

logger = logging.getLogger(__name__)


def build_session(scope: ProviderScope, session_factory: Callable[..., Any] = boto3.Session):
    """boto3 session for explicit credentials, a named profile, or the default chain."""
    kwargs: dict[str, Any] = {"region_name": scope.region}
    if scope.credentials is not None:
        kwargs["aws_access_key_id"] = scope.credentials.access_key_id
        kwargs["aws_secret_access_key"] = scope.credentials.secret_access_key
        if scope.credentials.session_token:
            kwargs["aws_session_token"] = scope.credentials.session_token
    elif scope.profile_name:
        kwargs["profile_name"] = scope.profile_name
    return session_factory(**kwargs)


class AwsServices:
    """Providers cached per scope; safe to call from worker threads."""

    def __init__(
        self,
        config_dir: Path,
        sso_cache_dir: Path,
        *,
        session_factory: Callable[..., Any] = boto3.Session,
    ) -> None:
        self.config_dir = config_dir
        self._session_cache = SessionCache(sso_cache_dir)
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._providers: dict[ProviderScope, AwsResourceProvider] = {}

    def resources(self, scope: ProviderScope) -> AwsResourceProvider:
        with self._lock:
            provider = self._providers.get(scope)
            if provider is None:
                logger.debug("creating provider for region=%s profile=%s", scope.region, scope.profile_name or "-")
                provider = AwsResourceProvider(build_session(scope, self._session_factory), scope)
                self._providers[scope] = provider
            return provider

    def credentials(self, auth: AuthConfig) -> SsoCredentialProvider:
        return SsoCredentialProvider(
            auth.sso_start_url,
            auth.sso_region,
            self._session_cache,
            session_factory=self._session_factory,
        )

    def save_auth(self, auth: AuthConfig) -> None:
        save_auth_config(self.config_dir, auth)
