"""SSO login via the OIDC device-authorization flow.

``authenticate`` reuses a cached, unexpired session; otherwise it registers a
public OIDC client (also cached), opens the verification URL in a browser and
polls for a token until the provider-given expiry.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from collections.abc import Callable
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..log_utils import log_event
from .base import Account, Credentials, ProviderError, SsoSession
from .session_cache import CachedLogin, ClientRegistration, SessionCache

logger = logging.getLogger(__name__)

DEFAULT_SSO_REGION = "us-east-1"
CLIENT_NAME = "lazyaws"
CLIENT_TYPE = "public"
DEVICE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
SLOW_DOWN_STEP = 5.0


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class SsoCredentialProvider:
    """``CredentialProvider`` backed by AWS IAM Identity Center."""

    def __init__(
        self,
        start_url: str,
        region: str = "",
        cache: SessionCache | None = None,
        *,
        session_factory: Callable[..., Any] = boto3.Session,
        open_browser: Callable[[str], Any] = webbrowser.open,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.start_url = start_url
        self.region = region or DEFAULT_SSO_REGION
        self._cache = cache
        self._session_factory = session_factory
        self._open_browser = open_browser
        self._sleep = sleep
        self._clock = clock

    def _client(self, service: str):
        return self._session_factory(region_name=self.region).client(service)

    def authenticate(self) -> SsoSession:
        login = CachedLogin()
        if self._cache is not None:
            cached = self._cache.load(self.start_url)
            if cached is not None:
                log_event(logger, "sso.cached_session", start_url=self.start_url)
                return cached
            login = self._cache.load_login(self.start_url)
        try:
            return self._device_flow(login.registration)
        except (BotoCoreError, ClientError) as exc:
            raise ProviderError(f"SSO login failed: {exc}") from exc

    def _register(self, oidc) -> ClientRegistration:
        response = oidc.register_client(clientName=CLIENT_NAME, clientType=CLIENT_TYPE)
        return ClientRegistration(
            client_id=response["clientId"],
            client_secret=response["clientSecret"],
            expires_at=float(response.get("clientSecretExpiresAt", 0)),
        )

    def _device_flow(self, registration: ClientRegistration | None) -> SsoSession:
        oidc = self._client("sso-oidc")
        if registration is None or not registration.valid(self._clock()):
            registration = self._register(oidc)

        device = oidc.start_device_authorization(
            clientId=registration.client_id,
            clientSecret=registration.client_secret,
            startUrl=self.start_url,
        )
        url = device.get("verificationUriComplete") or device.get("verificationUri", "")
        log_event(logger, "sso.device_authorization", url=url, user_code=device.get("userCode", ""))
        if url:
            self._open_browser(url)

        interval = float(device.get("interval") or 5)
        deadline = self._clock() + float(device.get("expiresIn") or 600)
        while self._clock() < deadline:
            self._sleep(interval)
            try:
                token = oidc.create_token(
                    clientId=registration.client_id,
                    clientSecret=registration.client_secret,
                    grantType=DEVICE_GRANT,
                    deviceCode=device["deviceCode"],
                )
            except ClientError as exc:
                code = _error_code(exc)
                if code == "AuthorizationPendingException":
                    continue
                if code == "SlowDownException":
                    interval += SLOW_DOWN_STEP
                    continue
                raise
            session = SsoSession(
                start_url=self.start_url,
                region=self.region,
                access_token=token["accessToken"],
                expires_at=self._clock() + float(token.get("expiresIn", 0)),
            )
            self._store(CachedLogin(session=session, registration=registration))
            log_event(logger, "sso.authenticated", start_url=self.start_url)
            return session
        raise ProviderError("SSO authorization timed out")

    def _store(self, login: CachedLogin) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(self.start_url, login)
        except OSError as exc:
            logger.warning("failed to cache SSO session: %s", exc)

    def list_access_targets(self, session: SsoSession) -> list[Account]:
        if self._clock() >= session.expires_at:
            raise ProviderError("SSO session expired")
        sso = self._client("sso")
        targets: list[Account] = []
        try:
            for page in sso.get_paginator("list_accounts").paginate(accessToken=session.access_token):
                for account in page.get("accountList", []):
                    account_id = account.get("accountId", "")
                    roles = sso.get_paginator("list_account_roles").paginate(
                        accessToken=session.access_token, accountId=account_id
                    )
                    for role_page in roles:
                        for role in role_page.get("roleList", []):
                            targets.append(
                                Account(
                                    account_id=account_id,
                                    account_name=account.get("accountName", ""),
                                    role_name=role.get("roleName", ""),
                                    email=account.get("emailAddress", ""),
                                )
                            )
        except (BotoCoreError, ClientError) as exc:
            raise ProviderError(f"Listing SSO accounts failed: {exc}") from exc
        return targets

    def get_credentials(self, session: SsoSession, target: Account) -> Credentials:
        sso = self._client("sso")
        try:
            response = sso.get_role_credentials(
                accessToken=session.access_token,
                accountId=target.account_id,
                roleName=target.role_name,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ProviderError(f"Getting credentials for {target.account_id} failed: {exc}") from exc
        role = response["roleCredentials"]
        return Credentials(
            access_key_id=role["accessKeyId"],
            secret_access_key=role["secretAccessKey"],
            session_token=role.get("sessionToken", ""),
            expiration=float(role.get("expiration", 0)) / 1000.0,
        )
