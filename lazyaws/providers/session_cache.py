"""On-disk cache of SSO logins, one JSON file per start URL.

Each file holds the session token plus the OIDC client registration so a
restart can skip both the device flow and the client registration while they
are still valid.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .base import SsoSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientRegistration:
    client_id: str
    client_secret: str
    expires_at: float

    def valid(self, now: float) -> bool:
        return bool(self.client_id) and now < self.expires_at


@dataclass(frozen=True)
class CachedLogin:
    session: SsoSession | None = None
    registration: ClientRegistration | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.session is not None:
            data["session"] = self.session.to_dict()
        if self.registration is not None:
            data["registration"] = {
                "client_id": self.registration.client_id,
                "client_secret": self.registration.client_secret,
                "expires_at": self.registration.expires_at,
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedLogin:
        session = data.get("session")
        registration = data.get("registration")
        return cls(
            session=SsoSession.from_dict(session) if isinstance(session, dict) else None,
            registration=(
                ClientRegistration(
                    client_id=str(registration.get("client_id", "")),
                    client_secret=str(registration.get("client_secret", "")),
                    expires_at=float(registration.get("expires_at", 0.0) or 0.0),
                )
                if isinstance(registration, dict)
                else None
            ),
        )


def cache_key(start_url: str) -> str:
    """Stable short identifier for a login endpoint."""
    return hashlib.sha256(start_url.strip().encode("utf-8")).hexdigest()[:16]


class SessionCache:
    def __init__(self, directory: Path, clock: Callable[[], float] = time.time) -> None:
        self.directory = directory
        self._clock = clock

    def path_for(self, start_url: str) -> Path:
        return self.directory / f"session-{cache_key(start_url)}.json"

    def load_login(self, start_url: str) -> CachedLogin:
        path = self.path_for(start_url)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return CachedLogin()
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable SSO cache %s: %s", path, exc)
            return CachedLogin()
        if not isinstance(raw, dict):
            return CachedLogin()
        return CachedLogin.from_dict(raw)

    def load(self, start_url: str) -> SsoSession | None:
        """Cached session for ``start_url`` unless it is missing or expired."""
        session = self.load_login(start_url).session
        if session is None or not session.access_token:
            return None
        if session.start_url != start_url or self._clock() >= session.expires_at:
            return None
        return session

    def save(self, start_url: str, login: CachedLogin) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(start_url)
        payload = json.dumps(login.to_dict(), indent=2, sort_keys=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.chmod(path, 0o600)
        return path
