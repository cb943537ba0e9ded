"""Persistent JSON config helpers.

``config.json`` stores region preferences and UI tuning; ``auth.json`` stores
the chosen authentication method. Reads are defensive: malformed or missing
files fall back to defaults.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path

CONFIG_FILENAME = "config.json"
AUTH_FILENAME = "auth.json"

FALLBACK_REGION = "us-east-1"
DEFAULT_REGIONS: tuple[str, ...] = (
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-northeast-1",
)
DEFAULT_PAGE_SIZE = 20
DEFAULT_AUTO_REFRESH_SECONDS = 30.0

AUTH_ENV = "env"
AUTH_PROFILE = "profile"
AUTH_SSO = "sso"
AUTH_METHODS: tuple[str, ...] = (AUTH_ENV, AUTH_PROFILE, AUTH_SSO)

_INVALID_PROFILE_CHARS = '/\\:*?"<>|'


@dataclass(frozen=True)
class AppConfig:
    region: str = FALLBACK_REGION
    regions: tuple[str, ...] = DEFAULT_REGIONS
    page_size: int = DEFAULT_PAGE_SIZE
    auto_refresh_seconds: float = DEFAULT_AUTO_REFRESH_SECONDS


@dataclass(frozen=True)
class AuthConfig:
    method: str
    profile_name: str = ""
    sso_start_url: str = ""
    sso_region: str = FALLBACK_REGION

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AuthConfig | None:
        """Build from decoded JSON, returning ``None`` for unknown methods."""
        method = data.get("method")
        if method not in AUTH_METHODS:
            return None

        def text(key: str, default: str = "") -> str:
            value = data.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else default

        return cls(
            method=str(method),
            profile_name=text("profile_name"),
            sso_start_url=text("sso_start_url"),
            sso_region=text("sso_region", FALLBACK_REGION),
        )


def default_region(environ: Mapping[str, str] | None = None) -> str:
    """Resolve the startup region from the standard AWS environment variables."""
    env = os.environ if environ is None else environ
    for name in ("AWS_REGION", "AWS_DEFAULT_REGION"):
        value = env.get(name, "").strip()
        if value:
            return value
    return FALLBACK_REGION


def load_json(path: Path) -> dict[str, object]:
    """Load a JSON object, returning an empty dict when missing or malformed."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_json(path: Path, data: Mapping[str, object], mode: int = 0o600) -> None:
    """Write pretty-printed JSON readable only by the current user."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(json.dumps(dict(data), indent=2) + "\n")
    os.chmod(path, mode)


def _positive_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def load_app_config(config_dir: Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Load ``config.json`` merged over defaults."""
    data = load_json(config_dir / CONFIG_FILENAME)

    region = data.get("region")
    if not isinstance(region, str) or not region.strip():
        region = default_region(environ)

    raw_regions = data.get("regions")
    regions: tuple[str, ...] = DEFAULT_REGIONS
    if isinstance(raw_regions, list):
        cleaned = tuple(item.strip() for item in raw_regions if isinstance(item, str) and item.strip())
        if cleaned:
            regions = cleaned

    refresh = data.get("auto_refresh_seconds")
    if isinstance(refresh, bool) or not isinstance(refresh, (int, float)) or refresh <= 0:
        refresh = DEFAULT_AUTO_REFRESH_SECONDS

    return AppConfig(
        region=region.strip(),
        regions=regions,
        page_size=_positive_int(data.get("page_size"), DEFAULT_PAGE_SIZE),
        auto_refresh_seconds=float(refresh),
    )


def load_auth_config(config_dir: Path) -> AuthConfig | None:
    """Return the persisted auth choice, or ``None`` when setup is needed."""
    return AuthConfig.from_dict(load_json(config_dir / AUTH_FILENAME))


def save_auth_config(config_dir: Path, auth: AuthConfig) -> Path:
    """Persist the auth choice; filesystem errors propagate to the caller."""
    path = config_dir / AUTH_FILENAME
    save_json(path, auth.to_dict())
    return path


def validate_sso_start_url(url: str) -> str | None:
    """Return an error message for an unusable SSO start URL, else ``None``."""
    value = url.strip()
    if not value:
        return "SSO start URL cannot be empty"
    if not value.startswith("https://"):
        return "SSO start URL must start with https://"
    if len(value) < 10:
        return "SSO start URL is too short"
    return None


def validate_profile_name(name: str) -> str | None:
    """Return an error message for an unusable profile name, else ``None``."""
    value = name.strip()
    if not value:
        return "Profile name cannot be empty"
    if any(ch in _INVALID_PROFILE_CHARS for ch in value):
        return "Profile name contains invalid characters"
    return None
