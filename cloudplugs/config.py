"""Session configuration loaded from YAML.

Example document:

    base_url: https://api.cloudplugs.com/
    timeout: 30
    verify_tls: true
    ca_file: /etc/ssl/certs/ca-bundle.pem
    auth:
      id: dev-abc123
      secret: s3cret
      master: false
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import CloudPlugsParameterError
from .protocol import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, normalize_base_url


@dataclass(frozen=True)
class AuthConfig:
    """Credentials applied to the session on creation.

    Attributes:
        id: Device id or account email.
        secret: Device auth code or account master password.
        master: Use master authentication.
    """

    id: str
    secret: str
    master: bool = False


@dataclass(frozen=True)
class SessionConfig:
    """Settings for a CloudPlugsSession."""

    base_url: str = DEFAULT_BASE_URL
    timeout: int = DEFAULT_TIMEOUT
    verify_tls: bool = True
    ca_file: str | None = None
    auth: AuthConfig | None = None


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    if not path.exists():
        raise CloudPlugsParameterError(f"Config file not found: {path}")
    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as err:
            raise CloudPlugsParameterError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise CloudPlugsParameterError(f"Config root must be a mapping: {path}")
    return data


def _expect(data: dict[str, Any], key: str, kind: type | tuple[type, ...], default: Any) -> Any:
    value = data.get(key, default)
    if value is default:
        return value
    # bool is an int subclass and must not pass for timeout
    if isinstance(value, bool) and kind is int:
        raise CloudPlugsParameterError(f"'{key}' must be an integer")
    if not isinstance(value, kind):
        raise CloudPlugsParameterError(f"'{key}' has invalid type {type(value).__name__}")
    return value


def _parse_auth(data: Any) -> AuthConfig | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise CloudPlugsParameterError("'auth' must be a mapping")
    identity = _expect(data, "id", str, None)
    secret = _expect(data, "secret", str, None)
    if not identity or not secret:
        raise CloudPlugsParameterError("'auth' requires non-empty 'id' and 'secret'")
    return AuthConfig(
        id=identity,
        secret=secret,
        master=_expect(data, "master", bool, False),
    )


def parse_session_config(data: dict[str, Any]) -> SessionConfig:
    """Validate a decoded configuration mapping.

    Raises:
        CloudPlugsParameterError: A field is missing, mistyped or invalid.
    """
    timeout = _expect(data, "timeout", int, DEFAULT_TIMEOUT)
    if timeout < 0:
        raise CloudPlugsParameterError("'timeout' must not be negative")

    return SessionConfig(
        base_url=normalize_base_url(_expect(data, "base_url", str, DEFAULT_BASE_URL)),
        timeout=timeout,
        verify_tls=_expect(data, "verify_tls", bool, True),
        ca_file=_expect(data, "ca_file", str, None),
        auth=_parse_auth(data.get("auth")),
    )


def load_session_config(path: Path | str) -> SessionConfig:
    """Load session settings from a YAML file."""
    return parse_session_config(_load_yaml(Path(path)))
