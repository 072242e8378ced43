"""Wire constants, resource paths and authentication headers for CloudPlugs.

The header names and value prefixes are fixed by the CloudPlugs backend and
must be sent verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final
from urllib.parse import quote

from .errors import CloudPlugsLoginError, CloudPlugsParameterError

DEFAULT_BASE_URL: Final = "http://api.cloudplugs.com/"
DEFAULT_TIMEOUT: Final = 30

HTTP_PREFIX: Final = "http://"
HTTPS_PREFIX: Final = "https://"

PATH_DATA: Final = "iot/data"
PATH_DEVICE: Final = "iot/device"
PATH_CHANNEL: Final = "iot/channel"

CONTENT_TYPE_JSON: Final = "Content-type: application/json"

PLUG_ID_HEADER: Final = "X-Plug-Id"
PLUG_EMAIL_HEADER: Final = "X-Plug-Email"
PLUG_AUTH_HEADER: Final = "X-Plug-Auth"
PLUG_MASTER_HEADER: Final = "X-Plug-Master"

# JSON field names
KEY_ERR: Final = "err"
KEY_BODY: Final = "body"
KEY_ID: Final = "id"
KEY_AUTH: Final = "auth"
KEY_CTRL: Final = "ctrl"
KEY_HWID: Final = "hwid"
KEY_NAME: Final = "name"
KEY_MODEL: Final = "model"
KEY_PASS: Final = "pass"
KEY_PERM: Final = "perm"
KEY_PROPS: Final = "props"
KEY_DATA: Final = "data"
KEY_BEFORE: Final = "before"
KEY_AFTER: Final = "after"
KEY_AT: Final = "at"
KEY_OF: Final = "of"
KEY_OFFSET: Final = "offset"
KEY_LIMIT: Final = "limit"

# Device location property
LOCATION: Final = "location"
KEY_LONGITUDE: Final = "x"
KEY_LATITUDE: Final = "y"
KEY_ALTITUDE: Final = "z"
KEY_ACCURACY: Final = "r"
KEY_TIMESTAMP: Final = "t"
MAX_LONGITUDE: Final = 180.0
MIN_LONGITUDE: Final = -180.0
MAX_LATITUDE: Final = 90.0
MIN_LATITUDE: Final = -90.0

# Characters that would split or terminate a header line
_FORBIDDEN_HEADER_CHARS: Final = frozenset("\r\n\0")


def has_forbidden_chars(text: str) -> bool:
    """True when ``text`` cannot be sent inside a single header line."""
    return not _FORBIDDEN_HEADER_CHARS.isdisjoint(text)


def header_line(name: str, value: str) -> str:
    """Format a single ``name: value`` header line."""
    return f"{name}: {value}"


def split_header_line(line: str) -> tuple[str, str]:
    """Split a ``name: value`` header line into its name and value."""
    if has_forbidden_chars(line):
        raise CloudPlugsParameterError(f"Control character in header line: {line!r}")
    name, sep, value = line.partition(":")
    if not sep or not name.strip():
        raise CloudPlugsParameterError(f"Malformed header line: {line!r}")
    return name.strip(), value.strip()


def escape_segment(segment: str) -> str:
    """Percent-escape a variable path or query segment.

    Only RFC 3986 unreserved characters are left untouched, ``/`` included.
    """
    return quote(segment, safe="")


def normalize_base_url(url: str) -> str:
    """Validate an http(s) base URL and make it end with exactly one ``/``."""
    if not isinstance(url, str) or not url.startswith((HTTP_PREFIX, HTTPS_PREFIX)):
        raise CloudPlugsParameterError(f"Base URL must start with http:// or https://: {url!r}")
    return url if url.endswith("/") else f"{url}/"


def build_url(base_url: str, path: str, query: str | None = None) -> str:
    """Compose the full request URL from the base URL, path and query string."""
    if query:
        return f"{base_url}{path}?{query}"
    return f"{base_url}{path}"


def device_path(plug_id: str) -> str:
    return f"{PATH_DEVICE}/{escape_segment(plug_id)}"


def prop_path(plug_id: str, prop: str | None = None) -> str:
    """Path of one device property, or of the whole property set."""
    if prop is None:
        return f"{device_path(plug_id)}/"
    return f"{device_path(plug_id)}/{escape_segment(prop)}"


def channel_path(channel_mask: str | None = None) -> str:
    if channel_mask is None:
        return PATH_CHANNEL
    return f"{PATH_CHANNEL}/{escape_segment(channel_mask)}"


def data_path(channel_mask: str | None = None) -> str:
    if channel_mask is None:
        return PATH_DATA
    return f"{PATH_DATA}/{escape_segment(channel_mask)}"


@dataclass(frozen=True, slots=True)
class PlugCredentials:
    """Identity and secret header lines sent with authenticated requests.

    The identity is tagged as an email when it contains ``@`` and as a
    device id otherwise; the secret is tagged as master or regular
    authentication by the ``master`` flag.
    """

    id_line: str
    auth_line: str
    master: bool = False

    @classmethod
    def build(cls, identity: str, secret: str, master: bool = False) -> PlugCredentials:
        if not (isinstance(identity, str) and identity and isinstance(secret, str) and secret):
            raise CloudPlugsParameterError("Both identity and secret are required")
        if has_forbidden_chars(identity) or has_forbidden_chars(secret):
            raise CloudPlugsParameterError("Identity and secret must not contain CR, LF or NUL")
        id_name = PLUG_EMAIL_HEADER if "@" in identity else PLUG_ID_HEADER
        auth_name = PLUG_MASTER_HEADER if master else PLUG_AUTH_HEADER
        return cls(
            id_line=header_line(id_name, identity),
            auth_line=header_line(auth_name, secret),
            master=bool(master),
        )

    @property
    def is_email(self) -> bool:
        return self.id_line.startswith(f"{PLUG_EMAIL_HEADER}: ")

    @property
    def identity(self) -> str:
        """Identity value without its header prefix."""
        return self.id_line.partition(" ")[2]

    @property
    def secret(self) -> str:
        """Secret value without its header prefix."""
        return self.auth_line.partition(" ")[2]

    @property
    def plug_id(self) -> str:
        """Bare device id; only defined for device identities."""
        if self.is_email:
            raise CloudPlugsLoginError("Session identity is an account email, not a device")
        return self.id_line[len(PLUG_ID_HEADER) + 2 :]

    def header_lines(self) -> tuple[str, str]:
        return self.id_line, self.auth_line
