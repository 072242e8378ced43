"""Blocking session for CloudPlugs REST communication.

A session owns the transport handle (a private event loop and one aiohttp
client session), the base URL, TLS settings, timeout and credentials. Every
request-level call performs exactly one exchange and returns a
CloudPlugsResult; the outcome is also recorded as the session's last error
and last HTTP status.

Sessions are not thread-safe and must not be used from inside a running
event loop. Guard a shared session with a lock.

Usage:
    with CloudPlugsSession() as session:
        session.set_auth("dev-abc123", "secret")
        result = session.request_json("PUT", "iot/data/temperature", body={"data": 42})
        if not result.ok:
            print(session.last_error_message, session.last_http_status)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp

from .codec import (
    JsonValue,
    decode_response,
    encode_body,
    encode_headers,
    encode_query,
    extract_credentials,
)
from .errors import (
    CloudPlugsClientError,
    CloudPlugsConnectionError,
    CloudPlugsDecodeError,
    CloudPlugsLoginError,
    CloudPlugsParameterError,
    CloudPlugsResponseError,
    CloudPlugsSessionError,
    ErrorCode,
    http_status_message,
)
from .http import CloudPlugsHttpClient, HttpMethod, RawResponse, RequestDescriptor
from .protocol import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    HTTP_PREFIX,
    HTTPS_PREFIX,
    KEY_ERR,
    PlugCredentials,
    build_url,
    normalize_base_url,
    split_header_line,
)

if TYPE_CHECKING:
    from .config import SessionConfig

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CloudPlugsResult:
    """Outcome of one request-level call.

    ``data`` holds the decoded body for structured calls: the server's JSON,
    the ``{"err", "body"}`` wrapper when the body is not JSON, or None for
    an empty body.
    """

    ok: bool
    status: int = 0
    error: ErrorCode | None = None
    body: bytes = b""
    data: JsonValue = None
    transport_error: str | None = None

    @property
    def length(self) -> int:
        return len(self.body)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def raise_for_error(self) -> None:
        """Raise the client error matching a failed result."""
        if self.ok:
            return
        if self.error is ErrorCode.HTTP:
            if self.transport_error is not None:
                raise CloudPlugsConnectionError(self.transport_error)
            raise CloudPlugsResponseError(
                self.status, http_status_message(self.status) or f"HTTP {self.status}"
            )
        code = self.error or ErrorCode.INTERNAL_ERROR
        raise CloudPlugsClientError(code=code)

    @classmethod
    def failure(cls, error: ErrorCode) -> CloudPlugsResult:
        return cls(ok=False, error=error)


class CloudPlugsSession:
    """Configured, stateful handle through which all requests are issued."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        ca_file: str | None = None,
        client_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Create the session and its transport handle.

        Args:
            base_url: http(s) URL the resource paths are appended to.
            timeout: Request timeout in seconds (0 selects the default).
            verify_tls: Verify the server certificate.
            ca_file: Certificate bundle used for verification.
            client_session: Externally owned aiohttp session to reuse. It is
                not closed by close().

        Raises:
            CloudPlugsParameterError: base_url or timeout is invalid.
            CloudPlugsSessionError: The transport handle could not be created.
        """
        self._last_error: ErrorCode | None = None
        self._last_http_status = 0
        self._closed = False

        self._base_url = normalize_base_url(base_url)
        self._timeout = DEFAULT_TIMEOUT
        self.set_timeout(timeout)
        self._verify_tls = verify_tls
        self._ca_file = ca_file
        self._credentials: PlugCredentials | None = None

        self._loop = asyncio.new_event_loop()
        self._owns_client = client_session is None
        try:
            if client_session is None:
                client_session = self._loop.run_until_complete(self._open_client())
            self._client = client_session
        except Exception as err:
            self._loop.close()
            raise CloudPlugsSessionError(
                f"Failed to create transport handle: {err}", code=ErrorCode.INTERNAL_ERROR
            ) from err
        self._http = CloudPlugsHttpClient(self._client)

    @classmethod
    def from_config(
        cls,
        config: SessionConfig,
        *,
        client_session: aiohttp.ClientSession | None = None,
    ) -> CloudPlugsSession:
        """Build a session from a loaded SessionConfig."""
        session = cls(
            base_url=config.base_url,
            timeout=config.timeout,
            verify_tls=config.verify_tls,
            ca_file=config.ca_file,
            client_session=client_session,
        )
        if config.auth is not None:
            session.set_auth(config.auth.id, config.auth.secret, config.auth.master)
        return session

    @staticmethod
    async def _open_client() -> aiohttp.ClientSession:
        # One reusable connection per session
        # Bodies are kept as sent; the declared length counts encoded bytes
        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=1), auto_decompress=False
        )

    def __enter__(self) -> CloudPlugsSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the transport handle and drop credentials."""
        if self._closed:
            return
        self._closed = True
        self._credentials = None
        try:
            if self._owns_client:
                self._loop.run_until_complete(self._client.close())
        finally:
            self._loop.close()

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def _invalid(self, err: CloudPlugsClientError) -> CloudPlugsClientError:
        self._last_error = err.code
        return err

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_base_url(self, url: str) -> None:
        """Replace the base URL; only http:// and https:// URLs are accepted."""
        try:
            self._base_url = normalize_base_url(url)
        except CloudPlugsParameterError as err:
            raise self._invalid(err) from None

    @property
    def timeout(self) -> int:
        return self._timeout

    def set_timeout(self, seconds: int) -> None:
        """Set the request timeout; 0 restores the default."""
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            raise self._invalid(
                CloudPlugsParameterError(f"Timeout must be a non-negative integer: {seconds!r}")
            )
        self._timeout = seconds or DEFAULT_TIMEOUT

    @property
    def verify_tls(self) -> bool:
        return self._verify_tls

    def set_tls_verification(self, enabled: bool) -> None:
        self._verify_tls = bool(enabled)

    @property
    def ca_file(self) -> str | None:
        return self._ca_file

    def set_ca_file(self, path: str | None) -> None:
        """Set the certificate bundle used to verify the server."""
        self._ca_file = path

    @property
    def has_tls(self) -> bool:
        return self._base_url.startswith(HTTPS_PREFIX)

    def enable_tls(self, enabled: bool) -> None:
        """Switch the base URL between http:// and https://."""
        if enabled == self.has_tls:
            return
        if enabled:
            self._base_url = HTTPS_PREFIX + self._base_url[len(HTTP_PREFIX) :]
        else:
            self._base_url = HTTP_PREFIX + self._base_url[len(HTTPS_PREFIX) :]

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def set_auth(self, identity: str, secret: str, master: bool = False) -> None:
        """Set the session credentials.

        An identity containing ``@`` is sent as an account email, otherwise
        as a device id. ``master`` selects master instead of regular
        authentication.
        """
        try:
            credentials = PlugCredentials.build(identity, secret, master)
        except CloudPlugsParameterError as err:
            raise self._invalid(err) from None
        self._credentials = credentials

    def clear_auth(self) -> None:
        self._credentials = None

    @property
    def credentials(self) -> PlugCredentials | None:
        return self._credentials

    @property
    def has_auth(self) -> bool:
        return self._credentials is not None

    @property
    def is_master(self) -> bool:
        return self._credentials is not None and self._credentials.master

    @property
    def auth_id(self) -> str | None:
        """Identity (device id or email) of the session, without header prefix."""
        return self._credentials.identity if self._credentials else None

    @property
    def auth_password(self) -> str | None:
        return self._credentials.secret if self._credentials else None

    def get_plug_id(self) -> str:
        """Return the bare device id of the session.

        Raises:
            CloudPlugsLoginError: The session has no credentials or is
                authenticated with an account email.
        """
        if self._credentials is None:
            raise self._invalid(CloudPlugsLoginError("Session has no credentials"))
        try:
            return self._credentials.plug_id
        except CloudPlugsLoginError as err:
            raise self._invalid(err) from None

    def adopt_auth(self, result: CloudPlugsResult) -> bool:
        """Authenticate as the identity returned by a successful enrollment.

        Does nothing unless ``result`` succeeded and carries string ``id``
        and ``auth`` fields. Never records an error.
        """
        if not result.ok:
            return False
        data = result.data
        if data is None and result.body:
            try:
                data = decode_response(result.body)
            except CloudPlugsDecodeError:
                return False
        found = extract_credentials(data)
        if found is None:
            return False
        plug_id, auth = found
        try:
            self._credentials = PlugCredentials.build(plug_id, auth, False)
        except CloudPlugsParameterError:
            _LOGGER.debug("Ignoring unusable credentials returned for %r", plug_id)
            return False
        _LOGGER.info("Session now authenticated as %s", plug_id)
        return True

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    @property
    def last_error(self) -> ErrorCode | None:
        return self._last_error

    @property
    def last_error_message(self) -> str | None:
        return self._last_error.message if self._last_error is not None else None

    @property
    def last_http_status(self) -> int:
        return self._last_http_status

    @property
    def last_http_status_message(self) -> str | None:
        return http_status_message(self._last_http_status)

    def record_failure(self, error: ErrorCode) -> CloudPlugsResult:
        """Record an error detected before any I/O and return its result."""
        self._last_error = error
        self._last_http_status = 0
        return CloudPlugsResult.failure(error)

    # -------------------------------------------------------------------------
    # Request execution
    # -------------------------------------------------------------------------

    def execute(
        self,
        method: HttpMethod | str,
        path: str,
        *,
        auth: bool = True,
        headers: list[str] | tuple[str, ...] | None = None,
        query: str | None = None,
        body: bytes | str | None = None,
    ) -> CloudPlugsResult:
        """Perform one request with pre-encoded headers, query and body.

        Args:
            method: HTTP method.
            path: Resource path relative to the base URL.
            auth: Require the session to carry credentials.
            headers: ``name: value`` header lines.
            query: Already escaped query string, appended after ``?``.
            body: Raw payload.

        Returns:
            CloudPlugsResult with the raw body; ``ok`` only for HTTP 200/201.
        """
        self._last_error = None
        self._last_http_status = 0
        try:
            request = self._build_request(method, path, auth, headers, query, body)
        except CloudPlugsClientError as err:
            return self.record_failure(err.code)
        return self._finish(self._perform(request))

    def request_json(
        self,
        method: HttpMethod | str,
        path: str,
        *,
        auth: bool = True,
        headers: Any = None,
        query: Any = None,
        body: Any = None,
    ) -> CloudPlugsResult:
        """Perform one request with structured headers, query and body.

        Headers must be a string-valued mapping, the query a mapping of
        strings, numbers and booleans; the body is any JSON value (None sends
        no body). The response is decoded into ``data``; a body that is not
        JSON yields the ``{"err", "body"}`` wrapper and a JSON_PARSE error while
        ``ok`` still follows the HTTP status.
        """
        self._last_error = None
        self._last_http_status = 0
        try:
            lines = encode_headers(headers) if headers is not None else None
            squery = encode_query(query) if query is not None else None
            sbody = encode_body(body) if body is not None else None
            request = self._build_request(method, path, auth, lines, squery, sbody)
        except CloudPlugsClientError as err:
            return self.record_failure(err.code)

        raw = self._perform(request)
        if raw.transport_error is not None:
            return self._finish(raw, data={KEY_ERR: raw.transport_error})
        try:
            data = decode_response(raw.body)
        except CloudPlugsDecodeError as err:
            _LOGGER.debug("Response to %s is not JSON: %s", request.url, err)
            self._last_http_status = raw.status
            self._last_error = ErrorCode.JSON_PARSE
            return CloudPlugsResult(
                ok=raw.ok,
                status=raw.status,
                error=ErrorCode.JSON_PARSE,
                body=raw.body,
                data=err.payload,
            )
        return self._finish(raw, data=data)

    def _build_request(
        self,
        method: HttpMethod | str,
        path: str,
        auth: bool,
        headers: list[str] | tuple[str, ...] | None,
        query: str | None,
        body: bytes | str | None,
    ) -> RequestDescriptor:
        if self._closed:
            raise CloudPlugsSessionError("Session is closed")
        if not path:
            raise CloudPlugsParameterError("Path is required")
        try:
            http_method = HttpMethod(method.upper())
        except (AttributeError, ValueError):
            raise CloudPlugsParameterError(f"Unsupported method: {method!r}") from None
        if auth and self._credentials is None:
            raise CloudPlugsLoginError("Request requires credentials")
        for line in headers or ():
            split_header_line(line)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return RequestDescriptor(
            method=http_method,
            url=build_url(self._base_url, path, query),
            headers=tuple(headers or ()),
            body=body,
        )

    def _perform(self, request: RequestDescriptor) -> RawResponse:
        auth_lines = self._credentials.header_lines() if self._credentials else ()
        try:
            return self._loop.run_until_complete(
                self._http.execute(
                    request,
                    auth_lines=auth_lines,
                    timeout=self._timeout,
                    verify_tls=self._verify_tls,
                    ca_file=self._ca_file,
                )
            )
        except CloudPlugsClientError as err:
            return RawResponse(status=0, body=b"", error=err.code)

    def _finish(self, raw: RawResponse, *, data: JsonValue = None) -> CloudPlugsResult:
        self._last_http_status = raw.status
        self._last_error = raw.error
        return CloudPlugsResult(
            ok=raw.ok,
            status=raw.status,
            error=raw.error,
            body=raw.body,
            data=data,
            transport_error=raw.transport_error,
        )
