"""HTTP request executor for the CloudPlugs REST service."""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from enum import Enum

import aiohttp
from yarl import URL

from .errors import (
    SUCCESS_STATUSES,
    CloudPlugsContentLengthError,
    ErrorCode,
)
from .protocol import CONTENT_TYPE_JSON, split_header_line

_LOGGER = logging.getLogger(__name__)

# Redirects followed for a single request
MAX_REDIRECTS = 1


class HttpMethod(str, Enum):
    """HTTP methods used by the CloudPlugs API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """A single composed request, discarded once the call returns."""

    method: HttpMethod
    url: str
    headers: tuple[str, ...] = ()
    body: bytes | None = None


@dataclass(frozen=True, slots=True)
class RawResponse:
    """Outcome of one exchange before any JSON decoding.

    ``status`` is 0 when no HTTP response was received. ``transport_error``
    carries the transport's message in that case and ``body`` holds the same
    text encoded as UTF-8.
    """

    status: int
    body: bytes
    error: ErrorCode | None = None
    transport_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ResponseBuffer:
    """Receive buffer bounded by the response's declared content length.

    The buffer is sized on the first write from the declared length. A write
    that would exceed the declared length empties the buffer and is refused.
    """

    def __init__(self) -> None:
        self.declared_length: int | None = None
        self._body: bytearray | None = None
        self._offset = 0

    @property
    def received_length(self) -> int:
        return self._offset

    def open(self, declared_length: int | None) -> None:
        """Size the buffer from the transport-declared length."""
        if declared_length is None or declared_length < 0:
            raise CloudPlugsContentLengthError("Response has no declared content length")
        self.declared_length = declared_length
        self._body = bytearray(declared_length)
        self._offset = 0

    def write(self, chunk: bytes, declared_length: int | None) -> int:
        """Store a chunk and return the number of bytes accepted.

        Raises:
            CloudPlugsContentLengthError: No declared length is available on
                the first chunk, or the chunk overflows the declared length.
        """
        if self._body is None:
            self.open(declared_length)
        assert self._body is not None
        assert self.declared_length is not None

        end = self._offset + len(chunk)
        if end > self.declared_length:
            self.reset()
            raise CloudPlugsContentLengthError(
                f"Received {end} bytes, declared {self.declared_length}"
            )
        self._body[self._offset : end] = chunk
        self._offset = end
        return len(chunk)

    def reset(self) -> None:
        self._body = bytearray()
        self.declared_length = 0
        self._offset = 0

    def getvalue(self) -> bytes:
        if self._body is None:
            return b""
        return bytes(self._body[: self._offset])


def _ssl_option(verify_tls: bool, ca_file: str | None) -> bool | ssl.SSLContext:
    if not verify_tls:
        return False
    if ca_file:
        return ssl.create_default_context(cafile=ca_file)
    return True


def _header_pairs(lines: tuple[str, ...]) -> list[tuple[str, str]]:
    return [split_header_line(line) for line in lines]


class CloudPlugsHttpClient:
    """Executes one HTTP exchange per call over an aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession) -> None:
        self._session = session

    async def execute(
        self,
        request: RequestDescriptor,
        *,
        auth_lines: tuple[str, ...] = (),
        timeout: float,
        verify_tls: bool = True,
        ca_file: str | None = None,
    ) -> RawResponse:
        """Perform the request and stream its body into a bounded buffer.

        The content type line follows the caller's header lines and the
        authentication lines come last. Transport failures are reported in
        the returned RawResponse and never raised.
        """
        headers = _header_pairs(request.headers)
        headers.append(split_header_line(CONTENT_TYPE_JSON))
        headers.extend(_header_pairs(auth_lines))

        _LOGGER.debug("%s %s", request.method.value, request.url)
        status = 0
        buffer = ResponseBuffer()
        try:
            async with self._session.request(
                request.method.value,
                URL(request.url, encoded=True),
                headers=headers,
                data=request.body,
                timeout=aiohttp.ClientTimeout(connect=timeout),
                ssl=_ssl_option(verify_tls, ca_file),
                allow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                skip_auto_headers=("Accept-Encoding",),
            ) as resp:
                status = resp.status
                try:
                    async for chunk in resp.content.iter_any():
                        buffer.write(chunk, resp.content_length)
                except CloudPlugsContentLengthError as err:
                    _LOGGER.warning(
                        "%s %s: %s", request.method.value, request.url, err
                    )
                    return RawResponse(
                        status=status, body=b"", error=ErrorCode.INVALID_CONTENT_LENGTH
                    )
                except (MemoryError, OverflowError):
                    _LOGGER.warning(
                        "%s %s: cannot allocate %s bytes",
                        request.method.value,
                        request.url,
                        resp.content_length,
                    )
                    return RawResponse(
                        status=status, body=b"", error=ErrorCode.OUT_OF_MEMORY
                    )
        except TimeoutError:
            return self._transport_failure(request, "Request timed out")
        except (aiohttp.ClientError, OSError) as err:
            return self._transport_failure(request, str(err) or type(err).__name__)
        except ValueError as err:
            # aiohttp refuses header or URL text it cannot send
            _LOGGER.warning("%s %s rejected: %s", request.method.value, request.url, err)
            return RawResponse(status=0, body=b"", error=ErrorCode.INVALID_PARAMETER)

        body = buffer.getvalue()
        _LOGGER.debug(
            "%s %s -> %s (%d bytes)", request.method.value, request.url, status, len(body)
        )
        if status in SUCCESS_STATUSES:
            return RawResponse(status=status, body=body)
        return RawResponse(status=status, body=body, error=ErrorCode.HTTP)

    @staticmethod
    def _transport_failure(request: RequestDescriptor, message: str) -> RawResponse:
        _LOGGER.warning("%s %s failed: %s", request.method.value, request.url, message)
        return RawResponse(
            status=0,
            body=message.encode("utf-8"),
            error=ErrorCode.HTTP,
            transport_error=message,
        )
