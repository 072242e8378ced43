"""Error codes, HTTP result codes and client error types for CloudPlugs."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Library error codes recorded as the last error of a session."""

    INTERNAL_ERROR = -1
    OUT_OF_MEMORY = -2
    INVALID_SESSION = -3
    QUERY_NOT_AN_OBJECT = -4
    QUERY_INVALID_TYPE = -5
    HEADERS_MUST_BE_STRING = -6
    INVALID_PARAMETER = -7
    INVALID_LOGIN = -8
    JSON_PARSE = -9
    JSON_ENCODE = -10
    INVALID_CONTENT_LENGTH = -11
    HTTP = -12

    @property
    def message(self) -> str:
        """Human-readable description of the error code."""
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INTERNAL_ERROR: "Internal Library Error",
    ErrorCode.OUT_OF_MEMORY: "Out of memory",
    ErrorCode.INVALID_SESSION: "Invalid session",
    ErrorCode.QUERY_NOT_AN_OBJECT: "Query is not an object",
    ErrorCode.QUERY_INVALID_TYPE: "Query contain invalid type",
    ErrorCode.HEADERS_MUST_BE_STRING: "Header value must be a string",
    ErrorCode.INVALID_PARAMETER: "Invalid parameter",
    ErrorCode.INVALID_LOGIN: "Invalid login",
    ErrorCode.JSON_PARSE: "JSON parse error",
    ErrorCode.JSON_ENCODE: "JSON encode error",
    ErrorCode.INVALID_CONTENT_LENGTH: "Invalid content length",
    ErrorCode.HTTP: "HTTP error",
}


class HttpStatus(IntEnum):
    """HTTP results returned by the CloudPlugs server."""

    OK = 200
    CREATED = 201
    MULTI_STATUS = 207
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503

    @property
    def message(self) -> str:
        """Reason phrase for the status."""
        return _HTTP_MESSAGES[self]


_HTTP_MESSAGES: dict[HttpStatus, str] = {
    HttpStatus.OK: "Ok",
    HttpStatus.CREATED: "Created",
    HttpStatus.MULTI_STATUS: "Multi-Status",
    HttpStatus.BAD_REQUEST: "Bad Request",
    HttpStatus.UNAUTHORIZED: "Unauthorized",
    HttpStatus.PAYMENT_REQUIRED: "Payment Required",
    HttpStatus.FORBIDDEN: "Forbidden",
    HttpStatus.NOT_FOUND: "Not found",
    HttpStatus.NOT_ALLOWED: "Method Not Allowed",
    HttpStatus.NOT_ACCEPTABLE: "Not Acceptable",
    HttpStatus.SERVER_ERROR: "Internal Server Error",
    HttpStatus.NOT_IMPLEMENTED: "Not Implemented",
    HttpStatus.BAD_GATEWAY: "Bad Gateway",
    HttpStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}

SUCCESS_STATUSES: frozenset[int] = frozenset({HttpStatus.OK, HttpStatus.CREATED})


def http_status_message(status: int) -> str | None:
    """Return the reason phrase for a known status, None otherwise."""
    try:
        return HttpStatus(status).message
    except ValueError:
        return None


class CloudPlugsClientError(Exception):
    """Base error for CloudPlugs client failures."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None, *, code: ErrorCode | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message or self.code.message)


class CloudPlugsSessionError(CloudPlugsClientError):
    """Session is closed or its transport handle could not be created."""

    code = ErrorCode.INVALID_SESSION


class CloudPlugsParameterError(CloudPlugsClientError, ValueError):
    """Invalid argument supplied to a session or resource call."""

    code = ErrorCode.INVALID_PARAMETER


class CloudPlugsLoginError(CloudPlugsClientError):
    """Missing or unsuitable credentials for the requested operation."""

    code = ErrorCode.INVALID_LOGIN


class CloudPlugsEncodeError(CloudPlugsClientError):
    """Query, header or body could not be encoded for the wire."""

    code = ErrorCode.JSON_ENCODE


class CloudPlugsDecodeError(CloudPlugsClientError):
    """Response body is not valid JSON.

    ``payload`` holds the diagnostic wrapper handed back to callers.
    """

    code = ErrorCode.JSON_PARSE

    def __init__(self, message: str, payload: dict[str, str]) -> None:
        super().__init__(message)
        self.payload = payload


class CloudPlugsContentLengthError(CloudPlugsClientError):
    """Response body violates its declared content length."""

    code = ErrorCode.INVALID_CONTENT_LENGTH


class CloudPlugsConnectionError(CloudPlugsClientError):
    """Network exchange with the server failed before a response arrived."""

    code = ErrorCode.HTTP


class CloudPlugsResponseError(CloudPlugsClientError):
    """HTTP response error from the server."""

    code = ErrorCode.HTTP

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
