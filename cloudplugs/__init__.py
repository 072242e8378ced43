"""Client library for the CloudPlugs IoT REST service."""

__version__ = "0.1.0"

from .codec import (
    JsonValue,
    decode_response,
    encode_body,
    encode_headers,
    encode_query,
)
from .config import AuthConfig, SessionConfig, load_session_config
from .errors import (
    CloudPlugsClientError,
    CloudPlugsConnectionError,
    CloudPlugsContentLengthError,
    CloudPlugsDecodeError,
    CloudPlugsEncodeError,
    CloudPlugsLoginError,
    CloudPlugsParameterError,
    CloudPlugsResponseError,
    CloudPlugsSessionError,
    ErrorCode,
    HttpStatus,
)
from .http import HttpMethod
from .protocol import PATH_CHANNEL, PATH_DATA, PATH_DEVICE, PlugCredentials
from .resources import CloudPlugsApi
from .session import CloudPlugsResult, CloudPlugsSession

__all__ = [
    "PATH_CHANNEL",
    "PATH_DATA",
    "PATH_DEVICE",
    "AuthConfig",
    "CloudPlugsApi",
    "CloudPlugsClientError",
    "CloudPlugsConnectionError",
    "CloudPlugsContentLengthError",
    "CloudPlugsDecodeError",
    "CloudPlugsEncodeError",
    "CloudPlugsLoginError",
    "CloudPlugsParameterError",
    "CloudPlugsResponseError",
    "CloudPlugsResult",
    "CloudPlugsSession",
    "CloudPlugsSessionError",
    "ErrorCode",
    "HttpMethod",
    "HttpStatus",
    "JsonValue",
    "PlugCredentials",
    "SessionConfig",
    "__version__",
    "decode_response",
    "encode_body",
    "encode_headers",
    "encode_query",
    "load_session_config",
]
