"""Pytest configuration and fixtures for cloudplugs tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable, Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from cloudplugs import CloudPlugsSession

_UNSET: Any = object()


class FakeStreamReader:
    """Stand-in for aiohttp's StreamReader yielding preset chunks."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = list(chunks)

    async def iter_any(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk


def create_mock_response(
    status: int = 200,
    body: bytes = b"",
    *,
    chunks: list[bytes] | None = None,
    content_length: int | None = _UNSET,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        body: Response body delivered as a single chunk
        chunks: Explicit chunk sequence, overrides body
        content_length: Declared length; defaults to the body length

    Returns:
        Configured AsyncMock response usable with ``async with``
    """
    if chunks is None:
        chunks = [body] if body else []
    if content_length is _UNSET:
        content_length = sum(len(chunk) for chunk in chunks)

    response = AsyncMock()
    response.status = status
    response.content_length = content_length
    response.content = FakeStreamReader(chunks)

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


@pytest.fixture
def mock_client() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def respond(mock_client: MagicMock) -> Callable[..., AsyncMock]:
    """Queue a response for the next request on ``mock_client``."""

    def _respond(status: int = 200, body: bytes = b"", **kwargs: Any) -> AsyncMock:
        response = create_mock_response(status, body, **kwargs)
        mock_client.request.return_value = response
        return response

    return _respond


@pytest.fixture
def session(mock_client: MagicMock) -> Iterator[CloudPlugsSession]:
    """Session wired to the mock client."""
    cps = CloudPlugsSession(client_session=mock_client)
    yield cps
    cps.close()


@pytest.fixture
def device_session(session: CloudPlugsSession) -> CloudPlugsSession:
    """Session authenticated as a device."""
    session.set_auth("dev-abc123", "secret1")
    return session
