"""Tests for device, channel and data resource calls."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from cloudplugs import CloudPlugsApi, CloudPlugsSession, ErrorCode

Respond = Callable[..., AsyncMock]

BASE = "http://api.cloudplugs.com/"


@pytest.fixture
def api(session: CloudPlugsSession) -> CloudPlugsApi:
    return CloudPlugsApi(session)


@pytest.fixture
def device_api(device_session: CloudPlugsSession) -> CloudPlugsApi:
    return CloudPlugsApi(device_session)


@pytest.fixture
def master_api(session: CloudPlugsSession) -> CloudPlugsApi:
    session.set_auth("me@example.com", "masterpw", True)
    return CloudPlugsApi(session)


def sent(mock_client: MagicMock) -> tuple[str, str, Any, list[str]]:
    """Return (method, url, decoded body, header names) of the last request."""
    args, kwargs = mock_client.request.call_args
    data = kwargs["data"]
    body = json.loads(data) if data is not None else None
    return args[0], str(args[1]), body, [name for name, _ in kwargs["headers"]]


class TestEnrollment:
    def test_enroll_product_adopts_credentials(
        self,
        api: CloudPlugsApi,
        session: CloudPlugsSession,
        mock_client: MagicMock,
        respond: Respond,
    ) -> None:
        """A successful production enrollment authenticates the session."""
        respond(201, b'{"id":"dev-new","auth":"code9"}')

        result = api.enroll_product("model1", "hw-1", "pw", props={"color": "red"})

        assert result.ok
        method, url, body, headers = sent(mock_client)
        assert method == "POST"
        assert url == BASE + "iot/device"
        assert body == {"model": "model1", "hwid": "hw-1", "pass": "pw", "props": {"color": "red"}}
        assert "X-Plug-Id" not in headers
        assert session.get_plug_id() == "dev-new"
        assert session.auth_password == "code9"

    def test_enroll_product_failure_keeps_credentials(
        self, device_api: CloudPlugsApi, device_session: CloudPlugsSession, respond: Respond
    ) -> None:
        respond(400, b'{"err":"bad model"}')

        result = device_api.enroll_product("model1", "hw-1", "pw")

        assert not result.ok
        assert device_session.auth_id == "dev-abc123"

    @pytest.mark.parametrize(("model", "hwid", "password"), [("", "h", "p"), ("m", None, "p")])
    def test_enroll_product_invalid(
        self,
        api: CloudPlugsApi,
        session: CloudPlugsSession,
        mock_client: MagicMock,
        model: str,
        hwid: str | None,
        password: str,
    ) -> None:
        result = api.enroll_product(model, hwid, password)

        assert result.error is ErrorCode.INVALID_PARAMETER
        assert session.last_error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called

    def test_enroll_prototype(
        self, master_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b'{"id":"dev-proto","auth":"a1"}')

        result = master_api.enroll_prototype("proto", perm={"read": "all"})

        assert result.ok
        method, url, body, headers = sent(mock_client)
        assert method == "POST"
        assert url == BASE + "iot/device"
        assert body == {"name": "proto", "perm": {"read": "all"}}
        assert headers[-2:] == ["X-Plug-Email", "X-Plug-Master"]
        assert master_api.session.is_master

    def test_enroll_prototype_requires_master(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        result = device_api.enroll_prototype("proto")

        assert result.error is ErrorCode.INVALID_LOGIN
        assert not mock_client.request.called

    def test_enroll_ctrl(
        self,
        api: CloudPlugsApi,
        session: CloudPlugsSession,
        mock_client: MagicMock,
        respond: Respond,
    ) -> None:
        respond(200, b'{"id":"ctrl-1","auth":"c"}')

        result = api.enroll_ctrl("model1", "dev-target", "pw", name="remote")

        assert result.ok
        method, url, body, _ = sent(mock_client)
        assert method == "PUT"
        assert url == BASE + "iot/device"
        assert body == {"model": "model1", "ctrl": "dev-target", "pass": "pw", "name": "remote"}
        assert session.auth_id == "ctrl-1"

    def test_enroll_ctrl_rejected_for_device_session(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        result = device_api.enroll_ctrl("model1", "dev-target", "pw")

        assert result.error is ErrorCode.INVALID_LOGIN
        assert not mock_client.request.called

    def test_enroll_generic_picks_method(
        self, master_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        master_api.enroll({"model": "m", "ctrl": "dev-1", "pass": "p"})
        assert sent(mock_client)[0] == "PUT"

        master_api.enroll({"name": "proto"})
        assert sent(mock_client)[0] == "POST"

    def test_control_device(
        self,
        device_api: CloudPlugsApi,
        device_session: CloudPlugsSession,
        mock_client: MagicMock,
        respond: Respond,
    ) -> None:
        respond(200, b'{"id":"ctrl-2","auth":"z"}')

        result = device_api.control_device("model1", "dev-target", "pw")

        assert result.ok
        method, _, body, _ = sent(mock_client)
        assert method == "PUT"
        assert body == {"model": "model1", "ctrl": "dev-target", "pass": "pw"}
        assert device_session.auth_id == "ctrl-2"

    def test_uncontrol_device(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        device_api.uncontrol_device(controlled=["dev-a", "dev-b"])

        method, url, body, _ = sent(mock_client)
        assert method == "DELETE"
        assert url == BASE + "iot/device/dev-abc123"
        assert body == ["dev-a", "dev-b"]

    def test_uncontrol_all(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        device_api.uncontrol_device("dev-ctrl")

        _, url, body, _ = sent(mock_client)
        assert url == BASE + "iot/device/dev-ctrl"
        assert body is None

    def test_unenroll_defaults_to_session_device(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        device_api.unenroll()

        method, url, body, _ = sent(mock_client)
        assert method == "DELETE"
        assert url == BASE + "iot/device"
        assert body == "dev-abc123"

    def test_unenroll_without_device_identity(
        self, master_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        result = master_api.unenroll()

        assert result.error is ErrorCode.INVALID_LOGIN
        assert not mock_client.request.called


class TestDevices:
    def test_get_device(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b'{"name":"kitchen"}')

        result = device_api.get_device()

        assert result.data == {"name": "kitchen"}
        method, url, body, _ = sent(mock_client)
        assert (method, url, body) == ("GET", BASE + "iot/device/dev-abc123", None)

    def test_get_device_email_session_needs_id(
        self, master_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        """Without a device identity an explicit plug id is required."""
        result = master_api.get_device()

        assert result.error is ErrorCode.INVALID_LOGIN
        assert not mock_client.request.called

    def test_set_device(
        self, master_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        master_api.set_device({"name": "lamp"}, plug_id="dev-9")

        method, url, body, _ = sent(mock_client)
        assert (method, url, body) == ("PATCH", BASE + "iot/device/dev-9", {"name": "lamp"})

    def test_device_props(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"{}")

        device_api.get_device_prop()
        assert sent(mock_client)[1] == BASE + "iot/device/dev-abc123/"

        device_api.set_device_prop("blue", prop="color")
        method, url, body, _ = sent(mock_client)
        assert (method, url, body) == ("PATCH", BASE + "iot/device/dev-abc123/color", "blue")

        device_api.remove_device_prop("color")
        method, url, _, _ = sent(mock_client)
        assert (method, url) == ("DELETE", BASE + "iot/device/dev-abc123/color")

    def test_set_all_props_requires_object(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        result = device_api.set_device_prop("blue")

        assert result.error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called

    def test_set_location(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        """Negative optional values are left out of the location."""
        respond(200, b"{}")

        device_api.set_device_location(12.5, 41.9, altitude=-1, accuracy=10, timestamp=1500000000)

        method, url, body, _ = sent(mock_client)
        assert method == "PATCH"
        assert url == BASE + "iot/device/dev-abc123/location"
        assert body == {"x": 12.5, "y": 41.9, "r": 10, "t": 1500000000}

    @pytest.mark.parametrize(("lon", "lat"), [(181, 0), (0, -91), (float("nan"), 0)])
    def test_set_location_out_of_range(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, lon: float, lat: float
    ) -> None:
        result = device_api.set_device_location(lon, lat)

        assert result.error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called

    def test_get_location(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b'{"x":1,"y":2}')

        result = device_api.get_device_location("dev-7")

        assert result.data == {"x": 1, "y": 2}
        assert sent(mock_client)[1] == BASE + "iot/device/dev-7/location"


class TestChannelsAndData:
    def test_get_channel_all(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b'["a","b"]')

        result = device_api.get_channel()

        assert result.data == ["a", "b"]
        assert sent(mock_client)[1] == BASE + "iot/channel"

    def test_get_channel_query(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        """Offset and limit are sent only when non-zero."""
        respond(200, b"[]")

        device_api.get_channel("home/+", of="dev-1", offset=0, limit=5)

        assert sent(mock_client)[1] == BASE + "iot/channel/home%2F%2B?of=dev-1&limit=5"

    def test_retrieve_data(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b'[{"data":1}]')

        result = device_api.retrieve_data("temperature", after=1500000000, limit=10)

        assert result.data == [{"data": 1}]
        method, url, _, _ = sent(mock_client)
        assert method == "GET"
        assert url == BASE + "iot/data/temperature?after=1500000000&limit=10"

    def test_retrieve_data_requires_mask(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        assert device_api.retrieve_data("").error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called

    def test_publish_wraps_plain_object(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(201, b'{"id":"o1"}')

        result = device_api.publish_data({"celsius": 21.5}, channel="temperature")

        assert result.ok
        assert result.data == {"id": "o1"}
        method, url, body, _ = sent(mock_client)
        assert method == "PUT"
        assert url == BASE + "iot/data/temperature"
        assert body == {"data": {"celsius": 21.5}}

    def test_publish_entry_with_data_field(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(201, b"{}")

        device_api.publish_data({"data": 5, "at": 1500000000}, channel="temperature")

        assert sent(mock_client)[2] == {"data": 5, "at": 1500000000}

    def test_publish_many(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(201, b'["o1","o2"]')

        device_api.publish_data([{"channel": "a", "data": 1}, {"channel": "b", "data": 2}])

        _, url, body, _ = sent(mock_client)
        assert url == BASE + "iot/data"
        assert len(body) == 2

    def test_publish_invalid_body(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        assert device_api.publish_data(42).error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called

    def test_remove_data(
        self, device_api: CloudPlugsApi, mock_client: MagicMock, respond: Respond
    ) -> None:
        respond(200, b"1")

        result = device_api.remove_data("temperature", before=1500000000)

        assert result.data == 1
        method, url, body, _ = sent(mock_client)
        assert method == "DELETE"
        assert url == BASE + "iot/data/temperature"
        assert body == {"before": 1500000000}

    def test_remove_data_requires_selector(
        self, device_api: CloudPlugsApi, mock_client: MagicMock
    ) -> None:
        result = device_api.remove_data("temperature", of="dev-1")

        assert result.error is ErrorCode.INVALID_PARAMETER
        assert not mock_client.request.called
