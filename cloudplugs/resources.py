"""Device, channel and data calls of the CloudPlugs API.

Every call returns a CloudPlugsResult and never raises for invalid
arguments: those produce an INVALID_PARAMETER failure without any I/O.
Calls that take an optional ``plug_id`` default to the device id the
session is authenticated with.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from .codec import JsonValue
from .errors import CloudPlugsLoginError, ErrorCode
from .http import HttpMethod
from .protocol import (
    KEY_ACCURACY,
    KEY_AFTER,
    KEY_ALTITUDE,
    KEY_AT,
    KEY_BEFORE,
    KEY_CTRL,
    KEY_DATA,
    KEY_HWID,
    KEY_ID,
    KEY_LATITUDE,
    KEY_LIMIT,
    KEY_LONGITUDE,
    KEY_MODEL,
    KEY_NAME,
    KEY_OF,
    KEY_OFFSET,
    KEY_PASS,
    KEY_PERM,
    KEY_PROPS,
    KEY_TIMESTAMP,
    LOCATION,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
    PATH_DEVICE,
    channel_path,
    data_path,
    device_path,
    prop_path,
)
from .session import CloudPlugsResult, CloudPlugsSession

_LOGGER = logging.getLogger(__name__)


def _set_if(target: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = value


class CloudPlugsApi:
    """Resource calls issued through a CloudPlugsSession.

    Usage:
        api = CloudPlugsApi(session)
        api.enroll_product(model="modelid", hwid="serial-1", password="pw")
        api.publish_data({"temperature": 21.5}, channel="home/kitchen")
    """

    def __init__(self, session: CloudPlugsSession) -> None:
        self._session = session

    @property
    def session(self) -> CloudPlugsSession:
        return self._session

    def _invalid(self, reason: str) -> CloudPlugsResult:
        _LOGGER.debug("Rejected call: %s", reason)
        return self._session.record_failure(ErrorCode.INVALID_PARAMETER)

    def _resolve_plug_id(self, plug_id: str | None) -> str:
        return plug_id if plug_id is not None else self._session.get_plug_id()

    def _adopting(self, result: CloudPlugsResult) -> CloudPlugsResult:
        self._session.adopt_auth(result)
        return result

    # -------------------------------------------------------------------------
    # Enrollment
    # -------------------------------------------------------------------------

    def enroll_product(
        self,
        model: str,
        hwid: str,
        password: str,
        props: JsonValue = None,
    ) -> CloudPlugsResult:
        """Enroll a production device; the session adopts its credentials."""
        if not model or not hwid or not password:
            return self._invalid("model, hwid and password are required")
        body: dict[str, Any] = {KEY_MODEL: model, KEY_HWID: hwid, KEY_PASS: password}
        _set_if(body, KEY_PROPS, props)
        result = self._session.request_json(
            HttpMethod.POST, PATH_DEVICE, auth=False, body=body
        )
        return self._adopting(result)

    def enroll_prototype(
        self,
        name: str,
        hwid: str | None = None,
        password: str | None = None,
        perm: JsonValue = None,
        props: JsonValue = None,
    ) -> CloudPlugsResult:
        """Enroll a prototype device; requires master credentials."""
        if not name:
            return self._invalid("name is required")
        if not self._session.is_master:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        body: dict[str, Any] = {KEY_NAME: name}
        _set_if(body, KEY_HWID, hwid)
        _set_if(body, KEY_PERM, perm)
        _set_if(body, KEY_PROPS, props)
        _set_if(body, KEY_PASS, password)
        return self._session.request_json(HttpMethod.POST, PATH_DEVICE, body=body)

    def enroll_ctrl(
        self,
        model: str,
        ctrl: str,
        password: str,
        hwid: str | None = None,
        name: str | None = None,
    ) -> CloudPlugsResult:
        """Enroll a controller device.

        Not allowed while the session is authenticated as a device.
        """
        credentials = self._session.credentials
        if credentials is not None and not credentials.is_email:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        if not model or not ctrl or not password:
            return self._invalid("model, ctrl and password are required")
        body: dict[str, Any] = {KEY_MODEL: model, KEY_CTRL: ctrl, KEY_PASS: password}
        _set_if(body, KEY_HWID, hwid)
        _set_if(body, KEY_NAME, name)
        result = self._session.request_json(
            HttpMethod.PUT, PATH_DEVICE, auth=False, body=body
        )
        return self._adopting(result)

    def enroll(self, body: dict[str, Any]) -> CloudPlugsResult:
        """Generic enrollment: PUT when ``body`` names a device to control, POST otherwise."""
        if not isinstance(body, dict):
            return self._invalid("body must be an object")
        method = HttpMethod.PUT if KEY_CTRL in body else HttpMethod.POST
        return self._session.request_json(method, PATH_DEVICE, body=body)

    def control_device(self, model: str, ctrl: str, password: str) -> CloudPlugsResult:
        """Take control of a device; the session adopts returned credentials."""
        if not model or not ctrl or not password:
            return self._invalid("model, ctrl and password are required")
        body = {KEY_MODEL: model, KEY_CTRL: ctrl, KEY_PASS: password}
        result = self._session.request_json(HttpMethod.PUT, PATH_DEVICE, body=body)
        return self._adopting(result)

    def uncontrol_device(
        self,
        plug_id: str | None = None,
        controlled: str | list[str] | None = None,
    ) -> CloudPlugsResult:
        """Release controlled devices (all of them when ``controlled`` is None)."""
        if controlled is not None and not isinstance(controlled, (str, list)):
            return self._invalid("controlled must be a plug id or a list of plug ids")
        try:
            path = device_path(self._resolve_plug_id(plug_id))
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.DELETE, path, body=controlled)

    def unenroll(self, plug_ids: str | list[str] | None = None) -> CloudPlugsResult:
        """Remove devices; defaults to the device of the session."""
        if plug_ids is None:
            try:
                plug_ids = self._session.get_plug_id()
            except CloudPlugsLoginError:
                return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.DELETE, PATH_DEVICE, body=plug_ids)

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    def get_device(self, plug_id: str | None = None) -> CloudPlugsResult:
        try:
            path = device_path(self._resolve_plug_id(plug_id))
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.GET, path)

    def set_device(self, value: dict[str, Any], plug_id: str | None = None) -> CloudPlugsResult:
        """Modify perm, name, status or props of a device."""
        if value is None:
            return self._invalid("value is required")
        try:
            path = device_path(self._resolve_plug_id(plug_id))
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.PATCH, path, body=value)

    def get_device_prop(
        self, plug_id: str | None = None, prop: str | None = None
    ) -> CloudPlugsResult:
        """Read one property, or all of them when ``prop`` is None."""
        try:
            path = prop_path(self._resolve_plug_id(plug_id), prop)
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.GET, path)

    def set_device_prop(
        self,
        value: JsonValue,
        plug_id: str | None = None,
        prop: str | None = None,
    ) -> CloudPlugsResult:
        """Write one property, or all of them when ``prop`` is None."""
        if value is None:
            return self._invalid("value is required")
        if prop is None and not isinstance(value, dict):
            return self._invalid("value must be an object when no property is named")
        try:
            path = prop_path(self._resolve_plug_id(plug_id), prop)
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.PATCH, path, body=value)

    def remove_device_prop(self, prop: str, plug_id: str | None = None) -> CloudPlugsResult:
        if not prop:
            return self._invalid("prop is required")
        try:
            path = prop_path(self._resolve_plug_id(plug_id), prop)
        except CloudPlugsLoginError:
            return self._session.record_failure(ErrorCode.INVALID_LOGIN)
        return self._session.request_json(HttpMethod.DELETE, path)

    def set_device_location(
        self,
        longitude: float,
        latitude: float,
        altitude: float | None = None,
        accuracy: float | None = None,
        timestamp: float | None = None,
        plug_id: str | None = None,
    ) -> CloudPlugsResult:
        """Write the ``location`` property of a device.

        Negative altitude, accuracy or timestamp are left out, as are
        missing ones.
        """
        if not all(
            isinstance(v, (int, float)) and math.isfinite(v) for v in (longitude, latitude)
        ):
            return self._invalid("longitude and latitude must be finite numbers")
        if not MIN_LONGITUDE <= longitude <= MAX_LONGITUDE:
            return self._invalid("longitude out of range")
        if not MIN_LATITUDE <= latitude <= MAX_LATITUDE:
            return self._invalid("latitude out of range")

        body: dict[str, Any] = {KEY_LONGITUDE: longitude, KEY_LATITUDE: latitude}
        for key, value in (
            (KEY_ACCURACY, accuracy),
            (KEY_ALTITUDE, altitude),
            (KEY_TIMESTAMP, timestamp),
        ):
            if value is not None and value >= 0:
                body[key] = value
        return self.set_device_prop(body, plug_id=plug_id, prop=LOCATION)

    def get_device_location(self, plug_id: str | None = None) -> CloudPlugsResult:
        return self.get_device_prop(plug_id=plug_id, prop=LOCATION)

    # -------------------------------------------------------------------------
    # Channels and data
    # -------------------------------------------------------------------------

    @staticmethod
    def _history_query(
        before: JsonValue,
        after: JsonValue,
        at: JsonValue,
        of: JsonValue,
        offset: int | None,
        limit: int | None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {}
        _set_if(query, KEY_BEFORE, before)
        _set_if(query, KEY_AFTER, after)
        _set_if(query, KEY_AT, at)
        _set_if(query, KEY_OF, of)
        if offset:
            query[KEY_OFFSET] = offset
        if limit:
            query[KEY_LIMIT] = limit
        return query

    def get_channel(
        self,
        channel_mask: str | None = None,
        *,
        before: JsonValue = None,
        after: JsonValue = None,
        at: JsonValue = None,
        of: JsonValue = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> CloudPlugsResult:
        """List channels matching ``channel_mask`` (all channels when None)."""
        query = self._history_query(before, after, at, of, offset, limit)
        return self._session.request_json(
            HttpMethod.GET, channel_path(channel_mask), query=query or None
        )

    def retrieve_data(
        self,
        channel_mask: str,
        *,
        before: JsonValue = None,
        after: JsonValue = None,
        at: JsonValue = None,
        of: JsonValue = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> CloudPlugsResult:
        """Read data already published on the channels matching ``channel_mask``."""
        if not channel_mask:
            return self._invalid("channel_mask is required")
        query = self._history_query(before, after, at, of, offset, limit)
        return self._session.request_json(
            HttpMethod.GET, data_path(channel_mask), query=query or None
        )

    def publish_data(
        self, body: dict[str, Any] | list[Any], channel: str | None = None
    ) -> CloudPlugsResult:
        """Publish one entry (object) or many (list).

        An object without a ``data`` field is published as the data itself.
        Without ``channel`` each entry must name its own channel.
        """
        if isinstance(body, dict):
            payload: JsonValue = body if KEY_DATA in body else {KEY_DATA: body}
        elif isinstance(body, list):
            payload = body
        else:
            return self._invalid("body must be an object or a list")
        return self._session.request_json(HttpMethod.PUT, data_path(channel), body=payload)

    def remove_data(
        self,
        channel_mask: str,
        *,
        id: JsonValue = None,
        before: JsonValue = None,
        after: JsonValue = None,
        at: JsonValue = None,
        of: JsonValue = None,
    ) -> CloudPlugsResult:
        """Delete published data; at least one of id, before, after or at is required."""
        if not channel_mask:
            return self._invalid("channel_mask is required")
        if id is None and before is None and after is None and at is None:
            return self._invalid("one of id, before, after or at is required")
        body: dict[str, Any] = {}
        _set_if(body, KEY_ID, id)
        _set_if(body, KEY_BEFORE, before)
        _set_if(body, KEY_AFTER, after)
        _set_if(body, KEY_AT, at)
        _set_if(body, KEY_OF, of)
        return self._session.request_json(
            HttpMethod.DELETE, data_path(channel_mask), body=body
        )
