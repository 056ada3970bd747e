"""Decode raw topic payloads into typed mission events.

Routing is by exact topic name. Malformed payloads never raise out of
:func:`decode`; they come back as :class:`DecodeFailed` so the inbound
stream keeps flowing.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Mapping

from .errors import DecodeError
from .events import (
    DecodeFailed,
    HistoryAppended,
    MissionEvent,
    PositionUpdate,
    ProgressUpdate,
    StatusUpdate,
    Unrecognized,
)
from .topics import (
    MISSION_HISTORY_TOPIC,
    MISSION_PROGRESS_TOPIC,
    MISSION_STATUS_TOPIC,
    VEHICLE_STATUS_TOPIC,
)

logger = logging.getLogger(__name__)


def decode(topic: str, payload: bytes | bytearray | str) -> MissionEvent:
    """Map a ``(topic, payload)`` pair to a :data:`MissionEvent`."""

    raw = _as_bytes(payload)
    handler = _HANDLERS.get(topic)
    if handler is None:
        logger.debug("忽略未知主题的消息: %s", topic)
        return Unrecognized(topic=topic)

    try:
        return handler(raw)
    except DecodeError as exc:
        logger.debug("解码 %s 消息失败: %s", topic, exc.reason)
        return DecodeFailed(topic=topic, payload=raw, reason=exc.reason)


def decode_vehicle_status(raw: bytes) -> PositionUpdate:
    """Parse ``{"lat": number, "lon": number}``."""

    data = _load_json_object(VEHICLE_STATUS_TOPIC, raw)
    latitude = _coerce_coordinate(VEHICLE_STATUS_TOPIC, data, "lat")
    longitude = _coerce_coordinate(VEHICLE_STATUS_TOPIC, data, "lon")
    return PositionUpdate(latitude=latitude, longitude=longitude)


def decode_mission_status(raw: bytes) -> StatusUpdate:
    return StatusUpdate(text=_as_text(raw))


def decode_mission_history(raw: bytes) -> HistoryAppended:
    return HistoryAppended(text=_as_text(raw))


def decode_mission_progress(raw: bytes) -> ProgressUpdate:
    """Parse ``{"progress": "<n>%", "duration": "<text>"}`` without touching the percent value."""

    data = _load_json_object(MISSION_PROGRESS_TOPIC, raw)
    progress = _require_text(MISSION_PROGRESS_TOPIC, data, "progress")
    duration = _require_text(MISSION_PROGRESS_TOPIC, data, "duration")
    return ProgressUpdate(progress_text=progress, duration_text=duration)


_HANDLERS: dict[str, Callable[[bytes], MissionEvent]] = {
    VEHICLE_STATUS_TOPIC: decode_vehicle_status,
    MISSION_STATUS_TOPIC: decode_mission_status,
    MISSION_HISTORY_TOPIC: decode_mission_history,
    MISSION_PROGRESS_TOPIC: decode_mission_progress,
}


def _as_bytes(payload: bytes | bytearray | str) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def _as_text(raw: bytes) -> str:
    # Plain-text topics never fail; undecodable bytes are replaced.
    return raw.decode("utf-8", errors="replace")


def _load_json_object(topic: str, raw: bytes) -> Mapping[str, Any]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(topic, f"payload is not valid UTF-8 ({exc.reason})") from exc

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise DecodeError(topic, f"payload is not valid JSON ({exc})") from exc

    if not isinstance(data, dict):
        raise DecodeError(topic, f"expected a JSON object, got {type(data).__name__}")
    return data


def _coerce_coordinate(topic: str, data: Mapping[str, Any], key: str) -> float:
    if key not in data:
        raise DecodeError(topic, f"missing field '{key}'")
    value = data[key]
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(topic, f"field '{key}' is not numeric: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise DecodeError(topic, f"field '{key}' is not finite: {value!r}")
    return number


def _require_text(topic: str, data: Mapping[str, Any], key: str) -> str:
    if key not in data:
        raise DecodeError(topic, f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise DecodeError(topic, f"field '{key}' is not a string: {value!r}")
    return value


__all__ = [
    "decode",
    "decode_mission_history",
    "decode_mission_progress",
    "decode_mission_status",
    "decode_vehicle_status",
]
