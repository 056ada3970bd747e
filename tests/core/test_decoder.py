"""Unit tests for inbound topic decoding."""

from __future__ import annotations

import json

import pytest

from solar_mission_planner.core.decoder import decode
from solar_mission_planner.core.events import (
    DecodeFailed,
    HistoryAppended,
    PositionUpdate,
    ProgressUpdate,
    StatusUpdate,
    Unrecognized,
)


def test_decode_vehicle_status_yields_position() -> None:
    event = decode("vehicle/status", b'{"lat": 37.7749, "lon": -122.4194}')

    assert isinstance(event, PositionUpdate)
    assert event.latitude == pytest.approx(37.7749)
    assert event.longitude == pytest.approx(-122.4194)


def test_decode_vehicle_status_accepts_integer_coordinates_and_extra_fields() -> None:
    payload = json.dumps({"lat": 10, "lon": 20, "battery": 87}).encode("utf-8")

    event = decode("vehicle/status", payload)

    assert event == PositionUpdate(latitude=10.0, longitude=20.0)


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[1, 2]",
        b'{"lat": 1.0}',
        b'{"lat": "1.0", "lon": 2.0}',
        b'{"lat": true, "lon": 2.0}',
        b"\xff\xfe",
    ],
)
def test_decode_vehicle_status_rejects_malformed_payloads(payload: bytes) -> None:
    event = decode("vehicle/status", payload)

    assert isinstance(event, DecodeFailed)
    assert event.topic == "vehicle/status"
    assert event.payload == payload
    assert event.reason


def test_decode_plain_text_topics() -> None:
    assert decode("vehicle/mission_status", b"Mission started") == StatusUpdate(text="Mission started")
    assert decode("vehicle/mission_history", "Waypoint 1 reached") == HistoryAppended(text="Waypoint 1 reached")


def test_decode_plain_text_replaces_invalid_utf8() -> None:
    event = decode("vehicle/mission_status", b"ok \xff")

    assert isinstance(event, StatusUpdate)
    assert event.text.startswith("ok ")
    assert "�" in event.text


def test_decode_progress_keeps_raw_strings() -> None:
    event = decode("vehicle/mission_progress", b'{"progress": "bad", "duration": "10s"}')

    assert event == ProgressUpdate(progress_text="bad", duration_text="10s")


@pytest.mark.parametrize(
    "payload",
    [
        b'{"progress": "42%"}',
        b'{"progress": 42, "duration": "10s"}',
        b'"42%"',
    ],
)
def test_decode_progress_rejects_missing_or_mistyped_fields(payload: bytes) -> None:
    event = decode("vehicle/mission_progress", payload)

    assert isinstance(event, DecodeFailed)
    assert event.topic == "vehicle/mission_progress"


def test_decode_unknown_topic_is_unrecognized() -> None:
    assert decode("vehicle/telemetry", b"{}") == Unrecognized(topic="vehicle/telemetry")
