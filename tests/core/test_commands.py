"""Unit tests for outbound mission commands."""

from __future__ import annotations

import json

import pytest

from solar_mission_planner.core.commands import (
    MissionCommander,
    MissionControlAction,
    decode_mission_command,
    encode_mission_control,
    encode_send_mission,
)
from solar_mission_planner.core.errors import DecodeError, EncodeError, NotConnectedError
from solar_mission_planner.core.state import Waypoint
from solar_mission_planner.core.store import MissionStateStore


class RecordingSession:
    def __init__(self, *, connected: bool = True) -> None:
        self.connected = connected
        self.published: list[tuple[str, bytes]] = []

    def publish(self, topic: str, payload: bytes) -> None:
        if not self.connected:
            raise NotConnectedError(topic)
        self.published.append((topic, payload))


def test_encode_send_mission_is_compact_json_in_plan_order() -> None:
    payload = encode_send_mission([Waypoint(1.5, 2.5), Waypoint(-3.0, 4.0)])

    assert payload == b'{"waypoints":[{"lat":1.5,"lng":2.5},{"lat":-3.0,"lng":4.0}]}'


def test_empty_mission_round_trips() -> None:
    payload = encode_send_mission([])

    assert json.loads(payload) == {"waypoints": []}
    assert decode_mission_command(payload) == ()


def test_decode_mission_command_restores_waypoints() -> None:
    plan = (Waypoint(10.0, 20.0), Waypoint(10.5, 20.5))

    assert decode_mission_command(encode_send_mission(plan)) == plan


@pytest.mark.parametrize(
    "payload",
    [b"nope", b"[]", b'{"waypoints": {}}', b'{"waypoints": [{"lat": 1}]}'],
)
def test_decode_mission_command_rejects_malformed_payloads(payload: bytes) -> None:
    with pytest.raises(DecodeError) as excinfo:
        decode_mission_command(payload)

    assert excinfo.value.topic == "vehicle/mission"


def test_encode_rejects_non_finite_coordinates() -> None:
    with pytest.raises(EncodeError):
        encode_send_mission([Waypoint(float("nan"), 0.0)])


def test_encode_mission_control() -> None:
    assert encode_mission_control(MissionControlAction.ABORT) == b'{"command":"abort"}'
    assert encode_mission_control("pause") == b'{"command":"pause"}'

    with pytest.raises(EncodeError):
        encode_mission_control("launch")


def test_commander_publishes_current_plan() -> None:
    store = MissionStateStore()
    store.add_waypoint(1.5, 2.5)
    store.add_waypoint(-3.0, 4.0)
    session = RecordingSession()

    sent = MissionCommander(session, store).send_mission()

    assert sent == 2
    topic, payload = session.published[0]
    assert topic == "vehicle/mission"
    assert json.loads(payload) == {"waypoints": [{"lat": 1.5, "lng": 2.5}, {"lat": -3.0, "lng": 4.0}]}


def test_commander_send_control_uses_control_topic() -> None:
    session = RecordingSession()

    MissionCommander(session, MissionStateStore()).send_control(MissionControlAction.RESUME)

    assert session.published == [("vehicle/mission_control", b'{"command":"resume"}')]


def test_commander_propagates_not_connected() -> None:
    store = MissionStateStore()
    store.add_waypoint(1.0, 2.0)
    session = RecordingSession(connected=False)

    with pytest.raises(NotConnectedError):
        MissionCommander(session, store).send_mission()

    assert session.published == []
    assert len(store.snapshot().waypoints) == 1
