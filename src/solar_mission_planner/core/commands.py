"""Outbound mission command serialisation."""

from __future__ import annotations

import enum
import json
import logging
from typing import Any, Iterable, Protocol

from .errors import DecodeError, EncodeError
from .state import Waypoint
from .store import MissionStateStore
from .topics import MISSION_CONTROL_TOPIC, MISSION_TOPIC

logger = logging.getLogger(__name__)


class MissionControlAction(str, enum.Enum):
    """Operator intents carried on the mission control topic."""

    ABORT = "abort"
    PAUSE = "pause"
    RESUME = "resume"


class MissionPublisher(Protocol):
    def publish(self, topic: str, payload: bytes) -> None: ...


def encode_send_mission(waypoints: Iterable[Waypoint]) -> bytes:
    """Serialise the full waypoint plan, in flight order, as the mission command body.

    Raises:
        EncodeError: If a coordinate cannot be represented in JSON (NaN/inf).
    """

    body = {"waypoints": [waypoint.to_dict() for waypoint in waypoints]}
    return _dump(body)


def decode_mission_command(payload: bytes | str) -> tuple[Waypoint, ...]:
    """Inverse of :func:`encode_send_mission`."""

    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise DecodeError(MISSION_TOPIC, f"payload is not valid JSON ({exc})") from exc
    if not isinstance(data, dict) or not isinstance(data.get("waypoints"), list):
        raise DecodeError(MISSION_TOPIC, "expected an object with a 'waypoints' list")

    waypoints: list[Waypoint] = []
    for index, item in enumerate(data["waypoints"]):
        try:
            waypoints.append(Waypoint(latitude=float(item["lat"]), longitude=float(item["lng"])))
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeError(MISSION_TOPIC, f"waypoint #{index} is malformed: {item!r}") from exc
    return tuple(waypoints)


def encode_mission_control(action: MissionControlAction | str) -> bytes:
    try:
        resolved = MissionControlAction(action)
    except ValueError as exc:
        raise EncodeError(f"unknown mission control action: {action!r}") from exc
    return _dump({"command": resolved.value})


def _dump(body: dict[str, Any]) -> bytes:
    try:
        text = json.dumps(body, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"无法序列化任务指令: {exc}") from exc
    return text.encode("utf-8")


class MissionCommander:
    """Turns operator intents into published commands on an injected session."""

    def __init__(self, session: MissionPublisher, store: MissionStateStore) -> None:
        self._session = session
        self._store = store

    def send_mission(self) -> int:
        """Publish the current waypoint plan and return the number of waypoints sent.

        Errors from the session (e.g. ``NotConnectedError``) propagate so the
        operator can be told and retry by hand.
        """

        waypoints = self._store.snapshot().waypoints
        payload = encode_send_mission(waypoints)
        self._session.publish(MISSION_TOPIC, payload)
        logger.info("已发送任务，共 %d 个航点", len(waypoints))
        return len(waypoints)

    def send_control(self, action: MissionControlAction | str) -> None:
        payload = encode_mission_control(action)
        self._session.publish(MISSION_CONTROL_TOPIC, payload)
        logger.info("已发送任务控制指令: %s", MissionControlAction(action).value)


__all__ = [
    "MissionCommander",
    "MissionControlAction",
    "MissionPublisher",
    "decode_mission_command",
    "encode_mission_control",
    "encode_send_mission",
]
