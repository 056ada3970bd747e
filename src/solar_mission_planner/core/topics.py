"""MQTT topic names shared with the vehicle."""

from __future__ import annotations

VEHICLE_STATUS_TOPIC = "vehicle/status"
MISSION_TOPIC = "vehicle/mission"
MISSION_STATUS_TOPIC = "vehicle/mission_status"
MISSION_HISTORY_TOPIC = "vehicle/mission_history"
MISSION_CONTROL_TOPIC = "vehicle/mission_control"
MISSION_PROGRESS_TOPIC = "vehicle/mission_progress"

# Subscription order matches the order the ground station has always used.
INBOUND_TOPICS: tuple[str, ...] = (
    VEHICLE_STATUS_TOPIC,
    MISSION_STATUS_TOPIC,
    MISSION_HISTORY_TOPIC,
    MISSION_PROGRESS_TOPIC,
)

__all__ = [
    "INBOUND_TOPICS",
    "MISSION_CONTROL_TOPIC",
    "MISSION_HISTORY_TOPIC",
    "MISSION_PROGRESS_TOPIC",
    "MISSION_STATUS_TOPIC",
    "MISSION_TOPIC",
    "VEHICLE_STATUS_TOPIC",
]
