"""Core mission state models consumed by the UI layer."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

DEFAULT_MISSION_STATUS = "No active mission"
DEFAULT_PROGRESS = "0%"
DEFAULT_DURATION = "0s"


@dataclass(frozen=True, slots=True)
class Waypoint:
    """A single point of the flight plan."""

    latitude: float
    longitude: float

    @property
    def in_range(self) -> bool:
        """Whether the coordinate lies inside the WGS84 latitude/longitude bounds."""
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def to_dict(self) -> dict[str, float]:
        """Serialise using the ``lat``/``lng`` keys of the mission wire format."""
        return {"lat": self.latitude, "lng": self.longitude}


@dataclass(frozen=True, slots=True)
class VehiclePosition:
    """Last known vehicle location as reported on the status topic."""

    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.latitude, "lon": self.longitude}


@dataclass(frozen=True, slots=True)
class ProgressSample:
    """One point of the mission progress time series."""

    elapsed_label: str
    progress_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.elapsed_label, "value": self.progress_percent}


@dataclass(frozen=True, slots=True)
class MissionStateView:
    """Immutable, consistent read of the mission state at one instant."""

    waypoints: tuple[Waypoint, ...] = ()
    vehicle_position: Optional[VehiclePosition] = None
    mission_status: str = DEFAULT_MISSION_STATUS
    history: tuple[str, ...] = ()
    progress_samples: tuple[ProgressSample, ...] = ()
    progress: str = DEFAULT_PROGRESS
    duration: str = DEFAULT_DURATION
    decode_failures: int = 0
    unrecognized_messages: int = 0
    partial_updates: int = 0
    last_error: Optional[str] = None

    @classmethod
    def empty(cls) -> "MissionStateView":
        """Return the state the ground station starts with."""
        return cls()

    def with_waypoints(self, waypoints: tuple[Waypoint, ...]) -> "MissionStateView":
        """Return a copy with the waypoint sequence replaced wholesale."""
        return replace(self, waypoints=waypoints)

    def with_position(self, position: VehiclePosition) -> "MissionStateView":
        return replace(self, vehicle_position=position)

    def with_status(self, status: str) -> "MissionStateView":
        return replace(self, mission_status=status)

    def with_history(self, history: tuple[str, ...]) -> "MissionStateView":
        return replace(self, history=history)

    def with_progress(
        self,
        progress: str,
        duration: str,
        samples: tuple[ProgressSample, ...],
    ) -> "MissionStateView":
        """Return a copy with new raw progress strings and sample series."""
        return replace(self, progress=progress, duration=duration, progress_samples=samples)

    def chart_data(self) -> dict[str, list[Any]]:
        """Return the progress series in the ``labels``/``values`` shape charts expect."""

        return {
            "labels": [sample.elapsed_label for sample in self.progress_samples],
            "values": [sample.progress_percent for sample in self.progress_samples],
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialise the mission state into JSON-friendly primitives."""

        return {
            "waypoints": [waypoint.to_dict() for waypoint in self.waypoints],
            "vehicle_position": None if self.vehicle_position is None else self.vehicle_position.to_dict(),
            "mission_status": self.mission_status,
            "history": list(self.history),
            "progress": self.progress,
            "duration": self.duration,
            "progress_samples": [sample.to_dict() for sample in self.progress_samples],
            "decode_failures": self.decode_failures,
            "unrecognized_messages": self.unrecognized_messages,
            "partial_updates": self.partial_updates,
            "last_error": self.last_error,
        }


__all__ = [
    "DEFAULT_DURATION",
    "DEFAULT_MISSION_STATUS",
    "DEFAULT_PROGRESS",
    "MissionStateView",
    "ProgressSample",
    "VehiclePosition",
    "Waypoint",
]
