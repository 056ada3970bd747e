"""Ground-control mission planner for a solar-powered vehicle."""

from __future__ import annotations

from importlib import metadata

from .core import (
    MissionCommander,
    MissionLinkSession,
    MissionStateStore,
    MissionStateView,
    Waypoint,
    WaypointPlanner,
)
from .ui import MissionPlannerApp

try:
    __version__ = metadata.version("solar-mission-planner")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
    __version__ = "0.0.0"

__all__ = [
    "MissionCommander",
    "MissionLinkSession",
    "MissionPlannerApp",
    "MissionStateStore",
    "MissionStateView",
    "Waypoint",
    "WaypointPlanner",
    "__version__",
]
