"""Waypoint planning helpers that sit between operator input and the state store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from .state import Waypoint
from .store import MissionStateStore

logger = logging.getLogger(__name__)

CSV_HEADER = "latitude,longitude"
CSV_FILENAME = "mission_waypoints.csv"


class WaypointPlanner:
    """Converts pointer/coordinate input into appended waypoints."""

    def __init__(self, store: MissionStateStore) -> None:
        self._store = store

    def on_map_interaction(self, latitude: float, longitude: float) -> Waypoint:
        """Append the picked coordinate to the flight plan.

        No range validation is applied; out-of-range coordinates are kept
        as-is and only reported in the log.
        """

        waypoint = self._store.add_waypoint(latitude, longitude)
        if not waypoint.in_range:
            logger.warning(
                "航点坐标超出经纬度范围，仍按原样加入: lat=%s lng=%s",
                waypoint.latitude,
                waypoint.longitude,
            )
        else:
            logger.debug("新增航点 #%d: %s", len(self._store.snapshot().waypoints), waypoint)
        return waypoint

    def waypoints(self) -> tuple[Waypoint, ...]:
        return self._store.snapshot().waypoints

    def clear(self) -> None:
        self._store.clear_waypoints()


def to_csv(waypoints: Iterable[Waypoint]) -> str:
    """Render the plan as ``latitude,longitude`` rows joined by newlines."""

    rows = [CSV_HEADER]
    rows.extend(f"{_format_number(wp.latitude)},{_format_number(wp.longitude)}" for wp in waypoints)
    return "\n".join(rows)


def export_csv(waypoints: Sequence[Waypoint], destination: Path | str | None = None) -> Path:
    """Write the plan to ``mission_waypoints.csv``.

    Args:
        waypoints: The flight plan to export.
        destination: A concrete file path, a directory to place
            ``mission_waypoints.csv`` into, or ``None`` for the current
            working directory.

    Returns:
        Path to the written file.

    Raises:
        ValueError: If there are no waypoints to export.
    """

    if not waypoints:
        raise ValueError("No waypoints available for export.")

    if destination is None:
        output = Path.cwd() / CSV_FILENAME
    else:
        destination_path = Path(destination)
        if destination_path.is_dir():
            output = destination_path / CSV_FILENAME
        else:
            output = destination_path

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(to_csv(waypoints), encoding="utf-8")
    logger.info("已导出 %d 个航点到 %s", len(waypoints), output)
    return output


def _format_number(value: float) -> str:
    # Integral values are written without a fractional part (-3.0 -> "-3").
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


__all__ = ["CSV_FILENAME", "CSV_HEADER", "WaypointPlanner", "export_csv", "to_csv"]
