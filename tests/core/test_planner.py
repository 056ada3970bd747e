"""Unit tests for waypoint planning and CSV export."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from solar_mission_planner.core.planner import CSV_FILENAME, WaypointPlanner, export_csv, to_csv
from solar_mission_planner.core.state import Waypoint
from solar_mission_planner.core.store import MissionStateStore


def test_map_interaction_appends_in_order() -> None:
    store = MissionStateStore()
    planner = WaypointPlanner(store)

    planner.on_map_interaction(10.0, 20.0)
    planner.on_map_interaction(10.5, 20.5)

    assert planner.waypoints() == (Waypoint(10.0, 20.0), Waypoint(10.5, 20.5))


def test_out_of_range_coordinates_are_kept_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    planner = WaypointPlanner(MissionStateStore())

    with caplog.at_level(logging.WARNING, logger="solar_mission_planner.core.planner"):
        waypoint = planner.on_map_interaction(95.0, 200.0)

    assert waypoint == Waypoint(95.0, 200.0)
    assert not waypoint.in_range
    assert planner.waypoints() == (waypoint,)
    assert caplog.records


def test_clear_empties_the_plan() -> None:
    planner = WaypointPlanner(MissionStateStore())
    planner.on_map_interaction(1.0, 2.0)

    planner.clear()

    assert planner.waypoints() == ()


def test_to_csv_format() -> None:
    text = to_csv([Waypoint(1.5, 2.5), Waypoint(-3.0, 4.0)])

    assert text == "latitude,longitude\n1.5,2.5\n-3,4"


def test_to_csv_header_only_for_empty_plan() -> None:
    assert to_csv([]) == "latitude,longitude"


def test_export_csv_into_directory(tmp_path: Path) -> None:
    path = export_csv([Waypoint(1.5, 2.5)], tmp_path)

    assert path == tmp_path / CSV_FILENAME
    assert path.read_text(encoding="utf-8") == "latitude,longitude\n1.5,2.5"


def test_export_csv_to_explicit_file(tmp_path: Path) -> None:
    target = tmp_path / "plans" / "route.csv"

    path = export_csv([Waypoint(1.0, 2.0)], target)

    assert path == target
    assert target.read_text(encoding="utf-8") == "latitude,longitude\n1,2"


def test_export_csv_defaults_to_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    path = export_csv([Waypoint(1.0, 2.0)])

    assert path.resolve() == (tmp_path / CSV_FILENAME).resolve()
    assert path.exists()


def test_export_csv_requires_waypoints(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        export_csv([], tmp_path)

    assert not (tmp_path / CSV_FILENAME).exists()
