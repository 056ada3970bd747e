"""Textual front-end for the solar mission planner."""

from .app import MissionPlannerApp

__all__ = ["MissionPlannerApp"]
