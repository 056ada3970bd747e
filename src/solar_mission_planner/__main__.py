"""Allow running the package via ``python -m solar_mission_planner``."""

from __future__ import annotations

from .cli import main


def run() -> None:
    """Entrypoint used by ``python -m solar_mission_planner``."""
    main()


if __name__ == "__main__":  # pragma: no cover
    run()
