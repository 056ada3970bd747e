"""Tests for the TOML application configuration."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from solar_mission_planner.config import DEFAULT_BROKER_URL, AppConfig, load_config

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.toml")

    assert config == AppConfig()
    assert config.broker.url == DEFAULT_BROKER_URL
    assert config.mission.history_limit is None


def test_shipped_default_config_loads() -> None:
    config = load_config(PROJECT_ROOT / "config" / "default.toml")

    assert config.broker.url == "ws://localhost:9001"
    assert config.broker.username is None
    assert config.mission.history_limit is None
    assert config.mission.export_dir is None
    assert config.logging.directory is None


def test_sections_are_parsed(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
        [general]
        poll_interval = 0.5

        [broker]
        url = "wss://broker.example.com/mqtt"
        client_id = "gcs-1"
        username = "pilot"
        password = "secret"
        connect_timeout = 3
        reconnect_max_delay = 60

        [mission]
        history_limit = 50
        sample_limit = 200
        export_dir = "plans"

        [logging]
        level = "debug"
        dir = "logs"
        no_console = true
        """,
    )

    config = load_config(path)

    assert config.poll_interval == pytest.approx(0.5)
    assert config.broker.url == "wss://broker.example.com/mqtt"
    assert config.broker.session_kwargs() == {
        "client_id": "gcs-1",
        "username": "pilot",
        "password": "secret",
        "keepalive": 60,
        "connect_timeout": 3.0,
        "reconnect_min_delay": 1,
        "reconnect_max_delay": 60,
    }
    assert config.mission.history_limit == 50
    assert config.mission.sample_limit == 200
    assert config.mission.export_dir == Path("plans")
    assert config.logging.level == "DEBUG"
    assert config.logging.directory == Path("logs")
    assert config.logging.no_console is True


def test_unparseable_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = _write(tmp_path, "[broker\nurl = ")

    assert load_config(path) == AppConfig()


@pytest.mark.parametrize(
    "content",
    [
        "[general]\npoll_interval = 0\n",
        "[mission]\nhistory_limit = -1\n",
        "[broker]\nreconnect_min_delay = 10\nreconnect_max_delay = 5\n",
        "broker = 'ws://localhost'\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, content: str) -> None:
    path = _write(tmp_path, content)

    with pytest.raises(ValueError):
        load_config(path)
