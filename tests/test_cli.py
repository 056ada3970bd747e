"""Tests for command line argument handling."""

from __future__ import annotations

from pathlib import Path

import pytest

from solar_mission_planner.cli import (
    BROKER_URL_ENV_VAR,
    _check_broker_url,
    _connect_with_retry,
    _create_parser,
    _make_session,
    _make_store,
)
from solar_mission_planner.config import AppConfig, BrokerSettings, MissionSettings
from solar_mission_planner.core import ConnectionState, TransportConnectionError
from solar_mission_planner.shutdown import ShutdownCoordinator


def test_parser_defaults_come_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(BROKER_URL_ENV_VAR, raising=False)
    config = AppConfig(
        poll_interval=2.0,
        broker=BrokerSettings(url="mqtt://broker:1883", client_id="gcs-1"),
        mission=MissionSettings(history_limit=10, export_dir=Path("plans")),
    )

    args = _create_parser(config).parse_args([])

    assert args.broker_url == "mqtt://broker:1883"
    assert args.client_id == "gcs-1"
    assert args.poll_interval == pytest.approx(2.0)
    assert args.history_limit == 10
    assert args.sample_limit is None
    assert args.export_dir == Path("plans")
    assert args.headless is False


def test_environment_overrides_config_broker(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(BROKER_URL_ENV_VAR, "ws://env-broker:9001")

    args = _create_parser(AppConfig()).parse_args([])

    assert args.broker_url == "ws://env-broker:9001"


def test_flags_override_everything(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(BROKER_URL_ENV_VAR, "ws://env-broker:9001")

    args = _create_parser(AppConfig()).parse_args(
        ["--broker-url", "wss://cli-broker/mqtt", "--history-limit", "5", "--headless", "--no-log-console"]
    )

    assert args.broker_url == "wss://cli-broker/mqtt"
    assert args.history_limit == 5
    assert args.headless is True
    assert args.no_log_console is True


def test_invalid_store_limits_exit_with_usage_error() -> None:
    parser = _create_parser(AppConfig())
    args = parser.parse_args(["--history-limit", "0"])

    with pytest.raises(SystemExit) as excinfo:
        _make_store(parser, args)

    assert excinfo.value.code == 2


def test_make_session_starts_disconnected() -> None:
    parser = _create_parser(AppConfig())
    args = parser.parse_args(["--client-id", "gcs-2"])
    store = _make_store(parser, args)

    session = _make_session(store, AppConfig(), args)
    try:
        assert session.state is ConnectionState.DISCONNECTED
    finally:
        session.close()
    assert session.state is ConnectionState.CLOSED


def test_malformed_broker_url_exits_with_usage_error() -> None:
    parser = _create_parser(AppConfig())

    with pytest.raises(SystemExit) as excinfo:
        _check_broker_url(parser, "ftp://broker:21")

    assert excinfo.value.code == 2


class FlakySession:
    """Refuses the first ``failures`` connection attempts, then connects."""

    def __init__(self, failures: int, on_attempt=None) -> None:
        self.failures = failures
        self.attempts = 0
        self.on_attempt = on_attempt

    def connect(self, broker_url: str) -> None:
        self.attempts += 1
        if self.on_attempt is not None:
            self.on_attempt()
        if self.attempts <= self.failures:
            raise TransportConnectionError(f"连接 {broker_url} 失败")


def test_headless_connect_keeps_retrying_until_the_broker_answers() -> None:
    session = FlakySession(failures=2)
    shutdown = ShutdownCoordinator(signals_to_handle=[])

    connected = _connect_with_retry(session, "mqtt://broker:1883", shutdown, min_delay=0.01, max_delay=0.02)

    assert connected is True
    assert session.attempts == 3
    assert shutdown.triggered is False


def test_headless_connect_gives_up_once_shutdown_is_requested() -> None:
    shutdown = ShutdownCoordinator(signals_to_handle=[])
    session = FlakySession(failures=100, on_attempt=lambda: shutdown.request_shutdown("测试"))

    connected = _connect_with_retry(session, "mqtt://broker:1883", shutdown, min_delay=5.0, max_delay=5.0)

    assert connected is False
    assert session.attempts == 1
