"""Command line entry point: config, logging, mission link and UI (or headless) wiring."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG_PATH, AppConfig, BrokerSettings, load_config
from .core import (
    BrokerEndpoint,
    MissionLinkSession,
    MissionStateStore,
    MissionStateView,
    TransportConnectionError,
)
from .logging_config import LoggingSetupResult, configure_logging
from .shutdown import ShutdownCoordinator
from .ui import MissionPlannerApp

logger = logging.getLogger(__name__)

BROKER_URL_ENV_VAR = "SOLAR_MISSION_BROKER_URL"
LOG_CONFIG_ENV_VAR = "SOLAR_MISSION_LOG_CONFIG"
LOG_DIR_ENV_VAR = "SOLAR_MISSION_LOG_DIR"

SHUTDOWN_GRACE_SECONDS = 3.0


def _first_path(*candidates: Optional[Path | str]) -> Optional[Path]:
    """Return the first candidate that is set, as an expanded path."""
    for candidate in candidates:
        if candidate:
            return Path(candidate).expanduser()
    return None


def _setup_logging(parser: argparse.ArgumentParser, args: argparse.Namespace) -> LoggingSetupResult:
    try:
        result = configure_logging(
            level=args.log_level,
            console=not args.no_log_console,
            log_dir=_first_path(args.log_dir, os.getenv(LOG_DIR_ENV_VAR)),
            config_path=_first_path(args.log_config, os.getenv(LOG_CONFIG_ENV_VAR)),
        )
    except FileNotFoundError as exc:
        parser.error(f"日志配置文件不存在: {exc}")
    except (ValueError, OSError) as exc:
        parser.error(f"日志系统初始化失败: {exc}")

    logger.info("日志目录：%s", result.directory)
    for name, path in result.handler_files.items():
        logger.debug("日志文件 [%s] -> %s", name, path)
    return result


def _log_uncaught_exceptions() -> None:
    previous_hook = sys.excepthook

    def _hook(exc_type: type[BaseException], exc_value: BaseException, exc_traceback) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.critical("未捕获的异常，程序即将退出", exc_info=(exc_type, exc_value, exc_traceback))
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = _hook


def _create_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    return parser


def _create_parser(config: AppConfig) -> argparse.ArgumentParser:
    """Full parser; every default comes from *config* (or the environment) so flags always win."""

    parser = argparse.ArgumentParser(
        prog="solar-mission-planner",
        description="Solar vehicle mission planner and telemetry monitor",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="TOML 配置文件路径。")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="不启动终端界面，仅连接任务链路并将遥测变化写入日志。",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=config.poll_interval,
        help="界面刷新任务状态的间隔（秒）。",
    )

    link = parser.add_argument_group("mission link")
    link.add_argument(
        "--broker-url",
        default=os.getenv(BROKER_URL_ENV_VAR) or config.broker.url,
        help=f"MQTT 消息代理地址，例如 ws://host:9001 或 mqtt://host:1883（环境变量 {BROKER_URL_ENV_VAR}）。",
    )
    link.add_argument("--client-id", default=config.broker.client_id, help="MQTT 客户端 ID，留空则由代理分配。")

    mission = parser.add_argument_group("mission state")
    mission.add_argument(
        "--history-limit",
        type=int,
        default=config.mission.history_limit,
        help="任务历史最多保留的条数，默认不限制。",
    )
    mission.add_argument(
        "--sample-limit",
        type=int,
        default=config.mission.sample_limit,
        help="进度曲线最多保留的采样点数，默认不限制。",
    )
    mission.add_argument(
        "--export-dir",
        type=Path,
        default=config.mission.export_dir,
        help="mission_waypoints.csv 的导出目录，默认为当前目录。",
    )

    logs = parser.add_argument_group("logging")
    logs.add_argument("--log-level", default=config.logging.level, help="日志级别，例如 INFO、DEBUG。")
    logs.add_argument(
        "--log-dir",
        type=Path,
        default=config.logging.directory,
        help=f"日志输出目录（环境变量 {LOG_DIR_ENV_VAR}），默认使用系统日志目录。",
    )
    logs.add_argument(
        "--log-config",
        type=Path,
        default=config.logging.config,
        help=f"TOML/JSON 日志配置文件（环境变量 {LOG_CONFIG_ENV_VAR}）。",
    )
    logs.add_argument(
        "--no-log-console",
        action="store_true",
        default=config.logging.no_console,
        help="只写日志文件，不输出到终端。",
    )
    return parser


def _make_store(parser: argparse.ArgumentParser, args: argparse.Namespace) -> MissionStateStore:
    try:
        return MissionStateStore(history_limit=args.history_limit, sample_limit=args.sample_limit)
    except ValueError as exc:
        parser.error(f"任务状态配置无效: {exc}")


def _make_session(store: MissionStateStore, config: AppConfig, args: argparse.Namespace) -> MissionLinkSession:
    options = config.broker.session_kwargs()
    options["client_id"] = args.client_id or ""
    return MissionLinkSession(store, **options)


def _log_view_change(view: MissionStateView) -> None:
    position = view.vehicle_position
    logger.info(
        "状态: %s | 进度 %s (%s) | 位置 %s | 历史 %d 条 | 解码失败 %d",
        view.mission_status,
        view.progress,
        view.duration,
        "-" if position is None else f"{position.latitude:.6f},{position.longitude:.6f}",
        len(view.history),
        view.decode_failures,
    )


def _stop_app(app: MissionPlannerApp) -> None:
    # Teardown steps run on a worker thread; the app must be stopped from its own loop.
    if getattr(app, "is_running", False):
        try:
            app.call_from_thread(app.exit)
            return
        except RuntimeError:
            logger.debug("无法在界面线程中退出，改为直接调用 exit", exc_info=True)
    app.exit()


def _check_broker_url(parser: argparse.ArgumentParser, broker_url: str) -> None:
    try:
        BrokerEndpoint.from_url(broker_url)
    except ValueError as exc:
        parser.error(f"消息代理地址无效: {exc}")


def _connect_with_retry(
    session: MissionLinkSession,
    broker_url: str,
    shutdown: ShutdownCoordinator,
    *,
    min_delay: float,
    max_delay: float,
) -> bool:
    """Keep trying to connect, backing off exponentially, until connected or shut down.

    Returns ``False`` when the shutdown was requested before a connection was made.
    """

    delay = min_delay
    while not shutdown.triggered:
        try:
            session.connect(broker_url)
            return True
        except TransportConnectionError as exc:
            if shutdown.triggered:
                break
            logger.error("任务链路不可用: %s；%.1f 秒后重试", exc, delay)
        if shutdown.wait(timeout=delay):
            break
        delay = min(delay * 2, max_delay)
    return False


def _run_headless(
    session: MissionLinkSession,
    store: MissionStateStore,
    broker_url: str,
    broker: BrokerSettings,
) -> None:
    unsubscribe = store.subscribe(_log_view_change)
    try:
        with ShutdownCoordinator() as shutdown:
            shutdown.add_step("close mission link", session.close)
            connected = _connect_with_retry(
                session,
                broker_url,
                shutdown,
                min_delay=broker.reconnect_min_delay,
                max_delay=broker.reconnect_max_delay,
            )
            if connected:
                logger.info("无界面模式运行中，按 Ctrl+C 退出")
                while not shutdown.wait(timeout=0.5):
                    pass
    finally:
        unsubscribe()
        session.close()


def _run_ui(session: MissionLinkSession, store: MissionStateStore, args: argparse.Namespace) -> None:
    app = MissionPlannerApp(
        store=store,
        session=session,
        broker_url=args.broker_url,
        poll_interval=args.poll_interval,
        export_dir=_first_path(args.export_dir),
    )

    with ShutdownCoordinator() as shutdown:
        shutdown.add_step("close mission link", session.close)
        shutdown.add_step("exit ui", lambda: _stop_app(app))
        try:
            app.run()
        except KeyboardInterrupt:
            shutdown.request_shutdown("用户中断 (Ctrl+C)")
        finally:
            if not shutdown.triggered:
                shutdown.request_shutdown("界面已退出")
            shutdown.wait(timeout=SHUTDOWN_GRACE_SECONDS)
            session.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    config_parser = _create_config_parser()
    known, remaining = config_parser.parse_known_args(argv)
    try:
        config = load_config(known.config)
    except ValueError as exc:
        config_parser.error(f"配置文件无效: {exc}")

    parser = _create_parser(config)
    args = parser.parse_args(remaining)
    _setup_logging(parser, args)
    _log_uncaught_exceptions()

    _check_broker_url(parser, args.broker_url)
    store = _make_store(parser, args)
    session = _make_session(store, config, args)
    if args.headless:
        _run_headless(session, store, args.broker_url, config.broker)
    else:
        _run_ui(session, store, args)


__all__ = ["main"]
