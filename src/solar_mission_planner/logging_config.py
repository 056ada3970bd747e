"""Logging setup for the mission planner: rotating files, optional console, per-logger levels."""

from __future__ import annotations

import json
import logging
import logging.config
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import tomli as tomllib
from platformdirs import user_log_dir

LOGGER = logging.getLogger(__name__)

APP_NAME = "solar-mission-planner"
APP_AUTHOR = "SolarMission"
CORE_LOGGER = "solar_mission_planner.core"

FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] [%(name)s] %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROTATE_BYTES = 5 * 1024 * 1024
ROTATE_BACKUPS = 5


@dataclass
class FileHandlerSettings:
    """One rotating log file.

    ``logger`` names the logger the file is attached to; ``None`` attaches
    it to the root logger.
    """

    filename: str
    level: str = "INFO"
    max_bytes: int = ROTATE_BYTES
    backup_count: int = ROTATE_BACKUPS
    formatter: str = "file"
    logger: Optional[str] = None

    @classmethod
    def from_mapping(cls, name: str, raw: Any) -> "FileHandlerSettings":
        if not isinstance(raw, Mapping):
            raise ValueError(f"日志处理器 '{name}' 必须是表结构")
        if not raw.get("filename"):
            raise ValueError(f"日志处理器 '{name}' 缺少 filename")
        return cls(
            filename=str(raw["filename"]),
            level=str(raw.get("level", "INFO")).upper(),
            max_bytes=int(raw.get("max_bytes", ROTATE_BYTES)),
            backup_count=int(raw.get("backup_count", ROTATE_BACKUPS)),
            formatter=str(raw.get("formatter", "file")),
            logger=str(raw["logger"]) if raw.get("logger") else None,
        )

    def path_in(self, directory: Path) -> Path:
        return directory / self.filename

    def dict_config(self, directory: Path) -> Dict[str, Any]:
        """Handler entry for :func:`logging.config.dictConfig`."""
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "level": self.level,
            "formatter": self.formatter,
            "filename": str(self.path_in(directory)),
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


def _default_handlers() -> Dict[str, FileHandlerSettings]:
    return {
        "runtime": FileHandlerSettings(filename="mission-planner.log", level="DEBUG"),
        "errors": FileHandlerSettings(filename="mission-planner-errors.log", level="ERROR"),
        # decode failures, partial progress updates and link drops
        "telemetry": FileHandlerSettings(filename="mission-telemetry.log", level="WARNING", logger=CORE_LOGGER),
    }


@dataclass
class LoggingSettings:
    """Everything :func:`configure_logging` needs to build the logging tree."""

    level: str = "INFO"
    console: bool = True
    directory: Optional[Path] = None
    format: str = FILE_FORMAT
    datefmt: str = DATE_FORMAT
    handlers: Dict[str, FileHandlerSettings] = field(default_factory=_default_handlers)
    # paho reports every reconnect attempt at INFO
    loggers: Dict[str, str] = field(default_factory=lambda: {"paho": "WARNING"})

    @classmethod
    def default(cls) -> "LoggingSettings":
        return cls()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "LoggingSettings":
        """Build settings from a parsed TOML/JSON document; missing keys keep their defaults.

        A ``handlers`` table replaces the default files entirely, while a
        ``loggers`` table is merged into the default level map.
        """
        settings = cls()
        settings.level = str(mapping.get("level", settings.level)).upper()
        settings.console = bool(mapping.get("console", settings.console))
        settings.format = str(mapping.get("format", settings.format))
        settings.datefmt = str(mapping.get("datefmt", settings.datefmt))
        if mapping.get("directory"):
            settings.directory = Path(str(mapping["directory"]))

        handlers = mapping.get("handlers")
        if isinstance(handlers, Mapping):
            settings.handlers = {
                str(name): FileHandlerSettings.from_mapping(str(name), raw)
                for name, raw in handlers.items()
            }

        loggers = mapping.get("loggers")
        if loggers is not None:
            if not isinstance(loggers, Mapping):
                raise ValueError("'loggers' 必须是 日志名 -> 级别 的映射")
            settings.loggers.update({str(name): str(level).upper() for name, level in loggers.items()})
        return settings

    def merge_overrides(
        self,
        *,
        level: Optional[str] = None,
        console: Optional[bool] = None,
        directory: Optional[Path] = None,
    ) -> None:
        """Apply command line values on top of the file settings."""
        if level is not None:
            self.level = level.upper()
        if console is not None:
            self.console = console
        if directory is not None:
            self.directory = directory


@dataclass(frozen=True)
class LoggingSetupResult:
    directory: Path
    handler_files: Dict[str, Path]


def _read_settings_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    if suffix in {".toml", ".tml"}:
        with path.open("rb") as stream:
            return tomllib.load(stream)
    if suffix == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    raise ValueError(f"不支持的日志配置格式: {path.suffix or path.name}")


def _resolve_directory(directory: Optional[Path]) -> Path:
    target = directory if directory is not None else Path(user_log_dir(APP_NAME, APP_AUTHOR))
    target.mkdir(parents=True, exist_ok=True)
    return target


def _build_dict_config(settings: LoggingSettings, directory: Path) -> Dict[str, Any]:
    file_formatter = {"format": settings.format, "datefmt": settings.datefmt}
    formatters = {handler.formatter: dict(file_formatter) for handler in settings.handlers.values()}
    formatters.setdefault("file", dict(file_formatter))

    handlers: Dict[str, Any] = {}
    root_handlers: List[str] = []
    loggers: Dict[str, Dict[str, Any]] = {name: {"level": level} for name, level in settings.loggers.items()}

    for name, handler in settings.handlers.items():
        handlers[name] = handler.dict_config(directory)
        if handler.logger is None:
            root_handlers.append(name)
        else:
            # named loggers keep propagating, so their records also reach the root files
            loggers.setdefault(handler.logger, {}).setdefault("handlers", []).append(name)

    if settings.console:
        formatters["console"] = {"format": CONSOLE_FORMAT, "datefmt": settings.datefmt}
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": settings.level,
            "formatter": "console",
            "stream": "ext://sys.stderr",
        }
        root_handlers.append("console")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": settings.level, "handlers": root_handlers},
    }


def configure_logging(
    *,
    level: Optional[str] = None,
    console: Optional[bool] = None,
    log_dir: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> LoggingSetupResult:
    """Configure the logging tree from defaults, an optional settings file and CLI overrides.

    Raises:
        FileNotFoundError: If *config_path* does not exist.
        ValueError: If the settings file has an unsupported format or invalid content.
    """

    if config_path is None:
        settings = LoggingSettings.default()
    else:
        settings = LoggingSettings.from_mapping(_read_settings_file(config_path))
    settings.merge_overrides(level=level, console=console, directory=log_dir)

    directory = _resolve_directory(settings.directory)
    logging.config.dictConfig(_build_dict_config(settings, directory))

    handler_files = {name: handler.path_in(directory) for name, handler in settings.handlers.items()}
    LOGGER.debug("日志配置完成: directory=%s handlers=%s", directory, handler_files)
    return LoggingSetupResult(directory=directory, handler_files=handler_files)


__all__ = [
    "APP_NAME",
    "CORE_LOGGER",
    "FileHandlerSettings",
    "LoggingSettings",
    "LoggingSetupResult",
    "configure_logging",
]
