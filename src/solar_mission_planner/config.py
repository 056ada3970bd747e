"""Application configuration loaded from a TOML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/default.toml")
DEFAULT_BROKER_URL = "ws://localhost:9001"


@dataclass
class BrokerSettings:
    """Connection parameters for the MQTT broker."""

    url: str = DEFAULT_BROKER_URL
    client_id: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    keepalive: int = 60
    connect_timeout: float = 10.0
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 30

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "BrokerSettings":
        settings = cls()
        if mapping.get("url"):
            settings.url = str(mapping["url"])
        if "client_id" in mapping:
            settings.client_id = str(mapping["client_id"] or "")
        settings.username = _optional_str(mapping.get("username"))
        settings.password = _optional_str(mapping.get("password"))
        if "keepalive" in mapping:
            settings.keepalive = int(mapping["keepalive"])
        if "connect_timeout" in mapping:
            settings.connect_timeout = float(mapping["connect_timeout"])
        if "reconnect_min_delay" in mapping:
            settings.reconnect_min_delay = int(mapping["reconnect_min_delay"])
        if "reconnect_max_delay" in mapping:
            settings.reconnect_max_delay = int(mapping["reconnect_max_delay"])
        if settings.reconnect_min_delay > settings.reconnect_max_delay:
            raise ValueError("reconnect_min_delay must not exceed reconnect_max_delay")
        return settings

    def session_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :class:`~solar_mission_planner.core.MissionLinkSession`."""

        return {
            "client_id": self.client_id,
            "username": self.username,
            "password": self.password,
            "keepalive": self.keepalive,
            "connect_timeout": self.connect_timeout,
            "reconnect_min_delay": self.reconnect_min_delay,
            "reconnect_max_delay": self.reconnect_max_delay,
        }


@dataclass
class MissionSettings:
    """Bounds and export options for the mission state."""

    history_limit: Optional[int] = None
    sample_limit: Optional[int] = None
    export_dir: Optional[Path] = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "MissionSettings":
        export_dir = _optional_str(mapping.get("export_dir"))
        return cls(
            history_limit=_optional_positive_int(mapping.get("history_limit"), "history_limit"),
            sample_limit=_optional_positive_int(mapping.get("sample_limit"), "sample_limit"),
            export_dir=Path(export_dir).expanduser() if export_dir else None,
        )


@dataclass
class LoggingOptions:
    """The ``[logging]`` section; CLI flags override each field."""

    level: str = "INFO"
    directory: Optional[Path] = None
    config: Optional[Path] = None
    no_console: bool = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "LoggingOptions":
        directory = _optional_str(mapping.get("dir"))
        config = _optional_str(mapping.get("config"))
        return cls(
            level=str(mapping.get("level", "INFO")).upper(),
            directory=Path(directory) if directory else None,
            config=Path(config) if config else None,
            no_console=bool(mapping.get("no_console", False)),
        )


@dataclass
class AppConfig:
    """Full application configuration."""

    poll_interval: float = 1.0
    broker: BrokerSettings = field(default_factory=BrokerSettings)
    mission: MissionSettings = field(default_factory=MissionSettings)
    logging: LoggingOptions = field(default_factory=LoggingOptions)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "AppConfig":
        """Construct the configuration from a parsed TOML document."""

        general = _section(mapping, "general")
        poll_interval = float(general.get("poll_interval", 1.0))
        if poll_interval <= 0:
            raise ValueError("general.poll_interval must be positive")
        return cls(
            poll_interval=poll_interval,
            broker=BrokerSettings.from_mapping(_section(mapping, "broker")),
            mission=MissionSettings.from_mapping(_section(mapping, "mission")),
            logging=LoggingOptions.from_mapping(_section(mapping, "logging")),
        )


def load_config(config_path: Path) -> AppConfig:
    """Load configuration from *config_path*, falling back to defaults if it is missing or unreadable."""

    if not config_path.exists():
        logger.debug("配置文件 %s 不存在，使用默认配置", config_path)
        return AppConfig()
    try:
        with open(config_path, "rb") as stream:
            mapping = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Failed to load config from %s: %s", config_path, exc)
        return AppConfig()
    return AppConfig.from_mapping(mapping)


def _section(mapping: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = mapping.get(name, {})
    if not isinstance(section, Mapping):
        raise ValueError(f"配置段 [{name}] 必须是表结构")
    return section


def _optional_str(value: Any) -> Optional[str]:
    # Empty strings in the config file mean "not set".
    if value is None or value == "":
        return None
    return str(value)


def _optional_positive_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    number = int(value)
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number}")
    return number


__all__ = [
    "AppConfig",
    "BrokerSettings",
    "DEFAULT_BROKER_URL",
    "DEFAULT_CONFIG_PATH",
    "LoggingOptions",
    "MissionSettings",
    "load_config",
]
