"""Mission telemetry synchronisation core for the solar mission planner."""

from .commands import (
    MissionCommander,
    MissionControlAction,
    decode_mission_command,
    encode_mission_control,
    encode_send_mission,
)
from .decoder import decode
from .errors import (
    DecodeError,
    EncodeError,
    MissionLinkError,
    NotConnectedError,
    PartialUpdateError,
    TransportConnectionError,
)
from .events import (
    DecodeFailed,
    HistoryAppended,
    MissionEvent,
    PositionUpdate,
    ProgressUpdate,
    StatusUpdate,
    Unrecognized,
)
from .planner import CSV_FILENAME, WaypointPlanner, export_csv, to_csv
from .session import BrokerEndpoint, ConnectionState, MissionLinkSession, connect
from .state import MissionStateView, ProgressSample, VehiclePosition, Waypoint
from .store import MissionStateStore, parse_progress_percent

__all__ = [
    "BrokerEndpoint",
    "CSV_FILENAME",
    "ConnectionState",
    "DecodeError",
    "DecodeFailed",
    "EncodeError",
    "HistoryAppended",
    "MissionCommander",
    "MissionControlAction",
    "MissionEvent",
    "MissionLinkError",
    "MissionLinkSession",
    "MissionStateStore",
    "MissionStateView",
    "NotConnectedError",
    "PartialUpdateError",
    "PositionUpdate",
    "ProgressSample",
    "ProgressUpdate",
    "StatusUpdate",
    "TransportConnectionError",
    "Unrecognized",
    "VehiclePosition",
    "Waypoint",
    "WaypointPlanner",
    "connect",
    "decode",
    "decode_mission_command",
    "encode_mission_control",
    "encode_send_mission",
    "export_csv",
    "parse_progress_percent",
    "to_csv",
]
