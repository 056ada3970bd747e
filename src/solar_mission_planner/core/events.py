"""Typed events produced by decoding inbound topic messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class PositionUpdate:
    """New vehicle coordinates from the status topic."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    text: str


@dataclass(frozen=True, slots=True)
class HistoryAppended:
    text: str


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Raw progress/duration strings; the numeric percent is derived by the store."""

    progress_text: str
    duration_text: str


@dataclass(frozen=True, slots=True)
class DecodeFailed:
    """A payload on a known topic that could not be decoded."""

    topic: str
    payload: bytes
    reason: str


@dataclass(frozen=True, slots=True)
class Unrecognized:
    topic: str


MissionEvent = Union[
    PositionUpdate,
    StatusUpdate,
    HistoryAppended,
    ProgressUpdate,
    DecodeFailed,
    Unrecognized,
]

__all__ = [
    "DecodeFailed",
    "HistoryAppended",
    "MissionEvent",
    "PositionUpdate",
    "ProgressUpdate",
    "StatusUpdate",
    "Unrecognized",
]
