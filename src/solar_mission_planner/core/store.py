"""Authoritative in-memory mission state.

Writers are serialised by a lock and build a fresh :class:`MissionStateView`
for every change; the reference is then swapped in one assignment. Readers
call :meth:`MissionStateStore.snapshot` without locking and always see either
the state before an update or the state after it.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from dataclasses import replace
from typing import Callable, Optional

from .errors import DecodeError, MissionLinkError, PartialUpdateError
from .events import (
    DecodeFailed,
    HistoryAppended,
    MissionEvent,
    PositionUpdate,
    ProgressUpdate,
    StatusUpdate,
    Unrecognized,
)
from .state import MissionStateView, ProgressSample, VehiclePosition, Waypoint

logger = logging.getLogger(__name__)

StateListener = Callable[[MissionStateView], None]


# Leading decimal number, as a browser's parseFloat reads it; the rest of the text is ignored.
_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def parse_progress_percent(progress_text: str) -> float:
    """Turn ``"42%"`` into ``42.0``.

    The first ``%`` is removed and the leading number is read, so
    ``"45.5% complete"`` gives ``45.5`` and ``"1_000%"`` gives ``1.0``.

    Raises:
        PartialUpdateError: If the text does not start with a finite number.
    """

    match = _LEADING_NUMBER.match(progress_text.replace("%", "", 1))
    if match is None:
        raise PartialUpdateError("progress", progress_text)
    value = float(match.group(0))
    if not math.isfinite(value):
        raise PartialUpdateError("progress", progress_text)
    return value


class MissionStateStore:
    """Owns the mission aggregate and applies decoded events to it."""

    def __init__(
        self,
        *,
        history_limit: Optional[int] = None,
        sample_limit: Optional[int] = None,
    ) -> None:
        for name, limit in (("history_limit", history_limit), ("sample_limit", sample_limit)):
            if limit is not None and limit <= 0:
                raise ValueError(f"{name} must be positive, got {limit}")
        self._history_limit = history_limit
        self._sample_limit = sample_limit
        self._view = MissionStateView.empty()
        self._write_lock = threading.Lock()
        self._listeners: list[StateListener] = []
        self._listeners_lock = threading.Lock()
        self._last_error: Optional[MissionLinkError] = None

    def snapshot(self) -> MissionStateView:
        """Return the current immutable view. Never blocks."""
        return self._view

    @property
    def last_error(self) -> Optional[MissionLinkError]:
        """Most recent decode or partial-update error, if any."""
        return self._last_error

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for change notifications and return an unsubscribe callable."""

        with self._listeners_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, event: MissionEvent) -> MissionStateView:
        """Apply one event and return the resulting view."""

        with self._write_lock:
            current = self._view
            updated = self._reduce(current, event)
            if updated is current:
                return current
            self._view = updated
        self._notify(updated)
        return updated

    def add_waypoint(self, latitude: float, longitude: float) -> Waypoint:
        """Append a waypoint to the end of the flight plan."""

        waypoint = Waypoint(latitude=float(latitude), longitude=float(longitude))
        with self._write_lock:
            updated = self._view.with_waypoints(self._view.waypoints + (waypoint,))
            self._view = updated
        self._notify(updated)
        return waypoint

    def clear_waypoints(self) -> None:
        with self._write_lock:
            if not self._view.waypoints:
                return
            updated = self._view.with_waypoints(())
            self._view = updated
        self._notify(updated)

    def reset(self) -> None:
        """Drop everything and return to the initial mission state."""

        with self._write_lock:
            updated = MissionStateView.empty()
            self._view = updated
            self._last_error = None
        logger.info("任务状态已重置")
        self._notify(updated)

    def _reduce(self, current: MissionStateView, event: MissionEvent) -> MissionStateView:
        if isinstance(event, PositionUpdate):
            return current.with_position(VehiclePosition(event.latitude, event.longitude))

        if isinstance(event, StatusUpdate):
            return current.with_status(event.text)

        if isinstance(event, HistoryAppended):
            history = (event.text,) + current.history
            if self._history_limit is not None:
                history = history[: self._history_limit]
            return current.with_history(history)

        if isinstance(event, ProgressUpdate):
            return self._reduce_progress(current, event)

        if isinstance(event, DecodeFailed):
            error = DecodeError(event.topic, event.reason)
            self._last_error = error
            logger.warning("丢弃无法解码的 %s 消息: %s", event.topic, event.reason)
            return replace(current, decode_failures=current.decode_failures + 1, last_error=str(error))

        if isinstance(event, Unrecognized):
            logger.debug("忽略未识别主题: %s", event.topic)
            return replace(current, unrecognized_messages=current.unrecognized_messages + 1)

        raise TypeError(f"不支持的事件类型: {type(event).__name__}")

    def _reduce_progress(self, current: MissionStateView, event: ProgressUpdate) -> MissionStateView:
        try:
            value = parse_progress_percent(event.progress_text)
        except PartialUpdateError as exc:
            # raw strings are still shown; only the chart sample is skipped
            self._last_error = exc
            logger.warning("进度值无法解析，仅更新原始字段: %r", event.progress_text)
            updated = current.with_progress(event.progress_text, event.duration_text, current.progress_samples)
            return replace(updated, partial_updates=current.partial_updates + 1, last_error=str(exc))

        samples = current.progress_samples + (ProgressSample(event.duration_text, value),)
        if self._sample_limit is not None:
            samples = samples[-self._sample_limit :]
        return current.with_progress(event.progress_text, event.duration_text, samples)

    def _notify(self, view: MissionStateView) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(view)
            except Exception:  # noqa: BLE001
                logger.exception("状态监听器执行失败")


__all__ = ["MissionStateStore", "StateListener", "parse_progress_percent"]
