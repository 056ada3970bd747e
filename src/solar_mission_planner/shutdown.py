"""Signal-driven teardown for the mission planner runtime."""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType
from typing import Any, Callable, Iterable, List, Optional, Tuple, cast

LOGGER = logging.getLogger(__name__)

TeardownStep = Tuple[str, Callable[[], None]]


class ShutdownCoordinator:
    """Run registered teardown steps exactly once, newest first.

    Steps are registered as the runtime is assembled (for example "close the
    mission link", then "exit the UI") and unwound in reverse when a signal
    arrives or :meth:`request_shutdown` is called. A failing step is logged
    and the remaining steps still run.
    """

    def __init__(self, *, signals_to_handle: Optional[Iterable[int]] = None) -> None:
        if signals_to_handle is None:
            default_signals = [signal.SIGINT, signal.SIGTERM]
            if hasattr(signal, "SIGHUP"):
                default_signals.append(getattr(signal, "SIGHUP"))
            signals_to_handle = default_signals

        self._signals = [sig for sig in signals_to_handle if isinstance(sig, int)]
        self._previous_handlers: dict[int, Any] = {}
        self._steps: List[TeardownStep] = []
        self._lock = threading.Lock()
        self._requested = threading.Event()
        self._finished = threading.Event()
        self._reason: Optional[str] = None

    def __enter__(self) -> "ShutdownCoordinator":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.restore()
        if exc_type is KeyboardInterrupt:
            self.request_shutdown("用户中断 (Ctrl+C)")
            return True
        return False

    @property
    def triggered(self) -> bool:
        """Whether a shutdown has been requested."""
        return self._requested.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def install(self) -> None:
        """Install signal handlers that trigger the teardown."""
        for sig in self._signals:
            try:
                self._previous_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)
            except (OSError, RuntimeError, ValueError) as exc:  # pragma: no cover - platform specific
                LOGGER.debug("跳过信号 %s: %s", sig, exc)

    def restore(self) -> None:
        """Restore the handlers that were active before :meth:`install`."""
        for sig, handler in self._previous_handlers.items():
            try:
                signal.signal(sig, cast(signal.Handlers, handler))
            except (OSError, RuntimeError, ValueError):  # pragma: no cover - platform specific
                LOGGER.debug("恢复信号 %s 失败", sig)
        self._previous_handlers.clear()

    def add_step(self, name: str, callback: Callable[[], None]) -> None:
        """Register a teardown step.

        If the teardown has already been requested, the step is executed straight away
        on a background thread.
        """
        with self._lock:
            late = self._requested.is_set()
            if not late:
                self._steps.append((name, callback))
        if late:
            threading.Thread(target=self._run_steps, args=([(name, callback)],), name="shutdown-late-step", daemon=True).start()

    def request_shutdown(self, reason: str) -> None:
        """Start the teardown; later calls are ignored."""
        with self._lock:
            if self._requested.is_set():
                LOGGER.debug("关闭流程已在进行中，忽略: %s", reason)
                return
            self._requested.set()
            self._reason = reason
            steps = list(reversed(self._steps))
            self._steps.clear()
        LOGGER.info("触发关闭：%s", reason)
        threading.Thread(target=self._run_all, args=(steps,), name="shutdown-steps", daemon=True).start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every teardown step has run or *timeout* elapses."""
        return self._finished.wait(timeout)

    def _handle_signal(self, signum: int, _frame: Optional[FrameType]) -> None:  # pragma: no cover - signal handler
        try:
            name = signal.Signals(signum).name
        except ValueError:  # pragma: no cover - defensive fallback
            name = str(signum)
        self.request_shutdown(f"收到系统信号 {name}")

    def _run_all(self, steps: List[TeardownStep]) -> None:
        try:
            self._run_steps(steps)
        finally:
            self._finished.set()

    @staticmethod
    def _run_steps(steps: List[TeardownStep]) -> None:
        for name, callback in steps:
            try:
                callback()
            except Exception:  # noqa: BLE001
                LOGGER.exception("关闭步骤 %s 执行失败", name)
            else:
                LOGGER.debug("关闭步骤 %s 已完成", name)


__all__ = ["ShutdownCoordinator"]
