"""Tests for the shutdown coordinator."""

from __future__ import annotations

import threading

from solar_mission_planner.shutdown import ShutdownCoordinator


def test_steps_run_once_in_reverse_order() -> None:
    shutdown = ShutdownCoordinator(signals_to_handle=[])
    calls: list[str] = []

    with shutdown:
        shutdown.add_step("close mission link", lambda: calls.append("link"))
        shutdown.add_step("exit ui", lambda: calls.append("ui"))
        shutdown.request_shutdown("test")
        shutdown.request_shutdown("again")
        assert shutdown.wait(timeout=1.0)

    assert shutdown.triggered is True
    assert shutdown.reason == "test"
    assert calls == ["ui", "link"]


def test_failing_step_does_not_stop_the_rest() -> None:
    shutdown = ShutdownCoordinator(signals_to_handle=[])
    reached = threading.Event()

    def _boom() -> None:
        raise RuntimeError("teardown failure")

    shutdown.add_step("release", reached.set)
    shutdown.add_step("broken", _boom)
    shutdown.request_shutdown("test")

    assert shutdown.wait(timeout=1.0)
    assert reached.is_set()


def test_late_steps_run_immediately() -> None:
    shutdown = ShutdownCoordinator(signals_to_handle=[])
    shutdown.request_shutdown("test")
    assert shutdown.wait(timeout=1.0)

    late = threading.Event()
    shutdown.add_step("late", late.set)

    assert late.wait(timeout=1.0)


def test_keyboard_interrupt_inside_context_triggers_shutdown() -> None:
    shutdown = ShutdownCoordinator(signals_to_handle=[])
    released = threading.Event()

    with shutdown:
        shutdown.add_step("release", released.set)
        raise KeyboardInterrupt

    assert shutdown.triggered
    assert released.wait(timeout=1.0)
