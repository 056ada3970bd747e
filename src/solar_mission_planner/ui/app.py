"""Textual UI application for the solar mission planner."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import Button, DataTable, Footer, Header, Input, ListItem, ListView, Sparkline, Static

from ..core import (
    ConnectionState,
    EncodeError,
    MissionCommander,
    MissionControlAction,
    MissionLinkSession,
    MissionStateStore,
    MissionStateView,
    NotConnectedError,
    TransportConnectionError,
    WaypointPlanner,
    export_csv,
)

logger = logging.getLogger(__name__)


class MissionPlannerApp(App):
    """Terminal front-end: plan waypoints, dispatch the mission, watch telemetry."""

    CSS_PATH = Path(__file__).with_name("mission_planner.tcss")
    TITLE = "Solar Mission Planner"
    FIELD_COLUMN_KEY = "field"
    VALUE_COLUMN_KEY = "value"

    BINDINGS = [
        ("ctrl+s", "send_mission", "Send mission"),
        ("ctrl+e", "export_csv", "Export CSV"),
        ("ctrl+r", "connect", "Reconnect"),
        ("ctrl+x", "abort_mission", "Abort mission"),
    ]

    LINK_STYLES = {
        ConnectionState.CONNECTED: "bold green",
        ConnectionState.CONNECTING: "bold yellow",
        ConnectionState.DISCONNECTED: "bold red",
        ConnectionState.CLOSED: "dim",
    }

    def __init__(
        self,
        *,
        store: MissionStateStore,
        session: MissionLinkSession,
        broker_url: str,
        poll_interval: float = 1.0,
        export_dir: Optional[Path] = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._session = session
        self._broker_url = broker_url
        self._poll_interval = poll_interval
        self._export_dir = export_dir
        self._planner = WaypointPlanner(store)
        self._commander = MissionCommander(session, store)
        self._status_timer: Optional[Timer] = None
        self._rendered: Optional[MissionStateView] = None

    def compose(self) -> ComposeResult:
        telemetry_panel = Vertical(
            DataTable(id="status_table"),
            Static("Mission Progress", classes="panel-title"),
            Sparkline([], summary_function=max, id="progress_chart"),
            Static("Mission History", classes="panel-title"),
            ListView(id="history_list"),
            id="telemetry_panel",
        )
        plan_panel = Vertical(
            Static("Flight Plan", classes="panel-title"),
            ListView(id="waypoint_list"),
            Horizontal(
                Input(placeholder="latitude", id="latitude_input"),
                Input(placeholder="longitude", id="longitude_input"),
                id="coordinate_inputs",
            ),
            Horizontal(
                Button("Add", id="waypoint_add", variant="primary"),
                Button("Send", id="mission_send", variant="success"),
                Button("Export", id="mission_export"),
                Button("Clear", id="waypoint_clear", variant="warning"),
                Button("Connect", id="link_connect"),
                id="plan_actions",
            ),
            id="plan_panel",
        )

        yield Header(show_clock=True)
        yield Horizontal(telemetry_panel, plan_panel, id="content_area")
        yield Footer()

    async def on_mount(self) -> None:
        table = self.query_one("#status_table", DataTable)
        table.add_column("Field", key=self.FIELD_COLUMN_KEY)
        table.add_column("Value", key=self.VALUE_COLUMN_KEY)
        self._add_rows(table)
        self._status_timer = self.set_interval(self._poll_interval, self._tick, name="mission_poll")
        self._tick()
        self.run_worker(self._connect_link(), group="mission_link")

    async def on_unmount(self) -> None:
        if self._status_timer is not None:
            self._status_timer.stop()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._session.close)

    def _add_rows(self, table: DataTable) -> None:
        table.add_row("Mission Link", self._link_text(self._session.state), key="link_state")
        table.add_row("Mission Status", "", key="mission_status")
        table.add_row("Progress", "", key="progress")
        table.add_row("Duration", "", key="duration")
        table.add_row("Vehicle Position", "", key="vehicle_position")
        table.add_row("Waypoints", "0", key="waypoint_count")
        table.add_row("Decode Failures", "0", key="decode_failures")
        table.add_row("Last Error", Text("—", style="dim"), key="last_error")

    async def _connect_link(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._session.connect, self._broker_url)
        except TransportConnectionError as exc:
            self.notify(f"Mission link unavailable: {exc}", severity="error")
        except ValueError as exc:
            self.notify(f"Invalid broker URL: {exc}", severity="error")
        else:
            self.notify(f"Connected to {self._broker_url}", severity="information")
        self._tick()

    def _tick(self) -> None:
        view = self._store.snapshot()
        table = self.query_one("#status_table", DataTable)
        table.update_cell("link_state", self.VALUE_COLUMN_KEY, self._link_text(self._session.state))
        if view is self._rendered:
            return

        previous = self._rendered
        self._rendered = view
        table.update_cell("mission_status", self.VALUE_COLUMN_KEY, Text(view.mission_status, style="bold"))
        table.update_cell("progress", self.VALUE_COLUMN_KEY, view.progress)
        table.update_cell("duration", self.VALUE_COLUMN_KEY, view.duration)
        table.update_cell("vehicle_position", self.VALUE_COLUMN_KEY, self._position_text(view))
        table.update_cell("waypoint_count", self.VALUE_COLUMN_KEY, str(len(view.waypoints)))
        table.update_cell("decode_failures", self.VALUE_COLUMN_KEY, str(view.decode_failures))
        table.update_cell(
            "last_error",
            self.VALUE_COLUMN_KEY,
            Text(view.last_error, style="bold red") if view.last_error else Text("—", style="dim"),
        )

        self.query_one("#progress_chart", Sparkline).data = view.chart_data()["values"]
        if previous is None or previous.history is not view.history:
            self._refresh_list("#history_list", list(view.history), "No mission history yet")
        if previous is None or previous.waypoints is not view.waypoints:
            self._refresh_list(
                "#waypoint_list",
                [
                    f"{index:02d} · {wp.latitude:.6f}, {wp.longitude:.6f}"
                    for index, wp in enumerate(view.waypoints, start=1)
                ],
                "No waypoints yet",
            )

    def _refresh_list(self, selector: str, entries: list[str], empty_label: str) -> None:
        list_view = self.query_one(selector, ListView)
        list_view.clear()
        if not entries:
            list_view.append(ListItem(Static(empty_label, classes="list-empty")))
            return
        for entry in entries:
            list_view.append(ListItem(Static(entry, classes="list-entry")))

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "waypoint_add":
            self._add_waypoint_from_inputs()
        elif button_id == "mission_send":
            self.action_send_mission()
        elif button_id == "mission_export":
            self.action_export_csv()
        elif button_id == "waypoint_clear":
            if not self._store.snapshot().waypoints:
                self.notify("Flight plan already empty.", severity="warning")
                return
            self._planner.clear()
            self.notify("Cleared all waypoints.", severity="information")
        elif button_id == "link_connect":
            self.action_connect()
        self._tick()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._add_waypoint_from_inputs()
        self._tick()

    def _add_waypoint_from_inputs(self) -> None:
        lat_input = self.query_one("#latitude_input", Input)
        lng_input = self.query_one("#longitude_input", Input)
        try:
            latitude = float(lat_input.value)
            longitude = float(lng_input.value)
        except ValueError:
            self.notify("Latitude and longitude must be numbers.", severity="warning")
            return
        waypoint = self._planner.on_map_interaction(latitude, longitude)
        lat_input.value = ""
        lng_input.value = ""
        lat_input.focus()
        if not waypoint.in_range:
            self.notify("Waypoint is outside the valid coordinate range; kept as entered.", severity="warning")

    def action_send_mission(self) -> None:
        try:
            count = self._commander.send_mission()
        except NotConnectedError as exc:
            self.notify(f"Mission not sent: {exc}. Reconnect and retry.", severity="error")
        except EncodeError as exc:
            self.notify(f"Mission could not be encoded: {exc}", severity="error")
        else:
            self.notify(f"Sent mission with {count} waypoints.", severity="information")

    def action_abort_mission(self) -> None:
        try:
            self._commander.send_control(MissionControlAction.ABORT)
        except NotConnectedError as exc:
            self.notify(f"Abort not sent: {exc}", severity="error")
        else:
            self.notify("Abort command sent.", severity="warning")

    def action_export_csv(self) -> None:
        try:
            path = export_csv(self._store.snapshot().waypoints, self._export_dir)
        except ValueError:
            self.notify("No waypoints to export yet.", severity="warning")
        except OSError as exc:
            logger.exception("导出航点失败")
            self.notify(f"Export failed: {exc}", severity="error")
        else:
            self.notify(f"Exported flight plan → {path}", severity="information")

    def action_connect(self) -> None:
        if self._session.is_connected:
            self.notify("Mission link already connected.", severity="information")
            return
        if self._session.state is ConnectionState.CONNECTING:
            self.notify("Connection attempt already in progress.", severity="warning")
            return
        self.run_worker(self._connect_link(), group="mission_link")

    @classmethod
    def _link_text(cls, state: ConnectionState) -> Text:
        return Text(state.value.upper(), style=cls.LINK_STYLES.get(state, "bold"))

    @staticmethod
    def _position_text(view: MissionStateView) -> Text:
        position = view.vehicle_position
        if position is None:
            return Text("—", style="dim")
        return Text(f"{position.latitude:.6f}, {position.longitude:.6f}", style="cyan")


__all__ = ["MissionPlannerApp"]
