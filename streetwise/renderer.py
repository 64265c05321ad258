"""
Terminal renderer for the Streetwise view

Draws the active-incident feed, the map summary and the buddy chat panel
with rich.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.box import ROUNDED

from streetwise.map_surface import (
    ESCORT_REQUESTS,
    ROAD_SEGMENTS,
    SECURITY_PINS,
    MapSurface,
    report_color,
)
from streetwise.models import ChatMessage, SecurityReport


TYPE_ICONS = {
    "theft": "💰",
    "harassment": "🚫",
    "lights": "💡",
}


def format_age(age_hours: Optional[float]) -> str:
    if age_hours is None:
        return "-"
    return f"{round(age_hours, 1)} hours ago"


def format_coordinates(latitude: Optional[float], longitude: Optional[float]) -> str:
    if latitude is None or longitude is None:
        return "-"
    return f"{latitude:.4f}, {longitude:.4f}"


def feed_rows(reports: List[SecurityReport]) -> List[Tuple[str, str, str, str]]:
    """One (label, age, description, coordinates) row per report"""
    return [
        (
            report.type or "other",
            format_age(report.age_hours),
            report.description or "No description",
            format_coordinates(report.latitude, report.longitude),
        )
        for report in reports
    ]


class StreetwiseRenderer:
    """Renders view state to a rich console"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def feed_table(
        self,
        reports: List[SecurityReport],
        last_updated: Optional[datetime] = None,
        is_refreshing: bool = False,
    ) -> Table:
        caption = "Refreshing..." if is_refreshing else None
        if last_updated is not None and not is_refreshing:
            caption = f"Last updated {last_updated.astimezone().strftime('%H:%M:%S')}"

        table = Table(title="Active Incidents", caption=caption, box=ROUNDED, show_lines=False)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Type")
        table.add_column("Reported", style="dim")
        table.add_column("Description")
        table.add_column("Coordinates", style="dim")

        for report, (label, age, description, coordinates) in zip(reports, feed_rows(reports)):
            icon = TYPE_ICONS.get(label, "⚠️")
            # Server text is shown verbatim, never parsed as markup
            table.add_row(
                Text(str(report.id)),
                Text(f"{icon} {label}", style=report_color(report.type)),
                age,
                Text(description),
                coordinates,
            )

        if not reports:
            table.add_row("", "", "", Text("No active incidents", style="dim"), "")

        return table

    def map_panel(self, map_surface: MapSurface) -> Panel:
        body = Text()
        body.append(map_surface.title, style="bold")
        body.append(f"\nCenter: {map_surface.center.lat:.4f}, {map_surface.center.lng:.4f}  Zoom: {map_surface.zoom}")
        body.append(f"\nSecurity pins: {map_surface.feature_count(SECURITY_PINS)}")
        body.append(f"\nBuddy requests: {map_surface.feature_count(ESCORT_REQUESTS)}")
        if map_surface.markers:
            labels = " ".join(marker.label for marker in map_surface.markers)
            body.append(f"\nPins: {labels}")
        if map_surface.feature_count(ROAD_SEGMENTS):
            body.append("\nRoad segment drawn")
        pulses = map_surface.pulses
        if pulses:
            body.append(f"\n{len(pulses)} buddy request(s) pulsing", style="green")
        return Panel(body, title="🗺  Streetwise Map", border_style="cyan")

    def map_unavailable_panel(self, reason: Optional[str] = None) -> Panel:
        body = Text()
        body.append("Map unavailable", style="red")
        body.append("\n\n")
        if reason:
            body.append(f"{reason}\n\n")
        body.append("Check the map access token and run ")
        body.append("streetwise watch", style="cyan")
        body.append(" again to reload.")
        return Panel(body, title="🗺  Streetwise Map", border_style="red")

    def chat_panel(self, report: SecurityReport, messages: List[ChatMessage], draft: str = "") -> Panel:
        body = Table.grid(padding=(0, 1))
        body.add_column(style="dim")
        body.add_column()
        for message in messages:
            body.add_row(Text(f"user {message.user_id}"), Text(message.message or ""))
        if not messages:
            body.add_row("", Text("No messages yet", style="dim"))

        parts = [body]
        if draft:
            parts.append(Text(f"> {draft}", style="cyan"))

        return Panel(
            Group(*parts),
            title=Text(f"Buddy chat · {report.type or 'report'} #{report.id}"),
            border_style="blue",
        )

    def print_feed(self, reports: List[SecurityReport], last_updated=None, is_refreshing: bool = False) -> None:
        self.console.print(self.feed_table(reports, last_updated, is_refreshing))

    def print_map(self, map_surface: MapSurface) -> None:
        if map_surface.ready:
            self.console.print(self.map_panel(map_surface))
        else:
            self.console.print(self.map_unavailable_panel(map_surface.error))

    def print_chat(self, report: SecurityReport, messages: List[ChatMessage], draft: str = "") -> None:
        self.console.print(self.chat_panel(report, messages, draft))
