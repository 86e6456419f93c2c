"""Screen renderers for the flight dashboard.

Every function here is a pure function of the application state: it reads
the state and builds ``rich`` renderables, nothing else. :func:`render`
picks the screen for the current state.
"""

from __future__ import annotations

import math

from rich.align import Align
from rich.console import Group
from rich.layout import Layout
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.style import Style
from rich.table import Table
from rich.text import Text

from dashboard import settings
from dashboard.state import ApplicationState, Screen
from flights.models import FlightRecord

REDWOOD_LOGO = """
█▀█ █▀▀ █▀▄ █ █ █ █▀█ █▀█ █▀▄
█▀▄ ██▄ █▄▀ ▀▄▀▄▀ █▄█ █▄█ █▄▀
"""

RADAR_COLUMNS = 61
RADAR_ROWS = 23
# updates older than this are shown as stale
STALE_AFTER_SECONDS = 40
KM_PER_DEGREE = 111.0

OPERATOR_COLORS = (
    ("united", "blue"),
    ("southwest", "yellow"),
    ("delta", "#b41428"),
    ("american", "cyan"),
    ("alaska", "#00426e"),
    ("fedex", "#4d148c"),
    ("ups", "#644117"),
)


def _hex_to_rgb(color: str) -> tuple[int, int, int]:
    color = color.lstrip("#")
    if len(color) != 6:
        return (255, 255, 255)
    try:
        return (int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16))
    except ValueError:
        return (255, 255, 255)


def gradient_text(text: str, start_color: str, end_color: str) -> Text:
    """Colour each non-empty line on a vertical gradient between two hex colours."""
    result = Text()
    lines = text.strip("\n").split("\n")
    start = _hex_to_rgb(start_color)
    end = _hex_to_rgb(end_color)
    steps = max(1, len(lines) - 1)
    for index, line in enumerate(lines):
        ratio = index / steps
        r, g, b = (int(s + (e - s) * ratio) for s, e in zip(start, end))
        result.append(line + "\n", style=Style(color=f"#{r:02x}{g:02x}{b:02x}", bold=True))
    return result


def operator_color(operator: str | None) -> str:
    name = (operator or "").lower()
    for fragment, color in OPERATOR_COLORS:
        if fragment in name:
            return color
    return "white"


def create_layout(with_status: bool = False) -> Layout:
    layout = Layout()
    rows = [Layout(name="body")]
    if with_status:
        rows.append(Layout(name="status", size=1))
    rows.append(Layout(name="footer", size=1))
    layout.split_column(*rows)
    return layout


def render(state: ApplicationState, now: float | None = None) -> Layout:
    """Build the full screen for ``state``."""
    status = render_status(state)
    layout = create_layout(with_status=status is not None)
    match state.current_screen:
        case Screen.LOADING:
            body = render_loading(state)
        case Screen.DASHBOARD:
            body = render_dashboard(state, now)
        case Screen.RADAR:
            body = render_radar(state)
        case Screen.SPOTTER:
            body = render_spotter(state)
        case Screen.SETTINGS:
            body = render_settings(state)
    layout["body"].update(body)
    if status is not None:
        layout["status"].update(Align.center(status))
    layout["footer"].update(Align.center(render_footer(state)))
    return layout


def render_loading(state: ApplicationState) -> Panel:
    bar = ProgressBar(total=100, completed=state.init_progress * 100, width=50)
    content = Group(
        Align.center(gradient_text(REDWOOD_LOGO, "#ff6a3d", "#8b1e0f")),
        Text(""),
        Align.center(bar),
        Align.center(Text(f"{state.init_progress * 100:.0f}%", style="bold cyan")),
        Text(""),
        Align.center(Text(state.init_message, style="dim")),
    )
    return Panel(
        Align.center(content, vertical="middle"),
        title="[bold cyan]Initializing Aircraft Database[/bold cyan]",
        border_style="cyan",
    )


def render_flight_list(state: ApplicationState, title: str = "Flights Nearby") -> Panel:
    text = Text()
    if not state.flights:
        text.append("No aircraft in range", style="dim")
    for index, flight in enumerate(state.flights):
        selected = index == state.selected_index
        style = "bold cyan on #1e1e3c" if selected else ""
        prefix = "> " if selected else "  "
        text.append(f"{prefix}{flight.display_id:<8}", style=style)
        operator = (flight.operator or "???")[:12]
        text.append(f" │ {operator}\n", style="dim")
    return Panel(text, title=f"[bold]{title}[/bold]", border_style="cyan")


def _telemetry_panel(state: ApplicationState, now: float | None) -> Panel:
    text = Text()
    text.append("NETWORK: ", style="bold")
    if state.last_update_success:
        text.append("ONLINE", style="green")
    else:
        text.append("OFFLINE", style="red")
    text.append("  │  ")
    text.append("LATENCY: ", style="bold")
    age = state.seconds_since_update(now)
    if age is None:
        text.append("--", style="dim")
    else:
        text.append(f"{age:.0f}s", style="green" if age < STALE_AFTER_SECONDS else "red")
    text.append("  │  ")
    text.append("DB HITS: ", style="bold")
    text.append(f"{state.enrichment_hits}/{len(state.flights)}", style="cyan")
    text.append("\n\n")

    flight = state.selected_flight
    text.append("SELECTED: ", style="bold")
    if flight is None:
        text.append("none", style="dim")
    else:
        text.append(flight.icao24, style="yellow")
        text.append("  │  ")
        text.append("TRACKING: ", style="bold")
        text.append("ENRICHED" if flight.is_enriched else "RAW DATA")
    text.append("\n")
    text.append("BASE: ", style="bold")
    text.append(state.tracking_region, style="magenta")
    text.append("  │  ")
    text.append("RANGE: ", style="bold")
    text.append(f"{state.config.location.detection_radius_km:.0f}km")
    return Panel(text, title="System Telemetry", border_style="bright_black")


def _details_panel(flight: FlightRecord | None, observer: tuple[float, float]) -> Panel:
    if flight is None:
        body = Text("Scanning for aircraft...", style="dim")
        return Panel(Align.center(body, vertical="middle"), title="Detailed Aircraft Identity")

    operator = flight.operator or "Private/Unknown"
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold", no_wrap=True)
    table.add_column()
    table.add_row("Registration", Text(flight.registration or "N/A", style="yellow"))
    table.add_row("Callsign", Text(flight.callsign, style="yellow"))
    table.add_row("Airline", Text(operator, style=operator_color(operator)))
    table.add_row("Manufacturer", flight.manufacturer or "Unknown")
    table.add_row("Model", f"{flight.model or 'Unknown Aircraft'} ({flight.type_code or '---'})")
    table.add_row(
        "Telemetry",
        f"{flight.altitude_m:.0f} m  |  {flight.speed_kmh:.0f} km/h  |  {flight.true_track:.0f}°",
    )
    table.add_row("Distance", f"{flight.distance_from(*observer):.1f} km")
    table.add_row("Origin", flight.origin_country)
    if flight.on_ground:
        table.add_row("Status", Text("ON GROUND", style="bold yellow"))
    return Panel(table, title="Detailed Aircraft Identity", padding=(1, 2))


def render_dashboard(state: ApplicationState, now: float | None = None) -> Layout:
    layout = Layout()
    layout.split_row(
        Layout(render_flight_list(state), name="flights", ratio=3),
        Layout(name="main", ratio=7),
    )
    layout["main"].split_column(
        Layout(_telemetry_panel(state, now), name="telemetry", size=7),
        Layout(
            _details_panel(state.selected_flight, (state.observer_lat, state.observer_lon)),
            name="details",
        ),
    )
    return layout


def radar_position(
    flight: FlightRecord,
    observer_lat: float,
    observer_lon: float,
    radius_km: float,
    columns: int = RADAR_COLUMNS,
    rows: int = RADAR_ROWS,
) -> tuple[int, int] | None:
    """Grid cell for a flight, or None when it falls outside the scope."""
    radius_km = max(radius_km, 1.0)
    east_km = (flight.longitude - observer_lon) * KM_PER_DEGREE * math.cos(math.radians(observer_lat))
    north_km = (flight.latitude - observer_lat) * KM_PER_DEGREE
    col = round((columns - 1) / 2 + east_km / radius_km * (columns - 1) / 2)
    row = round((rows - 1) / 2 - north_km / radius_km * (rows - 1) / 2)
    if 0 <= col < columns and 0 <= row < rows:
        return col, row
    return None


def radar_grid(state: ApplicationState) -> Text:
    columns, rows = RADAR_COLUMNS, RADAR_ROWS
    cells: list[list[tuple[str, str]]] = [[(" ", "")] * columns for _ in range(rows)]
    mid_col, mid_row = columns // 2, rows // 2
    label = "bright_black"
    cells[0][mid_col] = ("N", label)
    cells[rows - 1][mid_col] = ("S", label)
    cells[mid_row][columns - 1] = ("E", label)
    cells[mid_row][0] = ("W", label)

    radius = state.config.location.detection_radius_km
    selected_cell = None
    for index, flight in enumerate(state.flights):
        cell = radar_position(flight, state.observer_lat, state.observer_lon, radius)
        if cell is None:
            continue
        col, row = cell
        if index == state.selected_index:
            selected_cell = cell
        else:
            cells[row][col] = ("·", "white")
    cells[mid_row][mid_col] = ("⌖", "cyan")
    if selected_cell is not None:
        col, row = selected_cell
        cells[row][col] = ("✈", "bold yellow")

    text = Text()
    for line in cells:
        for char, style in line:
            text.append(char, style=style)
        text.append("\n")
    flight = state.selected_flight
    if flight is not None:
        text.append(f" {flight.display_id} ", style="black on yellow")
        text.append(f" {flight.distance_from(state.observer_lat, state.observer_lon):.1f} km")
    return text


def render_radar(state: ApplicationState) -> Layout:
    layout = Layout()
    scope = Panel(
        Align.center(radar_grid(state), vertical="middle"),
        title=f"Precision Radar ({state.config.location.detection_radius_km:.0f} km)",
        border_style="green",
    )
    layout.split_row(
        Layout(render_flight_list(state, title="Flights"), name="flights", ratio=1),
        Layout(scope, name="scope", ratio=3),
    )
    return layout


def render_spotter(state: ApplicationState) -> Panel:
    target = state.selected_flight
    if target is None:
        body = Text("Scanning for aircraft...", style="dim")
        return Panel(Align.center(body, vertical="middle"), title="Spotter")

    identity = Text(justify="center")
    identity.append(f"{target.operator or 'Unknown Operator'}\n\n", style="bold cyan")
    identity.append(f" {target.display_id} ", style="bold black on white")
    identity.append(f"\n\n{target.model or 'Unknown Aircraft'}\n\n")
    identity.append(
        f"Altitude: {target.altitude_m:.0f} m | Velocity: {target.speed_kmh:.0f} km/h | "
        f"Heading: {target.true_track:.0f}°",
        style="bright_black",
    )
    return Panel(Align.center(identity, vertical="middle"), title="Spotter", border_style="cyan")


def render_settings(state: ApplicationState) -> Panel:
    text = Text()
    for index, item in enumerate(settings.SETTING_FIELDS):
        selected = index == state.settings_index
        style = "bold cyan on #1e1e3c" if selected else ""
        prefix = "> " if selected else "  "
        text.append(f"{prefix}{item.label:<26}", style=style)
        text.append(f"{settings.format_value(state.config, index)}\n", style=style)
    text.append("\n")
    text.append(
        "↑/↓ select   Enter/Space toggle or cycle   +/- change number   s save\n",
        style="dim",
    )
    if state.settings_message:
        style = "red" if state.settings_message.startswith("Save failed") else "yellow"
        text.append(f"\n{state.settings_message}", style=style)
    return Panel(
        Align.center(text, vertical="middle"),
        title=f"[bold]Settings[/bold] ({state.config_path})",
        border_style="cyan",
    )


def render_footer(state: ApplicationState) -> Text:
    text = Text()
    text.append("q", style="bold white")
    text.append(" to exit", style="dim")
    if state.current_screen is Screen.LOADING:
        return text
    text.append(" | ", style="dim")
    text.append("1-4", style="bold white")
    text.append(" Dashboard/Radar/Spotter/Settings", style="dim")
    if state.current_screen is not Screen.SETTINGS:
        text.append(" | ", style="dim")
        text.append("↑/↓ j/k", style="bold white")
        text.append(" to select", style="dim")
    text.append(" | ", style="dim")
    text.append(f"{len(state.flights)} tracked", style="dim")
    return text




def render_status(state: ApplicationState) -> Text | None:
    """Status line for a failed cache build; None while loading or when there is nothing to report."""
    if state.current_screen is Screen.LOADING or not state.status_message:
        return None
    text = Text()
    text.append("REGISTRY: ", style="bold red")
    text.append(state.status_message, style="red")
    text.append(" (flights shown without registry details)", style="dim")
    return text
