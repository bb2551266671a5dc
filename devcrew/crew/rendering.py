"""Crew console rendering: event lines while running, summary tables after."""

import threading
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..theme import get_icon, get_theme
from .coordinator import GoalResult, MultiTeamResult, Project
from .events import CrewEvent, EventBus, EventType

# 8-color palette for team distinction
TEAM_COLORS = [
    "#7FA6D9",  # blue
    "#57DB9C",  # green
    "#D9A67F",  # orange
    "#D97FD9",  # magenta
    "#7FD9D9",  # cyan
    "#D9D97F",  # yellow
    "#9C7FD9",  # purple
    "#D97F7F",  # red
]


def _color_for(name: str) -> str:
    return TEAM_COLORS[sum(map(ord, name)) % len(TEAM_COLORS)]


# Event display: (icon, theme attribute); None hides the event unless verbose
_EVENT_DISPLAY = {
    EventType.TEAM_STARTED:     ("●", "ACCENT"),
    EventType.TEAM_FINISHED:    ("●", "ACCENT"),
    EventType.PROJECT_STARTED:  ("▸", "INFO"),
    EventType.PROJECT_FINISHED: ("✓", "SUCCESS"),
    EventType.TASK_PLANNED:     ("○", "DIM"),
    EventType.TASK_STARTED:     ("▸", "DIM"),
    EventType.TASK_FINISHED:    None,
    EventType.TASK_RETRY:       ("⟲", "WARN"),
    EventType.FIX_TASK_CREATED: ("⟲", "WARN"),
    EventType.TASK_ESCALATED:   ("⚠", "WARN"),
    EventType.ESCALATION:       ("✗", "ERROR"),
}

_STATUS_STYLE = {
    "completed": "SUCCESS",
    "in_progress": "INFO",
    "pending": "DIM",
    "blocked": "ERROR",
}


class CrewRenderer:
    """Prints one line per crew event; safe to call from team threads."""

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose
        self._lock = threading.Lock()

    def attach(self, events: EventBus) -> None:
        events.subscribe(self.handle)

    def handle(self, event: CrewEvent) -> None:
        display = _EVENT_DISPLAY.get(event.type)
        if display is None:
            if not self.verbose or event.type is not EventType.TASK_FINISHED:
                return
            ok = event.metadata.get("success")
            display = ("✓", "SUCCESS") if ok else ("✗", "ERROR")

        icon, style_name = display
        style = getattr(get_theme(), style_name)
        color = _color_for(event.source)
        with self._lock:
            self.console.print(
                f"  [{style}]{get_icon(icon)}[/{style}] "
                f"[{color}]{event.source}[/{color}] {event.message}",
                highlight=False,
            )

    # ── Summaries ──

    def _project_table(self, projects: List[Project], show_team: bool = False) -> Table:
        theme = get_theme()
        table = Table(show_header=True, header_style=f"bold {theme.ACCENT}",
                      border_style=theme.BORDER, padding=(0, 1))
        table.add_column("Project", min_width=20)
        if show_team:
            table.add_column("Team", min_width=10)
        table.add_column("Priority", min_width=8)
        table.add_column("Status", min_width=10)
        table.add_column("Iterations", justify="right")

        for project in projects:
            style = getattr(theme, _STATUS_STYLE.get(project.status.value, "DIM"))
            row = [project.title]
            if show_team:
                color = _color_for(project.team or "")
                row.append(f"[{color}]{project.team or '-'}[/{color}]")
            row += [
                project.priority.value,
                f"[{style}]{project.status.value}[/{style}]",
                str(project.result.iterations) if project.result else "-",
            ]
            table.add_row(*row)
        return table

    def render_goal_result(self, result: GoalResult, title: str = "Goal Summary") -> None:
        footer = f"{result.completed_projects} completed | {result.failed_projects} failed"
        self._panel(self._project_table(result.projects), title, footer)
        self._render_escalation(result.escalated_to_human, result.human_escalation_reason)

    def render_multi_team_result(self, result: MultiTeamResult) -> None:
        projects = [p for r in result.team_results.values() for p in r.projects]
        footer = (f"{len(result.team_results)} teams | {result.total_completed}/"
                  f"{result.total_projects} completed | {result.total_failed} failed")
        self._panel(self._project_table(projects, show_team=True), "Multi-Team Summary", footer)
        self._render_escalation(result.escalated_to_human, result.human_escalation_reason)

    def render_status(self, status: Dict) -> None:
        theme = get_theme()
        table = Table(show_header=True, header_style=f"bold {theme.ACCENT}",
                      border_style=theme.BORDER, padding=(0, 1))
        table.add_column("Status")
        table.add_column("Projects", justify="right")
        for name, count in status.get("by_status", {}).items():
            table.add_row(name, str(count))
        footer = (f"teams: {', '.join(status.get('teams', []))} · "
                  f"active tasks: {status.get('active_tasks', 0)} · "
                  f"escalations: {status.get('escalations', 0)}")
        self._panel(table, "Coordination Status", footer)

    def _panel(self, body, title: str, footer: str) -> None:
        theme = get_theme()
        with self._lock:
            self.console.print(Panel(
                body,
                title=f"[bold {theme.ACCENT}] {title} [/bold {theme.ACCENT}]",
                subtitle=f"[{theme.DIM}]{footer}[/{theme.DIM}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))

    def _render_escalation(self, escalated: bool, reason: Optional[str]) -> None:
        if not escalated:
            return
        theme = get_theme()
        with self._lock:
            self.console.print(
                f"  [{theme.ERROR}]{get_icon('✗')} Needs a human:[/{theme.ERROR}] {reason or 'unknown reason'}"
            )
