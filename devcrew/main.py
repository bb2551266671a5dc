"""
devcrew — autonomous development teams in your terminal.

Commands: devcrew run GOAL, devcrew tools, devcrew models
"""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, ModelPreset
from .crew.coordinator import MultiTeamResult
from .crew.crew import Crew
from .crew.rendering import CrewRenderer
from .errors import DevcrewError
from .logger import setup_logger
from .theme import PALETTES, get_icon, get_theme, set_theme, set_use_unicode
from .tools import AgentRole, build_default_registry

console = Console()
BANNER = (
    f"[bold #7FA6D9]devcrew[/bold #7FA6D9] "
    f"[dim]v{__version__} · autonomous dev teams[/dim]"
)


def _apply_model(config: Config, model: str) -> None:
    if config.set_active_model(model):
        return
    config.models["_cli"] = ModelPreset(name="_cli", provider="openai", model=model)
    config.set_active_model("_cli")


@click.group()
@click.version_option(__version__, prog_name="devcrew")
@click.option("--theme", type=click.Choice(sorted(PALETTES)), default="dark", help="Console color theme")
@click.option("--ascii", "ascii_only", is_flag=True, help="Use ASCII icons instead of Unicode")
def cli(theme, ascii_only):
    """devcrew — plan, implement and verify software tasks with agent teams."""
    set_theme(theme)
    set_use_unicode(not ascii_only)


@cli.command()
@click.argument("goal", nargs=-1, required=True)
@click.option("--team", "-t", default=None, help="Team to run the goal on")
@click.option("--multi-team", is_flag=True, help="Split the goal across all configured teams")
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--model", "-m", default=None, help="Model preset name or litellm model id")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run(goal, team, multi_team, project_dir, model, verbose):
    """Run GOAL through the coordinator.

    Exits 0 on success, 2 when a human is needed and 1 otherwise.
    """
    goal_text = " ".join(goal).strip()
    console.print(BANNER)

    project_root = Path(project_dir).resolve()
    if not project_root.is_dir():
        console.print(f"[red]Error: '{project_dir}' is not a valid directory.[/red]")
        sys.exit(1)

    try:
        config = Config.load(str(project_root))
        if model:
            _apply_model(config, model)
        if verbose:
            config.verbose = True
        setup_logger("devcrew", verbose=config.verbose, log_file=config.log_file)

        renderer = CrewRenderer(console, verbose=config.verbose)
        crew = Crew(config)
        renderer.attach(crew.events)
        needs_human = []
        crew.events.on_escalation(lambda reason, subject: needs_human.append(reason))
        if team and crew.coordinator.get_team(team) is None:
            console.print(f"[red]Error: unknown team '{team}'. "
                          f"Configured: {', '.join(crew.coordinator.teams())}[/red]")
            sys.exit(1)
    except DevcrewError as error:
        console.print(f"[red]Error: {error}[/red]")
        sys.exit(1)

    preset = config.get_active_preset()
    console.print(f"  [dim]model {preset.model} · teams {', '.join(crew.coordinator.teams())}[/dim]\n")

    try:
        result = crew.run(goal_text, team=team, multi_team=multi_team)
    except KeyboardInterrupt:
        console.print("\n[yellow]  Interrupted.[/yellow]")
        sys.exit(130)

    if isinstance(result, MultiTeamResult):
        renderer.render_multi_team_result(result)
    else:
        renderer.render_goal_result(result)
    if config.verbose:
        renderer.render_status(crew.status())
    if needs_human:
        sys.exit(2)
    sys.exit(0 if result.success else 1)


@cli.command()
@click.option("--role", "-r", type=click.Choice([r.value for r in AgentRole]), default=None,
              help="Only show tools visible to this role")
@click.option("--project-dir", "-d", default=".", help="Project directory")
def tools(role, project_dir):
    """List the built-in tools and the roles that can use them."""
    registry = build_default_registry(str(Path(project_dir).resolve()))
    if role:
        registry = registry.for_role(role)

    theme = get_theme()
    table = Table(show_header=True, header_style=f"bold {theme.ACCENT}",
                  border_style=theme.BORDER, padding=(0, 1))
    table.add_column("Tool", style="bold")
    table.add_column("Roles")
    table.add_column("Description")
    for tool in registry:
        roles = ", ".join(sorted(r.value for r in tool.roles)) if tool.roles is not None else "all"
        table.add_row(tool.name, roles, tool.definition.description)
    console.print(table)


@cli.command()
@click.option("--project-dir", "-d", default=".", help="Project directory")
def models(project_dir):
    """List the configured model presets."""
    try:
        config = Config.load(str(Path(project_dir).resolve()))
    except DevcrewError as error:
        console.print(f"[red]Error: {error}[/red]")
        sys.exit(1)

    theme = get_theme()
    table = Table(show_header=True, header_style=f"bold {theme.ACCENT}",
                  border_style=theme.BORDER, padding=(0, 1))
    table.add_column("", width=3)
    table.add_column("Preset", style="bold")
    table.add_column("Model")
    table.add_column("Description", style=theme.DIM)
    for preset in config.list_models():
        marker = get_icon("●") if preset["active"] else ""
        table.add_row(marker, preset["name"], preset["model"], preset["description"])
    console.print(table)


if __name__ == "__main__":
    cli()
