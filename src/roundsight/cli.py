"""
RoundSight CLI - Command Line Interface for CS2 Match Analysis

Provides commands for:
- Analyzing demo files
- Replaying scripted JSON event files through the same analysis
- Writing a default configuration file
- Showing version and dependency information
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from roundsight import __version__
from roundsight.analysis.engine import analyze_match
from roundsight.analysis.models import MatchAnalysis
from roundsight.core.config import (
    RoundSightConfig,
    SAMPLER_MODES,
    configure_logging,
    load_config,
    save_config,
)
from roundsight.export import export_analysis, export_to_json
from roundsight.telemetry.demo_source import DemoTelemetrySource
from roundsight.telemetry.replay_source import ReplayTelemetrySource
from roundsight.telemetry.source import TelemetryError, TelemetrySource

app = typer.Typer(
    name="roundsight",
    help="CS2 match telemetry analyzer - round classification, player stats, heatmaps and coaching",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]RoundSight[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
) -> None:
    """RoundSight - CS2 Match Telemetry Analyzer"""
    ctx.obj = {"verbose": verbose}


def _load_settings(
    ctx: typer.Context,
    config_file: Optional[Path],
    frames: bool,
    interval: Optional[int],
    stride: Optional[int],
    json_output: bool,
) -> RoundSightConfig:
    """Load config and apply command line overrides (highest precedence)."""
    try:
        config = load_config(config_file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)

    if frames:
        config.sampler.mode = "frames"
    if interval is not None:
        config.sampler.snapshot_interval_ticks = interval
    if stride is not None:
        config.sampler.frame_stride_ticks = stride

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    if json_output and not verbose:
        # Keep stdout clean for the JSON document
        config.logging.level = "WARNING"
    configure_logging(config.logging, verbose=verbose)
    return config


def _run_analysis(
    source: TelemetrySource,
    config: RoundSightConfig,
    player: Optional[int],
    output: Optional[Path],
    json_output: bool,
) -> None:
    try:
        if json_output:
            analysis = analyze_match(source, target_steam_id=player, config=config)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task(f"Analyzing {source.description}...", total=None)
                analysis = analyze_match(source, target_steam_id=player, config=config)
                progress.update(task, description="Analysis complete!")
    except TelemetryError as e:
        console.print(f"[red]Error reading telemetry:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        typer.echo(export_to_json(analysis, indent=config.export.json_indent, include_metadata=False))
    else:
        _display_analysis(analysis)

    if output:
        try:
            export_analysis(analysis, output, config=config.export)
        except ValueError as e:
            console.print(f"[red]Export failed:[/red] {e}")
            raise typer.Exit(1)
        if not json_output:
            console.print(f"\n[green]Results exported to:[/green] {output}")


@app.command()
def analyze(
    ctx: typer.Context,
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the .dem file to analyze",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    player: Optional[int] = typer.Option(
        None, "--player", "-p", help="Steam ID of a player to analyze in depth"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file for results (format detected from extension: .json, .csv)",
    ),
    frames: bool = typer.Option(
        False, "--frames", help="Sample positions frame by frame (second pass over the demo)"
    ),
    interval: Optional[int] = typer.Option(
        None, "--interval", help="Ticks between radar snapshots in interval mode"
    ),
    stride: Optional[int] = typer.Option(None, "--stride", help="Ticks between frames in frame mode"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file (.yaml, .toml, .json)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
) -> None:
    """
    Analyze a CS2 demo file.

    Classifies every round (warmup, knife, official), accumulates player
    statistics over official rounds, bins kills/deaths/bomb events into a
    heatmap and derives the MVP and coaching recommendations.
    """
    config = _load_settings(ctx, config_file, frames, interval, stride, json_output)
    if not json_output:
        console.print("\n[bold blue]RoundSight[/bold blue] - Analyzing demo...\n")

    source = DemoTelemetrySource(demo_path, tick_rate=config.sampler.tick_rate)
    _run_analysis(source, config, player, output, json_output)


@app.command()
def replay(
    ctx: typer.Context,
    events_path: Path = typer.Argument(
        ...,
        help="Path to a JSON event file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    player: Optional[int] = typer.Option(
        None, "--player", "-p", help="Steam ID of a player to analyze in depth"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file for results"),
    frames: bool = typer.Option(False, "--frames", help="Sample positions frame by frame"),
    interval: Optional[int] = typer.Option(None, "--interval", help="Ticks between radar snapshots"),
    stride: Optional[int] = typer.Option(None, "--stride", help="Ticks between frames in frame mode"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file"),
    json_output: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
) -> None:
    """
    Analyze a scripted JSON event file.

    Uses the same analysis as `analyze`; useful for fixtures and event
    dumps produced by other tools.
    """
    config = _load_settings(ctx, config_file, frames, interval, stride, json_output)
    try:
        source = ReplayTelemetrySource.from_json(events_path)
    except TelemetryError as e:
        console.print(f"[red]Error reading events:[/red] {e}")
        raise typer.Exit(1)
    _run_analysis(source, config, player, output, json_output)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("roundsight.yaml"), help="Where to write the config (.yaml or .json)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """
    Write a configuration file with the default settings.
    """
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {path} (use --force to overwrite)")
        raise typer.Exit(1)
    try:
        save_config(RoundSightConfig(), path)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Config written to:[/green] {path}")


@app.command()
def info() -> None:
    """
    Display information about RoundSight and the environment.
    """
    import platform as plat

    console.print(f"\n[bold blue]RoundSight[/bold blue] v{__version__}\n")

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Python", plat.python_version())
    table.add_row("Platform", plat.system())
    table.add_row("Architecture", plat.machine())
    table.add_row("Sampler Modes", ", ".join(SAMPLER_MODES))

    # Check for dependencies
    deps = []
    try:
        import demoparser2
        deps.append(("demoparser2", getattr(demoparser2, "__version__", "installed")))
    except ImportError:
        deps.append(("demoparser2", "[red]not installed[/red]"))

    try:
        import pandas
        deps.append(("pandas", pandas.__version__))
    except ImportError:
        deps.append(("pandas", "[red]not installed[/red]"))

    try:
        import numpy
        deps.append(("numpy", numpy.__version__))
    except ImportError:
        deps.append(("numpy", "[red]not installed[/red]"))

    for name, version in deps:
        table.add_row(name, version)

    console.print(table)


# ============================================================================
# Display helpers
# ============================================================================


def _display_analysis(analysis: MatchAnalysis) -> None:
    _display_match_info(analysis)
    _display_rounds(analysis)
    _display_hotspots(analysis)
    _display_players(analysis)
    _display_summary(analysis)


def _display_match_info(analysis: MatchAnalysis) -> None:
    """Display match information table."""
    meta = analysis.metadata
    info_table = Table(title="Match Information", show_header=False)
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Map", meta.map_name)
    info_table.add_row("Duration", meta.duration)
    info_table.add_row("Score (CT-T)", f"{meta.score_ct} - {meta.score_t}")
    info_table.add_row("Official Rounds", f"{meta.rounds} of {meta.total_rounds}")
    info_table.add_row("Warmup Rounds", str(meta.warmup_rounds))
    info_table.add_row("Knife Rounds", str(meta.knife_rounds))
    info_table.add_row("First Official Round", str(meta.official_round_start or "-"))
    info_table.add_row("Source", meta.source)
    info_table.add_row("Snapshots", str(len(analysis.snapshots)))
    if analysis.frames:
        info_table.add_row("Frames", str(len(analysis.frames)))
    if meta.partial:
        info_table.add_row("Status", "[yellow]partial (telemetry ended early)[/yellow]")
    console.print(info_table)
    console.print()


def _display_rounds(analysis: MatchAnalysis) -> None:
    """Display round classification table."""
    if not analysis.rounds:
        return

    table = Table(title="Rounds")
    table.add_column("Round", justify="right")
    table.add_column("Tag", style="cyan")
    table.add_column("Winner")
    table.add_column("Kills", justify="right")
    table.add_column("Melee", justify="right")
    table.add_column("Score", justify="right")

    tag_styles = {"warmup": "yellow", "knife": "magenta", "official": "green"}
    for r in analysis.rounds:
        style = tag_styles.get(r["tag"], "white")
        score = r["score_end"]
        table.add_row(
            str(r["round"]),
            f"[{style}]{r['tag']}[/{style}]",
            r["winner"] or "-",
            str(r["kills"]),
            str(r["melee_kills"]),
            f"{score['ct']}-{score['t']}" if score else "-",
        )

    console.print(table)
    console.print()


def _display_hotspots(analysis: MatchAnalysis) -> None:
    """Display the busiest heatmap bins."""
    hotspots = analysis.heatmap.get("hotspots") or []
    if not hotspots:
        return

    table = Table(title="Heatmap Hotspots")
    table.add_column("Type", style="cyan")
    table.add_column("Position")
    table.add_column("Events", justify="right", style="green")

    for point in hotspots:
        table.add_row(
            point["type"],
            f"({point['x']:.1f}, {point['y']:.1f}, {point['z']:.1f})",
            str(point["intensity"]),
        )

    console.print(table)
    console.print()


def _display_players(analysis: MatchAnalysis) -> None:
    """Display player statistics table."""
    df = analysis.players_dataframe()
    if df.empty:
        console.print("[yellow]No player statistics (no official rounds?)[/yellow]")
        return

    table = Table(title="Player Statistics")
    table.add_column("Player", style="cyan")
    table.add_column("Team")
    table.add_column("K", justify="right")
    table.add_column("D", justify="right")
    table.add_column("A", justify="right")
    table.add_column("HS%", justify="right")
    table.add_column("ADR", justify="right")
    table.add_column("K/D", justify="right")
    table.add_column("Rating", justify="right", style="green")

    for row in df.itertuples(index=False):
        table.add_row(
            row.name or str(row.steam_id),
            row.team,
            str(row.kills),
            str(row.deaths),
            str(row.assists),
            f"{row.hs_rate:.1f}",
            f"{row.adr:.1f}",
            f"{row.kd_ratio:.2f}",
            f"{row.rating:.2f}",
        )

    console.print(table)
    console.print()


def _display_summary(analysis: MatchAnalysis) -> None:
    """Display MVP and target player panels."""
    summary = analysis.summary
    console.print(
        Panel(
            f"[bold]{summary.mvp}[/bold]  (rating {summary.rating:.2f})",
            title="MVP",
            border_style="blue",
        )
    )

    target = summary.target_player
    if target is None:
        return

    lines = [
        f"[cyan]{target.name}[/cyan] ({target.team}) - {target.kills}/{target.deaths}/{target.assists}, "
        f"ADR {target.adr:.1f}, HS {target.hs_rate:.1f}%, K/D {target.kd_ratio:.2f} "
        f"over {target.rounds_played} rounds",
        "",
        "[bold]Key moments[/bold]",
        *[f"  - {m}" for m in target.key_moments],
        "",
        "[bold]Recommendations[/bold]",
        *[f"  - {r}" for r in target.recommendations],
    ]
    console.print(Panel("\n".join(lines), title="Player Analysis", border_style="green"))


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
