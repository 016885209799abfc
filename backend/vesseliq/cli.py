"""VesselIQ CLI — fleet health monitoring.

Commands:
  init-db           — create database tables
  seed-demo         — load a synthetic demo fleet
  fleet             — fleet health table
  vessel            — one vessel and its sensors
  export            — write an analytics CSV (anomalies, model, stats)
  backfill-sensors  — link unlinked health samples to sensors
  serve             — run the API server
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError


app = typer.Typer(
    name="vesseliq",
    help="Fleet health monitoring.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_database():
    """Create database tables (existing tables are left alone)."""
    from vesseliq.database import init_db

    try:
        with console.status("[bold]Creating database..."):
            init_db()
    except Exception as e:
        console.print(f"[red]Database setup failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]Database ready.[/green]")


@app.command("seed-demo")
def seed_demo():
    """Load a synthetic demo fleet (vessels, sensors, samples, analytics rows)."""
    from vesseliq.database import init_db, session_scope
    from vesseliq.modules.demo_seed import seed_demo_fleet

    try:
        init_db()
        with session_scope() as db:
            with console.status("[bold]Seeding demo fleet..."):
                counts = seed_demo_fleet(db)
            db.commit()
    except Exception as e:
        console.print(f"[red]Seeding failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(
        f"[green]Seeded {counts['vessels']} vessels, {counts['sensors']} sensors, "
        f"{counts['samples']} health samples.[/green]"
    )


@app.command("fleet")
def fleet(
    as_json: bool = typer.Option(False, "--json", help="Print the API payload instead of a table"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Parallel per-vessel sample reads"),
):
    """Show the aggregate health score of every vessel."""
    from vesseliq.database import SessionLocal, session_scope
    from vesseliq.modules.fleet_health import compute_fleet_health

    try:
        with session_scope() as db:
            summaries = compute_fleet_health(db, workers=workers, session_factory=SessionLocal)
    except SQLAlchemyError as e:
        _store_error(e)

    if as_json:
        console.print_json(json.dumps([s.to_dict() for s in summaries]))
        return
    if not summaries:
        console.print("[yellow]No vessels found[/yellow]")
        return
    _print_fleet_table(console, summaries)


@app.command("vessel")
def vessel(vessel_id: int = typer.Argument(..., help="Vessel id")):
    """Show one vessel and its sensors."""
    from vesseliq.database import session_scope
    from vesseliq.modules.fleet_health import get_vessel_detail

    try:
        with session_scope() as db:
            detail = get_vessel_detail(db, vessel_id)
    except SQLAlchemyError as e:
        _store_error(e)
    if detail is None:
        console.print(f"[red]Vessel {vessel_id} not found[/red]")
        raise typer.Exit(1)

    v = detail["vessel"]
    console.print(f"\n[bold cyan]{v['vessel_name']}[/bold cyan]  (id {v['vessel_id']})")
    if v["latitude"] is not None and v["longitude"] is not None:
        console.print(f"  Position: ({v['latitude']:.3f}, {v['longitude']:.3f})")
    table = Table(title=f"Sensors ({len(detail['sensors'])})")
    table.add_column("ID", style="cyan")
    table.add_column("Subsystem")
    table.add_column("PI point")
    table.add_column("Raw id", style="dim")
    for s in detail["sensors"]:
        table.add_row(str(s["sensor_id"]), s["subsystem"] or "", s["pi_point_name"] or "", s["raw_sensor_id"] or "")
    console.print(table)


@app.command("export")
def export(
    dataset: str = typer.Argument(..., help="anomalies, model, or stats"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output path (default: standard filename)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Row cap (default: EXPORT_ROW_LIMIT)"),
):
    """Write an analytics table to CSV."""
    from vesseliq.database import session_scope
    from vesseliq.modules.csv_export import EXPORT_FILENAMES, fetch_export, iter_csv

    if dataset not in EXPORT_FILENAMES:
        console.print(f"[red]Unknown dataset '{dataset}'. Choose from: {', '.join(EXPORT_FILENAMES)}[/red]")
        raise typer.Exit(1)

    try:
        with session_scope() as db:
            columns, rows = fetch_export(db, dataset, limit=limit)
    except SQLAlchemyError as e:
        _store_error(e)

    path = output or Path(EXPORT_FILENAMES[dataset])
    with open(path, "w", newline="") as f:
        for chunk in iter_csv(columns, rows):
            f.write(chunk)
    console.print(f"[green]Wrote {len(rows):,} rows to {path}[/green]")


@app.command("backfill-sensors")
def backfill_sensors(
    batch_size: Optional[int] = typer.Option(None, "--batch-size", help="Rows per batch"),
    pause: Optional[float] = typer.Option(None, "--pause", help="Seconds to sleep between batches"),
):
    """Link hybrid_health rows to sensors using the CT tag in their sensor name."""
    from vesseliq.database import session_scope
    from vesseliq.modules.sensor_backfill import backfill_sensor_links

    try:
        with session_scope() as db:
            with console.status("[bold]Linking health samples to sensors..."):
                result = backfill_sensor_links(db, batch_size=batch_size, pause_seconds=pause)
    except SQLAlchemyError as e:
        _store_error(e)
    console.print(
        f"[green]{result.total_updated:,} linked[/green], "
        f"[yellow]{result.total_skipped:,} skipped[/yellow] "
        f"in {result.batches_processed} batch{'es' if result.batches_processed != 1 else ''}"
    )


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the API server."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}[/cyan] — press Ctrl+C to stop")
    uvicorn.run("vesseliq.main:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store_error(e: Exception) -> NoReturn:
    console.print(f"[red]Data store unavailable: {escape(str(e))}[/red]")
    raise typer.Exit(1)


def _health_style(score: float) -> str:
    if score < 0.45:
        return "red"
    if score < 0.75:
        return "yellow"
    return "green"


def _print_fleet_table(con: Console, summaries) -> None:
    """Print a Rich table of vessel health summaries."""
    table = Table(title=f"Fleet Health ({len(summaries)} vessels)")
    table.add_column("ID", style="cyan")
    table.add_column("Vessel")
    table.add_column("Health", justify="right")
    table.add_column("Last update")
    table.add_column("Source", style="dim")
    for s in summaries:
        style = _health_style(s.health)
        table.add_row(
            str(s.vessel_id),
            s.name,
            f"[{style}]{s.health * 100:.0f}%[/{style}]",
            s.last_update.strftime("%Y-%m-%d %H:%M") if s.last_update else "—",
            s.source,
        )
    con.print(table)


if __name__ == "__main__":
    app()
