"""cadence CLI: preview, grade and review-pool commands over record files."""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.config import AppConfig, resolve_config
from cadence.application.scheduling import (
    Scheduler,
    due_in_label,
    introduce,
    plan_introductions,
    select_due,
)
from cadence.domain.scheduling import Grade, InvalidGrade
from cadence.domain.scheduling.clock import now_ms
from cadence.infrastructure.records import (
    SINGLE_RECORD_ID,
    FileRecordStore,
    RecordFileError,
    read_document,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: latency-aware spaced-repetition scheduling.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(message: str, code: int = 2) -> typer.Exit:
    typer.secho(message, fg="red", err=True)
    return typer.Exit(code)


def _scheduler(config: AppConfig, settings_file: Path | None) -> Scheduler:
    overrides = None
    if settings_file is not None:
        try:
            overrides = read_document(settings_file)
        except RecordFileError as e:
            raise _fail(str(e)) from None
        if overrides is not None and not isinstance(overrides, dict):
            raise _fail(f"{settings_file} must contain a mapping of settings")
    return Scheduler(config.scheduler_settings(overrides), tz=config.zone_info())


def _load(path: Path) -> tuple[FileRecordStore, dict[str, dict]]:
    store = FileRecordStore(path)
    try:
        records = store.load()
    except RecordFileError as e:
        raise _fail(str(e)) from None
    return store, records


def _pick(records: dict[str, Any], item_id: str | None) -> str:
    if item_id is None:
        if len(records) == 1:
            return next(iter(records))
        raise _fail(f"File holds {len(records)} records; choose one with --id.")
    if item_id not in records:
        raise _fail(f"No record with id '{item_id}'.", code=1)
    return item_id


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose > 1:
        logging.getLogger("cadence").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def preview(
    path: Annotated[Path, typer.Argument(help="JSON or YAML record file.")],
    item_id: Annotated[str | None, typer.Option("--id", help="Record id in a deck file.")] = None,
    settings_file: Annotated[
        Path | None, typer.Option("--settings", help="YAML/JSON scheduler settings override.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the interval each grade would schedule, without changing anything."""
    config = resolve_config()
    scheduler = _scheduler(config, settings_file)
    _, records = _load(path)
    if not records:
        records = {SINGLE_RECORD_ID: {}}
    key = _pick(records, item_id)

    record = records[key]
    labels = {g.value: label for g, label in scheduler.preview_all(record).items()}
    stage = scheduler.stage_for(record)

    if json_output:
        typer.echo(json.dumps({"id": key, "stage": stage, "labels": labels}, indent=2))
        return

    typer.echo(f"{key}  (stage {stage}, due in {due_in_label(record, tz=scheduler.tz)})")
    for grade, label in labels.items():
        typer.echo(f"  {grade:<6} {label}")


@app.command()
def grade(
    path: Annotated[Path, typer.Argument(help="JSON or YAML record file.")],
    grade_token: Annotated[str, typer.Argument(metavar="GRADE", help="again, hard, good or easy.")],
    item_id: Annotated[str | None, typer.Option("--id", help="Record id in a deck file.")] = None,
    latency_ms: Annotated[
        int | None, typer.Option("--latency-ms", help="Time to reveal the answer, in ms.")
    ] = None,
    settings_file: Annotated[
        Path | None, typer.Option("--settings", help="YAML/JSON scheduler settings override.")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Print the result without saving.")
    ] = False,
):
    """[bold green]Grade[/bold green] a record and store its next due time."""
    try:
        parsed = Grade.parse(grade_token)
    except InvalidGrade as e:
        raise _fail(str(e)) from None

    config = resolve_config()
    scheduler = _scheduler(config, settings_file)
    store, records = _load(path)
    if not records and item_id is None:
        # Fresh single-record file.
        store.single = True
        records = {SINGLE_RECORD_ID: {}}
    key = _pick(records, item_id)

    now = now_ms()
    updated = scheduler.apply(records[key], parsed, latency_ms, now=now)
    records[key] = updated.to_dict()

    if dry_run:
        typer.echo(json.dumps(records[key], indent=2))
        return

    store.save(records)
    logger.info(f"Graded {key} as {parsed.value}; due {updated.due_date_key}")
    typer.secho(
        f"{key}: {parsed.value} -> due in {due_in_label(updated, now)} ({updated.due_date_key})",
        fg="green",
    )


@app.command()
def due(
    path: Annotated[Path, typer.Argument(help="JSON or YAML deck file.")],
    limit: Annotated[int | None, typer.Option(help="Maximum number of ids to list.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List records that are due now, earliest first."""
    config = resolve_config()
    _, records = _load(path)
    ids = select_due(records, limit=limit, tz=config.zone_info())

    if json_output:
        typer.echo(json.dumps({"due": ids, "total": len(records)}, indent=2))
        return

    if not ids:
        typer.secho("All caught up.", fg="green")
        return
    typer.echo(f"Due: {len(ids)} of {len(records)}")
    for item_id in ids:
        typer.echo(f"  {item_id}")


@app.command("introduce")
def introduce_cmd(
    path: Annotated[Path, typer.Argument(help="JSON or YAML deck file.")],
    daily_new: Annotated[
        int | None, typer.Option("--daily-new", help="New items allowed per day.")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show which items would be introduced.")
    ] = False,
):
    """Move today's quota of new items into the review pool."""
    config = resolve_config({"daily_new": daily_new})
    tz = config.zone_info()
    store, records = _load(path)

    candidates = [k for k, rec in records.items() if rec.get("introduced") is False]
    picked = plan_introductions(records, candidates, config.daily_new, tz=tz)

    if not picked:
        typer.secho("Nothing to introduce today.", fg="yellow")
        return

    for item_id in picked:
        typer.echo(f"  + {item_id}")
    if dry_run:
        return

    for item_id in picked:
        records[item_id] = introduce(records[item_id], tz=tz).to_dict()
    store.save(records)
    typer.secho(f"Introduced {len(picked)} item(s).", fg="green")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the scheduling HTTP API."""
    import uvicorn

    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
