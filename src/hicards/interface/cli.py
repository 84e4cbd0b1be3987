"""hicards CLI: maintenance commands for a hicards data file."""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer

from hicards.application.config import AppConfig, resolve_config
from hicards.domain.errors import HiCardsError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="hicards: spaced-repetition scheduling for highlight flashcards.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage hicards configuration.")
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


def _log_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


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
    ] = 0,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only show warnings.")] = False,
    data_file: Annotated[
        Path | None, typer.Option("--data-file", help="JSON data file. Defaults to config.")
    ] = None,
):
    """Global settings for hicards."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "data_file": data_file,
        "verbose": 0 if quiet else (1 + verbose if verbose else None),
    }


def _config(ctx: typer.Context) -> AppConfig:
    config = resolve_config(ctx.obj.get("overrides") if ctx.obj else None)
    logging.getLogger().setLevel(_log_level(config.verbose))
    logger.debug(f"Using data file {config.data_file}")
    return config


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except HiCardsError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1)


def _fmt_time(ts: float | None) -> str:
    if not ts:
        return "never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def stats(
    ctx: typer.Context,
    as_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show progress, streak and today's counters."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)

    async def run():
        scheduler = await build_scheduler(config)
        progress = scheduler.get_progress()
        global_stats = scheduler.get_stats()
        today = scheduler.get_today_stats()

        if as_json:
            typer.echo(
                json.dumps(
                    {
                        "due": progress.due,
                        "new": progress.new_cards,
                        "learned": progress.learned,
                        "retention": round(progress.retention, 4),
                        "total_reviews": global_stats.total_reviews,
                        "streak_days": global_stats.streak_days,
                        "today": {
                            "new_cards_learned": today.new_cards_learned,
                            "cards_reviewed": today.cards_reviewed,
                        },
                    },
                    indent=2,
                )
            )
            return

        typer.echo(f"Due: {progress.due}  New: {progress.new_cards}  Learned: {progress.learned}")
        typer.echo(f"Retention: {progress.retention:.1%}")
        typer.echo(f"Total reviews: {global_stats.total_reviews}")
        typer.echo(f"Streak: {global_stats.streak_days} day(s)")
        typer.echo(
            f"Today: {today.new_cards_learned} new, {today.cards_reviewed} reviewed "
            f"({scheduler.remaining_new_today()} new / "
            f"{scheduler.remaining_reviews_today()} reviews left)"
        )

    _run(run())


@app.command()
def due(
    ctx: typer.Context,
    group: Annotated[str | None, typer.Option(help="Only cards of this group id.")] = None,
    queue: Annotated[
        bool, typer.Option("--queue", help="Show today's study queue: new cards first.")
    ] = False,
):
    """List the cards that are due now, within today's limits."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)

    async def run():
        scheduler = await build_scheduler(config)
        if group and scheduler.get_card_group(group) is None:
            typer.secho(f"No group with id '{group}'.", fg="red", err=True)
            raise typer.Exit(1)

        cards = scheduler.get_study_queue(group) if queue else scheduler.get_due_cards(group)
        if not cards:
            typer.secho("No cards due.", fg="green")
            return
        for card in cards:
            label = "new" if card.is_new else _fmt_time(card.next_review)
            typer.echo(f"{card.id}  {label}  {card.text}")

    _run(run())


@app.command()
def groups(ctx: typer.Context):
    """List card groups with their filters and sizes."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)

    async def run():
        scheduler = await build_scheduler(config)
        card_groups = scheduler.get_card_groups()
        if not card_groups:
            typer.echo("No groups defined.")
            return
        for g in card_groups:
            progress = scheduler.get_group_progress(g.id)
            typer.echo(
                f"{g.id}  {g.name}  [{g.filter}]  "
                f"{progress.learned + progress.new_cards} cards, {progress.due} due"
            )

    _run(run())


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    output: Annotated[Path, typer.Argument(help="File to write the JSON export to.")],
):
    """Export the full state (cards, groups, stats) as JSON."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)

    async def run():
        scheduler = await build_scheduler(config)
        blob = scheduler.export_data()
        output.write_text(json.dumps(blob, indent=2, ensure_ascii=False), encoding="utf-8")
        typer.secho(f"Exported {len(blob['cards'])} cards to {output}", fg="green")

    _run(run())


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="JSON export to import.", exists=True)],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Do not ask before replacing all data.")
    ] = False,
):
    """Replace the current state with a JSON export."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)
    try:
        blob = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.secho(f"Invalid JSON in {source}: {e}", fg="red", err=True)
        raise typer.Exit(1)

    if not force:
        typer.confirm(f"Replace all data in {config.data_file}?", abort=True)

    async def run():
        scheduler = await build_scheduler(config)
        if not scheduler.import_data(blob):
            typer.secho("Import rejected: not a hicards export.", fg="red", err=True)
            raise typer.Exit(1)
        await scheduler.close()
        typer.secho(f"Imported {len(scheduler.get_all_cards())} cards.", fg="green")

    _run(run())


@app.command()
def sync(
    ctx: typer.Context,
    feed: Annotated[Path, typer.Argument(help="YAML highlight feed.")],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report changes without saving.")
    ] = False,
):
    """Reconcile cards with a YAML highlight feed, file by file."""
    from hicards.application.factory import build_scheduler
    from hicards.infrastructure.adapters.yaml_feed import load_highlight_feed

    config = _config(ctx)

    async def run():
        entries_by_file = load_highlight_feed(feed)
        scheduler = await build_scheduler(config)

        created = deleted = kept = 0
        for file_path, entries in entries_by_file.items():
            result = scheduler.sync_file(file_path, entries)
            created += result.created
            deleted += result.deleted
            kept += result.kept

        if dry_run:
            typer.secho("Dry run: nothing saved.", fg="yellow")
        else:
            await scheduler.close()
        typer.echo(
            f"{len(entries_by_file)} file(s): {created} created, {deleted} deleted, {kept} kept"
        )

    _run(run())


@app.command("anki-export")
def anki_export(
    ctx: typer.Context,
    output: Annotated[
        Path | None, typer.Argument(help="File to write. Prints to stdout if omitted.")
    ] = None,
):
    """Export the latest cards as Anki import text (Front;Back;Tags)."""
    from hicards.application.factory import build_scheduler

    config = _config(ctx)

    async def run():
        scheduler = await build_scheduler(config)
        text = scheduler.export_to_anki()
        if not text:
            typer.secho("No cards to export.", fg="yellow")
            return
        if output is None:
            typer.echo(text)
        else:
            output.write_text(text + "\n", encoding="utf-8")
            typer.secho(f"Wrote {output}", fg="green")

    _run(run())


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
