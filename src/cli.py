"""CLI interface for the Roger That content pipeline."""

import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from rogerthat.config import RogerThatConfig, load_config, merge_cli_overrides
from rogerthat.shared.errors import PipelineReport, RogerThatError

app = typer.Typer(
    name="rogerthat",
    help="Generate daily celebrity puzzles, the celebrity bank and caricature images.",
    no_args_is_help=True,
)
daily_game_app = typer.Typer(help="Daily game commands.", no_args_is_help=True)
celebrities_app = typer.Typer(help="Celebrity bank commands.", no_args_is_help=True)
images_app = typer.Typer(help="Image commands.", no_args_is_help=True)
settings_app = typer.Typer(help="Prompt settings commands.", no_args_is_help=True)
app.add_typer(daily_game_app, name="daily-game")
app.add_typer(celebrities_app, name="celebrities")
app.add_typer(images_app, name="images")
app.add_typer(settings_app, name="settings")

console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from rogerthat import __version__

        console.print(f"rogerthat {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .rogerthat.toml file."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", help="Model for text generation (e.g. haiku, sonnet)."),
    ] = None,
    provider: Annotated[
        Optional[str],
        typer.Option("--provider", help="Text generation backend: auto, anthropic, openai or cli."),
    ] = None,
    storage_dir: Annotated[
        Optional[Path],
        typer.Option("--storage-dir", help="Directory holding the store file."),
    ] = None,
    images_dir: Annotated[
        Optional[Path],
        typer.Option("--images-dir", help="Directory generated images are written to."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Roger That - AI content pipeline for the daily celebrity game."""
    setup_logging(verbose)
    try:
        config = load_config(config_path)
        config = merge_cli_overrides(
            config,
            model=model,
            provider=provider,
            storage_dir=str(storage_dir) if storage_dir else None,
            images_dir=str(images_dir) if images_dir else None,
        )
    except (RogerThatError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    ctx.obj = config


def _config(ctx: typer.Context) -> RogerThatConfig:
    config = ctx.obj
    if not isinstance(config, RogerThatConfig):
        config = load_config()
    return config


def _print_report(report: PipelineReport) -> None:
    table = Table(title=report.stage, show_header=False)
    table.add_column("Counter")
    table.add_column("Value", justify="right")
    for label in ("created", "updated", "skipped", "linked", "images"):
        table.add_row(label, str(getattr(report, label)))
    console.print(table)
    for error in report.errors:
        console.print(f"  [yellow]-[/yellow] {error}")


@daily_game_app.command("create")
def daily_game_create(
    ctx: typer.Context,
    game_date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Game date (YYYY-MM-DD). Defaults to today."),
    ] = None,
    strategy: Annotated[
        Optional[str],
        typer.Option("--strategy", help="Puzzle strategy: combined or legacy."),
    ] = None,
) -> None:
    """Create the daily game for a date unless one exists."""
    from rogerthat.jobs import create_daily_game

    config = merge_cli_overrides(_config(ctx), strategy=strategy)
    target: date | None = None
    if game_date:
        try:
            target = date.fromisoformat(game_date)
        except ValueError:
            console.print(f"[red]Error:[/red] Invalid date format: {game_date}")
            console.print("Use YYYY-MM-DD format (e.g., 2026-02-14)")
            raise typer.Exit(1) from None

    try:
        game = create_daily_game(config, target)
    except RogerThatError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(
        f"[green]Game {game.id}[/green] for {game.game_date.isoformat()}: "
        f"answer {game.answer_id}, subjects {', '.join(str(s) for s in game.subject_ids)}"
    )


@celebrities_app.command("generate")
def celebrities_generate(ctx: typer.Context) -> None:
    """Grow the celebrity bank with two model requests."""
    from rogerthat.jobs import generate_celebrities

    try:
        report = generate_celebrities(_config(ctx))
    except RogerThatError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    _print_report(report)


@celebrities_app.command("regenerate-image")
def celebrities_regenerate_image(
    ctx: typer.Context,
    celebrity_id: Annotated[int, typer.Argument(help="Celebrity id.")],
) -> None:
    """Force a new caricature for one celebrity."""
    from rogerthat.jobs import regenerate_celebrity_image

    report = regenerate_celebrity_image(_config(ctx), celebrity_id)
    _print_report(report)
    if not report.ok:
        raise typer.Exit(1)


@images_app.command("generate-missing")
def images_generate_missing(ctx: typer.Context) -> None:
    """Generate images for every celebrity without a photo."""
    from rogerthat.jobs import generate_missing_images

    report = generate_missing_images(_config(ctx))
    _print_report(report)


@settings_app.command("seed")
def settings_seed(
    ctx: typer.Context,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace prompts that are already set."),
    ] = False,
) -> None:
    """Write the default prompt settings into the store."""
    from rogerthat.jobs import seed_settings
    from rogerthat.store import CelebrityStore

    store = CelebrityStore(_config(ctx).storage_dir)
    written = seed_settings(store, overwrite=overwrite)
    if not written:
        console.print("[yellow]All prompt settings already present.[/yellow]")
        return
    console.print(f"[green]Seeded {len(written)} setting(s):[/green]")
    for key in written:
        console.print(f"  - {key}")


if __name__ == "__main__":
    app()
