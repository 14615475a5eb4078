"""Command-line interface for Course Player."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from course_player.config import get_settings
from course_player.logging import configure_logging

app = typer.Typer(
    name="course-player",
    help="Course Player - lesson video playback and progress tracking",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
) -> None:
    """Course Player CLI."""
    settings = get_settings()
    if debug or settings.debug:
        configure_logging(log_level="DEBUG", log_file=settings.log_file)
    else:
        configure_logging(log_level=settings.log_level, log_file=settings.log_file)


# Config commands
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show current configuration."""
    settings = get_settings()

    config_dict = {}
    for field_name in type(settings).model_fields:
        value = getattr(settings, field_name)
        config_dict[field_name] = str(value) if isinstance(value, Path) else value

    if json_output:
        rprint(json.dumps(config_dict, indent=2))
        return

    table = Table(title="Course Player Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for field_name, value in config_dict.items():
        # Don't show secrets in full
        if field_name == "storage_key" and value:
            display_value = f"{str(value)[:4]}..."
        elif field_name == "database_url" and "://" in str(value):
            display_value = str(value).split("://")[0] + "://..."
        else:
            display_value = str(value)
        table.add_row(field_name, display_value)

    console.print(table)


# Database commands
db_app = typer.Typer(help="Progress database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Create the progress tables."""
    from course_player.database import init_db

    init_db()
    rprint("[green]Database initialized[/green]")


@app.command("resolve")
def resolve(
    reference: str = typer.Argument(..., help="Video URL or storage path"),
    public: bool = typer.Option(False, "--public", help="Path is a public course video"),
) -> None:
    """Resolve a video reference into a playable URL."""
    from course_player.exceptions import ResolutionError
    from course_player.playback.resolver import MediaSourceResolver

    resolver = MediaSourceResolver.from_settings(get_settings())
    try:
        url = asyncio.run(resolver.resolve(reference, is_public_asset=public))
    except ResolutionError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    rprint(url)


# Progress commands
progress_app = typer.Typer(help="Lesson progress")
app.add_typer(progress_app, name="progress")


@progress_app.command("show")
def progress_show(
    user_id: str = typer.Argument(..., help="User ID"),
    lesson_id: str = typer.Argument(..., help="Lesson ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show saved progress for a user on a lesson."""
    from course_player.progress import SqlProgressStore

    record = asyncio.run(SqlProgressStore().read_progress(user_id, lesson_id))

    if record is None:
        rprint(f"[yellow]No progress saved for {user_id} on {lesson_id}[/yellow]")
        raise typer.Exit(code=1)

    if json_output:
        rprint(
            json.dumps(
                {
                    "user_id": record.user_id,
                    "lesson_id": record.lesson_id,
                    "course_id": record.course_id,
                    "watch_time": record.watch_time,
                    "completed": record.completed,
                },
                indent=2,
            )
        )
        return

    from course_player.web.components.player import format_time

    rprint(f"[cyan]{record.user_id}[/cyan] on [cyan]{record.lesson_id}[/cyan]")
    rprint(f"  • Position: {format_time(record.watch_time)}")
    rprint(f"  • Completed: {'yes' if record.completed else 'no'}")


@app.command("simulate")
def simulate(
    reference: str = typer.Argument(..., help="Video URL or storage path"),
    duration: float = typer.Option(300.0, "--duration", "-d", help="Clip length in seconds"),
    watch: Optional[float] = typer.Option(None, "--watch", "-w", help="Seconds to watch (default: all)"),
    user_id: str = typer.Option("demo-user", "--user", help="User ID for progress tracking"),
    lesson_id: str = typer.Option("demo-lesson", "--lesson", help="Lesson ID for progress tracking"),
    public: bool = typer.Option(False, "--public", help="Path is a public course video"),
    save: bool = typer.Option(False, "--save", help="Persist progress to the database"),
) -> None:
    """Play a reference on a simulated engine and show the progress reports."""
    from course_player.playback import (
        LoadingPhase,
        MediaSourceResolver,
        PlaybackController,
        PlayerOptions,
        SimulatedEngine,
    )
    from course_player.progress import SqlProgressStore, progress_callback

    settings = get_settings()
    reports: list[tuple[float, bool]] = []
    store = SqlProgressStore() if save else None
    persist = progress_callback(store, user_id, lesson_id) if store else None

    async def on_progress(time: float, completed: bool = False) -> None:
        reports.append((time, completed))
        if persist:
            await persist(time, completed)

    async def run() -> PlaybackController:
        engine = SimulatedEngine(duration=duration)
        options = PlayerOptions(
            source_reference=reference,
            user_id=user_id,
            lesson_id=lesson_id,
            on_progress=on_progress,
            is_public_asset=public,
            auto_play=True,
        )
        player = PlaybackController(
            options,
            engine,
            MediaSourceResolver.from_settings(settings),
            settings=settings,
            progress_store=store,
        )
        async with player:
            if player.phase is LoadingPhase.ERROR:
                return player
            engine.become_ready()
            await player.settle()
            engine.advance(watch if watch is not None else duration)
            await player.settle()
        return player

    player = asyncio.run(run())
    session = player.session

    if session.error:
        rprint(f"[red]{session.error}[/red]")
        raise typer.Exit(code=1)

    rprint(f"[cyan]Resolved:[/cyan] {session.resolved_url}")

    table = Table(title="Progress Reports", show_header=True)
    table.add_column("#", style="cyan")
    table.add_column("Time", style="green")
    table.add_column("Completed", style="yellow")
    for i, (time, completed) in enumerate(reports, 1):
        table.add_row(str(i), f"{time:.1f}s", "yes" if completed else "")
    console.print(table)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
) -> None:
    """Run the player web app."""
    from course_player.web.app import serve_app

    serve_app(host=host, port=port)


if __name__ == "__main__":
    app()
