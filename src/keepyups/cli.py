"""Command-line interface for keepyups.

Built with Typer for commands and Rich for beautiful output.
"""

import logging
import time
from contextlib import contextmanager
from typing import Generator, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .challenge import ChallengeEngine, ChallengeMode, build_engine
from .config import Config, get_config
from .ticker import Ticker

# Create the main app
app = typer.Typer(
    name="keepyups",
    help="Keep the keepy-ups challenge counter going, one tick at a time.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
set_app = typer.Typer(help="Change the counter, day, targets and timing.")
app.add_typer(set_app, name="set")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def configure_logging(level: str) -> None:
    """Send log records through Rich at the configured level."""
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_config() -> Config:
    """Load and validate configuration, exiting on errors."""
    config = get_config()
    configure_logging(config.log_level)

    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(1)
    return config


@contextmanager
def open_engine() -> Generator[ChallengeEngine, None, None]:
    """Build an engine, reconcile the stored state, and persist on exit."""
    engine = build_engine(load_config())
    if not engine.store.is_available():
        print_warning("State storage is unavailable; progress will not be saved.")
    engine.start_session()
    try:
        yield engine
    finally:
        engine.close()


def format_status_table(engine: ChallengeEngine) -> Table:
    """Create a rich table describing the challenge."""
    progress = engine.progress()

    table = Table(title="Keepy-ups Challenge", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Counter", progress.formatted_counter)
    table.add_row("Day", progress.day_label)
    table.add_row(
        "Mode",
        "Count down" if progress.mode == ChallengeMode.COUNT_DOWN else "Count up",
    )
    table.add_row("Target", f"{progress.terminal_value:,} (from {progress.start_value:,})")
    table.add_row("Progress", f"{progress.percent:.1f}%")
    if progress.mode == ChallengeMode.COUNT_UP:
        table.add_row("Overall", f"{progress.overall_percent:.1f}%")
    table.add_row("Batch", f"{progress.batch_size.value} ({progress.batch_accumulator} ticks in)")
    table.add_row("Tick rate", f"{progress.tick_interval_ms} ms")

    if progress.is_complete:
        state = "[bold green]Complete[/bold green]"
    elif progress.paused:
        state = "[yellow]Paused[/yellow]"
    else:
        state = "[green]Running[/green]"
    table.add_row("State", state)

    return table


def _show_success(engine: ChallengeEngine) -> None:
    if engine.show_success:
        console.print(
            Panel(
                f"{engine.day_label} complete!",
                title="Success",
                style="bold green",
            )
        )


# ============================================================================
# Challenge Commands
# ============================================================================


@app.command()
def version() -> None:
    """Show the keepyups version."""
    console.print(f"keepyups {__version__}")


@app.command()
def status() -> None:
    """Show the current challenge state."""
    with open_engine() as engine:
        console.print(format_status_table(engine))
        _show_success(engine)


@app.command()
def run(
    duration: Optional[float] = typer.Option(
        None, "--duration", "-d", help="Stop after this many seconds"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Don't show the live view"),
) -> None:
    """Run the counter in the foreground until Ctrl-C.

    Examples:
      keepyups run                  # Tick until interrupted
      keepyups run --duration 60    # Tick for one minute
    """
    with open_engine() as engine:
        if not engine.resume():
            print_warning(f"{engine.day_label} is already complete.")
            _show_success(engine)
            return

        ticker = Ticker(engine.advance, lambda: engine.tick_interval_ms)
        started = time.monotonic()

        def keep_going() -> bool:
            if engine.is_paused:
                return False
            return duration is None or time.monotonic() - started < duration

        ticker.start()
        try:
            if quiet:
                while keep_going():
                    time.sleep(0.05)
            else:
                with Live(format_status_table(engine), console=console, refresh_per_second=8) as live:
                    while keep_going():
                        time.sleep(0.1)
                        live.update(format_status_table(engine))
        except KeyboardInterrupt:
            print_info("Interrupted.")
        finally:
            ticker.stop()

        if not engine.is_complete:
            engine.pause()
        console.print(f"Counter: [bold]{engine.formatted_counter}[/bold] ({engine.day_label})")
        _show_success(engine)


@app.command()
def pause() -> None:
    """Pause the counter."""
    with open_engine() as engine:
        engine.pause()
        print_success(f"Paused at {engine.formatted_counter}.")


@app.command()
def resume() -> None:
    """Mark the counter as running; progress is caught up on the next start."""
    with open_engine() as engine:
        if not engine.resume():
            print_warning(f"{engine.day_label} is already complete.")
            raise typer.Exit(1)
        print_success(f"Running from {engine.formatted_counter}.")


@app.command()
def toggle() -> None:
    """Toggle between paused and running."""
    with open_engine() as engine:
        paused = engine.toggle_pause()
        state = "Paused" if paused else "Running"
        print_success(f"{state} at {engine.formatted_counter}.")


@app.command("reset-day")
def reset_day() -> None:
    """Restart today's count from the start value."""
    with open_engine() as engine:
        engine.reset_day()
        print_success(f"{engine.day_label} reset to {engine.formatted_counter}.")


@app.command("next-day")
def next_day() -> None:
    """Move on to the next challenge day."""
    with open_engine() as engine:
        if not engine.advance_day():
            print_warning(f"Already on the last day ({engine.day_label}).")
            raise typer.Exit(1)
        print_success(f"Now on {engine.day_label}.")


@app.command()
def mode(
    new_mode: ChallengeMode = typer.Argument(..., help="Count 'down' to zero or 'up' to the goal"),
) -> None:
    """Switch between counting down and counting up."""
    with open_engine() as engine:
        engine.set_mode(new_mode)
        print_success(f"Counting {new_mode.value} from {engine.formatted_counter}.")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all saved challenge state."""
    if not yes and not typer.confirm("Delete all saved challenge progress?", default=False):
        print_info("Cancelled.")
        raise typer.Exit(0)

    engine = build_engine(load_config())
    if not engine.clear():
        print_error("Could not clear saved state.")
        raise typer.Exit(1)
    print_success("Saved challenge state cleared.")


# ============================================================================
# Setting Commands
# ============================================================================


def _apply_setting(label: str, value: int, setter_name: str) -> None:
    with open_engine() as engine:
        setter = getattr(engine, setter_name)
        if not setter(value):
            print_error(f"Invalid {label}: {value}")
            raise typer.Exit(1)
        print_success(f"{label.capitalize()} set to {value:,}.")


@set_app.command("counter")
def set_counter(value: int = typer.Argument(..., help="New counter value")) -> None:
    """Set the counter directly."""
    _apply_setting("counter", value, "set_counter")


@set_app.command("day")
def set_day(value: int = typer.Argument(..., help="Challenge day (1-25)")) -> None:
    """Jump to a challenge day."""
    _apply_setting("day", value, "set_day")


@set_app.command("daily-target")
def set_daily_target(value: int = typer.Argument(..., help="Count-down start value")) -> None:
    """Set the daily count-down start value."""
    _apply_setting("daily target", value, "set_daily_target")


@set_app.command("overall-target")
def set_overall_target(value: int = typer.Argument(..., help="Count-up goal")) -> None:
    """Set the overall count-up goal."""
    _apply_setting("overall target", value, "set_overall_target")


@set_app.command("remaining")
def set_remaining(value: int = typer.Argument(..., help="Count-up distance per day")) -> None:
    """Set how far below the goal each count-up day starts."""
    _apply_setting("remaining to goal", value, "set_remaining_to_goal")


@set_app.command("tick-rate")
def set_tick_rate(value: int = typer.Argument(..., help="Milliseconds per tick (50-5000)")) -> None:
    """Set the tick interval."""
    _apply_setting("tick rate", value, "set_tick_interval_ms")


@set_app.command("batch")
def set_batch(value: int = typer.Argument(..., help="Ticks per step: 1, 100 or 1000")) -> None:
    """Set how many ticks make one counter step."""
    _apply_setting("batch size", value, "set_batch_size")


if __name__ == "__main__":
    app()
