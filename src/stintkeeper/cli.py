"""
Command line interface for operating the race session
"""

import asyncio
import logging
import sys
import warnings
from pathlib import Path

import click
from pydantic import ValidationError

import stintkeeper
from stintkeeper import ctx
from stintkeeper.events import EventBroker, RaceSequenceEvt, SpecialEvt, StintEvt
from stintkeeper.race import timing
from stintkeeper.race.events import (
    AddStint,
    CompletePractice,
    DeleteStint,
    EditStint,
    EditStintStartTime,
    LoadConfig,
    MoveStint,
    PausePractice,
    PauseRace,
    RaceEvent,
    Refuel,
    ResetPractice,
    ResetRace,
    ResumePractice,
    ResumeRace,
    SetOfficialStartTime,
    StartPractice,
    StartRace,
    SwapDriver,
)
from stintkeeper.race.models import RaceConfiguration, RaceState
from stintkeeper.race.session import RaceSession
from stintkeeper.storage import JsonFileStore
from stintkeeper.utils import background
from stintkeeper.utils.config import DEFAULT_CONFIG_FILE, StintkeeperConfig
from stintkeeper.utils.logging import configure_logging
from stintkeeper.utils.time import (
    duration_formatted_string,
    epoch_ms_formatted_string,
    get_current_epoch_millis,
    iso_to_epoch_millis,
)

# pylint: disable=E0401

if sys.platform in ("linux", "darwin"):
    from uvloop import run
elif sys.platform == "win32":
    from winloop import run
else:
    from asyncio import run

    warnings.warn(
        (
            "The detected operating system does not support accelerated "
            "event loops; defaulting to the base event loop."
        ),
        RuntimeWarning,
    )

logger = logging.getLogger(__name__)


def _open_session(broker: EventBroker | None = None) -> RaceSession:
    """
    Build a session on the configured store and load the persisted state
    """
    settings = ctx.config_ctx.get()
    store = JsonFileStore(
        settings.storage.directory,
        config_key=settings.storage.config_key,
        state_key=settings.storage.state_key,
    )
    session = RaceSession(
        store, broker=broker, tick_interval=settings.timing.tick_interval_sec
    )
    session.load()
    return session


def _parse_time(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return iso_to_epoch_millis(value)
    except ValueError as ex:
        raise click.BadParameter(f"{value!r} is not an ISO-8601 time") from ex


def render_status(state: RaceState, now: int) -> str:
    """
    Render the derived timing values of a state

    :param state: The race state
    :param now: The current time in milliseconds since epoch
    :return: A multiline summary
    """
    config = state.config
    race = timing.race_status(state)
    lines = [
        f"Race:     {race.name}  "
        f"elapsed {duration_formatted_string(timing.race_elapsed_ms(state, now))}  "
        f"remaining {duration_formatted_string(timing.race_remaining_ms(state, now))}"
    ]

    practice = timing.practice_status(state)
    if config.has_practice:
        lines.append(
            f"Practice: {practice.name}  elapsed "
            f"{duration_formatted_string(timing.practice_elapsed_ms(state, now))}  "
            f"remaining "
            f"{duration_formatted_string(timing.practice_remaining_ms(state, now))}"
        )

    stint_count = len(config.stint_sequence)
    driver_line = (
        f"Driver:   {config.driver_name(state.current_driver_id)}  "
        f"(stint {state.current_stint_index + 1}/{stint_count})"
    )
    if state.stint_start_time is not None:
        driver_line += (
            f"  on track {duration_formatted_string(timing.stint_elapsed_ms(state, now))}"
        )
        if (remaining := timing.stint_remaining_ms(state, now)) is not None:
            driver_line += f"  planned {duration_formatted_string(remaining)} left"
    lines.append(driver_line)

    fuel_line = (
        f"Fuel:     {timing.fuel_percentage(state, now):.1f}%  "
        f"{duration_formatted_string(timing.fuel_remaining_ms(state, now))}"
    )
    if state.fuel_alert_active:
        fuel_line += "  LOW FUEL"
    lines.append(fuel_line)

    if (driver := timing.next_planned_driver(state)) is not None:
        lines.append(f"Next:     {driver.name}")

    return "\n".join(lines)


def render_history(state: RaceState) -> str:
    """
    Render the completed stint log

    :param state: The race state
    :return: One line per completed stint
    """
    if not state.completed_stints:
        return "No completed stints"

    return "\n".join(
        f"#{entry.stint_number:<3} {entry.driver_name:<20} "
        f"{epoch_ms_formatted_string(entry.start_time)} -> "
        f"{epoch_ms_formatted_string(entry.end_time)}  "
        f"{duration_formatted_string(entry.actual_duration_ms)}"
        f"{'  refuelled' if entry.refuelled else ''}"
        for entry in state.completed_stints
    )


def _apply(event: RaceEvent) -> None:
    session = _open_session()
    previous = session.state
    state = session.dispatch(event)

    if state is previous:
        click.echo(f"{type(event).__name__} not allowed in the current state", err=True)
    click.echo(render_status(state, get_current_epoch_millis()))


@click.group()
@click.option(
    "--settings",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Application settings file",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Overrides the directory holding the race configuration and state",
)
@click.pass_context
def cli(click_ctx: click.Context, settings: Path | None, data_dir: Path | None):
    """Endurance race timing: race clock, driver stints and fuel."""
    click_ctx.ensure_object(dict)
    click_ctx.obj["settings"] = DEFAULT_CONFIG_FILE if settings is None else settings

    if settings is not None:
        ctx.config_ctx.set(StintkeeperConfig.from_file(settings))

    if data_dir is not None:
        config = ctx.config_ctx.get()
        storage = config.storage.model_copy(update={"directory": data_dir})
        ctx.config_ctx.set(config.model_copy(update={"storage": storage}))

    if click_ctx.obj.get("configure_logging"):
        configure_logging(ctx.config_ctx.get().logging)
        logger.info("Stintkeeper version: %s", stintkeeper.__version__)


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def init(path: Path):
    """Write the default application settings to PATH."""
    if path.exists():
        raise click.ClickException(f"{path} already exists")

    StintkeeperConfig().write_config_to_file(path)
    click.echo(f"Settings written to {path}")


@cli.command()
@click.option("--history", is_flag=True, help="Include the completed stint log")
def status(history: bool):
    """Show the current race state."""
    state = _open_session().state
    click.echo(render_status(state, get_current_epoch_millis()))
    if history:
        click.echo()
        click.echo(render_history(state))


@cli.command("show-config")
def show_config():
    """Print the race configuration as JSON."""
    state = _open_session().state
    click.echo(state.config.model_dump_json(by_alias=True, indent=2))


@cli.command("load-config")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def load_config(path: Path):
    """Replace the race configuration with the JSON file at PATH."""
    try:
        config = RaceConfiguration.model_validate_json(path.read_bytes())
    except ValidationError as ex:
        raise click.ClickException(f"Invalid race configuration:\n{ex}") from ex

    _apply(LoadConfig(config))


@cli.command("start-practice")
def start_practice():
    """Start the practice session."""
    _apply(StartPractice())


@cli.command("pause-practice")
def pause_practice():
    """Pause the practice session."""
    _apply(PausePractice())


@cli.command("resume-practice")
def resume_practice():
    """Resume the practice session."""
    _apply(ResumePractice())


@cli.command("complete-practice")
def complete_practice():
    """End the practice session early."""
    _apply(CompletePractice())


@cli.command("reset-practice")
def reset_practice():
    """Return the practice session to idle."""
    _apply(ResetPractice())


@cli.command("start-race")
def start_race():
    """Start the race."""
    _apply(StartRace())


@cli.command("pause-race")
def pause_race():
    """Pause the race."""
    _apply(PauseRace())


@cli.command("resume-race")
def resume_race():
    """Resume the race."""
    _apply(ResumeRace())


@cli.command("reset-race")
@click.confirmation_option(prompt="Discard all race progress?")
def reset_race():
    """Discard all race and practice progress."""
    _apply(ResetRace())


@cli.command()
@click.argument("driver_id")
@click.option("--no-refuel", is_flag=True, help="The tank was not filled")
@click.option(
    "--planned", type=float, default=None, help="Planned minutes of the next stint"
)
@click.option("--at", "at_", default=None, help="ISO-8601 time of the swap")
def swap(driver_id: str, no_refuel: bool, planned: float | None, at_: str | None):
    """Hand the car over to DRIVER_ID."""
    _apply(
        SwapDriver(
            next_driver_id=driver_id,
            refuel=not no_refuel,
            next_stint_planned_duration_minutes=planned,
            swap_time=_parse_time(at_),
        )
    )


@cli.command()
@click.option("--at", "at_", default=None, help="ISO-8601 time of the refuel")
def refuel(at_: str | None):
    """Fill the tank without a driver swap."""
    _apply(Refuel(fuel_time=_parse_time(at_)))


@cli.command("set-official-start")
@click.argument("when", required=False)
def set_official_start(when: str | None):
    """Schedule the race start at WHEN (ISO-8601). Omit to clear."""
    if when is not None:
        _parse_time(when)
    _apply(SetOfficialStartTime(when))


@cli.command("add-stint")
@click.argument("driver_id")
@click.option("--planned", type=float, default=None, help="Planned minutes")
def add_stint(driver_id: str, planned: float | None):
    """Append a stint for DRIVER_ID."""
    _apply(AddStint(driver_id=driver_id, planned_duration_minutes=planned))


@cli.command("edit-stint")
@click.argument("index", type=int)
@click.argument("driver_id")
@click.option("--planned", type=float, default=None, help="Planned minutes")
def edit_stint(index: int, driver_id: str, planned: float | None):
    """Assign DRIVER_ID to the stint at INDEX (1-based)."""
    _apply(
        EditStint(index=index - 1, driver_id=driver_id, planned_duration_minutes=planned)
    )


@cli.command("delete-stint")
@click.argument("index", type=int)
def delete_stint(index: int):
    """Remove the stint at INDEX (1-based)."""
    _apply(DeleteStint(index=index - 1))


@cli.command("move-stint")
@click.argument("source", type=int)
@click.argument("target", type=int)
def move_stint(source: int, target: int):
    """Move the stint at SOURCE to TARGET (1-based)."""
    _apply(MoveStint(from_index=source - 1, to_index=target - 1))


@cli.command("edit-stint-start")
@click.argument("when")
def edit_stint_start(when: str):
    """Correct the start of the running stint to WHEN (ISO-8601)."""
    start = _parse_time(when)
    assert start is not None
    _apply(EditStintStartTime(start_time=start))


def _echo_notification(*, message: str, timestamp: int, **_kwargs) -> None:
    click.echo(f"[{epoch_ms_formatted_string(timestamp)}] {message}")


_MONITOR_NOTIFICATIONS = {
    RaceSequenceEvt.RACE_COMPLETE: "Race complete",
    StintEvt.FUEL_ALERT: "LOW FUEL",
    StintEvt.FUEL_ALERT_CLEARED: "Fuel alert cleared",
    SpecialEvt.CONFIG_UPDATE: "Race configuration updated",
}


async def _monitor(refresh: float, settings_file: Path) -> None:
    """
    Keep the clocks ticking and print the status until cancelled. The
    store is reloaded every refresh so commands issued from other
    shells are picked up.
    """
    ctx.loop_ctx.set(asyncio.get_running_loop())

    if not settings_file.exists():
        logger.info("Writing default settings to %s", settings_file)
        await ctx.config_ctx.get().write_config_to_file_async(settings_file)

    broker = EventBroker()
    ctx.event_broker_ctx.set(broker)

    for evt, message in _MONITOR_NOTIFICATIONS.items():
        broker.register_event_callback(
            evt, _echo_notification, default_kwargs={"message": message}
        )

    session = _open_session(broker)
    ctx.race_session_ctx.set(session)
    session.start()

    try:
        while True:
            click.echo(render_status(session.state, get_current_epoch_millis()))
            click.echo()
            await asyncio.sleep(refresh)
            session.load()

    finally:
        session.stop()
        await background.shutdown(5)


@cli.command()
@click.option(
    "--refresh",
    type=click.FloatRange(min=0.1),
    default=1.0,
    show_default=True,
    help="Seconds between status updates",
)
@click.pass_obj
def monitor(obj: dict, refresh: float):
    """Run the race clock and print the status until interrupted."""
    try:
        run(_monitor(refresh, obj["settings"]))
    except KeyboardInterrupt:
        logger.info("Monitor stopped")
