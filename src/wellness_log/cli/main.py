"""
Command-line interface for Wellness Log.

Provides commands for recording measurements, listing them, and printing
reconciled series and windowed statistics.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, NoReturn

import typer

from wellness_log.domain.records import Collection, HabitDefinition, record_key
from wellness_log.infrastructure.storage.gateway import PersistenceGateway
from wellness_log.infrastructure.storage.json_gateway import JsonFileGateway
from wellness_log.infrastructure.storage.memory_gateway import InMemoryGateway
from wellness_log.services.period_window import PeriodWindowAggregator
from wellness_log.services.record_cache import GLOBAL, RecordCacheStore
from wellness_log.utils.exceptions import ValidationError, WellnessLogError
from wellness_log.utils.logging_config import setup_logging
from wellness_log.utils.parameters import ParameterLoader

app = typer.Typer(help="Wellness Log - Personal health records and trends")

logger = logging.getLogger(__name__)


def init_config(config_path: str = "config/config.yaml") -> ParameterLoader:
    """
    Initialize configuration and logging.

    Args:
        config_path: Path to configuration file.

    Returns:
        Parameter loader instance.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config(), "wellness_log")
    return param_loader


def build_store(param_loader: ParameterLoader) -> RecordCacheStore:
    """Create the record cache over the configured storage backend."""
    storage_config = param_loader.get_storage_config()

    gateway: PersistenceGateway
    if storage_config.backend == "memory":
        gateway = InMemoryGateway()
    else:
        gateway = JsonFileGateway(storage_config.data_dir)

    return RecordCacheStore(
        gateway,
        config=param_loader.get_cache_config(),
        record_id_config=param_loader.get_record_id_config(),
    )


def _now_date_time(date: str | None, time: str | None) -> tuple[str, str]:
    now = datetime.now()
    return date or now.strftime("%Y-%m-%d"), time or now.strftime("%H:%M")


def _fail(message: str) -> NoReturn:
    logger.error(message)
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


async def _add(store: RecordCacheStore, collection: Collection, fields: dict[str, Any]) -> Any:
    await store.ensure_loaded(collection)
    created = await store.add(collection, fields)
    if created is None:
        error = store.error_for(collection)
        _fail(error.user_message if error else f"Could not add {collection.value} record")
    return created


@app.command("add-weight")
def add_weight(
    weight: float = typer.Argument(..., help="Weight in kilograms"),
    date: str | None = typer.Option(None, help="Date (YYYY-MM-DD), defaults to today"),
    time: str | None = typer.Option(None, help="Time (HH:MM), defaults to now"),
    body_fat: float | None = typer.Option(None, help="Body fat percentage"),
    waist: float | None = typer.Option(None, help="Waist circumference in centimetres"),
    exclude: bool = typer.Option(False, help="Exclude this record from graphs"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Record a weight measurement."""
    try:
        store = build_store(init_config(config_path))
        date, time = _now_date_time(date, time)
        created = asyncio.run(
            _add(
                store,
                Collection.WEIGHT,
                {
                    "date": date,
                    "time": time,
                    "weight": weight,
                    "body_fat": body_fat,
                    "waist": waist,
                    "exclude_from_graph": exclude,
                },
            )
        )
        typer.echo(f"Recorded weight {created.weight} kg ({created.date} {created.time})")

    except WellnessLogError as e:
        _fail(str(e))


@app.command("add-bp")
def add_bp(
    systolic: float = typer.Argument(..., help="Systolic pressure (mmHg)"),
    diastolic: float = typer.Argument(..., help="Diastolic pressure (mmHg)"),
    date: str | None = typer.Option(None, help="Date (YYYY-MM-DD), defaults to today"),
    time: str | None = typer.Option(None, help="Time (HH:MM), defaults to now"),
    heart_rate: float | None = typer.Option(None, help="Pulse (bpm)"),
    exclude: bool = typer.Option(False, help="Exclude this record from graphs"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Record a blood pressure reading."""
    try:
        store = build_store(init_config(config_path))
        date, time = _now_date_time(date, time)
        created = asyncio.run(
            _add(
                store,
                Collection.BLOOD_PRESSURE,
                {
                    "date": date,
                    "time": time,
                    "systolic": systolic,
                    "diastolic": diastolic,
                    "heart_rate": heart_rate,
                    "exclude_from_graph": exclude,
                },
            )
        )
        typer.echo(
            f"Recorded blood pressure {created.systolic:g}/{created.diastolic:g} "
            f"({created.date} {created.time})"
        )

    except WellnessLogError as e:
        _fail(str(e))


@app.command("define-habit")
def define_habit(
    name: str = typer.Argument(..., help="Habit name"),
    order: int = typer.Option(0, help="Sort position"),
    hidden: bool = typer.Option(False, help="Hide the habit from daily views"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Define a habit to track."""
    try:
        store = build_store(init_config(config_path))
        created = asyncio.run(
            _add(
                store,
                Collection.HABIT_DEFINITIONS,
                {"name": name, "order": order, "display": not hidden},
            )
        )
        typer.echo(f"Defined habit '{created.name}' with id {created.field_id}")

    except WellnessLogError as e:
        _fail(str(e))


@app.command("add-habit")
def add_habit(
    field_id: str = typer.Argument(..., help="Habit id (see 'list habit_definitions')"),
    value: float = typer.Argument(..., help="1 achieved, 0.5 partial, 0 not achieved"),
    date: str | None = typer.Option(None, help="Date (YYYY-MM-DD), defaults to today"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Record a habit outcome for a day."""
    try:
        store = build_store(init_config(config_path))
        date, time = _now_date_time(date, None)

        async def run() -> Any:
            await store.ensure_loaded(Collection.HABIT_DEFINITIONS)
            known = {d.field_id for d in store.records(Collection.HABIT_DEFINITIONS)}
            if field_id not in known:
                raise ValidationError(f"Unknown habit id: {field_id}")
            return await _add(
                store,
                Collection.HABIT_RECORDS,
                {"date": date, "time": time, "field_id": field_id, "value": value},
            )

        created = asyncio.run(run())
        typer.echo(f"Recorded habit {created.field_id} = {created.value:g} on {created.date}")

    except WellnessLogError as e:
        _fail(str(e))


@app.command("list")
def list_records(
    collection: Collection = typer.Argument(..., help="Collection to list"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """List the items of a collection."""
    try:
        store = build_store(init_config(config_path))
        if not asyncio.run(store.ensure_loaded(collection)):
            error = store.error_for(collection)
            _fail(error.user_message if error else "Load failed")

        items = store.records(collection)
        if isinstance(next(iter(items), None), HabitDefinition):
            items = tuple(sorted(items, key=lambda d: d.order))
        else:
            items = tuple(sorted(items, key=lambda r: (r.date, r.time)))

        for item in items:
            fields = item.model_dump(exclude={"kind"}, exclude_none=True)
            fields.pop("id", None)
            typer.echo(f"{record_key(item)}  {fields}")
        typer.echo(f"{len(items)} items")

    except WellnessLogError as e:
        _fail(str(e))


@app.command()
def delete(
    collection: Collection = typer.Argument(..., help="Collection holding the item"),
    key: str = typer.Argument(..., help="Record id (or habit id)"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Delete one item."""
    try:
        store = build_store(init_config(config_path))

        async def run() -> bool:
            await store.ensure_loaded(collection)
            return await store.delete(collection, key)

        if not asyncio.run(run()):
            error = store.error_for(collection)
            _fail(error.message if error else "Delete failed")
        typer.echo(f"Deleted {key}")

    except WellnessLogError as e:
        _fail(str(e))


@app.command()
def graph(
    series: str = typer.Argument("weight", help="Series to print: weight or bp"),
    days: int | None = typer.Option(None, help="Window length in days"),
    hide_excluded: bool = typer.Option(False, help="Drop points excluded from graphs"),
    raw: bool = typer.Option(False, help="Do not cluster blood pressure readings"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Print the reconciled series that a chart would plot."""
    try:
        param_loader = init_config(config_path)
        store = build_store(param_loader)
        if not asyncio.run(store.load_all()):
            _fail(store.error.user_message if store.error else "Load failed")

        aggregator = PeriodWindowAggregator(
            store.records(Collection.WEIGHT),
            store.records(Collection.BLOOD_PRESSURE),
            store.records(Collection.HABIT_RECORDS),
            statistics_config=param_loader.get_statistics_config(),
            reconciliation_config=param_loader.get_reconciliation_config(),
        )

        if series == "weight":
            points = aggregator.weight_series(days, include_excluded=not hide_excluded)
            for point in points:
                marker = " (excluded)" if point.excluded else ""
                typer.echo(f"{point.timestamp.isoformat()}  {point.record.weight:g} kg{marker}")
        elif series == "bp":
            points = aggregator.blood_pressure_series(
                days, include_excluded=not hide_excluded, clustered=not raw
            )
            for point in points:
                marker = " (excluded)" if point.excluded else ""
                typer.echo(
                    f"{point.timestamp.isoformat()}  "
                    f"{point.record.systolic:g}/{point.record.diastolic:g}{marker}"
                )
        else:
            _fail(f"Unknown series: {series}")

        typer.echo(f"{len(points)} points")

    except WellnessLogError as e:
        _fail(str(e))


@app.command()
def stats(
    days: int | None = typer.Option(None, help="Window length in days"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Print windowed statistics ending at the latest recorded date."""
    try:
        param_loader = init_config(config_path)
        store = build_store(param_loader)
        if not asyncio.run(store.load_all()):
            _fail(store.error.user_message if store.error else "Load failed")

        aggregator = PeriodWindowAggregator(
            store.records(Collection.WEIGHT),
            store.records(Collection.BLOOD_PRESSURE),
            store.records(Collection.HABIT_RECORDS),
            statistics_config=param_loader.get_statistics_config(),
            reconciliation_config=param_loader.get_reconciliation_config(),
        )

        bounds = aggregator.window_bounds(days)
        if bounds is None:
            typer.echo("No records yet")
            return
        typer.echo(f"Window: {bounds[0]} .. {bounds[1]}")

        extrema = aggregator.weight_extrema(days)
        if extrema.count:
            typer.echo(
                f"Weight: min {extrema.min:g} kg, max {extrema.max:g} kg "
                f"over {extrema.count} records, trend {aggregator.weight_trend()}"
            )
            line = aggregator.weight_trend_line(days)
            if line is not None:
                typer.echo(f"Weight trend line: {line.slope_per_day:+.2f} kg/day")

        bp = aggregator.blood_pressure_summary(days)
        if bp.count:
            typer.echo(
                f"Blood pressure: avg {bp.avg_systolic}/{bp.avg_diastolic} "
                f"over {bp.count} readings, trend {aggregator.blood_pressure_trend().direction}"
            )
            category = aggregator.latest_blood_pressure_category()
            if category is not None:
                typer.echo(f"Latest reading: {category.category} (risk {category.risk})")

        definitions = sorted(
            store.records(Collection.HABIT_DEFINITIONS), key=lambda d: d.order
        )
        for definition in definitions:
            if not definition.display:
                continue
            habit = aggregator.habit_achievement_stats(definition.field_id, days)
            typer.echo(
                f"{definition.name}: {habit.rate}% "
                f"({habit.achieved}/{habit.total}, {habit.partial} partial)"
            )

    except WellnessLogError as e:
        _fail(str(e))


@app.command()
def wipe(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every record"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Delete every record in every collection."""
    if not yes:
        typer.confirm("Delete all records?", abort=True)

    try:
        store = build_store(init_config(config_path))
        if not asyncio.run(store.wipe_all()):
            error = store.error_for(GLOBAL)
            _fail(error.user_message if error else "Wipe failed")
        typer.echo("All records deleted")

    except WellnessLogError as e:
        _fail(str(e))


if __name__ == "__main__":
    app()
