"""CLI interface: fetch datasets, inspect files, run SQL and the walkthroughs."""

from pathlib import Path

import click

from ..cli.ui import UI
from ..config import Config
from ..errors import DuckverbsError
from ..fetch.catalog import census_archive, downloads, taxi_files
from ..fetch.fetcher import ensure_all
from ..pipelines import census as census_pipeline
from ..pipelines import taxi as taxi_pipeline
from ..query.engine import Engine


def _parse_named_path(value: str) -> tuple:
    if "=" in value:
        name, path = value.split("=", 1)
        return name.strip(), Path(path.strip())
    path = Path(value)
    return None, path


@click.group()
@click.option("--data-dir", default=None, help="Data directory (default: $DATA_DIR or ./data)")
@click.option("--memory-limit", default=None, help="DuckDB memory limit, e.g. 4GB")
@click.pass_context
def cli(ctx, data_dir, memory_limit):
    """Fetch public datasets and explore them with DuckDB."""
    ctx.ensure_object(dict)
    config = Config.from_env()
    if data_dir is not None:
        config.data_dir = Path(data_dir)
    if memory_limit is not None:
        config.memory_limit = memory_limit
    ctx.obj["config"] = config
    ctx.obj["ui"] = UI.create()


@cli.command()
@click.argument("dataset", type=click.Choice(["taxi", "census"]))
@click.option("--year", default=2023, show_default=True, help="Taxi year")
@click.option("--month", default=1, show_default=True, help="Taxi month (1..12)")
@click.option(
    "--color",
    default="yellow",
    type=click.Choice(["yellow", "green"]),
    show_default=True,
)
@click.option("--workers", default=None, type=int, help="Parallel downloads")
@click.pass_context
def fetch(ctx, dataset, year, month, color, workers):
    """Download a dataset into the data directory (skips files already present)."""
    config: Config = ctx.obj["config"]
    config.ensure_dirs()
    files = taxi_files(year, month, color) if dataset == "taxi" else [census_archive()]
    try:
        paths = ensure_all(
            downloads(files, config.data_dir),
            max_workers=workers or config.download_workers,
            timeout=config.download_timeout_sec,
            chunk_bytes=config.download_chunk_bytes,
        )
    except DuckverbsError as e:
        click.echo(f"✗ Error: {str(e)}")
        raise click.Abort()
    for p in paths:
        click.echo(f"✓ {p}")


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "parquet"]),
    default=None,
    help="File format (default: from the extension)",
)
@click.option("--rows", default=None, type=int, help="Preview rows")
@click.pass_context
def describe(ctx, path, fmt, rows):
    """Show the inferred schema and the first rows of a CSV/Parquet file."""
    config: Config = ctx.obj["config"]
    ui: UI = ctx.obj["ui"]
    fmt = fmt or path.suffix.lstrip(".").lower()
    with Engine(config) as engine:
        try:
            query = engine.scan(path, fmt)
            head = query.preview(rows if rows is not None else config.preview_rows)
        except (DuckverbsError, ValueError) as e:
            click.echo(f"✗ Error: {str(e)}")
            raise click.Abort()
        ui.schema(query.schema, title=f"Schema of {path.name}")
        ui.result(head, title="Preview")


@cli.command()
@click.argument("query")
@click.option(
    "--csv",
    "csv_files",
    multiple=True,
    help="Register a CSV file as a view: NAME=PATH (or PATH)",
)
@click.option(
    "--parquet",
    "parquet_files",
    multiple=True,
    help="Register a Parquet file as a view: NAME=PATH (or PATH)",
)
@click.pass_context
def sql(ctx, query, csv_files, parquet_files):
    """Run raw SQL against registered CSV/Parquet files."""
    config: Config = ctx.obj["config"]
    ui: UI = ctx.obj["ui"]
    with Engine(config) as engine:
        try:
            for fmt, specs in (("csv", csv_files), ("parquet", parquet_files)):
                for spec in specs:
                    name, path = _parse_named_path(spec)
                    ref = engine.load(path, fmt, name=name)
                    click.echo(f"✓ Registered {ref}")
            result = engine.sql(query)
        except DuckverbsError as e:
            click.echo(f"✗ Error: {str(e)}")
            raise click.Abort()
        ui.result(result)


@cli.command()
@click.option("--year", default=2023, show_default=True)
@click.option("--month", default=1, show_default=True)
@click.option("--rows", default=None, type=int, help="Preview rows")
@click.pass_context
def taxi(ctx, year, month, rows):
    """NYC taxi walkthrough: per-borough summary and busiest routes."""
    config: Config = ctx.obj["config"]
    ui: UI = ctx.obj["ui"]
    n = rows if rows is not None else config.preview_rows
    config.ensure_dirs()
    try:
        files = taxi_pipeline.fetch(config, year=year, month=month)
        with Engine(config) as engine:
            tables = taxi_pipeline.load(engine, files)
            ui.rule(f"Yellow taxi trips {year}-{month:02d}")
            ui.result(
                taxi_pipeline.borough_summary(tables).collect(),
                title="Trips per borough",
            )
            ui.result(
                taxi_pipeline.trips_by_passenger_count(tables).preview(n),
                title="Trips by passenger count",
            )
            ui.result(
                taxi_pipeline.busiest_routes(engine, n),
                title="Busiest routes (SQL)",
            )
    except DuckverbsError as e:
        click.echo(f"✗ Error: {str(e)}")
        raise click.Abort()


@cli.command()
@click.option("--year", default=2018, show_default=True, help="Census year (2006, 2013 or 2018)")
@click.option("--area", default=None, help="Area name for the ethnic breakdown")
@click.option("--rows", default=None, type=int, help="Preview rows")
@click.pass_context
def census(ctx, year, area, rows):
    """New Zealand census walkthrough: population by area and sex."""
    config: Config = ctx.obj["config"]
    ui: UI = ctx.obj["ui"]
    n = rows if rows is not None else config.preview_rows
    config.ensure_dirs()
    try:
        files = census_pipeline.fetch(config)
        with Engine(config) as engine:
            tables = census_pipeline.load(engine, files)
            ui.rule(f"NZ census {year}")
            ui.result(
                census_pipeline.population_by_area_and_sex(tables, year).preview(n),
                title="Population by area and sex",
            )
            if area:
                ui.result(
                    census_pipeline.ethnic_breakdown(tables, area, year).collect(),
                    title=f"Ethnic groups in {area}",
                )
            ui.result(
                census_pipeline.suppressed_cell_share(tables, year),
                title="Suppressed cells (SQL)",
            )
    except DuckverbsError as e:
        click.echo(f"✗ Error: {str(e)}")
        raise click.Abort()


if __name__ == "__main__":
    cli()
