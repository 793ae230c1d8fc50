import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from thumbgen.config.loader import load_config
from thumbgen.config.models import AppConfig
from thumbgen.config.input_dirs import resolve_locations, split_dirs_argument
from thumbgen.domain.errors import ConfigurationError, EnumerationReason
from thumbgen.domain.events import JobCompleted, JobFailed
from thumbgen.domain.models import Catalog, PipelineRun
from thumbgen.infrastructure.logging import setup_logging
from thumbgen.infrastructure.event_bus import EventBus
from thumbgen.infrastructure.converter import ConverterAdapter
from thumbgen.infrastructure.housekeeping import HousekeepingService
from thumbgen.pipeline.catalog import CatalogBuilder
from thumbgen.pipeline.executor import PipelineExecutor, resolve_parallelism

DEFAULT_CONFIG_PATH = Path("conf/thumbgen.yaml")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2

app = typer.Typer(help="thumbgen - one thumbnail per album folder, bounded by CPU count")
console = Console()


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is not None:
        return load_config(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return AppConfig()


def _print_summary(catalog: Catalog, run: PipelineRun) -> None:
    console.print(
        f"[bold]Thumbnails:[/bold] {len(run.succeeded)} written, "
        f"{len(run.failed)} failed, {len(catalog.errors)} folders skipped "
        f"(parallelism {run.parallelism})"
    )
    if not run.failed and not catalog.errors:
        return

    table = Table(title="Problems", show_lines=False)
    table.add_column("Path", overflow="fold")
    table.add_column("Kind")
    table.add_column("Reason")
    table.add_column("Message", overflow="fold")
    for error in catalog.errors:
        table.add_row(str(error.location), "folder", error.reason.value, error.message)
    for outcome in run.failed:
        table.add_row(str(outcome.job.source_path), outcome.job.media_kind.value.lower(), outcome.error.reason.value, outcome.error.message)
    console.print(table)


def _exit_code(catalog: Catalog, run: PipelineRun) -> int:
    hard_errors = [e for e in catalog.errors if e.reason != EnumerationReason.NO_ARTIFACT]
    if run.failed or hard_errors:
        return EXIT_PARTIAL
    return EXIT_OK


@app.command()
def generate(
    input_dirs_arg: Optional[str] = typer.Argument(
        None,
        help="Folder or comma-separated folders to thumbnail (optional if set in config)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=f"Path to YAML config (default {DEFAULT_CONFIG_PATH} if present)"),
    albums: bool = typer.Option(False, "--albums", help="Treat each folder as a root whose subfolders are the albums"),
    parallelism: Optional[int] = typer.Option(None, "--parallelism", "-p", help="Max concurrent conversions (default: CPU count)"),
    height: Optional[int] = typer.Option(None, "--height", min=1, help="Override thumbnail height in pixels"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.001, help="Per-conversion timeout in seconds"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Write all thumbnails to this folder"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Generate one thumbnail per folder with ImageMagick (stills) or ffmpeg (video)."""
    try:
        config = _load_app_config(config_path)
        if height: config.general.target_height = height
        if timeout: config.general.timeout_s = timeout
        if output_dir is not None: config.general.output_dir = str(output_dir)
        if log_path is not None: config.general.log_path = str(log_path)
        if debug: config.general.debug = True

        # Fail on a bad --parallelism before touching the filesystem
        limit = resolve_parallelism(parallelism, config.general.parallelism)

        raw_dirs = split_dirs_argument(input_dirs_arg) if input_dirs_arg is not None else config.input_dirs
        locations = resolve_locations(raw_dirs, albums=albums)

        logger = setup_logging(Path(config.general.log_path), debug=config.general.debug)
        logger.info(f"thumbgen started: locations={len(locations)}, parallelism={limit}")
        logger.info(
            f"Config: height={config.general.target_height}, timeout={config.general.timeout_s}, "
            f"image_tool={config.general.image_tool}, video_tool={config.general.video_tool}"
        )

        bus = EventBus()
        catalog = CatalogBuilder(config.general, event_bus=bus).build(locations)
        removed = HousekeepingService().cleanup_temp_files(job.destination_path for job in catalog.jobs)
        if removed:
            logger.info(f"Removed {removed} stale .tmp files")

        executor = PipelineExecutor(config.general, converter=ConverterAdapter(config.general), event_bus=bus)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Generating thumbnails", total=len(catalog.jobs))
            bus.subscribe(JobCompleted, lambda _event: progress.advance(task))
            bus.subscribe(JobFailed, lambda _event: progress.advance(task))
            run = executor.run(catalog, parallelism=limit)

        _print_summary(catalog, run)
        code = _exit_code(catalog, run)
        if code != EXIT_OK:
            raise typer.Exit(code=code)

    except KeyboardInterrupt:
        typer.secho("\nStopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except (ConfigurationError, ValidationError, FileNotFoundError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)

    except Exception as e:
        with open("error.log", "a") as f:
            import traceback
            traceback.print_exc(file=f)
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)


if __name__ == "__main__":
    app()
