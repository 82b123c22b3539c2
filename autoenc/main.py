import typer
from datetime import datetime
from pathlib import Path
from typing import Tuple
from rich.console import Console

from autoenc.config.loader import load_config
from autoenc.config.source_dirs import build_source_dir_lines, evaluate_source_dirs
from autoenc.domain.events import PublishCompleted, PublishFailed, PublishSkipped
from autoenc.infrastructure.command_builder import EncoderCommandBuilder
from autoenc.infrastructure.event_bus import EventBus
from autoenc.infrastructure.file_scanner import FileScanner
from autoenc.infrastructure.housekeeping import HousekeepingService
from autoenc.infrastructure.logging import setup_logging
from autoenc.infrastructure.notifications import WatchService
from autoenc.infrastructure.process_runner import ProcessRunner
from autoenc.infrastructure.readiness import ReadinessProber
from autoenc.infrastructure.timestamps import parse_cli_timestamp, set_last_modified
from autoenc.pipeline.event_loop import EventLoop
from autoenc.pipeline.publisher import Publisher
from autoenc.pipeline.watch_tree import WatchTreeManager

app = typer.Typer(help="autoenc - watch folders and transcode new camera clips")


def _touch_last_modified(file_path: str, when_text: str) -> None:
    try:
        when = parse_cli_timestamp(when_text)
        set_last_modified(Path(file_path), when)
    except (ValueError, OSError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{file_path}: last modified set to {when.strftime('%Y-%m-%d %H:%M')}")


@app.command()
def watch(
    config_path: Path = typer.Option(Path("conf/autoenc.yaml"), "--config", "-c", help="Path to YAML config"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging and encoder output"),
    last_modified: Tuple[str, str] = typer.Option(
        (None, None),
        "--last-modified",
        metavar="FILE 'MM dd yyyy HH:mm'",
        help="Set FILE's last-modified time and exit",
    ),
):
    """Watch the configured folders and transcode every new source file."""
    if last_modified[0] is not None:
        _touch_last_modified(*last_modified)
        return

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as exc:
        # pydantic's ValidationError is a ValueError
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    debug = debug or config.general.debug
    console = Console(stderr=True)
    logger = setup_logging(debug=debug, log_path=config.general.log_path, console=console)

    if not config.source_dirs:
        typer.secho("Error: No source directories set in config (source_dirs).", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    roots, status_entries = evaluate_source_dirs(config.source_dirs)
    console.print(f"Source folders: {len(status_entries)}")
    for line in build_source_dir_lines(status_entries):
        console.print(line)
    if len(roots) != len(status_entries):
        typer.secho(
            "Error: Some source directories are missing or inaccessible.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    logger.info(
        f"autoenc started: roots={len(roots)}, extension={config.source_extension}, "
        f"archive={config.archive_dir_name}, output={config.encoder.output_extension}"
    )

    if config.general.cleanup_temp_on_start:
        housekeeper = HousekeepingService(archive_dir_name=config.archive_dir_name)
        for root in roots:
            housekeeper.cleanup_temp_files(root, config.encoder.temp_suffix)

    bus = EventBus()
    counters = {"published": 0, "skipped": 0, "failed": 0}

    def count(key: str):
        def _increment(event) -> None:
            counters[key] += 1
        return _increment

    bus.subscribe(PublishCompleted, count("published"))
    bus.subscribe(PublishSkipped, count("skipped"))
    bus.subscribe(PublishFailed, count("failed"))

    scanner = FileScanner(config.source_extension, config.archive_dir_name)
    service = WatchService()
    watch_tree = WatchTreeManager(service, scanner, event_bus=bus)
    publisher = Publisher(
        config=config,
        file_scanner=scanner,
        prober=ReadinessProber(poll_interval_s=config.general.poll_interval_s),
        command_builder=EncoderCommandBuilder(config.encoder.command),
        runner=ProcessRunner(forward_output=config.encoder.forward_output or debug),
        event_bus=bus,
    )
    loop = EventLoop(service, watch_tree, publisher, event_bus=bus)

    start_time = datetime.now()
    try:
        service.start()
        try:
            loop.start(roots)
        except OSError as exc:
            logger.exception("Initial scan failed")
            typer.secho(f"Error: Initial scan failed: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        console.print("[green]Watching for new files. Press Ctrl+C to stop.[/]")
        loop.run()
    except KeyboardInterrupt:
        typer.secho("\nStopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
    finally:
        watch_tree.close()
        service.close()
        elapsed = datetime.now() - start_time
        logger.info(
            f"autoenc finished: published={counters['published']}, skipped={counters['skipped']}, "
            f"failed={counters['failed']}, elapsed={str(elapsed).split('.')[0]}"
        )


if __name__ == "__main__":
    app()
