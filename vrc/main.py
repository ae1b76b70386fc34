import typer
import yaml
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, BarColumn, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.markup import escape
from rich.table import Table

from vrc.config.loader import load_config
from vrc.config.models import AppConfig
from vrc.infrastructure.logging import setup_logging
from vrc.infrastructure.event_bus import EventBus
from vrc.infrastructure.file_scanner import FileScanner
from vrc.infrastructure.disk_space import DiskSpaceGuard
from vrc.infrastructure.ffprobe import FFprobeAdapter
from vrc.infrastructure.ffmpeg import FFmpegAdapter
from vrc.pipeline.orchestrator import BatchRunner
from vrc.pipeline.review_ledger import ReviewLedger
from vrc.pipeline.validation import ProbeValidator
from vrc.domain.events import (
    DiscoveryFinished, JobStarted, JobCompleted, JobSkipped, JobFailed, ProcessingFinished, RunAborted
)
from vrc.domain.models import RunSummary

app = typer.Typer(help="VRC (Video Remux Converter) - stream-copy .ts/.flv to validated .mp4")


def format_size(size: float) -> str:
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}TB"


def attach_progress(bus: EventBus, progress: Progress):
    """Drives a rich progress bar from pipeline events."""
    state = {"task_id": None}

    @bus.subscribe(DiscoveryFinished)
    def _on_discovery(event: DiscoveryFinished):
        state["task_id"] = progress.add_task("Converting", total=event.files_to_process)

    @bus.subscribe(JobStarted)
    def _on_started(event: JobStarted):
        if state["task_id"] is not None:
            progress.update(state["task_id"], description=f"[{event.index}/{event.total}] {escape(event.task.path.name)}")

    def _advance(_event):
        if state["task_id"] is not None:
            progress.advance(state["task_id"])

    for event_type in (JobCompleted, JobSkipped, JobFailed):
        bus.subscribe(event_type, _advance)


def render_summary(console: Console, summary: RunSummary, log_file: Optional[Path], review_path: Optional[Path]):
    table = Table(title="Conversion summary", show_header=False)
    table.add_row("Attempted", str(summary.attempted))
    table.add_row("Converted", str(summary.converted))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Needs review", str(summary.needs_review))
    console.print(table)
    console.print(f"Log: {log_file or 'console only'}")
    if review_path is not None:
        console.print(f"Manual review ledger: {review_path}")


def attach_report(bus: EventBus, console: Console, log_file: Optional[Path]):
    """Prints the abort reason or the final summary when the run ends."""

    @bus.subscribe(RunAborted)
    def _on_aborted(event: RunAborted):
        typer.secho(f"Aborted: {event.reason}", fg=typer.colors.RED, err=True)

    @bus.subscribe(ProcessingFinished)
    def _on_finished(event: ProcessingFinished):
        render_summary(console, event.summary, log_file, event.review_path)


@app.command()
def convert(
    target_dir_arg: Optional[Path] = typer.Argument(
        None,
        help="Directory to scan for .ts/.flv files (optional if set in config)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Where .mp4 files are written (default: target dir)"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    review_path: Optional[Path] = typer.Option(None, "--review-path", help="Path to manual review ledger (overrides config)"),
    delete_source: Optional[bool] = typer.Option(None, "--delete-source/--keep-source", help="Delete originals after a validated conversion"),
    reset_review: bool = typer.Option(False, "--reset-review", help="Empty the manual review ledger before the run"),
    min_free_space: Optional[int] = typer.Option(None, "--min-free-space", help="Abort when the output volume has fewer free bytes"),
    no_space_check: bool = typer.Option(False, "--no-space-check", help="Skip the free space precondition"),
    max_batch_size: Optional[int] = typer.Option(None, "--max-batch-size", help="Stop collecting once the batch would exceed this many bytes"),
    max_size_diff: Optional[int] = typer.Option(None, "--max-size-diff", help="Reject outputs whose size differs from the source by more bytes"),
    ffmpeg_bin: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg executable"),
    ffprobe_bin: Optional[str] = typer.Option(None, "--ffprobe", help="ffprobe executable"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-file ffmpeg deadline in seconds"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Remux legacy video files to MP4, validate them and clean up originals."""
    console = Console()

    try:
        config = load_config(config_path) if config_path is not None else AppConfig()
        general = config.general
        # Apply CLI overrides
        if target_dir_arg is not None: general.target_dir = str(target_dir_arg)
        if output_dir is not None: general.output_dir = str(output_dir)
        if log_path is not None: general.log_path = str(log_path)
        if review_path is not None: general.review_path = str(review_path)
        if delete_source is not None: general.delete_source = delete_source
        if reset_review: general.reset_review_ledger = True
        if min_free_space is not None: general.min_free_space_bytes = min_free_space
        if no_space_check: general.check_disk_space = False
        if max_batch_size is not None: general.max_batch_size_bytes = max_batch_size
        if max_size_diff is not None: general.max_size_diff_bytes = max_size_diff
        if ffmpeg_bin is not None: config.tools.ffmpeg = ffmpeg_bin
        if ffprobe_bin is not None: config.tools.ffprobe = ffprobe_bin
        if timeout is not None: config.tools.transcode_timeout_s = timeout
        if debug: general.debug = True
        # Re-run field validation on the overridden values
        config = AppConfig.model_validate(config.model_dump())
    except (FileNotFoundError, ValidationError, ValueError, yaml.YAMLError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if not config.general.target_dir:
        typer.secho("Error: No target directory provided in CLI or config.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    general = config.general
    log_file = general.log_file()
    target = general.target_path()
    if not target.is_dir() and target in log_file.parents:
        # A file log would create the missing target; the runner aborts on it
        log_file = None

    try:
        logger = setup_logging(log_file, debug=general.debug, console=console)

        console.rule("Video batch remux (ffmpeg stream copy)")
        console.print(f"Target: {general.target_path()}")
        console.print(f"Output: {general.output_path()}")
        console.print(f"Log: {log_file or 'console only'}")
        console.print(f"Manual review ledger: {general.review_file()}")
        limit = format_size(general.max_batch_size_bytes) if general.max_batch_size_bytes else "unlimited"
        console.print(f"Extensions: {', '.join(general.extensions)} → .mp4 | Batch limit: {limit}")
        logger.info(
            f"Config: delete_source={general.delete_source}, min_free={general.min_free_space_bytes}, "
            f"max_batch={general.max_batch_size_bytes}, max_size_diff={general.max_size_diff_bytes}, "
            f"ffmpeg={config.tools.ffmpeg}, ffprobe={config.tools.ffprobe}"
        )

        bus = EventBus()
        ffprobe = FFprobeAdapter(executable=config.tools.ffprobe, timeout_s=config.tools.probe_timeout_s)
        runner = BatchRunner(
            config=config,
            event_bus=bus,
            file_scanner=FileScanner(general.extensions, general.max_batch_size_bytes),
            ffmpeg_adapter=FFmpegAdapter(
                executable=config.tools.ffmpeg,
                faststart=config.tools.faststart,
                timeout_s=config.tools.transcode_timeout_s,
            ),
            validator=ProbeValidator(ffprobe, max_size_diff_bytes=general.max_size_diff_bytes),
            disk_guard=DiskSpaceGuard(),
            ledger=ReviewLedger(general.review_file()),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            attach_progress(bus, progress)
            attach_report(bus, console, log_file)
            summary = runner.run()

        if summary.aborted:
            raise typer.Exit(code=1)

    except KeyboardInterrupt:
        typer.secho("\n✓ Conversion stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except Exception as e:
        with open("error.log", "a") as f:
            import traceback
            traceback.print_exc(file=f)
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
