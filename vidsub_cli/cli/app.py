"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import importlib.util
import logging
import shutil
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from vidsub_cli import __version__
from vidsub_cli.core.download_coordinator import DownloadCoordinator
from vidsub_cli.core.pipeline import ProcessingPipeline
from vidsub_cli.exceptions import DownloadCancelledError, VidsubError
from vidsub_cli.media.audio import AudioExtractor
from vidsub_cli.media.downloader import close_connection_pool
from vidsub_cli.models.config import AppConfig
from vidsub_cli.models.media import Asset, Candidate, MediaKind
from vidsub_cli.models.stats import DownloadStats
from vidsub_cli.services import PhraseTableTranslator, WhisperTranscriber
from vidsub_cli.storage.catalog import VideoCatalog
from vidsub_cli.storage.config_manager import ConfigManager, default_videos_dir
from vidsub_cli.subtitles import SubtitleFormat, cue_at, export_subtitles
from vidsub_cli.utils.path import get_config_dir

from .formatters import (
    print_assets_table,
    print_config,
    print_cue,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("vidsub_cli")

app = typer.Typer(
    name="vidsub",
    help=(
        "Download web videos, including HLS streams, and generate translated"
        " subtitles for them. Use 'vidsub <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config() -> AppConfig:
    return ConfigManager(CONFIG_FILE).load_config()


def _build_pipeline(config: AppConfig, catalog: VideoCatalog) -> ProcessingPipeline:
    return ProcessingPipeline(
        catalog,
        transcriber=WhisperTranscriber(config.whisper_model, config.source_language),
        translator=PhraseTableTranslator(
            source_language=config.source_language,
            target_language=config.target_language,
        ),
        audio_extractor=AudioExtractor(config.ffmpeg_path),
    )


async def _process_with_progress(
    pipeline: ProcessingPipeline,
    asset: Asset,
    progress: ProgressManager,
    stats: DownloadStats,
) -> bool:
    task_id = progress.add_task(f"📝 {asset.title}", stage="queued")
    try:
        result = await pipeline.process(
            asset.id, lambda f, msg: progress.update(task_id, f, msg)
        )
    except VidsubError as e:
        progress.finish_task(task_id, success=False)
        await stats.record_processing_failure(asset.title, e)
        return False
    progress.finish_task(task_id)
    await stats.record_processed()
    log.info(
        f"Subtitles ready for [cyan]{result.title}[/cyan] "
        f"([magenta]{result.id[:8]}[/magenta])"
    )
    return True


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Video Subtitle Downloader CLI"""
    if version:
        console.print(f"[bold]vidsub-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("vidsub_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]vidsub init[/cyan] first."
            )
            raise typer.Exit(code=1)
        config = _load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    videos_dir: str | None = typer.Option(
        None,
        "--videos-dir",
        "-d",
        help=f"Where videos and their metadata are stored (default {default_videos_dir()}).",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Create a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {"videos_dir": videos_dir} if videos_dir else {}
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]vidsub download <URL>[/cyan]")


@app.command(name="download")
def download_command(
    urls: list[str] = typer.Argument(  # noqa: B008
        ..., help="One or more direct video or HLS playlist (.m3u8) URLs."
    ),
    kind: MediaKind | None = typer.Option(
        None,
        "--kind",
        "-k",
        case_sensitive=False,
        help="Force the media kind instead of guessing it from the URL.",
    ),
    title: str | None = typer.Option(
        None, "--title", "-t", help="Title to record for the video(s)."
    ),
    process: bool = typer.Option(
        False, "--process", "-p", help="Generate subtitles right after downloading."
    ),
):
    """Download videos into the library."""
    config = _load_config()
    stats = DownloadStats()

    async def _download_async():
        catalog = VideoCatalog(config.data_dir)
        coordinator = DownloadCoordinator.from_config(config, stats)
        pipeline = _build_pipeline(config, catalog) if process else None

        for url in urls:
            candidate = Candidate(
                url=url, kind=kind or MediaKind.from_url(url), page_title=title
            )
            if not coordinator.add_candidate(candidate):
                log.warning(f"[yellow]Skipping duplicate URL:[/] {url}")

        start_time = time.monotonic()
        async with ProgressManager(console=console) as progress:
            try:
                for candidate in coordinator.candidates:
                    label = f"⬇ {candidate.display_name}"
                    task_id = progress.add_task(label, stage=candidate.kind.description)
                    try:
                        asset = await coordinator.download_and_register(
                            candidate,
                            catalog,
                            lambda f, t=task_id: progress.update(t, f),
                        )
                    except DownloadCancelledError:
                        progress.finish_task(task_id, success=False)
                        await stats.record_cancelled()
                        continue
                    except VidsubError as e:
                        progress.finish_task(task_id, success=False)
                        log.error(f"[red]✗ {candidate.display_name}: {e}[/red]")
                        await stats.record_failure(candidate.display_name, e)
                        continue
                    progress.finish_task(task_id)
                    log.info(
                        f"[green]✓ Downloaded[/green] [cyan]{asset.title}[/cyan] "
                        f"as [magenta]{asset.id[:8]}[/magenta]"
                    )

                    if pipeline:
                        await _process_with_progress(pipeline, asset, progress, stats)
            finally:
                await close_connection_pool()

        print_summary_panel(stats, time.monotonic() - start_time)

    asyncio.run(_download_async())
    if stats.videos_failed or stats.processing_failed:
        raise typer.Exit(code=1)


@app.command(name="list")
def list_command():
    """List downloaded videos and their subtitle status."""
    config = _load_config()
    print_assets_table(VideoCatalog(config.data_dir).videos)


@app.command(name="process")
def process_command(
    video_id: str = typer.Argument(..., help="ID (or unique ID prefix) of a video."),
):
    """Transcribe and translate a downloaded video."""
    config = _load_config()
    stats = DownloadStats()

    async def _process_async():
        catalog = VideoCatalog(config.data_dir)
        asset = catalog.require(video_id)
        pipeline = _build_pipeline(config, catalog)
        start_time = time.monotonic()
        async with ProgressManager(console=console) as progress:
            await _process_with_progress(pipeline, asset, progress, stats)
        print_summary_panel(stats, time.monotonic() - start_time)

    asyncio.run(_process_async())
    if stats.processing_failed:
        raise typer.Exit(code=1)


@app.command(name="export")
def export_command(
    video_id: str = typer.Argument(..., help="ID (or unique ID prefix) of a video."),
    fmt: SubtitleFormat = typer.Option(
        SubtitleFormat.SRT, "--format", "-f", case_sensitive=False, help="Subtitle format."
    ),
    output: Path = typer.Option(  # noqa: B008
        Path("."), "--output", "-o", help="Directory to write the subtitle file to."
    ),
):
    """Write a video's subtitles to an SRT or WebVTT file."""
    config = _load_config()
    asset = VideoCatalog(config.data_dir).require(video_id)
    path = asyncio.run(export_subtitles(asset, fmt, output))
    console.print(f"[green]✓ Subtitles written to '{path}'[/green]")


@app.command(name="subtitle")
def subtitle_command(
    video_id: str = typer.Argument(..., help="ID (or unique ID prefix) of a video."),
    seconds: float = typer.Argument(..., min=0, help="Playback position in seconds."),
):
    """Show the subtitle displayed at a playback position."""
    config = _load_config()
    asset = VideoCatalog(config.data_dir).require(video_id)
    print_cue(cue_at(asset.subtitles or [], seconds), seconds)


@app.command(name="delete")
def delete_command(
    video_id: str = typer.Argument(..., help="ID (or unique ID prefix) of a video."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete a video file and its subtitles."""
    config = _load_config()
    catalog = VideoCatalog(config.data_dir)
    asset = catalog.require(video_id)
    if not force and not typer.confirm(f"Delete '{asset.title}' and its subtitles?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    if asyncio.run(catalog.delete_video(asset.id)):
        console.print(f"[green]✓ Deleted '{asset.title}'.[/green]")
    else:
        console.print(f"[red]✗ '{asset.title}' was already removed.[/red]")


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        print_validation_table(_load_config())
    except VidsubError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def diagnose():
    """Check the configuration and the external tools subtitling relies on."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False
    if not CONFIG_FILE.is_file():
        console.print("[red]✗ Config file not found.[/] Run [cyan]vidsub init[/cyan].")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")

    try:
        config = _load_config()
        console.print("[green]✓[/] Configuration file is valid and can be loaded.")
    except VidsubError as e:
        console.print(f"[red]✗ Configuration validation failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    for name, executable in (
        ("ffmpeg", config.ffmpeg_path),
        ("ffprobe", config.ffprobe_path),
    ):
        if found := shutil.which(executable):
            console.print(f"[green]✓[/] {name} found at: [dim]{found}[/dim]")
        else:
            console.print(
                f"[red]✗ {name} not found[/] ('{executable}'). HLS assembly and"
                " audio extraction need it."
            )
            issues_found = True

    if importlib.util.find_spec("whisper") is not None:
        console.print("[green]✓[/] openai-whisper is installed.")
    else:
        console.print(
            "[red]✗ openai-whisper is not installed.[/] Install it with"
            " [cyan]pip install 'vidsub-cli[whisper]'[/cyan]."
        )
        issues_found = True

    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
