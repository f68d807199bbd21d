"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vidsub_cli.models.config import AppConfig
from vidsub_cli.models.media import Asset, ProcessingStatus, SubtitleCue
from vidsub_cli.models.stats import DownloadStats
from vidsub_cli.subtitles import format_timestamp
from vidsub_cli.utils.formatting import format_duration, format_size, shorten

_STATUS_STYLES = {
    ProcessingStatus.NOT_STARTED: "dim",
    ProcessingStatus.EXTRACTING_AUDIO: "yellow",
    ProcessingStatus.TRANSCRIBING: "yellow",
    ProcessingStatus.TRANSLATING: "yellow",
    ProcessingStatus.COMPLETED: "green",
    ProcessingStatus.FAILED: "red",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "InvalidSourceError": [
            "• Only absolute http:// or https:// URLs can be downloaded.",
            "• Check the URL for typos or missing characters.",
        ],
        "DownloadFailedError": [
            "• The server may be refusing the request or be temporarily down.",
            "• Some hosts require a browser User-Agent; set `user_agent` in config.",
            "• Raise `request_timeout` if the connection is slow.",
        ],
        "ManifestParsingError": [
            "• The URL may not point to an HLS playlist.",
            "• Try `--kind mp4` if this is a plain video file.",
        ],
        "SegmentDownloadError": [
            "• None of the stream segments could be retrieved.",
            "• The stream may be encrypted, geo-blocked or expired.",
        ],
        "ExportError": [
            "• Make sure ffmpeg and ffprobe are installed and on your PATH.",
            "• Run `vidsub diagnose` to check the external tools.",
        ],
        "AudioExtractionError": [
            "• The video may not contain an audio track.",
            "• Make sure ffmpeg is installed and on your PATH.",
        ],
        "ModelNotLoadedError": [
            "• Install the speech model with `pip install 'vidsub-cli[whisper]'`.",
            "• Check `whisper_model` in your configuration.",
        ],
        "TranscriptionError": [
            "• Try a larger `whisper_model` or check the audio quality.",
            "• Run `vidsub process <ID>` again to restart processing.",
        ],
        "TranslationError": [
            "• Check `source_language` and `target_language` in your configuration.",
            "• Run `vidsub process <ID>` again to restart processing.",
        ],
        "AssetNotFoundError": [
            "• Run `vidsub list` to see the IDs of downloaded videos.",
            "• A unique prefix of an ID is enough.",
        ],
        "PipelineBusyError": [
            "• Wait for the current run to finish before starting another.",
        ],
        "ConfigurationError": [
            "• Run `vidsub init` to create a configuration file.",
            "• Run `vidsub validate` to see which setting is wrong.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Raise `request_timeout` in your configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in sorted(config_data.items()))
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: AppConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Videos Directory:", f"[dim]{config.data_dir}[/dim]")
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Max Segment Failures:", f"{config.max_failure_rate:.0%}")
    table.add_row("Playlist Depth Limit:", str(config.max_manifest_depth))
    table.add_row("Whisper Model:", config.whisper_model)
    table.add_row(
        "Languages:", f"{config.source_language} → {config.target_language}"
    )
    table.add_row("ffmpeg / ffprobe:", f"{config.ffmpeg_path} / {config.ffprobe_path}")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_assets_table(assets: list[Asset]):
    """Lists downloaded videos with their processing status."""
    console = Console()
    if not assets:
        console.print(
            "[dim]No downloaded videos yet. Try:[/] [cyan]vidsub download <URL>[/cyan]"
        )
        return

    table = Table(box=box.ROUNDED, title=f"Downloaded Videos ({len(assets)})")
    table.add_column("ID", style="bold magenta", no_wrap=True)
    table.add_column("Title", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Downloaded", style="dim")
    table.add_column("Status")
    table.add_column("Cues", justify="right")

    for asset in assets:
        style = _STATUS_STYLES.get(asset.status, "")
        status = f"[{style}]{asset.status.description}[/{style}]"
        if asset.status == ProcessingStatus.FAILED and asset.error:
            status += f"\n[dim]{shorten(asset.error, 40)}[/dim]"
        table.add_row(
            asset.id[:8],
            shorten(asset.title, 40),
            format_size(asset.file_size),
            asset.downloaded_at.strftime("%Y-%m-%d %H:%M"),
            status,
            str(len(asset.subtitles)) if asset.subtitles else "-",
        )
    console.print(table)


def print_cue(cue: SubtitleCue | None, timestamp: float):
    console = Console()
    if cue is None:
        console.print(
            f"[dim]No subtitle at {format_timestamp(timestamp, '.')}.[/dim]"
        )
        return
    console.print(
        Panel(
            f"[bold]{cue.translated_text}[/bold]\n[dim]{cue.original_text}[/dim]",
            title=(
                f"{format_timestamp(cue.start, '.')} → "
                f"{format_timestamp(cue.end, '.')}"
            ),
            border_style="cyan",
            expand=False,
        )
    )


def print_summary_panel(stats: DownloadStats, duration_s: float):
    """Displays a final summary of the session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.videos_downloaded}[/bold green]"
    )
    if stats.videos_processed > 0:
        stats_table.add_row(
            "✓ Subtitled:", f"[bold green]{stats.videos_processed}[/bold green]"
        )
    if stats.videos_cancelled > 0:
        stats_table.add_row(
            "○ Cancelled:", f"[yellow]{stats.videos_cancelled}[/yellow]"
        )
    if stats.videos_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.videos_failed}[/bold red]")
    if stats.processing_failed > 0:
        stats_table.add_row(
            "✗ Not Subtitled:", f"[bold red]{stats.processing_failed}[/bold red]"
        )
    if stats.segments_failed > 0:
        stats_table.add_row(
            "⚠ Segments Skipped:", f"[yellow]{stats.segments_failed}[/yellow]"
        )

    stats_table.add_row("", "")

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    avg_speed = stats.total_size_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    failed = stats.videos_failed + stats.processing_failed
    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎬 [bold]Session Complete[/bold]",
            border_style="yellow" if failed else "green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    for failure in stats.failures:
        console.print(f"  [red]✗[/red] {failure}")
    console.print()
