"""
subline.cli - Typer CLI entry point.

Provides subcommands to transcribe media, re-render edited transcripts,
convert subtitle files, and check the environment.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from subline import __version__
from subline.exceptions import SublineError, UnsupportedFormatError
from subline.models import StageEvent, StageStatus, SubtitleFormat, TranscriptDraft

app = typer.Typer(
    name="subline",
    help="Media-to-subtitle transcription toolkit.\n\n"
    "Transcribes audio or video with a timed speech model, optionally refines the "
    "text with a second model and an LLM editor, and writes TXT, SRT, or WebVTT.",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    StageStatus.START: "[dim]…[/dim]",
    StageStatus.DONE: "[green]✓[/green]",
    StageStatus.SKIPPED: "[dim]-[/dim]",
    StageStatus.ERROR: "[red]✗[/red]",
}


class ConsoleSink:
    """Prints stage events to a rich console."""

    def __init__(self, out: Console) -> None:
        self.out = out

    def __call__(self, event: StageEvent) -> None:
        line = f"{STATUS_STYLES[event.status]} {event.stage.value}"
        if event.message:
            line += f" [dim]({event.message})[/dim]"
        self.out.print(line)


def resolve_output_path(input_path: Path, output: Path | None) -> tuple[Path, SubtitleFormat]:
    """Work out where to write and in which format.

    Defaults to `<input stem>.srt` next to the input. An explicit output's
    extension picks the format; an output without one gets `.srt`.

    Raises:
        UnsupportedFormatError: If the output extension is not txt/srt/vtt
    """
    from subline.subtitles.render import normalize_subtitle_format

    if output is None:
        return input_path.with_suffix(".srt"), SubtitleFormat.SRT

    if not output.suffix:
        return output.with_name(output.name + ".srt"), SubtitleFormat.SRT

    try:
        fmt = normalize_subtitle_format(output.suffix)
    except UnsupportedFormatError:
        raise UnsupportedFormatError(
            "Unsupported output format. Supported: .txt, .srt, .vtt"
        ) from None
    return output, fmt


def version_callback(value: bool) -> None:
    if value:
        console.print(f"subline {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Subline - media-to-subtitle transcription toolkit."""
    pass


@app.command("transcribe")
def transcribe(
    input_file: Path = typer.Argument(..., help="Audio or video file"),
    output: Path | None = typer.Argument(None, help="Output subtitle file (.srt, .vtt, .txt)"),
    fmt: str | None = typer.Option(
        None, "--format", "-f", help="Output format, overrides the output extension"
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML config file"),
    json_output: Path | None = typer.Option(
        None, "--json", help="Also write the full result (segments, warnings) as JSON"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Abort after this many seconds"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Transcribe a media file into a subtitle file."""
    from subline.cancellation import CancelToken
    from subline.config import load_config
    from subline.io import write_json, write_text
    from subline.logging import configure_logging
    from subline.pipeline import transcribe_media
    from subline.subtitles.render import format_timestamp, normalize_subtitle_format

    configure_logging(verbose)

    try:
        config = load_config(config_file)
        output_path, output_format = resolve_output_path(input_file.resolve(), output)
        if fmt:
            output_format = normalize_subtitle_format(fmt)
            output_path = output_path.with_suffix(f".{output_format.value}")
    except (SublineError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[cyan]Transcribing {input_file.name}[/cyan] "
        f"[dim]({output_format.value} using {config.timed_model})[/dim]"
    )

    try:
        result = transcribe_media(
            input_file,
            desired_format=output_format,
            progress_sink=ConsoleSink(console),
            config=config,
            cancel=CancelToken(timeout),
        )
    except SublineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    write_text(output_path, result.subtitle.content)
    if json_output:
        write_json(json_output, result.model_dump(mode="json"))

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    console.print(f"[green]✓[/green] Transcript saved to {output_path}")
    duration = format_timestamp(result.segments[-1].end if result.segments else 0.0, ".")
    console.print(f"[dim]  {len(result.segments)} segments, {duration}[/dim]")


def _load_transcript(path: Path) -> TranscriptDraft:
    from subline.io import read_json

    data = read_json(path)
    if isinstance(data, list):
        data = {"segments": data}
    transcript = TranscriptDraft(text=data.get("text") or "", segments=data.get("segments") or [])
    if not transcript.text:
        transcript.text = transcript.joined_text()
    return transcript


@app.command("render")
def render(
    segments_file: Path = typer.Argument(..., help="Segments JSON (list or object with segments)"),
    output: Path = typer.Argument(..., help="Output subtitle file"),
    fmt: str | None = typer.Option(None, "--format", "-f", help="Output format"),
) -> None:
    """Render an edited segments JSON file as subtitles."""
    from pydantic import ValidationError as PydanticValidationError

    from subline.io import write_text
    from subline.subtitles.render import normalize_subtitle_format, render_subtitle

    try:
        transcript = _load_transcript(segments_file)
        output_path, output_format = resolve_output_path(segments_file, output)
        if fmt:
            output_format = normalize_subtitle_format(fmt)
            output_path = output_path.with_suffix(f".{output_format.value}")
        payload = render_subtitle(transcript, output_format)
    except FileNotFoundError:
        console.print(f"[red]Error: File not found: {segments_file}[/red]")
        raise typer.Exit(1)
    except (SublineError, PydanticValidationError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    write_text(output_path, payload.content)
    console.print(f"[green]✓[/green] Wrote {payload.format.value} to {output_path}")


@app.command("convert")
def convert(
    subtitle_file: Path = typer.Argument(..., help="Input .srt, .vtt, or .txt file"),
    output: Path = typer.Argument(..., help="Output file; its extension picks the format"),
) -> None:
    """Convert a subtitle file between SRT, WebVTT, and plain text."""
    from subline.io import read_text, write_text
    from subline.subtitles.parse import parse_subtitle
    from subline.subtitles.render import render_subtitle

    if not subtitle_file.exists():
        console.print(f"[red]Error: File not found: {subtitle_file}[/red]")
        raise typer.Exit(1)

    try:
        transcript = parse_subtitle(read_text(subtitle_file), subtitle_file.suffix)
        output_path, output_format = resolve_output_path(subtitle_file, output)
        payload = render_subtitle(transcript, output_format)
    except (SublineError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    write_text(output_path, payload.content)
    console.print(
        f"[green]✓[/green] Converted {len(transcript.segments)} cues to {output_path}"
    )


@app.command("check")
def check() -> None:
    """Check that FFmpeg and API credentials are available."""
    from subline.validation import run_preflight_checks

    checks = run_preflight_checks()

    table = Table(title="Environment")
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    for item in checks:
        status = "[green]ok[/green]" if item["status"] == "ok" else f"[red]{item['status']}[/red]"
        table.add_row(item["name"], status, item["detail"])

    console.print(table)

    if any(item["status"] != "ok" for item in checks):
        raise typer.Exit(1)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("subline.yaml"), help="Where to write the config"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a default YAML config file."""
    from subline.config import create_default_config, write_config

    if path.exists() and not force:
        console.print(f"[red]Error: '{path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(), path)
    console.print(f"[green]✓[/green] Wrote default config to {path}")
