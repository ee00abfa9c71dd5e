"""podforge command line interface.

Every command builds its collaborators from the global configuration and
maps failures to ``ExitCode`` values. A batch that finishes with per-item
failures still exits 0; only fatal errors abort the run.
"""

import asyncio
import json
import sys
from contextlib import contextmanager
from typing import Optional

import click
from pydantic import ValidationError as SettingsError
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..batch import print_batch_report
from ..batch.single import generate_and_upload
from ..config import get_config
from ..core.transcode import TranscodeEngine
from ..domain.enums import BoardErrorType
from ..domain.exit_codes import ExitCode
from ..errors import BoardError, PodforgeError, ValidationError
from ..logging import get_logger, setup_logging
from . import factory

logger = get_logger(__name__)
console = Console()


def _exit_code_for(error: Exception) -> ExitCode:
    if isinstance(error, ValidationError):
        return ExitCode.USER_ERROR
    if isinstance(error, BoardError) and error.error_type == BoardErrorType.INVALID_CONFIG:
        return ExitCode.USER_ERROR
    return ExitCode.SYSTEM_ERROR


@contextmanager
def _command_errors():
    """Turn failures into exit codes."""
    try:
        yield
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(ExitCode.INTERRUPTED)
    except PodforgeError as e:
        logger.error("Command failed", error=str(e), error_type=type(e).__name__)
        console.print(f"[red]Error:[/red] {e}", highlight=False)
        sys.exit(_exit_code_for(e))
    except SettingsError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}", highlight=False)
        sys.exit(ExitCode.USER_ERROR)
    except Exception as e:
        logger.exception("Unexpected error", error=str(e))
        console.print(f"[red]Unexpected error:[/red] {e}", highlight=False)
        sys.exit(ExitCode.SYSTEM_ERROR)


@click.group(context_settings={"max_content_width": 120})
@click.version_option(version=__version__, prog_name="podforge")
def main():
    """podforge - board articles to published podcast episodes

    \b
    Commands:
      batch        Generate and publish the top board candidates
      generate     Generate (and publish) a podcast for one URL
      quota        Show remaining generation slots
      score        Analyze an article's podcast suitability
      board-check  Verify board access and required columns
    """
    with _command_errors():
        setup_logging(get_config())


@main.command(name="batch", help="Run one generate-and-publish batch")
@click.option(
    "--max-candidates",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum candidates to fetch from the board (default: from config)",
)
def batch_cmd(max_candidates: Optional[int]):
    """Fetch candidates, generate what the quota allows, publish the results.

    Examples:
        podforge batch
        podforge batch --max-candidates 5
    """
    console.print("[bold blue]Batch Podcast Run[/bold blue]\n")

    with _command_errors():
        config = get_config()
        orchestrator = factory.build_orchestrator(
            config, max_candidates or config.max_candidates
        )
        result = asyncio.run(orchestrator.run())

    print_batch_report(result, console)
    sys.exit(ExitCode.SUCCESS)


@main.command(name="generate", help="Generate a podcast from a single URL")
@click.option("--url", "source_url", required=True, help="Article or video URL")
@click.option(
    "--no-upload",
    is_flag=True,
    help="Only generate and download the audio; skip conversion and publishing",
)
def generate_cmd(source_url: str, no_upload: bool):
    """Generate one podcast outside of the board.

    Examples:
        podforge generate --url https://example.com/post
        podforge generate --url https://example.com/post --no-upload
    """
    upload = not no_upload

    with _command_errors():
        config = get_config()
        result = asyncio.run(
            generate_and_upload(
                source_url,
                generator=factory.build_generator(config),
                metadata_extractor=factory.build_metadata_extractor(config),
                tracker=factory.build_tracker(config),
                converter=TranscodeEngine() if upload else None,
                publisher=factory.build_publisher(config) if upload else None,
                downloads_dir=config.downloads_dir,
                conversion_options=factory.build_conversion_options(config),
                upload=upload,
            )
        )

    console.print(f"[green]Generated:[/green] {result.podcast.details.title}", highlight=False)
    console.print(f"Audio: {result.podcast.audio_path}", highlight=False)
    if result.podcast.notebook_url:
        console.print(f"Notebook: {result.podcast.notebook_url}", highlight=False)
    if result.episode is not None:
        console.print(f"[green]Published:[/green] {result.episode.podcast_url}", highlight=False)
    sys.exit(ExitCode.SUCCESS)


@main.command(name="quota", help="Show remaining audio generation slots")
def quota_cmd():
    with _command_errors():
        config = get_config()
        tracker = factory.build_tracker(config)
        remaining = tracker.validate_rate_limit()
        entries = tracker.recent_entries()

    style = "green" if remaining else "red"
    console.print(
        f"[{style}]{remaining}/{tracker.limit}[/{style}] generations available "
        f"in the current {config.rate_limit_window_hours:g}h window"
    )

    if entries:
        table = Table(title="Recent generations")
        table.add_column("Timestamp", style="cyan")
        table.add_column("Run", style="dim")
        table.add_column("Source", overflow="fold")
        for entry in entries:
            table.add_row(
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
                entry.run_id,
                entry.resource_url,
            )
        console.print(table)
    sys.exit(ExitCode.SUCCESS)


@main.command(name="score", help="Analyze how suitable an article is for a podcast")
@click.option("--url", "source_url", required=True, help="Article URL")
@click.option("--json", "as_json", is_flag=True, help="Print metadata as JSON")
def score_cmd(source_url: str, as_json: bool):
    with _command_errors():
        extractor = factory.build_metadata_extractor(get_config())
        metadata = asyncio.run(extractor.extract_metadata_from_url(source_url))

    if as_json:
        click.echo(json.dumps(metadata.model_dump(mode="json", by_alias=True), indent=2))
        sys.exit(ExitCode.SUCCESS)

    table = Table(title=metadata.title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Content type", metadata.content_type.value)
    table.add_row("Code content", f"{metadata.code_content_percentage}%")
    table.add_row("Text length", f"{metadata.total_text_length} characters")
    verdict = "[red]no[/red]" if metadata.is_non_podcastable else "[green]yes[/green]"
    table.add_row("Podcastable", verdict)
    console.print(table)
    sys.exit(ExitCode.SUCCESS)


@main.command(name="board-check", help="Verify board access and required columns")
def board_check_cmd():
    with _command_errors():
        board = factory.build_board(get_config(), prepare=False)
        asyncio.run(board.validate_board_access())

    console.print(f"[green]✓[/green] Board {board.board_id} is accessible and has all required columns")
    sys.exit(ExitCode.SUCCESS)


if __name__ == "__main__":
    main()
