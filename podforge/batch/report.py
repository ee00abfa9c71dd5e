"""Human-readable batch summary."""

from typing import List, Optional

from rich.console import Console

from ..domain.models import BatchResult, ProcessingError

console = Console()


def _print_group(out: Console, heading: str, style: str, errors: List[ProcessingError]) -> None:
    if not errors:
        return
    out.print(f"\n[bold {style}]{heading} ({len(errors)}):[/bold {style}]")
    for error in errors:
        out.print(f"  • {error.url}: {error.message}", markup=False, highlight=False)


def print_batch_report(result: BatchResult, out: Optional[Console] = None) -> None:
    """Print the batch summary grouped by phase.

    Rejected sources are listed apart from failures: they will never work,
    while generation and upload failures may succeed on a later run.
    """
    out = out or console
    generated = result.successful_generations

    out.print(f"\n[bold]{'=' * 60}[/bold]")
    out.print("[bold]Batch Processing Summary:[/bold]\n")
    out.print(f"Total candidates: {result.total}")
    out.print(f"[green]Successful generations: {generated}/{result.total}[/green]")
    out.print(f"[green]Successful uploads: {result.successful_uploads}/{generated}[/green]")

    if result.has_errors:
        failures = len(result.generation_errors) + len(result.upload_errors)
        out.print(f"\n[bold red]Processing errors ({failures} total)[/bold red]")
        _print_group(out, "Generation failures", "red", result.generation_errors)
        _print_group(out, "Upload failures", "red", result.upload_errors)

    _print_group(
        out,
        "Rejected sources (marked non-podcastable)",
        "yellow",
        result.invalid_resources,
    )

    if result.total and not result.errors:
        out.print("\n[green]All candidates processed successfully![/green]")
    elif not result.total:
        out.print("\n[dim]Nothing to process in this run[/dim]")

    out.print(f"[bold]{'=' * 60}[/bold]\n")
