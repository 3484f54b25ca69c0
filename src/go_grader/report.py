"""Console rendering of grading results."""

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from go_grader.models import BenchmarkComparison, BenchmarkVerdict, PipelineResult


def comparisons_table(comparisons: Sequence[BenchmarkComparison]) -> Table:
    table = Table(title="⏱️ Benchmarks vs Baseline", show_header=True)
    table.add_column("Benchmark", style="bold")
    table.add_column("Unit")
    table.add_column("Baseline", justify="right")
    table.add_column("Submission", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("Verdict")

    for c in comparisons:
        ratio = f"{c.ratio:.2f}x" if c.ratio is not None else "-"
        verdict = (
            "[bold red]regressed[/]"
            if c.verdict is BenchmarkVerdict.REGRESSED
            else "[green]ok[/]"
        )
        table.add_row(
            c.name, c.unit, f"{c.old_mean:g}", f"{c.new_mean:g}", ratio, verdict
        )
    return table


def print_result(result: PipelineResult, console: Console | None = None) -> None:
    """Print a summary of `result` using Rich."""
    console = console or Console(stderr=True)

    summary = Table(title="🎯 Grading Summary", show_header=False)
    summary.add_column("Field", style="bold cyan", width=16)
    summary.add_column("Value", style="white")
    summary.add_row("Run ID:", result.run_id)
    summary.add_row("Problem:", result.problem_id)

    if result.status == "passed":
        summary.add_row("Status:", "[bold green]passed[/]")
    elif result.status == "failed":
        summary.add_row("Status:", "[bold red]failed[/]")
    else:
        summary.add_row("Status:", "[bold yellow]grader error[/]")

    if result.failed_stage is not None:
        summary.add_row("Failed stage:", result.failed_stage.value)
    if result.category is not None:
        summary.add_row("Category:", result.category.value)
    if result.coverage is not None:
        summary.add_row(
            "Coverage:",
            f"{result.coverage.percent:.2f}% "
            f"({result.coverage.covered}/{result.coverage.total} statements)",
        )
    if result.detail:
        # Only the headline; full tool output is already in the log.
        summary.add_row("Detail:", result.detail.splitlines()[0])

    console.print(summary)
    if result.comparisons:
        console.print(comparisons_table(result.comparisons))
